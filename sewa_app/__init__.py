"""
Sewadar membership application package.

Only the bulk sewadar import pipeline lives here; the remaining CRUD surfaces
of the membership system are served elsewhere.
"""
