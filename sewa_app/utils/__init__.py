"""Shared helpers for the sewadar application."""
