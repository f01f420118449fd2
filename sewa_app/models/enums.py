# sewa_app/models/enums.py
"""
Enums for sewadar models.
"""

import enum


class Gender(str, enum.Enum):
    """Gender values accepted on sewadar records"""

    MALE = "MALE"
    FEMALE = "FEMALE"


class BadgeStatus(str, enum.Enum):
    """Badge status of a sewadar"""

    PERMANENT = "PERMANENT"
    OPEN = "OPEN"
    TEMPORARY = "TEMPORARY"
    UNKNOWN = "UNKNOWN"
