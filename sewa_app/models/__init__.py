# sewa_app/models/__init__.py
"""
Database models package
"""

from .base import BaseModel, db
from .center import Center
from .enums import BadgeStatus, Gender
from .importer import BadgeSequence, ImportJobStatus, SewadarImportJob
from .sewadar import Sewadar

__all__ = [
    "db",
    "BaseModel",
    "Center",
    "Sewadar",
    # Enums
    "BadgeStatus",
    "Gender",
    # Importer models
    "BadgeSequence",
    "ImportJobStatus",
    "SewadarImportJob",
]
