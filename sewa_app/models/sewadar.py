# sewa_app/models/sewadar.py
"""
Sewadar (volunteer) model.
"""

from sqlalchemy import Enum, Index

from .base import BaseModel, db
from .enums import BadgeStatus, Gender


class Sewadar(BaseModel):
    """A volunteer identified by a unique badge number"""

    __tablename__ = "sewadars"

    id = db.Column(db.Integer, primary_key=True)
    badge_number = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(200), nullable=False)
    father_husband_name = db.Column(db.String(200), nullable=False)
    dob = db.Column(db.String(10), nullable=True)  # DD-MM-YYYY
    age = db.Column(db.Integer, nullable=True)
    gender = db.Column(Enum(Gender, name="sewadar_gender_enum"), nullable=False)
    badge_status = db.Column(
        Enum(BadgeStatus, name="sewadar_badge_status_enum"),
        nullable=False,
        default=BadgeStatus.UNKNOWN,
        index=True,
    )
    zone = db.Column(db.String(100), nullable=True)
    area = db.Column(db.String(200), nullable=True)
    area_code = db.Column(db.String(8), nullable=True, index=True)
    center = db.Column(db.String(200), nullable=True)
    center_id = db.Column(db.String(4), nullable=False, index=True)
    department = db.Column(db.String(100), nullable=True)
    contact_no = db.Column(db.String(20), nullable=True)
    emergency_contact = db.Column(db.String(20), nullable=True)
    created_by = db.Column(db.String(64), nullable=True)
    updated_by = db.Column(db.String(64), nullable=True)

    __table_args__ = (
        # Temporary sewadar lookup during import
        Index("idx_sewadars_temp_lookup", "name", "father_husband_name", "center_id", "badge_status"),
        Index("idx_sewadars_center_badge", "center_id", "badge_number"),
    )

    def __repr__(self):
        return f"<Sewadar {self.badge_number} {self.name} ({self.badge_status.value})>"

    @property
    def is_temporary(self) -> bool:
        return self.badge_status == BadgeStatus.TEMPORARY
