# sewa_app/models/center.py
"""
Center model. Centers are identified by a 4-digit code and belong to an area.
"""

from .base import BaseModel, db


class Center(BaseModel):
    """Satsang center a sewadar is attached to"""

    __tablename__ = "centers"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(4), nullable=False, unique=True, index=True)
    name = db.Column(db.String(200), nullable=False)
    area = db.Column(db.String(200), nullable=False)
    area_code = db.Column(db.String(8), nullable=False, index=True)

    def __repr__(self):
        return f"<Center {self.code} {self.name} ({self.area_code})>"
