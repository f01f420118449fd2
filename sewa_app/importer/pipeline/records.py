"""
Row-level record type handed to the sewadar import pipeline.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Mapping

from sewa_app.models import BadgeStatus

# Spreadsheet row numbers count the header row and start at 1.
HEADER_ROW_OFFSET = 2

_KEPT_STATUSES = {BadgeStatus.PERMANENT.value, BadgeStatus.OPEN.value}


def normalize_badge_status(value: object | None) -> BadgeStatus:
    """
    Coerce a free-text badge status to PERMANENT, OPEN or TEMPORARY.

    Anything other than ``PERMANENT``/``OPEN`` (case-insensitive, trimmed),
    including a blank or missing value, becomes ``TEMPORARY``.
    """

    if value is None:
        return BadgeStatus.TEMPORARY
    token = str(value).strip().upper()
    if token in _KEPT_STATUSES:
        return BadgeStatus(token)
    return BadgeStatus.TEMPORARY


def row_number_for(index: int) -> int:
    """Return the spreadsheet row number for a 0-based data row index."""

    return index + HEADER_ROW_OFFSET


def _clean_text(value: object | None) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def _coerce_age(value: object | None) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(float(str(value).strip()))
    except ValueError:
        return None


@dataclass
class ImportRecord:
    """A single parsed spreadsheet row."""

    row_number: int
    name: str | None = None
    father_husband_name: str | None = None
    badge_number: str | None = None
    dob: str | None = None
    age: int | None = None
    gender: str | None = None
    badge_status: str | None = None
    zone: str | None = None
    area: str | None = None
    center: str | None = None
    center_id: str | None = None
    department: str | None = None
    contact_no: str | None = None
    emergency_contact: str | None = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any], *, row_number: int) -> "ImportRecord":
        """Build a record from a canonical-key mapping, trimming text values."""

        gender = _clean_text(payload.get("gender"))
        badge_number = _clean_text(payload.get("badge_number"))
        return cls(
            row_number=row_number,
            name=_clean_text(payload.get("name")),
            father_husband_name=_clean_text(payload.get("father_husband_name")),
            badge_number=badge_number.upper() if badge_number else None,
            dob=_clean_text(payload.get("dob")),
            age=_coerce_age(payload.get("age")),
            gender=gender.upper() if gender else None,
            badge_status=_clean_text(payload.get("badge_status")),
            zone=_clean_text(payload.get("zone")),
            area=_clean_text(payload.get("area")),
            center=_clean_text(payload.get("center")),
            center_id=_clean_text(payload.get("center_id")),
            department=_clean_text(payload.get("department")),
            contact_no=_clean_text(payload.get("contact_no")),
            emergency_contact=_clean_text(payload.get("emergency_contact")),
        )

    def with_normalized_status(self) -> "ImportRecord":
        return replace(self, badge_status=normalize_badge_status(self.badge_status).value)

    def to_payload(self) -> dict[str, Any]:
        """Return the row data without the row number (used in error reports)."""

        payload = asdict(self)
        payload.pop("row_number")
        return payload
