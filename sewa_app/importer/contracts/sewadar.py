"""Canonical sewadar spreadsheet contract.

Maps the column headers found in sewadar spreadsheets (``Badge_Number``,
``Sewadar_Name``, ``Centre`` ...) onto the keys the import pipeline reads.
Headers are compared case/space/underscore-insensitively.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Mapping, Tuple

Normalizer = Callable[[object | None], object | None]

DOB_FORMAT = "%d-%m-%Y"


def _cell_text(value: object | None) -> object | None:
    """Render a spreadsheet cell as trimmed text; integral floats lose their ``.0``."""

    if value is None:
        return None
    if isinstance(value, bool):
        return str(value).upper()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.strftime(DOB_FORMAT)
    token = str(value).strip()
    return token or None


def _cell_number(value: object | None) -> object | None:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return _cell_text(value)


@dataclass(frozen=True)
class FieldSpec:
    """Metadata describing a canonical sewadar column."""

    name: str
    description: str
    required: bool = False
    aliases: Tuple[str, ...] = ()
    normalizer: Normalizer | None = _cell_text

    def headers(self) -> Tuple[str, ...]:
        """Return the canonical header plus aliases for validation."""

        return (self.name, *self.aliases)


SEWADAR_CANONICAL_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec(
        name="badge_number",
        description="Badge number, e.g. HI1000GA0001 or T1000GA0001.",
        aliases=("badge_no", "badge"),
    ),
    FieldSpec(
        name="name",
        description="Sewadar name.",
        required=True,
        aliases=("sewadar_name", "full_name"),
    ),
    FieldSpec(
        name="father_husband_name",
        description="Father's or husband's name.",
        required=True,
        aliases=("father/husband_name", "father_name", "husband_name"),
    ),
    FieldSpec(
        name="dob",
        description="Date of birth (DD-MM-YYYY).",
        aliases=("date_of_birth", "birth_date"),
    ),
    FieldSpec(
        name="age",
        description="Age in years.",
        normalizer=_cell_number,
    ),
    FieldSpec(
        name="gender",
        description="MALE or FEMALE.",
        aliases=("sex",),
    ),
    FieldSpec(
        name="badge_status",
        description="PERMANENT, OPEN or TEMPORARY (anything else is treated as TEMPORARY).",
        aliases=("status",),
    ),
    FieldSpec(
        name="zone",
        description="Zone name.",
    ),
    FieldSpec(
        name="area",
        description="Area name.",
    ),
    FieldSpec(
        name="center",
        description="Centre display name.",
        aliases=("centre", "center_name", "centre_name"),
    ),
    FieldSpec(
        name="center_id",
        description="4-digit centre code; derived from the badge number when absent.",
        aliases=("centre_code", "center_code", "centre_id"),
    ),
    FieldSpec(
        name="department",
        description="Department the sewadar serves in.",
        aliases=("dept",),
    ),
    FieldSpec(
        name="contact_no",
        description="10-digit contact number.",
        aliases=("contact", "contact_number", "mobile", "phone"),
    ),
    FieldSpec(
        name="emergency_contact",
        description="Emergency contact number.",
        aliases=("emergency_contact_no", "emergency_number"),
    ),
)


def get_sewadar_field_specs() -> Tuple[FieldSpec, ...]:
    return SEWADAR_CANONICAL_FIELDS


def get_sewadar_required_headers() -> Tuple[str, ...]:
    """Headers that must be present in every sewadar spreadsheet."""

    return tuple(field.name for field in SEWADAR_CANONICAL_FIELDS if field.required)


def get_sewadar_alias_map() -> Mapping[str, str]:
    """Map normalized header tokens to canonical names (includes aliases)."""

    mapping: dict[str, str] = {}
    for field in SEWADAR_CANONICAL_FIELDS:
        for header in field.headers():
            mapping[normalize_header(header)] = field.name
    return mapping


def normalize_header(header: str) -> str:
    """Normalize a header for comparison (case/space/underscore agnostic)."""

    token = header.strip().lower()
    for char in (" ", "-", "."):
        token = token.replace(char, "_")
    return token
