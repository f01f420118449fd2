"""
Row validation rules for sewadar imports.

Each rule inspects an ``ImportRecord`` and yields human-readable violations.
``validate_record`` runs the full rule set and reports whether the row may
continue to matching and writes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Sequence

from sewa_app.models import BadgeStatus, Gender

from .badges import is_valid_badge_format
from .records import ImportRecord

_DOB_REGEX = re.compile(r"^\d{2}-\d{2}-\d{4}$")
_NON_DIGITS = re.compile(r"\D")
_VALID_GENDERS = {gender.value for gender in Gender}


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a single record."""

    is_valid: bool
    errors: tuple[str, ...]
    rule_codes: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        return ", ".join(self.errors)


@dataclass(frozen=True)
class ValidationRule:
    """Declarative rule definition used by the validation engine."""

    code: str
    description: str

    def evaluate(self, record: ImportRecord) -> Iterable[str]:
        raise NotImplementedError


class RequiredTextRule(ValidationRule):
    """Ensure a text field is present and not blank."""

    def __init__(self, code: str, field_name: str, message: str) -> None:
        super().__init__(code=code, description=message)
        self.field_name = field_name
        self.message = message

    def evaluate(self, record: ImportRecord) -> Iterable[str]:
        value = getattr(record, self.field_name)
        if value is None or not str(value).strip():
            return [self.message]
        return []


class BadgeNumberRule(ValidationRule):
    """Badge number must be present and follow the organization's format."""

    def __init__(self, *, allow_missing_temporary: bool = False) -> None:
        super().__init__(code="SEW_BADGE_NUMBER", description="Badge number must be present and well-formed.")
        self.allow_missing_temporary = allow_missing_temporary

    def evaluate(self, record: ImportRecord) -> Iterable[str]:
        if not record.badge_number:
            if self.allow_missing_temporary and record.badge_status == BadgeStatus.TEMPORARY.value:
                return []
            return ["Badge number is required"]
        if not is_valid_badge_format(record.badge_number):
            return [f"Badge number {record.badge_number} is not in a valid format"]
        return []


class GenderRule(ValidationRule):
    def __init__(self) -> None:
        super().__init__(code="SEW_GENDER", description="Gender must be MALE or FEMALE.")

    def evaluate(self, record: ImportRecord) -> Iterable[str]:
        if record.gender in _VALID_GENDERS:
            return []
        return ["Valid gender is required (MALE or FEMALE)"]


class ContactNumberRule(ValidationRule):
    def __init__(self) -> None:
        super().__init__(code="SEW_CONTACT_FORMAT", description="Contact number must have 10 digits.")

    def evaluate(self, record: ImportRecord) -> Iterable[str]:
        if not record.contact_no:
            return []
        if len(_NON_DIGITS.sub("", record.contact_no)) == 10:
            return []
        return ["Contact number must be a valid 10-digit phone number"]


class DateOfBirthRule(ValidationRule):
    def __init__(self) -> None:
        super().__init__(code="SEW_DOB_FORMAT", description="Date of birth must be DD-MM-YYYY.")

    def evaluate(self, record: ImportRecord) -> Iterable[str]:
        if not record.dob or _DOB_REGEX.match(record.dob):
            return []
        return ["Date of birth must be in DD-MM-YYYY format"]


def build_rules(*, allow_missing_temporary_badge: bool = False) -> Sequence[ValidationRule]:
    return (
        BadgeNumberRule(allow_missing_temporary=allow_missing_temporary_badge),
        RequiredTextRule("SEW_NAME_REQUIRED", "name", "Name is required"),
        RequiredTextRule("SEW_FATHER_NAME_REQUIRED", "father_husband_name", "Father/Husband name is required"),
        GenderRule(),
        RequiredTextRule("SEW_CENTER_REQUIRED", "center_id", "Center ID is required"),
        ContactNumberRule(),
        DateOfBirthRule(),
    )


def validate_record(
    record: ImportRecord,
    *,
    rules: Sequence[ValidationRule] | None = None,
) -> ValidationResult:
    """Run every rule against ``record`` and collect the violations in rule order."""

    errors: list[str] = []
    codes: list[str] = []
    for rule in rules or build_rules():
        messages = list(rule.evaluate(record))
        if messages:
            errors.extend(messages)
            codes.append(rule.code)
    return ValidationResult(is_valid=not errors, errors=tuple(errors), rule_codes=tuple(codes))
