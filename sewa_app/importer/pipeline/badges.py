"""
Badge number patterns, format checks and sequential allocation.

Badge numbers look like ``HI1000GA0001`` (area code, center code, gender code,
4-digit suffix) or ``T1000GA0001`` for temporary sewadars.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable

from sqlalchemy.orm import Session

from sewa_app.models import BadgeSequence, Gender, Sewadar

logger = logging.getLogger(__name__)

GENDER_BADGE_CODES = {
    Gender.MALE: "GA",
    Gender.FEMALE: "LA",
}
TEMPORARY_BADGE_PREFIX = "T"

_REGULAR_BADGE_REGEX = re.compile(r"^[A-Z]{2}\d{4}(GA|LA)\d{4}$")
_TEMPORARY_BADGE_REGEX = re.compile(r"^T\d{4}(GA|LA)\d{4}$")


def badge_pattern(
    center_id: str,
    gender: Gender | str,
    *,
    temporary: bool = False,
    area_code: str | None = None,
) -> str:
    """
    Build the badge prefix for a center/gender pair.

    Permanent badges are prefixed with the area code; temporary badges use
    ``T`` in its place.
    """

    code = GENDER_BADGE_CODES[Gender(gender)]
    if temporary:
        return f"{TEMPORARY_BADGE_PREFIX}{center_id}{code}"
    if not area_code:
        raise ValueError("area_code is required for a permanent badge pattern.")
    return f"{area_code.upper()}{center_id}{code}"


def format_badge_number(pattern: str, number: int) -> str:
    return f"{pattern}{number:04d}"


def next_badge(existing_badges: Iterable[str], pattern: str) -> str:
    """
    Return the next unused badge for ``pattern``.

    Only badges matching ``^pattern\\d{4}$`` count; the result is one past the
    highest suffix seen (``0001`` when nothing matches). Uniqueness is not
    guaranteed under concurrency, see ``BadgeAllocator``.
    """

    matcher = re.compile(rf"^{re.escape(pattern)}(\d{{4}})$")
    highest = 0
    for badge in existing_badges:
        match = matcher.match(badge or "")
        if match:
            highest = max(highest, int(match.group(1)))
    return format_badge_number(pattern, highest + 1)


def is_valid_badge_format(badge_number: str | None) -> bool:
    if not badge_number:
        return False
    return bool(_REGULAR_BADGE_REGEX.match(badge_number) or _TEMPORARY_BADGE_REGEX.match(badge_number))


def is_temporary_badge(badge_number: str | None) -> bool:
    return bool(badge_number and _TEMPORARY_BADGE_REGEX.match(badge_number))


class BadgeAllocator:
    """
    Hand out badge numbers from a per-pattern sequence row.

    The sequence row is locked for the duration of the caller's transaction,
    so concurrent jobs never compute the same suffix. A pattern seen for the
    first time is seeded from the badges already stored for it.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def _seed_value(self, pattern: str) -> int:
        existing = (
            self.session.query(Sewadar.badge_number).filter(Sewadar.badge_number.like(f"{pattern}%")).all()
        )
        seeded = next_badge((badge for (badge,) in existing), pattern)
        return int(seeded[-4:]) - 1

    def allocate(self, pattern: str) -> str:
        sequence = (
            self.session.query(BadgeSequence)
            .filter_by(pattern=pattern)
            .with_for_update(of=BadgeSequence)
            .first()
        )
        if sequence is None:
            sequence = BadgeSequence(pattern=pattern, last_value=self._seed_value(pattern))
            self.session.add(sequence)
        sequence.last_value += 1
        if sequence.last_value > 9999:
            raise ValueError(f"Badge sequence exhausted for pattern {pattern}.")
        self.session.flush()
        badge = format_badge_number(pattern, sequence.last_value)
        logger.debug("Allocated badge %s", badge)
        return badge

    def allocate_temporary(self, center_id: str, gender: Gender | str) -> str:
        return self.allocate(badge_pattern(center_id, gender, temporary=True))
