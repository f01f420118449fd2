"""
Match resolution for sewadar imports.

Each incoming row is classified against two per-batch indexes:

* the badge index (exact badge number → stored sewadar), and
* the temporary index (``name_father_center`` dedup key → stored TEMPORARY
  sewadar), used to promote temporary sewadars once they receive a badge.

An exact badge match always wins over a dedup-key match.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Mapping

from sewa_app.models import BadgeStatus

from .records import ImportRecord, normalize_badge_status

BADGE_CONFLICT_MESSAGE = "badge number already exists for another sewadar"


def build_dedup_key(name: object | None, father_husband_name: object | None, center_id: object | None) -> str:
    """
    Composite key used to match temporary sewadars independent of badge number.

    Names compare case-insensitively after trimming; the center id is exact.
    """

    name_token = str(name or "").strip().lower()
    father_token = str(father_husband_name or "").strip().lower()
    center_token = str(center_id or "").strip()
    return f"{name_token}_{father_token}_{center_token}"


def record_dedup_key(record: ImportRecord) -> str:
    return build_dedup_key(record.name, record.father_husband_name, record.center_id)


@dataclass(frozen=True)
class IndexedSewadar:
    """Lightweight view of a stored sewadar held in the per-batch indexes."""

    id: int
    badge_number: str
    dedup_key: str

    @classmethod
    def from_model(cls, sewadar) -> "IndexedSewadar":
        return cls(
            id=sewadar.id,
            badge_number=sewadar.badge_number,
            dedup_key=build_dedup_key(sewadar.name, sewadar.father_husband_name, sewadar.center_id),
        )


ExistingBadgeIndex = Mapping[str, IndexedSewadar]
TemporaryMatchIndex = Mapping[str, IndexedSewadar]


class MatchAction(str, enum.Enum):
    """Resolution outcome for a single row."""

    CREATE = "create"
    UPDATE_EXISTING = "update_existing"
    UPDATE_TEMPORARY = "update_temporary"
    # Repeats a badge already queued for insert earlier in the same batch.
    UPDATE_PENDING = "update_pending"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class MatchDecision:
    action: MatchAction
    target_id: int | None = None
    error: str | None = None

    @property
    def counts_as_created(self) -> bool:
        return self.action is MatchAction.CREATE

    @property
    def counts_as_updated(self) -> bool:
        return self.action in (
            MatchAction.UPDATE_EXISTING,
            MatchAction.UPDATE_TEMPORARY,
            MatchAction.UPDATE_PENDING,
        )


_PENDING_CREATE = object()


class MatchResolver:
    """
    Classify rows of one batch as create / update-existing / update-temporary / conflict.

    The resolver remembers which badge numbers earlier rows of the batch have
    claimed so a badge cannot be written to two different sewadars by one
    bulk operation. A temporary sewadar promoted off TEMPORARY by an earlier
    row is no longer a dedup match for rows carrying a different badge.
    """

    def __init__(
        self,
        badge_index: ExistingBadgeIndex,
        temporary_index: TemporaryMatchIndex,
    ) -> None:
        self.badge_index = badge_index
        self.temporary_index = temporary_index
        self._claims: dict[str, object] = {}
        self._promoted: dict[int, str | None] = {}

    def _claim(self, badge_number: str | None, target: object) -> None:
        if badge_number:
            self._claims[badge_number] = target

    def _claimed_by_other(self, badge_number: str | None, target_id: int | None) -> bool:
        if not badge_number or badge_number not in self._claims:
            return False
        return self._claims[badge_number] != target_id

    def resolve(self, record: ImportRecord) -> MatchDecision:
        badge_number = record.badge_number
        dedup_key = record_dedup_key(record)
        owner = self.badge_index.get(badge_number) if badge_number else None
        temporary = self.temporary_index.get(dedup_key)
        if temporary is not None and self._promoted.get(temporary.id, badge_number) != badge_number:
            temporary = None

        if owner is not None:
            # The badge belongs to a different person while this row is really
            # the promotion of another temporary sewadar.
            if temporary is not None and temporary.id != owner.id and owner.dedup_key != dedup_key:
                return MatchDecision(action=MatchAction.CONFLICT, error=BADGE_CONFLICT_MESSAGE)
            self._claim(badge_number, owner.id)
            return MatchDecision(action=MatchAction.UPDATE_EXISTING, target_id=owner.id)

        if temporary is not None:
            if self._claimed_by_other(badge_number, temporary.id):
                return MatchDecision(action=MatchAction.CONFLICT, error=BADGE_CONFLICT_MESSAGE)
            self._claim(badge_number, temporary.id)
            if normalize_badge_status(record.badge_status) is not BadgeStatus.TEMPORARY:
                self._promoted[temporary.id] = badge_number
            return MatchDecision(action=MatchAction.UPDATE_TEMPORARY, target_id=temporary.id)

        if badge_number and badge_number in self._claims:
            if self._claims[badge_number] is _PENDING_CREATE:
                return MatchDecision(action=MatchAction.UPDATE_PENDING)
            return MatchDecision(action=MatchAction.CONFLICT, error=BADGE_CONFLICT_MESSAGE)

        self._claim(badge_number, _PENDING_CREATE)
        return MatchDecision(action=MatchAction.CREATE)
