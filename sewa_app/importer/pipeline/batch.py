"""
Chunk processing for sewadar imports.

``BatchProcessor.process_batch`` handles one fixed-size slice of the
submitted rows: two bulk lookups build the badge and temporary indexes, every
row is normalized, validated and classified in order, and the resulting
writes go out as one bulk update plus one bulk insert. Row problems become
row errors on the job; database errors outside a single row's write escape
to the caller and fail the job.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from sqlalchemy.exc import SQLAlchemyError

from sewa_app.importer.metrics import record_batch, record_rows
from sewa_app.models import BadgeStatus, Center, Gender

from .badges import BadgeAllocator, is_temporary_badge, is_valid_badge_format
from .jobs import ImportJob, RowError
from .matching import IndexedSewadar, MatchAction, MatchResolver
from .progress import NullProgressSink, ProgressSink
from .records import ImportRecord, row_number_for
from .store import SewadarStore
from .validation import build_rules, validate_record

logger = logging.getLogger(__name__)

_RECORD_FIELDS = (
    "badge_number",
    "name",
    "father_husband_name",
    "dob",
    "age",
    "zone",
    "area",
    "center",
    "center_id",
    "department",
    "contact_no",
    "emergency_contact",
)


@dataclass
class PendingWrite:
    """One queued write and the rows that contributed to it, first row first."""

    fields: dict[str, Any]
    rows: list[ImportRecord]


@dataclass
class ChunkOutcome:
    processed: int = 0
    created: int = 0
    updated: int = 0
    errors: list[RowError] = field(default_factory=list)

    def add_error(self, row: int, error: str, data: Mapping[str, Any] | None = None) -> None:
        self.errors.append(RowError(row=row, error=error, data=dict(data or {})))


class BatchProcessor:
    """Process chunks of one import job against a ``SewadarStore``."""

    def __init__(
        self,
        store: SewadarStore,
        *,
        area_code: str | None = None,
        actor_id: str | None = None,
        allocate_temporary_badges: bool = False,
        badge_allocator: BadgeAllocator | None = None,
        sink: ProgressSink | None = None,
    ) -> None:
        if allocate_temporary_badges and badge_allocator is None:
            raise ValueError("A badge allocator is required when temporary badge allocation is enabled.")
        self.store = store
        self.area_code = area_code.upper() if area_code else None
        self.actor_id = actor_id
        self.allocate_temporary_badges = allocate_temporary_badges
        self.badge_allocator = badge_allocator
        self.sink = sink or NullProgressSink()
        self.rules = build_rules(allow_missing_temporary_badge=allocate_temporary_badges)

    def process_batch(
        self,
        rows: Sequence[Mapping[str, Any]],
        batch_start_index: int,
        job: ImportJob,
    ) -> ChunkOutcome:
        started = time.perf_counter()
        outcome = ChunkOutcome(processed=len(rows))

        records: list[ImportRecord] = []
        for offset, raw in enumerate(rows):
            row_number = row_number_for(batch_start_index + offset)
            try:
                record = ImportRecord.from_mapping(raw, row_number=row_number).with_normalized_status()
            except Exception as exc:
                outcome.add_error(row_number, str(exc) or "Unknown error occurred", _safe_payload(raw))
                continue
            records.append(record)

        badge_index = {
            sewadar.badge_number: IndexedSewadar.from_model(sewadar)
            for sewadar in self.store.find_by_badge_numbers(record.badge_number for record in records)
        }
        temporary_index: dict[str, IndexedSewadar] = {}
        for sewadar in self.store.find_temporary_matches(_temporary_keys(records)):
            entry = IndexedSewadar.from_model(sewadar)
            temporary_index.setdefault(entry.dedup_key, entry)
        centers = self.store.find_centers(record.center_id for record in records) if self.area_code else {}

        resolver = MatchResolver(badge_index, temporary_index)
        updates: list[PendingWrite] = []
        inserts: list[PendingWrite] = []
        pending_by_badge: dict[str, PendingWrite] = {}
        now = datetime.now(timezone.utc)

        for record in records:
            try:
                result = validate_record(record, rules=self.rules)
                if not result.is_valid:
                    outcome.add_error(record.row_number, result.message, record.to_payload())
                    continue

                center = None
                if self.area_code:
                    center = centers.get(record.center_id)
                    if center is None:
                        outcome.add_error(
                            record.row_number,
                            f"Center with code {record.center_id} not found",
                            record.to_payload(),
                        )
                        continue
                    if (center.area_code or "").upper() != self.area_code:
                        outcome.add_error(
                            record.row_number,
                            f"Center {record.center_id} does not belong to your area",
                            record.to_payload(),
                        )
                        continue

                decision = resolver.resolve(record)
                if decision.action is MatchAction.CONFLICT:
                    outcome.add_error(record.row_number, decision.error, record.to_payload())
                    continue

                fields = self._fields_for(record, center, now)
                if decision.action is MatchAction.CREATE:
                    if not fields.get("badge_number"):
                        fields["badge_number"] = self.badge_allocator.allocate_temporary(record.center_id, record.gender)
                    fields["created_by"] = self.actor_id
                    fields["created_at"] = now
                    write = PendingWrite(fields=fields, rows=[record])
                    inserts.append(write)
                    pending_by_badge[fields["badge_number"]] = write
                elif decision.action is MatchAction.UPDATE_PENDING:
                    write = pending_by_badge[record.badge_number]
                    write.fields.update({key: value for key, value in fields.items() if value is not None})
                    write.rows.append(record)
                else:
                    update_fields = {key: value for key, value in fields.items() if value is not None}
                    update_fields["id"] = decision.target_id
                    updates.append(PendingWrite(fields=update_fields, rows=[record]))
            except SQLAlchemyError:
                raise
            except Exception as exc:
                outcome.add_error(record.row_number, str(exc) or "Unknown error occurred", record.to_payload())

        self._apply_writes(updates, inserts, outcome)
        self.store.commit()

        outcome.errors.sort(key=lambda item: item.row)
        job.record_chunk(
            processed=outcome.processed,
            created=outcome.created,
            updated=outcome.updated,
            errors=outcome.errors,
        )
        self.sink.publish(job)

        duration = time.perf_counter() - started
        record_batch(duration_seconds=duration)
        record_rows(outcome="created", count=outcome.created)
        record_rows(outcome="updated", count=outcome.updated)
        record_rows(outcome="error", count=len(outcome.errors))
        logger.info(
            "Sewadar import chunk processed",
            extra={
                "importer_job_id": job.id,
                "importer_batch_start": batch_start_index,
                "importer_rows_processed": outcome.processed,
                "importer_rows_created": outcome.created,
                "importer_rows_updated": outcome.updated,
                "importer_rows_errored": len(outcome.errors),
                "importer_batch_duration_ms": int(duration * 1000),
            },
        )
        return outcome

    def _fields_for(self, record: ImportRecord, center: Center | None, now: datetime) -> dict[str, Any]:
        fields: dict[str, Any] = {name: getattr(record, name) for name in _RECORD_FIELDS}
        fields["gender"] = Gender(record.gender)
        fields["badge_status"] = BadgeStatus(record.badge_status)
        if center is not None:
            fields["area"] = center.area
            fields["area_code"] = center.area_code
            fields["center"] = center.name
        elif self.area_code:
            fields["area_code"] = self.area_code
        elif is_valid_badge_format(record.badge_number) and not is_temporary_badge(record.badge_number):
            # Permanent badges lead with the area code.
            fields["area_code"] = record.badge_number[:2]
        fields["updated_by"] = self.actor_id
        fields["updated_at"] = now
        return fields

    def _apply_writes(
        self,
        updates: list[PendingWrite],
        inserts: list[PendingWrite],
        outcome: ChunkOutcome,
    ) -> None:
        update_result = self.store.bulk_update([write.fields for write in updates])
        update_failures = {failure.index: failure.error for failure in update_result.failures}
        for index, write in enumerate(updates):
            if index in update_failures:
                for record in write.rows:
                    outcome.add_error(record.row_number, update_failures[index], record.to_payload())
            else:
                outcome.updated += len(write.rows)

        insert_result = self.store.bulk_insert([write.fields for write in inserts])
        insert_failures = {failure.index: failure.error for failure in insert_result.failures}
        for index, write in enumerate(inserts):
            if index in insert_failures:
                for record in write.rows:
                    outcome.add_error(record.row_number, insert_failures[index], record.to_payload())
            else:
                outcome.created += 1
                outcome.updated += len(write.rows) - 1


def _temporary_keys(records: Sequence[ImportRecord]) -> list[tuple[str, str, str]]:
    keys = []
    for record in records:
        if not (record.name and record.father_husband_name and record.center_id):
            continue
        keys.append((record.name, record.father_husband_name, record.center_id))
    return keys


def _safe_payload(raw: object) -> dict[str, Any]:
    if not isinstance(raw, Mapping):
        return {"value": str(raw)}
    payload: dict[str, Any] = {}
    for key, value in raw.items():
        payload[str(key)] = value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
    return payload


