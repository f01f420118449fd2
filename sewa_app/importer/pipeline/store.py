"""
Persistence boundary for the sewadar import pipeline.

The batch processor only talks to a ``SewadarStore``: two bulk lookups per
chunk plus one bulk update and one bulk insert. Bulk writes are unordered;
a failing item is reported in the ``BulkWriteResult`` and the rest still
apply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence

from sqlalchemy import and_, func, insert, literal, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sewa_app.models import BadgeStatus, Center, Sewadar

logger = logging.getLogger(__name__)

TemporaryKey = tuple[str, str, str]


@dataclass(frozen=True)
class BulkWriteFailure:
    """A single item rejected by a bulk write; ``index`` points into the submitted list."""

    index: int
    error: str


@dataclass
class BulkWriteResult:
    attempted: int = 0
    succeeded: int = 0
    failures: list[BulkWriteFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def failed_indexes(self) -> set[int]:
        return {failure.index for failure in self.failures}


def _describe_integrity_error(exc: IntegrityError) -> str:
    detail = str(getattr(exc, "orig", None) or exc).strip()
    if "badge_number" in detail.lower() or "unique" in detail.lower():
        return f"Duplicate key error: {detail}"
    return detail


class SewadarStore:
    """Interface implemented by sewadar persistence backends."""

    def find_by_badge_numbers(self, badge_numbers: Iterable[str]) -> list[Sewadar]:
        raise NotImplementedError

    def find_temporary_matches(self, keys: Iterable[TemporaryKey]) -> list[Sewadar]:
        raise NotImplementedError

    def find_centers(self, codes: Iterable[str]) -> dict[str, Center]:
        raise NotImplementedError

    def bulk_update(self, updates: Sequence[Mapping[str, Any]]) -> BulkWriteResult:
        raise NotImplementedError

    def bulk_insert(self, rows: Sequence[Mapping[str, Any]]) -> BulkWriteResult:
        raise NotImplementedError

    def commit(self) -> None:
        raise NotImplementedError

    def rollback(self) -> None:
        raise NotImplementedError


class SqlAlchemySewadarStore(SewadarStore):
    """
    SQLAlchemy-backed store.

    Each bulk write runs inside a savepoint as a single executemany. When the
    batch trips an integrity constraint the savepoint is rolled back and the
    items are replayed one savepoint at a time so only the offending rows
    fail. Any other database error propagates to the caller.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_badge_numbers(self, badge_numbers: Iterable[str]) -> list[Sewadar]:
        unique = sorted({badge for badge in badge_numbers if badge})
        if not unique:
            return []
        stmt = select(Sewadar).where(Sewadar.badge_number.in_(unique))
        return list(self.session.scalars(stmt))

    def find_temporary_matches(self, keys: Iterable[TemporaryKey]) -> list[Sewadar]:
        unique = sorted(set(keys))
        if not unique:
            return []
        # Both sides go through the same SQL folding; SQLite lower() is ASCII-only.
        name_expr = func.lower(func.trim(Sewadar.name))
        father_expr = func.lower(func.trim(Sewadar.father_husband_name))
        clauses = [
            and_(
                name_expr == func.lower(func.trim(literal(name))),
                father_expr == func.lower(func.trim(literal(father))),
                Sewadar.center_id == center_id,
            )
            for name, father, center_id in unique
        ]
        stmt = (
            select(Sewadar)
            .where(Sewadar.badge_status == BadgeStatus.TEMPORARY)
            .where(or_(*clauses))
            .order_by(Sewadar.id.asc())
        )
        return list(self.session.scalars(stmt))

    def find_centers(self, codes: Iterable[str]) -> dict[str, Center]:
        unique = sorted({code for code in codes if code})
        if not unique:
            return {}
        stmt = select(Center).where(Center.code.in_(unique))
        return {center.code: center for center in self.session.scalars(stmt)}

    def bulk_update(self, updates: Sequence[Mapping[str, Any]]) -> BulkWriteResult:
        return self._execute_unordered(update(Sewadar), updates)

    def bulk_insert(self, rows: Sequence[Mapping[str, Any]]) -> BulkWriteResult:
        return self._execute_unordered(insert(Sewadar), rows)

    def _execute_unordered(self, statement, parameters: Sequence[Mapping[str, Any]]) -> BulkWriteResult:
        result = BulkWriteResult(attempted=len(parameters))
        if not parameters:
            return result
        items = [dict(item) for item in parameters]
        try:
            with self.session.begin_nested():
                self.session.execute(statement, items)
            result.succeeded = len(items)
            return result
        except IntegrityError:
            logger.info(
                "Bulk write hit a constraint violation; retrying item by item",
                extra={"importer_bulk_items": len(items)},
            )

        for index, item in enumerate(items):
            try:
                with self.session.begin_nested():
                    self.session.execute(statement, [item])
            except IntegrityError as exc:
                result.failures.append(BulkWriteFailure(index=index, error=_describe_integrity_error(exc)))
            else:
                result.succeeded += 1
        return result

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()
