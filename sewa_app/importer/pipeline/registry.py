"""
Job registry: the submit and poll surface of the sewadar import pipeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, Sequence
from uuid import uuid4

from .jobs import ImportJob, JobStore

logger = logging.getLogger(__name__)


class EmptyImportError(ValueError):
    """Raised when a submission carries no rows. No job is created."""

    def __init__(self, message: str = "No valid sewadar records found in the file"):
        super().__init__(message)


class ImportDispatcher(Protocol):
    def __call__(
        self,
        *,
        job_id: str,
        rows: list[dict[str, Any]],
        area_code: str | None,
        actor_id: str | None,
    ) -> None: ...


@dataclass(frozen=True)
class ImportSubmission:
    job_id: str
    total: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"job_id": self.job_id, "total": self.total, "message": self.message}


class JobRegistry:
    """
    Create jobs, hand them to exactly one background task and serve snapshots.

    ``dispatcher`` schedules the background task; the registry never runs
    chunks itself.
    """

    def __init__(
        self,
        store: JobStore,
        dispatcher: ImportDispatcher,
        *,
        retention_seconds: float = 300,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.retention_seconds = retention_seconds
        self.id_factory = id_factory or (lambda: uuid4().hex)

    def submit(
        self,
        rows: Sequence[Mapping[str, Any]],
        *,
        area_code: str | None = None,
        actor_id: str | None = None,
    ) -> ImportSubmission:
        payload = [dict(row) for row in rows]
        if not payload:
            raise EmptyImportError()

        job = ImportJob(
            id=self.id_factory(),
            total=len(payload),
            area_code=area_code,
            actor_id=actor_id,
            message=f"Import started for {len(payload)} sewadars",
        )
        self.store.create(job)
        try:
            self.dispatcher(job_id=job.id, rows=payload, area_code=area_code, actor_id=actor_id)
        except Exception as exc:
            logger.exception("Failed to schedule sewadar import", extra={"importer_job_id": job.id})
            self.store.mutate(job.id, lambda failed: failed.fail(f"Failed to schedule import: {exc}"))
            self.store.expire(job.id, self.retention_seconds)
            raise

        logger.info(
            "Sewadar import submitted",
            extra={"importer_job_id": job.id, "importer_rows_total": job.total, "importer_area_code": area_code},
        )
        return ImportSubmission(job_id=job.id, total=job.total, message=job.message)

    def poll(self, job_id: str) -> dict[str, Any]:
        """Return the job snapshot; raises ``JobNotFound`` for unknown or evicted ids."""

        return self.store.get(job_id).snapshot()

    def purge_expired(self) -> int:
        return self.store.purge_expired()
