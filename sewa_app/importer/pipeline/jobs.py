"""
Import job state and the stores that hold it between polls.

A job is created by the registry, mutated only by its single background
task, and evicted a retention period after it reaches a terminal state.
Evicted and unknown job ids both raise ``JobNotFound``.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlalchemy import delete
from sqlalchemy.orm import Session

from sewa_app.models import ImportJobStatus, SewadarImportJob


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_progress(processed: int, total: int) -> int:
    """Percentage of ``processed`` over ``total`` rounded half up (0 when ``total`` is 0)."""

    if total <= 0:
        return 0
    return (processed * 200 + total) // (2 * total)


class JobNotFound(LookupError):
    """Raised when a job id is unknown or the job has been evicted."""

    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found.")
        self.job_id = job_id


@dataclass(frozen=True)
class RowError:
    row: int
    error: str
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"row": self.row, "error": self.error, "data": dict(self.data)}

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "RowError":
        return cls(row=int(payload["row"]), error=str(payload["error"]), data=dict(payload.get("data") or {}))


@dataclass
class ImportJob:
    """Mutable job state owned by one background task."""

    id: str
    total: int
    status: ImportJobStatus = ImportJobStatus.PROCESSING
    processed: int = 0
    created: int = 0
    updated: int = 0
    progress: int = 0
    errors: list[RowError] = field(default_factory=list)
    message: str = ""
    area_code: str | None = None
    actor_id: str | None = None
    started_at: datetime = field(default_factory=_utcnow)
    finished_at: datetime | None = None
    expires_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def record_chunk(self, *, processed: int, created: int, updated: int, errors: list[RowError]) -> None:
        """Fold one chunk's outcome into the counters. Counters only grow."""

        if self.is_terminal:
            raise ValueError(f"Job {self.id} is already {self.status.value}.")
        self.processed = min(self.total, self.processed + processed)
        self.created += created
        self.updated += updated
        self.errors.extend(sorted(errors, key=lambda item: item.row))
        self.progress = compute_progress(self.processed, self.total)
        self.message = f"Processed {self.processed} of {self.total} rows"

    def complete(self) -> None:
        if self.is_terminal:
            raise ValueError(f"Job {self.id} is already {self.status.value}.")
        self.status = ImportJobStatus.COMPLETED
        self.progress = compute_progress(self.processed, self.total)
        self.message = f"Import completed. Created: {self.created}, Updated: {self.updated}"
        self.finished_at = _utcnow()

    def fail(self, reason: str) -> None:
        if self.is_terminal:
            raise ValueError(f"Job {self.id} is already {self.status.value}.")
        self.status = ImportJobStatus.FAILED
        self.message = reason
        self.finished_at = _utcnow()

    def duration_ms(self, now: datetime | None = None) -> int:
        end = self.finished_at or now or _utcnow()
        return max(0, int((_as_aware(end) - _as_aware(self.started_at)).total_seconds() * 1000))

    def snapshot(self, now: datetime | None = None) -> dict[str, Any]:
        """Poll response for the job. Reading never changes state."""

        return {
            "job_id": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "total": self.total,
            "processed": self.processed,
            "created": self.created,
            "updated": self.updated,
            "errors": [error.to_dict() for error in self.errors],
            "error_count": self.error_count,
            "message": self.message,
            "duration_ms": self.duration_ms(now),
            "started_at": _as_aware(self.started_at).isoformat(),
            "finished_at": _as_aware(self.finished_at).isoformat() if self.finished_at else None,
        }


class JobStore:
    """Storage interface for import jobs."""

    def create(self, job: ImportJob) -> ImportJob:
        raise NotImplementedError

    def get(self, job_id: str) -> ImportJob:
        raise NotImplementedError

    def save(self, job: ImportJob) -> ImportJob:
        raise NotImplementedError

    def expire(self, job_id: str, after_seconds: float) -> None:
        raise NotImplementedError

    def purge_expired(self, now: datetime | None = None) -> int:
        raise NotImplementedError

    def mutate(self, job_id: str, mutator: Callable[[ImportJob], None]) -> ImportJob:
        """Load a job, apply ``mutator`` to it and persist the result."""

        job = self.get(job_id)
        mutator(job)
        return self.save(job)


class InMemoryJobStore(JobStore):
    """
    Process-local store. Jobs are copied on the way in and out so callers
    never share a mutable object with the store.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, ImportJob] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self, job: ImportJob) -> ImportJob:
        with self._lock:
            if job.id in self._jobs:
                raise ValueError(f"Job {job.id} already exists.")
            self._jobs[job.id] = copy.deepcopy(job)
        return job

    def get(self, job_id: str) -> ImportJob:
        now = _utcnow()
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise JobNotFound(job_id)
            if job.expires_at is not None and job.expires_at <= now:
                del self._jobs[job_id]
                raise JobNotFound(job_id)
            return copy.deepcopy(job)

    def save(self, job: ImportJob) -> ImportJob:
        with self._lock:
            if job.id not in self._jobs:
                raise JobNotFound(job.id)
            self._jobs[job.id] = copy.deepcopy(job)
        return job

    def expire(self, job_id: str, after_seconds: float) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return
            job.expires_at = _utcnow() + timedelta(seconds=after_seconds)

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or _utcnow()
        with self._lock:
            expired = [job_id for job_id, job in self._jobs.items() if job.expires_at and job.expires_at <= now]
            for job_id in expired:
                del self._jobs[job_id]
        return len(expired)


class DatabaseJobStore(JobStore):
    """Store backed by ``SewadarImportJob`` rows so any process can serve polls."""

    def __init__(self, session: Session) -> None:
        self.session = session

    @staticmethod
    def _to_job(row: SewadarImportJob) -> ImportJob:
        return ImportJob(
            id=row.id,
            total=row.total,
            status=row.status,
            processed=row.processed,
            created=row.created_count,
            updated=row.updated_count,
            progress=row.progress,
            errors=[RowError.from_dict(item) for item in (row.errors_json or [])],
            message=row.message or "",
            area_code=row.area_code,
            actor_id=row.actor_id,
            started_at=_as_aware(row.started_at),
            finished_at=_as_aware(row.finished_at),
            expires_at=_as_aware(row.expires_at),
        )

    @staticmethod
    def _apply(row: SewadarImportJob, job: ImportJob) -> None:
        row.status = job.status
        row.total = job.total
        row.processed = job.processed
        row.created_count = job.created
        row.updated_count = job.updated
        row.progress = job.progress
        row.errors_json = [error.to_dict() for error in job.errors]
        row.message = job.message
        row.area_code = job.area_code
        row.actor_id = job.actor_id
        row.started_at = job.started_at
        row.finished_at = job.finished_at
        row.expires_at = job.expires_at

    def create(self, job: ImportJob) -> ImportJob:
        row = SewadarImportJob(id=job.id)
        self._apply(row, job)
        self.session.add(row)
        self.session.commit()
        return job

    def get(self, job_id: str) -> ImportJob:
        row = self.session.get(SewadarImportJob, job_id, populate_existing=True)
        if row is None:
            raise JobNotFound(job_id)
        expires_at = _as_aware(row.expires_at)
        if expires_at is not None and expires_at <= _utcnow():
            self.session.delete(row)
            self.session.commit()
            raise JobNotFound(job_id)
        return self._to_job(row)

    def save(self, job: ImportJob) -> ImportJob:
        row = self.session.get(SewadarImportJob, job.id)
        if row is None:
            raise JobNotFound(job.id)
        self._apply(row, job)
        self.session.commit()
        return job

    def expire(self, job_id: str, after_seconds: float) -> None:
        row = self.session.get(SewadarImportJob, job_id)
        if row is None:
            return
        row.expires_at = _utcnow() + timedelta(seconds=after_seconds)
        self.session.commit()

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or _utcnow()
        result = self.session.execute(
            delete(SewadarImportJob)
            .where(SewadarImportJob.expires_at.is_not(None))
            .where(SewadarImportJob.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount or 0
