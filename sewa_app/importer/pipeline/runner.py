"""
Sequential chunk loop for one import job.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Sequence

from sewa_app.importer.metrics import record_job

from .batch import BatchProcessor
from .jobs import ImportJob, JobStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50
DEFAULT_BATCH_DELAY_SECONDS = 0.01
DEFAULT_RETENTION_SECONDS = 300


class ImportJobRunner:
    """
    Drive a job from ``processing`` to a terminal state.

    Rows are sliced into ``batch_size`` chunks handled strictly one after the
    other, with ``batch_delay`` seconds between chunks. Any exception leaving
    a chunk fails the job; chunks committed before it stay committed. The
    terminal job is scheduled for eviction after ``retention_seconds``.
    """

    def __init__(
        self,
        store: JobStore,
        processor_factory: Callable[[ImportJob], BatchProcessor],
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY_SECONDS,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        rollback: Callable[[], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1.")
        self.store = store
        self.processor_factory = processor_factory
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.retention_seconds = retention_seconds
        self.rollback = rollback
        self.sleep = sleep

    def run(self, job_id: str, rows: Sequence[Mapping[str, Any]]) -> ImportJob:
        job = self.store.get(job_id)
        started = time.perf_counter()
        try:
            processor = self.processor_factory(job)
            for start in range(0, len(rows), self.batch_size):
                processor.process_batch(rows[start : start + self.batch_size], start, job)
                if start + self.batch_size < len(rows) and self.batch_delay > 0:
                    self.sleep(self.batch_delay)
            job.complete()
            self.store.save(job)
        except Exception as exc:
            if self.rollback is not None:
                self.rollback()
            if job.is_terminal:
                raise
            logger.exception(
                "Sewadar import failed",
                extra={"importer_job_id": job.id, "importer_error": str(exc)},
            )
            job.fail(str(exc) or exc.__class__.__name__)
            self.store.save(job)

        self.store.expire(job.id, self.retention_seconds)
        record_job(status=job.status.value, duration_seconds=time.perf_counter() - started)
        logger.info(
            "Sewadar import finished",
            extra={
                "importer_job_id": job.id,
                "importer_status": job.status.value,
                "importer_rows_total": job.total,
                "importer_rows_processed": job.processed,
                "importer_rows_created": job.created,
                "importer_rows_updated": job.updated,
                "importer_rows_errored": job.error_count,
            },
        )
        return job
