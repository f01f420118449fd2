"""
Application wiring for sewadar import jobs.

Resolves the configured job store, builds the registry used by the HTTP and
CLI submit paths, and runs a job inside the Celery worker.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from flask import Flask, current_app

from sewa_app.models import db

from .pipeline import (
    BadgeAllocator,
    BatchProcessor,
    DatabaseJobStore,
    ImportJob,
    ImportJobRunner,
    InMemoryJobStore,
    JobRegistry,
    JobStore,
    JobStoreProgressSink,
    SqlAlchemySewadarStore,
)

RUN_IMPORT_TASK = "importer.sewadars.run_import"
JOB_STORE_BACKENDS = ("database", "memory")


def create_job_store(app: Flask) -> JobStore:
    backend = str(app.config.get("IMPORTER_JOB_STORE", "database")).lower()
    if backend == "memory":
        return InMemoryJobStore()
    if backend == "database":
        return DatabaseJobStore(db.session)
    raise ValueError(
        f"Unknown IMPORTER_JOB_STORE '{backend}'. Expected one of: {', '.join(JOB_STORE_BACKENDS)}."
    )


def get_job_store(app: Flask | None = None) -> JobStore:
    """Return the job store cached on the importer extension state."""

    app = app or current_app._get_current_object()
    state = app.extensions.setdefault("importer", {})
    store: JobStore | None = state.get("job_store")
    if store is None:
        store = create_job_store(app)
        state["job_store"] = store
    return store


def _celery_dispatcher(app: Flask):
    def dispatch(*, job_id: str, rows: list[dict[str, Any]], area_code: str | None, actor_id: str | None) -> None:
        from .celery_app import get_celery_app

        celery_app = get_celery_app(app)
        if celery_app is None:
            raise RuntimeError("Importer Celery app is unavailable; enable IMPORTER_ENABLED to schedule imports.")
        task = celery_app.tasks[RUN_IMPORT_TASK]
        async_result = task.apply_async(kwargs={"job_id": job_id, "rows": rows})
        app.logger.info(
            "Sewadar import queued",
            extra={
                "importer_job_id": job_id,
                "importer_task_id": async_result.id,
                "importer_rows_total": len(rows),
                "importer_area_code": area_code,
                "importer_actor_id": actor_id,
            },
        )

    return dispatch


def get_job_registry(app: Flask | None = None) -> JobRegistry:
    app = app or current_app._get_current_object()
    return JobRegistry(
        get_job_store(app),
        _celery_dispatcher(app),
        retention_seconds=float(app.config.get("IMPORTER_JOB_RETENTION_SECONDS", 300)),
    )


def run_import_job(app: Flask, *, job_id: str, rows: Sequence[Mapping[str, Any]]) -> ImportJob:
    """Process every chunk of ``job_id``. Must run inside an application context."""

    store = get_job_store(app)
    allocate_temporary = bool(app.config.get("IMPORTER_ALLOCATE_TEMPORARY_BADGES", False))

    def processor_factory(job: ImportJob) -> BatchProcessor:
        return BatchProcessor(
            SqlAlchemySewadarStore(db.session),
            area_code=job.area_code,
            actor_id=job.actor_id,
            allocate_temporary_badges=allocate_temporary,
            badge_allocator=BadgeAllocator(db.session) if allocate_temporary else None,
            sink=JobStoreProgressSink(store),
        )

    runner = ImportJobRunner(
        store,
        processor_factory,
        batch_size=int(app.config.get("IMPORTER_BATCH_SIZE", 50)),
        batch_delay=float(app.config.get("IMPORTER_BATCH_DELAY_SECONDS", 0.01)),
        retention_seconds=float(app.config.get("IMPORTER_JOB_RETENTION_SECONDS", 300)),
        rollback=db.session.rollback,
    )
    return runner.run(job_id, rows)
