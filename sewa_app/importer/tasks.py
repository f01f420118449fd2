"""
Importer Celery tasks.

``importer.sewadars.run_import`` is the single background task behind each
sewadar import job; ``importer.healthcheck`` backs worker health checks.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from celery import shared_task
from flask import current_app

from .service import RUN_IMPORT_TASK, run_import_job


@shared_task(name="importer.healthcheck", bind=True)
def importer_healthcheck(self) -> dict[str, Any]:
    """
    Simple heartbeat task used by worker health checks.
    """
    now = datetime.now(timezone.utc)
    return {
        "status": "ok",
        "timestamp": now.isoformat(),
        "worker_hostname": self.request.hostname,
        "app_version": getattr(self.app, "user_options", {}).get("version"),
    }


@shared_task(name=RUN_IMPORT_TASK, bind=True)
def run_sewadar_import(self, *, job_id: str, rows: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Process every chunk of a sewadar import job.

    Failures are recorded on the job itself, so the task result only
    summarises the terminal state.
    """

    current_app.logger.info(
        "Sewadar import task started",
        extra={"importer_job_id": job_id, "importer_task_id": self.request.id, "importer_rows_total": len(rows)},
    )
    job = run_import_job(current_app._get_current_object(), job_id=job_id, rows=rows)
    return {
        "job_id": job.id,
        "status": job.status.value,
        "total": job.total,
        "processed": job.processed,
        "created": job.created,
        "updated": job.updated,
        "error_count": job.error_count,
    }
