"""Prometheus metrics helpers for the importer."""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter, Histogram

_jobs_counter = Counter(
    "importer_sewadar_jobs_total",
    "Sewadar import jobs by terminal status.",
    ["status"],
)
_rows_counter = Counter(
    "importer_sewadar_rows_total",
    "Sewadar import rows by outcome.",
    ["outcome"],
)
_batch_duration = Histogram(
    "importer_sewadar_batch_duration_seconds",
    "Duration of a single sewadar import chunk in seconds.",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)
_job_duration = Histogram(
    "importer_sewadar_job_duration_seconds",
    "Wall-clock duration of sewadar import jobs in seconds.",
    buckets=(0.5, 1, 5, 15, 30, 60, 120, 300, 600, 1800),
)
_api_requests = Counter(
    "importer_api_requests_total",
    "Importer HTTP requests by endpoint and response status.",
    ["endpoint", "status"],
)


def record_rows(*, outcome: Literal["created", "updated", "error"], count: int) -> None:
    """Increment the row counter for one outcome."""

    if count <= 0:
        return
    _rows_counter.labels(outcome=outcome).inc(count)


def record_batch(*, duration_seconds: float) -> None:
    _batch_duration.observe(duration_seconds)


def record_job(*, status: Literal["completed", "failed"], duration_seconds: float) -> None:
    """Capture the terminal status and duration of a job."""

    _jobs_counter.labels(status=status).inc()
    _job_duration.observe(duration_seconds)


def record_api_request(*, endpoint: str, status: int) -> None:
    _api_requests.labels(endpoint=endpoint, status=str(status)).inc()
