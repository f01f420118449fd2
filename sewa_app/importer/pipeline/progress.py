"""
Progress publication for import jobs.

The batch processor publishes the job after every chunk through a
``ProgressSink``. ``JobStoreProgressSink`` persists the state so polls can
read it; ``stream_job_events`` turns those stored snapshots into a
server-sent event stream.
"""

from __future__ import annotations

import json
import time
from typing import Callable, Iterator

from .jobs import ImportJob, JobNotFound, JobStore


class ProgressSink:
    """Receives the job state after each chunk."""

    def publish(self, job: ImportJob) -> None:
        raise NotImplementedError


class NullProgressSink(ProgressSink):
    def publish(self, job: ImportJob) -> None:
        return None


class JobStoreProgressSink(ProgressSink):
    def __init__(self, store: JobStore) -> None:
        self.store = store

    def publish(self, job: ImportJob) -> None:
        self.store.save(job)


def format_event(payload: dict, *, event: str | None = None) -> str:
    lines = []
    if event:
        lines.append(f"event: {event}")
    lines.append(f"data: {json.dumps(payload)}")
    return "\n".join(lines) + "\n\n"


def stream_job_events(
    store: JobStore,
    job_id: str,
    *,
    poll_interval: float = 1.0,
    max_duration: float = 600.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Iterator[str]:
    """
    Yield a snapshot event every ``poll_interval`` seconds until the job is terminal.

    The stream ends with an ``error`` event when the job disappears and with
    a ``timeout`` event once ``max_duration`` elapses. A timeout only ends the
    stream; the job keeps running.
    """

    deadline = clock() + max_duration
    while True:
        try:
            job = store.get(job_id)
        except JobNotFound:
            yield format_event({"error": "Job not found"}, event="error")
            return
        yield format_event(job.snapshot())
        if job.is_terminal:
            return
        if clock() >= deadline:
            yield format_event({"job_id": job_id, "message": "Progress polling timed out"}, event="timeout")
            return
        sleep(poll_interval)
