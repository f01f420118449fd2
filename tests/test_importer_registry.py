import pytest

from sewa_app.importer.pipeline import EmptyImportError, InMemoryJobStore, JobNotFound, JobRegistry
from sewa_app.models import ImportJobStatus


class RecordingDispatcher:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def __call__(self, *, job_id, rows, area_code, actor_id):
        self.calls.append({"job_id": job_id, "rows": rows, "area_code": area_code, "actor_id": actor_id})
        if self.error:
            raise self.error


def test_submit_creates_job_and_dispatches_once():
    store = InMemoryJobStore()
    dispatcher = RecordingDispatcher()
    registry = JobRegistry(store, dispatcher, id_factory=lambda: "job-1")

    submission = registry.submit([{"name": "A"}, {"name": "B"}], area_code="HI", actor_id="9")

    assert submission.to_dict() == {"job_id": "job-1", "total": 2, "message": "Import started for 2 sewadars"}
    assert len(dispatcher.calls) == 1
    assert dispatcher.calls[0]["rows"] == [{"name": "A"}, {"name": "B"}]
    assert dispatcher.calls[0]["area_code"] == "HI"

    snapshot = registry.poll("job-1")
    assert snapshot["status"] == "processing"
    assert snapshot["total"] == 2
    assert snapshot["processed"] == 0
    assert snapshot["progress"] == 0


def test_empty_submission_creates_no_job():
    store = InMemoryJobStore()
    dispatcher = RecordingDispatcher()
    registry = JobRegistry(store, dispatcher)

    with pytest.raises(EmptyImportError, match="No valid sewadar records found in the file"):
        registry.submit([])

    assert len(store) == 0
    assert dispatcher.calls == []


def test_dispatch_failure_marks_job_failed():
    store = InMemoryJobStore()
    registry = JobRegistry(store, RecordingDispatcher(error=ConnectionError("broker down")), id_factory=lambda: "job-2")

    with pytest.raises(ConnectionError):
        registry.submit([{"name": "A"}])

    job = store.get("job-2")
    assert job.status is ImportJobStatus.FAILED
    assert job.message == "Failed to schedule import: broker down"
    assert job.expires_at is not None


def test_poll_unknown_job():
    registry = JobRegistry(InMemoryJobStore(), RecordingDispatcher())

    with pytest.raises(JobNotFound):
        registry.poll("nope")


def test_job_ids_are_unique_by_default():
    registry = JobRegistry(InMemoryJobStore(), RecordingDispatcher())

    first = registry.submit([{"name": "A"}])
    second = registry.submit([{"name": "A"}])

    assert first.job_id != second.job_id
