from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from sewa_app.importer.pipeline import (
    BADGE_CONFLICT_MESSAGE,
    BatchProcessor,
    BulkWriteFailure,
    BulkWriteResult,
    ImportJob,
    ProgressSink,
    SewadarStore,
)
from sewa_app.models import BadgeStatus, Gender


def stored(id, badge, name="Ram", father="Shyam", center="1000", status=BadgeStatus.PERMANENT):
    return SimpleNamespace(
        id=id,
        badge_number=badge,
        name=name,
        father_husband_name=father,
        center_id=center,
        badge_status=status,
    )


class FakeSewadarStore(SewadarStore):
    def __init__(self, sewadars=(), centers=None, insert_failures=(), update_failures=()):
        self.sewadars = list(sewadars)
        self.centers = dict(centers or {})
        self.insert_failures = set(insert_failures)
        self.update_failures = set(update_failures)
        self.updates = []
        self.inserts = []
        self.commits = 0

    def find_by_badge_numbers(self, badge_numbers):
        wanted = set(badge_numbers)
        return [sewadar for sewadar in self.sewadars if sewadar.badge_number in wanted]

    def find_temporary_matches(self, keys):
        wanted = {(name.strip().lower(), father.strip().lower(), center_id) for name, father, center_id in keys}
        return [
            sewadar
            for sewadar in self.sewadars
            if sewadar.badge_status == BadgeStatus.TEMPORARY
            and (sewadar.name.strip().lower(), sewadar.father_husband_name.strip().lower(), sewadar.center_id)
            in wanted
        ]

    def find_centers(self, codes):
        return {code: self.centers[code] for code in codes if code in self.centers}

    def _result(self, items, failing):
        result = BulkWriteResult(attempted=len(items))
        for index, item in enumerate(items):
            if item.get("badge_number") in failing:
                result.failures.append(BulkWriteFailure(index=index, error="Duplicate key error: badge_number"))
            else:
                result.succeeded += 1
        return result

    def bulk_update(self, updates):
        self.updates.extend(updates)
        return self._result(updates, self.update_failures)

    def bulk_insert(self, rows):
        self.inserts.extend(rows)
        return self._result(rows, self.insert_failures)

    def commit(self):
        self.commits += 1

    def rollback(self):
        pass


class RecordingSink(ProgressSink):
    def __init__(self):
        self.published = []

    def publish(self, job):
        self.published.append((job.processed, job.created, job.updated, len(job.errors)))


def row(name="Ram", father="Shyam", badge="HI1000GA0001", **extra):
    values = {
        "name": name,
        "father_husband_name": father,
        "badge_number": badge,
        "gender": "MALE",
        "center_id": "1000",
        "badge_status": "PERMANENT",
    }
    values.update(extra)
    return values


def assert_counters_balance(job):
    assert job.processed <= job.total
    assert job.created + job.updated + job.error_count == job.processed


def test_chunk_classifies_rows_and_records_counts():
    store = FakeSewadarStore(
        sewadars=[
            stored(1, "HI1000GA0001"),
            stored(2, "T1000GA0001", name="Sita", father="Ram", status=BadgeStatus.TEMPORARY),
        ]
    )
    sink = RecordingSink()
    processor = BatchProcessor(store, actor_id="42", sink=sink)
    rows = [
        row(badge="HI1000GA0001", department="Langar"),
        row(name="sita ", father="RAM", badge="HI1000LA0002", gender="female"),
        row(name="New", father="Person", badge="HI1000GA0003"),
        row(name="", badge="HI1000GA0004"),
    ]
    job = ImportJob(id="job-1", total=len(rows))

    outcome = processor.process_batch(rows, 0, job)

    assert (outcome.processed, outcome.created, outcome.updated) == (4, 1, 2)
    assert [(error.row, error.error) for error in outcome.errors] == [(5, "Name is required")]
    assert outcome.errors[0].data["badge_number"] == "HI1000GA0004"

    updates = {update["id"]: update for update in store.updates}
    assert updates[1]["department"] == "Langar"
    assert updates[1]["updated_by"] == "42"
    assert "zone" not in updates[1]
    assert updates[2]["badge_number"] == "HI1000LA0002"
    assert updates[2]["gender"] is Gender.FEMALE
    assert updates[2]["badge_status"] is BadgeStatus.PERMANENT

    (insert,) = store.inserts
    assert insert["badge_number"] == "HI1000GA0003"
    assert insert["created_by"] == "42"
    assert "id" not in insert

    assert store.commits == 1
    assert job.progress == 100
    assert job.message == "Processed 4 of 4 rows"
    assert sink.published == [(4, 1, 2, 1)]
    assert_counters_balance(job)


def test_row_numbers_follow_batch_offset():
    processor = BatchProcessor(FakeSewadarStore())
    job = ImportJob(id="job-2", total=60)

    outcome = processor.process_batch([row(badge="bad")], 50, job)

    assert outcome.errors[0].row == 52


def test_conflicting_badge_is_not_written():
    store = FakeSewadarStore(
        sewadars=[
            stored(1, "T1000GA0001", name="A", father="B", status=BadgeStatus.TEMPORARY),
            stored(3, "HI1000GA0009", name="Other", father="Person"),
        ]
    )
    job = ImportJob(id="job-3", total=1)

    outcome = BatchProcessor(store).process_batch([row(name="A", father="b", badge="HI1000GA0009")], 0, job)

    assert [error.error for error in outcome.errors] == [BADGE_CONFLICT_MESSAGE]
    assert store.updates == []
    assert store.inserts == []
    assert_counters_balance(job)


def test_duplicate_rows_merge_into_one_insert():
    store = FakeSewadarStore()
    job = ImportJob(id="job-4", total=2)

    outcome = BatchProcessor(store).process_batch(
        [row(badge="HI1000GA0005"), row(badge="HI1000GA0005", contact_no="9876543210")],
        0,
        job,
    )

    assert (outcome.created, outcome.updated) == (1, 1)
    (insert,) = store.inserts
    assert insert["contact_no"] == "9876543210"
    assert_counters_balance(job)


def test_failed_bulk_insert_items_become_row_errors():
    store = FakeSewadarStore(insert_failures={"HI1000GA0002"})
    job = ImportJob(id="job-5", total=3)

    outcome = BatchProcessor(store).process_batch(
        [
            row(badge="HI1000GA0001"),
            row(name="Two", badge="HI1000GA0002"),
            row(name="Two", badge="HI1000GA0002"),
        ],
        0,
        job,
    )

    assert outcome.created == 1
    assert outcome.updated == 0
    assert [(error.row, error.error) for error in outcome.errors] == [
        (3, "Duplicate key error: badge_number"),
        (4, "Duplicate key error: badge_number"),
    ]
    assert_counters_balance(job)


def test_failed_bulk_update_items_become_row_errors():
    store = FakeSewadarStore(sewadars=[stored(1, "HI1000GA0001")], update_failures={"HI1000GA0001"})
    job = ImportJob(id="job-6", total=1)

    outcome = BatchProcessor(store).process_batch([row(badge="HI1000GA0001")], 0, job)

    assert outcome.updated == 0
    assert len(outcome.errors) == 1
    assert_counters_balance(job)


def test_area_scoping_checks_centers():
    centers = {
        "1000": SimpleNamespace(code="1000", name="Hisar Main", area="Hisar", area_code="HI"),
        "2000": SimpleNamespace(code="2000", name="Sirsa", area="Sirsa", area_code="SI"),
    }
    store = FakeSewadarStore(centers=centers)
    job = ImportJob(id="job-7", total=3)

    outcome = BatchProcessor(store, area_code="hi").process_batch(
        [
            row(badge="HI1000GA0001"),
            row(name="B", badge="HI2000GA0001", center_id="2000"),
            row(name="C", badge="HI3000GA0001", center_id="3000"),
        ],
        0,
        job,
    )

    assert [error.error for error in outcome.errors] == [
        "Center 2000 does not belong to your area",
        "Center with code 3000 not found",
    ]
    (insert,) = store.inserts
    assert insert["area_code"] == "HI"
    assert insert["area"] == "Hisar"
    assert insert["center"] == "Hisar Main"


def test_temporary_rows_without_badge_receive_allocated_badges():
    class FakeAllocator:
        def __init__(self):
            self.calls = []

        def allocate_temporary(self, center_id, gender):
            self.calls.append((center_id, gender))
            return f"T{center_id}GA{len(self.calls):04d}"

    allocator = FakeAllocator()
    store = FakeSewadarStore()
    processor = BatchProcessor(store, allocate_temporary_badges=True, badge_allocator=allocator)
    job = ImportJob(id="job-8", total=2)

    outcome = processor.process_batch(
        [row(badge=None, badge_status="new"), row(name="P", badge=None, badge_status="PERMANENT")],
        0,
        job,
    )

    assert outcome.created == 1
    assert store.inserts[0]["badge_number"] == "T1000GA0001"
    assert store.inserts[0]["badge_status"] is BadgeStatus.TEMPORARY
    assert allocator.calls == [("1000", "MALE")]
    assert [error.error for error in outcome.errors] == ["Badge number is required"]


def test_allocation_requires_an_allocator():
    with pytest.raises(ValueError):
        BatchProcessor(FakeSewadarStore(), allocate_temporary_badges=True)


def test_database_errors_escape_the_chunk():
    class BrokenStore(FakeSewadarStore):
        def find_by_badge_numbers(self, badge_numbers):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

    job = ImportJob(id="job-9", total=1)

    with pytest.raises(OperationalError):
        BatchProcessor(BrokenStore()).process_batch([row()], 0, job)
    assert job.processed == 0


def test_second_row_for_a_promoted_temporary_is_created():
    store = FakeSewadarStore(
        sewadars=[stored(1, "T1000GA0001", name="A", father="B", status=BadgeStatus.TEMPORARY)]
    )
    job = ImportJob(id="job-10", total=2)

    outcome = BatchProcessor(store).process_batch(
        [row(name="A", father="B", badge="HI1000GA0001"), row(name="A", father="B", badge="HI1000GA0002")],
        0,
        job,
    )

    assert (outcome.created, outcome.updated, outcome.errors) == (1, 1, [])
    (update,) = store.updates
    assert (update["id"], update["badge_number"]) == (1, "HI1000GA0001")
    (insert,) = store.inserts
    assert insert["badge_number"] == "HI1000GA0002"
    assert_counters_balance(job)


def test_area_code_falls_back_to_permanent_badge_prefix():
    store = FakeSewadarStore()
    job = ImportJob(id="job-11", total=2)

    BatchProcessor(store).process_batch(
        [row(badge="SI1000GA0001"), row(name="Temp", badge="T1000GA0001", badge_status="")],
        0,
        job,
    )

    first, second = store.inserts
    assert first["area_code"] == "SI"
    assert "area_code" not in second
