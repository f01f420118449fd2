import pytest
from sqlalchemy.exc import OperationalError

from sewa_app.importer.pipeline import BADGE_CONFLICT_MESSAGE, BatchProcessor, SqlAlchemySewadarStore
from sewa_app.models import BadgeStatus, Gender, Sewadar, db


def assert_counters_balance(snapshot):
    assert snapshot["processed"] <= snapshot["total"]
    assert snapshot["created"] + snapshot["updated"] + snapshot["error_count"] == snapshot["processed"]


def test_large_submission_runs_in_three_chunks(app, monkeypatch, submit_rows, row_factory):
    app.config["IMPORTER_BATCH_SIZE"] = 50
    chunk_starts = []
    original = BatchProcessor.process_batch

    def tracking(self, rows, batch_start_index, job):
        chunk_starts.append((batch_start_index, len(rows)))
        return original(self, rows, batch_start_index, job)

    monkeypatch.setattr(BatchProcessor, "process_batch", tracking)

    snapshot = submit_rows([row_factory(index) for index in range(1, 121)])

    assert chunk_starts == [(0, 50), (50, 50), (100, 20)]
    assert snapshot["status"] == "completed"
    assert snapshot["progress"] == 100
    assert snapshot["total"] == 120
    assert snapshot["created"] == 120
    assert snapshot["message"] == "Import completed. Created: 120, Updated: 0"
    assert_counters_balance(snapshot)
    assert db.session.query(Sewadar).count() == 120


def test_resubmission_updates_instead_of_creating(submit_rows, row_factory):
    rows = [row_factory(index) for index in range(1, 4)]

    first = submit_rows(rows)
    second = submit_rows([dict(row, department="Parking") for row in rows])

    assert (first["created"], first["updated"]) == (3, 0)
    assert (second["created"], second["updated"]) == (0, 3)
    db.session.expire_all()
    assert {sewadar.department for sewadar in db.session.query(Sewadar)} == {"Parking"}


def test_conflicting_badge_leaves_records_untouched(submit_rows, sewadar_factory, row_factory):
    temporary = sewadar_factory(
        "T1000GA0001", name="A", father_husband_name="B", badge_status=BadgeStatus.TEMPORARY
    )
    unrelated = sewadar_factory("HI1000GA0009", name="Other", father_husband_name="Person", department="Sound")

    snapshot = submit_rows([row_factory(9, name="A", father_husband_name="b", department="Langar")])

    assert snapshot["status"] == "completed"
    assert snapshot["error_count"] == 1
    assert snapshot["errors"][0]["row"] == 2
    assert snapshot["errors"][0]["error"] == BADGE_CONFLICT_MESSAGE
    assert snapshot["created"] == snapshot["updated"] == 0
    db.session.expire_all()
    assert db.session.get(Sewadar, unrelated.id).department == "Sound"
    assert db.session.get(Sewadar, unrelated.id).name == "Other"
    assert db.session.get(Sewadar, temporary.id).badge_number == "T1000GA0001"


def test_temporary_sewadar_is_promoted(submit_rows, sewadar_factory, row_factory):
    temporary = sewadar_factory(
        "T1000GA0001", name="Ram Kumar", father_husband_name="Shyam", badge_status=BadgeStatus.TEMPORARY
    )

    snapshot = submit_rows([row_factory(7, name="ram kumar ", father_husband_name="SHYAM")], actor_id=11)

    assert (snapshot["created"], snapshot["updated"]) == (0, 1)
    db.session.expire_all()
    promoted = db.session.get(Sewadar, temporary.id)
    assert promoted.badge_number == "HI1000GA0007"
    assert promoted.badge_status is BadgeStatus.PERMANENT
    assert promoted.updated_by == "11"


def test_row_errors_do_not_fail_the_job(submit_rows, row_factory):
    snapshot = submit_rows(
        [row_factory(1), row_factory(2, gender="X"), row_factory(3, badge_number="WRONG"), row_factory(4)]
    )

    assert snapshot["status"] == "completed"
    assert [error["row"] for error in snapshot["errors"]] == [3, 4]
    assert snapshot["errors"][0]["error"] == "Valid gender is required (MALE or FEMALE)"
    assert snapshot["created"] == 2
    assert_counters_balance(snapshot)


def test_area_scoped_import_checks_centers(submit_rows, center_factory, row_factory):
    center_factory("1000", name="Hisar Main", area="Hisar", area_code="HI")
    center_factory("2000", area="Sirsa", area_code="SI")

    snapshot = submit_rows(
        [row_factory(1), row_factory(2, center_id="2000"), row_factory(3, center_id="4000")],
        area_code="hi",
    )

    assert [error["error"] for error in snapshot["errors"]] == [
        "Center 2000 does not belong to your area",
        "Center with code 4000 not found",
    ]
    sewadar = db.session.query(Sewadar).filter_by(badge_number="HI1000GA0001").one()
    assert sewadar.center == "Hisar Main"
    assert sewadar.area_code == "HI"


def test_missing_temporary_badges_are_allocated_when_enabled(app, submit_rows, sewadar_factory, row_factory):
    app.config["IMPORTER_ALLOCATE_TEMPORARY_BADGES"] = True
    sewadar_factory("T1000GA0004", name="Existing", badge_status=BadgeStatus.TEMPORARY)

    snapshot = submit_rows([row_factory(1, badge_number=None, badge_status="new")])

    assert snapshot["created"] == 1
    created = db.session.query(Sewadar).filter_by(name="Sewadar 1").one()
    assert created.badge_number == "T1000GA0005"
    assert created.badge_status is BadgeStatus.TEMPORARY


def test_database_failure_marks_job_failed(monkeypatch, submit_rows, row_factory):
    def broken(self, badge_numbers):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(SqlAlchemySewadarStore, "find_by_badge_numbers", broken)

    snapshot = submit_rows([row_factory(1)])

    assert snapshot["status"] == "failed"
    assert "disk I/O error" in snapshot["message"]
    assert snapshot["processed"] == 0
    assert snapshot["finished_at"] is not None


@pytest.mark.parametrize("job_store", ["memory", "database"])
def test_both_job_stores_serve_polls(app, job_store, submit_rows, row_factory):
    app.config["IMPORTER_JOB_STORE"] = job_store
    app.extensions["importer"]["job_store"] = None

    snapshot = submit_rows([row_factory(1)])

    assert snapshot["status"] == "completed"
    assert snapshot["created"] == 1


def test_two_rows_for_one_temporary_promote_then_create(submit_rows, sewadar_factory, row_factory):
    temporary = sewadar_factory("T1000GA0001", name="A", father_husband_name="B", badge_status=BadgeStatus.TEMPORARY)

    snapshot = submit_rows(
        [row_factory(1, name="A", father_husband_name="B"), row_factory(2, name="A", father_husband_name="B")]
    )

    assert (snapshot["created"], snapshot["updated"], snapshot["errors"]) == (1, 1, [])
    db.session.expire_all()
    badges = sorted(sewadar.badge_number for sewadar in db.session.query(Sewadar))
    assert badges == ["HI1000GA0001", "HI1000GA0002"]
    assert db.session.get(Sewadar, temporary.id).badge_number == "HI1000GA0001"


def test_non_ascii_temporary_name_is_promoted(submit_rows, sewadar_factory, row_factory):
    temporary = sewadar_factory(
        "T1000LA0001", name="Éva", father_husband_name="Ödön", gender=Gender.FEMALE,
        badge_status=BadgeStatus.TEMPORARY,
    )

    snapshot = submit_rows(
        [row_factory(3, badge_number="HI1000LA0003", name="Éva", father_husband_name="Ödön", gender="FEMALE")]
    )

    assert (snapshot["created"], snapshot["updated"]) == (0, 1)
    db.session.expire_all()
    assert db.session.query(Sewadar).count() == 1
    assert db.session.get(Sewadar, temporary.id).badge_number == "HI1000LA0003"
