import json

from sewa_app.importer.pipeline import DatabaseJobStore, ImportJob
from sewa_app.models import BadgeSequence, BadgeStatus, Sewadar, db


def write_csv(tmp_path, content):
    path = tmp_path / "sewadars.csv"
    path.write_text(content, encoding="utf-8")
    return path


def test_import_sewadars_waits_for_completion(runner, tmp_path):
    path = write_csv(
        tmp_path,
        "badge_number,name,father_husband_name,gender,badge_status\n"
        "HI1000GA0001,Ram,Shyam,MALE,PERMANENT\n"
        "HI1000GA0002,,Shyam,MALE,PERMANENT\n",
    )

    result = runner.invoke(args=["importer", "import-sewadars", "--file", str(path), "--actor-id", "cli", "--wait"])

    assert result.exit_code == 0, result.output
    submission_line, snapshot_text = result.output.split("\n", 1)
    submission = json.loads(submission_line)
    snapshot = json.loads(snapshot_text)
    assert submission["total"] == 2
    assert snapshot["job_id"] == submission["job_id"]
    assert snapshot["status"] == "completed"
    assert snapshot["created"] == 1
    assert snapshot["errors"][0]["row"] == 3
    assert db.session.query(Sewadar).filter_by(badge_number="HI1000GA0001").one().created_by == "cli"


def test_import_sewadars_reports_header_problems(runner, tmp_path):
    path = write_csv(tmp_path, "badge_number\nHI1000GA0001\n")

    result = runner.invoke(args=["importer", "import-sewadars", "--file", str(path)])

    assert result.exit_code != 0
    assert "Missing required columns" in result.output


def test_status_command(runner):
    DatabaseJobStore(db.session).create(ImportJob(id="job-1", total=4))

    found = runner.invoke(args=["importer", "status", "job-1"])
    missing = runner.invoke(args=["importer", "status", "nope"])

    assert found.exit_code == 0, found.output
    assert json.loads(found.output)["total"] == 4
    assert missing.exit_code != 0
    assert "Job not found" in missing.output


def test_purge_jobs_command(runner):
    store = DatabaseJobStore(db.session)
    store.create(ImportJob(id="old", total=1))
    store.create(ImportJob(id="new", total=1))
    store.expire("old", after_seconds=-1)

    result = runner.invoke(args=["importer", "purge-jobs"])

    assert result.exit_code == 0, result.output
    assert "Purged 1 expired import job(s)." in result.output


def test_next_badge_preview_and_reserve(runner, sewadar_factory):
    sewadar_factory("T1000GA0003", badge_status=BadgeStatus.TEMPORARY)

    preview = runner.invoke(args=["importer", "next-badge", "--center", "1000", "--gender", "male", "--temporary"])
    first = runner.invoke(
        args=["importer", "next-badge", "--center", "1000", "--gender", "MALE", "--temporary", "--reserve"]
    )
    second = runner.invoke(
        args=["importer", "next-badge", "--center", "1000", "--gender", "MALE", "--temporary", "--reserve"]
    )

    assert preview.output.strip() == "T1000GA0004"
    assert first.output.strip() == "T1000GA0004"
    assert second.output.strip() == "T1000GA0005"
    assert db.session.get(BadgeSequence, "T1000GA").last_value == 5


def test_next_badge_permanent_requires_area_code(runner):
    missing = runner.invoke(args=["importer", "next-badge", "--center", "1000", "--gender", "FEMALE"])
    permanent = runner.invoke(
        args=["importer", "next-badge", "--center", "1000", "--gender", "FEMALE", "--area-code", "hi"]
    )

    assert missing.exit_code != 0
    assert "area_code is required" in missing.output
    assert permanent.output.strip() == "HI1000LA0001"
