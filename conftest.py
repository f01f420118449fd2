# conftest.py

import os

import pytest

# Set testing environment BEFORE importing app so app.py uses TestingConfig
os.environ["FLASK_ENV"] = "testing"

from app import create_app  # noqa: E402
from sewa_app.models import BadgeStatus, Center, Gender, Sewadar, db  # noqa: E402

EAGER_CELERY = {"task_always_eager": True, "task_eager_propagates": True}


@pytest.fixture(scope="function")
def app(tmp_path):
    """Create a test application backed by a throwaway SQLite file"""
    flask_app = create_app(
        "testing",
        SQLALCHEMY_DATABASE_URI=f"sqlite:///{(tmp_path / 'test.db').as_posix()}",
        CELERY_SQLITE_PATH=str(tmp_path / "celery.sqlite"),
        CELERY_CONFIG=dict(EAGER_CELERY),
        IMPORTER_ENABLED=True,
        IMPORTER_ADAPTERS=("xlsx", "csv"),
        IMPORTER_WORKER_ENABLED=False,
        IMPORTER_BATCH_DELAY_SECONDS=0.0,
        IMPORTER_PROGRESS_POLL_INTERVAL_SECONDS=0.0,
    )

    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture(autouse=True)
def app_context(app):
    """Automatically provide app context for all tests"""
    with app.app_context():
        yield


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def center_factory():
    def _factory(code="1000", *, name=None, area="Hisar", area_code="HI") -> Center:
        center = Center(code=code, name=name or f"Center {code}", area=area, area_code=area_code)
        db.session.add(center)
        db.session.commit()
        return center

    return _factory


@pytest.fixture
def sewadar_factory():
    def _factory(
        badge_number,
        *,
        name="Ram Kumar",
        father_husband_name="Shyam Lal",
        center_id="1000",
        gender=Gender.MALE,
        badge_status=BadgeStatus.PERMANENT,
        **fields,
    ) -> Sewadar:
        sewadar = Sewadar(
            badge_number=badge_number,
            name=name,
            father_husband_name=father_husband_name,
            center_id=center_id,
            gender=gender,
            badge_status=badge_status,
            **fields,
        )
        db.session.add(sewadar)
        db.session.commit()
        return sewadar

    return _factory
