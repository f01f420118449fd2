from __future__ import annotations

import pytest


def make_row(index: int, **overrides) -> dict:
    row = {
        "badge_number": f"HI1000GA{index:04d}",
        "name": f"Sewadar {index}",
        "father_husband_name": f"Father {index}",
        "gender": "MALE",
        "badge_status": "PERMANENT",
        "center_id": "1000",
        "department": "Langar",
    }
    row.update(overrides)
    return row


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def submit_rows(client):
    """Post JSON rows to the submit endpoint and return the poll snapshot."""

    def _submit(rows, **payload):
        response = client.post("/importer/sewadars", json={"rows": rows, **payload})
        assert response.status_code == 202, response.get_json()
        job_id = response.get_json()["job_id"]
        poll = client.get(f"/importer/sewadars/jobs/{job_id}")
        assert poll.status_code == 200
        return poll.get_json()

    return _submit
