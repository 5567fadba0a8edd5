"""
Board API Tests

The HTTP layer only translates: rejected drops are 200 responses with
notices, programmer errors map to 404/422.
"""

import pytest
from fastapi.testclient import TestClient

from bayboard.main import create_app
from bayboard.settings import ShopSettings
from bayboard.workflow.models import Job, JobStatus


@pytest.fixture
def client(registry):
    app = create_app(settings=ShopSettings(), registry=registry)
    return TestClient(app)


@pytest.fixture
def scheduled_job(registry):
    job = Job(title="Clutch", status=JobStatus.SCHEDULED, bay_assignment="bay-1")
    registry.add_job(job)
    return job


class TestBoardRoutes:

    def test_health(self, client):
        response = client.get("/board/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_board_lists_lanes(self, client, scheduled_job):
        response = client.get("/board")

        assert response.status_code == 200
        lanes = response.json()["lanes"]
        assert [lane["status"] for lane in lanes] == [status.value for status in JobStatus]
        scheduled = next(lane for lane in lanes if lane["status"] == "scheduled")
        assert [job["id"] for job in scheduled["jobs"]] == [scheduled_job.id]

    def test_board_rejects_unknown_priority(self, client):
        assert client.get("/board", params={"priority": "urgent"}).status_code == 422

    def test_drop_commits(self, client, registry, scheduled_job):
        response = client.post(
            "/board/drops", json={"job_id": scheduled_job.id, "target_status": "in-bay"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "committed"
        assert body["displayed_status"] == "in-bay"
        assert registry.get_job(scheduled_job.id).status == JobStatus.IN_BAY

    def test_invalid_drop_is_ok_with_error_notice(self, client, scheduled_job):
        response = client.post(
            "/board/drops", json={"job_id": scheduled_job.id, "target_status": "intake"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["state"] == "rejected"
        assert body["notices"][0]["title"] == "Invalid Status Transition"

    def test_drop_unknown_job_404(self, client):
        response = client.post(
            "/board/drops", json={"job_id": "ghost", "target_status": "in-bay"}
        )

        assert response.status_code == 404

    def test_drop_unknown_status_422(self, client, scheduled_job):
        response = client.post(
            "/board/drops", json={"job_id": scheduled_job.id, "target_status": "In Bay"}
        )

        assert response.status_code == 422

    def test_drop_extra_fields_rejected(self, client, scheduled_job):
        response = client.post(
            "/board/drops",
            json={"job_id": scheduled_job.id, "target_status": "in-bay", "force": True},
        )

        assert response.status_code == 422

    def test_transitions(self, client):
        response = client.get("/board/transitions/in-bay")

        assert response.status_code == 200
        body = response.json()
        assert body["label"] == "In Bay"
        assert body["next_status"] == "waiting-parts"
        assert [t["status"] for t in body["transitions"]] == ["waiting-parts", "completed"]

    def test_transitions_from_completed_empty(self, client):
        body = client.get("/board/transitions/completed").json()

        assert body["transitions"] == []
        assert body["next_status"] is None

    def test_transitions_unknown_status_422(self, client):
        assert client.get("/board/transitions/archived").status_code == 422
