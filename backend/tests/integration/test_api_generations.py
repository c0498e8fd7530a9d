"""
Integration Tests for the Generations API
"""

from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from swapvid.api.main import app
from swapvid.api.routes.generations import get_trigger
from swapvid.api.routes.provider_status import get_provider_client
from swapvid.core.provider_client import ProviderStatus, ProviderTransportError, StatusReport
from swapvid.models import get_db
from swapvid.workers.triggers import TriggerStrategy


class RecordingTrigger(TriggerStrategy):
    name = "recording"

    def __init__(self):
        self.started = []

    async def start(self, job_id: str) -> None:
        self.started.append(job_id)


class FailingTrigger(TriggerStrategy):
    async def start(self, job_id: str) -> None:
        raise ConnectionError("redis unavailable")


@pytest.fixture
def trigger():
    return RecordingTrigger()


@pytest.fixture
def client(test_db_session, trigger):
    def override_get_db():
        yield test_db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_trigger] = lambda: trigger
    yield TestClient(app)
    app.dependency_overrides.clear()


def _payload(**overrides):
    payload = {
        "video_url": "https://cdn.example.com/source.mp4",
        "character_image_url": "https://cdn.example.com/character.png",
        "user_id": "user-1",
        "user_email": "user@example.com",
        "character_name": "Nova",
        "send_email": True,
    }
    payload.update(overrides)
    return payload


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_create_generation_returns_202(client, trigger, job_store):
    """The request returns before any terminal state and hands the job to the trigger."""
    response = client.post("/v1/generations", json=_payload())

    assert response.status_code == 202
    data = response.json()
    assert data["status"] == "pending"
    assert trigger.started == [data["job_id"]]

    job = job_store.require(data["job_id"])
    assert job.user_email == "user@example.com"
    assert job.character_name == "Nova"
    assert job.aspect_ratio == "fill"


def test_email_only_stored_when_requested(client, job_store):
    response = client.post("/v1/generations", json=_payload(send_email=False))

    job = job_store.require(response.json()["job_id"])
    assert job.user_email is None


def test_missing_user_is_unauthorized(client, trigger):
    response = client.post("/v1/generations", json=_payload(user_id=None))

    assert response.status_code == 401
    assert response.json()["detail"]["error"]["code"] == "UNAUTHORIZED"
    assert trigger.started == []


def test_missing_sources_rejected(client, trigger):
    response = client.post("/v1/generations", json=_payload(character_image_url=""))

    assert response.status_code == 400
    assert response.json()["detail"]["error"]["message"] == "Video and character image are required"
    assert trigger.started == []


def test_whitespace_sources_rejected(client, trigger):
    response = client.post("/v1/generations", json=_payload(video_url="   "))

    assert response.status_code == 400
    assert response.json()["detail"]["error"]["message"] == "Video and character image are required"
    assert trigger.started == []


def test_whitespace_user_is_unauthorized(client, trigger):
    response = client.post("/v1/generations", json=_payload(user_id="  "))

    assert response.status_code == 401
    assert trigger.started == []


def test_invalid_aspect_ratio(client):
    response = client.post("/v1/generations", json=_payload(aspect_ratio="square"))

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_retrigger_reuses_job(client, trigger, job_store, pending_job):
    response = client.post("/v1/generations", json=_payload(job_id=pending_job.id))

    assert response.status_code == 202
    assert response.json()["job_id"] == pending_job.id
    assert trigger.started == [pending_job.id]
    assert len(job_store.list_jobs(user_id="user-1")) == 1


def test_retrigger_terminal_job_does_not_start(client, trigger, job_store, pending_job):
    job_store.mark_failed(pending_job.id, {"kind": "timeout"})

    response = client.post("/v1/generations", json=_payload(job_id=pending_job.id))

    assert response.status_code == 202
    assert response.json()["status"] == "failed"
    assert trigger.started == []


def test_retrigger_other_users_job(client, trigger, pending_job):
    response = client.post("/v1/generations", json=_payload(job_id=pending_job.id, user_id="someone-else"))

    assert response.status_code == 404
    assert trigger.started == []


def test_trigger_failure_returns_500(client, test_db_session):
    app.dependency_overrides[get_trigger] = lambda: FailingTrigger()

    response = client.post("/v1/generations", json=_payload())

    assert response.status_code == 500
    assert response.json()["detail"]["error"]["code"] == "TRIGGER_FAILED"


def test_get_generation(client, job_store, pending_job):
    job_store.claim_submission(pending_job.id, ttl_s=120)
    job_store.mark_submitted(pending_job.id, "R1")
    job_store.mark_complete(pending_job.id, "http://testserver/static/generations/out.mp4")

    response = client.get(f"/v1/generations/{pending_job.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "complete"
    assert data["run_ref"] == "R1"
    assert data["result_url"] == "http://testserver/static/generations/out.mp4"
    assert data["failure_reason"] is None
    assert data["completed_at"] is not None


def test_get_failed_generation_has_reason(client, job_store, pending_job):
    job_store.mark_failed(pending_job.id, {"kind": "validation_error", "message": "bad size"})

    data = client.get(f"/v1/generations/{pending_job.id}").json()

    assert data["status"] == "failed"
    assert data["failure_reason"]["message"] == "bad size"


def test_get_unknown_generation(client):
    response = client.get("/v1/generations/missing")

    assert response.status_code == 404


def test_list_generations(client, job_store, pending_job):
    job_store.create(
        user_id="user-2",
        input_video_url="https://cdn.example.com/other.mp4",
        character_image_url="https://cdn.example.com/character.png",
    )

    response = client.get("/v1/generations", params={"user_id": "user-1"})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["jobs"][0]["job_id"] == pending_job.id


def test_provider_status(client):
    provider = Mock()
    provider.poll_status = AsyncMock(
        return_value=StatusReport(run_ref="R1", status=ProviderStatus.QUEUED, raw_status="IN_QUEUE", queue_position=2)
    )

    async def override_provider():
        yield provider

    app.dependency_overrides[get_provider_client] = override_provider

    response = client.get("/v1/provider-status/R1")

    assert response.status_code == 200
    assert response.json() == {
        "run_ref": "R1",
        "status": "QUEUED",
        "raw_status": "IN_QUEUE",
        "queue_position": 2,
        "error": None,
    }


def test_provider_status_unavailable(client):
    provider = Mock()
    provider.poll_status = AsyncMock(side_effect=ProviderTransportError("Network error calling provider"))

    async def override_provider():
        yield provider

    app.dependency_overrides[get_provider_client] = override_provider

    response = client.get("/v1/provider-status/R1")

    assert response.status_code == 502
