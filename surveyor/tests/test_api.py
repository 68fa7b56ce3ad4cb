import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from surveyor.app.coordinator.orchestrator import SurveyOrchestrator
from surveyor.app.main import app
from surveyor.app.schemas.outcome import FailureKind, FailureReason, JobOutcome
from surveyor.app.sessions.repository import InMemorySessionRepository
from surveyor.tests.helpers import FixedClock, RecordingSleep, build_pipeline, make_config


BODY = {
    "query": "statute of limitations for fraud",
    "jurisdictions": ["CA", "NY"],
    "data_source": "simulation",
}


class BlockingPipeline:
    def __init__(self) -> None:
        self.gate = asyncio.Event()

    async def run(self, job, *, emitter=None):
        await self.gate.wait()
        return JobOutcome.failed(FailureReason(kind=FailureKind.TIMEOUT))

    async def aclose(self) -> None:
        pass


def _orchestrator(pipeline=None, **config):
    return SurveyOrchestrator(
        config=make_config(**config),
        repository=InMemorySessionRepository(clock=FixedClock()),
        pipeline=pipeline or build_pipeline(),
        sleep=RecordingSleep(),
    )


@pytest.fixture
def client_for():
    def _client(orchestrator):
        app.state.orchestrator = orchestrator
        return TestClient(app)

    yield _client
    app.state.orchestrator = None


def _wait_until_settled(client, survey_id):
    for _ in range(200):
        body = client.get(f"/surveys/{survey_id}").json()
        if body["status"] != "running":
            return body
        time.sleep(0.01)
    raise AssertionError("survey did not settle")


def test_health(client_for):
    with client_for(_orchestrator()) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "surveyor"}


def test_submit_then_poll(client_for):
    with client_for(_orchestrator()) as client:
        response = client.post("/surveys", json=BODY)
        assert response.status_code == 202
        survey_id = response.json()["id"]

        body = _wait_until_settled(client, survey_id)
        listing = client.get("/surveys").json()

    assert survey_id == 101
    assert body["status"] == "completed"
    assert body["progress_count"] == 2
    assert body["percent_complete"] == 100
    assert set(body["results"]) == {"CA", "NY"}
    assert listing[0]["id"] == survey_id


def test_invalid_request_is_rejected(client_for):
    with client_for(_orchestrator()) as client:
        blank = client.post("/surveys", json={**BODY, "query": "   "})
        unknown = client.post("/surveys", json={**BODY, "jurisdictions": ["XX"]})

    assert blank.status_code == 422
    assert unknown.status_code == 422


def test_unknown_provider_header_is_rejected(client_for):
    with client_for(_orchestrator()) as client:
        response = client.post(
            "/surveys",
            json=BODY,
            headers={"X-Active-Provider": "claude"},
        )

    assert response.status_code == 400


def test_missing_survey_is_404(client_for):
    with client_for(_orchestrator()) as client:
        assert client.get("/surveys/999").status_code == 404
        assert client.post("/surveys/999/cancel").status_code == 404
        assert client.delete("/surveys/999").status_code == 404


def test_cancel_delete_and_admission_control(client_for):
    pipeline = BlockingPipeline()
    orchestrator = _orchestrator(pipeline=pipeline, MAX_CONCURRENT_SURVEYS=1)

    with client_for(orchestrator) as client:
        first = client.post("/surveys", json=BODY)
        rejected = client.post("/surveys", json=BODY)

        survey_id = first.json()["id"]
        cancelled = client.post(f"/surveys/{survey_id}/cancel")
        again = client.post(f"/surveys/{survey_id}/cancel")

        client.portal.call(pipeline.gate.set)
        deleted = client.delete(f"/surveys/{survey_id}")
        missing = client.get(f"/surveys/{survey_id}")

    assert first.status_code == 202
    assert rejected.status_code == 429
    assert cancelled.json()["status"] == "cancelled"
    assert again.json()["status"] == "cancelled"
    assert deleted.status_code == 204
    assert missing.status_code == 404


def test_stream_emits_sse_frames_until_terminal(client_for):
    with client_for(_orchestrator()) as client:
        response = client.post("/surveys/stream", json=BODY)

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")

    frames = [f for f in response.text.split("\n\n") if f]
    assert frames[0].startswith("event: survey_started\n")
    assert frames[-1].startswith("event: survey_completed\n")
    assert sum(f.startswith("event: job_settled\n") for f in frames) == 2
