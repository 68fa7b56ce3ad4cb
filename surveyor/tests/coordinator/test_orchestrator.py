import asyncio

import anyio
import httpx
import pytest

from surveyor.app.cache.stores import InMemoryCacheStore
from surveyor.app.coordinator.orchestrator import (
    MaxConcurrentSurveysError,
    SessionNotFoundError,
    SurveyOrchestrator,
)
from surveyor.app.events import MemoryQueueEventEmitter, SurveyEventType
from surveyor.app.extraction.prompts import ExtractedStatute
from surveyor.app.schemas.jurisdictions import ALL_JURISDICTIONS, Jurisdiction
from surveyor.app.schemas.outcome import FailureKind, FailureReason, JobOutcome
from surveyor.app.schemas.requests import DataSource, ProviderName, SurveyRequest
from surveyor.app.schemas.session import SurveyStatus
from surveyor.app.schemas.statute import TrustLevel
from surveyor.app.sessions.repository import InMemorySessionRepository
from surveyor.tests.helpers import (
    FixedClock,
    ListEmitter,
    MockExtractionExecutor,
    MockProvider,
    RecordingSleep,
    build_pipeline,
    credentials,
    make_config,
)


QUERY = "statute of limitations for fraud"


def _orchestrator(pipeline=None, sleep=None, **config):
    return SurveyOrchestrator(
        config=make_config(**config),
        repository=InMemorySessionRepository(clock=FixedClock()),
        pipeline=pipeline or build_pipeline(),
        sleep=sleep or RecordingSleep(),
    )


def _request(jurisdictions=None, data_source=DataSource.SIMULATION):
    return SurveyRequest(
        query=QUERY,
        jurisdictions=jurisdictions,
        data_source=data_source,
    )


class GatedPipeline:
    """Pipeline whose jobs block until the gate opens."""

    def __init__(self) -> None:
        self.gate = asyncio.Event()
        self.started = 0

    async def run(self, job, *, emitter=None):
        self.started += 1
        await self.gate.wait()
        return JobOutcome.failed(FailureReason(kind=FailureKind.TIMEOUT))

    async def aclose(self) -> None:
        pass


class CancellingSleep(RecordingSleep):
    """Cancels the survey once `after` inter-chunk pauses have happened."""

    def __init__(self, after: int) -> None:
        super().__init__()
        self.after = after
        self.orchestrator = None
        self.survey_id = None

    async def __call__(self, seconds: float) -> None:
        await super().__call__(seconds)
        if len(self.delays) == self.after:
            await self.orchestrator.cancel(self.survey_id)


# ----------------------------------------------------------------------
# Fan-out
# ----------------------------------------------------------------------

def test_full_survey_covers_all_jurisdictions_in_chunks():
    sleep = RecordingSleep()
    orchestrator = _orchestrator(
        sleep=sleep,
        CHUNK_SIZE=5,
        INTER_CHUNK_DELAY_SECONDS=1.5,
    )
    emitter = ListEmitter()

    async def _run():
        session = await orchestrator.submit(_request(), emitter=emitter)
        return await orchestrator.wait(session.id)

    final = anyio.run(_run)

    assert final.status == SurveyStatus.COMPLETED
    assert final.progress_count == len(ALL_JURISDICTIONS) == 50
    assert set(final.results) == set(ALL_JURISDICTIONS)
    assert sleep.delays == [1.5] * 9

    settled = emitter.of_type(SurveyEventType.JOB_SETTLED)
    assert [e.details["progress_count"] for e in settled] == list(range(1, 51))
    assert emitter.events[0].event_type == SurveyEventType.SURVEY_STARTED
    assert emitter.events[-1].event_type == SurveyEventType.SURVEY_COMPLETED


def test_single_chunk_never_sleeps():
    sleep = RecordingSleep()
    orchestrator = _orchestrator(sleep=sleep, CHUNK_SIZE=5)

    async def _run():
        session = await orchestrator.submit(
            _request([Jurisdiction.CA, Jurisdiction.NY, Jurisdiction.TX])
        )
        return await orchestrator.wait(session.id)

    final = anyio.run(_run)

    assert final.progress_count == 3
    assert sleep.delays == []


def test_submit_returns_running_snapshot_immediately():
    pipeline = GatedPipeline()
    orchestrator = _orchestrator(pipeline=pipeline)

    async def _run():
        session = await orchestrator.submit(_request([Jurisdiction.CA]))
        pipeline.gate.set()
        await orchestrator.wait(session.id)
        return session

    session = anyio.run(_run)

    assert session.status == SurveyStatus.RUNNING
    assert session.results == {}


# ----------------------------------------------------------------------
# Admission control
# ----------------------------------------------------------------------

def test_sixth_concurrent_survey_is_rejected():
    pipeline = GatedPipeline()
    orchestrator = _orchestrator(pipeline=pipeline, MAX_CONCURRENT_SURVEYS=5)

    async def _run():
        sessions = [
            await orchestrator.submit(_request([Jurisdiction.CA]))
            for _ in range(5)
        ]
        with pytest.raises(MaxConcurrentSurveysError):
            await orchestrator.submit(_request([Jurisdiction.CA]))

        pipeline.gate.set()
        for session in sessions:
            await orchestrator.wait(session.id)

        # capacity frees up once surveys settle
        late = await orchestrator.submit(_request([Jurisdiction.CA]))
        return await orchestrator.wait(late.id)

    final = anyio.run(_run)

    assert final.status == SurveyStatus.FAILED
    assert len(orchestrator.list()) == 6


# ----------------------------------------------------------------------
# Cancellation
# ----------------------------------------------------------------------

def test_cancel_between_chunks_stops_dispatch():
    sleep = CancellingSleep(after=3)
    orchestrator = _orchestrator(sleep=sleep, CHUNK_SIZE=10)
    sleep.orchestrator = orchestrator
    emitter = ListEmitter()

    async def _run():
        session = await orchestrator.submit(_request(), emitter=emitter)
        sleep.survey_id = session.id
        return await orchestrator.wait(session.id)

    final = anyio.run(_run)

    assert final.status == SurveyStatus.CANCELLED
    assert final.progress_count == 30
    assert sleep.delays == [0.0, 0.0, 0.0]

    terminal = [e for e in emitter.events if e.is_terminal]
    assert [e.event_type for e in terminal] == [SurveyEventType.SURVEY_CANCELLED]


def test_in_flight_outcomes_after_cancel_are_discarded():
    pipeline = GatedPipeline()
    orchestrator = _orchestrator(pipeline=pipeline)

    async def _run():
        session = await orchestrator.submit(
            _request([Jurisdiction.CA, Jurisdiction.NY])
        )
        while pipeline.started < 2:
            await asyncio.sleep(0)

        cancelled = await orchestrator.cancel(session.id)
        again = await orchestrator.cancel(session.id)

        pipeline.gate.set()
        final = await orchestrator.wait(session.id)
        return cancelled, again, final

    cancelled, again, final = anyio.run(_run)

    assert cancelled.status == SurveyStatus.CANCELLED
    assert again == cancelled
    assert final.status == SurveyStatus.CANCELLED
    assert final.results == {}


def test_unknown_survey_raises():
    orchestrator = _orchestrator()

    async def _run():
        with pytest.raises(SessionNotFoundError):
            await orchestrator.cancel(999)
        with pytest.raises(SessionNotFoundError):
            await orchestrator.delete(999)

    anyio.run(_run)

    with pytest.raises(SessionNotFoundError):
        orchestrator.get(999)


def test_delete_removes_finished_survey():
    orchestrator = _orchestrator()

    async def _run():
        session = await orchestrator.submit(_request([Jurisdiction.CA]))
        await orchestrator.wait(session.id)
        await orchestrator.delete(session.id)
        return session.id

    session_id = anyio.run(_run)

    with pytest.raises(SessionNotFoundError):
        orchestrator.get(session_id)


def test_deleting_a_running_survey_ends_its_stream():
    pipeline = GatedPipeline()
    orchestrator = _orchestrator(pipeline=pipeline)
    emitter = MemoryQueueEventEmitter()

    async def _run():
        session = await orchestrator.submit(
            _request([Jurisdiction.CA]),
            emitter=emitter,
        )
        while pipeline.started < 1:
            await asyncio.sleep(0)

        await orchestrator.delete(session.id)
        pipeline.gate.set()

        with anyio.fail_after(1):
            received = [event.event_type async for event in emitter.stream()]
        await orchestrator.shutdown()
        return session.id, received

    session_id, received = anyio.run(_run)

    assert received == [
        SurveyEventType.SURVEY_STARTED,
        SurveyEventType.SURVEY_CANCELLED,
    ]
    assert orchestrator.list() == []
    with pytest.raises(SessionNotFoundError):
        orchestrator.get(session_id)


class VanishingRepository(InMemorySessionRepository):
    """Session disappears between the existence check and the cancel."""

    def cancel(self, session_id):
        self.delete(session_id)
        return None


def test_cancel_of_a_vanished_session_raises_not_found():
    repository = VanishingRepository(clock=FixedClock())
    orchestrator = SurveyOrchestrator(
        config=make_config(),
        repository=repository,
        pipeline=GatedPipeline(),
        sleep=RecordingSleep(),
    )

    async def _run():
        session = repository.create(
            query=QUERY,
            fingerprint="fp",
            jurisdictions=[Jurisdiction.CA],
        )
        with pytest.raises(SessionNotFoundError):
            await orchestrator.cancel(session.id)

    anyio.run(_run)


# ----------------------------------------------------------------------
# End to end
# ----------------------------------------------------------------------

def test_mixed_outcomes_across_three_states():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "capitol.texas.gov":
            raise httpx.ReadTimeout("upstream too slow", request=request)
        return httpx.Response(
            200,
            text="<html><body><p>Limitation of actions for fraud.</p></body></html>",
        )

    executor = MockExtractionExecutor(
        provider="openai",
        outputs={
            "CA": ExtractedStatute(
                citation="Cal. Civ. Proc. Code § 338(d)",
                text_snippet="An action for relief on the ground of fraud: three years.",
                effective_date="2024-01-01",
                confidence_score=90,
            ),
            "NY": ExtractedStatute(
                citation="N.Y. C.P.L.R. § 213(8)",
                text_snippet="An action based upon fraud: six years.",
                effective_date="unknown",
                confidence_score=60,
            ),
        },
    )
    store = InMemoryCacheStore()
    pipeline = build_pipeline(
        handler=handler,
        providers=[MockProvider(ProviderName.OPENAI, executor)],
        store=store,
    )
    orchestrator = _orchestrator(pipeline=pipeline)

    async def _run():
        session = await orchestrator.submit(
            _request(
                [Jurisdiction.CA, Jurisdiction.NY, Jurisdiction.TX],
                data_source=DataSource.LLM_SCRAPER,
            ),
            credentials=credentials(openai_key="sk-test"),
        )
        final = await orchestrator.wait(session.id)
        await orchestrator.shutdown()
        return final

    final = anyio.run(_run)

    ca = final.results[Jurisdiction.CA].record
    ny = final.results[Jurisdiction.NY].record
    tx = final.results[Jurisdiction.TX].failure

    assert ca.trust_level == TrustLevel.VERIFIED
    assert ny.trust_level == TrustLevel.SUSPICIOUS
    assert tx.kind == FailureKind.TIMEOUT
    assert tx.attempts == 3
    assert tx.suggestions

    assert final.status == SurveyStatus.COMPLETED
    assert final.success_count == 2
    assert final.error_count == 1

    # only the high-confidence result is cached
    assert len(store) == 1
    assert len(executor.calls) == 2
