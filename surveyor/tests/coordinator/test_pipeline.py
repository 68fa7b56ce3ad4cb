import anyio
import httpx

from surveyor.app.audit.auditor import Auditor
from surveyor.app.cache.gateway import CacheGateway
from surveyor.app.cache.stores import InMemoryCacheStore
from surveyor.app.coordinator.pipeline import JobContext, JobPipeline
from surveyor.app.events import SurveyEventType
from surveyor.app.extraction.adapter import ExtractorAdapter
from surveyor.app.extraction.prompts import ExtractedStatute
from surveyor.app.fetch.fetcher import SourceFetcher
from surveyor.app.schemas.jurisdictions import Jurisdiction
from surveyor.app.schemas.outcome import FailureKind
from surveyor.app.schemas.requests import DataSource, ProviderName
from surveyor.app.schemas.statute import TrustLevel
from surveyor.app.utils.hashing import query_fingerprint
from surveyor.tests.helpers import (
    ListEmitter,
    MockExtractionExecutor,
    MockProvider,
    RecordingSleep,
    build_pipeline,
    credentials,
)


QUERY = "statute of limitations for fraud"


def _job(jurisdiction=Jurisdiction.CA, data_source=DataSource.SIMULATION, **keys):
    return JobContext(
        survey_id=101,
        jurisdiction=jurisdiction,
        query=QUERY,
        fingerprint=query_fingerprint(QUERY),
        data_source=data_source,
        credentials=credentials(**keys),
    )


def _no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"unexpected request to {request.url}")


class ExplodingProvider:
    name = ProviderName.OPENAI

    def try_acquire(self, credentials):
        raise RuntimeError("provider registry corrupted")


def test_simulation_is_deterministic_and_never_cached():
    store = InMemoryCacheStore()
    pipeline = build_pipeline(handler=_no_network, store=store)

    async def _run():
        first = await pipeline.run(_job())
        second = await pipeline.run(_job())
        await pipeline.aclose()
        return first, second

    first, second = anyio.run(_run)

    assert first == second
    assert first.succeeded
    assert len(store) == 0


def test_unexpected_exception_becomes_internal_failure():
    pipeline = build_pipeline(handler=_no_network, providers=[ExplodingProvider()])

    async def _run():
        return await pipeline.run(
            _job(data_source=DataSource.LLM_KNOWLEDGE, openai_key="k")
        )

    outcome = anyio.run(_run)

    assert outcome.failure.kind == FailureKind.INTERNAL
    assert outcome.failure.attempts == 0
    assert "RuntimeError" in outcome.failure.message
    assert len(outcome.failure.suggestions) == 3


def test_cache_hit_skips_extraction():
    executor = MockExtractionExecutor(
        outputs={
            "CA": ExtractedStatute(
                citation="Cal. Civ. Proc. Code § 338",
                text_snippet="three years",
                effective_date="2024-01-01",
                confidence_score=90,
            )
        }
    )
    cache = CacheGateway(store=InMemoryCacheStore())
    pipeline = JobPipeline(
        cache=cache,
        fetcher=SourceFetcher(
            client=httpx.AsyncClient(transport=httpx.MockTransport(_no_network)),
            sleep=RecordingSleep(),
        ),
        extractor=ExtractorAdapter(
            providers=[MockProvider(ProviderName.OPENAI, executor)]
        ),
        auditor=Auditor(),
    )
    emitter = ListEmitter()
    job = _job(data_source=DataSource.LLM_KNOWLEDGE, openai_key="k")

    async def _run():
        fresh = await pipeline.run(job)
        await cache.drain()
        cached = await pipeline.run(job, emitter=emitter)
        await pipeline.aclose()
        return fresh, cached

    fresh, cached = anyio.run(_run)

    assert not fresh.from_cache
    assert cached.from_cache
    assert cached.record.citation == fresh.record.citation
    assert cached.record.trust_level == TrustLevel.VERIFIED
    assert len(executor.calls) == 1

    stages = [
        e.details["stage"]
        for e in emitter.of_type(SurveyEventType.JOB_STAGE_CHANGED)
    ]
    assert stages == ["pending", "cache_hit"]


def test_low_confidence_result_reports_skipped_cache_write():
    executor = MockExtractionExecutor(
        outputs={
            "NY": ExtractedStatute(
                citation="N.Y. C.P.L.R. § 213",
                text_snippet="six years",
                effective_date="unknown",
                confidence_score=60,
            )
        }
    )
    pipeline = build_pipeline(
        handler=_no_network,
        providers=[MockProvider(ProviderName.OPENAI, executor)],
    )
    emitter = ListEmitter()

    async def _run():
        return await pipeline.run(
            _job(Jurisdiction.NY, DataSource.LLM_KNOWLEDGE, openai_key="k"),
            emitter=emitter,
        )

    outcome = anyio.run(_run)

    assert outcome.record.trust_level == TrustLevel.SUSPICIOUS
    assert len(emitter.of_type(SurveyEventType.CACHE_WRITE_SKIPPED)) == 1


def test_missing_credentials_fail_without_network():
    pipeline = build_pipeline(handler=_no_network)

    async def _run():
        return await pipeline.run(_job(data_source=DataSource.OFFICIAL_API))

    outcome = anyio.run(_run)

    assert outcome.failure.kind == FailureKind.NO_CREDENTIALS
    assert outcome.failure.attempts == 0
