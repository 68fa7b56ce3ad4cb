"""
Per-jurisdiction job pipeline.

    pending -> cache_hit                                   (cacheable mode)
    pending -> fetching -> extracting -> auditing          (fetching sources)
    pending -> auditing                                    (simulation)

IMPORTANT:
run() MUST NOT raise. Every failure becomes a FailureReason JobOutcome,
so one job can never abort its siblings or its session.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, ConfigDict

from surveyor.app.audit.auditor import Auditor
from surveyor.app.cache.gateway import CacheGateway
from surveyor.app.coordinator.suggestions import suggest_queries
from surveyor.app.events import (
    NullEventEmitter,
    SurveyEvent,
    SurveyEventEmitter,
    SurveyEventType,
)
from surveyor.app.extraction.adapter import ExtractionError, ExtractorAdapter
from surveyor.app.fetch.content import FetchError
from surveyor.app.fetch.fetcher import SourceFetcher
from surveyor.app.fetch.simulation import SimulatedSource
from surveyor.app.schemas.jurisdictions import Jurisdiction
from surveyor.app.schemas.outcome import FailureKind, FailureReason, JobOutcome
from surveyor.app.schemas.requests import CredentialsBundle, DataSource
from surveyor.app.schemas.statute import StatuteCandidate

logger = logging.getLogger(__name__)


class JobContext(BaseModel):
    """Everything one job needs; immutable for the job's lifetime."""

    survey_id: int
    jurisdiction: Jurisdiction
    query: str
    fingerprint: str
    data_source: DataSource
    credentials: CredentialsBundle

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class JobPipeline:
    def __init__(
        self,
        *,
        cache: CacheGateway,
        fetcher: SourceFetcher,
        extractor: ExtractorAdapter,
        auditor: Auditor,
        simulation: Optional[SimulatedSource] = None,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._extractor = extractor
        self._auditor = auditor
        self._simulation = simulation or SimulatedSource()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        job: JobContext,
        *,
        emitter: Optional[SurveyEventEmitter] = None,
    ) -> JobOutcome:
        emitter = emitter or NullEventEmitter()
        code = job.jurisdiction.value

        try:
            return await self._run(job, emitter)

        except FetchError as exc:
            logger.warning("Job %s/%s fetch failed: %s", job.survey_id, code, exc)
            return self._failed(job, exc.kind, exc.message, exc.attempts)

        except ExtractionError as exc:
            logger.warning("Job %s/%s extraction failed: %s", job.survey_id, code, exc)
            return self._failed(job, exc.kind, exc.message, exc.attempts)

        except Exception as exc:
            logger.exception(
                "Job %s/%s failed unexpectedly",
                job.survey_id,
                code,
                extra={"survey_id": job.survey_id, "jurisdiction": code},
            )
            return self._failed(
                job,
                FailureKind.INTERNAL,
                f"{type(exc).__name__}: {exc}",
                0,
            )

    async def aclose(self) -> None:
        await self._cache.aclose()
        await self._fetcher.aclose()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _run(self, job: JobContext, emitter: SurveyEventEmitter) -> JobOutcome:
        await self._stage(job, emitter, "pending")

        cacheable = job.data_source.is_cacheable

        if cacheable:
            cached = await self._cache.lookup(job.jurisdiction, job.fingerprint)
            if cached is not None:
                await self._stage(job, emitter, "cache_hit")
                return JobOutcome.success(cached, from_cache=True)

        candidate = await self._candidate(job, emitter)

        await self._stage(job, emitter, "auditing")
        record = self._auditor.audit(candidate)

        if cacheable:
            scheduled = self._cache.store(
                record,
                job.fingerprint,
                survey_id=job.survey_id,
                emitter=emitter,
            )
            if not scheduled:
                await self._emit(
                    emitter,
                    job,
                    SurveyEventType.CACHE_WRITE_SKIPPED,
                    {"confidence_score": record.confidence_score},
                )

        return JobOutcome.success(record)

    async def _candidate(
        self, job: JobContext, emitter: SurveyEventEmitter
    ) -> StatuteCandidate:
        if job.data_source is DataSource.SIMULATION:
            return self._simulation.candidate(
                job.jurisdiction,
                query=job.query,
                fingerprint=job.fingerprint,
            )

        await self._stage(job, emitter, "fetching")
        raw = await self._fetcher.fetch(
            job.jurisdiction,
            query=job.query,
            data_source=job.data_source,
            credentials=job.credentials,
        )

        await self._stage(job, emitter, "extracting")
        return await self._extractor.extract(
            raw,
            query=job.query,
            credentials=job.credentials,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _failed(
        self,
        job: JobContext,
        kind: FailureKind,
        message: str,
        attempts: int,
    ) -> JobOutcome:
        return JobOutcome.failed(
            FailureReason(
                kind=kind,
                message=message,
                attempts=attempts,
                suggestions=suggest_queries(job.query, job.jurisdiction),
            )
        )

    async def _stage(
        self, job: JobContext, emitter: SurveyEventEmitter, stage: str
    ) -> None:
        logger.debug("Job %s/%s -> %s", job.survey_id, job.jurisdiction.value, stage)
        await self._emit(emitter, job, SurveyEventType.JOB_STAGE_CHANGED, {"stage": stage})

    async def _emit(
        self,
        emitter: SurveyEventEmitter,
        job: JobContext,
        event_type: SurveyEventType,
        details: dict,
    ) -> None:
        try:
            await emitter.emit(
                SurveyEvent(
                    survey_id=job.survey_id,
                    event_type=event_type,
                    details={"jurisdiction": job.jurisdiction.value, **details},
                )
            )
        except Exception:
            logger.warning("Event emission failed", exc_info=True)
