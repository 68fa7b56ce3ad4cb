"""
Survey orchestrator and traffic controller.

IMPORTANT:
The orchestrator is a DUMB AUTHORITY.

It MUST NOT:
- inspect statute content
- classify results (the Auditor does)
- block the caller while a survey runs

Its sole responsibilities are:
- admission control (MAX_CONCURRENT_SURVEYS, reject rather than queue)
- chunked fan-out of jurisdiction jobs with an inter-chunk delay
- writing each settled JobOutcome into the owning session
- rolling the session up to completed / failed

Cancellation is cooperative: it flips the session status. In-flight jobs
finish, but their outcomes are discarded by the repository.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from surveyor.app.audit.auditor import Auditor
from surveyor.app.cache.gateway import CacheGateway
from surveyor.app.cache.stores import (
    CacheStore,
    InMemoryCacheStore,
    RedisCacheStore,
)
from surveyor.app.config import SurveyorConfig
from surveyor.app.coordinator.pipeline import JobContext, JobPipeline
from surveyor.app.events import (
    NullEventEmitter,
    SurveyEvent,
    SurveyEventEmitter,
    SurveyEventType,
)
from surveyor.app.extraction.adapter import ExtractorAdapter
from surveyor.app.extraction.providers import build_providers
from surveyor.app.fetch.fetcher import SourceFetcher
from surveyor.app.schemas.jurisdictions import ALL_JURISDICTIONS
from surveyor.app.schemas.requests import CredentialsBundle, SurveyRequest
from surveyor.app.schemas.session import SurveySession, SurveyStatus
from surveyor.app.sessions.repository import (
    InMemorySessionRepository,
    SessionRepository,
)
from surveyor.app.utils.hashing import query_fingerprint

logger = logging.getLogger(__name__)


class MaxConcurrentSurveysError(RuntimeError):
    """Raised when a submission would exceed MAX_CONCURRENT_SURVEYS."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(
            f"Maximum of {limit} concurrent surveys reached; try again later"
        )


class SessionNotFoundError(LookupError):
    def __init__(self, session_id: int) -> None:
        self.session_id = session_id
        super().__init__(f"Survey {session_id} not found")


_TERMINAL_EVENTS = {
    SurveyStatus.COMPLETED: SurveyEventType.SURVEY_COMPLETED,
    SurveyStatus.FAILED: SurveyEventType.SURVEY_FAILED,
    SurveyStatus.CANCELLED: SurveyEventType.SURVEY_CANCELLED,
}


class SurveyOrchestrator:
    """
    Drives surveys from submission to a terminal status.
    """

    def __init__(
        self,
        *,
        config: SurveyorConfig,
        repository: SessionRepository,
        pipeline: JobPipeline,
        default_credentials: Optional[CredentialsBundle] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Direct constructor.

        Intended for tests and explicit wiring.
        """
        self._config = config
        self._repository = repository
        self._pipeline = pipeline
        self._default_credentials = default_credentials or CredentialsBundle()
        self._sleep = sleep

        self._tasks: Dict[int, "asyncio.Task[None]"] = {}
        self._emitters: Dict[int, SurveyEventEmitter] = {}

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(cls, config: SurveyorConfig) -> "SurveyOrchestrator":
        """
        Construct a fully wired orchestrator from runtime configuration.
        """
        store: CacheStore
        if config.CACHE_BACKEND == "redis":
            store = RedisCacheStore(url=config.REDIS_URL, prefix=config.CACHE_PREFIX)
        else:
            store = InMemoryCacheStore()

        cache = CacheGateway(
            store=store,
            min_confidence=config.CACHE_MIN_CONFIDENCE,
            override_threshold=config.CONFIDENCE_OVERRIDE_THRESHOLD,
        )

        fetcher = SourceFetcher(
            max_attempts=config.FETCH_MAX_ATTEMPTS,
            timeout_seconds=config.FETCH_TIMEOUT_SECONDS,
            max_text_chars=config.FETCH_MAX_TEXT_CHARS,
            proxy_endpoint=config.PROXY_ENDPOINT,
        )

        extractor = ExtractorAdapter(
            providers=build_providers(
                order=config.PROVIDER_ORDER,
                openai_model=config.OPENAI_MODEL,
                gemini_model=config.GEMINI_MODEL,
                openrouter_model=config.OPENROUTER_MODEL,
                timeout_seconds=config.EXTRACTION_TIMEOUT_SECONDS,
            ),
            max_provider_attempts=config.EXTRACTION_MAX_PROVIDER_ATTEMPTS,
        )

        pipeline = JobPipeline(
            cache=cache,
            fetcher=fetcher,
            extractor=extractor,
            auditor=Auditor(override_threshold=config.CONFIDENCE_OVERRIDE_THRESHOLD),
        )

        return cls(
            config=config,
            repository=InMemorySessionRepository(max_history=config.MAX_SESSION_HISTORY),
            pipeline=pipeline,
            default_credentials=config.default_credentials(),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def submit(
        self,
        request: SurveyRequest,
        *,
        credentials: Optional[CredentialsBundle] = None,
        emitter: Optional[SurveyEventEmitter] = None,
    ) -> SurveySession:
        """
        Create a session and start its jobs in the background.

        Returns immediately with the new (running) session snapshot.
        Raises MaxConcurrentSurveysError instead of queueing.
        """
        limit = self._config.MAX_CONCURRENT_SURVEYS
        if self._repository.running_count() >= limit:
            logger.warning("Rejecting survey submission: %d running", limit)
            raise MaxConcurrentSurveysError(limit)

        jurisdictions = tuple(request.jurisdictions or ALL_JURISDICTIONS)
        fingerprint = query_fingerprint(request.query)

        session = self._repository.create(
            query=request.query,
            fingerprint=fingerprint,
            jurisdictions=jurisdictions,
        )

        merged = (credentials or CredentialsBundle()).merged_over(
            self._default_credentials
        )
        data_source = request.data_source or self._config.DATA_SOURCE
        emitter = emitter or NullEventEmitter()
        self._emitters[session.id] = emitter

        logger.info(
            "Survey %d started: %d jurisdiction(s), source=%s",
            session.id,
            len(jurisdictions),
            data_source.value,
            extra={"survey_id": session.id, "fingerprint": fingerprint},
        )

        contexts = [
            JobContext(
                survey_id=session.id,
                jurisdiction=code,
                query=request.query,
                fingerprint=fingerprint,
                data_source=data_source,
                credentials=merged,
            )
            for code in jurisdictions
        ]

        task = asyncio.create_task(self._run_survey(session.id, contexts))
        self._tasks[session.id] = task
        task.add_done_callback(lambda _t, sid=session.id: self._tasks.pop(sid, None))

        return session

    async def wait(self, session_id: int) -> SurveySession:
        """Await a survey's background run, then return its snapshot."""
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.shield(task)
        return self.get(session_id)

    def get(self, session_id: int) -> SurveySession:
        session = self._repository.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def list(self) -> List[SurveySession]:
        return self._repository.list()

    async def cancel(self, session_id: int) -> SurveySession:
        """
        Cancel a running survey. Idempotent on terminal sessions.

        In-flight jobs are NOT interrupted; their outcomes are discarded.
        """
        before = self._repository.get(session_id)
        if before is None:
            raise SessionNotFoundError(session_id)

        session = self._repository.cancel(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        if not before.is_terminal:
            logger.info(
                "Survey %d cancelled with %d/%d result(s)",
                session_id,
                session.progress_count,
                len(session.jurisdictions),
            )
            await self._emit_terminal(session)

        return session

    async def delete(self, session_id: int) -> None:
        """
        Remove a session.

        A running survey is cancelled first, so its stream receives the
        terminal event. In-flight outcomes then find no session and are
        discarded.
        """
        session = self._repository.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)

        if not session.is_terminal:
            await self.cancel(session_id)

        self._repository.delete(session_id)
        self._emitters.pop(session_id, None)
        logger.info("Survey %d deleted", session_id)

    async def shutdown(self) -> None:
        """Cancel running surveys and wait for their tasks to unwind."""
        for session in self._repository.list():
            if not session.is_terminal:
                await self.cancel(session.id)
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._pipeline.aclose()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _is_running(self, session_id: int) -> bool:
        session = self._repository.get(session_id)
        return session is not None and session.status is SurveyStatus.RUNNING

    async def _run_survey(self, session_id: int, contexts: List[JobContext]) -> None:
        emitter = self._emitters.get(session_id, NullEventEmitter())
        size = self._config.CHUNK_SIZE
        chunks = [contexts[i:i + size] for i in range(0, len(contexts), size)]

        await self._safe_emit(
            emitter,
            SurveyEvent(
                survey_id=session_id,
                event_type=SurveyEventType.SURVEY_STARTED,
                details={
                    "total": len(contexts),
                    "chunks": len(chunks),
                    "data_source": contexts[0].data_source.value if contexts else None,
                },
            ),
        )

        try:
            for index, chunk in enumerate(chunks):
                if not self._is_running(session_id):
                    break

                await asyncio.gather(
                    *(self._run_job(job, emitter) for job in chunk)
                )

                is_last = index == len(chunks) - 1
                if not is_last and self._is_running(session_id):
                    await self._sleep(self._config.INTER_CHUNK_DELAY_SECONDS)

        except Exception:
            logger.exception("Survey %d aborted unexpectedly", session_id)

        finally:
            final = self._repository.finish(session_id)
            if final is not None:
                logger.info(
                    "Survey %d %s: %d succeeded, %d failed",
                    session_id,
                    final.status.value,
                    final.success_count,
                    final.error_count,
                )
                await self._emit_terminal(final)
            self._emitters.pop(session_id, None)

    async def _run_job(self, job: JobContext, emitter: SurveyEventEmitter) -> None:
        outcome = await self._pipeline.run(job, emitter=emitter)

        session = self._repository.record_outcome(
            job.survey_id,
            job.jurisdiction,
            outcome,
        )
        if session is None:
            logger.debug(
                "Discarding %s outcome for survey %d (no longer running)",
                job.jurisdiction.value,
                job.survey_id,
            )
            return

        await self._safe_emit(
            emitter,
            SurveyEvent(
                survey_id=job.survey_id,
                event_type=SurveyEventType.JOB_STAGE_CHANGED,
                details={"jurisdiction": job.jurisdiction.value, "stage": "done"},
            ),
        )
        await self._safe_emit(
            emitter,
            SurveyEvent(
                survey_id=job.survey_id,
                event_type=SurveyEventType.JOB_SETTLED,
                details={
                    "jurisdiction": job.jurisdiction.value,
                    "outcome": outcome.model_dump(mode="json"),
                    "progress_count": session.progress_count,
                    "total": len(session.jurisdictions),
                },
            ),
        )

    # ------------------------------------------------------------------
    # Events (observational only)
    # ------------------------------------------------------------------

    async def _emit_terminal(self, session: SurveySession) -> None:
        emitter = self._emitters.get(session.id)
        if emitter is None:
            return
        await self._safe_emit(
            emitter,
            SurveyEvent(
                survey_id=session.id,
                event_type=_TERMINAL_EVENTS[session.status],
                details={"session": session.model_dump(mode="json")},
            ),
        )

    async def _safe_emit(self, emitter: SurveyEventEmitter, event: SurveyEvent) -> None:
        try:
            await emitter.emit(event)
        except Exception:
            logger.warning("Event emission failed", exc_info=True)
