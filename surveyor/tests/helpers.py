"""
Shared test doubles.

IMPORTANT:
- Deterministic
- CI-safe (no network, no real sleeps)
- Executors NEVER raise
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Type

import httpx
from pydantic import BaseModel, SecretStr

from surveyor.app.audit.auditor import Auditor
from surveyor.app.cache.gateway import CacheGateway
from surveyor.app.cache.stores import InMemoryCacheStore
from surveyor.app.config import SurveyorConfig
from surveyor.app.coordinator.pipeline import JobPipeline
from surveyor.app.events.models import SurveyEvent, SurveyEventType
from surveyor.app.extraction.adapter import ExtractorAdapter
from surveyor.app.extraction.executor import StructuredExtractionResult
from surveyor.app.fetch.fetcher import SourceFetcher
from surveyor.app.schemas.jurisdictions import Jurisdiction
from surveyor.app.schemas.requests import CredentialsBundle, ProviderName
from surveyor.app.schemas.statute import StatuteCandidate, TrustLevel


class FixedClock:
    """Clock advancing one second per call."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        current = self._now
        self._now = current + timedelta(seconds=1)
        return current


class ListEmitter:
    def __init__(self) -> None:
        self.events: List[SurveyEvent] = []

    async def emit(self, event: SurveyEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: SurveyEventType) -> List[SurveyEvent]:
        return [e for e in self.events if e.event_type == event_type]


class RecordingSleep:
    """Injected sleep that returns immediately and remembers delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_candidate(
    jurisdiction: Jurisdiction = Jurisdiction.CA,
    *,
    citation: Any = "Cal. Civ. Proc. Code § 338",
    confidence: Any = 90,
    trust_hint: Optional[TrustLevel] = None,
    source_url: str = "https://leginfo.legislature.ca.gov/",
    **extra: Any,
) -> StatuteCandidate:
    payload: Dict[str, Any] = {
        "citation": citation,
        "text_snippet": "An action for relief on the ground of fraud: three years.",
        "effective_date": "2024-01-01",
        "confidence_score": confidence,
    }
    payload.update(extra)
    return StatuteCandidate(
        jurisdiction=jurisdiction,
        source_url=source_url,
        payload=payload,
        trust_hint=trust_hint,
    )


def credentials(**keys: str) -> CredentialsBundle:
    preferred = keys.pop("preferred", None)
    return CredentialsBundle(
        **{name: SecretStr(value) for name, value in keys.items()},
        preferred_provider=ProviderName(preferred) if preferred else None,
    )


# ----------------------------------------------------------------------
# Extraction doubles
# ----------------------------------------------------------------------

class MockExtractionExecutor:
    """
    Structured executor double.

    `outputs` maps a jurisdiction code (looked up in the task message) to
    the parsed output; `failure_type` forces a failure for every call.
    """

    def __init__(
        self,
        *,
        provider: str = "mock",
        outputs: Optional[Dict[str, BaseModel]] = None,
        failure_type: Optional[str] = None,
    ) -> None:
        self.provider = provider
        self._outputs = outputs or {}
        self._failure_type = failure_type
        self.calls: List[List[Dict[str, str]]] = []
        self.closed = 0

    async def aclose(self) -> None:
        self.closed += 1

    async def execute(
        self,
        *,
        messages: List[Dict[str, str]],
        output_schema: Type[BaseModel],
        **_: object,
    ) -> StructuredExtractionResult:
        self.calls.append(messages)

        if self._failure_type is not None:
            return StructuredExtractionResult(
                success=False,
                failure_type=self._failure_type,
                raw_error=f"simulated {self._failure_type}",
                provider=self.provider,
                model="mock-model",
            )

        task = messages[1]["content"]
        for code, output in self._outputs.items():
            if f"({code})" in task:
                return StructuredExtractionResult(
                    success=True,
                    output=output,
                    provider=self.provider,
                    model="mock-model",
                )

        return StructuredExtractionResult(
            success=False,
            failure_type="schema_violation",
            raw_error="no fixture for jurisdiction",
            provider=self.provider,
            model="mock-model",
        )


class MockProvider:
    def __init__(
        self,
        name: ProviderName,
        executor: MockExtractionExecutor,
        *,
        key_field: Optional[str] = None,
    ) -> None:
        self.name = name
        self.executor = executor
        self._key_field = key_field or f"{name.value}_key"
        self.acquired = 0

    def try_acquire(self, credentials: CredentialsBundle):
        if credentials.secret(self._key_field) is None:
            return None
        self.acquired += 1
        return self.executor


# ----------------------------------------------------------------------
# Wiring
# ----------------------------------------------------------------------

def make_config(**overrides: Any) -> SurveyorConfig:
    values: Dict[str, Any] = {
        "CHUNK_SIZE": 5,
        "INTER_CHUNK_DELAY_SECONDS": 0.0,
    }
    values.update(overrides)
    return SurveyorConfig(_env_file=None, **values)


def _empty_page(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text="<html><body></body></html>")


def build_pipeline(
    *,
    handler=None,
    providers=None,
    store: Optional[InMemoryCacheStore] = None,
    sleep: Optional[RecordingSleep] = None,
) -> JobPipeline:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler or _empty_page)
    )
    return JobPipeline(
        cache=CacheGateway(store=store if store is not None else InMemoryCacheStore()),
        fetcher=SourceFetcher(client=client, sleep=sleep or RecordingSleep()),
        extractor=ExtractorAdapter(providers=providers or []),
        auditor=Auditor(),
    )
