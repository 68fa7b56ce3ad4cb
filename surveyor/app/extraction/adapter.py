"""
Extractor Adapter.

Turns raw content (or a query alone) into an UNTRUSTED StatuteCandidate.

Provider policy:
- the preferred provider (if any) is tried first, then the configured
  order, skipping duplicates
- providers without credentials are skipped without counting
- at most `max_provider_attempts` providers are executed per job
- no provider acquired at all: terminal no_credentials (no retry)
- every acquired executor is closed once its call returns
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from surveyor.app.extraction.executor import StructuredExtractionResult
from surveyor.app.extraction.feeds import feed_candidate
from surveyor.app.extraction.prompts import ExtractedStatute, build_messages
from surveyor.app.extraction.providers import CapabilityProvider
from surveyor.app.fetch.content import RawContent
from surveyor.app.schemas.jurisdictions import get_profile
from surveyor.app.schemas.outcome import FailureKind
from surveyor.app.schemas.requests import CredentialsBundle
from surveyor.app.schemas.statute import StatuteCandidate

logger = logging.getLogger(__name__)


_FAILURE_KINDS = {
    "timeout": FailureKind.PROVIDER_TIMEOUT,
    "schema_violation": FailureKind.MALFORMED_RESPONSE,
    "refusal": FailureKind.MALFORMED_RESPONSE,
    "unexpected_error": FailureKind.PROVIDER_ERROR,
}


class ExtractionError(Exception):
    def __init__(
        self,
        kind: FailureKind,
        message: str,
        *,
        attempts: int = 0,
    ) -> None:
        self.kind = kind
        self.message = message
        self.attempts = attempts
        super().__init__(f"{kind.value}: {message}")


class ExtractorAdapter:
    def __init__(
        self,
        *,
        providers: Sequence[CapabilityProvider],
        max_provider_attempts: int = 2,
    ) -> None:
        self._providers = list(providers)
        self._max_provider_attempts = max_provider_attempts

    def provider_chain(self, credentials: CredentialsBundle) -> List[CapabilityProvider]:
        preferred = credentials.preferred_provider
        head = [p for p in self._providers if p.name == preferred]
        tail = [p for p in self._providers if p.name != preferred]
        return head + tail

    async def extract(
        self,
        raw: RawContent,
        *,
        query: str,
        credentials: CredentialsBundle,
    ) -> StatuteCandidate:
        if raw.kind == "feed":
            return feed_candidate(raw)

        messages = build_messages(raw, query=query)
        code = raw.jurisdiction.value

        attempts = 0
        last: Optional[StructuredExtractionResult] = None

        for provider in self.provider_chain(credentials):
            if attempts >= self._max_provider_attempts:
                break

            executor = provider.try_acquire(credentials)
            if executor is None:
                logger.debug("Provider %s has no credentials; skipping", provider.name.value)
                continue

            attempts += 1
            try:
                result = await executor.execute(
                    messages=messages,
                    output_schema=ExtractedStatute,
                )
            finally:
                await executor.aclose()

            if result.success and result.output is not None:
                return StatuteCandidate(
                    jurisdiction=raw.jurisdiction,
                    source_url=raw.source_url or get_profile(raw.jurisdiction).legislature_url,
                    payload=result.output.model_dump(),
                )

            last = result
            logger.warning(
                "Extraction for %s via %s failed (%s: %s)",
                code,
                result.provider,
                result.failure_type,
                result.raw_error,
            )

        if last is None:
            raise ExtractionError(
                FailureKind.NO_CREDENTIALS,
                "no structured-generation provider has credentials",
            )

        raise ExtractionError(
            _FAILURE_KINDS.get(last.failure_type or "", FailureKind.PROVIDER_ERROR),
            last.raw_error or "extraction failed",
            attempts=attempts,
        )
