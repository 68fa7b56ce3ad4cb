"""
Cache Gateway.

Read-through lookup and fire-and-forget store in front of a CacheStore.

IMPORTANT:
- lookup() MUST NOT raise. Backend failure degrades to a miss.
- store() MUST NOT block or raise. Writes run as detached background
  tasks whose failures are logged (and optionally emitted), never
  propagated into the job outcome.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Set

from surveyor.app.audit.auditor import DEFAULT_OVERRIDE_THRESHOLD, audit
from surveyor.app.cache.stores import CacheRow, CacheStore
from surveyor.app.events import (
    NullEventEmitter,
    SurveyEvent,
    SurveyEventEmitter,
    SurveyEventType,
)
from surveyor.app.schemas.jurisdictions import Jurisdiction
from surveyor.app.schemas.statute import StatuteCandidate, StatuteRecord

logger = logging.getLogger(__name__)


class CacheGateway:
    def __init__(
        self,
        *,
        store: CacheStore,
        min_confidence: int = 80,
        override_threshold: int = DEFAULT_OVERRIDE_THRESHOLD,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._min_confidence = min_confidence
        self._override_threshold = override_threshold
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._pending: Set["asyncio.Task[None]"] = set()

    @property
    def pending_writes(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def lookup(
        self, jurisdiction: Jurisdiction, fingerprint: str
    ) -> Optional[StatuteRecord]:
        try:
            row = await self._store.get(jurisdiction, fingerprint)
        except Exception:
            logger.warning(
                "Cache lookup failed; treating as miss",
                exc_info=True,
                extra={"jurisdiction": str(jurisdiction), "fingerprint": fingerprint},
            )
            return None

        if row is None:
            return None

        # Cached rows carry no trust level: classify again on the way out
        return audit(
            StatuteCandidate(
                jurisdiction=row.jurisdiction,
                source_url=row.source_url,
                payload={
                    "citation": row.citation,
                    "text_snippet": row.text_snippet,
                    "effective_date": row.effective_date,
                    "confidence_score": row.confidence_score,
                },
            ),
            override_threshold=self._override_threshold,
        )

    # ------------------------------------------------------------------
    # Store (fire-and-forget)
    # ------------------------------------------------------------------

    def should_store(self, record: StatuteRecord) -> bool:
        return record.confidence_score > self._min_confidence

    def store(
        self,
        record: StatuteRecord,
        fingerprint: str,
        *,
        survey_id: Optional[int] = None,
        emitter: Optional[SurveyEventEmitter] = None,
    ) -> bool:
        """
        Schedule a background write.

        Returns False when the record is below the confidence threshold
        and nothing was scheduled.
        """
        if not self.should_store(record):
            logger.debug(
                "Skipping cache write for %s (confidence %d <= %d)",
                record.jurisdiction.value,
                record.confidence_score,
                self._min_confidence,
            )
            return False

        row = CacheRow(
            jurisdiction=record.jurisdiction,
            fingerprint=fingerprint,
            citation=record.citation,
            text_snippet=record.text_snippet,
            effective_date=record.effective_date,
            confidence_score=record.confidence_score,
            source_url=record.source_url,
            updated_at=self._clock(),
        )

        task = asyncio.create_task(
            self._write(row, survey_id=survey_id, emitter=emitter or NullEventEmitter())
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return True

    async def _write(
        self,
        row: CacheRow,
        *,
        survey_id: Optional[int],
        emitter: SurveyEventEmitter,
    ) -> None:
        try:
            await self._store.upsert(row)
        except Exception as exc:
            logger.warning(
                "Cache write failed for %s",
                row.jurisdiction.value,
                exc_info=True,
                extra={"fingerprint": row.fingerprint},
            )
            if survey_id is not None:
                await self._safe_emit(
                    emitter,
                    SurveyEvent(
                        survey_id=survey_id,
                        event_type=SurveyEventType.CACHE_WRITE_FAILED,
                        details={
                            "jurisdiction": row.jurisdiction.value,
                            "error": str(exc),
                        },
                    ),
                )

    async def _safe_emit(self, emitter: SurveyEventEmitter, event: SurveyEvent) -> None:
        try:
            await emitter.emit(event)
        except Exception:
            logger.warning("Event emission failed", exc_info=True)

    async def drain(self) -> None:
        """Await every write scheduled so far (tests, shutdown)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
        await self._store.close()
