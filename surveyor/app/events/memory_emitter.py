from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Optional

from surveyor.app.events.emitter import SurveyEventEmitter
from surveyor.app.events.models import SurveyEvent

logger = logging.getLogger(__name__)


class MemoryQueueEventEmitter(SurveyEventEmitter):
    """
    Per-survey event queue feeding the SSE endpoint.

    Properties:
    - single-consumer
    - never awaits on the job path (put_nowait)
    - closes itself after the first terminal survey event
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Optional[SurveyEvent]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, event: SurveyEvent) -> None:
        if self._closed:
            return

        try:
            self._queue.put_nowait(event)
        except Exception:
            # Observability must never break a survey
            logger.warning("Dropping survey event %s", event.event_type.value)
            return

        if event.is_terminal:
            await self.close()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def stream(self) -> AsyncIterator[SurveyEvent]:
        """
        Yield queued events until the emitter is closed.
        """
        while True:
            event = await self._queue.get()
            if event is None:
                break
            yield event
