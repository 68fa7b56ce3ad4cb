from __future__ import annotations

from typing import Protocol

from surveyor.app.events.models import SurveyEvent


class SurveyEventEmitter(Protocol):
    """
    Interface for broadcasting survey observations.

    Implementations must be:
    - non-blocking (or minimally blocking)
    - fail-safe (emission failures must not crash a job)
    - observational only
    """

    async def emit(self, event: SurveyEvent) -> None:
        ...


class NullEventEmitter:
    """
    A safe no-op emitter.

    Used when streaming is disabled and in tests that do not care
    about events.
    """

    async def emit(self, event: SurveyEvent) -> None:
        return
