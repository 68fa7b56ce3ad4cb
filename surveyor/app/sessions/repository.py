"""
Survey session repository.

IMPORTANT:
The repository is the SINGLE point of mutable shared state.

- Every mutation replaces the stored snapshot with a new frozen
  SurveySession (copy-on-write). Readers never observe a torn write.
- Only running sessions accept outcomes. Terminal sessions are frozen.
- Methods are synchronous: under a single event loop each call runs to
  completion without yielding, so no lock is needed. A multi-process
  deployment MUST provide single-writer-per-session semantics instead.
"""

from __future__ import annotations

import itertools
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol, Sequence

from surveyor.app.schemas.jurisdictions import Jurisdiction
from surveyor.app.schemas.outcome import JobOutcome
from surveyor.app.schemas.session import SurveySession, SurveyStatus

logger = logging.getLogger(__name__)


FIRST_SESSION_ID = 101


class SessionRepository(Protocol):
    def create(
        self,
        *,
        query: str,
        fingerprint: str,
        jurisdictions: Sequence[Jurisdiction],
    ) -> SurveySession:
        ...

    def get(self, session_id: int) -> Optional[SurveySession]:
        ...

    def list(self) -> List[SurveySession]:
        ...

    def running_count(self) -> int:
        ...

    def record_outcome(
        self,
        session_id: int,
        jurisdiction: Jurisdiction,
        outcome: JobOutcome,
    ) -> Optional[SurveySession]:
        ...

    def finish(self, session_id: int) -> Optional[SurveySession]:
        ...

    def cancel(self, session_id: int) -> Optional[SurveySession]:
        ...

    def delete(self, session_id: int) -> bool:
        ...


class InMemorySessionRepository:
    """
    Process-local repository.

    Keeps at most `max_history` sessions; when full, the oldest terminal
    session is evicted. Running sessions are never evicted.
    """

    def __init__(
        self,
        *,
        max_history: int = 50,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._max_history = max_history
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._ids = itertools.count(FIRST_SESSION_ID)
        self._sessions: Dict[int, SurveySession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create(
        self,
        *,
        query: str,
        fingerprint: str,
        jurisdictions: Sequence[Jurisdiction],
    ) -> SurveySession:
        self._evict_if_full()

        session = SurveySession(
            id=next(self._ids),
            query=query,
            fingerprint=fingerprint,
            jurisdictions=tuple(jurisdictions),
            status=SurveyStatus.RUNNING,
            started_at=self._clock(),
        )
        self._sessions[session.id] = session
        return session

    def finish(self, session_id: int) -> Optional[SurveySession]:
        """
        Roll a running session up to completed / failed.

        Returns the new snapshot, or None when the session is missing or
        already terminal.
        """
        session = self._sessions.get(session_id)
        if session is None or session.is_terminal:
            return None

        status = (
            SurveyStatus.COMPLETED
            if session.success_count >= session.error_count
            else SurveyStatus.FAILED
        )
        return self._replace(session, status=status, completed_at=self._clock())

    def cancel(self, session_id: int) -> Optional[SurveySession]:
        """
        Cancel a running session. Idempotent: a terminal session is
        returned unchanged. None when the session does not exist.
        """
        session = self._sessions.get(session_id)
        if session is None or session.is_terminal:
            return session

        return self._replace(
            session,
            status=SurveyStatus.CANCELLED,
            completed_at=self._clock(),
        )

    def delete(self, session_id: int) -> bool:
        return self._sessions.pop(session_id, None) is not None

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    def record_outcome(
        self,
        session_id: int,
        jurisdiction: Jurisdiction,
        outcome: JobOutcome,
    ) -> Optional[SurveySession]:
        """
        Upsert one jurisdiction's outcome.

        Returns None (and writes nothing) unless the session exists and
        is running.
        """
        session = self._sessions.get(session_id)
        if session is None or session.is_terminal:
            return None

        results = dict(session.results)
        results[Jurisdiction(jurisdiction)] = outcome
        return self._replace(session, results=results)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, session_id: int) -> Optional[SurveySession]:
        return self._sessions.get(session_id)

    def list(self) -> List[SurveySession]:
        """Newest first."""
        return sorted(self._sessions.values(), key=lambda s: s.id, reverse=True)

    def running_count(self) -> int:
        return sum(1 for s in self._sessions.values() if not s.is_terminal)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _replace(self, session: SurveySession, **update: object) -> SurveySession:
        snapshot = session.model_copy(update=update)
        self._sessions[session.id] = snapshot
        return snapshot

    def _evict_if_full(self) -> None:
        while len(self._sessions) >= self._max_history:
            terminal = [s for s in self._sessions.values() if s.is_terminal]
            if not terminal:
                return
            oldest = min(terminal, key=lambda s: s.id)
            del self._sessions[oldest.id]
            logger.info("Evicted survey %d from history", oldest.id)
