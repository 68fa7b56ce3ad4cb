"""
Survey session snapshot.

A SurveySession is an immutable snapshot. Every mutation performed by the
session repository produces a NEW snapshot (copy-on-write), so readers
never observe a partially applied write.

State machine:

    running -> completed | failed | cancelled

Terminal sessions MUST NOT change again, except for explicit deletion.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from surveyor.app.schemas.jurisdictions import Jurisdiction
from surveyor.app.schemas.outcome import JobOutcome


class SurveyStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not SurveyStatus.RUNNING


class SurveySession(BaseModel):
    """
    One orchestration run for a single submitted query.
    """

    id: int = Field(..., description="Monotonic identifier, unique per process")
    query: str
    fingerprint: str = Field(..., description="Normalized query hash")
    jurisdictions: Tuple[Jurisdiction, ...] = Field(
        ...,
        description="Jurisdictions dispatched for this session",
    )
    status: SurveyStatus = SurveyStatus.RUNNING
    started_at: datetime
    completed_at: Optional[datetime] = None

    # Partial results, populated as jobs settle
    results: Dict[Jurisdiction, JobOutcome] = Field(default_factory=dict)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    # ------------------------------------------------------------------
    # Derived views (read-only)
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def progress_count(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for outcome in self.results.values() if outcome.succeeded)

    @property
    def error_count(self) -> int:
        return self.progress_count - self.success_count

    @property
    def percent_complete(self) -> int:
        if not self.jurisdictions:
            return 100
        return round(100 * self.progress_count / len(self.jurisdictions))

    def summary(self) -> Dict[str, object]:
        """Compact listing row (no per-jurisdiction results)."""
        return {
            "id": self.id,
            "query": self.query,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "progress_count": self.progress_count,
            "total": len(self.jurisdictions),
            "success_count": self.success_count,
            "error_count": self.error_count,
        }
