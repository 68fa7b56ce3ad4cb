from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event Types (Finite and Versioned)
# ----------------------------------------------------------------------
class SurveyEventType(str, Enum):
    """
    Progression events emitted during a survey's lifecycle.

    NOTE:
    This enum is finite and versioned.
    New entries must preserve observational semantics.
    """

    # ------------------------------------------------------------------
    # Survey Lifecycle
    # ------------------------------------------------------------------
    SURVEY_STARTED = "survey_started"
    SURVEY_COMPLETED = "survey_completed"
    SURVEY_FAILED = "survey_failed"
    SURVEY_CANCELLED = "survey_cancelled"

    # ------------------------------------------------------------------
    # Per-jurisdiction Jobs
    # ------------------------------------------------------------------
    JOB_STAGE_CHANGED = "job_stage_changed"
    JOB_SETTLED = "job_settled"

    # ------------------------------------------------------------------
    # Cache (Observational, Non-Authoritative)
    # ------------------------------------------------------------------
    CACHE_WRITE_SKIPPED = "cache_write_skipped"
    CACHE_WRITE_FAILED = "cache_write_failed"


TERMINAL_EVENT_TYPES: FrozenSet[SurveyEventType] = frozenset(
    {
        SurveyEventType.SURVEY_COMPLETED,
        SurveyEventType.SURVEY_FAILED,
        SurveyEventType.SURVEY_CANCELLED,
    }
)


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class SurveyEvent(BaseModel):
    """
    An immutable observation of a transition within a survey.

    Events are:
    - strictly observational
    - transport-agnostic
    - not authoritative (session snapshots are)
    """

    event_id: UUID = Field(default_factory=uuid4)
    survey_id: int = Field(..., description="The owning session identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: SurveyEventType

    # Optional contextual metadata (jurisdiction, stage, progress, etc.)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def is_terminal(self) -> bool:
        return self.event_type in TERMINAL_EVENT_TYPES

    def to_sse_payload(self) -> str:
        """Render as one Server-Sent-Events frame."""
        data = json.dumps(
            self.model_dump(mode="json"),
            ensure_ascii=False,
            separators=(",", ":"),
        )
        return f"event: {self.event_type.value}\ndata: {data}\n\n"
