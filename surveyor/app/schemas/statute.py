"""
Statute record schemas.

Two shapes exist for the same information:

- StatuteCandidate: the UNTRUSTED output of an extraction step. Its
  payload is deliberately loose; nothing about it has been validated.
- StatuteRecord: the classified, immutable result produced by the
  Auditor. Every record carries a trust level and a confidence score
  that are consistent with the Auditor's rules.

Only the Auditor may turn a candidate into a record.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from surveyor.app.schemas.jurisdictions import Jurisdiction


# Sentinel citation used when no statute could be identified
NONE_FOUND = "None found"

# Sentinel effective date used when the source does not state one
UNKNOWN_DATE = "unknown"


class TrustLevel(str, Enum):
    """
    Three-valued trust classification assigned by the Auditor.

    Ordering (lowest to highest): suspicious < unverified < verified.
    """

    SUSPICIOUS = "suspicious"
    UNVERIFIED = "unverified"
    VERIFIED = "verified"


# ---------------------------------------------------------------------------
# Untrusted candidate (extraction output)
# ---------------------------------------------------------------------------

class StatuteCandidate(BaseModel):
    """
    Candidate statute produced by an extractor, prior to auditing.

    The payload is kept as raw key/value data on purpose: structural
    validation is the Auditor's job, and a malformed payload must reach
    it intact so it can be classified instead of rejected.

    Expected payload keys: citation, text_snippet, effective_date,
    confidence_score.
    """

    jurisdiction: Jurisdiction
    source_url: str = Field(
        "",
        description="Canonical reference link for the candidate",
    )
    payload: Dict[str, Any] = Field(
        default_factory=dict,
        description="Raw extracted fields (unvalidated)",
    )
    trust_hint: Optional[TrustLevel] = Field(
        None,
        description=(
            "Preliminary classification supplied by the source, if any. "
            "Absent for LLM extractions."
        ),
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


# ---------------------------------------------------------------------------
# Classified record (Auditor output)
# ---------------------------------------------------------------------------

class StatuteRecord(BaseModel):
    """
    One classified statute result for a (jurisdiction, query) pair.
    """

    jurisdiction: Jurisdiction
    citation: str = Field(
        ...,
        description="Legal citation, or the NONE_FOUND sentinel",
    )
    text_snippet: str = Field(
        "",
        description="Excerpt of statutory text",
    )
    effective_date: str = Field(
        UNKNOWN_DATE,
        description="Effective date string, or 'unknown'",
    )
    confidence_score: int = Field(
        ...,
        ge=0,
        le=100,
    )
    trust_level: TrustLevel
    source_url: str = ""

    notes: List[str] = Field(
        default_factory=list,
        description="Deterministic audit notes (informational, non-gating)",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
