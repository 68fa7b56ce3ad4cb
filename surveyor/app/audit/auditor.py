"""
Auditor: candidate -> classified StatuteRecord.

IMPORTANT:
The Auditor is a PURE FUNCTION.

It MUST NOT:
- perform I/O
- consult clocks, randomness or global mutable state
- raise (absence of information is classified, not thrown)

Rules, applied in order:
    1. Structural validation. An invalid candidate becomes
       trust=suspicious, confidence=0.
    2. Citation-format check. A mismatch caps trust at unverified.
    3. Confidence override. suspicious/unverified with
       confidence >= threshold is promoted to verified.
       Confidence NEVER demotes a verified classification.
    4. Default. No preliminary classification resolves to verified when
       confidence >= threshold, else suspicious.

Notes attached to the record are informational and never gate the
classification.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    ValidationError,
)

from surveyor.app.audit.citations import citation_matches
from surveyor.app.schemas.jurisdictions import get_profile
from surveyor.app.schemas.statute import (
    NONE_FOUND,
    UNKNOWN_DATE,
    StatuteCandidate,
    StatuteRecord,
    TrustLevel,
)


DEFAULT_OVERRIDE_THRESHOLD = 70


class CandidateFields(BaseModel):
    """
    Expected shape of a candidate payload.

    Strict on purpose: "85" is not a confidence score.
    """

    citation: StrictStr = Field(..., min_length=1)
    text_snippet: StrictStr
    effective_date: StrictStr
    confidence_score: StrictInt = Field(..., ge=0, le=100)

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
    )


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------

def _as_text(payload: Dict[str, Any], key: str, default: str) -> str:
    value = payload.get(key)
    return value if isinstance(value, str) and value else default


def _structure_note(exc: ValidationError) -> str:
    problems = sorted(
        {
            f"{'.'.join(str(p) for p in err['loc']) or 'payload'}: {err['type']}"
            for err in exc.errors()
        }
    )
    return "Structurally invalid candidate (" + "; ".join(problems) + ")"


def _is_official_source(url: str) -> bool:
    host = urlparse(url).hostname or ""
    return host.endswith(".gov")


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def audit(
    candidate: StatuteCandidate,
    *,
    override_threshold: int = DEFAULT_OVERRIDE_THRESHOLD,
) -> StatuteRecord:
    """
    Classify a candidate. Never raises; identical input yields an
    identical record.
    """
    notes: List[str] = []
    payload = candidate.payload

    # ------------------------------------------------------------------
    # 1. Structural validation
    # ------------------------------------------------------------------
    try:
        fields = CandidateFields.model_validate(payload)
    except ValidationError as exc:
        notes.append(_structure_note(exc))
        return StatuteRecord(
            jurisdiction=candidate.jurisdiction,
            citation=_as_text(payload, "citation", NONE_FOUND),
            text_snippet=_as_text(payload, "text_snippet", ""),
            effective_date=_as_text(payload, "effective_date", UNKNOWN_DATE),
            confidence_score=0,
            trust_level=TrustLevel.SUSPICIOUS,
            source_url=candidate.source_url,
            notes=notes,
        )

    confidence = fields.confidence_score
    trust: Optional[TrustLevel] = candidate.trust_hint

    # ------------------------------------------------------------------
    # 2. Citation-format check (caps, never raises the level)
    # ------------------------------------------------------------------
    if not citation_matches(candidate.jurisdiction, fields.citation):
        name = get_profile(candidate.jurisdiction).name
        notes.append(f"Citation does not match the expected {name} format")
        if trust is TrustLevel.VERIFIED:
            trust = TrustLevel.UNVERIFIED

    # ------------------------------------------------------------------
    # 3. Confidence override / 4. Default
    # ------------------------------------------------------------------
    if trust is None:
        trust = (
            TrustLevel.VERIFIED
            if confidence >= override_threshold
            else TrustLevel.SUSPICIOUS
        )
    elif trust is not TrustLevel.VERIFIED and confidence >= override_threshold:
        notes.append(
            f"Promoted from {trust.value} by confidence {confidence}"
        )
        trust = TrustLevel.VERIFIED

    if candidate.source_url and not _is_official_source(candidate.source_url):
        notes.append("Source is not an official .gov domain")

    return StatuteRecord(
        jurisdiction=candidate.jurisdiction,
        citation=fields.citation,
        text_snippet=fields.text_snippet,
        effective_date=fields.effective_date or UNKNOWN_DATE,
        confidence_score=confidence,
        trust_level=trust,
        source_url=candidate.source_url,
        notes=notes,
    )


class Auditor:
    """
    Configured wrapper around `audit`.

    Holds only the override threshold; carries no state between calls.
    """

    def __init__(self, *, override_threshold: int = DEFAULT_OVERRIDE_THRESHOLD) -> None:
        self._override_threshold = override_threshold

    @property
    def override_threshold(self) -> int:
        return self._override_threshold

    def audit(self, candidate: StatuteCandidate) -> StatuteRecord:
        return audit(candidate, override_threshold=self._override_threshold)
