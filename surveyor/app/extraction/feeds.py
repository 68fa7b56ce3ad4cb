"""
Deterministic mapping of official-API feed items to candidates.

No generation call is involved: feeds are already structured.
"""

from __future__ import annotations

from typing import Any, Dict

from surveyor.app.fetch.content import RawContent
from surveyor.app.schemas.statute import (
    NONE_FOUND,
    UNKNOWN_DATE,
    StatuteCandidate,
)


OPENSTATES_CONFIDENCE = 95
LEGISCAN_DEFAULT_CONFIDENCE = 90


def _openstates_payload(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "citation": item.get("identifier") or NONE_FOUND,
        "text_snippet": item.get("title") or "",
        "effective_date": item.get("updated_at") or UNKNOWN_DATE,
        "confidence_score": OPENSTATES_CONFIDENCE,
    }


def _legiscan_payload(item: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "citation": item.get("bill_number") or NONE_FOUND,
        "text_snippet": item.get("title") or "",
        "effective_date": item.get("last_action_date") or UNKNOWN_DATE,
        "confidence_score": item.get("relevance") or LEGISCAN_DEFAULT_CONFIDENCE,
    }


def feed_candidate(raw: RawContent) -> StatuteCandidate:
    if not raw.items:
        return StatuteCandidate(
            jurisdiction=raw.jurisdiction,
            source_url=raw.source_url,
            payload={
                "citation": NONE_FOUND,
                "text_snippet": f"No {raw.feed_provider} results for this query",
                "effective_date": UNKNOWN_DATE,
                "confidence_score": 0,
            },
        )

    item = raw.items[0]
    if raw.feed_provider == "openstates":
        payload = _openstates_payload(item)
        source_url = item.get("openstates_url") or raw.source_url
    else:
        payload = _legiscan_payload(item)
        source_url = item.get("url") or raw.source_url

    return StatuteCandidate(
        jurisdiction=raw.jurisdiction,
        source_url=source_url,
        payload=payload,
    )
