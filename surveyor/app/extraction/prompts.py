"""
Extraction prompt assembly.

Layers (in order):
  1. System rules (static, loaded once from templates/extraction_system.txt)
  2. Jurisdiction and localised question
  3. Optional source text under analysis
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from surveyor.app.fetch.content import RawContent
from surveyor.app.schemas.jurisdictions import Jurisdiction, get_profile


PROMPTS_DIR = Path(__file__).parent / "templates"


class ExtractedStatute(BaseModel):
    """Structured output requested from the generation provider."""

    citation: str = Field(..., description='Legal citation, or "None found"')
    text_snippet: str = Field(..., description="Relevant statutory text")
    effective_date: str = Field(..., description='ISO date, or "unknown"')
    confidence_score: int = Field(..., description="Confidence from 0 to 100")

    model_config = ConfigDict(extra="forbid")


# ----------------------------------------------------------------------
# Query localisation
# ----------------------------------------------------------------------

# Civil-law terminology (Louisiana). Longest phrase first.
_THESAURUS: Dict[Jurisdiction, Tuple[Tuple[str, str], ...]] = {
    Jurisdiction.LA: (
        ("statute of limitations", "liberative prescription"),
        ("limitations", "prescription"),
        ("limitation", "prescription"),
    ),
}


def localise_query(query: str, jurisdiction: Jurisdiction) -> str:
    """Rewrite a query into the jurisdiction's own legal vocabulary."""
    localised = query.strip()
    for term, replacement in _THESAURUS.get(jurisdiction, ()):
        localised = re.sub(
            rf"\b{re.escape(term)}\b",
            replacement,
            localised,
            flags=re.IGNORECASE,
        )
    return localised


# ----------------------------------------------------------------------
# Messages
# ----------------------------------------------------------------------

@lru_cache(maxsize=1)
def system_rules() -> str:
    path = PROMPTS_DIR / "extraction_system.txt"
    if not path.exists():
        raise RuntimeError(f"Extraction system prompt not found: {path}")
    return path.read_text(encoding="utf-8")


def build_messages(raw: RawContent, *, query: str) -> List[Dict[str, str]]:
    profile = get_profile(raw.jurisdiction)
    localised = localise_query(query, raw.jurisdiction)

    task = (
        f"JURISDICTION: {profile.name} ({profile.code.value})\n"
        f"LOCAL CODES: {', '.join(profile.terms)}\n"
        f"QUESTION: {localised}"
    )

    messages = [
        {"role": "system", "content": system_rules()},
        {"role": "user", "content": task},
    ]

    if raw.kind == "document" and raw.text:
        messages.append(
            {
                "role": "user",
                "content": (
                    f"--- BEGIN SOURCE TEXT ({raw.source_url}) ---\n"
                    f"{raw.text}\n"
                    "--- END SOURCE TEXT ---"
                ),
            }
        )

    return messages
