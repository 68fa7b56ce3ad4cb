"""
Alternative query suggestions attached to failed jobs.

Deterministic: the same (query, jurisdiction) always yields the same
suggestions, in the same order.
"""

from __future__ import annotations

from typing import List

from surveyor.app.schemas.jurisdictions import Jurisdiction

MAX_SUGGESTIONS = 3

_GENERIC = (
    "Fraud statute of limitations",
    "Negligence time limit",
)


def suggest_queries(query: str, jurisdiction: Jurisdiction) -> List[str]:
    query = " ".join(query.split())
    keywords = [word for word in query.split(" ") if len(word) > 3]

    if keywords:
        suggestions = [
            f"{query} statute of limitations",
            f"{keywords[0]} civil penalty",
        ]
    else:
        suggestions = list(_GENERIC)

    suggestions.append(f"{Jurisdiction(jurisdiction).value} {query} laws")
    return suggestions[:MAX_SUGGESTIONS]
