"""
Jurisdiction-specific citation shape check.

A citation is accepted when it:
- optionally starts with a title/volume number,
- names the jurisdiction (Bluebook abbreviation, full name or postal code),
- and carries a section/article/chapter designator followed by a number.

Profiles may add one extra pattern for forms without a designator
(e.g. "735 ILCS 5/13-205").

This is a format heuristic ONLY. It is incomplete by nature and MUST NOT
be treated as proof that a citation exists.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Tuple

from surveyor.app.schemas.jurisdictions import Jurisdiction, get_profile
from surveyor.app.schemas.statute import NONE_FOUND


_DESIGNATOR = r"(?:§{1,2}|art\.|article|ch\.|chapter|sec\.|section|title|tit\.)"


@lru_cache(maxsize=None)
def _patterns(code: Jurisdiction) -> Tuple["re.Pattern[str]", ...]:
    profile = get_profile(code)

    # Longest prefix first so "W. Va." wins over "W"
    prefixes = sorted(profile.citation_prefixes, key=len, reverse=True)
    alternation = "|".join(re.escape(p) for p in prefixes)

    patterns = [
        re.compile(
            rf"^\s*(?:\d+\s+)?(?:{alternation})(?:[\s,.]|$).*?{_DESIGNATOR}\s*\d",
            re.IGNORECASE,
        )
    ]
    if profile.citation_pattern:
        patterns.append(re.compile(profile.citation_pattern, re.IGNORECASE))

    return tuple(patterns)


def citation_matches(code: Jurisdiction, citation: str) -> bool:
    """True when `citation` has the expected shape for `code`."""
    if not citation or citation.strip().lower() == NONE_FOUND.lower():
        return False
    return any(p.search(citation) for p in _patterns(Jurisdiction(code)))
