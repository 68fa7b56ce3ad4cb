"""
Simulation data source.

Produces deterministic candidates without any network access. The
random stream is seeded by (jurisdiction, fingerprint), so the same
query always simulates the same survey.

Simulated results are NEVER cached.
"""

from __future__ import annotations

import random
from typing import Optional, Tuple

from surveyor.app.schemas.jurisdictions import Jurisdiction, get_profile
from surveyor.app.schemas.statute import (
    NONE_FOUND,
    UNKNOWN_DATE,
    StatuteCandidate,
    TrustLevel,
)
from surveyor.app.utils.hashing import stable_seed


# (upper bound of the roll, preliminary trust)
_TRUST_ROLLS: Tuple[Tuple[float, Optional[TrustLevel]], ...] = (
    (0.05, TrustLevel.SUSPICIOUS),
    (0.10, TrustLevel.UNVERIFIED),
    (1.00, TrustLevel.VERIFIED),
)

_NONE_FOUND_RATE = 0.04


class SimulatedSource:
    """Deterministic fixture generator."""

    def candidate(
        self,
        jurisdiction: Jurisdiction,
        *,
        query: str,
        fingerprint: str,
    ) -> StatuteCandidate:
        rng = random.Random(stable_seed(jurisdiction.value, fingerprint))
        profile = get_profile(jurisdiction)

        if rng.random() < _NONE_FOUND_RATE:
            return StatuteCandidate(
                jurisdiction=jurisdiction,
                source_url=profile.legislature_url,
                payload={
                    "citation": NONE_FOUND,
                    "text_snippet": f"[SIMULATED] No {profile.name} statute addresses this query.",
                    "effective_date": UNKNOWN_DATE,
                    "confidence_score": rng.randint(10, 40),
                },
            )

        section = f"{rng.randint(1, 99)}-{rng.randint(100, 999)}"
        prefix = profile.citation_prefixes[0]
        years = rng.choice([1, 2, 3, 4, 5, 6, 10])

        roll = rng.random()
        trust_hint = next(level for bound, level in _TRUST_ROLLS if roll < bound)

        return StatuteCandidate(
            jurisdiction=jurisdiction,
            source_url=profile.legislature_url,
            payload={
                "citation": f"{prefix} Code § {section}",
                "text_snippet": (
                    f"[SIMULATED] Under the {profile.terms[0]}, the limitation "
                    f"period for {query.strip()} is {years} years."
                ),
                "effective_date": f"{rng.randint(1995, 2024)}-01-01",
                "confidence_score": rng.randint(55, 99),
            },
            trust_hint=trust_hint,
        )
