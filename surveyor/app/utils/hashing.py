"""
Hashing utilities.

Provides the query fingerprint used as the cache's query dimension, and
a stable seed helper for deterministic fixture generation.
"""

from __future__ import annotations

import hashlib
import re

_WHITESPACE = re.compile(r"\s+")


def normalize_query(query: str) -> str:
    """
    Canonical form of a query: lower-cased, trimmed, internal runs of
    whitespace collapsed to one space.
    """
    return _WHITESPACE.sub(" ", query.strip().lower())


def query_fingerprint(query: str) -> str:
    """
    SHA-256 hex digest of the normalized query.

    "Fraud" and " fraud " MUST produce the same fingerprint.
    """
    return hashlib.sha256(normalize_query(query).encode("utf-8")).hexdigest()


def stable_seed(*parts: str) -> int:
    """Process-independent integer seed derived from the given parts."""
    digest = hashlib.sha256("|".join(parts).encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")
