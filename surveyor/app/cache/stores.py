"""
Cache backing stores.

The core only needs point lookup and best-effort upsert keyed by
(jurisdiction, fingerprint). Two implementations are provided:

- InMemoryCacheStore: process-local dictionary (default)
- RedisCacheStore: redis.asyncio, one JSON document per key

Stores MAY raise on backend failure. Degrading to "miss" / "write
silently fails" is the gateway's job, not the store's.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Dict, Optional, Protocol, Tuple

from pydantic import BaseModel, ConfigDict, Field
from redis.asyncio import Redis

from surveyor.app.schemas.jurisdictions import Jurisdiction

logger = logging.getLogger(__name__)


class CacheRow(BaseModel):
    """
    Persisted cache row, uniquely keyed by (jurisdiction, fingerprint).

    Trust level is NOT persisted; it is re-derived by the Auditor on read.
    """

    jurisdiction: Jurisdiction
    fingerprint: str = Field(..., min_length=1)
    citation: str
    text_snippet: str
    effective_date: str
    confidence_score: int = Field(..., ge=0, le=100)
    source_url: str = ""
    updated_at: datetime

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @property
    def key(self) -> Tuple[Jurisdiction, str]:
        return (self.jurisdiction, self.fingerprint)


class CacheStore(Protocol):
    async def get(
        self, jurisdiction: Jurisdiction, fingerprint: str
    ) -> Optional[CacheRow]:
        ...

    async def upsert(self, row: CacheRow) -> None:
        ...

    async def close(self) -> None:
        ...


# ----------------------------------------------------------------------
# In-memory
# ----------------------------------------------------------------------

class InMemoryCacheStore:
    """Dictionary-backed store. Last write wins per key."""

    def __init__(self) -> None:
        self._rows: Dict[Tuple[Jurisdiction, str], CacheRow] = {}

    def __len__(self) -> int:
        return len(self._rows)

    async def get(
        self, jurisdiction: Jurisdiction, fingerprint: str
    ) -> Optional[CacheRow]:
        return self._rows.get((Jurisdiction(jurisdiction), fingerprint))

    async def upsert(self, row: CacheRow) -> None:
        self._rows[row.key] = row

    async def close(self) -> None:
        return


# ----------------------------------------------------------------------
# Redis
# ----------------------------------------------------------------------

class RedisCacheStore:
    """
    Redis-backed store.

    Keys: <prefix>:statute:<jurisdiction>:<fingerprint>
    Values: CacheRow JSON. No expiry is set; staleness is a deployment
    concern.
    """

    def __init__(self, *, url: str, prefix: str) -> None:
        self._url = url
        self._prefix = prefix
        self._client: Optional[Redis] = None
        self._lock = asyncio.Lock()  # protects lazy init only

    @classmethod
    def from_client(cls, client: Redis, *, prefix: str) -> "RedisCacheStore":
        store = cls(url="", prefix=prefix)
        store._client = client
        return store

    def key(self, jurisdiction: Jurisdiction, fingerprint: str) -> str:
        return ":".join(
            [self._prefix, "statute", Jurisdiction(jurisdiction).value, fingerprint]
        )

    async def _get_client(self) -> Redis:
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    self._client = Redis.from_url(
                        self._url, encoding="utf-8", decode_responses=True
                    )
        return self._client

    async def get(
        self, jurisdiction: Jurisdiction, fingerprint: str
    ) -> Optional[CacheRow]:
        r = await self._get_client()
        val = await r.get(self.key(jurisdiction, fingerprint))
        return CacheRow.model_validate_json(val) if val else None

    async def upsert(self, row: CacheRow) -> None:
        r = await self._get_client()
        await r.set(self.key(row.jurisdiction, row.fingerprint), row.model_dump_json())

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
