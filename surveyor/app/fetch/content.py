"""
Raw source content and fetch failures.
"""

from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from surveyor.app.schemas.jurisdictions import Jurisdiction
from surveyor.app.schemas.outcome import FailureKind


RETRYABLE_FETCH_KINDS = frozenset(
    {
        FailureKind.RATE_LIMITED,
        FailureKind.SERVER_ERROR,
        FailureKind.NETWORK,
        FailureKind.TIMEOUT,
    }
)


class FetchError(Exception):
    """
    Fetch failure for one jurisdiction.

    Retryable kinds are retried up to the attempt budget; the last
    observed error is then surfaced as terminal.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None,
        attempts: int = 1,
    ) -> None:
        self.kind = kind
        self.message = message
        self.status_code = status_code
        self.retry_after = retry_after
        self.attempts = attempts
        super().__init__(f"{kind.value}: {message}")

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_FETCH_KINDS


class RawContent(BaseModel):
    """
    What a fetch produced for one jurisdiction.

    kind:
    - document: cleaned page text, to be read by an extractor
    - feed: structured items from an official API (no LLM needed)
    - none: nothing fetched (query-only extraction)
    """

    jurisdiction: Jurisdiction
    kind: Literal["document", "feed", "none"]
    source_url: str = ""

    text: str = ""
    feed_provider: Optional[Literal["openstates", "legiscan"]] = None
    items: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
