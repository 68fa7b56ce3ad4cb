"""
Per-jurisdiction job outcome.

A JobOutcome is what a settled job writes into its survey session:
either a classified StatuteRecord or a FailureReason, never both.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from surveyor.app.schemas.statute import StatuteRecord


class FailureKind(str, Enum):
    """
    Terminal failure taxonomy for a single job.

    Fetch-side and extraction-side kinds are kept distinct so the
    presentation layer can explain why a jurisdiction errored.
    """

    # Source fetcher
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NOT_FOUND = "not_found"
    CLIENT_ERROR = "client_error"
    NETWORK = "network"
    TIMEOUT = "timeout"

    # Extractor adapter
    NO_CREDENTIALS = "no_credentials"
    PROVIDER_TIMEOUT = "provider_timeout"
    MALFORMED_RESPONSE = "malformed_response"
    PROVIDER_ERROR = "provider_error"
    PARSE_ERROR = "parse_error"

    # Anything the pipeline did not anticipate
    INTERNAL = "internal"


class FailureReason(BaseModel):
    """
    Terminal failure for one jurisdiction.
    """

    kind: FailureKind
    message: str = ""
    attempts: int = Field(
        1,
        ge=0,
        description="Number of attempts made by the failing component",
    )
    suggestions: List[str] = Field(
        default_factory=list,
        description="Alternative queries the user may try",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )


class JobOutcome(BaseModel):
    """
    Result of one jurisdiction's pipeline run.

    Exactly one of `record` / `failure` is populated.
    """

    record: Optional[StatuteRecord] = None
    failure: Optional[FailureReason] = None
    from_cache: bool = False

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @model_validator(mode="after")
    def exactly_one_populated(self) -> "JobOutcome":
        if (self.record is None) == (self.failure is None):
            raise ValueError(
                "JobOutcome requires exactly one of record or failure"
            )
        return self

    @property
    def succeeded(self) -> bool:
        return self.record is not None

    @classmethod
    def success(
        cls,
        record: StatuteRecord,
        *,
        from_cache: bool = False,
    ) -> "JobOutcome":
        return cls(record=record, from_cache=from_cache)

    @classmethod
    def failed(cls, failure: FailureReason) -> "JobOutcome":
        return cls(failure=failure)
