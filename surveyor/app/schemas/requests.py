"""
Inbound request schemas: survey submission and per-request credentials.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
)

from surveyor.app.schemas.jurisdictions import Jurisdiction


class DataSource(str, Enum):
    """Where a job gets its raw material from."""

    SIMULATION = "simulation"
    LLM_SCRAPER = "llm_scraper"
    SCRAPING_PROXY = "scraping_proxy"
    OFFICIAL_API = "official_api"
    LLM_KNOWLEDGE = "llm_knowledge"

    @property
    def is_cacheable(self) -> bool:
        return self is not DataSource.SIMULATION


class ProviderName(str, Enum):
    """Structured-generation providers known to the extractor."""

    OPENAI = "openai"
    GEMINI = "gemini"
    OPENROUTER = "openrouter"


class CredentialsBundle(BaseModel):
    """
    Credentials supplied with one request.

    Keys are SecretStr so they never appear in logs or reprs.
    """

    openai_key: Optional[SecretStr] = None
    gemini_key: Optional[SecretStr] = None
    openrouter_key: Optional[SecretStr] = None
    openstates_key: Optional[SecretStr] = None
    legiscan_key: Optional[SecretStr] = None
    scraping_key: Optional[SecretStr] = None

    preferred_provider: Optional[ProviderName] = Field(
        None,
        description="Explicit provider preference; tried first when usable",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def secret(self, name: str) -> Optional[str]:
        """Return the plain value of a key, or None when absent or blank."""
        value: Optional[SecretStr] = getattr(self, name)
        if value is None:
            return None
        plain = value.get_secret_value().strip()
        return plain or None

    def merged_over(self, defaults: "CredentialsBundle") -> "CredentialsBundle":
        """
        Overlay these credentials on top of server-side defaults.

        Request values win; defaults fill the gaps.
        """
        update = {
            name: getattr(self, name)
            for name in type(self).model_fields
            if getattr(self, name) is not None
        }
        return defaults.model_copy(update=update)


class SurveyRequest(BaseModel):
    """
    Submit-query boundary.

    When `jurisdictions` is omitted all 50 are dispatched.
    """

    query: str = Field(..., min_length=1, max_length=500)
    jurisdictions: Optional[List[Jurisdiction]] = None
    data_source: Optional[DataSource] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("query must not be blank")
        return v

    @field_validator("jurisdictions")
    @classmethod
    def jurisdictions_unique(
        cls, v: Optional[List[Jurisdiction]]
    ) -> Optional[List[Jurisdiction]]:
        if v is None:
            return v
        if not v:
            raise ValueError("jurisdictions must not be empty when provided")
        # Preserve first occurrence order
        return list(dict.fromkeys(v))
