"""
Runtime configuration for the Surveyor service.

Pydantic v2 settings management: environment-driven (prefix SURVEYOR_),
read-only at runtime, and fail-fast on invalid combinations.

Server-side provider keys configured here are DEFAULTS only. Credentials
sent with a request always take precedence.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, List, Literal, Optional

from pydantic import Field, SecretStr, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict

from surveyor.app.schemas.requests import (
    CredentialsBundle,
    DataSource,
    ProviderName,
)


SensitiveEnv = Annotated[
    Optional[SecretStr],
    Field(default=None, description="Sensitive credential, redacted from logs"),
]


class SurveyorConfig(BaseSettings):
    """
    Runtime configuration for the Surveyor service.
    """

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    CHUNK_SIZE: int = Field(
        5,
        ge=1,
        le=50,
        description="Jobs dispatched in parallel per chunk",
    )

    INTER_CHUNK_DELAY_SECONDS: float = Field(
        1.5,
        ge=0,
        description="Pause between chunks to respect third-party rate limits",
    )

    MAX_CONCURRENT_SURVEYS: int = Field(
        5,
        ge=1,
        description="Running sessions allowed at once; extra submissions are rejected",
    )

    MAX_SESSION_HISTORY: int = Field(
        50,
        ge=1,
        description="Sessions retained before the oldest terminal one is evicted",
    )

    # ------------------------------------------------------------------
    # Trust / cache thresholds
    # ------------------------------------------------------------------

    CACHE_MIN_CONFIDENCE: int = Field(
        80,
        ge=0,
        le=100,
        description="Records are cached only when confidence is strictly greater",
    )

    CONFIDENCE_OVERRIDE_THRESHOLD: int = Field(
        70,
        ge=0,
        le=100,
        description="Confidence at or above which trust is promoted to verified",
    )

    # ------------------------------------------------------------------
    # Source fetcher
    # ------------------------------------------------------------------

    FETCH_MAX_ATTEMPTS: int = Field(3, ge=1, le=10)

    FETCH_TIMEOUT_SECONDS: float = Field(
        30.0,
        gt=0,
        description="Hard deadline per fetch attempt",
    )

    FETCH_MAX_TEXT_CHARS: int = Field(
        15_000,
        ge=1_000,
        description="Upper bound on cleaned page text passed to extraction",
    )

    PROXY_ENDPOINT: str = Field(
        "https://api.zenrows.com/v1/",
        description="Outbound scraping proxy endpoint (scraping_proxy source)",
    )

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    EXTRACTION_TIMEOUT_SECONDS: float = Field(30.0, gt=0)

    EXTRACTION_MAX_PROVIDER_ATTEMPTS: int = Field(
        2,
        ge=1,
        description="Providers tried per job before giving up",
    )

    PROVIDER_ORDER: List[ProviderName] = Field(
        default_factory=lambda: [
            ProviderName.OPENROUTER,
            ProviderName.OPENAI,
            ProviderName.GEMINI,
        ],
    )

    OPENAI_MODEL: str = "gpt-4o-mini"
    GEMINI_MODEL: str = "gemini-2.0-flash"
    OPENROUTER_MODEL: str = "openai/gpt-4o-mini"

    DATA_SOURCE: DataSource = DataSource.SIMULATION

    # ------------------------------------------------------------------
    # Cache backend
    # ------------------------------------------------------------------

    CACHE_BACKEND: Literal["memory", "redis"] = "memory"
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_PREFIX: str = Field("surveyor", min_length=1)

    # ------------------------------------------------------------------
    # Server-side default credentials
    # ------------------------------------------------------------------

    OPENAI_API_KEY: SensitiveEnv
    GEMINI_API_KEY: SensitiveEnv
    OPENROUTER_API_KEY: SensitiveEnv
    OPENSTATES_API_KEY: SensitiveEnv
    LEGISCAN_API_KEY: SensitiveEnv
    SCRAPING_API_KEY: SensitiveEnv

    model_config = SettingsConfigDict(
        env_prefix="SURVEYOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Validators (Pydantic v2)
    # ------------------------------------------------------------------

    @field_validator("PROVIDER_ORDER")
    @classmethod
    def provider_order_unique(cls, v: List[ProviderName]) -> List[ProviderName]:
        if not v:
            raise ValueError("PROVIDER_ORDER must name at least one provider")
        if len(set(v)) != len(v):
            raise ValueError(f"PROVIDER_ORDER contains duplicates: {v}")
        return v

    @field_validator("REDIS_URL")
    @classmethod
    def redis_url_scheme(cls, v: str, info: ValidationInfo) -> str:
        if info.data.get("CACHE_BACKEND") == "redis" and not v.startswith(
            ("redis://", "rediss://", "unix://")
        ):
            raise ValueError(
                "CACHE_BACKEND=redis requires a redis://, rediss:// or "
                f"unix:// REDIS_URL, got '{v}'"
            )
        return v

    # ------------------------------------------------------------------
    # Derived
    # ------------------------------------------------------------------

    def default_credentials(self) -> CredentialsBundle:
        return CredentialsBundle(
            openai_key=self.OPENAI_API_KEY,
            gemini_key=self.GEMINI_API_KEY,
            openrouter_key=self.OPENROUTER_API_KEY,
            openstates_key=self.OPENSTATES_API_KEY,
            legiscan_key=self.LEGISCAN_API_KEY,
            scraping_key=self.SCRAPING_API_KEY,
        )


@lru_cache(maxsize=1)
def get_config() -> SurveyorConfig:
    """
    Process-wide configuration provider.

    Parsed once at startup and treated as immutable.
    """
    return SurveyorConfig()
