"""
Structured-generation capability providers.

Each provider exposes one uniform operation:

    try_acquire(credentials) -> executor | None

None means "not usable with these credentials". The adapter walks an
ordered list of providers; there is no provider-specific branching
anywhere else.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Protocol, Sequence

from surveyor.app.extraction.executor import (
    OpenAICompatibleExecutor,
    StructuredExtractionExecutor,
)
from surveyor.app.schemas.requests import CredentialsBundle, ProviderName


GEMINI_OPENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"

ExecutorFactory = Callable[..., StructuredExtractionExecutor]


class CapabilityProvider(Protocol):
    name: ProviderName

    def try_acquire(
        self, credentials: CredentialsBundle
    ) -> Optional[StructuredExtractionExecutor]:
        ...


class OpenAICompatibleProvider:
    """Provider reached through an OpenAI-compatible endpoint."""

    def __init__(
        self,
        *,
        name: ProviderName,
        key_field: str,
        model: str,
        base_url: Optional[str] = None,
        default_headers: Optional[Dict[str, str]] = None,
        timeout_seconds: float = 30.0,
        executor_factory: ExecutorFactory = OpenAICompatibleExecutor,
    ) -> None:
        self.name = name
        self._key_field = key_field
        self._model = model
        self._base_url = base_url
        self._default_headers = default_headers
        self._timeout_seconds = timeout_seconds
        self._executor_factory = executor_factory

    def try_acquire(
        self, credentials: CredentialsBundle
    ) -> Optional[StructuredExtractionExecutor]:
        api_key = credentials.secret(self._key_field)
        if api_key is None:
            return None
        return self._executor_factory(
            provider=self.name.value,
            api_key=api_key,
            model=self._model,
            base_url=self._base_url,
            default_headers=self._default_headers,
            timeout_seconds=self._timeout_seconds,
        )


def build_providers(
    *,
    order: Sequence[ProviderName],
    openai_model: str,
    gemini_model: str,
    openrouter_model: str,
    timeout_seconds: float,
    executor_factory: ExecutorFactory = OpenAICompatibleExecutor,
) -> List[CapabilityProvider]:
    """Instantiate providers in the configured fallback order."""
    registry: Dict[ProviderName, CapabilityProvider] = {
        ProviderName.OPENAI: OpenAICompatibleProvider(
            name=ProviderName.OPENAI,
            key_field="openai_key",
            model=openai_model,
            timeout_seconds=timeout_seconds,
            executor_factory=executor_factory,
        ),
        ProviderName.GEMINI: OpenAICompatibleProvider(
            name=ProviderName.GEMINI,
            key_field="gemini_key",
            model=gemini_model,
            base_url=GEMINI_OPENAI_BASE_URL,
            timeout_seconds=timeout_seconds,
            executor_factory=executor_factory,
        ),
        ProviderName.OPENROUTER: OpenAICompatibleProvider(
            name=ProviderName.OPENROUTER,
            key_field="openrouter_key",
            model=openrouter_model,
            base_url=OPENROUTER_BASE_URL,
            default_headers={"X-Title": "Statute Surveyor"},
            timeout_seconds=timeout_seconds,
            executor_factory=executor_factory,
        ),
    }
    return [registry[name] for name in order]
