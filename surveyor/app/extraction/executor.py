from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Literal, Optional, Protocol, Type

import httpx
import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ConfigDict, ValidationError

# ----------------------------------------------------------------------
# Structured Execution Result
# ----------------------------------------------------------------------

class StructuredExtractionResult(BaseModel):
    """
    Canonical result of one structured-generation call.

    This object MUST normalize every execution outcome. Executors
    MUST never raise.
    """

    success: bool
    output: Optional[BaseModel] = None

    # Diagnostic telemetry (advisory only)
    token_metrics: Optional[Dict[str, Any]] = None

    failure_type: Optional[
        Literal[
            "timeout",
            "schema_violation",
            "refusal",
            "unexpected_error",
        ]
    ] = None
    raw_error: Optional[str] = None

    provider: str
    model: str

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

# ----------------------------------------------------------------------
# Executor Interface
# ----------------------------------------------------------------------

class StructuredExtractionExecutor(Protocol):
    async def execute(
        self,
        *,
        messages: List[Dict[str, str]],
        output_schema: Type[BaseModel],
    ) -> StructuredExtractionResult:
        ...

    async def aclose(self) -> None:
        ...

# ----------------------------------------------------------------------
# OpenAI-compatible Structured Executor
# ----------------------------------------------------------------------

class OpenAICompatibleExecutor:
    """
    Structured executor for any OpenAI-compatible chat completions API
    (OpenAI, Gemini's OpenAI endpoint, OpenRouter).

    The SDK's own retries are disabled: provider fallback is the retry
    policy, and the hard deadline covers the whole call.

    Each executor owns one SDK client (and its connection pool). The
    caller MUST `aclose()` it once the job is done with it.
    """

    def __init__(
        self,
        *,
        provider: str,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        default_headers: Optional[Dict[str, str]] = None,
        timeout_seconds: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._provider = provider
        self._model = model
        self._timeout_seconds = timeout_seconds

        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            default_headers=default_headers,
            timeout=timeout_seconds,
            max_retries=0,
            http_client=http_client,
        )

    async def aclose(self) -> None:
        await self._client.close()

    def _failure(
        self,
        failure_type: str,
        exc: Optional[BaseException] = None,
        message: Optional[str] = None,
    ) -> StructuredExtractionResult:
        return StructuredExtractionResult(
            success=False,
            failure_type=failure_type,
            raw_error=message if message is not None else str(exc),
            provider=self._provider,
            model=self._model,
        )

    async def execute(
        self,
        *,
        messages: List[Dict[str, str]],
        output_schema: Type[BaseModel],
    ) -> StructuredExtractionResult:
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.parse(
                    model=self._model,
                    messages=messages,
                    response_format=output_schema,
                ),
                timeout=self._timeout_seconds,
            )
            return self._normalize(response)
        except (asyncio.TimeoutError, openai.APITimeoutError) as exc:
            return self._failure("timeout", exc)
        except (
            ValidationError,
            openai.LengthFinishReasonError,
            openai.ContentFilterFinishReasonError,
        ) as exc:
            return self._failure("schema_violation", exc)
        except Exception as exc:
            return self._failure("unexpected_error", exc)

    def _normalize(self, response: Any) -> StructuredExtractionResult:
        if not response.choices:
            return self._failure("schema_violation", message="no choices returned")

        message = response.choices[0].message

        if getattr(message, "refusal", None):
            return self._failure("refusal", message=message.refusal)

        if message.parsed is None:
            return self._failure("schema_violation", message="empty parsed output")

        # ------------------------------------------------------------------
        # Raw token telemetry (executor-only responsibility)
        # ------------------------------------------------------------------
        token_metrics: Optional[Dict[str, Any]] = None
        usage = getattr(response, "usage", None)
        if usage is not None:
            token_metrics = {
                "prompt_tokens": getattr(usage, "prompt_tokens", None),
                "completion_tokens": getattr(usage, "completion_tokens", None),
                "total_tokens": getattr(usage, "total_tokens", None),
            }

        return StructuredExtractionResult(
            success=True,
            output=message.parsed,
            token_metrics=token_metrics,
            provider=self._provider,
            model=self._model,
        )
