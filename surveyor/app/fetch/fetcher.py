"""
Source Fetcher.

Retrieves raw source content for one jurisdiction with a bounded retry
budget and a hard per-attempt deadline.

Retry policy (per attempt, up to FETCH_MAX_ATTEMPTS):
- 429 / 5xx: wait Retry-After (if given) else 2^(attempt-1) seconds, retry
- 404: terminal not_found, no retry
- any other non-2xx: terminal client_error, no retry
- timeout / transport failure: retry
No wait follows the final attempt. The last observed error is surfaced.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)

from surveyor.app.fetch.content import FetchError, RawContent
from surveyor.app.fetch.html import clean_html
from surveyor.app.fetch.sources import FetchTarget, resolve_target
from surveyor.app.schemas.jurisdictions import Jurisdiction
from surveyor.app.schemas.outcome import FailureKind
from surveyor.app.schemas.requests import CredentialsBundle, DataSource

logger = logging.getLogger(__name__)


SleepFn = Callable[[float], Awaitable[None]]


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    raw = response.headers.get("Retry-After")
    if raw is None:
        return None
    try:
        value = float(raw.strip())
    except ValueError:
        # HTTP-date form is not honoured; fall back to backoff
        return None
    return value if value >= 0 else None


def _backoff_wait(retry_state: RetryCallState) -> float:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    if isinstance(exc, FetchError) and exc.retry_after is not None:
        return exc.retry_after
    return float(2 ** (retry_state.attempt_number - 1))


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, FetchError) and exc.retryable


class SourceFetcher:
    """
    HTTP fetcher for legislature pages and official statute feeds.

    The httpx client is owned by the caller when injected (tests use
    httpx.MockTransport); otherwise one is created lazily and closed by
    `aclose()`.
    """

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        max_attempts: int = 3,
        timeout_seconds: float = 30.0,
        max_text_chars: int = 15_000,
        proxy_endpoint: str = "https://api.zenrows.com/v1/",
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._max_attempts = max_attempts
        self._timeout_seconds = timeout_seconds
        self._max_text_chars = max_text_chars
        self._proxy_endpoint = proxy_endpoint
        self._sleep = sleep

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=self._timeout_seconds,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def fetch(
        self,
        jurisdiction: Jurisdiction,
        *,
        query: str,
        data_source: DataSource,
        credentials: CredentialsBundle,
    ) -> RawContent:
        """
        Fetch raw content for one jurisdiction.

        Raises FetchError once the retry budget is exhausted or on a
        terminal status.
        """
        if data_source is DataSource.LLM_KNOWLEDGE:
            return RawContent(jurisdiction=jurisdiction, kind="none")

        target = resolve_target(
            jurisdiction,
            query=query,
            data_source=data_source,
            credentials=credentials,
            proxy_endpoint=self._proxy_endpoint,
        )
        response = await self.fetch_with_retry(target, jurisdiction=jurisdiction)
        return self._to_raw_content(jurisdiction, target, response)

    async def fetch_with_retry(
        self,
        target: FetchTarget,
        *,
        jurisdiction: Optional[Jurisdiction] = None,
    ) -> httpx.Response:
        label = jurisdiction.value if jurisdiction is not None else target.display_url

        def _log_retry(retry_state: RetryCallState) -> None:
            exc = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Fetch attempt %d/%d for %s failed (%s); retrying in %.1fs",
                retry_state.attempt_number,
                self._max_attempts,
                label,
                exc,
                retry_state.next_action.sleep if retry_state.next_action else 0.0,
            )

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=_backoff_wait,
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            before_sleep=_log_retry,
            reraise=True,
        )

        response: Optional[httpx.Response] = None
        try:
            async for attempt in retrying:
                with attempt:
                    response = await self._attempt(target)
        except FetchError as exc:
            exc.attempts = retrying.statistics.get("attempt_number", 1)
            logger.error(
                "Fetch for %s failed after %d attempt(s): %s",
                label,
                exc.attempts,
                exc,
            )
            raise

        assert response is not None
        return response

    # ------------------------------------------------------------------
    # Single attempt
    # ------------------------------------------------------------------

    async def _attempt(self, target: FetchTarget) -> httpx.Response:
        client = self._get_client()
        request = client.build_request(
            "GET",
            target.url,
            params=target.params or None,
            headers=target.headers or None,
        )

        try:
            response = await asyncio.wait_for(
                client.send(request),
                timeout=self._timeout_seconds,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise FetchError(
                FailureKind.TIMEOUT,
                f"no response from {target.display_url} within "
                f"{self._timeout_seconds:g}s",
            ) from exc
        except httpx.TransportError as exc:
            raise FetchError(
                FailureKind.NETWORK,
                f"{type(exc).__name__} while fetching {target.display_url}",
            ) from exc

        status = response.status_code
        if status == 429:
            raise FetchError(
                FailureKind.RATE_LIMITED,
                f"rate limited by {target.display_url}",
                status_code=status,
                retry_after=_retry_after_seconds(response),
            )
        if status >= 500:
            raise FetchError(
                FailureKind.SERVER_ERROR,
                f"HTTP {status} from {target.display_url}",
                status_code=status,
                retry_after=_retry_after_seconds(response),
            )
        if status == 404:
            raise FetchError(
                FailureKind.NOT_FOUND,
                f"{target.display_url} not found",
                status_code=status,
            )
        if not response.is_success:
            raise FetchError(
                FailureKind.CLIENT_ERROR,
                f"HTTP {status} from {target.display_url}",
                status_code=status,
            )
        return response

    # ------------------------------------------------------------------
    # Response mapping
    # ------------------------------------------------------------------

    def _to_raw_content(
        self,
        jurisdiction: Jurisdiction,
        target: FetchTarget,
        response: httpx.Response,
    ) -> RawContent:
        if target.format == "html":
            return RawContent(
                jurisdiction=jurisdiction,
                kind="document",
                source_url=target.display_url,
                text=clean_html(response.text, max_chars=self._max_text_chars),
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise FetchError(
                FailureKind.PARSE_ERROR,
                f"{target.format} returned a non-JSON body",
            ) from exc

        if target.format == "openstates":
            items = _openstates_items(data)
        else:
            items = _legiscan_items(data)

        return RawContent(
            jurisdiction=jurisdiction,
            kind="feed",
            source_url=target.display_url,
            feed_provider=target.format,
            items=items,
        )


def _openstates_items(data: Any) -> List[Dict[str, Any]]:
    results = data.get("results") if isinstance(data, dict) else None
    return [r for r in results or [] if isinstance(r, dict)]


def _legiscan_items(data: Any) -> List[Dict[str, Any]]:
    if not isinstance(data, dict):
        return []
    if data.get("status") == "ERROR":
        alert = data.get("alert") or {}
        raise FetchError(
            FailureKind.CLIENT_ERROR,
            f"LegiScan error: {alert.get('message', 'unknown error')}",
        )
    # searchresult is an object keyed "0", "1", ... plus "summary"
    result = data.get("searchresult") or {}
    keys = sorted((k for k in result if k.isdigit()), key=int)
    return [result[k] for k in keys if isinstance(result[k], dict)]
