"""
FastAPI entrypoint for the Surveyor service.

This module defines the public HTTP interface: submit a query across up
to 50 jurisdictions, observe the survey session (poll or SSE stream),
cancel it, and delete it.

The HTTP layer is thin. It translates headers into a credentials bundle
and maps orchestrator errors to status codes; it never inspects results.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import SecretStr

# ---------------------------------------------------------------------------
# Logging (entrypoint only)
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    stream=sys.stderr,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("surveyor")

from surveyor.app.config import get_config  # noqa: E402
from surveyor.app.coordinator.orchestrator import (  # noqa: E402
    MaxConcurrentSurveysError,
    SessionNotFoundError,
    SurveyOrchestrator,
)
from surveyor.app.events import MemoryQueueEventEmitter  # noqa: E402
from surveyor.app.schemas.requests import (  # noqa: E402
    CredentialsBundle,
    ProviderName,
    SurveyRequest,
)


# ---------------------------------------------------------------------------
# Application setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Surveyor Service",
    description="Concurrent 50-state statute survey with trust verification",
    version="0.3.0",
)


# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------

@app.on_event("startup")
async def startup_event() -> None:
    """
    Application startup hook.

    Configuration is loaded once and treated as immutable for the
    lifetime of the process. An orchestrator already placed on app.state
    (tests) is left untouched.
    """
    if getattr(app.state, "orchestrator", None) is None:
        config = get_config()
        app.state.orchestrator = SurveyOrchestrator.from_config(config)
        logger.info(
            "Surveyor started (data_source=%s, cache=%s, chunk_size=%d)",
            config.DATA_SOURCE.value,
            config.CACHE_BACKEND,
            config.CHUNK_SIZE,
        )


@app.on_event("shutdown")
async def shutdown_event() -> None:
    """Cancel running surveys and release network clients."""
    orchestrator: Optional[SurveyOrchestrator] = getattr(
        app.state, "orchestrator", None
    )
    if orchestrator is not None:
        await orchestrator.shutdown()


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

def get_orchestrator(request: Request) -> SurveyOrchestrator:
    return request.app.state.orchestrator


def _secret(value: Optional[str]) -> Optional[SecretStr]:
    return SecretStr(value) if value else None


def get_credentials(
    x_openai_key: Optional[str] = Header(None),
    x_gemini_key: Optional[str] = Header(None),
    x_openrouter_key: Optional[str] = Header(None),
    x_openstates_key: Optional[str] = Header(None),
    x_legiscan_key: Optional[str] = Header(None),
    x_scraping_key: Optional[str] = Header(None),
    x_active_provider: Optional[str] = Header(None),
) -> CredentialsBundle:
    """Per-request credentials. Header values are never logged."""
    preferred: Optional[ProviderName] = None
    if x_active_provider:
        try:
            preferred = ProviderName(x_active_provider.strip().lower())
        except ValueError as exc:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Unknown provider '{x_active_provider}'. "
                    f"Allowed values: {sorted(p.value for p in ProviderName)}"
                ),
            ) from exc

    return CredentialsBundle(
        openai_key=_secret(x_openai_key),
        gemini_key=_secret(x_gemini_key),
        openrouter_key=_secret(x_openrouter_key),
        openstates_key=_secret(x_openstates_key),
        legiscan_key=_secret(x_legiscan_key),
        scraping_key=_secret(x_scraping_key),
        preferred_provider=preferred,
    )


def _session_payload(session: Any) -> Dict[str, Any]:
    payload = session.model_dump(mode="json")
    payload.update(
        progress_count=session.progress_count,
        percent_complete=session.percent_complete,
        success_count=session.success_count,
        error_count=session.error_count,
    )
    return payload


# ---------------------------------------------------------------------------
# API Routes
# ---------------------------------------------------------------------------

@app.post(
    "/surveys",
    status_code=202,
    summary="Submit a query across jurisdictions",
)
async def submit_survey(
    body: SurveyRequest,
    credentials: CredentialsBundle = Depends(get_credentials),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> Dict[str, int]:
    """
    Start a survey and return its id immediately.

    The pipeline runs in the background; poll GET /surveys/{id}.
    """
    try:
        session = await orchestrator.submit(body, credentials=credentials)
    except MaxConcurrentSurveysError as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc

    return {"id": session.id}


@app.post(
    "/surveys/stream",
    summary="Submit a query and stream progress (SSE)",
)
async def submit_survey_stream(
    body: SurveyRequest,
    credentials: CredentialsBundle = Depends(get_credentials),
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
):
    """
    Run a survey while streaming its events.

    This endpoint is observational only:
    - Client disconnects do NOT cancel the survey
    - Events do NOT influence execution
    - The terminal event carries the final session snapshot
    """
    emitter = MemoryQueueEventEmitter()

    try:
        await orchestrator.submit(body, credentials=credentials, emitter=emitter)
    except MaxConcurrentSurveysError as exc:
        raise HTTPException(status_code=429, detail=str(exc)) from exc

    async def event_stream():
        try:
            async for event in emitter.stream():
                yield event.to_sse_payload()
        except asyncio.CancelledError:
            # Client disconnected; survey continues
            pass

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@app.get(
    "/surveys",
    summary="List surveys, newest first",
)
async def list_surveys(
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    return [session.summary() for session in orchestrator.list()]


@app.get(
    "/surveys/{survey_id}",
    summary="Survey session snapshot",
)
async def get_survey(
    survey_id: int,
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        session = orchestrator.get(survey_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _session_payload(session)


@app.post(
    "/surveys/{survey_id}/cancel",
    summary="Cancel a running survey (idempotent)",
)
async def cancel_survey(
    survey_id: int,
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        session = await orchestrator.cancel(survey_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _session_payload(session)


@app.delete(
    "/surveys/{survey_id}",
    status_code=204,
    summary="Delete a survey",
)
async def delete_survey(
    survey_id: int,
    orchestrator: SurveyOrchestrator = Depends(get_orchestrator),
) -> Response:
    try:
        await orchestrator.delete(survey_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Health Check
# ---------------------------------------------------------------------------

@app.get(
    "/health",
    summary="Service health check",
)
def health_check() -> JSONResponse:
    """Simple health check endpoint."""
    return JSONResponse(
        content={
            "status": "ok",
            "service": "surveyor",
        }
    )
