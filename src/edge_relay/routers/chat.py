"""Chat streaming routes (model-routed and per-provider aliases)."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from ..config import ConfigurationError
from ..providers.client import UpstreamError
from ..relay.streaming import ChatStreamService
from ..schemas.chat import GenerationRequest
from ..schemas.events import to_sse
from ..services.project_store import AccessDeniedError, ensure_project_access
from .dependencies import (
    StoreFactory,
    error_response,
    event_stream_response,
    get_chat_service,
    get_store_factory,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["chat"])

PROVIDER_DEFAULT_MODELS = {
    "gemini": "gemini-2.5-flash",
    "anthropic": "claude-sonnet-4-5",
    "xai": "grok-4-fast-non-reasoning",
}


async def _open_chat_stream(
    payload: GenerationRequest,
    request: Request,
    service: ChatStreamService,
    store_factory: StoreFactory,
    *,
    default_model: Optional[str] = None,
) -> EventSourceResponse | JSONResponse:
    """Do every fallible pre-stream step, then hand the stream to the client.

    Failures here still have an HTTP status to report; once streaming starts,
    errors travel in-band as `error` events.
    """

    authorization = request.headers.get("authorization")
    try:
        if payload.project_id:
            store = await store_factory(authorization)
            try:
                await ensure_project_access(
                    store, payload.project_id, payload.share_token
                )
            finally:
                await store.aclose()
        stream = await service.open(
            payload, authorization=authorization, default_model=default_model
        )
    except AccessDeniedError:
        logger.warning("Access denied for project %s", payload.project_id)
        return error_response(403, "Access denied")
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return error_response(500, str(exc))
    except UpstreamError as exc:
        return error_response(500, str(exc))
    except Exception as exc:  # pragma: no cover - unexpected failure
        logger.exception("Chat stream setup failed")
        return error_response(500, str(exc) or "Unknown error")

    async def event_publisher():
        async for event in stream.events():
            yield to_sse(event)

    return event_stream_response(event_publisher(), on_close=stream.aclose)


@router.post("/chat-stream", response_model=None, status_code=200)
async def chat_stream(
    payload: GenerationRequest,
    request: Request,
    service: ChatStreamService = Depends(get_chat_service),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> EventSourceResponse | JSONResponse:
    """Stream a generation from whichever provider the model name selects."""

    return await _open_chat_stream(payload, request, service, store_factory)


@router.post("/chat-stream-gemini", response_model=None, status_code=200)
async def chat_stream_gemini(
    payload: GenerationRequest,
    request: Request,
    service: ChatStreamService = Depends(get_chat_service),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> EventSourceResponse | JSONResponse:
    return await _open_chat_stream(
        payload,
        request,
        service,
        store_factory,
        default_model=PROVIDER_DEFAULT_MODELS["gemini"],
    )


@router.post("/chat-stream-anthropic", response_model=None, status_code=200)
async def chat_stream_anthropic(
    payload: GenerationRequest,
    request: Request,
    service: ChatStreamService = Depends(get_chat_service),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> EventSourceResponse | JSONResponse:
    return await _open_chat_stream(
        payload,
        request,
        service,
        store_factory,
        default_model=PROVIDER_DEFAULT_MODELS["anthropic"],
    )


@router.post("/chat-stream-xai", response_model=None, status_code=200)
async def chat_stream_xai(
    payload: GenerationRequest,
    request: Request,
    service: ChatStreamService = Depends(get_chat_service),
    store_factory: StoreFactory = Depends(get_store_factory),
) -> EventSourceResponse | JSONResponse:
    return await _open_chat_stream(
        payload,
        request,
        service,
        store_factory,
        default_model=PROVIDER_DEFAULT_MODELS["xai"],
    )


__all__ = ["PROVIDER_DEFAULT_MODELS", "router"]
