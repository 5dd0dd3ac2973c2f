"""FastAPI dependencies shared by the relay routers."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from fastapi import Depends, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse
from starlette.background import BackgroundTask

from ..config import Settings, get_settings
from ..providers.client import UpstreamClient
from ..relay.streaming import ChatStreamService
from ..services.project_store import ProjectStore, ProjectStoreProtocol

StoreFactory = Callable[[Optional[str]], Awaitable[ProjectStoreProtocol]]


def get_upstream_client(request: Request) -> UpstreamClient:
    return request.app.state.upstream_client


def get_chat_service(request: Request) -> ChatStreamService:
    return request.app.state.chat_service


def get_store_factory(settings: Settings = Depends(get_settings)) -> StoreFactory:
    """Return a coroutine factory that opens a caller-scoped project store."""

    async def _connect(authorization: Optional[str]) -> ProjectStoreProtocol:
        return await ProjectStore.connect(settings, authorization)

    return _connect


def error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def event_stream_response(
    publisher: Any, *, on_close: Callable[[], Awaitable[None]] | None = None
) -> EventSourceResponse:
    """Wrap an async iterator of `{"data": ...}` dicts as `text/event-stream`."""

    return EventSourceResponse(
        publisher,
        sep="\n",
        headers={"Cache-Control": "no-cache"},
        background=BackgroundTask(on_close) if on_close is not None else None,
    )


__all__ = [
    "StoreFactory",
    "error_response",
    "event_stream_response",
    "get_chat_service",
    "get_store_factory",
    "get_upstream_client",
]
