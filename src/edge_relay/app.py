"""Application factory for the FastAPI service."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from starlette.datastructures import Headers

from .config import PROJECT_ROOT, Settings, get_settings
from .logging_handlers import DEFAULT_LOG_DIR, DateStampedFileHandler, cleanup_old_logs
from .logging_settings import parse_logging_settings
from .providers.client import UpstreamClient
from .relay.streaming import ChatStreamService
from .routers.chat import router as chat_router
from .routers.vision import router as vision_router


class EmptyPreflightCORSMiddleware(CORSMiddleware):
    """CORS middleware whose preflight answer carries no body."""

    def preflight_response(self, request_headers: Headers) -> Response:
        response = super().preflight_response(request_headers)
        headers = {
            key: value
            for key, value in response.headers.items()
            if key not in ("content-length", "content-type")
        }
        return Response(status_code=response.status_code, headers=headers)


_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _configure_logging() -> None:
    """Configure logging from ``LOG_LEVEL``, ``LOG_DIR`` and ``logging_settings.conf``."""
    # Load .env first so LOG_LEVEL and LOG_DIR are visible
    load_dotenv()

    file_settings = parse_logging_settings(PROJECT_ROOT / "logging_settings.conf")

    env_level = os.getenv("LOG_LEVEL")
    if env_level:
        terminal_level = getattr(logging, env_level.upper(), logging.INFO)
    else:
        terminal_level = file_settings.terminal_level

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = []

    if terminal_level is not None:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(terminal_level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    log_dir = Path(os.getenv("LOG_DIR") or PROJECT_ROOT / DEFAULT_LOG_DIR)
    if file_settings.file_enabled:
        file_handler = DateStampedFileHandler(log_dir)
        file_handler.setLevel(file_settings.file_level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        handlers.append(logging.NullHandler())

    active_levels = [
        handler.level for handler in handlers if handler.level != logging.NOTSET
    ]
    root_level = min(active_levels) if active_levels else logging.WARNING

    logging.basicConfig(level=root_level, handlers=handlers, force=True)
    logging.getLogger("edge_relay").setLevel(root_level)
    logging.getLogger("uvicorn").setLevel(root_level)

    # httpx logs every request line at INFO
    if root_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    if file_settings.file_enabled:
        cleanup_old_logs(
            [log_dir],
            file_settings.retention_hours,
            logger=logging.getLogger("edge_relay.logging"),
        )


def _configured_providers(settings: Settings) -> dict[str, bool]:
    return {
        "gemini": settings.gemini_api_key is not None,
        "anthropic": settings.anthropic_api_key is not None,
        "xai": settings.xai_api_key is not None,
    }


def create_app() -> FastAPI:
    # Configure logging first thing
    _configure_logging()

    settings = get_settings()
    upstream = UpstreamClient(settings)
    chat_service = ChatStreamService(settings, upstream)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            try:
                await UpstreamClient.aclose_shared()
            except Exception as exc:
                logging.warning("Error closing upstream HTTP clients: %s", exc)

    app = FastAPI(
        title="Edge Relay",
        version="0.1.0",
        description="Streaming relay for Gemini, Anthropic and xAI models.",
        lifespan=lifespan,
    )

    app.state.upstream_client = upstream
    app.state.chat_service = chat_service

    app.add_middleware(
        EmptyPreflightCORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chat_router)
    app.include_router(vision_router)

    @app.options("/{full_path:path}", include_in_schema=False)
    async def preflight(full_path: str) -> Response:
        """Answer any preflight with an empty 200 (CORS headers come from the middleware)."""
        return Response(status_code=200)

    @app.get("/health", tags=["health"])
    async def healthcheck() -> dict[str, object]:
        return {
            "status": "ok",
            "providers": _configured_providers(settings),
        }

    return app


__all__ = ["EmptyPreflightCORSMiddleware", "create_app"]
