"""Pooled HTTP client for upstream LLM providers."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Mapping, Optional

import httpx
from fastapi import status

from ..config import Settings

logger = logging.getLogger(__name__)

ERROR_EXCERPT_LIMIT = 300
_EXCERPT_MARKER = "...[truncated]"


class UpstreamError(Exception):
    """Wrap transport or API failures when talking to a provider."""

    def __init__(self, status_code: int, detail: Any, *, provider: str = "Upstream"):
        self.status_code = status_code
        self.detail = detail
        self.provider = provider
        super().__init__(f"{provider} API error ({status_code}): {detail}")


def excerpt(text: str, limit: int = ERROR_EXCERPT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + _EXCERPT_MARKER


def extract_error_detail(raw: bytes) -> str:
    """Return a bounded, human-readable excerpt of an error body."""

    if not raw:
        return "empty error response"
    text = raw.decode("utf-8", errors="ignore")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return excerpt(text)
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return excerpt(error["message"])
        if isinstance(error, str):
            return excerpt(error)
    return excerpt(text)


class UpstreamClient:
    """Issue provider requests over a shared `httpx.AsyncClient`.

    Passing ``transport`` gives the instance a private client, which is how tests
    substitute `httpx.MockTransport`.
    """

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[Optional[float], httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._private_client: httpx.AsyncClient | None = None

    def _timeout(self) -> httpx.Timeout:
        if self._settings.upstream_timeout is None:
            return httpx.Timeout(None)
        return httpx.Timeout(self._settings.upstream_timeout, connect=10.0)

    async def get_http_client(self) -> httpx.AsyncClient:
        if self._transport is not None:
            if self._private_client is None:
                self._private_client = httpx.AsyncClient(
                    transport=self._transport, timeout=self._timeout()
                )
            return self._private_client

        key = self._settings.upstream_timeout
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                limits = httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=20,
                )
                client = httpx.AsyncClient(
                    timeout=self._timeout(),
                    limits=limits,
                    http2=True,
                )
                self.__class__._client_pool[key] = client
        return client

    async def open_stream(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Mapping[str, str],
        provider: str,
    ) -> httpx.Response:
        """Send ``payload`` and return the streamed response; the caller must close it."""

        client = await self.get_http_client()
        request = client.build_request("POST", url, headers=dict(headers), json=payload)
        try:
            response = await client.send(request, stream=True)
        except httpx.HTTPError as exc:
            raise UpstreamError(
                status.HTTP_502_BAD_GATEWAY, str(exc), provider=provider
            ) from exc

        if response.status_code >= 400:
            try:
                body = await response.aread()
            finally:
                await response.aclose()
            detail = extract_error_detail(body)
            logger.error("%s API error: %s %s", provider, response.status_code, detail)
            raise UpstreamError(response.status_code, detail, provider=provider)

        return response

    async def post_json(
        self,
        url: str,
        payload: Mapping[str, Any],
        *,
        headers: Mapping[str, str],
        provider: str,
    ) -> Any:
        client = await self.get_http_client()
        try:
            response = await client.post(url, headers=dict(headers), json=payload)
        except httpx.HTTPError as exc:
            raise UpstreamError(
                status.HTTP_502_BAD_GATEWAY, str(exc), provider=provider
            ) from exc

        if response.status_code >= 400:
            detail = extract_error_detail(response.content)
            logger.error("%s API error: %s %s", provider, response.status_code, detail)
            raise UpstreamError(response.status_code, detail, provider=provider)

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                status.HTTP_502_BAD_GATEWAY, str(exc), provider=provider
            ) from exc

    async def aclose(self) -> None:
        if self._private_client is not None:
            await self._private_client.aclose()
            self._private_client = None

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception as exc:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close upstream client: %s", exc)


__all__ = [
    "ERROR_EXCERPT_LIMIT",
    "UpstreamClient",
    "UpstreamError",
    "excerpt",
    "extract_error_detail",
]
