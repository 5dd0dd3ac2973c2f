"""Chat stream pipeline: enrich, run tools, call the provider, re-frame."""

from __future__ import annotations

import logging
from typing import AsyncIterator

import httpx

from ..config import Settings
from ..providers.base import (
    PromptParts,
    ProviderBinding,
    ProviderEvent,
    ThinkingOptions,
)
from ..providers.client import UpstreamClient
from ..providers.router import coerce_max_output_tokens, resolve_provider
from ..schemas.chat import GenerationRequest
from ..schemas.events import ToolsEvent
from .context import enrich_system_prompt
from .sse import reframe
from .tools import ToolExecutor, ToolRun, compose_user_prompt

logger = logging.getLogger(__name__)


class ChatStream:
    """An opened upstream stream plus the tool outputs gathered before it."""

    def __init__(
        self,
        binding: ProviderBinding,
        response: httpx.Response,
        tool_outputs: list[dict] | None = None,
    ) -> None:
        self.binding = binding
        self.tool_outputs = list(tool_outputs or [])
        self._response = response

    async def events(self) -> AsyncIterator[ToolsEvent | ProviderEvent]:
        """Yield the `tools` event (if any) followed by the re-framed stream."""

        try:
            if self.tool_outputs:
                yield ToolsEvent(tool_outputs=self.tool_outputs)
            async for event in reframe(
                self._response.aiter_bytes(),
                self.binding.new_parser(),
                source=self.binding.label,
            ):
                yield event
        finally:
            await self._response.aclose()

    async def aclose(self) -> None:
        await self._response.aclose()


class ChatStreamService:
    """Prepare and open provider streams for incoming generation requests."""

    def __init__(self, settings: Settings, upstream: UpstreamClient) -> None:
        self._settings = settings
        self._upstream = upstream

    def _context_limit(self) -> int | None:
        return self._settings.context_char_limit or None

    async def run_tools(
        self, request: GenerationRequest, authorization: str | None
    ) -> ToolRun:
        if not request.tools:
            return ToolRun()
        logger.info("Executing %d tools", len(request.tools))
        executor = ToolExecutor(
            await self._upstream.get_http_client(),
            self._settings.resolved_tools_base_url,
            authorization=authorization,
        )
        return await executor.run(request.tools, request.user_prompt)

    async def open(
        self,
        request: GenerationRequest,
        *,
        authorization: str | None = None,
        default_model: str | None = None,
    ) -> ChatStream:
        """Run every pre-stream step and open the upstream response.

        Raises `ConfigurationError` for a missing key and `UpstreamError` when the
        provider rejects the request; both happen before anything is streamed.
        """

        binding = resolve_provider(request.model or default_model)
        api_key = binding.api_key(self._settings)
        logger.info(
            "Chat stream: provider=%s model=%s tools=%d history=%d",
            binding.name,
            binding.model,
            len(request.tools),
            len(request.messages),
        )

        system_prompt = enrich_system_prompt(
            request.system_prompt,
            request.attached_context,
            char_limit=self._context_limit(),
        )
        tool_run = await self.run_tools(request, authorization)

        prompt = PromptParts(
            system=system_prompt,
            user=compose_user_prompt(request.user_prompt, tool_run.text),
            history=[message.model_dump() for message in request.messages],
        )
        max_tokens = coerce_max_output_tokens(
            request.max_output_tokens, self._settings.default_max_output_tokens
        )
        thinking = ThinkingOptions(
            enabled=request.thinking_enabled, budget=request.thinking_budget
        )
        payload = binding.build_payload(prompt, max_tokens=max_tokens, thinking=thinking)
        logger.debug(
            "Thinking %s (budget %d), max tokens %d",
            "enabled" if thinking.enabled else "disabled",
            thinking.budget,
            max_tokens,
        )

        response = await self._upstream.open_stream(
            binding.stream_url(self._settings),
            payload,
            headers=binding.headers(api_key),
            provider=binding.label,
        )
        return ChatStream(binding, response, tool_run.outputs)


__all__ = ["ChatStream", "ChatStreamService"]
