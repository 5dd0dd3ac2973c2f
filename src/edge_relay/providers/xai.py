"""xAI (OpenAI-compatible chat completions) streaming binding."""

from __future__ import annotations

from typing import Any, Mapping

from ..config import Settings
from ..schemas.events import DeltaEvent, DoneEvent, ErrorEvent
from .base import (
    PromptParts,
    ProviderBinding,
    ProviderEvent,
    StreamParser,
    ThinkingOptions,
    error_message,
    first_mapping,
)


class XaiStreamParser(StreamParser):
    def feed(self, payload: Mapping[str, Any]) -> list[ProviderEvent]:
        message = error_message(payload)
        if message is not None:
            return [ErrorEvent(error=message)]

        events: list[ProviderEvent] = []
        choice = first_mapping(payload.get("choices"))
        delta = choice.get("delta")
        content = delta.get("content") if isinstance(delta, Mapping) else None
        if isinstance(content, str) and content:
            events.append(DeltaEvent(text=content))

        finish_reason = choice.get("finish_reason")
        if finish_reason:
            events.append(
                DoneEvent(
                    finish_reason=str(finish_reason),
                    truncated=finish_reason == "length",
                )
            )
        return events


class XaiBinding(ProviderBinding):
    name = "xai"
    label = "xAI"
    api_key_field = "xai_api_key"
    api_key_env = "XAI_API_KEY"

    def stream_url(self, settings: Settings) -> str:
        return f"{str(settings.xai_base_url).rstrip('/')}/v1/chat/completions"

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def build_payload(
        self,
        prompt: PromptParts,
        *,
        max_tokens: int,
        thinking: ThinkingOptions,
    ) -> dict[str, Any]:
        messages: list[dict[str, str]] = [{"role": "system", "content": prompt.system}]
        for message in prompt.history:
            role = "assistant" if message.get("role") == "assistant" else "user"
            messages.append({"role": role, "content": message.get("content", "")})
        if prompt.user or not prompt.history:
            messages.append({"role": "user", "content": prompt.user})

        return {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "stream": True,
        }

    def new_parser(self) -> StreamParser:
        return XaiStreamParser()


__all__ = ["XaiBinding", "XaiStreamParser"]
