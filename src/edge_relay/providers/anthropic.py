"""Anthropic Messages API streaming binding."""

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
)

ANTHROPIC_VERSION = "2023-06-01"
MIN_THINKING_BUDGET = 1024


class AnthropicStreamParser(StreamParser):
    """Parse typed Messages API events; `message_delta` carries the stop reason."""

    def __init__(self) -> None:
        self._stop_reason: str | None = None

    def feed(self, payload: Mapping[str, Any]) -> list[ProviderEvent]:
        event_type = payload.get("type")

        if event_type == "content_block_delta":
            delta = payload.get("delta")
            if isinstance(delta, Mapping) and delta.get("type") == "text_delta":
                text = delta.get("text")
                if isinstance(text, str) and text:
                    return [DeltaEvent(text=text)]
            return []

        if event_type == "message_delta":
            delta = payload.get("delta")
            if isinstance(delta, Mapping) and delta.get("stop_reason"):
                self._stop_reason = str(delta["stop_reason"])
            return []

        if event_type == "message_stop":
            return [
                DoneEvent(
                    finish_reason=self._stop_reason or "STOP",
                    truncated=self._stop_reason == "max_tokens",
                )
            ]

        if event_type == "error":
            return [ErrorEvent(error=error_message(payload) or "Unknown error")]

        return []


class AnthropicBinding(ProviderBinding):
    name = "anthropic"
    label = "Anthropic"
    api_key_field = "anthropic_api_key"
    api_key_env = "ANTHROPIC_API_KEY"

    def stream_url(self, settings: Settings) -> str:
        return f"{str(settings.anthropic_base_url).rstrip('/')}/v1/messages"

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "anthropic-version": ANTHROPIC_VERSION,
            "x-api-key": api_key,
        }

    def build_payload(
        self,
        prompt: PromptParts,
        *,
        max_tokens: int,
        thinking: ThinkingOptions,
    ) -> dict[str, Any]:
        messages: list[dict[str, str]] = [
            {
                "role": "assistant" if message.get("role") == "assistant" else "user",
                "content": message.get("content", ""),
            }
            for message in prompt.history
        ]
        if prompt.user or not messages:
            messages.append({"role": "user", "content": prompt.user})

        payload: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "system": prompt.system,
            "messages": messages,
            "stream": True,
        }
        # Thinking is switched off by omission; there is no "disabled" value to send.
        if thinking.enabled and thinking.budget >= MIN_THINKING_BUDGET:
            payload["thinking"] = {"type": "enabled", "budget_tokens": thinking.budget}
            if max_tokens <= thinking.budget:
                payload["max_tokens"] = thinking.budget + MIN_THINKING_BUDGET
        return payload

    def new_parser(self) -> StreamParser:
        return AnthropicStreamParser()


__all__ = ["ANTHROPIC_VERSION", "AnthropicBinding", "AnthropicStreamParser"]
