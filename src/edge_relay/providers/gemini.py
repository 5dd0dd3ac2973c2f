"""Gemini streaming binding."""

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

SAFETY_SETTINGS = [
    {"category": category, "threshold": "BLOCK_NONE"}
    for category in (
        "HARM_CATEGORY_HARASSMENT",
        "HARM_CATEGORY_HATE_SPEECH",
        "HARM_CATEGORY_SEXUALLY_EXPLICIT",
        "HARM_CATEGORY_DANGEROUS_CONTENT",
    )
]


def supports_thinking_disable(model: str) -> bool:
    """Pro models always reason; a zero budget is rejected for them."""

    return "-pro" not in model


def gemini_contents(prompt: PromptParts) -> list[dict[str, Any]]:
    if not prompt.history:
        return [
            {
                "role": "user",
                "parts": [{"text": f"{prompt.system}\n\n{prompt.user}"}],
            }
        ]

    contents: list[dict[str, Any]] = []
    if prompt.system:
        contents.append({"role": "user", "parts": [{"text": prompt.system}]})
    for message in prompt.history:
        role = "model" if message.get("role") == "assistant" else "user"
        contents.append({"role": role, "parts": [{"text": message.get("content", "")}]})
    if prompt.user:
        contents.append({"role": "user", "parts": [{"text": prompt.user}]})
    return contents


class GeminiStreamParser(StreamParser):
    def feed(self, payload: Mapping[str, Any]) -> list[ProviderEvent]:
        events: list[ProviderEvent] = []
        candidate = first_mapping(payload.get("candidates"))
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, Mapping) else None
        text = first_mapping(parts).get("text")
        if isinstance(text, str) and text:
            events.append(DeltaEvent(text=text))

        finish_reason = candidate.get("finishReason")
        if finish_reason:
            events.append(
                DoneEvent(
                    finish_reason=str(finish_reason),
                    truncated=finish_reason == "MAX_TOKENS",
                )
            )
        elif not events:
            message = error_message(payload)
            if message is not None:
                events.append(ErrorEvent(error=message))
        return events


class GeminiBinding(ProviderBinding):
    name = "gemini"
    label = "Gemini"
    api_key_field = "gemini_api_key"
    api_key_env = "GEMINI_API_KEY"

    def model_url(self, settings: Settings, method: str) -> str:
        base = str(settings.gemini_base_url).rstrip("/")
        return f"{base}/v1beta/models/{self.model}:{method}"

    def stream_url(self, settings: Settings) -> str:
        return self.model_url(settings, "streamGenerateContent") + "?alt=sse"

    def headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": api_key,
        }

    def build_payload(
        self,
        prompt: PromptParts,
        *,
        max_tokens: int,
        thinking: ThinkingOptions,
    ) -> dict[str, Any]:
        generation_config: dict[str, Any] = {
            "temperature": 0.7,
            "maxOutputTokens": max_tokens,
        }
        if supports_thinking_disable(self.model):
            generation_config["thinkingConfig"] = {
                "thinkingBudget": thinking.budget if thinking.enabled else 0
            }
        elif thinking.enabled and thinking.budget > 0:
            generation_config["thinkingConfig"] = {"thinkingBudget": thinking.budget}

        return {
            "contents": gemini_contents(prompt),
            "safetySettings": SAFETY_SETTINGS,
            "generationConfig": generation_config,
        }

    def new_parser(self) -> StreamParser:
        return GeminiStreamParser()


__all__ = [
    "GeminiBinding",
    "GeminiStreamParser",
    "SAFETY_SETTINGS",
    "gemini_contents",
    "supports_thinking_disable",
]
