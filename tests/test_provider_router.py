"""Tests for model routing, token coercion and provider payload shapes."""

from __future__ import annotations

import math

import pytest

from edge_relay.config import ConfigurationError
from edge_relay.providers import (
    AnthropicBinding,
    GeminiBinding,
    PromptParts,
    ThinkingOptions,
    XaiBinding,
    coerce_max_output_tokens,
    resolve_provider,
)
from edge_relay.providers.anthropic import AnthropicStreamParser
from edge_relay.providers.gemini import GeminiStreamParser
from edge_relay.providers.xai import XaiStreamParser
from edge_relay.schemas.events import DeltaEvent, DoneEvent, ErrorEvent


@pytest.mark.parametrize(
    "model,expected",
    [
        ("claude-sonnet-4-5", AnthropicBinding("claude-sonnet-4-5")),
        ("gemini-2.5-pro", GeminiBinding("gemini-2.5-pro")),
        ("grok-4-fast-non-reasoning", XaiBinding("grok-4-fast-non-reasoning")),
        ("gpt-4o", GeminiBinding("gemini-2.5-flash")),
        (None, GeminiBinding("gemini-2.5-flash")),
        ("", GeminiBinding("gemini-2.5-flash")),
        # Prefix match is case-sensitive and anchored at the start.
        ("Claude-3", GeminiBinding("gemini-2.5-flash")),
        ("my-claude", GeminiBinding("gemini-2.5-flash")),
    ],
)
def test_resolve_provider(model, expected):
    assert resolve_provider(model) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        (None, 32768),
        (4096, 4096),
        (0, 32768),
        (-5, 32768),
        (1024.9, 1024),
        (math.nan, 32768),
        (math.inf, 32768),
        ("abc", 32768),
        ("2048", 2048),
        ("  512tokens", 512),
        ("-1", 32768),
        (True, 32768),
        ([100], 32768),
    ],
)
def test_coerce_max_output_tokens(value, expected):
    assert coerce_max_output_tokens(value, 32768) == expected


def test_api_key_missing_raises_configuration_error(make_settings):
    settings = make_settings(gemini_api_key="g-key")
    with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY is not configured"):
        AnthropicBinding("claude-sonnet-4-5").api_key(settings)
    assert GeminiBinding("gemini-2.5-flash").api_key(settings) == "g-key"


class TestGeminiBinding:
    def test_stream_url_and_headers(self, make_settings):
        settings = make_settings()
        binding = GeminiBinding("gemini-2.5-flash")
        assert binding.stream_url(settings) == (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            "gemini-2.5-flash:streamGenerateContent?alt=sse"
        )
        assert binding.headers("k")["x-goog-api-key"] == "k"

    def test_single_turn_joins_system_and_user(self):
        payload = GeminiBinding("gemini-2.5-flash").build_payload(
            PromptParts(system="S", user="U"),
            max_tokens=100,
            thinking=ThinkingOptions(),
        )
        assert payload["contents"] == [{"role": "user", "parts": [{"text": "S\n\nU"}]}]
        assert payload["generationConfig"]["maxOutputTokens"] == 100
        assert payload["generationConfig"]["thinkingConfig"] == {"thinkingBudget": 0}
        assert all(s["threshold"] == "BLOCK_NONE" for s in payload["safetySettings"])

    def test_history_maps_assistant_to_model(self):
        payload = GeminiBinding("gemini-2.5-flash").build_payload(
            PromptParts(
                system="S",
                user="next",
                history=[
                    {"role": "user", "content": "q"},
                    {"role": "assistant", "content": "a"},
                ],
            ),
            max_tokens=10,
            thinking=ThinkingOptions(),
        )
        assert [c["role"] for c in payload["contents"]] == ["user", "user", "model", "user"]
        assert payload["contents"][-1]["parts"][0]["text"] == "next"

    def test_thinking_budget_when_enabled(self):
        payload = GeminiBinding("gemini-2.5-flash").build_payload(
            PromptParts(system="", user="U"),
            max_tokens=10,
            thinking=ThinkingOptions(enabled=True, budget=2048),
        )
        assert payload["generationConfig"]["thinkingConfig"] == {"thinkingBudget": 2048}

    def test_pro_model_omits_thinking_when_disabled(self):
        payload = GeminiBinding("gemini-2.5-pro").build_payload(
            PromptParts(system="", user="U"),
            max_tokens=10,
            thinking=ThinkingOptions(enabled=False, budget=0),
        )
        assert "thinkingConfig" not in payload["generationConfig"]


class TestAnthropicBinding:
    def test_payload_shape(self):
        payload = AnthropicBinding("claude-sonnet-4-5").build_payload(
            PromptParts(system="S", user="U"),
            max_tokens=500,
            thinking=ThinkingOptions(),
        )
        assert payload == {
            "model": "claude-sonnet-4-5",
            "max_tokens": 500,
            "system": "S",
            "messages": [{"role": "user", "content": "U"}],
            "stream": True,
        }

    def test_thinking_raises_max_tokens_above_budget(self):
        payload = AnthropicBinding("claude-sonnet-4-5").build_payload(
            PromptParts(system="S", user="U"),
            max_tokens=2000,
            thinking=ThinkingOptions(enabled=True, budget=4000),
        )
        assert payload["thinking"] == {"type": "enabled", "budget_tokens": 4000}
        assert payload["max_tokens"] == 5024

    def test_small_thinking_budget_is_omitted(self):
        payload = AnthropicBinding("claude-sonnet-4-5").build_payload(
            PromptParts(system="S", user="U"),
            max_tokens=2000,
            thinking=ThinkingOptions(enabled=True, budget=100),
        )
        assert "thinking" not in payload

    def test_headers(self):
        headers = AnthropicBinding("claude-sonnet-4-5").headers("k")
        assert headers["x-api-key"] == "k"
        assert headers["anthropic-version"] == "2023-06-01"


class TestXaiBinding:
    def test_payload_shape(self, make_settings):
        binding = XaiBinding("grok-4-fast-non-reasoning")
        payload = binding.build_payload(
            PromptParts(
                system="S",
                user="U",
                history=[{"role": "assistant", "content": "earlier"}],
            ),
            max_tokens=64,
            thinking=ThinkingOptions(enabled=True, budget=5000),
        )
        assert payload["messages"] == [
            {"role": "system", "content": "S"},
            {"role": "assistant", "content": "earlier"},
            {"role": "user", "content": "U"},
        ]
        assert payload["max_tokens"] == 64
        assert payload["stream"] is True
        assert binding.stream_url(make_settings()) == "https://api.x.ai/v1/chat/completions"
        assert binding.headers("k")["Authorization"] == "Bearer k"


class TestParsers:
    def test_gemini_error_payload(self):
        events = GeminiStreamParser().feed({"error": {"message": "quota"}})
        assert events == [ErrorEvent(error="quota")]

    def test_gemini_delta_and_finish_in_one_payload(self):
        events = GeminiStreamParser().feed(
            {"candidates": [{"content": {"parts": [{"text": "x"}]}, "finishReason": "STOP"}]}
        )
        assert events == [DeltaEvent(text="x"), DoneEvent(finish_reason="STOP")]

    def test_anthropic_truncation_from_message_delta(self):
        parser = AnthropicStreamParser()
        assert parser.feed({"type": "message_delta", "delta": {"stop_reason": "max_tokens"}}) == []
        assert parser.feed({"type": "message_stop"}) == [
            DoneEvent(finish_reason="max_tokens", truncated=True)
        ]

    def test_anthropic_ignores_thinking_deltas(self):
        parser = AnthropicStreamParser()
        events = parser.feed(
            {"type": "content_block_delta", "delta": {"type": "thinking_delta", "thinking": "hm"}}
        )
        assert events == []

    def test_anthropic_error_event(self):
        events = AnthropicStreamParser().feed(
            {"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}
        )
        assert events == [ErrorEvent(error="Overloaded")]

    def test_xai_finish_reason_stop(self):
        events = XaiStreamParser().feed({"choices": [{"delta": {}, "finish_reason": "stop"}]})
        assert events == [DoneEvent(finish_reason="stop", truncated=False)]
