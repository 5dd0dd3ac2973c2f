"""Upstream LLM provider bindings and model routing."""

from .anthropic import AnthropicBinding
from .base import PromptParts, ProviderBinding, StreamParser, ThinkingOptions
from .client import UpstreamClient, UpstreamError
from .gemini import GeminiBinding
from .router import coerce_max_output_tokens, resolve_provider
from .xai import XaiBinding

__all__ = [
    "AnthropicBinding",
    "GeminiBinding",
    "PromptParts",
    "ProviderBinding",
    "StreamParser",
    "ThinkingOptions",
    "UpstreamClient",
    "UpstreamError",
    "XaiBinding",
    "coerce_max_output_tokens",
    "resolve_provider",
]
