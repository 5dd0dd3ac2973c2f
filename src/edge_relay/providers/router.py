"""Model-name based provider selection."""

from __future__ import annotations

import math
import re
from typing import Any

from .anthropic import AnthropicBinding
from .base import ProviderBinding
from .gemini import GeminiBinding
from .xai import XaiBinding

FALLBACK_MODEL = "gemini-2.5-flash"
DEFAULT_MAX_OUTPUT_TOKENS = 32768

_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")

_PREFIXES: tuple[tuple[str, type[ProviderBinding]], ...] = (
    ("claude", AnthropicBinding),
    ("gemini", GeminiBinding),
    ("grok", XaiBinding),
)


def resolve_provider(model_name: str | None) -> ProviderBinding:
    """Map a model name to its provider binding by exact prefix.

    Unrecognized (or missing) names fall back to Gemini Flash.
    """

    name = model_name or ""
    for prefix, binding_cls in _PREFIXES:
        if name.startswith(prefix):
            return binding_cls(name)
    return GeminiBinding(FALLBACK_MODEL)


def coerce_max_output_tokens(
    value: Any, default: int = DEFAULT_MAX_OUTPUT_TOKENS
) -> int:
    """Return a positive integer token budget, or ``default`` when ``value`` is unusable."""

    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value if value > 0 else default
    if isinstance(value, float):
        if not math.isfinite(value) or value < 1:
            return default
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT_RE.match(value)
        if match is None:
            return default
        parsed = int(match.group(1))
        return parsed if parsed > 0 else default
    return default


__all__ = [
    "DEFAULT_MAX_OUTPUT_TOKENS",
    "FALLBACK_MODEL",
    "coerce_max_output_tokens",
    "resolve_provider",
]
