"""Shared shapes for upstream provider bindings."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Mapping, Sequence

from ..config import Settings
from ..schemas.events import DeltaEvent, DoneEvent, ErrorEvent

ProviderEvent = DeltaEvent | DoneEvent | ErrorEvent


@dataclass(frozen=True)
class PromptParts:
    """Prompt text after context enrichment and tool augmentation."""

    system: str
    user: str
    history: Sequence[Mapping[str, str]] = field(default_factory=tuple)


@dataclass(frozen=True)
class ThinkingOptions:
    enabled: bool = False
    budget: int = 0


class StreamParser(ABC):
    """Turn one decoded `data:` payload into zero or more canonical events.

    Parsers are created per stream and may keep state between payloads.
    """

    @abstractmethod
    def feed(self, payload: Mapping[str, Any]) -> list[ProviderEvent]:
        ...


class ProviderBinding(ABC):
    """Everything needed to call one provider for one model."""

    name: ClassVar[str]
    label: ClassVar[str]
    api_key_field: ClassVar[str]
    api_key_env: ClassVar[str]

    def __init__(self, model: str) -> None:
        self.model = model

    def __repr__(self) -> str:
        return f"{type(self).__name__}(model={self.model!r})"

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.model == other.model  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.model))

    def api_key(self, settings: Settings) -> str:
        return settings.require_secret(self.api_key_field, self.api_key_env)

    @abstractmethod
    def stream_url(self, settings: Settings) -> str:
        ...

    @abstractmethod
    def headers(self, api_key: str) -> dict[str, str]:
        ...

    @abstractmethod
    def build_payload(
        self,
        prompt: PromptParts,
        *,
        max_tokens: int,
        thinking: ThinkingOptions,
    ) -> dict[str, Any]:
        ...

    @abstractmethod
    def new_parser(self) -> StreamParser:
        ...


def first_mapping(items: Any) -> Mapping[str, Any]:
    """Return ``items[0]`` when it is a mapping, else an empty mapping."""

    if isinstance(items, Sequence) and not isinstance(items, str) and items:
        head = items[0]
        if isinstance(head, Mapping):
            return head
    return {}


def error_message(payload: Mapping[str, Any]) -> str | None:
    error = payload.get("error")
    if isinstance(error, Mapping):
        message = error.get("message")
        return str(message) if message else "Unknown error"
    if isinstance(error, str) and error:
        return error
    return None


__all__ = [
    "PromptParts",
    "ProviderBinding",
    "ProviderEvent",
    "StreamParser",
    "ThinkingOptions",
    "error_message",
    "first_mapping",
]
