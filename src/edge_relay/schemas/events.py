"""Normalized events streamed back to callers."""

from __future__ import annotations

import json
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Event(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class ToolsEvent(_Event):
    type: Literal["tools"] = "tools"
    tool_outputs: list[dict[str, Any]] = Field(alias="toolOutputs")


class DeltaEvent(_Event):
    type: Literal["delta"] = "delta"
    text: str


class DoneEvent(_Event):
    type: Literal["done"] = "done"
    finish_reason: Optional[str] = Field(default=None, alias="finishReason")
    truncated: bool = False


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    error: str


StreamEvent = Annotated[
    Union[ToolsEvent, DeltaEvent, DoneEvent, ErrorEvent],
    Field(discriminator="type"),
]

TERMINAL_EVENTS = (DoneEvent, ErrorEvent)


def is_terminal(event: BaseModel) -> bool:
    return isinstance(event, TERMINAL_EVENTS)


def to_sse(event: BaseModel | dict[str, Any]) -> dict[str, str]:
    """Render an event as an `sse_starlette` payload (data line only)."""

    if isinstance(event, BaseModel):
        data = event.model_dump_json(by_alias=True)
    else:
        data = json.dumps(event, ensure_ascii=False)
    return {"data": data}


__all__ = [
    "DeltaEvent",
    "DoneEvent",
    "ErrorEvent",
    "StreamEvent",
    "ToolsEvent",
    "is_terminal",
    "to_sse",
]
