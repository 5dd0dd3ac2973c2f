"""Streaming relay: context enrichment, tools, SSE re-framing, batch vision."""

from .context import enrich_system_prompt
from .sse import SseLineBuffer, reframe
from .streaming import ChatStream, ChatStreamService
from .tools import ToolExecutor, ToolRun
from .vision import BatchImageProcessor, VisionClient

__all__ = [
    "BatchImageProcessor",
    "ChatStream",
    "ChatStreamService",
    "SseLineBuffer",
    "ToolExecutor",
    "ToolRun",
    "VisionClient",
    "enrich_system_prompt",
    "reframe",
]
