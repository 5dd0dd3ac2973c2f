"""Re-frame upstream Server-Sent Event byte streams into canonical events."""

from __future__ import annotations

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Mapping

from ..providers.base import ProviderEvent, StreamParser
from ..schemas.events import DeltaEvent, DoneEvent, ErrorEvent, is_terminal

logger = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class SseLineBuffer:
    """Accumulate bytes and hand back only complete lines.

    Provider chunks do not line up with SSE lines (or even with UTF-8 code
    points), so partial input stays buffered until its newline arrives.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        self._pending += self._decoder.decode(chunk)
        if "\n" not in self._pending:
            return []
        *lines, self._pending = self._pending.split("\n")
        return [line[:-1] if line.endswith("\r") else line for line in lines]


def extract_data_payload(line: str) -> str | None:
    """Return the payload of a `data: ` line, or None for anything else."""

    if not line.strip() or line.startswith(":"):
        return None
    if not line.startswith(DATA_PREFIX):
        return None
    payload = line[len(DATA_PREFIX):].strip()
    return payload or None


def decode_payload(payload: str) -> Mapping[str, Any] | None:
    if payload == DONE_SENTINEL:
        return None
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse SSE payload: %s (line: %s...)", exc, payload[:100])
        return None
    if not isinstance(parsed, Mapping):
        logger.debug("Ignoring non-object SSE payload: %s", payload[:100])
        return None
    return parsed


async def reframe(
    chunks: AsyncIterable[bytes],
    parser: StreamParser,
    *,
    source: str = "upstream",
) -> AsyncIterator[ProviderEvent]:
    """Yield delta events and exactly one terminal event for an upstream stream.

    Reading stops at the first terminal event. An unterminated final line is
    discarded. A stream that ends without a terminal event is closed with
    ``done`` and no finish reason; a reader failure becomes ``error``.
    """

    buffer = SseLineBuffer()
    chunk_count = 0
    text_length = 0

    def _events_for(lines: list[str]) -> list[ProviderEvent]:
        events: list[ProviderEvent] = []
        for line in lines:
            payload = extract_data_payload(line)
            if payload is None:
                continue
            parsed = decode_payload(payload)
            if parsed is None:
                continue
            events.extend(parser.feed(parsed))
        return events

    try:
        async for chunk in chunks:
            chunk_count += 1
            for event in _events_for(buffer.feed(chunk)):
                if isinstance(event, DeltaEvent):
                    text_length += len(event.text)
                yield event
                if is_terminal(event):
                    logger.info(
                        "%s stream finished (%s) after %d chunks, %d chars",
                        source,
                        getattr(event, "finish_reason", None) or "error",
                        chunk_count,
                        text_length,
                    )
                    return
    except Exception as exc:
        logger.exception("%s stream failed after %d chunks", source, chunk_count)
        yield ErrorEvent(error=str(exc) or type(exc).__name__)
        return

    logger.warning(
        "%s stream ended without a finish signal after %d chunks, %d chars",
        source,
        chunk_count,
        text_length,
    )
    yield DoneEvent(finish_reason=None, truncated=False)


__all__ = [
    "DATA_PREFIX",
    "DONE_SENTINEL",
    "SseLineBuffer",
    "decode_payload",
    "extract_data_payload",
    "reframe",
]
