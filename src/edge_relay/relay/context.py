"""Merge caller-attached project context into the system prompt."""

from __future__ import annotations

import json
from typing import Any, Callable, Mapping

CONTEXT_HEADER = "===== ATTACHED PROJECT CONTEXT ====="
CONTEXT_DATA_HEADER = "===== FULL CONTEXT DATA ====="
TRUNCATION_MARKER = "\n...[truncated for length]"
_CLOSING_INSTRUCTION = (
    "Please use the above context to inform your responses. "
    "The context includes full object data with all properties and content."
)


def _count_line(label: str, noun: str) -> Callable[[Any], str]:
    return lambda value: f"{label}: {len(value)} {noun} attached"


def _summarize_databases(databases: Any) -> str:
    counts: dict[str, int] = {}
    for entry in databases:
        kind = entry.get("type") if isinstance(entry, Mapping) else None
        key = str(kind) if kind else "unknown"
        counts[key] = counts.get(key, 0) + 1
    breakdown = ", ".join(f"{count} {kind}s" for kind, count in counts.items())
    return f"DATABASE SCHEMAS: {len(databases)} items ({breakdown})"


# Order matters: it is the order of the summary lines.
_SUMMARIZERS: tuple[tuple[str, Callable[[Any], str]], ...] = (
    ("projectMetadata", lambda _value: "PROJECT METADATA: included"),
    ("artifacts", _count_line("ARTIFACTS", "artifacts")),
    ("chatSessions", _count_line("CHAT SESSIONS", "sessions")),
    ("requirements", _count_line("REQUIREMENTS", "requirements")),
    ("standards", _count_line("STANDARDS", "standards")),
    ("techStacks", _count_line("TECH STACKS", "tech stacks")),
    ("canvasNodes", _count_line("CANVAS NODES", "nodes")),
    ("canvasEdges", _count_line("CANVAS EDGES", "edges")),
    ("canvasLayers", _count_line("CANVAS LAYERS", "layers")),
    ("files", _count_line("REPOSITORY FILES", "files")),
    ("databases", _summarize_databases),
)


def summarize_attached_context(attached_context: Mapping[str, Any] | None) -> list[str]:
    """Return one summary line per recognized, non-empty context field."""

    if not attached_context:
        return []

    lines: list[str] = []
    for field, summarize in _SUMMARIZERS:
        value = attached_context.get(field)
        if not value:
            continue
        if field != "projectMetadata" and not isinstance(value, (list, tuple)):
            continue
        lines.append(summarize(value))
    return lines


def truncate_context_json(text: str, char_limit: int | None) -> str:
    if char_limit is None or char_limit <= 0 or len(text) <= char_limit:
        return text
    return text[:char_limit] + TRUNCATION_MARKER


def enrich_system_prompt(
    system_prompt: str,
    attached_context: Mapping[str, Any] | None,
    *,
    char_limit: int | None = None,
) -> str:
    """Append a summary block and the serialized context to ``system_prompt``.

    The prompt is returned unchanged when no recognized field is attached. The
    JSON dump is capped at ``char_limit`` characters (``None`` or ``0`` means
    uncapped) and keeps a trailing marker when cut.
    """

    summary = summarize_attached_context(attached_context)
    if not summary:
        return system_prompt

    rendered = json.dumps(attached_context, ensure_ascii=False, indent=2, default=str)
    rendered = truncate_context_json(rendered, char_limit)

    return (
        f"{system_prompt}\n\n{CONTEXT_HEADER}\n"
        + "\n".join(summary)
        + f"\n\n{CONTEXT_DATA_HEADER}\n{rendered}\n\n{_CLOSING_INSTRUCTION}"
    )


__all__ = [
    "CONTEXT_DATA_HEADER",
    "CONTEXT_HEADER",
    "TRUNCATION_MARKER",
    "enrich_system_prompt",
    "summarize_attached_context",
    "truncate_context_json",
]
