"""Parse the project-root ``logging_settings.conf`` file."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

_LEVEL_MAP: dict[str, int | None] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": None,
}

_LEVEL_DEFAULTS = {"terminal": "info", "file": "off"}
_FALLBACK_LEVEL = "info"
_DEFAULT_RETENTION_HOURS = 48


@dataclass(frozen=True)
class LoggingSettings:
    terminal_level: int | None
    file_level: int | None
    retention_hours: int

    @property
    def file_enabled(self) -> bool:
        return self.file_level is not None


def _resolve_level(value: str) -> int | None:
    return _LEVEL_MAP.get(value.strip().lower(), _LEVEL_MAP[_FALLBACK_LEVEL])


def parse_logging_settings(path: Path) -> LoggingSettings:
    """Read ``key = value`` lines; unknown keys and malformed lines are skipped.

    ``terminal`` and ``file`` take ``debug``/``info``/``warning``/``error``/``off``.
    File logging stays off unless ``file`` is set. ``retention_hours`` is
    clamped at zero, which disables log pruning.
    """

    levels: dict[str, int | None] = {
        key: _LEVEL_MAP[default] for key, default in _LEVEL_DEFAULTS.items()
    }
    retention_hours = _DEFAULT_RETENTION_HOURS

    if path.exists():
        for raw_line in path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = (part.strip() for part in line.split("=", 1))
            key = key.lower()
            if key == "retention_hours":
                try:
                    retention_hours = max(0, int(value))
                except ValueError:
                    retention_hours = _DEFAULT_RETENTION_HOURS
            elif key in _LEVEL_DEFAULTS:
                levels[key] = _resolve_level(value)

    return LoggingSettings(
        terminal_level=levels["terminal"],
        file_level=levels["file"],
        retention_hours=retention_hours,
    )


__all__ = ["LoggingSettings", "parse_logging_settings"]
