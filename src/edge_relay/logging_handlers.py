"""File logging for the relay: one file per process start, grouped by day."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Iterable

DEFAULT_LOG_DIR = Path("logs/app")
DEFAULT_PREFIX = "edge-relay"


def dated_log_path(
    directory: str | Path,
    prefix: str,
    current_time: datetime,
    tz: tzinfo = timezone.utc,
) -> Path:
    """Return ``<directory>/<YYYY-MM-DD>/<prefix>_<YYYY-MM-DD_HH-MM-SS>.log``."""

    local_time = current_time.astimezone(tz)
    file_name = f"{prefix}_{local_time.strftime('%Y-%m-%d_%H-%M-%S')}.log"
    return (Path(directory) / local_time.strftime("%Y-%m-%d") / file_name).resolve()


class DateStampedFileHandler(logging.FileHandler):
    """`FileHandler` whose file lives in a per-day folder under ``directory``."""

    def __init__(
        self,
        directory: str | Path = DEFAULT_LOG_DIR,
        *,
        prefix: str = DEFAULT_PREFIX,
        tz: tzinfo = timezone.utc,
        current_time: datetime | None = None,
        encoding: str | None = "utf-8",
        delay: bool = False,
    ) -> None:
        log_path = dated_log_path(
            directory, prefix, current_time or datetime.now(timezone.utc), tz
        )
        log_path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(log_path, mode="a", encoding=encoding, delay=delay)


def cleanup_old_logs(
    log_directories: Iterable[str | Path],
    retention_hours: int,
    logger: logging.Logger | None = None,
) -> tuple[int, int]:
    """Delete ``*.log`` files older than ``retention_hours`` and empty day folders.

    Returns ``(files_deleted, errors)``. A retention of zero or less is a no-op.
    """

    if retention_hours <= 0:
        return (0, 0)

    cutoff = datetime.now(timezone.utc) - timedelta(hours=retention_hours)
    files_deleted = 0
    errors = 0

    for directory in log_directories:
        root = Path(directory).resolve()
        if not root.is_dir():
            continue

        for log_file in root.rglob("*.log"):
            try:
                modified = datetime.fromtimestamp(log_file.stat().st_mtime, tz=timezone.utc)
                if modified < cutoff:
                    log_file.unlink()
                    files_deleted += 1
                    if logger:
                        logger.debug("Deleted old log file: %s", log_file)
            except OSError as exc:
                errors += 1
                if logger:
                    logger.warning("Failed to delete %s: %s", log_file, exc)

        for day_dir in root.iterdir():
            if day_dir.is_dir() and not any(day_dir.iterdir()):
                try:
                    day_dir.rmdir()
                except OSError as exc:
                    errors += 1
                    if logger:
                        logger.warning("Failed to remove %s: %s", day_dir, exc)

    if logger and files_deleted:
        logger.info(
            "Log cleanup complete: %d file(s) deleted, %d error(s)", files_deleted, errors
        )
    return (files_deleted, errors)


__all__ = [
    "DEFAULT_LOG_DIR",
    "DEFAULT_PREFIX",
    "DateStampedFileHandler",
    "cleanup_old_logs",
    "dated_log_path",
]
