import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

from edge_relay.logging_handlers import (
    DateStampedFileHandler,
    cleanup_old_logs,
    dated_log_path,
)


def _age(path: Path, **delta) -> None:
    stamp = (datetime.now(timezone.utc) - timedelta(**delta)).timestamp()
    os.utime(path, (stamp, stamp))


def test_date_stamped_file_handler_creates_expected_path(tmp_path) -> None:
    current = datetime(2024, 5, 26, 12, 34, 56, tzinfo=timezone.utc)
    handler = DateStampedFileHandler(tmp_path / "app", current_time=current)
    try:
        expected = (
            tmp_path / "app" / "2024-05-26" / "edge-relay_2024-05-26_12-34-56.log"
        ).resolve()
        file_path = Path(handler.baseFilename)
        assert file_path == expected
        assert file_path.exists()

        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname=__file__,
            lineno=0,
            msg="hello relay",
            args=(),
            exc_info=None,
        )
        handler.emit(record)
        assert "hello relay" in file_path.read_text(encoding="utf-8")
    finally:
        handler.close()


def test_dated_log_path_uses_local_day(tmp_path) -> None:
    current = datetime(2023, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    path = dated_log_path(tmp_path, "relay", current, ZoneInfo("America/New_York"))
    assert path == (tmp_path / "2023-01-01" / "relay_2023-01-01_22-04-05.log").resolve()


def test_cleanup_old_logs(tmp_path) -> None:
    log_dir = tmp_path / "logs" / "app"
    log_dir.mkdir(parents=True)

    old_file = log_dir / "old.log"
    old_file.write_text("old")
    _age(old_file, days=3)

    recent_file = log_dir / "recent.log"
    recent_file.write_text("recent")
    _age(recent_file, days=1)

    other_file = log_dir / "notes.txt"
    other_file.write_text("not a log")
    _age(other_file, days=30)

    files_deleted, errors = cleanup_old_logs([log_dir], retention_hours=48)

    assert (files_deleted, errors) == (1, 0)
    assert not old_file.exists()
    assert recent_file.exists()
    assert other_file.exists()


def test_cleanup_old_logs_disabled(tmp_path) -> None:
    old_file = tmp_path / "old.log"
    old_file.write_text("content")
    _age(old_file, days=100)

    assert cleanup_old_logs([tmp_path], retention_hours=0) == (0, 0)
    assert old_file.exists()


def test_cleanup_removes_empty_day_directories(tmp_path) -> None:
    day_dir = tmp_path / "2024-01-01"
    day_dir.mkdir()
    old_file = day_dir / "old.log"
    old_file.write_text("content")
    _age(old_file, days=100)

    files_deleted, _ = cleanup_old_logs([tmp_path, tmp_path / "missing"], retention_hours=48)

    assert files_deleted == 1
    assert not day_dir.exists()
