from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from pyhrlog.exceptions import HrLogStorageError
from pyhrlog.storage import NullStorageSink, SqliteStorageSink, table_name_for


def test_table_name_is_sanitized() -> None:
    assert table_name_for("abc") == "CODE_abc"
    assert table_name_for("a-b c!d_9") == "CODE_abcd_9"
    assert table_name_for('x"; DROP TABLE y; --') == "CODE_xDROPTABLEy"


def test_sqlite_sink_creates_table_and_appends_rows(tmp_path: Path) -> None:
    db_path = tmp_path / "hr.db"
    sink = SqliteStorageSink(db_path)

    assert sink.enabled is True
    assert sink.ensure_table("ab-c") == "CODE_abc"
    assert sink.ensure_table("ab-c") == "CODE_abc"
    sink.insert_reading("ab-c", "2026-01-01 10:00:00", 72)
    sink.insert_reading("ab-c", "10:00:02", 74)
    sink.close()

    with sqlite3.connect(db_path) as conn:
        rows = conn.execute('SELECT time_text, heart_rate FROM "CODE_abc"').fetchall()
    assert rows == [("2026-01-01 10:00:00", 72), ("10:00:02", 74)]


def test_sqlite_sink_reopens_after_close(tmp_path: Path) -> None:
    sink = SqliteStorageSink(tmp_path / "hr.db")
    sink.insert_reading("abc", "10:00:00", 60)
    sink.close()

    sink.insert_reading("abc", "10:00:02", 61)
    sink.close()

    with sqlite3.connect(tmp_path / "hr.db") as conn:
        count = conn.execute('SELECT COUNT(*) FROM "CODE_abc"').fetchone()[0]
    assert count == 2


def test_sqlite_sink_wraps_errors(tmp_path: Path) -> None:
    sink = SqliteStorageSink(tmp_path / "hr.db")

    with pytest.raises(HrLogStorageError) as excinfo:
        sink.insert_reading("abc", "10:00:00", 999)

    assert excinfo.value.tracker_id == "abc"
    sink.close()


def test_null_sink_is_disabled() -> None:
    sink = NullStorageSink()

    assert sink.enabled is False
    assert sink.ensure_table("abc") == "CODE_abc"
    sink.insert_reading("abc", "10:00:00", 60)
    sink.close()


def test_sqlite_sink_wraps_unbindable_values(tmp_path: Path) -> None:
    sink = SqliteStorageSink(tmp_path / "hr.db")

    with pytest.raises(HrLogStorageError) as excinfo:
        sink.insert_reading("big", "10:00:00", 10**20)

    assert excinfo.value.tracker_id == "big"
    sink.close()
