"""Storage sinks for persisted heart-rate readings.

Each tracker gets its own append-only table ``CODE_<id>`` with the id
reduced to ``[A-Za-z0-9_]``. The sqlite implementation keeps one cached
connection guarded by a lock, so it can be driven from executor threads.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from pyhrlog._constants import TABLE_PREFIX
from pyhrlog.exceptions import HrLogStorageError

_logger = logging.getLogger(__name__)

_UNSAFE_IDENTIFIER_CHARS = re.compile(r"[^a-zA-Z0-9_]")


def table_name_for(tracker_id: str) -> str:
    """Per-tracker table name, safe to interpolate into SQL."""
    return f"{TABLE_PREFIX}{_UNSAFE_IDENTIFIER_CHARS.sub('', tracker_id)}"


class StorageSink(Protocol):
    """Structural interface used by the persistence scheduler."""

    @property
    def enabled(self) -> bool: ...

    def ensure_table(self, tracker_id: str) -> str: ...

    def insert_reading(self, tracker_id: str, time_text: str, heart_rate: int) -> None: ...

    def close(self) -> None: ...


class NullStorageSink:
    """Sink used when persistence is disabled; never writes anything."""

    @property
    def enabled(self) -> bool:
        return False

    def ensure_table(self, tracker_id: str) -> str:
        return table_name_for(tracker_id)

    def insert_reading(self, tracker_id: str, time_text: str, heart_rate: int) -> None:
        return None

    def close(self) -> None:
        return None


class SqliteStorageSink:
    """sqlite-backed sink with one table per tracker."""

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.Lock()
        self._known_tables: set[str] = set()

    @property
    def enabled(self) -> bool:
        return True

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            if self._db_path.parent != Path("."):
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path), timeout=10.0, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA busy_timeout=5000;")
            _logger.info("Opened sqlite database %s", self._db_path)
        return self._conn

    def ensure_table(self, tracker_id: str) -> str:
        """Create the tracker's table if needed and return its name."""
        table = table_name_for(tracker_id)
        with self._lock:
            if table in self._known_tables:
                return table
            try:
                conn = self._get_conn()
                conn.execute(
                    f"""CREATE TABLE IF NOT EXISTS "{table}" (
                        time_text VARCHAR(20) NOT NULL,
                        heart_rate INTEGER NOT NULL CHECK (heart_rate BETWEEN 0 AND 255)
                    )"""
                )
                conn.commit()
            except sqlite3.Error as exc:
                raise HrLogStorageError(f"Error creating table {table}: {exc}", tracker_id=tracker_id) from exc
            self._known_tables.add(table)
        return table

    def insert_reading(self, tracker_id: str, time_text: str, heart_rate: int) -> None:
        table = self.ensure_table(tracker_id)
        with self._lock:
            try:
                conn = self._get_conn()
                conn.execute(f'INSERT INTO "{table}" (time_text, heart_rate) VALUES (?, ?)', (time_text, heart_rate))
                conn.commit()
            except (sqlite3.Error, OverflowError, ValueError) as exc:
                raise HrLogStorageError(f"Error storing data in {table}: {exc}", tracker_id=tracker_id) from exc

    def close(self) -> None:
        with self._lock:
            conn = self._conn
            self._conn = None
            self._known_tables.clear()
        if conn is not None:
            conn.close()
