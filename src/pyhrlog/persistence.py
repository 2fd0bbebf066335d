"""Timed persistence of fresh readings.

The scheduler runs on its own clock, independent of message receipt. On
each tick it labels the tick time, picks every tracker whose reading is
present and not stale, and writes one row per tracker through the storage
sink. Storage calls run in the default executor so the event loop keeps
dispatching inbound frames while a write is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from pyhrlog._constants import DEFAULT_STALE_THRESHOLD_MS, DEFAULT_WRITE_INTERVAL_MS
from pyhrlog.exceptions import HrLogStorageError
from pyhrlog.state.models import TrackerState
from pyhrlog.state.policy import should_persist
from pyhrlog.state.store import TrackerRegistry
from pyhrlog.storage import StorageSink

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TimeLabeler:
    """Build the human-readable ``time_text`` column value.

    The first label of each calendar day is ``YYYY-MM-DD HH:MM:SS``; every
    following label on the same day is only ``HH:MM:SS``.
    """

    def __init__(self) -> None:
        self._last_day = ""

    def label(self, now: datetime) -> str:
        date_part = now.strftime("%Y-%m-%d")
        time_part = now.strftime("%H:%M:%S")
        if date_part != self._last_day:
            self._last_day = date_part
            return f"{date_part} {time_part}"
        return time_part


@dataclass(frozen=True, slots=True)
class PendingWrite:
    tracker_id: str
    time_text: str
    heart_rate: int


def select_writes(
    snapshot: Mapping[str, TrackerState],
    *,
    now: datetime,
    stale_threshold: timedelta,
    time_text: str,
) -> list[PendingWrite]:
    """Rows to write for one tick: readings present and changed within the threshold."""
    writes: list[PendingWrite] = []
    for tracker_id, state in snapshot.items():
        heart_rate = state.heart_rate
        if heart_rate is None or not should_persist(state, now=now, threshold=stale_threshold):
            continue
        writes.append(PendingWrite(tracker_id=tracker_id, time_text=time_text, heart_rate=heart_rate))
    return writes


class PersistenceScheduler:
    """Periodic writer of fresh registry readings.

    Usage::

        scheduler = PersistenceScheduler(registry, storage, write_interval_ms=2000)
        scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        registry: TrackerRegistry,
        storage: StorageSink,
        *,
        write_interval_ms: int = DEFAULT_WRITE_INTERVAL_MS,
        stale_threshold_ms: int = DEFAULT_STALE_THRESHOLD_MS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._registry = registry
        self._storage = storage
        self._interval = write_interval_ms / 1000.0
        self._stale_threshold = timedelta(milliseconds=stale_threshold_ms)
        self._clock = clock
        self._labeler = TimeLabeler()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start ticking on the running event loop."""
        if self.is_running:
            return
        if not self._storage.enabled:
            _logger.info("Persistence disabled; readings will not be stored")
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.tick()
            except Exception:
                _logger.error("Persistence tick failed", exc_info=True)

    async def tick(self) -> int:
        """Run one persistence pass; returns the number of rows written."""
        if not self._storage.enabled:
            return 0

        now = self._clock()
        time_text = self._labeler.label(now)
        writes = select_writes(
            self._registry.snapshot(),
            now=now,
            stale_threshold=self._stale_threshold,
            time_text=time_text,
        )
        if not writes:
            return 0

        results = await asyncio.gather(*(self._write(w) for w in writes))
        return sum(1 for ok in results if ok)

    async def _write(self, write: PendingWrite) -> bool:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._persist_row, write)
        except HrLogStorageError:
            _logger.error("Error storing reading for %s", write.tracker_id, exc_info=True)
            return False
        except Exception:
            _logger.exception("Unexpected storage failure for %s", write.tracker_id)
            return False
        return True

    def _persist_row(self, write: PendingWrite) -> None:
        self._storage.ensure_table(write.tracker_id)
        self._storage.insert_reading(write.tracker_id, write.time_text, write.heart_rate)
