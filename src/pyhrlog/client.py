"""High-level async facade wiring stream, registry and persistence."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

import aiohttp

from pyhrlog._stream import HypeRateStreamRuntime
from pyhrlog.config import HrLogConfig
from pyhrlog.exceptions import HrLogConfigError
from pyhrlog.ingestion.stream import DisplaySink, StreamEventDispatcher
from pyhrlog.persistence import PersistenceScheduler
from pyhrlog.settings import HrLogSettings, SettingsStore
from pyhrlog.state.models import TrackerState
from pyhrlog.state.store import TrackerRegistry
from pyhrlog.storage import NullStorageSink, SqliteStorageSink, StorageSink

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def build_storage(settings: HrLogSettings) -> StorageSink:
    """Storage sink matching the persistence switch in *settings*."""
    if not settings.sql_enabled:
        _logger.info("SQL logging disabled (sqlEnabled=false)")
        return NullStorageSink()
    _logger.info("SQL enabled, writing to %s", settings.db_path)
    return SqliteStorageSink(settings.db_path)


class HeartRateLogger:
    """Async client for HypeRate heart-rate logging.

    Usage::

        async with HeartRateLogger(HrLogConfig.from_env()) as hrlog:
            await hrlog.add_tracker("abc", "Alice")
            ...

    Settings are read in the constructor. Entering the context opens the
    websocket and starts the persistence timer; leaving it closes the
    socket and cancels every timer.
    """

    def __init__(
        self,
        config: HrLogConfig,
        *,
        settings_store: SettingsStore | None = None,
        storage: StorageSink | None = None,
        session: aiohttp.ClientSession | None = None,
        on_update: DisplaySink | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._config = config
        self._settings_store = settings_store or SettingsStore(config.settings_path)
        self._settings = self._settings_store.load()
        self._external_session = session is not None
        self._http_session = session
        self._runtime: HypeRateStreamRuntime | None = None

        self._registry = TrackerRegistry(clock=clock)
        for entry in self._settings.trackers:
            self._registry.register(entry.id, entry.name)

        self._storage = storage if storage is not None else build_storage(self._settings)
        self._dispatcher = StreamEventDispatcher(self._registry, display_sink=on_update)
        self._scheduler = PersistenceScheduler(
            self._registry,
            self._storage,
            write_interval_ms=self._settings.db_write_interval_ms,
            stale_threshold_ms=self._settings.stale_threshold_ms,
            clock=clock,
        )

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> HeartRateLogger:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Connect to the stream and start the persistence timer."""
        if self._runtime is not None:
            return
        if not self._config.api_key:
            raise HrLogConfigError("No HypeRate API key configured (set HRLOG_API_KEY or pass api_key)")
        if self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        self._runtime = HypeRateStreamRuntime(
            session=self._http_session,
            url=self._config.url,
            tracker_ids=self._registry.tracker_ids,
            on_event=self._dispatcher.handle,
            logger=_logger,
        )
        self._runtime.start()
        self._scheduler.start()

    async def close(self) -> None:
        """Shut down: close the socket, cancel all timers, release storage."""
        await self._scheduler.stop()
        runtime = self._runtime
        self._runtime = None
        if runtime is not None:
            await runtime.close()
        await asyncio.get_running_loop().run_in_executor(None, self._storage.close)
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Runtime control
    # ------------------------------------------------------------------

    async def add_tracker(self, tracker_id: str, name: str) -> bool:
        """Register a tracker, persist the tracker list and join its channel.

        Returns ``True`` when the tracker was not known before.
        """
        tracker_id = tracker_id.strip()
        if not tracker_id:
            raise ValueError("tracker id must be non-empty")

        created = self._registry.register(tracker_id, name)
        if created:
            self._settings = self._settings.with_tracker(tracker_id, name)
            self._settings_store.save(self._settings)
        _logger.info("Adding new heart rate tracker: %s (%s)", tracker_id, name)

        runtime = self._runtime
        if runtime is not None and runtime.is_connected:
            await runtime.join(tracker_id)
        return created

    def set_display_sink(self, on_update: DisplaySink | None) -> None:
        self._dispatcher.set_display_sink(on_update)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def registry(self) -> TrackerRegistry:
        return self._registry

    @property
    def settings(self) -> HrLogSettings:
        return self._settings

    @property
    def runtime(self) -> HypeRateStreamRuntime | None:
        return self._runtime

    @property
    def scheduler(self) -> PersistenceScheduler:
        return self._scheduler

    def snapshot(self) -> Mapping[str, TrackerState]:
        return self._registry.snapshot()
