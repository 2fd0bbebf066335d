from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import aiohttp
import pytest

from pyhrlog.client import HeartRateLogger
from pyhrlog.config import HrLogConfig
from pyhrlog.exceptions import HrLogConfigError
from pyhrlog.settings import SettingsStore
from pyhrlog.state.models import TrackerState
from pyhrlog.storage import NullStorageSink


class FakeWebSocket:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.closed = False
        self._queue: asyncio.Queue[Any] = asyncio.Queue()

    async def send_str(self, data: str) -> None:
        self.sent.append(data)

    def feed_text(self, text: str) -> None:
        self._queue.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=text))

    async def close(self) -> bool:
        self.closed = True
        self._queue.put_nowait(None)
        return True

    def exception(self) -> BaseException | None:
        return None

    def __aiter__(self) -> FakeWebSocket:
        return self

    async def __anext__(self) -> Any:
        msg = await self._queue.get()
        if msg is None:
            self.closed = True
            raise StopAsyncIteration
        return msg


@dataclass
class FakeSession:
    ws: FakeWebSocket
    urls: list[str] = field(default_factory=list)

    async def ws_connect(self, url: str) -> FakeWebSocket:
        self.urls.append(url)
        return self.ws


@dataclass
class FakeStorage:
    enabled: bool = True
    rows: list[tuple[str, str, int]] = field(default_factory=list)
    closed: bool = False

    def ensure_table(self, tracker_id: str) -> str:
        return f"CODE_{tracker_id}"

    def insert_reading(self, tracker_id: str, time_text: str, heart_rate: int) -> None:
        self.rows.append((tracker_id, time_text, heart_rate))

    def close(self) -> None:
        self.closed = True


async def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


def _write_settings(path: Path, **values: Any) -> None:
    path.write_text(json.dumps(values), encoding="utf-8")


def test_constructor_registers_trackers_from_settings(tmp_path: Path) -> None:
    settings_path = tmp_path / "config.json"
    _write_settings(settings_path, trackers=[{"id": "abc", "name": "Alice"}, {"id": "def", "name": "Bob"}])

    hrlog = HeartRateLogger(HrLogConfig(api_key="k", settings_path=str(settings_path)))

    assert sorted(hrlog.snapshot()) == ["abc", "def"]
    assert hrlog.snapshot()["abc"].name == "Alice"
    # Persistence is off unless sqlEnabled is set.
    assert isinstance(hrlog._storage, NullStorageSink)  # noqa: SLF001


@pytest.mark.asyncio
async def test_add_tracker_persists_new_ids_only(tmp_path: Path) -> None:
    settings_path = tmp_path / "config.json"
    hrlog = HeartRateLogger(HrLogConfig(api_key="k", settings_path=str(settings_path)))

    assert await hrlog.add_tracker("abc", "Alice") is True
    assert await hrlog.add_tracker("abc", "Alice again") is False

    saved = json.loads(settings_path.read_text(encoding="utf-8"))
    assert saved["trackers"] == [{"id": "abc", "name": "Alice"}]
    assert len(hrlog.registry) == 1
    assert SettingsStore(settings_path).load().trackers[0].id == "abc"


@pytest.mark.asyncio
async def test_add_tracker_rejects_empty_id(tmp_path: Path) -> None:
    hrlog = HeartRateLogger(HrLogConfig(api_key="k", settings_path=str(tmp_path / "config.json")))

    with pytest.raises(ValueError):
        await hrlog.add_tracker("  ", "Nobody")


@pytest.mark.asyncio
async def test_start_requires_api_key(tmp_path: Path) -> None:
    hrlog = HeartRateLogger(HrLogConfig(api_key="", settings_path=str(tmp_path / "config.json")))

    with pytest.raises(HrLogConfigError):
        await hrlog.start()


@pytest.mark.asyncio
async def test_end_to_end_stream_to_display_and_storage(tmp_path: Path) -> None:
    settings_path = tmp_path / "config.json"
    _write_settings(
        settings_path,
        sqlEnabled=True,
        dbWriteIntervalMs=10,
        staleThresholdMs=60_000,
        trackers=[{"id": "abc", "name": "Alice"}],
    )
    ws = FakeWebSocket()
    session = FakeSession(ws)
    storage = FakeStorage()
    snapshots: list[Mapping[str, TrackerState]] = []
    config = HrLogConfig(api_key="secret", base_url="wss://example.invalid/socket", settings_path=str(settings_path))

    async with HeartRateLogger(
        config,
        session=session,  # type: ignore[arg-type]
        storage=storage,
        on_update=snapshots.append,
    ) as hrlog:
        await _wait_for(lambda: len(ws.sent) == 1)
        assert json.loads(ws.sent[0])["topic"] == "hr:abc"

        # Added while connected: joined immediately.
        await hrlog.add_tracker("def", "Bob")
        assert json.loads(ws.sent[1]) == {"topic": "hr:def", "event": "phx_join", "payload": {}, "ref": 0}

        ws.feed_text('{"event": "hr_update", "topic": "hr:abc", "payload": {"hr": 77}}')
        await _wait_for(lambda: len(snapshots) == 1)
        assert snapshots[0]["abc"].heart_rate == 77
        assert snapshots[0]["def"].heart_rate is None

        await _wait_for(lambda: len(storage.rows) >= 1)
        assert all(row[0] == "abc" and row[2] == 77 for row in storage.rows)

    assert session.urls == ["wss://example.invalid/socket?token=secret"]
    assert ws.closed
    assert storage.closed
    assert hrlog.runtime is None
    assert not hrlog.scheduler.is_running
