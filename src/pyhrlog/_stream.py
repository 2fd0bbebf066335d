"""Reconnecting websocket runtime for the HypeRate channel socket."""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Callable, Iterable

import aiohttp

from pyhrlog._constants import KEEPALIVE_INTERVAL_S, RECONNECT_DELAY_S
from pyhrlog._protocol import ChannelEvent, build_heartbeat_frame, build_join_frame, decode_frame
from pyhrlog._redact import redact_url
from pyhrlog.exceptions import HrLogDecodeError, HrLogTransportError

_SEND_ERRORS = (aiohttp.ClientError, ConnectionError)


class ConnectionState(enum.StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECT_PENDING = "reconnect_pending"


class HypeRateStreamRuntime:
    """Single-connection websocket client with keepalive and reconnect.

    State machine::

        DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED
                             |                          |
                             +--> RECONNECT_PENDING <---+

    Any connect failure or close schedules exactly one reconnect after
    ``reconnect_delay`` seconds; further triggers while a reconnect is
    pending are ignored. On every successful connect the runtime joins the
    channel of each id returned by ``tracker_ids`` and starts a keepalive
    task that lives exactly as long as the connection.
    """

    def __init__(
        self,
        *,
        session: aiohttp.ClientSession,
        url: str,
        tracker_ids: Callable[[], Iterable[str]],
        on_event: Callable[[ChannelEvent], object],
        keepalive_interval: float = KEEPALIVE_INTERVAL_S,
        reconnect_delay: float = RECONNECT_DELAY_S,
        logger: logging.Logger | None = None,
    ) -> None:
        self._session = session
        self._url = url
        self._tracker_ids = tracker_ids
        self._on_event = on_event
        self._keepalive_interval = keepalive_interval
        self._reconnect_delay = reconnect_delay
        self._logger = logger or logging.getLogger(__name__)

        self._state = ConnectionState.DISCONNECTED
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._connection_task: asyncio.Task[None] | None = None
        self._keepalive_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        ws = self._ws
        return self._state is ConnectionState.CONNECTED and ws is not None and not ws.closed

    @property
    def reconnect_pending(self) -> bool:
        return self._state is ConnectionState.RECONNECT_PENDING

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self._state:
            self._logger.debug("Stream state %s -> %s", self._state, state)
            self._state = state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin connecting. Must be called from the running event loop."""
        if self._connection_task is not None and not self._connection_task.done():
            return
        self._closing = False
        self._logger.info("Connecting to %s", redact_url(self._url))
        self._spawn_connect()

    async def close(self) -> None:
        """Close the connection and cancel every pending timer."""
        self._closing = True
        tasks = [
            task
            for task in (self._reconnect_task, self._keepalive_task, self._connection_task)
            if task is not None and not task.done()
        ]
        ws = self._ws
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except _SEND_ERRORS:
                self._logger.debug("Websocket close failed", exc_info=True)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._reconnect_task = None
        self._keepalive_task = None
        self._connection_task = None
        self._ws = None
        self._set_state(ConnectionState.DISCONNECTED)

    def _spawn_connect(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        self._connection_task = asyncio.get_running_loop().create_task(self._run_connection())

    async def _connect(self) -> aiohttp.ClientWebSocketResponse:
        endpoint = redact_url(self._url)
        try:
            return await self._session.ws_connect(self._url)
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as exc:
            raise HrLogTransportError(f"Connect to {endpoint} failed: {exc}", endpoint=endpoint) from exc

    async def _run_connection(self) -> None:
        try:
            ws = await self._connect()
        except HrLogTransportError as exc:
            self._logger.warning("Connect failed: %s", exc)
            self._set_state(ConnectionState.DISCONNECTED)
            self.schedule_reconnect("connect failed")
            return

        self._ws = ws
        self._set_state(ConnectionState.CONNECTED)
        self._logger.info("Client connected")
        self._keepalive_task = asyncio.get_running_loop().create_task(self._keepalive_loop(ws))
        try:
            for tracker_id in list(self._tracker_ids()):
                await self.join(tracker_id)
            await self._receive_loop(ws)
        except Exception:
            self._logger.warning("Receive loop failed", exc_info=True)
        finally:
            self._stop_keepalive()
            self._ws = None
            self._set_state(ConnectionState.DISCONNECTED)
            self._logger.info("Connection closed")
            if not ws.closed:
                try:
                    await ws.close()
                except _SEND_ERRORS:
                    self._logger.debug("Websocket close failed", exc_info=True)
            self.schedule_reconnect("connection closed")

    async def _receive_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                self._handle_text(msg.data)
            elif msg.type == aiohttp.WSMsgType.BINARY:
                self._logger.error("Protocol error: non-text frame received (%d bytes)", len(msg.data))
            elif msg.type == aiohttp.WSMsgType.ERROR:
                self._logger.warning("Websocket error: %s", ws.exception())
                break

    def _handle_text(self, text: str) -> None:
        try:
            event = decode_frame(text)
            self._on_event(event)
        except HrLogDecodeError as exc:
            self._logger.warning("Parse error: %s", exc)
        except Exception:
            self._logger.exception("Event handler failed")

    # ------------------------------------------------------------------
    # Reconnect
    # ------------------------------------------------------------------

    def schedule_reconnect(self, reason: str) -> bool:
        """Schedule one reconnect attempt unless one is already pending.

        Returns ``True`` when a new reconnect timer was created.
        """
        if self._closing:
            return False
        if self._state is ConnectionState.RECONNECT_PENDING:
            self._logger.debug("Reconnect already pending; ignoring trigger: %s", reason)
            return False
        self._set_state(ConnectionState.RECONNECT_PENDING)
        self._logger.info("Scheduling reconnect in %s seconds due to: %s", self._reconnect_delay, reason)
        self._reconnect_task = asyncio.get_running_loop().create_task(self._reconnect_after_delay())
        return True

    async def _reconnect_after_delay(self) -> None:
        await asyncio.sleep(self._reconnect_delay)
        self._reconnect_task = None
        if self._closing:
            return
        self._logger.info("Attempting reconnection now...")
        self._spawn_connect()

    # ------------------------------------------------------------------
    # Outbound frames
    # ------------------------------------------------------------------

    async def join(self, tracker_id: str) -> bool:
        """Send a channel join for *tracker_id*; no-op unless connected."""
        ws = self._ws
        if not self.is_connected or ws is None:
            return False
        try:
            await ws.send_str(build_join_frame(tracker_id))
        except _SEND_ERRORS as exc:
            self._logger.warning("Join for %s failed: %s", tracker_id, exc)
            return False
        self._logger.info("Joined channel for %s", tracker_id)
        return True

    async def _keepalive_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while True:
            await asyncio.sleep(self._keepalive_interval)
            if ws.closed:
                return
            try:
                await ws.send_str(build_heartbeat_frame())
            except _SEND_ERRORS:
                self._logger.debug("Keepalive send failed", exc_info=True)
                return

    def _stop_keepalive(self) -> None:
        task = self._keepalive_task
        self._keepalive_task = None
        if task is not None and not task.done():
            task.cancel()
