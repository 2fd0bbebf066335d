"""Stream ingestion.

Translates decoded channel events into registry updates and pushes the
resulting snapshot to the display sink.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime

from pyhrlog._constants import EVENT_HR_UPDATE
from pyhrlog._protocol import ChannelEvent, parse_heart_rate
from pyhrlog.state.models import TrackerState
from pyhrlog.state.store import TrackerRegistry

_logger = logging.getLogger(__name__)

DisplaySink = Callable[[Mapping[str, TrackerState]], None]


class StreamEventDispatcher:
    """Apply ``hr_update`` events to a :class:`TrackerRegistry`.

    Any other event type (join replies, heartbeat acks, presence...) is
    ignored. The display sink, when set, receives the full registry
    snapshot after every applied reading.
    """

    def __init__(
        self,
        registry: TrackerRegistry,
        *,
        display_sink: DisplaySink | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry
        self._display_sink = display_sink
        self._clock = clock

    def set_display_sink(self, display_sink: DisplaySink | None) -> None:
        self._display_sink = display_sink

    def handle(self, event: ChannelEvent) -> TrackerState | None:
        """Apply *event*; returns the updated state or ``None`` when nothing changed.

        Raises :class:`pyhrlog.exceptions.HrLogDecodeError` when an
        ``hr_update`` payload is malformed.
        """
        if event.event != EVENT_HR_UPDATE:
            return None

        tracker_id = event.subtopic
        if tracker_id is None:
            _logger.debug("hr_update without tracker topic: %s", event.topic)
            return None

        reading = parse_heart_rate(event)
        now = self._clock() if self._clock is not None else None
        state = self._registry.apply_reading(tracker_id, reading.hr, now)
        if state is None:
            return None

        self._notify_display()
        return state

    def _notify_display(self) -> None:
        sink = self._display_sink
        if sink is None:
            return
        try:
            sink(self._registry.snapshot())
        except Exception:
            _logger.warning("Display sink failed", exc_info=True)
