"""Thread-safe in-memory tracker registry.

This is the only component allowed to mutate tracker state.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from types import MappingProxyType

from pyhrlog.state.models import TrackerState


def _utcnow() -> datetime:
    return datetime.now(UTC)


class TrackerRegistry:
    """Mapping of tracker id to :class:`TrackerState`.

    Entries are added by :meth:`register` and never removed for the
    lifetime of the registry. Every mutation and every snapshot happens
    under one exclusive lock, so the registry can be shared between the
    event loop and executor threads.
    """

    def __init__(self, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._trackers: dict[str, TrackerState] = {}

    def register(self, tracker_id: str, name: str) -> bool:
        """Register a tracker.

        Idempotent per id: registering a known id only reasserts its name.
        Returns ``True`` when a new entry was created.
        """
        with self._lock:
            existing = self._trackers.get(tracker_id)
            if existing is not None:
                if existing.name != name:
                    self._trackers[tracker_id] = existing.model_copy(update={"name": name})
                return False
            self._trackers[tracker_id] = TrackerState(tracker_id=tracker_id, name=name)
            return True

    def apply_reading(
        self,
        tracker_id: str,
        heart_rate: int | None,
        now: datetime | None = None,
    ) -> TrackerState | None:
        """Record an inbound reading for a registered tracker.

        Unknown ids are ignored and ``None`` is returned. ``updated_at``
        always advances; ``changed_at`` and ``heart_rate`` only move when
        the value differs from the previous one.
        """
        observed_at = now if now is not None else self._clock()
        with self._lock:
            current = self._trackers.get(tracker_id)
            if current is None:
                return None
            if heart_rate != current.heart_rate:
                updated = current.model_copy(
                    update={"heart_rate": heart_rate, "updated_at": observed_at, "changed_at": observed_at}
                )
            else:
                updated = current.model_copy(update={"updated_at": observed_at})
            self._trackers[tracker_id] = updated
            return updated

    def snapshot(self) -> Mapping[str, TrackerState]:
        """Read-only view over a copy of the current states."""
        with self._lock:
            return MappingProxyType(dict(self._trackers))

    def get(self, tracker_id: str) -> TrackerState | None:
        with self._lock:
            return self._trackers.get(tracker_id)

    def tracker_ids(self) -> list[str]:
        with self._lock:
            return list(self._trackers)

    def __contains__(self, tracker_id: object) -> bool:
        with self._lock:
            return tracker_id in self._trackers

    def __len__(self) -> int:
        with self._lock:
            return len(self._trackers)
