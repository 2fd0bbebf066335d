"""Freshness policy.

This module intentionally contains no parsing or I/O: it only decides
whether a tracker's current reading is still worth persisting.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from pyhrlog.state.models import TrackerState


def is_stale(now: datetime, changed_at: datetime, threshold: timedelta) -> bool:
    """Whether the last value change is older than *threshold*.

    The comparison is strict: an age exactly equal to the threshold is
    still fresh.
    """
    return (now - changed_at) > threshold


def should_persist(state: TrackerState, *, now: datetime, threshold: timedelta) -> bool:
    """Decide whether *state* should be written on a persistence tick.

    Staleness is measured from the last *value change*, not the last
    message, so a frozen reading that keeps being re-sent eventually
    stops being persisted.
    """
    if not state.has_reading:
        return False
    return not is_stale(now, state.changed_at, threshold)
