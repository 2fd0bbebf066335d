from __future__ import annotations

from datetime import UTC, datetime

from pyhrlog.__main__ import _parse_args, format_snapshot
from pyhrlog.state.models import TrackerState


def test_parse_args_collects_repeated_add() -> None:
    args = _parse_args(["--add", "abc", "Alice", "--add", "def", "Bob", "-q"])

    assert args.add == [["abc", "Alice"], ["def", "Bob"]]
    assert args.quiet is True
    assert args.verbose is False
    assert args.settings is None


def test_format_snapshot_sorts_and_marks_missing_readings() -> None:
    now = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)
    snapshot = {
        "def": TrackerState(tracker_id="def", name="Bob"),
        "abc": TrackerState(tracker_id="abc", name="Alice", heart_rate=72, updated_at=now, changed_at=now),
        "xyz": TrackerState(tracker_id="xyz", heart_rate=90, updated_at=now, changed_at=now),
    }

    assert format_snapshot(snapshot) == "Alice: 72 | Bob: -- | xyz: 90"


def test_format_snapshot_empty() -> None:
    assert format_snapshot({}) == ""
