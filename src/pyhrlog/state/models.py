"""Per-tracker state snapshot model."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

EPOCH = datetime.fromtimestamp(0, tz=UTC)
"""Timestamp used for trackers that have not received any event yet."""


class TrackerState(BaseModel):
    """Immutable snapshot of one monitored device.

    ``heart_rate`` is ``None`` until a usable reading arrives; a reading of
    ``0`` from the upstream service is normalized to ``None`` at the decode
    boundary and is therefore never persisted.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tracker_id: str = Field(..., min_length=1)
    name: str = ""
    heart_rate: int | None = None
    updated_at: datetime = EPOCH
    changed_at: datetime = EPOCH

    @field_validator("updated_at", "changed_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value

    @property
    def has_reading(self) -> bool:
        return self.heart_rate is not None
