"""Phoenix channel wire format used by the HypeRate socket.

Outbound frames are plain JSON objects ``{topic, event, payload, ref}``.
Inbound frames are decoded into :class:`ChannelEvent`; only the
``hr_update`` payload is modelled further.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from pyhrlog._constants import EVENT_HEARTBEAT, EVENT_JOIN, PHOENIX_TOPIC, TOPIC_DELIMITER, tracker_topic
from pyhrlog.exceptions import HrLogDecodeError


class ChannelEvent(BaseModel):
    """Decoded inbound channel envelope."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    event: str
    topic: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)

    @property
    def subtopic(self) -> str | None:
        """Portion of the topic after the first delimiter (the tracker id for ``hr:<id>``)."""
        _, sep, rest = self.topic.partition(TOPIC_DELIMITER)
        if not sep or not rest:
            return None
        return rest


class HeartRatePayload(BaseModel):
    """Payload of an ``hr_update`` event.

    A reading of ``0`` means "no data" upstream and is mapped to ``None``.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    hr: int | None

    @field_validator("hr")
    @classmethod
    def _zero_is_no_reading(cls, value: int | None) -> int | None:
        if value == 0:
            return None
        return value


def _encode(topic: str, event: str) -> str:
    return json.dumps({"topic": topic, "event": event, "payload": {}, "ref": 0})


def build_join_frame(tracker_id: str) -> str:
    """Channel join request for a tracker."""
    return _encode(tracker_topic(tracker_id), EVENT_JOIN)


def build_heartbeat_frame() -> str:
    """Application-level keepalive sent on the ``phoenix`` topic."""
    return _encode(PHOENIX_TOPIC, EVENT_HEARTBEAT)


def decode_frame(text: str) -> ChannelEvent:
    """Parse a text frame into a :class:`ChannelEvent`.

    Raises :class:`HrLogDecodeError` for malformed JSON or an envelope
    that does not match the channel schema.
    """
    try:
        parsed = json.loads(text)
    except ValueError as exc:
        raise HrLogDecodeError(f"Frame is not valid JSON: {exc}", frame=text[:200]) from exc
    if not isinstance(parsed, dict):
        raise HrLogDecodeError("Frame decoded to non-object JSON", frame=text[:200])
    try:
        return ChannelEvent.model_validate(parsed)
    except ValidationError as exc:
        raise HrLogDecodeError(f"Frame does not match channel envelope: {exc}", frame=text[:200]) from exc


def parse_heart_rate(event: ChannelEvent) -> HeartRatePayload:
    """Validate the payload of an ``hr_update`` event."""
    try:
        return HeartRatePayload.model_validate(event.payload)
    except ValidationError as exc:
        raise HrLogDecodeError(f"Invalid hr_update payload: {exc}", frame=str(event.payload)[:200]) from exc
