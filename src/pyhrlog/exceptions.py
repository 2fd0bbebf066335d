"""Custom exception hierarchy for pyhrlog."""

from __future__ import annotations


class HrLogError(Exception):
    """Base exception for all pyhrlog errors."""


class HrLogConfigError(HrLogError):
    """Invalid or missing configuration."""


class HrLogTransportError(HrLogError):
    """Websocket-level failure (connect failure, abrupt close, bad frame type)."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str = "",
    ) -> None:
        self.endpoint = endpoint
        super().__init__(message)


class HrLogDecodeError(HrLogError):
    """Inbound frame is not valid JSON or does not match the channel envelope."""

    def __init__(
        self,
        message: str,
        *,
        frame: str = "",
    ) -> None:
        self.frame = frame
        super().__init__(message)


class HrLogStorageError(HrLogError):
    """Table creation or insert failed in the storage sink."""

    def __init__(
        self,
        message: str,
        *,
        tracker_id: str = "",
    ) -> None:
        self.tracker_id = tracker_id
        super().__init__(message)
