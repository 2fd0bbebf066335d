"""Persistent settings file (the config provider).

The settings file is a small JSON document shared with the desktop front
end. It carries the persistence switch, write/staleness timings and the
list of trackers to follow. Loading is forgiving: bad numeric fields fall
back to their defaults, and a missing or unreadable file yields the
all-defaults settings with persistence disabled.
"""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from pyhrlog._constants import DEFAULT_DB_PATH, DEFAULT_STALE_THRESHOLD_MS, DEFAULT_WRITE_INTERVAL_MS
from pyhrlog._redact import redact_for_log

_logger = logging.getLogger(__name__)


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
        return default
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def _positive_number_or(value: Any, default: int) -> int:
    """Return *value* as int when it is a real number >= 1, else *default*."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
        return default
    if value < 1:
        return default
    return int(value)


class TrackerEntry(BaseModel):
    """A tracker listed in the settings file."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = ""


class HrLogSettings(BaseModel):
    """Settings document.

    Keys are camelCase on disk (``sqlEnabled``, ``dbWriteIntervalMs``...)
    and snake_case in Python.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    sql_enabled: bool = False
    db_path: str = DEFAULT_DB_PATH
    db_write_interval_ms: int = DEFAULT_WRITE_INTERVAL_MS
    stale_threshold_ms: int = DEFAULT_STALE_THRESHOLD_MS
    trackers: tuple[TrackerEntry, ...] = ()

    @field_validator("sql_enabled", mode="before")
    @classmethod
    def _normalize_sql_enabled(cls, value: Any) -> bool:
        return _coerce_bool(value, False)

    @field_validator("db_path", mode="before")
    @classmethod
    def _normalize_db_path(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return DEFAULT_DB_PATH

    @field_validator("db_write_interval_ms", mode="before")
    @classmethod
    def _normalize_write_interval(cls, value: Any) -> int:
        return _positive_number_or(value, DEFAULT_WRITE_INTERVAL_MS)

    @field_validator("stale_threshold_ms", mode="before")
    @classmethod
    def _normalize_stale_threshold(cls, value: Any) -> int:
        return _positive_number_or(value, DEFAULT_STALE_THRESHOLD_MS)

    @field_validator("trackers", mode="before")
    @classmethod
    def _normalize_trackers(cls, value: Any) -> list[TrackerEntry]:
        if not isinstance(value, (list, tuple)):
            return []
        entries: list[TrackerEntry] = []
        for item in value:
            try:
                entries.append(TrackerEntry.model_validate(item))
            except ValidationError:
                _logger.warning("Ignoring invalid tracker entry in settings: %r", item)
        return entries

    def with_tracker(self, tracker_id: str, name: str) -> HrLogSettings:
        """Return a copy with ``{id, name}`` appended unless the id is already listed."""
        if any(entry.id == tracker_id for entry in self.trackers):
            return self
        return self.model_copy(update={"trackers": (*self.trackers, TrackerEntry(id=tracker_id, name=name))})

    def to_json(self) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True), indent=2)


class SettingsStore:
    """Load and save :class:`HrLogSettings` as a JSON file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> HrLogSettings:
        """Load settings, creating a default file first when none exists.

        Never raises: any read or parse failure logs a warning and returns
        the defaults.
        """
        if not self._path.exists():
            defaults = HrLogSettings()
            if self.save(defaults):
                _logger.info("Created default settings file %s (persistence disabled)", self._path)

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            _logger.warning("Failed to load settings from %s; using defaults", self._path, exc_info=True)
            return HrLogSettings()

        if not isinstance(raw, dict):
            _logger.warning("Settings file %s is not a JSON object; using defaults", self._path)
            return HrLogSettings()

        _logger.debug("Loaded settings from %s: %s", self._path, redact_for_log(raw))
        try:
            return HrLogSettings.model_validate(raw)
        except ValidationError:
            _logger.warning("Settings file %s failed validation; using defaults", self._path, exc_info=True)
            return HrLogSettings()

    def save(self, settings: HrLogSettings) -> bool:
        """Write *settings* to disk. Returns ``False`` (and logs) on failure."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(settings.to_json(), encoding="utf-8")
        except OSError:
            _logger.error("Failed to write settings file %s", self._path, exc_info=True)
            return False
        _logger.debug("Settings saved to %s", self._path)
        return True
