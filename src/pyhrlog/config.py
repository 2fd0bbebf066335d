"""Client configuration for pyhrlog."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pyhrlog._constants import BASE_URL, DEFAULT_SETTINGS_FILENAME


@dataclasses.dataclass(frozen=True)
class HrLogConfig:
    """Runtime configuration.

    Parameters
    ----------
    api_key : str
        HypeRate API key, sent as the ``token`` query parameter of the
        websocket URL.
    base_url : str
        Websocket endpoint without query string. Defaults to the public
        HypeRate socket.
    settings_path : str
        Path of the JSON settings file (persistence switch, intervals,
        tracker list).
    """

    api_key: str = ""
    base_url: str = BASE_URL
    settings_path: str = DEFAULT_SETTINGS_FILENAME

    @property
    def url(self) -> str:
        """Full websocket URL including the bearer token."""
        return f"{self.base_url}?token={self.api_key}"

    @classmethod
    def from_env(cls, **overrides: Any) -> HrLogConfig:
        """Create configuration from environment variables.

        Reads ``HRLOG_API_KEY``, ``HRLOG_BASE_URL`` and
        ``HRLOG_SETTINGS_PATH``. Explicit keyword arguments override
        environment values.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "HRLOG_API_KEY": "api_key",
            "HRLOG_BASE_URL": "base_url",
            "HRLOG_SETTINGS_PATH": "settings_path",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
