"""Helpers for safe debug logging.

The websocket URL carries the HypeRate API key as a query parameter and the
settings file may hold credentials. This module masks those values before
they reach DEBUG/INFO logs.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

_REDACTED = "<redacted>"

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "password",
        "dbpassword",
        "token",
        "apikey",
        "api_key",
        "authorization",
        "cookie",
    }
)


def _is_sensitive(key: str) -> bool:
    return key.lower() in _SENSITIVE_KEYS


def redact_for_log(value: Any, *, max_string: int = 256) -> Any:
    """Copy of a decoded JSON document with credential values masked.

    Long strings are cut to *max_string* characters.
    """
    if isinstance(value, Mapping):
        return {
            str(key): _REDACTED if _is_sensitive(str(key)) else redact_for_log(item, max_string=max_string)
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact_for_log(item, max_string=max_string) for item in value]
    if isinstance(value, str) and len(value) > max_string:
        return f"{value[:max_string]}...<truncated>"
    return value


def redact_url(url: str) -> str:
    """Replace sensitive query parameter values in *url* with ``<redacted>``."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (key, _REDACTED if _is_sensitive(key) else value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="<>")))
