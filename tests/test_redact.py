from __future__ import annotations

from pyhrlog._redact import redact_for_log, redact_url


def test_redact_for_log_redacts_sensitive_keys() -> None:
    payload = {
        "sqlEnabled": True,
        "dbPassword": "pw",
        "token": "abc",
        "nested": {"apiKey": "deadbeef"},
        "trackers": [{"id": "abc", "name": "Alice"}],
    }

    redacted = redact_for_log(payload)
    assert redacted["dbPassword"] == "<redacted>"
    assert redacted["token"] == "<redacted>"
    assert redacted["nested"]["apiKey"] == "<redacted>"
    assert redacted["sqlEnabled"] is True
    assert redacted["trackers"] == [{"id": "abc", "name": "Alice"}]


def test_redact_for_log_truncates_long_strings() -> None:
    long_value = "x" * 600
    redacted = redact_for_log({"value": long_value}, max_string=10)
    assert redacted["value"].startswith("x" * 10)
    assert "<truncated>" in redacted["value"]


def test_redact_url_hides_token_query_parameter() -> None:
    url = "wss://app.hyperate.io/socket/websocket?token=super-secret"

    assert redact_url(url) == "wss://app.hyperate.io/socket/websocket?token=<redacted>"
    assert "super-secret" not in redact_url(url)


def test_redact_url_without_query_is_unchanged() -> None:
    assert redact_url("wss://example.invalid/socket") == "wss://example.invalid/socket"
