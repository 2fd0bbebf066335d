"""Internal constants shared across the library."""

BASE_URL = "wss://app.hyperate.io/socket/websocket"

# ------------------------------------------------------------------
# Phoenix channel protocol
# ------------------------------------------------------------------

TOPIC_PREFIX = "hr"
TOPIC_DELIMITER = ":"
PHOENIX_TOPIC = "phoenix"
EVENT_JOIN = "phx_join"
EVENT_HEARTBEAT = "heartbeat"
EVENT_HR_UPDATE = "hr_update"

# ------------------------------------------------------------------
# Timing (seconds)
# ------------------------------------------------------------------

KEEPALIVE_INTERVAL_S = 30.0
RECONNECT_DELAY_S = 10.0

# ------------------------------------------------------------------
# Settings defaults
# ------------------------------------------------------------------

DEFAULT_DB_PATH = "heartmonitor.db"
DEFAULT_WRITE_INTERVAL_MS = 2000
DEFAULT_STALE_THRESHOLD_MS = 8000
DEFAULT_SETTINGS_FILENAME = "config.json"

TABLE_PREFIX = "CODE_"


def tracker_topic(tracker_id: str) -> str:
    """Channel topic for a tracker id (``hr:<id>``)."""
    return f"{TOPIC_PREFIX}{TOPIC_DELIMITER}{tracker_id}"
