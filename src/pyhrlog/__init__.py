"""pyhrlog - Async HypeRate heart-rate stream logger."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyhrlog")
except PackageNotFoundError:
    __version__ = "0+local"
from pyhrlog._stream import ConnectionState, HypeRateStreamRuntime
from pyhrlog.client import HeartRateLogger
from pyhrlog.config import HrLogConfig
from pyhrlog.exceptions import (
    HrLogConfigError,
    HrLogDecodeError,
    HrLogError,
    HrLogStorageError,
    HrLogTransportError,
)
from pyhrlog.persistence import PersistenceScheduler, TimeLabeler
from pyhrlog.settings import HrLogSettings, SettingsStore, TrackerEntry
from pyhrlog.state.models import TrackerState
from pyhrlog.state.store import TrackerRegistry
from pyhrlog.storage import NullStorageSink, SqliteStorageSink, StorageSink

__all__ = [
    "__version__",
    "ConnectionState",
    "HeartRateLogger",
    "HrLogConfig",
    "HrLogConfigError",
    "HrLogDecodeError",
    "HrLogError",
    "HrLogSettings",
    "HrLogStorageError",
    "HrLogTransportError",
    "HypeRateStreamRuntime",
    "NullStorageSink",
    "PersistenceScheduler",
    "SettingsStore",
    "SqliteStorageSink",
    "StorageSink",
    "TimeLabeler",
    "TrackerEntry",
    "TrackerRegistry",
    "TrackerState",
]
