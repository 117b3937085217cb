"""Core modules for TripSync."""

from .config import TripSyncConfig, EnvSettings, get_config, get_env_settings
from .connectivity import ConnectivityProbe, ManualConnectivityProbe, HttpConnectivityProbe
from .errors import (
    TripSyncError,
    ConfigurationError,
    ServiceUnavailableError,
    RemoteError,
    SyncAbortedError,
    LookupFailedError,
    WeatherUnavailableError,
    user_message,
)
from .events import EventBus, Event, EventType
from .logger import setup_logging
from .retry import RetryResult, with_retry, exponential_backoff

__all__ = [
    "TripSyncConfig",
    "EnvSettings",
    "get_config",
    "get_env_settings",
    "ConnectivityProbe",
    "ManualConnectivityProbe",
    "HttpConnectivityProbe",
    "TripSyncError",
    "ConfigurationError",
    "ServiceUnavailableError",
    "RemoteError",
    "SyncAbortedError",
    "LookupFailedError",
    "WeatherUnavailableError",
    "user_message",
    "EventBus",
    "Event",
    "EventType",
    "setup_logging",
    "RetryResult",
    "with_retry",
    "exponential_backoff",
]
