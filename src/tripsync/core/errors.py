"""
Centralized Error Handling for TripSync.

Provides:
- Exception hierarchy for sync and lookup failures
- User-friendly error messages
- Transport error classification
"""

from typing import Dict, Optional

from loguru import logger


class TripSyncError(Exception):
    """Base class for all TripSync errors."""
    pass


class ConfigurationError(TripSyncError):
    """Raised when a required configuration is missing."""
    pass


class ServiceUnavailableError(TripSyncError):
    """Raised when an external service is unavailable."""
    pass


class RemoteError(TripSyncError):
    """Raised when the remote persistence service rejects or fails a call."""

    def __init__(self, resource: str, operation: str, message: str):
        self.resource = resource
        self.operation = operation
        super().__init__(f"{operation} on {resource} failed: {message}")


class SyncAbortedError(TripSyncError):
    """Raised inside a sync run when connectivity drops mid-batch."""
    pass


class LookupFailedError(TripSyncError):
    """Raised when a geocoding or weather request fails in transport."""
    pass


class WeatherUnavailableError(TripSyncError):
    """Raised when weather cannot be fetched and nothing is cached."""

    def __init__(self, latitude: float, longitude: float, cause: Optional[BaseException] = None):
        self.latitude = latitude
        self.longitude = longitude
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Weather unavailable for ({latitude}, {longitude}){detail}")


# User-friendly messages shown instead of raw transport errors
ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "sync_pending": {
        "short": "Sync still pending",
        "detailed": """Some changes have not reached the server yet.

They are saved on this device and will sync automatically
when the connection returns. You can also press "Retry Sync".""",
    },
    "data_unavailable": {
        "short": "Data unavailable",
        "detailed": """This information could not be loaded.

Please check:
1. Your internet connection
2. The service might be temporarily down

Try again in a few moments.""",
    },
    "supabase": {
        "short": "Backend not configured",
        "detailed": """The trip backend is not configured.

To enable syncing:
1. Open your Supabase project settings
2. Copy the project URL and anon key
3. Add to your .env file:
   SUPABASE_URL=your_url_here
   SUPABASE_KEY=your_key_here

Then restart TripSync.""",
    },
    "network_error": {
        "short": "Network error",
        "detailed": """Unable to connect to the service.

Please check:
1. Your internet connection
2. The service might be temporarily down
3. Your firewall settings

Try again in a few moments.""",
    },
}


def get_error_message(error_key: str, detailed: bool = False) -> str:
    """
    Get user-friendly error message.

    Args:
        error_key: Key for the error type
        detailed: Whether to return detailed message with setup instructions

    Returns:
        User-friendly error message
    """
    if error_key not in ERROR_MESSAGES:
        return f"An error occurred: {error_key}"

    msg = ERROR_MESSAGES[error_key]
    return msg["detailed"] if detailed else msg["short"]


def user_message(error: BaseException, detailed: bool = False) -> str:
    """
    Map an exception to the message the UI should show.

    Raw transport errors are never shown; they collapse into
    "sync still pending" or "data unavailable".
    """
    if isinstance(error, (RemoteError, SyncAbortedError)):
        return get_error_message("sync_pending", detailed)
    if isinstance(error, ConfigurationError):
        return get_error_message("supabase", detailed)
    if isinstance(error, (WeatherUnavailableError, LookupFailedError)):
        return get_error_message("data_unavailable", detailed)
    return get_error_message("network_error", detailed)


def handle_api_error(
    service_name: str,
    error: Exception,
    fallback_message: Optional[str] = None,
) -> str:
    """
    Describe an API error for logs and notifications.

    Args:
        service_name: Name of the service
        error: The exception that occurred
        fallback_message: Optional fallback message

    Returns:
        Short human-readable description
    """
    error_str = str(error).lower()

    if "401" in error_str or "unauthorized" in error_str:
        return f"{service_name} authentication failed. Please check your API key."

    if "403" in error_str or "forbidden" in error_str:
        return f"{service_name} access denied."

    if "429" in error_str or "rate limit" in error_str:
        return f"{service_name} rate limit exceeded. Please wait a moment and try again."

    if "timeout" in error_str or "timed out" in error_str:
        return f"{service_name} request timed out."

    if "connection" in error_str or "network" in error_str:
        return get_error_message("network_error")

    logger.error(f"{service_name} error: {error}")

    return fallback_message or f"{service_name} encountered an error."
