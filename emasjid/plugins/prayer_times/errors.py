"""
Errors raised by the prayer times plugin.
Backends raise TransportError / NotFoundError; PrayerTimeService translates both
into ServiceUnavailableError once its cache fallback is exhausted.
"""
from typing import Optional


class PrayerTimesError(Exception):
    """Base class for prayer times errors."""


class TransportError(PrayerTimesError):
    """Network failure, non-2xx response, or a response body we cannot parse."""


class NotFoundError(PrayerTimesError):
    """The upstream response did not cover the requested date."""


class ServiceUnavailableError(PrayerTimesError):
    """Prayer times could not be fetched and no cached copy exists. Retry later."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
