"""
Error taxonomy for the delay monitor.

Unmatched bookings and ineligible delays are regular return values, not
errors. These exceptions cover the exceptional paths only:

  PollError       - feed or booking-source fetch failed or timed out (transient)
  ProcessingError - one booking could not be classified (isolated per booking)
  ConfigError     - invalid configuration or tier table (raised at startup)
"""

from typing import Optional


class AutoclaimError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class PollError(AutoclaimError):
    """Fetching the current feed snapshot failed.

    status_code is the upstream HTTP status when there was one; retryable is
    False only for responses that will not improve by asking again (4xx).
    """

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(message)


class ProcessingError(AutoclaimError):
    def __init__(self, message: str, booking_id: Optional[str] = None):
        self.booking_id = booking_id
        super().__init__(message)


class ConfigError(AutoclaimError):
    pass
