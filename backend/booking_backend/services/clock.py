"""
backend/booking_backend/services/clock.py

Provider-local wall clock.

Every stored datetime (bookings, blocked periods, scheduled changes) is a
naive local time of the provider that owns it, so "now" has to be taken in
the same timezone before it is compared with any of them.
"""

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


def provider_now(provider, at: datetime | None = None) -> datetime:
    """
    Wall-clock time in the provider's timezone, as a naive datetime.

    `at` is the instant to convert (default: the current moment). A missing
    provider or an unknown timezone falls back to server local time.
    """
    at = at or datetime.now(timezone.utc)
    tz_name = getattr(provider, "timezone", None)
    if tz_name:
        try:
            return at.astimezone(ZoneInfo(tz_name)).replace(tzinfo=None)
        except ZoneInfoNotFoundError:
            logger.warning(
                f"Unknown timezone {tz_name!r} for provider {getattr(provider, 'id', None)}, "
                f"using server time"
            )
    return at.astimezone().replace(tzinfo=None)
