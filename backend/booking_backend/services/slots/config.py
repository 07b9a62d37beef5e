# backend/booking_backend/services/slots/config.py
"""
Slot policy and time helpers shared by the availability engine.
"""

import re
from dataclasses import dataclass
from datetime import date, timedelta
from functools import lru_cache
from typing import Iterator

from .errors import InvalidInput

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(r"^(\d{2}):(\d{2})$")


@dataclass(frozen=True)
class SlotPolicy:
    """
    Booking policy applied when generating slots.

    Attributes:
        slot_granularity_minutes: Grid step for candidate start times
        min_lead_time_minutes: Minimum notice between "now" and a slot start
        max_advance_days: How many days ahead slots may be offered
    """
    slot_granularity_minutes: int = 15
    min_lead_time_minutes: int = 0
    max_advance_days: int = 60

    def __post_init__(self):
        """Validate policy values."""
        if self.slot_granularity_minutes <= 0:
            raise InvalidInput(
                f"slot_granularity_minutes must be positive, got {self.slot_granularity_minutes}"
            )
        if self.min_lead_time_minutes < 0:
            raise InvalidInput(
                f"min_lead_time_minutes cannot be negative, got {self.min_lead_time_minutes}"
            )
        if self.max_advance_days < 0:
            raise InvalidInput(
                f"max_advance_days cannot be negative, got {self.max_advance_days}"
            )


@lru_cache
def get_slot_policy() -> SlotPolicy:
    """Default policy (singleton) built from application settings."""
    from ...config import settings

    return SlotPolicy(
        slot_granularity_minutes=settings.slot_granularity_minutes,
        min_lead_time_minutes=settings.min_lead_time_minutes,
        max_advance_days=settings.max_advance_days,
    )


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar range [start, end]."""
    start: date
    end: date

    def __post_init__(self):
        if self.start > self.end:
            raise InvalidInput(
                f"start date {self.start.isoformat()} is after end date {self.end.isoformat()}"
            )

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end


# ── Time helpers ─────────────────────────────────────────────────────────


def time_str_to_minutes(value: str) -> int:
    """
    Convert "HH:MM" to minutes since midnight.

    "24:00" is accepted as end-of-day (1440).
    """
    match = _TIME_RE.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidInput(f"invalid time {value!r}, expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour == 24 and minute == 0:
        return MINUTES_PER_DAY
    if hour > 23 or minute > 59:
        raise InvalidInput(f"invalid time {value!r}, expected HH:MM")
    return hour * 60 + minute


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def is_time_str(value, allow_end_of_day: bool = False) -> bool:
    """
    True for a strict "HH:MM" clock time (00:00-23:59).

    With allow_end_of_day, "24:00" (midnight closing an interval) also passes.
    """
    if not isinstance(value, str):
        return False
    if allow_end_of_day and value == "24:00":
        return True
    match = _TIME_RE.match(value)
    return bool(match) and int(match.group(1)) <= 23 and int(match.group(2)) <= 59
