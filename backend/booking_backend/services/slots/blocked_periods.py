# backend/booking_backend/services/slots/blocked_periods.py
"""
Blocked periods: vacations, absences, ad-hoc closures of one member.

A period covers every day of [start_date, end_date]. All-day periods remove
the whole day; otherwise [start_time, end_time) is removed on each covered
day. Recurring periods with recurring_days only apply on those weekdays.
"""

import logging
from dataclasses import dataclass
from datetime import date

from .config import is_time_str, time_str_to_minutes

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockedPeriod:
    member_id: int
    location_id: int
    start_date: date
    end_date: date
    all_day: bool
    start_time: str | None = None
    end_time: str | None = None
    reason: str | None = None
    is_recurring: bool = False
    recurring_days: tuple[int, ...] = ()
    id: int | None = None

    @property
    def is_malformed(self) -> bool:
        if self.end_date < self.start_date:
            return True
        if self.all_day:
            return False
        if not (is_time_str(self.start_time) and is_time_str(self.end_time, allow_end_of_day=True)):
            return True
        return self.start_time >= self.end_time

    def applies_on(self, day: date) -> bool:
        if not self.start_date <= day <= self.end_date:
            return False
        if self.is_recurring and self.recurring_days:
            return day.weekday() in self.recurring_days
        return True

    def blocks(self, day: date, start_minute: int, end_minute: int) -> bool:
        """True if [start_minute, end_minute) on `day` intersects this period."""
        if not self.applies_on(day):
            return False
        if self.all_day:
            return True
        block_start = time_str_to_minutes(self.start_time)
        block_end = time_str_to_minutes(self.end_time)
        return start_minute < block_end and block_start < end_minute


class BlockedPeriodStore:
    """Well-formed blocked periods of one member, ready for slot filtering."""

    def __init__(self, periods, member_id: int):
        self.member_id = member_id
        self.periods: list[BlockedPeriod] = []

        for period in periods:
            if period.member_id != member_id:
                continue
            if period.is_malformed:
                logger.warning(
                    f"Skipping malformed blocked period id={period.id} "
                    f"member={period.member_id} "
                    f"({period.start_date}..{period.end_date}, "
                    f"{period.start_time}-{period.end_time})"
                )
                continue
            self.periods.append(period)

    def for_day(self, day: date) -> list[BlockedPeriod]:
        return [p for p in self.periods if p.applies_on(day)]

    def is_day_blocked(self, day: date) -> bool:
        return any(p.all_day for p in self.for_day(day))

    def blocks(self, day: date, start_minute: int, end_minute: int) -> bool:
        return any(p.blocks(day, start_minute, end_minute) for p in self.periods)
