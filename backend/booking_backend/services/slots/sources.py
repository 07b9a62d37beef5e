# backend/booking_backend/services/slots/sources.py
"""
Interfaces the engine consumes from the persistence layer.

SqlScheduleRepository (repository.py) implements all of them. Tests use
in-memory fakes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from .blocked_periods import BlockedPeriod
from .booking_index import Booking
from .config import DateRange
from .working_hours import WeeklySchedule

if TYPE_CHECKING:
    from .schedule_changes import AvailabilityChange


@dataclass(frozen=True)
class Member:
    id: int
    location_id: int
    is_active: bool = True
    weekly_schedule: WeeklySchedule = field(default_factory=WeeklySchedule)
    provider_id: int | None = None
    name: str | None = None


class ScheduleSource(Protocol):
    def get_weekly_schedule(self, member_id: int) -> WeeklySchedule: ...

    def list_blocked_periods(self, member_id: int, date_range: DateRange) -> list[BlockedPeriod]: ...

    def list_active_bookings(self, member_id: int, date_range: DateRange) -> list[Booking]: ...


class MemberDirectory(Protocol):
    def list_active_members(self, provider_id: int) -> list[Member]: ...

    def get_member(self, member_id: int) -> Member | None: ...

    def location_is_active(self, location_id: int) -> bool: ...


class BlockedPeriodSink(Protocol):
    def persist_blocked_period(self, period: BlockedPeriod) -> BlockedPeriod: ...

    def delete_blocked_period(self, period_id: int) -> bool: ...


class ScheduleStore(Protocol):
    def get_weekly_schedule(self, member_id: int) -> WeeklySchedule: ...

    def save_weekly_schedule(self, member_id: int, schedule: WeeklySchedule) -> None: ...

    def list_bookings_between(self, member_id: int, start: datetime, end: datetime) -> list[Booking]: ...

    def add_availability_change(self, change: "AvailabilityChange") -> "AvailabilityChange": ...

    def list_availability_changes(self, member_id: int | None) -> list["AvailabilityChange"]: ...

    def delete_availability_change(self, change_id: int) -> bool: ...
