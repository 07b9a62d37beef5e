# backend/booking_backend/services/slots/schedule_changes.py
"""
Editing a member's weekly working hours.

Changes apply either immediately or from a future effective_from moment.
Scheduled changes are stored apart from the live schedule and folded into it
by apply_due_changes (run periodically by services/schedule_checker.py).

Before a change is stored, upcoming bookings on that weekday are checked:
  day_closed    — the new day is closed
  reduced_hours — the booking no longer fits any new range
Conflicts are reported, not enforced; the provider decides what to do.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Callable

from .booking_index import Booking
from .errors import InvalidInput
from .sources import ScheduleStore
from .working_hours import DaySchedule, WeeklySchedule

logger = logging.getLogger(__name__)

CONFLICT_HORIZON_DAYS = 365


@dataclass(frozen=True)
class AvailabilityChange:
    member_id: int
    day_of_week: int  # 0 = Monday
    day: DaySchedule
    effective_from: datetime
    id: int | None = None


@dataclass(frozen=True)
class AvailabilityConflict:
    booking_id: int | None
    booking_datetime: datetime
    conflict_type: str  # "day_closed" | "reduced_hours"


def detect_conflicts(
    bookings: list[Booking],
    day_of_week: int,
    new_day: DaySchedule,
) -> list[AvailabilityConflict]:
    """Active bookings on `day_of_week` that `new_day` would no longer cover."""
    conflicts = []
    for booking in sorted(bookings, key=lambda b: b.datetime):
        if not booking.is_active or booking.datetime.weekday() != day_of_week:
            continue

        if not new_day.is_open:
            conflicts.append(AvailabilityConflict(booking.id, booking.datetime, "day_closed"))
            continue

        midnight = datetime.combine(booking.datetime.date(), time.min)
        start_min = int((booking.datetime - midnight).total_seconds() // 60)
        end_min = int((booking.end_datetime - midnight).total_seconds() // 60)
        if not new_day.contains(start_min, end_min):
            conflicts.append(AvailabilityConflict(booking.id, booking.datetime, "reduced_hours"))

    return conflicts


class ScheduleEditor:
    def __init__(self, store: ScheduleStore):
        self.store = store

    def set_weekly_schedule(self, member_id: int, schedule: WeeklySchedule | dict) -> WeeklySchedule:
        """Replace the whole weekly schedule (validated)."""
        if isinstance(schedule, dict):
            schedule = WeeklySchedule.from_dict(schedule)
        self.store.save_weekly_schedule(member_id, schedule)
        logger.info(f"Weekly schedule updated for member {member_id}")
        return schedule

    def set_day(self, member_id: int, day_of_week: int, day: DaySchedule) -> WeeklySchedule:
        """Replace one weekday of the live schedule."""
        schedule = self.store.get_weekly_schedule(member_id).with_day(day_of_week, day)
        self.store.save_weekly_schedule(member_id, schedule)
        return schedule

    def schedule_day_change(
        self,
        member_id: int,
        day_of_week: int,
        ranges: list[list[str]],
        is_open: bool,
        effective_from: datetime,
        *,
        now: datetime,
    ) -> tuple[AvailabilityChange, list[AvailabilityConflict]]:
        """
        Change one weekday from `effective_from` on.

        A change effective now (or in the past) is applied to the live
        schedule immediately and returned without an id.
        """
        if not 0 <= day_of_week <= 6:
            raise InvalidInput(f"day_of_week must be between 0 and 6, got {day_of_week}")

        day = DaySchedule.from_time_strings(ranges, is_open=is_open)
        window_start = max(effective_from, now)
        bookings = self.store.list_bookings_between(
            member_id,
            window_start,
            window_start + timedelta(days=CONFLICT_HORIZON_DAYS),
        )
        conflicts = detect_conflicts(bookings, day_of_week, day)

        change = AvailabilityChange(
            member_id=member_id,
            day_of_week=day_of_week,
            day=day,
            effective_from=effective_from,
        )
        if effective_from <= now:
            self.set_day(member_id, day_of_week, day)
            logger.info(f"Day {day_of_week} of member {member_id} changed immediately")
        else:
            change = self.store.add_availability_change(change)
            logger.info(
                f"Scheduled change id={change.id} for member {member_id}, "
                f"day {day_of_week}, effective {effective_from.isoformat()}"
            )

        if conflicts:
            logger.warning(
                f"Change for member {member_id} day {day_of_week} "
                f"conflicts with {len(conflicts)} booking(s)"
            )
        return change, conflicts

    def list_scheduled_changes(self, member_id: int | None = None, *, now: datetime) -> list[AvailabilityChange]:
        return [
            c for c in self.store.list_availability_changes(member_id)
            if c.effective_from > now
        ]

    def delete_scheduled_change(self, change_id: int) -> bool:
        return self.store.delete_availability_change(change_id)

    def apply_due_changes(self, now: datetime | Callable[[int], datetime]) -> int:
        """
        Fold changes with effective_from <= now into live schedules.

        effective_from is a provider-local time, so `now` is either one wall
        clock shared by every member or a callable returning the local time
        of a member's provider, asked once per member.
        """
        if callable(now):
            member_now = now
        else:
            def member_now(member_id: int) -> datetime:
                return now

        local_now: dict[int, datetime] = {}
        due = []
        for change in self.store.list_availability_changes(None):
            if change.member_id not in local_now:
                local_now[change.member_id] = member_now(change.member_id)
            if change.effective_from <= local_now[change.member_id]:
                due.append(change)
        due.sort(key=lambda c: c.effective_from)

        for change in due:
            self.set_day(change.member_id, change.day_of_week, change.day)
            self.store.delete_availability_change(change.id)

        if due:
            logger.info(f"Applied {len(due)} due availability change(s)")
        return len(due)

