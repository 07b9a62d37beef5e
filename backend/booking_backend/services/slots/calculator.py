# backend/booking_backend/services/slots/calculator.py
"""
Per-member slot generation.

For each day of the range:
  ✓ weekly working hours of the member (closed day → skipped)
  ✓ candidate start times every slot_granularity_minutes inside each range
  ✓ blocked periods (all-day or time-of-day)
  ✓ active bookings (pending/confirmed)
  ✓ lead time (slot start >= now + min_lead_time_minutes)
  ✓ advance window (slot date <= today + max_advance_days)

Pure: no I/O, no wall clock. `now` is always passed in by the caller.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from .blocked_periods import BlockedPeriod, BlockedPeriodStore
from .booking_index import Booking, BookingIndex
from .config import DateRange, SlotPolicy, minutes_to_time_str
from .errors import InvalidInput
from .working_hours import WeeklySchedule


@dataclass(frozen=True)
class CandidateSlot:
    date: date
    start: str  # "HH:MM"
    end: str    # "HH:MM", "24:00" when the slot ends at midnight
    datetime: datetime
    end_datetime: datetime
    member_id: int


def generate_slots(
    member_id: int,
    service_duration_minutes: int,
    date_range: DateRange,
    weekly_schedule: WeeklySchedule,
    blocked_periods: list[BlockedPeriod],
    existing_bookings: list[Booking],
    policy: SlotPolicy | None = None,
    *,
    now: datetime,
) -> list[CandidateSlot]:
    """
    Bookable slots of one member, ascending by start.

    Returns:
        List of CandidateSlot. Empty list = nothing bookable.

    Raises:
        InvalidInput: non-positive duration or timezone-aware `now`.
    """
    if (
        isinstance(service_duration_minutes, bool)
        or not isinstance(service_duration_minutes, int)
        or service_duration_minutes <= 0
    ):
        raise InvalidInput(
            f"service duration must be a positive number of minutes, got {service_duration_minutes!r}"
        )
    if now.tzinfo is not None:
        raise InvalidInput("now must be a naive local datetime")

    policy = policy or SlotPolicy()
    if not weekly_schedule.has_open_day:
        return []

    blocks = BlockedPeriodStore(blocked_periods, member_id)
    bookings = BookingIndex(b for b in existing_bookings if b.member_id == member_id)

    earliest_start = now + timedelta(minutes=policy.min_lead_time_minutes)
    last_day = now.date() + timedelta(days=policy.max_advance_days)
    duration = service_duration_minutes
    step = policy.slot_granularity_minutes

    slots: list[CandidateSlot] = []

    for day in date_range.days():
        if day > last_day:
            break

        # Step 1: working hours of the weekday
        day_schedule = weekly_schedule.for_date(day)
        if not day_schedule.is_open:
            continue

        # All-day block removes the whole day
        if blocks.is_day_blocked(day):
            continue

        midnight = datetime.combine(day, time.min)

        # Step 2: grid inside each open range (ranges are sorted, disjoint)
        for range_start, range_end in day_schedule.ranges:
            t = range_start
            while t + duration <= range_end:
                slot_end = t + duration
                slot_dt = midnight + timedelta(minutes=t)
                slot_end_dt = midnight + timedelta(minutes=slot_end)

                # Steps 3-5: blocks, bookings, lead time
                if (
                    slot_dt >= earliest_start
                    and not blocks.blocks(day, t, slot_end)
                    and not bookings.overlaps(member_id, slot_dt, slot_end_dt)
                ):
                    slots.append(CandidateSlot(
                        date=day,
                        start=minutes_to_time_str(t),
                        end=minutes_to_time_str(slot_end),
                        datetime=slot_dt,
                        end_datetime=slot_end_dt,
                        member_id=member_id,
                    ))

                t += step

    return slots
