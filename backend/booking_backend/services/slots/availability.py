# backend/booking_backend/services/slots/availability.py
"""
Single-slot availability check.

Used at write time: the slot list a client picked from may be stale by the
time the booking is confirmed, so the booking path re-checks the chosen
interval against current working hours, blocks and bookings.

Unlike generate_slots this ignores the grid and the lead-time policy:
any interval fully inside an open range qualifies.
"""

from datetime import datetime, time, timedelta

from .blocked_periods import BlockedPeriod, BlockedPeriodStore
from .booking_index import Booking, BookingIndex
from .errors import InvalidInput
from .working_hours import WeeklySchedule


def is_slot_available(
    member_id: int,
    start: datetime,
    duration_minutes: int,
    weekly_schedule: WeeklySchedule,
    blocked_periods: list[BlockedPeriod],
    existing_bookings: list[Booking],
    *,
    exclude_booking_id: int | None = None,
) -> bool:
    """
    Check that [start, start + duration) can be booked for member_id.

    exclude_booking_id lets a reschedule ignore the booking being moved.
    """
    if duration_minutes <= 0:
        raise InvalidInput(f"duration must be positive, got {duration_minutes}")

    end = start + timedelta(minutes=duration_minutes)
    day = start.date()
    midnight = datetime.combine(day, time.min)
    start_min = int((start - midnight).total_seconds() // 60)
    end_min = int((end - midnight).total_seconds() // 60)

    # Slots never cross midnight
    if end.date() != day and end != midnight + timedelta(days=1):
        return False

    if not weekly_schedule.for_date(day).contains(start_min, end_min):
        return False

    blocks = BlockedPeriodStore(blocked_periods, member_id)
    if blocks.blocks(day, start_min, end_min):
        return False

    bookings = BookingIndex(existing_bookings)
    return not bookings.overlaps(member_id, start, end, exclude_booking_id)
