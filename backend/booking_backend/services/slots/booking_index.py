# backend/booking_backend/services/slots/booking_index.py
"""
Read-only index of existing bookings used for overlap checks.

Only pending/confirmed bookings occupy time. Cancelled and no-show bookings
are ignored. The snapshot passed in is treated as authoritative for the call.
"""

import logging
from bisect import bisect_left
from dataclasses import dataclass
from datetime import datetime

from .config import DateRange

logger = logging.getLogger(__name__)

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "noshow")
ACTIVE_STATUSES = ("pending", "confirmed")


@dataclass(frozen=True)
class Booking:
    member_id: int
    datetime: datetime
    end_datetime: datetime
    status: str = "pending"
    location_id: int | None = None
    service_id: int | None = None
    id: int | None = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_malformed(self) -> bool:
        return self.end_datetime <= self.datetime

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return start < self.end_datetime and self.datetime < end


class BookingIndex:
    """Active, well-formed bookings sorted by start time."""

    def __init__(self, bookings):
        items: list[Booking] = []
        for booking in bookings:
            if not booking.is_active:
                continue
            if booking.is_malformed:
                logger.warning(
                    f"Skipping malformed booking id={booking.id} "
                    f"member={booking.member_id} "
                    f"({booking.datetime.isoformat()} → {booking.end_datetime.isoformat()})"
                )
                continue
            items.append(booking)
        self._bookings = sorted(items, key=lambda b: (b.datetime, b.end_datetime))
        self._starts = [b.datetime for b in self._bookings]

    def __len__(self) -> int:
        return len(self._bookings)

    def list_active_for_member(
        self,
        member_id: int,
        date_range: DateRange | None = None,
    ) -> list[Booking]:
        """Active bookings of a member, optionally limited to bookings touching date_range."""
        result = []
        for booking in self._bookings:
            if booking.member_id != member_id:
                continue
            if date_range is not None and (
                booking.end_datetime.date() < date_range.start
                or booking.datetime.date() > date_range.end
            ):
                continue
            result.append(booking)
        return result

    def overlaps(
        self,
        member_id: int,
        start: datetime,
        end: datetime,
        exclude_booking_id: int | None = None,
    ) -> bool:
        """True if [start, end) intersects an active booking of member_id."""
        # Bookings starting at or after `end` cannot overlap
        upper = bisect_left(self._starts, end)
        for booking in self._bookings[:upper]:
            if booking.member_id != member_id:
                continue
            if exclude_booking_id is not None and booking.id == exclude_booking_id:
                continue
            if booking.overlaps(start, end):
                return True
        return False
