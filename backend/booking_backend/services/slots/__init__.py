# backend/booking_backend/services/slots/__init__.py
"""
Slot availability engine.

Level 1: Member inputs (weekly hours, blocked periods, bookings)
Level 2: Candidate slots, per member or merged across a provider's team
"""

from .aggregator import AggregatedSlots, generate_across_members, load_member_slots
from .availability import is_slot_available
from .blocked_periods import BlockedPeriod, BlockedPeriodStore
from .booking_index import Booking, BookingIndex
from .calculator import CandidateSlot, generate_slots
from .config import DateRange, SlotPolicy, get_slot_policy
from .errors import (
    DataUnavailable,
    InvalidInput,
    NotFound,
    SchedulingError,
    SlotUnavailable,
    ValidationError,
)
from .next_slot import next_available_slot
from .schedule_changes import AvailabilityChange, AvailabilityConflict, ScheduleEditor
from .sources import Member
from .working_hours import DaySchedule, WeeklySchedule
from .writer import BlockPeriodWriter, BlockResult

__all__ = [
    "AggregatedSlots",
    "AvailabilityChange",
    "AvailabilityConflict",
    "BlockedPeriod",
    "BlockedPeriodStore",
    "BlockPeriodWriter",
    "BlockResult",
    "Booking",
    "BookingIndex",
    "CandidateSlot",
    "DataUnavailable",
    "DateRange",
    "DaySchedule",
    "InvalidInput",
    "Member",
    "NotFound",
    "ScheduleEditor",
    "SchedulingError",
    "SlotPolicy",
    "SlotUnavailable",
    "ValidationError",
    "WeeklySchedule",
    "generate_across_members",
    "generate_slots",
    "get_slot_policy",
    "is_slot_available",
    "load_member_slots",
    "next_available_slot",
]
