# backend/booking_backend/services/slots/next_slot.py
"""
Earliest bookable slot of a provider's team.

Scans the advance window week by week through generate_across_members and
stops at the first week that offers anything, so a busy provider does not
cost a full window of slot generation.
"""

import logging
from datetime import datetime, timedelta

from .aggregator import generate_across_members
from .calculator import CandidateSlot
from .config import DateRange, SlotPolicy, get_slot_policy
from .errors import DataUnavailable
from .sources import Member, ScheduleSource

logger = logging.getLogger(__name__)

SCAN_CHUNK_DAYS = 7


async def next_available_slot(
    members: list[Member],
    service_duration_minutes: int,
    policy: SlotPolicy | None = None,
    *,
    source: ScheduleSource,
    now: datetime,
    max_concurrency: int | None = None,
    fetch_timeout: float | None = None,
) -> CandidateSlot | None:
    """
    First slot, by (datetime, member id), within now.date() + max_advance_days.

    Returns None when nothing is bookable in the window.

    Raises:
        DataUnavailable: no member's availability could be loaded.
        InvalidInput: invalid duration or a timezone-aware `now`.
    """
    policy = policy or get_slot_policy()
    last_day = now.date() + timedelta(days=policy.max_advance_days)

    chunk_start = now.date()
    while chunk_start <= last_day:
        chunk_end = min(chunk_start + timedelta(days=SCAN_CHUNK_DAYS - 1), last_day)
        result = await generate_across_members(
            members,
            service_duration_minutes,
            DateRange(chunk_start, chunk_end),
            policy,
            source=source,
            now=now,
            max_concurrency=max_concurrency,
            fetch_timeout=fetch_timeout,
        )
        if result.all_failed:
            raise DataUnavailable(
                ",".join(str(m) for m in result.failed_member_ids),
                "availability could not be loaded for any member",
            )
        if result.slots:
            return result.slots[0]
        chunk_start = chunk_end + timedelta(days=1)

    logger.info(f"No slot available up to {last_day.isoformat()}")
    return None
