# backend/booking_backend/services/slots/aggregator.py
"""
Multi-member slot aggregation.

Fans out over active members: each member's inputs are fetched from the
ScheduleSource (blocking calls run via asyncio.to_thread), slots are generated,
then all results are merged, deduplicated by (datetime, member_id) and sorted.

A member whose data cannot be loaded (or whose task is cancelled) is dropped
from the result and reported in failed_member_ids. The call itself only fails
on invalid arguments or when the whole request is cancelled.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime

from .calculator import CandidateSlot, generate_slots
from .config import DateRange, SlotPolicy
from .errors import DataUnavailable, InvalidInput
from .sources import Member, ScheduleSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregatedSlots:
    slots: list[CandidateSlot] = field(default_factory=list)
    failed_member_ids: list[int] = field(default_factory=list)
    attempted: int = 0

    @property
    def all_failed(self) -> bool:
        """True when availability could not be loaded for any member."""
        return self.attempted > 0 and len(self.failed_member_ids) == self.attempted


async def generate_across_members(
    members: list[Member],
    service_duration_minutes: int,
    date_range: DateRange,
    policy: SlotPolicy | None = None,
    *,
    source: ScheduleSource,
    now: datetime,
    max_concurrency: int | None = None,
    fetch_timeout: float | None = None,
) -> AggregatedSlots:
    """
    Merged slots of all active members, ascending by (datetime, member id).

    Args:
        max_concurrency: Cap on simultaneous member fetches
                         (default: one per active member)
        fetch_timeout: Seconds allowed for one member's fetch (default: none)
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

    active = [m for m in members if m.is_active]
    if not active:
        return AggregatedSlots()

    limit = min(max_concurrency or len(active), len(active))
    semaphore = asyncio.Semaphore(limit)

    tasks = [
        asyncio.create_task(
            _member_slots(
                member,
                service_duration_minutes,
                date_range,
                policy,
                source=source,
                now=now,
                semaphore=semaphore,
                fetch_timeout=fetch_timeout,
            ),
            name=f"slots-member-{member.id}",
        )
        for member in active
    ]
    results = await asyncio.gather(*tasks, return_exceptions=True)

    merged: list[CandidateSlot] = []
    failed: list[int] = []
    seen: set[tuple[datetime, int]] = set()

    for member, result in zip(active, results):
        if isinstance(result, BaseException):
            failed.append(member.id)
            if isinstance(result, asyncio.CancelledError):
                logger.info(f"Slots for member {member.id} cancelled, omitted")
            else:
                logger.warning(f"Slots for member {member.id} dropped: {result}")
            continue

        for slot in result:
            key = (slot.datetime, slot.member_id)
            if key in seen:
                continue
            seen.add(key)
            merged.append(slot)

    merged.sort(key=lambda s: (s.datetime, str(s.member_id)))

    if failed and len(failed) == len(active):
        logger.error(
            f"Availability could not be loaded for any of {len(active)} members"
        )

    return AggregatedSlots(slots=merged, failed_member_ids=failed, attempted=len(active))


async def _member_slots(
    member: Member,
    service_duration_minutes: int,
    date_range: DateRange,
    policy: SlotPolicy | None,
    *,
    source: ScheduleSource,
    now: datetime,
    semaphore: asyncio.Semaphore,
    fetch_timeout: float | None,
) -> list[CandidateSlot]:
    async with semaphore:
        try:
            fetch = _fetch_member_inputs(source, member.id, date_range)
            if fetch_timeout is not None:
                schedule, blocked, bookings = await asyncio.wait_for(fetch, fetch_timeout)
            else:
                schedule, blocked, bookings = await fetch
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise DataUnavailable(member.id, f"{type(e).__name__}: {e}") from e

    try:
        return generate_slots(
            member.id,
            service_duration_minutes,
            date_range,
            schedule,
            blocked,
            bookings,
            policy,
            now=now,
        )
    except Exception as e:
        raise DataUnavailable(member.id, f"slot generation failed: {e}") from e


async def _fetch_member_inputs(source: ScheduleSource, member_id: int, date_range: DateRange):
    return await asyncio.gather(
        asyncio.to_thread(source.get_weekly_schedule, member_id),
        asyncio.to_thread(source.list_blocked_periods, member_id, date_range),
        asyncio.to_thread(source.list_active_bookings, member_id, date_range),
    )


def load_member_slots(
    member_id: int,
    service_duration_minutes: int,
    date_range: DateRange,
    policy: SlotPolicy | None = None,
    *,
    source: ScheduleSource,
    now: datetime,
) -> list[CandidateSlot]:
    """
    Fetch one member's inputs synchronously and generate their slots.

    Raises:
        DataUnavailable: the member's inputs could not be read.
        InvalidInput: invalid arguments.
    """
    try:
        schedule = source.get_weekly_schedule(member_id)
        blocked = source.list_blocked_periods(member_id, date_range)
        bookings = source.list_active_bookings(member_id, date_range)
    except InvalidInput as e:
        raise DataUnavailable(member_id, str(e)) from e

    return generate_slots(
        member_id,
        service_duration_minutes,
        date_range,
        schedule,
        blocked,
        bookings,
        policy,
        now=now,
    )
