# backend/booking_backend/services/slots/writer.py
"""
Creating and removing blocked periods.

Every rule is checked before anything is written; a failed create leaves
no record behind. Blocking several members at once is N independent
creates, reported per member.
"""

import logging
from dataclasses import dataclass
from datetime import date

from .blocked_periods import BlockedPeriod
from .config import is_time_str
from .errors import NotFound, ValidationError
from .sources import BlockedPeriodSink, MemberDirectory

logger = logging.getLogger(__name__)

REASON_MAX_LENGTH = 200


@dataclass(frozen=True)
class BlockResult:
    member_id: int
    period: BlockedPeriod | None = None
    error: ValidationError | None = None

    @property
    def ok(self) -> bool:
        return self.period is not None


class BlockPeriodWriter:
    def __init__(self, directory: MemberDirectory, sink: BlockedPeriodSink):
        self.directory = directory
        self.sink = sink

    def create(
        self,
        member_id: int,
        location_id: int,
        start_date: date,
        end_date: date,
        all_day: bool,
        start_time: str | None = None,
        end_time: str | None = None,
        reason: str | None = None,
        is_recurring: bool = False,
        recurring_days: list[int] | None = None,
    ) -> BlockedPeriod:
        """
        Validate and persist a blocked period.

        Raises:
            ValidationError: a rule is violated; `.field` names the field.
        """
        if end_date < start_date:
            raise ValidationError("end_date", "must be on or after start_date")

        if all_day:
            # Times are meaningless for a whole-day block
            start_time = end_time = None
        else:
            if not start_time:
                raise ValidationError("start_time", "required when the period is not all day")
            if not end_time:
                raise ValidationError("end_time", "required when the period is not all day")
            if not is_time_str(start_time):
                raise ValidationError("start_time", "expected HH:MM")
            if not is_time_str(end_time, allow_end_of_day=True):
                raise ValidationError("end_time", "expected HH:MM (or 24:00)")
            if start_time >= end_time:
                raise ValidationError("end_time", "must be after start_time")

        if reason is not None and len(reason) > REASON_MAX_LENGTH:
            raise ValidationError("reason", f"cannot exceed {REASON_MAX_LENGTH} characters")

        days = tuple(sorted(set(recurring_days or ())))
        if any(not 0 <= d <= 6 for d in days):
            raise ValidationError("recurring_days", "weekdays must be between 0 (Monday) and 6 (Sunday)")

        member = self.directory.get_member(member_id)
        if member is None or not member.is_active:
            raise ValidationError("member_id", "member not found or inactive")

        if not self.directory.location_is_active(location_id):
            raise ValidationError("location_id", "location not found or inactive")
        if member.location_id != location_id:
            raise ValidationError("location_id", "member does not work at this location")

        period = BlockedPeriod(
            member_id=member_id,
            location_id=location_id,
            start_date=start_date,
            end_date=end_date,
            all_day=bool(all_day),
            start_time=start_time,
            end_time=end_time,
            reason=reason or None,
            is_recurring=bool(is_recurring),
            recurring_days=days if is_recurring else (),
        )
        stored = self.sink.persist_blocked_period(period)

        logger.info(
            f"Blocked period created: id={stored.id}, member={member_id}, "
            f"{start_date.isoformat()}..{end_date.isoformat()}"
            + ("" if all_day else f" {start_time}-{end_time}")
        )
        return stored

    def create_for_members(
        self,
        member_ids: list[int],
        start_date: date,
        end_date: date,
        all_day: bool,
        start_time: str | None = None,
        end_time: str | None = None,
        reason: str | None = None,
        is_recurring: bool = False,
        recurring_days: list[int] | None = None,
    ) -> list[BlockResult]:
        """
        Block the same period for several members.

        Each member is blocked at their own location. Results keep the input
        order; a failure for one member does not affect the others.
        """
        results: list[BlockResult] = []
        for member_id in member_ids:
            member = self.directory.get_member(member_id)
            location_id = member.location_id if member is not None else None
            try:
                period = self.create(
                    member_id,
                    location_id,
                    start_date,
                    end_date,
                    all_day,
                    start_time=start_time,
                    end_time=end_time,
                    reason=reason,
                    is_recurring=is_recurring,
                    recurring_days=recurring_days,
                )
            except ValidationError as e:
                logger.info(f"Blocked period rejected for member {member_id}: {e}")
                results.append(BlockResult(member_id=member_id, error=e))
                continue
            results.append(BlockResult(member_id=member_id, period=period))
        return results

    def remove(self, period_id: int) -> None:
        """Delete a blocked period (unblock)."""
        if not self.sink.delete_blocked_period(period_id):
            raise NotFound(f"blocked period {period_id} not found")
        logger.info(f"Blocked period removed: id={period_id}")
