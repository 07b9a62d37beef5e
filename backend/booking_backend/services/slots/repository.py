# backend/booking_backend/services/slots/repository.py
"""
SQLAlchemy persistence for the availability engine.

Implements ScheduleSource, MemberDirectory, BlockedPeriodSink and
ScheduleStore. Every call opens and closes its own session, so one instance
can be shared by the concurrent member fetches of the aggregator.

Storage formats:
  dates      "YYYY-MM-DD"
  datetimes  "YYYY-MM-DD HH:MM:SS"
  booleans   0 / 1
"""

import json
import logging
from contextlib import contextmanager
from datetime import date, datetime, timedelta

from sqlalchemy.orm import Session

from ...models.generated import (
    AvailabilityChanges,
    BlockedPeriods,
    Bookings,
    Locations,
    Members,
    Providers,
    Services,
)
from ..clock import provider_now
from .availability import is_slot_available
from .blocked_periods import BlockedPeriod
from .booking_index import ACTIVE_STATUSES, BOOKING_STATUSES, Booking
from .config import DateRange, SlotPolicy
from .errors import InvalidInput, NotFound, SlotUnavailable, ValidationError
from .schedule_changes import AvailabilityChange
from .sources import Member
from .working_hours import DaySchedule, WeeklySchedule

logger = logging.getLogger(__name__)

DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"


class SqlScheduleRepository:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    @contextmanager
    def _session(self):
        db: Session = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    # ── ScheduleSource ───────────────────────────────────────────────────

    def get_weekly_schedule(self, member_id: int) -> WeeklySchedule:
        with self._session() as db:
            member = db.get(Members, member_id)
            if not member:
                raise NotFound(f"member {member_id} not found")
            return WeeklySchedule.from_json(member.work_schedule)

    def list_blocked_periods(self, member_id: int, date_range: DateRange) -> list[BlockedPeriod]:
        with self._session() as db:
            rows = (
                db.query(BlockedPeriods)
                .filter(
                    BlockedPeriods.member_id == member_id,
                    BlockedPeriods.date_start <= date_range.end.isoformat(),
                    BlockedPeriods.date_end >= date_range.start.isoformat(),
                )
                .order_by(BlockedPeriods.date_start)
                .all()
            )
            return [_to_blocked_period(row) for row in rows]

    def list_active_bookings(self, member_id: int, date_range: DateRange) -> list[Booking]:
        range_start = datetime.combine(date_range.start, datetime.min.time())
        range_end = datetime.combine(date_range.end + timedelta(days=1), datetime.min.time())
        return self.list_bookings_between(member_id, range_start, range_end)

    # ── MemberDirectory ──────────────────────────────────────────────────

    def list_active_members(self, provider_id: int) -> list[Member]:
        with self._session() as db:
            rows = (
                db.query(Members)
                .join(Locations, Members.location_id == Locations.id)
                .filter(
                    Members.provider_id == provider_id,
                    Members.is_active == 1,
                    Locations.is_active == 1,
                )
                .order_by(Members.sort_order, Members.id)
                .all()
            )
            return [_to_member(row) for row in rows]

    def get_member(self, member_id: int) -> Member | None:
        with self._session() as db:
            row = db.get(Members, member_id)
            return _to_member(row) if row else None

    def location_is_active(self, location_id: int) -> bool:
        if location_id is None:
            return False
        with self._session() as db:
            location = db.get(Locations, location_id)
            return bool(location and location.is_active)

    # ── BlockedPeriodSink ────────────────────────────────────────────────

    def persist_blocked_period(self, period: BlockedPeriod) -> BlockedPeriod:
        with self._session() as db:
            row = BlockedPeriods(
                member_id=period.member_id,
                location_id=period.location_id,
                date_start=period.start_date.isoformat(),
                date_end=period.end_date.isoformat(),
                all_day=int(period.all_day),
                time_start=period.start_time,
                time_end=period.end_time,
                reason=period.reason,
                is_recurring=int(period.is_recurring),
                recurring_days=json.dumps(list(period.recurring_days)) if period.recurring_days else None,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_blocked_period(row)

    def delete_blocked_period(self, period_id: int) -> bool:
        with self._session() as db:
            row = db.get(BlockedPeriods, period_id)
            if not row:
                return False
            db.delete(row)
            db.commit()
            return True

    def get_blocked_period(self, period_id: int) -> BlockedPeriod | None:
        with self._session() as db:
            row = db.get(BlockedPeriods, period_id)
            return _to_blocked_period(row) if row else None

    def list_member_blocked_periods(self, member_id: int) -> list[BlockedPeriod]:
        with self._session() as db:
            rows = (
                db.query(BlockedPeriods)
                .filter(BlockedPeriods.member_id == member_id)
                .order_by(BlockedPeriods.date_start)
                .all()
            )
            return [_to_blocked_period(row) for row in rows]

    def list_provider_blocked_periods(
        self,
        provider_id: int,
        upcoming_from: date | None = None,
    ) -> list[BlockedPeriod]:
        """All blocked periods of a provider's members; only those ending on/after upcoming_from if given."""
        with self._session() as db:
            query = (
                db.query(BlockedPeriods)
                .join(Members, BlockedPeriods.member_id == Members.id)
                .filter(Members.provider_id == provider_id)
            )
            if upcoming_from is not None:
                query = query.filter(BlockedPeriods.date_end >= upcoming_from.isoformat())
                query = query.order_by(BlockedPeriods.date_end, BlockedPeriods.date_start)
            else:
                query = query.order_by(BlockedPeriods.date_start)
            return [_to_blocked_period(row) for row in query.all()]

    # ── ScheduleStore ────────────────────────────────────────────────────

    def save_weekly_schedule(self, member_id: int, schedule: WeeklySchedule) -> None:
        with self._session() as db:
            member = db.get(Members, member_id)
            if not member:
                raise NotFound(f"member {member_id} not found")
            member.work_schedule = schedule.to_json()
            member.updated_at = datetime.now().strftime(DATETIME_FORMAT)
            db.commit()

    def list_bookings_between(self, member_id: int, start: datetime, end: datetime) -> list[Booking]:
        """Active bookings of a member intersecting [start, end)."""
        with self._session() as db:
            rows = (
                db.query(Bookings)
                .filter(
                    Bookings.member_id == member_id,
                    Bookings.status.in_(ACTIVE_STATUSES),
                    Bookings.date_start < end.strftime(DATETIME_FORMAT),
                    Bookings.date_end > start.strftime(DATETIME_FORMAT),
                )
                .order_by(Bookings.date_start)
                .all()
            )
            return [b for b in (_to_booking(row) for row in rows) if b is not None]

    def add_availability_change(self, change: AvailabilityChange) -> AvailabilityChange:
        with self._session() as db:
            if not db.get(Members, change.member_id):
                raise NotFound(f"member {change.member_id} not found")
            row = AvailabilityChanges(
                member_id=change.member_id,
                day_of_week=change.day_of_week,
                ranges=json.dumps(change.day.time_ranges()),
                is_open=int(change.day.is_open),
                effective_from=change.effective_from.strftime(DATETIME_FORMAT),
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return _to_change(row)

    def list_availability_changes(self, member_id: int | None) -> list[AvailabilityChange]:
        with self._session() as db:
            query = db.query(AvailabilityChanges)
            if member_id is not None:
                query = query.filter(AvailabilityChanges.member_id == member_id)
            rows = query.order_by(AvailabilityChanges.effective_from).all()

            changes = []
            for row in rows:
                try:
                    changes.append(_to_change(row))
                except (InvalidInput, ValueError) as e:
                    logger.warning(f"Skipping malformed availability change id={row.id}: {e}")
            return changes

    def delete_availability_change(self, change_id: int) -> bool:
        with self._session() as db:
            row = db.get(AvailabilityChanges, change_id)
            if not row:
                return False
            db.delete(row)
            db.commit()
            return True

    # ── Services, policy, bookings ───────────────────────────────────────

    def get_provider(self, provider_id: int) -> Providers | None:
        with self._session() as db:
            return db.get(Providers, provider_id)

    def get_service(self, service_id: int) -> Services | None:
        with self._session() as db:
            service = db.get(Services, service_id)
            if not service or not service.is_active:
                return None
            return service

    def policy_for_provider(self, provider: Providers, default: SlotPolicy) -> SlotPolicy:
        """Per-provider policy; columns left NULL fall back to `default`."""
        return SlotPolicy(
            slot_granularity_minutes=provider.slot_interval_minutes or default.slot_granularity_minutes,
            min_lead_time_minutes=(
                provider.min_booking_notice_minutes
                if provider.min_booking_notice_minutes is not None
                else default.min_lead_time_minutes
            ),
            max_advance_days=(
                provider.max_booking_advance_days
                if provider.max_booking_advance_days is not None
                else default.max_advance_days
            ),
        )

    @staticmethod
    def buffer_minutes(service: Services, provider: Providers | None) -> int:
        if service.buffer_min:
            return service.buffer_min
        return (provider.default_buffer_minutes or 0) if provider else 0

    def member_local_now(self, member_id: int, at: datetime | None = None) -> datetime:
        """Wall-clock time of the member's provider (server time for an unknown member)."""
        with self._session() as db:
            member = db.get(Members, member_id)
            provider = db.get(Providers, member.provider_id) if member else None
            return provider_now(provider, at)

    # ── Next available slot ──────────────────────────────────────────────

    def list_active_providers(self) -> list[Providers]:
        with self._session() as db:
            return db.query(Providers).filter(Providers.is_active == 1).order_by(Providers.id).all()

    def shortest_service_minutes(self, provider: Providers) -> int | None:
        """Shortest active service of a provider, buffer included; None without services."""
        with self._session() as db:
            services = (
                db.query(Services)
                .filter(Services.provider_id == provider.id, Services.is_active == 1)
                .all()
            )
        lengths = [s.duration_min + self.buffer_minutes(s, provider) for s in services if s.duration_min > 0]
        return min(lengths) if lengths else None

    def save_next_available_slot(
        self,
        provider_id: int,
        slot_start: datetime | None,
        checked_at: datetime,
    ) -> None:
        with self._session() as db:
            provider = db.get(Providers, provider_id)
            if not provider:
                raise NotFound(f"provider {provider_id} not found")
            provider.next_available_slot = slot_start.strftime(DATETIME_FORMAT) if slot_start else None
            provider.next_slot_checked_at = checked_at.strftime(DATETIME_FORMAT)
            db.commit()

    def persist_booking(
        self,
        member_id: int,
        service_id: int,
        start: datetime,
        client_name: str,
        *,
        policy: SlotPolicy,
        now: datetime,
        client_phone: str | None = None,
        client_email: str | None = None,
        notes: str | None = None,
    ) -> Bookings:
        """
        Create a booking after re-validating the slot against current data.

        Raises:
            NotFound: member or service missing/inactive.
            SlotUnavailable: the interval is no longer bookable.
        """
        with self._session() as db:
            member = db.get(Members, member_id)
            if not member or not member.is_active:
                raise NotFound(f"member {member_id} not found or inactive")

            service = db.get(Services, service_id)
            if not service or not service.is_active or service.provider_id != member.provider_id:
                raise NotFound(f"service {service_id} not found or inactive")

            provider = db.get(Providers, member.provider_id)
            buffer_min = self.buffer_minutes(service, provider)
            total_min = service.duration_min + buffer_min

            if start < now + timedelta(minutes=policy.min_lead_time_minutes):
                raise SlotUnavailable("slot starts too soon")
            if start.date() > now.date() + timedelta(days=policy.max_advance_days):
                raise SlotUnavailable("slot is beyond the booking window")

            # Re-read current state for the day of the booking
            day_range = DateRange(start.date(), start.date())
            try:
                schedule = WeeklySchedule.from_json(member.work_schedule)
            except InvalidInput as e:
                logger.error(f"Member {member_id} has an invalid work schedule: {e}")
                raise SlotUnavailable("member schedule is unavailable") from e

            blocked = [
                _to_blocked_period(row)
                for row in db.query(BlockedPeriods).filter(
                    BlockedPeriods.member_id == member_id,
                    BlockedPeriods.date_start <= day_range.end.isoformat(),
                    BlockedPeriods.date_end >= day_range.start.isoformat(),
                )
            ]
            day_start = datetime.combine(start.date(), datetime.min.time())
            existing = [
                b for b in (
                    _to_booking(row)
                    for row in db.query(Bookings).filter(
                        Bookings.member_id == member_id,
                        Bookings.status.in_(ACTIVE_STATUSES),
                        Bookings.date_start < (day_start + timedelta(days=2)).strftime(DATETIME_FORMAT),
                        Bookings.date_end > (day_start - timedelta(days=1)).strftime(DATETIME_FORMAT),
                    )
                )
                if b is not None
            ]

            if not is_slot_available(member_id, start, total_min, schedule, blocked, existing):
                raise SlotUnavailable("slot is no longer available")

            status = "pending" if provider and provider.requires_confirmation else "confirmed"
            end = start + timedelta(minutes=service.duration_min)

            booking = Bookings(
                provider_id=member.provider_id,
                location_id=member.location_id,
                service_id=service.id,
                member_id=member_id,
                date_start=start.strftime(DATETIME_FORMAT),
                date_end=end.strftime(DATETIME_FORMAT),
                duration_minutes=service.duration_min,
                buffer_minutes=buffer_min,
                status=status,
                client_name=client_name,
                client_phone=client_phone,
                client_email=client_email,
                notes=notes,
            )
            db.add(booking)
            db.commit()
            db.refresh(booking)

            logger.info(
                f"Booking created: booking_id={booking.id}, member={member_id}, "
                f"service={service.name}, time={booking.date_start}, status={status}"
            )
            return booking

    def update_booking_status(
        self,
        booking_id: int,
        status: str,
        cancel_reason: str | None = None,
    ) -> Bookings:
        if status not in BOOKING_STATUSES:
            raise ValidationError("status", f"must be one of {', '.join(BOOKING_STATUSES)}")

        with self._session() as db:
            booking = db.get(Bookings, booking_id)
            if not booking:
                raise NotFound(f"booking {booking_id} not found")
            if booking.status in ("cancelled", "noshow") and status != booking.status:
                raise ValidationError("status", f"booking is already {booking.status}")

            booking.status = status
            if status == "cancelled":
                booking.cancel_reason = cancel_reason
            booking.updated_at = datetime.now().strftime(DATETIME_FORMAT)
            db.commit()
            db.refresh(booking)
            return booking


# ── Row converters ───────────────────────────────────────────────────────


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", ""))


def _to_member(row: Members) -> Member:
    try:
        schedule = WeeklySchedule.from_json(row.work_schedule)
    except InvalidInput as e:
        logger.warning(f"Member {row.id} has an invalid work schedule: {e}")
        schedule = WeeklySchedule()
    return Member(
        id=row.id,
        location_id=row.location_id,
        is_active=bool(row.is_active),
        weekly_schedule=schedule,
        provider_id=row.provider_id,
        name=row.name,
    )


def _to_blocked_period(row: BlockedPeriods) -> BlockedPeriod:
    try:
        recurring_days = tuple(json.loads(row.recurring_days)) if row.recurring_days else ()
    except (json.JSONDecodeError, TypeError):
        recurring_days = ()
    return BlockedPeriod(
        id=row.id,
        member_id=row.member_id,
        location_id=row.location_id,
        start_date=date.fromisoformat(row.date_start[:10]),
        end_date=date.fromisoformat(row.date_end[:10]),
        all_day=bool(row.all_day),
        start_time=row.time_start,
        end_time=row.time_end,
        reason=row.reason,
        is_recurring=bool(row.is_recurring),
        recurring_days=recurring_days,
    )


def _to_booking(row: Bookings) -> Booking | None:
    """Occupied interval = appointment + buffer. Unparseable rows → None."""
    try:
        start = _parse_datetime(row.date_start)
        end = _parse_datetime(row.date_end) + timedelta(minutes=row.buffer_minutes or 0)
    except (ValueError, TypeError):
        logger.warning(f"Skipping booking id={row.id} with unreadable dates")
        return None
    return Booking(
        id=row.id,
        member_id=row.member_id,
        location_id=row.location_id,
        service_id=row.service_id,
        datetime=start,
        end_datetime=end,
        status=row.status,
    )


def _to_change(row: AvailabilityChanges) -> AvailabilityChange:
    return AvailabilityChange(
        id=row.id,
        member_id=row.member_id,
        day_of_week=row.day_of_week,
        day=DaySchedule.from_time_strings(json.loads(row.ranges or "[]"), is_open=bool(row.is_open)),
        effective_from=_parse_datetime(row.effective_from),
    )
