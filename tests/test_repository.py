from datetime import datetime, timedelta

import pytest

from booking_backend.models.generated import Bookings, Members, Providers, Services
from booking_backend.services.slots import (
    BlockedPeriod,
    DataUnavailable,
    DateRange,
    InvalidInput,
    NotFound,
    SlotPolicy,
    SlotUnavailable,
    ValidationError,
    load_member_slots,
)
from booking_backend.services.slots.schedule_changes import AvailabilityChange
from booking_backend.services.slots.working_hours import DaySchedule
from conftest import MONDAY, NOW, TUESDAY

POLICY = SlotPolicy(slot_granularity_minutes=15)


def _at(day, hour, minute=0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


def _book(repo, seeded, start, member="alice_id", service="short_service_id", now=NOW):
    return repo.persist_booking(
        seeded[member],
        seeded[service],
        start,
        "Client",
        policy=POLICY,
        now=now,
    )


def _update(session_factory, model, row_id, **values):
    db = session_factory()
    try:
        row = db.get(model, row_id)
        for key, value in values.items():
            setattr(row, key, value)
        db.commit()
    finally:
        db.close()


def test_active_members_exclude_inactive_members_and_locations(repo, seeded, session_factory) -> None:
    _update(session_factory, Members, seeded["bob_id"], location_id=seeded["closed_location_id"])

    members = repo.list_active_members(seeded["provider_id"])

    assert [m.id for m in members] == [seeded["alice_id"]]
    assert members[0].weekly_schedule.for_date(MONDAY).is_open


def test_weekly_schedule_round_trips_through_storage(repo, seeded) -> None:
    schedule = repo.get_weekly_schedule(seeded["alice_id"]).with_day(4, DaySchedule.from_time_strings([["10:00", "11:00"]]))

    repo.save_weekly_schedule(seeded["alice_id"], schedule)

    assert repo.get_weekly_schedule(seeded["alice_id"]) == schedule
    with pytest.raises(NotFound):
        repo.get_weekly_schedule(999)


def test_corrupt_schedule_surfaces_as_data_unavailable(repo, seeded, session_factory) -> None:
    _update(session_factory, Members, seeded["alice_id"], work_schedule="{broken")

    with pytest.raises(InvalidInput):
        repo.get_weekly_schedule(seeded["alice_id"])
    with pytest.raises(DataUnavailable):
        load_member_slots(seeded["alice_id"], 30, DateRange(MONDAY, MONDAY), POLICY, source=repo, now=NOW)


def test_blocked_periods_are_filtered_by_overlap_with_range(repo, seeded) -> None:
    member, location = seeded["alice_id"], seeded["location_id"]
    repo.persist_blocked_period(BlockedPeriod(member, location, MONDAY, MONDAY, all_day=True))
    repo.persist_blocked_period(BlockedPeriod(
        member, location, TUESDAY, TUESDAY + timedelta(days=7), all_day=False,
        start_time="09:00", end_time="09:30", is_recurring=True, recurring_days=(1,),
    ))

    tuesday = repo.list_blocked_periods(member, DateRange(TUESDAY, TUESDAY))

    assert len(tuesday) == 1
    assert tuesday[0].recurring_days == (1,)
    assert tuesday[0].start_time == "09:00"
    assert len(repo.list_member_blocked_periods(member)) == 2
    assert len(repo.list_provider_blocked_periods(seeded["provider_id"], upcoming_from=TUESDAY)) == 1


def test_blocked_slots_disappear_from_generated_slots(repo, seeded) -> None:
    member = seeded["alice_id"]
    repo.persist_blocked_period(BlockedPeriod(member, seeded["location_id"], MONDAY, MONDAY, all_day=True))

    assert load_member_slots(member, 30, DateRange(MONDAY, MONDAY), POLICY, source=repo, now=NOW) == []


def test_booking_is_confirmed_and_blocks_the_slot(repo, seeded) -> None:
    booking = _book(repo, seeded, _at(MONDAY, 10))

    assert booking.status == "confirmed"
    assert booking.date_start == "2026-10-19 10:00:00"
    assert booking.date_end == "2026-10-19 10:30:00"

    starts = [s.start for s in load_member_slots(
        seeded["alice_id"], 30, DateRange(MONDAY, MONDAY), POLICY, source=repo, now=NOW,
    )]
    assert "10:00" not in starts and "09:45" not in starts
    assert "10:30" in starts


def test_provider_requiring_confirmation_gets_pending_bookings(repo, seeded, session_factory) -> None:
    _update(session_factory, Providers, seeded["provider_id"], requires_confirmation=1)

    assert _book(repo, seeded, _at(MONDAY, 9)).status == "pending"


def test_double_booking_is_refused(repo, seeded) -> None:
    _book(repo, seeded, _at(MONDAY, 10))

    with pytest.raises(SlotUnavailable):
        _book(repo, seeded, _at(MONDAY, 10, 15))
    # another member is still free
    assert _book(repo, seeded, _at(MONDAY, 10), member="bob_id").member_id == seeded["bob_id"]


def test_booking_outside_hours_or_blocked_is_refused(repo, seeded) -> None:
    repo.persist_blocked_period(BlockedPeriod(
        seeded["alice_id"], seeded["location_id"], MONDAY, MONDAY,
        all_day=False, start_time="11:00", end_time="12:00",
    ))

    with pytest.raises(SlotUnavailable):
        _book(repo, seeded, _at(MONDAY, 13))
    with pytest.raises(SlotUnavailable):
        _book(repo, seeded, _at(MONDAY, 11))


def test_booking_respects_lead_time_and_window(repo, seeded) -> None:
    with pytest.raises(SlotUnavailable):
        _book(repo, seeded, _at(MONDAY, 9), now=_at(MONDAY, 9, 5))
    with pytest.raises(SlotUnavailable):
        _book(repo, seeded, _at(MONDAY, 9), now=_at(MONDAY, 9) - timedelta(days=61))


def test_buffer_extends_occupied_time(repo, seeded, session_factory) -> None:
    _update(session_factory, Services, seeded["short_service_id"], buffer_min=15)
    _book(repo, seeded, _at(MONDAY, 10))

    bookings = repo.list_active_bookings(seeded["alice_id"], DateRange(MONDAY, MONDAY))

    assert bookings[0].end_datetime == _at(MONDAY, 10, 45)
    with pytest.raises(SlotUnavailable):
        _book(repo, seeded, _at(MONDAY, 10, 30))


def test_unknown_member_or_service_is_not_found(repo, seeded) -> None:
    with pytest.raises(NotFound):
        repo.persist_booking(999, seeded["short_service_id"], _at(MONDAY, 9), "X", policy=POLICY, now=NOW)
    with pytest.raises(NotFound):
        repo.persist_booking(seeded["alice_id"], 999, _at(MONDAY, 9), "X", policy=POLICY, now=NOW)


def test_cancelled_booking_frees_the_slot(repo, seeded) -> None:
    booking = _book(repo, seeded, _at(MONDAY, 10))

    updated = repo.update_booking_status(booking.id, "cancelled", cancel_reason="sick")

    assert updated.status == "cancelled"
    assert updated.cancel_reason == "sick"
    assert _book(repo, seeded, _at(MONDAY, 10)).id != booking.id
    with pytest.raises(ValidationError):
        repo.update_booking_status(booking.id, "confirmed")
    with pytest.raises(ValidationError):
        repo.update_booking_status(booking.id, "archived")
    with pytest.raises(NotFound):
        repo.update_booking_status(999, "confirmed")


def test_unreadable_booking_rows_are_skipped(repo, seeded, session_factory) -> None:
    booking = _book(repo, seeded, _at(MONDAY, 10))
    _update(session_factory, Bookings, booking.id, date_end="soon")

    assert repo.list_active_bookings(seeded["alice_id"], DateRange(MONDAY, MONDAY)) == []


def test_availability_changes_are_stored_listed_and_deleted(repo, seeded) -> None:
    change = repo.add_availability_change(AvailabilityChange(
        member_id=seeded["alice_id"],
        day_of_week=2,
        day=DaySchedule.from_time_strings([["08:00", "10:00"]]),
        effective_from=NOW + timedelta(days=1),
    ))

    listed = repo.list_availability_changes(seeded["alice_id"])

    assert [c.id for c in listed] == [change.id]
    assert listed[0].day.time_ranges() == [["08:00", "10:00"]]
    assert listed[0].effective_from == NOW + timedelta(days=1)
    assert repo.list_availability_changes(seeded["bob_id"]) == []
    assert repo.delete_availability_change(change.id)
    assert not repo.delete_availability_change(change.id)


def test_policy_follows_provider_columns(repo, seeded, session_factory) -> None:
    _update(session_factory, Providers, seeded["provider_id"], slot_interval_minutes=30, min_booking_notice_minutes=120)

    policy = repo.policy_for_provider(repo.get_provider(seeded["provider_id"]), SlotPolicy())

    assert policy == SlotPolicy(slot_granularity_minutes=30, min_lead_time_minutes=120, max_advance_days=60)
