import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from booking_backend.models.generated import Services
from booking_backend.services import next_slot_refresher
from booking_backend.services.next_slot_refresher import (
    needs_refresh,
    refresh_next_available_slot,
    refresh_stale_next_slots,
)
from booking_backend.services.slots import (
    Booking,
    DataUnavailable,
    InvalidInput,
    Member,
    NotFound,
    SlotPolicy,
    next_available_slot,
)
from conftest import NOW, TUESDAY
from test_aggregator import FakeSource

POLICY = SlotPolicy(slot_granularity_minutes=15, max_advance_days=60)
THURSDAY = datetime(2026, 10, 22, 8, 0)


def _next(members, source, now=NOW, policy=POLICY, duration=30):
    return asyncio.run(next_available_slot(members, duration, policy, source=source, now=now))


def test_earliest_slot_across_members() -> None:
    source = FakeSource({1: {"tue": [["10:00", "12:00"]]}, 2: {"tue": [["09:30", "12:00"]]}})

    slot = _next([Member(1, 10), Member(2, 10)], source)

    assert (slot.date, slot.start, slot.member_id) == (TUESDAY, "09:30", 2)


def test_booked_times_are_skipped() -> None:
    taken = Booking(1, datetime(2026, 10, 20, 9, 0), datetime(2026, 10, 20, 10, 0))
    source = FakeSource({1: {"tue": [["09:00", "12:00"]]}}, bookings={1: [taken]})

    assert _next([Member(1, 10)], source).start == "10:00"


def test_scan_continues_past_the_first_week() -> None:
    source = FakeSource({1: {"tue": [["09:00", "10:00"]]}})

    # Tuesday morning is over, so the first week scanned has nothing left
    slot = _next([Member(1, 10)], source, now=datetime(2026, 10, 27, 10, 30))

    assert slot.datetime == datetime(2026, 11, 3, 9, 0)


def test_nothing_inside_the_advance_window_gives_none() -> None:
    source = FakeSource({1: {"tue": [["09:00", "10:00"]]}})

    assert _next([Member(1, 10)], source, now=THURSDAY, policy=SlotPolicy(max_advance_days=3)) is None
    assert _next([], source) is None


def test_all_members_failing_raises_data_unavailable() -> None:
    source = FakeSource({1: {"tue": [["09:00", "10:00"]]}}, broken={1})

    with pytest.raises(DataUnavailable):
        _next([Member(1, 10)], source)


def test_aware_now_is_rejected() -> None:
    with pytest.raises(InvalidInput):
        _next([Member(1, 10)], FakeSource({1: {}}), now=NOW.replace(tzinfo=timezone.utc))


# ── Stored per-provider value ────────────────────────────────────────────


@pytest.fixture
def local_now(monkeypatch):
    monkeypatch.setattr(next_slot_refresher, "provider_now", lambda provider, at=None: NOW)


def test_refresh_stores_the_first_slot_of_the_shortest_service(repo, seeded, local_now) -> None:
    slot = refresh_next_available_slot(seeded["provider_id"], repo)

    assert slot.datetime == datetime(2026, 10, 19, 9, 0)
    assert slot.member_id == seeded["alice_id"]
    provider = repo.get_provider(seeded["provider_id"])
    assert provider.next_available_slot == "2026-10-19 09:00:00"
    assert provider.next_slot_checked_at == "2026-10-18 20:00:00"


def test_refresh_follows_bookings(repo, seeded, local_now) -> None:
    for member in ("alice_id", "bob_id"):
        repo.persist_booking(
            seeded[member], seeded["short_service_id"], datetime(2026, 10, 19, 9, 0), "Jane",
            policy=POLICY, now=NOW,
        )

    refresh_next_available_slot(seeded["provider_id"], repo)

    assert repo.get_provider(seeded["provider_id"]).next_available_slot == "2026-10-19 09:30:00"


def test_provider_without_services_stores_none(repo, seeded, session_factory, local_now) -> None:
    db = session_factory()
    try:
        for service in db.query(Services).all():
            service.is_active = 0
        db.commit()
    finally:
        db.close()

    assert refresh_next_available_slot(seeded["provider_id"], repo) is None
    provider = repo.get_provider(seeded["provider_id"])
    assert provider.next_available_slot is None
    assert provider.next_slot_checked_at is not None


def test_unknown_provider_is_not_found(repo, seeded, local_now) -> None:
    with pytest.raises(NotFound):
        refresh_next_available_slot(999, repo)


def _stored(slot=None, checked_at=None):
    return SimpleNamespace(next_available_slot=slot, next_slot_checked_at=checked_at)


def test_needs_refresh_when_never_computed_expired_or_old() -> None:
    recent = "2026-10-18 19:30:00"

    assert needs_refresh(_stored(), NOW)
    assert needs_refresh(_stored("2026-10-18 19:45:00", recent), NOW)
    assert needs_refresh(_stored("2026-10-19 09:00:00", "2026-10-18 17:00:00"), NOW)
    assert not needs_refresh(_stored("2026-10-19 09:00:00", recent), NOW)
    assert not needs_refresh(_stored(None, recent), NOW)


def test_stale_pass_refreshes_only_what_needs_it(monkeypatch, seeded, session_factory, local_now) -> None:
    monkeypatch.setattr(next_slot_refresher, "get_session_factory", lambda: session_factory)

    assert refresh_stale_next_slots() == 1
    assert refresh_stale_next_slots() == 0
    assert refresh_stale_next_slots(force=True) == 1
