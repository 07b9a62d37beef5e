import json
from datetime import datetime
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from booking_backend.database import get_db, get_session_factory
from booking_backend.main import app
from booking_backend.models.generated import Members
from conftest import MONDAY, NOW, TUESDAY


@pytest.fixture
def client(session_factory, seeded, monkeypatch):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_db] = override_get_db
    for module in ("slots", "bookings", "schedules"):
        monkeypatch.setattr(f"booking_backend.routers.{module}.provider_now", lambda provider: NOW)
    for module in ("next_slot_refresher", "slots.repository"):
        monkeypatch.setattr(f"booking_backend.services.{module}.provider_now", lambda provider, at=None: NOW)

    # No lifespan: the schedule checker loop is not started
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def events():
    with (
        patch("booking_backend.routers.blocked_periods.emit_event") as blocked,
        patch("booking_backend.routers.bookings.emit_event") as bookings,
    ):
        yield {"blocked": blocked, "bookings": bookings}


def test_member_slots_endpoint(client, seeded) -> None:
    response = client.get("/slots/member", params={
        "member_id": seeded["alice_id"],
        "service_id": seeded["short_service_id"],
        "start_date": MONDAY.isoformat(),
    })

    assert response.status_code == 200
    body = response.json()
    assert body["duration_minutes"] == 30
    assert len(body["slots"]) == 11
    assert body["slots"][0]["start"] == "09:00"
    assert body["slots"][-1]["end"] == "12:00"


def test_member_slots_rejects_inverted_range(client, seeded) -> None:
    response = client.get("/slots/member", params={
        "member_id": seeded["alice_id"],
        "service_id": seeded["short_service_id"],
        "start_date": TUESDAY.isoformat(),
        "end_date": MONDAY.isoformat(),
    })

    assert response.status_code == 400


def test_member_slots_unknown_service_is_404(client, seeded) -> None:
    response = client.get("/slots/member", params={
        "member_id": seeded["alice_id"],
        "service_id": 999,
        "start_date": MONDAY.isoformat(),
    })

    assert response.status_code == 404


def test_provider_slots_merge_members(client, seeded) -> None:
    response = client.get("/slots/provider", params={
        "provider_id": seeded["provider_id"],
        "service_id": seeded["long_service_id"],
        "start_date": TUESDAY.isoformat(),
    })

    assert response.status_code == 200
    body = response.json()
    assert [(s["start"], s["member_id"]) for s in body["slots"]] == [
        ("09:00", seeded["alice_id"]),
        ("09:00", seeded["bob_id"]),
    ]
    assert body["failed_member_ids"] == []
    assert body["all_failed"] is False


def test_provider_slots_report_member_with_corrupt_schedule(client, seeded, session_factory) -> None:
    db = session_factory()
    try:
        db.get(Members, seeded["bob_id"]).work_schedule = json.dumps({"tue": "sometimes"})
        db.commit()
    finally:
        db.close()

    response = client.get("/slots/provider", params={
        "provider_id": seeded["provider_id"],
        "service_id": seeded["long_service_id"],
        "start_date": TUESDAY.isoformat(),
    })

    body = response.json()
    assert body["failed_member_ids"] == [seeded["bob_id"]]
    assert {s["member_id"] for s in body["slots"]} == {seeded["alice_id"]}


def test_blocked_period_without_end_time_is_rejected(client, seeded, events) -> None:
    response = client.post("/blocked_periods/", json={
        "member_id": seeded["alice_id"],
        "location_id": seeded["location_id"],
        "start_date": MONDAY.isoformat(),
        "end_date": MONDAY.isoformat(),
        "all_day": False,
        "start_time": "10:00",
    })

    assert response.status_code == 400
    assert response.json()["detail"]["field"] == "end_time"
    assert client.get("/blocked_periods/", params={"member_id": seeded["alice_id"]}).json() == []
    events["blocked"].assert_not_called()


def test_blocked_period_lifecycle(client, seeded, events) -> None:
    created = client.post("/blocked_periods/", json={
        "member_id": seeded["alice_id"],
        "location_id": seeded["location_id"],
        "start_date": MONDAY.isoformat(),
        "end_date": MONDAY.isoformat(),
        "all_day": True,
        "reason": "Training",
    })

    assert created.status_code == 201
    period_id = created.json()["id"]
    assert events["blocked"].call_args.args[0] == "blocked_period_created"

    slots = client.get("/slots/member", params={
        "member_id": seeded["alice_id"],
        "service_id": seeded["short_service_id"],
        "start_date": MONDAY.isoformat(),
    }).json()["slots"]
    assert slots == []

    assert client.patch(f"/blocked_periods/{period_id}", json={}).status_code == 405
    assert client.delete(f"/blocked_periods/{period_id}").status_code == 204
    assert events["blocked"].call_args.args[0] == "blocked_period_deleted"
    assert client.delete(f"/blocked_periods/{period_id}").status_code == 404


def test_bulk_block_reports_per_member(client, seeded, events) -> None:
    response = client.post("/blocked_periods/bulk", json={
        "member_ids": [seeded["alice_id"], 999],
        "start_date": MONDAY.isoformat(),
        "end_date": TUESDAY.isoformat(),
        "all_day": True,
    })

    assert response.status_code == 200
    items = response.json()
    assert items[0]["ok"] is True
    assert items[1] == {"member_id": 999, "ok": False, "period": None,
                        "error": {"field": "member_id", "message": "member not found or inactive"}}
    listed = client.get("/blocked_periods/", params={"provider_id": seeded["provider_id"]}).json()
    assert len(listed) == 1


def test_blocked_period_list_needs_a_filter(client) -> None:
    assert client.get("/blocked_periods/").status_code == 400


def test_booking_lifecycle(client, seeded, events) -> None:
    payload = {
        "member_id": seeded["alice_id"],
        "service_id": seeded["short_service_id"],
        "date_start": f"{MONDAY.isoformat()}T10:00:00",
        "client_name": "Jane",
    }

    created = client.post("/bookings/", json=payload)

    assert created.status_code == 201
    booking = created.json()
    assert booking["status"] == "confirmed"
    assert events["bookings"].call_args.args[0] == "booking_created"

    assert client.post("/bookings/", json=payload).status_code == 409

    cancelled = client.patch(f"/bookings/{booking['id']}/status", json={"status": "cancelled"})
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert events["bookings"].call_args.args[0] == "booking_status_changed"

    assert client.get(f"/bookings/{booking['id']}").json()["status"] == "cancelled"
    assert client.post("/bookings/", json=payload).status_code == 201
    assert client.delete(f"/bookings/{booking['id']}").status_code == 405


def test_schedule_endpoints(client, seeded) -> None:
    member_id = seeded["alice_id"]

    updated = client.put(f"/members/{member_id}/schedule", json={"wed": {"ranges": [["10:00", "14:00"]]}})

    assert updated.status_code == 200
    days = client.get(f"/members/{member_id}/schedule").json()["days"]
    assert days["wed"] == {"is_open": True, "ranges": [["10:00", "14:00"]]}
    assert days["mon"] == {"is_open": False, "ranges": []}

    bad = client.put(f"/members/{member_id}/schedule", json={"wed": {"ranges": [["14:00", "10:00"]]}})
    assert bad.status_code == 400


def test_scheduled_change_flow(client, seeded) -> None:
    member_id = seeded["alice_id"]

    created = client.post(f"/members/{member_id}/schedule/changes", json={
        "day_of_week": 0,
        "is_open": False,
        "effective_from": "2026-10-18T21:00:00",
    })

    assert created.status_code == 201
    body = created.json()
    assert body["applied"] is False
    change_id = body["change"]["id"]

    listed = client.get(f"/members/{member_id}/schedule/changes").json()
    assert [c["id"] for c in listed] == [change_id]

    assert client.delete(f"/members/{seeded['bob_id']}/schedule/changes/{change_id}").status_code == 404
    assert client.delete(f"/members/{member_id}/schedule/changes/{change_id}").status_code == 204
    assert client.get(f"/members/{member_id}/schedule/changes").json() == []


def test_immediate_change_reports_conflicts(client, seeded, events) -> None:
    member_id = seeded["alice_id"]
    client.post("/bookings/", json={
        "member_id": member_id,
        "service_id": seeded["short_service_id"],
        "date_start": f"{MONDAY.isoformat()}T11:30:00",
        "client_name": "Jane",
    })

    response = client.post(f"/members/{member_id}/schedule/changes", json={
        "day_of_week": 0,
        "ranges": [["09:00", "11:00"]],
    })

    body = response.json()
    assert body["applied"] is True
    assert [c["conflict_type"] for c in body["conflicts"]] == ["reduced_hours"]
    assert client.get(f"/members/{member_id}/schedule").json()["days"]["mon"]["ranges"] == [["09:00", "11:00"]]


def test_members_listing(client, seeded) -> None:
    members = client.get("/members/", params={"provider_id": seeded["provider_id"]}).json()

    assert [m["name"] for m in members] == ["Alice", "Bob"]
    assert client.get("/members/999").status_code == 404


def test_health_reports_redis_state(client) -> None:
    with patch("booking_backend.main.redis_client") as redis:
        redis.ping.side_effect = ConnectionError("down")
        assert client.get("/health").json() == {"redis": False}

        redis.ping.side_effect = None
        redis.ping.return_value = True
        assert client.get("/health").json() == {"redis": True}


def test_put_schedule_rejects_unknown_day_keys(client, seeded) -> None:
    member_id = seeded["alice_id"]

    response = client.put(f"/members/{member_id}/schedule", json={"monday": {"ranges": [["09:00", "12:00"]]}})

    assert response.status_code == 400
    assert "monday" in response.json()["detail"]
    # the stored week is left as it was
    assert client.get(f"/members/{member_id}/schedule").json()["days"]["mon"]["is_open"] is True


def test_apply_endpoint_uses_provider_clock(client, seeded, monkeypatch) -> None:
    member_id = seeded["alice_id"]
    client.post(f"/members/{member_id}/schedule/changes", json={
        "day_of_week": 0,
        "is_open": False,
        "effective_from": "2026-10-19T10:30:00",
    })
    # An hour later on the provider's clock, whatever the server clock says
    provider_eleven = datetime(2026, 10, 19, 11, 0)
    monkeypatch.setattr("booking_backend.routers.schedules.provider_now", lambda provider: provider_eleven)
    monkeypatch.setattr(
        "booking_backend.services.slots.repository.provider_now",
        lambda provider, at=None: provider_eleven,
    )

    assert client.get(f"/members/{member_id}/schedule/changes").json() == []
    assert client.post("/schedule/changes/apply").json() == {"applied": 1}
    assert client.get(f"/members/{member_id}/schedule").json()["days"]["mon"]["is_open"] is False


def test_block_ending_at_midnight(client, seeded, events) -> None:
    response = client.post("/blocked_periods/", json={
        "member_id": seeded["alice_id"],
        "location_id": seeded["location_id"],
        "start_date": MONDAY.isoformat(),
        "end_date": MONDAY.isoformat(),
        "all_day": False,
        "start_time": "11:00",
        "end_time": "24:00",
    })

    assert response.status_code == 201
    assert response.json()["end_time"] == "24:00"


def test_next_slot_endpoint(client, seeded) -> None:
    response = client.get("/slots/next", params={
        "provider_id": seeded["provider_id"],
        "service_id": seeded["long_service_id"],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["duration_minutes"] == 60
    assert body["slot"]["datetime"] == f"{MONDAY.isoformat()}T09:00:00"
    assert body["slot"]["member_id"] == seeded["alice_id"]
    assert client.get("/slots/next", params={"provider_id": 999, "service_id": 1}).status_code == 404


def test_stored_next_slot_follows_bookings_and_blocks(client, seeded, events) -> None:
    provider_id = seeded["provider_id"]
    url = f"/providers/{provider_id}/next_slot"

    assert client.get(url).json() == {"provider_id": provider_id, "next_available_slot": None, "checked_at": None}
    refreshed = client.post(f"{url}/refresh").json()
    assert refreshed["next_available_slot"] == "2026-10-19T09:00:00"
    assert refreshed["checked_at"] == NOW.isoformat()

    for member in ("alice_id", "bob_id"):
        client.post("/bookings/", json={
            "member_id": seeded[member],
            "service_id": seeded["short_service_id"],
            "date_start": f"{MONDAY.isoformat()}T09:00:00",
            "client_name": "Jane",
        })
    assert client.get(url).json()["next_available_slot"] == "2026-10-19T09:30:00"

    client.post("/blocked_periods/bulk", json={
        "member_ids": [seeded["alice_id"], seeded["bob_id"]],
        "start_date": MONDAY.isoformat(),
        "end_date": MONDAY.isoformat(),
        "all_day": True,
    })
    assert client.get(url).json()["next_available_slot"] == "2026-10-20T09:00:00"

    assert client.get("/providers/999/next_slot").status_code == 404
    assert client.post("/providers/999/next_slot/refresh").status_code == 404
