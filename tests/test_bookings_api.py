"""End-to-end tests for the HTTP routes."""

from __future__ import annotations

from datetime import date

import pytest
from fastapi.testclient import TestClient

from roombook.domain.models import Booking
from roombook.main import app, audit_repo, booking_repo, room_repo


@pytest.fixture(autouse=True)
def _clear_repos():
    """Reset in-memory repos before each test."""
    room_repo._store.clear()
    booking_repo._store.clear()
    audit_repo._entries.clear()
    yield
    room_repo._store.clear()
    booking_repo._store.clear()
    audit_repo._entries.clear()


@pytest.fixture()
def client():
    return TestClient(app)


@pytest.fixture()
def room(client) -> dict:
    resp = client.post(
        "/rooms",
        json={
            "name": "Room 101",
            "building": "Main",
            "floor": "1",
            "capacity": 40,
            "equipment": ["projector", "whiteboard"],
        },
    )
    assert resp.status_code == 201
    return resp.json()


def _book(client, room_id: str, start: str, end: str, date: str = "2024-01-15", **extra):
    body = {
        "room_id": room_id,
        "title": "Lecture",
        "date": date,
        "start_time": start,
        "end_time": end,
    }
    body.update(extra)
    return client.post("/bookings", json=body)


# ---------------------------------------------------------------------------
# Rooms
# ---------------------------------------------------------------------------


def test_create_and_list_rooms(client, room):
    client.post(
        "/rooms",
        json={"name": "Lab", "building": "Science", "floor": "2", "capacity": 20},
    )

    resp = client.get("/rooms", params={"equipment": "projector"})
    assert [r["name"] for r in resp.json()] == ["Room 101"]

    resp = client.get("/rooms", params={"min_capacity": 30})
    assert [r["id"] for r in resp.json()] == [room["id"]]

    resp = client.get(f"/rooms/{room['id']}")
    assert resp.json()["opening_time"] == "08:00"


def test_unknown_room_404(client):
    assert client.get("/rooms/nope").status_code == 404


def test_create_room_with_inverted_hours(client):
    resp = client.post(
        "/rooms",
        json={
            "name": "Bad",
            "building": "Main",
            "floor": "1",
            "capacity": 5,
            "opening_time": "20:00",
            "closing_time": "08:00",
        },
    )
    assert resp.status_code == 422


def test_update_room(client, room):
    resp = client.put(
        f"/rooms/{room['id']}", json={"capacity": 50, "description": "Refurbished"}
    )
    assert resp.status_code == 200
    assert (resp.json()["capacity"], resp.json()["description"]) == (50, "Refurbished")

    resp = client.put(f"/rooms/{room['id']}", json={"description": None})
    assert resp.json()["description"] is None

    resp = client.put(f"/rooms/{room['id']}", json={"closing_time": "07:00"})
    assert resp.status_code == 422

    assert client.put("/rooms/nope", json={"capacity": 5}).status_code == 404


def test_deactivate_room(client, room):
    booking = _book(client, room["id"], "09:00", "10:00").json()

    resp = client.delete(f"/rooms/{room['id']}")
    assert resp.status_code == 200
    assert resp.json()["is_active"] is False

    assert _book(client, room["id"], "11:00", "12:00").status_code == 404
    assert client.get(f"/bookings/{booking['id']}").status_code == 200
    assert client.get("/rooms", params={"is_active": True}).json() == []
    assert client.get("/rooms/occupancy", params={"date": "2024-01-15"}).json() == []

    actions = [e["action"] for e in client.get(f"/rooms/{room['id']}/audit").json()]
    assert actions == ["ROOM_CREATED", "ROOM_DEACTIVATED"]
    assert client.delete("/rooms/nope").status_code == 404


# ---------------------------------------------------------------------------
# Booking admission
# ---------------------------------------------------------------------------


def test_create_booking(client, room):
    resp = _book(client, room["id"], "09:00", "10:00", notes="bring slides")
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "PENDING"
    assert data["date"] == "2024-01-15"
    assert data["notes"] == "bring slides"


def test_conflict_returns_409_with_conflicts(client, room):
    first = _book(client, room["id"], "09:00", "10:30").json()

    resp = _book(client, room["id"], "09:30", "11:00")

    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["reason"] == "SlotConflict"
    assert detail["conflicts"] == [
        {
            "room_id": room["id"],
            "date": "2024-01-15",
            "start_time": "09:00",
            "end_time": "10:30",
            "booking_id": first["id"],
            "title": "Lecture",
        }
    ]


def test_adjacent_booking_allowed(client, room):
    assert _book(client, room["id"], "09:00", "10:00").status_code == 201
    assert _book(client, room["id"], "10:00", "11:00").status_code == 201


def test_same_time_other_date_allowed(client, room):
    assert _book(client, room["id"], "09:00", "10:00").status_code == 201
    assert _book(client, room["id"], "09:00", "10:00", date="2024-01-16").status_code == 201


def test_inverted_range_returns_400(client, room):
    resp = _book(client, room["id"], "10:00", "09:00")
    assert resp.status_code == 400
    assert resp.json()["detail"]["reason"] == "InvalidTimeRange"


@pytest.mark.parametrize("start", ["9:00", "24:00", "09:60", "nine", "0٩:00"])
def test_malformed_time_returns_422(client, room, start):
    assert _book(client, room["id"], start, "10:00").status_code == 422


def test_malformed_date_returns_422(client, room):
    assert _book(client, room["id"], "09:00", "10:00", date="2024-13-45").status_code == 422


def test_booking_unknown_room_404(client):
    assert _book(client, "missing", "09:00", "10:00").status_code == 404


def test_write_race_returns_409(client, room, monkeypatch):
    original_list_active = booking_repo.list_active
    intruder = Booking(
        room_id=room["id"],
        date=date(2024, 1, 15),
        start_time="09:30",
        end_time="10:30",
        title="Intruder",
    )

    def list_active_then_intrude(room_id, day, exclude_id=None):
        seen = original_list_active(room_id, day, exclude_id=exclude_id)
        if booking_repo.get(intruder.id) is None:
            booking_repo.add(intruder)
        return seen

    monkeypatch.setattr(booking_repo, "list_active", list_active_then_intrude)

    resp = _book(client, room["id"], "09:00", "10:00")

    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["reason"] == "SlotConflict"
    assert [c["booking_id"] for c in detail["conflicts"]] == [intruder.id]


def test_check_availability(client, room):
    _book(client, room["id"], "09:00", "10:00")
    params = {"room_id": room["id"], "date": "2024-01-15"}

    busy = client.get(
        "/bookings/check-availability",
        params={**params, "start_time": "09:30", "end_time": "10:30"},
    ).json()
    assert busy["available"] is False
    assert busy["reason"] == "SlotConflict"
    assert len(busy["conflicts"]) == 1

    free = client.get(
        "/bookings/check-availability",
        params={**params, "start_time": "10:00", "end_time": "11:00"},
    ).json()
    assert free == {"available": True, "reason": None, "conflicts": []}

    # Checking never writes.
    assert len(client.get("/bookings").json()) == 1


# ---------------------------------------------------------------------------
# Booking lifecycle
# ---------------------------------------------------------------------------


def test_confirm_then_cancel(client, room):
    booking = _book(client, room["id"], "09:00", "10:00").json()

    resp = client.put(f"/bookings/{booking['id']}/status", json={"status": "CONFIRMED"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "CONFIRMED"

    resp = client.put(f"/bookings/{booking['id']}/status", json={"status": "CANCELLED"})
    assert resp.json()["status"] == "CANCELLED"

    resp = client.put(f"/bookings/{booking['id']}/status", json={"status": "CONFIRMED"})
    assert resp.status_code == 400


def test_status_pending_not_accepted(client, room):
    booking = _book(client, room["id"], "09:00", "10:00").json()
    resp = client.put(f"/bookings/{booking['id']}/status", json={"status": "PENDING"})
    assert resp.status_code == 422


def test_update_booking_conflict_and_success(client, room):
    _book(client, room["id"], "11:00", "12:00")
    booking = _book(client, room["id"], "09:00", "10:00").json()

    resp = client.put(f"/bookings/{booking['id']}", json={"end_time": "11:30"})
    assert resp.status_code == 409

    resp = client.put(f"/bookings/{booking['id']}", json={"end_time": "11:00"})
    assert resp.status_code == 200
    assert resp.json()["end_time"] == "11:00"


def test_update_booking_clears_notes(client, room):
    booking = _book(client, room["id"], "09:00", "10:00", notes="bring slides").json()

    resp = client.put(f"/bookings/{booking['id']}", json={"notes": None})

    assert resp.status_code == 200
    assert resp.json()["notes"] is None
    assert resp.json()["title"] == "Lecture"


def test_list_bookings_filters_and_order(client, room):
    _book(client, room["id"], "13:00", "14:00")
    _book(client, room["id"], "09:00", "10:00")
    _book(client, room["id"], "09:00", "10:00", date="2024-01-14")

    resp = client.get("/bookings", params={"start_date": "2024-01-15"})
    assert [b["start_time"] for b in resp.json()] == ["09:00", "13:00"]

    resp = client.get("/bookings")
    assert [b["date"] for b in resp.json()] == ["2024-01-14", "2024-01-15", "2024-01-15"]

    resp = client.get("/bookings", params={"status": "CONFIRMED"})
    assert resp.json() == []


def test_delete_booking_and_audit(client, room):
    booking = _book(client, room["id"], "09:00", "10:00").json()

    assert client.delete(f"/bookings/{booking['id']}").status_code == 200
    assert client.get(f"/bookings/{booking['id']}").status_code == 404
    assert client.delete(f"/bookings/{booking['id']}").status_code == 404

    actions = [e["action"] for e in client.get(f"/bookings/{booking['id']}/audit").json()]
    assert actions == ["BOOKING_CREATED", "BOOKING_DELETED"]


# ---------------------------------------------------------------------------
# Availability endpoints
# ---------------------------------------------------------------------------


def test_room_availability_slots(client, room):
    _book(client, room["id"], "09:00", "10:00")
    _book(client, room["id"], "11:00", "12:00")

    resp = client.get(
        f"/rooms/{room['id']}/availability",
        params={
            "date": "2024-01-15",
            "slot_duration": 60,
            "opening_time": "08:00",
            "closing_time": "13:00",
        },
    )

    assert resp.status_code == 200
    data = resp.json()
    assert data["slot_duration"] == 60
    assert [(s["start_time"], s["end_time"]) for s in data["slots"]] == [
        ("08:00", "09:00"),
        ("10:00", "11:00"),
        ("12:00", "13:00"),
    ]


def test_room_availability_uses_room_hours_and_default_duration(client, room):
    resp = client.get(f"/rooms/{room['id']}/availability", params={"date": "2024-01-15"})
    data = resp.json()
    assert (data["opening_time"], data["closing_time"]) == ("08:00", "20:00")
    assert data["slot_duration"] == 90
    assert len(data["slots"]) == 8


def test_room_availability_bad_window(client, room):
    resp = client.get(
        f"/rooms/{room['id']}/availability",
        params={"date": "2024-01-15", "opening_time": "12:00", "closing_time": "09:00"},
    )
    assert resp.status_code == 400

    resp = client.get(
        f"/rooms/{room['id']}/availability",
        params={"date": "2024-01-15", "opening_time": "8am"},
    )
    assert resp.status_code == 422


def test_room_gaps(client, room):
    _book(client, room["id"], "09:00", "10:15")
    resp = client.get(
        f"/rooms/{room['id']}/gaps",
        params={"date": "2024-01-15", "closing_time": "12:00"},
    )
    assert [(s["start_time"], s["end_time"]) for s in resp.json()["slots"]] == [
        ("08:00", "09:00"),
        ("10:15", "12:00"),
    ]


def test_occupancy(client, room):
    _book(client, room["id"], "08:00", "11:00")
    resp = client.get("/rooms/occupancy", params={"date": "2024-01-15"})
    [entry] = resp.json()
    assert entry["booking_count"] == 1
    assert entry["occupancy"]["occupancy_percent"] == 25
