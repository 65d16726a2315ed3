from datetime import datetime

import pytest
from fastapi.testclient import TestClient

import models
from app.core.clock import FixedClock
from app.scheduler.expire_pending_job import run_expire_pending_job
from app.services.bookings import BookingService
from factories import add_hours, auth, get_row, make_booking, make_consultant, make_user


@pytest.fixture
def parties():
    consultant_id, consultant_user_id = make_consultant(buffer=15)
    add_hours(consultant_id, 1, "09:00", "17:00")
    return {
        "consultant_id": consultant_id,
        "consultant_user_id": consultant_user_id,
        "client": make_user("client@example.com"),
        "stranger": make_user("stranger@example.com"),
        "admin": make_user("admin@example.com", user_type="admin"),
    }


def _hold(client_base: TestClient, parties, start_at: str = "2026-03-02T10:00:00") -> int:
    resp = client_base.post(
        "/api/bookings",
        json={
            "consultant_id": parties["consultant_id"],
            "bookable_type": "consultant",
            "bookable_id": parties["consultant_id"],
            "start_at": start_at,
            "duration_minutes": 60,
            "consultation_method": "video",
        },
        headers=auth(parties["client"]),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["id"]


def test_client_confirms_own_hold(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)

    resp = client_base.post(f"/api/bookings/{booking_id}/confirm", headers=auth(parties["client"]))

    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "confirmed"
    assert resp.json()["expires_at"] is None


def test_only_the_client_can_confirm(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)

    resp = client_base.post(f"/api/bookings/{booking_id}/confirm", headers=auth(parties["stranger"]))

    assert resp.status_code == 403
    assert resp.json()["reason"] == "not_owner"


def test_confirm_after_hold_lapses_is_rejected(client_base: TestClient, clock: FixedClock, parties):
    booking_id = _hold(client_base, parties)
    clock.advance(16)

    resp = client_base.post(f"/api/bookings/{booking_id}/confirm", headers=auth(parties["client"]))

    assert resp.status_code == 422
    assert resp.json()["reason"] == "booking_expired"


def test_confirm_twice_is_rejected(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)
    client_base.post(f"/api/bookings/{booking_id}/confirm", headers=auth(parties["client"]))

    resp = client_base.post(f"/api/bookings/{booking_id}/confirm", headers=auth(parties["client"]))

    assert resp.status_code == 422
    assert resp.json()["reason"] == "invalid_status"


def test_confirm_rechecks_conflicts(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)
    # Written straight to the table, bypassing the service's conflict check.
    make_booking(parties["stranger"], parties["consultant_id"], datetime(2026, 3, 2, 10, 30), 30, 0)

    resp = client_base.post(f"/api/bookings/{booking_id}/confirm", headers=auth(parties["client"]))

    assert resp.status_code == 409
    assert resp.json()["reason"] == "slot_unavailable"
    assert get_row(models.Booking, booking_id).status == "pending"


def test_consultant_accepts_pending_booking(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)

    resp = client_base.post(f"/api/bookings/{booking_id}/accept", headers=auth(parties["consultant_user_id"]))

    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "confirmed"


def test_other_consultant_cannot_accept(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)
    _, other_user_id = make_consultant(email="other@example.com")

    resp = client_base.post(f"/api/bookings/{booking_id}/accept", headers=auth(other_user_id))

    assert resp.status_code == 403


def test_accept_requires_consultant_profile(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)

    resp = client_base.post(f"/api/bookings/{booking_id}/accept", headers=auth(parties["client"]))

    assert resp.status_code == 403


def test_client_cancel_records_actor_and_frees_slot(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)

    resp = client_base.post(
        f"/api/bookings/{booking_id}/cancel", json={"reason": "Plans changed"}, headers=auth(parties["client"])
    )

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["status"] == "cancelled"
    assert body["cancelled_by_type"] == "user"
    assert body["cancelled_by_id"] == parties["client"]
    assert body["cancel_reason"] == "Plans changed"
    assert body["cancelled_at"] == "2026-03-01T08:00:00"

    slots = client_base.get(
        f"/api/consultants/{parties['consultant_id']}/available-slots",
        params={"date": "2026-03-02", "duration_minutes": 60},
    ).json()["slots"]
    assert "10:00" in slots


def test_admin_cancel_is_recorded_as_admin(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)

    resp = client_base.post(f"/api/bookings/{booking_id}/cancel", headers=auth(parties["admin"]))

    assert resp.status_code == 200, resp.text
    assert resp.json()["cancelled_by_type"] == "admin"
    assert resp.json()["cancelled_by_id"] == parties["admin"]


def test_consultant_can_cancel_and_stranger_cannot(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)

    denied = client_base.post(f"/api/bookings/{booking_id}/cancel", headers=auth(parties["stranger"]))
    assert denied.status_code == 403

    allowed = client_base.post(f"/api/bookings/{booking_id}/cancel", headers=auth(parties["consultant_user_id"]))
    assert allowed.status_code == 200
    assert allowed.json()["cancelled_by_type"] == "user"


def test_cancel_twice_is_rejected(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)
    client_base.post(f"/api/bookings/{booking_id}/cancel", headers=auth(parties["client"]))

    resp = client_base.post(f"/api/bookings/{booking_id}/cancel", headers=auth(parties["client"]))

    assert resp.status_code == 422
    assert resp.json()["reason"] == "invalid_status"


def test_booking_detail_visibility(client_base: TestClient, parties):
    booking_id = _hold(client_base, parties)

    assert client_base.get(f"/api/bookings/{booking_id}", headers=auth(parties["client"])).status_code == 200
    assert client_base.get(f"/api/bookings/{booking_id}", headers=auth(parties["consultant_user_id"])).status_code == 200
    assert client_base.get(f"/api/bookings/{booking_id}", headers=auth(parties["admin"])).status_code == 200
    assert client_base.get(f"/api/bookings/{booking_id}", headers=auth(parties["stranger"])).status_code == 403
    assert client_base.get("/api/bookings/9999", headers=auth(parties["client"])).status_code == 404


def test_listings_for_client_and_consultant(client_base: TestClient, parties):
    first = _hold(client_base, parties, "2026-03-02T10:00:00")
    second = _hold(client_base, parties, "2026-03-02T13:00:00")
    client_base.post(f"/api/bookings/{first}/confirm", headers=auth(parties["client"]))

    mine = client_base.get("/api/bookings/mine", headers=auth(parties["client"])).json()["bookings"]
    assert [b["id"] for b in mine] == [second, first]

    confirmed = client_base.get(
        "/api/consultant/bookings", params={"status": "confirmed"}, headers=auth(parties["consultant_user_id"])
    ).json()["bookings"]
    assert [b["id"] for b in confirmed] == [first]


def test_expire_old_pending_moves_lapsed_holds(db, clock: FixedClock, parties):
    lapsed = make_booking(
        parties["client"],
        parties["consultant_id"],
        datetime(2026, 3, 2, 10, 0),
        status="pending",
        expires_at=datetime(2026, 3, 1, 7, 50),
    )
    active = make_booking(
        parties["client"],
        parties["consultant_id"],
        datetime(2026, 3, 2, 13, 0),
        status="pending",
        expires_at=datetime(2026, 3, 1, 8, 10),
    )

    assert BookingService(db, clock).expire_old_pending() == 1

    assert get_row(models.Booking, lapsed).status == "expired"
    assert get_row(models.Booking, active).status == "pending"


def test_expire_pending_job_uses_wall_clock(parties):
    booking_id = make_booking(
        parties["client"],
        parties["consultant_id"],
        datetime(2020, 1, 5, 10, 0),
        status="pending",
        expires_at=datetime(2020, 1, 1, 10, 0),
    )

    assert run_expire_pending_job() == 1
    assert get_row(models.Booking, booking_id).status == "expired"
