from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import models
from factories import add_hours, auth, get_row, make_booking, make_consultant, make_user


@pytest.fixture
def admin_setup():
    consultant_id, consultant_user_id = make_consultant(buffer=15, price_per_hour=Decimal("120.00"), first_name="Sara")
    add_hours(consultant_id, 1, "09:00", "17:00")
    return {
        "consultant_id": consultant_id,
        "consultant_user_id": consultant_user_id,
        "admin": make_user("admin@example.com", user_type="admin"),
        "client": make_user("client@example.com", first_name="Omar", last_name="Haddad"),
    }


def _create(client_base: TestClient, setup, **overrides):
    payload = {
        "client_id": setup["client"],
        "consultant_id": setup["consultant_id"],
        "bookable_type": "consultant",
        "start_at": "2026-03-02T10:00:00",
        "duration_minutes": 60,
        "consultation_method": "video",
    }
    payload.update(overrides)
    return client_base.post("/api/admin/bookings", json=payload, headers=auth(setup["admin"]))


def test_admin_routes_require_admin(client_base: TestClient, admin_setup):
    assert client_base.get("/api/admin/bookings").status_code == 401
    assert client_base.get("/api/admin/bookings", headers=auth(admin_setup["client"])).status_code == 403
    assert client_base.get("/api/admin/bookings", headers=auth(admin_setup["admin"])).status_code == 200


def test_admin_create_defaults_to_confirmed_without_buffer(client_base: TestClient, admin_setup):
    resp = _create(client_base, admin_setup, duration_minutes=90)

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["status"] == "confirmed"
    assert body["expires_at"] is None
    assert body["buffer_after_minutes"] == 0
    assert body["occupied_end_at"] == "2026-03-02T11:30:00"
    assert Decimal(body["price"]) == Decimal("180.00")
    assert body["client_name"] == "Omar Haddad"
    assert body["consultant_name"] == "Sara User"


def test_admin_create_accepts_end_at(client_base: TestClient, admin_setup):
    resp = _create(client_base, admin_setup, duration_minutes=None, end_at="2026-03-02T10:45:00")

    assert resp.status_code == 201, resp.text
    assert resp.json()["duration_minutes"] == 45


def test_admin_create_requires_duration_or_end(client_base: TestClient, admin_setup):
    resp = _create(client_base, admin_setup, duration_minutes=None)

    assert resp.status_code == 422
    assert resp.json()["reason"] == "duration_required"


def test_admin_create_skips_working_hours_but_not_conflicts(client_base: TestClient, admin_setup):
    # Tuesday has no working hours at all.
    off_hours = _create(client_base, admin_setup, start_at="2026-03-03T20:00:00")
    assert off_hours.status_code == 201, off_hours.text

    _create(client_base, admin_setup)
    overlap = _create(client_base, admin_setup, start_at="2026-03-02T10:30:00")
    assert overlap.status_code == 409
    assert overlap.json()["reason"] == "slot_unavailable"


def test_admin_create_rejects_terminal_status(client_base: TestClient, admin_setup):
    resp = _create(client_base, admin_setup, status="completed")

    assert resp.status_code == 422
    assert resp.json()["reason"] == "invalid_status"


def test_admin_pending_create_gets_a_hold(client_base: TestClient, admin_setup):
    resp = _create(client_base, admin_setup, status="pending", price="50.00")

    body = resp.json()
    assert body["status"] == "pending"
    assert body["expires_at"] == "2026-03-01T08:15:00"
    assert Decimal(body["price"]) == Decimal("50.00")


def test_admin_list_filters_and_paginates(client_base: TestClient, admin_setup):
    other_client = make_user("zed@example.com", first_name="Zed")
    consultant_id = admin_setup["consultant_id"]
    make_booking(admin_setup["client"], consultant_id, datetime(2026, 3, 2, 9, 0))
    make_booking(admin_setup["client"], consultant_id, datetime(2026, 3, 2, 11, 0), status="cancelled")
    make_booking(other_client, consultant_id, datetime(2026, 3, 9, 9, 0))
    headers = auth(admin_setup["admin"])

    everything = client_base.get("/api/admin/bookings", params={"per_page": 2}, headers=headers).json()
    assert everything["total"] == 3
    assert everything["last_page"] == 2
    assert len(everything["bookings"]) == 2
    assert everything["bookings"][0]["start_at"] == "2026-03-09T09:00:00"

    cancelled = client_base.get("/api/admin/bookings", params={"status": "cancelled"}, headers=headers).json()
    assert cancelled["total"] == 1

    by_name = client_base.get("/api/admin/bookings", params={"search": "zed"}, headers=headers).json()
    assert [b["client_id"] for b in by_name["bookings"]] == [other_client]

    by_consultant_name = client_base.get("/api/admin/bookings", params={"search": "Sara"}, headers=headers).json()
    assert by_consultant_name["total"] == 3

    first_week = client_base.get(
        "/api/admin/bookings", params={"date_from": "2026-03-01", "date_to": "2026-03-02"}, headers=headers
    ).json()
    assert first_week["total"] == 2

    by_client = client_base.get(
        "/api/admin/bookings", params={"client_id": admin_setup["client"]}, headers=headers
    ).json()
    assert by_client["total"] == 2


def test_admin_detail_includes_names(client_base: TestClient, admin_setup):
    booking_id = _create(client_base, admin_setup).json()["id"]

    resp = client_base.get(f"/api/admin/bookings/{booking_id}", headers=auth(admin_setup["admin"]))

    assert resp.status_code == 200
    body = resp.json()
    assert body["client_email"] == "client@example.com"
    assert body["conversation_id"] is None


def test_admin_move_checks_conflicts_excluding_itself(client_base: TestClient, admin_setup):
    first = _create(client_base, admin_setup).json()["id"]
    second = _create(client_base, admin_setup, start_at="2026-03-02T12:00:00").json()["id"]
    headers = auth(admin_setup["admin"])

    # Shifting within its own footprint is fine.
    nudged = client_base.patch(f"/api/admin/bookings/{first}", json={"start_at": "2026-03-02T10:30:00"}, headers=headers)
    assert nudged.status_code == 200, nudged.text
    assert nudged.json()["end_at"] == "2026-03-02T11:30:00"

    clash = client_base.patch(f"/api/admin/bookings/{second}", json={"start_at": "2026-03-02T11:00:00"}, headers=headers)
    assert clash.status_code == 409
    assert get_row(models.Booking, second).start_at == datetime(2026, 3, 2, 12, 0)


def test_admin_update_recalculates_price(client_base: TestClient, admin_setup):
    booking_id = _create(client_base, admin_setup).json()["id"]

    resp = client_base.patch(
        f"/api/admin/bookings/{booking_id}", json={"duration_minutes": 30}, headers=auth(admin_setup["admin"])
    )

    assert resp.status_code == 200, resp.text
    assert Decimal(resp.json()["price"]) == Decimal("60.00")


def test_admin_status_changes(client_base: TestClient, admin_setup):
    headers = auth(admin_setup["admin"])
    completed = _create(client_base, admin_setup).json()["id"]
    cancelled = _create(client_base, admin_setup, start_at="2026-03-02T13:00:00").json()["id"]

    done = client_base.patch(f"/api/admin/bookings/{completed}", json={"status": "completed"}, headers=headers)
    assert done.json()["status"] == "completed"

    dropped = client_base.patch(f"/api/admin/bookings/{cancelled}", json={"status": "cancelled"}, headers=headers)
    body = dropped.json()
    assert body["status"] == "cancelled"
    assert body["cancelled_by_type"] == "admin"
    assert body["cancelled_by_id"] == admin_setup["admin"]


def test_admin_reactivating_cancelled_booking_rechecks_conflicts(client_base: TestClient, admin_setup):
    headers = auth(admin_setup["admin"])
    booking_id = _create(client_base, admin_setup).json()["id"]
    client_base.patch(f"/api/admin/bookings/{booking_id}", json={"status": "cancelled"}, headers=headers)
    _create(client_base, admin_setup, start_at="2026-03-02T10:30:00")

    resp = client_base.patch(f"/api/admin/bookings/{booking_id}", json={"status": "confirmed"}, headers=headers)

    assert resp.status_code == 409


def test_admin_delete_hides_booking(client_base: TestClient, admin_setup):
    headers = auth(admin_setup["admin"])
    booking_id = _create(client_base, admin_setup).json()["id"]

    assert client_base.delete(f"/api/admin/bookings/{booking_id}", headers=headers).status_code == 204
    assert client_base.get(f"/api/admin/bookings/{booking_id}", headers=headers).status_code == 404
    assert client_base.delete(f"/api/admin/bookings/{booking_id}", headers=headers).status_code == 404


def test_admin_expire_sweep(client_base: TestClient, admin_setup):
    make_booking(
        admin_setup["client"],
        admin_setup["consultant_id"],
        datetime(2026, 3, 2, 10, 0),
        status="pending",
        expires_at=datetime(2026, 3, 1, 7, 0),
    )

    resp = client_base.post("/api/admin/bookings/expire-pending", headers=auth(admin_setup["admin"]))

    assert resp.status_code == 200
    assert resp.json() == {"expired": 1}
