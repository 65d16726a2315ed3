from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

import database
import models
from factories import add_holiday, add_hours, auth, get_row, make_consultant, make_service, make_user


@pytest.fixture
def setup():
    consultant_id, consultant_user_id = make_consultant(buffer=15, price_per_hour=Decimal("120.00"))
    add_hours(consultant_id, 1, "09:00", "17:00")
    return {
        "consultant_id": consultant_id,
        "consultant_user_id": consultant_user_id,
        "client_a": make_user("client-a@example.com", first_name="Alice"),
        "client_b": make_user("client-b@example.com", first_name="Bob"),
        "client_c": make_user("client-c@example.com", first_name="Carol"),
    }


def _direct(consultant_id: int, start_at: str, duration: int = 60) -> dict:
    return {
        "consultant_id": consultant_id,
        "bookable_type": "consultant",
        "bookable_id": consultant_id,
        "start_at": start_at,
        "duration_minutes": duration,
        "consultation_method": "video",
    }


def test_buffer_blocks_following_booking_until_it_ends(client_base: TestClient, setup):
    consultant_id = setup["consultant_id"]

    first = client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-02T10:00:00"), headers=auth(setup["client_a"])
    )
    assert first.status_code == 201, first.text
    assert first.json()["occupied_end_at"] == "2026-03-02T11:15:00"

    overlapping = client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-02T10:30:00"), headers=auth(setup["client_b"])
    )
    assert overlapping.status_code == 409, overlapping.text
    assert overlapping.json()["reason"] == "slot_unavailable"
    assert overlapping.json()["field"] == "start_at"

    inside_buffer = client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-02T11:00:00"), headers=auth(setup["client_b"])
    )
    assert inside_buffer.status_code == 409, inside_buffer.text

    after_buffer = client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-02T11:15:00"), headers=auth(setup["client_c"])
    )
    assert after_buffer.status_code == 201, after_buffer.text


def test_booking_ending_exactly_at_next_start_is_allowed(client_base: TestClient, setup):
    consultant_id = setup["consultant_id"]
    client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-02T10:00:00"), headers=auth(setup["client_a"])
    )

    # 45 minutes + 15 buffer ends at 10:00 sharp.
    resp = client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-02T09:00:00", 45), headers=auth(setup["client_b"])
    )
    assert resp.status_code == 201, resp.text


def test_pending_booking_holds_for_fifteen_minutes(client_base: TestClient, setup):
    resp = client_base.post(
        "/api/bookings",
        json=_direct(setup["consultant_id"], "2026-03-02T10:00:00"),
        headers=auth(setup["client_a"]),
    )

    body = resp.json()
    assert body["status"] == "pending"
    assert body["expires_at"] == "2026-03-01T08:15:00"
    assert body["end_at"] == "2026-03-02T11:00:00"
    assert Decimal(body["price"]) == Decimal("120.00")


@pytest.mark.parametrize(
    "start_at, duration, field",
    [
        ("2026-03-02T10:07:00", 60, "start_at"),
        ("2026-03-02T10:00:30", 60, "start_at"),
        ("2026-03-02T10:00:00", 47, "duration_minutes"),
    ],
)
def test_off_grid_times_are_rejected(client_base: TestClient, setup, start_at, duration, field):
    resp = client_base.post(
        "/api/bookings",
        json=_direct(setup["consultant_id"], start_at, duration),
        headers=auth(setup["client_a"]),
    )

    assert resp.status_code == 422, resp.text
    assert resp.json()["reason"] == "invalid_granularity"
    assert resp.json()["field"] == field


def test_outside_working_hours_and_holiday(client_base: TestClient, setup):
    consultant_id = setup["consultant_id"]
    add_holiday(consultant_id, date(2026, 3, 9))

    too_late = client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-02T16:00:00"), headers=auth(setup["client_a"])
    )
    assert too_late.status_code == 422
    assert too_late.json()["reason"] == "outside_working_hours"

    no_hours = client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-03T10:00:00"), headers=auth(setup["client_a"])
    )
    assert no_hours.json()["reason"] == "outside_working_hours"

    holiday = client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-09T10:00:00"), headers=auth(setup["client_a"])
    )
    assert holiday.status_code == 422
    assert holiday.json()["reason"] == "holiday_conflict"


def test_direct_booking_requires_duration_and_method(client_base: TestClient, setup):
    payload = _direct(setup["consultant_id"], "2026-03-02T10:00:00")
    payload.pop("duration_minutes")
    resp = client_base.post("/api/bookings", json=payload, headers=auth(setup["client_a"]))
    assert resp.json()["reason"] == "duration_required"

    payload = _direct(setup["consultant_id"], "2026-03-02T10:00:00")
    payload.pop("consultation_method")
    resp = client_base.post("/api/bookings", json=payload, headers=auth(setup["client_a"]))
    assert resp.json()["reason"] == "consultation_method_required"


def test_service_booking_uses_service_terms(client_base: TestClient, setup):
    consultant_id = setup["consultant_id"]
    service_id = make_service(consultant_id, duration_minutes=45, buffer=None, price=Decimal("90.00"))

    resp = client_base.post(
        "/api/bookings",
        json={
            "consultant_id": consultant_id,
            "bookable_type": "consultant_service",
            "bookable_id": service_id,
            "start_at": "2026-03-02T10:00:00",
            "duration_minutes": 120,
        },
        headers=auth(setup["client_a"]),
    )

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["duration_minutes"] == 45
    # Service has no buffer of its own, so the consultant's applies.
    assert body["buffer_after_minutes"] == 15
    assert body["consultation_method"] == "video"
    assert Decimal(body["price"]) == Decimal("90.00")


def test_service_of_another_consultant_is_rejected(client_base: TestClient, setup):
    other_consultant_id, _ = make_consultant(email="other@example.com")
    foreign_service = make_service(other_consultant_id)

    resp = client_base.post(
        "/api/bookings",
        json={
            "consultant_id": setup["consultant_id"],
            "bookable_type": "consultant_service",
            "bookable_id": foreign_service,
            "start_at": "2026-03-02T10:00:00",
        },
        headers=auth(setup["client_a"]),
    )

    assert resp.status_code == 422
    assert resp.json()["reason"] == "bookable_mismatch"


def test_unknown_service_is_rejected(client_base: TestClient, setup):
    resp = client_base.post(
        "/api/bookings",
        json={
            "consultant_id": setup["consultant_id"],
            "bookable_type": "consultant_service",
            "bookable_id": 4242,
            "start_at": "2026-03-02T10:00:00",
        },
        headers=auth(setup["client_a"]),
    )

    assert resp.json()["reason"] == "bookable_not_found"


def test_buffer_is_snapshotted_at_creation(client_base: TestClient, setup):
    consultant_id = setup["consultant_id"]
    created = client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-02T10:00:00"), headers=auth(setup["client_a"])
    )
    booking_id = created.json()["id"]

    db = database.SessionLocal()
    try:
        db.get(models.Consultant, consultant_id).buffer = 45
        db.commit()
    finally:
        db.close()

    assert get_row(models.Booking, booking_id).buffer_after_minutes == 15
    # The old 15-minute buffer still governs the existing booking.
    resp = client_base.post(
        "/api/bookings", json=_direct(consultant_id, "2026-03-02T11:15:00"), headers=auth(setup["client_b"])
    )
    assert resp.status_code == 201, resp.text
    assert resp.json()["buffer_after_minutes"] == 45


def test_other_consultant_is_not_affected(client_base: TestClient, setup):
    other_id, _ = make_consultant(email="other@example.com")
    add_hours(other_id, 1, "09:00", "17:00")
    client_base.post(
        "/api/bookings", json=_direct(setup["consultant_id"], "2026-03-02T10:00:00"), headers=auth(setup["client_a"])
    )

    resp = client_base.post(
        "/api/bookings", json=_direct(other_id, "2026-03-02T10:00:00"), headers=auth(setup["client_b"])
    )
    assert resp.status_code == 201, resp.text
