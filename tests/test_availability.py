from datetime import date, datetime

from fastapi.testclient import TestClient

from app.core.clock import FixedClock
from app.services.availability import AvailabilityEngine
from factories import add_holiday, add_hours, make_booking, make_consultant, make_service, make_user

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)


def _monday_consultant(buffer: int = 15) -> int:
    consultant_id, _ = make_consultant(buffer=buffer)
    add_hours(consultant_id, 1, "09:00", "17:00")
    return consultant_id


def test_direct_slots_cover_the_whole_day(db, clock: FixedClock):
    consultant_id = _monday_consultant()

    slots = AvailabilityEngine(db, clock).available_slots(consultant_id, MONDAY, duration_minutes=60)

    # 60 minutes + 15 buffer has to end by 17:00, so 15:30 is the last 30-minute step.
    assert slots[0] == "09:00"
    assert slots[-1] == "15:30"
    assert len(slots) == 14


def test_booking_and_its_buffer_remove_overlapping_slots(db, clock: FixedClock):
    consultant_id = _monday_consultant()
    client_id = make_user("client@example.com")
    make_booking(client_id, consultant_id, datetime(2026, 3, 2, 10, 0), 60, 15)

    slots = AvailabilityEngine(db, clock).available_slots(consultant_id, MONDAY, duration_minutes=60)

    for blocked in ("09:00", "09:30", "10:00", "10:30", "11:00"):
        assert blocked not in slots
    assert "11:30" in slots


def test_lapsed_pending_hold_does_not_block(db, clock: FixedClock):
    consultant_id = _monday_consultant()
    client_id = make_user("client@example.com")
    make_booking(
        client_id, consultant_id, datetime(2026, 3, 2, 10, 0), 60, 15, status="pending", expires_at=clock.now()
    )

    slots = AvailabilityEngine(db, clock).available_slots(consultant_id, MONDAY, duration_minutes=60)

    assert "10:00" in slots


def test_active_pending_hold_blocks(db, clock: FixedClock):
    consultant_id = _monday_consultant()
    client_id = make_user("client@example.com")
    make_booking(
        client_id,
        consultant_id,
        datetime(2026, 3, 2, 10, 0),
        60,
        15,
        status="pending",
        expires_at=datetime(2026, 3, 1, 8, 15),
    )

    slots = AvailabilityEngine(db, clock).available_slots(consultant_id, MONDAY, duration_minutes=60)

    assert "10:00" not in slots


def test_cancelled_booking_frees_the_slot(db, clock: FixedClock):
    consultant_id = _monday_consultant()
    client_id = make_user("client@example.com")
    make_booking(client_id, consultant_id, datetime(2026, 3, 2, 10, 0), 60, 15, status="cancelled")

    assert "10:00" in AvailabilityEngine(db, clock).available_slots(consultant_id, MONDAY, duration_minutes=60)


def test_holiday_and_day_without_hours_have_no_slots(db, clock: FixedClock):
    consultant_id = _monday_consultant()
    add_holiday(consultant_id, MONDAY)

    engine = AvailabilityEngine(db, clock)
    assert engine.available_slots(consultant_id, MONDAY, duration_minutes=60) == []
    assert engine.available_slots(consultant_id, TUESDAY, duration_minutes=60) == []


def test_inactive_interval_is_ignored(db, clock: FixedClock):
    consultant_id, _ = make_consultant()
    add_hours(consultant_id, 1, "09:00", "12:00", is_active=False)

    assert AvailabilityEngine(db, clock).available_slots(consultant_id, MONDAY, duration_minutes=60) == []


def test_slot_never_spans_two_intervals(db, clock: FixedClock):
    consultant_id, _ = make_consultant(buffer=15)
    add_hours(consultant_id, 1, "09:00", "12:00")
    add_hours(consultant_id, 1, "13:00", "17:00")

    slots = AvailabilityEngine(db, clock).available_slots(consultant_id, MONDAY, duration_minutes=60)

    assert "10:30" in slots
    assert "11:00" not in slots
    assert "12:30" not in slots
    assert "13:00" in slots


def test_past_candidates_are_skipped(db, clock: FixedClock):
    consultant_id = _monday_consultant()
    clock.current = datetime(2026, 3, 2, 12, 10)

    slots = AvailabilityEngine(db, clock).available_slots(consultant_id, MONDAY, duration_minutes=60)

    assert slots[0] == "12:30"


def test_service_duration_and_buffer_drive_the_listing(db, clock: FixedClock):
    consultant_id = _monday_consultant(buffer=15)
    service_id = make_service(consultant_id, duration_minutes=45, buffer=10)

    slots = AvailabilityEngine(db, clock).available_slots(
        consultant_id, MONDAY, bookable_type="consultant_service", bookable_id=service_id
    )

    # 45 + 10 = 55 minutes, so 16:00 still fits before 17:00.
    assert slots[-1] == "16:00"


def test_custom_granularity(db, clock: FixedClock):
    consultant_id = _monday_consultant()

    slots = AvailabilityEngine(db, clock).available_slots(
        consultant_id, MONDAY, granularity_minutes=15, duration_minutes=60
    )

    assert slots[:3] == ["09:00", "09:15", "09:30"]


def test_validate_slot_reasons(db, clock: FixedClock):
    consultant_id = _monday_consultant()
    client_id = make_user("client@example.com")
    make_booking(client_id, consultant_id, datetime(2026, 3, 2, 10, 0), 60, 15)
    add_holiday(consultant_id, date(2026, 3, 9))
    engine = AvailabilityEngine(db, clock)

    ok = engine.validate_slot(consultant_id, datetime(2026, 3, 2, 13, 0), 60, 15)
    assert ok.valid is True and ok.reason is None

    conflict = engine.validate_slot(consultant_id, datetime(2026, 3, 2, 10, 30), 60, 15)
    assert conflict.reason == "slot_unavailable"

    late = engine.validate_slot(consultant_id, datetime(2026, 3, 2, 16, 0), 60, 15)
    assert late.reason == "outside_working_hours"

    holiday = engine.validate_slot(consultant_id, datetime(2026, 3, 9, 10, 0), 60, 15)
    assert holiday.reason == "holiday_conflict"


def test_validate_slot_can_exclude_the_booking_being_moved(db, clock: FixedClock):
    consultant_id = _monday_consultant()
    client_id = make_user("client@example.com")
    booking_id = make_booking(client_id, consultant_id, datetime(2026, 3, 2, 10, 0), 60, 15)

    result = AvailabilityEngine(db, clock).validate_slot(
        consultant_id, datetime(2026, 3, 2, 10, 30), 60, 15, exclude_booking_id=booking_id
    )

    assert result.valid is True


def test_available_slots_endpoint(client_base: TestClient):
    consultant_id = _monday_consultant()

    resp = client_base.get(
        f"/api/consultants/{consultant_id}/available-slots",
        params={"date": MONDAY.isoformat(), "bookable_type": "consultant", "duration_minutes": 60},
    )

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["date"] == "2026-03-02"
    assert body["slots"][0] == "09:00"


def test_available_slots_for_unknown_consultant_returns_404(client_base: TestClient):
    resp = client_base.get("/api/consultants/999/available-slots", params={"date": MONDAY.isoformat()})

    assert resp.status_code == 404, resp.text
    assert resp.json()["reason"] == "not_found"


def test_validate_slot_endpoint(client_base: TestClient):
    consultant_id = _monday_consultant()

    resp = client_base.post(
        f"/api/consultants/{consultant_id}/validate-slot",
        json={"start_at": "2026-03-03T10:00:00", "duration_minutes": 60, "buffer_after_minutes": 15},
    )

    assert resp.status_code == 200, resp.text
    assert resp.json() == {
        "valid": False,
        "reason": "outside_working_hours",
        "message": "The selected time is outside the consultant's working hours",
    }
