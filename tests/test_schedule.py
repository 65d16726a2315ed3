from datetime import date

import pytest
from fastapi.testclient import TestClient

import database
import models
from factories import add_holiday, add_hours, auth, make_consultant, make_user


@pytest.fixture
def owner():
    consultant_id, user_id = make_consultant()
    return {"consultant_id": consultant_id, "user_id": user_id}


def _hours_path(owner) -> str:
    return f"/api/consultants/{owner['consultant_id']}/working-hours"


def _holidays_path(owner) -> str:
    return f"/api/consultants/{owner['consultant_id']}/holidays"


def _stored_hours(consultant_id: int) -> list[tuple]:
    db = database.SessionLocal()
    try:
        rows = (
            db.query(models.ConsultantWorkingHour)
            .filter_by(consultant_id=consultant_id)
            .order_by(models.ConsultantWorkingHour.day_of_week, models.ConsultantWorkingHour.start_time)
            .all()
        )
        return [(r.day_of_week, r.start_time, r.end_time, r.is_active) for r in rows]
    finally:
        db.close()


def test_replace_weekly_schedule(client_base: TestClient, owner):
    add_hours(owner["consultant_id"], 3, "08:00", "10:00")

    resp = client_base.put(
        _hours_path(owner),
        json={
            "weekly_schedule": {
                "1": [
                    {"start_time": "13:00", "end_time": "17:00"},
                    {"start_time": "09:00:00", "end_time": "12:00:00"},
                ],
                "2": [{"start_time": "10:00", "end_time": "14:00", "is_active": False}],
            }
        },
        headers=auth(owner["user_id"]),
    )

    assert resp.status_code == 200, resp.text
    days = resp.json()["days"]
    assert [(r["start_time"], r["end_time"]) for r in days["1"]] == [("09:00", "12:00"), ("13:00", "17:00")]
    assert days["2"][0]["is_active"] is False
    assert "3" not in days
    assert _stored_hours(owner["consultant_id"]) == [
        (1, "09:00", "12:00", True),
        (1, "13:00", "17:00", True),
        (2, "10:00", "14:00", False),
    ]

    fetched = client_base.get(_hours_path(owner)).json()
    assert fetched["days"] == days


def test_overlapping_weekly_schedule_keeps_existing_rows(client_base: TestClient, owner):
    add_hours(owner["consultant_id"], 0, "09:00", "12:00")

    resp = client_base.put(
        _hours_path(owner),
        json={
            "weekly_schedule": {
                "1": [{"start_time": "09:00", "end_time": "12:00"}, {"start_time": "11:30", "end_time": "14:00"}]
            }
        },
        headers=auth(owner["user_id"]),
    )

    assert resp.status_code == 422
    assert resp.json()["reason"] == "schedule_overlap"
    assert _stored_hours(owner["consultant_id"]) == [(0, "09:00", "12:00", True)]


@pytest.mark.parametrize(
    "week",
    [
        {"1": [{"start_time": "12:00", "end_time": "09:00"}]},
        {"1": [{"start_time": "10:00", "end_time": "10:00"}]},
        {"1": [{"start_time": "9am", "end_time": "17:00"}]},
        {"1": [{"start_time": "", "end_time": "17:00"}]},
        {"7": [{"start_time": "09:00", "end_time": "17:00"}]},
    ],
)
def test_invalid_weekly_schedule(client_base: TestClient, owner, week):
    resp = client_base.put(_hours_path(owner), json={"weekly_schedule": week}, headers=auth(owner["user_id"]))

    assert resp.status_code == 422
    assert resp.json()["reason"] == "invalid_schedule"


def test_adjacent_intervals_do_not_overlap(client_base: TestClient, owner):
    resp = client_base.put(
        _hours_path(owner),
        json={"weekly_schedule": {"1": [{"start_time": "09:00", "end_time": "12:00"}, {"start_time": "12:00", "end_time": "15:00"}]}},
        headers=auth(owner["user_id"]),
    )

    assert resp.status_code == 200, resp.text


def test_single_interval_overlap_counts_inactive_rows(client_base: TestClient, owner):
    add_hours(owner["consultant_id"], 1, "09:00", "12:00", is_active=False)

    resp = client_base.post(
        _hours_path(owner),
        json={"day_of_week": 1, "start_time": "11:00", "end_time": "13:00"},
        headers=auth(owner["user_id"]),
    )

    assert resp.status_code == 422
    assert resp.json()["reason"] == "schedule_overlap"


def test_activate_rechecks_overlap(client_base: TestClient, owner):
    add_hours(owner["consultant_id"], 1, "09:00", "12:00")
    # Stored directly; the API would refuse this pair.
    clashing = add_hours(owner["consultant_id"], 1, "11:00", "13:00", is_active=False)

    resp = client_base.post(f"{_hours_path(owner)}/{clashing}/activate", headers=auth(owner["user_id"]))

    assert resp.status_code == 422
    assert resp.json()["reason"] == "schedule_overlap"


def test_interval_crud(client_base: TestClient, owner):
    headers = auth(owner["user_id"])

    created = client_base.post(
        _hours_path(owner), json={"day_of_week": 2, "start_time": "09:00", "end_time": "11:00"}, headers=headers
    )
    assert created.status_code == 201, created.text
    row_id = created.json()["id"]

    updated = client_base.patch(f"{_hours_path(owner)}/{row_id}", json={"end_time": "12:30"}, headers=headers)
    assert updated.json()["end_time"] == "12:30"

    off = client_base.post(f"{_hours_path(owner)}/{row_id}/deactivate", headers=headers)
    assert off.json()["is_active"] is False
    on = client_base.post(f"{_hours_path(owner)}/{row_id}/activate", headers=headers)
    assert on.json()["is_active"] is True

    assert client_base.delete(f"{_hours_path(owner)}/{row_id}", headers=headers).status_code == 204
    assert client_base.patch(f"{_hours_path(owner)}/{row_id}", json={"end_time": "13:00"}, headers=headers).status_code == 404


def test_schedule_is_managed_by_owner_or_admin(client_base: TestClient, owner):
    _, other_consultant_user = make_consultant(email="other@example.com")
    admin = make_user("admin@example.com", user_type="admin")
    payload = {"day_of_week": 1, "start_time": "09:00", "end_time": "12:00"}

    assert client_base.post(_hours_path(owner), json=payload).status_code == 401
    assert client_base.post(_hours_path(owner), json=payload, headers=auth(other_consultant_user)).status_code == 403
    assert client_base.post(_hours_path(owner), json=payload, headers=auth(admin)).status_code == 201


def test_interval_of_other_consultant_is_not_found(client_base: TestClient, owner):
    other_id, _ = make_consultant(email="other@example.com")
    foreign = add_hours(other_id, 1, "09:00", "12:00")

    resp = client_base.post(f"{_hours_path(owner)}/{foreign}/deactivate", headers=auth(owner["user_id"]))

    assert resp.status_code == 404


def test_holiday_create_and_rules(client_base: TestClient, owner):
    headers = auth(owner["user_id"])

    created = client_base.post(
        _holidays_path(owner), json={"holiday_date": "2026-03-09", "name": "Family event"}, headers=headers
    )
    assert created.status_code == 201, created.text
    assert created.json()["holiday_date"] == "2026-03-09"

    duplicate = client_base.post(_holidays_path(owner), json={"holiday_date": "2026-03-09"}, headers=headers)
    assert duplicate.json()["reason"] == "duplicate_holiday"

    past = client_base.post(_holidays_path(owner), json={"holiday_date": "2026-02-28"}, headers=headers)
    assert past.json()["reason"] == "holiday_in_past"

    today = client_base.post(_holidays_path(owner), json={"holiday_date": "2026-03-01"}, headers=headers)
    assert today.status_code == 201

    for bad in ("09/03/2026", "2026-02-30", "soon"):
        resp = client_base.post(_holidays_path(owner), json={"holiday_date": bad}, headers=headers)
        assert resp.status_code == 422
        assert resp.json()["reason"] == "invalid_schedule"


def test_replace_holidays_is_atomic(client_base: TestClient, owner):
    add_holiday(owner["consultant_id"], date(2026, 4, 1))
    headers = auth(owner["user_id"])

    rejected = client_base.put(
        _holidays_path(owner),
        json={"holidays": [{"holiday_date": "2026-03-10"}, {"holiday_date": "2026-03-10"}]},
        headers=headers,
    )
    assert rejected.json()["reason"] == "duplicate_holiday"
    assert [h["holiday_date"] for h in client_base.get(_holidays_path(owner)).json()] == ["2026-04-01"]

    replaced = client_base.put(
        _holidays_path(owner),
        json={"holidays": [{"holiday_date": "2026-03-20", "name": "Trip"}, {"holiday_date": "2026-03-10"}]},
        headers=headers,
    )
    assert replaced.status_code == 200, replaced.text
    assert [h["holiday_date"] for h in replaced.json()] == ["2026-03-10", "2026-03-20"]


def test_holiday_update_and_delete(client_base: TestClient, owner):
    headers = auth(owner["user_id"])
    holiday_id = client_base.post(_holidays_path(owner), json={"holiday_date": "2026-03-09"}, headers=headers).json()["id"]
    client_base.post(_holidays_path(owner), json={"holiday_date": "2026-03-16"}, headers=headers)

    moved = client_base.patch(f"{_holidays_path(owner)}/{holiday_id}", json={"holiday_date": "2026-03-10"}, headers=headers)
    assert moved.json()["holiday_date"] == "2026-03-10"

    clash = client_base.patch(f"{_holidays_path(owner)}/{holiday_id}", json={"holiday_date": "2026-03-16"}, headers=headers)
    assert clash.json()["reason"] == "duplicate_holiday"

    assert client_base.delete(f"{_holidays_path(owner)}/{holiday_id}", headers=headers).status_code == 204


def test_holiday_removes_availability(client_base: TestClient, owner):
    add_hours(owner["consultant_id"], 1, "09:00", "17:00")
    slots_path = f"/api/consultants/{owner['consultant_id']}/available-slots"
    assert client_base.get(slots_path, params={"date": "2026-03-09"}).json()["slots"]

    client_base.post(_holidays_path(owner), json={"holiday_date": "2026-03-09"}, headers=auth(owner["user_id"]))

    assert client_base.get(slots_path, params={"date": "2026-03-09"}).json()["slots"] == []
