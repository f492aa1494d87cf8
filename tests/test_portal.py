from datetime import datetime

import pytest

from conftest import add_slot, login_as
from school_portal.app.routes import portal

# 2026-10-19 is a Monday (day index 1)
MONDAY_0930 = datetime(2026, 10, 19, 9, 30)


@pytest.fixture
def monday(monkeypatch):
    monkeypatch.setattr(portal, "current_time", lambda: MONDAY_0930)


def test_dashboard_requires_login(client):
    resp = client.get("/dashboard")
    assert resp.status_code == 302
    assert "/login" in resp.headers["Location"]


def test_admin_is_sent_to_admin_panel(admin_client):
    resp = admin_client.get("/dashboard")
    assert resp.status_code == 302
    assert resp.headers["Location"].endswith("/admin/")


def test_student_today_shows_status(client, db, school, monday):
    add_slot(db, school, 1, "09:00", "10:00")
    add_slot(db, school, 1, "10:00", "12:00")
    add_slot(db, school, 1, "08:00", "09:00")
    login_as(client, school["student"]["id"])

    resp = client.get("/dashboard")
    assert resp.status_code == 200
    body = resp.get_data(as_text=True)
    assert "Monday" in body
    assert "30 min left" in body
    assert "Starts in 30 min" in body
    assert "Finished" in body
    assert body.index("08:00 - 09:00") < body.index("09:00 - 10:00") < body.index("10:00 - 12:00")


def test_student_tomorrow_has_no_status(client, db, school, monday):
    add_slot(db, school, 2, "08:00", "10:00")
    login_as(client, school["student"]["id"])

    body = client.get("/dashboard?view=tomorrow").get_data(as_text=True)
    assert "Tuesday" in body
    assert "08:00 - 10:00" in body
    assert "Starts in" not in body
    assert "Status" not in body


def test_unknown_view_falls_back_to_today(client, db, school, monday):
    login_as(client, school["student"]["id"])
    body = client.get("/dashboard?view=yesterday").get_data(as_text=True)
    assert "Today" in body
    assert "No classes scheduled." in body


def test_teacher_sees_slots_they_teach(client, db, school, monday):
    add_slot(db, school, 1, "09:00", "10:00", classroom="Lab A")
    login_as(client, school["teacher"]["id"])

    body = client.get("/dashboard").get_data(as_text=True)
    assert "Grade 10" in body
    assert "Lab A" in body


def test_week_view(client, db, school):
    add_slot(db, school, 0, "08:00", "10:00")
    add_slot(db, school, 4, "08:00", "10:00")
    login_as(client, school["student"]["id"])

    body = client.get("/dashboard/week").get_data(as_text=True)
    assert "Sunday" in body
    assert "Thursday" in body
    assert "Monday" not in body.split("<table", 1)[1]
