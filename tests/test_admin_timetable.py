from conftest import add_slot
from school_portal.app.routes.admin import parse_slot_form


def test_admin_dashboard_counts(admin_client, school):
    resp = admin_client.get("/admin/")
    assert resp.status_code == 200
    assert b"Timetable slots" in resp.data


def test_class_crud(admin_client, db):
    assert admin_client.post("/admin/classes/new", data={"name": "Grade 11"}).status_code == 302
    class_id = db.execute("SELECT id FROM classes WHERE name = 'Grade 11'").fetchone()["id"]

    resp = admin_client.post("/admin/classes/new", data={"name": "Grade 11"})
    assert "error=" in resp.headers["Location"]

    admin_client.post(f"/admin/classes/{class_id}/update", data={"name": "Grade 11A"})
    assert db.execute("SELECT name FROM classes WHERE id = ?", (class_id,)).fetchone()["name"] == "Grade 11A"

    assert b"Grade 11A" in admin_client.get("/admin/classes").data

    admin_client.post(f"/admin/classes/{class_id}/delete")
    assert db.execute("SELECT COUNT(*) FROM classes").fetchone()[0] == 0


def test_class_subject_assignment(admin_client, db, school):
    url = f"/admin/classes/{school['class_id']}/subjects"
    admin_client.post(url, data={"subject_id": school["subject_id"]})
    resp = admin_client.post(url, data={"subject_id": school["subject_id"]})
    assert "error=" in resp.headers["Location"]

    assignment = db.execute("SELECT id FROM class_subjects").fetchone()
    assert assignment is not None
    admin_client.post(f"{url}/{assignment['id']}/delete")
    assert db.execute("SELECT COUNT(*) FROM class_subjects").fetchone()[0] == 0


def test_subject_crud(admin_client, db):
    admin_client.post("/admin/subjects/new", data={"name": "Chemistry"})
    subject_id = db.execute("SELECT id FROM subjects WHERE name = 'Chemistry'").fetchone()["id"]
    admin_client.post(f"/admin/subjects/{subject_id}/update", data={"name": "Organic Chemistry"})
    assert b"Organic Chemistry" in admin_client.get("/admin/subjects").data
    admin_client.post(f"/admin/subjects/{subject_id}/delete")
    assert db.execute("SELECT COUNT(*) FROM subjects").fetchone()[0] == 0


def test_parse_slot_form_preset_band():
    values, error = parse_slot_form(
        {"time_mode": "preset", "time_slot": "1", "subject_id": "3", "day_of_week": "4", "teacher_id": ""}
    )
    assert error is None
    assert (values["start_time"], values["end_time"]) == ("10:00", "12:00")
    assert values["day_of_week"] == 4
    assert values["teacher_id"] is None
    assert values["classroom"] is None


def test_parse_slot_form_custom_times_are_normalised():
    values, error = parse_slot_form(
        {"time_mode": "custom", "start_time": "9:15", "end_time": "10:45:00", "subject_id": "1", "day_of_week": "0"}
    )
    assert error is None
    assert (values["start_time"], values["end_time"]) == ("09:15", "10:45")


def test_parse_slot_form_rejects_bad_input():
    base = {"time_mode": "custom", "subject_id": "1", "day_of_week": "2"}
    assert parse_slot_form({**base, "start_time": "10:00", "end_time": "09:00"})[1] == "End time must be after start time."
    assert parse_slot_form({**base, "start_time": "10:00", "end_time": "10:00"})[1] == "End time must be after start time."
    assert parse_slot_form({**base, "start_time": "ten", "end_time": "11:00"})[1] == "Times must be in HH:MM format."
    assert parse_slot_form({**base, "start_time": "25:00", "end_time": "26:00"})[1] == "Times must be in HH:MM format."
    assert parse_slot_form({**base, "day_of_week": "7", "start_time": "08:00", "end_time": "09:00"})[1]
    assert parse_slot_form({"time_mode": "preset", "time_slot": "9", "subject_id": "1", "day_of_week": "1"})[1]


def test_timetable_create_and_list(admin_client, db, school):
    resp = admin_client.post(
        "/admin/timetable/new",
        data={
            "class_id": school["class_id"],
            "time_mode": "preset",
            "time_slot": "0",
            "subject_id": school["subject_id"],
            "day_of_week": "1",
            "classroom": "Room 101",
            "teacher_id": school["teacher"]["id"],
        },
    )
    assert resp.status_code == 302
    row = db.execute("SELECT * FROM timetable_slots").fetchone()
    assert (row["start_time"], row["end_time"], row["day_of_week"]) == ("08:00", "10:00", 1)
    assert row["teacher_id"] == school["teacher"]["id"]

    body = admin_client.get(f"/admin/timetable?class_id={school['class_id']}").get_data(as_text=True)
    assert "Room 101" in body
    assert "Sara Haddad" in body


def test_timetable_create_invalid_returns_400(admin_client, db, school):
    resp = admin_client.post(
        "/admin/timetable/new",
        data={
            "class_id": school["class_id"],
            "time_mode": "custom",
            "start_time": "11:00",
            "end_time": "10:00",
            "subject_id": school["subject_id"],
            "day_of_week": "1",
        },
    )
    assert resp.status_code == 400
    assert b"End time must be after start time." in resp.data
    assert db.execute("SELECT COUNT(*) FROM timetable_slots").fetchone()[0] == 0


def test_timetable_edit_update_delete(admin_client, db, school):
    slot_id = add_slot(db, school, 1, "08:00", "10:00")
    assert admin_client.get(f"/admin/timetable/{slot_id}/edit").status_code == 200
    assert admin_client.get("/admin/timetable/999/edit").status_code == 404

    admin_client.post(
        f"/admin/timetable/{slot_id}/update",
        data={
            "time_mode": "custom",
            "start_time": "13:00",
            "end_time": "14:30",
            "subject_id": school["subject_id"],
            "day_of_week": "3",
            "classroom": "Lab B",
        },
    )
    row = db.execute("SELECT * FROM timetable_slots WHERE id = ?", (slot_id,)).fetchone()
    assert (row["start_time"], row["end_time"], row["day_of_week"], row["classroom"]) == ("13:00", "14:30", 3, "Lab B")

    admin_client.post(f"/admin/timetable/{slot_id}/delete")
    assert db.execute("SELECT COUNT(*) FROM timetable_slots").fetchone()[0] == 0


def test_timetable_page_flags_overlapping_entries(admin_client, db, school):
    add_slot(db, school, 2, "08:00", "10:00")
    add_slot(db, school, 2, "08:00", "10:00")
    body = admin_client.get(f"/admin/timetable?class_id={school['class_id']}").get_data(as_text=True)
    assert "Overlapping entries" in body


def _slot_form(school, **overrides):
    data = {
        "class_id": school["class_id"],
        "time_mode": "preset",
        "time_slot": "0",
        "subject_id": school["subject_id"],
        "day_of_week": "1",
    }
    data.update(overrides)
    return data


def test_timetable_create_unknown_subject_or_teacher(admin_client, db, school):
    resp = admin_client.post("/admin/timetable/new", data=_slot_form(school, subject_id="9999"))
    assert resp.status_code == 400
    assert b"Unknown subject or teacher." in resp.data

    resp = admin_client.post("/admin/timetable/new", data=_slot_form(school, teacher_id="9999"))
    assert resp.status_code == 400
    assert b"Unknown subject or teacher." in resp.data
    assert db.execute("SELECT COUNT(*) FROM timetable_slots").fetchone()[0] == 0


def test_timetable_update_unknown_subject_keeps_slot(admin_client, db, school):
    slot_id = add_slot(db, school, 1, "08:00", "10:00")
    resp = admin_client.post(f"/admin/timetable/{slot_id}/update", data=_slot_form(school, subject_id="9999"))
    assert resp.status_code == 400
    assert b"Edit Time Slot" in resp.data
    assert b"Unknown subject or teacher." in resp.data
    row = db.execute("SELECT subject_id FROM timetable_slots WHERE id = ?", (slot_id,)).fetchone()
    assert row["subject_id"] == school["subject_id"]


def test_timetable_update_error_rerenders_edit_form_with_input(admin_client, db, school):
    slot_id = add_slot(db, school, 1, "08:00", "10:00")
    resp = admin_client.post(
        f"/admin/timetable/{slot_id}/update",
        data=_slot_form(
            school, time_mode="custom", start_time="15:00", end_time="14:00", day_of_week="4", classroom="Lab C"
        ),
    )
    assert resp.status_code == 400
    body = resp.get_data(as_text=True)
    assert "Edit Time Slot" in body
    assert "End time must be after start time." in body
    assert 'value="Lab C"' in body
    assert 'value="15:00"' in body
    assert f"/admin/timetable/{slot_id}/update" in body
    row = db.execute("SELECT * FROM timetable_slots WHERE id = ?", (slot_id,)).fetchone()
    assert (row["start_time"], row["classroom"]) == ("08:00", None)


def test_class_subject_assign_unknown_class(admin_client, db, school):
    resp = admin_client.post("/admin/classes/9999/subjects", data={"subject_id": school["subject_id"]})
    assert resp.status_code == 302
    assert "Unknown" in resp.headers["Location"]
    assert "already" not in resp.headers["Location"]
    assert db.execute("SELECT COUNT(*) FROM class_subjects").fetchone()[0] == 0
