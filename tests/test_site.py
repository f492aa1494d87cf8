from conftest import add_slot
from school_portal.app.services.db_service import now_iso


def test_public_pages_render(client):
    for path in ("/", "/about", "/news", "/timetable", "/contact"):
        assert client.get(path).status_code == 200, path


def test_news_detail_missing_is_404(client):
    assert client.get("/news/42").status_code == 404


def test_news_detail_renders(client, db):
    now = now_iso()
    news_id = db.execute(
        "INSERT INTO news (title, description, date, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        ("Science Fair", "Projects on display in the main hall.", "2026-10-01", now, now),
    ).lastrowid
    db.commit()
    resp = client.get(f"/news/{news_id}")
    assert resp.status_code == 200
    assert b"Science Fair" in resp.data
    assert b"Science Fair" in client.get("/").data


def test_public_timetable_shows_selected_class(client, db, school):
    add_slot(db, school, 1, "08:00:00", "10:00:00", classroom="Room 101")
    resp = client.get(f"/timetable?class_id={school['class_id']}")
    assert resp.status_code == 200
    assert b"Mathematics" in resp.data
    assert b"08:00 - 10:00" in resp.data
    assert b"Monday" in resp.data
    assert b"Tuesday" not in resp.data


def test_public_timetable_falls_back_to_first_class(client, db, school):
    add_slot(db, school, 2, "10:00", "12:00")
    resp = client.get("/timetable?class_id=abc")
    assert resp.status_code == 200
    assert b"Tuesday" in resp.data


def test_contact_stores_message(client, db):
    resp = client.post(
        "/contact",
        data={"name": "Layla", "email": "layla@example.com", "subject": "Enrolment", "message": "Hello"},
    )
    assert resp.status_code == 302
    row = db.execute("SELECT * FROM contact_messages").fetchone()
    assert row["email"] == "layla@example.com"


def test_contact_validation(client, db):
    resp = client.post("/contact", data={"name": "Layla", "email": "nope", "subject": "x", "message": "y"})
    assert resp.status_code == 400
    assert b"valid email" in resp.data
    resp = client.post("/contact", data={"name": "", "email": "a@b.c", "subject": "x", "message": "y"})
    assert resp.status_code == 400
    assert db.execute("SELECT COUNT(*) FROM contact_messages").fetchone()[0] == 0
