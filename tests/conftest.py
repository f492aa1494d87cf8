import pytest

from school_portal.app import create_app
from school_portal.app.services.db_service import connect, init_db, now_iso
from school_portal.app.services.user_service import create_user


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "portal.db"
    init_db(path)
    return path


@pytest.fixture
def app(db_path, tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "DB_PATH": db_path,
            "UPLOAD_DIR": tmp_path / "uploads",
        }
    )
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db(db_path):
    conn = connect(db_path)
    yield conn
    conn.close()


@pytest.fixture
def admin_id(db):
    row = db.execute("SELECT user_id FROM user_roles WHERE role = 'admin' ORDER BY id LIMIT 1").fetchone()
    return int(row["user_id"])


def login_as(client, user_id):
    with client.session_transaction() as sess:
        sess["user_id"] = int(user_id)


@pytest.fixture
def admin_client(client, admin_id):
    login_as(client, admin_id)
    return client


@pytest.fixture
def school(db):
    """One class with a subject, a teacher and a student in it."""
    now = now_iso()
    class_id = db.execute(
        "INSERT INTO classes (name, created_at, updated_at) VALUES (?, ?, ?)", ("Grade 10", now, now)
    ).lastrowid
    subject_id = db.execute(
        "INSERT INTO subjects (name, created_at, updated_at) VALUES (?, ?, ?)", ("Mathematics", now, now)
    ).lastrowid
    db.commit()
    teacher = create_user(db, "Sara Haddad", "T-100", "teacher", password="teach-pass")
    student = create_user(db, "Omar Khalil", "S-200", "student", class_id=class_id, password="study-pass")
    return {
        "class_id": int(class_id),
        "subject_id": int(subject_id),
        "teacher": teacher,
        "student": student,
    }


def add_slot(db, school, day, start, end, classroom=None, subject_id=None):
    now = now_iso()
    cur = db.execute(
        """
        INSERT INTO timetable_slots (
            class_id, subject_id, teacher_id, day_of_week, start_time, end_time, classroom, created_at, updated_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            school["class_id"],
            subject_id or school["subject_id"],
            school["teacher"]["id"],
            day,
            start,
            end,
            classroom,
            now,
            now,
        ),
    )
    db.commit()
    return int(cur.lastrowid)
