import argparse
import os
import sqlite3
from datetime import date, timedelta
from pathlib import Path

from school_portal.app.services.db_service import connect, init_db, now_iso
from school_portal.app.services.timetable_service import PREDEFINED_BANDS
from school_portal.app.services.user_service import create_user

CLASSES = ["Grade 10", "Grade 11", "Grade 12"]

SUBJECTS = ["Mathematics", "Physics", "Chemistry", "Arabic", "English", "History"]

TEACHERS = [
    ("Sara Haddad", "T-100", ["Mathematics", "Physics"]),
    ("Yousef Mansour", "T-101", ["Chemistry"]),
    ("Mona Farah", "T-102", ["Arabic", "History"]),
    ("Daniel Brooks", "T-103", ["English"]),
]

STUDENTS = [
    ("Omar Khalil", "S-200", "Grade 10"),
    ("Layla Youssef", "S-201", "Grade 10"),
    ("Karim Nassar", "S-202", "Grade 11"),
    ("Huda Nasser", "S-203", "Grade 11"),
    ("Rami Aziz", "S-204", "Grade 12"),
]

NEWS = [
    ("Science Fair Winners Announced", "Congratulations to our students for their outstanding projects."),
    ("Parent-Teacher Meeting", "Meet your child's teachers in the main hall on Thursday afternoon."),
    ("New Library Wing Opens", "The reading room now offers study spaces and a digital catalogue."),
]

SCHOOL_DAYS = [0, 1, 2, 3, 4]


def _count(conn: sqlite3.Connection, table: str) -> int:
    return int(conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])


def _ids_by_name(conn: sqlite3.Connection, table: str) -> dict[str, int]:
    return {r["name"]: int(r["id"]) for r in conn.execute(f"SELECT id, name FROM {table}").fetchall()}


def seed(db_path: Path) -> None:
    init_db(db_path)
    conn = connect(db_path)
    try:
        now = now_iso()
        for name in CLASSES:
            conn.execute(
                "INSERT OR IGNORE INTO classes (name, created_at, updated_at) VALUES (?, ?, ?)", (name, now, now)
            )
        for name in SUBJECTS:
            conn.execute(
                "INSERT OR IGNORE INTO subjects (name, created_at, updated_at) VALUES (?, ?, ?)", (name, now, now)
            )
        conn.commit()

        class_ids = _ids_by_name(conn, "classes")
        subject_ids = _ids_by_name(conn, "subjects")

        for class_id in class_ids.values():
            for subject_id in subject_ids.values():
                conn.execute(
                    "INSERT OR IGNORE INTO class_subjects (class_id, subject_id, created_at) VALUES (?, ?, ?)",
                    (class_id, subject_id, now),
                )
        conn.commit()

        teacher_for_subject: dict[str, int] = {}
        if _count(conn, "user_roles") <= 1:
            for full_name, identifier, taught in TEACHERS:
                created = create_user(conn, full_name, identifier, "teacher", password="teacher123")
                for subject in taught:
                    teacher_for_subject[subject] = created["id"]
            for full_name, identifier, class_name in STUDENTS:
                create_user(conn, full_name, identifier, "student", class_id=class_ids[class_name], password="student123")

        # Three bands a day, rotating subjects so each class gets a different week
        if _count(conn, "timetable_slots") == 0:
            rooms = ["Room 101", "Room 102", "Lab A"]
            for c_index, class_id in enumerate(class_ids.values()):
                for day in SCHOOL_DAYS:
                    for b_index, (start, end) in enumerate(PREDEFINED_BANDS):
                        subject = SUBJECTS[(c_index + day + b_index) % len(SUBJECTS)]
                        conn.execute(
                            """
                            INSERT INTO timetable_slots (
                                class_id, subject_id, teacher_id, day_of_week, start_time, end_time,
                                classroom, created_at, updated_at
                            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                            """,
                            (
                                class_id,
                                subject_ids[subject],
                                teacher_for_subject.get(subject),
                                day,
                                start,
                                end,
                                rooms[b_index],
                                now,
                                now,
                            ),
                        )

        if _count(conn, "news") == 0:
            today = date.today()
            for i, (title, description) in enumerate(NEWS):
                conn.execute(
                    "INSERT INTO news (title, description, date, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
                    (title, description, (today - timedelta(days=7 * i)).isoformat(), now, now),
                )

        conn.commit()
    finally:
        conn.close()


def main() -> int:
    parser = argparse.ArgumentParser(description="Generate a fresh dummy school_portal.db with seed data")
    parser.add_argument(
        "--db",
        default=str(Path(__file__).with_name("school_portal.db")),
        help="Path to sqlite db file (default: ./school_portal.db)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite existing db file if it exists",
    )
    args = parser.parse_args()

    db_path = Path(args.db).resolve()
    if db_path.exists():
        if not args.force:
            raise SystemExit(
                f"DB already exists at {db_path}. Re-run with --force to overwrite."
            )
        os.remove(db_path)

    seed(db_path)
    print(f"Dummy database created at: {db_path}")
    print("Login credentials:")
    print("- Admin: admin / admin123")
    print("- Teachers: T-100 .. T-103 with password teacher123")
    print("- Students: S-200 .. S-204 with password student123")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
