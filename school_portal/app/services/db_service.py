from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from flask import Flask, current_app, g
from werkzeug.security import generate_password_hash

from ..config import ADMIN_EMAIL, ADMIN_PASSWORD, DB_PATH

logger = logging.getLogger(__name__)


def _db_path() -> Path:
    return Path(current_app.config.get("DB_PATH") or DB_PATH)


def connect(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def get_db() -> sqlite3.Connection:
    if "db" not in g:
        g.db = connect(_db_path())
    return g.db


def close_db(exception: Exception | None = None) -> None:
    conn = g.pop("db", None)
    if conn is not None:
        conn.close()


def init_app(app: Flask) -> None:
    app.teardown_appcontext(close_db)


def now_iso() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")


def init_db(db_path: Path | None = None) -> None:
    path = db_path or DB_PATH
    db = connect(path)
    try:
        db.executescript(
            """
            CREATE TABLE IF NOT EXISTS classes (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS subjects (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL UNIQUE,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS class_subjects (
                id INTEGER PRIMARY KEY,
                class_id INTEGER NOT NULL,
                subject_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                UNIQUE(class_id, subject_id),
                FOREIGN KEY(class_id) REFERENCES classes(id) ON DELETE CASCADE,
                FOREIGN KEY(subject_id) REFERENCES subjects(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY,
                full_name TEXT NOT NULL,
                identifier TEXT UNIQUE,
                email TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL,
                class_id INTEGER,
                avatar_url TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY(class_id) REFERENCES classes(id) ON DELETE SET NULL
            );

            CREATE TABLE IF NOT EXISTS user_roles (
                id INTEGER PRIMARY KEY,
                user_id INTEGER NOT NULL,
                role TEXT NOT NULL CHECK (role IN ('admin', 'student', 'teacher')),
                created_at TEXT NOT NULL,
                UNIQUE(user_id, role),
                FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS timetable_slots (
                id INTEGER PRIMARY KEY,
                class_id INTEGER NOT NULL,
                subject_id INTEGER NOT NULL,
                teacher_id INTEGER,
                day_of_week INTEGER NOT NULL CHECK (day_of_week BETWEEN 0 AND 6),
                start_time TEXT NOT NULL,
                end_time TEXT NOT NULL,
                classroom TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY(class_id) REFERENCES classes(id) ON DELETE CASCADE,
                FOREIGN KEY(subject_id) REFERENCES subjects(id) ON DELETE CASCADE,
                FOREIGN KEY(teacher_id) REFERENCES users(id) ON DELETE SET NULL
            );

            CREATE TABLE IF NOT EXISTS news (
                id INTEGER PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                date TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS news_photos (
                id INTEGER PRIMARY KEY,
                news_id INTEGER NOT NULL,
                photo_url TEXT NOT NULL,
                is_main INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                FOREIGN KEY(news_id) REFERENCES news(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS contact_messages (
                id INTEGER PRIMARY KEY,
                name TEXT NOT NULL,
                email TEXT NOT NULL,
                subject TEXT NOT NULL,
                message TEXT NOT NULL,
                created_at TEXT NOT NULL
            );
            """
        )

        slot_cols = {row[1] for row in db.execute("PRAGMA table_info(timetable_slots)").fetchall()}
        if "classroom" not in slot_cols:
            db.execute("ALTER TABLE timetable_slots ADD COLUMN classroom TEXT")
        if "teacher_id" not in slot_cols:
            db.execute("ALTER TABLE timetable_slots ADD COLUMN teacher_id INTEGER")

        user_cols = {row[1] for row in db.execute("PRAGMA table_info(users)").fetchall()}
        if "avatar_url" not in user_cols:
            db.execute("ALTER TABLE users ADD COLUMN avatar_url TEXT")

        db.commit()

        admins = db.execute("SELECT COUNT(*) FROM user_roles WHERE role = 'admin'").fetchone()[0]
        if admins == 0:
            now = now_iso()
            cur = db.execute(
                """
                INSERT OR IGNORE INTO users (full_name, identifier, email, password_hash, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                ("Administrator", "admin", ADMIN_EMAIL, generate_password_hash(ADMIN_PASSWORD), now, now),
            )
            user_id = cur.lastrowid
            if not cur.rowcount:
                row = db.execute(
                    "SELECT id FROM users WHERE email = ? OR identifier = 'admin'",
                    (ADMIN_EMAIL,),
                ).fetchone()
                user_id = int(row["id"])
            db.execute(
                "INSERT OR IGNORE INTO user_roles (user_id, role, created_at) VALUES (?, 'admin', ?)",
                (int(user_id), now),
            )
            logger.info("Bootstrap admin ensured: %s", ADMIN_EMAIL)

        db.commit()
    finally:
        db.close()
