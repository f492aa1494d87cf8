"""Account management: creating users with a role, changing roles, removing users."""

from __future__ import annotations

import logging
import re
import sqlite3
import uuid

from werkzeug.security import generate_password_hash

from .auth_service import ROLES
from .db_service import now_iso

logger = logging.getLogger(__name__)


class UserCreationError(Exception):
    pass


def generated_email(identifier: str) -> str:
    local = re.sub(r"\s+", "_", identifier.strip().lower())
    return f"{local}@school.local"


def create_user(
    db: sqlite3.Connection,
    full_name: str,
    identifier: str,
    role: str,
    class_id: int | None = None,
    avatar_url: str | None = None,
    password: str | None = None,
) -> dict:
    """Create an account and assign its role.

    The login email is derived from the identifier; when no password is given a random
    one is generated and returned in the result so it can be handed to the user once.
    """
    full_name = (full_name or "").strip()
    identifier = (identifier or "").strip()
    role = (role or "").strip().lower()
    if not full_name or not identifier or not role:
        raise UserCreationError("Missing required fields: full_name, identifier, role")
    if role not in ROLES:
        raise UserCreationError(f"Invalid role: {role}")

    email = generated_email(identifier)
    plain_password = password or uuid.uuid4().hex
    now = now_iso()
    try:
        cur = db.execute(
            """
            INSERT INTO users (full_name, identifier, email, password_hash, class_id, avatar_url, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                full_name,
                identifier,
                email,
                generate_password_hash(plain_password),
                int(class_id) if class_id else None,
                avatar_url or None,
                now,
                now,
            ),
        )
        user_id = int(cur.lastrowid)
        db.execute(
            "INSERT INTO user_roles (user_id, role, created_at) VALUES (?, ?, ?)",
            (user_id, role, now),
        )
    except sqlite3.IntegrityError as e:
        db.rollback()
        logger.warning("User creation failed for %s: %s", identifier, e)
        if "UNIQUE" in str(e):
            raise UserCreationError("A user with this identifier already exists.") from e
        raise UserCreationError("Unknown class.") from e
    db.commit()

    logger.info("Created %s account %s (%s)", role, identifier, email)
    return {
        "id": user_id,
        "email": email,
        "full_name": full_name,
        "identifier": identifier,
        "role": role,
        "password": plain_password,
    }


def set_user_role(db: sqlite3.Connection, user_id: int, role: str) -> None:
    role = (role or "").strip().lower()
    if role not in ROLES:
        raise ValueError(f"Invalid role: {role}")
    db.execute("DELETE FROM user_roles WHERE user_id = ?", (int(user_id),))
    db.execute(
        "INSERT INTO user_roles (user_id, role, created_at) VALUES (?, ?, ?)",
        (int(user_id), role, now_iso()),
    )


def list_users(db: sqlite3.Connection, role: str = "all", q: str = "") -> list[dict]:
    rows = db.execute(
        """
        SELECT u.*, c.name AS class_name,
               (SELECT GROUP_CONCAT(role) FROM user_roles ur WHERE ur.user_id = u.id) AS roles_csv
        FROM users u
        LEFT JOIN classes c ON c.id = u.class_id
        ORDER BY u.full_name ASC
        """
    ).fetchall()

    needle = (q or "").strip().lower()
    resolved = []
    for r in rows:
        u = dict(r)
        u["roles"] = sorted(filter(None, (u.pop("roles_csv") or "").split(",")))
        if role and role != "all" and role not in u["roles"]:
            continue
        if needle:
            hay = f"{u.get('full_name') or ''} {u.get('email') or ''}".lower()
            if needle not in hay:
                continue
        resolved.append(u)
    return resolved


def role_counts(db: sqlite3.Connection) -> dict[str, int]:
    counts = {role: 0 for role in ROLES}
    for r in db.execute("SELECT role, COUNT(*) AS n FROM user_roles GROUP BY role").fetchall():
        counts[r["role"]] = int(r["n"])
    counts["all"] = int(db.execute("SELECT COUNT(*) FROM users").fetchone()[0])
    return counts


def list_teachers(db: sqlite3.Connection) -> list[sqlite3.Row]:
    return db.execute(
        """
        SELECT u.id, u.full_name, u.email
        FROM users u
        JOIN user_roles ur ON ur.user_id = u.id AND ur.role = 'teacher'
        ORDER BY u.full_name ASC
        """
    ).fetchall()
