from __future__ import annotations

import sqlite3
from functools import wraps

from flask import abort, g, redirect, request, session, url_for

from .db_service import get_db

ROLES = ("admin", "teacher", "student")


def get_current_user_id() -> int | None:
    uid = session.get("user_id")
    if uid is None:
        return None
    try:
        return int(uid)
    except (TypeError, ValueError):
        return None


def get_user_roles(db: sqlite3.Connection, user_id: int) -> list[str]:
    rows = db.execute("SELECT role FROM user_roles WHERE user_id = ? ORDER BY role", (int(user_id),)).fetchall()
    return [r["role"] for r in rows]


def primary_role(roles: list[str]) -> str | None:
    for role in ROLES:
        if role in roles:
            return role
    return None


def get_current_user() -> dict | None:
    if "current_user" in g:
        return g.current_user
    uid = get_current_user_id()
    user = None
    if uid is not None:
        db = get_db()
        row = db.execute(
            """
            SELECT u.*, c.name AS class_name
            FROM users u
            LEFT JOIN classes c ON c.id = u.class_id
            WHERE u.id = ?
            """,
            (uid,),
        ).fetchone()
        if row is None:
            session.pop("user_id", None)
        else:
            user = dict(row)
            user["roles"] = get_user_roles(db, uid)
            user["role"] = primary_role(user["roles"])
    g.current_user = user
    return user


def safe_next_url() -> str | None:
    next_url = (request.args.get("next") or request.form.get("next") or "").strip()
    if next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return None


def home_endpoint_for(role: str | None) -> str:
    if role == "admin":
        return "admin.dashboard"
    return "portal.dashboard"


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if get_current_user() is None:
            return redirect(url_for("auth.login", next=request.path))
        return fn(*args, **kwargs)

    return wrapper


def role_required(*allowed_roles: str):
    allowed = {r.strip().lower() for r in allowed_roles}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = get_current_user()
            if user is None:
                return redirect(url_for("auth.login", next=request.path))
            if allowed and not allowed.intersection(user["roles"]):
                abort(403)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
