from __future__ import annotations

import logging

from flask import Blueprint, redirect, render_template, request, session, url_for
from werkzeug.security import check_password_hash

from ..services.auth_service import (
    get_current_user,
    get_user_roles,
    home_endpoint_for,
    primary_role,
    safe_next_url,
)
from ..services.db_service import get_db

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__)


@bp.get("/login")
@bp.get("/student-login", endpoint="student_login")
def login():
    user = get_current_user()
    if user is not None:
        return redirect(url_for(home_endpoint_for(user["role"])))
    return render_template("login.html", page_title="Sign in", error=None, next=safe_next_url() or "")


@bp.post("/login")
def login_post():
    login_id = (request.form.get("login") or "").strip()
    password = request.form.get("password") or ""
    next_url = safe_next_url()
    if not login_id or not password:
        return render_template(
            "login.html",
            page_title="Sign in",
            error="Please enter your email or ID and password.",
            next=next_url or "",
        ), 400

    db = get_db()
    user = db.execute(
        "SELECT * FROM users WHERE lower(email) = lower(?) OR identifier = ?",
        (login_id, login_id),
    ).fetchone()
    if not user or not user["password_hash"] or not check_password_hash(user["password_hash"], password):
        logger.warning("Failed login attempt for %s", login_id)
        return render_template(
            "login.html",
            page_title="Sign in",
            error="Invalid credentials.",
            next=next_url or "",
        ), 401

    session.clear()
    session["user_id"] = int(user["id"])
    role = primary_role(get_user_roles(db, int(user["id"])))
    logger.info("User %s signed in as %s", user["email"], role)
    return redirect(next_url or url_for(home_endpoint_for(role)))


@bp.get("/logout")
def logout():
    session.clear()
    return redirect(url_for("auth.login"))
