from __future__ import annotations

from datetime import datetime

from flask import Blueprint, redirect, render_template, request, url_for

from ..services.auth_service import get_current_user, login_required
from ..services.db_service import get_db
from ..services.timetable_service import (
    TODAY,
    TOMORROW,
    active_days,
    build_grid,
    day_index_for,
    fetch_slots_for_class,
    fetch_slots_for_teacher,
    slot_status,
    slots_for_view,
)

bp = Blueprint("portal", __name__)


def current_time() -> datetime:
    return datetime.now()


def _slots_for_user(db, user: dict) -> list:
    if user["role"] == "teacher":
        return fetch_slots_for_teacher(db, int(user["id"]))
    if user.get("class_id"):
        return fetch_slots_for_class(db, int(user["class_id"]))
    return []


@bp.get("/dashboard")
@login_required
def dashboard():
    user = get_current_user()
    if user["role"] == "admin":
        return redirect(url_for("admin.dashboard"))

    view = (request.args.get("view") or TODAY).strip().lower()
    if view not in (TODAY, TOMORROW):
        view = TODAY

    db = get_db()
    now = current_time()
    slots = _slots_for_user(db, user)
    day_index = day_index_for(now, view)

    entries = []
    for slot in slots_for_view(slots, day_index):
        status = slot_status(slot, now) if view == TODAY else None
        entries.append({"slot": slot, "status": status})

    latest_news = db.execute("SELECT * FROM news ORDER BY date(date) DESC, id DESC LIMIT 3").fetchall()
    return render_template(
        "portal/dashboard.html",
        page_title="Dashboard",
        view=view,
        day_index=day_index,
        entries=entries,
        days=active_days(slots),
        latest_news=latest_news,
        now=now,
    )


@bp.get("/dashboard/week")
@login_required
def week():
    user = get_current_user()
    if user["role"] == "admin":
        return redirect(url_for("admin.timetable"))
    db = get_db()
    slots = _slots_for_user(db, user)
    bands, grid = build_grid(slots)
    return render_template(
        "portal/week.html",
        page_title="My week",
        bands=bands,
        grid=grid,
        days=active_days(slots),
    )
