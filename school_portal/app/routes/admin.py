from __future__ import annotations

import logging
import re
import sqlite3
from datetime import date

from flask import Blueprint, abort, flash, redirect, render_template, request, url_for

from ..services.auth_service import ROLES, get_current_user, role_required
from ..services.db_service import get_db, now_iso
from ..services.storage_service import (
    add_news_photos,
    delete_news_photos,
    news_photos,
    remove_news_photos,
    set_main_photo,
)
from ..services.timetable_service import (
    PREDEFINED_BANDS,
    active_days,
    build_grid,
    fetch_all_slots,
    fetch_classes,
    fetch_slots_for_class,
    grid_conflicts,
    group_by_day,
    parse_time_minutes,
    slot_from_row,
)
from ..services.user_service import (
    UserCreationError,
    create_user,
    list_teachers,
    list_users,
    role_counts,
    set_user_role,
)

logger = logging.getLogger(__name__)

bp = Blueprint("admin", __name__, url_prefix="/admin")

_HHMM = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")


@bp.before_request
@role_required("admin")
def require_admin():
    return None


def _int_or_none(raw) -> int | None:
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return None


@bp.get("/")
def dashboard():
    db = get_db()
    all_slots = fetch_all_slots(db)
    by_class: dict[int, list] = {}
    for slot in all_slots:
        by_class.setdefault(slot.class_id, []).append(slot)

    def _count(table: str) -> int:
        return int(db.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0])

    return render_template(
        "admin/dashboard.html",
        page_title="Admin Panel",
        news_count=_count("news"),
        class_count=_count("classes"),
        subject_count=_count("subjects"),
        slot_count=len(all_slots),
        conflict_count=sum(len(grid_conflicts(slots)) for slots in by_class.values()),
        user_counts=role_counts(db),
    )


# Classes


@bp.get("/classes")
def classes():
    db = get_db()
    rows = fetch_classes(db)
    assignments: dict[int, list] = {}
    for r in db.execute(
        """
        SELECT cs.id, cs.class_id, s.name AS subject_name
        FROM class_subjects cs
        JOIN subjects s ON s.id = cs.subject_id
        ORDER BY s.name ASC
        """
    ).fetchall():
        assignments.setdefault(int(r["class_id"]), []).append(r)
    subjects = db.execute("SELECT * FROM subjects ORDER BY name ASC").fetchall()
    return render_template(
        "admin/classes.html",
        page_title="Manage Classes",
        classes=rows,
        assignments=assignments,
        subjects=subjects,
        error=request.args.get("error"),
    )


@bp.post("/classes/new")
def class_create():
    name = (request.form.get("name") or "").strip()
    if not name:
        return redirect(url_for("admin.classes", error="Class name is required."))
    db = get_db()
    now = now_iso()
    try:
        db.execute("INSERT INTO classes (name, created_at, updated_at) VALUES (?, ?, ?)", (name, now, now))
        db.commit()
    except sqlite3.IntegrityError:
        return redirect(url_for("admin.classes", error=f"Class '{name}' already exists."))
    logger.info("Class created: %s", name)
    return redirect(url_for("admin.classes"))


@bp.post("/classes/<int:class_id>/update")
def class_update(class_id: int):
    name = (request.form.get("name") or "").strip()
    if not name:
        return redirect(url_for("admin.classes", error="Class name is required."))
    db = get_db()
    try:
        db.execute("UPDATE classes SET name = ?, updated_at = ? WHERE id = ?", (name, now_iso(), int(class_id)))
        db.commit()
    except sqlite3.IntegrityError:
        return redirect(url_for("admin.classes", error=f"Class '{name}' already exists."))
    return redirect(url_for("admin.classes"))


@bp.post("/classes/<int:class_id>/delete")
def class_delete(class_id: int):
    db = get_db()
    db.execute("DELETE FROM classes WHERE id = ?", (int(class_id),))
    db.commit()
    logger.info("Class %s deleted", class_id)
    return redirect(url_for("admin.classes"))


@bp.post("/classes/<int:class_id>/subjects")
def class_subject_assign(class_id: int):
    subject_id = _int_or_none(request.form.get("subject_id"))
    if subject_id is None:
        return redirect(url_for("admin.classes", error="Please choose a subject."))
    db = get_db()
    try:
        db.execute(
            "INSERT INTO class_subjects (class_id, subject_id, created_at) VALUES (?, ?, ?)",
            (int(class_id), subject_id, now_iso()),
        )
        db.commit()
    except sqlite3.IntegrityError as e:
        db.rollback()
        if "UNIQUE" in str(e):
            return redirect(url_for("admin.classes", error="Subject is already assigned to this class."))
        return redirect(url_for("admin.classes", error="Unknown class or subject."))
    return redirect(url_for("admin.classes"))


@bp.post("/classes/<int:class_id>/subjects/<int:assignment_id>/delete")
def class_subject_remove(class_id: int, assignment_id: int):
    db = get_db()
    db.execute(
        "DELETE FROM class_subjects WHERE id = ? AND class_id = ?",
        (int(assignment_id), int(class_id)),
    )
    db.commit()
    return redirect(url_for("admin.classes"))


# Subjects


@bp.get("/subjects")
def subjects():
    db = get_db()
    rows = db.execute(
        """
        SELECT s.*, (SELECT COUNT(*) FROM class_subjects cs WHERE cs.subject_id = s.id) AS class_count
        FROM subjects s
        ORDER BY s.name ASC
        """
    ).fetchall()
    return render_template(
        "admin/subjects.html",
        page_title="Manage Subjects",
        subjects=rows,
        error=request.args.get("error"),
    )


@bp.post("/subjects/new")
def subject_create():
    name = (request.form.get("name") or "").strip()
    if not name:
        return redirect(url_for("admin.subjects", error="Subject name is required."))
    db = get_db()
    now = now_iso()
    try:
        db.execute("INSERT INTO subjects (name, created_at, updated_at) VALUES (?, ?, ?)", (name, now, now))
        db.commit()
    except sqlite3.IntegrityError:
        return redirect(url_for("admin.subjects", error=f"Subject '{name}' already exists."))
    logger.info("Subject created: %s", name)
    return redirect(url_for("admin.subjects"))


@bp.post("/subjects/<int:subject_id>/update")
def subject_update(subject_id: int):
    name = (request.form.get("name") or "").strip()
    if not name:
        return redirect(url_for("admin.subjects", error="Subject name is required."))
    db = get_db()
    try:
        db.execute("UPDATE subjects SET name = ?, updated_at = ? WHERE id = ?", (name, now_iso(), int(subject_id)))
        db.commit()
    except sqlite3.IntegrityError:
        return redirect(url_for("admin.subjects", error=f"Subject '{name}' already exists."))
    return redirect(url_for("admin.subjects"))


@bp.post("/subjects/<int:subject_id>/delete")
def subject_delete(subject_id: int):
    db = get_db()
    db.execute("DELETE FROM subjects WHERE id = ?", (int(subject_id),))
    db.commit()
    logger.info("Subject %s deleted", subject_id)
    return redirect(url_for("admin.subjects"))


# Timetable


def parse_slot_form(form) -> tuple[dict | None, str | None]:
    """Validate the add/edit slot form. Returns ``(values, None)`` or ``(None, error)``."""
    subject_id = _int_or_none(form.get("subject_id"))
    day_of_week = _int_or_none(form.get("day_of_week"))

    if (form.get("time_mode") or "preset") == "custom":
        start_time = (form.get("start_time") or "").strip()
        end_time = (form.get("end_time") or "").strip()
    else:
        band_index = _int_or_none(form.get("time_slot"))
        if band_index is None or not (0 <= band_index < len(PREDEFINED_BANDS)):
            return None, "Please choose a time slot."
        start_time, end_time = PREDEFINED_BANDS[band_index]

    if subject_id is None or day_of_week is None or not start_time or not end_time:
        return None, "Please fill all required fields."
    if not (0 <= day_of_week <= 6):
        return None, "Day of week must be between Sunday and Saturday."
    if not _HHMM.match(start_time) or not _HHMM.match(end_time):
        return None, "Times must be in HH:MM format."
    try:
        start_minutes = parse_time_minutes(start_time)
        end_minutes = parse_time_minutes(end_time)
    except ValueError:
        return None, "Times must be in HH:MM format."
    if start_minutes >= end_minutes:
        return None, "End time must be after start time."

    return {
        "subject_id": subject_id,
        "day_of_week": day_of_week,
        "start_time": f"{start_minutes // 60:02d}:{start_minutes % 60:02d}",
        "end_time": f"{end_minutes // 60:02d}:{end_minutes % 60:02d}",
        "classroom": (form.get("classroom") or "").strip() or None,
        "teacher_id": _int_or_none(form.get("teacher_id")),
    }, None


def _selected_class_id(db, raw) -> int | None:
    classes = fetch_classes(db)
    selected = _int_or_none(raw)
    if selected is None or not any(int(c["id"]) == selected for c in classes):
        selected = int(classes[0]["id"]) if classes else None
    return selected


def _render_timetable(class_id: int | None, error: str | None = None, status: int = 200):
    db = get_db()
    slots = fetch_slots_for_class(db, class_id) if class_id is not None else []
    bands, grid = build_grid(slots)
    return render_template(
        "admin/timetable.html",
        page_title="Manage Timetable",
        classes=fetch_classes(db),
        selected_class_id=class_id,
        slots_by_day=group_by_day(slots),
        days=active_days(slots),
        bands=bands,
        grid=grid,
        conflicts=grid_conflicts(slots),
        subjects=db.execute("SELECT * FROM subjects ORDER BY name ASC").fetchall(),
        teachers=list_teachers(db),
        predefined_bands=PREDEFINED_BANDS,
        error=error,
    ), status


@bp.get("/timetable")
def timetable():
    db = get_db()
    return _render_timetable(_selected_class_id(db, request.args.get("class_id")))


@bp.post("/timetable/new")
def timetable_create():
    db = get_db()
    class_id = _selected_class_id(db, request.form.get("class_id"))
    if class_id is None:
        return _render_timetable(None, error="Create a class first.", status=400)
    values, error = parse_slot_form(request.form)
    if error:
        return _render_timetable(class_id, error=error, status=400)
    now = now_iso()
    try:
        db.execute(
            """
            INSERT INTO timetable_slots (
                class_id, subject_id, teacher_id, day_of_week, start_time, end_time, classroom, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                class_id,
                values["subject_id"],
                values["teacher_id"],
                values["day_of_week"],
                values["start_time"],
                values["end_time"],
                values["classroom"],
                now,
                now,
            ),
        )
        db.commit()
    except sqlite3.IntegrityError as e:
        db.rollback()
        logger.warning("Timetable slot rejected for class %s: %s", class_id, e)
        return _render_timetable(class_id, error="Unknown subject or teacher.", status=400)
    logger.info(
        "Timetable slot added for class %s: day %s %s-%s",
        class_id,
        values["day_of_week"],
        values["start_time"],
        values["end_time"],
    )
    return redirect(url_for("admin.timetable", class_id=class_id))


def _render_slot_edit(slot, band_index: int | None, error: str | None = None, status: int = 200):
    db = get_db()
    return render_template(
        "admin/timetable_edit.html",
        page_title="Edit Time Slot",
        slot=slot,
        band_index=band_index,
        subjects=db.execute("SELECT * FROM subjects ORDER BY name ASC").fetchall(),
        teachers=list_teachers(db),
        predefined_bands=PREDEFINED_BANDS,
        error=error,
    ), status


def _slot_draft(row, form) -> tuple[dict, int | None]:
    """The slot as posted, so a rejected edit re-renders with the admin's input."""
    band_index = None
    if (form.get("time_mode") or "preset") != "custom":
        band_index = _int_or_none(form.get("time_slot"))
    draft = {
        "id": int(row["id"]),
        "class_id": int(row["class_id"]),
        "subject_id": _int_or_none(form.get("subject_id")),
        "day_of_week": _int_or_none(form.get("day_of_week")),
        "start_time": (form.get("start_time") or "").strip(),
        "end_time": (form.get("end_time") or "").strip(),
        "classroom": (form.get("classroom") or "").strip() or None,
        "teacher_id": _int_or_none(form.get("teacher_id")),
    }
    return draft, band_index


@bp.get("/timetable/<int:slot_id>/edit")
def timetable_edit(slot_id: int):
    db = get_db()
    row = db.execute("SELECT * FROM timetable_slots WHERE id = ?", (int(slot_id),)).fetchone()
    if not row:
        abort(404)
    slot = slot_from_row(row)
    band_index = next((i for i, band in enumerate(PREDEFINED_BANDS) if band == slot.band), None)
    return _render_slot_edit(slot, band_index)


@bp.post("/timetable/<int:slot_id>/update")
def timetable_update(slot_id: int):
    db = get_db()
    row = db.execute("SELECT * FROM timetable_slots WHERE id = ?", (int(slot_id),)).fetchone()
    if not row:
        abort(404)
    values, error = parse_slot_form(request.form)
    if error:
        return _render_slot_edit(*_slot_draft(row, request.form), error=error, status=400)
    try:
        db.execute(
            """
            UPDATE timetable_slots
            SET subject_id = ?, teacher_id = ?, day_of_week = ?, start_time = ?, end_time = ?, classroom = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                values["subject_id"],
                values["teacher_id"],
                values["day_of_week"],
                values["start_time"],
                values["end_time"],
                values["classroom"],
                now_iso(),
                int(slot_id),
            ),
        )
        db.commit()
    except sqlite3.IntegrityError as e:
        db.rollback()
        logger.warning("Timetable slot %s update rejected: %s", slot_id, e)
        return _render_slot_edit(*_slot_draft(row, request.form), error="Unknown subject or teacher.", status=400)
    return redirect(url_for("admin.timetable", class_id=int(row["class_id"])))


@bp.post("/timetable/<int:slot_id>/delete")
def timetable_delete(slot_id: int):
    db = get_db()
    row = db.execute("SELECT class_id FROM timetable_slots WHERE id = ?", (int(slot_id),)).fetchone()
    if not row:
        abort(404)
    db.execute("DELETE FROM timetable_slots WHERE id = ?", (int(slot_id),))
    db.commit()
    logger.info("Timetable slot %s deleted", slot_id)
    return redirect(url_for("admin.timetable", class_id=int(row["class_id"])))


# News


@bp.get("/news")
def news_list():
    db = get_db()
    posts = db.execute(
        """
        SELECT n.*, (SELECT COUNT(*) FROM news_photos p WHERE p.news_id = n.id) AS photo_count
        FROM news n
        ORDER BY date(n.date) DESC, n.id DESC
        """
    ).fetchall()
    return render_template("admin/news_list.html", page_title="Manage News", posts=posts)


def _render_news_form(post=None, error: str | None = None, status: int = 200):
    photos = news_photos(get_db(), int(post["id"])) if post else []
    return render_template(
        "admin/news_form.html",
        page_title="Edit News" if post else "New News",
        post=post,
        photos=photos,
        today=date.today().isoformat(),
        error=error,
    ), status


def _news_form_values():
    title = (request.form.get("title") or "").strip()
    description = (request.form.get("description") or "").strip()
    news_date = (request.form.get("date") or "").strip() or date.today().isoformat()
    return title, description, news_date


@bp.get("/news/new", endpoint="news_new")
def news_new():
    return _render_news_form()


@bp.post("/news/new", endpoint="news_create")
def news_create():
    title, description, news_date = _news_form_values()
    if not title or not description:
        return _render_news_form(error="Title and description are required.", status=400)
    try:
        date.fromisoformat(news_date)
    except ValueError:
        return _render_news_form(error="Date must be YYYY-MM-DD.", status=400)

    db = get_db()
    now = now_iso()
    cur = db.execute(
        "INSERT INTO news (title, description, date, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
        (title, description, news_date, now, now),
    )
    news_id = int(cur.lastrowid)
    add_news_photos(db, news_id, request.files.getlist("photos"))
    db.commit()
    logger.info("News %s created: %s", news_id, title)
    flash("The news article has been created successfully.", "success")
    return redirect(url_for("admin.news_list"))


@bp.route("/news/<int:news_id>/edit", methods=["GET", "POST"])
def news_update(news_id: int):
    db = get_db()
    post = db.execute("SELECT * FROM news WHERE id = ?", (int(news_id),)).fetchone()
    if not post:
        abort(404)
    if request.method == "GET":
        return _render_news_form(post)

    title, description, news_date = _news_form_values()
    if not title or not description:
        return _render_news_form(post, error="Title and description are required.", status=400)
    try:
        date.fromisoformat(news_date)
    except ValueError:
        return _render_news_form(post, error="Date must be YYYY-MM-DD.", status=400)

    db.execute(
        "UPDATE news SET title = ?, description = ?, date = ?, updated_at = ? WHERE id = ?",
        (title, description, news_date, now_iso(), int(news_id)),
    )

    remove_ids = [i for i in (_int_or_none(v) for v in request.form.getlist("remove_photo_ids")) if i is not None]
    remove_news_photos(db, news_id, remove_ids)

    main_id = _int_or_none(request.form.get("main_photo_id"))
    if main_id is not None and main_id not in remove_ids:
        set_main_photo(db, news_id, main_id)

    add_news_photos(db, news_id, request.files.getlist("photos"))
    db.commit()
    logger.info("News %s updated", news_id)
    flash("The news article has been updated successfully.", "success")
    return redirect(url_for("admin.news_list"))


@bp.post("/news/<int:news_id>/photos/<int:photo_id>/main")
def news_photo_main(news_id: int, photo_id: int):
    db = get_db()
    if not set_main_photo(db, news_id, photo_id):
        abort(404)
    db.commit()
    return redirect(url_for("admin.news_update", news_id=int(news_id)))


@bp.post("/news/<int:news_id>/photos/<int:photo_id>/delete")
def news_photo_delete(news_id: int, photo_id: int):
    db = get_db()
    remove_news_photos(db, news_id, [photo_id])
    db.commit()
    return redirect(url_for("admin.news_update", news_id=int(news_id)))


@bp.post("/news/<int:news_id>/delete")
def news_delete(news_id: int):
    db = get_db()
    delete_news_photos(db, news_id)
    db.execute("DELETE FROM news WHERE id = ?", (int(news_id),))
    db.commit()
    logger.info("News %s deleted", news_id)
    return redirect(url_for("admin.news_list"))


# Users


def _render_users(error: str | None = None, created: dict | None = None, status: int = 200):
    db = get_db()
    role = (request.args.get("role") or "all").strip().lower()
    if role != "all" and role not in ROLES:
        role = "all"
    q = (request.args.get("q") or "").strip()
    return render_template(
        "admin/users.html",
        page_title="Manage Users",
        users=list_users(db, role=role, q=q),
        counts=role_counts(db),
        class_count=len(fetch_classes(db)),
        classes=fetch_classes(db),
        roles=ROLES,
        filters={"role": role, "q": q},
        created=created,
        error=error,
    ), status


@bp.get("/users")
def users():
    return _render_users()


@bp.post("/users/new")
def user_create():
    db = get_db()
    try:
        created = create_user(
            db,
            full_name=request.form.get("full_name") or "",
            identifier=request.form.get("identifier") or "",
            role=request.form.get("role") or "",
            class_id=_int_or_none(request.form.get("class_id")),
            password=(request.form.get("password") or "").strip() or None,
        )
    except UserCreationError as e:
        return _render_users(error=str(e), status=400)
    return _render_users(created=created)


@bp.route("/users/<int:user_id>/edit", methods=["GET", "POST"])
def user_update(user_id: int):
    db = get_db()
    user = db.execute("SELECT * FROM users WHERE id = ?", (int(user_id),)).fetchone()
    if not user:
        abort(404)
    current_role = db.execute(
        "SELECT role FROM user_roles WHERE user_id = ? ORDER BY id ASC LIMIT 1",
        (int(user_id),),
    ).fetchone()

    def _form(error=None, status=200):
        return render_template(
            "admin/user_form.html",
            page_title="Edit User",
            user=user,
            current_role=current_role["role"] if current_role else "",
            classes=fetch_classes(db),
            roles=ROLES,
            error=error,
        ), status

    if request.method == "GET":
        return _form()

    full_name = (request.form.get("full_name") or "").strip()
    email = (request.form.get("email") or "").strip()
    role = (request.form.get("role") or "").strip().lower()
    class_id = _int_or_none(request.form.get("class_id"))
    if not full_name:
        return _form(error="Full name is required.", status=400)
    if role and role not in ROLES:
        return _form(error="Invalid role.", status=400)

    try:
        db.execute(
            "UPDATE users SET full_name = ?, email = ?, class_id = ?, updated_at = ? WHERE id = ?",
            (full_name, email or user["email"], class_id, now_iso(), int(user_id)),
        )
        if role and role != (current_role["role"] if current_role else ""):
            set_user_role(db, int(user_id), role)
            logger.info("User %s role changed to %s", user_id, role)
        db.commit()
    except sqlite3.IntegrityError as e:
        db.rollback()
        if "UNIQUE" in str(e):
            return _form(error="That email is already in use.", status=400)
        return _form(error="Unknown class.", status=400)
    return redirect(url_for("admin.users"))


@bp.post("/users/<int:user_id>/delete")
def user_delete(user_id: int):
    me = get_current_user()
    if int(me["id"]) == int(user_id):
        return _render_users(error="You cannot delete your own account.", status=400)
    db = get_db()
    db.execute("DELETE FROM users WHERE id = ?", (int(user_id),))
    db.commit()
    logger.info("User %s deleted", user_id)
    return redirect(url_for("admin.users"))
