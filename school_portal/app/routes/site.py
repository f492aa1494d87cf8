from __future__ import annotations

import logging
from pathlib import Path

from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, send_from_directory, url_for

from ..config import UPLOAD_DIR
from ..services.db_service import get_db, now_iso
from ..services.storage_service import news_photos
from ..services.timetable_service import (
    active_days,
    build_grid,
    fetch_classes,
    fetch_slots_for_class,
)

logger = logging.getLogger(__name__)

bp = Blueprint("site", __name__)

FEATURES = [
    ("Academic Excellence", "A rigorous curriculum across sciences, mathematics, languages and humanities."),
    ("Qualified Faculty", "Experienced teachers dedicated to every student's growth."),
    ("Modern Facilities", "Laboratories, library and sports grounds for hands-on learning."),
    ("Student Life", "Clubs, competitions and community service beyond the classroom."),
]

CONTACT_INFO = [
    ("Address", ["123 Education Street", "Knowledge City, KC 12345"]),
    ("Phone", ["+1 234 567 8900", "+1 234 567 8901"]),
    ("Email", ["info@bouloughalmaram.edu", "admissions@bouloughalmaram.edu"]),
    ("Office Hours", ["Mon - Fri: 7:30 AM - 4:00 PM", "Sat: 8:00 AM - 12:00 PM"]),
]


def news_with_main_photo(db, limit: int | None = None) -> list[dict]:
    sql = """
        SELECT n.*,
               (SELECT photo_url FROM news_photos p
                WHERE p.news_id = n.id AND p.is_main = 1
                ORDER BY p.id ASC LIMIT 1) AS main_photo
        FROM news n
        ORDER BY date(n.date) DESC, n.id DESC
    """
    params: tuple = ()
    if limit is not None:
        sql += " LIMIT ?"
        params = (int(limit),)
    return [dict(r) for r in db.execute(sql, params).fetchall()]


@bp.get("/")
def index():
    db = get_db()
    return render_template(
        "site/index.html",
        page_title="Home",
        features=FEATURES,
        latest_news=news_with_main_photo(db, limit=3),
    )


@bp.get("/about")
def about():
    return render_template("site/about.html", page_title="About Us")


@bp.get("/news")
def news():
    db = get_db()
    return render_template("site/news.html", page_title="News", posts=news_with_main_photo(db))


@bp.get("/news/<int:news_id>")
def news_detail(news_id: int):
    db = get_db()
    post = db.execute("SELECT * FROM news WHERE id = ?", (int(news_id),)).fetchone()
    if not post:
        abort(404)
    photos = news_photos(db, news_id)
    main_photo = photos[0]["photo_url"] if photos else None
    return render_template(
        "site/news_detail.html",
        page_title=post["title"],
        post=post,
        photos=photos,
        main_photo=main_photo,
    )


@bp.get("/timetable")
def timetable():
    db = get_db()
    classes = fetch_classes(db)

    selected_id = None
    try:
        selected_id = int(request.args.get("class_id") or 0) or None
    except ValueError:
        selected_id = None
    if selected_id is None or not any(int(c["id"]) == selected_id for c in classes):
        selected_id = int(classes[0]["id"]) if classes else None

    slots = fetch_slots_for_class(db, selected_id) if selected_id is not None else []
    bands, grid = build_grid(slots)
    return render_template(
        "site/timetable.html",
        page_title="Timetable",
        classes=classes,
        selected_class_id=selected_id,
        bands=bands,
        grid=grid,
        days=active_days(slots),
    )


@bp.route("/contact", methods=["GET", "POST"])
def contact():
    form = {"name": "", "email": "", "subject": "", "message": ""}
    error = None
    if request.method == "POST":
        form = {k: (request.form.get(k) or "").strip() for k in form}
        if not all(form.values()):
            error = "Please fill in all fields."
        elif "@" not in form["email"]:
            error = "Please enter a valid email address."
        else:
            db = get_db()
            db.execute(
                "INSERT INTO contact_messages (name, email, subject, message, created_at) VALUES (?, ?, ?, ?, ?)",
                (form["name"], form["email"], form["subject"], form["message"], now_iso()),
            )
            db.commit()
            logger.info("Contact message received from %s", form["email"])
            flash("Message sent! We'll get back to you as soon as possible.", "success")
            return redirect(url_for("site.contact"))
    return render_template(
        "site/contact.html",
        page_title="Contact Us",
        contact_info=CONTACT_INFO,
        form=form,
        error=error,
    ), (400 if error else 200)


@bp.get("/uploads/<path:filename>")
def uploaded_file(filename: str):
    root = Path(current_app.config.get("UPLOAD_DIR") or UPLOAD_DIR)
    return send_from_directory(root, filename)
