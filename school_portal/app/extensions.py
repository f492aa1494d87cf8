from __future__ import annotations

import logging
from datetime import date, datetime

from flask import Flask, render_template, url_for

from .config import LOG_FILE, LOG_LEVEL, SCHOOL_NAME
from .services.auth_service import get_current_user
from .services.timetable_service import DAY_NAMES


def init_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL") or LOG_LEVEL), logging.INFO)
    log_file = app.config.get("LOG_FILE", LOG_FILE)
    kwargs = {"level": level, "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s"}
    if log_file:
        kwargs["filename"] = log_file
    logging.basicConfig(**kwargs)
    app.logger.setLevel(level)


def fmt_date(value) -> str:
    if not value:
        return ""
    if isinstance(value, (date, datetime)):
        d = value
    else:
        try:
            d = datetime.fromisoformat(str(value).replace("Z", ""))
        except ValueError:
            return str(value)
    return d.strftime("%b %d, %Y")


def day_name(value) -> str:
    try:
        return DAY_NAMES[int(value)]
    except (TypeError, ValueError, IndexError):
        return ""


def upload_url(photo_url: str | None) -> str:
    stored = (photo_url or "").strip()
    if not stored.startswith("uploads/"):
        return stored
    return url_for("site.uploaded_file", filename=stored[len("uploads/"):])


def init_extensions(app: Flask) -> None:
    init_logging(app)

    app.add_template_filter(fmt_date, "fmt_date")
    app.add_template_filter(day_name, "day_name")
    app.add_template_filter(upload_url, "upload_url")

    @app.context_processor
    def inject_globals():
        return {
            "current_user": get_current_user(),
            "school_name": app.config.get("SCHOOL_NAME") or SCHOOL_NAME,
            "day_names": DAY_NAMES,
        }

    @app.errorhandler(403)
    def forbidden(e):
        return render_template("403.html", page_title="Access denied"), 403

    @app.errorhandler(404)
    def not_found(e):
        return render_template("404.html", page_title="Page not found"), 404
