from __future__ import annotations

import logging
import sqlite3
import uuid
from pathlib import Path

from flask import current_app
from werkzeug.utils import secure_filename

from ..config import ALLOWED_PHOTO_EXTENSIONS, NEWS_PHOTO_SUBDIR, UPLOAD_DIR
from .db_service import now_iso

logger = logging.getLogger(__name__)


def _upload_root() -> Path:
    return Path(current_app.config.get("UPLOAD_DIR") or UPLOAD_DIR)


def is_allowed_photo(filename: str) -> bool:
    name = (filename or "").strip().lower()
    return "." in name and name.rsplit(".", 1)[1] in ALLOWED_PHOTO_EXTENSIONS


def save_news_photo(upload, news_id: int) -> str | None:
    """Store an uploaded image under ``<upload dir>/news-photos/<news_id>/`` and return its public path."""
    if upload is None:
        return None
    original = (upload.filename or "").strip()
    if not original or not is_allowed_photo(original):
        return None

    safe = secure_filename(original)
    if not safe:
        return None

    unique = f"{uuid.uuid4().hex}_{safe}"
    abs_path = _upload_root() / NEWS_PHOTO_SUBDIR / str(int(news_id)) / unique
    abs_path.parent.mkdir(parents=True, exist_ok=True)
    upload.save(str(abs_path))

    return f"uploads/{NEWS_PHOTO_SUBDIR}/{int(news_id)}/{unique}"


def photo_abs_path(photo_url: str) -> Path | None:
    stored = (photo_url or "").strip()
    prefix = f"uploads/{NEWS_PHOTO_SUBDIR}/"
    if not stored.startswith(prefix):
        return None
    rel = stored[len("uploads/"):]
    root = _upload_root().resolve()
    abs_path = (root / rel).resolve()
    if root not in abs_path.parents:
        return None
    return abs_path


def delete_photo_file(photo_url: str) -> None:
    abs_path = photo_abs_path(photo_url)
    if abs_path is None:
        return
    try:
        if abs_path.exists() and abs_path.is_file():
            abs_path.unlink()
    except OSError as e:
        logger.error("Could not remove photo %s: %s", abs_path, e)


def news_photos(db: sqlite3.Connection, news_id: int) -> list[sqlite3.Row]:
    return db.execute(
        "SELECT * FROM news_photos WHERE news_id = ? ORDER BY is_main DESC, id ASC",
        (int(news_id),),
    ).fetchall()


def add_news_photos(db: sqlite3.Connection, news_id: int, uploads) -> int:
    """Save uploads and insert photo rows; the first photo of an empty gallery becomes main."""
    has_main = db.execute(
        "SELECT 1 FROM news_photos WHERE news_id = ? AND is_main = 1",
        (int(news_id),),
    ).fetchone() is not None
    added = 0
    for upload in uploads or []:
        url = save_news_photo(upload, news_id)
        if url is None:
            continue
        is_main = 0 if has_main else 1
        has_main = True
        db.execute(
            "INSERT INTO news_photos (news_id, photo_url, is_main, created_at) VALUES (?, ?, ?, ?)",
            (int(news_id), url, is_main, now_iso()),
        )
        added += 1
    return added


def remove_news_photos(db: sqlite3.Connection, news_id: int, photo_ids) -> int:
    removed = 0
    for pid in photo_ids or []:
        row = db.execute(
            "SELECT * FROM news_photos WHERE id = ? AND news_id = ?",
            (int(pid), int(news_id)),
        ).fetchone()
        if not row:
            continue
        delete_photo_file(row["photo_url"])
        db.execute("DELETE FROM news_photos WHERE id = ?", (int(pid),))
        removed += 1
    ensure_main_photo(db, news_id)
    return removed


def set_main_photo(db: sqlite3.Connection, news_id: int, photo_id: int) -> bool:
    row = db.execute(
        "SELECT id FROM news_photos WHERE id = ? AND news_id = ?",
        (int(photo_id), int(news_id)),
    ).fetchone()
    if not row:
        return False
    db.execute("UPDATE news_photos SET is_main = 0 WHERE news_id = ?", (int(news_id),))
    db.execute("UPDATE news_photos SET is_main = 1 WHERE id = ?", (int(photo_id),))
    return True


def ensure_main_photo(db: sqlite3.Connection, news_id: int) -> None:
    has_main = db.execute(
        "SELECT 1 FROM news_photos WHERE news_id = ? AND is_main = 1",
        (int(news_id),),
    ).fetchone()
    if has_main:
        return
    first = db.execute(
        "SELECT id FROM news_photos WHERE news_id = ? ORDER BY id ASC LIMIT 1",
        (int(news_id),),
    ).fetchone()
    if first:
        db.execute("UPDATE news_photos SET is_main = 1 WHERE id = ?", (int(first["id"]),))


def delete_news_photos(db: sqlite3.Connection, news_id: int) -> None:
    for row in news_photos(db, news_id):
        delete_photo_file(row["photo_url"])
    db.execute("DELETE FROM news_photos WHERE news_id = ?", (int(news_id),))
