import os
from pathlib import Path

from dotenv import load_dotenv


BASE_DIR = Path(__file__).resolve().parents[2]

load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

DB_PATH = Path(os.getenv("DB_PATH") or (BASE_DIR / "school_portal.db"))

UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR") or (BASE_DIR / "static" / "uploads"))
NEWS_PHOTO_SUBDIR = "news-photos"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FILE = os.getenv("LOG_FILE", "")

ADMIN_EMAIL = os.getenv("ADMIN_EMAIL", "admin@school.local")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")

SCHOOL_NAME = os.getenv("SCHOOL_NAME", "Boulough Al-Maram High School")

ALLOWED_PHOTO_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
