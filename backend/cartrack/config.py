# backend/cartrack/config.py
from __future__ import annotations
import os


def _csv(value: str) -> set[str]:
    return {item.strip() for item in value.split(",") if item.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/cartrack.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///cartrack.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer session lifetime (see services/session_service.py)
    SESSION_ABSOLUTE_HOURS = int(os.environ.get("SESSION_ABSOLUTE_HOURS", "24"))
    SESSION_IDLE_HOURS = int(os.environ.get("SESSION_IDLE_HOURS", "2"))

    # bcrypt cost factor; tests lower it to keep the suite fast
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    CORS_ALLOWED_ORIGINS = _csv(
        os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
        )
    )
