# backend/pos_ultimate/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Document store backing database
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///pos_ultimate.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Password hashing
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
    BOOTSTRAP_ADMIN_PASSWORD = os.environ.get(
        "BOOTSTRAP_ADMIN_PASSWORD", "SuperSecurePassword123!"
    )

    # Login throttling
    MAX_LOGIN_ATTEMPTS = int(os.environ.get("MAX_LOGIN_ATTEMPTS", "3"))
    LOCKOUT_MINUTES = int(os.environ.get("LOCKOUT_MINUTES", "5"))

    # Remote operation policy
    REMOTE_RETRY_ATTEMPTS = int(os.environ.get("REMOTE_RETRY_ATTEMPTS", "3"))
    REMOTE_RETRY_BACKOFF = float(os.environ.get("REMOTE_RETRY_BACKOFF", "0.1"))
    REMOTE_OPERATION_TIMEOUT = float(os.environ.get("REMOTE_OPERATION_TIMEOUT", "10"))

    # Re-deliver snapshots before each request so writes made by other
    # workers reach this process's cache
    RESYNC_ON_REQUEST = _env_bool("RESYNC_ON_REQUEST", True)

    SESSION_STORAGE_KEY = "pos-ultimate-storage"

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    }
