from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_JWT_SECRET = "dev-jwt-secret-key-change-me-at-least-32-bytes"


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    cleaned = raw.strip()
    return cleaned or default


def env_origins() -> list[str]:
    raw_origins = os.getenv("FRONTEND_ORIGINS")
    if raw_origins:
        origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
        if origins:
            return origins

    return ["http://localhost:5173", "http://127.0.0.1:5173"]


class Config:
    ENV = env_str("APP_ENV", "development")

    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'docvault.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", DEFAULT_JWT_SECRET)
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=env_int("ACCESS_TOKEN_EXPIRES_MINUTES", 15))
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=env_int("REFRESH_TOKEN_EXPIRES_DAYS", 7))

    FRONTEND_ORIGINS = env_origins()
    STORAGE_ROOT = os.getenv("STORAGE_ROOT", str(BASE_DIR / "storage"))
    MAX_CONTENT_BYTES = env_int("MAX_CONTENT_BYTES", 25 * 1024 * 1024)
    # Request bodies are rejected by werkzeug a little above the content limit.
    MAX_CONTENT_LENGTH = MAX_CONTENT_BYTES + 64 * 1024
    LOG_LEVEL = env_str("LOG_LEVEL", "INFO").upper()

    PERMISSION_BATCH_LIMIT = max(1, env_int("PERMISSION_BATCH_LIMIT", 100))
    SHARE_MEMBER_BATCH_LIMIT = max(1, env_int("SHARE_MEMBER_BATCH_LIMIT", 50))
    DOCUMENT_BATCH_LIMIT = max(1, env_int("DOCUMENT_BATCH_LIMIT", 100))
    SHARE_TOKEN_BYTES = max(16, env_int("SHARE_TOKEN_BYTES", 16))

    LOGIN_RATE_LIMIT_WINDOW_SECONDS = env_int("LOGIN_RATE_LIMIT_WINDOW_SECONDS", 300)
    LOGIN_RATE_LIMIT_MAX_ATTEMPTS = env_int("LOGIN_RATE_LIMIT_MAX_ATTEMPTS", 5)

    # Optional injected clock for the access core; None means the system clock.
    ACCESS_CLOCK = None
