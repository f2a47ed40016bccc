# backend/hardware_pos/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    return float(raw) if raw else default


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite file in the working directory unless DATABASE_URL points elsewhere
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///hardware_pos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound on how long a statement may wait on a lock
    DB_TIMEOUT_SECONDS = _env_float("DB_TIMEOUT_SECONDS", 5.0)
    DB_RETRY_ATTEMPTS = _env_int("DB_RETRY_ATTEMPTS", 3)
    DB_RETRY_BACKOFF = _env_float("DB_RETRY_BACKOFF", 0.1)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Identity is resolved upstream; the gateway forwards these headers
    ACTOR_ID_HEADER = os.environ.get("ACTOR_ID_HEADER", "X-Actor-Id")
    ACTOR_ROLE_HEADER = os.environ.get("ACTOR_ROLE_HEADER", "X-Actor-Role")

    DEFAULT_PAGE_SIZE = _env_int("DEFAULT_PAGE_SIZE", 50)
    MAX_PAGE_SIZE = _env_int("MAX_PAGE_SIZE", 100)

    CORS_ALLOWED_ORIGINS = [
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    ]


def engine_options_for(uri: str, timeout_seconds: float) -> dict:
    """
    Build SQLALCHEMY_ENGINE_OPTIONS so that no statement blocks forever.

    SQLite: busy timeout on the driver connection.
    PostgreSQL: lock_timeout and statement_timeout on every session.
    """
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    if uri.startswith("postgresql"):
        millis = int(timeout_seconds * 1000)
        return {
            "pool_pre_ping": True,
            "connect_args": {
                "options": f"-c lock_timeout={millis} -c statement_timeout={millis * 2}",
            },
        }
    return {"pool_pre_ping": True}
