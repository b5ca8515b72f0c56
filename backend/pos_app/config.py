# backend/pos_app/config.py
from __future__ import annotations
import os


def engine_options_for(uri: str, timeout_seconds: float) -> dict:
    """
    Engine options that bound every store round-trip.

    SQLite: busy timeout on lock waits. PostgreSQL: statement_timeout.
    """
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}
    if uri.startswith("postgresql"):
        timeout_ms = int(timeout_seconds * 1000)
        return {
            "connect_args": {"options": f"-c statement_timeout={timeout_ms}"},
            "pool_pre_ping": True,
        }
    return {}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pos.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound (seconds) for any single wait on the database
    POS_STORE_TIMEOUT = float(os.environ.get("POS_STORE_TIMEOUT", "5"))

    # Compare-and-swap attempts per product before reporting a conflict
    POS_CAS_ATTEMPTS = int(os.environ.get("POS_CAS_ATTEMPTS", "5"))

    POS_SESSION_HOURS = int(os.environ.get("POS_SESSION_HOURS", "12"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
