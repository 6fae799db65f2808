# backend/stockroom/config.py
from __future__ import annotations
import os


def _sqlite_engine_options(uri: str) -> dict:
    if not uri.startswith("sqlite"):
        return {}
    # Seconds a writer waits on a locked SQLite database before OperationalError
    return {"connect_args": {"timeout": float(os.environ.get("SQLITE_BUSY_TIMEOUT", "15"))}}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockroom.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = _sqlite_engine_options(SQLALCHEMY_DATABASE_URI)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Attempts for a stock write that loses a lock race before giving up
    STOCK_WRITE_ATTEMPTS = int(os.environ.get("STOCK_WRITE_ATTEMPTS", "5"))

    SESSION_TTL_HOURS = int(os.environ.get("SESSION_TTL_HOURS", "24"))
