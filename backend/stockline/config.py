# backend/stockline/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def engine_options(uri: str) -> dict:
    timeout = float(os.environ.get("DB_TIMEOUT_SECONDS", "5"))
    if uri.startswith("sqlite"):
        # sqlite3 busy timeout: how long a writer waits on a locked database
        return {"connect_args": {"timeout": timeout}}
    return {"pool_timeout": timeout, "pool_pre_ping": True}


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockline.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockline.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = engine_options(SQLALCHEMY_DATABASE_URI)

    # Returns/exchanges are accepted this many days after the invoice
    RETURN_WINDOW_DAYS = int(os.environ.get("RETURN_WINDOW_DAYS", "14"))

    # Store GST defaults (basis points, 1800 = 18%)
    DEFAULT_GST_RATE_BPS = int(os.environ.get("DEFAULT_GST_RATE_BPS", "1800"))

    INVOICE_PREFIX = os.environ.get("INVOICE_PREFIX", "KF")
    LOW_STOCK_THRESHOLD = int(os.environ.get("LOW_STOCK_THRESHOLD", "5"))

    RETRY_ATTEMPTS = int(os.environ.get("RETRY_ATTEMPTS", "3"))
    RETRY_BACKOFF_SECONDS = float(os.environ.get("RETRY_BACKOFF_SECONDS", "0.1"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_JSON = _env_bool("LOG_JSON")
