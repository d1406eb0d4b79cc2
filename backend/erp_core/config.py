# backend/erp_core/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/erp.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///erp.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Ledger base currency; amounts are stored in minor units (cents)
    BASE_CURRENCY = os.environ.get("BASE_CURRENCY", "EGP")

    # Invoice tax policy in basis points (1000 = 10%)
    TAX_RATE_BPS = _env_int("TAX_RATE_BPS", 0)
    INVOICE_DUE_DAYS = _env_int("INVOICE_DUE_DAYS", 30)

    # Which sales transition generates the invoice: "confirm" or "ship"
    SALES_INVOICE_EVENT = os.environ.get("SALES_INVOICE_EVENT", "confirm")

    # Auto-reorder brings stock up to at least multiplier x min_stock_level
    REORDER_TARGET_MULTIPLIER = _env_int("REORDER_TARGET_MULTIPLIER", 2)

    # Purchase payments and expenses may not overdraw an account unless enabled
    ALLOW_NEGATIVE_BALANCE = _env_bool("ALLOW_NEGATIVE_BALANCE", False)

    CONCURRENCY_RETRY_ATTEMPTS = _env_int("CONCURRENCY_RETRY_ATTEMPTS", 3)
    CONCURRENCY_RETRY_BACKOFF = float(os.environ.get("CONCURRENCY_RETRY_BACKOFF", "0.05"))

    # Browser origins allowed to call the API (comma-separated)
    CORS_ALLOWED_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if o.strip()
    )
