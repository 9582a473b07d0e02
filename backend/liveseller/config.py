# backend/liveseller/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored next to the process working directory by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///liveseller.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Stock adjustments that would go below zero: "clamp" or "reject"
    STOCK_OVERDRAW_POLICY = os.environ.get("STOCK_OVERDRAW_POLICY", "clamp")

    # Accounting predicates shared by customer stats and finance
    # PAID_ORDER_DEFINITION: FULLY_PAID | ANY_PAYMENT
    PAID_ORDER_DEFINITION = os.environ.get("PAID_ORDER_DEFINITION", "FULLY_PAID")
    # NO_PAY_DEFINITION: UNPAID | CANCELLED_UNPAID
    NO_PAY_DEFINITION = os.environ.get("NO_PAY_DEFINITION", "UNPAID")
    NO_PAY_INCLUDE_JOY_RESERVE_CLAIMS = _env_bool("NO_PAY_INCLUDE_JOY_RESERVE_CLAIMS", True)

    FINANCE_TOP_N = int(os.environ.get("FINANCE_TOP_N", "10"))

    # Included-tax (VAT-inclusive pricing) helper
    TAX_INCLUDED_ENABLED = _env_bool("TAX_INCLUDED_ENABLED", False)
    TAX_RATE_PCT = float(os.environ.get("TAX_RATE_PCT", "12"))
    TAX_SHIPPING_TAXABLE = _env_bool("TAX_SHIPPING_TAXABLE", False)
    TAX_COD_TAXABLE = _env_bool("TAX_COD_TAXABLE", False)

    # Browser origins allowed to call the API (comma separated)
    CORS_ALLOWED_ORIGINS = tuple(
        o.strip()
        for o in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if o.strip()
    )
