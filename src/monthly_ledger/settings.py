"""
Environment-driven configuration for the ledger.

The HTTP adapter, the persistence helpers and the telemetry bootstrap all read
the same handful of environment variables. Loading and validating them in one
place keeps defaults consistent and turns malformed values into a single,
descriptive startup error instead of scattered parsing failures.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

DB_URL_ENV_VAR = "LEDGER_DB_URL"
DEFAULT_DB_FILENAME = "ledger.db"
DEFAULT_DB_PATH = Path.cwd() / "data" / DEFAULT_DB_FILENAME

RATE_LIMIT_ENV_VAR = "LEDGER_RATE_LIMIT_PER_MIN"
RATE_LIMIT_BURST_ENV_VAR = "LEDGER_RATE_LIMIT_BURST"
CORS_ENV_VAR = "LEDGER_CORS_ORIGINS"
USER_HEADER_ENV_VAR = "LEDGER_USER_HEADER"

DEFAULT_USER_HEADER = "x-user-id"
DEFAULT_CORS_ORIGINS: Tuple[str, ...] = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
)


class LedgerSettingsError(RuntimeError):
    """Raised when ledger configuration cannot be constructed."""


@dataclass(frozen=True, slots=True)
class LedgerSettings:
    database_url: str
    rate_limit_per_minute: int
    rate_limit_burst: int
    cors_origins: Tuple[str, ...]
    user_header: str


def load_ledger_settings(
    *,
    default_rate_limit: int = 60,
    default_burst: int = 20,
) -> LedgerSettings:
    """
    Construct LedgerSettings from the process environment.

    Args:
        default_rate_limit: Requests per minute when LEDGER_RATE_LIMIT_PER_MIN is unset/empty.
        default_burst: Extra requests tolerated above the per-minute budget.
    """

    database_url = (os.getenv(DB_URL_ENV_VAR) or "").strip() or f"sqlite:///{DEFAULT_DB_PATH}"
    rate_limit = _parse_int(os.getenv(RATE_LIMIT_ENV_VAR), default_rate_limit, RATE_LIMIT_ENV_VAR)
    burst = _parse_int(os.getenv(RATE_LIMIT_BURST_ENV_VAR), default_burst, RATE_LIMIT_BURST_ENV_VAR)
    if rate_limit < 1:
        raise LedgerSettingsError(f"{RATE_LIMIT_ENV_VAR} must be at least 1 (received '{rate_limit}')")
    if burst < 0:
        raise LedgerSettingsError(f"{RATE_LIMIT_BURST_ENV_VAR} must not be negative (received '{burst}')")

    user_header = (os.getenv(USER_HEADER_ENV_VAR) or "").strip().lower() or DEFAULT_USER_HEADER

    return LedgerSettings(
        database_url=database_url,
        rate_limit_per_minute=rate_limit,
        rate_limit_burst=burst,
        cors_origins=_parse_origins(os.getenv(CORS_ENV_VAR)),
        user_header=user_header,
    )


def _parse_int(raw_value: Optional[str], default: int, env_key: str) -> int:
    if raw_value is None or raw_value.strip() == "":
        return default

    try:
        return int(raw_value)
    except ValueError as exc:
        raise LedgerSettingsError(f"{env_key} must be an integer (received '{raw_value}')") from exc


def _parse_origins(raw_value: Optional[str]) -> Tuple[str, ...]:
    if not raw_value:
        return DEFAULT_CORS_ORIGINS
    origins = tuple(origin.strip() for origin in raw_value.split(",") if origin.strip())
    if not origins:
        return DEFAULT_CORS_ORIGINS
    # FastAPI expects ["*"] instead of mixing '*' with explicit origins.
    if "*" in origins:
        return ("*",)
    return origins
