"""Builders for the ledger's failure results."""

from __future__ import annotations

import logging
from typing import List

from sqlalchemy.exc import SQLAlchemyError

from monthly_ledger.ledger_model import ErrorKind, FieldError, LedgerResult
from monthly_ledger.observability.telemetry import current_request_id

logger = logging.getLogger(__name__)

RATE_LIMIT_MARKERS = ("rate limit", "too many")


def unauthorized() -> LedgerResult:
    return LedgerResult.failure(ErrorKind.UNAUTHORIZED, "You are not signed in.")


def not_found(entity: str) -> LedgerResult:
    return LedgerResult.failure(ErrorKind.NOT_FOUND, f"{entity} not found.")


def validation_failed(field_errors: List[FieldError]) -> LedgerResult:
    return LedgerResult.failure(
        ErrorKind.VALIDATION_ERROR,
        "The submitted data is invalid.",
        field_errors=field_errors,
    )


def empty_budget_set() -> LedgerResult:
    return LedgerResult.failure(
        ErrorKind.EMPTY_BUDGET_SET,
        "Set a budget for at least one category.",
    )


def store_failure(exc: SQLAlchemyError, *, event: str) -> LedgerResult:
    """
    Report a repository failure as data; the store's message is passed through.
    """

    message = str(getattr(exc, "orig", None) or exc)
    rate_limited = is_rate_limited(message)
    logger.error(
        {
            "event": f"{event}_store_error",
            "request_id": current_request_id(),
            "error_type": type(exc).__name__,
            "rate_limited": rate_limited,
            "error": message,
        }
    )
    return LedgerResult.failure(ErrorKind.STORE_ERROR, message, rate_limited=rate_limited)


def is_rate_limited(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in RATE_LIMIT_MARKERS)
