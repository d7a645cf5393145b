"""
Log-safe views of ledger data.

User ids, amounts and free text (item names, notes, source names) never reach
the log stream verbatim. Structural fields such as ids, dates and enum values
are kept so rejected submissions can still be diagnosed.
"""

import hashlib
from collections.abc import Iterable, Mapping
from typing import Any

REDACTED = "[REDACTED]"
USER_FINGERPRINT_LENGTH = 12


def user_fingerprint(user_id: str | None) -> str | None:
    """Stable short SHA-256 digest standing in for a user id."""

    if not user_id:
        return None
    return hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:USER_FINGERPRINT_LENGTH]


def redact_fields(payload: Mapping[str, Any], allowed_keys: Iterable[str]) -> dict[str, Any]:
    """
    Shallow copy of a submitted entry keeping only the allowed keys readable.

    Redacted values still record their shape (type, and length for strings)
    so a log reader can tell an empty field from an oversized one.
    """

    allowed = set(allowed_keys)
    redacted: dict[str, Any] = {}
    for key, value in payload.items():
        if key in allowed:
            redacted[key] = value
        else:
            redacted[key] = _describe(value)
    return redacted


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, str):
        return f"{REDACTED} str({len(value)})"
    return f"{REDACTED} {type(value).__name__}"
