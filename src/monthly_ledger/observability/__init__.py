"""
Observability helpers (telemetry, privacy utilities) for the ledger.
"""

from monthly_ledger.observability.privacy import redact_fields, user_fingerprint
from monthly_ledger.observability.telemetry import (
    CORRELATION_ID_HEADER,
    RequestContextToken,
    TelemetryConfig,
    bind_request_context,
    configure_logging,
    current_request_id,
    ensure_request_id,
    reset_request_context,
    setup_telemetry,
)

__all__ = [
    "redact_fields",
    "user_fingerprint",
    "CORRELATION_ID_HEADER",
    "RequestContextToken",
    "TelemetryConfig",
    "bind_request_context",
    "configure_logging",
    "current_request_id",
    "ensure_request_id",
    "reset_request_context",
    "setup_telemetry",
]
