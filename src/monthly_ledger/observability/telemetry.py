"""
Telemetry bootstrap for the ledger HTTP adapter.

Logs are emitted as JSON lines tagged with the service name and the current
request id. Tracing is opt-in (`ENABLE_TELEMETRY`); when enabled, spans go to
an OTLP/HTTP collector and log records also carry trace/span ids.
"""

from __future__ import annotations

import logging
import os
from contextvars import ContextVar, Token
from dataclasses import dataclass
from uuid import uuid4

from fastapi import FastAPI, Request
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.logging import LoggingInstrumentor
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter
from pythonjsonlogger import jsonlogger

CORRELATION_ID_HEADER = "x-request-id"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(service_name)s %(request_id)s %(trace_id)s %(span_id)s"
DEFAULT_OTLP_ENDPOINT = "http://localhost:4318/v1/traces"

RequestContextToken = Token

_logging_configured = False
_request_id_ctx_var: ContextVar[str | None] = ContextVar("ledger_request_id", default=None)


@dataclass(frozen=True)
class TelemetryConfig:
    service_name: str
    log_level: str = "INFO"
    tracing_enabled: bool = False
    console_export: bool = False
    otlp_endpoint: str = DEFAULT_OTLP_ENDPOINT

    @classmethod
    def from_env(cls, service_name: str) -> "TelemetryConfig":
        return cls(
            service_name=os.getenv("OTEL_SERVICE_NAME", service_name),
            log_level=os.getenv("LEDGER_LOG_LEVEL", "INFO").upper(),
            tracing_enabled=_parse_bool(os.getenv("ENABLE_TELEMETRY", "false")),
            console_export=_parse_bool(os.getenv("OTEL_CONSOLE_EXPORT", "false")),
            otlp_endpoint=os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", DEFAULT_OTLP_ENDPOINT),
        )


def setup_telemetry(app: FastAPI, service_name: str) -> TelemetryConfig:
    """
    Configure logging and, when enabled, tracing for the ledger app.

    Args:
        app: FastAPI instance to instrument.
        service_name: Default service label; OTEL_SERVICE_NAME overrides it.
    Returns:
        The effective TelemetryConfig.
    """

    config = TelemetryConfig.from_env(service_name)
    configure_logging(config)

    if config.tracing_enabled:
        _configure_tracing(config)
        FastAPIInstrumentor.instrument_app(app)
        LoggingInstrumentor().instrument(set_logging_format=False)
    return config


def configure_logging(config: TelemetryConfig) -> None:
    """Install the JSON log handler once per process."""

    global _logging_configured
    if _logging_configured:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
    handler.addFilter(_LedgerLogFilter(config.service_name, config.tracing_enabled))
    logging.basicConfig(level=config.log_level, handlers=[handler], force=True)
    _logging_configured = True


def ensure_request_id(request: Request) -> str:
    """Reuse the caller's x-request-id or mint a UUID4, and pin it on request.state."""

    request_id = request.headers.get(CORRELATION_ID_HEADER) or getattr(request.state, "request_id", None)
    if not request_id:
        request_id = str(uuid4())
    request.state.request_id = request_id
    return request_id


def bind_request_context(request_id: str | None) -> RequestContextToken:
    return _request_id_ctx_var.set(request_id)


def reset_request_context(token: RequestContextToken | None) -> None:
    if token is not None:
        _request_id_ctx_var.reset(token)


def current_request_id() -> str | None:
    return _request_id_ctx_var.get()


def _configure_tracing(config: TelemetryConfig) -> None:
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        return

    provider = TracerProvider(resource=Resource.create({SERVICE_NAME: config.service_name}))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=config.otlp_endpoint)))
    if config.console_export:
        provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class _LedgerLogFilter(logging.Filter):
    """Stamps every record with service, request and (optionally) trace context."""

    def __init__(self, service_name: str, traces_enabled: bool) -> None:
        super().__init__()
        self._service_name = service_name
        self._traces_enabled = traces_enabled

    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = self._service_name
        record.request_id = _request_id_ctx_var.get()
        record.trace_id = None
        record.span_id = None

        if self._traces_enabled:
            span_context = trace.get_current_span().get_span_context()
            if span_context.is_valid:
                record.trace_id = format(span_context.trace_id, "032x")
                record.span_id = format(span_context.span_id, "016x")
        return True
