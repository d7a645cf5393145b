"""
HTTP adapter for the monthly ledger.

Maps each route onto one ledger operation and turns its LedgerResult into a
JSON response: `{"data": ...}` on success, `{"error": ..., "kind": ...}` on
failure. No business rule lives here.
"""

import logging
from typing import Any, Dict

from fastapi import Body, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from monthly_ledger.dashboard import Ledger
from monthly_ledger.errors import validation_failed
from monthly_ledger.identity import resolve_user_id
from monthly_ledger.ledger_model import ErrorKind, LedgerResult, TransactionKind
from monthly_ledger.middleware.rate_limit import (
    SimpleRateLimiter,
    build_rate_limiter,
    rate_limit_key,
    retry_after_header,
)
from monthly_ledger.observability.telemetry import (
    bind_request_context,
    ensure_request_id,
    reset_request_context,
    setup_telemetry,
)
from monthly_ledger.persistence.database import get_session, init_db
from monthly_ledger.settings import LedgerSettings, LedgerSettingsError, load_ledger_settings
from monthly_ledger.validation import parse_month_param

logger = logging.getLogger(__name__)

try:
    SETTINGS: LedgerSettings = load_ledger_settings()
except LedgerSettingsError as exc:
    logger.error("Failed to load ledger settings: %s", exc)
    raise

STATUS_BY_KIND = {
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.VALIDATION_ERROR: 422,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.EMPTY_BUDGET_SET: 400,
    ErrorKind.STORE_ERROR: 503,
}

app = FastAPI(title="Monthly Ledger")
setup_telemetry(app, service_name="monthly-ledger")
app.state.settings = SETTINGS
app.state.rate_limiter = build_rate_limiter(SETTINGS)


def error_response(status_code: int, kind: str, details: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": details, "kind": kind},
    )


def respond(result: LedgerResult, request: Request, *, success_status: int = 200) -> JSONResponse:
    if result.ok:
        return JSONResponse(status_code=success_status, content=result.to_payload())

    error = result.error
    status_code = STATUS_BY_KIND[error.kind]
    if error.kind == ErrorKind.STORE_ERROR and error.rate_limited:
        status_code = 429
    logger.info(
        {
            "event": "ledger_request_failed",
            "request_id": getattr(request.state, "request_id", None),
            "path": request.url.path,
            "kind": error.kind.value,
            "status_code": status_code,
        }
    )
    return JSONResponse(status_code=status_code, content=result.to_payload())


def get_ledger(db: Session = Depends(get_session)) -> Ledger:
    return Ledger.for_session(db)


@app.middleware("http")
async def rate_limit_middleware(request: Request, call_next):
    limiter: SimpleRateLimiter = app.state.rate_limiter
    key = rate_limit_key(request)
    allowed, retry_after = await limiter.allow(key)
    if allowed:
        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(limiter.remaining(key))
        return response

    logger.warning(
        {
            "event": "rate_limited",
            "request_id": getattr(request.state, "request_id", None),
            "client": key,
            "retry_after_seconds": retry_after,
        }
    )
    response = error_response(429, "rate_limited", "Too many requests. Please retry shortly.")
    response.headers["Retry-After"] = retry_after_header(retry_after)
    return response


# Registered after the rate limiter so it wraps it; 429 responses carry the request id too.
@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = ensure_request_id(request)
    token = bind_request_context(request_id)
    try:
        response = await call_next(request)
        response.headers.setdefault("x-request-id", request_id)
        return response
    finally:
        reset_request_context(token)


app.add_middleware(
    CORSMiddleware,
    allow_origins=list(SETTINGS.cors_origins),
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)


@app.on_event("startup")
def on_startup() -> None:
    """Initialize persistence before serving requests."""
    init_db()


@app.get("/health")
def health_check() -> dict:
    return {"status": "ok", "service": "monthly-ledger"}


# -- months -------------------------------------------------------------------


@app.get("/months")
def list_months(
    request: Request,
    user_id: str | None = Depends(resolve_user_id),
    ledger: Ledger = Depends(get_ledger),
) -> JSONResponse:
    return respond(ledger.months.list_months(user_id), request)


@app.get("/months/{period}")
def open_month(
    period: str,
    request: Request,
    user_id: str | None = Depends(resolve_user_id),
    ledger: Ledger = Depends(get_ledger),
) -> JSONResponse:
    """Get-or-create the month for a YYYY-MM period."""
    outcome = parse_month_param(period)
    if not outcome.ok:
        return respond(validation_failed(outcome.errors), request)
    return respond(ledger.months.get_or_create_month(user_id, outcome.record.year, outcome.record.month), request)


@app.patch("/months/{month_id}")
def update_month(
    month_id: str,
    request: Request,
    payload: Dict[str, Any] = Body(...),
    user_id: str | None = Depends(resolve_user_id),
    ledger: Ledger = Depends(get_ledger),
) -> JSONResponse:
    result = ledger.months.update_starting_balance(user_id, month_id, payload.get("starting_balance"))
    return respond(result, request)


@app.delete("/months/{month_id}")
def delete_month(
    month_id: str,
    request: Request,
    user_id: str | None = Depends(resolve_user_id),
    ledger: Ledger = Depends(get_ledger),
) -> JSONResponse:
    return respond(ledger.months.soft_delete_month(user_id, month_id), request)


@app.get("/months/{month_id}/summary")
def month_summary(
    month_id: str,
    request: Request,
    user_id: str | None = Depends(resolve_user_id),
    ledger: Ledger = Depends(get_ledger),
) -> JSONResponse:
    return respond(ledger.month_summary(user_id, month_id), request)


@app.get("/dashboard/{period}")
def month_dashboard(
    period: str,
    request: Request,
    user_id: str | None = Depends(resolve_user_id),
    ledger: Ledger = Depends(get_ledger),
) -> JSONResponse:
    outcome = parse_month_param(period)
    if not outcome.ok:
        return respond(validation_failed(outcome.errors), request)
    return respond(ledger.build_month_dashboard(user_id, outcome.record.year, outcome.record.month), request)


# -- transactions -------------------------------------------------------------


def _register_transaction_routes(kind: TransactionKind, collection: str) -> None:
    """Expenses and income expose the same routes under their own collection name."""

    @app.get(f"/months/{{month_id}}/{collection}", name=f"list_{collection}")
    def list_entries(
        month_id: str,
        request: Request,
        user_id: str | None = Depends(resolve_user_id),
        ledger: Ledger = Depends(get_ledger),
    ) -> JSONResponse:
        return respond(ledger.transactions.list_by_month(user_id, kind, month_id), request)

    @app.post(f"/months/{{month_id}}/{collection}", name=f"create_{collection}")
    def create_entry(
        month_id: str,
        request: Request,
        payload: Dict[str, Any] = Body(...),
        user_id: str | None = Depends(resolve_user_id),
        ledger: Ledger = Depends(get_ledger),
    ) -> JSONResponse:
        result = ledger.transactions.create(user_id, kind, {**payload, "month_id": month_id})
        return respond(result, request, success_status=201)

    @app.patch(f"/{collection}/{{entry_id}}", name=f"update_{collection}")
    def update_entry(
        entry_id: str,
        request: Request,
        payload: Dict[str, Any] = Body(...),
        user_id: str | None = Depends(resolve_user_id),
        ledger: Ledger = Depends(get_ledger),
    ) -> JSONResponse:
        result = ledger.transactions.update(user_id, kind, {**payload, "id": entry_id})
        return respond(result, request)

    @app.delete(f"/{collection}/{{entry_id}}", name=f"delete_{collection}")
    def delete_entry(
        entry_id: str,
        request: Request,
        user_id: str | None = Depends(resolve_user_id),
        ledger: Ledger = Depends(get_ledger),
    ) -> JSONResponse:
        return respond(ledger.transactions.soft_delete(user_id, kind, entry_id), request)


_register_transaction_routes(TransactionKind.EXPENSE, "expenses")
_register_transaction_routes(TransactionKind.INCOME, "income")


# -- budgets ------------------------------------------------------------------


@app.get("/months/{month_id}/budgets")
def list_budgets(
    month_id: str,
    request: Request,
    user_id: str | None = Depends(resolve_user_id),
    ledger: Ledger = Depends(get_ledger),
) -> JSONResponse:
    return respond(ledger.budgets.list_budgets(user_id, month_id), request)


@app.put("/months/{month_id}/budgets")
def set_budgets(
    month_id: str,
    request: Request,
    payload: Dict[str, Any] = Body(...),
    user_id: str | None = Depends(resolve_user_id),
    ledger: Ledger = Depends(get_ledger),
) -> JSONResponse:
    result = ledger.budgets.set_budgets_for_month(user_id, month_id, payload.get("budgets"))
    return respond(result, request)
