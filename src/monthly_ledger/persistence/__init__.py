"""Persistence primitives for the ledger."""

from monthly_ledger.persistence.database import (
    DB_URL_ENV_VAR,
    DEFAULT_DB_PATH,
    get_database_url,
    get_engine,
    get_session,
    get_session_factory,
    init_db,
)
from monthly_ledger.persistence.models import Base, BudgetRow, ExpenseRow, IncomeRow, MonthRow
from monthly_ledger.persistence.repository import (
    LedgerRepository,
    MonthConflictError,
    SqlAlchemyLedgerRepository,
)

__all__ = [
    "Base",
    "BudgetRow",
    "DB_URL_ENV_VAR",
    "DEFAULT_DB_PATH",
    "ExpenseRow",
    "IncomeRow",
    "LedgerRepository",
    "MonthConflictError",
    "MonthRow",
    "SqlAlchemyLedgerRepository",
    "get_database_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
]
