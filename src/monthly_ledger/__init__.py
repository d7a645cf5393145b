"""
Monthly ledger core.

Months, income and expense transactions, and per-category budgets for a
single user, plus the aggregates computed over them. Everything here returns
LedgerResult values; the FastAPI adapter in `monthly_ledger.main` only maps
those onto HTTP responses.
"""

from monthly_ledger.ledger_model import (
    Budget,
    BudgetComparison,
    CategoryTotal,
    ErrorKind,
    Expense,
    ExpenseCategory,
    FieldError,
    Income,
    IncomeSourceType,
    LedgerError,
    LedgerResult,
    Month,
    MonthSummary,
    TransactionKind,
)

__all__ = [
    "Budget",
    "BudgetComparison",
    "CategoryTotal",
    "ErrorKind",
    "Expense",
    "ExpenseCategory",
    "FieldError",
    "Income",
    "IncomeSourceType",
    "LedgerError",
    "LedgerResult",
    "Month",
    "MonthSummary",
    "TransactionKind",
]
