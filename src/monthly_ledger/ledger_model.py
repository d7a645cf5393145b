from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List

MAX_AMOUNT = Decimal("99999999.99")
ZERO = Decimal("0")


class ExpenseCategory(str, Enum):
    """Closed set of spending categories shared by expenses and budgets."""

    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    DINING = "Dining"
    EXTRA = "Extra"
    TRAVEL = "Travel"
    MANDATORY_EXPENSE = "Mandatory Expense"
    CLOTHING = "Clothing"
    SPORT = "Sport"


class IncomeSourceType(str, Enum):
    SALARY = "Salary"
    TRANSFER = "Transfer"
    BUSINESS = "Business"
    OTHER = "Other"


class TransactionKind(str, Enum):
    """Discriminator for the two transaction tables."""

    EXPENSE = "expense"
    INCOME = "income"


class ErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    VALIDATION_ERROR = "validation_error"
    NOT_FOUND = "not_found"
    EMPTY_BUDGET_SET = "empty_budget_set"
    STORE_ERROR = "store_error"


@dataclass
class Month:
    id: str
    user_id: str
    year: int
    month: int
    starting_balance: Decimal = ZERO
    created_at: datetime | None = None
    deleted_at: datetime | None = None

    @property
    def period(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass
class Expense:
    id: str
    user_id: str
    month_id: str
    date: date
    amount: Decimal
    item_name: str
    category: ExpenseCategory
    notes: str | None = None
    created_at: datetime | None = None
    deleted_at: datetime | None = None

    kind = TransactionKind.EXPENSE


@dataclass
class Income:
    id: str
    user_id: str
    month_id: str
    date: date
    amount: Decimal
    source_type: IncomeSourceType
    custom_source: str | None = None
    notes: str | None = None
    created_at: datetime | None = None
    deleted_at: datetime | None = None

    kind = TransactionKind.INCOME


@dataclass
class Budget:
    id: str
    user_id: str
    month_id: str
    category: ExpenseCategory
    budget_amount: Decimal
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class CategoryTotal:
    category: ExpenseCategory
    total: Decimal
    count: int


@dataclass
class BudgetComparison:
    category: ExpenseCategory
    budgeted: Decimal
    actual: Decimal
    remaining: Decimal


@dataclass
class MonthSummary:
    starting_balance: Decimal
    total_income: Decimal
    total_expenses: Decimal
    balance: Decimal
    categories: List[CategoryTotal] = field(default_factory=list)
    budgets: List[BudgetComparison] = field(default_factory=list)


@dataclass(frozen=True)
class FieldError:
    field: str
    reason: str
    detail: str


@dataclass
class LedgerError:
    kind: ErrorKind
    message: str
    field_errors: List[FieldError] = field(default_factory=list)
    rate_limited: bool = False


@dataclass
class LedgerResult:
    """
    Discriminated outcome of every ledger operation.

    Exactly one of `data` and `error` is meaningful; callers branch on `ok`
    instead of catching exceptions for expected business conditions.
    """

    data: Any = None
    error: LedgerError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Any = None) -> "LedgerResult":
        return cls(data=data)

    @classmethod
    def failure(
        cls,
        kind: ErrorKind,
        message: str,
        *,
        field_errors: List[FieldError] | None = None,
        rate_limited: bool = False,
    ) -> "LedgerResult":
        return cls(
            error=LedgerError(
                kind=kind,
                message=message,
                field_errors=list(field_errors or []),
                rate_limited=rate_limited,
            )
        )

    def to_payload(self) -> dict[str, Any]:
        if self.error is None:
            return {"data": to_payload(self.data)}
        payload: dict[str, Any] = {
            "error": self.error.message,
            "kind": self.error.kind.value,
        }
        if self.error.field_errors:
            payload["fields"] = [dataclasses.asdict(item) for item in self.error.field_errors]
        if self.error.rate_limited:
            payload["rate_limited"] = True
        return payload


def to_payload(value: Any) -> Any:
    """
    Convert domain values into JSON-friendly primitives.

    Decimals become strings so amounts survive serialization without binary
    float rounding; dates and datetimes use ISO format.
    """

    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {item.name: to_payload(getattr(value, item.name)) for item in dataclasses.fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: to_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_payload(item) for item in value]
    return value
