"""Ledger data access: the repository contract and its SQLAlchemy implementation."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Protocol, Type, Union, runtime_checkable

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from monthly_ledger.ledger_model import (
    Budget,
    Expense,
    ExpenseCategory,
    Income,
    IncomeSourceType,
    Month,
    TransactionKind,
)
from monthly_ledger.persistence.models import BudgetRow, ExpenseRow, IncomeRow, MonthRow, utcnow

Transaction = Union[Expense, Income]
TransactionRow = Union[ExpenseRow, IncomeRow]


class MonthConflictError(Exception):
    """Another live month already exists for the same (user, year, month)."""


@runtime_checkable
class LedgerRepository(Protocol):
    """
    Storage contract the ledger services depend on.

    Every lookup and mutation is scoped by the owning `user_id`; soft-deleted
    rows are invisible unless a method says otherwise. Implementations return
    domain dataclasses, never storage rows.
    """

    def find_month(self, user_id: str, year: int, month: int) -> Month | None:
        ...

    def get_month(self, user_id: str, month_id: str, *, include_deleted: bool = False) -> Month | None:
        ...

    def insert_month(
        self,
        user_id: str,
        year: int,
        month: int,
        *,
        starting_balance: Decimal,
        created_at: datetime,
    ) -> Month:
        """Insert a live month; raises MonthConflictError when one already exists."""
        ...

    def update_month_balance(self, user_id: str, month_id: str, starting_balance: Decimal) -> Month | None:
        ...

    def mark_month_deleted(self, user_id: str, month_id: str, deleted_at: datetime) -> bool:
        ...

    def list_months(self, user_id: str) -> List[Month]:
        ...

    def insert_transaction(self, kind: TransactionKind, values: Dict[str, Any]) -> Transaction:
        ...

    def get_transaction(
        self,
        kind: TransactionKind,
        user_id: str,
        transaction_id: str,
        *,
        include_deleted: bool = False,
    ) -> Transaction | None:
        ...

    def update_transaction(
        self,
        kind: TransactionKind,
        user_id: str,
        transaction_id: str,
        changes: Dict[str, Any],
    ) -> Transaction | None:
        ...

    def mark_transaction_deleted(
        self,
        kind: TransactionKind,
        user_id: str,
        transaction_id: str,
        deleted_at: datetime,
    ) -> bool:
        ...

    def list_transactions(self, kind: TransactionKind, user_id: str, month_id: str) -> List[Transaction]:
        ...

    def upsert_budgets(
        self,
        user_id: str,
        month_id: str,
        amounts: Mapping[ExpenseCategory, Decimal],
    ) -> List[Budget]:
        """Insert or overwrite one budget per category; all of them or none are stored."""
        ...

    def list_budgets(self, user_id: str, month_id: str) -> List[Budget]:
        ...


_ROW_BY_KIND: Dict[TransactionKind, Type[Any]] = {
    TransactionKind.EXPENSE: ExpenseRow,
    TransactionKind.INCOME: IncomeRow,
}


class SqlAlchemyLedgerRepository:
    """Thin repository that encapsulates persistence operations."""

    def __init__(self, db: Session):
        self._db = db

    # -- months -----------------------------------------------------------

    def find_month(self, user_id: str, year: int, month: int) -> Month | None:
        row = self._db.scalars(
            select(MonthRow).where(
                MonthRow.user_id == user_id,
                MonthRow.year == year,
                MonthRow.month == month,
                MonthRow.deleted_at.is_(None),
            )
        ).first()
        return _month_from_row(row) if row else None

    def get_month(self, user_id: str, month_id: str, *, include_deleted: bool = False) -> Month | None:
        if include_deleted:
            row = self._db.scalars(
                select(MonthRow).where(MonthRow.id == month_id, MonthRow.user_id == user_id)
            ).first()
        else:
            row = self._live_month_row(user_id, month_id)
        return _month_from_row(row) if row else None

    def insert_month(
        self,
        user_id: str,
        year: int,
        month: int,
        *,
        starting_balance: Decimal,
        created_at: datetime,
    ) -> Month:
        record = MonthRow(
            user_id=user_id,
            year=year,
            month=month,
            starting_balance=starting_balance,
            created_at=created_at,
        )
        self._db.add(record)
        try:
            self._db.commit()
        except IntegrityError as exc:
            self._db.rollback()
            raise MonthConflictError(f"month {year:04d}-{month:02d} already exists") from exc
        self._db.refresh(record)
        return _month_from_row(record)

    def update_month_balance(self, user_id: str, month_id: str, starting_balance: Decimal) -> Month | None:
        row = self._live_month_row(user_id, month_id)
        if row is None:
            return None
        row.starting_balance = starting_balance
        self._commit()
        self._db.refresh(row)
        return _month_from_row(row)

    def mark_month_deleted(self, user_id: str, month_id: str, deleted_at: datetime) -> bool:
        result = self._db.execute(
            update(MonthRow)
            .where(
                MonthRow.id == month_id,
                MonthRow.user_id == user_id,
                MonthRow.deleted_at.is_(None),
            )
            .values(deleted_at=deleted_at)
        )
        self._commit()
        return result.rowcount > 0

    def list_months(self, user_id: str) -> List[Month]:
        rows = self._db.scalars(
            select(MonthRow)
            .where(MonthRow.user_id == user_id, MonthRow.deleted_at.is_(None))
            .order_by(MonthRow.year.desc(), MonthRow.month.desc())
        ).all()
        return [_month_from_row(row) for row in rows]

    # -- transactions -----------------------------------------------------

    def insert_transaction(self, kind: TransactionKind, values: Dict[str, Any]) -> Transaction:
        row_cls = _row_class(kind)
        record = row_cls(**{key: _storable(value) for key, value in values.items()})
        self._db.add(record)
        self._commit()
        self._db.refresh(record)
        return _transaction_from_row(kind, record)

    def get_transaction(
        self,
        kind: TransactionKind,
        user_id: str,
        transaction_id: str,
        *,
        include_deleted: bool = False,
    ) -> Transaction | None:
        row = self._transaction_row(kind, user_id, transaction_id, include_deleted=include_deleted)
        return _transaction_from_row(kind, row) if row else None

    def update_transaction(
        self,
        kind: TransactionKind,
        user_id: str,
        transaction_id: str,
        changes: Dict[str, Any],
    ) -> Transaction | None:
        row = self._transaction_row(kind, user_id, transaction_id, include_deleted=False)
        if row is None:
            return None
        for key, value in changes.items():
            setattr(row, key, _storable(value))
        self._commit()
        self._db.refresh(row)
        return _transaction_from_row(kind, row)

    def mark_transaction_deleted(
        self,
        kind: TransactionKind,
        user_id: str,
        transaction_id: str,
        deleted_at: datetime,
    ) -> bool:
        row_cls = _row_class(kind)
        result = self._db.execute(
            update(row_cls)
            .where(
                row_cls.id == transaction_id,
                row_cls.user_id == user_id,
                row_cls.deleted_at.is_(None),
            )
            .values(deleted_at=deleted_at)
        )
        self._commit()
        return result.rowcount > 0

    def list_transactions(self, kind: TransactionKind, user_id: str, month_id: str) -> List[Transaction]:
        row_cls = _row_class(kind)
        rows = self._db.scalars(
            select(row_cls)
            .where(
                row_cls.user_id == user_id,
                row_cls.month_id == month_id,
                row_cls.deleted_at.is_(None),
            )
            .order_by(row_cls.date.desc(), row_cls.created_at.desc())
        ).all()
        return [_transaction_from_row(kind, row) for row in rows]

    # -- budgets ----------------------------------------------------------

    def upsert_budgets(
        self,
        user_id: str,
        month_id: str,
        amounts: Mapping[ExpenseCategory, Decimal],
    ) -> List[Budget]:
        try:
            return self._save_budgets(user_id, month_id, amounts)
        except IntegrityError:
            # Lost an insert race on (month_id, category); the retry finds the
            # winner's rows and overwrites them.
            return self._save_budgets(user_id, month_id, amounts)

    def _save_budgets(
        self,
        user_id: str,
        month_id: str,
        amounts: Mapping[ExpenseCategory, Decimal],
    ) -> List[Budget]:
        try:
            rows = [
                self._stage_budget(user_id, month_id, category, budget_amount)
                for category, budget_amount in amounts.items()
            ]
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
        for row in rows:
            self._db.refresh(row)
        return [_budget_from_row(row) for row in rows]

    def _stage_budget(
        self,
        user_id: str,
        month_id: str,
        category: ExpenseCategory,
        budget_amount: Decimal,
    ) -> BudgetRow:
        """Add or update one budget row in the open transaction without committing."""

        row = self._budget_row(user_id, month_id, category)
        if row is None:
            row = BudgetRow(
                user_id=user_id,
                month_id=month_id,
                category=category.value,
                budget_amount=budget_amount,
            )
            self._db.add(row)
        else:
            row.budget_amount = budget_amount
            row.updated_at = utcnow()
        self._db.flush()
        return row

    def list_budgets(self, user_id: str, month_id: str) -> List[Budget]:
        rows = self._db.scalars(
            select(BudgetRow)
            .where(BudgetRow.user_id == user_id, BudgetRow.month_id == month_id)
            .order_by(BudgetRow.created_at, BudgetRow.id)
        ).all()
        return [_budget_from_row(row) for row in rows]

    # -- helpers ----------------------------------------------------------

    def _commit(self) -> None:
        try:
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

    def _live_month_row(self, user_id: str, month_id: str) -> MonthRow | None:
        return self._db.scalars(
            select(MonthRow).where(
                MonthRow.id == month_id,
                MonthRow.user_id == user_id,
                MonthRow.deleted_at.is_(None),
            )
        ).first()

    def _transaction_row(
        self,
        kind: TransactionKind,
        user_id: str,
        transaction_id: str,
        *,
        include_deleted: bool,
    ) -> TransactionRow | None:
        row_cls = _row_class(kind)
        statement = select(row_cls).where(row_cls.id == transaction_id, row_cls.user_id == user_id)
        if not include_deleted:
            statement = statement.where(row_cls.deleted_at.is_(None))
        return self._db.scalars(statement).first()

    def _budget_row(self, user_id: str, month_id: str, category: ExpenseCategory) -> BudgetRow | None:
        return self._db.scalars(
            select(BudgetRow).where(
                BudgetRow.user_id == user_id,
                BudgetRow.month_id == month_id,
                BudgetRow.category == category.value,
            )
        ).first()


def _row_class(kind: TransactionKind) -> Type[Any]:
    try:
        return _ROW_BY_KIND[TransactionKind(kind)]
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unsupported transaction kind '{kind}'") from exc


def _storable(value: Any) -> Any:
    if isinstance(value, (ExpenseCategory, IncomeSourceType)):
        return value.value
    return value


def _month_from_row(row: MonthRow) -> Month:
    return Month(
        id=row.id,
        user_id=row.user_id,
        year=row.year,
        month=row.month,
        starting_balance=Decimal(row.starting_balance),
        created_at=row.created_at,
        deleted_at=row.deleted_at,
    )


def _transaction_from_row(kind: TransactionKind, row: TransactionRow) -> Transaction:
    if kind == TransactionKind.EXPENSE:
        return Expense(
            id=row.id,
            user_id=row.user_id,
            month_id=row.month_id,
            date=row.date,
            amount=Decimal(row.amount),
            item_name=row.item_name,
            category=ExpenseCategory(row.category),
            notes=row.notes,
            created_at=row.created_at,
            deleted_at=row.deleted_at,
        )
    return Income(
        id=row.id,
        user_id=row.user_id,
        month_id=row.month_id,
        date=row.date,
        amount=Decimal(row.amount),
        source_type=IncomeSourceType(row.source_type),
        custom_source=row.custom_source,
        notes=row.notes,
        created_at=row.created_at,
        deleted_at=row.deleted_at,
    )


def _budget_from_row(row: BudgetRow) -> Budget:
    return Budget(
        id=row.id,
        user_id=row.user_id,
        month_id=row.month_id,
        category=ExpenseCategory(row.category),
        budget_amount=Decimal(row.budget_amount),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
