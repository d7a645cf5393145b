"""SQLAlchemy models for months, transactions and budgets."""

from __future__ import annotations

import datetime as dt
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, Numeric, String, UniqueConstraint, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Twelve digits with two decimals covers the 99,999,999.99 ceiling plus
# negative starting balances of the same magnitude.
MONEY = Numeric(12, 2, asdecimal=True)


def _new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class MonthRow(Base):
    """A user's accounting period; at most one live row per (user, year, month)."""

    __tablename__ = "months"
    __table_args__ = (
        Index(
            "uq_months_user_period_active",
            "user_id",
            "year",
            "month",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    starting_balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class _TransactionColumns:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    month_id: Mapped[str] = mapped_column(String(36), ForeignKey("months.id"), nullable=False, index=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Creation order breaks ties between same-day entries when listing.
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ExpenseRow(_TransactionColumns, Base):
    __tablename__ = "expenses"

    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)


class IncomeRow(_TransactionColumns, Base):
    __tablename__ = "income"

    source_type: Mapped[str] = mapped_column(String(16), nullable=False)
    custom_source: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)


class BudgetRow(Base):
    __tablename__ = "budgets"
    __table_args__ = (UniqueConstraint("month_id", "category", name="uq_budgets_month_category"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    month_id: Mapped[str] = mapped_column(String(36), ForeignKey("months.id"), nullable=False, index=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    budget_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
