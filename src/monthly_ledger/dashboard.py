"""
Read-side view of one month: its entries, budgets and computed summary.

`Ledger` bundles the month, transaction and budget services over a single
repository so request handlers only need one object per session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

from sqlalchemy.orm import Session

from monthly_ledger.budgets import BudgetPlanner
from monthly_ledger.compute_summary import compute_month_summary
from monthly_ledger.ledger_model import Budget, Expense, Income, LedgerResult, Month, MonthSummary, TransactionKind
from monthly_ledger.months import Clock, MonthLifecycleManager
from monthly_ledger.persistence.models import utcnow
from monthly_ledger.persistence.repository import LedgerRepository, SqlAlchemyLedgerRepository
from monthly_ledger.transactions import TransactionLedger


@dataclass
class MonthDashboard:
    month: Month
    summary: MonthSummary
    incomes: List[Income] = field(default_factory=list)
    expenses: List[Expense] = field(default_factory=list)
    budgets: List[Budget] = field(default_factory=list)


class Ledger:
    def __init__(self, repository: LedgerRepository, *, clock: Clock = utcnow):
        self.months = MonthLifecycleManager(repository, clock=clock)
        self.transactions = TransactionLedger(repository, clock=clock)
        self.budgets = BudgetPlanner(repository)

    @classmethod
    def for_session(cls, session: Session) -> "Ledger":
        return cls(SqlAlchemyLedgerRepository(session))

    def month_summary(self, user_id: str | None, month_id: str) -> LedgerResult:
        """Totals, balance, category breakdown and budget status for a live month."""

        resolved = self.months.get_month(user_id, month_id)
        if not resolved.ok:
            return resolved
        return self._assemble(user_id, resolved.data, summary_only=True)

    def build_month_dashboard(self, user_id: str | None, year: Any, month: Any) -> LedgerResult:
        """
        Resolve (get-or-create) the period and return everything a month view shows.
        """

        resolved = self.months.get_or_create_month(user_id, year, month)
        if not resolved.ok:
            return resolved
        return self._assemble(user_id, resolved.data, summary_only=False)

    def _assemble(self, user_id: str | None, month: Month, *, summary_only: bool) -> LedgerResult:
        incomes = self.transactions.list_by_month(user_id, TransactionKind.INCOME, month.id)
        if not incomes.ok:
            return incomes
        expenses = self.transactions.list_by_month(user_id, TransactionKind.EXPENSE, month.id)
        if not expenses.ok:
            return expenses
        budgets = self.budgets.list_budgets(user_id, month.id)
        if not budgets.ok:
            return budgets

        summary = compute_month_summary(month.starting_balance, incomes.data, expenses.data, budgets.data)
        if summary_only:
            return LedgerResult.success(summary)
        return LedgerResult.success(
            MonthDashboard(
                month=month,
                summary=summary,
                incomes=incomes.data,
                expenses=expenses.data,
                budgets=budgets.data,
            )
        )
