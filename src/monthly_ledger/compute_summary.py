from __future__ import annotations

from decimal import Decimal
from typing import Dict, Iterable, List, Sequence

from monthly_ledger.ledger_model import (
    ZERO,
    Budget,
    BudgetComparison,
    CategoryTotal,
    Expense,
    ExpenseCategory,
    Income,
    MonthSummary,
)


def total_of(transactions: Iterable[Expense | Income]) -> Decimal:
    """
    Sum the amounts of already-filtered (live) transactions.

    Args:
        transactions: Expenses or incomes; amounts are positive Decimals.
    Returns:
        Exact Decimal total, Decimal('0') for an empty collection.
    """
    return sum((transaction.amount for transaction in transactions), ZERO)


def group_by_category(expenses: Iterable[Expense]) -> List[CategoryTotal]:
    """
    Partition expenses by category with per-category totals and counts.

    Args:
        expenses: Live expenses in any order.
    Returns:
        One CategoryTotal per category present, in order of first occurrence.
        Callers that need a display order sort the result themselves.
    """
    grouped: Dict[ExpenseCategory, CategoryTotal] = {}
    for expense in expenses:
        entry = grouped.get(expense.category)
        if entry is None:
            entry = grouped[expense.category] = CategoryTotal(category=expense.category, total=ZERO, count=0)
        entry.total += expense.amount
        entry.count += 1
    return list(grouped.values())


def compute_balance(starting_balance: Decimal, total_income: Decimal, total_expenses: Decimal) -> Decimal:
    """starting_balance + income - expenses; negative balances are valid."""
    return Decimal(starting_balance) + Decimal(total_income) - Decimal(total_expenses)


def budget_vs_actual(
    budgets: Iterable[Budget],
    expenses_by_category: Iterable[CategoryTotal],
) -> List[BudgetComparison]:
    """
    Compare planned and actual spending for every category that has either.

    Args:
        budgets: Budget rows for one month (at most one per category).
        expenses_by_category: Output of `group_by_category` for the same month.
    Returns:
        BudgetComparison entries in ExpenseCategory declaration order.
        `remaining` goes negative on overspend; it is never clamped.
    """
    budgeted: Dict[ExpenseCategory, Decimal] = {budget.category: budget.budget_amount for budget in budgets}
    actual: Dict[ExpenseCategory, Decimal] = {entry.category: entry.total for entry in expenses_by_category}

    comparisons: List[BudgetComparison] = []
    for category in ExpenseCategory:
        if category not in budgeted and category not in actual:
            continue
        planned = budgeted.get(category, ZERO)
        spent = actual.get(category, ZERO)
        comparisons.append(
            BudgetComparison(
                category=category,
                budgeted=planned,
                actual=spent,
                remaining=planned - spent,
            )
        )
    return comparisons


def compute_month_summary(
    starting_balance: Decimal,
    incomes: Sequence[Income],
    expenses: Sequence[Expense],
    budgets: Sequence[Budget] = (),
) -> MonthSummary:
    """
    Bundle the month's totals, balance, category breakdown and budget status.

    Args:
        starting_balance: The month's carried-over balance.
        incomes: Live incomes of the month.
        expenses: Live expenses of the month.
        budgets: Budgets of the month; optional.
    Returns:
        MonthSummary built from the pure helpers above; inputs are not mutated.
    """
    total_income = total_of(incomes)
    total_expenses = total_of(expenses)
    categories = group_by_category(expenses)

    return MonthSummary(
        starting_balance=Decimal(starting_balance),
        total_income=total_income,
        total_expenses=total_expenses,
        balance=compute_balance(starting_balance, total_income, total_expenses),
        categories=categories,
        budgets=budget_vs_actual(budgets, categories),
    )
