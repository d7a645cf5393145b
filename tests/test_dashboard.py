from decimal import Decimal

from conftest import USER_ID

from monthly_ledger.dashboard import MonthDashboard
from monthly_ledger.ledger_model import ErrorKind, ExpenseCategory, TransactionKind


def test_month_summary_combines_entries_and_budgets(ledger, month):
    ledger.months.update_starting_balance(USER_ID, month.id, "200")
    ledger.transactions.create(
        USER_ID,
        TransactionKind.INCOME,
        {"month_id": month.id, "date": "2024-03-01", "amount": "1000", "source_type": "Salary"},
    )
    for amount, category in [("60", "Sport"), ("15.50", "Dining")]:
        ledger.transactions.create(
            USER_ID,
            TransactionKind.EXPENSE,
            {"month_id": month.id, "date": "2024-03-05", "amount": amount, "item_name": "x", "category": category},
        )
    ledger.budgets.set_budgets_for_month(USER_ID, month.id, [{"category": "Sport", "budget_amount": 50}])

    summary = ledger.month_summary(USER_ID, month.id).data

    assert summary.starting_balance == Decimal("200.00")
    assert summary.total_income == Decimal("1000.00")
    assert summary.total_expenses == Decimal("75.50")
    assert summary.balance == Decimal("1124.50")
    sport = next(entry for entry in summary.budgets if entry.category is ExpenseCategory.SPORT)
    assert sport.remaining == Decimal("-10.00")


def test_month_summary_of_deleted_month_is_not_found(ledger, month):
    ledger.months.soft_delete_month(USER_ID, month.id)

    assert ledger.month_summary(USER_ID, month.id).error.kind == ErrorKind.NOT_FOUND


def test_build_month_dashboard_opens_the_period(ledger):
    result = ledger.build_month_dashboard(USER_ID, 2024, 7)

    assert result.ok
    dashboard = result.data
    assert isinstance(dashboard, MonthDashboard)
    assert dashboard.month.period == "2024-07"
    assert dashboard.summary.balance == Decimal("0")
    assert dashboard.incomes == [] and dashboard.expenses == [] and dashboard.budgets == []
    assert ledger.build_month_dashboard(USER_ID, 2024, 7).data.month.id == dashboard.month.id


def test_dashboard_payload_is_json_friendly(ledger, month):
    ledger.transactions.create(
        USER_ID,
        TransactionKind.EXPENSE,
        {"month_id": month.id, "date": "2024-03-09", "amount": 12.3, "item_name": "Book", "category": "Extra"},
    )

    payload = ledger.build_month_dashboard(USER_ID, 2024, 3).to_payload()["data"]

    assert payload["month"]["id"] == month.id
    assert payload["expenses"][0]["amount"] == "12.30"
    assert payload["expenses"][0]["date"] == "2024-03-09"
    assert payload["expenses"][0]["category"] == "Extra"
    assert payload["summary"]["total_expenses"] == "12.30"


def test_dashboard_requires_a_user(ledger):
    assert ledger.build_month_dashboard(None, 2024, 3).error.kind == ErrorKind.UNAUTHORIZED
