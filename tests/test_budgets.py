from decimal import Decimal

from conftest import OTHER_USER_ID, USER_ID
from sqlalchemy.exc import OperationalError

from monthly_ledger.budgets import BudgetPlanner
from monthly_ledger.ledger_model import ErrorKind, ExpenseCategory
from monthly_ledger.persistence.repository import SqlAlchemyLedgerRepository


class FailsOnSecondBudgetRepository(SqlAlchemyLedgerRepository):
    def __init__(self, db):
        super().__init__(db)
        self.staged = 0

    def _stage_budget(self, user_id, month_id, category, budget_amount):
        self.staged += 1
        if self.staged == 2:
            raise OperationalError("INSERT INTO budgets", {}, Exception("disk I/O error"))
        return super()._stage_budget(user_id, month_id, category, budget_amount)


def stored_budgets(ledger, month):
    return {budget.category: budget.budget_amount for budget in ledger.budgets.list_budgets(USER_ID, month.id).data}


def test_zero_amounts_are_dropped_and_later_sets_merge(ledger, month):
    first = ledger.budgets.set_budgets_for_month(
        USER_ID,
        month.id,
        [{"category": "Travel", "budget_amount": 0}, {"category": "Sport", "budget_amount": 500}],
    )
    assert first.ok
    assert [budget.category for budget in first.data] == [ExpenseCategory.SPORT]

    second = ledger.budgets.set_budgets_for_month(USER_ID, month.id, [{"category": "Travel", "budget_amount": 300}])

    assert second.ok
    assert stored_budgets(ledger, month) == {
        ExpenseCategory.SPORT: Decimal("500.00"),
        ExpenseCategory.TRAVEL: Decimal("300.00"),
    }


def test_resubmitting_a_category_overwrites_it(ledger, month):
    ledger.budgets.set_budgets_for_month(USER_ID, month.id, [{"category": "Dining", "budget_amount": "120"}])
    ledger.budgets.set_budgets_for_month(USER_ID, month.id, [{"category": "Dining", "budget_amount": "80.5"}])

    budgets = ledger.budgets.list_budgets(USER_ID, month.id).data

    assert len(budgets) == 1
    assert budgets[0].budget_amount == Decimal("80.50")


def test_last_duplicate_in_one_submission_wins(ledger, month):
    result = ledger.budgets.set_budgets_for_month(
        USER_ID,
        month.id,
        [{"category": "Extra", "budget_amount": 10}, {"category": "Extra", "budget_amount": 15}],
    )

    assert result.ok
    assert stored_budgets(ledger, month) == {ExpenseCategory.EXTRA: Decimal("15.00")}


def test_all_zero_or_blank_is_an_empty_budget_set(ledger, month):
    result = ledger.budgets.set_budgets_for_month(
        USER_ID,
        month.id,
        [{"category": "Travel", "budget_amount": ""}, {"category": "Sport", "budget_amount": 0}],
    )

    assert result.error.kind == ErrorKind.EMPTY_BUDGET_SET
    assert ledger.budgets.set_budgets_for_month(USER_ID, month.id, []).error.kind == ErrorKind.EMPTY_BUDGET_SET
    assert stored_budgets(ledger, month) == {}


def test_invalid_entries_are_reported_by_position(ledger, month):
    result = ledger.budgets.set_budgets_for_month(
        USER_ID,
        month.id,
        [{"category": "Sport", "budget_amount": 10}, {"category": "Rent", "budget_amount": -4}],
    )

    assert result.error.kind == ErrorKind.VALIDATION_ERROR
    assert {(error.field, error.reason) for error in result.error.field_errors} == {
        ("budgets[1].category", "invalid_enum"),
        ("budgets[1].budget_amount", "invalid_amount"),
    }
    assert stored_budgets(ledger, month) == {}


def test_budgets_must_be_a_list(ledger, month):
    result = ledger.budgets.set_budgets_for_month(USER_ID, month.id, {"category": "Sport", "budget_amount": 1})

    assert result.error.kind == ErrorKind.VALIDATION_ERROR
    assert result.error.field_errors[0].field == "budgets"


def test_budgets_require_an_owned_live_month(ledger, month):
    entries = [{"category": "Sport", "budget_amount": 1}]

    assert ledger.budgets.set_budgets_for_month(None, month.id, entries).error.kind == ErrorKind.UNAUTHORIZED
    assert ledger.budgets.set_budgets_for_month(OTHER_USER_ID, month.id, entries).error.kind == ErrorKind.NOT_FOUND
    assert ledger.budgets.list_budgets(OTHER_USER_ID, month.id).error.kind == ErrorKind.NOT_FOUND

    ledger.months.soft_delete_month(USER_ID, month.id)
    assert ledger.budgets.set_budgets_for_month(USER_ID, month.id, entries).error.kind == ErrorKind.NOT_FOUND


def test_failed_submission_stores_nothing(db_session, month):
    planner = BudgetPlanner(FailsOnSecondBudgetRepository(db_session))

    result = planner.set_budgets_for_month(
        USER_ID,
        month.id,
        [{"category": "Sport", "budget_amount": 5}, {"category": "Travel", "budget_amount": 7}],
    )

    assert result.error.kind == ErrorKind.STORE_ERROR
    assert result.error.message == "disk I/O error"
    assert planner.list_budgets(USER_ID, month.id).data == []


def test_failed_submission_keeps_previous_amounts(ledger, db_session, month):
    ledger.budgets.set_budgets_for_month(USER_ID, month.id, [{"category": "Dining", "budget_amount": 100}])
    planner = BudgetPlanner(FailsOnSecondBudgetRepository(db_session))

    result = planner.set_budgets_for_month(
        USER_ID,
        month.id,
        [{"category": "Dining", "budget_amount": 40}, {"category": "Sport", "budget_amount": 5}],
    )

    assert result.error.kind == ErrorKind.STORE_ERROR
    assert stored_budgets(ledger, month) == {ExpenseCategory.DINING: Decimal("100.00")}
