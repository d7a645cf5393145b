from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict

import pytest

from monthly_ledger.ledger_model import ExpenseCategory, IncomeSourceType
from monthly_ledger.validation import (
    parse_month_param,
    validate_budget_entry,
    validate_expense,
    validate_expense_update,
    validate_income,
    validate_income_update,
    validate_month,
    validate_starting_balance,
)

MONTH_ID = "5f0c6f1e-8d55-4d8e-9a8e-7d7b1f0f3a11"
ENTRY_ID = "0b6d7c62-3f7e-4a3e-b9a4-2f7b8d1c9e20"


def make_expense(**overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "month_id": MONTH_ID,
        "date": "2024-03-14",
        "amount": 42.5,
        "item_name": "Groceries",
        "category": "Shopping",
    }
    payload.update(overrides)
    return payload


def make_income(**overrides: Any) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "month_id": MONTH_ID,
        "date": "2024-03-01",
        "amount": "2500",
        "source_type": "Salary",
    }
    payload.update(overrides)
    return payload


def errors_by_field(outcome) -> Dict[str, str]:
    return {error.field: error.reason for error in outcome.errors}


def test_valid_expense_produces_typed_record():
    outcome = validate_expense(make_expense(notes="weekly shop"))

    assert outcome.ok
    record = outcome.record
    assert record.date == date(2024, 3, 14)
    assert record.amount == Decimal("42.50")
    assert record.category is ExpenseCategory.SHOPPING
    assert record.month_id == MONTH_ID
    assert record.notes == "weekly shop"


def test_float_amount_keeps_its_decimal_value():
    outcome = validate_expense(make_expense(amount=0.1))

    assert outcome.record.amount == Decimal("0.10")


@pytest.mark.parametrize(
    "amount",
    [0, -1, "-0.01", "abc", "", None, True, 100_000_000, "99999999.991", 1.001, float("inf"), float("nan")],
)
def test_invalid_expense_amounts_are_rejected(amount):
    outcome = validate_expense(make_expense(amount=amount))

    assert not outcome.ok
    assert errors_by_field(outcome) == {"amount": "invalid_amount"}


def test_maximum_amount_is_accepted():
    outcome = validate_expense(make_expense(amount="99999999.99"))

    assert outcome.ok
    assert outcome.record.amount == Decimal("99999999.99")


@pytest.mark.parametrize("value", ["2024-02-30", "2024/03/01", "24-3-1", "", None, 20240301, "2024-03-01T10:00:00"])
def test_invalid_dates_are_rejected(value):
    outcome = validate_expense(make_expense(date=value))

    assert errors_by_field(outcome) == {"date": "invalid_date"}


def test_leap_day_is_a_real_date():
    assert validate_expense(make_expense(date="2024-02-29")).ok
    assert not validate_expense(make_expense(date="2023-02-29")).ok


def test_item_name_bounds():
    assert validate_expense(make_expense(item_name="x" * 200)).ok
    assert errors_by_field(validate_expense(make_expense(item_name="x" * 201))) == {"item_name": "invalid_length"}
    assert errors_by_field(validate_expense(make_expense(item_name="   "))) == {"item_name": "required"}


def test_notes_are_bounded_and_blank_notes_become_none():
    assert errors_by_field(validate_expense(make_expense(notes="n" * 501))) == {"notes": "invalid_length"}
    assert validate_expense(make_expense(notes="  ")).record.notes is None


def test_unknown_category_is_an_enum_error():
    outcome = validate_expense(make_expense(category="Groceries"))

    assert errors_by_field(outcome) == {"category": "invalid_enum"}


def test_missing_and_malformed_month_id():
    payload = make_expense()
    del payload["month_id"]

    assert errors_by_field(validate_expense(payload)) == {"month_id": "required"}
    assert errors_by_field(validate_expense(make_expense(month_id="march"))) == {"month_id": "invalid_value"}


def test_every_failing_field_is_reported():
    outcome = validate_expense(make_expense(amount=0, date="nope", category="Food"))

    assert errors_by_field(outcome) == {
        "amount": "invalid_amount",
        "date": "invalid_date",
        "category": "invalid_enum",
    }


def test_non_mapping_payload_is_rejected():
    outcome = validate_expense(["not", "a", "dict"])

    assert errors_by_field(outcome) == {"__root__": "invalid_type"}


def test_income_other_requires_custom_source_on_that_field():
    for custom_source in (None, "", "   "):
        outcome = validate_income(make_income(source_type="Other", custom_source=custom_source))
        assert errors_by_field(outcome) == {"custom_source": "required"}

    outcome = validate_income(make_income(source_type="Other"))
    assert errors_by_field(outcome) == {"custom_source": "required"}


def test_income_other_with_custom_source_is_valid():
    outcome = validate_income(make_income(source_type="Other", custom_source="Garage sale"))

    assert outcome.ok
    assert outcome.record.source_type is IncomeSourceType.OTHER
    assert outcome.record.custom_source == "Garage sale"


def test_custom_source_length_applies_when_it_is_stored():
    outcome = validate_income(make_income(source_type="Other", custom_source="s" * 201))

    assert errors_by_field(outcome) == {"custom_source": "invalid_length"}


@pytest.mark.parametrize("custom_source", ["Employer", "", "s" * 500, None])
def test_custom_source_is_ignored_for_other_source_types(custom_source):
    outcome = validate_income(make_income(source_type="Business", custom_source=custom_source))

    assert outcome.ok
    assert outcome.record.custom_source is None


def test_cross_field_error_is_reported_alongside_field_errors():
    outcome = validate_income(make_income(source_type="Other", amount=0))

    assert errors_by_field(outcome) == {"amount": "invalid_amount", "custom_source": "required"}


def test_unknown_source_type_is_an_enum_error():
    outcome = validate_income(make_income(source_type="Gift"))

    assert errors_by_field(outcome) == {"source_type": "invalid_enum"}


def test_update_only_needs_an_id():
    outcome = validate_expense_update({"id": ENTRY_ID})

    assert outcome.ok
    assert outcome.record.changes() == {}


def test_update_applies_field_rules_to_present_fields():
    outcome = validate_expense_update({"id": ENTRY_ID, "amount": -5, "category": "Sport"})

    assert errors_by_field(outcome) == {"amount": "invalid_amount"}


def test_update_rejects_explicit_null_for_required_columns():
    outcome = validate_expense_update({"id": ENTRY_ID, "date": None, "item_name": None})

    assert errors_by_field(outcome) == {"date": "invalid_date", "item_name": "required"}


def test_update_changes_only_contain_supplied_fields():
    outcome = validate_expense_update({"id": ENTRY_ID, "amount": "12", "notes": ""})

    assert outcome.record.changes() == {"amount": Decimal("12.00"), "notes": None}


def test_update_requires_id():
    outcome = validate_expense_update({"amount": 10})

    assert errors_by_field(outcome) == {"id": "required"}


def test_income_update_rechecks_cross_field_rule():
    outcome = validate_income_update({"id": ENTRY_ID, "source_type": "Other", "custom_source": " "})

    assert errors_by_field(outcome) == {"custom_source": "required"}
    assert validate_income_update({"id": ENTRY_ID, "source_type": "Other", "custom_source": "Rent"}).ok


def test_income_update_switching_away_from_other_drops_custom_source():
    outcome = validate_income_update({"id": ENTRY_ID, "source_type": "Salary", "custom_source": "Old"})

    assert outcome.record.changes() == {"custom_source": None, "source_type": IncomeSourceType.SALARY}


@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        ({"year": 1999, "month": 1}, {"year": "invalid_value"}),
        ({"year": 2101, "month": 1}, {"year": "invalid_value"}),
        ({"year": 2024, "month": 0}, {"month": "invalid_value"}),
        ({"year": 2024, "month": 13}, {"month": "invalid_value"}),
        ({"year": "2024", "month": 1}, {"year": "invalid_type"}),
    ],
)
def test_month_bounds(payload, expected):
    assert errors_by_field(validate_month(payload)) == expected


def test_month_defaults_to_zero_starting_balance():
    outcome = validate_month({"year": 2000, "month": 12})

    assert outcome.record.starting_balance == Decimal("0")


def test_starting_balance_may_be_negative_but_must_be_numeric():
    assert validate_starting_balance("-100.5").record == Decimal("-100.50")
    assert errors_by_field(validate_starting_balance("lots")) == {"starting_balance": "invalid_amount"}


def test_parse_month_param():
    outcome = parse_month_param("2024-03")

    assert (outcome.record.year, outcome.record.month) == (2024, 3)
    assert errors_by_field(parse_month_param("2024-3")) == {"month": "invalid_value"}
    assert errors_by_field(parse_month_param("2024-13")) == {"month": "invalid_value"}


def test_budget_entry_blank_amount_means_zero():
    outcome = validate_budget_entry({"category": "Travel", "budget_amount": ""})

    assert outcome.record.budget_amount == Decimal("0")


def test_budget_entry_rules():
    assert errors_by_field(validate_budget_entry({"category": "Travel", "budget_amount": -1})) == {
        "budget_amount": "invalid_amount"
    }
    assert errors_by_field(validate_budget_entry({"category": "Rent", "budget_amount": 1})) == {
        "category": "invalid_enum"
    }
