"""
Input validation for ledger entities.

Raw payloads (form posts, JSON bodies) are parsed into typed pydantic records.
Failures never raise out of this module; they are collected into FieldError
entries whose `reason` codes stay stable so the presentation layer can
highlight and localize the offending input.
"""

from __future__ import annotations

import datetime as dt
import re
import uuid
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Dict, List, Mapping, Optional, Type

from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError, ValidationInfo
from pydantic_core import PydanticCustomError

from monthly_ledger.ledger_model import (
    MAX_AMOUNT,
    ZERO,
    ExpenseCategory,
    FieldError,
    IncomeSourceType,
)

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_PARAM_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
CENT = Decimal("0.01")

ITEM_NAME_MAX_LENGTH = 200
NOTES_MAX_LENGTH = 500
CUSTOM_SOURCE_MAX_LENGTH = 200
MIN_YEAR = 2000
MAX_YEAR = 2100

REASON_CODES = frozenset(
    {
        "invalid_date",
        "invalid_amount",
        "invalid_enum",
        "invalid_length",
        "invalid_type",
        "invalid_value",
        "required",
    }
)
# Pydantic's built-in error types mapped onto the ledger's reason codes.
_REASON_BY_ERROR_TYPE = {
    "missing": "required",
    "string_type": "invalid_type",
    "model_type": "invalid_type",
    "dict_type": "invalid_type",
}


@dataclass
class ValidationOutcome:
    record: Any = None
    errors: List[FieldError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def _coerce_date(value: Any) -> dt.date:
    if isinstance(value, dt.datetime):
        raise PydanticCustomError("invalid_date", "Date must not include a time component")
    if isinstance(value, dt.date):
        return value
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise PydanticCustomError("invalid_date", "Date must use the YYYY-MM-DD format")
    try:
        return dt.date.fromisoformat(value)
    except ValueError:
        raise PydanticCustomError("invalid_date", "'{value}' is not a calendar date", {"value": value}) from None


def coerce_amount(value: Any, *, allow_zero: bool = False, allow_negative: bool = False) -> Decimal:
    """
    Normalize a numeric input into a two-decimal `Decimal`.

    Floats go through their shortest repr so 0.1 stays 0.1 instead of the
    binary expansion. Raises PydanticCustomError('invalid_amount') on any
    violation so it can be used directly inside validators.
    """

    if isinstance(value, bool) or value is None:
        raise PydanticCustomError("invalid_amount", "Amount must be a number")
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, float):
        amount = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            amount = Decimal(value.strip())
        except InvalidOperation:
            raise PydanticCustomError("invalid_amount", "Amount must be a number") from None
    else:
        raise PydanticCustomError("invalid_amount", "Amount must be a number")

    if not amount.is_finite():
        raise PydanticCustomError("invalid_amount", "Amount must be a finite number")
    if abs(amount) > MAX_AMOUNT:
        raise PydanticCustomError("invalid_amount", "Amount must not exceed {limit}", {"limit": str(MAX_AMOUNT)})
    if amount < ZERO and not allow_negative:
        raise PydanticCustomError("invalid_amount", "Amount must not be negative")
    if amount == ZERO and not (allow_zero or allow_negative):
        raise PydanticCustomError("invalid_amount", "Amount must be greater than zero")
    if amount != amount.quantize(CENT):
        raise PydanticCustomError("invalid_amount", "Amount must have at most two decimal places")
    return amount.quantize(CENT)


def _positive_amount(value: Any) -> Decimal:
    return coerce_amount(value)


def _balance_amount(value: Any) -> Decimal:
    return coerce_amount(value, allow_negative=True)


def _budget_amount(value: Any) -> Decimal:
    # Blank form inputs mean "no budget for this category".
    if value is None or (isinstance(value, str) and not value.strip()):
        return ZERO
    return coerce_amount(value, allow_zero=True)


def _coerce_enum(value: Any, enum_cls: Type[Any]) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise PydanticCustomError("invalid_enum", "Value must be one of: {allowed}", {"allowed": allowed}) from None


def _expense_category(value: Any) -> ExpenseCategory:
    return _coerce_enum(value, ExpenseCategory)


def _source_type(value: Any) -> IncomeSourceType:
    return _coerce_enum(value, IncomeSourceType)


def _bounded_text(value: Any, max_length: int, *, required: bool) -> Optional[str]:
    """Check length bounds; blank optional text collapses to None."""

    if value is None:
        if required:
            raise PydanticCustomError("required", "Field is required")
        return None
    if not isinstance(value, str):
        raise PydanticCustomError("invalid_type", "Field must be a string")
    if len(value) > max_length:
        raise PydanticCustomError(
            "invalid_length",
            "Must be at most {max_length} characters",
            {"max_length": max_length},
        )
    if not value.strip():
        if required:
            raise PydanticCustomError("required", "Field must not be blank")
        return None
    return value


def _item_name(value: Any) -> Optional[str]:
    return _bounded_text(value, ITEM_NAME_MAX_LENGTH, required=True)


def _notes(value: Any) -> Optional[str]:
    return _bounded_text(value, NOTES_MAX_LENGTH, required=False)


def _custom_source(value: Any, info: ValidationInfo) -> Optional[str]:
    # Only stored alongside source_type == Other; anything else is dropped unchecked.
    source_type = info.data.get("source_type")
    if source_type is not None and source_type != IncomeSourceType.OTHER:
        return None
    return _bounded_text(value, CUSTOM_SOURCE_MAX_LENGTH, required=False)


def _identifier(value: Any) -> str:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, str):
        try:
            return str(uuid.UUID(value.strip()))
        except ValueError:
            pass
    raise PydanticCustomError("invalid_value", "Identifier is not valid")


def _bounded_int(value: Any, lower: int, upper: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise PydanticCustomError("invalid_type", "Value must be an integer")
    if value < lower or value > upper:
        raise PydanticCustomError(
            "invalid_value",
            "Value must be between {lower} and {upper}",
            {"lower": lower, "upper": upper},
        )
    return value


def _year(value: Any) -> int:
    return _bounded_int(value, MIN_YEAR, MAX_YEAR)


def _month_number(value: Any) -> int:
    return _bounded_int(value, 1, 12)


# The validator wraps the Optional so an explicit null in an update payload is
# rejected while an absent key keeps the default without validation.
Identifier = Annotated[str, BeforeValidator(_identifier)]
EntryDate = Annotated[dt.date, BeforeValidator(_coerce_date)]
OptionalEntryDate = Annotated[Optional[dt.date], BeforeValidator(_coerce_date)]
Amount = Annotated[Decimal, BeforeValidator(_positive_amount)]
OptionalAmount = Annotated[Optional[Decimal], BeforeValidator(_positive_amount)]
ItemName = Annotated[str, BeforeValidator(_item_name)]
OptionalItemName = Annotated[Optional[str], BeforeValidator(_item_name)]
Category = Annotated[ExpenseCategory, BeforeValidator(_expense_category)]
OptionalCategory = Annotated[Optional[ExpenseCategory], BeforeValidator(_expense_category)]
SourceType = Annotated[IncomeSourceType, BeforeValidator(_source_type)]
OptionalSourceType = Annotated[Optional[IncomeSourceType], BeforeValidator(_source_type)]
Notes = Annotated[Optional[str], BeforeValidator(_notes)]
CustomSource = Annotated[Optional[str], BeforeValidator(_custom_source)]


class _LedgerInput(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class ExpenseInput(_LedgerInput):
    date: EntryDate
    amount: Amount
    item_name: ItemName
    category: Category
    notes: Notes = None


class CreateExpenseInput(ExpenseInput):
    month_id: Identifier


class _UpdateInput(_LedgerInput):
    """All fields optional except `id`; absent fields are left untouched."""

    id: Identifier

    def changes(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in sorted(self.model_fields_set) if name != "id"}


class UpdateExpenseInput(_UpdateInput):
    date: OptionalEntryDate = None
    amount: OptionalAmount = None
    item_name: OptionalItemName = None
    category: OptionalCategory = None
    notes: Notes = None


class IncomeInput(_LedgerInput):
    date: EntryDate
    amount: Amount
    source_type: SourceType
    custom_source: CustomSource = None
    notes: Notes = None


class CreateIncomeInput(IncomeInput):
    month_id: Identifier


class UpdateIncomeInput(_UpdateInput):
    date: OptionalEntryDate = None
    amount: OptionalAmount = None
    source_type: OptionalSourceType = None
    custom_source: CustomSource = None
    notes: Notes = None


class MonthInput(_LedgerInput):
    year: Annotated[int, BeforeValidator(_year)]
    month: Annotated[int, BeforeValidator(_month_number)]
    starting_balance: Annotated[Decimal, BeforeValidator(_balance_amount)] = ZERO


class BudgetEntryInput(_LedgerInput):
    category: Category
    budget_amount: Annotated[Decimal, BeforeValidator(_budget_amount)] = ZERO


def validate_expense(raw: Any) -> ValidationOutcome:
    return _validate(CreateExpenseInput, raw)


def validate_expense_update(raw: Any) -> ValidationOutcome:
    return _validate(UpdateExpenseInput, raw)


def validate_income(raw: Any) -> ValidationOutcome:
    return _check_custom_source_rule(_validate(CreateIncomeInput, raw), raw)


def validate_income_update(raw: Any) -> ValidationOutcome:
    return _check_custom_source_rule(_validate(UpdateIncomeInput, raw), raw)


def validate_month(raw: Any) -> ValidationOutcome:
    return _validate(MonthInput, raw)


def validate_starting_balance(value: Any) -> ValidationOutcome:
    try:
        return ValidationOutcome(record=_balance_amount(value))
    except PydanticCustomError as exc:
        return ValidationOutcome(errors=[FieldError("starting_balance", exc.type, exc.message())])


def validate_budget_entry(raw: Any) -> ValidationOutcome:
    return _validate(BudgetEntryInput, raw)


def parse_month_param(value: Any) -> ValidationOutcome:
    """Parse a `YYYY-MM` period string (e.g. from a URL) into a MonthInput."""

    match = MONTH_PARAM_PATTERN.match(value) if isinstance(value, str) else None
    if not match:
        return ValidationOutcome(
            errors=[FieldError("month", "invalid_value", "Month must use the YYYY-MM format")]
        )
    return validate_month({"year": int(match.group(1)), "month": int(match.group(2))})


def custom_source_error() -> FieldError:
    return FieldError(
        field="custom_source",
        reason="required",
        detail="A source name is required when the source type is 'Other'",
    )


def _check_custom_source_rule(outcome: ValidationOutcome, raw: Any) -> ValidationOutcome:
    """
    Enforce the Other => custom_source rule against the raw payload.

    Runs even when other fields failed so the caller sees every problem in a
    single round trip.
    """

    if not isinstance(raw, Mapping) or raw.get("source_type") != IncomeSourceType.OTHER.value:
        return outcome
    if any(error.field == "custom_source" for error in outcome.errors):
        return outcome
    custom_source = raw.get("custom_source")
    if isinstance(custom_source, str) and custom_source.strip():
        return outcome
    return ValidationOutcome(errors=[*outcome.errors, custom_source_error()])


def _validate(model_cls: Type[BaseModel], raw: Any) -> ValidationOutcome:
    if not isinstance(raw, Mapping):
        return ValidationOutcome(errors=[FieldError("__root__", "invalid_type", "Payload must be an object")])
    try:
        record = model_cls.model_validate(dict(raw))
    except ValidationError as exc:
        return ValidationOutcome(errors=_field_errors(exc))
    return ValidationOutcome(record=record)


def _field_errors(exc: ValidationError) -> List[FieldError]:
    errors: List[FieldError] = []
    for error in exc.errors():
        location = error.get("loc") or ()
        field_name = str(location[0]) if location else "__root__"
        reason = _REASON_BY_ERROR_TYPE.get(error["type"], error["type"])
        if reason not in REASON_CODES:
            reason = "invalid_value"
        errors.append(FieldError(field=field_name, reason=reason, detail=error["msg"]))
    return errors
