"""Per-category budgets for a month."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Sequence

from sqlalchemy.exc import SQLAlchemyError

from monthly_ledger.errors import (
    empty_budget_set,
    not_found,
    store_failure,
    unauthorized,
    validation_failed,
)
from monthly_ledger.ledger_model import ZERO, ExpenseCategory, FieldError, LedgerResult
from monthly_ledger.observability.privacy import user_fingerprint
from monthly_ledger.persistence.repository import LedgerRepository
from monthly_ledger.validation import validate_budget_entry

logger = logging.getLogger(__name__)


class BudgetPlanner:
    def __init__(self, repository: LedgerRepository):
        self._repository = repository

    def set_budgets_for_month(
        self,
        user_id: str | None,
        month_id: str,
        entries: Sequence[Mapping[str, Any]],
    ) -> LedgerResult:
        """
        Upsert the submitted category budgets for the month.

        Entries with a zero or blank amount are dropped ("no budget set").
        Categories missing from the submission keep whatever is stored. When a
        category appears more than once the last entry wins.
        """

        if not user_id:
            return unauthorized()
        if isinstance(entries, (str, bytes, Mapping)) or not isinstance(entries, Sequence):
            return validation_failed([FieldError("budgets", "invalid_type", "Budgets must be a list of entries")])

        desired: Dict[ExpenseCategory, Decimal] = {}
        errors: List[FieldError] = []
        for index, raw_entry in enumerate(entries):
            outcome = validate_budget_entry(raw_entry)
            if not outcome.ok:
                errors.extend(
                    FieldError(f"budgets[{index}].{error.field}", error.reason, error.detail) for error in outcome.errors
                )
                continue
            desired[outcome.record.category] = outcome.record.budget_amount
        if errors:
            return validation_failed(errors)

        positive = {category: amount for category, amount in desired.items() if amount > ZERO}
        if not positive:
            return empty_budget_set()

        try:
            if self._repository.get_month(user_id, month_id) is None:
                return not_found("Month")
            saved = self._repository.upsert_budgets(user_id, month_id, positive)
        except SQLAlchemyError as exc:
            return store_failure(exc, event="set_budgets_for_month")

        logger.info(
            {
                "event": "budgets_set",
                "user": user_fingerprint(user_id),
                "month_id": month_id,
                "categories": [category.value for category in positive],
                "dropped": len(desired) - len(positive),
            }
        )
        return LedgerResult.success(saved)

    def list_budgets(self, user_id: str | None, month_id: str) -> LedgerResult:
        if not user_id:
            return unauthorized()
        try:
            if self._repository.get_month(user_id, month_id) is None:
                return not_found("Month")
            return LedgerResult.success(self._repository.list_budgets(user_id, month_id))
        except SQLAlchemyError as exc:
            return store_failure(exc, event="list_budgets")
