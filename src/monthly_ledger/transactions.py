"""
Income and expense entries.

Both kinds share one code path keyed by TransactionKind. Amounts are always
stored positive; whether an entry adds to or subtracts from the balance
follows from its kind alone.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Mapping

from sqlalchemy.exc import SQLAlchemyError

from monthly_ledger.compute_summary import group_by_category, total_of
from monthly_ledger.errors import not_found, store_failure, unauthorized, validation_failed
from monthly_ledger.ledger_model import IncomeSourceType, LedgerResult, TransactionKind
from monthly_ledger.months import Clock
from monthly_ledger.observability.privacy import redact_fields, user_fingerprint
from monthly_ledger.persistence.models import utcnow
from monthly_ledger.persistence.repository import LedgerRepository, Transaction
from monthly_ledger.validation import (
    ValidationOutcome,
    custom_source_error,
    validate_expense,
    validate_expense_update,
    validate_income,
    validate_income_update,
)

logger = logging.getLogger(__name__)

# Keys that are safe to keep verbatim when logging a rejected payload.
SAFE_LOG_KEYS = frozenset({"id", "month_id", "date", "category", "source_type"})

_CREATE_VALIDATORS: Dict[TransactionKind, Callable[[Any], ValidationOutcome]] = {
    TransactionKind.EXPENSE: validate_expense,
    TransactionKind.INCOME: validate_income,
}
_UPDATE_VALIDATORS: Dict[TransactionKind, Callable[[Any], ValidationOutcome]] = {
    TransactionKind.EXPENSE: validate_expense_update,
    TransactionKind.INCOME: validate_income_update,
}
_ENTITY_LABELS = {
    TransactionKind.EXPENSE: "Expense",
    TransactionKind.INCOME: "Income",
}


class TransactionLedger:
    def __init__(self, repository: LedgerRepository, *, clock: Clock = utcnow):
        self._repository = repository
        self._clock = clock

    def create(self, user_id: str | None, kind: TransactionKind | str, raw: Mapping[str, Any]) -> LedgerResult:
        """Validate `raw` and insert it into the live month named by `raw['month_id']`."""

        if not user_id:
            return unauthorized()
        kind = TransactionKind(kind)
        outcome = _CREATE_VALIDATORS[kind](raw)
        if not outcome.ok:
            _log_rejected("transaction_create_rejected", kind, raw, outcome)
            return validation_failed(outcome.errors)

        values = outcome.record.model_dump()
        values["user_id"] = user_id
        values["created_at"] = self._clock()
        try:
            if self._repository.get_month(user_id, values["month_id"]) is None:
                return not_found("Month")
            created = self._repository.insert_transaction(kind, values)
        except SQLAlchemyError as exc:
            return store_failure(exc, event=f"create_{kind.value}")

        logger.info(
            {
                "event": "transaction_created",
                "kind": kind.value,
                "user": user_fingerprint(user_id),
                "transaction_id": created.id,
                "month_id": created.month_id,
            }
        )
        return LedgerResult.success(created)

    def update(self, user_id: str | None, kind: TransactionKind | str, raw: Mapping[str, Any]) -> LedgerResult:
        """
        Apply the fields present in `raw` to the entry `raw['id']`.

        Blank notes / custom_source clear the stored value. Income updates that
        touch source_type or custom_source are re-checked against the stored
        row, so blanking the source name of an 'Other' entry is rejected.
        """

        if not user_id:
            return unauthorized()
        kind = TransactionKind(kind)
        outcome = _UPDATE_VALIDATORS[kind](raw)
        if not outcome.ok:
            _log_rejected("transaction_update_rejected", kind, raw, outcome)
            return validation_failed(outcome.errors)

        record = outcome.record
        changes = record.changes()
        try:
            existing = self._repository.get_transaction(kind, user_id, record.id)
            if existing is None or self._repository.get_month(user_id, existing.month_id) is None:
                return not_found(_ENTITY_LABELS[kind])

            if kind == TransactionKind.INCOME and ({"source_type", "custom_source"} & changes.keys()):
                source_type = changes.get("source_type", existing.source_type)
                if source_type == IncomeSourceType.OTHER:
                    custom_source = changes.get("custom_source", existing.custom_source)
                    if not custom_source:
                        return validation_failed([custom_source_error()])
                else:
                    changes["custom_source"] = None

            if not changes:
                return LedgerResult.success(existing)
            updated = self._repository.update_transaction(kind, user_id, record.id, changes)
        except SQLAlchemyError as exc:
            return store_failure(exc, event=f"update_{kind.value}")
        if updated is None:
            return not_found(_ENTITY_LABELS[kind])

        logger.info(
            {
                "event": "transaction_updated",
                "kind": kind.value,
                "user": user_fingerprint(user_id),
                "transaction_id": updated.id,
                "fields": sorted(changes),
            }
        )
        return LedgerResult.success(updated)

    def soft_delete(self, user_id: str | None, kind: TransactionKind | str, transaction_id: str) -> LedgerResult:
        """
        Stamp `deleted_at`; repeating the call on a deleted entry is a no-op success.

        Entries of a deleted month are unreachable and report not_found.
        """

        if not user_id:
            return unauthorized()
        kind = TransactionKind(kind)
        try:
            existing = self._repository.get_transaction(kind, user_id, transaction_id, include_deleted=True)
            if existing is None or self._repository.get_month(user_id, existing.month_id) is None:
                return not_found(_ENTITY_LABELS[kind])
            if existing.deleted_at is None:
                self._repository.mark_transaction_deleted(kind, user_id, transaction_id, self._clock())
        except SQLAlchemyError as exc:
            return store_failure(exc, event=f"delete_{kind.value}")

        logger.info(
            {
                "event": "transaction_deleted",
                "kind": kind.value,
                "user": user_fingerprint(user_id),
                "transaction_id": transaction_id,
                "already_deleted": existing.deleted_at is not None,
            }
        )
        return LedgerResult.success({"id": transaction_id, "deleted": True})

    def list_by_month(self, user_id: str | None, kind: TransactionKind | str, month_id: str) -> LedgerResult:
        """Live entries of `kind` in the month, newest date first, then newest entry first."""

        if not user_id:
            return unauthorized()
        kind = TransactionKind(kind)
        try:
            if self._repository.get_month(user_id, month_id) is None:
                return not_found("Month")
            entries = self._repository.list_transactions(kind, user_id, month_id)
        except SQLAlchemyError as exc:
            return store_failure(exc, event=f"list_{kind.value}")
        return LedgerResult.success(entries)

    def total_for_month(self, user_id: str | None, kind: TransactionKind | str, month_id: str) -> LedgerResult:
        listed = self.list_by_month(user_id, kind, month_id)
        if not listed.ok:
            return listed
        return LedgerResult.success(total_of(listed.data))

    def expenses_by_category(self, user_id: str | None, month_id: str) -> LedgerResult:
        listed = self.list_by_month(user_id, TransactionKind.EXPENSE, month_id)
        if not listed.ok:
            return listed
        return LedgerResult.success(group_by_category(listed.data))


def _log_rejected(event: str, kind: TransactionKind, raw: Any, outcome: ValidationOutcome) -> None:
    payload = redact_fields(raw, SAFE_LOG_KEYS) if isinstance(raw, Mapping) else None
    logger.info(
        {
            "event": event,
            "kind": kind.value,
            "fields": [error.field for error in outcome.errors],
            "payload": payload,
        }
    )


__all__ = ["Transaction", "TransactionLedger"]
