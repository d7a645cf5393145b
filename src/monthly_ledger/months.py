"""
Month lifecycle: get-or-create, starting balance edits, soft deletion.

A month is created lazily the first time a user opens a (year, month). Two
requests racing to open the same period are reconciled through the store's
unique index on live months rather than an in-process lock: the loser of the
insert re-reads and returns the winner's row.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError

from monthly_ledger.errors import not_found, store_failure, unauthorized, validation_failed
from monthly_ledger.ledger_model import ZERO, ErrorKind, LedgerResult
from monthly_ledger.observability.privacy import user_fingerprint
from monthly_ledger.persistence.models import utcnow
from monthly_ledger.persistence.repository import LedgerRepository, MonthConflictError
from monthly_ledger.validation import validate_month, validate_starting_balance

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class MonthLifecycleManager:
    def __init__(self, repository: LedgerRepository, *, clock: Clock = utcnow):
        self._repository = repository
        self._clock = clock

    def get_or_create_month(self, user_id: str | None, year: Any, month: Any) -> LedgerResult:
        """
        Return the user's live month for (year, month), creating it when absent.

        New months start with a zero balance. A uniqueness conflict on insert
        means a concurrent request created the row first; that row is returned.
        """

        if not user_id:
            return unauthorized()
        outcome = validate_month({"year": year, "month": month})
        if not outcome.ok:
            return validation_failed(outcome.errors)
        period = outcome.record

        try:
            existing = self._repository.find_month(user_id, period.year, period.month)
            if existing is not None:
                return LedgerResult.success(existing)

            try:
                created = self._repository.insert_month(
                    user_id,
                    period.year,
                    period.month,
                    starting_balance=ZERO,
                    created_at=self._clock(),
                )
            except MonthConflictError:
                winner = self._repository.find_month(user_id, period.year, period.month)
                if winner is None:
                    logger.error(
                        {
                            "event": "month_conflict_unresolved",
                            "user": user_fingerprint(user_id),
                            "period": f"{period.year:04d}-{period.month:02d}",
                        }
                    )
                    return LedgerResult.failure(
                        ErrorKind.STORE_ERROR,
                        "The month could not be created. Please retry.",
                    )
                logger.info(
                    {
                        "event": "month_conflict_resolved",
                        "user": user_fingerprint(user_id),
                        "month_id": winner.id,
                    }
                )
                return LedgerResult.success(winner)
        except SQLAlchemyError as exc:
            return store_failure(exc, event="get_or_create_month")

        logger.info(
            {
                "event": "month_created",
                "user": user_fingerprint(user_id),
                "month_id": created.id,
                "period": created.period,
            }
        )
        return LedgerResult.success(created)

    def get_month(self, user_id: str | None, month_id: str) -> LedgerResult:
        if not user_id:
            return unauthorized()
        try:
            month = self._repository.get_month(user_id, month_id)
        except SQLAlchemyError as exc:
            return store_failure(exc, event="get_month")
        if month is None:
            return not_found("Month")
        return LedgerResult.success(month)

    def list_months(self, user_id: str | None) -> LedgerResult:
        """Live months for the user, newest period first."""

        if not user_id:
            return unauthorized()
        try:
            return LedgerResult.success(self._repository.list_months(user_id))
        except SQLAlchemyError as exc:
            return store_failure(exc, event="list_months")

    def update_starting_balance(self, user_id: str | None, month_id: str, starting_balance: Any) -> LedgerResult:
        if not user_id:
            return unauthorized()
        outcome = validate_starting_balance(starting_balance)
        if not outcome.ok:
            return validation_failed(outcome.errors)

        try:
            updated = self._repository.update_month_balance(user_id, month_id, outcome.record)
        except SQLAlchemyError as exc:
            return store_failure(exc, event="update_starting_balance")
        if updated is None:
            return not_found("Month")

        logger.info(
            {
                "event": "month_starting_balance_updated",
                "user": user_fingerprint(user_id),
                "month_id": month_id,
            }
        )
        return LedgerResult.success(updated)

    def soft_delete_month(self, user_id: str | None, month_id: str) -> LedgerResult:
        """
        Hide the month. Its transactions and budgets are kept in storage but
        become unreachable, since every month-scoped operation requires a live
        month.
        """

        if not user_id:
            return unauthorized()
        try:
            month = self._repository.get_month(user_id, month_id, include_deleted=True)
            if month is None:
                return not_found("Month")
            if month.deleted_at is None:
                self._repository.mark_month_deleted(user_id, month_id, self._clock())
        except SQLAlchemyError as exc:
            return store_failure(exc, event="soft_delete_month")

        logger.info(
            {
                "event": "month_deleted",
                "user": user_fingerprint(user_id),
                "month_id": month_id,
            }
        )
        return LedgerResult.success({"id": month_id, "deleted": True})


__all__ = ["Clock", "MonthLifecycleManager"]
