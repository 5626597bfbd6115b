"""
SQLAlchemy transaction store (``compliance_kernel.stores.sql_store``).

Responsibility:
    ``TransactionStore`` and ``TransactionHistoryLookup`` over a SQLAlchemy
    ``Session``.  Converts between ``TransactionModel`` rows and frozen
    ``Transaction`` values.

Architecture position:
    Kernel > Stores.  Implements ``ports.TransactionStore`` and
    ``ports.TransactionHistoryLookup``.  Flushes but never commits: the
    caller owns the unit of work (``db.engine.session_scope``).

Invariants enforced:
    - ``save`` compares ``expected_version`` with the loaded row and relies
      on the mapper version counter for the check at flush time, so two
      sessions saving the same version cannot both succeed.
    - Only completed transactions (Passed, ApprovedWithOverride) count as
      prior substance usage.

Failure modes:
    - DuplicateTransactionError from ``add`` for an existing id.
    - TransactionNotFoundError from ``save`` for an unknown id.
    - ConcurrencyConflictError from ``save`` on a stale version, whether
      detected before or during the flush.
    - ExternalSystemUnavailableError from the history queries when the
      database cannot be reached or the query fails.

Concurrency:
    The history methods are coroutines to satisfy the lookup port, but
    each runs its query synchronously on the session and blocks the event
    loop for its duration.  A session is not shared across threads.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date
from typing import Iterator, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from compliance_kernel.domain.transaction import (
    OverrideStatus,
    Transaction,
    UsageRecord,
)
from compliance_kernel.exceptions import (
    ConcurrencyConflictError,
    DuplicateTransactionError,
    ExternalSystemUnavailableError,
    TransactionNotFoundError,
)
from compliance_kernel.logging_config import get_logger
from compliance_kernel.models.transaction import (
    TransactionLineModel,
    TransactionModel,
)
from compliance_kernel.stores.memory import COMPLETED_STATUSES

logger = get_logger("stores.sql")

_COMPLETED = [status.value for status in COMPLETED_STATUSES]


@contextmanager
def _history_query(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.warning(
            "history_query_failed",
            extra={"operation": operation, "error_type": type(exc).__name__},
        )
        raise ExternalSystemUnavailableError(
            "history", operation, type(exc).__name__
        ) from exc


class SqlTransactionStore:
    """Transaction store and history lookup backed by a SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _row(self, transaction_id: str) -> TransactionModel | None:
        return self._session.execute(
            select(TransactionModel).where(
                TransactionModel.transaction_id == transaction_id
            )
        ).scalar_one_or_none()

    # TransactionStore

    def get(self, transaction_id: str) -> Transaction | None:
        row = self._row(transaction_id)
        return row.to_dto() if row is not None else None

    def add(self, transaction: Transaction) -> Transaction:
        if self._row(transaction.transaction_id) is not None:
            raise DuplicateTransactionError(transaction.transaction_id)
        row = TransactionModel.from_dto(transaction)
        self._session.add(row)
        self._session.flush()
        logger.debug(
            "transaction_stored",
            extra={"transaction_id": transaction.transaction_id, "version": row.version},
        )
        return row.to_dto()

    def save(self, transaction: Transaction, expected_version: int) -> Transaction:
        row = self._row(transaction.transaction_id)
        if row is None:
            raise TransactionNotFoundError(transaction.transaction_id)
        if row.version != expected_version:
            raise ConcurrencyConflictError(
                "Transaction",
                transaction.transaction_id,
                expected_version=expected_version,
                actual_version=row.version,
            )
        row.update_from_dto(transaction)
        # Every save bumps the version, even when no column value changed.
        flag_modified(row, "revalidation_count")
        try:
            self._session.flush()
        except StaleDataError as exc:
            logger.warning(
                "transaction_version_conflict",
                extra={
                    "transaction_id": transaction.transaction_id,
                    "expected_version": expected_version,
                },
            )
            raise ConcurrencyConflictError(
                "Transaction",
                transaction.transaction_id,
                expected_version=expected_version,
            ) from exc
        return row.to_dto()

    def pending_overrides(self) -> Sequence[Transaction]:
        rows = self._session.execute(
            select(TransactionModel)
            .where(
                TransactionModel.requires_override.is_(True),
                TransactionModel.override_status == OverrideStatus.PENDING.value,
            )
            .order_by(
                TransactionModel.transaction_date,
                TransactionModel.transaction_id,
            )
        ).scalars()
        return [row.to_dto() for row in rows]

    # TransactionHistoryLookup

    async def usage_for(
        self,
        customer_id: str,
        substance_code: str,
        start: date,
        end: date,
    ) -> Sequence[UsageRecord]:
        with _history_query("usage_for"):
            rows = self._session.execute(
                select(TransactionModel, TransactionLineModel)
                .join(TransactionLineModel, TransactionLineModel.transaction_pk == TransactionModel.id)
                .where(
                    TransactionModel.customer_id == customer_id,
                    TransactionModel.validation_status.in_(_COMPLETED),
                    TransactionModel.transaction_date >= start,
                    TransactionModel.transaction_date <= end,
                    func.lower(TransactionLineModel.substance_code)
                    == substance_code.lower(),
                )
                .order_by(
                    TransactionModel.transaction_date,
                    TransactionModel.transaction_id,
                    TransactionLineModel.line_number,
                )
            ).all()
        return [
            UsageRecord(
                transaction_id=tx.transaction_id,
                customer_id=tx.customer_id,
                substance_code=line.substance_code,
                transaction_date=tx.transaction_date,
                base_unit_quantity=line.base_unit_quantity,
                line_value=line.line_value,
            )
            for tx, line in rows
        ]

    async def transactions_for_customer(
        self, customer_id: str, start: date, end: date
    ) -> Sequence[Transaction]:
        with _history_query("transactions_for_customer"):
            rows = self._session.execute(
                select(TransactionModel)
                .where(
                    TransactionModel.customer_id == customer_id,
                    TransactionModel.transaction_date >= start,
                    TransactionModel.transaction_date <= end,
                )
                .order_by(TransactionModel.transaction_date, TransactionModel.transaction_id)
            ).scalars().all()
        return [row.to_dto() for row in rows]

    async def transactions_between(
        self, start: date, end: date
    ) -> Sequence[Transaction]:
        with _history_query("transactions_between"):
            rows = self._session.execute(
                select(TransactionModel)
                .where(
                    TransactionModel.transaction_date >= start,
                    TransactionModel.transaction_date <= end,
                )
                .order_by(TransactionModel.transaction_date, TransactionModel.transaction_id)
            ).scalars().all()
        return [row.to_dto() for row in rows]
