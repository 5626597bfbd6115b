"""
In-memory transaction store (``compliance_kernel.stores.memory``).

Responsibility:
    Dict-backed ``TransactionStore`` with optimistic concurrency, and the
    ``TransactionHistoryLookup`` derived from the same records.

Architecture position:
    Kernel > Stores.  Implements ``ports.TransactionStore`` and
    ``ports.TransactionHistoryLookup``.

Invariants enforced:
    - ``save`` succeeds only when ``expected_version`` equals the stored
      version; the check and the write happen under one lock.
    - Stored versions start at 1 and increase by one per save.
    - Only completed transactions (Passed, ApprovedWithOverride) count as
      prior substance usage.

Failure modes:
    - DuplicateTransactionError from ``add`` for an existing id.
    - TransactionNotFoundError from ``save`` for an unknown id.
    - ConcurrencyConflictError from ``save`` on a stale version.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date
from typing import Iterable, Sequence

from compliance_kernel.domain.transaction import (
    OverrideStatus,
    Transaction,
    UsageRecord,
    ValidationStatus,
)
from compliance_kernel.exceptions import (
    ConcurrencyConflictError,
    DuplicateTransactionError,
    TransactionNotFoundError,
)

COMPLETED_STATUSES: frozenset[ValidationStatus] = frozenset({
    ValidationStatus.PASSED,
    ValidationStatus.APPROVED_WITH_OVERRIDE,
})


def usage_records(
    transactions: Iterable[Transaction],
    customer_id: str,
    substance_code: str,
    start: date,
    end: date,
) -> list[UsageRecord]:
    """One usage record per matching line of each completed transaction."""
    wanted = substance_code.casefold()
    records = []
    for tx in transactions:
        if (
            tx.customer_id != customer_id
            or tx.validation_status not in COMPLETED_STATUSES
            or not (start <= tx.transaction_date <= end)
        ):
            continue
        for line in tx.controlled_lines:
            if line.substance_code.casefold() != wanted:
                continue
            records.append(
                UsageRecord(
                    transaction_id=tx.transaction_id,
                    customer_id=tx.customer_id,
                    substance_code=line.substance_code,
                    transaction_date=tx.transaction_date,
                    base_unit_quantity=line.base_unit_quantity,
                    line_value=line.line_value,
                )
            )
    return records


class InMemoryTransactionStore:
    """Transaction store and history lookup held in a dict."""

    def __init__(self, transactions: Iterable[Transaction] = ()) -> None:
        self._lock = threading.Lock()
        self._rows: dict[str, Transaction] = {}
        for tx in transactions:
            self.add(tx)

    # TransactionStore

    def get(self, transaction_id: str) -> Transaction | None:
        with self._lock:
            return self._rows.get(transaction_id)

    def add(self, transaction: Transaction) -> Transaction:
        with self._lock:
            if transaction.transaction_id in self._rows:
                raise DuplicateTransactionError(transaction.transaction_id)
            stored = replace(transaction, version=1)
            self._rows[transaction.transaction_id] = stored
            return stored

    def save(self, transaction: Transaction, expected_version: int) -> Transaction:
        with self._lock:
            current = self._rows.get(transaction.transaction_id)
            if current is None:
                raise TransactionNotFoundError(transaction.transaction_id)
            if current.version != expected_version:
                raise ConcurrencyConflictError(
                    "Transaction",
                    transaction.transaction_id,
                    expected_version=expected_version,
                    actual_version=current.version,
                )
            stored = replace(transaction, version=current.version + 1)
            self._rows[transaction.transaction_id] = stored
            return stored

    def pending_overrides(self) -> Sequence[Transaction]:
        with self._lock:
            rows = list(self._rows.values())
        return sorted(
            (
                tx
                for tx in rows
                if tx.requires_override
                and tx.override_status is OverrideStatus.PENDING
            ),
            key=lambda tx: (tx.transaction_date, tx.transaction_id),
        )

    # TransactionHistoryLookup

    def _snapshot(self) -> list[Transaction]:
        with self._lock:
            return list(self._rows.values())

    async def usage_for(
        self,
        customer_id: str,
        substance_code: str,
        start: date,
        end: date,
    ) -> Sequence[UsageRecord]:
        return usage_records(self._snapshot(), customer_id, substance_code, start, end)

    async def transactions_for_customer(
        self, customer_id: str, start: date, end: date
    ) -> Sequence[Transaction]:
        return [
            tx
            for tx in self._snapshot()
            if tx.customer_id == customer_id and start <= tx.transaction_date <= end
        ]

    async def transactions_between(
        self, start: date, end: date
    ) -> Sequence[Transaction]:
        return [
            tx for tx in self._snapshot() if start <= tx.transaction_date <= end
        ]
