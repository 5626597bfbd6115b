"""
compliance_kernel.services.override_service -- Override approval workflow.

Responsibility:
    Loads transactions from a ``TransactionStore``, enforces the configured
    justification rules, applies the pure override transitions from
    ``domain.override`` and saves the result under optimistic concurrency.

Architecture position:
    Kernel > Services.  May import from domain/, ports, exceptions and
    logging_config.

Invariants enforced:
    - Only the transitions in ``OVERRIDE_TRANSITIONS`` are persisted.
    - Approval justification meets ``OverridePolicy`` before anything is
      saved.
    - Every save passes the version the transaction was loaded with; a
      concurrent writer makes the second save fail.

Failure modes:
    - TransactionNotFoundError for unknown ids.
    - InvalidOverrideTransitionError when no override is pending.
    - InvalidOverrideRequestError for missing or short justification.
    - RevalidationNotAllowedError for an unjustified reset.
    - ConcurrencyConflictError on a stale version.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.override import (
    approve_override,
    reject_override,
    reset_for_revalidation,
)
from compliance_kernel.domain.transaction import Transaction
from compliance_kernel.exceptions import (
    InvalidOverrideRequestError,
    TransactionNotFoundError,
)
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_kernel.ports import TransactionStore

logger = get_logger("services.override")


@dataclass(frozen=True)
class OverridePolicy:
    """Justification rules for override approvals."""

    require_justification: bool = True
    min_justification_length: int = 20


class OverrideService:
    """Approves and rejects overrides of failed transactions."""

    def __init__(
        self,
        store: TransactionStore,
        policy: OverridePolicy | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._policy = policy or OverridePolicy()
        self._clock = clock or SystemClock()

    def _load(self, transaction_id: str) -> Transaction:
        tx = self._store.get(transaction_id)
        if tx is None:
            raise TransactionNotFoundError(transaction_id)
        return tx

    def _check_justification(self, transaction_id: str, justification: str) -> None:
        if not self._policy.require_justification:
            return
        text = (justification or "").strip()
        if not text:
            raise InvalidOverrideRequestError(
                transaction_id, "justification is required"
            )
        if len(text) < self._policy.min_justification_length:
            raise InvalidOverrideRequestError(
                transaction_id,
                f"justification must be at least "
                f"{self._policy.min_justification_length} characters",
            )

    def approve(
        self, transaction_id: str, approver: str, justification: str
    ) -> Transaction:
        with LogContext.bind(transaction_id=transaction_id, actor_id=approver):
            tx = self._load(transaction_id)
            updated = approve_override(tx, approver, justification, self._clock.now())
            self._check_justification(transaction_id, justification)
            saved = self._store.save(updated, expected_version=tx.version)
            logger.info(
                "override_approved",
                extra={
                    "violation_codes": list(tx.violation_codes),
                    "justification_length": len(justification.strip()),
                    "version": saved.version,
                },
            )
            return saved

    def reject(self, transaction_id: str, approver: str, reason: str) -> Transaction:
        with LogContext.bind(transaction_id=transaction_id, actor_id=approver):
            tx = self._load(transaction_id)
            updated = reject_override(tx, approver, reason, self._clock.now())
            saved = self._store.save(updated, expected_version=tx.version)
            logger.info(
                "override_rejected",
                extra={
                    "violation_codes": list(tx.violation_codes),
                    "version": saved.version,
                },
            )
            return saved

    def reset_for_revalidation(
        self, transaction_id: str, reason: str, actor: str
    ) -> Transaction:
        """Corrective re-validation: return a validated transaction to PENDING."""
        with LogContext.bind(transaction_id=transaction_id, actor_id=actor):
            tx = self._load(transaction_id)
            updated = reset_for_revalidation(tx, reason, actor)
            saved = self._store.save(updated, expected_version=tx.version)
            logger.warning(
                "transaction_reset_for_revalidation",
                extra={
                    "previous_status": tx.validation_status.value,
                    "previous_override_status": tx.override_status.value,
                    "reason": reason,
                    "revalidation_count": saved.revalidation_count,
                },
            )
            return saved

    def pending_overrides(self) -> Sequence[Transaction]:
        return self._store.pending_overrides()
