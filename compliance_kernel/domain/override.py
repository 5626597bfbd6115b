"""
Override workflow (``compliance_kernel.domain.override``).

Responsibility
--------------
The state machine a transaction follows after validation: record the
result, then let a compliance officer approve or reject an override of
overridable violations.  Also the explicit, audited reset used for
corrective re-validation.

Architecture position
---------------------
**Kernel domain layer** -- pure functions over frozen ``Transaction``
values.  ZERO I/O.  Timestamps are passed in by the caller.

Invariants enforced
-------------------
* ``OVERRIDE_TRANSITIONS`` defines the only valid override status
  transitions: None -> Pending -> Approved | Rejected.
* A validation result is applied only to a ``PENDING`` transaction.
* Approve and reject require ``requires_override`` and a pending override.
* Terminal: Passed, ApprovedWithOverride, RejectedOverride, and Failed
  without ``requires_override``.  Only ``reset_for_revalidation`` leaves
  them.

Failure modes
-------------
* ``TransactionAlreadyValidatedError`` -- result applied twice.
* ``InvalidOverrideTransitionError`` -- illegal approve/reject.
* ``InvalidOverrideRequestError`` -- blank approver or justification.
* ``RevalidationNotAllowedError`` -- reset of a pending transaction or
  without a reason.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from enum import Enum

from compliance_kernel.domain.transaction import (
    OverrideStatus,
    Transaction,
    TransactionLine,
    ValidationStatus,
)
from compliance_kernel.domain.violations import ValidationResult
from compliance_kernel.exceptions import (
    InvalidOverrideRequestError,
    InvalidOverrideTransitionError,
    RevalidationNotAllowedError,
    TransactionAlreadyValidatedError,
)


class OverrideAction(str, Enum):
    """Decision an officer can make on a pending override."""

    APPROVE = "approve"
    REJECT = "reject"


OVERRIDE_TRANSITIONS: dict[OverrideStatus, frozenset[OverrideStatus]] = {
    OverrideStatus.NONE: frozenset({OverrideStatus.PENDING}),
    OverrideStatus.PENDING: frozenset({
        OverrideStatus.APPROVED,
        OverrideStatus.REJECTED,
    }),
    OverrideStatus.APPROVED: frozenset(),
    OverrideStatus.REJECTED: frozenset(),
}

TERMINAL_VALIDATION_STATUSES: frozenset[ValidationStatus] = frozenset({
    ValidationStatus.PASSED,
    ValidationStatus.APPROVED_WITH_OVERRIDE,
    ValidationStatus.REJECTED_OVERRIDE,
})


def is_valid_override_transition(
    current: OverrideStatus, target: OverrideStatus
) -> bool:
    return target in OVERRIDE_TRANSITIONS.get(current, frozenset())


def is_terminal(tx: Transaction) -> bool:
    if tx.validation_status in TERMINAL_VALIDATION_STATUSES:
        return True
    return tx.validation_status is ValidationStatus.FAILED and not tx.requires_override


def _apply_line_outcomes(
    tx: Transaction, result: ValidationResult
) -> tuple[TransactionLine, ...]:
    by_number = {o.line_number: o for o in result.line_outcomes}
    lines = []
    for line in tx.lines:
        outcome = by_number.get(line.line_number)
        if outcome is None:
            lines.append(line)
            continue
        lines.append(
            replace(
                line,
                is_valid=outcome.is_valid,
                error_code=outcome.error_code,
                covering_licence_id=outcome.covering_licence_id,
                covering_licence_number=outcome.covering_licence_number,
            )
        )
    return tuple(lines)


def apply_validation_result(
    tx: Transaction,
    result: ValidationResult,
    at: datetime,
) -> Transaction:
    """Record a validation outcome on a pending transaction."""
    if tx.validation_status is not ValidationStatus.PENDING:
        raise TransactionAlreadyValidatedError(
            tx.transaction_id, tx.validation_status.value
        )
    return replace(
        tx,
        lines=_apply_line_outcomes(tx, result),
        validation_status=result.status,
        requires_override=result.requires_override,
        override_status=(
            OverrideStatus.PENDING if result.requires_override else OverrideStatus.NONE
        ),
        compliance_warnings=tuple(v.message for v in result.warnings),
        compliance_errors=tuple(v.message for v in result.critical_violations),
        violation_codes=result.codes,
        licences_used=result.licences_used,
        validated_at=at,
    )


def _check_decidable(
    tx: Transaction, action: OverrideAction, target: OverrideStatus
) -> None:
    if (
        not tx.requires_override
        or tx.validation_status is not ValidationStatus.FAILED
        or not is_valid_override_transition(tx.override_status, target)
    ):
        raise InvalidOverrideTransitionError(
            tx.transaction_id,
            action.value,
            tx.override_status.value,
            tx.requires_override,
        )


def _require_text(tx: Transaction, value: str | None, what: str) -> str:
    if value is None or not value.strip():
        raise InvalidOverrideRequestError(tx.transaction_id, f"{what} is required")
    return value.strip()


def approve_override(
    tx: Transaction,
    approver: str,
    justification: str,
    at: datetime,
) -> Transaction:
    _check_decidable(tx, OverrideAction.APPROVE, OverrideStatus.APPROVED)
    return replace(
        tx,
        validation_status=ValidationStatus.APPROVED_WITH_OVERRIDE,
        override_status=OverrideStatus.APPROVED,
        override_approver=_require_text(tx, approver, "approver"),
        override_justification=_require_text(tx, justification, "justification"),
        override_decided_at=at,
    )


def reject_override(
    tx: Transaction,
    approver: str,
    reason: str,
    at: datetime,
) -> Transaction:
    _check_decidable(tx, OverrideAction.REJECT, OverrideStatus.REJECTED)
    return replace(
        tx,
        validation_status=ValidationStatus.REJECTED_OVERRIDE,
        override_status=OverrideStatus.REJECTED,
        override_approver=_require_text(tx, approver, "approver"),
        override_justification=_require_text(tx, reason, "rejection reason"),
        override_decided_at=at,
    )


def reset_for_revalidation(tx: Transaction, reason: str, actor: str) -> Transaction:
    """Return a validated transaction to ``PENDING`` for corrective re-validation."""
    if tx.validation_status is ValidationStatus.PENDING:
        raise RevalidationNotAllowedError(
            tx.transaction_id, "transaction has not been validated"
        )
    if not reason or not reason.strip():
        raise RevalidationNotAllowedError(tx.transaction_id, "a reason is required")
    if not actor or not actor.strip():
        raise RevalidationNotAllowedError(tx.transaction_id, "an actor is required")
    return replace(
        tx,
        lines=tuple(
            replace(
                line,
                is_valid=False,
                error_code=None,
                covering_licence_id=None,
                covering_licence_number=None,
            )
            for line in tx.lines
        ),
        validation_status=ValidationStatus.PENDING,
        requires_override=False,
        override_status=OverrideStatus.NONE,
        override_approver=None,
        override_justification=None,
        override_decided_at=None,
        compliance_warnings=(),
        compliance_errors=(),
        violation_codes=(),
        licences_used=(),
        validated_at=None,
        revalidation_count=tx.revalidation_count + 1,
    )
