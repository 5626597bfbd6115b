"""
Retroactive licence-correction impact (``compliance_kernel.domain.impact``).

Responsibility
--------------
When a licence's effective or expiry date is corrected after the fact,
work out which historical transactions would have had a different
compliance outcome, and how serious each difference is.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.  The async
``LicenceCorrectionImpactService`` fetches the licence and transactions.

Invariants enforced
-------------------
* Uses the same effective-date test as coverage resolution
  (``is_licence_effective_on``).
* Read-only: transactions are never changed, only reported.
* Unchanged transactions are omitted from the report.
* Severity: approved-then-invalid is Critical, blocked-then-valid is Major,
  an unnecessary override is Minor.  Critical and Major require review.

Audit relevance
---------------
The report is the evidence trail for a regulator notification: each item
carries its before/after status and a human-readable explanation.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable

from compliance_kernel.domain.licence import Licence, is_licence_effective_on
from compliance_kernel.domain.transaction import Transaction, ValidationStatus
from compliance_kernel.domain.violations import (
    LICENCE_DATING_CODES,
    ViolationCode,
    ViolationSeverity,
)


class ImpactSeverity(str, Enum):
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


_APPROVED_STATUSES = frozenset({
    ValidationStatus.PASSED,
    ValidationStatus.APPROVED_WITH_OVERRIDE,
})


@dataclass(frozen=True)
class LicenceCorrection:
    """A correction to a licence's validity dates."""

    licence_id: str
    correction_date: date
    original_effective_date: date | None = None
    corrected_effective_date: date | None = None
    original_expiry_date: date | None = None
    corrected_expiry_date: date | None = None
    reason: str = ""


@dataclass(frozen=True)
class TransactionImpact:
    transaction_id: str
    external_id: str
    customer_id: str
    transaction_date: date
    status_before: ValidationStatus
    status_after: ValidationStatus
    severity: ImpactSeverity
    explanation: str
    used_licence: bool = False

    @property
    def requires_review(self) -> bool:
        return self.severity in (ImpactSeverity.CRITICAL, ImpactSeverity.MAJOR)


@dataclass(frozen=True)
class ImpactReport:
    licence_id: str
    licence_number: str
    correction: LicenceCorrection
    window_start: date
    window_end: date
    transactions_analyzed: int
    impacts: tuple[TransactionImpact, ...] = ()

    def _count(self, severity: ImpactSeverity) -> int:
        return sum(1 for i in self.impacts if i.severity is severity)

    @property
    def affected_count(self) -> int:
        return len(self.impacts)

    @property
    def critical_count(self) -> int:
        return self._count(ImpactSeverity.CRITICAL)

    @property
    def major_count(self) -> int:
        return self._count(ImpactSeverity.MAJOR)

    @property
    def minor_count(self) -> int:
        return self._count(ImpactSeverity.MINOR)

    @property
    def requires_review_count(self) -> int:
        return sum(1 for i in self.impacts if i.requires_review)


def correction_window(
    licence: Licence, correction: LicenceCorrection
) -> tuple[date, date]:
    """Earliest effective date in play through the correction date."""
    starts = [
        d
        for d in (correction.original_effective_date, correction.corrected_effective_date)
        if d is not None
    ]
    start = min(starts) if starts else licence.issue_date
    return start, correction.correction_date


def corrected_dates(
    licence: Licence, correction: LicenceCorrection
) -> tuple[date, date | None]:
    effective = correction.corrected_effective_date or licence.issue_date
    expiry = (
        correction.corrected_expiry_date
        if correction.corrected_expiry_date is not None
        else licence.expiry_date
    )
    return effective, expiry


def _blocking_codes(tx: Transaction) -> set[str]:
    """Recorded codes that are Critical; warnings and info codes never block."""
    known = {c.value: c for c in ViolationCode}
    return {
        code
        for code in tx.violation_codes
        if code not in known
        or known[code].default_severity is ViolationSeverity.CRITICAL
    }


def _only_dating_codes(tx: Transaction) -> bool:
    return _blocking_codes(tx) <= LICENCE_DATING_CODES


def corrected_status(
    tx: Transaction, licence: Licence, correction: LicenceCorrection
) -> ValidationStatus:
    effective, expiry = corrected_dates(licence, correction)
    would_be_valid = is_licence_effective_on(effective, expiry, tx.transaction_date)
    status = tx.validation_status

    if status is ValidationStatus.FAILED and would_be_valid and _only_dating_codes(tx):
        return ValidationStatus.PASSED
    if status in _APPROVED_STATUSES and not would_be_valid:
        return ValidationStatus.FAILED
    if (
        status is ValidationStatus.APPROVED_WITH_OVERRIDE
        and would_be_valid
        and _only_dating_codes(tx)
    ):
        return ValidationStatus.PASSED
    return status


def impact_severity(
    before: ValidationStatus, after: ValidationStatus
) -> ImpactSeverity:
    if before in _APPROVED_STATUSES and after is ValidationStatus.FAILED:
        return ImpactSeverity.CRITICAL
    if before is ValidationStatus.FAILED and after in _APPROVED_STATUSES:
        return ImpactSeverity.MAJOR
    return ImpactSeverity.MINOR


def _explain(
    tx: Transaction,
    licence: Licence,
    correction: LicenceCorrection,
    before: ValidationStatus,
    after: ValidationStatus,
    used_licence: bool,
) -> str:
    parts = [
        f"Transaction date: {tx.transaction_date.isoformat()}",
        f"Licence: {licence.licence_number}",
    ]
    if correction.original_effective_date and correction.corrected_effective_date:
        parts.append(
            f"Effective date changed: {correction.original_effective_date} -> "
            f"{correction.corrected_effective_date}"
        )
    if correction.original_expiry_date and correction.corrected_expiry_date:
        parts.append(
            f"Expiry date changed: {correction.original_expiry_date} -> "
            f"{correction.corrected_expiry_date}"
        )
    parts.append(f"Status change: {before.value} -> {after.value}")
    if used_licence:
        parts.append("This licence was used to authorise the transaction")
    if after is ValidationStatus.FAILED:
        parts.append(
            "CRITICAL: transaction was approved but the licence was not valid "
            "on the transaction date"
        )
    elif before is ValidationStatus.FAILED:
        parts.append(
            "Transaction was blocked but the licence was valid on the "
            "transaction date"
        )
    else:
        parts.append("Override was unnecessary; the licence was valid")
    return "; ".join(parts)


def analyze_transaction(
    tx: Transaction, licence: Licence, correction: LicenceCorrection
) -> TransactionImpact | None:
    """Impact on one transaction, or None when its outcome is unchanged."""
    before = tx.validation_status
    after = corrected_status(tx, licence, correction)
    if before is after:
        return None
    used_licence = licence.licence_number in tx.licences_used
    return TransactionImpact(
        transaction_id=tx.transaction_id,
        external_id=tx.external_id,
        customer_id=tx.customer_id,
        transaction_date=tx.transaction_date,
        status_before=before,
        status_after=after,
        severity=impact_severity(before, after),
        explanation=_explain(tx, licence, correction, before, after, used_licence),
        used_licence=used_licence,
    )


def analyze_licence_correction(
    licence: Licence,
    correction: LicenceCorrection,
    transactions: Iterable[Transaction],
) -> ImpactReport:
    start, end = correction_window(licence, correction)
    in_window = sorted(
        (tx for tx in transactions if start <= tx.transaction_date <= end),
        key=lambda tx: (tx.transaction_date, tx.transaction_id),
    )
    impacts = []
    for tx in in_window:
        impact = analyze_transaction(tx, licence, correction)
        if impact is not None:
            impacts.append(impact)
    return ImpactReport(
        licence_id=licence.licence_id,
        licence_number=licence.licence_number,
        correction=correction,
        window_start=start,
        window_end=end,
        transactions_analyzed=len(in_window),
        impacts=tuple(impacts),
    )
