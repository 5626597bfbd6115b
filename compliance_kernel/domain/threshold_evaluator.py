"""
Threshold evaluation (``compliance_kernel.domain.threshold_evaluator``).

Responsibility
--------------
Compare a transaction's consumption of each controlled substance, plus the
customer's prior consumption in the threshold period, against every
applicable threshold.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.  Prior usage arrives
as ``UsageRecord`` values fetched by the service layer.

Invariants enforced
-------------------
* Usage records belonging to the transaction under validation are ignored,
  so validating the same transaction twice gives the same usage.
* Exceeding a limit is strictly ``usage > limit``; the warning band is
  inclusive on both ends.
* An exceeded threshold is overridable only when it allows override and
  the usage stays within the hard override ceiling.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from compliance_kernel.domain.customer import Customer
from compliance_kernel.domain.licence import PeriodType
from compliance_kernel.domain.threshold import Threshold, ThresholdType, period_window
from compliance_kernel.domain.transaction import Transaction, UsageRecord
from compliance_kernel.domain.violations import ValidationViolation, ViolationCode


@dataclass(frozen=True)
class ThresholdEvaluation:
    """Usage measured against one threshold for one substance."""

    threshold: Threshold
    substance_code: str
    usage: Decimal
    usage_percent: Decimal
    violation: ValidationViolation | None = None


def select_applicable_thresholds(
    thresholds: Iterable[Threshold],
    customer: Customer,
    substance_code: str,
    on: date,
) -> list[Threshold]:
    selected = [
        t
        for t in thresholds
        if t.is_effective(on)
        and t.applies_to_customer(customer.customer_id, customer.business_category)
        and t.applies_to_substance(substance_code)
    ]
    return sorted(selected, key=lambda t: (t.name, t.threshold_id))


def history_window(
    thresholds: Iterable[Threshold],
    on: date,
) -> tuple[date, date] | None:
    """Smallest interval covering every accumulating threshold's period."""
    windows = [
        period_window(t.period, on)
        for t in thresholds
        if t.period is not PeriodType.PER_TRANSACTION
    ]
    if not windows:
        return None
    return min(w[0] for w in windows), max(w[1] for w in windows)


def _prior_records(
    history: Sequence[UsageRecord],
    transaction: Transaction,
    substance_code: str,
    window: tuple[date, date],
) -> list[UsageRecord]:
    start, end = window
    wanted = substance_code.casefold()
    return [
        r
        for r in history
        if r.transaction_id != transaction.transaction_id
        and r.customer_id == transaction.customer_id
        and r.substance_code.casefold() == wanted
        and start <= r.transaction_date <= end
    ]


def compute_usage(
    threshold: Threshold,
    transaction: Transaction,
    substance_code: str,
    history: Sequence[UsageRecord] = (),
) -> Decimal:
    """Total usage for ``threshold`` including this transaction."""
    wanted = substance_code.casefold()
    lines = [
        line
        for line in transaction.controlled_lines
        if line.substance_code.casefold() == wanted
    ]
    prior: list[UsageRecord] = []
    if threshold.period is not PeriodType.PER_TRANSACTION:
        window = period_window(threshold.period, transaction.transaction_date)
        prior = _prior_records(history, transaction, substance_code, window)

    if threshold.threshold_type is ThresholdType.FREQUENCY:
        return Decimal(1 + len({r.transaction_id for r in prior}))
    if threshold.threshold_type is ThresholdType.VALUE:
        return sum((line.line_value for line in lines), Decimal("0")) + sum(
            (r.line_value for r in prior), Decimal("0")
        )
    return sum((line.base_unit_quantity for line in lines), Decimal("0")) + sum(
        (r.base_unit_quantity for r in prior), Decimal("0")
    )


def evaluate_threshold(
    threshold: Threshold,
    transaction: Transaction,
    substance_code: str,
    history: Sequence[UsageRecord] = (),
) -> ThresholdEvaluation:
    usage = compute_usage(threshold, transaction, substance_code, history)
    percent = threshold.get_usage_percent(usage)
    context = dict(
        substance_code=substance_code,
        threshold_id=threshold.threshold_id,
        limit_value=threshold.limit_value,
        usage=usage,
        period=threshold.period.value,
    )

    violation = None
    if threshold.is_exceeded(usage):
        can_override = threshold.allow_override and not threshold.exceeds_max_override(
            usage
        )
        violation = ValidationViolation.of(
            ViolationCode.THRESHOLD_EXCEEDED,
            f"{threshold.name}: usage {usage} {threshold.limit_unit} exceeds "
            f"limit {threshold.limit_value} ({percent:.1f}%)",
            can_override=can_override,
            **context,
        )
    elif threshold.is_warning(usage):
        violation = ValidationViolation.of(
            ViolationCode.THRESHOLD_WARNING,
            f"{threshold.name}: usage {usage} {threshold.limit_unit} is at "
            f"{percent:.1f}% of limit {threshold.limit_value}",
            **context,
        )

    return ThresholdEvaluation(
        threshold=threshold,
        substance_code=substance_code,
        usage=usage,
        usage_percent=percent,
        violation=violation,
    )


def distinct_substance_codes(transaction: Transaction) -> tuple[str, ...]:
    """Substance codes in line order, ignoring case; first spelling wins.

    Usage is summed case-insensitively, so "morph" and "MORPH" lines are
    one substance for threshold purposes.
    """
    seen: dict[str, str] = {}
    for code in transaction.substance_codes:
        seen.setdefault(code.casefold(), code)
    return tuple(seen.values())


def evaluate_thresholds(
    thresholds: Sequence[Threshold],
    customer: Customer,
    transaction: Transaction,
    history: Sequence[UsageRecord] = (),
) -> tuple[ThresholdEvaluation, ...]:
    """Evaluate every applicable threshold for every substance in order."""
    evaluations: list[ThresholdEvaluation] = []
    for code in distinct_substance_codes(transaction):
        for threshold in select_applicable_thresholds(
            thresholds, customer, code, transaction.transaction_date
        ):
            evaluations.append(
                evaluate_threshold(threshold, transaction, code, history)
            )
    return tuple(evaluations)
