"""
Validation orchestrator (``compliance_kernel.domain.orchestrator``).

Responsibility
--------------
Compose the four independent checks (customer eligibility, licence
coverage, thresholds, cross-border permits) over one immutable snapshot
into a single ``ValidationResult``.

Architecture position
---------------------
**Kernel domain layer** -- pure computation.  ZERO I/O.  The async
``TransactionComplianceService`` gathers the snapshot; this module only
decides.

Invariants enforced
-------------------
* Deterministic violation order: customer, lines by line number,
  thresholds, permits.
* Any Critical violation fails the transaction; ``requires_override`` holds
  only when every Critical violation is overridable.
* Lines without a substance code are skipped.
* Same snapshot, same result: nothing here reads a clock or a global.

Failure modes
-------------
* ``SubstanceNotFoundError`` when a line names a substance missing from
  the snapshot.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from compliance_kernel.domain.cross_border import check_cross_border_permits
from compliance_kernel.domain.customer import BusinessCategory, Customer
from compliance_kernel.domain.eligibility import (
    DEFAULT_GDP_SENSITIVE_CATEGORIES,
    check_customer_eligibility,
)
from compliance_kernel.domain.licence import Licence, PermittedActivity
from compliance_kernel.domain.licence_coverage import resolve_licence_coverage
from compliance_kernel.domain.substance import ControlledSubstance
from compliance_kernel.domain.threshold import Threshold
from compliance_kernel.domain.threshold_evaluator import evaluate_thresholds
from compliance_kernel.domain.transaction import (
    Transaction,
    TransactionType,
    UsageRecord,
)
from compliance_kernel.domain.violations import (
    LineOutcome,
    ValidationResult,
    ValidationViolation,
)
from compliance_kernel.exceptions import SubstanceNotFoundError

DEFAULT_REQUIRED_ACTIVITIES: dict[TransactionType, frozenset[PermittedActivity]] = {
    TransactionType.ORDER: frozenset({PermittedActivity.DISTRIBUTE}),
    TransactionType.SHIPMENT: frozenset({PermittedActivity.DISTRIBUTE}),
    TransactionType.RETURN: frozenset({PermittedActivity.POSSESS}),
    TransactionType.TRANSFER: frozenset({
        PermittedActivity.POSSESS,
        PermittedActivity.STORE,
    }),
}


@dataclass(frozen=True)
class ValidationPolicy:
    """Configurable rule inputs for the validator."""

    required_activities: Mapping[TransactionType, frozenset[PermittedActivity]] = (
        field(default_factory=lambda: dict(DEFAULT_REQUIRED_ACTIVITIES))
    )
    gdp_sensitive_categories: frozenset[BusinessCategory] = (
        DEFAULT_GDP_SENSITIVE_CATEGORIES
    )

    def activities_for(
        self, transaction_type: TransactionType
    ) -> frozenset[PermittedActivity]:
        return self.required_activities.get(
            transaction_type, frozenset({PermittedActivity.POSSESS})
        )


@dataclass(frozen=True)
class ValidationSnapshot:
    """Everything the validator needs, fetched once per validation."""

    transaction: Transaction
    customer: Customer
    licences: tuple[Licence, ...]
    thresholds: tuple[Threshold, ...]
    substances: Mapping[str, ControlledSubstance]
    history: tuple[UsageRecord, ...] = ()


class TransactionValidator:
    """
    Pure transaction validator.

    Contract:
        ``validate(snapshot)`` returns a ``ValidationResult`` and never
        touches the snapshot's transaction.

    Guarantees:
        - Idempotent: equal snapshots give equal results.
        - Violation order is stable across runs.

    Non-goals:
        Fetching data, persisting outcomes, recording timestamps.
    """

    def __init__(self, policy: ValidationPolicy | None = None):
        self._policy = policy or ValidationPolicy()

    @property
    def policy(self) -> ValidationPolicy:
        return self._policy

    def validate(self, snapshot: ValidationSnapshot) -> ValidationResult:
        tx = snapshot.transaction
        substances = self._resolve_substances(snapshot)

        violations: list[ValidationViolation] = []
        violations.extend(
            check_customer_eligibility(
                snapshot.customer, self._policy.gdp_sensitive_categories
            ).violations
        )

        required = self._policy.activities_for(tx.transaction_type)
        outcomes: list[LineOutcome] = []
        for line in sorted(tx.controlled_lines, key=lambda ln: ln.line_number):
            substance = substances[line.substance_code]
            resolution = resolve_licence_coverage(
                snapshot.licences,
                substance,
                required,
                tx.transaction_date,
                quantity=line.base_unit_quantity,
                line_number=line.line_number,
            )
            violations.extend(resolution.violations)
            licence = resolution.covering_licence
            outcomes.append(
                LineOutcome(
                    line_number=line.line_number,
                    substance_code=substance.code,
                    is_valid=resolution.is_covered,
                    error_code=(
                        None
                        if resolution.is_covered
                        else resolution.violations[0].code.value
                    ),
                    covering_licence_id=licence.licence_id if licence else None,
                    covering_licence_number=(
                        licence.licence_number if licence else None
                    ),
                )
            )

        for evaluation in evaluate_thresholds(
            snapshot.thresholds, snapshot.customer, tx, snapshot.history
        ):
            if evaluation.violation is not None:
                violations.append(evaluation.violation)

        violations.extend(
            check_cross_border_permits(tx, snapshot.licences, substances).violations
        )

        return ValidationResult.from_violations(
            tx.transaction_id, tuple(violations), tuple(outcomes)
        )

    @staticmethod
    def _resolve_substances(
        snapshot: ValidationSnapshot,
    ) -> dict[str, ControlledSubstance]:
        resolved: dict[str, ControlledSubstance] = {}
        for line in snapshot.transaction.controlled_lines:
            substance = snapshot.substances.get(line.substance_code)
            if substance is None:
                raise SubstanceNotFoundError(line.substance_code, line.line_number)
            resolved[line.substance_code] = substance
        return resolved
