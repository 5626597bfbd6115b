"""
Customer eligibility check (``compliance_kernel.domain.eligibility``).

Responsibility
--------------
Decide whether a customer may transact at all, before any licence or
threshold is considered.

Architecture position
---------------------
**Kernel domain layer** -- pure function.  ZERO I/O.

Invariants enforced
-------------------
* Suspension takes precedence over approval status: a suspended customer
  yields exactly one non-overridable ``CUSTOMER_SUSPENDED``.
* Conditional approval is informational and never blocks.
* Missing GDP qualification for GDP-sensitive categories is a warning.
"""

from __future__ import annotations

from dataclasses import dataclass

from compliance_kernel.domain.customer import (
    BusinessCategory,
    Customer,
    CustomerApprovalStatus,
)
from compliance_kernel.domain.violations import ValidationViolation, ViolationCode

DEFAULT_GDP_SENSITIVE_CATEGORIES: frozenset[BusinessCategory] = frozenset({
    BusinessCategory.WHOLESALER_EU,
    BusinessCategory.WHOLESALER_NON_EU,
    BusinessCategory.MANUFACTURER,
})


@dataclass(frozen=True)
class EligibilityVerdict:
    may_transact: bool
    violations: tuple[ValidationViolation, ...] = ()


def check_customer_eligibility(
    customer: Customer,
    gdp_sensitive_categories: frozenset[BusinessCategory] = (
        DEFAULT_GDP_SENSITIVE_CATEGORIES
    ),
) -> EligibilityVerdict:
    """Evaluate suspension, approval and GDP qualification in that order."""
    if customer.is_suspended:
        reason = customer.suspension_reason or "no reason recorded"
        return EligibilityVerdict(
            may_transact=False,
            violations=(
                ValidationViolation.of(
                    ViolationCode.CUSTOMER_SUSPENDED,
                    f"Customer {customer.business_name} is suspended: {reason}",
                ),
            ),
        )

    violations: list[ValidationViolation] = []
    status = customer.approval_status
    if status is CustomerApprovalStatus.CONDITIONALLY_APPROVED:
        violations.append(
            ValidationViolation.of(
                ViolationCode.CUSTOMER_CONDITIONALLY_APPROVED,
                f"Customer {customer.business_name} is conditionally approved",
            )
        )
    elif status is not CustomerApprovalStatus.APPROVED:
        violations.append(
            ValidationViolation.of(
                ViolationCode.CUSTOMER_NOT_APPROVED,
                f"Customer {customer.business_name} is not approved "
                f"(status: {status.value})",
            )
        )

    if (
        customer.business_category in gdp_sensitive_categories
        and not customer.is_gdp_qualified
    ):
        violations.append(
            ValidationViolation.of(
                ViolationCode.GDP_NOT_QUALIFIED,
                f"Customer {customer.business_name} GDP qualification is "
                f"{customer.gdp_qualification_status.value}",
            )
        )

    return EligibilityVerdict(
        may_transact=customer.can_transact,
        violations=tuple(violations),
    )
