"""
Licence coverage resolution (``compliance_kernel.domain.licence_coverage``).

Responsibility
--------------
Given the licences available to a transaction (customer-held and
company-held), find one that legally covers a substance for the required
activities on the transaction date, or explain why none does.

Architecture position
---------------------
**Kernel domain layer** -- pure function.  ZERO I/O.  Reused by the
cross-border permit check with permit-kind licences as candidates.

Invariants enforced
-------------------
* A licence is usable only if it is not suspended or revoked, is effective
  on the date (``is_licence_effective_on``), permits every required
  activity, and its mapping cap (if any) admits the line quantity.
* When several licences are usable, the one expiring soonest is chosen
  (no expiry sorts last, ties broken by licence number).
* Every violation emitted here is Critical and overridable.

Failure modes
-------------
None.  Findings are returned, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from compliance_kernel.domain.licence import (
    Licence,
    LicenceStatus,
    PermittedActivity,
    is_licence_effective_on,
)
from compliance_kernel.domain.substance import ControlledSubstance
from compliance_kernel.domain.violations import ValidationViolation, ViolationCode


@dataclass(frozen=True)
class CoverageResolution:
    """Result of resolving coverage for one substance."""

    covering_licence: Licence | None
    violations: tuple[ValidationViolation, ...] = ()
    candidate_count: int = 0

    @property
    def is_covered(self) -> bool:
        return self.covering_licence is not None


def _expiry_sort_key(licence: Licence) -> tuple[bool, date, str]:
    return (
        licence.expiry_date is None,
        licence.expiry_date or date.max,
        licence.licence_number,
    )


def _exclusion(
    licence: Licence,
    substance: ControlledSubstance,
    required: frozenset[PermittedActivity],
    on: date,
    quantity: Decimal | None,
) -> tuple[ViolationCode | None, str] | None:
    """Why ``licence`` cannot be used, or None when it can.

    A not-yet-effective licence is excluded without a reportable code.
    """
    number = licence.licence_number
    if licence.status is LicenceStatus.SUSPENDED:
        return ViolationCode.LICENCE_SUSPENDED, f"Licence {number} is suspended"
    if licence.status is LicenceStatus.REVOKED:
        return ViolationCode.LICENCE_REVOKED, f"Licence {number} is revoked"
    if licence.expiry_date is not None and licence.expiry_date < on:
        return (
            ViolationCode.LICENCE_EXPIRED,
            f"Licence {number} expired on {licence.expiry_date}",
        )
    if licence.status is LicenceStatus.EXPIRED:
        return ViolationCode.LICENCE_EXPIRED, f"Licence {number} is marked expired"
    if not is_licence_effective_on(licence.issue_date, licence.expiry_date, on):
        return None, f"Licence {number} is not effective until {licence.issue_date}"
    if not licence.permits(required):
        missing = ", ".join(
            sorted(a.value for a in required - licence.effective_activities)
        )
        return (
            ViolationCode.LICENCE_SCOPE_INSUFFICIENT,
            f"Licence {number} does not permit: {missing}",
        )
    mapping = licence.mapping_for(substance.code)
    if (
        mapping is not None
        and quantity is not None
        and mapping.max_quantity_per_transaction is not None
        and quantity > mapping.max_quantity_per_transaction
    ):
        return (
            ViolationCode.LICENCE_SCOPE_INSUFFICIENT,
            f"Licence {number} caps {substance.code} at "
            f"{mapping.max_quantity_per_transaction} per transaction",
        )
    return None


def resolve_licence_coverage(
    licences: Iterable[Licence],
    substance: ControlledSubstance,
    required_activities: frozenset[PermittedActivity],
    on: date,
    *,
    quantity: Decimal | None = None,
    line_number: int | None = None,
) -> CoverageResolution:
    """Find the licence covering ``substance`` on ``on``."""
    candidates = [lic for lic in licences if lic.covers_substance(substance)]
    if not candidates:
        return CoverageResolution(
            covering_licence=None,
            violations=(
                ValidationViolation.of(
                    ViolationCode.SUBSTANCE_NOT_AUTHORIZED,
                    f"No licence authorises {substance.name} ({substance.code})",
                    line_number=line_number,
                    substance_code=substance.code,
                ),
            ),
        )

    usable: list[Licence] = []
    excluded: list[ValidationViolation] = []
    for licence in sorted(candidates, key=_expiry_sort_key):
        reason = _exclusion(licence, substance, required_activities, on, quantity)
        if reason is None:
            usable.append(licence)
            continue
        code, message = reason
        if code is not None:
            excluded.append(
                ValidationViolation.of(
                    code,
                    message,
                    line_number=line_number,
                    substance_code=substance.code,
                    licence_id=licence.licence_id,
                    licence_number=licence.licence_number,
                )
            )

    if usable:
        return CoverageResolution(
            covering_licence=usable[0],
            candidate_count=len(candidates),
        )

    if not excluded:
        excluded.append(
            ValidationViolation.of(
                ViolationCode.LICENCE_MISSING,
                f"No licence for {substance.code} is effective on {on}",
                line_number=line_number,
                substance_code=substance.code,
            )
        )
    return CoverageResolution(
        covering_licence=None,
        violations=tuple(excluded),
        candidate_count=len(candidates),
    )
