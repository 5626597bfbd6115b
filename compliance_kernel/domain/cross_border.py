"""
Cross-border permit check (``compliance_kernel.domain.cross_border``).

Responsibility
--------------
Decide whether a transaction crosses a border in a direction that needs an
import or export permit, and if so, that a permit covers every controlled
substance in it.

Architecture position
---------------------
**Kernel domain layer** -- pure function.  ZERO I/O.  Delegates the per-
substance permit search to ``resolve_licence_coverage``.

Invariants enforced
-------------------
* Country codes are compared case-insensitively; a missing country means
  the transaction is not cross-border.
* ``Outbound`` needs an export permit, ``Inbound`` an import permit,
  ``Internal`` neither.
* One ``MISSING_PERMIT`` per uncovered substance.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

from compliance_kernel.domain.licence import Licence, PermitKind, PermittedActivity
from compliance_kernel.domain.licence_coverage import resolve_licence_coverage
from compliance_kernel.domain.substance import ControlledSubstance
from compliance_kernel.domain.transaction import Transaction
from compliance_kernel.domain.violations import ValidationViolation, ViolationCode

_PERMIT_ACTIVITY: dict[PermitKind, PermittedActivity] = {
    PermitKind.IMPORT: PermittedActivity.IMPORT,
    PermitKind.EXPORT: PermittedActivity.EXPORT,
}


@dataclass(frozen=True)
class PermitCheckResult:
    required_permit: PermitKind | None
    violations: tuple[ValidationViolation, ...] = ()
    permits_used: tuple[str, ...] = ()


def required_permit_kind(transaction: Transaction) -> PermitKind | None:
    if transaction.requires_export_permit:
        return PermitKind.EXPORT
    if transaction.requires_import_permit:
        return PermitKind.IMPORT
    return None


def check_cross_border_permits(
    transaction: Transaction,
    licences: Iterable[Licence],
    substances: Mapping[str, ControlledSubstance],
) -> PermitCheckResult:
    kind = required_permit_kind(transaction)
    if kind is None:
        return PermitCheckResult(required_permit=None)

    permits = [lic for lic in licences if lic.licence_type.permit_kind is kind]
    required = frozenset({_PERMIT_ACTIVITY[kind]})
    route = f"{transaction.origin_country} -> {transaction.destination_country}"

    violations: list[ValidationViolation] = []
    used: list[str] = []
    for code in transaction.substance_codes:
        substance = substances[code]
        resolution = resolve_licence_coverage(
            permits, substance, required, transaction.transaction_date
        )
        if resolution.is_covered:
            used.append(resolution.covering_licence.licence_number)
            continue
        violations.append(
            ValidationViolation.of(
                ViolationCode.MISSING_PERMIT,
                f"No valid {kind.value} permit for {substance.code} ({route})",
                substance_code=substance.code,
            )
        )

    return PermitCheckResult(
        required_permit=kind,
        violations=tuple(violations),
        permits_used=tuple(dict.fromkeys(used)),
    )
