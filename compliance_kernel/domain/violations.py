"""
Validation outcome types (``compliance_kernel.domain.violations``).

Responsibility
--------------
The closed catalogue of violation codes and the immutable records produced
by one validation run: ``ValidationViolation``, ``LineOutcome`` and
``ValidationResult``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Every violation code carries a default severity and overridability.
* ``ValidationResult.is_valid`` iff no Critical violation is present.
* ``requires_override`` iff the result failed and every Critical violation
  is overridable.  One non-overridable Critical blocks override entirely.
* Results hold no timestamps; identical inputs give equal results.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from compliance_kernel.domain.transaction import ValidationStatus


class ViolationSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class ViolationCode(str, Enum):
    """Closed set of compliance finding codes."""

    LICENCE_EXPIRED = "LICENCE_EXPIRED"
    LICENCE_MISSING = "LICENCE_MISSING"
    LICENCE_SUSPENDED = "LICENCE_SUSPENDED"
    LICENCE_REVOKED = "LICENCE_REVOKED"
    LICENCE_SCOPE_INSUFFICIENT = "LICENCE_SCOPE_INSUFFICIENT"
    SUBSTANCE_NOT_AUTHORIZED = "SUBSTANCE_NOT_AUTHORIZED"
    THRESHOLD_EXCEEDED = "THRESHOLD_EXCEEDED"
    THRESHOLD_WARNING = "THRESHOLD_WARNING"
    MISSING_PERMIT = "MISSING_PERMIT"
    CUSTOMER_SUSPENDED = "CUSTOMER_SUSPENDED"
    CUSTOMER_NOT_APPROVED = "CUSTOMER_NOT_APPROVED"
    CUSTOMER_CONDITIONALLY_APPROVED = "CUSTOMER_CONDITIONALLY_APPROVED"
    GDP_NOT_QUALIFIED = "GDP_NOT_QUALIFIED"

    @property
    def default_severity(self) -> ViolationSeverity:
        return _DEFAULT_SEVERITY[self]

    @property
    def overridable(self) -> bool:
        return self in _OVERRIDABLE


_DEFAULT_SEVERITY: dict[ViolationCode, ViolationSeverity] = {
    ViolationCode.LICENCE_EXPIRED: ViolationSeverity.CRITICAL,
    ViolationCode.LICENCE_MISSING: ViolationSeverity.CRITICAL,
    ViolationCode.LICENCE_SUSPENDED: ViolationSeverity.CRITICAL,
    ViolationCode.LICENCE_REVOKED: ViolationSeverity.CRITICAL,
    ViolationCode.LICENCE_SCOPE_INSUFFICIENT: ViolationSeverity.CRITICAL,
    ViolationCode.SUBSTANCE_NOT_AUTHORIZED: ViolationSeverity.CRITICAL,
    ViolationCode.THRESHOLD_EXCEEDED: ViolationSeverity.CRITICAL,
    ViolationCode.THRESHOLD_WARNING: ViolationSeverity.WARNING,
    ViolationCode.MISSING_PERMIT: ViolationSeverity.CRITICAL,
    ViolationCode.CUSTOMER_SUSPENDED: ViolationSeverity.CRITICAL,
    ViolationCode.CUSTOMER_NOT_APPROVED: ViolationSeverity.CRITICAL,
    ViolationCode.CUSTOMER_CONDITIONALLY_APPROVED: ViolationSeverity.INFO,
    ViolationCode.GDP_NOT_QUALIFIED: ViolationSeverity.WARNING,
}

# THRESHOLD_EXCEEDED is decided per threshold (allow_override + ceiling).
_OVERRIDABLE: frozenset[ViolationCode] = frozenset({
    ViolationCode.LICENCE_EXPIRED,
    ViolationCode.LICENCE_MISSING,
    ViolationCode.LICENCE_SUSPENDED,
    ViolationCode.LICENCE_REVOKED,
    ViolationCode.LICENCE_SCOPE_INSUFFICIENT,
    ViolationCode.SUBSTANCE_NOT_AUTHORIZED,
    ViolationCode.THRESHOLD_EXCEEDED,
    ViolationCode.MISSING_PERMIT,
    ViolationCode.CUSTOMER_NOT_APPROVED,
})

# Codes a correction to licence dates can make disappear.
LICENCE_DATING_CODES: frozenset[str] = frozenset({
    ViolationCode.LICENCE_EXPIRED.value,
    ViolationCode.LICENCE_MISSING.value,
})


@dataclass(frozen=True)
class ValidationViolation:
    """One compliance finding."""

    code: ViolationCode
    severity: ViolationSeverity
    message: str
    can_override: bool
    line_number: int | None = None
    substance_code: str | None = None
    licence_id: str | None = None
    licence_number: str | None = None
    threshold_id: str | None = None
    limit_value: Decimal | None = None
    usage: Decimal | None = None
    period: str | None = None

    @classmethod
    def of(
        cls,
        code: ViolationCode,
        message: str,
        *,
        can_override: bool | None = None,
        **context: Any,
    ) -> ValidationViolation:
        """Build a violation with the code's default severity."""
        return cls(
            code=code,
            severity=code.default_severity,
            message=message,
            can_override=code.overridable if can_override is None else can_override,
            **context,
        )

    @property
    def is_critical(self) -> bool:
        return self.severity is ViolationSeverity.CRITICAL

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "code": self.code.value,
            "severity": self.severity.value,
            "message": self.message,
            "can_override": self.can_override,
        }
        for key in (
            "line_number",
            "substance_code",
            "licence_id",
            "licence_number",
            "threshold_id",
            "period",
        ):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.limit_value is not None:
            data["limit_value"] = str(self.limit_value)
        if self.usage is not None:
            data["usage"] = str(self.usage)
        return data


@dataclass(frozen=True)
class LineOutcome:
    """Per-line licence coverage outcome."""

    line_number: int
    substance_code: str
    is_valid: bool
    error_code: str | None = None
    covering_licence_id: str | None = None
    covering_licence_number: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one transaction."""

    transaction_id: str
    status: ValidationStatus
    violations: tuple[ValidationViolation, ...]
    requires_override: bool
    line_outcomes: tuple[LineOutcome, ...] = ()

    @classmethod
    def from_violations(
        cls,
        transaction_id: str,
        violations: tuple[ValidationViolation, ...],
        line_outcomes: tuple[LineOutcome, ...] = (),
    ) -> ValidationResult:
        critical = [v for v in violations if v.is_critical]
        status = ValidationStatus.FAILED if critical else ValidationStatus.PASSED
        requires_override = bool(critical) and all(v.can_override for v in critical)
        return cls(
            transaction_id=transaction_id,
            status=status,
            violations=violations,
            requires_override=requires_override,
            line_outcomes=line_outcomes,
        )

    @property
    def is_valid(self) -> bool:
        return not any(v.is_critical for v in self.violations)

    @property
    def critical_violations(self) -> tuple[ValidationViolation, ...]:
        return tuple(v for v in self.violations if v.is_critical)

    @property
    def warnings(self) -> tuple[ValidationViolation, ...]:
        return tuple(v for v in self.violations if not v.is_critical)

    @property
    def codes(self) -> tuple[str, ...]:
        """Distinct violation codes in order of first appearance."""
        return tuple(dict.fromkeys(v.code.value for v in self.violations))

    @property
    def licences_used(self) -> tuple[str, ...]:
        found = (
            o.covering_licence_number
            for o in self.line_outcomes
            if o.covering_licence_number
        )
        return tuple(dict.fromkeys(found))

    def by_code(self, code: ViolationCode) -> tuple[ValidationViolation, ...]:
        return tuple(v for v in self.violations if v.code is code)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "status": self.status.value,
            "is_valid": self.is_valid,
            "requires_override": self.requires_override,
            "violations": [v.to_dict() for v in self.violations],
            "lines": [
                {
                    "line_number": o.line_number,
                    "substance_code": o.substance_code,
                    "is_valid": o.is_valid,
                    "error_code": o.error_code,
                    "covering_licence_number": o.covering_licence_number,
                }
                for o in self.line_outcomes
            ],
        }
