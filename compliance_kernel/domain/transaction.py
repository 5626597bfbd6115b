"""
Transaction domain types (``compliance_kernel.domain.transaction``).

Responsibility
--------------
The commercial transaction under validation (order, shipment, return,
transfer), its lines, and its compliance lifecycle fields: validation
status, override state and the recorded outcome of the last validation.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  State changes
are produced by ``domain.override`` as new instances; nothing here mutates.

Invariants enforced
-------------------
* A transaction is created ``PENDING`` and validated exactly once unless it
  is explicitly reset for corrective re-validation.
* ``Outbound`` with differing countries needs an export permit; ``Inbound``
  with differing countries needs an import permit.
* ``version`` only increases; stores compare it on save.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class TransactionType(str, Enum):
    ORDER = "order"
    SHIPMENT = "shipment"
    RETURN = "return"
    TRANSFER = "transfer"


class TransactionDirection(str, Enum):
    INTERNAL = "internal"
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class ValidationStatus(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"
    APPROVED_WITH_OVERRIDE = "approved_with_override"
    REJECTED_OVERRIDE = "rejected_override"


class OverrideStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TransactionLine:
    """One line of a transaction.

    ``substance_code`` of None marks a line that carries no controlled
    product; it is skipped by every check.
    """

    line_number: int
    substance_code: str | None
    quantity: Decimal
    unit_of_measure: str = "EA"
    base_unit_quantity: Decimal = Decimal("0")
    base_unit: str = "g"
    line_value: Decimal = Decimal("0")
    is_valid: bool = False
    error_code: str | None = None
    covering_licence_id: str | None = None
    covering_licence_number: str | None = None


@dataclass(frozen=True)
class Transaction:
    """A transaction and its compliance record."""

    transaction_id: str
    external_id: str
    transaction_type: TransactionType
    direction: TransactionDirection
    customer_id: str
    transaction_date: date
    lines: tuple[TransactionLine, ...] = ()
    origin_country: str | None = None
    destination_country: str | None = None
    total_quantity: Decimal = Decimal("0")
    total_value: Decimal = Decimal("0")
    validation_status: ValidationStatus = ValidationStatus.PENDING
    requires_override: bool = False
    override_status: OverrideStatus = OverrideStatus.NONE
    override_approver: str | None = None
    override_justification: str | None = None
    override_decided_at: datetime | None = None
    compliance_warnings: tuple[str, ...] = ()
    compliance_errors: tuple[str, ...] = ()
    violation_codes: tuple[str, ...] = ()
    licences_used: tuple[str, ...] = ()
    validated_at: datetime | None = None
    revalidation_count: int = 0
    version: int = 0
    created_by: str = "system"

    @property
    def is_cross_border(self) -> bool:
        if not self.origin_country or not self.destination_country:
            return False
        return self.origin_country.casefold() != self.destination_country.casefold()

    @property
    def requires_import_permit(self) -> bool:
        return self.is_cross_border and self.direction is TransactionDirection.INBOUND

    @property
    def requires_export_permit(self) -> bool:
        return self.is_cross_border and self.direction is TransactionDirection.OUTBOUND

    @property
    def controlled_lines(self) -> tuple[TransactionLine, ...]:
        return tuple(line for line in self.lines if line.substance_code)

    @property
    def substance_codes(self) -> tuple[str, ...]:
        """Distinct substance codes in line order."""
        seen: dict[str, None] = {}
        for line in self.controlled_lines:
            seen.setdefault(line.substance_code, None)
        return tuple(seen)


@dataclass(frozen=True)
class UsageRecord:
    """Prior consumption of a substance by a customer, one per line."""

    transaction_id: str
    customer_id: str
    substance_code: str
    transaction_date: date
    base_unit_quantity: Decimal
    line_value: Decimal = field(default=Decimal("0"))
