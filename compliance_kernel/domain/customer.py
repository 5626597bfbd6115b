"""
Customer qualification data (``compliance_kernel.domain.customer``).

Responsibility
--------------
The slice of a customer record the compliance kernel reads: business
category, compliance approval status, GDP qualification and suspension.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* A suspended customer can never transact, whatever its approval status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class BusinessCategory(str, Enum):
    """Customer business category."""

    HOSPITAL_PHARMACY = "hospital_pharmacy"
    COMMUNITY_PHARMACY = "community_pharmacy"
    VETERINARIAN = "veterinarian"
    MANUFACTURER = "manufacturer"
    WHOLESALER_EU = "wholesaler_eu"
    WHOLESALER_NON_EU = "wholesaler_non_eu"
    RESEARCH_INSTITUTION = "research_institution"


class CustomerApprovalStatus(str, Enum):
    """Compliance approval status of a customer."""

    PENDING = "pending"
    APPROVED = "approved"
    CONDITIONALLY_APPROVED = "conditionally_approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class GdpQualificationStatus(str, Enum):
    """Good Distribution Practice qualification status."""

    NOT_REQUIRED = "not_required"
    PENDING = "pending"
    APPROVED = "approved"
    CONDITIONALLY_APPROVED = "conditionally_approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


APPROVED_CUSTOMER_STATUSES: frozenset[CustomerApprovalStatus] = frozenset({
    CustomerApprovalStatus.APPROVED,
    CustomerApprovalStatus.CONDITIONALLY_APPROVED,
})

GDP_QUALIFIED_STATUSES: frozenset[GdpQualificationStatus] = frozenset({
    GdpQualificationStatus.APPROVED,
    GdpQualificationStatus.NOT_REQUIRED,
})


@dataclass(frozen=True)
class Customer:
    """A trading party whose transactions are validated."""

    customer_id: str
    business_name: str
    business_category: BusinessCategory
    approval_status: CustomerApprovalStatus
    gdp_qualification_status: GdpQualificationStatus = (
        GdpQualificationStatus.NOT_REQUIRED
    )
    account_number: str = ""
    is_suspended: bool = False
    suspension_reason: str | None = None

    @property
    def can_transact(self) -> bool:
        """Suspension overrides approval status."""
        if self.is_suspended:
            return False
        return self.approval_status in APPROVED_CUSTOMER_STATUSES

    @property
    def is_gdp_qualified(self) -> bool:
        return self.gdp_qualification_status in GDP_QUALIFIED_STATUSES
