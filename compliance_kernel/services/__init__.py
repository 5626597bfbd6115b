"""Services for the compliance kernel (imperative shell)."""

from compliance_kernel.services.impact_service import LicenceCorrectionImpactService
from compliance_kernel.services.override_service import OverridePolicy, OverrideService
from compliance_kernel.services.validation_service import TransactionComplianceService

__all__ = [
    "LicenceCorrectionImpactService",
    "OverridePolicy",
    "OverrideService",
    "TransactionComplianceService",
]
