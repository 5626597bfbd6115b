"""
Pure domain layer.

This module contains value objects and compliance rules with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (timestamps are passed in)
- I/O

All domain objects are immutable and deterministic.
"""

from compliance_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from compliance_kernel.domain.cross_border import (
    PermitCheckResult,
    check_cross_border_permits,
)
from compliance_kernel.domain.customer import (
    BusinessCategory,
    Customer,
    CustomerApprovalStatus,
    GdpQualificationStatus,
)
from compliance_kernel.domain.eligibility import (
    EligibilityVerdict,
    check_customer_eligibility,
)
from compliance_kernel.domain.impact import (
    ImpactReport,
    ImpactSeverity,
    LicenceCorrection,
    TransactionImpact,
    analyze_licence_correction,
)
from compliance_kernel.domain.licence import (
    HolderType,
    Licence,
    LicenceStatus,
    LicenceSubstanceMapping,
    LicenceType,
    PeriodType,
    PermitKind,
    PermittedActivity,
    SubstanceScope,
    is_licence_effective_on,
)
from compliance_kernel.domain.licence_coverage import (
    CoverageResolution,
    resolve_licence_coverage,
)
from compliance_kernel.domain.orchestrator import (
    TransactionValidator,
    ValidationPolicy,
    ValidationSnapshot,
)
from compliance_kernel.domain.override import (
    OVERRIDE_TRANSITIONS,
    apply_validation_result,
    approve_override,
    reject_override,
    reset_for_revalidation,
)
from compliance_kernel.domain.substance import (
    ControlledSubstance,
    OpiumActList,
    PrecursorCategory,
)
from compliance_kernel.domain.threshold import Threshold, ThresholdType
from compliance_kernel.domain.threshold_evaluator import (
    ThresholdEvaluation,
    evaluate_thresholds,
)
from compliance_kernel.domain.transaction import (
    OverrideStatus,
    Transaction,
    TransactionDirection,
    TransactionLine,
    TransactionType,
    UsageRecord,
    ValidationStatus,
)
from compliance_kernel.domain.violations import (
    LineOutcome,
    ValidationResult,
    ValidationViolation,
    ViolationCode,
    ViolationSeverity,
)

__all__ = [
    "BusinessCategory",
    "Clock",
    "ControlledSubstance",
    "CoverageResolution",
    "Customer",
    "CustomerApprovalStatus",
    "DeterministicClock",
    "EligibilityVerdict",
    "GdpQualificationStatus",
    "HolderType",
    "ImpactReport",
    "ImpactSeverity",
    "Licence",
    "LicenceCorrection",
    "LicenceStatus",
    "LicenceSubstanceMapping",
    "LicenceType",
    "LineOutcome",
    "OVERRIDE_TRANSITIONS",
    "OpiumActList",
    "OverrideStatus",
    "PeriodType",
    "PermitCheckResult",
    "PermitKind",
    "PermittedActivity",
    "PrecursorCategory",
    "SubstanceScope",
    "SystemClock",
    "Threshold",
    "ThresholdEvaluation",
    "ThresholdType",
    "Transaction",
    "TransactionDirection",
    "TransactionImpact",
    "TransactionLine",
    "TransactionType",
    "TransactionValidator",
    "UsageRecord",
    "ValidationPolicy",
    "ValidationResult",
    "ValidationSnapshot",
    "ValidationStatus",
    "ValidationViolation",
    "ViolationCode",
    "ViolationSeverity",
    "analyze_licence_correction",
    "apply_validation_result",
    "approve_override",
    "check_cross_border_permits",
    "check_customer_eligibility",
    "evaluate_thresholds",
    "is_licence_effective_on",
    "reject_override",
    "reset_for_revalidation",
    "resolve_licence_coverage",
]
