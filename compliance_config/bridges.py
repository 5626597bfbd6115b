"""
Config -> Kernel Bridges.

Functions that convert ``ComplianceSettings`` into kernel-compatible
inputs.  These live in compliance_config (the producer) because the kernel
must NEVER import compliance_config.

Usage:
    from compliance_config.bridges import build_validation_policy

    settings = get_active_settings()
    validator = TransactionValidator(build_validation_policy(settings))
"""

from __future__ import annotations

from enum import Enum
from typing import TypeVar

from compliance_config.schema import ComplianceSettings, LicenceTypeDef
from compliance_kernel.domain.customer import BusinessCategory
from compliance_kernel.domain.licence import (
    LicenceType,
    PermitKind,
    PermittedActivity,
    SubstanceScope,
)
from compliance_kernel.domain.orchestrator import ValidationPolicy
from compliance_kernel.domain.transaction import TransactionType
from compliance_kernel.services.override_service import OverridePolicy

E = TypeVar("E", bound=Enum)


def _enum(enum_type: type[E], value: str, where: str) -> E:
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_type)
        raise ValueError(
            f"{where}: unknown value {value!r} (expected one of: {allowed})"
        ) from None


def build_validation_policy(settings: ComplianceSettings) -> ValidationPolicy:
    """Required activities and GDP-sensitive categories for the validator."""
    required = {
        _enum(TransactionType, tx_type, "required_activities"): frozenset(
            _enum(PermittedActivity, a, f"required_activities.{tx_type}")
            for a in activities
        )
        for tx_type, activities in settings.required_activities
    }
    policy = ValidationPolicy()
    return ValidationPolicy(
        required_activities={**policy.required_activities, **required},
        gdp_sensitive_categories=(
            frozenset(
                _enum(BusinessCategory, c, "gdp_sensitive_categories")
                for c in settings.gdp_sensitive_categories
            )
            or policy.gdp_sensitive_categories
        ),
    )


def build_licence_type(definition: LicenceTypeDef) -> LicenceType:
    where = f"licence_types.{definition.code}"
    return LicenceType(
        code=definition.code,
        name=definition.name,
        issuing_authority=definition.issuing_authority,
        permitted_activities=frozenset(
            _enum(PermittedActivity, a, where)
            for a in definition.permitted_activities
        ),
        substance_scope=_enum(SubstanceScope, definition.substance_scope, where),
        permit_kind=(
            _enum(PermitKind, definition.permit_kind, where)
            if definition.permit_kind
            else None
        ),
    )


def build_licence_type_catalogue(
    settings: ComplianceSettings,
) -> dict[str, LicenceType]:
    return {lt.code: build_licence_type(lt) for lt in settings.licence_types}


def build_override_policy(settings: ComplianceSettings) -> OverridePolicy:
    approval = settings.override_approval
    return OverridePolicy(
        require_justification=approval.require_justification,
        min_justification_length=approval.min_justification_length,
    )
