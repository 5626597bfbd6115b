"""
ComplianceSettings schema.

Human-authored, reviewable configuration for the compliance kernel.  YAML
is parsed into these types by the loader; ``bridges`` translates them into
kernel inputs.  Values stay as plain strings and numbers here so that a
malformed enum name is reported by the bridge with its config path.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Licence type catalogue
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LicenceTypeDef:
    """Catalogue entry for a kind of licence."""

    code: str
    name: str
    issuing_authority: str
    permitted_activities: tuple[str, ...]
    substance_scope: str = "mapped_only"
    permit_kind: str | None = None


# ---------------------------------------------------------------------------
# Override approval
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OverrideApprovalDef:
    require_justification: bool = True
    min_justification_length: int = 20


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ComplianceSettings:
    """Root configuration object."""

    config_id: str
    version: int
    company_holder_id: str
    gdp_sensitive_categories: tuple[str, ...] = ()
    required_activities: tuple[tuple[str, tuple[str, ...]], ...] = ()
    override_approval: OverrideApprovalDef = field(
        default_factory=OverrideApprovalDef
    )
    lookup_timeout_seconds: float = 5.0
    licence_types: tuple[LicenceTypeDef, ...] = ()
    checksum: str = ""
