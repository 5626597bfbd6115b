"""
Configuration Loader (``compliance_config.loader``).

Responsibility
--------------
Loads a YAML settings file and parses it into the typed
``compliance_config.schema`` dataclasses.  Runtime callers use
``compliance_config.get_active_settings()`` instead of this module.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  parsed source for configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrong value types  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from compliance_config.schema import (
    ComplianceSettings,
    LicenceTypeDef,
    OverrideApprovalDef,
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def parse_licence_type(data: dict[str, Any]) -> LicenceTypeDef:
    activities = data["permitted_activities"]
    if not isinstance(activities, list) or not activities:
        raise ValueError(
            f"licence type {data.get('code')!r}: permitted_activities must be "
            "a non-empty list"
        )
    return LicenceTypeDef(
        code=data["code"],
        name=data["name"],
        issuing_authority=data["issuing_authority"],
        permitted_activities=tuple(str(a) for a in activities),
        substance_scope=data.get("substance_scope", "mapped_only"),
        permit_kind=data.get("permit_kind"),
    )


def parse_override_approval(data: dict[str, Any]) -> OverrideApprovalDef:
    min_length = data.get("min_justification_length", 20)
    if not isinstance(min_length, int) or min_length < 0:
        raise ValueError(
            "override_approval.min_justification_length must be a "
            f"non-negative integer, got {min_length!r}"
        )
    return OverrideApprovalDef(
        require_justification=bool(data.get("require_justification", True)),
        min_justification_length=min_length,
    )


def parse_required_activities(
    data: dict[str, Any],
) -> tuple[tuple[str, tuple[str, ...]], ...]:
    parsed = []
    for tx_type, activities in sorted(data.items()):
        if not isinstance(activities, list) or not activities:
            raise ValueError(
                f"required_activities.{tx_type} must be a non-empty list"
            )
        parsed.append((str(tx_type), tuple(str(a) for a in activities)))
    return tuple(parsed)


def parse_settings(data: dict[str, Any]) -> ComplianceSettings:
    """Parse the root settings mapping."""
    timeout = data.get("lookup_timeout_seconds", 5.0)
    if not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError(
            f"lookup_timeout_seconds must be a positive number, got {timeout!r}"
        )
    return ComplianceSettings(
        config_id=data["config_id"],
        version=int(data.get("version", 1)),
        company_holder_id=data["company_holder_id"],
        gdp_sensitive_categories=tuple(data.get("gdp_sensitive_categories", ())),
        required_activities=parse_required_activities(
            data.get("required_activities", {})
        ),
        override_approval=parse_override_approval(
            data.get("override_approval", {})
        ),
        lookup_timeout_seconds=float(timeout),
        licence_types=tuple(
            parse_licence_type(lt) for lt in data.get("licence_types", [])
        ),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
