"""
compliance_config -- single public entrypoint for compliance configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_settings()``.  Core rule code never reads files or
    environment variables; it receives kernel objects built by
    ``compliance_config.bridges``.

Architecture position:
    Configuration -- sits above ``compliance_kernel``.  The kernel MUST
    NEVER import from ``compliance_config``.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` / ``KeyError`` -- malformed settings.

Audit relevance:
    Every successful ``get_active_settings()`` call emits a
    ``COMPLIANCE_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying each validation run to the configuration that governed
    it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from compliance_config.bridges import build_licence_type_catalogue
from compliance_config.loader import load_yaml_file, parse_settings
from compliance_config.schema import ComplianceSettings

_logger = logging.getLogger("compliance_kernel.config")

_DEFAULT_SETTINGS_FILE = Path(__file__).parent / "sets" / "default.yaml"


def get_active_settings(path: Path | str | None = None) -> ComplianceSettings:
    """The ONLY public configuration entrypoint.

    Args:
        path: Settings file to load.  Defaults to the bundled
            ``sets/default.yaml``.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ValueError: If the settings fail validation.
        KeyError: If a required key is missing.
    """
    settings_file = Path(path) if path is not None else _DEFAULT_SETTINGS_FILE
    settings = parse_settings(load_yaml_file(settings_file))

    # Fails fast on unknown activity / scope / permit names.
    catalogue = build_licence_type_catalogue(settings)

    _logger.info(
        "COMPLIANCE_CONFIG_TRACE",
        extra={
            "trace_type": "COMPLIANCE_CONFIG_TRACE",
            "config_id": settings.config_id,
            "config_version": settings.version,
            "checksum": settings.checksum,
            "licence_type_count": len(catalogue),
            "source": str(settings_file),
        },
    )
    return settings


__all__ = ["ComplianceSettings", "get_active_settings"]
