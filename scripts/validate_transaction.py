#!/usr/bin/env python3
"""
Validate one transaction against a reference data file.

Usage:
    python scripts/validate_transaction.py \\
        --reference reference.yaml --transaction order.json [--config settings.yaml]

The reference file is YAML with optional top-level lists ``substances``,
``customers``, ``licences``, ``thresholds`` and ``history`` (previously
validated transactions, used for cumulative thresholds).  The transaction
file is JSON in the same shape as a ``history`` entry.

Prints the validation result as JSON on stdout.

Exit codes:
    0  passed
    1  failed (including failures awaiting override approval)
    2  not validated: input error, unknown customer/substance, or an
       unavailable collaborator
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import yaml

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from compliance_config import get_active_settings
from compliance_config.bridges import (
    build_licence_type_catalogue,
    build_validation_policy,
)
from compliance_kernel.domain.orchestrator import TransactionValidator
from compliance_kernel.domain.transaction import ValidationStatus
from compliance_kernel.exceptions import ComplianceKernelError
from compliance_kernel.logging_config import configure_logging, get_logger
from compliance_kernel.selectors.reference_loader import (
    load_reference_data,
    parse_transaction,
)
from compliance_kernel.services.validation_service import (
    TransactionComplianceService,
)

logger = get_logger("cli.validate_transaction")

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_NOT_VALIDATED = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate a controlled-substance transaction.",
    )
    parser.add_argument(
        "--reference", required=True, type=Path,
        help="YAML file with substances, customers, licences, thresholds, history",
    )
    parser.add_argument(
        "--transaction", required=True, type=Path,
        help="JSON file describing the transaction to validate",
    )
    parser.add_argument(
        "--config", type=Path, default=None,
        help="Compliance settings YAML (defaults to the bundled settings)",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        help="Log level for structured logs on stderr",
    )
    return parser


def run(args: argparse.Namespace) -> dict:
    """Load inputs, validate, and return the JSON-ready report."""
    settings = get_active_settings(args.config)
    with open(args.reference) as f:
        reference = yaml.safe_load(f) or {}
    with open(args.transaction) as f:
        transaction = parse_transaction(json.load(f))

    data = load_reference_data(reference, build_licence_type_catalogue(settings))
    service = TransactionComplianceService(
        customers=data.lookups,
        licences=data.lookups,
        thresholds=data.lookups,
        substances=data.lookups,
        history=data.history,
        validator=TransactionValidator(build_validation_policy(settings)),
        company_holder_id=settings.company_holder_id,
        lookup_timeout=settings.lookup_timeout_seconds,
    )
    result = asyncio.run(service.validate(transaction))
    return {
        "config_id": settings.config_id,
        "config_version": settings.version,
        "result": result.to_dict(),
    }


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=args.log_level.upper(), stream=sys.stderr)

    try:
        report = run(args)
    except ComplianceKernelError as exc:
        logger.error("transaction_not_validated", extra={"error_code": exc.code})
        print(json.dumps({"error": exc.code, "message": str(exc)}, indent=2))
        return EXIT_NOT_VALIDATED
    except (OSError, ValueError, KeyError, yaml.YAMLError) as exc:
        print(json.dumps({"error": "INVALID_INPUT", "message": str(exc)}, indent=2))
        return EXIT_NOT_VALIDATED

    print(json.dumps(report, indent=2, default=str))
    status = report["result"]["status"]
    if status == ValidationStatus.PASSED.value:
        return EXIT_PASSED
    if status == ValidationStatus.FAILED.value:
        return EXIT_FAILED
    return EXIT_NOT_VALIDATED


if __name__ == "__main__":
    sys.exit(main())
