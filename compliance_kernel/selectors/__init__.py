"""Read-side collaborator implementations and reference data parsing."""

from compliance_kernel.selectors.memory import InMemoryReferenceData
from compliance_kernel.selectors.reference_loader import (
    ReferenceData,
    load_reference_data,
    parse_customer,
    parse_licence,
    parse_substance,
    parse_threshold,
    parse_transaction,
)

__all__ = [
    "InMemoryReferenceData",
    "ReferenceData",
    "load_reference_data",
    "parse_customer",
    "parse_licence",
    "parse_substance",
    "parse_threshold",
    "parse_transaction",
]
