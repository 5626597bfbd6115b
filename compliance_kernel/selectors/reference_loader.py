"""
Reference data parsing (``compliance_kernel.selectors.reference_loader``).

Responsibility
--------------
Turns plain mappings (decoded from YAML or JSON by the caller) into domain
objects: substances, customers, licences, thresholds and transactions.
Used by the operator CLI and by fixtures; the kernel itself never reads
files.

Invariants enforced
-------------------
* Every licence and threshold is checked with its own ``validate()``
  before it is handed out.
* Licence type codes must exist in the supplied catalogue.
* Quantities are parsed as ``Decimal`` from their string form, never
  through float arithmetic.

Failure modes
-------------
* Missing required keys -> ``KeyError``.
* Unknown enum values or licence type codes -> ``ValueError``.
* InvalidLicenceError / InvalidThresholdError for inconsistent records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from compliance_kernel.domain.customer import (
    BusinessCategory,
    Customer,
    CustomerApprovalStatus,
    GdpQualificationStatus,
)
from compliance_kernel.domain.licence import (
    HolderType,
    Licence,
    LicenceStatus,
    LicenceSubstanceMapping,
    LicenceType,
    PeriodType,
    PermittedActivity,
)
from compliance_kernel.domain.substance import (
    ControlledSubstance,
    OpiumActList,
    PrecursorCategory,
)
from compliance_kernel.domain.threshold import Threshold, ThresholdType
from compliance_kernel.domain.transaction import (
    OverrideStatus,
    Transaction,
    TransactionDirection,
    TransactionLine,
    TransactionType,
    ValidationStatus,
)
from compliance_kernel.selectors.memory import InMemoryReferenceData
from compliance_kernel.stores.memory import InMemoryTransactionStore


def _date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _optional_date(value: Any) -> date | None:
    return None if value is None else _date(value)


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def _optional_decimal(value: Any) -> Decimal | None:
    return None if value is None else _decimal(value)


def parse_substance(data: Mapping[str, Any]) -> ControlledSubstance:
    return ControlledSubstance(
        code=data["code"],
        name=data["name"],
        opium_act_list=OpiumActList(data.get("opium_act_list", "none")),
        precursor_category=PrecursorCategory(data.get("precursor_category", "none")),
        is_active=bool(data.get("is_active", True)),
    )


def parse_customer(data: Mapping[str, Any]) -> Customer:
    return Customer(
        customer_id=data["customer_id"],
        business_name=data["business_name"],
        business_category=BusinessCategory(data["business_category"]),
        approval_status=CustomerApprovalStatus(data["approval_status"]),
        gdp_qualification_status=GdpQualificationStatus(
            data.get("gdp_qualification_status", "not_required")
        ),
        account_number=data.get("account_number", ""),
        is_suspended=bool(data.get("is_suspended", False)),
        suspension_reason=data.get("suspension_reason"),
    )


def parse_substance_mapping(data: Mapping[str, Any]) -> LicenceSubstanceMapping:
    period = data.get("period_type")
    return LicenceSubstanceMapping(
        substance_code=data["substance_code"],
        max_quantity_per_transaction=_optional_decimal(
            data.get("max_quantity_per_transaction")
        ),
        max_quantity_per_period=_optional_decimal(data.get("max_quantity_per_period")),
        period_type=PeriodType(period) if period is not None else None,
        restrictions=data.get("restrictions"),
    )


def parse_licence(
    data: Mapping[str, Any], licence_types: Mapping[str, LicenceType]
) -> Licence:
    type_code = data["licence_type"]
    licence_type = licence_types.get(type_code)
    if licence_type is None:
        raise ValueError(
            f"licence {data.get('licence_number')!r}: unknown licence type "
            f"{type_code!r}"
        )
    licence = Licence(
        licence_id=data["licence_id"],
        licence_number=data["licence_number"],
        licence_type=licence_type,
        holder_type=HolderType(data.get("holder_type", "customer")),
        holder_id=data["holder_id"],
        issue_date=_date(data["issue_date"]),
        expiry_date=_optional_date(data.get("expiry_date")),
        status=LicenceStatus(data.get("status", "valid")),
        permitted_activities=frozenset(
            PermittedActivity(a) for a in data.get("permitted_activities", ())
        ),
        substance_mappings=tuple(
            parse_substance_mapping(m) for m in data.get("substances", ())
        ),
        issuing_authority=data.get("issuing_authority", licence_type.issuing_authority),
    )
    licence.validate()
    return licence


def parse_threshold(data: Mapping[str, Any]) -> Threshold:
    category = data.get("customer_category")
    max_override = data.get("max_override_percentage")
    threshold = Threshold(
        threshold_id=data["threshold_id"],
        name=data["name"],
        threshold_type=ThresholdType(data["threshold_type"]),
        period=PeriodType(data["period"]),
        limit_value=_decimal(data["limit_value"]),
        limit_unit=data.get("limit_unit", "g"),
        warning_percentage=_decimal(data.get("warning_percentage", 80)),
        allow_override=bool(data.get("allow_override", True)),
        max_override_percentage=_optional_decimal(max_override),
        substance_code=data.get("substance_code"),
        customer_id=data.get("customer_id"),
        customer_category=BusinessCategory(category) if category else None,
        effective_from=_optional_date(data.get("effective_from")),
        effective_to=_optional_date(data.get("effective_to")),
        is_active=bool(data.get("is_active", True)),
    )
    threshold.validate()
    return threshold


def parse_transaction_line(data: Mapping[str, Any]) -> TransactionLine:
    quantity = _decimal(data["quantity"])
    return TransactionLine(
        line_number=int(data["line_number"]),
        substance_code=data.get("substance_code"),
        quantity=quantity,
        unit_of_measure=data.get("unit_of_measure", "EA"),
        base_unit_quantity=_decimal(data.get("base_unit_quantity", quantity)),
        base_unit=data.get("base_unit", "g"),
        line_value=_decimal(data.get("line_value", 0)),
    )


def parse_transaction(data: Mapping[str, Any]) -> Transaction:
    """A transaction; recorded outcome fields are read when present (history)."""
    lines = tuple(parse_transaction_line(line) for line in data.get("lines", ()))
    total_quantity = sum((ln.base_unit_quantity for ln in lines), Decimal("0"))
    total_value = sum((ln.line_value for ln in lines), Decimal("0"))
    return Transaction(
        transaction_id=data["transaction_id"],
        external_id=data.get("external_id", data["transaction_id"]),
        transaction_type=TransactionType(data.get("transaction_type", "order")),
        direction=TransactionDirection(data.get("direction", "internal")),
        customer_id=data["customer_id"],
        transaction_date=_date(data["transaction_date"]),
        lines=lines,
        origin_country=data.get("origin_country"),
        destination_country=data.get("destination_country"),
        total_quantity=_decimal(data.get("total_quantity", total_quantity)),
        total_value=_decimal(data.get("total_value", total_value)),
        validation_status=ValidationStatus(data.get("validation_status", "pending")),
        requires_override=bool(data.get("requires_override", False)),
        override_status=OverrideStatus(data.get("override_status", "none")),
        violation_codes=tuple(data.get("violation_codes", ())),
        licences_used=tuple(data.get("licences_used", ())),
        created_by=data.get("created_by", "system"),
    )


@dataclass(frozen=True)
class ReferenceData:
    """Parsed reference data plus the history store built from it."""

    lookups: InMemoryReferenceData
    history: InMemoryTransactionStore


def load_reference_data(
    data: Mapping[str, Any], licence_types: Mapping[str, LicenceType]
) -> ReferenceData:
    """Build in-memory lookups from a reference data mapping.

    Expected keys (all optional): ``substances``, ``customers``,
    ``licences``, ``thresholds``, ``history``.
    """
    lookups = InMemoryReferenceData(
        customers=[parse_customer(c) for c in data.get("customers", ())],
        licences=[parse_licence(lic, licence_types) for lic in data.get("licences", ())],
        thresholds=[parse_threshold(t) for t in data.get("thresholds", ())],
        substances=[parse_substance(s) for s in data.get("substances", ())],
    )
    history = InMemoryTransactionStore(
        parse_transaction(tx) for tx in data.get("history", ())
    )
    return ReferenceData(lookups=lookups, history=history)
