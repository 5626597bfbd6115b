"""
Pytest fixtures for the compliance kernel test suite.

Provides:
- Structured logging setup and a ``captured_logs`` fixture
- Factory fixtures for substances, customers, licences, thresholds and
  transactions (session-scoped, stateless; safe inside hypothesis tests)
- In-memory collaborators and a SQLite-backed SQL store
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from compliance_kernel.db.engine import (
    create_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from compliance_kernel.domain.clock import DeterministicClock
from compliance_kernel.domain.customer import (
    BusinessCategory,
    Customer,
    CustomerApprovalStatus,
)
from compliance_kernel.domain.licence import (
    HolderType,
    Licence,
    LicenceSubstanceMapping,
    LicenceType,
    PeriodType,
    PermitKind,
    PermittedActivity,
    SubstanceScope,
)
from compliance_kernel.domain.substance import (
    ControlledSubstance,
    OpiumActList,
    PrecursorCategory,
)
from compliance_kernel.domain.threshold import Threshold, ThresholdType
from compliance_kernel.domain.transaction import (
    Transaction,
    TransactionDirection,
    TransactionLine,
    TransactionType,
)
from compliance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from compliance_kernel.selectors.memory import InMemoryReferenceData
from compliance_kernel.stores.memory import InMemoryTransactionStore
from compliance_kernel.stores.sql_store import SqlTransactionStore


TX_DATE = date(2025, 6, 15)
FIXED_NOW = datetime(2025, 6, 15, 9, 30, tzinfo=timezone.utc)

_DISTRIBUTION = frozenset({
    PermittedActivity.POSSESS,
    PermittedActivity.STORE,
    PermittedActivity.DISTRIBUTE,
})

WDA = LicenceType(
    code="WDA",
    name="Wholesale Distribution Authorisation",
    issuing_authority="IGJ",
    permitted_activities=_DISTRIBUTION,
    substance_scope=SubstanceScope.MAPPED_ONLY,
)
OPIUM_EXEMPTION = LicenceType(
    code="OPIUM_EXEMPTION",
    name="Opium Act Exemption",
    issuing_authority="Farmatec/CIBG",
    permitted_activities=_DISTRIBUTION,
    substance_scope=SubstanceScope.OPIUM_ACT,
)
PRECURSOR_REGISTRATION = LicenceType(
    code="PRECURSOR_REGISTRATION",
    name="Precursor Registration",
    issuing_authority="Farmatec/CIBG",
    permitted_activities=frozenset({
        PermittedActivity.POSSESS,
        PermittedActivity.STORE,
        PermittedActivity.HANDLE_PRECURSORS,
    }),
    substance_scope=SubstanceScope.PRECURSORS,
)
IMPORT_PERMIT = LicenceType(
    code="IMPORT_PERMIT",
    name="Import Permit",
    issuing_authority="Farmatec/CIBG",
    permitted_activities=frozenset({PermittedActivity.IMPORT}),
    permit_kind=PermitKind.IMPORT,
)
EXPORT_PERMIT = LicenceType(
    code="EXPORT_PERMIT",
    name="Export Permit",
    issuing_authority="Farmatec/CIBG",
    permitted_activities=frozenset({PermittedActivity.EXPORT}),
    permit_kind=PermitKind.EXPORT,
)

LICENCE_TYPES = {
    lt.code: lt
    for lt in (WDA, OPIUM_EXEMPTION, PRECURSOR_REGISTRATION, IMPORT_PERMIT, EXPORT_PERMIT)
}

MORPHINE = ControlledSubstance(
    code="MORPH", name="Morphine", opium_act_list=OpiumActList.LIST_I,
)
CODEINE = ControlledSubstance(
    code="COD", name="Codeine", opium_act_list=OpiumActList.LIST_II,
)
EPHEDRINE = ControlledSubstance(
    code="EPH", name="Ephedrine", precursor_category=PrecursorCategory.CATEGORY_1,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture compliance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "override_approved" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("compliance_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Domain builders
# =============================================================================


@pytest.fixture(scope="session")
def make_customer():
    def _make(**overrides) -> Customer:
        data = dict(
            customer_id="CUST-1",
            business_name="St. Anna Hospital Pharmacy",
            business_category=BusinessCategory.HOSPITAL_PHARMACY,
            approval_status=CustomerApprovalStatus.APPROVED,
        )
        data.update(overrides)
        return Customer(**data)

    return _make


@pytest.fixture(scope="session")
def make_licence():
    def _make(**overrides) -> Licence:
        data = dict(
            licence_id="LIC-1",
            licence_number="WDA-001",
            licence_type=WDA,
            holder_type=HolderType.CUSTOMER,
            holder_id="CUST-1",
            issue_date=date(2024, 1, 1),
            expiry_date=date(2026, 12, 31),
            substance_mappings=(LicenceSubstanceMapping(substance_code="MORPH"),),
        )
        data.update(overrides)
        return Licence(**data)

    return _make


@pytest.fixture(scope="session")
def make_threshold():
    def _make(**overrides) -> Threshold:
        data = dict(
            threshold_id="THR-1",
            name="Morphine monthly",
            threshold_type=ThresholdType.CUMULATIVE_QUANTITY,
            period=PeriodType.MONTHLY,
            limit_value=Decimal("100"),
            substance_code="MORPH",
        )
        data.update(overrides)
        return Threshold(**data)

    return _make


@pytest.fixture(scope="session")
def make_line():
    def _make(
        line_number: int = 1,
        substance_code: str | None = "MORPH",
        quantity: str = "10",
        line_value: str = "50",
        **overrides,
    ) -> TransactionLine:
        return TransactionLine(
            line_number=line_number,
            substance_code=substance_code,
            quantity=Decimal(quantity),
            base_unit_quantity=Decimal(quantity),
            line_value=Decimal(line_value),
            **overrides,
        )

    return _make


@pytest.fixture(scope="session")
def make_transaction(make_line):
    def _make(**overrides) -> Transaction:
        data = dict(
            transaction_id="TX-1",
            external_id="SO-1001",
            transaction_type=TransactionType.ORDER,
            direction=TransactionDirection.INTERNAL,
            customer_id="CUST-1",
            transaction_date=TX_DATE,
            lines=(make_line(),),
            origin_country="NL",
            destination_country="NL",
        )
        data.update(overrides)
        return Transaction(**data)

    return _make


@pytest.fixture(scope="session")
def licence_types():
    """Licence type catalogue keyed by code."""
    return dict(LICENCE_TYPES)


@pytest.fixture
def substances():
    return {s.code: s for s in (MORPHINE, CODEINE, EPHEDRINE)}


@pytest.fixture
def clock():
    return DeterministicClock(FIXED_NOW)


# =============================================================================
# Collaborators
# =============================================================================


@pytest.fixture
def reference_data(make_customer, make_licence, make_threshold):
    """Approved customer with a WDA for morphine and a monthly threshold."""
    return InMemoryReferenceData(
        customers=[make_customer()],
        licences=[make_licence()],
        thresholds=[make_threshold()],
        substances=[MORPHINE, CODEINE, EPHEDRINE],
    )


@pytest.fixture
def transaction_store():
    return InMemoryTransactionStore()


@pytest.fixture
def sql_engine():
    """Fresh in-memory SQLite database with the compliance tables."""
    engine = init_engine_from_url("sqlite:///:memory:")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def sql_session(sql_engine):
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def sql_store(sql_session):
    return SqlTransactionStore(sql_session)
