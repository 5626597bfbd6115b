"""
Tests for TransactionComplianceService.

Tests cover:
- Snapshot assembly from async collaborators (customer + company licences)
- Unknown customer / substance
- Collaborator failure and timeout -> ExternalSystemUnavailableError,
  transaction left Pending, sibling lookups cancelled
- Unreachable history database -> ExternalSystemUnavailableError
- Cumulative threshold usage from stored history
- validate_and_apply / process with a store
- Structured log events
"""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from compliance_kernel.domain.licence import (
    HolderType,
    LicenceSubstanceMapping,
)
from compliance_kernel.domain.transaction import (
    OverrideStatus,
    TransactionDirection,
    ValidationStatus,
)
from compliance_kernel.exceptions import (
    ConcurrencyConflictError,
    CustomerNotFoundError,
    ExternalSystemUnavailableError,
    SubstanceNotFoundError,
    TransactionAlreadyValidatedError,
    TransactionNotFoundError,
)
from compliance_kernel.selectors.memory import InMemoryReferenceData
from compliance_kernel.services.validation_service import TransactionComplianceService
from compliance_kernel.stores.sql_store import SqlTransactionStore
from tests.conftest import CODEINE, EXPORT_PERMIT, FIXED_NOW, MORPHINE


class FailingCustomers(InMemoryReferenceData):
    """Customer lookup whose backend is down."""

    async def get_customer(self, customer_id):
        raise ConnectionError("customer master unreachable")


class SlowThresholds(InMemoryReferenceData):
    async def active_thresholds(self):
        await asyncio.sleep(1)
        return []


class FailingCustomersSlowThresholds(FailingCustomers):
    """Customer lookup fails while the threshold lookup is still in flight."""

    thresholds_finished = False

    async def active_thresholds(self):
        await asyncio.sleep(0.2)
        self.thresholds_finished = True
        return []


class RecordingHistory:
    """History lookup that records the windows it was asked for."""

    def __init__(self):
        self.calls = []

    async def usage_for(self, customer_id, substance_code, start, end):
        self.calls.append((customer_id, substance_code, start, end))
        return []

    async def transactions_for_customer(self, customer_id, start, end):
        return []

    async def transactions_between(self, start, end):
        return []


def _service(reference, history, **kwargs):
    return TransactionComplianceService(
        reference, reference, reference, reference, history, **kwargs
    )


class TestValidate:

    @pytest.mark.asyncio
    async def test_clean_transaction_passes(self, reference_data, transaction_store, make_transaction):
        service = _service(reference_data, transaction_store)
        result = await service.validate(make_transaction())
        assert result.status is ValidationStatus.PASSED
        assert result.licences_used == ("WDA-001",)

    @pytest.mark.asyncio
    async def test_company_licence_covers(
        self, make_customer, make_licence, make_transaction, make_line, transaction_store
    ):
        company = make_licence(
            licence_id="LIC-CO",
            licence_number="WDA-COMPANY",
            holder_type=HolderType.COMPANY,
            holder_id="ACME",
            substance_mappings=(LicenceSubstanceMapping("COD"),),
        )
        reference = InMemoryReferenceData(
            customers=[make_customer()],
            licences=[make_licence(), company],
            substances=[MORPHINE, CODEINE],
        )
        service = _service(reference, transaction_store, company_holder_id="ACME")
        result = await service.validate(make_transaction(lines=(make_line(1, "COD", "1"),)))
        assert result.status is ValidationStatus.PASSED
        assert result.licences_used == ("WDA-COMPANY",)

    @pytest.mark.asyncio
    async def test_unknown_customer(self, reference_data, transaction_store, make_transaction):
        service = _service(reference_data, transaction_store)
        with pytest.raises(CustomerNotFoundError) as exc_info:
            await service.validate(make_transaction(customer_id="NOPE"))
        assert exc_info.value.code == "CUSTOMER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_unknown_substance(
        self, reference_data, transaction_store, make_transaction, make_line
    ):
        service = _service(reference_data, transaction_store)
        tx = make_transaction(lines=(make_line(1, "MORPH"), make_line(2, "XYZ")))
        with pytest.raises(SubstanceNotFoundError) as exc_info:
            await service.validate(tx)
        assert exc_info.value.substance_code == "XYZ"
        assert exc_info.value.line_number == 2

    @pytest.mark.asyncio
    async def test_cross_border_needs_permit(
        self, make_customer, make_licence, make_transaction, transaction_store
    ):
        permit = make_licence(
            licence_id="P-1",
            licence_number="EXP-1",
            licence_type=EXPORT_PERMIT,
            holder_type=HolderType.COMPANY,
            holder_id="COMPANY",
        )
        tx = make_transaction(direction=TransactionDirection.OUTBOUND, destination_country="DE")
        without = InMemoryReferenceData(
            customers=[make_customer()], licences=[make_licence()], substances=[MORPHINE]
        )
        with_permit = InMemoryReferenceData(
            customers=[make_customer()],
            licences=[make_licence(), permit],
            substances=[MORPHINE],
        )
        failed = await _service(without, transaction_store).validate(tx)
        passed = await _service(with_permit, transaction_store).validate(tx)
        assert failed.codes == ("MISSING_PERMIT",)
        assert passed.status is ValidationStatus.PASSED


class TestCollaboratorFailures:

    @pytest.mark.asyncio
    async def test_backend_error(
        self, make_customer, make_licence, make_transaction, transaction_store, captured_logs
    ):
        reference = FailingCustomers(
            customers=[make_customer()], licences=[make_licence()], substances=[MORPHINE]
        )
        tx = make_transaction()
        with pytest.raises(ExternalSystemUnavailableError) as exc_info:
            await _service(reference, transaction_store).validate(tx)
        assert exc_info.value.collaborator == "customers"
        assert exc_info.value.operation == "get_customer"
        assert tx.validation_status is ValidationStatus.PENDING
        failures = [r for r in captured_logs() if r["message"] == "external_lookup_failed"]
        assert failures[0]["error_type"] == "ConnectionError"

    @pytest.mark.asyncio
    async def test_timeout(self, make_customer, make_licence, make_transaction, transaction_store):
        reference = SlowThresholds(
            customers=[make_customer()], licences=[make_licence()], substances=[MORPHINE]
        )
        service = _service(reference, transaction_store, lookup_timeout=0.01)
        with pytest.raises(ExternalSystemUnavailableError) as exc_info:
            await service.validate(make_transaction())
        assert exc_info.value.collaborator == "thresholds"

    @pytest.mark.asyncio
    async def test_failure_cancels_pending_lookups(
        self, make_customer, make_licence, make_transaction, transaction_store
    ):
        reference = FailingCustomersSlowThresholds(
            customers=[make_customer()], licences=[make_licence()], substances=[MORPHINE]
        )
        with pytest.raises(ExternalSystemUnavailableError) as exc_info:
            await _service(reference, transaction_store).validate(make_transaction())
        assert exc_info.value.collaborator == "customers"
        await asyncio.sleep(0.4)
        assert not reference.thresholds_finished

    @pytest.mark.asyncio
    async def test_unreachable_history_database(
        self, reference_data, make_transaction, tmp_path, captured_logs
    ):
        engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'compliance.db'}")
        tx = make_transaction()
        with Session(engine) as session:
            history = SqlTransactionStore(session)
            with pytest.raises(ExternalSystemUnavailableError) as exc_info:
                await _service(reference_data, history).validate(tx)
        engine.dispose()
        assert exc_info.value.collaborator == "history"
        assert exc_info.value.operation == "usage_for"
        assert tx.validation_status is ValidationStatus.PENDING
        assert any(r["message"] == "history_query_failed" for r in captured_logs())

    @pytest.mark.asyncio
    async def test_process_leaves_store_untouched_on_failure(
        self, make_customer, make_licence, make_transaction, transaction_store
    ):
        reference = FailingCustomers(
            customers=[make_customer()], licences=[make_licence()], substances=[MORPHINE]
        )
        transaction_store.add(make_transaction())
        service = _service(reference, transaction_store, store=transaction_store)
        with pytest.raises(ExternalSystemUnavailableError):
            await service.process("TX-1")
        stored = transaction_store.get("TX-1")
        assert stored.validation_status is ValidationStatus.PENDING
        assert stored.version == 1


class TestHistory:

    @pytest.mark.asyncio
    async def test_history_window_follows_threshold_period(
        self, reference_data, make_transaction
    ):
        history = RecordingHistory()
        await _service(reference_data, history).validate(make_transaction())
        assert history.calls == [("CUST-1", "MORPH", date(2025, 6, 1), date(2025, 6, 30))]

    @pytest.mark.asyncio
    async def test_no_history_without_thresholds(self, make_customer, make_licence, make_transaction):
        reference = InMemoryReferenceData(
            customers=[make_customer()], licences=[make_licence()], substances=[MORPHINE]
        )
        history = RecordingHistory()
        await _service(reference, history).validate(make_transaction())
        assert history.calls == []

    @pytest.mark.asyncio
    async def test_cumulative_usage_from_store(
        self, reference_data, transaction_store, make_transaction, make_line
    ):
        transaction_store.add(
            make_transaction(
                transaction_id="TX-EARLIER",
                transaction_date=date(2025, 6, 2),
                lines=(make_line(1, "MORPH", "95"),),
                validation_status=ValidationStatus.PASSED,
            )
        )
        transaction_store.add(
            make_transaction(
                transaction_id="TX-FAILED",
                transaction_date=date(2025, 6, 3),
                lines=(make_line(1, "MORPH", "500"),),
                validation_status=ValidationStatus.FAILED,
            )
        )
        result = await _service(reference_data, transaction_store).validate(make_transaction())
        violation = result.violations[0]
        assert result.codes == ("THRESHOLD_EXCEEDED",)
        assert violation.usage == Decimal("105")
        assert result.requires_override

    @pytest.mark.asyncio
    async def test_revalidation_excludes_itself(
        self, reference_data, transaction_store, make_transaction
    ):
        transaction_store.add(
            make_transaction(validation_status=ValidationStatus.PASSED)
        )
        result = await _service(reference_data, transaction_store).validate(make_transaction())
        assert result.violations == ()

    @pytest.mark.asyncio
    async def test_validate_is_idempotent(self, reference_data, transaction_store, make_transaction):
        service = _service(reference_data, transaction_store)
        tx = make_transaction()
        assert await service.validate(tx) == await service.validate(tx)


class TestApplyAndProcess:

    @pytest.mark.asyncio
    async def test_validate_and_apply(self, reference_data, transaction_store, make_transaction, clock):
        service = _service(reference_data, transaction_store, clock=clock)
        updated, result = await service.validate_and_apply(make_transaction())
        assert updated.validation_status is ValidationStatus.PASSED
        assert updated.validated_at == FIXED_NOW
        assert updated.licences_used == ("WDA-001",)
        assert updated.lines[0].covering_licence_number == "WDA-001"

    @pytest.mark.asyncio
    async def test_already_validated_rejected_before_lookup(
        self, make_transaction, transaction_store
    ):
        reference = FailingCustomers()
        service = _service(reference, transaction_store)
        tx = make_transaction(validation_status=ValidationStatus.PASSED)
        with pytest.raises(TransactionAlreadyValidatedError):
            await service.validate_and_apply(tx)

    @pytest.mark.asyncio
    async def test_process_saves_outcome(
        self, reference_data, transaction_store, make_transaction, make_line, clock
    ):
        transaction_store.add(make_transaction(lines=(make_line(1, "MORPH", "150"),)))
        service = _service(reference_data, transaction_store, store=transaction_store, clock=clock)
        saved, result = await service.process("TX-1")
        assert saved.version == 2
        assert saved.validation_status is ValidationStatus.FAILED
        assert saved.override_status is OverrideStatus.PENDING
        assert transaction_store.pending_overrides() == [saved]

    @pytest.mark.asyncio
    async def test_process_unknown(self, reference_data, transaction_store):
        service = _service(reference_data, transaction_store, store=transaction_store)
        with pytest.raises(TransactionNotFoundError):
            await service.process("TX-404")

    @pytest.mark.asyncio
    async def test_process_twice(self, reference_data, transaction_store, make_transaction):
        transaction_store.add(make_transaction())
        service = _service(reference_data, transaction_store, store=transaction_store)
        await service.process("TX-1")
        with pytest.raises(TransactionAlreadyValidatedError):
            await service.process("TX-1")

    @pytest.mark.asyncio
    async def test_process_conflict(self, reference_data, transaction_store, make_transaction):
        class RacingStore(type(transaction_store)):
            def get(self, transaction_id):
                tx = super().get(transaction_id)
                # another writer saves between our read and our write
                self.save(tx, expected_version=tx.version)
                return tx

        store = RacingStore([make_transaction()])
        service = _service(reference_data, store, store=store)
        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await service.process("TX-1")
        assert exc_info.value.expected_version == 1
        assert exc_info.value.actual_version == 2

    @pytest.mark.asyncio
    async def test_process_without_store(self, reference_data, transaction_store):
        with pytest.raises(RuntimeError):
            await _service(reference_data, transaction_store).process("TX-1")


class TestLogging:

    @pytest.mark.asyncio
    async def test_validation_events(
        self, reference_data, transaction_store, make_transaction, captured_logs
    ):
        await _service(reference_data, transaction_store).validate(make_transaction())
        records = {r["message"]: r for r in captured_logs()}
        started = records["transaction_validation_started"]
        completed = records["transaction_validation_completed"]
        assert started["transaction_id"] == "TX-1"
        assert started["customer_id"] == "CUST-1"
        assert completed["status"] == "passed"
        assert completed["violation_count"] == 0
        assert "duration_ms" in completed
