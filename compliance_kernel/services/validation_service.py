"""
compliance_kernel.services.validation_service -- Transaction compliance validation.

Responsibility:
    Fetches everything a validation needs from the collaborator ports
    (concurrently), hands the resulting snapshot to the pure
    ``TransactionValidator``, and optionally records the outcome on the
    transaction and persists it.

Architecture position:
    Kernel > Services.  May import from domain/, ports, exceptions and
    logging_config.

Invariants enforced:
    - The transaction is never changed when any lookup fails; it stays
      ``PENDING`` and no result is produced.
    - A transaction already validated is rejected before any lookup.
    - Re-validating the same transaction against unchanged data yields an
      identical result (history excludes the transaction itself).

Failure modes:
    - CustomerNotFoundError if the customer lookup returns nothing.
    - SubstanceNotFoundError if a line names an unknown substance.
    - TransactionAlreadyValidatedError if the transaction is not PENDING.
    - TransactionNotFoundError from ``process`` for unknown ids.
    - ExternalSystemUnavailableError on collaborator failure or timeout.
    - ConcurrencyConflictError if the store version moved underneath.
"""

from __future__ import annotations

import time

from compliance_kernel.domain.clock import Clock, SystemClock
from compliance_kernel.domain.customer import Customer
from compliance_kernel.domain.licence import Licence
from compliance_kernel.domain.orchestrator import (
    TransactionValidator,
    ValidationSnapshot,
)
from compliance_kernel.domain.override import apply_validation_result
from compliance_kernel.domain.substance import ControlledSubstance
from compliance_kernel.domain.threshold import Threshold
from compliance_kernel.domain.threshold_evaluator import (
    distinct_substance_codes,
    history_window,
    select_applicable_thresholds,
)
from compliance_kernel.domain.transaction import (
    Transaction,
    UsageRecord,
    ValidationStatus,
)
from compliance_kernel.domain.violations import ValidationResult
from compliance_kernel.exceptions import (
    CustomerNotFoundError,
    SubstanceNotFoundError,
    TransactionAlreadyValidatedError,
    TransactionNotFoundError,
)
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_kernel.ports import (
    CustomerLookup,
    LicenceLookup,
    SubstanceLookup,
    ThresholdLookup,
    TransactionHistoryLookup,
    TransactionStore,
)
from compliance_kernel.services.base import BaseLookupService

logger = get_logger("services.validation")


class TransactionComplianceService(BaseLookupService):
    """Validates transactions against customer, licence, threshold and permit rules."""

    def __init__(
        self,
        customers: CustomerLookup,
        licences: LicenceLookup,
        thresholds: ThresholdLookup,
        substances: SubstanceLookup,
        history: TransactionHistoryLookup,
        *,
        validator: TransactionValidator | None = None,
        company_holder_id: str = "COMPANY",
        store: TransactionStore | None = None,
        clock: Clock | None = None,
        lookup_timeout: float | None = 5.0,
    ) -> None:
        super().__init__(lookup_timeout)
        self._customers = customers
        self._licences = licences
        self._thresholds = thresholds
        self._substances = substances
        self._history = history
        self._validator = validator or TransactionValidator()
        self._company_holder_id = company_holder_id
        self._store = store
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Snapshot assembly
    # ------------------------------------------------------------------

    async def build_snapshot(self, transaction: Transaction) -> ValidationSnapshot:
        codes = transaction.substance_codes
        customer, customer_licences, company_licences, thresholds, *substances = (
            await self._lookup_all(
                self._lookup(
                    "customers",
                    "get_customer",
                    self._customers.get_customer(transaction.customer_id),
                ),
                self._lookup(
                    "licences",
                    "licences_for_holder",
                    self._licences.licences_for_holder(transaction.customer_id),
                ),
                self._lookup(
                    "licences",
                    "licences_for_holder",
                    self._licences.licences_for_holder(self._company_holder_id),
                ),
                self._lookup(
                    "thresholds",
                    "active_thresholds",
                    self._thresholds.active_thresholds(),
                ),
                *(
                    self._lookup(
                        "substances",
                        "get_substance",
                        self._substances.get_substance(code),
                    )
                    for code in codes
                ),
            )
        )

        if customer is None:
            raise CustomerNotFoundError(transaction.customer_id)
        substance_map = self._substance_map(transaction, codes, substances)
        history = await self._fetch_history(transaction, customer, thresholds)

        return ValidationSnapshot(
            transaction=transaction,
            customer=customer,
            licences=_merge_licences(customer_licences, company_licences),
            thresholds=tuple(thresholds),
            substances=substance_map,
            history=history,
        )

    @staticmethod
    def _substance_map(
        transaction: Transaction,
        codes: tuple[str, ...],
        substances: list[ControlledSubstance | None],
    ) -> dict[str, ControlledSubstance]:
        resolved: dict[str, ControlledSubstance] = {}
        for code, substance in zip(codes, substances):
            if substance is None:
                line = next(
                    ln for ln in transaction.controlled_lines if ln.substance_code == code
                )
                raise SubstanceNotFoundError(code, line.line_number)
            resolved[code] = substance
        return resolved

    async def _fetch_history(
        self,
        transaction: Transaction,
        customer: Customer,
        thresholds: list[Threshold],
    ) -> tuple[UsageRecord, ...]:
        requests = []
        for code in distinct_substance_codes(transaction):
            applicable = select_applicable_thresholds(
                thresholds, customer, code, transaction.transaction_date
            )
            window = history_window(applicable, transaction.transaction_date)
            if window is None:
                continue
            requests.append(
                self._lookup(
                    "history",
                    "usage_for",
                    self._history.usage_for(
                        transaction.customer_id, code, window[0], window[1]
                    ),
                )
            )
        if not requests:
            return ()
        batches = await self._lookup_all(*requests)
        return tuple(record for batch in batches for record in batch)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate(self, transaction: Transaction) -> ValidationResult:
        """Validate without recording anything on the transaction."""
        with LogContext.bind(
            transaction_id=transaction.transaction_id,
            customer_id=transaction.customer_id,
        ):
            started = time.monotonic()
            logger.info(
                "transaction_validation_started",
                extra={
                    "transaction_type": transaction.transaction_type.value,
                    "line_count": len(transaction.lines),
                },
            )
            snapshot = await self.build_snapshot(transaction)
            result = self._validator.validate(snapshot)
            logger.info(
                "transaction_validation_completed",
                extra={
                    "status": result.status.value,
                    "violation_count": len(result.violations),
                    "violation_codes": list(result.codes),
                    "requires_override": result.requires_override,
                    "duration_ms": round((time.monotonic() - started) * 1000, 2),
                },
            )
            return result

    async def validate_and_apply(
        self, transaction: Transaction
    ) -> tuple[Transaction, ValidationResult]:
        """Validate and return the transaction with the outcome recorded."""
        if transaction.validation_status is not ValidationStatus.PENDING:
            raise TransactionAlreadyValidatedError(
                transaction.transaction_id, transaction.validation_status.value
            )
        result = await self.validate(transaction)
        return apply_validation_result(transaction, result, self._clock.now()), result

    async def process(self, transaction_id: str) -> tuple[Transaction, ValidationResult]:
        """Load a pending transaction from the store, validate it and save it."""
        if self._store is None:
            raise RuntimeError("TransactionComplianceService has no store configured")
        transaction = self._store.get(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        updated, result = await self.validate_and_apply(transaction)
        saved = self._store.save(updated, expected_version=transaction.version)
        return saved, result


def _merge_licences(*groups: list[Licence]) -> tuple[Licence, ...]:
    seen: dict[str, Licence] = {}
    for group in groups:
        for licence in group:
            seen.setdefault(licence.licence_id, licence)
    return tuple(seen.values())
