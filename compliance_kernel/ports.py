"""
Collaborator ports for the compliance kernel.

Responsibility:
    Declares the read-only lookups the validation and impact services pull
    reference data and history from, and the transaction store the
    override workflow persists through.  Lookups are async so that the
    services can fetch them concurrently; the store is sync, matching the
    session-based persistence layer.

Architecture position:
    Kernel > Ports.  May import from ``domain/`` only.  Implementations live
    in ``selectors/`` (in-memory reference data) and ``stores/``.

Failure modes:
    Implementations signal an unavailable backend by raising
    ``ExternalSystemUnavailableError``, ``ConnectionError``, ``TimeoutError``
    or ``OSError``.  The services translate all of these into
    ``ExternalSystemUnavailableError``.  A lookup that finds nothing returns
    None or an empty sequence; it never raises for absence.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol, Sequence, runtime_checkable

from compliance_kernel.domain.customer import (
    BusinessCategory,
    Customer,
    CustomerApprovalStatus,
)
from compliance_kernel.domain.licence import Licence
from compliance_kernel.domain.substance import ControlledSubstance
from compliance_kernel.domain.threshold import Threshold, ThresholdType
from compliance_kernel.domain.transaction import Transaction, UsageRecord


@runtime_checkable
class CustomerLookup(Protocol):
    async def get_customer(self, customer_id: str) -> Customer | None: ...

    async def customers_by_approval_status(
        self, status: CustomerApprovalStatus
    ) -> Sequence[Customer]: ...

    async def customers_by_category(
        self, category: BusinessCategory
    ) -> Sequence[Customer]: ...


@runtime_checkable
class LicenceLookup(Protocol):
    async def licences_for_holder(self, holder_id: str) -> Sequence[Licence]: ...

    async def get_licence(self, licence_id: str) -> Licence | None: ...

    async def licences_for_substance(
        self, substance_code: str
    ) -> Sequence[Licence]: ...

    async def active_licences(self) -> Sequence[Licence]: ...


@runtime_checkable
class ThresholdLookup(Protocol):
    async def active_thresholds(self) -> Sequence[Threshold]: ...

    async def thresholds_by_type(
        self, threshold_type: ThresholdType
    ) -> Sequence[Threshold]: ...

    async def thresholds_for_substance(
        self, substance_code: str
    ) -> Sequence[Threshold]: ...

    async def thresholds_for_category(
        self, category: BusinessCategory
    ) -> Sequence[Threshold]: ...


@runtime_checkable
class SubstanceLookup(Protocol):
    async def get_substance(self, code: str) -> ControlledSubstance | None: ...


@runtime_checkable
class TransactionHistoryLookup(Protocol):
    """Completed-transaction history for cumulative thresholds and impact.

    Backend failures surface as ``ExternalSystemUnavailableError``.  An
    implementation may run its query synchronously inside the coroutine
    (``SqlTransactionStore`` does), in which case the event loop is blocked
    and the lookup timeout cannot interrupt it.
    """

    async def usage_for(
        self,
        customer_id: str,
        substance_code: str,
        start: date,
        end: date,
    ) -> Sequence[UsageRecord]: ...

    async def transactions_for_customer(
        self, customer_id: str, start: date, end: date
    ) -> Sequence[Transaction]: ...

    async def transactions_between(
        self, start: date, end: date
    ) -> Sequence[Transaction]: ...


@runtime_checkable
class TransactionStore(Protocol):
    """Persistence for transactions under the override workflow.

    ``save`` compares ``expected_version`` with the stored version and raises
    ``ConcurrencyConflictError`` on mismatch.  It returns the saved
    transaction carrying its new version.
    """

    def get(self, transaction_id: str) -> Transaction | None: ...

    def add(self, transaction: Transaction) -> Transaction: ...

    def save(self, transaction: Transaction, expected_version: int) -> Transaction: ...

    def pending_overrides(self) -> Sequence[Transaction]: ...
