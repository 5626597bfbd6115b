"""
In-memory reference data (``compliance_kernel.selectors.memory``).

Responsibility:
    Read-only implementation of the customer, licence, threshold and
    substance lookup ports over plain Python collections.  Used by the CLI
    and the test suite; production deployments plug in adapters over their
    own master-data systems.

Architecture position:
    Kernel > Selectors.  Implements ``ports`` protocols.  Never mutates the
    data it was given.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from compliance_kernel.domain.customer import (
    BusinessCategory,
    Customer,
    CustomerApprovalStatus,
)
from compliance_kernel.domain.licence import Licence, LicenceStatus
from compliance_kernel.domain.substance import ControlledSubstance
from compliance_kernel.domain.threshold import Threshold, ThresholdType


class InMemoryReferenceData:
    """Customer, licence, threshold and substance lookups backed by dicts."""

    def __init__(
        self,
        customers: Iterable[Customer] = (),
        licences: Iterable[Licence] = (),
        thresholds: Iterable[Threshold] = (),
        substances: Iterable[ControlledSubstance] = (),
    ) -> None:
        self._customers = {c.customer_id: c for c in customers}
        self._licences = {lic.licence_id: lic for lic in licences}
        self._thresholds = {t.threshold_id: t for t in thresholds}
        self._substances = {s.code.upper(): s for s in substances}

    # CustomerLookup

    async def get_customer(self, customer_id: str) -> Customer | None:
        return self._customers.get(customer_id)

    async def customers_by_approval_status(
        self, status: CustomerApprovalStatus
    ) -> Sequence[Customer]:
        return [c for c in self._customers.values() if c.approval_status is status]

    async def customers_by_category(
        self, category: BusinessCategory
    ) -> Sequence[Customer]:
        return [
            c for c in self._customers.values() if c.business_category is category
        ]

    # LicenceLookup

    async def licences_for_holder(self, holder_id: str) -> Sequence[Licence]:
        return [lic for lic in self._licences.values() if lic.holder_id == holder_id]

    async def get_licence(self, licence_id: str) -> Licence | None:
        return self._licences.get(licence_id)

    async def licences_for_substance(self, substance_code: str) -> Sequence[Licence]:
        substance = self._substances.get(substance_code.upper())
        if substance is None:
            return [
                lic
                for lic in self._licences.values()
                if lic.mapping_for(substance_code) is not None
            ]
        return [
            lic for lic in self._licences.values() if lic.covers_substance(substance)
        ]

    async def active_licences(self) -> Sequence[Licence]:
        return [
            lic
            for lic in self._licences.values()
            if lic.status is LicenceStatus.VALID
        ]

    # ThresholdLookup

    async def active_thresholds(self) -> Sequence[Threshold]:
        return [t for t in self._thresholds.values() if t.is_active]

    async def thresholds_by_type(
        self, threshold_type: ThresholdType
    ) -> Sequence[Threshold]:
        return [
            t
            for t in self._thresholds.values()
            if t.is_active and t.threshold_type is threshold_type
        ]

    async def thresholds_for_substance(
        self, substance_code: str
    ) -> Sequence[Threshold]:
        wanted = substance_code.casefold()
        return [
            t
            for t in self._thresholds.values()
            if t.is_active
            and t.substance_code is not None
            and t.substance_code.casefold() == wanted
        ]

    async def thresholds_for_category(
        self, category: BusinessCategory
    ) -> Sequence[Threshold]:
        return [
            t
            for t in self._thresholds.values()
            if t.is_active and t.customer_category is category
        ]

    # SubstanceLookup

    async def get_substance(self, code: str) -> ControlledSubstance | None:
        return self._substances.get(code.upper())
