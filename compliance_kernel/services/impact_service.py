"""
compliance_kernel.services.impact_service -- Licence correction impact analysis.

Responsibility:
    Loads a corrected licence and the transactions it could have affected,
    then delegates to ``domain.impact`` to report which outcomes would
    change.

Architecture position:
    Kernel > Services.  Read-only: never writes to any store.

Failure modes:
    - LicenceNotFoundError if the licence id is unknown.
    - ExternalSystemUnavailableError on collaborator failure or timeout.
"""

from __future__ import annotations

from typing import Sequence

from compliance_kernel.domain.impact import (
    ImpactReport,
    LicenceCorrection,
    analyze_licence_correction,
    correction_window,
)
from compliance_kernel.domain.licence import HolderType, Licence
from compliance_kernel.domain.transaction import Transaction
from compliance_kernel.exceptions import LicenceNotFoundError
from compliance_kernel.logging_config import LogContext, get_logger
from compliance_kernel.ports import (
    CustomerLookup,
    LicenceLookup,
    TransactionHistoryLookup,
)
from compliance_kernel.services.base import BaseLookupService

logger = get_logger("services.impact")


class LicenceCorrectionImpactService(BaseLookupService):
    """Reports historical transactions affected by a licence date correction."""

    def __init__(
        self,
        licences: LicenceLookup,
        customers: CustomerLookup,
        history: TransactionHistoryLookup,
        *,
        lookup_timeout: float | None = 5.0,
    ) -> None:
        super().__init__(lookup_timeout)
        self._licences = licences
        self._customers = customers
        self._history = history

    async def analyze(self, correction: LicenceCorrection) -> ImpactReport:
        with LogContext.bind(licence_id=correction.licence_id):
            licence = await self._lookup(
                "licences",
                "get_licence",
                self._licences.get_licence(correction.licence_id),
            )
            if licence is None:
                raise LicenceNotFoundError(correction.licence_id)

            transactions = await self._transactions_for(licence, correction)
            report = analyze_licence_correction(licence, correction, transactions)
            logger.info(
                "licence_correction_impact_analyzed",
                extra={
                    "licence_number": licence.licence_number,
                    "window_start": report.window_start,
                    "window_end": report.window_end,
                    "transactions_analyzed": report.transactions_analyzed,
                    "affected": report.affected_count,
                    "critical": report.critical_count,
                    "major": report.major_count,
                    "minor": report.minor_count,
                },
            )
            return report

    async def _transactions_for(
        self, licence: Licence, correction: LicenceCorrection
    ) -> Sequence[Transaction]:
        start, end = correction_window(licence, correction)
        if licence.holder_type is HolderType.CUSTOMER:
            customer = await self._lookup(
                "customers",
                "get_customer",
                self._customers.get_customer(licence.holder_id),
            )
            if customer is not None:
                return await self._lookup(
                    "history",
                    "transactions_for_customer",
                    self._history.transactions_for_customer(
                        customer.customer_id, start, end
                    ),
                )
            logger.warning(
                "licence_holder_not_found",
                extra={"holder_id": licence.holder_id},
            )
        return await self._lookup(
            "history",
            "transactions_between",
            self._history.transactions_between(start, end),
        )
