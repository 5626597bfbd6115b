"""
Concurrent override decisions on the same transaction.

Several officers act on one pending override at the same moment.  Exactly
one decision may be persisted; every other caller must get a typed error
(stale version or no longer pending), never a silent overwrite.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from compliance_kernel.domain.override import apply_validation_result
from compliance_kernel.domain.transaction import ValidationStatus
from compliance_kernel.domain.violations import (
    ValidationResult,
    ValidationViolation,
    ViolationCode,
)
from compliance_kernel.exceptions import (
    ConcurrencyConflictError,
    InvalidOverrideTransitionError,
)
from compliance_kernel.services.override_service import OverrideService
from compliance_kernel.stores.memory import InMemoryTransactionStore
from tests.conftest import FIXED_NOW

WORKERS = 8
JUSTIFICATION = "Renewal confirmed by phone with the issuing authority"


class BarrierStore(InMemoryTransactionStore):
    """Holds every reader at a barrier so all of them load the same version."""

    def __init__(self, transactions, parties):
        super().__init__(transactions)
        self._barrier = threading.Barrier(parties)

    def get(self, transaction_id):
        tx = super().get(transaction_id)
        self._barrier.wait(timeout=5)
        return tx


@pytest.fixture
def pending_tx(make_transaction):
    result = ValidationResult.from_violations(
        "TX-1",
        (ValidationViolation.of(ViolationCode.THRESHOLD_EXCEEDED, "over limit"),),
    )
    return apply_validation_result(make_transaction(), result, FIXED_NOW)


def _decide(service, index):
    try:
        if index % 2:
            service.reject("TX-1", f"officer-{index}", "Customer cannot justify volume")
        else:
            service.approve("TX-1", f"officer-{index}", JUSTIFICATION)
        return "ok"
    except ConcurrencyConflictError:
        return "conflict"
    except InvalidOverrideTransitionError:
        return "already_decided"


class TestOverrideRaces:

    def test_exactly_one_decision_wins(self, pending_tx, clock):
        store = BarrierStore([pending_tx], WORKERS)
        service = OverrideService(store, clock=clock)

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            outcomes = list(pool.map(lambda i: _decide(service, i), range(WORKERS)))

        assert outcomes.count("ok") == 1
        assert outcomes.count("conflict") == WORKERS - 1

    def test_final_state_is_the_winner(self, pending_tx, clock):
        store = BarrierStore([pending_tx], WORKERS)
        service = OverrideService(store, clock=clock)

        with ThreadPoolExecutor(max_workers=WORKERS) as pool:
            list(pool.map(lambda i: _decide(service, i), range(WORKERS)))

        final = InMemoryTransactionStore.get(store, "TX-1")
        assert final.version == 2
        assert final.validation_status in (
            ValidationStatus.APPROVED_WITH_OVERRIDE,
            ValidationStatus.REJECTED_OVERRIDE,
        )
        assert final.override_approver.startswith("officer-")

    def test_sequential_decisions(self, pending_tx, clock):
        store = InMemoryTransactionStore([pending_tx])
        service = OverrideService(store, clock=clock)
        outcomes = [_decide(service, i) for i in range(4)]
        assert outcomes == ["ok", "already_decided", "already_decided", "already_decided"]
