"""
Property-based tests for the core compliance rules.

Uses hypothesis to check rules over generated inputs rather than picked
examples:
- Threshold exceedance is strictly greater-than
- The warning band never overlaps exceedance
- A suspended customer can never transact
- Licence validation fails exactly when expiry precedes issue
- Validation is idempotent and never mutates its input
"""

from datetime import date, timedelta
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from compliance_kernel.domain.customer import CustomerApprovalStatus
from compliance_kernel.domain.eligibility import check_customer_eligibility
from compliance_kernel.domain.orchestrator import TransactionValidator, ValidationSnapshot
from compliance_kernel.domain.transaction import ValidationStatus
from compliance_kernel.domain.violations import ViolationCode
from compliance_kernel.exceptions import InvalidLicenceError
from tests.conftest import CODEINE, EPHEDRINE, MORPHINE

amounts = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("1000000"),
    places=3,
    allow_nan=False,
    allow_infinity=False,
)
positive_amounts = st.decimals(
    min_value=Decimal("0.001"),
    max_value=Decimal("1000000"),
    places=3,
    allow_nan=False,
    allow_infinity=False,
)
percentages = st.integers(min_value=0, max_value=100).map(Decimal)
dates = st.dates(min_value=date(2000, 1, 1), max_value=date(2099, 12, 31))


class TestThresholdProperties:

    @given(limit=positive_amounts, usage=amounts)
    @settings(max_examples=200)
    def test_exceeded_iff_strictly_greater(self, make_threshold, limit, usage):
        threshold = make_threshold(limit_value=limit)
        assert threshold.is_exceeded(usage) == (usage > limit)

    @given(limit=positive_amounts, usage=amounts, warning=percentages)
    @settings(max_examples=200)
    def test_warning_and_exceeded_are_disjoint(self, make_threshold, limit, usage, warning):
        threshold = make_threshold(limit_value=limit, warning_percentage=warning)
        assert not (threshold.is_warning(usage) and threshold.is_exceeded(usage))

    @given(limit=positive_amounts)
    def test_usage_at_limit_is_hundred_percent(self, make_threshold, limit):
        threshold = make_threshold(limit_value=limit)
        assert threshold.get_usage_percent(limit) == Decimal("100")

    @given(usage=amounts)
    def test_zero_limit_reports_hundred_percent(self, make_threshold, usage):
        threshold = make_threshold(limit_value=Decimal("0"))
        assert threshold.get_usage_percent(usage) == Decimal("100")


class TestCustomerProperties:

    @given(status=st.sampled_from(list(CustomerApprovalStatus)))
    def test_suspended_customer_never_transacts(self, make_customer, status):
        customer = make_customer(approval_status=status, is_suspended=True)
        verdict = check_customer_eligibility(customer)
        assert not verdict.may_transact
        assert [v.code for v in verdict.violations] == [ViolationCode.CUSTOMER_SUSPENDED]
        assert not verdict.violations[0].can_override


class TestLicenceProperties:

    @given(issue=dates, offset=st.integers(min_value=-3650, max_value=3650))
    def test_validate_fails_iff_expiry_before_issue(self, make_licence, issue, offset):
        try:
            expiry = issue + timedelta(days=offset)
        except OverflowError:
            return
        licence = make_licence(issue_date=issue, expiry_date=expiry)
        try:
            licence.validate()
            raised = False
        except InvalidLicenceError:
            raised = True
        assert raised == (expiry < issue)

    @given(issue=dates, on=dates)
    def test_open_ended_licence_effective_from_issue(self, make_licence, issue, on):
        licence = make_licence(issue_date=issue, expiry_date=None)
        assert licence.is_effective_on(on) == (on >= issue)


class TestValidatorProperties:

    @given(
        quantities=st.lists(
            st.tuples(st.sampled_from(["MORPH", "COD", "EPH"]), positive_amounts),
            min_size=1,
            max_size=6,
        ),
        prior=amounts,
    )
    @settings(max_examples=100, deadline=None)
    def test_idempotent_and_pure(
        self, make_transaction, make_line, make_customer, make_licence,
        make_threshold, quantities, prior,
    ):
        from compliance_kernel.domain.transaction import UsageRecord

        tx = make_transaction(
            lines=tuple(
                make_line(i + 1, code, str(qty)) for i, (code, qty) in enumerate(quantities)
            )
        )
        snapshot = ValidationSnapshot(
            transaction=tx,
            customer=make_customer(),
            licences=(make_licence(),),
            thresholds=(make_threshold(),),
            substances={s.code: s for s in (MORPHINE, CODEINE, EPHEDRINE)},
            history=(
                UsageRecord("TX-PRIOR", "CUST-1", "MORPH", tx.transaction_date, prior),
            ),
        )
        validator = TransactionValidator()
        first = validator.validate(snapshot)
        second = validator.validate(snapshot)

        assert first == second
        assert tx.validation_status is ValidationStatus.PENDING
        assert first.is_valid == (first.status is ValidationStatus.PASSED)
        if first.requires_override:
            assert all(v.can_override for v in first.critical_violations)
