"""
Tests for violation codes, violations and validation results.

Tests cover:
- Default severity and overridability per code
- Status derivation from Critical violations
- requires_override only when every Critical finding is overridable
- Serialization to plain dicts
"""

from decimal import Decimal

import pytest

from compliance_kernel.domain.transaction import ValidationStatus
from compliance_kernel.domain.violations import (
    LICENCE_DATING_CODES,
    LineOutcome,
    ValidationResult,
    ValidationViolation,
    ViolationCode,
    ViolationSeverity,
)


class TestViolationCode:
    """Severity and override defaults."""

    @pytest.mark.parametrize(
        "code",
        [
            ViolationCode.LICENCE_EXPIRED,
            ViolationCode.LICENCE_MISSING,
            ViolationCode.LICENCE_SUSPENDED,
            ViolationCode.LICENCE_REVOKED,
            ViolationCode.LICENCE_SCOPE_INSUFFICIENT,
            ViolationCode.SUBSTANCE_NOT_AUTHORIZED,
            ViolationCode.THRESHOLD_EXCEEDED,
            ViolationCode.MISSING_PERMIT,
            ViolationCode.CUSTOMER_NOT_APPROVED,
        ],
    )
    def test_blocking_overridable_codes(self, code):
        assert code.default_severity is ViolationSeverity.CRITICAL
        assert code.overridable

    def test_customer_suspended_is_not_overridable(self):
        code = ViolationCode.CUSTOMER_SUSPENDED
        assert code.default_severity is ViolationSeverity.CRITICAL
        assert not code.overridable

    @pytest.mark.parametrize(
        "code, severity",
        [
            (ViolationCode.THRESHOLD_WARNING, ViolationSeverity.WARNING),
            (ViolationCode.GDP_NOT_QUALIFIED, ViolationSeverity.WARNING),
            (ViolationCode.CUSTOMER_CONDITIONALLY_APPROVED, ViolationSeverity.INFO),
        ],
    )
    def test_non_blocking_codes(self, code, severity):
        assert code.default_severity is severity

    def test_every_code_has_a_severity(self):
        for code in ViolationCode:
            assert isinstance(code.default_severity, ViolationSeverity)

    def test_dating_codes(self):
        assert LICENCE_DATING_CODES == {"LICENCE_EXPIRED", "LICENCE_MISSING"}


class TestValidationViolation:
    """Factory and serialization."""

    def test_of_uses_code_defaults(self):
        v = ValidationViolation.of(ViolationCode.LICENCE_EXPIRED, "expired")
        assert v.severity is ViolationSeverity.CRITICAL
        assert v.can_override is True
        assert v.is_critical

    def test_of_can_override_explicit(self):
        v = ValidationViolation.of(
            ViolationCode.THRESHOLD_EXCEEDED, "over", can_override=False
        )
        assert v.can_override is False

    def test_of_accepts_context(self):
        v = ValidationViolation.of(
            ViolationCode.THRESHOLD_EXCEEDED,
            "over",
            line_number=2,
            substance_code="MORPH",
            threshold_id="THR-1",
            limit_value=Decimal("100"),
            usage=Decimal("120"),
            period="monthly",
        )
        assert v.line_number == 2
        assert v.usage == Decimal("120")

    def test_to_dict_omits_missing_context(self):
        v = ValidationViolation.of(ViolationCode.MISSING_PERMIT, "no permit")
        assert v.to_dict() == {
            "code": "MISSING_PERMIT",
            "severity": "critical",
            "message": "no permit",
            "can_override": True,
        }

    def test_to_dict_stringifies_decimals(self):
        v = ValidationViolation.of(
            ViolationCode.THRESHOLD_WARNING,
            "near",
            limit_value=Decimal("100"),
            usage=Decimal("85.5"),
        )
        data = v.to_dict()
        assert data["limit_value"] == "100"
        assert data["usage"] == "85.5"


class TestValidationResult:
    """Status and override derivation."""

    def _v(self, code, **kw):
        return ValidationViolation.of(code, code.value, **kw)

    def test_no_violations_passes(self):
        result = ValidationResult.from_violations("TX-1", ())
        assert result.status is ValidationStatus.PASSED
        assert result.is_valid
        assert not result.requires_override

    def test_warnings_only_passes(self):
        result = ValidationResult.from_violations(
            "TX-1",
            (
                self._v(ViolationCode.THRESHOLD_WARNING),
                self._v(ViolationCode.CUSTOMER_CONDITIONALLY_APPROVED),
            ),
        )
        assert result.status is ValidationStatus.PASSED
        assert len(result.warnings) == 2
        assert result.critical_violations == ()

    def test_overridable_critical_requires_override(self):
        result = ValidationResult.from_violations(
            "TX-1",
            (
                self._v(ViolationCode.LICENCE_EXPIRED),
                self._v(ViolationCode.THRESHOLD_WARNING),
            ),
        )
        assert result.status is ValidationStatus.FAILED
        assert result.requires_override

    def test_one_non_overridable_critical_blocks_override(self):
        result = ValidationResult.from_violations(
            "TX-1",
            (
                self._v(ViolationCode.LICENCE_EXPIRED),
                self._v(ViolationCode.CUSTOMER_SUSPENDED),
            ),
        )
        assert result.status is ValidationStatus.FAILED
        assert not result.requires_override

    def test_codes_distinct_in_order(self):
        result = ValidationResult.from_violations(
            "TX-1",
            (
                self._v(ViolationCode.MISSING_PERMIT, substance_code="A"),
                self._v(ViolationCode.LICENCE_EXPIRED),
                self._v(ViolationCode.MISSING_PERMIT, substance_code="B"),
            ),
        )
        assert result.codes == ("MISSING_PERMIT", "LICENCE_EXPIRED")
        assert len(result.by_code(ViolationCode.MISSING_PERMIT)) == 2

    def test_licences_used_from_line_outcomes(self):
        result = ValidationResult.from_violations(
            "TX-1",
            (),
            (
                LineOutcome(1, "MORPH", True, covering_licence_number="WDA-001"),
                LineOutcome(2, "COD", True, covering_licence_number="WDA-001"),
                LineOutcome(3, "EPH", True, covering_licence_number="PRE-7"),
                LineOutcome(4, "X", False, error_code="LICENCE_MISSING"),
            ),
        )
        assert result.licences_used == ("WDA-001", "PRE-7")

    def test_to_dict(self):
        result = ValidationResult.from_violations(
            "TX-1",
            (self._v(ViolationCode.LICENCE_MISSING, line_number=1),),
            (LineOutcome(1, "MORPH", False, error_code="LICENCE_MISSING"),),
        )
        data = result.to_dict()
        assert data["transaction_id"] == "TX-1"
        assert data["status"] == "failed"
        assert data["is_valid"] is False
        assert data["requires_override"] is True
        assert data["violations"][0]["line_number"] == 1
        assert data["lines"][0]["error_code"] == "LICENCE_MISSING"
