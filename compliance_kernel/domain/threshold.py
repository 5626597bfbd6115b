"""
Threshold configuration (``compliance_kernel.domain.threshold``).

Responsibility
--------------
Consumption limits (quantity, value, transaction frequency) per substance,
customer or customer category, and the arithmetic used to compare usage
against them: exceeded, warning band, override ceiling, usage percent.
Also defines the period windows over which usage accumulates.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects and functions.  ZERO I/O.

Invariants enforced
-------------------
* ``is_exceeded(usage)`` is strictly ``usage > limit``.
* The warning band is ``limit * warning% / 100 <= usage <= limit``.
* When ``max_override_percentage`` is set, no override may push usage above
  ``limit * max_override_percentage / 100``, even if ``allow_override``.
* Period windows are closed intervals; weeks run Monday to Sunday.

Failure modes
-------------
* ``InvalidThresholdError`` from ``validate()``.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum

from compliance_kernel.domain.customer import BusinessCategory
from compliance_kernel.domain.licence import PeriodType
from compliance_kernel.exceptions import InvalidThresholdError

_HUNDRED = Decimal("100")


class ThresholdType(str, Enum):
    QUANTITY = "quantity"
    FREQUENCY = "frequency"
    VALUE = "value"
    CUMULATIVE_QUANTITY = "cumulative_quantity"


def period_window(period: PeriodType, on: date) -> tuple[date, date]:
    """Closed date interval containing ``on`` for the given period."""
    if period is PeriodType.PER_TRANSACTION or period is PeriodType.DAILY:
        return on, on
    if period is PeriodType.WEEKLY:
        start = on - timedelta(days=on.weekday())
        return start, start + timedelta(days=6)
    if period is PeriodType.MONTHLY:
        last = calendar.monthrange(on.year, on.month)[1]
        return on.replace(day=1), on.replace(day=last)
    if period is PeriodType.YEARLY:
        return date(on.year, 1, 1), date(on.year, 12, 31)
    raise ValueError(f"Unknown period: {period}")


@dataclass(frozen=True)
class Threshold:
    """A configured consumption limit."""

    threshold_id: str
    name: str
    threshold_type: ThresholdType
    period: PeriodType
    limit_value: Decimal
    limit_unit: str = "g"
    warning_percentage: Decimal = Decimal("80")
    allow_override: bool = True
    max_override_percentage: Decimal | None = None
    substance_code: str | None = None
    customer_id: str | None = None
    customer_category: BusinessCategory | None = None
    effective_from: date | None = None
    effective_to: date | None = None
    is_active: bool = True

    def validate(self) -> None:
        problems: list[str] = []
        if self.limit_value <= 0:
            problems.append("limit value must be positive")
        if not (0 <= self.warning_percentage <= 100):
            problems.append("warning percentage must be between 0 and 100")
        if (
            self.max_override_percentage is not None
            and self.max_override_percentage <= 100
        ):
            problems.append("max override percentage must exceed 100")
        if (
            self.effective_from is not None
            and self.effective_to is not None
            and self.effective_to < self.effective_from
        ):
            problems.append("effective window ends before it starts")
        if problems:
            raise InvalidThresholdError(self.name, tuple(problems))

    def is_effective(self, on: date) -> bool:
        if not self.is_active:
            return False
        if self.effective_from is not None and on < self.effective_from:
            return False
        if self.effective_to is not None and on > self.effective_to:
            return False
        return True

    def applies_to_substance(self, substance_code: str) -> bool:
        if not self.substance_code:
            return True
        return self.substance_code.casefold() == substance_code.casefold()

    def applies_to_customer(
        self,
        customer_id: str,
        category: BusinessCategory,
    ) -> bool:
        # A specific customer scope wins over category scope.
        if self.customer_id is not None:
            return self.customer_id == customer_id
        if self.customer_category is not None:
            return self.customer_category == category
        return True

    @property
    def warning_level(self) -> Decimal:
        return self.limit_value * self.warning_percentage / _HUNDRED

    @property
    def override_ceiling(self) -> Decimal | None:
        if self.max_override_percentage is None:
            return None
        return self.limit_value * self.max_override_percentage / _HUNDRED

    def is_exceeded(self, usage: Decimal) -> bool:
        return usage > self.limit_value

    def is_warning(self, usage: Decimal) -> bool:
        return self.warning_level <= usage <= self.limit_value

    def exceeds_max_override(self, usage: Decimal) -> bool:
        ceiling = self.override_ceiling
        if not self.allow_override or ceiling is None:
            return False
        return usage > ceiling

    def can_override(self, requested_amount: Decimal) -> bool:
        """Whether an override may authorise ``requested_amount`` in total."""
        return self.allow_override and not self.exceeds_max_override(
            requested_amount
        )

    def get_usage_percent(self, usage: Decimal) -> Decimal:
        if self.limit_value == 0:
            return _HUNDRED
        return usage / self.limit_value * _HUNDRED
