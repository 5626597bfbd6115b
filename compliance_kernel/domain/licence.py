"""
Licence domain types (``compliance_kernel.domain.licence``).

Responsibility
--------------
Value objects for licences held by customers or by the company itself:
the licence type snapshot (permitted activities, substance scope, permit
kind), per-substance mappings with quantity caps, and the licence record.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import only
from other ``domain`` modules and ``exceptions``.

Invariants enforced
-------------------
* Expiry date never precedes issue date (``Licence.validate``).
* Permitted activities are a subset of the licence type's activities.
* Mapping quantity caps are non-negative.
* ``is_licence_effective_on`` is the single effective-date test, shared by
  coverage resolution and retroactive correction analysis.

Failure modes
-------------
* ``InvalidLicenceError`` from ``validate()`` listing every problem found.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from compliance_kernel.domain.substance import ControlledSubstance, OpiumActList
from compliance_kernel.exceptions import InvalidLicenceError


class PermittedActivity(str, Enum):
    """Activity a licence authorises."""

    POSSESS = "possess"
    STORE = "store"
    DISTRIBUTE = "distribute"
    IMPORT = "import"
    EXPORT = "export"
    MANUFACTURE = "manufacture"
    HANDLE_PRECURSORS = "handle_precursors"


class LicenceStatus(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"
    SUSPENDED = "suspended"
    REVOKED = "revoked"


class HolderType(str, Enum):
    CUSTOMER = "customer"
    COMPANY = "company"


class SubstanceScope(str, Enum):
    """Which substances a licence type covers without an explicit mapping."""

    ALL_SUBSTANCES = "all_substances"
    OPIUM_ACT = "opium_act"
    OPIUM_ACT_LIST_I = "opium_act_list_i"
    OPIUM_ACT_LIST_II = "opium_act_list_ii"
    PRECURSORS = "precursors"
    MAPPED_ONLY = "mapped_only"


class PermitKind(str, Enum):
    IMPORT = "import"
    EXPORT = "export"


class PeriodType(str, Enum):
    """Accumulation period for limits."""

    PER_TRANSACTION = "per_transaction"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


def is_licence_effective_on(
    issue_date: date,
    expiry_date: date | None,
    on: date,
) -> bool:
    """True when ``on`` falls within ``[issue_date, expiry_date]``.

    A missing expiry date means the licence never lapses.
    """
    if on < issue_date:
        return False
    if expiry_date is not None and on > expiry_date:
        return False
    return True


@dataclass(frozen=True)
class LicenceType:
    """Catalogue entry for a kind of licence."""

    code: str
    name: str
    issuing_authority: str
    permitted_activities: frozenset[PermittedActivity]
    substance_scope: SubstanceScope = SubstanceScope.MAPPED_ONLY
    permit_kind: PermitKind | None = None

    def covers_by_scope(self, substance: ControlledSubstance) -> bool:
        scope = self.substance_scope
        if scope is SubstanceScope.ALL_SUBSTANCES:
            return True
        if scope is SubstanceScope.OPIUM_ACT:
            return substance.is_opium_act_controlled
        if scope is SubstanceScope.OPIUM_ACT_LIST_I:
            return substance.opium_act_list is OpiumActList.LIST_I
        if scope is SubstanceScope.OPIUM_ACT_LIST_II:
            return substance.opium_act_list is OpiumActList.LIST_II
        if scope is SubstanceScope.PRECURSORS:
            return substance.is_precursor
        return False


@dataclass(frozen=True)
class LicenceSubstanceMapping:
    """Explicit authorisation of one substance under one licence."""

    substance_code: str
    max_quantity_per_transaction: Decimal | None = None
    max_quantity_per_period: Decimal | None = None
    period_type: PeriodType | None = None
    restrictions: str | None = None

    def problems(self) -> list[str]:
        found = []
        if (
            self.max_quantity_per_transaction is not None
            and self.max_quantity_per_transaction < 0
        ):
            found.append(
                f"{self.substance_code}: max quantity per transaction is negative"
            )
        if (
            self.max_quantity_per_period is not None
            and self.max_quantity_per_period < 0
        ):
            found.append(
                f"{self.substance_code}: max quantity per period is negative"
            )
        return found


@dataclass(frozen=True)
class Licence:
    """A licence held by a customer or by the company.

    ``issue_date`` is the effective date.  ``expiry_date`` of None means
    the licence is valid until revoked.
    """

    licence_id: str
    licence_number: str
    licence_type: LicenceType
    holder_type: HolderType
    holder_id: str
    issue_date: date
    expiry_date: date | None = None
    status: LicenceStatus = LicenceStatus.VALID
    permitted_activities: frozenset[PermittedActivity] = frozenset()
    substance_mappings: tuple[LicenceSubstanceMapping, ...] = ()
    issuing_authority: str = ""

    def validate(self) -> None:
        """Raise ``InvalidLicenceError`` if the record is inconsistent."""
        problems: list[str] = []
        if self.expiry_date is not None and self.expiry_date < self.issue_date:
            problems.append(
                f"expiry date {self.expiry_date} precedes issue date "
                f"{self.issue_date}"
            )
        extra = self.permitted_activities - self.licence_type.permitted_activities
        if extra:
            names = ", ".join(sorted(a.value for a in extra))
            problems.append(
                f"activities not permitted by licence type "
                f"{self.licence_type.code}: {names}"
            )
        for mapping in self.substance_mappings:
            problems.extend(mapping.problems())
        if problems:
            raise InvalidLicenceError(self.licence_number, tuple(problems))

    def is_effective_on(self, on: date) -> bool:
        return is_licence_effective_on(self.issue_date, self.expiry_date, on)

    def mapping_for(self, substance_code: str) -> LicenceSubstanceMapping | None:
        wanted = substance_code.upper()
        for mapping in self.substance_mappings:
            if mapping.substance_code.upper() == wanted:
                return mapping
        return None

    def covers_substance(self, substance: ControlledSubstance) -> bool:
        if self.mapping_for(substance.code) is not None:
            return True
        return self.licence_type.covers_by_scope(substance)

    @property
    def effective_activities(self) -> frozenset[PermittedActivity]:
        """Licence-level activities, or the type's when none are recorded."""
        return self.permitted_activities or self.licence_type.permitted_activities

    def permits(self, activities: frozenset[PermittedActivity]) -> bool:
        return activities <= self.effective_activities

    @property
    def is_company_licence(self) -> bool:
        return self.holder_type is HolderType.COMPANY
