"""
Controlled substance reference data (``compliance_kernel.domain.substance``).

Responsibility
--------------
Value objects describing a controlled substance and its regulatory
classification under the Dutch Opium Act and the EU drug-precursor
regulations.  Classification drives which licence types cover a substance.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class OpiumActList(str, Enum):
    """Opium Act schedule.  List I is hard drugs, List II soft drugs."""

    NONE = "none"
    LIST_I = "list_i"
    LIST_II = "list_ii"


class PrecursorCategory(str, Enum):
    """EU drug-precursor category (Regulation 273/2004)."""

    NONE = "none"
    CATEGORY_1 = "category_1"
    CATEGORY_2 = "category_2"
    CATEGORY_3 = "category_3"


@dataclass(frozen=True)
class ControlledSubstance:
    """A substance subject to licence and threshold controls."""

    code: str
    name: str
    opium_act_list: OpiumActList = OpiumActList.NONE
    precursor_category: PrecursorCategory = PrecursorCategory.NONE
    is_active: bool = True

    @property
    def is_opium_act_controlled(self) -> bool:
        return self.opium_act_list is not OpiumActList.NONE

    @property
    def is_precursor(self) -> bool:
        return self.precursor_category is not PrecursorCategory.NONE

    @property
    def is_controlled(self) -> bool:
        return self.is_opium_act_controlled or self.is_precursor
