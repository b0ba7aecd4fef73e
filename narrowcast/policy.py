"""
narrowcast/policy.py
════════════════════

The narrowing policy: which (source type, destination type) pairs lose
information badly enough to report.

Only the 64 → 32 bit boundary is considered:

  ┌──────────────────┬──────────────────┬──────────────────┬─────────────┐
  │ rule             │ from             │ to               │ verdict     │
  ├──────────────────┼──────────────────┼──────────────────┼─────────────┤
  │ SAME_CATEGORY    │ int/float, 64    │ same category,32 │ narrowing   │
  │ INT_TO_FLOAT     │ integer, 64      │ float, 32        │ narrowing   │
  │ FLOAT_TO_INT     │ float, 64        │ integer, 32      │ narrowing   │
  │ —                │ anything else    │                  │ none        │
  └──────────────────┴──────────────────┴──────────────────┴─────────────┘

The decision is made on declared types alone; whether a particular value
would survive the conversion is never considered.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from narrowcast.type_model import CTypeQuery, NumericCategory, TypeQuery

_log = logging.getLogger(__name__)

WIDE_BITS = 64
NARROW_BITS = 32

_DEFAULT_QUERY = CTypeQuery()


class Verdict(Enum):
    NONE = "none"
    NARROWING = "narrowing"


class NarrowingRule(Enum):
    """
    Which row of the policy table matched.

    Each carries the cppcheck ``errorId`` and CWE its diagnostics use.
    """

    SAME_CATEGORY = ("narrowingConversion", 197)
    INT_TO_FLOAT = ("intToFloatPrecisionLoss", 197)
    FLOAT_TO_INT = ("floatToIntTruncation", 681)

    def __init__(self, error_id: str, cwe: int) -> None:
        self.error_id = error_id
        self.cwe = cwe


def narrowing_rule(
    to_type: Any,
    from_type: Any,
    types: TypeQuery = _DEFAULT_QUERY,
) -> Optional[NarrowingRule]:
    """Return the rule that makes ``from_type → to_type`` lossy, or None."""
    if to_type is None or from_type is None:
        return None
    if types.is_error(to_type) or types.is_error(from_type):
        return None
    if not (types.is_numeric(to_type) and types.is_numeric(from_type)):
        return None

    from_main = types.main_variant(from_type)
    to_main = types.main_variant(to_type)
    from_cat = types.category(from_main)
    to_cat = types.category(to_main)
    from_bits = types.precision(from_main)
    to_bits = types.precision(to_main)

    _log.debug(
        "  to  : %s (precision: %d)", types.display_name(to_type), to_bits)
    _log.debug(
        "  from: %s (precision: %d)", types.display_name(from_type), from_bits)

    if from_bits != WIDE_BITS or to_bits != NARROW_BITS:
        return None
    if from_cat == to_cat:
        return NarrowingRule.SAME_CATEGORY
    if from_cat == NumericCategory.INTEGER and to_cat == NumericCategory.FLOAT:
        return NarrowingRule.INT_TO_FLOAT
    if from_cat == NumericCategory.FLOAT and to_cat == NumericCategory.INTEGER:
        return NarrowingRule.FLOAT_TO_INT
    return None


def classify(
    to_type: Any,
    from_type: Any,
    types: TypeQuery = _DEFAULT_QUERY,
) -> Verdict:
    """Apply the policy table to a destination/source type pair."""
    if narrowing_rule(to_type, from_type, types) is None:
        return Verdict.NONE
    return Verdict.NARROWING


__all__ = [
    "Verdict",
    "NarrowingRule",
    "narrowing_rule",
    "classify",
    "WIDE_BITS",
    "NARROW_BITS",
]
