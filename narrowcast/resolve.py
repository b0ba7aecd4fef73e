"""
narrowcast/resolve.py
═════════════════════

Seeing through conversion wrappers.

At a conversion site the outer expression already has the destination
type — the host wrapped the source in one or more implicit or explicit
conversions.  ``resolve_original_type`` peels those wrappers to recover the
type the value had before any conversion; ``resolve_callee`` peels the
wrappers around a call's callee to find the function a direct call binds to.

Both are loops over a fixed set of transparent node kinds, so their cost
is the length of the wrapper chain.
"""

from __future__ import annotations

import logging
from typing import FrozenSet, Optional

from narrowcast.tree import (
    AddressOf,
    ConversionOp,
    Convert,
    FunctionDecl,
    FunctionRef,
    InitExpr,
    Node,
    type_of,
)
from narrowcast.type_model import CType

_log = logging.getLogger(__name__)

# Conversions that do not change which value is being converted.
TRANSPARENT_CONVERSIONS: FrozenSet[ConversionOp] = frozenset({
    ConversionOp.NOP,
    ConversionOp.CONVERT,
    ConversionOp.VIEW_CONVERT,
    ConversionOp.FLOAT,
    ConversionOp.FIX_TRUNC,
})

# Conversions a callee expression may be wrapped in.
CALLEE_CONVERSIONS: FrozenSet[ConversionOp] = frozenset({
    ConversionOp.NOP,
    ConversionOp.CONVERT,
})


def original_expression(expr: Optional[Node]) -> Optional[Node]:
    """Return the innermost expression under initializer/conversion wrappers."""
    current = expr
    if isinstance(current, InitExpr):
        current = current.value
        _log.debug("      found initializer, looking at source operand: %s",
                   current.kind.name if current is not None else None)

    while isinstance(current, Convert) and current.op in TRANSPARENT_CONVERSIONS:
        current = current.operand
        _log.debug("      peeled to: %s",
                   current.kind.name if current is not None else None)
    return current


def resolve_original_type(expr: Optional[Node]) -> Optional[CType]:
    """
    Type of ``expr`` before any conversion was applied.

    Falls back to the type of ``expr`` itself when unwrapping leaves
    nothing to inspect.
    """
    if expr is None:
        return None
    inner = original_expression(expr)
    if inner is None:
        return type_of(expr)
    return type_of(inner)


def resolve_callee(callee: Optional[Node]) -> Optional[FunctionDecl]:
    """
    The function a call statically targets, or None.

    Calls through function-pointer variables, member functions dispatched
    virtually, or any other computed callee are not resolvable.
    """
    current = callee
    while current is not None:
        if isinstance(current, FunctionRef):
            return current.function
        if isinstance(current, AddressOf):
            current = current.operand
        elif isinstance(current, Convert) and current.op in CALLEE_CONVERSIONS:
            current = current.operand
        else:
            _log.debug("  callee %s is not a direct function reference",
                       current.kind.name)
            return None
    return None


__all__ = [
    "TRANSPARENT_CONVERSIONS",
    "CALLEE_CONVERSIONS",
    "original_expression",
    "resolve_original_type",
    "resolve_callee",
]
