"""
narrowcast/walker.py
════════════════════

The tree walker: one pre-order pass over a function body that checks every
conversion site and descends into everything else.

Conversion sites
────────────────
  ┌──────────────────────────┬─────────────────────────────────────────┐
  │ node                     │ destination ← source                    │
  ├──────────────────────────┼─────────────────────────────────────────┤
  │ VarDecl with initializer │ declared type ← initializer             │
  │ Assign                   │ type of lhs   ← rhs                     │
  │ Call (direct callee)     │ parameter i   ← argument i              │
  │ Return with value        │ function's return type ← value          │
  └──────────────────────────┴─────────────────────────────────────────┘

A site is checked before its children are visited, and its children are
always visited, so a call nested in an assignment's right-hand side is
checked too.  Node kinds without a dedicated rule are descended into when
they are expressions, which keeps coverage complete without listing every
construct a host may produce.

Entry point
───────────
``analyze(body, return_type)`` runs the walker over one function and
returns the diagnostics it produced.  Functions are independent; nothing
survives from one call to the next.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Optional, Tuple

from narrowcast.diagnostics import (
    UNKNOWN_LOCATION,
    ConversionContext,
    Diagnostic,
    DiagnosticEmitter,
    SourceLocation,
)
from narrowcast.policy import narrowing_rule
from narrowcast.resolve import resolve_callee, resolve_original_type
from narrowcast.tree import (
    Assign,
    Call,
    FunctionDecl,
    Node,
    NodeKind,
    Return,
    VarDecl,
    type_of,
)
from narrowcast.type_model import CTypeQuery, TypeQuery

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FunctionContext:
    """Per-function state: the declared return type of the function."""
    return_type: Any = None


@dataclass
class AnalysisContext:
    """
    Capabilities the walker is given instead of reaching for globals.

    Attributes
    ----------
    types             : answers type questions (numeric? width? name?)
    emitter           : where findings are reported
    fallback_location : used for nodes that carry no location of their own
    """
    types: TypeQuery = field(default_factory=CTypeQuery)
    emitter: Optional[DiagnosticEmitter] = None
    fallback_location: SourceLocation = UNKNOWN_LOCATION

    def __post_init__(self) -> None:
        if self.emitter is None:
            self.emitter = DiagnosticEmitter(types=self.types)


# Kinds whose children are all visited in source order.
_CONTAINER_KINDS = frozenset({
    NodeKind.BLOCK,
    NodeKind.BIND,
    NodeKind.IF,
    NodeKind.FOR,
    NodeKind.WHILE,
    NodeKind.DO_WHILE,
    NodeKind.SWITCH,
    NodeKind.CASE_LABEL,
    NodeKind.EXPR_STMT,
    NodeKind.DECL_STMT,
    NodeKind.VAR_DECL,
    NodeKind.RETURN,
})

_EXPRESSION_KINDS = frozenset({
    NodeKind.ADDRESS_OF,
    NodeKind.CONVERT,
    NodeKind.INIT_EXPR,
    NodeKind.ASSIGN,
    NodeKind.CALL,
    NodeKind.OPERATION,
})


class NarrowingWalker:
    """
    Walks one function body and reports lossy conversions.

    Usage
    -----
    >>> ctx = AnalysisContext()
    >>> NarrowingWalker(ctx, FunctionContext(return_type=int32)).visit(body)
    >>> ctx.emitter.diagnostics
    """

    def __init__(self, context: AnalysisContext, function: FunctionContext) -> None:
        self.context = context
        self.function = function
        self._checks: Dict[NodeKind, Callable[[Any, SourceLocation], None]] = {
            NodeKind.VAR_DECL: self._check_var_decl,
            NodeKind.ASSIGN: self._check_assign,
            NodeKind.CALL: self._check_call,
            NodeKind.RETURN: self._check_return,
        }

    # ── traversal ────────────────────────────────────────────────────

    def visit(self, node: Optional[Node]) -> None:
        """Check ``node`` and every node below it, parents first."""
        # Explicit stack: generated code nests deeply enough to exhaust
        # Python's recursion limit.
        stack: List[Node] = [node] if node is not None else []
        while stack:
            current = stack.pop()
            _log.debug("Traversing node: %s", current.kind.name)
            check = self._checks.get(current.kind)
            if check is not None:
                check(current, self._location(current))
            for child in reversed(self._successors(current)):
                if child is not None:
                    stack.append(child)

    def _successors(self, node: Node) -> Tuple[Optional[Node], ...]:
        if node.kind in _CONTAINER_KINDS or node.kind in _EXPRESSION_KINDS:
            return node.children()
        if node.kind == NodeKind.OPAQUE and node.is_expression:
            return node.children()
        return ()

    def _location(
        self, node: Node, default: Optional[SourceLocation] = None
    ) -> SourceLocation:
        loc = getattr(node, "location", None)
        if loc is not None and loc.is_known:
            return loc
        if default is not None:
            return default
        return self.context.fallback_location

    # ── conversion sites ─────────────────────────────────────────────

    def _check_var_decl(self, node: VarDecl, loc: SourceLocation) -> None:
        if node.initializer is not None:
            self._check(loc, node.type, node.initializer,
                        ConversionContext.VARIABLE_INITIALIZATION)

    def _check_assign(self, node: Assign, loc: SourceLocation) -> None:
        self._check(loc, type_of(node.lhs), node.rhs, ConversionContext.ASSIGNMENT)

    def _check_call(self, node: Call, loc: SourceLocation) -> None:
        function: Optional[FunctionDecl] = resolve_callee(node.callee)
        if function is None:
            _log.debug("  Could not resolve callee, skipping.")
            return

        params = function.param_types
        for index, arg in enumerate(node.args):
            _log.debug("  Processing arg %d...", index)
            if index >= len(params) or params[index] is None:
                _log.debug("    No more parameter types, breaking.")
                break
            if arg is None:
                continue
            self._check(self._location(arg, default=loc), params[index], arg,
                        ConversionContext.FUNCTION_ARGUMENT)

    def _check_return(self, node: Return, loc: SourceLocation) -> None:
        if node.value is not None:
            self._check(loc, self.function.return_type, node.value,
                        ConversionContext.RETURN_VALUE)

    def _check(
        self,
        loc: SourceLocation,
        to_type: Any,
        from_expr: Node,
        context: ConversionContext,
    ) -> None:
        from_type = resolve_original_type(from_expr)
        _log.debug("Checking conversion in %s...", context)
        rule = narrowing_rule(to_type, from_type, self.context.types)
        if rule is None:
            return
        _log.debug("  >>> lossy conversion detected (%s) <<<", rule.name)
        self.context.emitter.report(loc, from_type, to_type, context, rule)


def analyze(
    body: Optional[Node],
    return_type: Any = None,
    context: Optional[AnalysisContext] = None,
) -> List[Diagnostic]:
    """
    Check one function body.

    Parameters
    ----------
    body        : root node of the function body
    return_type : the function's declared return type
    context     : capabilities to use; a fresh default one if omitted

    Returns
    -------
    The diagnostics this call produced, in traversal order.
    """
    ctx = context if context is not None else AnalysisContext()
    start = len(ctx.emitter.sink)
    NarrowingWalker(ctx, FunctionContext(return_type=return_type)).visit(body)
    return ctx.emitter.sink[start:]


def analyze_function(
    function: FunctionDecl,
    body: Optional[Node],
    context: Optional[AnalysisContext] = None,
) -> List[Diagnostic]:
    """``analyze`` for a declared function, falling back to its location."""
    ctx = context if context is not None else AnalysisContext()
    if function.location is not None and not ctx.fallback_location.is_known:
        ctx = replace(ctx, fallback_location=function.location)
    _log.debug("--- Processing function: %s ---", function.name)
    return analyze(body, function.return_type, ctx)


__all__ = [
    "FunctionContext",
    "AnalysisContext",
    "NarrowingWalker",
    "analyze",
    "analyze_function",
]
