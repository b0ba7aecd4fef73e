"""narrowcast/tree.py – Syntax tree of a function body as the analysis sees it.

A host (the cppcheck frontend, or a test building trees by hand) converts
its parsed representation into these nodes once per function.  The
analysis only reads them.

Design invariants
-----------------
* Every node is a frozen dataclass; child sequences are tuples.
* Every node class carries a ``kind`` tag from the closed ``NodeKind`` set.
  Unknown host constructs map to ``Opaque``, which keeps its operands so
  traversal stays complete.
* Expression nodes carry the ``type`` the host computed for them.  For a
  conversion wrapper that is the *destination* type; the source type is the
  type of the wrapped operand.
* Nodes record an optional ``SourceLocation``; ``None`` means the host had
  no position for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, ClassVar, Optional, Tuple

from narrowcast.diagnostics import SourceLocation
from narrowcast.type_model import CType

__all__ = [
    "NodeKind",
    "ConversionOp",
    "FunctionDecl",
    "Node",
    "VarRef",
    "Literal",
    "FunctionRef",
    "AddressOf",
    "Convert",
    "InitExpr",
    "Assign",
    "Call",
    "Operation",
    "VarDecl",
    "DeclStmt",
    "Return",
    "ExprStmt",
    "Block",
    "Bind",
    "If",
    "For",
    "While",
    "DoWhile",
    "Switch",
    "CaseLabel",
    "Opaque",
    "type_of",
]


class NodeKind(Enum):
    VAR_REF = auto()
    LITERAL = auto()
    FUNCTION_REF = auto()
    ADDRESS_OF = auto()
    CONVERT = auto()
    INIT_EXPR = auto()
    ASSIGN = auto()
    CALL = auto()
    OPERATION = auto()
    VAR_DECL = auto()
    DECL_STMT = auto()
    RETURN = auto()
    EXPR_STMT = auto()
    BLOCK = auto()
    BIND = auto()
    IF = auto()
    FOR = auto()
    WHILE = auto()
    DO_WHILE = auto()
    SWITCH = auto()
    CASE_LABEL = auto()
    OPAQUE = auto()


class ConversionOp(Enum):
    """Flavours of conversion wrapper a host may produce."""
    NOP = auto()            # no-op / qualification change
    CONVERT = auto()        # value-changing conversion, incl. explicit casts
    VIEW_CONVERT = auto()   # reinterpretation of the same bits
    FLOAT = auto()          # integer → floating
    FIX_TRUNC = auto()      # floating → integer (truncating)
    NON_LVALUE = auto()     # rvalue marker; not transparent


@dataclass(frozen=True)
class FunctionDecl:
    """
    A statically known function: what a direct call binds its arguments to.

    ``param_types`` lists the declared parameter types in order.  A ``None``
    entry marks a parameter whose type the host could not determine; argument
    checking stops there, as it does past the last declared parameter.
    """

    name: str
    return_type: Optional[CType] = None
    param_types: Tuple[Optional[CType], ...] = ()
    variadic: bool = False
    location: Optional[SourceLocation] = None


class Node:
    """Base class of all syntax nodes."""

    __slots__ = ()
    kind: ClassVar[NodeKind]
    is_expression: ClassVar[bool] = False

    def children(self) -> Tuple[Optional[Node], ...]:
        """Direct sub-nodes in source order (may contain ``None``)."""
        return ()


# ════════════════════════════════════════════════════════════════════════
# Expressions
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class VarRef(Node):
    name: str
    type: Optional[CType] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.VAR_REF
    is_expression: ClassVar[bool] = True


@dataclass(frozen=True, slots=True)
class Literal(Node):
    value: Any
    type: Optional[CType] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.LITERAL
    is_expression: ClassVar[bool] = True


@dataclass(frozen=True, slots=True)
class FunctionRef(Node):
    """Names a function directly (the callee of a direct call)."""

    function: FunctionDecl
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.FUNCTION_REF
    is_expression: ClassVar[bool] = True

    @property
    def type(self) -> CType:
        return CType.func(self.function.name)


@dataclass(frozen=True, slots=True)
class AddressOf(Node):
    operand: Node
    type: Optional[CType] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.ADDRESS_OF
    is_expression: ClassVar[bool] = True

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.operand,)


@dataclass(frozen=True, slots=True)
class Convert(Node):
    """Conversion wrapper; ``type`` is the destination type."""

    op: ConversionOp
    operand: Node
    type: Optional[CType] = None
    explicit: bool = False
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.CONVERT
    is_expression: ClassVar[bool] = True

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.operand,)


@dataclass(frozen=True, slots=True)
class InitExpr(Node):
    """Initializer binding: ``value`` initialises ``target``."""

    target: Node
    value: Node
    type: Optional[CType] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.INIT_EXPR
    is_expression: ClassVar[bool] = True

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.target, self.value)


@dataclass(frozen=True, slots=True)
class Assign(Node):
    """Assignment, simple (``=``) or compound (``+=``, ``<<=`` ...)."""

    lhs: Node
    rhs: Node
    op: str = "="
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.ASSIGN
    is_expression: ClassVar[bool] = True

    @property
    def type(self) -> Optional[CType]:
        return type_of(self.lhs)

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.lhs, self.rhs)


@dataclass(frozen=True, slots=True)
class Call(Node):
    callee: Node
    args: Tuple[Node, ...] = ()
    type: Optional[CType] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.CALL
    is_expression: ClassVar[bool] = True

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.callee,) + tuple(self.args)


@dataclass(frozen=True, slots=True)
class Operation(Node):
    """
    Any operator expression: arithmetic, bitwise, shift, comparison,
    logical, dereference, comma, conditional, subscript, member access.
    """

    op: str
    operands: Tuple[Node, ...] = ()
    type: Optional[CType] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.OPERATION
    is_expression: ClassVar[bool] = True

    def children(self) -> Tuple[Optional[Node], ...]:
        return tuple(self.operands)


# ════════════════════════════════════════════════════════════════════════
# Statements
# ════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class VarDecl(Node):
    """A variable declaration, with or without an initializer."""

    name: str
    type: Optional[CType] = None
    initializer: Optional[Node] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.VAR_DECL

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.initializer,)


@dataclass(frozen=True, slots=True)
class DeclStmt(Node):
    decl: VarDecl
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.DECL_STMT

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.decl,)


@dataclass(frozen=True, slots=True)
class Return(Node):
    value: Optional[Node] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.RETURN

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.value,)


@dataclass(frozen=True, slots=True)
class ExprStmt(Node):
    expr: Node
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.EXPR_STMT

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.expr,)


@dataclass(frozen=True, slots=True)
class Block(Node):
    statements: Tuple[Node, ...] = ()
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.BLOCK

    def children(self) -> Tuple[Optional[Node], ...]:
        return tuple(self.statements)


@dataclass(frozen=True, slots=True)
class Bind(Node):
    """
    A scope that introduces ``variables`` for the duration of ``body``.

    A declaration whose initializer also appears as a ``DeclStmt`` in the
    body must be listed here without its initializer.
    """

    variables: Tuple[VarDecl, ...] = ()
    body: Optional[Node] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.BIND

    def children(self) -> Tuple[Optional[Node], ...]:
        return tuple(self.variables) + (self.body,)


@dataclass(frozen=True, slots=True)
class If(Node):
    cond: Optional[Node]
    then: Optional[Node] = None
    else_: Optional[Node] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.IF

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.cond, self.then, self.else_)


@dataclass(frozen=True, slots=True)
class For(Node):
    init: Optional[Node] = None
    cond: Optional[Node] = None
    step: Optional[Node] = None
    body: Optional[Node] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.FOR

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.init, self.cond, self.step, self.body)


@dataclass(frozen=True, slots=True)
class While(Node):
    cond: Optional[Node]
    body: Optional[Node] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.WHILE

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.cond, self.body)


@dataclass(frozen=True, slots=True)
class DoWhile(Node):
    body: Optional[Node]
    cond: Optional[Node] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.DO_WHILE

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.body, self.cond)


@dataclass(frozen=True, slots=True)
class Switch(Node):
    cond: Optional[Node]
    body: Optional[Node] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.SWITCH

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.cond, self.body)


@dataclass(frozen=True, slots=True)
class CaseLabel(Node):
    low: Optional[Node] = None
    high: Optional[Node] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.CASE_LABEL

    def children(self) -> Tuple[Optional[Node], ...]:
        return (self.low, self.high)


@dataclass(frozen=True, slots=True)
class Opaque(Node):
    """
    A host construct with no dedicated variant.

    When ``is_expression`` holds, the walker still descends into
    ``operands``; otherwise the node is a leaf to it.
    """

    name: str
    operands: Tuple[Node, ...] = ()
    expression: bool = True
    type: Optional[CType] = None
    location: Optional[SourceLocation] = None

    kind: ClassVar[NodeKind] = NodeKind.OPAQUE

    @property
    def is_expression(self) -> bool:  # type: ignore[override]
        return self.expression

    def children(self) -> Tuple[Optional[Node], ...]:
        return tuple(self.operands)


# ════════════════════════════════════════════════════════════════════════
# Helpers
# ════════════════════════════════════════════════════════════════════════


def type_of(node: Optional[Node]) -> Optional[CType]:
    """The type the host recorded for ``node``, or ``None``."""
    if node is None:
        return None
    return getattr(node, "type", None)
