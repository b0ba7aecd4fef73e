"""
narrowcast/frontend.py
══════════════════════

cppcheck token AST → narrowcast syntax tree.

cppcheck has already tokenized, simplified and parsed the program by the
time a ``.dump`` file exists: every expression token carries
``astOperand1``/``astOperand2``/``astParent`` links and a ``valueType``.
This module walks one function scope's token range and rebuilds the
statements and expressions it contains as ``narrowcast.tree`` nodes.

    ┌────────────────────────────────┬───────────────────────────────────┐
    │ cppcheck tokens                │ syntax node                       │
    ├────────────────────────────────┼───────────────────────────────────┤
    │ T x = e;   T x(e);   T x{e};   │ DeclStmt(VarDecl(x, T, e))        │
    │ a = e;     a += e;             │ Assign(a, e, op)                  │
    │ f(a, b)    ns::f(a)  o.m(a)    │ Call(FunctionRef(f), (a, b))      │
    │ (T)e       static_cast<T>(e)   │ Convert(CONVERT, e, T, explicit)  │
    │ T(e)                           │ Convert(CONVERT, e, T, explicit)  │
    │ &e                             │ AddressOf(e)                      │
    │ return e;                      │ Return(e)                         │
    │ if / while / for / do / switch │ If / While / For / DoWhile / ...  │
    │ case e:                        │ CaseLabel(e)                      │
    │ anything else with operands    │ Operation(op, operands)           │
    └────────────────────────────────┴───────────────────────────────────┘

cppcheck inserts no implicit-conversion tokens, so an implicit conversion
shows up as a destination with one type and a source expression with
another.  That is all the walker needs.

cppcheck's tokenizer always adds braces around the bodies of control
statements; a body without one is treated as a malformed token range.

Usage
─────
    from narrowcast.frontend import TreeBuilder

    builder = TreeBuilder(platform, scopes=cfg.scopes)
    for scope in cfg.scopes:
        if scope.type == "Function":
            decl, body = builder.build_function(scope)

License: MIT — same as narrowcast.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from narrowcast.diagnostics import SourceLocation
from narrowcast.errors import FrontendError
from narrowcast.tree import (
    AddressOf,
    Assign,
    Block,
    Call,
    CaseLabel,
    ConversionOp,
    Convert,
    DeclStmt,
    DoWhile,
    ExprStmt,
    For,
    FunctionDecl,
    FunctionRef,
    If,
    Literal,
    Node,
    Opaque,
    Operation,
    Return,
    Switch,
    VarDecl,
    VarRef,
    While,
)
from narrowcast.type_model import (
    LP64,
    CType,
    Platform,
    TypeKind,
    named_type,
    valuetype_to_ctype,
)

_log = logging.getLogger(__name__)

_CAST_KEYWORDS = frozenset({
    "static_cast", "const_cast", "reinterpret_cast", "dynamic_cast",
})

_QUALIFIERS = frozenset({"const", "volatile", "restrict", "__restrict"})

_DECL_SPECIFIERS = frozenset({
    "static", "inline", "extern", "virtual", "explicit", "friend",
    "constexpr", "consteval", "register", "thread_local", "__inline",
    "__inline__", "typename",
})

# Scopes whose bodies are not part of the enclosing function's code.
_FOREIGN_SCOPES = frozenset({
    "Lambda", "Class", "Struct", "Union", "Enum", "Namespace",
})

# How far back from a function's name token a return type may start.
_MAX_RETURN_TYPE_TOKENS = 8

# Builds one syntax node from its converted operands.
_Assemble = Callable[[List[Optional[Node]]], Node]


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — TOKEN HELPERS
# ═════════════════════════════════════════════════════════════════════════

def _tok_str(tok: Any) -> str:
    return getattr(tok, "str", "") or ""


def token_location(tok: Any) -> Optional[SourceLocation]:
    """Location of a cppcheck token, or None if it has none."""
    if tok is None:
        return None
    file = getattr(tok, "file", "") or ""
    line = getattr(tok, "linenr", 0) or 0
    if not file and not line:
        return None
    return SourceLocation(
        file=file, line=int(line), column=int(getattr(tok, "column", 0) or 0)
    )


def call_arguments(call_tok: Any) -> List[Any]:
    """
    Argument expression roots of a call's ``(`` token, in order.

    In cppcheck's AST, ``f(a, b, c)`` has ``astOperand2`` as a left-leaning
    tree of ``,`` tokens.
    """
    args: List[Any] = []
    if call_tok is None or _tok_str(call_tok) != "(":
        return args
    _flatten_comma_args(getattr(call_tok, "astOperand2", None), args)
    return args


def _flatten_comma_args(tok: Any, out: List[Any]) -> None:
    stack = [tok]
    while stack:
        tok = stack.pop()
        if tok is None:
            continue
        if _tok_str(tok) == ",":
            stack.append(getattr(tok, "astOperand2", None))
            stack.append(getattr(tok, "astOperand1", None))
        else:
            out.append(tok)


def _present(nodes: Iterable[Optional[Node]]) -> Tuple[Node, ...]:
    return tuple(n for n in nodes if n is not None)


class _PendingNode:
    """An expression token waiting for its operands to be converted."""

    __slots__ = ("operands", "assemble", "out", "converted")

    def __init__(self, operands: Tuple[Any, ...], assemble: _Assemble,
                 out: List[Optional[Node]]) -> None:
        self.operands = operands
        self.assemble = assemble
        self.out = out
        self.converted: List[Optional[Node]] = []


def _matching(tok: Any, what: str) -> Any:
    """The ``link`` of a bracket token; raises if cppcheck recorded none."""
    link = getattr(tok, "link", None)
    if link is None:
        raise FrontendError(f"unmatched '{what}'", tok)
    return link


def spelled_type(words: Sequence[str], platform: Platform = LP64) -> Optional[CType]:
    """
    Build a type from the words of a declaration, e.g.
    ``["const", "std", "::", "int64_t", "*"]``.

    Well-known names resolve through ``named_type``; anything else becomes
    an unknown type carrying its spelling.
    """
    names = [
        w for w in words
        if w not in ("*", "&", "&&", "::", "std")
        and w not in _QUALIFIERS and w not in _DECL_SPECIFIERS
    ]
    if not names:
        return None
    spelling = " ".join(names)
    base = named_type(spelling, platform) or CType.unknown(spelling)
    if "const" in words and "*" not in words:
        base = CType.qualified(base, frozenset({"const"}))
    for _ in range(words.count("*")):
        base = CType.ptr(base)
    if "&" in words or "&&" in words:
        base = CType.reference(base)
    return base


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — TREE BUILDER
# ═════════════════════════════════════════════════════════════════════════

class TreeBuilder:
    """
    Converts cppcheck scopes and tokens into syntax trees.

    One builder serves a whole configuration; it caches the
    ``FunctionDecl`` built for each cppcheck ``Function`` so that every
    call to the same function shares one handle.

    Parameters
    ----------
    platform : bit widths used to size builtin types
    scopes   : the configuration's scopes, used to recognise which ``{``
               opens a nested scope and of what kind
    """

    def __init__(self, platform: Platform = LP64, scopes: Iterable[Any] = ()) -> None:
        self.platform = platform
        self._scopes_by_start: Dict[int, Any] = {}
        for scope in scopes:
            start = getattr(scope, "bodyStart", None)
            if start is not None:
                self._scopes_by_start[id(start)] = scope
        self._decls: Dict[int, FunctionDecl] = {}

    # ── functions ────────────────────────────────────────────────────

    def build_function(self, scope: Any) -> Tuple[FunctionDecl, Block]:
        """Return the declaration and body tree of a ``Function`` scope."""
        func = getattr(scope, "function", None)
        start = getattr(scope, "bodyStart", None)
        end = getattr(scope, "bodyEnd", None)
        name = getattr(func, "name", None) or getattr(scope, "className", "") or "?"
        if start is None or end is None:
            raise FrontendError(f"function '{name}' has no body", start)
        if _matching(start, "{") is not end:
            raise FrontendError(f"function '{name}' body is not balanced", start)

        if func is not None:
            decl = self.function_decl(func)
        else:
            decl = FunctionDecl(name=name, location=token_location(start))
        _log.debug("building tree for %s", decl.name)
        try:
            statements = self._statements(start.next, end)
        except RecursionError:
            # Nested blocks and control statements recurse.
            raise FrontendError(f"function '{name}' nests too deeply", start) from None
        body = Block(tuple(statements), token_location(start))
        return decl, body

    def function_decl(self, func: Any) -> FunctionDecl:
        """The ``FunctionDecl`` for a cppcheck ``Function`` (cached)."""
        key = id(func)
        decl = self._decls.get(key)
        if decl is None:
            decl = self._function_decl(func)
            self._decls[key] = decl
        return decl

    def _function_decl(self, func: Any) -> FunctionDecl:
        def_tok = getattr(func, "tokenDef", None) or getattr(func, "token", None)
        arguments = getattr(func, "argument", None) or {}
        params = tuple(
            self.variable_type(arguments[nr]) for nr in sorted(arguments)
        )
        return FunctionDecl(
            name=getattr(func, "name", None) or _tok_str(def_tok),
            return_type=self.return_type(func),
            param_types=params,
            variadic=self._is_variadic(def_tok),
            location=token_location(def_tok),
        )

    @staticmethod
    def _is_variadic(def_tok: Any) -> bool:
        paren = getattr(def_tok, "next", None)
        if _tok_str(paren) != "(":
            return False
        close = getattr(paren, "link", None)
        tok = paren.next
        while tok is not None and tok is not close:
            if _tok_str(tok) == "...":
                return True
            tok = tok.next
        return False

    def return_type(self, func: Any) -> Optional[CType]:
        """
        Declared return type of a cppcheck ``Function``.

        The dump does not carry it directly, so the type words in front of
        the function name are read back (skipping ``Class::`` qualifiers
        and specifiers such as ``static``).  Constructors and destructors
        yield None.
        """
        ret_vt = getattr(func, "retType", None)
        if ret_vt is not None and hasattr(ret_vt, "type"):
            return valuetype_to_ctype(ret_vt, self.platform)

        def_tok = getattr(func, "tokenDef", None) or getattr(func, "token", None)
        tok = getattr(def_tok, "previous", None)
        while _tok_str(tok) == "::":
            tok = getattr(getattr(tok, "previous", None), "previous", None)

        words: List[str] = []
        for _ in range(_MAX_RETURN_TYPE_TOKENS):
            if tok is None:
                break
            s = _tok_str(tok)
            if s in ("*", "&", "&&", "::") or getattr(tok, "isName", False):
                words.append(s)
            else:
                break
            tok = tok.previous
        words.reverse()
        # Leading words that do not form a known type are usually macros
        # ("EXPORT int f()").
        while len(words) > 1:
            ctype = spelled_type(words, self.platform)
            if ctype is not None and ctype.unqualified.kind != TypeKind.UNKNOWN:
                return ctype
            words = words[1:]
        return spelled_type(words, self.platform)

    def variable_type(self, var: Any) -> Optional[CType]:
        """Declared type of a cppcheck ``Variable``, or None if unknown."""
        if var is None:
            return None
        base: Optional[CType] = None
        for tok in (getattr(var, "nameToken", None), getattr(var, "typeStartToken", None)):
            vt = getattr(tok, "valueType", None)
            if vt is not None:
                base = valuetype_to_ctype(vt, self.platform)
                break
        if base is None:
            base = spelled_type(self._type_words(var), self.platform)
        if base is None:
            return None
        if getattr(var, "isArray", False) and base.pointee is None:
            base = CType.ptr(base)
        if getattr(var, "isReference", False):
            base = CType.reference(base)
        return base

    @staticmethod
    def _type_words(var: Any) -> List[str]:
        tok = getattr(var, "typeStartToken", None)
        last = getattr(var, "typeEndToken", None)
        words: List[str] = []
        while tok is not None and len(words) < _MAX_RETURN_TYPE_TOKENS:
            words.append(_tok_str(tok))
            if tok is last:
                break
            tok = tok.next
        return words

    # ── statements ───────────────────────────────────────────────────

    def _statements(self, tok: Any, end: Any) -> List[Node]:
        """Statements between ``tok`` (inclusive) and ``end`` (exclusive)."""
        out: List[Node] = []
        while tok is not None and tok is not end:
            s = _tok_str(tok)
            handler = self._keyword_handlers.get(s)
            if handler is not None:
                node, tok = handler(self, tok)
                out.append(node)
                continue

            if s == "{":
                close = _matching(tok, "{")
                if self._is_statement_root(tok):
                    node = self.statement(tok)
                    if node is not None:
                        out.append(node)
                elif self._opens_block(tok):
                    out.append(Block(tuple(self._statements(tok.next, close)),
                                     token_location(tok)))
                tok = close.next
                continue

            if self._is_statement_root(tok):
                node = self.statement(tok)
                if node is not None:
                    out.append(node)
            tok = tok.next
        return out

    def _opens_block(self, brace: Any) -> bool:
        if getattr(brace, "astParent", None) is not None:
            return False
        if getattr(brace, "astOperand1", None) is not None:
            return False
        scope = self._scopes_by_start.get(id(brace))
        if scope is None:
            scope = getattr(brace, "scope", None)
            if getattr(scope, "bodyStart", None) is not brace:
                scope = None
        return getattr(scope, "type", "") not in _FOREIGN_SCOPES

    @staticmethod
    def _is_statement_root(tok: Any) -> bool:
        if getattr(tok, "astParent", None) is not None:
            return False
        if _tok_str(tok) == "return":
            return True
        return (getattr(tok, "astOperand1", None) is not None
                or getattr(tok, "astOperand2", None) is not None)

    def statement(self, tok: Any) -> Optional[Node]:
        """Convert the AST rooted at ``tok`` into a statement node."""
        s = _tok_str(tok)
        loc = token_location(tok)
        if s == "return":
            return Return(self.expression(getattr(tok, "astOperand1", None)), loc)
        if s == "case":
            return CaseLabel(self.expression(getattr(tok, "astOperand1", None)),
                             self.expression(getattr(tok, "astOperand2", None)), loc)
        decl = self.declaration(tok)
        if decl is not None:
            return DeclStmt(decl, loc)
        expr = self.expression(tok)
        if expr is None:
            return None
        return ExprStmt(expr, loc)

    def declaration(self, tok: Any) -> Optional[VarDecl]:
        """
        A ``VarDecl`` if ``tok`` initializes the variable it declares
        (``T x = e``, ``T x(e)``, ``T x{e}``), else None.
        """
        if _tok_str(tok) not in ("=", "(", "{"):
            return None
        target = getattr(tok, "astOperand1", None)
        if target is None or not self._declares(target):
            return None
        var = getattr(target, "variable", None)
        var_type = self.variable_type(var) or self._type_of(target)
        init_tok = getattr(tok, "astOperand2", None)
        if _tok_str(tok) == "(" and _tok_str(init_tok) == ",":
            # T x(a, b) is a constructor call, not a conversion.
            init: Optional[Node] = Opaque("ctor-args", self._expressions(call_arguments(tok)))
        else:
            init = self.expression(init_tok)
        return VarDecl(_tok_str(target), var_type, init, token_location(target))

    @staticmethod
    def _declares(target: Any) -> bool:
        var = getattr(target, "variable", None)
        name_tok = getattr(var, "nameToken", None)
        if name_tok is None:
            return False
        if name_tok is target:
            return True
        # "T x = e;" may have been split into "T x ; x = e ;".
        semi = getattr(name_tok, "next", None)
        if _tok_str(semi) != ";" or getattr(semi, "next", None) is not target:
            return False
        # Tokens cppcheck inserts take the position of the token before them,
        # so the repeated name sits where the ";" does. In "T x; x = e;"
        # written out in source it comes later on the line.
        return all(
            getattr(semi, attr, None) == getattr(target, attr, None)
            for attr in ("linenr", "column")
        )

    # ── control statements ───────────────────────────────────────────

    def _braced(self, brace: Any, after: str) -> Tuple[Block, Any]:
        if _tok_str(brace) != "{":
            raise FrontendError(f"expected '{{' after '{after}'", brace)
        close = _matching(brace, "{")
        block = Block(tuple(self._statements(brace.next, close)), token_location(brace))
        return block, close.next

    def _control_paren(self, keyword: Any) -> Any:
        paren = getattr(keyword, "next", None)
        if _tok_str(paren) != "(":
            raise FrontendError(f"expected '(' after '{_tok_str(keyword)}'", keyword)
        return paren

    def _condition(self, paren: Any) -> Optional[Node]:
        root = getattr(paren, "astOperand2", None)
        if root is None:
            root = self._root_between(paren, _matching(paren, "("))
        if root is None:
            return None
        decl = self.declaration(root)
        if decl is not None:
            return decl
        return self.expression(root)

    @staticmethod
    def _root_between(start: Any, end: Any) -> Any:
        tok = start.next
        while tok is not None and tok is not end:
            parent = getattr(tok, "astParent", None)
            if parent is None or parent is start:
                return tok
            tok = tok.next
        return None

    def _if(self, tok: Any) -> Tuple[Node, Any]:
        paren = self._control_paren(tok)
        cond = self._condition(paren)
        then, after = self._braced(_matching(paren, "(").next, "if")
        else_: Optional[Node] = None
        if _tok_str(after) == "else":
            nxt = after.next
            if _tok_str(nxt) == "if":
                else_, after = self._if(nxt)
            else:
                else_, after = self._braced(nxt, "else")
        return If(cond, then, else_, token_location(tok)), after

    def _while(self, tok: Any) -> Tuple[Node, Any]:
        paren = self._control_paren(tok)
        cond = self._condition(paren)
        body, after = self._braced(_matching(paren, "(").next, "while")
        return While(cond, body, token_location(tok)), after

    def _switch(self, tok: Any) -> Tuple[Node, Any]:
        paren = self._control_paren(tok)
        cond = self._condition(paren)
        body, after = self._braced(_matching(paren, "(").next, "switch")
        return Switch(cond, body, token_location(tok)), after

    def _for(self, tok: Any) -> Tuple[Node, Any]:
        paren = self._control_paren(tok)
        head = getattr(paren, "astOperand2", None)
        init = cond = step = None
        if _tok_str(head) == ";":
            init_tok = getattr(head, "astOperand1", None)
            if init_tok is not None:
                init = self.statement(init_tok)
            rest = getattr(head, "astOperand2", None)
            if _tok_str(rest) == ";":
                cond = self.expression(getattr(rest, "astOperand1", None))
                step = self.expression(getattr(rest, "astOperand2", None))
            else:
                cond = self.expression(rest)
        elif head is not None:
            # range-based for: "for (x : range)"
            init = Opaque("range-for", self._expressions(
                (getattr(head, "astOperand1", None), getattr(head, "astOperand2", None))
            ))
        body, after = self._braced(_matching(paren, "(").next, "for")
        return For(init, cond, step, body, token_location(tok)), after

    def _do(self, tok: Any) -> Tuple[Node, Any]:
        body, after = self._braced(tok.next, "do")
        if _tok_str(after) != "while":
            raise FrontendError("expected 'while' after do-body", after)
        paren = self._control_paren(after)
        cond = self._condition(paren)
        after = _matching(paren, "(").next
        if _tok_str(after) == ";":
            after = after.next
        return DoWhile(body, cond, token_location(tok)), after

    def _catch(self, tok: Any) -> Tuple[Node, Any]:
        paren = self._control_paren(tok)
        return self._braced(_matching(paren, "(").next, "catch")

    _keyword_handlers = {
        "if": _if,
        "while": _while,
        "switch": _switch,
        "for": _for,
        "do": _do,
        "catch": _catch,
    }

    # ── expressions ──────────────────────────────────────────────────

    def _type_of(self, tok: Any) -> Optional[CType]:
        vt = getattr(tok, "valueType", None)
        if vt is not None:
            return valuetype_to_ctype(vt, self.platform)
        var = getattr(tok, "variable", None)
        if var is not None:
            return self.variable_type(var)
        return None

    def _expressions(self, toks: Iterable[Any]) -> Tuple[Node, ...]:
        nodes = (self.expression(t) for t in toks)
        return tuple(n for n in nodes if n is not None)

    def expression(self, tok: Any) -> Optional[Node]:
        """
        Convert the expression AST rooted at ``tok``.

        Each token is first planned into the operand tokens it needs and a
        function that assembles its node from the converted operands.  The
        plans run on an explicit stack, children before parents, so long
        operator chains in generated code cannot exhaust the recursion
        limit.
        """
        if tok is None:
            return None
        result: List[Optional[Node]] = []
        stack: List[_PendingNode] = [_PendingNode(*self._plan(tok), result)]
        while stack:
            pending = stack[-1]
            done = len(pending.converted)
            if done < len(pending.operands):
                operand = pending.operands[done]
                if operand is None:
                    pending.converted.append(None)
                else:
                    stack.append(_PendingNode(*self._plan(operand), pending.converted))
                continue
            stack.pop()
            pending.out.append(pending.assemble(pending.converted))
        return result[0]

    def _plan(self, tok: Any) -> Tuple[Tuple[Any, ...], _Assemble]:
        s = _tok_str(tok)
        loc = token_location(tok)
        ctype = self._type_of(tok)
        op1 = getattr(tok, "astOperand1", None)
        op2 = getattr(tok, "astOperand2", None)

        if s == "(":
            return self._plan_paren(tok, ctype, loc)
        if op1 is None and op2 is None:
            leaf = self._leaf(tok, ctype, loc)
            return (), lambda _: leaf

        def operation(nodes: List[Optional[Node]]) -> Node:
            return Operation(s, _present(nodes), ctype, loc)

        if getattr(tok, "isAssignmentOp", False) and op1 is not None and op2 is not None:
            def assign(nodes: List[Optional[Node]]) -> Node:
                lhs, rhs = nodes
                if lhs is not None and rhs is not None:
                    return Assign(lhs, rhs, s, loc)
                return operation(nodes)
            return (op1, op2), assign
        if s == "&" and op2 is None:
            def address_of(nodes: List[Optional[Node]]) -> Node:
                if nodes[0] is not None:
                    return AddressOf(nodes[0], ctype, loc)
                return operation(nodes)
            return (op1,), address_of
        return (op1, op2), operation

    def _leaf(self, tok: Any, ctype: Optional[CType], loc: Optional[SourceLocation]) -> Node:
        s = _tok_str(tok)
        if getattr(tok, "isNumber", False) or getattr(tok, "isString", False) \
                or getattr(tok, "isChar", False) or getattr(tok, "isBoolean", False):
            return Literal(s, ctype, loc)
        func = getattr(tok, "function", None)
        if func is not None and getattr(tok, "variable", None) is None:
            return FunctionRef(self.function_decl(func), loc)
        if getattr(tok, "isName", False) or getattr(tok, "variable", None) is not None:
            return VarRef(s, ctype, loc)
        return Opaque(s, (), True, ctype, loc)

    def _plan_paren(
        self, tok: Any, ctype: Optional[CType], loc: Optional[SourceLocation]
    ) -> Tuple[Tuple[Any, ...], _Assemble]:
        op1 = getattr(tok, "astOperand1", None)
        op2 = getattr(tok, "astOperand2", None)

        # C-style cast "(T)e": the operand hangs off astOperand1.
        if getattr(tok, "isCast", False):
            return self._plan_cast(op1 if op1 is not None else op2, ctype, loc)

        if op1 is not None and _tok_str(op1) in _CAST_KEYWORDS:
            return self._plan_cast(op2, ctype or self._template_type(op1), loc)

        # Functional cast "T(e)"
        if (op1 is not None and op2 is not None and getattr(op1, "isName", False)
                and getattr(op1, "variable", None) is None
                and getattr(op1, "function", None) is None):
            target = named_type(_tok_str(op1), self.platform)
            if target is not None:
                return self._plan_cast(op2, ctype or target, loc)

        if op1 is None:
            return (op2,), lambda nodes: Opaque("(", _present(nodes), True, ctype, loc)

        # Call: [callee, receiver, *arguments]
        callee_ref = self._callee_ref(op1)
        receiver_tok = self._receiver_token(op1)
        args = call_arguments(tok)

        def call(nodes: List[Optional[Node]]) -> Node:
            callee = callee_ref if callee_ref is not None else nodes[0]
            node = Call(callee, _present(nodes[2:]), ctype, loc)
            if nodes[1] is None:
                return node
            return Operation(".", (nodes[1], node), ctype, loc)

        operands = (None if callee_ref is not None else op1, receiver_tok)
        return operands + tuple(args), call

    @staticmethod
    def _plan_cast(
        operand_tok: Any, ctype: Optional[CType], loc: Optional[SourceLocation]
    ) -> Tuple[Tuple[Any, ...], _Assemble]:
        def cast(nodes: List[Optional[Node]]) -> Node:
            if nodes[0] is None:
                return Opaque("cast", (), True, ctype, loc)
            return Convert(ConversionOp.CONVERT, nodes[0], ctype, True, loc)
        return (operand_tok,), cast

    def _template_type(self, keyword: Any) -> Optional[CType]:
        """Target type of ``static_cast<T>`` read from the template argument."""
        tok = getattr(keyword, "next", None)
        if _tok_str(tok) != "<":
            return None
        words: List[str] = []
        tok = tok.next
        while tok is not None and _tok_str(tok) != ">":
            words.append(_tok_str(tok))
            tok = tok.next
        return spelled_type(words, self.platform)

    def _callee_ref(self, op1: Any) -> Optional[FunctionRef]:
        """The directly called function, or None for an indirect callee."""
        s = _tok_str(op1)
        func = getattr(op1, "function", None)
        if func is None and s in (".", "::"):
            member = getattr(op1, "astOperand2", None)
            func = getattr(member, "function", None)
            if func is not None and s == "." and self._is_virtual(func):
                _log.debug("  %s is virtual, not a direct callee", _tok_str(member))
                func = None
        if func is None:
            return None
        return FunctionRef(self.function_decl(func), token_location(op1))

    def _receiver_token(self, op1: Any) -> Any:
        """Object expression token of a resolved member call ``o.m(...)``."""
        if _tok_str(op1) != "." or getattr(op1, "function", None) is not None:
            return None
        member = getattr(op1, "astOperand2", None)
        func = getattr(member, "function", None)
        if func is None or self._is_virtual(func):
            return None
        return getattr(op1, "astOperand1", None)

    @staticmethod
    def _is_virtual(func: Any) -> bool:
        return bool(getattr(func, "hasVirtualSpecifier", False)
                    or getattr(func, "isImplicitlyVirtual", False))


def build_function(scope: Any, platform: Platform = LP64) -> Tuple[FunctionDecl, Block]:
    """Build one function scope with a throwaway ``TreeBuilder``."""
    return TreeBuilder(platform).build_function(scope)


__all__ = [
    "TreeBuilder",
    "build_function",
    "call_arguments",
    "spelled_type",
    "token_location",
]
