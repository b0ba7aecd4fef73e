# tests/conftest.py
"""
Mock cppcheckdata objects and a small builder that lays out token lists
with AST links the way ``cppcheck --dump`` records them.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from narrowcast.type_model import CType, TypeKind, builtin_type, named_type


# ═════════════════════════════════════════════════════════════════════════
#  Mock cppcheckdata objects
# ═════════════════════════════════════════════════════════════════════════

class MockValueType:
    def __init__(self, type="int", sign=None, pointer=0, constness=0,
                 originalTypeName=None, typeScope=None):
        self.type = type
        self.sign = sign
        self.pointer = pointer
        self.constness = constness
        self.originalTypeName = originalTypeName
        self.typeScope = typeScope


class MockToken:
    _DEFAULTS: Dict[str, Any] = {
        "str": "",
        "next": None,
        "previous": None,
        "link": None,
        "scope": None,
        "astParent": None,
        "astOperand1": None,
        "astOperand2": None,
        "valueType": None,
        "variable": None,
        "function": None,
        "isName": False,
        "isNumber": False,
        "isOp": False,
        "isAssignmentOp": False,
        "isCast": False,
        "isString": False,
        "isChar": False,
        "isBoolean": False,
        "file": "test.c",
        "linenr": 1,
        "column": 1,
    }

    def __init__(self, **kwargs):
        for key, value in self._DEFAULTS.items():
            setattr(self, key, value)
        for key, value in kwargs.items():
            setattr(self, key, value)

    def __repr__(self):
        return f"<MockToken {self.str!r} @{self.linenr}:{self.column}>"


class MockVariable:
    def __init__(self, nameToken=None, typeStartToken=None, typeEndToken=None,
                 isArgument=False, isReference=False, isArray=False,
                 isPointer=False, isLocal=True):
        self.nameToken = nameToken
        self.typeStartToken = typeStartToken
        self.typeEndToken = typeEndToken
        self.isArgument = isArgument
        self.isReference = isReference
        self.isArray = isArray
        self.isPointer = isPointer
        self.isLocal = isLocal


class MockFunction:
    def __init__(self, name="", tokenDef=None, token=None, argument=None,
                 hasVirtualSpecifier=False, isImplicitlyVirtual=False):
        self.name = name
        self.tokenDef = tokenDef
        self.token = token
        self.argument = argument if argument is not None else {}
        self.hasVirtualSpecifier = hasVirtualSpecifier
        self.isImplicitlyVirtual = isImplicitlyVirtual


class MockScope:
    def __init__(self, type="Function", bodyStart=None, bodyEnd=None,
                 function=None, className="", nestedIn=None):
        self.type = type
        self.bodyStart = bodyStart
        self.bodyEnd = bodyEnd
        self.function = function
        self.className = className
        self.nestedIn = nestedIn


class MockConfiguration:
    def __init__(self, name="", tokenlist=None, scopes=None, functions=None):
        self.name = name
        self.tokenlist = tokenlist or []
        self.scopes = scopes or []
        self.functions = functions or []


class MockPlatform:
    def __init__(self, name="native", char_bit=8, short_bit=16, int_bit=32,
                 long_bit=64, long_long_bit=64):
        self.name = name
        self.char_bit = char_bit
        self.short_bit = short_bit
        self.int_bit = int_bit
        self.long_bit = long_bit
        self.long_long_bit = long_long_bit


class MockSuppression:
    def __init__(self, errorId, fileName=None, lineNumber=None):
        self.errorId = errorId
        self.fileName = fileName
        self.lineNumber = lineNumber


class MockCppcheckData:
    def __init__(self, configurations=None, platform=None, suppressions=None):
        self.configurations = configurations or []
        self.platform = platform
        self.suppressions = suppressions or []


def make_token_chain(specs: Sequence[Dict[str, Any]]) -> List[MockToken]:
    """Create tokens from attribute dicts and link next/previous."""
    tokens = [MockToken(**spec) for spec in specs]
    for prev, nxt in zip(tokens, tokens[1:]):
        prev.next = nxt
        nxt.previous = prev
    return tokens


def make_cfg(tokens=None, scopes=None, functions=None, name=""):
    return MockConfiguration(name=name, tokenlist=tokens, scopes=scopes,
                             functions=functions)


def make_data(configurations, platform=None, suppressions=None):
    return MockCppcheckData(configurations=configurations, platform=platform,
                            suppressions=suppressions)


# ── value types as cppcheck writes them on LP64 ──────────────────────

VT_INT = MockValueType("int", "signed")
VT_INT32 = MockValueType("int", "signed", originalTypeName="int32_t")
VT_INT64 = MockValueType("long", "signed", originalTypeName="int64_t")
VT_LONG = MockValueType("long", "signed")
VT_FLOAT = MockValueType("float")
VT_DOUBLE = MockValueType("double")
VT_VOID = MockValueType("void")


# ═════════════════════════════════════════════════════════════════════════
#  DumpBuilder — token lists for whole functions
# ═════════════════════════════════════════════════════════════════════════

Emit = Callable[["DumpBuilder"], Optional[MockToken]]


class DumpBuilder:
    """
    Emits tokens in source order and wires the AST, scopes and symbol
    links between them.

    Expression helpers take *emitters*: callables that receive the builder,
    emit their tokens and return the root token of what they emitted.

    >>> b = DumpBuilder()
    >>> f = b.function("f", "int32_t", [], lambda b: b.ret(lambda b: b.number("1", VT_INT)))
    >>> cfg = b.configuration()
    """

    def __init__(self, file: str = "test.c") -> None:
        self.file = file
        self.tokens: List[MockToken] = []
        self.scopes: List[MockScope] = []
        self.functions: List[MockFunction] = []
        self.line = 1
        self.column = 1
        self._scope_stack: List[MockScope] = []

    # ── raw tokens ───────────────────────────────────────────────────

    def tok(self, s: str, **kwargs: Any) -> MockToken:
        token = MockToken(str=s, file=self.file, linenr=self.line,
                          column=self.column, **kwargs)
        if self._scope_stack:
            token.scope = self._scope_stack[-1]
        if self.tokens:
            self.tokens[-1].next = token
            token.previous = self.tokens[-1]
        self.tokens.append(token)
        self.column += len(s) + 1
        if s in (";", "{", "}"):
            self.line += 1
            self.column = 1
        return token

    @staticmethod
    def ast(root: MockToken, op1: Optional[MockToken] = None,
            op2: Optional[MockToken] = None) -> MockToken:
        root.astOperand1 = op1
        root.astOperand2 = op2
        for child in (op1, op2):
            if child is not None:
                child.astParent = root
        return root

    @staticmethod
    def link(open_tok: MockToken, close_tok: MockToken) -> None:
        open_tok.link = close_tok
        close_tok.link = open_tok

    def _type_tokens(self, type_name: str) -> List[MockToken]:
        return [self.tok(word, isName=word.isidentifier())
                for word in type_name.split()]

    # ── expressions ──────────────────────────────────────────────────

    def use(self, var: MockVariable) -> MockToken:
        name = var.nameToken
        return self.tok(name.str, isName=True, variable=var,
                        valueType=name.valueType)

    def number(self, text: str, vt: MockValueType = VT_INT) -> MockToken:
        return self.tok(text, isNumber=True, valueType=vt)

    def binary(self, op: str, lhs: Emit, rhs: Emit,
               vt: Optional[MockValueType] = None) -> MockToken:
        left = lhs(self)
        root = self.tok(op, isOp=True, valueType=vt)
        right = rhs(self)
        return self.ast(root, left, right)

    def chain(self, op: str, first: Emit, rest: Emit, count: int,
              vt: Optional[MockValueType] = None) -> MockToken:
        """``first op rest op rest ...`` as a left-leaning tree, built in a loop."""
        root = first(self)
        for _ in range(count):
            node = self.tok(op, isOp=True, valueType=vt)
            root = self.ast(node, root, rest(self))
        return root

    def assign(self, lhs: Emit, rhs: Emit, op: str = "=") -> MockToken:
        left = lhs(self)
        root = self.tok(op, isOp=True, isAssignmentOp=True,
                        valueType=getattr(left, "valueType", None))
        right = rhs(self)
        return self.ast(root, left, right)

    def call(self, func: MockFunction, *args: Emit,
             vt: Optional[MockValueType] = None) -> MockToken:
        name = self.tok(func.name, isName=True, function=func)
        return self._call_parens(name, args, vt)

    def call_through(self, callee: Emit, *args: Emit,
                     vt: Optional[MockValueType] = None) -> MockToken:
        """Call whose callee is an arbitrary expression."""
        return self._call_parens(callee(self), args, vt)

    def _call_parens(self, callee: MockToken, args: Sequence[Emit],
                     vt: Optional[MockValueType]) -> MockToken:
        paren = self.tok("(", valueType=vt)
        root: Optional[MockToken] = None
        for index, arg in enumerate(args):
            if index:
                comma = self.tok(",", isOp=True)
                value = arg(self)
                root = self.ast(comma, root, value)
            else:
                root = arg(self)
        close = self.tok(")")
        self.link(paren, close)
        return self.ast(paren, callee, root)

    def member_call(self, obj: MockVariable, func: MockFunction, *args: Emit,
                    vt: Optional[MockValueType] = None) -> MockToken:
        receiver = self.use(obj)
        dot = self.tok(".", isOp=True)
        member = self.tok(func.name, isName=True, function=func)
        self.ast(dot, receiver, member)
        return self._call_parens(dot, args, vt)

    def c_cast(self, type_name: str, vt: MockValueType, operand: Emit) -> MockToken:
        paren = self.tok("(", isCast=True, valueType=vt)
        self._type_tokens(type_name)
        close = self.tok(")")
        self.link(paren, close)
        return self.ast(paren, operand(self))

    def keyword_cast(self, keyword: str, type_name: str,
                     vt: Optional[MockValueType], operand: Emit) -> MockToken:
        kw = self.tok(keyword, isName=True)
        lt = self.tok("<")
        self._type_tokens(type_name)
        gt = self.tok(">")
        self.link(lt, gt)
        paren = self.tok("(", valueType=vt)
        value = operand(self)
        close = self.tok(")")
        self.link(paren, close)
        return self.ast(paren, kw, value)

    def address_of(self, operand: Emit) -> MockToken:
        amp = self.tok("&", isOp=True)
        return self.ast(amp, operand(self))

    # ── statements ───────────────────────────────────────────────────

    def declare(self, type_name: str, vt: Optional[MockValueType], name: str,
                init: Optional[Emit] = None, **var_kwargs: Any) -> MockVariable:
        type_toks = self._type_tokens(type_name)
        name_tok = self.tok(name, isName=True, valueType=vt)
        var = MockVariable(nameToken=name_tok, typeStartToken=type_toks[0],
                           typeEndToken=type_toks[-1], **var_kwargs)
        name_tok.variable = var
        if init is not None:
            eq = self.tok("=", isOp=True, isAssignmentOp=True, valueType=vt)
            self.ast(eq, name_tok, init(self))
        self.tok(";")
        return var

    def declare_split(self, type_name: str, vt: MockValueType, name: str,
                      init: Emit) -> MockVariable:
        """``T x = e;`` as cppcheck may simplify it: ``T x ; x = e ;``."""
        var = self.declare(type_name, vt, name)
        # Inserted tokens take the position of the token before them.
        semi = var.nameToken.next
        self.line = semi.linenr
        self.column = semi.column
        self.stmt(lambda b: b.assign(lambda b: b.use(var), init))
        return var

    def stmt(self, expr: Emit) -> MockToken:
        root = expr(self)
        self.tok(";")
        return root

    def ret(self, value: Optional[Emit] = None) -> MockToken:
        kw = self.tok("return", isName=True)
        if value is not None:
            self.ast(kw, value(self))
        self.tok(";")
        return kw

    def block(self, body: Callable[["DumpBuilder"], None],
              scope_type: str = "Unconditional") -> Tuple[MockToken, MockToken]:
        scope = MockScope(type=scope_type)
        self.scopes.append(scope)
        open_tok = self.tok("{")
        open_tok.scope = scope
        scope.bodyStart = open_tok
        if self._scope_stack:
            scope.nestedIn = self._scope_stack[-1]
        self._scope_stack.append(scope)
        body(self)
        self._scope_stack.pop()
        close_tok = self.tok("}")
        close_tok.scope = scope
        scope.bodyEnd = close_tok
        self.link(open_tok, close_tok)
        return open_tok, close_tok

    def _control(self, keyword: str, cond: Optional[Emit]) -> MockToken:
        kw = self.tok(keyword, isName=True)
        paren = self.tok("(")
        root = cond(self) if cond is not None else None
        close = self.tok(")")
        self.link(paren, close)
        self.ast(paren, kw, root)
        return kw

    def if_(self, cond: Emit, then: Callable[["DumpBuilder"], None],
            else_: Optional[Callable[["DumpBuilder"], None]] = None) -> MockToken:
        kw = self._control("if", cond)
        self.block(then, "If")
        if else_ is not None:
            self.tok("else", isName=True)
            self.block(else_, "Else")
        return kw

    def while_(self, cond: Emit, body: Callable[["DumpBuilder"], None]) -> MockToken:
        kw = self._control("while", cond)
        self.block(body, "While")
        return kw

    def switch(self, cond: Emit, body: Callable[["DumpBuilder"], None]) -> MockToken:
        kw = self._control("switch", cond)
        self.block(body, "Switch")
        return kw

    def case(self, value: Emit) -> MockToken:
        kw = self.tok("case", isName=True)
        self.ast(kw, value(self))
        self.tok(":")
        return kw

    def do_while(self, body: Callable[["DumpBuilder"], None], cond: Emit) -> MockToken:
        kw = self.tok("do", isName=True)
        self.block(body, "Do")
        self._control("while", cond)
        self.tok(";")
        return kw

    def for_(self, init: Optional[Emit], cond: Optional[Emit], step: Optional[Emit],
             body: Callable[["DumpBuilder"], None]) -> MockToken:
        kw = self.tok("for", isName=True)
        paren = self.tok("(")
        init_root = init(self) if init is not None else None
        semi1 = self.tok(";")
        self.line -= 1
        cond_root = cond(self) if cond is not None else None
        semi2 = self.tok(";")
        self.line -= 1
        step_root = step(self) if step is not None else None
        close = self.tok(")")
        self.link(paren, close)
        self.ast(semi2, cond_root, step_root)
        self.ast(semi1, init_root, semi2)
        self.ast(paren, kw, semi1)
        self.block(body, "For")
        return kw

    # ── declarations ─────────────────────────────────────────────────

    def function(self, name: str, return_type: str,
                 params: Sequence[Tuple[str, Optional[MockValueType], str]],
                 body: Optional[Callable[["DumpBuilder"], None]] = None,
                 variadic: bool = False, **func_kwargs: Any) -> MockFunction:
        """
        Emit ``return_type name(params) { body }`` (or a prototype when
        ``body`` is None) and register the Function and its scope.
        """
        self._type_tokens(return_type)
        name_tok = self.tok(name, isName=True)
        func = MockFunction(name=name, tokenDef=name_tok, token=name_tok, **func_kwargs)
        name_tok.function = func
        self.functions.append(func)

        paren = self.tok("(")
        for index, (type_name, vt, pname) in enumerate(params, start=1):
            if index > 1:
                self.tok(",")
            type_toks = self._type_tokens(type_name)
            ptok = self.tok(pname, isName=True, valueType=vt)
            var = MockVariable(nameToken=ptok, typeStartToken=type_toks[0],
                               typeEndToken=type_toks[-1], isArgument=True)
            ptok.variable = var
            func.argument[index] = var
        if variadic:
            if params:
                self.tok(",")
            self.tok("...")
        close = self.tok(")")
        self.link(paren, close)

        if body is None:
            self.tok(";")
            return func
        open_tok, _ = self.block(body, "Function")
        scope = open_tok.scope
        scope.function = func
        scope.className = name
        return func

    def param(self, nr: int = 1) -> MockVariable:
        """Parameter ``nr`` (1-based) of the function being emitted."""
        return self.functions[-1].argument[nr]

    def function_scope(self, func: MockFunction) -> MockScope:
        for scope in self.scopes:
            if scope.function is func:
                return scope
        raise LookupError(func.name)

    def configuration(self, name: str = "") -> MockConfiguration:
        return MockConfiguration(name=name, tokenlist=list(self.tokens),
                                 scopes=list(self.scopes),
                                 functions=list(self.functions))


# ═════════════════════════════════════════════════════════════════════════
#  Fixtures
# ═════════════════════════════════════════════════════════════════════════

@pytest.fixture
def int32() -> CType:
    return named_type("int32_t")


@pytest.fixture
def int64() -> CType:
    return named_type("int64_t")


@pytest.fixture
def float32() -> CType:
    return builtin_type(TypeKind.FLOAT)


@pytest.fixture
def float64() -> CType:
    return builtin_type(TypeKind.DOUBLE)


@pytest.fixture
def builder() -> DumpBuilder:
    return DumpBuilder()
