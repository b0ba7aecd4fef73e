"""
narrowcast/type_model.py
════════════════════════

Type handles and the read-only type query facade used by the narrowing
analysis.

The analysis never inspects a type directly.  It asks a ``TypeQuery``
four questions — is it numeric, which category, how many bits, what is it
called — and normalises aliases through ``main_variant`` before comparing.
``CTypeQuery`` answers those questions for the ``CType`` term algebra
defined here; a host with its own type representation can supply any other
object satisfying the protocol.

Type representation
───────────────────
We model the C types the analysis can meet as a small term algebra:

    τ ::= void | bool | char | short | int | long | long_long
        | float | double | long_double          (carry a precision)
        | ptr(τ)                                 (pointer to τ)
        | reference(τ)                           (C++ reference to τ)
        | record(name)                           (struct/class/container)
        | func(name)                             (function designator)
        | qualified(τ, quals)                    (const/volatile)
        | typedef(name, τ)                       (alias, e.g. int64_t)
        | unknown                                (cppcheck "nonstd" etc.)
        | error                                  (erroneous type sentinel)

Bit widths of the integer kinds depend on the target; ``Platform``
carries them and is read from the dump's ``<platform>`` element when one is
available.

License: MIT — same as narrowcast.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import (
    Any,
    Dict,
    FrozenSet,
    Optional,
    Protocol,
    Tuple,
    runtime_checkable,
)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1 — TYPE REPRESENTATION
# ═════════════════════════════════════════════════════════════════════════

class TypeKind(Enum):
    """Discriminant for the type term algebra."""
    VOID = auto()
    BOOL = auto()
    CHAR = auto()
    SHORT = auto()
    INT = auto()
    LONG = auto()
    LONG_LONG = auto()
    FLOAT = auto()
    DOUBLE = auto()
    LONG_DOUBLE = auto()
    PTR = auto()
    REFERENCE = auto()
    RECORD = auto()
    FUNC = auto()
    QUALIFIED = auto()
    TYPEDEF = auto()
    UNKNOWN = auto()
    ERROR = auto()


class NumericCategory(Enum):
    """The two numeric families the narrowing policy distinguishes."""
    INTEGER = "integer"
    FLOAT = "float"


_INTEGER_KINDS: FrozenSet[TypeKind] = frozenset({
    TypeKind.BOOL, TypeKind.CHAR, TypeKind.SHORT, TypeKind.INT,
    TypeKind.LONG, TypeKind.LONG_LONG,
})

_FLOAT_KINDS: FrozenSet[TypeKind] = frozenset({
    TypeKind.FLOAT, TypeKind.DOUBLE, TypeKind.LONG_DOUBLE,
})

# Default spelling used when a type carries no name of its own.
_KIND_SPELLING: Dict[TypeKind, str] = {
    TypeKind.VOID: "void",
    TypeKind.BOOL: "bool",
    TypeKind.CHAR: "char",
    TypeKind.SHORT: "short",
    TypeKind.INT: "int",
    TypeKind.LONG: "long",
    TypeKind.LONG_LONG: "long long",
    TypeKind.FLOAT: "float",
    TypeKind.DOUBLE: "double",
    TypeKind.LONG_DOUBLE: "long double",
}


@dataclass(frozen=True)
class CType:
    """
    A node in the type term algebra.

    For wrapper kinds the children encode structure:
      - PTR:       children[0] = pointee type
      - REFERENCE: children[0] = referenced type
      - QUALIFIED: children[0] = underlying type; qualifiers = set
      - TYPEDEF:   children[0] = aliased type; name = typedef name

    ``precision`` is only meaningful for arithmetic kinds and always lives
    on the underlying (main-variant) node.
    """

    kind: TypeKind
    precision: int = 0
    name: str = ""
    sign: Optional[str] = None            # "signed" / "unsigned" / None
    children: Tuple["CType", ...] = ()
    qualifiers: FrozenSet[str] = frozenset()

    # ── Factory methods ──────────────────────────────────────────────

    @classmethod
    def integer(
        cls,
        kind: TypeKind,
        precision: int,
        sign: Optional[str] = "signed",
        name: str = "",
    ) -> CType:
        if kind not in _INTEGER_KINDS:
            raise ValueError(f"{kind} is not an integer kind")
        return cls(kind=kind, precision=precision, sign=sign, name=name)

    @classmethod
    def floating(cls, kind: TypeKind, precision: int, name: str = "") -> CType:
        if kind not in _FLOAT_KINDS:
            raise ValueError(f"{kind} is not a floating kind")
        return cls(kind=kind, precision=precision, name=name)

    @classmethod
    def void(cls) -> CType:
        return cls(kind=TypeKind.VOID)

    @classmethod
    def ptr(cls, pointee: CType) -> CType:
        return cls(kind=TypeKind.PTR, children=(pointee,))

    @classmethod
    def reference(cls, referent: CType) -> CType:
        return cls(kind=TypeKind.REFERENCE, children=(referent,))

    @classmethod
    def record(cls, name: str) -> CType:
        return cls(kind=TypeKind.RECORD, name=name)

    @classmethod
    def func(cls, name: str = "") -> CType:
        return cls(kind=TypeKind.FUNC, name=name)

    @classmethod
    def unknown(cls, name: str = "") -> CType:
        return cls(kind=TypeKind.UNKNOWN, name=name)

    @classmethod
    def error(cls) -> CType:
        return cls(kind=TypeKind.ERROR)

    @classmethod
    def typedef(cls, name: str, underlying: CType) -> CType:
        return cls(kind=TypeKind.TYPEDEF, name=name, children=(underlying,))

    @classmethod
    def qualified(cls, base: CType, quals: FrozenSet[str]) -> CType:
        if not quals:
            return base
        # Merge qualifiers if base is already qualified
        if base.kind == TypeKind.QUALIFIED:
            return cls(
                kind=TypeKind.QUALIFIED,
                children=base.children,
                qualifiers=base.qualifiers | quals,
            )
        return cls(kind=TypeKind.QUALIFIED, children=(base,), qualifiers=quals)

    # ── Predicates ───────────────────────────────────────────────────

    @property
    def unqualified(self) -> CType:
        """Strip qualifiers and typedefs down to the main variant."""
        t = self
        while t.kind in (TypeKind.QUALIFIED, TypeKind.TYPEDEF) and t.children:
            t = t.children[0]
        return t

    @property
    def is_integer(self) -> bool:
        return self.unqualified.kind in _INTEGER_KINDS

    @property
    def is_floating(self) -> bool:
        return self.unqualified.kind in _FLOAT_KINDS

    @property
    def is_arithmetic(self) -> bool:
        return self.is_integer or self.is_floating

    @property
    def is_error(self) -> bool:
        return self.unqualified.kind == TypeKind.ERROR

    @property
    def pointee(self) -> Optional[CType]:
        unq = self.unqualified
        if unq.kind == TypeKind.PTR:
            return unq.children[0]
        return None

    @property
    def spelling(self) -> str:
        """The name a programmer would read in source for this handle."""
        if self.kind == TypeKind.TYPEDEF:
            return self.name
        if self.kind == TypeKind.QUALIFIED:
            return self.children[0].spelling
        if self.kind == TypeKind.PTR:
            return f"{self.children[0].spelling} *"
        if self.kind == TypeKind.REFERENCE:
            return f"{self.children[0].spelling} &"
        if self.name:
            return self.name
        base = _KIND_SPELLING.get(self.kind)
        if base is None:
            return "<anonymous type>"
        if self.sign == "unsigned":
            return f"unsigned {base}"
        return base

    def __str__(self) -> str:
        return self.spelling


# ═════════════════════════════════════════════════════════════════════════
#  PART 2 — TYPE QUERY FACADE
# ═════════════════════════════════════════════════════════════════════════

@runtime_checkable
class TypeQuery(Protocol):
    """
    Read-only questions the narrowing analysis asks about a type handle.

    Handles are opaque to the analysis; only an implementation of this
    protocol looks inside them.
    """

    def main_variant(self, t: Any) -> Any:
        """Return the canonical handle with typedefs and qualifiers stripped."""
        ...

    def is_error(self, t: Any) -> bool:
        ...

    def is_numeric(self, t: Any) -> bool:
        ...

    def category(self, t: Any) -> Optional[NumericCategory]:
        ...

    def precision(self, t: Any) -> int:
        ...

    def display_name(self, t: Any) -> str:
        ...


class CTypeQuery:
    """``TypeQuery`` over ``CType`` handles."""

    def main_variant(self, t: Optional[CType]) -> Optional[CType]:
        if t is None:
            return None
        return t.unqualified

    def is_error(self, t: Optional[CType]) -> bool:
        return t is not None and t.is_error

    def is_numeric(self, t: Optional[CType]) -> bool:
        if t is None:
            return False
        return t.is_arithmetic

    def category(self, t: Optional[CType]) -> Optional[NumericCategory]:
        if t is None:
            return None
        if t.is_integer:
            return NumericCategory.INTEGER
        if t.is_floating:
            return NumericCategory.FLOAT
        return None

    def precision(self, t: Optional[CType]) -> int:
        if t is None:
            return 0
        return t.unqualified.precision

    def display_name(self, t: Optional[CType]) -> str:
        if t is None:
            return "<null type>"
        return t.spelling


# ═════════════════════════════════════════════════════════════════════════
#  PART 3 — TARGET PLATFORM
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Platform:
    """
    Bit widths of the arithmetic types on the analysed target.

    Defaults describe LP64 (Linux/macOS x86-64, AArch64).
    """

    name: str = "lp64"
    bool_bit: int = 8
    char_bit: int = 8
    short_bit: int = 16
    int_bit: int = 32
    long_bit: int = 64
    long_long_bit: int = 64
    float_bit: int = 32
    double_bit: int = 64
    long_double_bit: int = 80

    @classmethod
    def from_cppcheck(cls, platform: Any) -> Platform:
        """
        Build from a ``cppcheckdata.Platform`` (``data.platform``).

        Missing or zero attributes keep the LP64 default.
        """
        if platform is None:
            return cls()
        default = cls()
        values: Dict[str, Any] = {"name": getattr(platform, "name", "") or default.name}
        for attr in ("char_bit", "short_bit", "int_bit", "long_bit", "long_long_bit"):
            raw = getattr(platform, attr, None)
            try:
                bits = int(raw) if raw else 0
            except (TypeError, ValueError):
                bits = 0
            values[attr] = bits or getattr(default, attr)
        return cls(**values)

    def bits_of(self, kind: TypeKind) -> int:
        return {
            TypeKind.BOOL: self.bool_bit,
            TypeKind.CHAR: self.char_bit,
            TypeKind.SHORT: self.short_bit,
            TypeKind.INT: self.int_bit,
            TypeKind.LONG: self.long_bit,
            TypeKind.LONG_LONG: self.long_long_bit,
            TypeKind.FLOAT: self.float_bit,
            TypeKind.DOUBLE: self.double_bit,
            TypeKind.LONG_DOUBLE: self.long_double_bit,
        }.get(kind, 0)

    def integer_kind_for(self, bits: int) -> TypeKind:
        """Pick the standard integer kind that is ``bits`` wide here."""
        for kind in (TypeKind.INT, TypeKind.LONG, TypeKind.LONG_LONG,
                     TypeKind.SHORT, TypeKind.CHAR):
            if self.bits_of(kind) == bits:
                return kind
        return TypeKind.LONG_LONG if bits > self.int_bit else TypeKind.INT


LP64 = Platform()
ILP32 = Platform(name="ilp32", long_bit=32, long_double_bit=80)
LLP64 = Platform(name="llp64", long_bit=32, long_double_bit=64)


def builtin_type(kind: TypeKind, platform: Platform = LP64,
                 sign: Optional[str] = "signed") -> CType:
    """Construct a builtin arithmetic type sized for ``platform``."""
    bits = platform.bits_of(kind)
    if kind in _FLOAT_KINDS:
        return CType.floating(kind, bits)
    return CType.integer(kind, bits, sign=sign)


# ═════════════════════════════════════════════════════════════════════════
#  PART 4 — cppcheckdata ValueType → CType CONVERSION
# ═════════════════════════════════════════════════════════════════════════

# cppcheck spells the multi-word kinds both with and without spaces
# depending on the dump version.
_VALUETYPE_KINDS: Dict[str, TypeKind] = {
    "bool": TypeKind.BOOL,
    "char": TypeKind.CHAR,
    "wchar_t": TypeKind.INT,
    "short": TypeKind.SHORT,
    "int": TypeKind.INT,
    "long": TypeKind.LONG,
    "long long": TypeKind.LONG_LONG,
    "longlong": TypeKind.LONG_LONG,
    "float": TypeKind.FLOAT,
    "double": TypeKind.DOUBLE,
    "long double": TypeKind.LONG_DOUBLE,
    "longdouble": TypeKind.LONG_DOUBLE,
}

_RECORD_VALUETYPES: FrozenSet[str] = frozenset({
    "record", "container", "smart-pointer", "iterator",
})

# <stdint.h>/<sys/types.h> aliases: name → (bits, sign)
FIXED_WIDTH_TYPEDEFS: Dict[str, Tuple[int, str]] = {
    "int8_t": (8, "signed"),
    "uint8_t": (8, "unsigned"),
    "int16_t": (16, "signed"),
    "uint16_t": (16, "unsigned"),
    "int32_t": (32, "signed"),
    "uint32_t": (32, "unsigned"),
    "int64_t": (64, "signed"),
    "uint64_t": (64, "unsigned"),
    "intmax_t": (64, "signed"),
    "uintmax_t": (64, "unsigned"),
    "time_t": (64, "signed"),
    "off_t": (64, "signed"),
}

# Aliases whose width follows ``long`` on the target.
POINTER_WIDTH_TYPEDEFS: Dict[str, str] = {
    "size_t": "unsigned",
    "ssize_t": "signed",
    "ptrdiff_t": "signed",
    "intptr_t": "signed",
    "uintptr_t": "unsigned",
}


def named_type(name: str, platform: Platform = LP64) -> Optional[CType]:
    """
    Resolve a type spelled by name — a builtin keyword sequence or a
    well-known typedef — to a ``CType``.  Returns ``None`` when unknown.
    """
    name = " ".join(name.split())
    if name in FIXED_WIDTH_TYPEDEFS:
        bits, sign = FIXED_WIDTH_TYPEDEFS[name]
        base = CType.integer(platform.integer_kind_for(bits), bits, sign=sign)
        return CType.typedef(name, base)
    if name in POINTER_WIDTH_TYPEDEFS:
        bits = platform.long_bit
        base = CType.integer(platform.integer_kind_for(bits), bits,
                             sign=POINTER_WIDTH_TYPEDEFS[name])
        return CType.typedef(name, base)

    sign: Optional[str] = "signed"
    words = name.split()
    if words and words[0] in ("signed", "unsigned"):
        sign = words[0]
        words = words[1:] or ["int"]
    words = [w for w in words if w != "int"] or ["int"]
    keyword = " ".join(words)
    if keyword == "void":
        return CType.void()
    kind = _VALUETYPE_KINDS.get(keyword)
    if kind is None:
        return None
    if kind in _FLOAT_KINDS:
        return builtin_type(kind, platform)
    if kind == TypeKind.BOOL:
        sign = None
    return builtin_type(kind, platform, sign=sign)


def valuetype_to_ctype(vt: Any, platform: Platform = LP64) -> Optional[CType]:
    """
    Convert a ``cppcheckdata.ValueType`` to a ``CType``.

    Parameters
    ----------
    vt       : cppcheckdata.ValueType (or None)
    platform : bit widths of the target

    Returns
    -------
    The corresponding CType, or None if ``vt`` is None.  When cppcheck
    recorded the source spelling (``originalTypeName``, e.g. ``int64_t``)
    the result is a typedef of that name over the builtin type.
    """
    if vt is None:
        return None

    vt_type = getattr(vt, "type", None) or ""
    vt_sign = getattr(vt, "sign", None)
    original = getattr(vt, "originalTypeName", None) or ""
    try:
        pointer = int(getattr(vt, "pointer", 0) or 0)
    except (TypeError, ValueError):
        pointer = 0

    kind = _VALUETYPE_KINDS.get(vt_type)
    base: CType
    if kind is not None:
        if kind in _FLOAT_KINDS:
            base = builtin_type(kind, platform)
        elif kind == TypeKind.BOOL:
            base = builtin_type(kind, platform, sign=None)
        else:
            base = builtin_type(kind, platform, sign=vt_sign or "signed")
    elif vt_type == "void":
        base = CType.void()
    elif vt_type in _RECORD_VALUETYPES:
        scope = getattr(vt, "typeScope", None)
        base = CType.record(original or getattr(scope, "className", "") or vt_type)
    else:
        base = CType.unknown(original or vt_type)

    if original and pointer == 0 and base.is_arithmetic and original != base.spelling:
        base = CType.typedef(original, base)

    # ── Qualifiers ───────────────────────────────────────────────────
    try:
        constness = int(getattr(vt, "constness", 0) or 0)
    except (TypeError, ValueError):
        constness = 0

    result = base
    if constness & 1:
        result = CType.qualified(result, frozenset({"const"}))
    for level in range(pointer):
        result = CType.ptr(result)
        if constness & (1 << (level + 1)):
            result = CType.qualified(result, frozenset({"const"}))

    return result


__all__ = [
    "TypeKind",
    "NumericCategory",
    "CType",
    "TypeQuery",
    "CTypeQuery",
    "Platform",
    "LP64",
    "ILP32",
    "LLP64",
    "builtin_type",
    "named_type",
    "valuetype_to_ctype",
    "FIXED_WIDTH_TYPEDEFS",
    "POINTER_WIDTH_TYPEDEFS",
]
