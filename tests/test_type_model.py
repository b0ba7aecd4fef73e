# tests/test_type_model.py
"""
Tests for narrowcast.type_model: the CType algebra, the TypeQuery facade,
platform widths and the cppcheck ValueType conversion.
"""

import pytest

from narrowcast.type_model import (
    ILP32,
    LLP64,
    LP64,
    CType,
    CTypeQuery,
    NumericCategory,
    Platform,
    TypeKind,
    TypeQuery,
    builtin_type,
    named_type,
    valuetype_to_ctype,
)
from tests.conftest import MockPlatform, MockValueType


class TestCType:
    def test_integer_factory_rejects_float_kind(self):
        with pytest.raises(ValueError):
            CType.integer(TypeKind.DOUBLE, 64)

    def test_floating_factory_rejects_integer_kind(self):
        with pytest.raises(ValueError):
            CType.floating(TypeKind.INT, 32)

    def test_unqualified_strips_typedef_and_qualifiers(self):
        base = CType.integer(TypeKind.LONG, 64)
        alias = CType.qualified(CType.typedef("int64_t", base), frozenset({"const"}))
        assert alias.unqualified == base
        assert alias.is_integer

    def test_qualified_merges(self):
        base = builtin_type(TypeKind.INT)
        once = CType.qualified(base, frozenset({"const"}))
        twice = CType.qualified(once, frozenset({"volatile"}))
        assert twice.qualifiers == frozenset({"const", "volatile"})
        assert twice.children == (base,)

    def test_qualified_without_qualifiers_is_identity(self):
        base = builtin_type(TypeKind.INT)
        assert CType.qualified(base, frozenset()) is base

    def test_pointer_is_not_arithmetic(self):
        p = CType.ptr(builtin_type(TypeKind.LONG))
        assert not p.is_arithmetic
        assert p.pointee == builtin_type(TypeKind.LONG)

    def test_reference_is_not_arithmetic(self):
        r = CType.reference(builtin_type(TypeKind.INT))
        assert not r.is_arithmetic
        assert r.spelling == "int &"

    def test_spelling_prefers_typedef_name(self):
        assert named_type("int64_t").spelling == "int64_t"

    def test_spelling_of_builtins(self):
        assert builtin_type(TypeKind.LONG_LONG).spelling == "long long"
        assert builtin_type(TypeKind.INT, sign="unsigned").spelling == "unsigned int"
        assert CType.ptr(builtin_type(TypeKind.CHAR)).spelling == "char *"

    def test_spelling_of_anonymous_record(self):
        assert CType.record("").spelling == "<anonymous type>"

    def test_error_type(self):
        assert CType.error().is_error
        assert not CType.error().is_arithmetic


class TestCTypeQuery:
    def test_satisfies_protocol(self):
        assert isinstance(CTypeQuery(), TypeQuery)

    def test_none_handles(self):
        q = CTypeQuery()
        assert q.main_variant(None) is None
        assert not q.is_numeric(None)
        assert q.category(None) is None
        assert q.precision(None) == 0
        assert q.display_name(None) == "<null type>"

    @pytest.mark.parametrize("name, category, bits", [
        ("int32_t", NumericCategory.INTEGER, 32),
        ("int64_t", NumericCategory.INTEGER, 64),
        ("float", NumericCategory.FLOAT, 32),
        ("double", NumericCategory.FLOAT, 64),
        ("long double", NumericCategory.FLOAT, 80),
        ("char", NumericCategory.INTEGER, 8),
    ])
    def test_category_and_precision(self, name, category, bits):
        q = CTypeQuery()
        t = named_type(name)
        assert q.is_numeric(t)
        assert q.category(t) == category
        assert q.precision(t) == bits

    def test_precision_reads_through_typedef(self):
        q = CTypeQuery()
        assert q.precision(named_type("uint32_t")) == 32

    def test_record_is_not_numeric(self):
        q = CTypeQuery()
        assert not q.is_numeric(CType.record("Widget"))
        assert q.category(CType.record("Widget")) is None


class TestPlatform:
    def test_lp64_defaults(self):
        assert LP64.bits_of(TypeKind.INT) == 32
        assert LP64.bits_of(TypeKind.LONG) == 64
        assert LP64.bits_of(TypeKind.PTR) == 0

    def test_long_is_32_bits_on_llp64_and_ilp32(self):
        assert LLP64.bits_of(TypeKind.LONG) == 32
        assert ILP32.bits_of(TypeKind.LONG) == 32

    def test_integer_kind_for(self):
        assert LP64.integer_kind_for(64) == TypeKind.LONG
        assert LLP64.integer_kind_for(64) == TypeKind.LONG_LONG
        assert LP64.integer_kind_for(16) == TypeKind.SHORT

    def test_from_cppcheck(self):
        p = Platform.from_cppcheck(MockPlatform(name="win64", long_bit=32))
        assert p.name == "win64"
        assert p.long_bit == 32
        assert p.long_long_bit == 64

    def test_from_cppcheck_keeps_defaults_for_missing_widths(self):
        p = Platform.from_cppcheck(MockPlatform(int_bit=0, long_bit="bogus"))
        assert p.int_bit == 32
        assert p.long_bit == 64

    def test_from_none(self):
        assert Platform.from_cppcheck(None) == LP64


class TestNamedType:
    def test_fixed_width_typedef(self):
        t = named_type("int64_t")
        assert t.kind == TypeKind.TYPEDEF
        assert t.unqualified.precision == 64
        assert t.unqualified.sign == "signed"

    def test_size_t_follows_long(self):
        assert named_type("size_t").unqualified.precision == 64
        assert named_type("size_t", LLP64).unqualified.precision == 32

    @pytest.mark.parametrize("spelling, kind", [
        ("int", TypeKind.INT),
        ("unsigned", TypeKind.INT),
        ("long int", TypeKind.LONG),
        ("unsigned long long", TypeKind.LONG_LONG),
        ("short", TypeKind.SHORT),
        ("double", TypeKind.DOUBLE),
        ("bool", TypeKind.BOOL),
    ])
    def test_builtin_spellings(self, spelling, kind):
        assert named_type(spelling).kind == kind

    def test_void(self):
        assert named_type("void").kind == TypeKind.VOID

    def test_unknown_name(self):
        assert named_type("Widget") is None


class TestValueTypeConversion:
    def test_none(self):
        assert valuetype_to_ctype(None) is None

    def test_original_type_name_becomes_typedef(self):
        t = valuetype_to_ctype(MockValueType("long", "signed", originalTypeName="int64_t"))
        assert t.kind == TypeKind.TYPEDEF
        assert t.spelling == "int64_t"
        assert t.unqualified.precision == 64

    def test_plain_builtin(self):
        t = valuetype_to_ctype(MockValueType("int", "unsigned"))
        assert t.kind == TypeKind.INT
        assert t.spelling == "unsigned int"

    def test_long_on_llp64(self):
        t = valuetype_to_ctype(MockValueType("long", "signed"), LLP64)
        assert t.precision == 32

    def test_pointer_levels(self):
        t = valuetype_to_ctype(MockValueType("char", "signed", pointer=2))
        assert t.kind == TypeKind.PTR
        assert t.pointee.kind == TypeKind.PTR
        assert not t.is_arithmetic

    def test_pointer_keeps_builtin_spelling(self):
        t = valuetype_to_ctype(MockValueType("long", "signed", pointer=1,
                                             originalTypeName="int64_t"))
        assert t.pointee.kind == TypeKind.LONG

    def test_const(self):
        t = valuetype_to_ctype(MockValueType("double", constness=1))
        assert t.kind == TypeKind.QUALIFIED
        assert t.is_floating

    def test_record(self):
        t = valuetype_to_ctype(MockValueType("record", originalTypeName="Widget"))
        assert t.kind == TypeKind.RECORD
        assert t.spelling == "Widget"

    def test_nonstd_is_unknown(self):
        t = valuetype_to_ctype(MockValueType("nonstd"))
        assert t.kind == TypeKind.UNKNOWN
        assert not t.is_arithmetic

    def test_multiword_kind_without_space(self):
        assert valuetype_to_ctype(MockValueType("longlong", "signed")).precision == 64
