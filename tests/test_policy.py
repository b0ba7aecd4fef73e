# tests/test_policy.py
"""
Tests for the 64 -> 32 bit narrowing decision table.
"""

import pytest

from narrowcast.policy import NarrowingRule, Verdict, classify, narrowing_rule
from narrowcast.type_model import LLP64, CType, TypeKind, builtin_type, named_type


def T(name):
    return named_type(name)


class TestNarrowingTable:
    @pytest.mark.parametrize("to_name, from_name, rule", [
        ("int32_t", "int64_t", NarrowingRule.SAME_CATEGORY),
        ("uint32_t", "int64_t", NarrowingRule.SAME_CATEGORY),
        ("int", "long", NarrowingRule.SAME_CATEGORY),
        ("unsigned int", "unsigned long long", NarrowingRule.SAME_CATEGORY),
        ("float", "double", NarrowingRule.SAME_CATEGORY),
        ("float", "int64_t", NarrowingRule.INT_TO_FLOAT),
        ("float", "uint64_t", NarrowingRule.INT_TO_FLOAT),
        ("int32_t", "double", NarrowingRule.FLOAT_TO_INT),
        ("uint32_t", "double", NarrowingRule.FLOAT_TO_INT),
    ])
    def test_narrowing_pairs(self, to_name, from_name, rule):
        assert narrowing_rule(T(to_name), T(from_name)) is rule
        assert classify(T(to_name), T(from_name)) is Verdict.NARROWING

    @pytest.mark.parametrize("to_name, from_name", [
        ("int64_t", "int32_t"),        # widening
        ("double", "float"),
        ("double", "int64_t"),         # 64 -> 64
        ("int64_t", "double"),
        ("int32_t", "int32_t"),
        ("float", "int32_t"),          # 32 -> 32
        ("int16_t", "int64_t"),        # destination not 32 bits
        ("int32_t", "long double"),    # source not 64 bits
        ("int8_t", "double"),
    ])
    def test_not_narrowing(self, to_name, from_name):
        assert narrowing_rule(T(to_name), T(from_name)) is None
        assert classify(T(to_name), T(from_name)) is Verdict.NONE

    def test_platform_width_decides(self):
        # long is 32 bits on LLP64, so long -> int is not lossy there.
        long_t = builtin_type(TypeKind.LONG, LLP64)
        int_t = builtin_type(TypeKind.INT, LLP64)
        assert narrowing_rule(int_t, long_t) is None

    def test_qualified_types_compare_by_main_variant(self):
        const_i64 = CType.qualified(T("int64_t"), frozenset({"const"}))
        assert narrowing_rule(T("int32_t"), const_i64) is NarrowingRule.SAME_CATEGORY


class TestNonNumeric:
    def test_missing_types(self):
        assert narrowing_rule(None, T("int64_t")) is None
        assert narrowing_rule(T("int32_t"), None) is None

    def test_error_types(self):
        assert narrowing_rule(CType.error(), T("int64_t")) is None
        assert narrowing_rule(T("int32_t"), CType.error()) is None

    def test_pointer_and_record(self):
        ptr = CType.ptr(T("int32_t"))
        assert narrowing_rule(T("int32_t"), ptr) is None
        assert narrowing_rule(CType.record("Widget"), T("int64_t")) is None

    def test_reference_destination(self):
        assert narrowing_rule(CType.reference(T("int32_t")), T("int64_t")) is None


class TestNarrowingRule:
    def test_error_ids_and_cwes(self):
        assert NarrowingRule.SAME_CATEGORY.error_id == "narrowingConversion"
        assert NarrowingRule.SAME_CATEGORY.cwe == 197
        assert NarrowingRule.INT_TO_FLOAT.error_id == "intToFloatPrecisionLoss"
        assert NarrowingRule.FLOAT_TO_INT.error_id == "floatToIntTruncation"
        assert NarrowingRule.FLOAT_TO_INT.cwe == 681
