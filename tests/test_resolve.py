# tests/test_resolve.py
"""
Tests for seeing through conversion wrappers to source types and callees.
"""

from narrowcast.resolve import (
    original_expression,
    resolve_callee,
    resolve_original_type,
)
from narrowcast.tree import (
    AddressOf,
    Call,
    ConversionOp,
    Convert,
    FunctionDecl,
    FunctionRef,
    InitExpr,
    Operation,
    VarRef,
)
from narrowcast.type_model import named_type

I32 = named_type("int32_t")
I64 = named_type("int64_t")
F32 = named_type("float")
F64 = named_type("double")


class TestResolveOriginalType:
    def test_unwrapped_expression(self):
        assert resolve_original_type(VarRef("b", I64)) == I64

    def test_none(self):
        assert resolve_original_type(None) is None

    def test_peels_implicit_conversion(self):
        expr = Convert(ConversionOp.NOP, VarRef("b", I64), I32)
        assert resolve_original_type(expr) == I64

    def test_peels_chain(self):
        inner = Convert(ConversionOp.FLOAT, VarRef("x", I64), F64)
        outer = Convert(ConversionOp.CONVERT, inner, F32)
        assert resolve_original_type(outer) == I64

    def test_peels_explicit_cast(self):
        cast = Convert(ConversionOp.CONVERT, VarRef("b", I64), I32, explicit=True)
        assert resolve_original_type(cast) == I64

    def test_fix_trunc_and_view_convert_are_transparent(self):
        expr = Convert(ConversionOp.FIX_TRUNC,
                       Convert(ConversionOp.VIEW_CONVERT, VarRef("d", F64), F64), I32)
        assert resolve_original_type(expr) == F64

    def test_non_lvalue_is_not_transparent(self):
        expr = Convert(ConversionOp.NON_LVALUE, VarRef("b", I64), I32)
        assert resolve_original_type(expr) == I32

    def test_initializer_binding(self):
        init = InitExpr(VarRef("a", I32), VarRef("b", I64), I32)
        assert resolve_original_type(init) == I64

    def test_stops_at_operation(self):
        sum_ = Operation("+", (VarRef("a", I32), VarRef("b", I32)), I32)
        expr = Convert(ConversionOp.NOP, sum_, I64)
        assert original_expression(expr) is sum_
        assert resolve_original_type(expr) == I32

    def test_untyped_inner_gives_none(self):
        expr = Convert(ConversionOp.NOP, VarRef("mystery"), I32)
        assert resolve_original_type(expr) is None


class TestResolveCallee:
    def setup_method(self):
        self.decl = FunctionDecl("g", I32, (I32,))

    def test_direct(self):
        assert resolve_callee(FunctionRef(self.decl)) is self.decl

    def test_address_of(self):
        assert resolve_callee(AddressOf(FunctionRef(self.decl))) is self.decl

    def test_conversion_wrappers(self):
        callee = Convert(ConversionOp.NOP,
                         AddressOf(Convert(ConversionOp.CONVERT, FunctionRef(self.decl))))
        assert resolve_callee(callee) is self.decl

    def test_function_pointer_variable(self):
        assert resolve_callee(VarRef("fp")) is None

    def test_float_conversion_is_not_a_callee_wrapper(self):
        assert resolve_callee(Convert(ConversionOp.FLOAT, FunctionRef(self.decl))) is None

    def test_computed_callee(self):
        member = Operation(".", (VarRef("obj"), FunctionRef(self.decl)))
        assert resolve_callee(member) is None

    def test_none(self):
        assert resolve_callee(None) is None

    def test_call_result_is_not_resolvable(self):
        assert resolve_callee(Call(FunctionRef(self.decl))) is None
