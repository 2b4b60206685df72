import io

import pytest

from robcmp.coercion import convert, floating_point_bitwidth
from robcmp.context import CodegenContext
from robcmp.diagnostics import SourceLocation
from robcmp.ir import (
    DOUBLE, FLOAT, FP128, INT8, INT16, INT32, PTR, Argument, ArrayType, BasicBlock,
    ConstantFP, ConstantInt, FloatType, Instruction, const_string,
)


@pytest.fixture
def ctx():
    return CodegenContext("test.rob", stream=io.StringIO(), color=False)


def messages(ctx):
    return [d.message for d in ctx.diagnostics.items]


@pytest.mark.parametrize("ty, bits", [(FLOAT, 32), (DOUBLE, 64), (FloatType(80), 80),
                                      (FP128, 128), (INT32, 0)])
def test_floating_point_bitwidth(ty, bits):
    assert floating_point_bitwidth(ty) == bits


def test_same_type_returns_same_value(ctx):
    value = ConstantInt(INT16, 9)
    assert convert(ctx, value, INT16, None, None) is value
    assert ctx.diagnostics.items == []


def test_integer_constant_sign_extends(ctx):
    result = convert(ctx, ConstantInt(INT8, -1), INT32, None, None)
    assert isinstance(result, ConstantInt)
    assert result.type == INT32
    assert result.value == -1
    assert messages(ctx) == []


def test_integer_truncation_warns(ctx):
    result = convert(ctx, ConstantInt(INT32, 300), INT8, None, None)
    assert result.type == INT8
    assert result.unsigned == 300 & 0xFF
    assert messages(ctx) == ["Integer value truncated."]
    assert ctx.diagnostics.warnings and not ctx.diagnostics.errors


def test_float_to_integer_warns(ctx):
    result = convert(ctx, ConstantFP(FLOAT, 2.75), INT16, None, None)
    assert isinstance(result, ConstantInt)
    assert result.value == 2
    assert messages(ctx) == ["Float point converted to integer."]


def test_integer_to_float(ctx):
    result = convert(ctx, ConstantInt(INT16, 7), FLOAT, None, None)
    assert isinstance(result, ConstantFP)
    assert result.type == FLOAT
    assert result.value == 7.0
    assert messages(ctx) == []


def test_float_extend_is_silent(ctx):
    result = convert(ctx, ConstantFP(FLOAT, 1.5), DOUBLE, None, None)
    assert result.type == DOUBLE
    assert result.value == 1.5
    assert messages(ctx) == []


def test_float_truncate_warns(ctx):
    result = convert(ctx, ConstantFP(DOUBLE, 1.5), FLOAT, None, None)
    assert result.type == FLOAT
    assert messages(ctx) == ["Float point value truncated."]


def test_non_constant_emits_instruction(ctx):
    block = BasicBlock("body")
    arg = Argument(INT8, "a")
    result = convert(ctx, arg, INT32, block, None)
    assert isinstance(result, Instruction)
    assert result.opcode == "sext"
    assert result.operands == (arg,)
    assert block.instructions == [result]


def test_non_constant_float_to_int(ctx):
    block = BasicBlock("body")
    result = convert(ctx, Argument(FLOAT, "f"), INT16, block, None)
    assert result.opcode == "fptosi"
    assert result.type == INT16
    assert block.instructions[-1] is result


def test_unsupported_coercion_is_error(ctx):
    value = const_string("a")
    result = convert(ctx, value, INT32, None, None)
    assert result is value
    assert messages(ctx) == [f"No coercion between {ArrayType(INT8, 2)} and {INT32} implemented."]
    assert ctx.error_count == 1


def test_pointer_destination_is_silent(ctx):
    value = const_string("a")
    assert convert(ctx, value, PTR, None, None) is value
    assert ctx.diagnostics.items == []


def test_location_is_reported(ctx):
    convert(ctx, ConstantInt(INT32, 1), INT8, None, SourceLocation(5, 7))
    diag = ctx.diagnostics.items[0]
    assert (diag.lineno, diag.colno) == (5, 7)