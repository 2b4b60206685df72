import io

import pytest

from robcmp.arduino import Delay, InPort, OutPort, Print
from robcmp.context import CodegenContext
from robcmp.expressions import Load
from robcmp.ir import INT16, VOID, BasicBlock
from robcmp.node import Double, Float, Int8, Int16, Int32, String


@pytest.fixture
def ctx():
    return CodegenContext("prog.rob", io.StringIO(), color=False)


@pytest.fixture
def block():
    return BasicBlock("entry")


def test_delay_calls_runtime(ctx, block):
    result = Delay(Int16(100)).generate(ctx, None, block, block)
    assert result.opcode == "call"
    assert result.type == VOID
    assert ctx.module.get_function("delay").return_type() == VOID


def test_delay_children(ctx):
    ms = Int8(5)
    assert Delay(ms).children() == [ms]


def test_delay_missing_value(ctx, block):
    assert Delay(Load("nothing")).generate(ctx, None, block, block) is None
    assert ctx.error_count == 1


def test_inport_returns_int16(ctx, block):
    result = InPort("2").generate(ctx, None, block, block)
    assert result.opcode == "call"
    assert result.type == INT16
    assert ctx.module.get_function("analogRead") is not None


def test_outport_port_parsed_like_atoi(ctx):
    assert OutPort("3", Int16(1)).children()[0].number == 3
    assert OutPort("12abc", Int16(1)).children()[0].number == 12
    assert OutPort("x", Int16(1)).children()[0].number == 0


def test_outport_int16_no_warning(ctx, block):
    result = OutPort("3", Int16(5)).generate(ctx, None, block, block)
    assert result.opcode == "call"
    assert ctx.diagnostics.warnings == []


def test_outport_float_is_converted_silently(ctx, block):
    result = OutPort("3", Float(2.0)).generate(ctx, None, block, block)
    assert result.type == VOID
    assert ctx.diagnostics.warnings == []


def test_outport_wide_int_truncated_with_warning(ctx, block):
    OutPort("3", Int32(70000)).generate(ctx, None, block, block)
    assert [w.message for w in ctx.diagnostics.warnings] == ["Integer value truncated."]


def test_print_supported_types(ctx, block):
    for expr in (Int8(1), Float(1.5), String("hi")):
        result = Print(expr).generate(ctx, None, block, block)
        assert result.opcode == "call"
    assert ctx.error_count == 0
    assert ctx.module.get_function("print") is not None


def test_print_double_not_supported(ctx, block):
    assert Print(Double(1.0)).generate(ctx, None, block, block) is None
    assert ctx.diagnostics.errors[-1].message == "Type not supported by print."


def test_print_undefined_variable(ctx, block):
    assert Print(Load("missing")).generate(ctx, None, block, block) is None
    assert ctx.error_count == 2