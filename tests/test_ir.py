import io

import pytest

from robcmp.ir import (
    DOUBLE, FLOAT, INT8, INT16, INT32, VOID, ArrayType, BasicBlock, ConstantExpr,
    ConstantFP, ConstantInt, Function, FunctionType, Instruction, IntType, Module,
    const_string, emit_ir, find_target, fold_binary, fold_cast,
)


def test_int_wraps_to_width():
    assert ConstantInt(INT8, 255).value == ConstantInt(INT8, -1).value
    assert ConstantInt(INT8, -1).unsigned == 255


def test_invalid_int_width():
    with pytest.raises(ValueError):
        IntType(0)


def test_fold_add_sub_round_trip():
    a, b = ConstantInt(INT16, 1234), ConstantInt(INT16, 999)
    assert fold_binary("sub", fold_binary("add", a, b), b).value == a.value


def test_fold_div_by_zero_stays_expression():
    r = fold_binary("sdiv", ConstantInt(INT32, 7), ConstantInt(INT32, 0))
    assert isinstance(r, ConstantExpr) and r.opcode == "sdiv"


def test_fold_mismatched_types():
    with pytest.raises(TypeError):
        fold_binary("add", ConstantInt(INT8, 1), ConstantInt(INT16, 1))


def test_cast_round_trips():
    v = ConstantInt(INT8, -5)
    assert fold_cast("trunc", fold_cast("sext", v, INT32), INT8).value == v.value
    assert fold_cast("fptosi", fold_cast("sitofp", v, DOUBLE), INT8).value == v.value


def test_float_rounding_is_stable():
    f = ConstantFP(FLOAT, 0.1)
    assert abs(f.value - 0.1) < 1e-7
    assert fold_cast("fptrunc", fold_cast("fpext", f, DOUBLE), FLOAT).value == f.value


def test_const_string():
    s = const_string("hi")
    assert s.as_bytes() == "hi".encode() + b"\0"
    assert s.type == ArrayType(INT8, len("hi") + 1)
    assert s.ref().startswith('c"')


def test_terminator_and_render():
    module = Module("prog")
    f = module.add_function(Function("main", FunctionType(INT16, ())))
    block = BasicBlock("entry", f)
    assert block.terminator() is None
    a = Instruction("add", INT16, (ConstantInt(INT16, 1), ConstantInt(INT16, 2)), block=block)
    b = Instruction("add", INT16, (a, a), block=block)
    ret = Instruction("ret", VOID, (b,), block=block)
    assert block.terminator() is ret
    text = module.render()
    assert a.ref() != b.ref() and a.render() in text and b.render() in text
    assert f.render().startswith("define")
    assert module.get_function("main") is f


def test_declaration_and_duplicates():
    module = Module("m")
    f = module.add_function(Function("delay", FunctionType(VOID, (INT32,))))
    assert f.render().startswith("declare")
    with pytest.raises(ValueError):
        module.add_function(Function("delay", FunctionType(VOID, ())))


def test_targets():
    t = find_target("avr328p")
    assert (t.triple, t.cpu) == ("avr-atmel-none", "atmega328p")
    assert find_target("unknown-board").name == ""


def test_emit_ir_writes_module():
    module = Module("x")
    out = io.StringIO()
    target = emit_ir(module, "stm32f1", out)
    assert module.triple == target.triple == "thumbv7m-none-eabi"
    assert out.getvalue() == module.render()