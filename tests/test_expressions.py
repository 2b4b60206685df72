import io

import pytest

from robcmp.context import CodegenContext, LanguageDataType
from robcmp.expressions import (
    BinaryOp, Cast, CmpOp, FlipOp, Load, LoadArray, LoadMatrix, Operator,
)
from robcmp.ir import (
    FLOAT, INT1, INT8, INT16, INT32, PTR, VOID,
    ArrayType, BasicBlock, ConstantArray, ConstantFP, ConstantInt, Function,
    FunctionType, GlobalVariable, Instruction,
)
from robcmp.node import Float, Int8, Int16, Int32, String
from robcmp.symbols import DataQualifier, RobSymbol


def make_ctx():
    return CodegenContext("test.rob", io.StringIO(), color=False)


def make_function(ctx):
    func = Function("f", FunctionType(VOID, ()))
    ctx.module.add_function(func)
    alloc = BasicBlock("entry", func)
    body = BasicBlock("body", func)
    return func, body, alloc


def define_local(ctx, alloc, name, ty, qualifier=DataQualifier.NONE):
    slot = Instruction("alloca", PTR, (), name, block=alloc, allocated_type=ty)
    ctx.define_symbol(alloc, name, RobSymbol(slot, qualifier))
    return slot


def test_operator_from_text():
    assert Operator("+") is Operator.ADD
    with pytest.raises(ValueError):
        Operator("@@")


def test_constant_addition_folds():
    ctx = make_ctx()
    result = BinaryOp(Int8(0), "+", Int8(7)).generate(ctx, None, None, ctx.global_alloc)
    assert isinstance(result, ConstantInt)
    assert result.type == INT8
    assert result.value == 7


def test_narrow_operand_is_widened():
    ctx = make_ctx()
    node = BinaryOp(Int8(1), Operator.ADD, Int32(2))
    result = node.generate(ctx, None, None, ctx.global_alloc)
    assert result.type == INT32
    assert node.result_type(ctx, None, ctx.global_alloc) == INT32


def test_float_plus_int_casts_integer():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    result = BinaryOp(Float(1.5), Operator.ADD, Int8(2)).generate(ctx, None, body, alloc)
    assert isinstance(result, Instruction)
    assert result.opcode == "fadd"
    assert result.operands[1].opcode == "sitofp"
    assert result.operands[1].name == "castitof"
    assert result.type == FLOAT


def test_shift_too_wide_is_error():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    node = BinaryOp(Int8(1), Operator.LSHIFT, Int8(70))
    node.lineno = 4
    node.generate(ctx, None, body, alloc)
    assert ctx.error_count == 1
    error = ctx.diagnostics.errors[0]
    assert error.message == "Number of shift bits exceeds the max int precision for left side."
    assert error.lineno == 4
    assert node.result_type(ctx, body, alloc) is None


def test_division_is_not_folded():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    result = BinaryOp(Int8(6), Operator.DIV, Int8(3)).generate(ctx, None, body, alloc)
    assert isinstance(result, Instruction)
    assert result.opcode == "sdiv"
    assert body.instructions[-1] is result


def test_logical_and_emits_instruction():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    result = BinaryOp(Int8(1), Operator.AND, Int8(0)).generate(ctx, None, body, alloc)
    assert result.opcode == "and"
    assert result.name == "logicop"


def test_binary_const_expr_depends_on_children():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    define_local(ctx, alloc, "x", INT8)
    assert BinaryOp(Int8(1), "+", Int8(2)).is_const_expr(ctx, body, alloc) is True
    assert BinaryOp(Int8(1), "+", Load("x")).is_const_expr(ctx, body, alloc) is False


def test_binary_children():
    left, right = Int8(1), Int8(2)
    assert BinaryOp(left, "*", right).children() == [left, right]


def test_integer_compare_widens():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    result = CmpOp(Int8(1), Operator.LT, Int16(2)).generate(ctx, None, body, alloc)
    assert result.opcode == "icmp"
    assert result.predicate == "slt"
    assert result.type == INT1
    assert result.operands[0].type == INT16


def test_float_compare():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    result = CmpOp(Float(1.0), Operator.NE, Int8(2)).generate(ctx, None, body, alloc)
    assert result.opcode == "fcmp"
    assert result.predicate == "une"
    assert result.operands[1].type == FLOAT


def test_compare_string_is_error():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    result = CmpOp(String("a"), Operator.EQ, Int8(2)).generate(ctx, None, body, alloc)
    assert isinstance(result, ConstantInt)
    assert result.value == 1
    assert ctx.diagnostics.errors[0].message.startswith("Can not compare")


def test_compare_invalid_predicate():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    assert CmpOp(Int8(1), Operator.ADD, Int8(2)).generate(ctx, None, body, alloc) is None
    assert ctx.diagnostics.errors[0].message == "Invalid predicate for comparison."


def test_flip_constant_negates():
    ctx = make_ctx()
    result = FlipOp(Int8(5)).generate(ctx, None, None, ctx.global_alloc)
    assert isinstance(result, ConstantInt)
    assert result.value == -5


def test_flip_variable_xors_all_ones():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    define_local(ctx, alloc, "x", INT16)
    node = FlipOp(Load("x"))
    result = node.generate(ctx, None, body, alloc)
    assert result.opcode == "xor"
    assert result.operands[1].value == -1
    assert node.result_type(ctx, body, alloc) == INT16
    assert node.is_const_expr(ctx, body, alloc) is False


def test_cast_int_to_float():
    ctx = make_ctx()
    node = Cast(LanguageDataType.FLOAT, Int32(7))
    result = node.generate(ctx, None, None, ctx.global_alloc)
    assert isinstance(result, ConstantFP)
    assert result.value == 7.0
    assert node.result_type(ctx, None, None) == FLOAT


def test_cast_float_to_int_warns():
    ctx = make_ctx()
    result = Cast(LanguageDataType.INT8, Float(3.0)).generate(ctx, None, None, ctx.global_alloc)
    assert result.type == INT8
    assert result.value == 3
    assert [w.message for w in ctx.diagnostics.warnings] == ["Float point converted to integer."]


def test_load_undefined():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    assert Load("y").generate(ctx, None, body, alloc) is None
    assert ctx.diagnostics.errors[0].message == "Variable y not defined."


def test_load_constant_returns_value():
    ctx = make_ctx()
    value = ConstantInt(INT8, 3)
    ctx.define_symbol(ctx.global_alloc, "k", RobSymbol(value, DataQualifier.CONST))
    assert Load("k").generate(ctx, None, None, ctx.global_alloc) is value
    assert Load("k").is_const_expr(ctx, None, ctx.global_alloc) is True


def test_load_in_global_context_is_error():
    ctx = make_ctx()
    gv = GlobalVariable(INT16, "g", ConstantInt(INT16, 1))
    ctx.define_symbol(ctx.global_alloc, "g", RobSymbol(gv))
    assert Load("g").generate(ctx, None, None, ctx.global_alloc) is None
    assert ctx.error_count == 1


def test_load_local_and_volatile():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    slot = define_local(ctx, alloc, "x", INT16)
    define_local(ctx, alloc, "v", INT8, DataQualifier.VOLATILE)
    result = Load("x").generate(ctx, None, body, alloc)
    assert result.opcode == "load"
    assert result.type == INT16
    assert result.operands == (slot,)
    assert result.volatile is False
    assert Load("v").generate(ctx, None, body, alloc).volatile is True
    assert Load("x").result_type(ctx, body, alloc) == INT16
    assert Load("x").is_const_expr(ctx, body, alloc) is False


def test_load_global_and_pointer():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    gv = GlobalVariable(INT32, "g", ConstantInt(INT32, 1))
    ctx.define_symbol(ctx.global_alloc, "g", RobSymbol(gv))
    ctx.define_symbol(ctx.global_alloc, "reg", RobSymbol(ConstantInt(INT8, 0), pointer_type=INT16))
    assert Load("g").generate(ctx, None, body, alloc).type == INT32
    assert Load("reg").generate(ctx, None, body, alloc).type == INT16
    assert Load("reg").result_type(ctx, body, alloc) == INT16


def make_array(ctx):
    ty = ArrayType(INT16, 4)
    init = ConstantArray(ty, [ConstantInt(INT16, i) for i in range(4)])
    gv = GlobalVariable(ty, "arr", init)
    ctx.module.add_global(gv)
    ctx.define_symbol(ctx.global_alloc, "arr", RobSymbol(gv))
    return gv


def test_load_array_element():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    gv = make_array(ctx)
    node = LoadArray("arr", Int8(2))
    result = node.generate(ctx, None, body, alloc)
    gep = result.operands[0]
    assert result.opcode == "load"
    assert result.type == INT16
    assert gep.opcode == "getelementptr"
    assert gep.operands[0] is gv
    assert gep.operands[2].value == 2
    assert body.instructions == [gep, result]
    assert "getelementptr [4 x i16], ptr @arr" in gep.render()
    assert node.result_type(ctx, body, alloc) == INT16


def test_load_array_not_array():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    define_local(ctx, alloc, "x", INT16)
    assert LoadArray("x", Int8(0)).generate(ctx, None, body, alloc) is None
    assert ctx.diagnostics.errors[0].message == "Symbol x is not an array."


def test_load_array_float_index():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    make_array(ctx)
    assert LoadArray("arr", Float(1.0)).generate(ctx, None, body, alloc) is None
    assert ctx.diagnostics.errors[0].message == (
        "Index to update arr elements should be of type integer.")


def test_load_matrix_flat_index():
    ctx = make_ctx()
    _, body, alloc = make_function(ctx)
    ty = ArrayType(INT8, 6)
    gv = GlobalVariable(ty, "m", ConstantArray(ty, [ConstantInt(INT8, 0)] * 6))
    symbol = RobSymbol(gv, matrix_lines=2, matrix_cols=3)
    ctx.define_symbol(ctx.global_alloc, "m", symbol)
    node = LoadMatrix("m", Int8(1), Int8(2))
    index = node.load_index(symbol)
    assert isinstance(index, BinaryOp)
    assert index.op is Operator.ADD
    result = node.generate(ctx, None, body, alloc)
    assert result.type == INT8
    assert result.operands[0].operands[2].value == 5