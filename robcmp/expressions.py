"""Expression nodes: arithmetic, comparisons, casts and loads."""

from __future__ import annotations

from enum import Enum
from typing import Any

from robcmp.coercion import convert
from robcmp.context import CodegenContext, LanguageDataType
from robcmp.diagnostics import type_name
from robcmp.ir import (
    INT1, INT8, INT16, INT32, INT64, PTR,
    ArrayType, Constant, ConstantFP, ConstantInt, GlobalVariable, Instruction,
    IntType, IRType, Value, fold_binary,
)
from robcmp.node import Int8, Int16, Int32, Int64, Node
from robcmp.symbols import DataQualifier, RobSymbol


class Operator(Enum):
    """Operators of binary and comparison expressions."""

    ADD = "+"
    SUB = "-"
    MUL = "*"
    DIV = "/"
    MOD = "%"
    BIT_OR = "|"
    BIT_AND = "&"
    XOR = "^"
    LSHIFT = "<<"
    RSHIFT = ">>"
    AND = "and"
    OR = "or"
    EQ = "=="
    NE = "!="
    GE = ">="
    LE = "<="
    GT = ">"
    LT = "<"


_ARITHMETIC = {
    Operator.ADD: ("add", "fadd"),
    Operator.SUB: ("sub", "fsub"),
    Operator.MUL: ("mul", "fmul"),
    Operator.DIV: ("sdiv", "fdiv"),
    Operator.MOD: ("srem", "srem"),
    Operator.BIT_OR: ("or", "or"),
    Operator.BIT_AND: ("and", "and"),
    Operator.XOR: ("xor", "xor"),
    Operator.LSHIFT: ("shl", "shl"),
    Operator.RSHIFT: ("lshr", "lshr"),
}
_LOGICAL = {Operator.AND: "and", Operator.OR: "or"}
_FOLDABLE = frozenset({
    Operator.ADD, Operator.SUB, Operator.MUL, Operator.BIT_OR, Operator.BIT_AND,
    Operator.XOR, Operator.LSHIFT, Operator.RSHIFT,
})
_SHIFTS = frozenset({Operator.LSHIFT, Operator.RSHIFT})

# operator -> (float predicate, integer predicate)
_PREDICATES = {
    Operator.EQ: ("oeq", "eq"),
    Operator.NE: ("une", "ne"),
    Operator.GE: ("oge", "sge"),
    Operator.LE: ("ole", "sle"),
    Operator.GT: ("ogt", "sgt"),
    Operator.LT: ("olt", "slt"),
}


def _shift_target(count: int) -> IRType | None:
    """Integer type wide enough for a shift by count bits, or None if none is."""
    if 8 <= count <= 15:
        return INT16
    if 16 <= count <= 31:
        return INT32
    if 32 <= count <= 63:
        return INT64
    return None


def _storage_type(value: Any) -> IRType | None:
    """Type held in the memory a stack slot or global variable points to."""
    if isinstance(value, Instruction) and value.opcode == "alloca":
        return value.allocated_type
    if isinstance(value, GlobalVariable):
        return value.value_type
    return None


def _int_const_node(value: int) -> Node:
    """The narrowest integer literal node that holds value."""
    if -(1 << 7) <= value < (1 << 7):
        return Int8(value, True)
    if -(1 << 15) <= value < (1 << 15):
        return Int16(value, True)
    if -(1 << 31) <= value < (1 << 31):
        return Int32(value, True)
    return Int64(value, True)


class BinaryOp(Node):
    """Arithmetic, bitwise, shift and logical operations on two operands."""

    def __init__(self, lhs: Node, op: Operator | str, rhs: Node) -> None:
        super().__init__((lhs, rhs))
        self.lhs = lhs
        self.rhs = rhs
        self.op = Operator(op)

    def _constant_shift(self, ctx: CodegenContext, block: Any, allocblock: Any) -> int | None:
        if not self.rhs.is_const_expr(ctx, block, allocblock):
            return None
        value = self.rhs.generate(ctx, None, block, allocblock)
        if isinstance(value, ConstantInt):
            return value.unsigned
        return None

    def _logical(self, ctx, func, block, allocblock, opcode: str) -> Value | None:
        lhs = self.lhs.generate(ctx, func, block, allocblock)
        rhs = self.rhs.generate(ctx, func, block, allocblock)
        if lhs is None or rhs is None:
            return None
        return Instruction(opcode, lhs.type, (lhs, rhs), "logicop", block=block)

    def _arithmetic(self, ctx, func, block, allocblock, opint: str, opflt: str) -> Value | None:
        lhs = self.lhs.generate(ctx, func, block, allocblock)
        rhs = self.rhs.generate(ctx, func, block, allocblock)
        if lhs is None or rhs is None:
            return None

        lty, rty = lhs.type, rhs.type
        if isinstance(lty, IntType) and isinstance(rty, IntType):
            if self.op in _SHIFTS:
                count = self._constant_shift(ctx, block, allocblock)
                if count is not None and lty.bits < count:
                    target = _shift_target(count)
                    if target is None:
                        ctx.error("Number of shift bits exceeds the max int precision for left side.",
                                  self)
                    else:
                        lhs = Instruction("sext", target, (lhs,), f"sext{target.bits}", block=block)
                        lty = target
            if lty.bits > rty.bits:
                rhs = convert(ctx, rhs, lty, block, self.rhs)
            else:
                lhs = convert(ctx, lhs, rty, block, self.lhs)
            opcode = opint
        else:
            if lty.is_integer():
                lhs = Instruction("sitofp", rty, (lhs,), "castitof", block=block)
            elif rty.is_integer():
                rhs = Instruction("sitofp", lty, (rhs,), "castitof", block=block)
            opcode = opflt

        if isinstance(lhs, Constant) and isinstance(rhs, Constant) and self.op in _FOLDABLE:
            return fold_binary(opcode, lhs, rhs)
        return Instruction(opcode, lhs.type, (lhs, rhs), "binop", block=block)

    def generate(self, ctx, func, block, allocblock):
        if self.op in _ARITHMETIC:
            opint, opflt = _ARITHMETIC[self.op]
            return self._arithmetic(ctx, func, block, allocblock, opint, opflt)
        if self.op in _LOGICAL:
            return self._logical(ctx, func, block, allocblock, _LOGICAL[self.op])
        return None

    def result_type(self, ctx, block, allocblock):
        lty = self.lhs.result_type(ctx, block, allocblock)
        rty = self.rhs.result_type(ctx, block, allocblock)
        if lty is None or rty is None:
            return None
        if isinstance(lty, IntType) and isinstance(rty, IntType):
            if self.op in _SHIFTS:
                count = self._constant_shift(ctx, block, allocblock)
                if count is not None and lty.bits < count:
                    return _shift_target(count)
            return lty if lty.bits > rty.bits else rty
        return rty if lty.is_integer() else lty

    def is_const_expr(self, ctx, block, allocblock):
        return (self.lhs.is_const_expr(ctx, block, allocblock)
                and self.rhs.is_const_expr(ctx, block, allocblock))


class CmpOp(Node):
    """Comparison of two numeric operands, yielding an i1."""

    def __init__(self, lhs: Node, op: Operator | str, rhs: Node) -> None:
        super().__init__((lhs, rhs))
        self.lhs = lhs
        self.rhs = rhs
        self.op = Operator(op)

    def generate(self, ctx, func, block, allocblock):
        recover = ConstantInt(INT1, 1)
        lexp = self.lhs.generate(ctx, func, block, allocblock)
        rexp = self.rhs.generate(ctx, func, block, allocblock)
        if lexp is None or rexp is None:
            return recover

        tl, tr = lexp.type, rexp.type
        numeric = (lambda t: t.is_integer() or t.is_floating_point())
        if not (numeric(tl) and numeric(tr)):
            ctx.error(f"Can not compare {type_name(tl)} and {type_name(tr)} types.", self.lhs)
            return recover

        is_float_cmp = True
        if tl.is_floating_point() and tr.is_integer():
            rexp = convert(ctx, rexp, tl, block, self.rhs)
        elif tl.is_integer() and tr.is_floating_point():
            lexp = convert(ctx, lexp, tr, block, self.lhs)
        elif tl.is_integer() and tr.is_integer():
            is_float_cmp = False
            if tl.bits > tr.bits:
                rexp = convert(ctx, rexp, tl, block, self.rhs)
            elif tl.bits < tr.bits:
                lexp = convert(ctx, lexp, tr, block, self.lhs)
        elif tl.bits > tr.bits:
            rexp = convert(ctx, rexp, tl, block, self.rhs)
        elif tl.bits < tr.bits:
            lexp = convert(ctx, lexp, tr, block, self.lhs)

        predicates = _PREDICATES.get(self.op)
        if predicates is None:
            ctx.error("Invalid predicate for comparison.", self.lhs)
            return None

        if is_float_cmp:
            return Instruction("fcmp", INT1, (lexp, rexp), "cmpf", block=block,
                               predicate=predicates[0])
        return Instruction("icmp", INT1, (lexp, rexp), "cmpi", block=block,
                           predicate=predicates[1])


class FlipOp(Node):
    """Bitwise flip of an integer operand."""

    def __init__(self, value: Node) -> None:
        super().__init__((value,))
        self.value = value

    def generate(self, ctx, func, block, allocblock):
        exprv = self.value.generate(ctx, func, block, allocblock)
        if exprv is None:
            return None
        if isinstance(exprv, ConstantInt):
            return fold_binary("sub", ConstantInt(exprv.type, 0), exprv)
        if isinstance(exprv, ConstantFP):
            return fold_binary("fsub", ConstantFP(exprv.type, -0.0), exprv)
        if not isinstance(exprv.type, IntType):
            ctx.error(f"Can not flip bits of {type_name(exprv.type)} values.", self)
            return None
        ones = ConstantInt(exprv.type, -1)
        return Instruction("xor", exprv.type, (exprv, ones), "neg", block=block)

    def result_type(self, ctx, block, allocblock):
        return self.value.result_type(ctx, block, allocblock)

    def is_const_expr(self, ctx, block, allocblock):
        return self.value.is_const_expr(ctx, block, allocblock)


class Cast(Node):
    """Explicit conversion of an expression to a language data type."""

    def __init__(self, dt: LanguageDataType, expr: Node) -> None:
        super().__init__()
        self.dt = dt
        self.expr = expr

    def result_type(self, ctx, block, allocblock):
        return self.dt.ir_type()

    def generate(self, ctx, func, block, allocblock):
        exprv = self.expr.generate(ctx, func, block, allocblock)
        if exprv is None:
            return None
        result = convert(ctx, exprv, self.dt.ir_type(), block, self.expr)
        if result is None:
            ctx.error(f"Can't cast from '{type_name(exprv.type)}' to '{self.dt.display_name()}",
                      self)
            return None
        return result


class Load(Node):
    """Reads the value of a named variable or constant."""

    def __init__(self, ident: str) -> None:
        super().__init__()
        self.ident = ident

    def result_type(self, ctx, block, allocblock):
        symbol = ctx.search_symbol(self.ident, allocblock, block)
        if symbol is None:
            return None
        stored = _storage_type(symbol.value)
        return stored if stored is not None else symbol.pointer_type

    def generate(self, ctx, func, block, allocblock):
        symbol = ctx.search_symbol(self.ident, allocblock, block)
        if symbol is None:
            ctx.error(f"Variable {self.ident} not defined.", self)
            return None

        if symbol.qualifier is DataQualifier.CONST:
            return symbol.value

        if block is None and (allocblock is None or allocblock is ctx.global_alloc):
            ctx.error(f"Can't not use '{self.ident}' to define another var/const in global context.",
                      self)
            return None

        load_type = _storage_type(symbol.value)
        if load_type is None:
            load_type = symbol.pointer_type
        if load_type is None:
            return None
        return Instruction("load", load_type, (symbol.value,), self.ident, block=block,
                           volatile=symbol.qualifier is DataQualifier.VOLATILE)

    def is_const_expr(self, ctx, block, allocblock):
        symbol = ctx.search_symbol(self.ident, block, allocblock)
        return symbol is not None and isinstance(symbol.value, Constant)


class LoadArray(Node):
    """Reads one element of an array variable."""

    def __init__(self, ident: str, position: Node) -> None:
        super().__init__()
        self.ident = ident
        self.position = position
        self.symbol: RobSymbol | None = None

    def result_type(self, ctx, block, allocblock):
        if self.symbol is None:
            self.symbol = ctx.search_symbol(self.ident, allocblock, block)
        if self.symbol is None:
            return None
        ty = _storage_type(self.symbol.value)
        if isinstance(ty, ArrayType):
            return ty.element
        return None

    def load_index(self, symbol: RobSymbol) -> Node:
        """The node computing the flat element index."""
        return self.position

    def generate(self, ctx, func, block, allocblock):
        self.symbol = ctx.search_symbol(self.ident, allocblock, block)
        if self.symbol is None:
            ctx.error(f"Variable {self.ident} not defined.", self)
            return None
        sym = self.symbol.value

        array_type = _storage_type(sym)
        if not isinstance(array_type, ArrayType):
            ctx.error(f"Symbol {self.ident} is not an array.", self)
            return None

        index = self.load_index(self.symbol).generate(ctx, func, block, allocblock)
        if index is None:
            return None
        if not index.type.is_integer():
            ctx.error(f"Index to update {self.ident} elements should be of type integer.", self)
            return None

        zero = ConstantInt(INT8, 0)
        pointer = Instruction("getelementptr", PTR, (sym, zero, index), "", block=block,
                              source_type=array_type)
        return Instruction("load", array_type.element, (pointer,), self.ident, block=block)


class LoadMatrix(LoadArray):
    """Reads one element of a matrix stored as a flat array."""

    def __init__(self, ident: str, row: Node, column: Node) -> None:
        super().__init__(ident, row)
        self.column = column

    def load_index(self, symbol: RobSymbol) -> Node:
        columns = _int_const_node(symbol.matrix_cols)
        return BinaryOp(BinaryOp(self.position, Operator.MUL, columns), Operator.ADD, self.column)