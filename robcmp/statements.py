"""Declaration and assignment nodes: scalars, arrays, matrices and pointers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from robcmp.coercion import convert
from robcmp.context import CodegenContext, LanguageDataType
from robcmp.expressions import BinaryOp, Operator
from robcmp.ir import (
    DOUBLE, FLOAT, FP128, INT1, INT8, INT16, INT32, INT64, PTR, VOID,
    ArrayType, Constant, ConstantArray, ConstantInt, GlobalVariable, Instruction,
    IRType, Value, fold_cast,
)
from robcmp.node import Int8, Int16, Int32, Int64, Node
from robcmp.symbols import DataQualifier, RobSymbol

_INT_TYPES = {1: INT1, 8: INT8, 16: INT16, 32: INT32}
_FLOAT_TYPES = {32: FLOAT, 64: DOUBLE}


def _widest_type(types: Iterable[IRType | None]) -> IRType | None:
    """The widest integer type, or the widest float type if any float is present."""
    int_bits = 0
    float_bits = 0
    for ty in types:
        if ty is None:
            continue
        if ty.is_integer() and int_bits < ty.bits:
            int_bits = ty.bits
        if float_bits < 32 and ty.is_float():
            float_bits = 32
        elif float_bits < 64 and ty.is_double():
            float_bits = 64
        elif float_bits < 128 and ty.is_fp128():
            float_bits = 128
    if int_bits == 0 and float_bits == 0:
        return None
    if float_bits == 0:
        return _INT_TYPES.get(int_bits, INT64)
    return _FLOAT_TYPES.get(float_bits, FP128)


def _storage_type(value: Any) -> IRType | None:
    if isinstance(value, Instruction) and value.opcode == "alloca":
        return value.allocated_type
    if isinstance(value, GlobalVariable):
        return value.value_type
    return None


def _int_literal(value: int) -> Node:
    if -(1 << 7) <= value < (1 << 7):
        return Int8(value, True)
    if -(1 << 15) <= value < (1 << 15):
        return Int16(value, True)
    if -(1 << 31) <= value < (1 << 31):
        return Int32(value, True)
    return Int64(value, True)


def _symbol_for(node: Node, value: Value, qualifier: DataQualifier = DataQualifier.NONE,
                pointer_type: IRType | None = None) -> RobSymbol:
    return RobSymbol(value, qualifier, pointer_type, lineno=node.lineno, colno=node.colno)


def _store_elements(ctx: CodegenContext, name: str, array_type: ArrayType,
                    values: list[Value], block: Any, allocblock: Any) -> Value:
    """Allocate the array globally or on the stack and fill it with values."""
    if allocblock is ctx.global_alloc:
        initializer = ConstantArray(array_type, values)
        return ctx.module.add_global(GlobalVariable(array_type, name, initializer))

    var = Instruction("alloca", PTR, (), name, block=allocblock, allocated_type=array_type)
    zero = ConstantInt(INT8, 0)
    for index, value in enumerate(values):
        gep = Instruction("getelementptr", PTR, (var, zero, ConstantInt(INT32, index)), "",
                          block=block, source_type=array_type)
        Instruction("store", VOID, (value, gep), block=block)
    return var


@dataclass
class ArrayElement:
    """One initializer value repeated count times."""

    value: Node
    count: int = 1


class ArrayElements:
    """The initializer list of an array."""

    def __init__(self, elements: Iterable[ArrayElement] = ()) -> None:
        self.elements: list[ArrayElement] = list(elements)

    def append(self, element: ArrayElement) -> None:
        self.elements.append(element)

    def array_size(self) -> int:
        return sum(e.count for e in self.elements)

    def element_type(self, ctx: CodegenContext, block: Any, allocblock: Any) -> IRType | None:
        ty = _widest_type(e.value.result_type(ctx, block, allocblock) for e in self.elements)
        if ty is None:
            ctx.error("FIXME: vector of non-consts.", None)
        return ty

    def __iter__(self) -> Iterator[ArrayElement]:
        return iter(self.elements)

    def __len__(self) -> int:
        return len(self.elements)


@dataclass
class MatrixElement:
    """One matrix row repeated count times."""

    array: ArrayElements
    count: int = 1


class MatrixElements:
    """The initializer rows of a matrix."""

    def __init__(self, elements: Iterable[MatrixElement] = ()) -> None:
        self.elements: list[MatrixElement] = list(elements)

    def append(self, element: MatrixElement) -> None:
        self.elements.append(element)

    def line_count(self) -> int:
        return sum(e.count for e in self.elements)

    def column_count(self) -> int:
        return max((row.array.array_size() for row in self.elements), default=0)

    def element_type(self, ctx: CodegenContext, block: Any, allocblock: Any) -> IRType | None:
        ty = _widest_type(
            e.value.result_type(ctx, block, allocblock)
            for row in self.elements for e in row.array
        )
        if ty is None:
            ctx.error("FIXME: matrix of non-consts.", None)
        return ty

    def __iter__(self) -> Iterator[MatrixElement]:
        return iter(self.elements)

    def __len__(self) -> int:
        return len(self.elements)


class Scalar(Node):
    """Declaration of or assignment to a scalar variable or constant."""

    def __init__(self, name: str, expr: Node,
                 qualifier: DataQualifier = DataQualifier.NONE) -> None:
        super().__init__((expr,))
        self.name = name
        self.expr = expr
        self.qualifier = qualifier

    @property
    def ident(self) -> str:
        return self.name

    def generate(self, ctx, func, block, allocblock):
        symbol = ctx.search_symbol(self.name, allocblock, block)

        if symbol is None:
            exprv = self.expr.generate(ctx, func, block, allocblock)
            if exprv is None:
                return None
            if allocblock is ctx.global_alloc:
                if not isinstance(exprv, Constant):
                    return None
                if self.qualifier is DataQualifier.CONST:
                    result = target = exprv
                else:
                    target = ctx.module.add_global(
                        GlobalVariable(exprv.type, self.name, exprv, linkage="common"))
                    result = target
            else:
                target = Instruction("alloca", PTR, (), self.name, block=allocblock,
                                     allocated_type=exprv.type)
                result = Instruction("store", VOID, (exprv, target), block=block,
                                     volatile=self.qualifier is DataQualifier.VOLATILE)
            ctx.define_symbol(allocblock, self.name, _symbol_for(self, target, self.qualifier))
            return result

        if symbol.qualifier is DataQualifier.CONST:
            ctx.error(f"Constant '{self.name}' can not be changed.", self)
            return None

        target_type = symbol.pointer_type if symbol.pointer_type is not None else symbol.value.type
        self.qualifier = symbol.qualifier
        exprv = self.expr.generate(ctx, func, block, allocblock)
        if exprv is None:
            return None
        value = convert(ctx, exprv, target_type, block, self.expr)
        return Instruction("store", VOID, (value, symbol.value), block=block,
                           volatile=self.qualifier is DataQualifier.VOLATILE)


class Array(Node):
    """Declaration of an initialized one-dimensional array."""

    def __init__(self, name: str, elements: ArrayElements) -> None:
        super().__init__()
        self.name = name
        self.elements = elements

    def generate(self, ctx, func, block, allocblock):
        element_type = self.elements.element_type(ctx, block, allocblock)
        if element_type is None:
            return None
        array_type = ArrayType(element_type, self.elements.array_size())

        all_const = True
        values: list[Value] = []
        for element in self.elements:
            for _ in range(element.count):
                value = element.value.generate(ctx, func, block, allocblock)
                if value is None:
                    return None
                value = convert(ctx, value, element_type, block, element.value)
                all_const = all_const and isinstance(value, Constant)
                values.append(value)

        if not all_const and (allocblock is None or allocblock is ctx.global_alloc):
            return None

        var = _store_elements(ctx, self.name, array_type, values, block, allocblock)
        ctx.define_symbol(allocblock, self.name, _symbol_for(self, var))
        return var


class Matrix(Node):
    """Declaration of an initialized matrix, stored row by row as a flat array."""

    def __init__(self, name: str, elements: MatrixElements) -> None:
        super().__init__()
        self.name = name
        self.elements = elements

    def generate(self, ctx, func, block, allocblock):
        element_type = self.elements.element_type(ctx, block, allocblock)
        if element_type is None:
            return None
        lines = self.elements.line_count()
        cols = self.elements.column_count()
        array_type = ArrayType(element_type, lines * cols)

        all_const = True
        values: list[Value] = []
        for row in self.elements:
            for _ in range(row.count):
                for element in row.array:
                    value = element.value.generate(ctx, func, block, allocblock)
                    if value is None:
                        return None
                    value = convert(ctx, value, element_type, block, element.value)
                    all_const = all_const and isinstance(value, Constant)
                    values.extend([value] * element.count)

        if not all_const and (allocblock is None or allocblock is ctx.global_alloc):
            return None

        var = _store_elements(ctx, self.name, array_type, values, block, allocblock)
        symbol = _symbol_for(self, var)
        symbol.matrix_lines = lines
        symbol.matrix_cols = cols
        ctx.define_symbol(allocblock, self.name, symbol)
        return var


class UpdateArray(Node):
    """Assignment to one element of an array."""

    def __init__(self, ident: str, position: Node, expr: Node) -> None:
        super().__init__()
        self.ident = ident
        self.position = position
        self.expr = expr

    def update_index(self, symbol: RobSymbol) -> Node:
        """The node computing the flat element index."""
        return self.position

    def generate(self, ctx, func, block, allocblock):
        symbol = ctx.search_symbol(self.ident, allocblock, block)
        if symbol is None:
            ctx.error(f"Variable {self.ident} not defined.", self)
            return None
        sym = symbol.value

        array_type = _storage_type(sym)
        if not isinstance(array_type, ArrayType):
            ctx.error(f"Symbol {self.ident} is not an array.", self)
            return None

        index = self.update_index(symbol).generate(ctx, func, block, allocblock)
        if index is None:
            return None
        if not index.type.is_integer():
            ctx.error(f"Index to update {self.ident} elements should be of type integer.", self)
            return None

        zero = ConstantInt(INT8, 0)
        pointer = Instruction("getelementptr", PTR, (sym, zero, index), "", block=block,
                              source_type=array_type)
        value = self.expr.generate(ctx, func, block, allocblock)
        if value is None:
            return None
        value = convert(ctx, value, array_type.element, block, self)
        return Instruction("store", VOID, (value, pointer), block=block)


class UpdateMatrix(UpdateArray):
    """Assignment to one element of a matrix."""

    def __init__(self, ident: str, row: Node, column: Node, expr: Node) -> None:
        super().__init__(ident, row, expr)
        self.column = column

    def update_index(self, symbol: RobSymbol) -> Node:
        columns = _int_literal(symbol.matrix_cols)
        return BinaryOp(BinaryOp(self.position, Operator.MUL, columns), Operator.ADD, self.column)


class Pointer(Node):
    """A named typed pointer to a fixed address, such as a hardware register."""

    def __init__(self, name: str, type: LanguageDataType, address: Node,
                 is_volatile: bool = False) -> None:
        super().__init__()
        self.name = name
        self.type = type
        self.address = address
        self.is_volatile = is_volatile

    def generate(self, ctx, func, block, allocblock):
        existing = ctx.search_symbol(self.name)
        if existing is not None:
            ctx.error(f"Register/pointer {self.name} already defined.", self)
            ctx.error(f"{self.name} was first defined here.", existing)
            return None

        address = self.address.generate(ctx, func, block, allocblock)
        if address is None:
            ctx.error(f"Unable to compute the address for '{self.name}' register.", self)
            return None

        if isinstance(address, Constant):
            pointer = fold_cast("inttoptr", address, PTR)
        else:
            pointer = Instruction("inttoptr", PTR, (address,), self.name, block=allocblock)

        qualifier = DataQualifier.VOLATILE if self.is_volatile else DataQualifier.NONE
        ctx.define_symbol(allocblock, self.name,
                          _symbol_for(self, pointer, qualifier, self.type.ir_type()))
        return pointer