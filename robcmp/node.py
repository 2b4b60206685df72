"""Base syntax tree node and literal nodes."""

from __future__ import annotations

import math
import struct
from abc import ABC, abstractmethod
from typing import Any, Iterable

from robcmp.context import CodegenContext
from robcmp.ir import (
    DOUBLE, FLOAT, FP128, INT1, INT8, INT16, INT32, INT64,
    ConstantFP, ConstantInt, IRType, Value, const_string,
)


def _wrap(value: int, bits: int) -> int:
    """Value as stored in a signed C integer of the given width."""
    value = int(value) & ((1 << bits) - 1)
    return value - (1 << bits) if value >= 1 << (bits - 1) else value


def _float32(value: float) -> float:
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return value
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


class Node(ABC):
    """A node of the syntax tree; also carries its source location."""

    def __init__(self, children: Iterable[Node] = ()) -> None:
        self._children: list[Node] = list(children)
        self.lineno = 0
        self.colno = 0

    @abstractmethod
    def generate(self, ctx: CodegenContext, func: Any, block: Any, allocblock: Any) -> Value | None:
        """Emit code for this node and return the value it produces."""

    def children(self) -> list[Node]:
        return list(self._children)

    def accept(self, visitor: Any) -> None:
        visitor.visit(self)

    def is_const_expr(self, ctx: CodegenContext, block: Any, allocblock: Any) -> bool:
        return False

    def result_type(self, ctx: CodegenContext, block: Any, allocblock: Any) -> IRType | None:
        return None

    def is_function_decl(self) -> bool:
        return False


class _IntLiteral(Node):
    _bits = 8
    _type: IRType = INT8

    def __init__(self, number: int, is_signed: bool = False) -> None:
        super().__init__()
        self.number = _wrap(number, self._bits)
        self.is_signed = is_signed

    def generate(self, ctx, func, block, allocblock):
        return ConstantInt(self._type, self.number)

    def is_const_expr(self, ctx, block, allocblock):
        return True

    def result_type(self, ctx, block, allocblock):
        return self._type


class Int1(_IntLiteral):
    _bits = 8
    _type = INT1

    def __init__(self, number: int) -> None:
        super().__init__(number)

    def generate(self, ctx, func, block, allocblock):
        return ConstantInt(INT1, self.number)


class Int8(_IntLiteral):
    _bits = 8
    _type = INT8

    def generate(self, ctx, func, block, allocblock):
        return ConstantInt(INT8, self.number)


class Int16(_IntLiteral):
    _bits = 16
    _type = INT16

    def generate(self, ctx, func, block, allocblock):
        return ConstantInt(INT16, self.number)


class Int32(_IntLiteral):
    _bits = 32
    _type = INT32

    def generate(self, ctx, func, block, allocblock):
        return ConstantInt(INT32, self.number)


class Int64(_IntLiteral):
    # The literal is held in a 32-bit int before being widened to i64.
    _bits = 32
    _type = INT64

    def generate(self, ctx, func, block, allocblock):
        return ConstantInt(INT64, self.number)


class _FloatLiteral(Node):
    _type: IRType = FLOAT

    def __init__(self, number: float) -> None:
        super().__init__()
        # The literal is held in single precision whatever its IR type.
        self.number = _float32(number)

    def generate(self, ctx, func, block, allocblock):
        return ConstantFP(self._type, self.number)

    def is_const_expr(self, ctx, block, allocblock):
        return True

    def result_type(self, ctx, block, allocblock):
        return self._type


class Float(_FloatLiteral):
    _type = FLOAT

    def generate(self, ctx, func, block, allocblock):
        return ConstantFP(FLOAT, self.number)


class Double(_FloatLiteral):
    _type = DOUBLE

    def generate(self, ctx, func, block, allocblock):
        return ConstantFP(DOUBLE, self.number)


class Float128(_FloatLiteral):
    _type = FP128

    def generate(self, ctx, func, block, allocblock):
        return ConstantFP(FP128, self.number)


class String(Node):
    """A string literal, emitted as a null-terminated i8 array."""

    def __init__(self, text: str) -> None:
        super().__init__()
        self.text = text

    def generate(self, ctx, func, block, allocblock):
        return const_string(self.text)


class Capsule(Node):
    """Wraps another node and generates it unchanged."""

    def __init__(self, node: Node) -> None:
        super().__init__()
        self.node = node

    def generate(self, ctx, func, block, allocblock):
        return self.node.generate(ctx, func, block, allocblock)