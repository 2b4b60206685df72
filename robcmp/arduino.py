"""Nodes that drive the board runtime: delays, port I/O and printing."""

from __future__ import annotations

import re

from robcmp.coercion import convert
from robcmp.ir import INT8, INT16, INT32, PTR, VOID, ArrayType, ConstantInt, Instruction, IntType
from robcmp.node import Int8, Node

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str) -> int:
    """Leading decimal integer of text, or 0 when there is none."""
    match = _LEADING_INT.match(text)
    return int(match.group(1)) if match else 0


def _call(ctx, name: str, args, block) -> Instruction:
    callee = ctx.runtime_function(name)
    return Instruction("call", callee.return_type(), tuple(args), "", block=block, callee=callee)


class Delay(Node):
    """Pauses for the given number of milliseconds."""

    def __init__(self, ms: Node) -> None:
        super().__init__((ms,))
        self.ms = ms

    def generate(self, ctx, func, block, allocblock):
        msv = self.ms.generate(ctx, func, block, allocblock)
        if msv is None:
            return None
        if isinstance(msv.type, IntType) and msv.type.bits < 32:
            msv = Instruction("sext", INT32, (msv,), "conv", block=block)
        else:
            msv = convert(ctx, msv, INT32, block, self.ms)
        return _call(ctx, "delay", (msv,), block)


class InPort(Node):
    """Reads an analog input port."""

    def __init__(self, port: str) -> None:
        super().__init__()
        self.port = port

    def generate(self, ctx, func, block, allocblock):
        port = Int8(_atoi(self.port)).generate(ctx, func, block, allocblock)
        return _call(ctx, "analogRead", (port,), block)


class OutPort(Node):
    """Writes a value to an output port."""

    def __init__(self, port: str, expr: Node) -> None:
        self.port = Int8(_atoi(port))
        self.expr = expr
        super().__init__((self.port, expr))

    def generate(self, ctx, func, block, allocblock):
        port = self.port.generate(ctx, func, block, allocblock)
        value = self.expr.generate(ctx, func, block, allocblock)
        if value is None:
            return None
        if value.type.is_float():
            value = Instruction("fptosi", INT16, (value,), "trunci", block=block)
        elif value.type != INT16:
            value = convert(ctx, value, INT16, block, self.expr)
        return _call(ctx, "analogWrite", (port, value), block)


class Print(Node):
    """Prints an integer, float or string through the runtime."""

    def __init__(self, expr: Node) -> None:
        super().__init__()
        self.expr = expr

    def generate(self, ctx, func, block, allocblock):
        value = self.expr.generate(ctx, func, block, allocblock)
        kind = None
        if value is not None:
            ty = value.type
            if ty.is_integer():
                kind = 0
            elif ty.is_float():
                kind = 1
            elif isinstance(ty, ArrayType):
                kind = 2
        if kind is None:
            ctx.error("Type not supported by print.", self)
            return None

        tag = ConstantInt(INT8, kind)
        slot = Instruction("alloca", PTR, (), "prntaux", block=block, allocated_type=value.type)
        Instruction("store", VOID, (value, slot), block=block)
        return _call(ctx, "print", (tag, slot), block)