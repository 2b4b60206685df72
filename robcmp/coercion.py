"""Implicit conversions between IR value types."""

from __future__ import annotations

from typing import Any

from robcmp.context import CodegenContext
from robcmp.diagnostics import type_name
from robcmp.ir import (
    BasicBlock, Constant, FloatType, Instruction, IntType, IRType, Value, fold_cast,
)


def floating_point_bitwidth(ty: IRType) -> int:
    """Bit width of a floating point type, or 0 for any other type."""
    if isinstance(ty, FloatType):
        return ty.bits
    return 0


def _cast(opcode: str, value: Value, dest_type: IRType, block: BasicBlock | None) -> Value:
    if isinstance(value, Constant):
        return fold_cast(opcode, value, dest_type)
    return Instruction(opcode, dest_type, (value,), opcode, block=block)


def convert(ctx: CodegenContext, value: Value, dest_type: IRType,
            block: BasicBlock | None, location: Any) -> Value:
    """Convert value to dest_type, reporting lossy or impossible conversions."""
    ty = value.type
    if ty == dest_type:
        return value

    if ty.is_floating_point() and dest_type.is_integer():
        result = _cast("fptosi", value, dest_type, block)
        ctx.warning("Float point converted to integer.", location)
        return result

    if dest_type.is_floating_point() and ty.is_integer():
        return _cast("sitofp", value, dest_type, block)

    if ty.is_floating_point() and dest_type.is_floating_point():
        source_bits = floating_point_bitwidth(ty)
        dest_bits = floating_point_bitwidth(dest_type)
        if dest_bits > source_bits:
            return _cast("fpext", value, dest_type, block)
        if dest_bits < source_bits:
            result = _cast("fptrunc", value, dest_type, block)
            ctx.warning("Float point value truncated.", location)
            return result
        return value

    if isinstance(ty, IntType) and isinstance(dest_type, IntType):
        if ty.bits > dest_type.bits:
            result = _cast("trunc", value, dest_type, block)
            ctx.warning("Integer value truncated.", location)
            return result
        if ty.bits < dest_type.bits:
            return _cast("sext", value, dest_type, block)
        return value

    if not dest_type.is_pointer():
        ctx.error(f"No coercion between {type_name(ty)} and {type_name(dest_type)} implemented.",
                  location)
    return value