"""Statement sequences and control flow: if, while, loop and return."""

from __future__ import annotations

from typing import Any

from robcmp.coercion import convert
from robcmp.ir import VOID, BasicBlock, Instruction, Value
from robcmp.node import Node


def _last_block(result: Any, default: BasicBlock) -> BasicBlock:
    """The block code continues in: result when it is a block, else default."""
    return result if isinstance(result, BasicBlock) else default


def _branch_if_open(target: BasicBlock, block: BasicBlock) -> None:
    """Close block with a jump to target unless it already ends in a terminator."""
    if block.terminator() is None:
        Instruction("br", VOID, (target,), block=block)


class Stmts(Node):
    """A sequence of statements generated one after another."""

    def __init__(self, *stmts: Node) -> None:
        super().__init__()
        self.stmts: list[Node] = list(stmts)

    def children(self) -> list[Node]:
        return list(self.stmts)

    def append(self, node: Node) -> None:
        self.stmts.append(node)

    def prepend(self, node: Node) -> None:
        """Insert node right after the last function declaration."""
        last_decl = 0
        for position, stmt in enumerate(self.stmts):
            if stmt.is_function_decl():
                last_decl = position
        self.stmts.insert(last_decl + 1, node)

    def generate(self, ctx, func, block, allocblock):
        for node in self.stmts:
            result = node.generate(ctx, func, block, allocblock)
            if isinstance(result, BasicBlock):
                block = result
        return block


class If(Node):
    """Conditional statement with an optional else branch."""

    def __init__(self, expr: Node, then_stmts: Node, else_stmts: Node | None = None) -> None:
        children = [expr, then_stmts]
        if else_stmts is not None:
            children.append(else_stmts)
        super().__init__(children)
        self.expr = expr
        self.then_stmts = then_stmts
        self.else_stmts = else_stmts

    def generate(self, ctx, func, block, allocblock):
        condition = self.expr.generate(ctx, func, block, allocblock)
        if condition is None:
            return None

        then_block = BasicBlock("if_then", func)
        then_result = self.then_stmts.generate(ctx, func, then_block, allocblock)

        else_block = BasicBlock("if_else", func)
        else_result = None
        if self.else_stmts is not None:
            else_result = self.else_stmts.generate(ctx, func, else_block, allocblock)

        Instruction("br", VOID, (condition, then_block, else_block), block=block)

        merge_block = BasicBlock("if_cont", func)
        _branch_if_open(merge_block, _last_block(then_result, then_block))
        _branch_if_open(merge_block, _last_block(else_result, else_block))
        return merge_block


class While(Node):
    """Loop that tests its condition before every iteration."""

    def __init__(self, expr: Node, stmts: Node) -> None:
        super().__init__((expr, stmts))
        self.expr = expr
        self.stmts = stmts

    def generate(self, ctx, func, block, allocblock):
        cond_block = BasicBlock("while_cond", func)
        condition = self.expr.generate(ctx, func, cond_block, allocblock)
        if condition is None:
            return None

        body_block = BasicBlock("while_body", func)
        # allocations inside the body go to allocblock so they happen only once
        body_result = self.stmts.generate(ctx, func, body_block, allocblock)

        end_block = BasicBlock("while_end", func)

        Instruction("br", VOID, (cond_block,), block=block)
        Instruction("br", VOID, (condition, body_block, end_block), block=cond_block)
        _branch_if_open(cond_block, _last_block(body_result, body_block))
        return end_block


class Loop(Node):
    """Endless loop."""

    def __init__(self, stmts: Node) -> None:
        super().__init__((stmts,))
        self.stmts = stmts

    def generate(self, ctx, func, block, allocblock):
        body_block = BasicBlock("loop_body", func)
        body_result = self.stmts.generate(ctx, func, body_block, allocblock)
        _branch_if_open(body_block, _last_block(body_result, body_block))
        Instruction("br", VOID, (body_block,), block=block)
        return BasicBlock("loop_end", func)


class Return(Node):
    """Returns a value, converted to the function's return type."""

    def __init__(self, node: Node) -> None:
        super().__init__()
        self.node = node

    def generate(self, ctx, func, block, allocblock):
        if func is None:
            ctx.error("Return outside of a function.", self)
            return None
        value: Value | None = self.node.generate(ctx, func, block, allocblock)
        if value is None:
            return None
        value = convert(ctx, value, func.return_type(), block, self)
        return Instruction("ret", VOID, (value,), block=block)