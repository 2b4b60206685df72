"""The root node of a compiled program."""

from __future__ import annotations

from robcmp.context import CodegenContext
from robcmp.node import Node

_AUXILIARY_FUNCTIONS = ("analogRead", "analogWrite", "delay", "delayMicroseconds", "init", "print")


class Program(Node):
    """A whole program: its top-level statements."""

    def __init__(self, stmts: Node) -> None:
        super().__init__((stmts,))
        self.stmts = stmts

    def declare_auxiliary_functions(self, ctx: CodegenContext) -> None:
        """Declare the board runtime functions in the module."""
        for name in _AUXILIARY_FUNCTIONS:
            ctx.runtime_function(name)

    def generate(self, ctx, func, block, allocblock):
        return None

    def build(self, filename: str) -> CodegenContext:
        """Generate the program into a fresh module and return its context."""
        ctx = CodegenContext(filename)
        self.stmts.generate(ctx, None, None, ctx.global_alloc)
        return ctx