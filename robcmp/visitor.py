"""Syntax tree visitors, including a Graphviz printer."""

from __future__ import annotations

from typing import TextIO

from robcmp.expressions import BinaryOp, CmpOp, Load, Operator
from robcmp.node import Int8, Int16, Int32, Node
from robcmp.program import Program
from robcmp.statements import Scalar

_OPERATOR_NAMES = {
    Operator.EQ: "=",
    Operator.NE: "!=",
    Operator.LE: "<=",
    Operator.GE: ">=",
    Operator.LT: "<",
    Operator.GT: ">",
    Operator.ADD: "+",
    Operator.SUB: "-",
    Operator.MUL: "*",
    Operator.DIV: "/",
    Operator.MOD: "%",
    Operator.AND: "and",
    Operator.OR: "or",
}


def operator_name(op) -> str:
    """Display name of an operator."""
    try:
        op = Operator(op)
    except ValueError:
        return str(op)
    return _OPERATOR_NAMES.get(op, op.value)


class Visitor:
    """Base visitor: does nothing for any node."""

    def visit(self, node: Node) -> None:
        pass

    def before(self, node: Node) -> bool:
        """Called before a node's children; returning True skips them."""
        return False

    def after(self, node: Node) -> None:
        pass


class RecursiveVisitor(Visitor):
    """Visits every node of the tree in preorder."""

    def visit(self, node: Node) -> None:
        if self.before(node):
            return
        for child in node.children():
            child.accept(self)
        self.after(node)


def _node_id(node: Node) -> str:
    return f"N{id(node):x}"


class PrintAstVisitorNode(RecursiveVisitor):
    """Writes each node and edge of the tree in Graphviz syntax."""

    def __init__(self, stream: TextIO) -> None:
        self.os = stream

    def _label(self, node: Node, label: str) -> None:
        self.os.write(f'{_node_id(node)}[label="{label}"];\n')

    def before(self, node: Node) -> bool:
        self._label(node, type(node).__name__)
        return False

    def visit_children(self, node: Node) -> None:
        for child in node.children():
            child.accept(self)
            self.os.write(f"{_node_id(node)}--{_node_id(child)};\n")

    def visit(self, node: Node) -> None:
        if self.before(node):
            return
        self.visit_children(node)
        self.after(node)


class PrintAstVisitor(PrintAstVisitorNode):
    """Prints a whole program as a Graphviz graph with detailed labels."""

    def visit(self, node: Node) -> None:
        name = type(node).__name__
        if isinstance(node, Program):
            if self.before(node):
                return
            self.visit_children(node)
            self.after(node)
        elif isinstance(node, (Int8, Int16, Int32)):
            self._label(node, f"{name}({node.number})")
        elif isinstance(node, (CmpOp, BinaryOp)):
            self._label(node, f"{name}({operator_name(node.op)})")
            self.visit_children(node)
        elif isinstance(node, (Load, Scalar)):
            self._label(node, f"{name}({node.ident})")
            self.visit_children(node)
        else:
            super().visit(node)

    def before(self, node: Node) -> bool:
        if isinstance(node, Program):
            self.os.write(f'graph {{\n{_node_id(node)}[label="{type(node).__name__}"];\n')
            return False
        return super().before(node)

    def after(self, node: Node) -> None:
        if isinstance(node, Program):
            self.os.write("}\n")