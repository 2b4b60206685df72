"""Function declarations, calls and interrupt attachment."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from robcmp.coercion import convert
from robcmp.context import CodegenContext, LanguageDataType
from robcmp.ir import (
    INT8, INT16, PTR, VOID,
    BasicBlock, ConstantInt, Function, FunctionType, Instruction, IRType,
)
from robcmp.node import Node
from robcmp.symbols import RobSymbol


@dataclass
class FunctionParam:
    """A declared parameter: its name and language type."""

    name: str
    type: LanguageDataType


class FunctionParams:
    """The parameter list of a function declaration."""

    def __init__(self, params: Iterable[FunctionParam] = ()) -> None:
        self.parameters: list[FunctionParam] = list(params)

    def append(self, param: FunctionParam) -> None:
        self.parameters.append(param)

    def param_types(self) -> list[IRType]:
        return [p.type.ir_type() for p in self.parameters]

    def __iter__(self) -> Iterator[FunctionParam]:
        return iter(self.parameters)

    def __len__(self) -> int:
        return len(self.parameters)


class ParamsCall:
    """The argument expressions of a function call."""

    def __init__(self, nodes: Iterable[Node] = ()) -> None:
        self.parameters: list[Node] = list(nodes)

    def append(self, node: Node) -> None:
        self.parameters.append(node)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.parameters)

    def __len__(self) -> int:
        return len(self.parameters)


def _check_undefined(ctx: CodegenContext, node: Node, name: str) -> bool:
    existing = ctx.search_symbol(name)
    if existing is not None:
        ctx.error(f"Function/symbol {name} already defined.", node)
        ctx.error(f"{name} was first defined here.", existing)
        return False
    return True


def _declare(ctx: CodegenContext, node: Node, name: str, ftype: FunctionType) -> Function | None:
    function = Function(name, ftype)
    try:
        ctx.module.add_function(function)
    except ValueError:
        ctx.error(f"Function/symbol {name} already defined.", node)
        return None
    return function


class FunctionDecl(Node):
    """Definition of a function with a body."""

    def __init__(self, tipo: LanguageDataType, name: str, parameters: FunctionParams,
                 stmts: Node) -> None:
        super().__init__()
        self.tipo = tipo
        self.name = name
        self.parameters = parameters
        self.stmts = stmts

    def is_function_decl(self) -> bool:
        return True

    def generate(self, ctx, func, block, allocblock):
        if not _check_undefined(ctx, self, self.name):
            return None

        return_type = self.tipo.ir_type()
        ftype = FunctionType(return_type, self.parameters.param_types())
        function = _declare(ctx, self, self.name, ftype)
        if function is None:
            return None
        function.dso_local = True
        function.attributes.add("minsize")
        ctx.define_symbol(allocblock, self.name,
                          RobSymbol(function, lineno=self.lineno, colno=self.colno))

        alloc_block = BasicBlock("entry", function)
        body_block = BasicBlock("body", function)
        for arg, param in zip(function.args, self.parameters):
            arg.name = param.name
            slot = Instruction("alloca", PTR, (), param.name, block=alloc_block,
                               allocated_type=param.type.ir_type())
            ctx.define_symbol(alloc_block, param.name,
                              RobSymbol(slot, lineno=self.lineno, colno=self.colno))
            Instruction("store", VOID, (arg, slot), block=body_block)

        result = self.stmts.generate(ctx, function, body_block, alloc_block)
        last_block = result if isinstance(result, BasicBlock) else body_block

        # every path must end in a return
        if last_block.terminator() is None:
            if return_type.is_void():
                Instruction("ret", VOID, (), block=last_block)
            else:
                zero = convert(ctx, ConstantInt(INT8, 0), return_type, last_block, self)
                Instruction("ret", VOID, (zero,), block=last_block)

        Instruction("br", VOID, (body_block,), block=alloc_block)
        return function


class FunctionDeclExtern(Node):
    """Declaration of a function defined elsewhere."""

    def __init__(self, tipo: LanguageDataType, name: str, parameters: FunctionParams) -> None:
        super().__init__()
        self.tipo = tipo
        self.name = name
        self.parameters = parameters

    def is_function_decl(self) -> bool:
        return True

    def generate(self, ctx, func, block, allocblock):
        if not _check_undefined(ctx, self, self.name):
            return None
        ftype = FunctionType(self.tipo.ir_type(), self.parameters.param_types())
        function = _declare(ctx, self, self.name, ftype)
        if function is None:
            return None
        ctx.define_symbol(allocblock, self.name,
                          RobSymbol(function, lineno=self.lineno, colno=self.colno))
        return function


class FunctionCall(Node):
    """Call of a declared function."""

    def __init__(self, name: str, parameters: ParamsCall | None = None) -> None:
        super().__init__()
        self.name = name
        self.parameters = parameters if parameters is not None else ParamsCall()

    def result_type(self, ctx, block, allocblock):
        symbol = ctx.search_symbol(self.name)
        if symbol is not None and isinstance(symbol.value, Function):
            return symbol.value.return_type()
        return None

    def generate(self, ctx, func, block, allocblock):
        symbol = ctx.search_symbol(self.name)
        if symbol is None:
            ctx.error(f"Function {self.name} not defined.", self)
            return None
        callee = symbol.value
        if not isinstance(callee, Function):
            ctx.error(f"Symbol {self.name} is not a function.", self)
            return None

        args = [node.generate(ctx, func, block, allocblock) for node in self.parameters]
        if any(arg is None for arg in args):
            return None

        return_type = callee.return_type()
        name = "" if return_type.is_void() else "fc"
        return Instruction("call", return_type, args, name, block=block, callee=callee)


class AttachInterrupt(Node):
    """Attaches a handler function to an interrupt port."""

    def __init__(self, port: int, fname: str, event: int) -> None:
        super().__init__()
        self.port = port
        self.fname = fname
        self.event = event

    def _attach_function(self, ctx: CodegenContext) -> Function:
        existing = ctx.module.get_function("attachInterrupt")
        if existing is not None:
            return existing
        ftype = FunctionType(VOID, (INT8, PTR, INT16))
        return ctx.module.add_function(Function("attachInterrupt", ftype))

    def generate(self, ctx, func, block, allocblock):
        symbol = ctx.search_symbol(self.fname)
        if symbol is None:
            ctx.error(f"Function {self.fname} not defined.", self)
            return None
        attach = self._attach_function(ctx)
        args = (ConstantInt(INT8, self.port), symbol.value, ConstantInt(INT16, self.event))
        return Instruction("call", VOID, args, block=block, callee=attach)