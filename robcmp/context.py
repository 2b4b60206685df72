"""Language data types and the shared code generation context."""

from __future__ import annotations

from enum import Enum
from typing import Any, TextIO

from robcmp.diagnostics import Diagnostic, Diagnostics
from robcmp.ir import (
    DOUBLE, FLOAT, FP128, INT1, INT8, INT16, INT32, INT64, PTR, VOID,
    BasicBlock, Function, FunctionType, IRType, Module,
)
from robcmp.symbols import RobSymbol, SymbolTable


class LanguageDataType(Enum):
    VOID = 0
    BOOL = 1
    CHAR = 2
    INT8 = 3
    INT16 = 4
    INT32 = 5
    INT64 = 6
    INT8U = 7
    INT16U = 8
    INT32U = 9
    INT64U = 10
    FLOAT = 11
    DOUBLE = 12
    LDOUBLE = 13

    def ir_type(self) -> IRType:
        return _IR_TYPES[self]

    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_L = LanguageDataType
_IR_TYPES = {
    _L.VOID: VOID, _L.BOOL: INT1, _L.CHAR: INT8, _L.INT8: INT8, _L.INT16: INT16,
    _L.INT32: INT32, _L.INT64: INT64, _L.INT8U: INT8, _L.INT16U: INT16,
    _L.INT32U: INT32, _L.INT64U: INT64, _L.FLOAT: FLOAT, _L.DOUBLE: DOUBLE,
    _L.LDOUBLE: FP128,
}
_DISPLAY_NAMES = {
    _L.VOID: "void", _L.BOOL: "boolean", _L.CHAR: "char", _L.INT8: "int8",
    _L.INT16: "int16", _L.INT32: "int32", _L.INT64: "int64",
    _L.INT8U: "unsigned int8", _L.INT16U: "unsigned int16",
    _L.INT32U: "unsigned int32", _L.INT64U: "unsigned int64",
    _L.FLOAT: "float", _L.DOUBLE: "double", _L.LDOUBLE: "long double",
}

_RUNTIME_SIGNATURES = {
    "analogRead": FunctionType(INT16, (INT8,)),
    "analogWrite": FunctionType(VOID, (INT8, INT16)),
    "delay": FunctionType(VOID, (INT32,)),
    "delayMicroseconds": FunctionType(VOID, (INT32,)),
    "init": FunctionType(VOID, ()),
    "print": FunctionType(VOID, (INT8, PTR)),
    "attachInterrupt": FunctionType(VOID, (INT8, PTR, INT16)),
}


class CodegenContext:
    """State shared by every node while generating one module."""

    def __init__(self, filename: str = "", stream: TextIO | None = None, color: bool = True) -> None:
        self.filename = filename
        self.module = Module(filename)
        self.global_alloc = BasicBlock("global")
        self.symbols = SymbolTable(self.global_alloc)
        self.diagnostics = Diagnostics(filename, stream, color)

    def search_symbol(self, name: str, first: Any = None, second: Any = None) -> RobSymbol | None:
        return self.symbols.lookup(name, first, second)

    def define_symbol(self, scope: Any, name: str, symbol: RobSymbol) -> RobSymbol:
        return self.symbols.define(scope, name, symbol)

    def error(self, message: str, location: Any = None) -> Diagnostic:
        return self.diagnostics.error(message, location)

    def warning(self, message: str, location: Any = None) -> Diagnostic:
        return self.diagnostics.warning(message, location)

    @property
    def error_count(self) -> int:
        return self.diagnostics.error_count

    def runtime_function(self, name: str) -> Function:
        """The runtime support function of that name, declared on first use."""
        existing = self.module.get_function(name)
        if existing is not None:
            return existing
        try:
            signature = _RUNTIME_SIGNATURES[name]
        except KeyError:
            raise KeyError(f"unknown runtime function {name!r}") from None
        return self.module.add_function(Function(name, signature))