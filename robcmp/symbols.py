"""Symbol table of the code generator."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Hashable


class DataQualifier(Enum):
    NONE = auto()
    CONST = auto()
    VOLATILE = auto()


@dataclass(eq=False)
class RobSymbol:
    value: Any
    qualifier: DataQualifier = DataQualifier.NONE
    pointer_type: Any = None
    matrix_lines: int = 0
    matrix_cols: int = 0
    lineno: int = 0
    colno: int = 0


class SymbolTable:
    """Symbols kept per scope, with a global scope searched last."""

    def __init__(self, global_scope: Hashable | None = None) -> None:
        self.global_scope = global_scope
        self._scopes: dict[Hashable | None, dict[str, RobSymbol]] = {}

    def define(self, scope: Hashable | None, name: str, symbol: RobSymbol) -> RobSymbol:
        self._scopes.setdefault(scope, {})[name] = symbol
        return symbol

    def lookup(self, name: str, first: Hashable | None = None,
               second: Hashable | None = None) -> RobSymbol | None:
        for scope in (first, second, self.global_scope):
            if scope is None:
                continue
            symbol = self._scopes.get(scope, {}).get(name)
            if symbol is not None:
                return symbol
        return None

    def scope(self, scope: Hashable | None) -> dict[str, RobSymbol]:
        return dict(self._scopes.get(scope, {}))