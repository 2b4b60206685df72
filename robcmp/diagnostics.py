"""Source locations and compiler diagnostics."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, TextIO

COLOR_RED = "\x1b[31m"
COLOR_BLUE = "\x1b[34m"
COLOR_RESET = "\x1b[0m"


@dataclass
class SourceLocation:
    """Line and column in the source file."""

    lineno: int = 0
    colno: int = 0


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class Diagnostic:
    severity: Severity
    message: str
    filename: str
    lineno: int
    colno: int

    def format(self, color: bool = False) -> str:
        label = f"semantic {self.severity.value}: "
        if color:
            c = COLOR_RED if self.severity is Severity.ERROR else COLOR_BLUE
            label = f"{c}{label}{COLOR_RESET}"
        return f"{self.filename}:{self.lineno}:{self.colno} {label}{self.message}"

    def __str__(self) -> str:
        return self.format()


class Diagnostics:
    """Collects errors and warnings, echoing each one to a stream."""

    def __init__(self, filename: str = "", stream: TextIO | None = None, color: bool = True) -> None:
        self.filename = filename
        self.stream = stream
        self.color = color
        self.lineno = 0
        self.colno = 0
        self.items: list[Diagnostic] = []

    def _report(self, severity: Severity, message: str, location: Any) -> Diagnostic:
        if location is not None:
            self.lineno = location.lineno
            self.colno = location.colno
        diag = Diagnostic(severity, message, self.filename, self.lineno, self.colno)
        self.items.append(diag)
        out = self.stream if self.stream is not None else sys.stderr
        out.write(diag.format(self.color) + "\n")
        return diag

    def error(self, message: str, location: Any = None) -> Diagnostic:
        return self._report(Severity.ERROR, message, location)

    def warning(self, message: str, location: Any = None) -> Diagnostic:
        return self._report(Severity.WARNING, message, location)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.items if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.items if d.severity is Severity.WARNING]

    @property
    def error_count(self) -> int:
        return len(self.errors)


def type_name(ty: Any) -> str:
    """Printable name of an IR type."""
    return str(ty)