"""A small in-memory intermediate representation modelled on LLVM IR."""

from __future__ import annotations

import math
import platform
import struct
import sys
from dataclasses import dataclass
from typing import Iterable, Iterator, TextIO


class IRType:
    """Base class of every IR type."""

    def is_void(self) -> bool:
        return False

    def is_integer(self) -> bool:
        return False

    def is_float(self) -> bool:
        return False

    def is_double(self) -> bool:
        return False

    def is_fp128(self) -> bool:
        return False

    def is_floating_point(self) -> bool:
        return False

    def is_array(self) -> bool:
        return False

    def is_pointer(self) -> bool:
        return False

    def is_function(self) -> bool:
        return False


@dataclass(frozen=True)
class VoidType(IRType):
    def is_void(self) -> bool:
        return True

    def __str__(self) -> str:
        return "void"


@dataclass(frozen=True)
class IntType(IRType):
    bits: int

    def __post_init__(self) -> None:
        if self.bits < 1:
            raise ValueError(f"invalid integer width {self.bits}")

    @property
    def mask(self) -> int:
        return (1 << self.bits) - 1

    def is_integer(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"i{self.bits}"


_FLOAT_NAMES = {32: "float", 64: "double", 80: "x86_fp80", 128: "fp128"}


@dataclass(frozen=True)
class FloatType(IRType):
    bits: int

    def __post_init__(self) -> None:
        if self.bits not in _FLOAT_NAMES:
            raise ValueError(f"invalid floating point width {self.bits}")

    def is_float(self) -> bool:
        return self.bits == 32

    def is_double(self) -> bool:
        return self.bits == 64

    def is_fp128(self) -> bool:
        return self.bits == 128

    def is_floating_point(self) -> bool:
        return True

    def __str__(self) -> str:
        return _FLOAT_NAMES[self.bits]


@dataclass(frozen=True)
class ArrayType(IRType):
    element: IRType
    count: int

    def is_array(self) -> bool:
        return True

    def __str__(self) -> str:
        return f"[{self.count} x {self.element}]"


@dataclass(frozen=True)
class PointerType(IRType):
    address_space: int = 0

    def is_pointer(self) -> bool:
        return True

    def __str__(self) -> str:
        return "ptr" if self.address_space == 0 else f"ptr addrspace({self.address_space})"


@dataclass(frozen=True)
class FunctionType(IRType):
    return_type: IRType
    params: tuple = ()
    var_arg: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "params", tuple(self.params))

    def is_function(self) -> bool:
        return True

    def __str__(self) -> str:
        params = [str(p) for p in self.params]
        if self.var_arg:
            params.append("...")
        return f"{self.return_type} ({', '.join(params)})"


VOID = VoidType()
INT1 = IntType(1)
INT8 = IntType(8)
INT16 = IntType(16)
INT32 = IntType(32)
INT64 = IntType(64)
FLOAT = FloatType(32)
DOUBLE = FloatType(64)
FP128 = FloatType(128)
PTR = PointerType()

BINARY_OPS = frozenset({
    "add", "sub", "mul", "sdiv", "udiv", "srem", "urem",
    "fadd", "fsub", "fmul", "fdiv", "frem",
    "and", "or", "xor", "shl", "lshr", "ashr",
})
CAST_OPS = frozenset({
    "trunc", "sext", "zext", "fptosi", "sitofp", "uitofp",
    "fpext", "fptrunc", "inttoptr", "ptrtoint", "bitcast",
})
_OTHER_OPS = frozenset({
    "alloca", "load", "store", "icmp", "fcmp", "br", "ret", "call", "getelementptr",
})


class Value:
    """Anything that can be used as an operand."""

    def __init__(self, type: IRType, name: str = "") -> None:
        self.type = type
        self.name = name
        self._slot: str | None = None

    def ref(self) -> str:
        """Textual reference to this value as an operand."""
        return f"%{self._slot if self._slot is not None else self.name}"

    def typed_ref(self) -> str:
        return f"{self.type} {self.ref()}"


class Constant(Value):
    """Values known at compile time."""


def _to_signed(raw: int, bits: int) -> int:
    return raw - (1 << bits) if raw >= 1 << (bits - 1) else raw


class ConstantInt(Constant):
    def __init__(self, type: IntType, value: int) -> None:
        if not isinstance(type, IntType):
            raise TypeError(f"{type} is not an integer type")
        super().__init__(type)
        self.unsigned = int(value) & type.mask
        self.signed = _to_signed(self.unsigned, type.bits)

    @property
    def value(self) -> int:
        return self.unsigned if self.type.bits == 1 else self.signed

    def ref(self) -> str:
        if self.type.bits == 1:
            return "true" if self.unsigned else "false"
        return str(self.signed)


def _round_fp(ty: FloatType, value: float) -> float:
    if ty.bits != 32 or math.isnan(value) or math.isinf(value):
        return value
    try:
        return struct.unpack("<f", struct.pack("<f", value))[0]
    except OverflowError:
        return math.copysign(math.inf, value)


def _format_fp(value: float) -> str:
    if math.isfinite(value) and float(f"{value:e}") == value:
        return f"{value:e}"
    return "0x%016X" % struct.unpack("<Q", struct.pack("<d", value))[0]


class ConstantFP(Constant):
    def __init__(self, type: FloatType, value: float) -> None:
        if not isinstance(type, FloatType):
            raise TypeError(f"{type} is not a floating point type")
        super().__init__(type)
        self.value = _round_fp(type, float(value))

    def ref(self) -> str:
        return _format_fp(self.value)


def _escape_bytes(data: Iterable[int]) -> str:
    parts = []
    for b in data:
        if 0x20 <= b < 0x7F and b not in (0x22, 0x5C):
            parts.append(chr(b))
        else:
            parts.append("\\%02X" % b)
    return "".join(parts)


class ConstantArray(Constant):
    def __init__(self, type: ArrayType, elements: Iterable[Constant]) -> None:
        elements = list(elements)
        if not isinstance(type, ArrayType) or len(elements) != type.count:
            raise ValueError("array constant does not match its type")
        super().__init__(type)
        self.elements = elements

    def is_string(self) -> bool:
        return self.type.element == INT8 and all(isinstance(e, ConstantInt) for e in self.elements)

    def as_bytes(self) -> bytes:
        if not self.is_string():
            raise TypeError("not an i8 array")
        return bytes(e.unsigned for e in self.elements)

    def ref(self) -> str:
        if self.is_string():
            return f'c"{_escape_bytes(self.as_bytes())}"'
        return "[" + ", ".join(e.typed_ref() for e in self.elements) + "]"


class ConstantExpr(Constant):
    """A constant operation that could not be folded to a plain value."""

    def __init__(self, opcode: str, type: IRType, operands: Iterable[Value]) -> None:
        super().__init__(type)
        self.opcode = opcode
        self.operands = tuple(operands)

    def ref(self) -> str:
        if self.opcode in CAST_OPS:
            return f"{self.opcode} ({self.operands[0].typed_ref()} to {self.type})"
        return f"{self.opcode} ({', '.join(o.typed_ref() for o in self.operands)})"


def const_string(text: str) -> ConstantArray:
    """A null-terminated i8 array holding the UTF-8 bytes of text."""
    data = text.encode("utf-8") + b"\0"
    return ConstantArray(ArrayType(INT8, len(data)), (ConstantInt(INT8, b) for b in data))


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def _fold_int(opcode: str, lhs: ConstantInt, rhs: ConstantInt) -> int | None:
    a, b = lhs.signed, rhs.signed
    ua, ub = lhs.unsigned, rhs.unsigned
    bits = lhs.type.bits
    simple = {
        "add": lambda: a + b, "sub": lambda: a - b, "mul": lambda: a * b,
        "and": lambda: ua & ub, "or": lambda: ua | ub, "xor": lambda: ua ^ ub,
    }
    if opcode in simple:
        return simple[opcode]()
    if opcode in ("shl", "lshr", "ashr"):
        if ub >= bits:
            return None
        return {"shl": ua << ub, "lshr": ua >> ub, "ashr": a >> ub}[opcode]
    if opcode in ("sdiv", "srem"):
        if b == 0:
            return None
        q = _trunc_div(a, b)
        return q if opcode == "sdiv" else a - b * q
    if opcode in ("udiv", "urem"):
        if ub == 0:
            return None
        return ua // ub if opcode == "udiv" else ua % ub
    return None


def _fold_fp(opcode: str, a: float, b: float) -> float | None:
    if opcode == "fadd":
        return a + b
    if opcode == "fsub":
        return a - b
    if opcode == "fmul":
        return a * b
    if opcode == "fdiv":
        if b == 0:
            if a == 0 or math.isnan(a):
                return math.nan
            return math.copysign(math.inf, a) * math.copysign(1.0, b)
        return a / b
    if opcode == "frem":
        return math.nan if b == 0 else math.fmod(a, b)
    return None


def fold_binary(opcode: str, lhs: Constant, rhs: Constant) -> Constant:
    """Fold a binary operation on two constants, or build a ConstantExpr."""
    if opcode not in BINARY_OPS:
        raise ValueError(f"unknown binary opcode {opcode!r}")
    if lhs.type != rhs.type:
        raise TypeError(f"operand types differ: {lhs.type} and {rhs.type}")
    if isinstance(lhs, ConstantInt) and isinstance(rhs, ConstantInt):
        result = _fold_int(opcode, lhs, rhs)
        if result is not None:
            return ConstantInt(lhs.type, result)
    elif isinstance(lhs, ConstantFP) and isinstance(rhs, ConstantFP):
        result = _fold_fp(opcode, lhs.value, rhs.value)
        if result is not None:
            return ConstantFP(lhs.type, result)
    return ConstantExpr(opcode, lhs.type, (lhs, rhs))


def fold_cast(opcode: str, value: Constant, dest_type: IRType) -> Constant:
    """Fold a cast of a constant, or build a ConstantExpr."""
    if opcode not in CAST_OPS:
        raise ValueError(f"unknown cast opcode {opcode!r}")
    if isinstance(value, ConstantInt):
        if opcode in ("trunc", "zext") and isinstance(dest_type, IntType):
            return ConstantInt(dest_type, value.unsigned)
        if opcode == "sext" and isinstance(dest_type, IntType):
            return ConstantInt(dest_type, value.signed)
        if opcode == "sitofp" and isinstance(dest_type, FloatType):
            return ConstantFP(dest_type, value.signed)
        if opcode == "uitofp" and isinstance(dest_type, FloatType):
            return ConstantFP(dest_type, value.unsigned)
    elif isinstance(value, ConstantFP):
        if opcode == "fptosi" and isinstance(dest_type, IntType) and math.isfinite(value.value):
            return ConstantInt(dest_type, math.trunc(value.value))
        if opcode in ("fpext", "fptrunc") and isinstance(dest_type, FloatType):
            return ConstantFP(dest_type, value.value)
    return ConstantExpr(opcode, dest_type, (value,))


class Instruction(Value):
    """One instruction; appended to block when one is given."""

    def __init__(self, opcode: str, type: IRType, operands: Iterable[Value] = (), name: str = "", *,
                 block: BasicBlock | None = None, predicate: str | None = None,
                 volatile: bool = False, allocated_type: IRType | None = None,
                 source_type: IRType | None = None, callee: Function | None = None) -> None:
        if opcode not in BINARY_OPS | CAST_OPS | _OTHER_OPS:
            raise ValueError(f"unknown opcode {opcode!r}")
        super().__init__(type, name)
        self.opcode = opcode
        self.operands = tuple(operands)
        self.predicate = predicate
        self.volatile = volatile
        self.allocated_type = allocated_type
        self.source_type = source_type
        self.callee = callee
        self.block: BasicBlock | None = None
        if block is not None:
            block.append(self)

    @property
    def is_terminator(self) -> bool:
        return self.opcode in ("br", "ret")

    def render(self) -> str:
        op = self.opcode
        ops = self.operands
        vol = "volatile " if self.volatile else ""
        if op == "store":
            return f"store {vol}{ops[0].typed_ref()}, {ops[1].typed_ref()}"
        if op == "br":
            if len(ops) == 1:
                return f"br {ops[0].typed_ref()}"
            return f"br {ops[0].typed_ref()}, {ops[1].typed_ref()}, {ops[2].typed_ref()}"
        if op == "ret":
            return f"ret {ops[0].typed_ref()}" if ops else "ret void"
        if op == "alloca":
            body = f"alloca {self.allocated_type}"
        elif op == "load":
            body = f"load {vol}{self.type}, {ops[0].typed_ref()}"
        elif op in BINARY_OPS:
            body = f"{op} {ops[0].type} {ops[0].ref()}, {ops[1].ref()}"
        elif op in ("icmp", "fcmp"):
            body = f"{op} {self.predicate} {ops[0].type} {ops[0].ref()}, {ops[1].ref()}"
        elif op in CAST_OPS:
            body = f"{op} {ops[0].typed_ref()} to {self.type}"
        elif op == "getelementptr":
            body = f"getelementptr {self.source_type}, " + ", ".join(o.typed_ref() for o in ops)
        else:
            args = ", ".join(o.typed_ref() for o in ops)
            body = f"call {self.type} {self.callee.ref()}({args})"
            if self.type.is_void():
                return body
        return f"{self.ref()} = {body}"


class Argument(Value):
    def __init__(self, type: IRType, name: str = "", index: int = 0) -> None:
        super().__init__(type, name)
        self.index = index


class BasicBlock(Value):
    def __init__(self, name: str = "", function: Function | None = None) -> None:
        super().__init__(VOID, name)
        self.instructions: list[Instruction] = []
        self.parent: Function | None = None
        if function is not None:
            function.add_block(self)

    def append(self, instruction: Instruction) -> Instruction:
        instruction.block = self
        self.instructions.append(instruction)
        return instruction

    def terminator(self) -> Instruction | None:
        if self.instructions and self.instructions[-1].is_terminator:
            return self.instructions[-1]
        return None

    def typed_ref(self) -> str:
        return f"label {self.ref()}"

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)


class _Namer:
    def __init__(self) -> None:
        self.used: set[str] = set()
        self.counter = 0

    def take(self, name: str) -> str:
        if not name:
            while str(self.counter) in self.used:
                self.counter += 1
            candidate = str(self.counter)
            self.counter += 1
        else:
            candidate = name
            suffix = 0
            while candidate in self.used:
                candidate = f"{name}{suffix}"
                suffix += 1
        self.used.add(candidate)
        return candidate


class Function(Constant):
    def __init__(self, name: str, ftype: FunctionType, *, calling_conv: str = "ccc") -> None:
        super().__init__(PTR, name)
        self.ftype = ftype
        self.args = [Argument(t, "", i) for i, t in enumerate(ftype.params)]
        self.blocks: list[BasicBlock] = []
        self.calling_conv = calling_conv
        self.attributes: set[str] = set()
        self.dso_local = False
        self.module: Module | None = None

    def add_block(self, block: BasicBlock) -> BasicBlock:
        block.parent = self
        self.blocks.append(block)
        return block

    def return_type(self) -> IRType:
        return self.ftype.return_type

    @property
    def is_declaration(self) -> bool:
        return not self.blocks

    def ref(self) -> str:
        return f"@{self.name}"

    def render(self) -> str:
        rt = self.ftype.return_type
        if self.is_declaration:
            types = [str(t) for t in self.ftype.params]
            if self.ftype.var_arg:
                types.append("...")
            return f"declare {rt} @{self.name}({', '.join(types)})"
        namer = _Namer()
        for arg in self.args:
            arg._slot = namer.take(arg.name)
        params = ", ".join(a.typed_ref() for a in self.args)
        lines = []
        for block in self.blocks:
            block._slot = namer.take(block.name)
            lines.append(f"{block._slot}:")
            for inst in block:
                if not inst.type.is_void():
                    inst._slot = namer.take(inst.name)
                lines.append("  " + inst.render())
        dso = " dso_local" if self.dso_local else ""
        attrs = "".join(f" {a}" for a in sorted(self.attributes))
        return "\n".join([f"define{dso} {rt} @{self.name}({params}){attrs} {{", *lines, "}"])


class GlobalVariable(Constant):
    def __init__(self, value_type: IRType, name: str, initializer: Constant | None = None,
                 linkage: str = "external", constant: bool = False) -> None:
        super().__init__(PTR, name)
        self.value_type = value_type
        self.initializer = initializer
        self.linkage = linkage
        self.constant = constant

    def ref(self) -> str:
        return f"@{self.name}"

    def render(self) -> str:
        linkage = "" if self.linkage == "external" and self.initializer else f"{self.linkage} "
        kind = "constant" if self.constant else "global"
        init = f" {self.initializer.ref()}" if self.initializer is not None else ""
        return f"@{self.name} = {linkage}{kind} {self.value_type}{init}"


class Module:
    def __init__(self, name: str = "") -> None:
        self.name = name
        self.functions: dict[str, Function] = {}
        self.globals: dict[str, GlobalVariable] = {}
        self.triple = ""
        self.data_layout = ""

    def _check_free(self, name: str) -> None:
        if name in self.functions or name in self.globals:
            raise ValueError(f"symbol {name} already defined in module")

    def add_function(self, function: Function) -> Function:
        self._check_free(function.name)
        self.functions[function.name] = function
        function.module = self
        return function

    def add_global(self, variable: GlobalVariable) -> GlobalVariable:
        self._check_free(variable.name)
        self.globals[variable.name] = variable
        return variable

    def get_function(self, name: str) -> Function | None:
        return self.functions.get(name)

    def render(self) -> str:
        lines = [f"; ModuleID = '{self.name}'", f'source_filename = "{self.name}"']
        if self.data_layout:
            lines.append(f'target datalayout = "{self.data_layout}"')
        if self.triple:
            lines.append(f'target triple = "{self.triple}"')
        if self.globals:
            lines.append("")
            lines.extend(g.render() for g in self.globals.values())
        for function in self.functions.values():
            lines.append("")
            lines.append(function.render())
        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class TargetInfo:
    name: str
    triple: str
    cpu: str
    features: str


def _default_triple() -> str:
    machine = platform.machine().lower() or "unknown"
    system = platform.system().lower() or "unknown"
    return f"{machine}-unknown-{system}"


SUPPORTED_TARGETS = (
    TargetInfo("", "", "", ""),
    TargetInfo("avr328p", "avr-atmel-none", "atmega328p", "+avr5"),
    TargetInfo("stm32f1", "thumbv7m-none-eabi", "cortex-m3", ""),
    TargetInfo("esp32", "xtensa", "", ""),
)


def find_target(name: str) -> TargetInfo:
    """The named target, or the host target when the name is unknown."""
    default = TargetInfo("", _default_triple(), "", "")
    for target in SUPPORTED_TARGETS[1:]:
        if target.name == name:
            return target
    return default


def emit_ir(module: Module, target_name: str = "", stream: TextIO | None = None) -> TargetInfo:
    """Set the module's target and write its textual IR to stream."""
    target = find_target(target_name)
    module.triple = target.triple
    (stream if stream is not None else sys.stdout).write(module.render())
    return target