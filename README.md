# robcmp

`robcmp` generates code for programs written in a small language for robots
and microcontroller boards. A program is a tree of nodes: declarations of
scalars, arrays, matrices and memory-mapped pointers, arithmetic and
comparison expressions, `If`/`While`/`Loop` blocks, functions, and board
operations such as reading and writing ports, delays and printing. The tree is
lowered to an in-memory intermediate representation (`robcmp.ir`) that renders
as LLVM-style textual IR.

## What it does

- **Typed expressions.** Integer literals of 1, 8, 16, 32 and 64 bits, and
  `Float`, `Double` and `Float128` literals. Mixed-type arithmetic and
  comparisons are coerced: integers widen to the larger operand, integers mix
  with floating point by conversion, and narrowing conversions produce
  warnings.
- **Constant folding.** Binary operations and casts on constants fold at
  generation time (`fold_binary`, `fold_cast`), so global arrays and constants
  can be built from constant expressions.
- **Scopes.** Symbols are looked up in the current allocation scope, then the
  current block, and finally the global scope (`SymbolTable.lookup`).
- **Control flow.** `Stmts`, `If`, `While`, `Loop` and `Return` create basic
  blocks and close each one with a branch unless it already ends in a
  terminator.
- **Functions.** `FunctionDecl`, `FunctionDeclExtern`, `FunctionCall`, and
  `AttachInterrupt` to hand a function to the `attachInterrupt` runtime call.
- **Board runtime.** `Delay`, `InPort`, `OutPort` and `Print` call the runtime
  functions `delay`, `analogRead`, `analogWrite` and `print`, declaring them
  in the module on first use.
- **Diagnostics.** Semantic errors and warnings carry file, line and column;
  they are collected on the context and echoed to a stream (standard error by
  default).
- **AST dumps.** `PrintAstVisitor` writes a tree as a Graphviz `graph`.
- **Targets.** `emit_ir` tags the module with the triple of `avr328p`,
  `stm32f1` or `esp32`; any other name selects a triple for the host machine.

## Usage

Build a tree from the node classes, wrap it in a `Program` and generate it.
`Program.build` returns a `CodegenContext` holding the module and the
diagnostics:

```python
import sys

from robcmp.arduino import Print
from robcmp.context import LanguageDataType
from robcmp.control import Stmts
from robcmp.expressions import Load
from robcmp.functions import FunctionDecl, FunctionParams
from robcmp.ir import emit_ir
from robcmp.node import Int16
from robcmp.program import Program
from robcmp.statements import Scalar

body = Stmts(Scalar("counter", Int16(42)), Print(Load("counter")))
main = FunctionDecl(LanguageDataType.INT16, "main", FunctionParams(), body)

ctx = Program(Stmts(main)).build("example.rob")
if ctx.error_count == 0:
    emit_ir(ctx.module, "avr328p", sys.stdout)
```

Statements generated directly at the top level work in the global scope:
scalars and arrays there must be built from constants, and reading a
non-constant global to define another one is reported as an error.

String literals taken from source text can be decoded with
`robcmp.unescape.unescape`, which understands `\a \b \f \n \r \t \v`, octal
escapes of up to three digits, and keeps any other escaped character as it is.

To look at the structure of a tree, create a `PrintAstVisitor` from
`robcmp.visitor` with a text stream and call `program.accept(visitor)`; the
output is a Graphviz description ready for `dot`.

## What it does not do

- There is no lexer or parser: programs are built as node trees in Python.
- There is no command-line program.
- Output is textual IR only. Nothing is optimized, and no object code or
  assembly is produced; `emit_ir` only sets the target triple and writes the
  rendered module.

## Module overview

| Module | Contents |
| --- | --- |
| `robcmp.ir` | IR types, values, constants, blocks, functions, modules, target selection |
| `robcmp.diagnostics` | source locations, errors and warnings |
| `robcmp.symbols` | symbols, qualifiers and the scoped symbol table |
| `robcmp.context` | language data types and the code generation context |
| `robcmp.coercion` | implicit conversions between numeric types |
| `robcmp.node` | the base node and literal nodes |
| `robcmp.expressions` | binary, comparison, flip and cast operations, loads |
| `robcmp.statements` | scalars, arrays, matrices, element updates, pointers |
| `robcmp.control` | statement lists, conditionals, loops and returns |
| `robcmp.functions` | function declarations, calls and interrupts |
| `robcmp.arduino` | ports, delays and printing |
| `robcmp.program` | the program root and runtime declarations |
| `robcmp.visitor` | visitors and the Graphviz AST printer |
| `robcmp.unescape` | decoding of escaped string literals |