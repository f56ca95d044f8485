"""
Evelin - A Small Compiled Language Targeting QBE
================================================

This package implements the compiler for Evelin, a small statically typed
language. Source files (``.eve``) are lexed, parsed and lowered to QBE IR;
the external ``qbe`` backend turns that IR into assembly, and the host C
compiler links the result into a native executable.

Main Components
---------------
- **lexer**: Single-pass scanner producing line-stamped tokens
- **parser**: Recursive descent parser with panic-mode error recovery
- **emitter**: Lowers declarations to QBE IR (SSA temporaries, basic blocks)
- **backend**: Runs ``qbe`` and the C toolchain
- **compiler**: Per-file pipeline and multi-file build driver

Quick Start
-----------
Compile source to IR:
    >>> from evelin import compile_source
    >>> print(compile_source('fn main() -> i64 { return 42; }').ir)

Build an executable:
    >>> from evelin import EvelinCompiler, CompilerOptions
    >>> EvelinCompiler(CompilerOptions(output="hello")).build(["hello.eve"])

Or use the command-line tool:
    $ evec hello.eve -o hello
"""

__version__ = "0.1.0"

# =============================================================================
# Public API Exports
# =============================================================================

from evelin.compiler import (
    EvelinCompiler,
    CompilerOptions,
    CompilerResult,
    BuildResult,
    compile_source,
)
from evelin.errors import (
    EvelinError,
    SourceLocation,
    LexError,
    ParseError,
    ParseFailure,
    EmitError,
    BackendError,
)
from evelin.lexer import tokenize
from evelin.parser import parse
from evelin.emitter import emit

__all__ = [
    "__version__",
    # Driver
    "EvelinCompiler",
    "CompilerOptions",
    "CompilerResult",
    "BuildResult",
    "compile_source",
    # Pipeline stages
    "tokenize",
    "parse",
    "emit",
    # Exception hierarchy
    "EvelinError",
    "SourceLocation",
    "LexError",
    "ParseError",
    "ParseFailure",
    "EmitError",
    "BackendError",
]
