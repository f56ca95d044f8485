"""
Evelin Compiler Main Module
===========================

This module provides the main compiler interface for Evelin. It
orchestrates the complete compilation process:

    Source → Lex → Parse → Emit (QBE IR) → qbe (assembly) → cc (executable)

Usage
-----
Command line:
    $ evec hello.eve -o hello

Programmatic:
    >>> from evelin.compiler import compile_source
    >>> result = compile_source('fn main() -> i64 { return 42; }')
    >>> print(result.ir)

Compilation Pipeline
--------------------
1. **Lexical Analysis**: Convert source to tokens (first error is fatal)
2. **Parsing**: Build the declaration lists; all syntax errors of a file
   are collected and reported together as one ParseFailure
3. **Emission**: Lower to QBE IR (first error is fatal)
4. **Backend**: ``qbe`` turns IR into assembly, one ``.s`` file per input
5. **Link**: the C compiler assembles and links every ``.s`` file

Files are processed in the order given and the build stops at the first
file that fails. Intermediate assembly lives in a temporary directory
that is removed whatever the outcome.
"""

import logging
import os
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from evelin.ast import StructDecl, FnDecl
from evelin.backend import QbeBackend, CBuild
from evelin.emitter import Emitter
from evelin.errors import BackendError
from evelin.lexer import Lexer, Token
from evelin.parser import Parser

logger = logging.getLogger(__name__)

SOURCE_EXTENSION = ".eve"


@dataclass
class CompilerOptions:
    """
    Compiler configuration options.

    Attributes:
        cc: C compiler used to assemble and link (env ``CC``)
        qbe: qbe executable (env ``EVE_QBE``)
        output: Path of the executable to produce
        lib_paths: Extra library search directories (``-L``)
        lib_names: Extra libraries to link (``-l``)
        opt_level: Optimization level passed to the C compiler
        target: qbe target (``-t``); None uses qbe's default
    """
    cc: str = field(default_factory=lambda: os.environ.get("CC", "cc"))
    qbe: str = field(default_factory=lambda: os.environ.get("EVE_QBE", "qbe"))
    output: str = "a.out"
    lib_paths: list[str] = field(default_factory=list)
    lib_names: list[str] = field(default_factory=list)
    opt_level: int = 3
    target: Optional[str] = None


@dataclass
class CompilerResult:
    """
    Result of compiling one source to IR.

    Attributes:
        filename: Source filename
        success: True if compilation succeeded
        ir: Emitted QBE IR text
        tokens: Tokens produced by the lexer
        struct_decls: Parsed struct declarations
        fn_decls: Parsed function declarations
    """
    filename: str = ""
    success: bool = False
    ir: str = ""
    tokens: list[Token] = field(default_factory=list)
    struct_decls: list[StructDecl] = field(default_factory=list)
    fn_decls: list[FnDecl] = field(default_factory=list)


@dataclass
class BuildResult:
    """
    Result of a full build.

    Attributes:
        output: Path of the produced executable
        elapsed: Wall-clock seconds for the whole build
        results: Per-file compilation results, in input order
    """
    output: Path
    elapsed: float
    results: list[CompilerResult] = field(default_factory=list)


class EvelinCompiler:
    """
    Evelin compiler driver.

    Example:
        compiler = EvelinCompiler(CompilerOptions(output="hello"))
        build = compiler.build(["hello.eve"])
        print(f"{build.output} in {build.elapsed:.2f}s")

    Attributes:
        options: Compiler configuration options
    """

    def __init__(self, options: Optional[CompilerOptions] = None):
        self.options = options or CompilerOptions()

    def compile_source(self, source: str, filename: str = "<input>") -> CompilerResult:
        """
        Compile Evelin source code to QBE IR.

        Raises:
            LexError: On the first invalid character
            ParseFailure: If any syntax errors were found
            EmitError: On the first semantic error
        """
        result = CompilerResult(filename=filename)

        result.tokens = self._lex(source, filename)
        logger.debug(f"{filename}: {len(result.tokens)} tokens")

        parser = Parser(result.tokens, filename, source.splitlines())
        parsed = parser.parse()
        parser.errors.raise_if_errors(filename)
        result.struct_decls = parsed.struct_decls
        result.fn_decls = parsed.fn_decls
        logger.debug(f"{filename}: structs {[d.name for d in parsed.struct_decls]}")
        logger.debug(f"{filename}: functions {[d.name for d in parsed.fn_decls]}")

        result.ir = Emitter(parsed.struct_decls, parsed.fn_decls, filename).emit()
        result.success = True
        return result

    def compile_file(self, filepath: str | Path) -> CompilerResult:
        """
        Compile an Evelin source file to QBE IR.

        Raises:
            FileNotFoundError: If the source file does not exist
            EvelinError: If compilation fails
        """
        path = Path(filepath)
        if not path.is_file():
            raise FileNotFoundError(f"Source file not found: {filepath}")

        return self.compile_source(path.read_text(encoding="utf-8"), str(path))

    def generate_assembly(self, result: CompilerResult) -> str:
        """Run qbe on a compiled result's IR."""
        backend = QbeBackend(self.options.qbe, self.options.target)
        try:
            return backend.generate(result.ir)
        except BackendError as e:
            raise BackendError(e.tool, e.output, e.returncode, result.filename) from e

    def build(self, paths: Sequence[str | Path]) -> BuildResult:
        """
        Compile every file and link them into one executable.

        Stops at the first failing file. Assembly files are written to a
        temporary directory (``<index>_<stem>.s``) that is removed on
        every exit path.

        Raises:
            EvelinError: If any file fails to compile, or qbe/cc fail
        """
        if not paths:
            raise ValueError("no input files")

        start = time.perf_counter()
        results: list[CompilerResult] = []

        with tempfile.TemporaryDirectory(prefix="evelin_") as temp_dir:
            asm_files: list[Path] = []
            for index, path in enumerate(paths):
                result = self.compile_file(path)
                results.append(result)

                asm = self.generate_assembly(result)
                asm_path = Path(temp_dir) / f"{index}_{Path(path).stem}.s"
                asm_path.write_text(asm, encoding="utf-8")
                asm_files.append(asm_path)
                logger.debug(f"wrote {asm_path}")

            output = (
                CBuild(self.options.cc)
                .files(asm_files)
                .set_outfile(self.options.output)
                .set_lib_paths(self.options.lib_paths)
                .set_lib_names(self.options.lib_names)
                .set_opt(self.options.opt_level)
                .compile()
            )

        elapsed = time.perf_counter() - start
        logger.info(f"built {output} from {len(paths)} file(s) in {elapsed:.3f}s")
        return BuildResult(output=output, elapsed=elapsed, results=results)

    def _lex(self, source: str, filename: str) -> list[Token]:
        return list(Lexer(source, filename).tokenize())


# =============================================================================
# Convenience Functions
# =============================================================================

def compile_source(source: str, filename: str = "<input>") -> CompilerResult:
    """Compile Evelin source to IR with default options."""
    return EvelinCompiler().compile_source(source, filename)
