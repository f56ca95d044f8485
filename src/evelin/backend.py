"""
Backend Adapter
===============

This module drives the two external tools that turn IR into a native
executable:

1. ``qbe`` reads IR text on stdin and writes assembly on stdout.
2. The host C compiler (``cc`` by default) assembles the generated ``.s``
   files and links them against libc and any extra libraries.

Both tools are run with ``subprocess.run``; a non-zero exit status or any
diagnostic output on stderr is turned into a BackendError carrying the
tool's output verbatim.

Example Usage
-------------
>>> backend = QbeBackend()
>>> asm = backend.generate(ir_text)
>>> CBuild(cc="cc").files(["main.s"]).set_outfile("main").compile()
"""

import logging
import subprocess
from pathlib import Path
from typing import Optional, Sequence

from evelin.errors import BackendError

logger = logging.getLogger(__name__)


def _run(tool: str, cmd: list[str], stdin: Optional[str] = None) -> subprocess.CompletedProcess:
    """
    Run an external tool and fail on error status or stderr output.

    Raises:
        BackendError: If the tool is missing, exits non-zero or reports
                      diagnostics on stderr
    """
    logger.debug(f"running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            input=stdin,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError:
        raise BackendError(tool, f"'{cmd[0]}' not found; is it installed and on PATH?") from None
    except OSError as e:
        raise BackendError(tool, str(e)) from e

    if result.returncode != 0 or result.stderr.strip():
        raise BackendError(tool, result.stderr or result.stdout, result.returncode)

    return result


# =============================================================================
# QBE
# =============================================================================

class QbeBackend:
    """
    Lowers IR text to assembly with the external ``qbe`` executable.

    Attributes:
        qbe_path: Executable name or path
        target: Optional target passed as ``-t`` (e.g. "amd64_sysv")
    """

    def __init__(self, qbe_path: str = "qbe", target: Optional[str] = None):
        self.qbe_path = qbe_path
        self.target = target

    def command(self) -> list[str]:
        cmd = [self.qbe_path]
        if self.target:
            cmd.extend(["-t", self.target])
        return cmd

    def generate(self, ir: str) -> str:
        """
        Compile IR text to assembly text.

        Raises:
            BackendError: If qbe rejects the IR
        """
        result = _run("qbe", self.command(), stdin=ir)
        logger.debug(f"qbe produced {len(result.stdout)} bytes of assembly")
        return result.stdout


# =============================================================================
# C Toolchain
# =============================================================================

class CBuild:
    """
    Builder for the final C compiler invocation.

    Usage:
        CBuild(cc="cc").files(paths).set_outfile("a.out").set_opt(3).compile()

    Produces: ``cc -O<opt> -o <outfile> <files...> -L<path>... -l<name>...``
    """

    def __init__(self, cc: str = "cc"):
        self.cc = cc
        self._files: list[str] = []
        self._outfile = "a.out"
        self._lib_paths: list[str] = []
        self._lib_names: list[str] = []
        self._opt: Optional[int] = None

    def files(self, files: Sequence[str | Path]) -> "CBuild":
        self._files.extend(str(f) for f in files)
        return self

    def set_outfile(self, outfile: str | Path) -> "CBuild":
        self._outfile = str(outfile)
        return self

    def set_lib_paths(self, paths: Sequence[str | Path]) -> "CBuild":
        self._lib_paths = [str(p) for p in paths]
        return self

    def set_lib_names(self, names: Sequence[str]) -> "CBuild":
        self._lib_names = list(names)
        return self

    def set_opt(self, level: int) -> "CBuild":
        self._opt = level
        return self

    def command(self) -> list[str]:
        cmd = [self.cc]
        if self._opt is not None:
            cmd.append(f"-O{self._opt}")
        cmd.extend(["-o", self._outfile])
        cmd.extend(self._files)
        cmd.extend(f"-L{path}" for path in self._lib_paths)
        cmd.extend(f"-l{name}" for name in self._lib_names)
        return cmd

    def compile(self) -> Path:
        """
        Assemble and link.

        Returns:
            Path of the produced executable

        Raises:
            BackendError: If the C compiler fails
        """
        if not self._files:
            raise ValueError("no input files to link")
        _run(self.cc, self.command())
        return Path(self._outfile)
