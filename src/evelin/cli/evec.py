"""
evec - Evelin Compiler Command-Line Interface
=============================================

This module implements the command-line driver for the Evelin compiler.

Usage Examples
--------------
Build an executable (a.out):
    $ evec hello.eve

Several files, named output:
    $ evec main.eve util.eve -o app

Link extra libraries:
    $ evec prog.eve -L /opt/lib -l m

Inspect intermediate stages:
    $ evec --ast hello.eve
    $ evec --emit-ir hello.eve

Verbose logging:
    $ evec -d debug hello.eve
    $ EVE_LOG_LEVEL=trace evec hello.eve
"""

from pathlib import Path
from typing import Optional

import click

from evelin import __version__
from evelin.ast import ASTPrinter
from evelin.cli.errors import handle_cli_exception
from evelin.compiler import EvelinCompiler, CompilerOptions, SOURCE_EXTENSION
from evelin.lexer import tokenize
from evelin.logs import VERBOSITY_LEVELS, setup_logging
from evelin.parser import Parser


def _validate_sources(ctx: click.Context, param: click.Parameter, value: tuple[Path, ...]) -> tuple[Path, ...]:
    """Every input must be an existing regular file with the source extension."""
    if not value:
        raise click.BadParameter("at least one source file is required", ctx=ctx, param=param)
    for path in value:
        if path.suffix != SOURCE_EXTENSION:
            raise click.BadParameter(
                f"Incorrect file type for '{path}'. Expected a {SOURCE_EXTENSION} file.",
                ctx=ctx,
                param=param,
            )
    return value


def _print_ast(path: Path) -> None:
    source = path.read_text(encoding="utf-8")
    parser = Parser(tokenize(source, str(path)), str(path), source.splitlines())
    result = parser.parse()
    parser.errors.raise_if_errors(str(path))
    click.echo(ASTPrinter().print(result.struct_decls + result.fn_decls))


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument(
    "files",
    nargs=-1,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    callback=_validate_sources,
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default="a.out",
    show_default=True,
    help="Output executable",
)
@click.option(
    "--cc",
    envvar="CC",
    default="cc",
    show_default=True,
    help="C compiler used to assemble and link",
)
@click.option(
    "--qbe",
    envvar="EVE_QBE",
    default="qbe",
    show_default=True,
    help="qbe backend executable",
)
@click.option(
    "-t", "--target",
    default=None,
    help="qbe target (e.g. amd64_sysv, arm64, rv64)",
)
@click.option(
    "-L", "--lib-path",
    multiple=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Add library search path (can be repeated)",
)
@click.option(
    "-l", "--lib-name",
    multiple=True,
    help="Link against library NAME (can be repeated)",
)
@click.option(
    "-d", "--debug",
    type=click.Choice(list(VERBOSITY_LEVELS), case_sensitive=False),
    envvar="EVE_LOG_LEVEL",
    default="error",
    show_default=True,
    help="Log level",
)
@click.option(
    "--emit-ir",
    is_flag=True,
    help="Print the QBE IR of each file and exit",
)
@click.option(
    "--ast",
    is_flag=True,
    help="Print the AST of each file and exit",
)
@click.version_option(version=__version__, prog_name="evec")
def main(
    files: tuple[Path, ...],
    output: Path,
    cc: str,
    qbe: str,
    target: Optional[str],
    lib_path: tuple[Path, ...],
    lib_name: tuple[str, ...],
    debug: str,
    emit_ir: bool,
    ast: bool,
) -> None:
    """
    The Evelin Programming Language compiler.

    FILES are the Evelin source files (.eve) to compile and link into
    one executable.

    \b
    Examples:
        evec hello.eve                   # Outputs a.out
        evec main.eve util.eve -o app    # Several files
        evec prog.eve -l m               # Link libm
        evec --emit-ir hello.eve         # Show the IR
    """
    setup_logging(debug)

    options = CompilerOptions(
        cc=cc,
        qbe=qbe,
        output=str(output),
        lib_paths=[str(p) for p in lib_path],
        lib_names=list(lib_name),
        target=target,
    )
    compiler = EvelinCompiler(options)

    try:
        if ast:
            for path in files:
                _print_ast(path)
            return

        if emit_ir:
            for path in files:
                click.echo(compiler.compile_file(path).ir, nl=False)
            return

        build = compiler.build(files)
        click.echo(f"{click.style('Compiled', fg='green')} '{build.output}' in {build.elapsed:.2f}s")

    except Exception as e:
        handle_cli_exception(e, verbose=debug.lower() != "error")


if __name__ == "__main__":
    main()
