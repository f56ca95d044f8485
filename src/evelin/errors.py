"""
Evelin Compiler Error Hierarchy
===============================

This module defines the exception hierarchy for the Evelin compiler.
All exceptions inherit from EvelinError, allowing callers to catch all
compiler errors with a single except clause if desired.

Exception Hierarchy
-------------------
EvelinError (base)
├── LexError - scanner failures (fatal, before parsing)
│   ├── InvalidCharacterError - unrecognized character
│   ├── UnterminatedStringError - missing closing quote
│   └── IntegerOverflowError - integer literal outside the i64 range
├── ParseError - grammar violations (recovered, counted)
│   ├── UnexpectedTokenError - token does not start the expected construct
│   └── MissingTokenError - a required token is absent
├── ParseFailure - aggregate of all parse errors in one file
├── EmitError - lowering failures (fatal, first one wins)
│   ├── UnresolvedTypeError - unknown struct name or recursive layout
│   ├── UndeclaredIdentifierError - reference to an unbound name
│   ├── DuplicateDeclarationError - name bound twice in one scope
│   ├── InvalidBreakError - break outside any loop
│   ├── MissingReturnError - non-void function falls through
│   ├── VoidUsageError - void used outside a return-type position
│   ├── EveTypeError - operand, argument or return type mismatch
│   └── ArgumentCountError - call arity differs from declaration
└── BackendError - qbe or C toolchain failure

Every error knows the compilation phase it belongs to (``phase``), so the
driver can report "where" as well as "what".

Error messages follow this format:
    filename:line:column: error: description
        source_line_text
        ^ (pointer to error location)
    hint: suggestion for fixing (when available)
"""

from dataclasses import dataclass
from typing import List, Optional


# =============================================================================
# Source Location Tracking
# =============================================================================

@dataclass(frozen=True)
class SourceLocation:
    """
    Represents a location in source code for error reporting.

    Attributes:
        filename: Name of the source file (or "<input>" for string input)
        line: Line number (1-indexed)
        column: Column number (1-indexed, 0 when unknown)
    """
    filename: str
    line: int
    column: int = 0

    def __str__(self) -> str:
        """Format as 'filename:line:column' for error messages."""
        if self.column > 0:
            return f"{self.filename}:{self.line}:{self.column}"
        return f"{self.filename}:{self.line}"


# =============================================================================
# Base Exception Class
# =============================================================================

class EvelinError(Exception):
    """
    Base exception for all Evelin compiler errors.

    This class provides common functionality for error messages including
    source location tracking, source line context, and helpful hints.

    Attributes:
        message: The error description
        location: Where in the source the error occurred
        hint: A suggestion for fixing the error
        source_line: The actual source text at the error location
    """

    phase = "compile"

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
        source_line: Optional[str] = None,
    ):
        self.message = message
        self.location = location
        self.hint = hint
        self.source_line = source_line
        super().__init__(self._format_message())

    @property
    def line(self) -> Optional[int]:
        """Source line of the error, if known."""
        return self.location.line if self.location else None

    def _format_message(self) -> str:
        """
        Format the error message with location, source context, and hint.

        Example output:
            main.eve:5:12: error: undeclared identifier 'conut'
                print conut;
                      ^
            hint: did you mean 'count'?
        """
        parts = []

        if self.location:
            parts.append(f"{self.location}: error: {self.message}")
        else:
            parts.append(f"error: {self.message}")

        if self.source_line is not None and self.location is not None:
            parts.append(f"    {self.source_line}")
            if self.location.column > 0:
                padding = " " * (4 + self.location.column - 1)
                parts.append(f"{padding}^")

        if self.hint:
            parts.append(f"hint: {self.hint}")

        return "\n".join(parts)


# =============================================================================
# Lexer Errors
# =============================================================================

class LexError(EvelinError):
    """
    Scanner failure.

    Lexing errors are fatal: compilation of the file stops before the
    parser ever runs.
    """
    phase = "lex"


class InvalidCharacterError(LexError):
    """A character that does not start any token."""

    def __init__(
        self,
        char: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.char = char
        super().__init__(
            f"unrecognized character '{char}' (0x{ord(char):02X})",
            location=location,
            source_line=source_line,
        )


class UnterminatedStringError(LexError):
    """A string literal that runs to end of input."""

    def __init__(
        self,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        super().__init__(
            "unterminated string literal",
            location=location,
            hint="add closing '\"' to complete the string",
            source_line=source_line,
        )


class IntegerOverflowError(LexError):
    """An integer literal that does not fit in an i64."""

    def __init__(
        self,
        literal: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.literal = literal
        super().__init__(
            f"integer literal '{literal}' is out of range for i64",
            location=location,
            hint="the largest i64 value is 9223372036854775807",
            source_line=source_line,
        )


# =============================================================================
# Parser Errors
# =============================================================================

class ParseError(EvelinError):
    """
    Grammar violation.

    Parse errors are recovered from: the parser records them and
    resynchronizes at the next statement or top-level declaration.
    """
    phase = "parse"


class UnexpectedTokenError(ParseError):
    """
    Unexpected token during parsing.

    Raised when the parser encounters a token that doesn't start the
    construct it is looking for.
    """

    def __init__(
        self,
        found: str,
        expected: Optional[str] = None,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        self.found = found
        self.expected = expected

        hint = None
        if expected:
            hint = f"expected {expected}"

        super().__init__(
            f"unexpected token '{found}'",
            location=location,
            hint=hint,
            source_line=source_line,
        )


class MissingTokenError(ParseError):
    """
    Required token is missing.

    Raised when a required token (like ';' or ')') is not found
    where expected.
    """

    def __init__(
        self,
        message: str,
        location: Optional[SourceLocation] = None,
        source_line: Optional[str] = None,
    ):
        super().__init__(message, location=location, source_line=source_line)


class ParseFailure(EvelinError):
    """
    Aggregate of every parse error found in one file.

    The message is already a formatted report from ErrorCollector and
    is passed through as-is.
    """
    phase = "parse"

    def __init__(self, error_count: int, report: str, filename: Optional[str] = None):
        self.error_count = error_count
        location = SourceLocation(filename, 0) if filename else None
        super().__init__(report, location=location)

    def _format_message(self) -> str:
        return self.message


# =============================================================================
# Emitter Errors
# =============================================================================

class EmitError(EvelinError):
    """
    Lowering failure.

    Emit errors are fatal: the first one aborts emission for the file and
    no partial IR is returned.
    """
    phase = "emit"


class UnresolvedTypeError(EmitError):
    """A struct name that is not declared, or a struct that contains itself."""

    def __init__(
        self,
        type_name: str,
        location: Optional[SourceLocation] = None,
        hint: Optional[str] = None,
    ):
        self.type_name = type_name
        super().__init__(
            f"unresolved type '{type_name}'",
            location=location,
            hint=hint,
        )


class UndeclaredIdentifierError(EmitError):
    """
    Reference to a name that is not bound in any enclosing scope.

    Similar names from the active scopes are offered as a hint.
    """

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        similar_identifiers: Optional[List[str]] = None,
    ):
        self.identifier = identifier
        self.similar_identifiers = similar_identifiers or []

        hint = None
        if self.similar_identifiers:
            suggestions = ", ".join(f"'{s}'" for s in self.similar_identifiers[:3])
            hint = f"did you mean {suggestions}?"

        super().__init__(
            f"undeclared identifier '{identifier}'",
            location=location,
            hint=hint,
        )


class DuplicateDeclarationError(EmitError):
    """Identifier declared more than once in the same scope."""

    def __init__(
        self,
        identifier: str,
        location: Optional[SourceLocation] = None,
        what: str = "name",
    ):
        self.identifier = identifier
        super().__init__(
            f"redeclaration of {what} '{identifier}'",
            location=location,
        )


class InvalidBreakError(EmitError):
    """'break' used outside of any loop."""

    def __init__(self, location: Optional[SourceLocation] = None):
        super().__init__(
            "'break' statement not within a loop",
            location=location,
        )


class MissingReturnError(EmitError):
    """A non-void function whose body can fall off the end."""

    def __init__(
        self,
        function_name: str,
        return_type: str,
        location: Optional[SourceLocation] = None,
    ):
        self.function_name = function_name
        super().__init__(
            f"function '{function_name}' must return a value of type '{return_type}'",
            location=location,
            hint="add a 'return' statement at the end of every path",
        )


class VoidUsageError(EmitError):
    """'void' used as a value or storage type."""

    def __init__(self, context: str, location: Optional[SourceLocation] = None):
        self.context = context
        super().__init__(
            f"'void' is not allowed as {context}",
            location=location,
            hint="'void' may only appear as a function return type",
        )


class EveTypeError(EmitError):
    """
    Type mismatch.

    Raised when an operand, argument, or return value has a type the
    surrounding construct cannot accept.
    """

    def __init__(
        self,
        message: str,
        expected_type: Optional[str] = None,
        actual_type: Optional[str] = None,
        location: Optional[SourceLocation] = None,
    ):
        self.expected_type = expected_type
        self.actual_type = actual_type

        hint = None
        if expected_type and actual_type:
            hint = f"expected '{expected_type}', got '{actual_type}'"

        super().__init__(message, location=location, hint=hint)


class ArgumentCountError(EmitError):
    """Wrong number of arguments in a function call."""

    def __init__(
        self,
        function_name: str,
        expected: int,
        actual: int,
        location: Optional[SourceLocation] = None,
    ):
        self.function_name = function_name
        self.expected = expected
        self.actual = actual

        word = "argument" if expected == 1 else "arguments"
        super().__init__(
            f"'{function_name}' expects {expected} {word}, got {actual}",
            location=location,
        )


# =============================================================================
# Backend Errors
# =============================================================================

class BackendError(EvelinError):
    """
    The external backend or the host C toolchain failed.

    The tool's diagnostic output is surfaced verbatim.
    """
    phase = "backend"

    def __init__(
        self,
        tool: str,
        output: str,
        returncode: Optional[int] = None,
        filename: Optional[str] = None,
    ):
        self.tool = tool
        self.output = output
        self.returncode = returncode
        self.filename = filename

        status = f" (exit status {returncode})" if returncode else ""
        subject = f" on {filename}" if filename else ""
        message = f"{tool} failed{subject}{status}"
        if output:
            message = f"{message}:\n{output.rstrip()}"
        super().__init__(message)


# =============================================================================
# Error Collection (for multi-error reporting)
# =============================================================================

class ErrorCollector:
    """
    Collects recoverable errors for batch reporting.

    The parser uses this to keep going after a syntax error, so that one
    pass over a file reports every independent problem.

    Example:
        collector = ErrorCollector()

        try:
            parse_statement()
        except ParseError as e:
            collector.add(e)

        if collector.has_errors():
            print(collector.report())
    """

    def __init__(self, max_errors: int = 100):
        self.errors: List[EvelinError] = []
        self.max_errors = max_errors

    def add(self, error: EvelinError) -> None:
        """Add an error to the collection."""
        self.errors.append(error)

    def has_errors(self) -> bool:
        """Return True if any errors have been collected."""
        return len(self.errors) > 0

    def should_stop(self) -> bool:
        """Return True if max_errors has been reached."""
        return len(self.errors) >= self.max_errors

    def error_count(self) -> int:
        """Return the number of collected errors."""
        return len(self.errors)

    def report(self) -> str:
        """Format all errors followed by a summary line."""
        lines = []
        for error in self.errors:
            lines.append(str(error))
            lines.append("")
        lines.append(f"Failed to compile due to {len(self.errors)} parsing error(s)")
        return "\n".join(lines)

    def raise_if_errors(self, filename: Optional[str] = None) -> None:
        """Raise a ParseFailure if any errors were collected."""
        if self.has_errors():
            raise ParseFailure(self.error_count(), self.report(), filename)
