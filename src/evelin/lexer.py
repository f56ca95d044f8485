"""
Evelin Lexer (Tokenizer)
========================

This module implements the single-pass scanner for Evelin source code.
It converts source text into an ordered sequence of tokens for the
parser, stamping every token with the line it starts on.

Token Categories
----------------
- Keywords: struct, fn, let, loop, break, print, return, if, else, extern
- Primitive type names: i64, f64, void
- Literals: integers (42), floats (4.2), strings ("..."), true, false, null
- Identifiers: variable, function and struct names
- Operators: + - * / % ! = == != < <= > >= ->
- Delimiters: ( ) { } , : ;

Numbers
-------
A decimal point followed by a digit makes a float literal; everything
else is an integer. Exponents and digit separators are not part of the
language.

Strings
-------
Strings are delimited by double quotes. No escape processing happens in
the lexer; the text between the quotes is kept verbatim, newlines
included.

Comments
--------
- Single-line: // comment

Example Usage
-------------
>>> from evelin.lexer import tokenize
>>> for token in tokenize('fn main() -> i64 { return 42; }'):
...     print(token)
Token(FN, 'fn', 1:1)
Token(IDENTIFIER, 'main', 1:4)
...
Token(EOF, 1:32)
"""

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator
import string

from evelin.errors import (
    SourceLocation,
    InvalidCharacterError,
    UnterminatedStringError,
    IntegerOverflowError,
)
from evelin.logs import TRACE

logger = logging.getLogger(__name__)


# =============================================================================
# Token Type Enumeration
# =============================================================================

class TokenType(Enum):
    """
    Token types for the Evelin language.

    Keywords are distinguished from identifiers to simplify parsing.
    """

    # === Structural Tokens ===
    EOF = auto()

    # === Identifiers and Literals ===
    IDENTIFIER = auto()
    INTEGER = auto()
    FLOAT = auto()
    STRING = auto()
    TRUE = auto()
    FALSE = auto()
    NULL = auto()

    # === Keywords - Declarations ===
    STRUCT = auto()
    FN = auto()
    LET = auto()
    EXTERN = auto()

    # === Keywords - Statements ===
    LOOP = auto()
    BREAK = auto()
    PRINT = auto()
    RETURN = auto()
    IF = auto()
    ELSE = auto()

    # === Keywords - Primitive Types ===
    TYPE_I64 = auto()
    TYPE_F64 = auto()
    TYPE_VOID = auto()

    # === Arithmetic Operators ===
    PLUS = auto()           # +
    MINUS = auto()          # -
    STAR = auto()           # *
    SLASH = auto()          # /
    PERCENT = auto()        # %

    # === Comparison and Logical Operators ===
    BANG = auto()           # !
    EQ = auto()             # ==
    NE = auto()             # !=
    LT = auto()             # <
    LE = auto()             # <=
    GT = auto()             # >
    GE = auto()             # >=

    # === Assignment ===
    ASSIGN = auto()         # =

    # === Delimiters ===
    LPAREN = auto()         # (
    RPAREN = auto()         # )
    LBRACE = auto()         # {
    RBRACE = auto()         # }
    COMMA = auto()          # ,
    COLON = auto()          # :
    SEMICOLON = auto()      # ;
    ARROW = auto()          # ->


# =============================================================================
# Keyword Mapping
# =============================================================================

KEYWORDS: dict[str, TokenType] = {
    "struct": TokenType.STRUCT,
    "fn": TokenType.FN,
    "let": TokenType.LET,
    "extern": TokenType.EXTERN,
    "loop": TokenType.LOOP,
    "break": TokenType.BREAK,
    "print": TokenType.PRINT,
    "return": TokenType.RETURN,
    "if": TokenType.IF,
    "else": TokenType.ELSE,
    "i64": TokenType.TYPE_I64,
    "f64": TokenType.TYPE_F64,
    "void": TokenType.TYPE_VOID,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "null": TokenType.NULL,
}

PRIMITIVE_TYPE_TOKENS = (TokenType.TYPE_I64, TokenType.TYPE_F64, TokenType.TYPE_VOID)

SINGLE_TOKENS: dict[str, TokenType] = {
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    ",": TokenType.COMMA,
    ":": TokenType.COLON,
    ";": TokenType.SEMICOLON,
    "+": TokenType.PLUS,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
}

# First char -> (second char, two-char type, one-char type)
DOUBLE_TOKENS: dict[str, tuple[str, TokenType, TokenType]] = {
    "-": (">", TokenType.ARROW, TokenType.MINUS),
    "=": ("=", TokenType.EQ, TokenType.ASSIGN),
    "!": ("=", TokenType.NE, TokenType.BANG),
    "<": ("=", TokenType.LE, TokenType.LT),
    ">": ("=", TokenType.GE, TokenType.GT),
}


# =============================================================================
# Token Data Class
# =============================================================================

@dataclass(frozen=True)
class Token:
    """
    Represents a single token from Evelin source code.

    Attributes:
        type: The TokenType classification
        lexeme: The exact source text of the token
        line: Line number in source (1-indexed)
        column: Column number in source (1-indexed)
        filename: Name of the source file
        value: Literal value for INTEGER, FLOAT and STRING tokens
    """
    type: TokenType
    lexeme: str
    line: int
    column: int = 1
    filename: str = "<input>"
    value: int | float | str | None = None

    def __repr__(self) -> str:
        if self.type == TokenType.EOF:
            return f"Token(EOF, {self.line}:{self.column})"
        return f"Token({self.type.name}, {self.lexeme!r}, {self.line}:{self.column})"

    @property
    def location(self) -> SourceLocation:
        """Return a SourceLocation for error reporting."""
        return SourceLocation(self.filename, self.line, self.column)

    def is_type_keyword(self) -> bool:
        """Return True if this token names a primitive type."""
        return self.type in PRIMITIVE_TYPE_TOKENS


# =============================================================================
# Lexer Implementation
# =============================================================================

class Lexer:
    """
    Tokenizes Evelin source code.

    The scan is a single forward pass with at most one character of
    lookahead. An unrecognized character raises InvalidCharacterError,
    which aborts compilation of the file.

    Usage:
        lexer = Lexer(source_text, filename)
        tokens = list(lexer.tokenize())

    Attributes:
        source: The source code being tokenized
        filename: Name of the source file (for error reporting)
    """

    IDENT_START = string.ascii_letters + "_"
    IDENT_CHARS = string.ascii_letters + string.digits + "_"
    DIGITS = string.digits

    # Largest value an integer literal may have
    I64_MAX = 2**63 - 1

    def __init__(self, source: str, filename: str = "<input>"):
        self.source = source
        self.filename = filename

        self._pos = 0
        self._line = 1
        self._column = 1
        self._line_start_pos = 0

    def tokenize(self) -> Iterator[Token]:
        """
        Generate tokens from the source code.

        Yields:
            Token objects, always terminated by a single EOF token

        Raises:
            LexError: If an invalid character or unterminated string is found
        """
        while True:
            self._skip_whitespace_and_comments()
            if self._at_end():
                break

            token = self._scan_token()
            logger.log(TRACE, f"lexed {token!r}")
            yield token

        yield Token(TokenType.EOF, "", self._line, self._column, self.filename)

    # =========================================================================
    # Character Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._pos >= len(self.source)

    def _peek(self, offset: int = 0) -> str:
        """Look at a character without consuming it ("" past the end)."""
        pos = self._pos + offset
        if pos >= len(self.source):
            return ""
        return self.source[pos]

    def _advance(self) -> str:
        """Consume and return the current character, tracking line and column."""
        if self._at_end():
            return ""

        char = self.source[self._pos]
        self._pos += 1

        if char == "\n":
            self._line += 1
            self._column = 1
            self._line_start_pos = self._pos
        else:
            self._column += 1

        return char

    def _match(self, expected: str) -> bool:
        """Consume the next character if it matches expected."""
        if self._peek() == expected:
            self._advance()
            return True
        return False

    # =========================================================================
    # Whitespace and Comment Handling
    # =========================================================================

    def _skip_whitespace_and_comments(self) -> None:
        while not self._at_end():
            char = self._peek()

            if char in " \t\n\r":
                self._advance()
                continue

            if char == "/" and self._peek(1) == "/":
                while not self._at_end() and self._peek() != "\n":
                    self._advance()
                continue

            break

    # =========================================================================
    # Token Scanning
    # =========================================================================

    def _make_token(
        self,
        token_type: TokenType,
        lexeme: str,
        start_line: int,
        start_column: int,
        value: int | float | str | None = None,
    ) -> Token:
        return Token(
            type=token_type,
            lexeme=lexeme,
            line=start_line,
            column=start_column,
            filename=self.filename,
            value=value,
        )

    def _scan_token(self) -> Token:
        start_line = self._line
        start_column = self._column

        char = self._peek()

        if char in self.IDENT_START:
            return self._scan_identifier(start_line, start_column)

        if self._is_digit(char):
            return self._scan_number(start_line, start_column)

        if char == '"':
            return self._scan_string(start_line, start_column)

        return self._scan_operator(start_line, start_column)

    def _scan_identifier(self, start_line: int, start_column: int) -> Token:
        """
        Scan an identifier or keyword.

        The longest run of identifier characters is taken first and only
        then checked against the keyword table, so ``letter`` is an
        identifier and not ``let`` followed by ``ter``.
        """
        chars = []
        while self._peek() and self._peek() in self.IDENT_CHARS:
            chars.append(self._advance())

        name = "".join(chars)
        token_type = KEYWORDS.get(name, TokenType.IDENTIFIER)
        return self._make_token(token_type, name, start_line, start_column)

    def _scan_number(self, start_line: int, start_column: int) -> Token:
        chars = []
        while self._is_digit(self._peek()):
            chars.append(self._advance())

        if self._peek() == "." and self._is_digit(self._peek(1)):
            chars.append(self._advance())
            while self._is_digit(self._peek()):
                chars.append(self._advance())
            text = "".join(chars)
            return self._make_token(TokenType.FLOAT, text, start_line, start_column, float(text))

        text = "".join(chars)
        value = int(text)
        if value > self.I64_MAX:
            raise IntegerOverflowError(
                text,
                SourceLocation(self.filename, start_line, start_column),
                self._current_line(),
            )
        return self._make_token(TokenType.INTEGER, text, start_line, start_column, value)

    def _scan_string(self, start_line: int, start_column: int) -> Token:
        source_line = self._current_line()
        self._advance()  # opening "

        chars = []
        while not self._at_end():
            char = self._advance()
            if char == '"':
                text = "".join(chars)
                return self._make_token(
                    TokenType.STRING, f'"{text}"', start_line, start_column, text
                )
            chars.append(char)

        raise UnterminatedStringError(
            SourceLocation(self.filename, start_line, start_column),
            source_line,
        )

    def _scan_operator(self, start_line: int, start_column: int) -> Token:
        source_line = self._current_line()
        char = self._advance()

        if char in DOUBLE_TOKENS:
            second, double_type, single_type = DOUBLE_TOKENS[char]
            if self._match(second):
                return self._make_token(double_type, char + second, start_line, start_column)
            return self._make_token(single_type, char, start_line, start_column)

        if char in SINGLE_TOKENS:
            return self._make_token(SINGLE_TOKENS[char], char, start_line, start_column)

        raise InvalidCharacterError(
            char,
            SourceLocation(self.filename, start_line, start_column),
            source_line,
        )

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _is_digit(self, char: str) -> bool:
        """ASCII digits only; "" (end of input) is not a digit."""
        return char != "" and char in self.DIGITS

    def _current_line(self) -> str:
        """Get the current line of source text for error reporting."""
        line_end = self.source.find("\n", self._line_start_pos)
        if line_end == -1:
            line_end = len(self.source)
        return self.source[self._line_start_pos:line_end]


# =============================================================================
# Convenience Functions
# =============================================================================

def tokenize(source: str, filename: str = "<input>") -> list[Token]:
    """
    Tokenize Evelin source into a list of tokens ending with EOF.

    Raises:
        LexError: On the first unrecognized character or unterminated string
    """
    return list(Lexer(source, filename).tokenize())
