"""
Evelin Lexer Test Suite
=======================

Tests for the Evelin tokenizer: keywords, literals, operators, line
tracking and lexical errors.
"""

import pytest

from evelin.lexer import Lexer, TokenType, tokenize
from evelin.errors import (
    InvalidCharacterError,
    UnterminatedStringError,
    IntegerOverflowError,
    LexError,
)


def types_of(source: str) -> list[TokenType]:
    return [t.type for t in tokenize(source)]


class TestBasics:
    """Empty input, whitespace and comments."""

    def test_empty_source(self):
        """Empty source should produce only an EOF token."""
        tokens = tokenize("")
        assert len(tokens) == 1
        assert tokens[0].type == TokenType.EOF

    def test_whitespace_only(self):
        """Whitespace-only source should produce only an EOF token."""
        assert types_of("  \n\t \r\n ") == [TokenType.EOF]

    def test_line_comment(self):
        """Line comments are skipped up to the end of the line."""
        tokens = tokenize("// a comment\n42")
        assert [t.type for t in tokens] == [TokenType.INTEGER, TokenType.EOF]
        assert tokens[0].line == 2

    def test_slash_is_still_division(self):
        """A single slash is the division operator, not a comment."""
        assert types_of("a / b") == [
            TokenType.IDENTIFIER, TokenType.SLASH, TokenType.IDENTIFIER, TokenType.EOF,
        ]

    def test_generator_interface(self):
        """Lexer.tokenize() yields tokens lazily and ends with EOF."""
        tokens = list(Lexer("let x", "x.eve").tokenize())
        assert tokens[-1].type == TokenType.EOF
        assert tokens[0].filename == "x.eve"


class TestKeywords:
    """Keywords and identifiers."""

    @pytest.mark.parametrize("text,expected", [
        ("struct", TokenType.STRUCT),
        ("fn", TokenType.FN),
        ("let", TokenType.LET),
        ("extern", TokenType.EXTERN),
        ("loop", TokenType.LOOP),
        ("break", TokenType.BREAK),
        ("print", TokenType.PRINT),
        ("return", TokenType.RETURN),
        ("if", TokenType.IF),
        ("else", TokenType.ELSE),
        ("i64", TokenType.TYPE_I64),
        ("f64", TokenType.TYPE_F64),
        ("void", TokenType.TYPE_VOID),
        ("true", TokenType.TRUE),
        ("false", TokenType.FALSE),
        ("null", TokenType.NULL),
    ])
    def test_keyword(self, text, expected):
        """Each keyword maps to its own token type."""
        assert tokenize(text)[0].type == expected

    def test_longest_match(self):
        """A keyword prefix inside a longer word is an identifier."""
        tokens = tokenize("letter fnord i64x")
        assert [t.type for t in tokens[:3]] == [TokenType.IDENTIFIER] * 3
        assert [t.lexeme for t in tokens[:3]] == ["letter", "fnord", "i64x"]

    def test_identifiers(self):
        """Identifiers may contain underscores and digits."""
        for ident in ["main", "_x", "foo_bar", "a1b2"]:
            token = tokenize(ident)[0]
            assert token.type == TokenType.IDENTIFIER
            assert token.lexeme == ident

    def test_type_keyword_helper(self):
        """is_type_keyword() is true only for primitive type names."""
        tokens = tokenize("i64 f64 void Point")
        assert [t.is_type_keyword() for t in tokens[:4]] == [True, True, True, False]


class TestLiterals:
    """Numbers and strings."""

    def test_integer(self):
        """Integer literal carries its int value."""
        token = tokenize("42")[0]
        assert token.type == TokenType.INTEGER
        assert token.value == 42

    def test_float(self):
        """A decimal point followed by a digit makes a float."""
        token = tokenize("4.25")[0]
        assert token.type == TokenType.FLOAT
        assert token.value == 4.25

    def test_trailing_dot_is_not_float(self):
        """'4.' is not a float; the dot is an invalid character."""
        with pytest.raises(InvalidCharacterError):
            tokenize("4.")

    def test_string(self):
        """String value excludes the quotes; the lexeme keeps them."""
        token = tokenize('"hello world"')[0]
        assert token.type == TokenType.STRING
        assert token.value == "hello world"
        assert token.lexeme == '"hello world"'

    def test_string_no_escapes(self):
        """Backslashes are kept verbatim."""
        token = tokenize(r'"a\nb"')[0]
        assert token.value == r"a\nb"

    def test_multiline_string_advances_line(self):
        """Newlines inside strings still count for line numbers."""
        tokens = tokenize('"a\nb" x')
        assert tokens[0].line == 1
        assert tokens[1].line == 2

    def test_unterminated_string(self):
        """A string without closing quote is a fatal lex error."""
        with pytest.raises(UnterminatedStringError) as exc_info:
            tokenize('let s = "oops;')
        assert exc_info.value.line == 1
        assert exc_info.value.phase == "lex"


class TestOperators:
    """Single and double character operators."""

    def test_double_char_operators(self):
        """Two-character operators win over their one-character prefix."""
        assert types_of("-> == != <= >=") == [
            TokenType.ARROW, TokenType.EQ, TokenType.NE, TokenType.LE, TokenType.GE, TokenType.EOF,
        ]

    def test_single_char_operators(self):
        """One-character operators and delimiters."""
        assert types_of("+ - * / % ! = < > ( ) { } , : ;") == [
            TokenType.PLUS, TokenType.MINUS, TokenType.STAR, TokenType.SLASH,
            TokenType.PERCENT, TokenType.BANG, TokenType.ASSIGN, TokenType.LT,
            TokenType.GT, TokenType.LPAREN, TokenType.RPAREN, TokenType.LBRACE,
            TokenType.RBRACE, TokenType.COMMA, TokenType.COLON, TokenType.SEMICOLON,
            TokenType.EOF,
        ]

    def test_minus_before_number(self):
        """A minus sign is never part of a number literal."""
        assert types_of("-1") == [TokenType.MINUS, TokenType.INTEGER, TokenType.EOF]


class TestPositions:
    """Line and column tracking."""

    def test_lines_stamped(self):
        """Every token carries the line it starts on."""
        tokens = tokenize("fn main()\n-> i64\n{ return 42; }")
        lines = {t.lexeme: t.line for t in tokens if t.lexeme}
        assert lines["fn"] == 1
        assert lines["->"] == 2
        assert lines["return"] == 3

    def test_columns(self):
        """Columns are 1-indexed."""
        tokens = tokenize("let  x")
        assert tokens[0].column == 1
        assert tokens[1].column == 6


class TestErrors:
    """Invalid input."""

    def test_invalid_character(self):
        """An unknown character raises with the character and line."""
        with pytest.raises(InvalidCharacterError) as exc_info:
            tokenize("let x = 1;\nlet y = @;")
        error = exc_info.value
        assert error.char == "@"
        assert error.line == 2
        assert isinstance(error, LexError)

    @pytest.mark.parametrize("char", ["²", "١"])
    def test_non_ascii_digit(self, char):
        """Only ASCII digits start a number; other Unicode digits are invalid."""
        with pytest.raises(InvalidCharacterError) as exc_info:
            tokenize(f"fn main() -> i64 {{ return {char}; }}")
        assert exc_info.value.char == char
        assert exc_info.value.line == 1

    def test_non_ascii_digit_after_number(self):
        """A Unicode digit does not extend an ASCII number."""
        with pytest.raises(InvalidCharacterError):
            tokenize("12٣")

    def test_integer_at_i64_limit(self):
        assert tokenize("9223372036854775807")[0].value == 2**63 - 1

    def test_integer_overflow(self):
        """Integer literals larger than an i64 are rejected."""
        with pytest.raises(IntegerOverflowError) as exc_info:
            tokenize("let x = 1;\nreturn 99999999999999999999;")
        error = exc_info.value
        assert error.literal == "99999999999999999999"
        assert error.line == 2
        assert error.phase == "lex"

    def test_error_message_has_location(self):
        """The formatted message names file, line and column."""
        with pytest.raises(InvalidCharacterError) as exc_info:
            tokenize("  #", "bad.eve")
        assert "bad.eve:1:3" in str(exc_info.value)
