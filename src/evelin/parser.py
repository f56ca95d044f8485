"""
Evelin Recursive Descent Parser
===============================

This module implements the recursive descent parser for Evelin. It takes
the token list produced by the lexer and builds the struct and function
declaration lists that the emitter lowers.

Grammar (Simplified EBNF)
-------------------------
program         ::= (struct_decl | fn_decl)*
struct_decl     ::= 'struct' IDENTIFIER '{' (field (',' field)* ','?)? '}'
field           ::= IDENTIFIER ':' type
fn_decl         ::= 'fn' IDENTIFIER '(' (param (',' param)*)? ')' '->' type block
param           ::= IDENTIFIER ':' type
type            ::= 'i64' | 'f64' | 'void' | IDENTIFIER

block           ::= '{' statement* '}'
statement       ::= block | let_stmt | loop_stmt | break_stmt | print_stmt
                  | return_stmt | if_stmt | expr_stmt
let_stmt        ::= 'let' IDENTIFIER '=' (struct_init | expr) ';'
struct_init     ::= IDENTIFIER '{' (IDENTIFIER ':' expr (',' IDENTIFIER ':' expr)* ','?)? '}'
loop_stmt       ::= 'loop' block
break_stmt      ::= 'break' ';'
print_stmt      ::= 'print' expr ';'
return_stmt     ::= 'return' expr? ';'
if_stmt         ::= 'if' '(' expr ')' statement ('else' statement)?
expr_stmt       ::= expr ';'

Expression Precedence (lowest to highest)
-----------------------------------------
1. equality        == !=
2. comparison      < <= > >=
3. additive        + -
4. multiplicative  * / %
5. unary           - + !
6. call            IDENTIFIER '(' args ')' | 'extern' IDENTIFIER '(' args ')'
7. primary         literal, IDENTIFIER, '(' expr ')'

Error Recovery
--------------
A syntax error inside a block is recorded and the parser skips to the
next statement. A syntax error at top level (or one that escapes a
declaration) skips to the next ``struct`` or ``fn`` keyword. Every error
is kept, so one pass reports all independent problems; the caller must
not emit while ``error_count`` is non-zero.

Example Usage
-------------
>>> from evelin.lexer import tokenize
>>> from evelin.parser import Parser
>>> result = Parser(tokenize('fn main() -> i64 { return 42; }')).parse()
>>> result.fn_decls[0].name
'main'
>>> result.error_count
0
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from evelin.errors import (
    ErrorCollector,
    ParseError,
    UnexpectedTokenError,
    MissingTokenError,
)
from evelin.lexer import Token, TokenType
from evelin.logs import TRACE
from evelin.types import EveType, PRIMITIVE_TYPES, struct_type
from evelin.ast import (
    Expression,
    Statement,
    BinaryExpr,
    BinaryOperator,
    UnaryExpr,
    UnaryOperator,
    GroupingExpr,
    LiteralExpr,
    LiteralKind,
    VariableExpr,
    CallExpr,
    NativeCallExpr,
    BlockStmt,
    LetStmt,
    FieldInit,
    StructInitStmt,
    LoopStmt,
    BreakStmt,
    IfStmt,
    PrintStmt,
    ReturnStmt,
    ExpressionStmt,
    StructField,
    StructDecl,
    Param,
    FnDecl,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Operator Tables (token -> AST operator)
# =============================================================================

EQUALITY_TOKENS = {
    TokenType.EQ: BinaryOperator.EQUAL,
    TokenType.NE: BinaryOperator.NOT_EQUAL,
}

COMPARISON_TOKENS = {
    TokenType.LT: BinaryOperator.LESS,
    TokenType.LE: BinaryOperator.LESS_EQ,
    TokenType.GT: BinaryOperator.GREATER,
    TokenType.GE: BinaryOperator.GREATER_EQ,
}

ADDITIVE_TOKENS = {
    TokenType.PLUS: BinaryOperator.ADD,
    TokenType.MINUS: BinaryOperator.SUBTRACT,
}

MULTIPLICATIVE_TOKENS = {
    TokenType.STAR: BinaryOperator.MULTIPLY,
    TokenType.SLASH: BinaryOperator.DIVIDE,
    TokenType.PERCENT: BinaryOperator.MODULO,
}

UNARY_TOKENS = {
    TokenType.MINUS: UnaryOperator.NEGATE,
    TokenType.PLUS: UnaryOperator.POSITIVE,
    TokenType.BANG: UnaryOperator.LOGICAL_NOT,
}

# Tokens that begin a statement; local recovery stops in front of them
STATEMENT_KEYWORDS = (
    TokenType.LET,
    TokenType.LOOP,
    TokenType.BREAK,
    TokenType.PRINT,
    TokenType.RETURN,
    TokenType.IF,
)

TOP_LEVEL_KEYWORDS = (TokenType.STRUCT, TokenType.FN)


# =============================================================================
# Parse Result
# =============================================================================

@dataclass
class ParseResult:
    """
    Output of one parse: both declaration lists plus the recorded errors.

    Attributes:
        struct_decls: Struct declarations in source order
        fn_decls: Function declarations in source order
        errors: Every syntax error recorded during the pass
    """
    struct_decls: list[StructDecl] = field(default_factory=list)
    fn_decls: list[FnDecl] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


# =============================================================================
# Parser
# =============================================================================

class Parser:
    """
    Recursive descent parser for Evelin.

    The parser never raises for syntax errors; it records them and keeps
    going so that one pass reports every independent problem. Check
    ``errors_count`` (or ``ParseResult.error_count``) before lowering.

    Attributes:
        tokens: List of tokens to parse (must end with EOF)
        filename: Source filename for error reporting
        struct_decls: Struct declarations parsed so far
        fn_decls: Function declarations parsed so far
    """

    def __init__(
        self,
        tokens: list[Token],
        filename: str = "<input>",
        source_lines: Optional[list[str]] = None,
    ):
        """
        Initialize the parser.

        Args:
            tokens: List of tokens from the lexer
            filename: Source filename for error messages
            source_lines: Original source lines for error context
        """
        if not tokens or tokens[-1].type != TokenType.EOF:
            raise ValueError("token list must be terminated by an EOF token")

        self.tokens = tokens
        self.filename = filename
        self.source_lines = source_lines or []

        self.struct_decls: list[StructDecl] = []
        self.fn_decls: list[FnDecl] = []

        self._pos = 0
        self._errors = ErrorCollector()

    @property
    def errors(self) -> ErrorCollector:
        return self._errors

    @property
    def errors_count(self) -> int:
        """Running count of syntax errors recorded so far."""
        return self._errors.error_count()

    def parse(self) -> ParseResult:
        """
        Parse the whole token list.

        Returns:
            ParseResult with both declaration lists and all recorded errors
        """
        while not self._at_end():
            if self._errors.should_stop():
                break

            start = self._pos
            try:
                self._parse_top_level()
            except ParseError as e:
                self._errors.add(e)
                self._synchronize_top_level(start)

        logger.debug(
            f"parsed {len(self.struct_decls)} struct(s), {len(self.fn_decls)} function(s), "
            f"{self.errors_count} error(s)"
        )
        return ParseResult(
            struct_decls=self.struct_decls,
            fn_decls=self.fn_decls,
            errors=list(self._errors.errors),
        )

    # =========================================================================
    # Token Access Methods
    # =========================================================================

    def _at_end(self) -> bool:
        return self._peek().type == TokenType.EOF

    def _peek(self, offset: int = 0) -> Token:
        """Look at token at current position + offset."""
        pos = self._pos + offset
        if pos >= len(self.tokens):
            return self.tokens[-1]
        return self.tokens[pos]

    def _advance(self) -> Token:
        """Consume and return the current token."""
        if not self._at_end():
            token = self.tokens[self._pos]
            self._pos += 1
            return token
        return self.tokens[-1]

    def _check(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        """Consume the current token if it is one of the types, else None."""
        if self._check(*types):
            return self._advance()
        return None

    def _expect(self, token_type: TokenType, message: str) -> Token:
        """
        Expect and consume a specific token type.

        Raises:
            MissingTokenError: If the current token is of another type
        """
        if self._check(token_type):
            return self._advance()

        current = self._peek()
        raise MissingTokenError(
            message,
            current.location,
            self._get_source_line(current.line),
        )

    def _unexpected(self, expected: str) -> UnexpectedTokenError:
        current = self._peek()
        found = "end of file" if current.type == TokenType.EOF else current.lexeme
        return UnexpectedTokenError(
            found,
            expected,
            current.location,
            self._get_source_line(current.line),
        )

    def _get_source_line(self, line: int) -> Optional[str]:
        if 0 < line <= len(self.source_lines):
            return self.source_lines[line - 1]
        return None

    # =========================================================================
    # Error Recovery
    # =========================================================================

    def _synchronize_top_level(self, start: int) -> None:
        """Skip to the next 'struct' or 'fn' keyword (or EOF)."""
        if self._pos == start:
            self._advance()

        while not self._at_end() and not self._check(*TOP_LEVEL_KEYWORDS):
            self._advance()

    def _synchronize_statement(self, start: int) -> None:
        """
        Skip to the next statement after an error inside a block.

        Stops after a ';', or in front of a '}' or a statement keyword.
        Always makes progress so that recovery cannot loop.
        """
        if self._pos == start and not self._check(TokenType.RBRACE):
            self._advance()

        while not self._at_end():
            if self._match(TokenType.SEMICOLON):
                return
            if self._check(TokenType.RBRACE, *STATEMENT_KEYWORDS, *TOP_LEVEL_KEYWORDS):
                return
            self._advance()

    # =========================================================================
    # Top-Level Declarations
    # =========================================================================

    def _parse_top_level(self) -> None:
        if self._check(TokenType.STRUCT):
            self.struct_decls.append(self._parse_struct_decl())
        elif self._check(TokenType.FN):
            self.fn_decls.append(self._parse_fn_decl())
        else:
            raise self._unexpected("'struct' or 'fn' declaration")

    def _parse_struct_decl(self) -> StructDecl:
        """
        Parse: struct Name { field: type, ... }

        An empty field list and a trailing comma are both allowed.
        """
        start = self._advance()  # 'struct'
        name = self._expect(TokenType.IDENTIFIER, "Expected struct name after 'struct'")
        self._expect(TokenType.LBRACE, "Expected '{' after struct name")

        fields: list[StructField] = []
        while not self._check(TokenType.RBRACE, TokenType.EOF):
            field_name = self._expect(TokenType.IDENTIFIER, "Expected field name")
            self._expect(TokenType.COLON, "Expected ':' after field name")
            field_type = self._parse_type()
            fields.append(StructField(field_name.location, field_name.lexeme, field_type))
            if not self._match(TokenType.COMMA):
                break

        self._expect(TokenType.RBRACE, "Expected '}' after struct fields")

        decl = StructDecl(start.location, name.lexeme, fields)
        logger.log(TRACE, f"parsed struct {decl.name} with {len(fields)} field(s)")
        return decl

    def _parse_fn_decl(self) -> FnDecl:
        """Parse: fn name(p: t, ...) -> type { body }"""
        start = self._advance()  # 'fn'
        name = self._expect(TokenType.IDENTIFIER, "Expected function name after 'fn'")
        self._expect(TokenType.LPAREN, "Expected '(' after function name")

        parameters: list[Param] = []
        if not self._check(TokenType.RPAREN):
            while True:
                param_name = self._expect(TokenType.IDENTIFIER, "Expected parameter name")
                self._expect(TokenType.COLON, "Expected ':' after parameter name")
                param_type = self._parse_type()
                parameters.append(Param(param_name.location, param_name.lexeme, param_type))
                if not self._match(TokenType.COMMA):
                    break

        self._expect(TokenType.RPAREN, "Expected ')' after parameters")
        self._expect(TokenType.ARROW, "Expected '->' before return type")
        return_type = self._parse_type()

        body = self._parse_block()

        decl = FnDecl(start.location, name.lexeme, parameters, return_type, body.statements)
        logger.log(TRACE, f"parsed fn {decl.name} ({len(body.statements)} statement(s))")
        return decl

    def _parse_type(self) -> EveType:
        """Parse a primitive type keyword or a struct name."""
        token = self._peek()
        if token.is_type_keyword():
            self._advance()
            return PRIMITIVE_TYPES[token.lexeme]
        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return struct_type(token.lexeme)
        raise self._unexpected("a type")

    # =========================================================================
    # Statements
    # =========================================================================

    def _parse_block(self) -> BlockStmt:
        """
        Parse '{' statement* '}' with statement-level error recovery.
        """
        open_brace = self._expect(TokenType.LBRACE, "Expected '{' to start block")

        statements: list[Statement] = []
        while not self._check(TokenType.RBRACE, TokenType.EOF):
            # A declaration keyword here means the closing brace is missing
            if self._check(*TOP_LEVEL_KEYWORDS):
                break

            start = self._pos
            try:
                statements.append(self._parse_statement())
            except ParseError as e:
                self._errors.add(e)
                self._synchronize_statement(start)

        self._expect(TokenType.RBRACE, "Expected '}' after block")
        return BlockStmt(open_brace.location, statements)

    def _parse_statement(self) -> Statement:
        token = self._peek()
        logger.log(TRACE, f"statement at {token.line}: {token!r}")

        if token.type == TokenType.LBRACE:
            return self._parse_block()
        if token.type == TokenType.LET:
            return self._parse_let()
        if token.type == TokenType.LOOP:
            return self._parse_loop()
        if token.type == TokenType.BREAK:
            self._advance()
            self._expect(TokenType.SEMICOLON, "Expected ';' after break")
            return BreakStmt(token.location)
        if token.type == TokenType.PRINT:
            self._advance()
            value = self._parse_expression()
            self._expect(TokenType.SEMICOLON, "Expected ';' after print statement")
            return PrintStmt(token.location, value)
        if token.type == TokenType.RETURN:
            return self._parse_return()
        if token.type == TokenType.IF:
            return self._parse_if()

        expression = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "Expected ';' after expression")
        return ExpressionStmt(token.location, expression)

    def _parse_let(self) -> Statement:
        """
        Parse a let binding or a struct initialization.

        ``let p = Point { ... };`` is told apart from ``let x = y;`` by
        one token of lookahead: an identifier directly followed by '{'.
        """
        start = self._advance()  # 'let'
        name = self._expect(TokenType.IDENTIFIER, "Expected variable name after 'let'")
        self._expect(TokenType.ASSIGN, "Expected '=' after variable name")

        if self._check(TokenType.IDENTIFIER) and self._peek(1).type == TokenType.LBRACE:
            return self._parse_struct_init(start, name.lexeme)

        initializer = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "Expected ';' after let statement")
        return LetStmt(start.location, name.lexeme, initializer)

    def _parse_struct_init(self, start: Token, name: str) -> StructInitStmt:
        struct_name = self._advance()
        self._advance()  # '{'

        fields: list[FieldInit] = []
        while not self._check(TokenType.RBRACE, TokenType.EOF):
            field_name = self._expect(TokenType.IDENTIFIER, "Expected field name in struct initializer")
            self._expect(TokenType.COLON, "Expected ':' after field name")
            value = self._parse_expression()
            fields.append(FieldInit(field_name.location, field_name.lexeme, value))
            if not self._match(TokenType.COMMA):
                break

        self._expect(TokenType.RBRACE, "Expected '}' after struct initializer")
        self._expect(TokenType.SEMICOLON, "Expected ';' after let statement")
        return StructInitStmt(start.location, name, struct_name.lexeme, fields)

    def _parse_loop(self) -> LoopStmt:
        start = self._advance()  # 'loop'
        if not self._check(TokenType.LBRACE):
            raise self._unexpected("'{' after 'loop'")
        body = self._parse_block()
        return LoopStmt(start.location, body)

    def _parse_return(self) -> ReturnStmt:
        start = self._advance()  # 'return'
        value = None
        if not self._check(TokenType.SEMICOLON):
            value = self._parse_expression()
        self._expect(TokenType.SEMICOLON, "Expected ';' after return statement")
        return ReturnStmt(start.location, value)

    def _parse_if(self) -> IfStmt:
        start = self._advance()  # 'if'
        self._expect(TokenType.LPAREN, "Expected '(' after 'if'")
        condition = self._parse_expression()
        self._expect(TokenType.RPAREN, "Expected ')' after if condition")

        then_branch = self._parse_statement()
        else_branch = None
        if self._match(TokenType.ELSE):
            else_branch = self._parse_statement()

        return IfStmt(start.location, condition, then_branch, else_branch)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _parse_expression(self) -> Expression:
        return self._parse_equality()

    def _parse_equality(self) -> Expression:
        return self._parse_binary(self._parse_comparison, EQUALITY_TOKENS)

    def _parse_comparison(self) -> Expression:
        return self._parse_binary(self._parse_additive, COMPARISON_TOKENS)

    def _parse_additive(self) -> Expression:
        return self._parse_binary(self._parse_multiplicative, ADDITIVE_TOKENS)

    def _parse_multiplicative(self) -> Expression:
        return self._parse_binary(self._parse_unary, MULTIPLICATIVE_TOKENS)

    def _parse_binary(
        self,
        operand_parser: Callable[[], Expression],
        operators: dict[TokenType, BinaryOperator],
    ) -> Expression:
        """
        Generic left-associative binary expression parser.

        Args:
            operand_parser: Function to parse operands (next tighter level)
            operators: Map of token types to binary operators
        """
        expr = operand_parser()

        while self._peek().type in operators:
            op_token = self._advance()
            right = operand_parser()
            expr = BinaryExpr(
                op_token.location,
                expr,
                operators[op_token.type],
                right,
            )

        return expr

    def _parse_unary(self) -> Expression:
        if self._peek().type in UNARY_TOKENS:
            op_token = self._advance()
            operand = self._parse_unary()
            return UnaryExpr(op_token.location, UNARY_TOKENS[op_token.type], operand)
        return self._parse_call()

    def _parse_call(self) -> Expression:
        """
        Parse a call of a local or external function, or fall through to
        a primary expression.
        """
        if self._check(TokenType.EXTERN):
            start = self._advance()
            name = self._expect(TokenType.IDENTIFIER, "Expected function name after 'extern'")
            callee = VariableExpr(name.location, name.lexeme)
            self._expect(TokenType.LPAREN, "Expected '(' after extern function name")
            arguments = self._parse_arguments()
            return NativeCallExpr(start.location, callee, arguments)

        if self._check(TokenType.IDENTIFIER) and self._peek(1).type == TokenType.LPAREN:
            name = self._advance()
            callee = VariableExpr(name.location, name.lexeme)
            self._advance()  # '('
            arguments = self._parse_arguments()
            return CallExpr(name.location, callee, arguments)

        return self._parse_primary()

    def _parse_arguments(self) -> list[Expression]:
        """Parse a comma-separated argument list after '(' up to and including ')'."""
        arguments: list[Expression] = []
        if not self._check(TokenType.RPAREN):
            while True:
                arguments.append(self._parse_expression())
                if not self._match(TokenType.COMMA):
                    break
        self._expect(TokenType.RPAREN, "Expected ')' after arguments")
        return arguments

    def _parse_primary(self) -> Expression:
        token = self._peek()

        if token.type == TokenType.INTEGER:
            self._advance()
            return LiteralExpr(token.location, LiteralKind.INT, token.value)
        if token.type == TokenType.FLOAT:
            self._advance()
            return LiteralExpr(token.location, LiteralKind.FLOAT, token.value)
        if token.type == TokenType.STRING:
            self._advance()
            return LiteralExpr(token.location, LiteralKind.STRING, token.value)
        if token.type in (TokenType.TRUE, TokenType.FALSE):
            self._advance()
            return LiteralExpr(token.location, LiteralKind.BOOL, token.type == TokenType.TRUE)
        if token.type == TokenType.NULL:
            self._advance()
            return LiteralExpr(token.location, LiteralKind.NULL, None)
        if token.type == TokenType.IDENTIFIER:
            self._advance()
            return VariableExpr(token.location, token.lexeme)
        if token.type == TokenType.LPAREN:
            self._advance()
            inner = self._parse_expression()
            self._expect(TokenType.RPAREN, "Expected ')' after expression")
            return GroupingExpr(token.location, inner)

        raise self._unexpected("an expression")


# =============================================================================
# Convenience Functions
# =============================================================================

def parse(
    tokens: list[Token],
    filename: str = "<input>",
    source_lines: Optional[list[str]] = None,
) -> ParseResult:
    """Parse tokens into declaration lists; errors are recorded, not raised."""
    return Parser(tokens, filename, source_lines).parse()
