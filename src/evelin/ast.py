"""
Evelin Abstract Syntax Tree (AST) Definitions
=============================================

This module defines the AST node types shared by the parser and the
emitter. The node set is closed: every consumer dispatches over exactly
these classes and raises on anything else.

Node Hierarchy
--------------
ASTNode (base)
├── Declarations
│   ├── StructDecl - struct type with ordered fields
│   ├── StructField - one field of a struct
│   ├── FnDecl - function definition
│   └── Param - one function parameter
├── Statements
│   ├── BlockStmt - { ... }
│   ├── LetStmt - let name = expr;
│   ├── StructInitStmt - let name = Struct { field: expr, ... };
│   ├── LoopStmt - loop { ... }
│   ├── BreakStmt - break;
│   ├── IfStmt - if (cond) stmt else stmt
│   ├── PrintStmt - print expr;
│   ├── ReturnStmt - return expr?;
│   └── ExpressionStmt - expr;
└── Expressions
    ├── BinaryExpr - arithmetic and comparison operators
    ├── UnaryExpr - prefix - + !
    ├── GroupingExpr - ( expr )
    ├── LiteralExpr - int, float, string, bool, null
    ├── VariableExpr - bare identifier
    ├── CallExpr - name(args)
    └── NativeCallExpr - extern name(args)

Design Notes
------------
- Every node carries its source location (the line metadata).
- ``resolved_type`` is empty after parsing and is filled in by the
  emitter as it lowers each node.
- Struct field order is the declaration order and defines the layout.
"""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Optional

from evelin.errors import SourceLocation
from evelin.types import EveType


# =============================================================================
# AST Node Base Classes
# =============================================================================

@dataclass
class ASTNode:
    """
    Base class for all AST nodes.

    Attributes:
        location: Source location where this node appears
        resolved_type: The type of this node (set during emission)
    """
    location: SourceLocation
    resolved_type: Optional[EveType] = field(default=None, compare=False, kw_only=True)

    @property
    def line(self) -> int:
        return self.location.line

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}@{self.location.line}:{self.location.column}"


@dataclass(repr=False)
class Expression(ASTNode):
    """Base class for all expression nodes."""
    pass


@dataclass(repr=False)
class Statement(ASTNode):
    """Base class for all statement nodes."""
    pass


# =============================================================================
# Operators
# =============================================================================

class BinaryOperator(Enum):
    """Binary operators, arithmetic first, then comparisons."""
    ADD = auto()
    SUBTRACT = auto()
    MULTIPLY = auto()
    DIVIDE = auto()
    MODULO = auto()
    EQUAL = auto()
    NOT_EQUAL = auto()
    LESS = auto()
    LESS_EQ = auto()
    GREATER = auto()
    GREATER_EQ = auto()

    @property
    def is_comparison(self) -> bool:
        return self in COMPARISON_OPERATORS


COMPARISON_OPERATORS = frozenset({
    BinaryOperator.EQUAL,
    BinaryOperator.NOT_EQUAL,
    BinaryOperator.LESS,
    BinaryOperator.LESS_EQ,
    BinaryOperator.GREATER,
    BinaryOperator.GREATER_EQ,
})


class UnaryOperator(Enum):
    NEGATE = auto()         # -x
    POSITIVE = auto()       # +x (no-op)
    LOGICAL_NOT = auto()    # !x


class LiteralKind(Enum):
    INT = auto()
    FLOAT = auto()
    STRING = auto()
    BOOL = auto()
    NULL = auto()


# =============================================================================
# Expression Nodes
# =============================================================================

@dataclass(repr=False)
class BinaryExpr(Expression):
    """
    Binary operation: left op right.

    Attributes:
        left: Left operand
        operator: The operator
        right: Right operand
    """
    left: Expression
    operator: BinaryOperator
    right: Expression


@dataclass(repr=False)
class UnaryExpr(Expression):
    """
    Prefix unary operation.

    Attributes:
        operator: The operator
        operand: The operand expression
    """
    operator: UnaryOperator
    operand: Expression


@dataclass(repr=False)
class GroupingExpr(Expression):
    """Parenthesized expression: ( inner )."""
    inner: Expression


@dataclass(repr=False)
class LiteralExpr(Expression):
    """
    Literal constant.

    Attributes:
        kind: Which literal variant this is
        value: Python value (int, float, str, bool, or None for null)
    """
    kind: LiteralKind
    value: Any = None


@dataclass(repr=False)
class VariableExpr(Expression):
    """Reference to a bound name."""
    name: str


@dataclass(repr=False)
class CallExpr(Expression):
    """
    Call of a function defined in this compilation unit.

    Attributes:
        callee: The called expression (a VariableExpr naming the function)
        arguments: Argument expressions in source order
    """
    callee: Expression
    arguments: list[Expression] = field(default_factory=list)

    @property
    def arg(self) -> Optional[Expression]:
        """The argument of a zero- or one-argument call (None if absent)."""
        return self.arguments[0] if self.arguments else None


@dataclass(repr=False)
class NativeCallExpr(Expression):
    """
    Call of an externally linked function: extern name(args).

    Attributes:
        callee: The called expression (a VariableExpr naming the symbol)
        arguments: Argument expressions in source order
    """
    callee: Expression
    arguments: list[Expression] = field(default_factory=list)

    @property
    def args(self) -> list[Expression]:
        return self.arguments


# =============================================================================
# Statement Nodes
# =============================================================================

@dataclass(repr=False)
class BlockStmt(Statement):
    """Block of statements enclosed in braces; opens a new scope."""
    statements: list[Statement] = field(default_factory=list)


@dataclass(repr=False)
class LetStmt(Statement):
    """
    Binding: let name = initializer;

    Attributes:
        name: The bound name
        initializer: The value expression
    """
    name: str
    initializer: Expression


@dataclass(repr=False)
class FieldInit(ASTNode):
    """One ``field: expr`` entry of a struct initializer."""
    name: str
    value: Expression


@dataclass(repr=False)
class StructInitStmt(Statement):
    """
    Struct binding: let name = StructName { field: expr, ... };

    Attributes:
        name: The bound name
        struct_name: The struct being instantiated
        fields: Field initializers in source order
    """
    name: str
    struct_name: str
    fields: list[FieldInit] = field(default_factory=list)


@dataclass(repr=False)
class LoopStmt(Statement):
    """Unconditional loop, left only through break."""
    body: BlockStmt


@dataclass(repr=False)
class BreakStmt(Statement):
    pass


@dataclass(repr=False)
class IfStmt(Statement):
    """
    Conditional with optional else branch.

    Attributes:
        condition: The condition expression (non-zero is true)
        then_branch: Statement executed if the condition holds
        else_branch: Optional statement executed otherwise
    """
    condition: Expression
    then_branch: Statement
    else_branch: Optional[Statement] = None


@dataclass(repr=False)
class PrintStmt(Statement):
    value: Expression


@dataclass(repr=False)
class ReturnStmt(Statement):
    value: Optional[Expression] = None


@dataclass(repr=False)
class ExpressionStmt(Statement):
    expression: Expression


# =============================================================================
# Declaration Nodes
# =============================================================================

@dataclass(repr=False)
class StructField(ASTNode):
    """
    One field of a struct declaration.

    Attributes:
        name: Field name
        field_type: Primitive type or by-name struct reference
    """
    name: str
    field_type: EveType


@dataclass(repr=False)
class StructDecl(ASTNode):
    """
    Struct declaration: struct Name { field: type, ... }

    Attributes:
        name: Struct name
        fields: Fields in declaration order (this order is the layout)
    """
    name: str
    fields: list[StructField] = field(default_factory=list)

    @property
    def field_pairs(self) -> list[tuple[str, EveType]]:
        """Fields as (name, type) pairs in declaration order."""
        return [(f.name, f.field_type) for f in self.fields]


@dataclass(repr=False)
class Param(ASTNode):
    """
    Function parameter declaration.

    Attributes:
        name: Parameter name
        param_type: Primitive type or by-name struct reference
    """
    name: str
    param_type: EveType


@dataclass(repr=False)
class FnDecl(ASTNode):
    """
    Function definition: fn name(params) -> type { body }

    Attributes:
        name: Function name
        parameters: Parameter declarations in order
        return_type: Declared return type (void allowed)
        body: Statements of the function body
    """
    name: str
    parameters: list[Param] = field(default_factory=list)
    return_type: EveType = None
    body: list[Statement] = field(default_factory=list)

    @property
    def parameter(self) -> Optional[tuple[str, EveType]]:
        """The (name, type) of a zero- or one-parameter function (None if none)."""
        if not self.parameters:
            return None
        first = self.parameters[0]
        return (first.name, first.param_type)


# =============================================================================
# AST Visitor
# =============================================================================

class ASTVisitor:
    """
    Base class for AST visitors.

    Dispatches on the node class name to ``visit_<ClassName>``; nodes
    without a specific method have their children visited.

    Usage:
        class MyVisitor(ASTVisitor):
            def visit_FnDecl(self, node):
                print(f"Function: {node.name}")
                self.generic_visit(node)
    """

    def visit(self, node: ASTNode) -> Any:
        method_name = f"visit_{node.__class__.__name__}"
        visitor = getattr(self, method_name, self.generic_visit)
        return visitor(node)

    def generic_visit(self, node: ASTNode) -> None:
        for field_value in node.__dict__.values():
            if isinstance(field_value, ASTNode):
                self.visit(field_value)
            elif isinstance(field_value, list):
                for item in field_value:
                    if isinstance(item, ASTNode):
                        self.visit(item)


# =============================================================================
# AST Pretty Printer
# =============================================================================

BINARY_SYMBOLS = {
    BinaryOperator.ADD: "+",
    BinaryOperator.SUBTRACT: "-",
    BinaryOperator.MULTIPLY: "*",
    BinaryOperator.DIVIDE: "/",
    BinaryOperator.MODULO: "%",
    BinaryOperator.EQUAL: "==",
    BinaryOperator.NOT_EQUAL: "!=",
    BinaryOperator.LESS: "<",
    BinaryOperator.LESS_EQ: "<=",
    BinaryOperator.GREATER: ">",
    BinaryOperator.GREATER_EQ: ">=",
}

UNARY_SYMBOLS = {
    UnaryOperator.NEGATE: "-",
    UnaryOperator.POSITIVE: "+",
    UnaryOperator.LOGICAL_NOT: "!",
}


class ASTPrinter(ASTVisitor):
    """
    Pretty printer for AST debugging.

    Usage:
        printer = ASTPrinter()
        output = printer.print(struct_decls + fn_decls)
        print(output)
    """

    def __init__(self):
        self.output: list[str] = []
        self.indent_level = 0

    def print(self, nodes: ASTNode | list[ASTNode]) -> str:
        """Print one node or a list of declarations and return the text."""
        self.output = []
        self.indent_level = 0
        if isinstance(nodes, ASTNode):
            nodes = [nodes]
        for node in nodes:
            self.visit(node)
        return "\n".join(self.output)

    def _emit(self, text: str) -> None:
        indent = "  " * self.indent_level
        self.output.append(f"{indent}{text}")

    def _visit_indented(self, node: ASTNode) -> None:
        self.indent_level += 1
        self.visit(node)
        self.indent_level -= 1

    def visit_StructDecl(self, node: StructDecl):
        fields = ", ".join(f"{f.name}: {f.field_type}" for f in node.fields)
        self._emit(f"Struct: {node.name} {{ {fields} }}")

    def visit_FnDecl(self, node: FnDecl):
        params = ", ".join(f"{p.name}: {p.param_type}" for p in node.parameters)
        self._emit(f"Function: {node.name}({params}) -> {node.return_type}")
        for stmt in node.body:
            self._visit_indented(stmt)

    def visit_BlockStmt(self, node: BlockStmt):
        self._emit("Block")
        for stmt in node.statements:
            self._visit_indented(stmt)

    def visit_LetStmt(self, node: LetStmt):
        self._emit(f"Let {node.name} = {self._expr_str(node.initializer)}")

    def visit_StructInitStmt(self, node: StructInitStmt):
        fields = ", ".join(f"{f.name}: {self._expr_str(f.value)}" for f in node.fields)
        self._emit(f"Let {node.name} = {node.struct_name} {{ {fields} }}")

    def visit_LoopStmt(self, node: LoopStmt):
        self._emit("Loop")
        self._visit_indented(node.body)

    def visit_BreakStmt(self, node: BreakStmt):
        self._emit("Break")

    def visit_IfStmt(self, node: IfStmt):
        self._emit(f"If ({self._expr_str(node.condition)})")
        self.indent_level += 1
        self._emit("Then:")
        self._visit_indented(node.then_branch)
        if node.else_branch:
            self._emit("Else:")
            self._visit_indented(node.else_branch)
        self.indent_level -= 1

    def visit_PrintStmt(self, node: PrintStmt):
        self._emit(f"Print {self._expr_str(node.value)}")

    def visit_ReturnStmt(self, node: ReturnStmt):
        if node.value is not None:
            self._emit(f"Return {self._expr_str(node.value)}")
        else:
            self._emit("Return")

    def visit_ExpressionStmt(self, node: ExpressionStmt):
        self._emit(f"Expr: {self._expr_str(node.expression)}")

    def _expr_str(self, expr: Expression) -> str:
        """Convert expression to string representation."""
        if isinstance(expr, LiteralExpr):
            if expr.kind == LiteralKind.STRING:
                return f'"{expr.value}"'
            if expr.kind == LiteralKind.BOOL:
                return "true" if expr.value else "false"
            if expr.kind == LiteralKind.NULL:
                return "null"
            return str(expr.value)
        if isinstance(expr, VariableExpr):
            return expr.name
        if isinstance(expr, GroupingExpr):
            return f"({self._expr_str(expr.inner)})"
        if isinstance(expr, BinaryExpr):
            op_str = BINARY_SYMBOLS[expr.operator]
            return f"({self._expr_str(expr.left)} {op_str} {self._expr_str(expr.right)})"
        if isinstance(expr, UnaryExpr):
            return f"({UNARY_SYMBOLS[expr.operator]}{self._expr_str(expr.operand)})"
        if isinstance(expr, CallExpr):
            args = ", ".join(self._expr_str(a) for a in expr.arguments)
            return f"{self._expr_str(expr.callee)}({args})"
        if isinstance(expr, NativeCallExpr):
            args = ", ".join(self._expr_str(a) for a in expr.arguments)
            return f"extern {self._expr_str(expr.callee)}({args})"
        return f"<{type(expr).__name__}>"
