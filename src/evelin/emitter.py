"""
QBE IR Emitter for Evelin
=========================

This module lowers the parsed declaration lists into a QBE IR module.
It is the last phase implemented in-process; the resulting text is handed
to the external ``qbe`` backend by evelin.backend.

Lowering Strategy
-----------------
Lowering happens in two passes over the declarations:

1. Collect: struct layouts are resolved (in dependency order, so that
   every aggregate type is defined before it is used) and every function
   signature is recorded. Forward and mutually recursive references are
   therefore legal.
2. Lower: each function body is walked statement by statement.

Every expression result lands in a fresh SSA temporary ``%tmp.N``; the
counter is never reset within a module, so temporaries are unique per
compilation unit. The one exception is a bare variable reference, which
reuses the temporary its name is bound to. Redundant copies are left for
the backend to clean up.

Value Representation
--------------------
| Evelin type | In temporaries | In signatures | Storage           |
|-------------|----------------|---------------|-------------------|
| i64         | ``l``          | ``l``         | 8 bytes           |
| f64         | ``d``          | ``d``         | 8 bytes           |
| str         | ``l`` (ptr)    | ``l``         | private data def  |
| struct      | ``l`` (ptr)    | ``:Name``     | ``alloc8`` block  |

Booleans and ``null`` are ``i64`` constants (1/0 and 0). Comparisons
yield ``i64`` 0 or 1.

Control Flow
------------
``if`` becomes ``jnz`` into ``@if.N.then`` / ``@if.N.else`` blocks that
rejoin at ``@if.N.end``; the join block is only created if some branch
can reach it. ``loop`` becomes ``@loop.N.body`` with a back edge and an
exit block ``@loop.N.end`` that ``break`` jumps to. Code that follows a
``return``/``break`` goes into a fresh block so that every block ends in
exactly one jump.

A function whose last block does not end in a jump gets an implicit
``ret`` if it is declared ``void``; any other function reaching that
point is rejected with MissingReturnError.
"""

import difflib
import logging
from dataclasses import dataclass, field
from typing import Optional

from evelin import qbe
from evelin.errors import (
    SourceLocation,
    UnresolvedTypeError,
    UndeclaredIdentifierError,
    DuplicateDeclarationError,
    InvalidBreakError,
    MissingReturnError,
    VoidUsageError,
    EveTypeError,
    ArgumentCountError,
)
from evelin.logs import TRACE
from evelin.types import (
    EveType,
    TypeKind,
    TYPE_I64,
    TYPE_F64,
    TYPE_STR,
    TYPE_VOID,
    SCALAR_SIZE,
    promote,
    struct_type,
)
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
    StructInitStmt,
    LoopStmt,
    BreakStmt,
    IfStmt,
    PrintStmt,
    ReturnStmt,
    ExpressionStmt,
    StructDecl,
    FnDecl,
    BINARY_SYMBOLS,
    UNARY_SYMBOLS,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Instruction Tables
# =============================================================================

ARITHMETIC_OPCODES = {
    BinaryOperator.ADD: "add",
    BinaryOperator.SUBTRACT: "sub",
    BinaryOperator.MULTIPLY: "mul",
    BinaryOperator.DIVIDE: "div",
    BinaryOperator.MODULO: "rem",
}

# Comparison opcodes per operand class; the type suffix is appended
INT_COMPARISONS = {
    BinaryOperator.EQUAL: "ceq",
    BinaryOperator.NOT_EQUAL: "cne",
    BinaryOperator.LESS: "cslt",
    BinaryOperator.LESS_EQ: "csle",
    BinaryOperator.GREATER: "csgt",
    BinaryOperator.GREATER_EQ: "csge",
}

FLOAT_COMPARISONS = {
    BinaryOperator.EQUAL: "ceq",
    BinaryOperator.NOT_EQUAL: "cne",
    BinaryOperator.LESS: "clt",
    BinaryOperator.LESS_EQ: "cle",
    BinaryOperator.GREATER: "cgt",
    BinaryOperator.GREATER_EQ: "cge",
}

# print: value kind -> (format global, printf format)
PRINT_FORMATS = {
    TypeKind.INT: ("fmt.int", "%ld\\n"),
    TypeKind.FLOAT: ("fmt.float", "%f\\n"),
    TypeKind.STRING: ("fmt.str", "%s\\n"),
}

ENTRY_LABEL = "start"
FLOAT_ZERO = qbe.FloatConst(0.0)


def _data_string(text: str) -> str:
    """
    Prepare string literal text for a quoted data item.

    Backslash sequences written in the source are passed through to the
    assembler as escapes. Raw newlines become ``\\n``, and an unpaired
    backslash at the end is doubled so it cannot escape the closing quote.
    """
    text = text.replace("\n", "\\n")
    trailing = len(text) - len(text.rstrip("\\"))
    if trailing % 2:
        text += "\\"
    return text


# =============================================================================
# Emitter Data Structures
# =============================================================================

@dataclass
class Binding:
    """
    A name bound in some scope.

    Attributes:
        eve_type: Resolved language type
        value: The IR value holding it (a pointer for structs)
    """
    eve_type: EveType
    value: qbe.Value


@dataclass
class StructLayout:
    """
    Resolved memory layout of a struct.

    Attributes:
        name: Struct name
        fields: (name, type, byte offset) in declaration order
        size: Total size in bytes
    """
    name: str
    fields: list[tuple[str, EveType, int]] = field(default_factory=list)
    size: int = 0

    def lookup(self, name: str) -> Optional[tuple[str, EveType, int]]:
        for entry in self.fields:
            if entry[0] == name:
                return entry
        return None


@dataclass
class LoopContext:
    """Exit label of an active loop and whether any break targets it."""
    exit_label: str
    broken: bool = False


# =============================================================================
# Emitter
# =============================================================================

class Emitter:
    """
    Lowers Evelin declarations to a QBE IR module.

    An Emitter instance can be asked to ``emit()`` repeatedly; all state
    is reset at the start of every call, so identical input gives
    byte-identical output.

    Attributes:
        struct_decls: Struct declarations of the compilation unit
        fn_decls: Function declarations of the compilation unit
        filename: Source filename (for logging)
    """

    def __init__(
        self,
        struct_decls: list[StructDecl],
        fn_decls: list[FnDecl],
        filename: str = "<input>",
    ):
        self.struct_decls = struct_decls
        self.fn_decls = fn_decls
        self.filename = filename
        self._reset()

    def _reset(self) -> None:
        self._module = qbe.Module()

        # Temporary and label counters (never reset within one module)
        self._tmp_counter = 0
        self._label_counter = 0

        # Collected declarations
        self._layouts: dict[str, StructLayout] = {}
        self._functions: dict[str, FnDecl] = {}

        # Per-function state
        self._function: Optional[qbe.Function] = None
        self._current_decl: Optional[FnDecl] = None
        self._scopes: list[dict[str, Binding]] = []
        self._loop_stack: list[LoopContext] = []
        self._unreachable: set[str] = set()

        # Module-level data, each defined at most once
        self._formats: set[str] = set()
        self._strings: dict[str, str] = {}

    def emit(self) -> str:
        """
        Lower all declarations.

        Returns:
            The IR module text

        Raises:
            EmitError: On the first semantic error; no partial IR is returned
        """
        self._reset()

        self._collect_structs()
        self._collect_functions()

        for decl in self.fn_decls:
            self._emit_function(decl)

        ir = str(self._module)
        logger.debug(f"emitted IR for {self.filename}:\n{ir}")
        return ir

    # =========================================================================
    # Pass 1: Declarations
    # =========================================================================

    def _collect_structs(self) -> None:
        decls: dict[str, StructDecl] = {}
        for decl in self.struct_decls:
            if decl.name in decls:
                raise DuplicateDeclarationError(decl.name, decl.location, what="struct")
            decls[decl.name] = decl

        # Resolve in declaration order; dependencies are resolved (and
        # emitted) first.
        for decl in self.struct_decls:
            self._resolve_layout(decl.name, decls, [], decl.location)

    def _resolve_layout(
        self,
        name: str,
        decls: dict[str, StructDecl],
        visiting: list[str],
        location: SourceLocation,
    ) -> StructLayout:
        if name in self._layouts:
            return self._layouts[name]

        decl = decls.get(name)
        if decl is None:
            raise UnresolvedTypeError(name, location)
        if name in visiting:
            chain = " -> ".join(visiting + [name])
            raise UnresolvedTypeError(
                name,
                decl.location,
                hint=f"struct contains itself by value ({chain})",
            )

        visiting.append(name)
        layout = StructLayout(name)
        typedef = qbe.TypeDef(name)
        seen: set[str] = set()

        for struct_field in decl.fields:
            if struct_field.name in seen:
                raise DuplicateDeclarationError(
                    struct_field.name, struct_field.location, what="field"
                )
            seen.add(struct_field.name)

            field_type = struct_field.field_type
            if field_type.is_void:
                raise VoidUsageError("a field type", struct_field.location)

            if field_type.is_struct:
                nested = self._resolve_layout(
                    field_type.struct_name, decls, visiting, struct_field.location
                )
                size = nested.size
                typedef.items.append((qbe.aggregate(nested.name), 1))
            else:
                size = SCALAR_SIZE
                typedef.items.append((self._ir_type(field_type, struct_field.location), 1))

            layout.fields.append((struct_field.name, field_type, layout.size))
            layout.size += size

        visiting.pop()
        self._layouts[name] = layout
        self._module.add_type(typedef)
        logger.log(TRACE, f"struct {name}: {layout.size} bytes, {len(layout.fields)} field(s)")
        return layout

    def _collect_functions(self) -> None:
        for decl in self.fn_decls:
            if decl.name in self._functions:
                raise DuplicateDeclarationError(decl.name, decl.location, what="function")

            for param in decl.parameters:
                if param.param_type.is_void:
                    raise VoidUsageError("a parameter type", param.location)
                self._check_type_exists(param.param_type, param.location)
            self._check_type_exists(decl.return_type, decl.location)

            self._functions[decl.name] = decl

    def _check_type_exists(self, eve_type: EveType, location: SourceLocation) -> None:
        if eve_type.is_struct and eve_type.struct_name not in self._layouts:
            raise UnresolvedTypeError(eve_type.struct_name, location)

    # =========================================================================
    # Types, Temporaries and Labels
    # =========================================================================

    def _ir_type(self, eve_type: EveType, location: Optional[SourceLocation] = None) -> qbe.Type:
        """IR type used in signatures and data; aggregates for structs."""
        if eve_type.kind == TypeKind.INT:
            return qbe.LONG
        if eve_type.kind == TypeKind.FLOAT:
            return qbe.DOUBLE
        if eve_type.kind == TypeKind.STRING:
            return qbe.LONG
        if eve_type.kind == TypeKind.STRUCT:
            if eve_type.struct_name not in self._layouts:
                raise UnresolvedTypeError(eve_type.struct_name, location)
            return qbe.aggregate(eve_type.struct_name)
        raise VoidUsageError("a value type", location)

    def _new_tmp(self) -> qbe.Temporary:
        self._tmp_counter += 1
        return qbe.Temporary(f"tmp.{self._tmp_counter}")

    def _new_label_id(self) -> int:
        self._label_counter += 1
        return self._label_counter

    def _assign(self, ty: qbe.Type, instr: qbe.Instr) -> qbe.Temporary:
        """Emit ``%tmp.N =ty instr`` and return the new temporary."""
        tmp = self._new_tmp()
        self._function.assign_instr(tmp, ty, instr)
        return tmp

    def _add_instr(self, instr: qbe.Instr) -> None:
        self._function.add_instr(instr)

    def _current_block_jumps(self) -> bool:
        return self._function.last_block.jumps()

    def _open_block(self, label: str) -> None:
        self._function.add_block(label)

    def _ensure_open_block(self) -> None:
        """Start an unreachable block if the current one is already terminated."""
        if self._current_block_jumps():
            label = f"dead.{self._new_label_id()}"
            self._open_block(label)
            self._unreachable.add(label)

    # =========================================================================
    # Scopes
    # =========================================================================

    def _push_scope(self) -> None:
        self._scopes.append({})

    def _pop_scope(self) -> None:
        self._scopes.pop()

    def _declare(self, name: str, binding: Binding, location: SourceLocation, what: str = "variable") -> None:
        scope = self._scopes[-1]
        if name in scope:
            raise DuplicateDeclarationError(name, location, what=what)
        scope[name] = binding
        logger.log(TRACE, f"bind {name}: {binding.eve_type} = {binding.value}")

    def _lookup(self, name: str, location: SourceLocation) -> Binding:
        """Resolve a name innermost scope first."""
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]

        visible = {n for scope in self._scopes for n in scope}
        similar = difflib.get_close_matches(name, sorted(visible), n=3)
        raise UndeclaredIdentifierError(name, location, similar)

    # =========================================================================
    # Functions
    # =========================================================================

    def _emit_function(self, decl: FnDecl) -> None:
        logger.log(TRACE, f"emitting fn {decl.name}")

        self._current_decl = decl
        self._scopes = []
        self._loop_stack = []
        self._unreachable = set()
        self._push_scope()

        params = []
        for param in decl.parameters:
            ir_type = self._ir_type(param.param_type, param.location)
            tmp = qbe.Temporary(f"arg.{param.name}")
            self._declare(param.name, Binding(param.param_type, tmp), param.location, what="parameter")
            params.append((ir_type, tmp))

        return_type = None
        if self._returns_exit_status(decl):
            return_type = qbe.WORD
        elif not decl.return_type.is_void:
            return_type = self._ir_type(decl.return_type, decl.location)

        self._function = qbe.Function(qbe.Linkage.public(), decl.name, params, return_type)
        self._open_block(ENTRY_LABEL)

        for stmt in decl.body:
            self._emit_statement(stmt)

        last = self._function.last_block
        if not last.jumps():
            if decl.return_type.is_void:
                self._add_instr(self._void_return(decl))
            elif last.label in self._unreachable:
                self._add_instr(qbe.Instr("hlt"))
            else:
                raise MissingReturnError(decl.name, str(decl.return_type), decl.location)

        self._pop_scope()
        self._module.add_function(self._function)
        self._function = None

    @staticmethod
    def _returns_exit_status(decl: FnDecl) -> bool:
        """A void ``main`` still has to give the process an exit status."""
        return decl.name == "main" and decl.return_type.is_void

    def _void_return(self, decl: FnDecl) -> qbe.Instr:
        if self._returns_exit_status(decl):
            return qbe.ret(qbe.Const(0))
        return qbe.ret()

    # =========================================================================
    # Statements
    # =========================================================================

    def _emit_statement(self, stmt: Statement) -> None:
        self._ensure_open_block()
        logger.log(TRACE, f"lowering {stmt!r}")

        if isinstance(stmt, BlockStmt):
            self._emit_block(stmt)
        elif isinstance(stmt, LetStmt):
            self._emit_let(stmt)
        elif isinstance(stmt, StructInitStmt):
            self._emit_struct_init(stmt)
        elif isinstance(stmt, LoopStmt):
            self._emit_loop(stmt)
        elif isinstance(stmt, BreakStmt):
            self._emit_break(stmt)
        elif isinstance(stmt, IfStmt):
            self._emit_if(stmt)
        elif isinstance(stmt, PrintStmt):
            self._emit_print(stmt)
        elif isinstance(stmt, ReturnStmt):
            self._emit_return(stmt)
        elif isinstance(stmt, ExpressionStmt):
            self._emit_expression(stmt.expression)
        else:
            raise TypeError(f"unhandled statement node {type(stmt).__name__}")

    def _emit_block(self, block: BlockStmt) -> None:
        self._push_scope()
        for stmt in block.statements:
            self._emit_statement(stmt)
        self._pop_scope()

    def _emit_scoped(self, stmt: Statement) -> None:
        """Lower a branch statement in its own scope."""
        self._push_scope()
        self._emit_statement(stmt)
        self._pop_scope()

    def _emit_let(self, stmt: LetStmt) -> None:
        eve_type, value = self._emit_value(stmt.initializer, "a variable initializer")
        stmt.resolved_type = eve_type
        self._declare(stmt.name, Binding(eve_type, value), stmt.location)

    def _emit_struct_init(self, stmt: StructInitStmt) -> None:
        """
        Allocate storage for a struct and store each initializer at its
        field offset.

        Every declared field must be initialized exactly once; unknown
        field names are rejected.
        """
        layout = self._layouts.get(stmt.struct_name)
        if layout is None:
            raise UnresolvedTypeError(stmt.struct_name, stmt.location)

        initialized: set[str] = set()
        for init in stmt.fields:
            if layout.lookup(init.name) is None:
                raise EveTypeError(
                    f"struct '{layout.name}' has no field '{init.name}'",
                    location=init.location,
                )
            if init.name in initialized:
                raise DuplicateDeclarationError(init.name, init.location, what="field initializer")
            initialized.add(init.name)

        missing = [name for name, _, _ in layout.fields if name not in initialized]
        if missing:
            names = ", ".join(f"'{name}'" for name in missing)
            raise EveTypeError(
                f"missing field(s) {names} in initializer of '{layout.name}'",
                location=stmt.location,
            )

        base = self._assign(qbe.LONG, qbe.Instr("alloc8", (qbe.Const(layout.size),)))

        for init in stmt.fields:
            _, field_type, offset = layout.lookup(init.name)
            value_type, value = self._emit_value(init.value, f"field '{init.name}'")
            value = self._coerce(value_type, value, field_type, f"field '{init.name}'", init.location)
            init.resolved_type = field_type

            address = base
            if offset:
                address = self._assign(qbe.LONG, qbe.Instr("add", (base, qbe.Const(offset))))

            if field_type.is_struct:
                size = self._layouts[field_type.struct_name].size
                self._add_instr(qbe.blit(value, address, size))
            else:
                self._add_instr(qbe.store(self._ir_type(field_type), value, address))

        stmt.resolved_type = struct_type(layout.name)
        self._declare(stmt.name, Binding(stmt.resolved_type, base), stmt.location)

    def _emit_if(self, stmt: IfStmt) -> None:
        condition = self._emit_condition(stmt.condition)

        n = self._new_label_id()
        then_label = f"if.{n}.then"
        else_label = f"if.{n}.else"
        end_label = f"if.{n}.end"

        false_target = else_label if stmt.else_branch is not None else end_label
        self._add_instr(qbe.jnz(condition, then_label, false_target))

        self._open_block(then_label)
        self._emit_scoped(stmt.then_branch)
        reaches_end = not self._current_block_jumps()
        if reaches_end:
            self._add_instr(qbe.jmp(end_label))

        if stmt.else_branch is None:
            reaches_end = True
        else:
            self._open_block(else_label)
            self._emit_scoped(stmt.else_branch)
            if not self._current_block_jumps():
                self._add_instr(qbe.jmp(end_label))
                reaches_end = True

        if reaches_end:
            self._open_block(end_label)

    def _emit_condition(self, expr: Expression) -> qbe.Value:
        """
        Lower a condition to a 0/1 value; non-zero is true.

        ``jnz`` only tests the low word of its operand, so i64 conditions
        are compared against zero first.
        """
        eve_type, value = self._emit_value(expr, "a condition")
        if eve_type.is_float:
            return self._assign(qbe.LONG, qbe.Instr("cned", (value, FLOAT_ZERO)))
        if eve_type.kind != TypeKind.INT:
            raise EveTypeError(
                f"condition must be numeric, got '{eve_type}'",
                expected_type="i64",
                actual_type=str(eve_type),
                location=expr.location,
            )
        return self._assign(qbe.LONG, qbe.Instr("cnel", (value, qbe.Const(0))))

    def _emit_loop(self, stmt: LoopStmt) -> None:
        n = self._new_label_id()
        body_label = f"loop.{n}.body"
        context = LoopContext(f"loop.{n}.end")

        self._add_instr(qbe.jmp(body_label))
        self._open_block(body_label)

        self._loop_stack.append(context)
        self._emit_block(stmt.body)
        self._loop_stack.pop()

        if not self._current_block_jumps():
            self._add_instr(qbe.jmp(body_label))

        self._open_block(context.exit_label)
        if not context.broken:
            self._unreachable.add(context.exit_label)

    def _emit_break(self, stmt: BreakStmt) -> None:
        if not self._loop_stack:
            raise InvalidBreakError(stmt.location)
        context = self._loop_stack[-1]
        context.broken = True
        self._add_instr(qbe.jmp(context.exit_label))

    def _emit_print(self, stmt: PrintStmt) -> None:
        eve_type, value = self._emit_value(stmt.value, "a print argument")
        stmt.resolved_type = eve_type

        if eve_type.kind not in PRINT_FORMATS:
            raise EveTypeError(
                f"cannot print a value of type '{eve_type}'",
                location=stmt.location,
            )

        fmt = self._format_global(eve_type.kind)
        arg_type = qbe.DOUBLE if eve_type.is_float else qbe.LONG
        self._add_instr(qbe.Call(
            name="printf",
            arguments=((qbe.LONG, fmt), (arg_type, value)),
            variadic_at=1,
        ))

    def _emit_return(self, stmt: ReturnStmt) -> None:
        decl = self._current_decl
        expected = decl.return_type

        if expected.is_void:
            if stmt.value is not None:
                raise EveTypeError(
                    f"void function '{decl.name}' cannot return a value",
                    location=stmt.location,
                )
            self._add_instr(self._void_return(decl))
            return

        if stmt.value is None:
            raise EveTypeError(
                f"function '{decl.name}' must return a value",
                expected_type=str(expected),
                actual_type="void",
                location=stmt.location,
            )

        eve_type, value = self._emit_value(stmt.value, "a return value")
        value = self._coerce(eve_type, value, expected, "return value", stmt.location)
        stmt.resolved_type = expected
        self._add_instr(qbe.ret(value))

    # =========================================================================
    # Module Data
    # =========================================================================

    def _format_global(self, kind: TypeKind) -> qbe.Global:
        """The printf format string for a value kind, defined once per module."""
        name, text = PRINT_FORMATS[kind]
        if name not in self._formats:
            self._formats.add(name)
            self._module.add_data(qbe.DataDef(
                qbe.Linkage.private(),
                name,
                [(qbe.BYTE, text), (qbe.BYTE, 0)],
            ))
        return qbe.Global(name)

    def _string_global(self, text: str) -> qbe.Global:
        """A null-terminated private data definition for a string literal."""
        name = self._strings.get(text)
        if name is None:
            name = f"str.{len(self._strings) + 1}"
            self._strings[text] = name
            self._module.add_data(qbe.DataDef(
                qbe.Linkage.private(),
                name,
                [(qbe.BYTE, _data_string(text)), (qbe.BYTE, 0)],
            ))
        return qbe.Global(name)

    # =========================================================================
    # Expressions
    # =========================================================================

    def _emit_value(self, expr: Expression, context: str) -> tuple[EveType, qbe.Value]:
        """Lower an expression that must produce a value."""
        eve_type, value = self._emit_expression(expr)
        if eve_type.is_void:
            raise VoidUsageError(context, expr.location)
        return eve_type, value

    def _emit_expression(self, expr: Expression) -> tuple[EveType, Optional[qbe.Value]]:
        """
        Lower an expression bottom-up.

        Returns:
            (type, value); value is None only for calls of void functions
        """
        if isinstance(expr, LiteralExpr):
            result = self._emit_literal(expr)
        elif isinstance(expr, VariableExpr):
            binding = self._lookup(expr.name, expr.location)
            result = (binding.eve_type, binding.value)
        elif isinstance(expr, GroupingExpr):
            eve_type, value = self._emit_value(expr.inner, "a grouped expression")
            result = (eve_type, self._assign(self._tmp_type(eve_type), qbe.Instr("copy", (value,))))
        elif isinstance(expr, BinaryExpr):
            result = self._emit_binary(expr)
        elif isinstance(expr, UnaryExpr):
            result = self._emit_unary(expr)
        elif isinstance(expr, CallExpr):
            result = self._emit_call(expr)
        elif isinstance(expr, NativeCallExpr):
            result = self._emit_native_call(expr)
        else:
            raise TypeError(f"unhandled expression node {type(expr).__name__}")

        expr.resolved_type = result[0]
        return result

    def _tmp_type(self, eve_type: EveType) -> qbe.Type:
        """IR type of a temporary holding a value of eve_type."""
        return self._ir_type(eve_type).into_base

    def _emit_literal(self, expr: LiteralExpr) -> tuple[EveType, qbe.Value]:
        if expr.kind == LiteralKind.INT:
            return TYPE_I64, self._assign(qbe.LONG, qbe.Instr("copy", (qbe.Const(expr.value),)))
        if expr.kind == LiteralKind.FLOAT:
            return TYPE_F64, self._assign(qbe.DOUBLE, qbe.Instr("copy", (qbe.FloatConst(expr.value),)))
        if expr.kind == LiteralKind.BOOL:
            const = qbe.Const(1 if expr.value else 0)
            return TYPE_I64, self._assign(qbe.LONG, qbe.Instr("copy", (const,)))
        if expr.kind == LiteralKind.NULL:
            return TYPE_I64, self._assign(qbe.LONG, qbe.Instr("copy", (qbe.Const(0),)))
        if expr.kind == LiteralKind.STRING:
            data = self._string_global(expr.value)
            return TYPE_STR, self._assign(qbe.LONG, qbe.Instr("copy", (data,)))
        raise TypeError(f"unhandled literal kind {expr.kind}")

    def _require_numeric(self, eve_type: EveType, symbol: str, location: SourceLocation) -> None:
        if not eve_type.is_numeric:
            raise EveTypeError(
                f"operator '{symbol}' cannot be applied to '{eve_type}'",
                location=location,
            )

    def _emit_binary(self, expr: BinaryExpr) -> tuple[EveType, qbe.Value]:
        """
        Lower a binary operation: left first, then right.

        Mixed i64/f64 operands are promoted to f64. Comparisons produce an
        i64 0/1 whatever their operand type.
        """
        symbol = BINARY_SYMBOLS[expr.operator]
        left_type, left = self._emit_value(expr.left, f"an operand of '{symbol}'")
        right_type, right = self._emit_value(expr.right, f"an operand of '{symbol}'")
        self._require_numeric(left_type, symbol, expr.left.location)
        self._require_numeric(right_type, symbol, expr.right.location)

        operand_type = promote(left_type, right_type)
        left = self._coerce(left_type, left, operand_type, "operand", expr.left.location)
        right = self._coerce(right_type, right, operand_type, "operand", expr.right.location)
        ir_type = self._tmp_type(operand_type)

        if expr.operator.is_comparison:
            table = FLOAT_COMPARISONS if operand_type.is_float else INT_COMPARISONS
            opcode = f"{table[expr.operator]}{ir_type}"
            return TYPE_I64, self._assign(qbe.LONG, qbe.Instr(opcode, (left, right)))

        if expr.operator == BinaryOperator.MODULO and operand_type.is_float:
            raise EveTypeError(
                "operator '%' requires integer operands",
                expected_type="i64",
                actual_type="f64",
                location=expr.location,
            )

        opcode = ARITHMETIC_OPCODES[expr.operator]
        return operand_type, self._assign(ir_type, qbe.Instr(opcode, (left, right)))

    def _emit_unary(self, expr: UnaryExpr) -> tuple[EveType, qbe.Value]:
        eve_type, operand = self._emit_value(expr.operand, "a unary operand")
        symbol = UNARY_SYMBOLS[expr.operator]
        self._require_numeric(eve_type, symbol, expr.location)
        ir_type = self._tmp_type(eve_type)

        if expr.operator == UnaryOperator.NEGATE:
            return eve_type, self._assign(ir_type, qbe.Instr("neg", (operand,)))
        if expr.operator == UnaryOperator.POSITIVE:
            return eve_type, self._assign(ir_type, qbe.Instr("copy", (operand,)))

        zero = FLOAT_ZERO if eve_type.is_float else qbe.Const(0)
        return TYPE_I64, self._assign(qbe.LONG, qbe.Instr(f"ceq{ir_type}", (operand, zero)))

    def _coerce(
        self,
        actual: EveType,
        value: qbe.Value,
        expected: EveType,
        context: str,
        location: SourceLocation,
    ) -> qbe.Value:
        """
        Convert value to the expected type.

        Only i64 -> f64 widening is implicit; anything else that does
        not match exactly is a type error.
        """
        if actual == expected:
            return value
        if actual.kind == TypeKind.INT and expected.is_float:
            return self._assign(qbe.DOUBLE, qbe.Instr("sltof", (value,)))
        raise EveTypeError(
            f"mismatched types in {context}",
            expected_type=str(expected),
            actual_type=str(actual),
            location=location,
        )

    def _callee_name(self, expr: Expression) -> str:
        if not isinstance(expr, VariableExpr):
            raise EveTypeError("callee must be a function name", location=expr.location)
        return expr.name

    def _emit_call(self, expr: CallExpr) -> tuple[EveType, Optional[qbe.Value]]:
        """Lower a call of a function defined in this unit, checking arity and types."""
        name = self._callee_name(expr.callee)
        decl = self._functions.get(name)
        if decl is None:
            similar = difflib.get_close_matches(name, sorted(self._functions), n=3)
            raise UndeclaredIdentifierError(name, expr.callee.location, similar)

        if len(expr.arguments) != len(decl.parameters):
            raise ArgumentCountError(name, len(decl.parameters), len(expr.arguments), expr.location)

        arguments = []
        for argument, param in zip(expr.arguments, decl.parameters):
            arg_type, value = self._emit_value(argument, f"an argument of '{name}'")
            value = self._coerce(
                arg_type, value, param.param_type, f"argument '{param.name}' of '{name}'",
                argument.location,
            )
            arguments.append((self._ir_type(param.param_type), value))

        call = qbe.Call(name=name, arguments=tuple(arguments))
        if decl.return_type.is_void:
            self._add_instr(call)
            return TYPE_VOID, None

        return decl.return_type, self._assign(self._ir_type(decl.return_type), call)

    def _emit_native_call(self, expr: NativeCallExpr) -> tuple[EveType, qbe.Value]:
        """
        Lower a call of an externally linked symbol.

        Nothing is known about the callee: arguments are passed with the
        IR type of their value and the result is taken as an i64.
        """
        name = self._callee_name(expr.callee)
        arguments = []
        for argument in expr.arguments:
            arg_type, value = self._emit_value(argument, f"an argument of '{name}'")
            arguments.append((self._ir_type(arg_type), value))

        call = qbe.Call(name=name, arguments=tuple(arguments))
        return TYPE_I64, self._assign(qbe.LONG, call)


# =============================================================================
# Convenience Functions
# =============================================================================

def emit(struct_decls: list[StructDecl], fn_decls: list[FnDecl], filename: str = "<input>") -> str:
    """Lower declarations to IR text. Raises EmitError on the first error."""
    return Emitter(struct_decls, fn_decls, filename).emit()
