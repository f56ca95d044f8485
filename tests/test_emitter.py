"""
Evelin Emitter Test Suite
=========================

Tests for lowering declarations to QBE IR: expressions, control flow,
structs, calls and every fatal emit error.
"""

import re

import pytest

from evelin.lexer import tokenize
from evelin.parser import parse
from evelin.emitter import Emitter, emit
from evelin.types import TYPE_F64, TYPE_I64
from evelin.errors import (
    EmitError,
    UnresolvedTypeError,
    UndeclaredIdentifierError,
    DuplicateDeclarationError,
    InvalidBreakError,
    MissingReturnError,
    VoidUsageError,
    EveTypeError,
    ArgumentCountError,
)


def parsed(source: str):
    result = parse(tokenize(source, "test.eve"), "test.eve")
    assert result.error_count == 0, [str(e) for e in result.errors]
    return result


def emit_source(source: str) -> str:
    result = parsed(source)
    return emit(result.struct_decls, result.fn_decls, "test.eve")


# =============================================================================
# Basic Lowering
# =============================================================================

class TestBasics:
    """Whole-module output and determinism."""

    def test_return_constant(self):
        """The canonical program lowers to one exported function."""
        ir = emit_source("fn main() -> i64 { return 42; }")
        assert ir == (
            "export function l $main() {\n"
            "@start\n"
            "\t%tmp.1 =l copy 42\n"
            "\tret %tmp.1\n"
            "}\n"
        )

    def test_deterministic(self):
        """Emitting the same AST twice gives byte-identical IR."""
        source = """
            struct Point { x: i64, y: f64 }
            fn norm(p: Point) -> f64 { return 1.0; }
            fn main() -> void {
                let p = Point { x: 1, y: 2.0 };
                loop { if (1 < 2) break; else print "x"; }
                print norm(p);
            }
        """
        result = parsed(source)
        emitter = Emitter(result.struct_decls, result.fn_decls)
        first = emitter.emit()
        second = emitter.emit()
        third = Emitter(result.struct_decls, result.fn_decls).emit()
        assert first == second == third

    def test_temporaries_unique(self):
        """Each temporary is assigned exactly once in the module."""
        ir = emit_source("""
            fn a(x: i64) -> i64 { return (x + 1) * 2; }
            fn b(x: i64) -> i64 { return -x + a(x); }
        """)
        defs = re.findall(r"(%tmp\.\d+) =", ir)
        assert defs
        assert len(defs) == len(set(defs))

    def test_variable_reuses_temporary(self):
        """A bare variable reference is not copied."""
        ir = emit_source("fn id(x: i64) -> i64 { return x; }")
        assert "\tret %arg.x\n" in ir
        assert "copy" not in ir

    def test_grouping_copies(self):
        ir = emit_source("fn id(x: i64) -> i64 { return (x); }")
        assert "%tmp.1 =l copy %arg.x" in ir

    def test_resolved_types_recorded(self):
        """Lowering records the resolved type on the nodes it visits."""
        result = parsed("fn main() -> void { let y = 1.5; let z = 1 + 2; }")
        emit(result.struct_decls, result.fn_decls)
        body = result.fn_decls[0].body
        assert body[0].resolved_type == TYPE_F64
        assert body[1].resolved_type == TYPE_I64
        assert body[1].initializer.resolved_type == TYPE_I64


# =============================================================================
# Expressions
# =============================================================================

class TestExpressions:
    """Arithmetic, promotion, comparisons and literals."""

    def test_integer_arithmetic(self):
        ir = emit_source("fn f(a: i64, b: i64) -> i64 { return a % b - a / b; }")
        assert "=l rem %arg.a, %arg.b" in ir
        assert "=l div %arg.a, %arg.b" in ir
        assert "=l sub" in ir

    def test_float_promotion(self):
        """Mixing i64 and f64 widens the integer operand."""
        ir = emit_source("fn f() -> f64 { return 1 + 2.5; }")
        assert "%tmp.2 =d copy d_2.5" in ir
        assert "%tmp.3 =d sltof %tmp.1" in ir
        assert "%tmp.4 =d add %tmp.3, %tmp.2" in ir
        assert "export function d $f()" in ir

    def test_return_widening(self):
        """Returning an i64 from an f64 function widens it."""
        ir = emit_source("fn f() -> f64 { return 1; }")
        assert "=d sltof %tmp.1" in ir

    def test_narrowing_rejected(self):
        """f64 to i64 is never implicit."""
        with pytest.raises(EveTypeError) as exc_info:
            emit_source("fn f() -> i64 { return 2.5; }")
        assert exc_info.value.expected_type == "i64"
        assert exc_info.value.actual_type == "f64"

    def test_integer_comparison(self):
        """Comparisons produce an i64 0/1."""
        ir = emit_source("fn f(a: i64) -> i64 { return a <= 3; }")
        assert "=l cslel %arg.a, %tmp.1" in ir

    def test_float_comparison(self):
        ir = emit_source("fn f(a: f64) -> i64 { return a > 0.5; }")
        assert "=l cgtd %arg.a, %tmp.1" in ir

    def test_unary(self):
        ir = emit_source("fn f(x: i64) -> i64 { return -x + +x + !x; }")
        assert "=l neg %arg.x" in ir
        assert "=l copy %arg.x" in ir
        assert "=l ceql %arg.x, 0" in ir

    def test_bool_and_null(self):
        """true/false/null are i64 constants."""
        ir = emit_source("fn f() -> i64 { return true + false + null; }")
        assert "%tmp.1 =l copy 1" in ir
        assert "%tmp.2 =l copy 0" in ir
        assert "%tmp.4 =l copy 0" in ir

    def test_string_literal_data(self):
        """Strings become private null-terminated data."""
        ir = emit_source('fn main() -> void { print "hi"; print "hi"; }')
        assert 'data $str.1 = { b "hi", b 0 }' in ir
        assert ir.count("data $str.") == 1
        assert "%tmp.1 =l copy $str.1" in ir

    def test_string_escapes_pass_through(self):
        r"""Source escapes such as \n reach the data item unchanged."""
        ir = emit_source(r'fn main() -> void { print "a\tb\n"; }')
        assert r'data $str.1 = { b "a\tb\n", b 0 }' in ir

    def test_string_trailing_backslash(self):
        """A trailing backslash is doubled so the data string stays closed."""
        ir = emit_source('fn main() -> void { print "a\\"; print "b\\\\"; }')
        assert 'data $str.1 = { b "a\\\\", b 0 }' in ir
        assert 'data $str.2 = { b "b\\\\", b 0 }' in ir

    def test_raw_newline_in_string(self):
        ir = emit_source('fn main() -> void { print "a\nb"; }')
        assert 'data $str.1 = { b "a\\nb", b 0 }' in ir

    def test_float_modulo_rejected(self):
        with pytest.raises(EveTypeError):
            emit_source("fn f() -> f64 { return 1.5 % 2.0; }")

    def test_arithmetic_on_string_rejected(self):
        with pytest.raises(EveTypeError):
            emit_source('fn f() -> i64 { return "a" + 1; }')


# =============================================================================
# Statements and Control Flow
# =============================================================================

class TestPrint:
    """print dispatches on the value type."""

    def test_print_int_format_declared_once(self):
        ir = emit_source("fn main() -> void { print 1; print 2; }")
        assert ir.count("data $fmt.int") == 1
        assert 'data $fmt.int = { b "%ld\\n", b 0 }' in ir
        assert "call $printf(l $fmt.int, ..., l %tmp.1)" in ir

    def test_print_float(self):
        ir = emit_source("fn main() -> void { print 1.5; }")
        assert "call $printf(l $fmt.float, ..., d %tmp.1)" in ir

    def test_print_string(self):
        ir = emit_source('fn main() -> void { print "x"; }')
        assert "call $printf(l $fmt.str, ..., l %tmp.1)" in ir

    def test_print_struct_rejected(self):
        with pytest.raises(EveTypeError):
            emit_source("struct S { a: i64 } fn main() -> void { let s = S { a: 1 }; print s; }")


class TestControlFlow:
    """if, loop, break and return."""

    def test_if_else_both_return(self):
        """No join block is created when both branches return."""
        ir = emit_source("""
            fn f(x: i64) -> i64 {
                if (x < 1) { return 1; } else { return 2; }
            }
        """)
        assert "%tmp.3 =l cnel %tmp.2, 0\n\tjnz %tmp.3, @if.1.then, @if.1.else" in ir
        assert "@if.1.then" in ir and "@if.1.else" in ir
        assert "@if.1.end" not in ir

    def test_if_without_else(self):
        """A missing else falls through to the join block."""
        ir = emit_source("fn main() -> void { if (1) print 1; }")
        assert "jnz %tmp.2, @if.1.then, @if.1.end" in ir
        assert "jmp @if.1.end" in ir
        assert "@if.1.end\n\tret 0\n}" in ir

    def test_wide_integer_condition(self):
        """i64 conditions are compared with zero; jnz alone only sees the low word."""
        ir = emit_source("fn main() -> i64 { if (4294967296) { return 1; } return 0; }")
        assert "%tmp.1 =l copy 4294967296" in ir
        assert "%tmp.2 =l cnel %tmp.1, 0\n\tjnz %tmp.2, @if.1.then, @if.1.end" in ir

    def test_float_condition(self):
        ir = emit_source("fn main() -> void { if (0.5) print 1; }")
        assert "%tmp.2 =l cned %tmp.1, d_0.0\n\tjnz %tmp.2," in ir

    def test_loop_with_break(self):
        """Loop body gets a back edge; break jumps to the exit label."""
        ir = emit_source("""
            fn main() -> void {
                let i = 0;
                loop { if (i) break; print i; }
            }
        """)
        assert ir.count("jmp @loop.1.body") == 2
        assert "jmp @loop.1.end" in ir
        assert "@loop.1.end\n\tret 0" in ir

    def test_break_outside_loop(self):
        """break with no enclosing loop is a fatal error."""
        with pytest.raises(InvalidBreakError) as exc_info:
            emit_source("fn main() -> void {\n  break;\n}")
        assert exc_info.value.line == 2
        assert exc_info.value.phase == "emit"

    def test_break_in_nested_loop_targets_inner(self):
        ir = emit_source("fn main() -> void { loop { loop { break; } break; } }")
        assert "jmp @loop.2.end" in ir
        assert "jmp @loop.1.end" in ir

    def test_missing_return(self):
        """A non-void function that can fall through is rejected."""
        with pytest.raises(MissingReturnError):
            emit_source("fn f(x: i64) -> i64 { if (x) { return 1; } }")

    def test_implicit_void_return(self):
        """A void function without return gets an implicit one."""
        ir = emit_source("fn helper() -> void { print 1; }")
        assert ir.endswith("\tret\n}\n")
        assert "export function $helper()" in ir

    def test_void_main_exits_zero(self):
        """A void main returns a word 0."""
        ir = emit_source("fn main() -> void { }")
        assert "export function w $main() {\n@start\n\tret 0\n}" in ir

    def test_infinite_loop_needs_no_return(self):
        """A loop without break never falls through."""
        ir = emit_source("fn f() -> i64 { loop { print 1; } }")
        assert "hlt" in ir

    def test_code_after_return_gets_own_block(self):
        """Statements after a terminator go into a fresh block."""
        ir = emit_source("fn f() -> void { return; print 1; }")
        assert re.search(r"\tret\n@dead\.\d+\n", ir)

    def test_void_function_returning_value(self):
        with pytest.raises(EveTypeError):
            emit_source("fn f() -> void { return 1; }")

    def test_non_void_empty_return(self):
        with pytest.raises(EveTypeError):
            emit_source("fn f() -> i64 { return; }")


# =============================================================================
# Names and Scopes
# =============================================================================

class TestScopes:
    """Name binding and resolution."""

    def test_undeclared_identifier(self):
        """Unknown names are fatal and offer close matches."""
        with pytest.raises(UndeclaredIdentifierError) as exc_info:
            emit_source("fn main() -> i64 { let count = 1; return conut; }")
        assert exc_info.value.identifier == "conut"
        assert "count" in exc_info.value.similar_identifiers

    def test_block_scope_ends(self):
        """A name bound inside a block is gone after it."""
        with pytest.raises(UndeclaredIdentifierError):
            emit_source("fn main() -> i64 { { let x = 1; } return x; }")

    def test_shadowing_in_inner_scope(self):
        """An inner block may rebind an outer name."""
        ir = emit_source("fn main() -> i64 { let x = 1; { let x = 2.5; print x; } return x; }")
        assert "ret %tmp.1" in ir

    def test_duplicate_in_same_scope(self):
        with pytest.raises(DuplicateDeclarationError):
            emit_source("fn main() -> void { let x = 1; let x = 2; }")

    def test_parameter_redeclared(self):
        with pytest.raises(DuplicateDeclarationError):
            emit_source("fn f(a: i64, a: i64) -> void { }")

    def test_duplicate_function(self):
        with pytest.raises(DuplicateDeclarationError):
            emit_source("fn f() -> void { } fn f() -> void { }")

    def test_branch_scope(self):
        """A let in an unbraced branch does not leak out of it."""
        with pytest.raises(UndeclaredIdentifierError):
            emit_source("fn main() -> i64 { if (1) let y = 2; return y; }")


# =============================================================================
# Structs
# =============================================================================

class TestStructs:
    """Aggregate layout and initialization."""

    def test_struct_init_layout(self):
        """Fields are stored at cumulative offsets in declaration order."""
        ir = emit_source("""
            struct Point { x: i64, y: f64 }
            fn main() -> i64 { let p = Point { x: 1, y: 2.5 }; return 0; }
        """)
        assert "type :Point = { l, d }" in ir
        assert "\t%tmp.1 =l alloc8 16" in ir
        assert "\tstorel %tmp.2, %tmp.1" in ir
        assert "\t%tmp.4 =l add %tmp.1, 8" in ir
        assert "\tstored %tmp.3, %tmp.4" in ir

    def test_initializer_order_independent_of_layout(self):
        """Initializers may be written in any order; offsets follow the declaration."""
        ir = emit_source("""
            struct Point { x: i64, y: i64 }
            fn main() -> void { let p = Point { y: 7, x: 3 }; }
        """)
        assert "\t%tmp.3 =l add %tmp.1, 8\n\tstorel %tmp.2, %tmp.3" in ir
        assert "\tstorel %tmp.4, %tmp.1" in ir

    def test_nested_struct_dependency_order(self):
        """Nested aggregates are defined before use and copied with blit."""
        ir = emit_source("""
            struct Line { a: Point, b: Point }
            struct Point { x: i64, y: i64 }
            fn main() -> void {
                let p = Point { x: 1, y: 2 };
                let l = Line { a: p, b: p };
            }
        """)
        assert ir.index("type :Point") < ir.index("type :Line")
        assert "type :Line = { :Point, :Point }" in ir
        assert "\t%tmp.5 =l alloc8 32" in ir
        assert "\tblit %tmp.1, %tmp.5, 16" in ir
        assert "\tblit %tmp.1, %tmp.6, 16" in ir

    def test_int_widened_into_float_field(self):
        ir = emit_source("struct V { f: f64 } fn main() -> void { let v = V { f: 1 }; }")
        assert "=d sltof %tmp.2" in ir

    def test_struct_params_and_returns(self):
        """Structs travel by aggregate type in signatures."""
        ir = emit_source("""
            struct Point { x: i64 }
            fn origin() -> Point { let p = Point { x: 0 }; return p; }
            fn getx(p: Point) -> i64 { return 0; }
            fn main() -> i64 { return getx(origin()); }
        """)
        assert "export function :Point $origin()" in ir
        assert "export function l $getx(:Point %arg.p)" in ir
        assert re.search(r"(%tmp\.\d+) =:Point call \$origin\(\)", ir)
        assert re.search(r"call \$getx\(:Point %tmp\.\d+\)", ir)

    def test_unresolved_struct_init(self):
        """Initializing an unknown struct is fatal."""
        with pytest.raises(UnresolvedTypeError) as exc_info:
            emit_source("fn main() -> void {\n let p = Nope { };\n}")
        assert exc_info.value.type_name == "Nope"
        assert exc_info.value.line == 2

    def test_unresolved_field_type(self):
        with pytest.raises(UnresolvedTypeError):
            emit_source("struct A { b: Missing }")

    def test_unresolved_parameter_type(self):
        with pytest.raises(UnresolvedTypeError):
            emit_source("fn f(p: Ghost) -> void { }")

    def test_recursive_struct(self):
        """A struct containing itself by value has no layout."""
        with pytest.raises(UnresolvedTypeError) as exc_info:
            emit_source("struct A { b: B } struct B { a: A }")
        assert "contains itself" in str(exc_info.value)

    def test_duplicate_struct(self):
        with pytest.raises(DuplicateDeclarationError):
            emit_source("struct A { } struct A { }")

    def test_duplicate_field(self):
        with pytest.raises(DuplicateDeclarationError):
            emit_source("struct A { x: i64, x: f64 }")

    def test_unknown_field(self):
        with pytest.raises(EveTypeError):
            emit_source("struct A { x: i64 } fn main() -> void { let a = A { x: 1, y: 2 }; }")

    def test_missing_field(self):
        with pytest.raises(EveTypeError) as exc_info:
            emit_source("struct A { x: i64, y: i64 } fn main() -> void { let a = A { x: 1 }; }")
        assert "'y'" in str(exc_info.value)


# =============================================================================
# Calls and void
# =============================================================================

class TestCalls:
    """Local and external calls."""

    def test_forward_call(self):
        """Functions may call functions declared later."""
        ir = emit_source("""
            fn main() -> i64 { return inc(41); }
            fn inc(x: i64) -> i64 { return x + 1; }
        """)
        assert "%tmp.2 =l call $inc(l %tmp.1)" in ir

    def test_recursion(self):
        ir = emit_source("fn f(n: i64) -> i64 { if (n < 1) return 0; return f(n - 1); }")
        assert "call $f(l" in ir

    def test_argument_widening(self):
        ir = emit_source("fn half(x: f64) -> f64 { return x / 2.0; } fn main() -> void { print half(3); }")
        assert "=d sltof %tmp.3" in ir

    def test_argument_count(self):
        with pytest.raises(ArgumentCountError) as exc_info:
            emit_source("fn f(a: i64) -> i64 { return a; } fn main() -> i64 { return f(); }")
        assert exc_info.value.expected == 1
        assert exc_info.value.actual == 0

    def test_argument_type(self):
        with pytest.raises(EveTypeError):
            emit_source('fn f(a: i64) -> i64 { return a; } fn main() -> i64 { return f("s"); }')

    def test_unknown_function(self):
        with pytest.raises(UndeclaredIdentifierError):
            emit_source("fn main() -> i64 { return nope(); }")

    def test_void_call_statement(self):
        """A void call is fine as a statement."""
        ir = emit_source("fn g() -> void { } fn main() -> void { g(); }")
        assert "\tcall $g()\n" in ir

    def test_void_call_as_value(self):
        """Using a void call's result is illegal."""
        with pytest.raises(VoidUsageError):
            emit_source("fn g() -> void { } fn main() -> i64 { let x = g(); return 0; }")

    def test_void_parameter(self):
        with pytest.raises(VoidUsageError):
            emit_source("fn f(x: void) -> void { }")

    def test_void_field(self):
        with pytest.raises(VoidUsageError):
            emit_source("struct S { x: void }")

    def test_native_call(self):
        """extern calls pass arguments by their own type and yield i64."""
        ir = emit_source("fn main() -> i64 { return extern abs(0 - 5); }")
        assert "%tmp.4 =l call $abs(l %tmp.3)" in ir

    def test_native_call_mixed_arguments(self):
        ir = emit_source('fn main() -> void { extern printf("%f", 1.5); }')
        assert re.search(r"=l call \$printf\(l %tmp\.1, d %tmp\.2\)", ir)

    def test_all_emit_errors_share_base(self):
        with pytest.raises(EmitError):
            emit_source("fn main() -> void { break; }")
