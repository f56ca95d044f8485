"""
QBE IR Model Test Suite
=======================

Tests for rendering the IR object model to QBE text.
"""

from evelin import qbe


class TestTypesAndValues:
    """Base types, aggregates and value rendering."""

    def test_base_types(self):
        assert [str(t) for t in (qbe.WORD, qbe.LONG, qbe.SINGLE, qbe.DOUBLE, qbe.BYTE)] == [
            "w", "l", "s", "d", "b",
        ]

    def test_aggregate(self):
        """Aggregates render with ':' and are handled as pointers in temporaries."""
        point = qbe.aggregate("Point")
        assert str(point) == ":Point"
        assert point.size is None
        assert point.into_base == qbe.LONG

    def test_sizes(self):
        assert qbe.LONG.size == 8
        assert qbe.WORD.size == 4
        assert qbe.BYTE.size == 1

    def test_values(self):
        assert str(qbe.Temporary("tmp.1")) == "%tmp.1"
        assert str(qbe.Global("fmt.int")) == "$fmt.int"
        assert str(qbe.Const(42)) == "42"
        assert str(qbe.FloatConst(1.5)) == "d_1.5"
        assert str(qbe.Label("start")) == "@start"


class TestInstructions:
    """Instruction and statement rendering."""

    def test_assign(self):
        stmt = qbe.Assign(qbe.Temporary("tmp.3"), qbe.LONG,
                          qbe.Instr("add", (qbe.Temporary("tmp.1"), qbe.Temporary("tmp.2"))))
        assert str(stmt) == "%tmp.3 =l add %tmp.1, %tmp.2"

    def test_jumps(self):
        assert str(qbe.jmp("loop.1.body")) == "jmp @loop.1.body"
        assert str(qbe.jnz(qbe.Temporary("c"), "a", "b")) == "jnz %c, @a, @b"
        assert str(qbe.ret()) == "ret"
        assert str(qbe.ret(qbe.Const(0))) == "ret 0"
        assert qbe.ret().is_jump
        assert not qbe.Instr("add").is_jump

    def test_store_and_blit(self):
        assert str(qbe.store(qbe.DOUBLE, qbe.Temporary("v"), qbe.Temporary("p"))) == "stored %v, %p"
        assert str(qbe.store(qbe.aggregate("P"), qbe.Temporary("v"), qbe.Temporary("p"))) == "storel %v, %p"
        assert str(qbe.blit(qbe.Temporary("s"), qbe.Temporary("d"), 16)) == "blit %s, %d, 16"

    def test_variadic_call(self):
        """The '...' marker goes after the fixed arguments."""
        call = qbe.Call(
            name="printf",
            arguments=((qbe.LONG, qbe.Global("fmt.int")), (qbe.LONG, qbe.Temporary("tmp.1"))),
            variadic_at=1,
        )
        assert str(call) == "call $printf(l $fmt.int, ..., l %tmp.1)"

    def test_plain_call(self):
        call = qbe.Call(name="f", arguments=((qbe.aggregate("P"), qbe.Temporary("p")),))
        assert str(call) == "call $f(:P %p)"
        assert str(qbe.Call(name="g")) == "call $g()"


class TestBlocksAndFunctions:
    """Blocks, functions and modules."""

    def test_block_jumps(self):
        block = qbe.Block("start")
        assert not block.jumps()
        block.add_instr(qbe.Instr("call", ()))
        assert not block.jumps()
        block.add_instr(qbe.ret())
        assert block.jumps()

    def test_function_render(self):
        func = qbe.Function(qbe.Linkage.public(), "main", [], qbe.LONG)
        func.add_block("start")
        func.assign_instr(qbe.Temporary("tmp.1"), qbe.LONG, qbe.Instr("copy", (qbe.Const(42),)))
        func.add_instr(qbe.ret(qbe.Temporary("tmp.1")))
        assert str(func) == (
            "export function l $main() {\n"
            "@start\n"
            "\t%tmp.1 =l copy 42\n"
            "\tret %tmp.1\n"
            "}"
        )

    def test_function_without_return_type(self):
        func = qbe.Function(qbe.Linkage.private(), "f", [(qbe.DOUBLE, qbe.Temporary("arg.x"))])
        func.add_block("start")
        func.add_instr(qbe.ret())
        assert str(func).startswith("function $f(d %arg.x) {")

    def test_data_and_type_defs(self):
        data = qbe.DataDef(qbe.Linkage.private(), "fmt.int", [(qbe.BYTE, "%ld\\n"), (qbe.BYTE, 0)])
        assert str(data) == 'data $fmt.int = { b "%ld\\n", b 0 }'
        typedef = qbe.TypeDef("Point", [(qbe.LONG, 1), (qbe.DOUBLE, 1)])
        assert str(typedef) == "type :Point = { l, d }"
        assert str(qbe.TypeDef("Arr", [(qbe.LONG, 4)])) == "type :Arr = { l 4 }"

    def test_module_order(self):
        """Types come first, then data, then functions."""
        module = qbe.Module()
        func = qbe.Function(qbe.Linkage.public(), "main", [], qbe.WORD)
        func.add_block("start")
        func.add_instr(qbe.ret(qbe.Const(0)))
        module.add_function(func)
        module.add_data(qbe.DataDef(qbe.Linkage.private(), "s", [(qbe.BYTE, 0)]))
        module.add_type(qbe.TypeDef("T", [(qbe.LONG, 1)]))

        text = str(module)
        assert text.index("type :T") < text.index("data $s") < text.index("function w $main")
        assert text.endswith("}\n")

    def test_empty_module(self):
        assert str(qbe.Module()) == ""
