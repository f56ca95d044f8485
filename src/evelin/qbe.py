"""
QBE Intermediate Representation
===============================

This module is a small object model for the textual SSA intermediate
language consumed by the QBE backend (https://c9x.me/compile/). The
emitter builds a Module out of these objects and renders it with
``str()``; nothing ever parses IR back.

IR Layout
---------
A module is rendered in three sections:

    type :Point = { l, d }                          # aggregate types
    data $fmt.int = { b "%ld\\n", b 0 }             # global data
    export function l $main() {                     # functions
    @start
        %tmp.1 =l copy 42
        ret %tmp.1
    }

Every block ends in exactly one jump (``jmp``, ``jnz``, ``ret`` or
``hlt``); ``Block.jumps()`` tells whether that is already the case.

Base Types
----------
| Code | Meaning         | Size |
|------|-----------------|------|
| w    | 32-bit integer  | 4    |
| l    | 64-bit integer  | 8    |
| s    | 32-bit float    | 4    |
| d    | 64-bit float    | 8    |
| b    | byte (data)     | 1    |
"""

from dataclasses import dataclass, field
from typing import Optional, Union


# =============================================================================
# Types
# =============================================================================

_BASE_SIZES = {"b": 1, "w": 4, "s": 4, "l": 8, "d": 8}


@dataclass(frozen=True)
class Type:
    """
    An IR type: a base type code or a named aggregate.

    Attributes:
        name: Base type code ("w", "l", ...) or aggregate name
        is_aggregate: True for user-defined aggregate types
    """
    name: str
    is_aggregate: bool = False

    def __str__(self) -> str:
        if self.is_aggregate:
            return f":{self.name}"
        return self.name

    @property
    def is_float(self) -> bool:
        return not self.is_aggregate and self.name in ("s", "d")

    @property
    def size(self) -> Optional[int]:
        """Size in bytes for base types; aggregates are sized by their TypeDef."""
        if self.is_aggregate:
            return None
        return _BASE_SIZES[self.name]

    @property
    def into_base(self) -> "Type":
        """The type used for temporaries: aggregates are handled by pointer."""
        if self.is_aggregate:
            return LONG
        return self


WORD = Type("w")
LONG = Type("l")
SINGLE = Type("s")
DOUBLE = Type("d")
BYTE = Type("b")


def aggregate(name: str) -> Type:
    """Reference to the aggregate type ``:name``."""
    return Type(name, is_aggregate=True)


# =============================================================================
# Values
# =============================================================================

@dataclass(frozen=True)
class Temporary:
    """Function-local SSA temporary, rendered ``%name``."""
    name: str

    def __str__(self) -> str:
        return f"%{self.name}"


@dataclass(frozen=True)
class Global:
    """Global symbol, rendered ``$name``."""
    name: str

    def __str__(self) -> str:
        return f"${self.name}"


@dataclass(frozen=True)
class Const:
    """Integer constant."""
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class FloatConst:
    """Double precision constant, rendered ``d_<value>``."""
    value: float

    def __str__(self) -> str:
        return f"d_{self.value!r}"


@dataclass(frozen=True)
class Label:
    """Block label used as a jump target, rendered ``@name``."""
    name: str

    def __str__(self) -> str:
        return f"@{self.name}"


Value = Union[Temporary, Global, Const, FloatConst]


# =============================================================================
# Instructions
# =============================================================================

JUMP_OPCODES = frozenset({"jmp", "jnz", "ret", "hlt"})


@dataclass(frozen=True)
class Instr:
    """
    A single instruction: opcode plus comma-separated operands.

    Examples:
        Instr("add", (a, b))           -> add %a, %b
        Instr("storel", (v, addr))     -> storel %v, %addr
        Instr("jnz", (c, l1, l2))      -> jnz %c, @l1, @l2
        Instr("ret")                   -> ret
    """
    opcode: str
    operands: tuple = ()

    def __str__(self) -> str:
        if not self.operands:
            return self.opcode
        return f"{self.opcode} {', '.join(str(op) for op in self.operands)}"

    @property
    def is_jump(self) -> bool:
        return self.opcode in JUMP_OPCODES


@dataclass(frozen=True)
class Call(Instr):
    """
    Function call.

    Attributes:
        name: Called global symbol
        arguments: (type, value) pairs
        variadic_at: Number of fixed arguments before the ``...`` marker,
                     or None for a non-variadic call
    """
    opcode: str = "call"
    name: str = ""
    arguments: tuple = ()
    variadic_at: Optional[int] = None

    def __str__(self) -> str:
        rendered = [f"{ty} {value}" for ty, value in self.arguments]
        if self.variadic_at is not None:
            rendered.insert(self.variadic_at, "...")
        return f"call ${self.name}({', '.join(rendered)})"


def jmp(target: str) -> Instr:
    return Instr("jmp", (Label(target),))


def jnz(condition: Value, if_true: str, if_false: str) -> Instr:
    return Instr("jnz", (condition, Label(if_true), Label(if_false)))


def ret(value: Optional[Value] = None) -> Instr:
    if value is None:
        return Instr("ret")
    return Instr("ret", (value,))


def store(ty: Type, value: Value, address: Value) -> Instr:
    return Instr(f"store{ty.into_base}", (value, address))


def blit(source: Value, destination: Value, size: int) -> Instr:
    return Instr("blit", (source, destination, Const(size)))


# =============================================================================
# Statements and Blocks
# =============================================================================

@dataclass(frozen=True)
class Assign:
    """``%dest =type instr``"""
    dest: Temporary
    ty: Type
    instr: Instr

    def __str__(self) -> str:
        return f"{self.dest} ={self.ty} {self.instr}"


@dataclass(frozen=True)
class Volatile:
    """An instruction whose result, if any, is discarded."""
    instr: Instr

    def __str__(self) -> str:
        return str(self.instr)


Statement = Union[Assign, Volatile]


@dataclass
class Block:
    """
    A labeled basic block.

    Attributes:
        label: Block label (without the leading '@')
        statements: Instructions in order
    """
    label: str
    statements: list[Statement] = field(default_factory=list)

    def add_instr(self, instr: Instr) -> None:
        self.statements.append(Volatile(instr))

    def assign_instr(self, dest: Temporary, ty: Type, instr: Instr) -> None:
        self.statements.append(Assign(dest, ty, instr))

    def jumps(self) -> bool:
        """Return True if the block already ends in a control transfer."""
        if not self.statements:
            return False
        last = self.statements[-1]
        return isinstance(last, Volatile) and last.instr.is_jump

    def __str__(self) -> str:
        lines = [f"@{self.label}"]
        lines.extend(f"\t{stmt}" for stmt in self.statements)
        return "\n".join(lines)


# =============================================================================
# Linkage
# =============================================================================

@dataclass(frozen=True)
class Linkage:
    """
    Symbol linkage.

    Attributes:
        exported: Visible to other object files
    """
    exported: bool = False

    @classmethod
    def public(cls) -> "Linkage":
        return cls(exported=True)

    @classmethod
    def private(cls) -> "Linkage":
        return cls(exported=False)

    def __str__(self) -> str:
        return "export " if self.exported else ""


# =============================================================================
# Top-Level Definitions
# =============================================================================

@dataclass
class Function:
    """
    A function definition.

    Attributes:
        linkage: Symbol linkage
        name: Function symbol name
        params: (type, temporary) pairs
        return_type: Return type, None for functions returning nothing
        blocks: Basic blocks in layout order (the first one is the entry)
    """
    linkage: Linkage
    name: str
    params: list[tuple[Type, Temporary]] = field(default_factory=list)
    return_type: Optional[Type] = None
    blocks: list[Block] = field(default_factory=list)

    def add_block(self, label: str) -> Block:
        block = Block(label)
        self.blocks.append(block)
        return block

    @property
    def last_block(self) -> Block:
        if not self.blocks:
            raise ValueError(f"function '{self.name}' has no blocks")
        return self.blocks[-1]

    def add_instr(self, instr: Instr) -> None:
        """Append an instruction to the last block."""
        self.last_block.add_instr(instr)

    def assign_instr(self, dest: Temporary, ty: Type, instr: Instr) -> None:
        """Append an assignment to the last block."""
        self.last_block.assign_instr(dest, ty, instr)

    def __str__(self) -> str:
        ret_ty = f"{self.return_type} " if self.return_type else ""
        params = ", ".join(f"{ty} {tmp}" for ty, tmp in self.params)
        lines = [f"{self.linkage}function {ret_ty}${self.name}({params}) {{"]
        lines.extend(str(block) for block in self.blocks)
        lines.append("}")
        return "\n".join(lines)


@dataclass
class DataDef:
    """
    A global data definition.

    Attributes:
        linkage: Symbol linkage
        name: Symbol name
        items: (type, item) pairs; str items render quoted, ints as constants
    """
    linkage: Linkage
    name: str
    items: list[tuple[Type, Union[str, int]]] = field(default_factory=list)

    def __str__(self) -> str:
        items = ", ".join(
            f'{ty} "{item}"' if isinstance(item, str) else f"{ty} {item}"
            for ty, item in self.items
        )
        return f"{self.linkage}data ${self.name} = {{ {items} }}"


@dataclass
class TypeDef:
    """
    An aggregate type definition.

    Attributes:
        name: Aggregate name (without the leading ':')
        items: (type, count) pairs in layout order
    """
    name: str
    items: list[tuple[Type, int]] = field(default_factory=list)

    def __str__(self) -> str:
        items = ", ".join(
            f"{ty} {count}" if count > 1 else str(ty) for ty, count in self.items
        )
        return f"type :{self.name} = {{ {items} }}"


@dataclass
class Module:
    """
    A complete IR module: one per compilation unit.

    Attributes:
        types: Aggregate type definitions (in dependency order)
        data: Global data definitions
        functions: Function definitions
    """
    types: list[TypeDef] = field(default_factory=list)
    data: list[DataDef] = field(default_factory=list)
    functions: list[Function] = field(default_factory=list)

    def add_type(self, typedef: TypeDef) -> None:
        self.types.append(typedef)

    def add_data(self, datadef: DataDef) -> None:
        self.data.append(datadef)

    def add_function(self, function: Function) -> None:
        self.functions.append(function)

    def __str__(self) -> str:
        sections = []
        if self.types:
            sections.append("\n".join(str(t) for t in self.types))
        if self.data:
            sections.append("\n".join(str(d) for d in self.data))
        sections.extend(str(f) for f in self.functions)
        if not sections:
            return ""
        return "\n\n".join(sections) + "\n"
