"""
Evelin Type System
==================

This module defines the language-level types of Evelin and how they map
onto IR base types.

Supported Types
---------------
| Type        | Written as  | IR type      | Size (bytes) |
|-------------|-------------|--------------|--------------|
| i64         | ``i64``     | ``l``        | 8            |
| f64         | ``f64``     | ``d``        | 8            |
| void        | ``void``    | (none)       | 0            |
| str         | (literal)   | ``l`` (ptr)  | 8            |
| struct Name | ``Name``    | ``:Name``    | sum of fields|

``str`` cannot be written in a declaration; it is the type of string
literals and of names bound to them. Struct values are handled through a
pointer to their storage, so in instructions they are ``l`` while in
function signatures they use the aggregate type ``:Name``.

Type Promotion
--------------
Binary arithmetic on an ``i64`` and an ``f64`` operand yields ``f64``;
the integral operand is widened first. Anything else yields ``i64``.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


# =============================================================================
# Type Kinds
# =============================================================================

class TypeKind(Enum):
    """Fundamental kinds of Evelin types."""
    INT = auto()
    FLOAT = auto()
    STRING = auto()
    VOID = auto()
    STRUCT = auto()


# =============================================================================
# Type Representation
# =============================================================================

@dataclass(frozen=True)
class EveType:
    """
    Represents an Evelin type.

    Attributes:
        kind: The fundamental kind
        struct_name: For struct types, the name of the struct (None otherwise)

    Examples:
        - i64          : EveType(INT)
        - f64          : EveType(FLOAT)
        - Point        : EveType(STRUCT, "Point")
    """
    kind: TypeKind
    struct_name: Optional[str] = None

    def __post_init__(self):
        if (self.kind == TypeKind.STRUCT) != (self.struct_name is not None):
            raise ValueError("struct_name must be set exactly for struct types")

    def __str__(self) -> str:
        if self.kind == TypeKind.STRUCT:
            return self.struct_name
        return _KIND_NAMES[self.kind]

    @property
    def is_void(self) -> bool:
        return self.kind == TypeKind.VOID

    @property
    def is_float(self) -> bool:
        return self.kind == TypeKind.FLOAT

    @property
    def is_struct(self) -> bool:
        return self.kind == TypeKind.STRUCT

    @property
    def is_numeric(self) -> bool:
        return self.kind in (TypeKind.INT, TypeKind.FLOAT)


_KIND_NAMES = {
    TypeKind.INT: "i64",
    TypeKind.FLOAT: "f64",
    TypeKind.STRING: "str",
    TypeKind.VOID: "void",
}


# =============================================================================
# Predefined Types
# =============================================================================

TYPE_I64 = EveType(TypeKind.INT)
TYPE_F64 = EveType(TypeKind.FLOAT)
TYPE_STR = EveType(TypeKind.STRING)
TYPE_VOID = EveType(TypeKind.VOID)

# Keyword spelling -> type, for the primitive names the lexer recognizes
PRIMITIVE_TYPES: dict[str, EveType] = {
    "i64": TYPE_I64,
    "f64": TYPE_F64,
    "void": TYPE_VOID,
}

SCALAR_SIZE = 8


def struct_type(name: str) -> EveType:
    """Create a by-name reference to a struct type."""
    return EveType(TypeKind.STRUCT, name)


def promote(left: EveType, right: EveType) -> EveType:
    """
    Result type of a binary arithmetic expression.

    Floating point wins: if either operand is f64 the result is f64,
    otherwise i64.
    """
    if left.is_float or right.is_float:
        return TYPE_F64
    return TYPE_I64
