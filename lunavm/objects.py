"""Runtime values, bytecode chunks and opcodes shared by the compiler and the VM."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Union


class OpCode(IntEnum):
    """Bytecode instructions; each is stored as a single byte."""

    # arithmetic
    ADD = 0
    SUB = 1
    MUL = 2
    DIV = 3
    MOD = 4
    POW = 5
    NEG = 6
    # logic
    NOT = 7
    LEN = 8
    # comparison
    AND = 9
    OR = 10
    EQ = 11
    LT = 12
    LE = 13
    # load
    LOAD_CONST = 14
    LOAD_NIL = 15
    LOAD_BOOL = 16
    # stack
    POP = 17
    MOVE = 18
    # control flow
    JMP = 19
    JMP_IF_FALSE = 20
    JMP_IF_TRUE = 21
    # variables
    GET_GLOBAL = 22
    SET_GLOBAL = 23
    GET_LOCAL = 24
    SET_LOCAL = 25
    # functions
    CALL = 26
    RETURN = 27
    CLOSURE = 28
    # strings
    CONCAT = 29


@dataclass
class Chunk:
    """A block of bytecode with its constant pool and per-byte source lines."""

    code: bytearray = field(default_factory=bytearray)
    constants: list = field(default_factory=list)
    lines: list[int] = field(default_factory=list)

    def write(self, byte: int, line: int) -> None:
        """Append one byte of code, recording the source line it came from."""
        if not 0 <= int(byte) <= 0xFF:
            raise ValueError(f"byte out of range: {byte}")
        self.code.append(int(byte))
        self.lines.append(line)

    def add_constant(self, value: "Value") -> int:
        """Add ``value`` to the constant pool and return its index."""
        self.constants.append(value)
        return len(self.constants) - 1


@dataclass(eq=False)
class LuaFunction:
    """A compiled function: its name, parameter count and bytecode."""

    name: str = ""
    arity: int = 0
    upvalue_count: int = 0
    chunk: Chunk = field(default_factory=Chunk)

    def __str__(self) -> str:
        return format_value(self)


NativeCallable = Callable[[list], "Value"]


@dataclass(eq=False)
class NativeFunction:
    """A builtin implemented in Python; called with the list of arguments."""

    function: NativeCallable
    name: str = ""

    def __call__(self, args: list) -> "Value":
        return self.function(args)

    def __str__(self) -> str:
        return format_value(self)


Value = Union[None, bool, float, str, LuaFunction, NativeFunction]
"""A runtime value: nil is ``None``; numbers are floats."""


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def values_equal(a: Value, b: Value) -> bool:
    """Equality of runtime values: same kind and same value; objects by identity."""
    if a is None or b is None:
        return a is None and b is None
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if _is_number(a) and _is_number(b):
        return a == b
    if isinstance(a, str) and isinstance(b, str):
        return a == b
    return a is b


def is_falsey(value: Value) -> bool:
    """Only nil and false are false; every other value is true."""
    return value is None or value is False


def _format_number(number: float) -> str:
    if math.isnan(number):
        return "nan"
    return f"{number:.14g}"


def format_value(value: Value) -> str:
    """Render a value the way ``print`` shows it."""
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if _is_number(value):
        return _format_number(float(value))
    if isinstance(value, str):
        return value
    if isinstance(value, LuaFunction):
        return f"<fn {value.name}>" if value.name else "<script>"
    if isinstance(value, NativeFunction):
        return "<native fn>"
    return repr(value)