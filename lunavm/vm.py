"""Stack-based virtual machine that runs compiled bytecode functions."""

from __future__ import annotations

import math
import operator
import random
import sys
from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional, TextIO

from .compiler import CompileError, compile_program
from .lexer import LexError, tokenize
from .objects import (
    LuaFunction,
    NativeFunction,
    OpCode,
    Value,
    format_value,
    is_falsey,
    values_equal,
)
from .parser import Parser

FRAMES_MAX = 64
STACK_MAX = FRAMES_MAX * 256


class LuaRuntimeError(Exception):
    """Raised while executing bytecode when an operation cannot be carried out."""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.line = line

    def __str__(self) -> str:
        if self.line is None:
            return self.message
        return f"{self.message} [line {self.line}]"


class InterpretResult(Enum):
    """Outcome of running a program."""

    OK = auto()
    COMPILE_ERROR = auto()
    RUNTIME_ERROR = auto()


@dataclass
class _CallFrame:
    function: LuaFunction
    base: int
    ip: int = 0


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _type_name(value: Value) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    return "object"


def _is_odd_integer(number: float) -> bool:
    return number.is_integer() and int(number) % 2 == 1


def _divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _modulo(a: float, b: float) -> float:
    try:
        return math.fmod(a, b)
    except ValueError:
        return math.nan


def _power(a: float, b: float) -> float:
    try:
        return math.pow(a, b)
    except OverflowError:
        return -math.inf if a < 0 and _is_odd_integer(b) else math.inf
    except ValueError:
        if a == 0 and b < 0:
            negative = math.copysign(1.0, a) < 0 and _is_odd_integer(b)
            return -math.inf if negative else math.inf
        return math.nan


_ARITHMETIC: dict[OpCode, Callable[[float, float], float]] = {
    OpCode.ADD: operator.add,
    OpCode.SUB: operator.sub,
    OpCode.MUL: operator.mul,
    OpCode.DIV: _divide,
    OpCode.MOD: _modulo,
    OpCode.POW: _power,
}

_COMPARISON: dict[OpCode, Callable[[float, float], bool]] = {
    OpCode.LT: operator.lt,
    OpCode.LE: operator.le,
}


class VM:
    """Executes compiled functions on a value stack with call frames.

    Builtins ``print``, ``type``, ``input`` and ``rand`` are defined as globals.
    Output goes to ``stdout``, input comes from ``stdin`` and runtime errors are
    reported on ``stderr``; each defaults to the process stream of that name.
    """

    def __init__(
        self,
        stdout: Optional[TextIO] = None,
        stdin: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._stdout = stdout
        self._stdin = stdin
        self._stderr = stderr
        self._rng = rng if rng is not None else random.Random()
        self.stack: list[Value] = []
        self.frames: list[_CallFrame] = []
        self.globals: dict[str, Value] = {}
        self.last_error: Optional[LuaRuntimeError] = None
        self._install_builtins()

    # public interface

    def interpret(self, function: Optional[LuaFunction]) -> InterpretResult:
        """Run ``function`` as the top-level script."""
        if function is None:
            return InterpretResult.COMPILE_ERROR
        self._reset_stack()
        self.last_error = None
        try:
            self._push(function)
            self._call(function, 0)
            self._run()
        except LuaRuntimeError as error:
            self.last_error = error
            print(f"Runtime error: {error}", file=self._err())
            self._reset_stack()
            return InterpretResult.RUNTIME_ERROR
        return InterpretResult.OK

    def define_native(self, name: str, function: Callable[[list], Value]) -> None:
        """Bind ``name`` to a builtin that receives the list of call arguments."""
        self.globals[name] = NativeFunction(function, name)

    # builtins

    def _install_builtins(self) -> None:
        self.define_native("print", self._native_print)
        self.define_native("type", self._native_type)
        self.define_native("input", self._native_input)
        self.define_native("rand", self._native_rand)

    def _native_print(self, args: list) -> Value:
        self._out().write("".join(format_value(arg) for arg in args) + "\n")
        return None

    @staticmethod
    def _native_type(args: list) -> Value:
        if not args:
            return "nil"
        return _type_name(args[0])

    def _native_input(self, args: list) -> Value:
        stream = self._stdin if self._stdin is not None else sys.stdin
        while True:
            line = stream.readline()
            if not line:
                return ""
            text = line.lstrip()
            if text:
                return text.rstrip("\n")

    def _native_rand(self, args: list) -> Value:
        return self._rng.random()

    # streams

    def _out(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    def _err(self) -> TextIO:
        return self._stderr if self._stderr is not None else sys.stderr

    # stack

    def _reset_stack(self) -> None:
        self.stack.clear()
        self.frames.clear()

    def _push(self, value: Value) -> None:
        if len(self.stack) >= STACK_MAX:
            raise self._error("Stack overflow.")
        self.stack.append(value)

    def _pop(self) -> Value:
        if not self.stack:
            raise self._error("Stack underflow.")
        return self.stack.pop()

    def _peek(self, distance: int = 0) -> Value:
        if distance >= len(self.stack):
            raise self._error("Stack underflow.")
        return self.stack[-1 - distance]

    def _error(self, message: str) -> LuaRuntimeError:
        line = None
        if self.frames:
            frame = self.frames[-1]
            lines = frame.function.chunk.lines
            index = frame.ip - 1
            if 0 <= index < len(lines):
                line = lines[index]
        return LuaRuntimeError(message, line)

    # decoding

    def _read_byte(self, frame: _CallFrame) -> int:
        code = frame.function.chunk.code
        if frame.ip >= len(code):
            raise self._error("Unexpected end of bytecode.")
        byte = code[frame.ip]
        frame.ip += 1
        return byte

    def _read_short(self, frame: _CallFrame) -> int:
        high = self._read_byte(frame)
        low = self._read_byte(frame)
        return int.from_bytes(bytes((high, low)), "big", signed=True)

    def _read_constant(self, frame: _CallFrame) -> Value:
        index = self._read_byte(frame)
        constants = frame.function.chunk.constants
        if index >= len(constants):
            raise self._error(f"Invalid constant index {index}.")
        return constants[index]

    def _read_name(self, frame: _CallFrame) -> str:
        name = self._read_constant(frame)
        if not isinstance(name, str):
            raise self._error("Variable name must be a string constant.")
        return name

    # calls

    def _call_value(self, callee: Value, arg_count: int) -> None:
        if isinstance(callee, LuaFunction):
            self._call(callee, arg_count)
        elif isinstance(callee, NativeFunction):
            args = self.stack[len(self.stack) - arg_count:]
            result = callee(args)
            del self.stack[len(self.stack) - arg_count - 1:]
            self._push(result)
        else:
            raise self._error("Can only call functions.")

    def _call(self, function: LuaFunction, arg_count: int) -> None:
        if len(self.frames) >= FRAMES_MAX:
            raise self._error("Stack overflow.")
        if arg_count < function.arity:
            for _ in range(function.arity - arg_count):
                self._push(None)
        elif arg_count > function.arity:
            del self.stack[len(self.stack) - (arg_count - function.arity):]
        base = len(self.stack) - function.arity - 1
        self.frames.append(_CallFrame(function, base))

    # operators

    def _arithmetic(self, op: OpCode) -> None:
        b = self._pop()
        a = self._pop()
        for operand in (a, b):
            if not _is_number(operand):
                raise self._error(
                    f"Attempt to perform arithmetic on a {_type_name(operand)} value."
                )
        self._push(float(_ARITHMETIC[op](float(a), float(b))))

    def _compare(self, op: OpCode) -> None:
        b = self._pop()
        a = self._pop()
        if not (_is_number(a) and _is_number(b)):
            raise self._error(f"Attempt to compare {_type_name(a)} with {_type_name(b)}.")
        self._push(_COMPARISON[op](float(a), float(b)))

    def _concat(self) -> None:
        b = self._pop()
        a = self._pop()
        for operand in (a, b):
            if not isinstance(operand, str):
                raise self._error(f"Attempt to concatenate a {_type_name(operand)} value.")
        self._push(a + b)

    # execution

    def _run(self) -> None:
        frame = self.frames[-1]
        while True:
            byte = self._read_byte(frame)
            try:
                instruction = OpCode(byte)
            except ValueError:
                raise self._error(f"Unknown opcode {byte}.") from None

            if instruction in _ARITHMETIC:
                self._arithmetic(instruction)
                continue
            if instruction in _COMPARISON:
                self._compare(instruction)
                continue

            match instruction:
                case OpCode.NEG:
                    value = self._pop()
                    if not _is_number(value):
                        raise self._error(f"Attempt to negate a {_type_name(value)} value.")
                    self._push(-float(value))
                case OpCode.NOT:
                    self._push(is_falsey(self._pop()))
                case OpCode.LEN:
                    value = self._pop()
                    if not isinstance(value, str):
                        raise self._error(
                            f"Attempt to get length of a {_type_name(value)} value."
                        )
                    self._push(float(len(value)))
                case OpCode.EQ:
                    b = self._pop()
                    a = self._pop()
                    self._push(values_equal(a, b))
                case OpCode.AND:
                    b = self._pop()
                    a = self._pop()
                    self._push(a if is_falsey(a) else b)
                case OpCode.OR:
                    b = self._pop()
                    a = self._pop()
                    self._push(b if is_falsey(a) else a)
                case OpCode.CONCAT:
                    self._concat()
                case OpCode.LOAD_CONST:
                    self._push(self._read_constant(frame))
                case OpCode.LOAD_NIL:
                    self._push(None)
                case OpCode.LOAD_BOOL:
                    self._push(bool(self._read_byte(frame)))
                case OpCode.POP:
                    self._pop()
                case OpCode.MOVE | OpCode.CLOSURE:
                    pass
                case OpCode.JMP:
                    offset = self._read_short(frame)
                    frame.ip += offset
                case OpCode.JMP_IF_FALSE:
                    offset = self._read_short(frame)
                    if is_falsey(self._peek()):
                        frame.ip += offset
                case OpCode.JMP_IF_TRUE:
                    offset = self._read_short(frame)
                    if not is_falsey(self._peek()):
                        frame.ip += offset
                case OpCode.GET_GLOBAL:
                    self._push(self.globals.get(self._read_name(frame)))
                case OpCode.SET_GLOBAL:
                    self.globals[self._read_name(frame)] = self._peek()
                case OpCode.GET_LOCAL:
                    slot = self._read_byte(frame)
                    self._push(self.stack[frame.base + slot])
                case OpCode.SET_LOCAL:
                    slot = self._read_byte(frame)
                    self.stack[frame.base + slot] = self._peek()
                case OpCode.CALL:
                    arg_count = self._read_byte(frame)
                    self._call_value(self._peek(arg_count), arg_count)
                    frame = self.frames[-1]
                case OpCode.RETURN:
                    result = self._pop()
                    finished = self.frames.pop()
                    del self.stack[finished.base:]
                    if not self.frames:
                        return
                    self._push(result)
                    frame = self.frames[-1]


def run_source(
    source: str,
    stdout: Optional[TextIO] = None,
    stdin: Optional[TextIO] = None,
) -> InterpretResult:
    """Scan, parse, compile and run ``source``; errors are reported on standard error."""
    try:
        tokens = tokenize(source)
    except LexError as error:
        print(f"LexError: {error} at line {error.line}", file=sys.stderr)
        return InterpretResult.COMPILE_ERROR
    statements = Parser(tokens).parse()
    try:
        function = compile_program(statements)
    except CompileError as error:
        print(f"CompileError: {error}", file=sys.stderr)
        return InterpretResult.COMPILE_ERROR
    return VM(stdout=stdout, stdin=stdin).interpret(function)