"""Compiles syntax tree statements into bytecode functions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Callable, Optional

from .objects import LuaFunction, OpCode, Value
from .syntax_tree import (
    AssignStmt,
    BinaryExpr,
    BlockStmt,
    BreakStmt,
    CallExpr,
    DoStmt,
    ExpressionStmt,
    FieldExpr,
    ForEachStmt,
    ForRangeStmt,
    FunctionExpr,
    FunctionStmt,
    IfStmt,
    IndexExpr,
    LiteralExpr,
    LocalFunctionStmt,
    LocalStmt,
    NameExpr,
    Node,
    RepeatStmt,
    ReturnStmt,
    Stmt,
    UnaryExpr,
    WhileStmt,
)
from .tokens import TokenType

MAX_CONSTANTS = 256
MAX_LOCALS = 256
MAX_ARGUMENTS = 255
_JUMP_MAX = 0x7FFF
_JUMP_MIN = -0x8000

_UNARY_OPS: dict[TokenType, tuple[OpCode, ...]] = {
    TokenType.MINUS: (OpCode.NEG,),
    TokenType.NOT: (OpCode.NOT,),
    TokenType.HASH: (OpCode.LEN,),
}

_BINARY_OPS: dict[TokenType, tuple[OpCode, ...]] = {
    TokenType.PLUS: (OpCode.ADD,),
    TokenType.MINUS: (OpCode.SUB,),
    TokenType.SLASH: (OpCode.DIV,),
    TokenType.STAR: (OpCode.MUL,),
    TokenType.PERCENT: (OpCode.MOD,),
    TokenType.CARET: (OpCode.POW,),
    TokenType.DOT_DOT: (OpCode.CONCAT,),
    TokenType.EQUAL_EQUAL: (OpCode.EQ,),
    TokenType.TILDE_EQUAL: (OpCode.EQ, OpCode.NOT),
    TokenType.LESS: (OpCode.LT,),
    TokenType.LESS_EQUAL: (OpCode.LE,),
    TokenType.GREATER: (OpCode.LE, OpCode.NOT),
    TokenType.GREATER_EQUAL: (OpCode.LT, OpCode.NOT),
    TokenType.AND: (OpCode.AND,),
    TokenType.OR: (OpCode.OR,),
}


class CompileError(Exception):
    """Raised when a syntax tree cannot be turned into bytecode."""


class FunctionType(Enum):
    """Whether a compiler builds the top-level script or a nested function."""

    FUNCTION = auto()
    SCRIPT = auto()


@dataclass
class _Local:
    name: str
    depth: int = 0


_UNINITIALIZED = -1


class Compiler:
    """Single-pass compiler from statements to a ``LuaFunction``.

    Slot 0 of every function is reserved for the function itself; locals
    follow in declaration order.
    """

    def __init__(
        self,
        function_type: FunctionType = FunctionType.SCRIPT,
        name: str = "",
        enclosing: Optional["Compiler"] = None,
    ) -> None:
        self.function = LuaFunction(name=name)
        self.function_type = function_type
        self.enclosing = enclosing
        self._locals: list[_Local] = [_Local("", 0)]
        self._scope_depth = 0
        self._line = 0

    def compile(self, statements: list[Stmt]) -> LuaFunction:
        """Compile ``statements`` and return the finished function."""
        for statement in statements:
            self._visit(statement)
        self._emit(OpCode.LOAD_NIL, OpCode.RETURN)
        return self.function

    # emission helpers

    @property
    def _code(self) -> bytearray:
        return self.function.chunk.code

    def _emit(self, *data: int) -> None:
        for byte in data:
            self.function.chunk.write(byte, self._line)

    def _make_constant(self, value: Value) -> int:
        index = self.function.chunk.add_constant(value)
        if index >= MAX_CONSTANTS:
            raise CompileError("Too many constants in one chunk")
        return index

    def _emit_constant(self, value: Value) -> None:
        self._emit(OpCode.LOAD_CONST, self._make_constant(value))

    def _emit_jump(self, op: OpCode) -> int:
        self._emit(op, 0, 0)
        return len(self._code) - 2

    def _patch_jump(self, position: int) -> None:
        offset = len(self._code) - position - 2
        if offset > _JUMP_MAX:
            raise CompileError("Too much code to jump over")
        self._code[position] = (offset >> 8) & 0xFF
        self._code[position + 1] = offset & 0xFF

    def _emit_loop(self, loop_start: int) -> None:
        self._emit(OpCode.JMP)
        offset = loop_start - len(self._code) - 2
        if offset < _JUMP_MIN:
            raise CompileError("Loop body too large")
        self._emit((offset >> 8) & 0xFF, offset & 0xFF)

    # scopes and locals

    def _begin_scope(self) -> None:
        self._scope_depth += 1

    def _end_scope(self) -> None:
        self._scope_depth -= 1
        while self._locals and self._locals[-1].depth > self._scope_depth:
            self._emit(OpCode.POP)
            self._locals.pop()

    def _add_local(self, name: str) -> None:
        if len(self._locals) >= MAX_LOCALS:
            raise CompileError("Too many local variables in function")
        self._locals.append(_Local(name, _UNINITIALIZED))

    def _mark_initialized(self) -> None:
        self._locals[-1].depth = self._scope_depth

    def _resolve_local(self, name: str) -> Optional[int]:
        for slot in range(len(self._locals) - 1, -1, -1):
            local = self._locals[slot]
            if local.name == name:
                if local.depth == _UNINITIALIZED:
                    raise CompileError("Can't read local variables in its own initializer")
                return slot
        return None

    def _declare_local(self, name: str, initializer: Callable[[], None]) -> None:
        self._add_local(name)
        initializer()
        self._mark_initialized()

    def _compile_function(self, name: str, expr: FunctionExpr) -> LuaFunction:
        child = Compiler(FunctionType.FUNCTION, name, self)
        child._begin_scope()
        for param in expr.params:
            child._add_local(param.lexeme)
            child._mark_initialized()
            child.function.arity += 1
        child._visit(expr.body)
        child._emit(OpCode.LOAD_NIL, OpCode.RETURN)
        return child.function

    # dispatch

    def _visit(self, node: Node) -> None:
        handler = _HANDLERS.get(type(node))
        if handler is None:
            raise CompileError(f"Cannot compile {type(node).__name__}")
        handler(self, node)

    # statements

    def _local_stmt(self, stmt: LocalStmt) -> None:
        def initializer() -> None:
            if stmt.value is not None:
                self._visit(stmt.value)
            else:
                self._emit(OpCode.LOAD_NIL)

        self._declare_local(stmt.name.lexeme, initializer)

    def _local_function_stmt(self, stmt: LocalFunctionStmt) -> None:
        self._add_local(stmt.name.lexeme)
        self._mark_initialized()
        self._visit(stmt.function)

    def _assign_stmt(self, stmt: AssignStmt) -> None:
        self._line = stmt.name.line
        self._visit(stmt.value)
        slot = self._resolve_local(stmt.name.lexeme)
        if slot is not None:
            self._emit(OpCode.SET_LOCAL, slot)
        else:
            self._emit(OpCode.SET_GLOBAL, self._make_constant(stmt.name.lexeme))
        self._emit(OpCode.POP)

    def _if_stmt(self, stmt: IfStmt) -> None:
        self._visit(stmt.condition)
        then_jump = self._emit_jump(OpCode.JMP_IF_FALSE)
        self._emit(OpCode.POP)
        self._visit(stmt.then_branch)
        end_jump = self._emit_jump(OpCode.JMP)
        self._patch_jump(then_jump)
        self._emit(OpCode.POP)
        if stmt.else_branch is not None:
            self._visit(stmt.else_branch)
        self._patch_jump(end_jump)

    def _while_stmt(self, stmt: WhileStmt) -> None:
        loop_start = len(self._code)
        self._visit(stmt.condition)
        exit_jump = self._emit_jump(OpCode.JMP_IF_FALSE)
        self._emit(OpCode.POP)
        self._visit(stmt.body)
        self._emit_loop(loop_start)
        self._patch_jump(exit_jump)
        self._emit(OpCode.POP)

    def _repeat_stmt(self, stmt: RepeatStmt) -> None:
        loop_start = len(self._code)
        self._visit(stmt.body)
        self._visit(stmt.condition)
        self._emit(OpCode.NOT)
        exit_jump = self._emit_jump(OpCode.JMP_IF_FALSE)
        self._emit(OpCode.POP)
        self._emit_loop(loop_start)
        self._patch_jump(exit_jump)
        self._emit(OpCode.POP)

    def _do_stmt(self, stmt: DoStmt) -> None:
        self._begin_scope()
        self._visit(stmt.body)
        self._end_scope()

    def _for_range_stmt(self, stmt: ForRangeStmt) -> None:
        self._begin_scope()
        self._declare_local(stmt.name.lexeme, lambda: self._visit(stmt.start))
        self._declare_local("_stop", lambda: self._visit(stmt.stop))

        def step() -> None:
            if stmt.step is not None:
                self._visit(stmt.step)
            else:
                self._emit_constant(1.0)

        self._declare_local("_step", step)

        loop_start = len(self._code)
        index_slot = self._resolve_local(stmt.name.lexeme)
        stop_slot = self._resolve_local("_stop")
        self._emit(OpCode.GET_LOCAL, index_slot, OpCode.GET_LOCAL, stop_slot, OpCode.LE)
        exit_jump = self._emit_jump(OpCode.JMP_IF_FALSE)
        self._emit(OpCode.POP)

        self._visit(stmt.body)

        step_slot = self._resolve_local("_step")
        self._emit(OpCode.GET_LOCAL, index_slot, OpCode.GET_LOCAL, step_slot, OpCode.ADD)
        self._emit(OpCode.SET_LOCAL, index_slot, OpCode.POP)

        self._emit_loop(loop_start)
        self._patch_jump(exit_jump)
        self._emit(OpCode.POP)
        self._end_scope()

    def _for_each_stmt(self, stmt: ForEachStmt) -> None:
        raise CompileError("Generic 'for ... in' loops are not supported")

    def _function_stmt(self, stmt: FunctionStmt) -> None:
        function = self._compile_function(stmt.name.lexeme, stmt.function)
        self._emit_constant(function)
        if self._scope_depth > 0:
            self._add_local(stmt.name.lexeme)
            self._mark_initialized()
        else:
            self._emit(OpCode.SET_GLOBAL, self._make_constant(stmt.name.lexeme))
            self._emit(OpCode.POP)

    def _return_stmt(self, stmt: ReturnStmt) -> None:
        self._line = stmt.keyword.line
        if stmt.value is not None:
            self._visit(stmt.value)
        self._emit(OpCode.RETURN)

    def _break_stmt(self, stmt: BreakStmt) -> None:
        raise CompileError(f"'break' is not supported (line {stmt.keyword.line})")

    def _block_stmt(self, stmt: BlockStmt) -> None:
        self._begin_scope()
        for statement in stmt.statements:
            self._visit(statement)
        self._end_scope()

    def _expression_stmt(self, stmt: ExpressionStmt) -> None:
        self._visit(stmt.expression)
        self._emit(OpCode.POP)

    # expressions

    def _literal_expr(self, expr: LiteralExpr) -> None:
        self._emit_constant(expr.value)

    def _binary_expr(self, expr: BinaryExpr) -> None:
        self._line = expr.op.line
        self._visit(expr.left)
        self._visit(expr.right)
        ops = _BINARY_OPS.get(expr.op.type)
        if ops is None:
            raise CompileError("Unknown binary operator")
        self._emit(*ops)

    def _unary_expr(self, expr: UnaryExpr) -> None:
        self._line = expr.operator.line
        self._visit(expr.operand)
        ops = _UNARY_OPS.get(expr.operator.type)
        if ops is None:
            raise CompileError("Unknown operator for unary expression")
        self._emit(*ops)

    def _name_expr(self, expr: NameExpr) -> None:
        slot = self._resolve_local(expr.name.lexeme)
        if slot is not None:
            self._emit(OpCode.GET_LOCAL, slot)
        else:
            self._emit(OpCode.GET_GLOBAL, self._make_constant(expr.name.lexeme))

    def _call_expr(self, expr: CallExpr) -> None:
        self._line = expr.paren.line
        if len(expr.arguments) > MAX_ARGUMENTS:
            raise CompileError("Cannot have more than 255 arguments.")
        self._visit(expr.callee)
        for argument in expr.arguments:
            self._visit(argument)
        self._emit(OpCode.CALL, len(expr.arguments))

    def _function_expr(self, expr: FunctionExpr) -> None:
        self._emit_constant(self._compile_function("", expr))

    def _field_expr(self, expr: FieldExpr) -> None:
        raise CompileError(f"Field access '.{expr.field.lexeme}' is not supported")

    def _index_expr(self, expr: IndexExpr) -> None:
        raise CompileError("Index access is not supported")


_HANDLERS: dict[type, Callable[[Compiler, Node], None]] = {
    LocalStmt: Compiler._local_stmt,
    LocalFunctionStmt: Compiler._local_function_stmt,
    AssignStmt: Compiler._assign_stmt,
    IfStmt: Compiler._if_stmt,
    WhileStmt: Compiler._while_stmt,
    RepeatStmt: Compiler._repeat_stmt,
    DoStmt: Compiler._do_stmt,
    ForRangeStmt: Compiler._for_range_stmt,
    ForEachStmt: Compiler._for_each_stmt,
    FunctionStmt: Compiler._function_stmt,
    ReturnStmt: Compiler._return_stmt,
    BreakStmt: Compiler._break_stmt,
    BlockStmt: Compiler._block_stmt,
    ExpressionStmt: Compiler._expression_stmt,
    LiteralExpr: Compiler._literal_expr,
    BinaryExpr: Compiler._binary_expr,
    UnaryExpr: Compiler._unary_expr,
    NameExpr: Compiler._name_expr,
    CallExpr: Compiler._call_expr,
    FunctionExpr: Compiler._function_expr,
    FieldExpr: Compiler._field_expr,
    IndexExpr: Compiler._index_expr,
}


def compile_program(statements: list[Stmt]) -> LuaFunction:
    """Compile top-level ``statements`` into the script function."""
    return Compiler().compile(statements)