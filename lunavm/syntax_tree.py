"""Syntax tree nodes built by the parser and consumed by the compiler."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Iterator, Optional, Union

from .tokens import LiteralValue, Token


class Expr:
    """Base class of every expression node."""

    __slots__ = ()


class Stmt:
    """Base class of every statement node."""

    __slots__ = ()


Node = Union[Expr, Stmt]


# expressions


@dataclass(slots=True)
class LiteralExpr(Expr):
    """A nil, boolean, number or string constant."""

    value: LiteralValue


@dataclass(slots=True)
class BinaryExpr(Expr):
    """Two operands joined by an infix operator."""

    left: Expr
    op: Token
    right: Expr


@dataclass(slots=True)
class UnaryExpr(Expr):
    """A prefix operator applied to one operand."""

    operator: Token
    operand: Expr


@dataclass(slots=True)
class NameExpr(Expr):
    """A reference to a variable by name."""

    name: Token


@dataclass(slots=True)
class CallExpr(Expr):
    """A call of ``callee`` with positional arguments."""

    callee: Expr
    paren: Token
    arguments: list[Expr] = field(default_factory=list)


@dataclass(slots=True)
class FunctionExpr(Expr):
    """An anonymous function: parameters and a body block."""

    params: list[Token]
    body: Stmt


@dataclass(slots=True)
class FieldExpr(Expr):
    """Field access ``object.field``."""

    object: Expr
    field: Token


@dataclass(slots=True)
class IndexExpr(Expr):
    """Index access ``object[index]``."""

    object: Expr
    index: Expr


# statements


@dataclass(slots=True)
class LocalStmt(Stmt):
    """``local name [= value]``."""

    name: Token
    value: Optional[Expr] = None


@dataclass(slots=True)
class LocalFunctionStmt(Stmt):
    """``local function name(...) ... end``."""

    name: Token
    function: FunctionExpr


@dataclass(slots=True)
class AssignStmt(Stmt):
    """``name = value``."""

    name: Token
    value: Expr


@dataclass(slots=True)
class IfStmt(Stmt):
    """``if`` with an optional else branch; ``elseif`` chains nest in it."""

    condition: Expr
    then_branch: Stmt
    else_branch: Optional[Stmt] = None


@dataclass(slots=True)
class WhileStmt(Stmt):
    """``while condition do body end``."""

    condition: Expr
    body: Stmt


@dataclass(slots=True)
class RepeatStmt(Stmt):
    """``repeat body until condition``."""

    body: Stmt
    condition: Expr


@dataclass(slots=True)
class DoStmt(Stmt):
    """``do body end``."""

    body: Stmt


@dataclass(slots=True)
class ForRangeStmt(Stmt):
    """Numeric ``for name = start, stop [, step] do body end``."""

    name: Token
    start: Expr
    stop: Expr
    step: Optional[Expr]
    body: Stmt


@dataclass(slots=True)
class ForEachStmt(Stmt):
    """Generic ``for names in explist do body end``."""

    names: list[Token]
    explist: list[Expr]
    body: Stmt


@dataclass(slots=True)
class FunctionStmt(Stmt):
    """``function name(...) ... end``."""

    name: Token
    function: FunctionExpr


@dataclass(slots=True)
class ReturnStmt(Stmt):
    """``return [value]``."""

    keyword: Token
    value: Optional[Expr] = None


@dataclass(slots=True)
class BreakStmt(Stmt):
    """``break``."""

    keyword: Token


@dataclass(slots=True)
class BlockStmt(Stmt):
    """A sequence of statements forming one scope."""

    statements: list[Stmt] = field(default_factory=list)


@dataclass(slots=True)
class ExpressionStmt(Stmt):
    """An expression evaluated for its effect."""

    expression: Expr


def _children(node: Node) -> Iterator[Node]:
    for f in fields(node):
        value = getattr(node, f.name)
        if isinstance(value, (Expr, Stmt)):
            yield value
        elif isinstance(value, list):
            yield from (item for item in value if isinstance(item, (Expr, Stmt)))


def walk(node: Node) -> Iterator[Node]:
    """Yield ``node`` and all nodes below it, depth first, in field order."""
    stack: list[Node] = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(list(_children(current))))