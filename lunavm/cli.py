"""Command-line entry point: run a script file or print its syntax tree."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator, Optional, Sequence

from .lexer import LexError, tokenize
from .parser import parse
from .syntax_tree import (
    AssignStmt,
    BinaryExpr,
    BlockStmt,
    BreakStmt,
    CallExpr,
    DoStmt,
    Expr,
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
    RepeatStmt,
    ReturnStmt,
    Stmt,
    UnaryExpr,
    WhileStmt,
)
from .tokens import LiteralValue
from .vm import InterpretResult, run_source

USAGE = "Usage: lunavm [--ast] <file.lua>"


def _literal(value: LiteralValue) -> str:
    if value is None:
        return "nil"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return f"{float(value):.6f}"
    if isinstance(value, str):
        return f'"{value}"'
    return "unknown"


def _expr_lines(expr: Optional[Expr], indent: int) -> Iterator[str]:
    pad = "  " * indent
    match expr:
        case None:
            yield pad + "null"
        case LiteralExpr():
            yield f"{pad}LiteralExpr({_literal(expr.value)})"
        case NameExpr():
            yield f"{pad}NameExpr({expr.name.lexeme})"
        case BinaryExpr():
            yield f"{pad}BinaryExpr({expr.op.lexeme})"
            yield from _expr_lines(expr.left, indent + 1)
            yield from _expr_lines(expr.right, indent + 1)
        case UnaryExpr():
            yield f"{pad}UnaryExpr({expr.operator.lexeme})"
            yield from _expr_lines(expr.operand, indent + 1)
        case CallExpr():
            yield pad + "CallExpr"
            yield from _expr_lines(expr.callee, indent + 1)
            for argument in expr.arguments:
                yield from _expr_lines(argument, indent + 1)
        case FunctionExpr():
            params = "".join(f"{param.lexeme} " for param in expr.params)
            yield f"{pad}FunctionExpr(params={params})"
            yield from _stmt_lines(expr.body, indent + 1)
        case FieldExpr():
            yield f"{pad}FieldExpr(.{expr.field.lexeme})"
            yield from _expr_lines(expr.object, indent + 1)
        case IndexExpr():
            yield pad + "IndexExpr"
            yield from _expr_lines(expr.object, indent + 1)
            yield from _expr_lines(expr.index, indent + 1)
        case _:
            yield pad + "UnknownExpr"


def _stmt_lines(stmt: Optional[Stmt], indent: int) -> Iterator[str]:
    pad = "  " * indent
    match stmt:
        case None:
            yield pad + "null"
        case LocalStmt():
            yield f"{pad}LocalStmt(name={stmt.name.lexeme})"
            if stmt.value is not None:
                yield from _expr_lines(stmt.value, indent + 1)
            else:
                yield pad + "  (no initializer)"
        case LocalFunctionStmt():
            yield f"{pad}LocalFunctionStmt(name={stmt.name.lexeme})"
            yield from _expr_lines(stmt.function, indent + 1)
        case AssignStmt():
            yield f"{pad}AssignStmt(name={stmt.name.lexeme})"
            yield from _expr_lines(stmt.value, indent + 1)
        case ExpressionStmt():
            yield pad + "ExpressionStmt"
            yield from _expr_lines(stmt.expression, indent + 1)
        case ReturnStmt():
            yield pad + "ReturnStmt"
            if stmt.value is not None:
                yield from _expr_lines(stmt.value, indent + 1)
        case BreakStmt():
            yield pad + "BreakStmt"
        case BlockStmt():
            yield pad + "BlockStmt"
            for inner in stmt.statements:
                yield from _stmt_lines(inner, indent + 1)
        case IfStmt():
            yield pad + "IfStmt"
            yield pad + "  condition:"
            yield from _expr_lines(stmt.condition, indent + 2)
            yield pad + "  then:"
            if stmt.then_branch is not None:
                yield from _stmt_lines(stmt.then_branch, indent + 2)
            if stmt.else_branch is not None:
                yield pad + "  else:"
                yield from _stmt_lines(stmt.else_branch, indent + 2)
        case WhileStmt():
            yield pad + "WhileStmt"
            yield pad + "  condition:"
            yield from _expr_lines(stmt.condition, indent + 2)
            yield pad + "  body:"
            if stmt.body is not None:
                yield from _stmt_lines(stmt.body, indent + 2)
        case RepeatStmt():
            yield pad + "RepeatStmt"
            yield pad + "  body:"
            if stmt.body is not None:
                yield from _stmt_lines(stmt.body, indent + 1)
            yield pad + "  condition:"
            if stmt.condition is not None:
                yield from _expr_lines(stmt.condition, indent + 2)
        case DoStmt():
            yield pad + "DoStmt"
            if stmt.body is not None:
                yield from _stmt_lines(stmt.body, indent + 1)
        case FunctionStmt():
            yield f"{pad}FunctionStmt(name={stmt.name.lexeme})"
            yield from _expr_lines(stmt.function, indent + 1)
        case ForRangeStmt():
            yield f"{pad}ForRangeStmt(name={stmt.name.lexeme})"
            yield pad + "  start:"
            yield from _expr_lines(stmt.start, indent + 2)
            yield pad + "  stop:"
            yield from _expr_lines(stmt.stop, indent + 2)
            if stmt.step is not None:
                yield pad + "  step:"
                yield from _expr_lines(stmt.step, indent + 2)
            yield pad + "  body:"
            yield from _stmt_lines(stmt.body, indent + 2)
        case ForEachStmt():
            names = "".join(f"{name.lexeme} " for name in stmt.names)
            yield f"{pad}ForEachStmt(names={names})"
            yield pad + "  explist:"
            for expr in stmt.explist:
                yield from _expr_lines(expr, indent + 2)
            yield pad + "  body:"
            yield from _stmt_lines(stmt.body, indent + 2)
        case _:
            yield pad + "UnknownStmt"


def format_ast(statements: Sequence[Stmt]) -> str:
    """Render statements as an indented tree, one node per line."""
    lines = ["=== AST ==="]
    for stmt in statements:
        lines.extend(_stmt_lines(stmt, 0))
    return "\n".join(lines) + "\n"


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the script named on the command line; ``--ast`` prints its tree instead."""
    args = list(sys.argv[1:] if argv is None else argv)
    show_ast = bool(args) and args[0] == "--ast"
    if show_ast:
        args = args[1:]
    if len(args) != 1:
        print(USAGE, file=sys.stderr)
        return 1

    path = args[0]
    try:
        source = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        print(f"Failed to open file: {path}", file=sys.stderr)
        return 1

    if show_ast:
        try:
            tokens = tokenize(source)
        except LexError as error:
            print(f"LexError: {error} at line {error.line}", file=sys.stderr)
            return 1
        sys.stdout.write(format_ast(parse(tokens)))
        return 0

    return 0 if run_source(source) is InterpretResult.OK else 1


if __name__ == "__main__":
    sys.exit(main())