import pytest

from lunavm.syntax_tree import (
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
    walk,
)
from lunavm.tokens import Token, TokenType


def tok(kind, lexeme, literal=None, line=1):
    return Token(kind, lexeme, literal, line)


def name(text):
    return NameExpr(tok(TokenType.IDENTIFIER, text))


def names_of(nodes):
    return [type(n).__name__ for n in nodes]


def test_walk_single_literal():
    lit = LiteralExpr(1.0)
    assert list(walk(lit)) == [lit]


def test_walk_assignment_preorder():
    call = CallExpr(name("f"), tok(TokenType.RIGHT_PAREN, ")"), [LiteralExpr(2.0)])
    binary = BinaryExpr(LiteralExpr(1.0), tok(TokenType.PLUS, "+"), call)
    stmt = AssignStmt(tok(TokenType.IDENTIFIER, "x"), binary)
    assert names_of(walk(stmt)) == [
        "AssignStmt",
        "BinaryExpr",
        "LiteralExpr",
        "CallExpr",
        "NameExpr",
        "LiteralExpr",
    ]


def test_walk_skips_missing_optional_children():
    stmt = LocalStmt(tok(TokenType.IDENTIFIER, "a"))
    assert stmt.value is None
    assert list(walk(stmt)) == [stmt]


def test_walk_for_range_without_step():
    body = BlockStmt([BreakStmt(tok(TokenType.BREAK, "break"))])
    loop = ForRangeStmt(tok(TokenType.IDENTIFIER, "i"), LiteralExpr(1.0), LiteralExpr(3.0), None, body)
    assert names_of(walk(loop)) == [
        "ForRangeStmt",
        "LiteralExpr",
        "LiteralExpr",
        "BlockStmt",
        "BreakStmt",
    ]


def test_walk_for_each_ignores_token_lists():
    loop = ForEachStmt(
        [tok(TokenType.IDENTIFIER, "k"), tok(TokenType.IDENTIFIER, "v")],
        [name("pairs"), name("t")],
        BlockStmt(),
    )
    visited = list(walk(loop))
    assert visited == [loop, loop.explist[0], loop.explist[1], loop.body]
    assert all(isinstance(n, (Expr, Stmt)) for n in visited)


def test_walk_function_statement_includes_body():
    ret = ReturnStmt(tok(TokenType.RETURN, "return"), name("a"))
    fn = FunctionExpr([tok(TokenType.IDENTIFIER, "a")], BlockStmt([ret]))
    stmt = FunctionStmt(tok(TokenType.IDENTIFIER, "id"), fn)
    assert list(walk(stmt)) == [stmt, fn, fn.body, ret, ret.value]


def test_if_else_branch_can_be_attached_later():
    inner = IfStmt(LiteralExpr(False), BlockStmt())
    outer = IfStmt(LiteralExpr(True), BlockStmt())
    assert outer.else_branch is None
    outer.else_branch = inner
    visited = list(walk(outer))
    assert inner in visited
    assert visited.index(outer.then_branch) < visited.index(inner)


def test_walk_counts_every_node_once():
    loop = WhileStmt(
        UnaryExpr(tok(TokenType.NOT, "not"), name("done")),
        BlockStmt([
            ExpressionStmt(CallExpr(FieldExpr(name("io"), tok(TokenType.IDENTIFIER, "write")),
                                    tok(TokenType.RIGHT_PAREN, ")"))),
            DoStmt(BlockStmt()),
        ]),
    )
    visited = list(walk(loop))
    assert len(visited) == len({id(n) for n in visited})
    assert visited[0] is loop


def test_repeat_walks_body_before_condition():
    body = BlockStmt()
    cond = IndexExpr(name("t"), LiteralExpr(1.0))
    stmt = RepeatStmt(body, cond)
    visited = list(walk(stmt))
    assert visited.index(body) < visited.index(cond)


def test_local_function_walk():
    fn = FunctionExpr([], BlockStmt())
    stmt = LocalFunctionStmt(tok(TokenType.IDENTIFIER, "g"), fn)
    assert list(walk(stmt)) == [stmt, fn, fn.body]


def test_nodes_compare_by_value():
    assert LiteralExpr("hi") == LiteralExpr("hi")
    assert name("a") == name("a")
    assert name("a") != name("b")


def test_node_kinds():
    stmt = ExpressionStmt(LiteralExpr(None))
    visited = list(walk(stmt))
    assert [n for n in visited if isinstance(n, Stmt)] == [stmt]
    assert [n for n in visited if isinstance(n, Expr)] == [stmt.expression]


def test_block_default_lists_are_independent():
    a, b = BlockStmt(), BlockStmt()
    a.statements.append(BreakStmt(tok(TokenType.BREAK, "break")))
    assert b.statements == []


@pytest.mark.parametrize("value", [None, True, 3.5, "text"])
def test_literal_keeps_value(value):
    assert LiteralExpr(value).value == value