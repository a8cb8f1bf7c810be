import io

import pytest

from lunavm.lexer import tokenize
from lunavm.parser import ParseError, Parser, parse
from lunavm.syntax_tree import (
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
    RepeatStmt,
    ReturnStmt,
    UnaryExpr,
    WhileStmt,
    walk,
)
from lunavm.tokens import TokenType


def run(source):
    parser = Parser(tokenize(source), err=io.StringIO())
    return parser.parse(), parser


def parse_ok(source):
    statements, parser = run(source)
    assert parser.errors == []
    return statements


def value_of(source):
    (stmt,) = parse_ok(source)
    return stmt.value


def test_local_with_precedence():
    (stmt,) = parse_ok("local x = 1 + 2 * 3")
    assert isinstance(stmt, LocalStmt)
    assert stmt.name.lexeme == "x"
    expr = stmt.value
    assert expr.op.type is TokenType.PLUS
    assert expr.left == LiteralExpr(1.0)
    assert expr.right.op.type is TokenType.STAR


def test_local_without_initializer():
    (stmt,) = parse_ok("local y")
    assert isinstance(stmt, LocalStmt)
    assert stmt.value is None


def test_subtraction_is_left_associative():
    expr = value_of("x = 1 - 2 - 3")
    assert isinstance(expr.left, BinaryExpr)
    assert expr.right == LiteralExpr(3.0)


def test_concat_is_right_associative():
    expr = value_of("x = a .. b .. c")
    assert isinstance(expr.left, NameExpr)
    assert isinstance(expr.right, BinaryExpr)
    assert expr.right.op.type is TokenType.DOT_DOT


def test_power_binds_tighter_than_unary_minus():
    expr = value_of("x = -2 ^ 2")
    assert isinstance(expr, UnaryExpr)
    assert expr.operator.type is TokenType.MINUS
    assert expr.operand.op.type is TokenType.CARET


def test_power_is_right_associative():
    expr = value_of("x = 2 ^ 3 ^ 2")
    assert expr.left == LiteralExpr(2.0)
    assert expr.right.op.type is TokenType.CARET


def test_and_binds_tighter_than_or():
    expr = value_of("x = a or b and c")
    assert expr.op.type is TokenType.OR
    assert expr.right.op.type is TokenType.AND


def test_comparisons_are_left_associative():
    expr = value_of("x = 1 < 2 == true")
    assert expr.op.type is TokenType.EQUAL_EQUAL
    assert expr.left.op.type is TokenType.LESS
    assert expr.right == LiteralExpr(True)


def test_grouping_overrides_precedence():
    expr = value_of("x = (1 + 2) * 3")
    assert expr.op.type is TokenType.STAR
    assert expr.left.op.type is TokenType.PLUS


@pytest.mark.parametrize(
    "source, expected",
    [
        ("x = nil", LiteralExpr(None)),
        ("x = true", LiteralExpr(True)),
        ("x = false", LiteralExpr(False)),
        ("x = 'hi'", LiteralExpr("hi")),
        ("x = 4.5", LiteralExpr(4.5)),
    ],
)
def test_literals(source, expected):
    assert value_of(source) == expected


@pytest.mark.parametrize("op, token_type", [("not", TokenType.NOT), ("#", TokenType.HASH)])
def test_unary_operators(op, token_type):
    expr = value_of(f"x = {op} t")
    assert expr.operator.type is token_type
    assert expr.operand.name.lexeme == "t"


def test_assignment_statement():
    (stmt,) = parse_ok("count = count + 1")
    assert isinstance(stmt, AssignStmt)
    assert stmt.name.lexeme == "count"
    assert stmt.value.left.name.lexeme == "count"


def test_call_field_index_chain():
    (stmt,) = parse_ok("a.b[c](1, 2)")
    assert isinstance(stmt, ExpressionStmt)
    call = stmt.expression
    assert isinstance(call, CallExpr)
    assert call.arguments == [LiteralExpr(1.0), LiteralExpr(2.0)]
    assert call.paren.type is TokenType.RIGHT_PAREN
    index = call.callee
    assert isinstance(index, IndexExpr)
    assert index.index.name.lexeme == "c"
    field = index.object
    assert isinstance(field, FieldExpr)
    assert field.field.lexeme == "b"
    assert field.object.name.lexeme == "a"


def test_call_without_arguments():
    (stmt,) = parse_ok("print()")
    assert stmt.expression.arguments == []


def test_if_elseif_else_chain():
    (stmt,) = parse_ok("if a then x = 1 elseif b then x = 2 else x = 3 end")
    assert isinstance(stmt, IfStmt)
    assert stmt.condition.name.lexeme == "a"
    assert isinstance(stmt.then_branch, BlockStmt)
    nested = stmt.else_branch
    assert isinstance(nested, IfStmt)
    assert nested.condition.name.lexeme == "b"
    assert isinstance(nested.else_branch, BlockStmt)
    assert nested.else_branch.statements[0].value == LiteralExpr(3.0)


def test_if_without_else():
    (stmt,) = parse_ok("if a then end")
    assert stmt.then_branch == BlockStmt([])
    assert stmt.else_branch is None


def test_while_with_break():
    (stmt,) = parse_ok("while x do y = 1 break end")
    assert isinstance(stmt, WhileStmt)
    body = stmt.body.statements
    assert isinstance(body[0], AssignStmt)
    assert isinstance(body[-1], BreakStmt)


def test_repeat_until():
    (stmt,) = parse_ok("repeat x = x + 1 until x > 3")
    assert isinstance(stmt, RepeatStmt)
    assert len(stmt.body.statements) == 1
    assert stmt.condition.op.type is TokenType.GREATER


def test_do_block():
    (stmt,) = parse_ok("do local a = 1 end")
    assert isinstance(stmt, DoStmt)
    assert isinstance(stmt.body.statements[0], LocalStmt)


def test_for_range_with_and_without_step():
    with_step, without_step = parse_ok("for i = 1, 10, 2 do end for j = 1, 3 do end")
    assert isinstance(with_step, ForRangeStmt)
    assert with_step.name.lexeme == "i"
    assert with_step.step == LiteralExpr(2.0)
    assert without_step.step is None
    assert without_step.stop == LiteralExpr(3.0)


def test_for_each():
    (stmt,) = parse_ok("for k, v in pairs(t), u do end")
    assert isinstance(stmt, ForEachStmt)
    assert [n.lexeme for n in stmt.names] == ["k", "v"]
    assert len(stmt.explist) == 2
    assert isinstance(stmt.explist[0], CallExpr)


def test_function_statement():
    (stmt,) = parse_ok("function add(a, b) return a + b end")
    assert isinstance(stmt, FunctionStmt)
    assert stmt.name.lexeme == "add"
    assert [p.lexeme for p in stmt.function.params] == ["a", "b"]
    (ret,) = stmt.function.body.statements
    assert isinstance(ret, ReturnStmt)
    assert ret.value.op.type is TokenType.PLUS


def test_local_function_and_function_expression():
    local_fn, assign = parse_ok("local function f() end g = function(x) end")
    assert isinstance(local_fn, LocalFunctionStmt)
    assert local_fn.function.params == []
    assert isinstance(assign.value, FunctionExpr)
    assert assign.value.params[0].lexeme == "x"


def test_return_without_value_in_block():
    (stmt,) = parse_ok("function f() return end")
    (ret,) = stmt.function.body.statements
    assert ret.value is None
    assert ret.keyword.type is TokenType.RETURN


def test_top_level_return():
    (stmt,) = parse_ok("return 5")
    assert isinstance(stmt, ReturnStmt)
    assert stmt.value == LiteralExpr(5.0)


def test_invalid_assignment_target():
    statements, parser = run("f() = 1")
    assert statements == []
    assert [e.message for e in parser.errors] == ["Invalid assignment target."]
    assert parser.errors[0].line == 1


def test_unclosed_block():
    _, parser = run("while x do")
    assert parser.errors[0].message == "Expected 'end' to close block"


def test_recovery_continues_with_next_statement():
    statements, parser = run("x = ; local y = 2")
    assert [e.message for e in parser.errors] == ["Expected expression."]
    assert len(statements) == 1
    assert statements[0].name.lexeme == "y"


def test_top_level_break_is_error():
    statements, parser = run("break")
    assert statements == []
    assert parser.errors[0].message == "Expected expression."


def test_error_line_number():
    _, parser = run("local a = 1\n\nlocal = 2")
    assert parser.errors[0].message == "Expected variable name after 'local'"
    assert parser.errors[0].line == 3


def test_error_reported_on_stream():
    err = io.StringIO()
    Parser(tokenize("f() = 1"), err=err).parse()
    assert err.getvalue() == "ParseError: Invalid assignment target. at line 1\n"


def test_parameter_limit():
    allowed = ", ".join(f"p{i}" for i in range(255))
    (stmt,) = parse_ok(f"function f({allowed}) end")
    assert len(stmt.function.params) == 255

    too_many = ", ".join(f"p{i}" for i in range(256))
    _, parser = run(f"function f({too_many}) end")
    assert parser.errors[0].message == "Cannot have more than 255 parameters."


def test_parse_error_is_exception_with_line():
    error = ParseError("bad", 7)
    assert str(error) == "bad"
    assert error.line == 7


def test_module_parse_matches_parser(capsys):
    source = "local a = 1 while a < 3 do a = a + 1 end print(a)"
    assert parse(tokenize(source)) == parse_ok(source)
    assert capsys.readouterr().err == ""


def test_module_parse_reports_to_stderr(capsys):
    assert parse(tokenize("break")) == []
    assert "Expected expression." in capsys.readouterr().err


def test_walk_visits_all_names():
    statements = parse_ok("x = a + b * c")
    names = [n.name.lexeme for n in walk(statements[0]) if isinstance(n, NameExpr)]
    assert names == ["a", "b", "c"]