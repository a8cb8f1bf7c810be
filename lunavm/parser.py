"""Recursive-descent parser producing syntax tree statements from tokens."""

from __future__ import annotations

import sys
from typing import Callable, Optional, TextIO

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
from .tokens import Token, TokenType

MAX_PARAMETERS = 255

_BLOCK_CLOSERS = frozenset(
    {
        TokenType.END,
        TokenType.ELSE,
        TokenType.ELSEIF,
        TokenType.UNTIL,
        TokenType.RETURN,
        TokenType.BREAK,
    }
)

# Tokens at which error recovery resumes parsing.
_SYNC_POINTS = frozenset(
    {
        TokenType.LOCAL,
        TokenType.FUNCTION,
        TokenType.IF,
        TokenType.WHILE,
        TokenType.FOR,
        TokenType.AND,
        TokenType.OR,
        TokenType.REPEAT,
        TokenType.DO,
        TokenType.RETURN,
        TokenType.BREAK,
        TokenType.END,
        TokenType.ELSE,
        TokenType.ELSEIF,
        TokenType.UNTIL,
    }
)

_COMPARISON = (
    TokenType.LESS,
    TokenType.GREATER,
    TokenType.LESS_EQUAL,
    TokenType.GREATER_EQUAL,
    TokenType.EQUAL_EQUAL,
    TokenType.TILDE_EQUAL,
)


class ParseError(Exception):
    """Raised when the token stream does not follow the grammar."""

    def __init__(self, message: str, line: int) -> None:
        super().__init__(message)
        self.message = message
        self.line = line


class Parser:
    """Parses a token list (ending with EOF) into a list of statements.

    Errors in a statement are reported on ``err`` (standard error by default),
    collected in ``errors``, and parsing resumes at the next statement.
    """

    def __init__(self, tokens: list[Token], err: Optional[TextIO] = None) -> None:
        self._tokens = list(tokens)
        self._current = 0
        self._err = err
        self.errors: list[ParseError] = []

    def parse(self) -> list[Stmt]:
        """Parse every statement, recovering from errors."""
        statements: list[Stmt] = []
        while not self._done():
            try:
                statements.append(self._statement())
            except ParseError as error:
                self.errors.append(error)
                print(
                    f"ParseError: {error.message} at line {error.line}",
                    file=self._err if self._err is not None else sys.stderr,
                )
                self._sync()
        return statements

    # statements

    def _statement(self) -> Stmt:
        if self._match(TokenType.LOCAL):
            return self._local_statement()
        if self._match(TokenType.WHILE):
            return self._while_statement()
        if self._match(TokenType.REPEAT):
            return self._repeat_statement()
        if self._match(TokenType.DO):
            return self._do_statement()
        if self._match(TokenType.IF):
            return self._if_statement()
        if self._match(TokenType.RETURN):
            return self._return_statement()
        if self._match(TokenType.FOR):
            return self._for_statement()
        if self._match(TokenType.FUNCTION):
            return self._function_statement()
        return self._expression_statement()

    def _func_body(self) -> tuple[list[Token], Stmt]:
        self._consume(TokenType.LEFT_PAREN, "Expected '(' after function name")
        params: list[Token] = []
        if not self._check(TokenType.RIGHT_PAREN):
            while True:
                if len(params) >= MAX_PARAMETERS:
                    raise ParseError(
                        "Cannot have more than 255 parameters.", self._peek().line
                    )
                params.append(self._consume(TokenType.IDENTIFIER, "Expected parameter name"))
                if not self._match(TokenType.COMMA):
                    break
        self._consume(TokenType.RIGHT_PAREN, "Expected ')' after parameters")
        body = self._block_statement()
        self._consume(TokenType.END, "Expected 'end' after function body")
        return params, body

    def _for_statement(self) -> Stmt:
        name = self._consume(TokenType.IDENTIFIER, "Expected variable name after 'for'.")
        if self._match(TokenType.EQUAL):
            return self._for_range_statement(name)
        return self._for_each_statement(name)

    def _for_each_statement(self, name: Token) -> Stmt:
        names = [name]
        while self._match(TokenType.COMMA):
            names.append(self._consume(TokenType.IDENTIFIER, "Expected name in namelist"))
        self._consume(TokenType.IN, "Expected 'in' after namelist")
        explist = self._expression_list()
        self._consume(TokenType.DO, "Expceted 'do' after explist")
        body = self._block_statement()
        self._consume(TokenType.END, "Expected 'end' after body of for each statement")
        return ForEachStmt(names, explist, body)

    def _for_range_statement(self, name: Token) -> Stmt:
        start = self._expression()
        self._consume(TokenType.COMMA, "Expected ',' after start value.")
        stop = self._expression()
        step = self._expression() if self._match(TokenType.COMMA) else None
        self._consume(TokenType.DO, "Expected 'do' after for declaration")
        body = self._block_statement()
        self._consume(TokenType.END, "Expected 'end' after body of for statement")
        return ForRangeStmt(name, start, stop, step, body)

    def _function_expression(self) -> FunctionExpr:
        params, body = self._func_body()
        return FunctionExpr(params, body)

    def _function_statement(self) -> Stmt:
        name = self._consume(TokenType.IDENTIFIER, "Expected function name after declaration")
        return FunctionStmt(name, self._function_expression())

    def _local_function_statement(self) -> Stmt:
        name = self._consume(TokenType.IDENTIFIER, "Expected function name after declaration")
        return LocalFunctionStmt(name, self._function_expression())

    def _return_statement(self) -> Stmt:
        keyword = self._previous()
        value = None
        if not self._done() and self._peek().type not in _BLOCK_CLOSERS:
            value = self._expression()
        return ReturnStmt(keyword, value)

    def _break_statement(self) -> Stmt:
        return BreakStmt(self._previous())

    def _expression_statement(self) -> Stmt:
        expr = self._expression()
        if self._match(TokenType.EQUAL):
            if not isinstance(expr, NameExpr):
                raise ParseError("Invalid assignment target.", self._peek().line)
            return AssignStmt(expr.name, self._expression())
        return ExpressionStmt(expr)

    def _block_statement(self) -> Stmt:
        statements: list[Stmt] = []
        while not self._done() and self._peek().type not in _BLOCK_CLOSERS:
            statements.append(self._statement())

        if self._match(TokenType.RETURN):
            statements.append(self._return_statement())
        elif self._match(TokenType.BREAK):
            statements.append(self._break_statement())

        if self._done():
            raise ParseError("Expected 'end' to close block", self._peek().line)
        return BlockStmt(statements)

    def _local_statement(self) -> Stmt:
        if self._match(TokenType.FUNCTION):
            return self._local_function_statement()
        name = self._consume(TokenType.IDENTIFIER, "Expected variable name after 'local'")
        value = self._expression() if self._match(TokenType.EQUAL) else None
        return LocalStmt(name, value)

    def _while_statement(self) -> Stmt:
        condition = self._expression()
        self._consume(TokenType.DO, "Expected 'do' after condition")
        body = self._block_statement()
        self._consume(TokenType.END, "Expected 'end' after block")
        return WhileStmt(condition, body)

    def _repeat_statement(self) -> Stmt:
        body = self._block_statement()
        self._consume(TokenType.UNTIL, "Expected 'until' after block")
        return RepeatStmt(body, self._expression())

    def _conditional_branch(self) -> IfStmt:
        condition = self._expression()
        self._consume(TokenType.THEN, "Expected 'then' after expression")
        return IfStmt(condition, self._block_statement(), None)

    def _if_statement(self) -> Stmt:
        head = self._conditional_branch()
        tail = head
        while self._match(TokenType.ELSEIF):
            branch = self._conditional_branch()
            tail.else_branch = branch
            tail = branch
        if self._match(TokenType.ELSE):
            tail.else_branch = self._block_statement()
        self._consume(TokenType.END, "Expected 'end' after if statement")
        return head

    def _do_statement(self) -> Stmt:
        body = self._block_statement()
        self._consume(TokenType.END, "Expected 'end' after block")
        return DoStmt(body)

    # expressions

    def _expression(self) -> Expr:
        return self._or_expression()

    def _expression_list(self) -> list[Expr]:
        exprs = [self._expression()]
        while self._match(TokenType.COMMA):
            exprs.append(self._expression())
        return exprs

    def _left_assoc(self, types: tuple[TokenType, ...], operand: Callable[[], Expr]) -> Expr:
        left = operand()
        while self._match(*types):
            op = self._previous()
            left = BinaryExpr(left, op, operand())
        return left

    def _right_assoc(
        self,
        types: tuple[TokenType, ...],
        operand: Callable[[], Expr],
        itself: Callable[[], Expr],
    ) -> Expr:
        left = operand()
        if self._match(*types):
            op = self._previous()
            return BinaryExpr(left, op, itself())
        return left

    def _or_expression(self) -> Expr:
        return self._left_assoc((TokenType.OR,), self._and_expression)

    def _and_expression(self) -> Expr:
        return self._left_assoc((TokenType.AND,), self._comparison_expression)

    def _comparison_expression(self) -> Expr:
        return self._left_assoc(_COMPARISON, self._concat_expression)

    def _concat_expression(self) -> Expr:
        return self._right_assoc(
            (TokenType.DOT_DOT,), self._term_expression, self._concat_expression
        )

    def _term_expression(self) -> Expr:
        return self._left_assoc((TokenType.PLUS, TokenType.MINUS), self._factor_expression)

    def _factor_expression(self) -> Expr:
        return self._left_assoc(
            (TokenType.STAR, TokenType.SLASH, TokenType.PERCENT), self._unary_expression
        )

    def _unary_expression(self) -> Expr:
        if self._match(TokenType.MINUS, TokenType.NOT, TokenType.HASH):
            op = self._previous()
            return UnaryExpr(op, self._power_expression())
        return self._power_expression()

    def _power_expression(self) -> Expr:
        return self._right_assoc(
            (TokenType.CARET,), self._base_expression, self._power_expression
        )

    def _base_expression(self) -> Expr:
        literal = self._literal_expression()
        if literal is not None:
            return literal
        if self._match(TokenType.FUNCTION):
            return self._function_expression()
        prefix = self._prefix_expression()
        if prefix is not None:
            return prefix
        raise ParseError("Expected expression.", self._peek().line)

    def _literal_expression(self) -> Optional[Expr]:
        if self._match(TokenType.NUMBER, TokenType.STRING):
            return LiteralExpr(self._previous().literal)
        if self._match(TokenType.NIL):
            return LiteralExpr(None)
        if self._match(TokenType.TRUE):
            return LiteralExpr(True)
        if self._match(TokenType.FALSE):
            return LiteralExpr(False)
        return None

    def _prefix_expression(self) -> Optional[Expr]:
        expr: Expr
        if self._match(TokenType.IDENTIFIER):
            expr = NameExpr(self._previous())
        elif self._match(TokenType.LEFT_PAREN):
            expr = self._expression()
            self._consume(TokenType.RIGHT_PAREN, "Expected ')' after expression")
        else:
            return None

        while True:
            if self._match(TokenType.LEFT_PAREN):
                args = [] if self._check(TokenType.RIGHT_PAREN) else self._expression_list()
                paren = self._consume(TokenType.RIGHT_PAREN, "Expected ')' after arguments")
                expr = CallExpr(expr, paren, args)
            elif self._match(TokenType.LEFT_BRACKET):
                index = self._expression()
                self._consume(TokenType.RIGHT_BRACKET, "Expected ']' after expression.")
                expr = IndexExpr(expr, index)
            elif self._match(TokenType.DOT):
                name = self._consume(TokenType.IDENTIFIER, "Expected field name after '.'.")
                expr = FieldExpr(expr, name)
            else:
                return expr

    # cursor helpers

    def _peek(self) -> Token:
        return self._tokens[self._current]

    def _previous(self) -> Token:
        return self._tokens[self._current - 1]

    def _done(self) -> bool:
        return self._peek().type is TokenType.EOF

    def _advance(self) -> Token:
        if not self._done():
            self._current += 1
        return self._previous()

    def _check(self, token_type: TokenType) -> bool:
        return not self._done() and self._peek().type is token_type

    def _match(self, *types: TokenType) -> bool:
        if any(self._check(t) for t in types):
            self._advance()
            return True
        return False

    def _consume(self, token_type: TokenType, message: str) -> Token:
        if not self._check(token_type):
            raise ParseError(message, self._peek().line)
        return self._advance()

    def _sync(self) -> None:
        self._advance()
        while not self._done():
            if self._peek().type in _SYNC_POINTS:
                return
            self._advance()


def parse(tokens: list[Token]) -> list[Stmt]:
    """Parse ``tokens`` into statements, reporting errors on standard error."""
    return Parser(tokens).parse()