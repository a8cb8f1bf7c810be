"""Turns Lua source text into a list of tokens."""

from __future__ import annotations

from .tokens import LiteralValue, Token, TokenType

KEYWORDS: dict[str, TokenType] = {
    "and": TokenType.AND,
    "break": TokenType.BREAK,
    "do": TokenType.DO,
    "else": TokenType.ELSE,
    "elseif": TokenType.ELSEIF,
    "end": TokenType.END,
    "false": TokenType.FALSE,
    "for": TokenType.FOR,
    "function": TokenType.FUNCTION,
    "if": TokenType.IF,
    "in": TokenType.IN,
    "local": TokenType.LOCAL,
    "nil": TokenType.NIL,
    "not": TokenType.NOT,
    "or": TokenType.OR,
    "repeat": TokenType.REPEAT,
    "return": TokenType.RETURN,
    "then": TokenType.THEN,
    "true": TokenType.TRUE,
    "until": TokenType.UNTIL,
    "while": TokenType.WHILE,
}

_SINGLE_CHAR: dict[str, TokenType] = {
    "(": TokenType.LEFT_PAREN,
    ")": TokenType.RIGHT_PAREN,
    "{": TokenType.LEFT_BRACE,
    "}": TokenType.RIGHT_BRACE,
    ",": TokenType.COMMA,
    "]": TokenType.RIGHT_BRACKET,
    ":": TokenType.COLON,
    "+": TokenType.PLUS,
    ";": TokenType.SEMICOLON,
    "*": TokenType.STAR,
    "/": TokenType.SLASH,
    "%": TokenType.PERCENT,
    "^": TokenType.CARET,
    "#": TokenType.HASH,
}

# Characters that may be followed by '=' to form a two-character operator.
_WITH_EQUAL: dict[str, tuple[TokenType, TokenType]] = {
    "=": (TokenType.EQUAL, TokenType.EQUAL_EQUAL),
    "<": (TokenType.LESS, TokenType.LESS_EQUAL),
    ">": (TokenType.GREATER, TokenType.GREATER_EQUAL),
}

_END = "\0"


def _is_digit(c: str) -> bool:
    return "0" <= c <= "9"


def _is_alpha(c: str) -> bool:
    return "a" <= c <= "z" or "A" <= c <= "Z" or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_digit(c) or _is_alpha(c)


class LexError(Exception):
    """Raised when the source text cannot be split into tokens."""

    def __init__(self, message: str, line: int) -> None:
        super().__init__(message)
        self.line = line


class Lexer:
    """Scans a source string into tokens."""

    def __init__(self, source: str) -> None:
        self.source = source
        self._tokens: list[Token] = []
        self._start = 0
        self._current = 0
        self._line = 1

    def scan_tokens(self) -> list[Token]:
        """Return every token in the source, ending with an EOF token."""
        self._tokens = []
        self._start = 0
        self._current = 0
        self._line = 1
        while not self._at_end():
            self._start = self._current
            self._scan_token()
        self._tokens.append(Token(TokenType.EOF, "", None, self._line))
        return list(self._tokens)

    # scanning

    def _scan_token(self) -> None:
        c = self._advance()
        if c in _SINGLE_CHAR:
            self._add(_SINGLE_CHAR[c])
        elif c in _WITH_EQUAL:
            plain, with_equal = _WITH_EQUAL[c]
            self._add(with_equal if self._match("=") else plain)
        elif c == "[":
            if self._match("["):
                self._long_string()
            else:
                self._add(TokenType.LEFT_BRACKET)
        elif c == ".":
            if not self._match("."):
                self._add(TokenType.DOT)
            elif not self._match("."):
                self._add(TokenType.DOT_DOT)
            else:
                self._add(TokenType.DOT_DOT_DOT)
        elif c == "-":
            if self._match("-"):
                self._comment()
            else:
                self._add(TokenType.MINUS)
        elif c == "~":
            if not self._match("="):
                raise LexError("Unexpected '~'", self._line)
            self._add(TokenType.TILDE_EQUAL)
        elif c in " \t\r":
            pass
        elif c == "\n":
            self._line += 1
        elif c in "\"'":
            self._string(c)
        elif _is_digit(c):
            self._number()
        elif _is_alpha(c):
            self._identifier()
        else:
            raise LexError(f"Unexpected character {c!r} at line {self._line}", self._line)

    def _skip_to_double_bracket(self) -> bool:
        """Advance up to the next ']]'; return False if the input ends first."""
        while not self._at_end() and not (self._peek() == "]" and self._peek_next() == "]"):
            if self._peek() == "\n":
                self._line += 1
            self._advance()
        return not self._at_end()

    def _long_string(self) -> None:
        begin = self._current
        if not self._skip_to_double_bracket():
            raise LexError("Unterminated long string", self._line)
        text = self.source[begin:self._current]
        self._current += 2
        self._add(TokenType.STRING, text)

    def _comment(self) -> None:
        if not (self._peek() == "[" and self._peek_next() == "["):
            while not self._at_end() and self._peek() != "\n":
                self._advance()
            return
        if not self._skip_to_double_bracket():
            raise LexError("Unterminated block comment", self._line)
        self._current += 2

    def _string(self, quote: str) -> None:
        while not self._at_end() and self._peek() != quote:
            if self._peek() == "\n":
                self._line += 1
            self._advance()
        if self._at_end():
            raise LexError("Unexpected end of input", self._line)
        self._advance()
        self._add(TokenType.STRING, self.source[self._start + 1:self._current - 1])

    def _number(self) -> None:
        while _is_digit(self._peek()):
            self._advance()
        if self._peek() == "." and _is_digit(self._peek_next()):
            self._advance()
            while _is_digit(self._peek()):
                self._advance()
        self._add(TokenType.NUMBER, float(self.source[self._start:self._current]))

    def _identifier(self) -> None:
        while _is_alnum(self._peek()):
            self._advance()
        text = self.source[self._start:self._current]
        self._add(KEYWORDS.get(text, TokenType.IDENTIFIER))

    # cursor helpers

    def _at_end(self) -> bool:
        return self._current >= len(self.source)

    def _peek(self) -> str:
        return _END if self._at_end() else self.source[self._current]

    def _peek_next(self) -> str:
        nxt = self._current + 1
        return _END if nxt >= len(self.source) else self.source[nxt]

    def _match(self, expected: str) -> bool:
        if self._at_end() or self.source[self._current] != expected:
            return False
        self._current += 1
        return True

    def _advance(self) -> str:
        c = self.source[self._current]
        self._current += 1
        return c

    def _add(self, token_type: TokenType, literal: LiteralValue = None) -> None:
        lexeme = self.source[self._start:self._current]
        self._tokens.append(Token(token_type, lexeme, literal, self._line))


def tokenize(source: str) -> list[Token]:
    """Scan ``source`` and return its tokens, ending with EOF."""
    return Lexer(source).scan_tokens()