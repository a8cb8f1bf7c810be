import dataclasses

import pytest

from lunavm.tokens import Token, TokenType


def test_token_fields_are_kept():
    tok = Token(TokenType.NUMBER, "42", 42.0, 3)
    assert tok.type is TokenType.NUMBER
    assert tok.lexeme == "42"
    assert tok.literal == 42.0
    assert tok.line == 3


def test_token_defaults():
    tok = Token(TokenType.PLUS, "+")
    assert tok.literal is None
    assert tok.line == 1


def test_token_is_immutable():
    tok = Token(TokenType.IDENTIFIER, "x")
    with pytest.raises(dataclasses.FrozenInstanceError):
        tok.lexeme = "y"
    assert tok.lexeme == "x"
    changed = dataclasses.replace(tok, lexeme="y")
    assert changed.lexeme == "y"
    assert tok.lexeme == "x"


def test_tokens_compare_by_value_and_hash():
    a = Token(TokenType.STRING, '"hi"', "hi", 2)
    b = Token(TokenType.STRING, '"hi"', "hi", 2)
    c = Token(TokenType.STRING, '"hi"', "hi", 5)
    assert a == b
    assert a != c
    assert len({a, b, c}) == 2


def test_token_types_are_distinct():
    tokens = {Token(member, "") for member in TokenType}
    assert len(tokens) == len(TokenType)
    assert Token(TokenType["EOF"], "").type is TokenType.EOF


def test_token_str_mentions_kind_and_lexeme():
    text = str(Token(TokenType.LOCAL, "local", None, 7))
    assert "LOCAL" in text
    assert "'local'" in text