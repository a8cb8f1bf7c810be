"""A small Lua-like language: lexer, parser, bytecode compiler and stack virtual machine."""

__version__ = "0.1.0"

__all__ = ["__version__"]