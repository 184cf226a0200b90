"""Tokenizer for validation rules.

A rule is a short boolean sentence over function calls, as written by form
designers next to each report field::

    lenMin(5) && regex('^[0-9]+$')
    not empty and (integer or equals('n/a'))

Symbols and their word spellings (``&&``/``and``, ``||``/``or``, ``!``/``not``)
produce the same tokens. Function arguments are literals only: numbers,
quoted strings, ``true``, ``false`` and ``null``.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterator


class TokenType(Enum):
    NUMBER = auto()
    STRING = auto()
    BOOLEAN = auto()
    NULL = auto()
    IDENTIFIER = auto()
    AND = auto()
    OR = auto()
    NOT = auto()
    LPAREN = auto()
    RPAREN = auto()
    COMMA = auto()
    EOF = auto()


@dataclass(frozen=True)
class Token:
    """One lexeme of a rule, with its 0-based offset and 1-based line/column."""

    type: TokenType
    value: str | int | float | bool | None
    position: int
    line: int = 1
    column: int = 1

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, pos={self.position})"


class LexerError(Exception):
    """A rule contains a character that starts no token."""

    def __init__(self, message: str, position: int, line: int = 1, column: int = 1):
        self.position = position
        self.line = line
        self.column = column
        super().__init__(f"{message} at line {line}, column {column}")


# One alternation; the group name says what matched. Floats precede ints.
_SCANNER = re.compile(
    r"""
    (?P<space>\s+)
  | (?P<and>&&)
  | (?P<or>\|\|)
  | (?P<not>!)
  | (?P<lparen>\()
  | (?P<rparen>\))
  | (?P<comma>,)
  | (?P<float>-?[0-9]+\.[0-9]+)
  | (?P<int>-?[0-9]+)
  | (?P<dstring>"(?:[^"\\]|\\.)*")
  | (?P<sstring>'(?:[^'\\]|\\.)*')
  | (?P<word>[A-Za-z_][A-Za-z0-9_]*)
    """,
    re.VERBOSE,
)

_PUNCTUATION = {
    "and": TokenType.AND,
    "or": TokenType.OR,
    "not": TokenType.NOT,
    "lparen": TokenType.LPAREN,
    "rparen": TokenType.RPAREN,
    "comma": TokenType.COMMA,
}

# Reserved words, matched case-insensitively
_WORDS = {
    "true": (TokenType.BOOLEAN, True),
    "false": (TokenType.BOOLEAN, False),
    "null": (TokenType.NULL, None),
    "and": (TokenType.AND, "and"),
    "or": (TokenType.OR, "or"),
    "not": (TokenType.NOT, "not"),
}

_QUOTE_ESCAPE = re.compile(r"""\\(['"])""")


def _string_value(literal: str) -> str:
    # Only \' and \" are escapes; regex arguments keep their backslashes.
    return _QUOTE_ESCAPE.sub(r"\1", literal[1:-1])


class Lexer:
    """Yields the tokens of one rule, ending with a single EOF token."""

    def __init__(self, source: str):
        self.source = source

    def __iter__(self) -> Iterator[Token]:
        source = self.source
        position = 0
        line = 1
        line_start = 0

        while position < len(source):
            match = _SCANNER.match(source, position)
            if match is None:
                raise LexerError(
                    f"Unexpected character '{source[position]}'",
                    position,
                    line,
                    position - line_start + 1,
                )

            kind = match.lastgroup
            text = match.group()
            column = position - line_start + 1

            if kind == "space":
                newlines = text.count("\n")
                if newlines:
                    line += newlines
                    line_start = position + text.rindex("\n") + 1
            elif kind in _PUNCTUATION:
                yield Token(_PUNCTUATION[kind], text, position, line, column)
            elif kind == "float":
                yield Token(TokenType.NUMBER, float(text), position, line, column)
            elif kind == "int":
                yield Token(TokenType.NUMBER, int(text), position, line, column)
            elif kind in ("dstring", "sstring"):
                yield Token(TokenType.STRING, _string_value(text), position, line, column)
            else:
                token_type, value = _WORDS.get(text.lower(), (TokenType.IDENTIFIER, text))
                yield Token(token_type, value, position, line, column)

            position = match.end()

        yield Token(TokenType.EOF, None, position, line, position - line_start + 1)

    def tokenize(self) -> list[Token]:
        return list(self)


def tokenize(source: str) -> list[Token]:
    """Tokenize a rule string."""
    return Lexer(source).tokenize()
