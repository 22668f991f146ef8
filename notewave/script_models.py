"""Data models for parsed notation scripts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Final, Union

from notewave.lexer import (
    ENDLINE_COMMENT,
    ESCAPE_SYMBOL,
    INDEPENDENT_WORDS,
    LINE_SEPARATORS,
    MULTILINE_COMMENT_END,
    MULTILINE_COMMENT_START,
    WORD_SEPARATORS,
)

_SPECIAL_CHARACTERS: Final[frozenset[str]] = (
    WORD_SEPARATORS
    | INDEPENDENT_WORDS
    | LINE_SEPARATORS
    | {ESCAPE_SYMBOL, ENDLINE_COMMENT, MULTILINE_COMMENT_START, MULTILINE_COMMENT_END}
)


def escape_word(word: str) -> str:
    """Prefix every character the lexer treats specially with an escape."""
    return "".join(ESCAPE_SYMBOL + char if char in _SPECIAL_CHARACTERS else char for char in word)


@dataclass(frozen=True)
class Whole:
    """An unsigned whole number literal."""

    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Fraction:
    """A ``numerator / denominator`` literal; the denominator is never zero."""

    numerator: int
    denominator: int

    def __str__(self) -> str:
        return f"{self.numerator} / {self.denominator}"

    def __float__(self) -> float:
        return self.numerator / self.denominator


@dataclass(frozen=True)
class Text:
    """Any bare word that is not a number."""

    value: str

    def __str__(self) -> str:
        return escape_word(self.value)


Value = Union[Whole, Fraction, Text]


def value_kind(value: Value) -> str:
    """Semantic category name of *value*, as used in error messages."""
    if isinstance(value, Whole):
        return "whole"
    if isinstance(value, Fraction):
        return "fraction"
    return "string"


@dataclass(frozen=True)
class Label:
    """``@name``: opens a new named scope."""

    name: str
    offset: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return f"@{escape_word(self.name)}"


@dataclass(frozen=True)
class Property:
    """``name: value``: a property assignment for the enclosing scope."""

    name: str
    value: Value
    offset: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return f"{escape_word(self.name)}: {self.value}"


@dataclass(frozen=True)
class Command:
    """``name arg1 ... argN``: a command invocation inside a label scope."""

    name: str
    arguments: tuple[Value, ...] = ()
    offset: int = field(default=0, compare=False)

    def __str__(self) -> str:
        return " ".join([escape_word(self.name), *(str(argument) for argument in self.arguments)])


ScriptToken = Union[Label, Property, Command]


@dataclass(frozen=True)
class Script:
    """
    An ordered sequence of parsed tokens.

    The string form writes one token per line and parses back into an
    equal script.
    """

    tokens: tuple[ScriptToken, ...] = ()

    def __len__(self) -> int:
        return len(self.tokens)

    def __str__(self) -> str:
        return "\n".join(str(token) for token in self.tokens)
