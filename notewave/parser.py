"""Parser: Builds a Script from a lexical token stream."""

from __future__ import annotations

import re
from collections.abc import Iterable
from fractions import Fraction as _ExactFraction
from typing import Final

from notewave.lexer import LexToken, SentenceEnd, TokenStream, Word
from notewave.script_models import (
    Command,
    Fraction,
    Label,
    Property,
    Script,
    ScriptToken,
    Text,
    Value,
    Whole,
)

LABEL_MARKER: Final[str] = "@"
PROPERTY_SEPARATOR: Final[str] = ":"
FRACTION_SEPARATOR: Final[str] = "/"

MAX_WHOLE: Final[int] = 2**32 - 1

_WHOLE_PATTERN: Final[re.Pattern[str]] = re.compile(r"\+?[0-9]+")
_DECIMAL_PATTERN: Final[re.Pattern[str]] = re.compile(r"[0-9]*\.[0-9]+|[0-9]+\.[0-9]*")


# ── Errors ──────────────────────────────────────────────────────────────────

class ParsingError(ValueError):
    """Base class for every failure raised while parsing a script."""


class TokenStreamDepletedError(ParsingError):
    """The token stream ended in the middle of a statement."""

    def __init__(self) -> None:
        super().__init__("Unexpected end of input.")


class EndOfSentenceError(ParsingError):
    """A word was expected but a statement boundary came first."""

    def __init__(self, parsing_as: str, pos: int) -> None:
        self.parsing_as = parsing_as
        self.pos = pos
        super().__init__(f"Expected a {parsing_as} but the statement ended (at {pos}).")


class LiteralError(ParsingError):
    """A numeric literal could not be converted."""

    def __init__(self, text: str, parsing_as: str, pos: int, reason: str) -> None:
        self.text = text
        self.parsing_as = parsing_as
        self.pos = pos
        self.reason = reason
        super().__init__(f"Could not parse '{text}' as a {parsing_as} (at {pos}): {reason}.")


# ── Parser ──────────────────────────────────────────────────────────────────

class ScriptParser:
    """
    Recursive-descent parser over a ``TokenStream``.

    Grammar (one statement per line or ``;``)
    ----------------------------------------
    ``@name``                 label, opens a scope
    ``name: value``           property assignment
    ``name arg1 ... argN``    command invocation

    A value is a whole number, ``a / b`` (fraction), a decimal literal
    (stored as the exact fraction it denotes) or any other bare word.

    Lookahead is a single token: the parser takes the next token from the
    stream and hands it back with ``TokenStream.schedule()`` when it turns
    out to belong to the following construct.
    """

    def __init__(self, stream: TokenStream) -> None:
        self.stream = stream

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _next(self) -> LexToken | None:
        return next(self.stream, None)

    def _expect_word(self, parsing_as: str) -> Word:
        token = self._next()
        if token is None:
            raise TokenStreamDepletedError()
        if isinstance(token, SentenceEnd):
            raise EndOfSentenceError(parsing_as, token.pos)
        return token

    def _skip_sentence_end(self) -> None:
        """Drop a statement boundary if one follows; leave anything else."""
        token = self._next()
        if isinstance(token, Word):
            self.stream.schedule(token)

    def _parse_whole(self, word: Word, parsing_as: str = "whole number") -> int | None:
        text = word.value.strip()
        if not _WHOLE_PATTERN.fullmatch(text):
            return None
        number = int(text)
        if number > MAX_WHOLE:
            raise LiteralError(word.value, parsing_as, word.start, f"exceeds {MAX_WHOLE}")
        return number

    def _parse_decimal(self, word: Word) -> Value | None:
        text = word.value.strip()
        if not _DECIMAL_PATTERN.fullmatch(text):
            return None
        exact = _ExactFraction(text)
        if exact.denominator == 1:
            return Whole(exact.numerator)
        if exact.numerator > MAX_WHOLE or exact.denominator > MAX_WHOLE:
            raise LiteralError(word.value, "fraction", word.start, f"exceeds {MAX_WHOLE}")
        return Fraction(exact.numerator, exact.denominator)

    def _parse_label(self, marker: Word) -> Label:
        name = self._expect_word("label")
        self._skip_sentence_end()
        return Label(name=name.value, offset=marker.start)

    def _parse_property(self, name: Word) -> Property:
        value = self.parse_value()
        self._skip_sentence_end()
        return Property(name=name.value, value=value, offset=name.start)

    def _parse_command(self, name: Word) -> Command:
        arguments: list[Value] = []

        while True:
            token = self._next()
            if token is None or isinstance(token, SentenceEnd):
                break
            self.stream.schedule(token)

            try:
                arguments.append(self.parse_value())
            except EndOfSentenceError:
                # The boundary was consumed by the failed value; it ends the command
                break

        return Command(name=name.value, arguments=tuple(arguments), offset=name.start)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse_value(self) -> Value:
        """
        Parse one value literal from the stream.

        Raises:
            TokenStreamDepletedError: If the stream is already exhausted.
            EndOfSentenceError: If a statement boundary comes first.
            LiteralError: If a numeric literal is out of range or a fraction
                          has a zero or non-numeric denominator.
        """
        word = self._expect_word("value")

        number = self._parse_whole(word)
        if number is None:
            decimal = self._parse_decimal(word)
            return decimal if decimal is not None else Text(word.value)

        separator = self._next()
        if separator is None:
            return Whole(number)
        if not (isinstance(separator, Word) and separator.value == FRACTION_SEPARATOR):
            self.stream.schedule(separator)
            return Whole(number)

        denominator_word = self._expect_word("value")
        denominator = self._parse_whole(denominator_word, "fraction denominator")
        if denominator is None:
            raise LiteralError(
                denominator_word.value,
                "fraction denominator",
                denominator_word.start,
                "not a whole number",
            )
        if denominator == 0:
            raise LiteralError(
                denominator_word.value,
                "fraction denominator",
                denominator_word.start,
                "division by zero",
            )
        return Fraction(number, denominator)

    def parse_token(self) -> ScriptToken | None:
        """
        Parse one statement; return None if the stream is exhausted before it.
        """
        token = self._next()
        if token is None:
            return None
        if isinstance(token, SentenceEnd):
            raise EndOfSentenceError("statement", token.pos)

        if token.value == LABEL_MARKER:
            return self._parse_label(token)

        lookahead = self._next()
        if isinstance(lookahead, Word) and lookahead.value == PROPERTY_SEPARATOR:
            return self._parse_property(token)
        if lookahead is not None:
            self.stream.schedule(lookahead)

        return self._parse_command(token)

    def parse(self) -> Script:
        """Parse the whole stream into a Script."""
        tokens: list[ScriptToken] = []
        while True:
            token = self.parse_token()
            if token is None:
                return Script(tuple(tokens))
            tokens.append(token)


def parse(source: str | Iterable[str] | TokenStream) -> Script:
    """
    Parse notation source text (or an existing token stream) into a Script.

    Raises:
        ParsingError: On any syntax error.
    """
    stream = source if isinstance(source, TokenStream) else TokenStream(source)
    return ScriptParser(stream).parse()
