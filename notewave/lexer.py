"""Lexer: Turns notation source text into a lazy stream of lexical tokens."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Final, Union

# ── Special characters ──────────────────────────────────────────────────────
WORD_SEPARATORS: Final[frozenset[str]] = frozenset(" \t\r")
INDEPENDENT_WORDS: Final[frozenset[str]] = frozenset("@:/")
LINE_SEPARATORS: Final[frozenset[str]] = frozenset("\n;")
ESCAPE_SYMBOL: Final[str] = "\\"
ENDLINE_COMMENT: Final[str] = "#"
MULTILINE_COMMENT_START: Final[str] = "<"
MULTILINE_COMMENT_END: Final[str] = ">"


@dataclass(frozen=True)
class Word:
    """A contiguous run of content characters starting at offset *start*."""

    value: str
    start: int

    def __str__(self) -> str:
        return f"'{self.value}' (at {self.start})"


@dataclass(frozen=True)
class SentenceEnd:
    """A statement boundary (newline or ``;``) found at offset *pos*."""

    pos: int

    def __str__(self) -> str:
        return f"separator (at {self.pos})"


LexToken = Union[Word, SentenceEnd]


class CommentingMode(Enum):
    DISABLED = "disabled"
    ENDLINE = "endline"
    MULTILINE = "multiline"


class TokenStream:
    """
    Lazy iterator of lexical tokens over a character source.

    The stream is not seekable. A consumer may hand back a token it has just
    taken with ``schedule()``; the next call to ``next()`` returns it again.

    Boundaries are collapsed: the stream never starts with a ``SentenceEnd``,
    never yields two in a row, and always finishes with exactly one after the
    last word. Once exhausted it stays exhausted.
    """

    def __init__(self, chars: Iterable[str]) -> None:
        self._chars: Iterator[str] = iter(chars)
        self._pos = 0
        self._queue: deque[LexToken] = deque()
        self._escaping = False
        self._last_was_separator = True
        self._commenting = CommentingMode.DISABLED

    def schedule(self, token: LexToken) -> None:
        """Push *token* back so that it is the next one returned."""
        self._queue.appendleft(token)

    def __iter__(self) -> TokenStream:
        return self

    def __next__(self) -> LexToken:
        if self._queue:
            token = self._queue.popleft()
            self._last_was_separator = isinstance(token, SentenceEnd)
            return token

        while True:
            word, start, depleted = self._scan_word()

            if word:
                self._last_was_separator = False
                return Word(value=word, start=start)

            if not self._queue:
                if not depleted:
                    continue
                if self._last_was_separator:
                    raise StopIteration
                self._last_was_separator = True
                return SentenceEnd(pos=self._pos)

            token = self._queue.popleft()
            if isinstance(token, SentenceEnd):
                if self._last_was_separator:
                    continue
                self._last_was_separator = True
                return token

            self._last_was_separator = False
            return token

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _scan_word(self) -> tuple[str, int, bool]:
        """
        Consume characters up to the end of the next word.

        Returns the accumulated word (possibly empty), its start offset and
        whether the character source ran out. Separators met on the way are
        queued as tokens of their own.
        """
        buffer: list[str] = []
        start = self._pos

        for char in self._chars:
            self._pos += 1

            escaping = self._escaping
            self._escaping = False

            if escaping and self._commenting is CommentingMode.DISABLED:
                if not buffer:
                    start = self._pos - 1
                buffer.append(char)
                continue

            if char == ESCAPE_SYMBOL:
                self._escaping = True
            elif char == ENDLINE_COMMENT:
                if self._commenting is CommentingMode.DISABLED:
                    self._commenting = CommentingMode.ENDLINE
            elif char == MULTILINE_COMMENT_START:
                self._commenting = CommentingMode.MULTILINE
            elif char == MULTILINE_COMMENT_END:
                if self._commenting is CommentingMode.MULTILINE:
                    self._commenting = CommentingMode.DISABLED
            elif char in LINE_SEPARATORS:
                if self._commenting is not CommentingMode.MULTILINE:
                    self._queue.append(SentenceEnd(pos=self._pos - 1))
                if self._commenting is CommentingMode.ENDLINE and not escaping:
                    self._commenting = CommentingMode.DISABLED
                break
            elif self._commenting is CommentingMode.DISABLED:
                if char in WORD_SEPARATORS:
                    break
                if char in INDEPENDENT_WORDS:
                    self._queue.append(Word(value=char, start=self._pos - 1))
                    break
                if not buffer:
                    start = self._pos - 1
                buffer.append(char)
        else:
            return "".join(buffer), start, True

        return "".join(buffer), start, False


def tokenize(chars: Iterable[str]) -> TokenStream:
    """Return a lazy lexical token stream over *chars*."""
    return TokenStream(chars)
