"""
Incremental JSON tokenizer for streamed search responses.

Search pages can be hundreds of megabytes, so they are never parsed into a
document tree. ``JSONLexer`` is a push parser: text is fed in as it arrives
and tokens come out one at a time, with the grammar (colons, commas, nesting)
checked along the way. ``TokenStream`` drives the lexer from an async
iterator of byte chunks such as ``httpx.Response.aiter_bytes()``.

Two helpers operate on any token stream:

* ``skip_value`` discards exactly one value of arbitrary shape using a depth
  counter, so unknown response fields cost constant memory.
* ``capture_value`` consumes exactly one value and returns it as compact JSON
  text, used to hand a row's ``_source`` to the column projector.
"""

import codecs
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, List, Optional

from ..models.export_models import DecodeError

logger = logging.getLogger(__name__)


class TokenKind(Enum):
    """Lexical units produced by the lexer."""

    BEGIN_OBJECT = "{"
    END_OBJECT = "}"
    BEGIN_ARRAY = "["
    END_ARRAY = "]"
    NAME = "name"
    STRING = "string"
    NUMBER = "number"
    TRUE = "true"
    FALSE = "false"
    NULL = "null"


OPENERS = frozenset({TokenKind.BEGIN_OBJECT, TokenKind.BEGIN_ARRAY})
CLOSERS = frozenset({TokenKind.END_OBJECT, TokenKind.END_ARRAY})


@dataclass(frozen=True)
class Token:
    """
    A single token.

    ``raw`` is the token's JSON source text (strings keep their quotes and
    escapes). ``value`` is the decoded Python value for names, strings and
    literals; for numbers it is left as ``None`` and ``raw`` carries the text.
    """

    kind: TokenKind
    raw: str
    value: Any = None

    @property
    def is_open(self) -> bool:
        return self.kind in OPENERS

    @property
    def is_close(self) -> bool:
        return self.kind in CLOSERS


# Grammar states
_EXPECT_VALUE = 0
_ARRAY_FIRST = 1
_OBJECT_FIRST = 2
_OBJECT_NAME = 3
_OBJECT_COLON = 4
_AFTER_VALUE = 5
_DONE = 6

_WHITESPACE = " \t\r\n"
_DIGITS = "0123456789"
_NUMBER_CHARS = frozenset("0123456789+-.eE")
_STRING_STOP_RE = re.compile(r'["\\]')
_NUMBER_RE = re.compile(r"-?(?:0|[1-9][0-9]*)(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")
_LITERALS = {
    "t": ("true", TokenKind.TRUE, True),
    "f": ("false", TokenKind.FALSE, False),
    "n": ("null", TokenKind.NULL, None),
}


class JSONLexer:
    """
    Push-style JSON lexer.

    ``next_token`` returns ``None`` when the buffered text ends inside a
    token and more input is needed. After ``close`` has been called, running
    out of input is a ``DecodeError``.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._pos = 0
        self._eof = False
        self._stack: List[str] = []
        self._state = _EXPECT_VALUE
        self.offset = 0
        # Absolute offset where the scan of an unfinished string resumes
        self._string_resume = 0

    @property
    def depth(self) -> int:
        """Current container nesting depth."""
        return len(self._stack)

    def feed(self, text: str) -> None:
        """Append text to the input buffer."""
        if self._pos:
            self.offset += self._pos
            self._buffer = self._buffer[self._pos :]
            self._pos = 0
        self._buffer += text

    def close(self) -> None:
        """Mark the end of input."""
        self._eof = True

    def next_token(self) -> Optional[Token]:
        """Return the next token, or None if more input is required."""
        buf = self._buffer
        while True:
            pos = self._skip_whitespace()
            if pos >= len(buf):
                if self._eof:
                    raise self._error("unexpected end of input", pos)
                return None

            ch = buf[pos]

            if ch == ",":
                if self._state != _AFTER_VALUE or not self._stack:
                    raise self._error("unexpected ','", pos)
                self._state = _OBJECT_NAME if self._stack[-1] == "{" else _EXPECT_VALUE
                self._pos = pos + 1
                continue

            if ch == ":":
                if self._state != _OBJECT_COLON:
                    raise self._error("unexpected ':'", pos)
                self._state = _EXPECT_VALUE
                self._pos = pos + 1
                continue

            if self._state == _DONE:
                raise self._error("unexpected data after top-level value", pos)
            if self._state == _OBJECT_COLON:
                raise self._error("expected ':' after field name", pos)

            if ch == "}":
                if self._state not in (_OBJECT_FIRST, _AFTER_VALUE) or (
                    not self._stack or self._stack[-1] != "{"
                ):
                    raise self._error("unexpected '}'", pos)
                return self._close_container(pos, TokenKind.END_OBJECT)

            if ch == "]":
                if self._state not in (_ARRAY_FIRST, _AFTER_VALUE) or (
                    not self._stack or self._stack[-1] != "["
                ):
                    raise self._error("unexpected ']'", pos)
                return self._close_container(pos, TokenKind.END_ARRAY)

            if self._state == _AFTER_VALUE:
                raise self._error(f"expected ',' or closing bracket, got {ch!r}", pos)

            if self._state in (_OBJECT_FIRST, _OBJECT_NAME):
                if ch != '"':
                    raise self._error(f"expected field name, got {ch!r}", pos)
                token = self._read_string(pos, TokenKind.NAME)
                if token is not None:
                    self._state = _OBJECT_COLON
                return token

            return self._read_value(pos, ch)

    def _read_value(self, pos: int, ch: str) -> Optional[Token]:
        if ch == "{":
            self._stack.append("{")
            self._state = _OBJECT_FIRST
            self._pos = pos + 1
            return Token(TokenKind.BEGIN_OBJECT, "{")

        if ch == "[":
            self._stack.append("[")
            self._state = _ARRAY_FIRST
            self._pos = pos + 1
            return Token(TokenKind.BEGIN_ARRAY, "[")

        if ch == '"':
            token = self._read_string(pos, TokenKind.STRING)
        elif ch == "-" or ch in _DIGITS:
            token = self._read_number(pos)
        elif ch in _LITERALS:
            token = self._read_literal(pos, ch)
        else:
            raise self._error(f"invalid character {ch!r}", pos)

        if token is not None:
            self._end_value()
        return token

    def _close_container(self, pos: int, kind: TokenKind) -> Token:
        self._stack.pop()
        self._pos = pos + 1
        self._end_value()
        return Token(kind, kind.value)

    def _end_value(self) -> None:
        self._state = _AFTER_VALUE if self._stack else _DONE

    def _skip_whitespace(self) -> int:
        buf = self._buffer
        pos = self._pos
        end = len(buf)
        while pos < end and buf[pos] in _WHITESPACE:
            pos += 1
        self._pos = pos
        return pos

    def _read_string(self, pos: int, kind: TokenKind) -> Optional[Token]:
        buf = self._buffer
        i = max(pos + 1, self._string_resume - self.offset)
        while True:
            stop = _STRING_STOP_RE.search(buf, i)
            if stop is None:
                i = len(buf)
                break
            i = stop.start()
            if buf[i] == '"':
                break
            if i + 1 >= len(buf):
                break
            i += 2

        if i >= len(buf) or buf[i] != '"':
            if self._eof:
                raise self._error("unterminated string", pos)
            self._string_resume = self.offset + i
            return None

        self._string_resume = 0
        raw = buf[pos : i + 1]
        try:
            value = json.loads(raw)
        except json.JSONDecodeError as e:
            raise self._error(f"invalid string literal: {e.msg}", pos) from e

        self._pos = i + 1
        return Token(kind, raw, value)

    def _read_number(self, pos: int) -> Optional[Token]:
        buf = self._buffer
        end = pos
        while end < len(buf) and buf[end] in _NUMBER_CHARS:
            end += 1
        if end == len(buf) and not self._eof:
            return None

        raw = buf[pos:end]
        if not _NUMBER_RE.fullmatch(raw):
            raise self._error(f"invalid number {raw!r}", pos)

        self._pos = end
        return Token(TokenKind.NUMBER, raw)

    def _read_literal(self, pos: int, ch: str) -> Optional[Token]:
        word, kind, value = _LITERALS[ch]
        chunk = self._buffer[pos : pos + len(word)]
        if chunk != word:
            if len(chunk) < len(word) and word.startswith(chunk):
                if self._eof:
                    raise self._error(f"truncated literal {chunk!r}", pos)
                return None
            raise self._error(f"invalid literal {chunk!r}", pos)

        self._pos = pos + len(word)
        return Token(kind, word, value)

    def _error(self, message: str, pos: int) -> DecodeError:
        return DecodeError(f"{message} at offset {self.offset + pos}")


async def _no_chunks() -> AsyncIterator[bytes]:
    return
    yield b""  # pragma: no cover


class TokenStream:
    """Async token source over a stream of byte chunks."""

    def __init__(self, chunks: AsyncIterator[bytes], encoding: str = "utf-8"):
        self._chunks = chunks.__aiter__()
        self._lexer = JSONLexer()
        self._text_decoder = codecs.getincrementaldecoder(encoding)()
        self._exhausted = False
        self.bytes_read = 0

    @classmethod
    def from_text(cls, text: str) -> "TokenStream":
        """Create a stream over an already-buffered JSON text."""
        stream = cls(_no_chunks())
        stream._lexer.feed(text)
        stream._finish()
        return stream

    @property
    def depth(self) -> int:
        return self._lexer.depth

    async def next(self) -> Token:
        """Return the next token, reading more input as needed."""
        while True:
            token = self._lexer.next_token()
            if token is not None:
                return token
            await self._pull()

    async def expect(self, kind: TokenKind) -> Token:
        """Return the next token, failing if it is not of ``kind``."""
        token = await self.next()
        if token.kind is not kind:
            raise DecodeError(f"expected {kind.value}, got {token.raw!r}")
        return token

    async def _pull(self) -> None:
        if self._exhausted:
            raise DecodeError("unexpected end of input")

        try:
            chunk = await self._chunks.__anext__()
        except StopAsyncIteration:
            self._finish()
            return

        self.bytes_read += len(chunk)
        try:
            text = self._text_decoder.decode(chunk)
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid utf-8 in response: {e}") from e
        self._lexer.feed(text)

    def _finish(self) -> None:
        try:
            self._lexer.feed(self._text_decoder.decode(b"", final=True))
        except UnicodeDecodeError as e:
            raise DecodeError(f"truncated utf-8 sequence: {e}") from e
        self._lexer.close()
        self._exhausted = True


async def skip_value(stream: TokenStream, first: Optional[Token] = None) -> None:
    """
    Consume and discard exactly one value.

    Depth starts at zero, rises on every opening bracket and falls on every
    closing one; the skip ends when it is back at zero. A scalar ends the
    skip immediately. ``first`` is the value's first token when the caller
    has already read it.
    """
    depth = 0
    while True:
        if first is not None:
            token, first = first, None
        else:
            token = await stream.next()
        if token.is_open:
            depth += 1
        elif token.is_close:
            depth -= 1
            if depth < 0:
                raise DecodeError(f"unexpected {token.raw!r} while skipping value")
        if depth == 0:
            return


async def capture_value(stream: TokenStream, first: Optional[Token] = None) -> str:
    """Consume exactly one value and return it as compact JSON text."""
    parts: List[str] = []
    depth = 0
    previous: Optional[TokenKind] = None

    while True:
        if first is not None:
            token, first = first, None
        else:
            token = await stream.next()

        if (
            previous is not None
            and token.kind not in CLOSERS
            and previous not in OPENERS
            and previous is not TokenKind.NAME
        ):
            parts.append(",")

        parts.append(token.raw)
        if token.kind is TokenKind.NAME:
            parts.append(":")
        elif token.kind in OPENERS:
            depth += 1
        elif token.kind in CLOSERS:
            depth -= 1
            if depth < 0:
                raise DecodeError(f"unexpected {token.raw!r} while capturing value")

        previous = token.kind
        if depth == 0 and token.kind is not TokenKind.NAME:
            return "".join(parts)
