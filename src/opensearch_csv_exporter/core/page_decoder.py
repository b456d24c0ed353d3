"""
Streaming decoder for search and scroll response pages.
"""

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from ..models.export_models import DecodeError, PageResult
from .token_stream import Token, TokenKind, TokenStream, capture_value, skip_value

logger = logging.getLogger(__name__)

CURSOR_FIELD = "_scroll_id"
HITS_FIELD = "hits"
TOTAL_FIELD = "total"
TOTAL_VALUE_FIELD = "value"
SOURCE_FIELD = "_source"

EMPTY_SOURCE = "{}"

RowCallback = Callable[[str], Awaitable[None]]
TotalCallback = Callable[[int], None]


@dataclass
class _PageState:
    cursor: str = ""
    total: Optional[int] = None
    row_count: int = 0


class PageDecoder:
    """
    Walks one response page token by token.

    Only three things are pulled out of the response: the scroll cursor,
    ``hits.total.value`` and the ``_source`` of every element of
    ``hits.hits``. Each ``_source`` is handed to ``on_row`` as soon as its
    hit element has been read; everything else is skipped structurally.

    The scroll API does not reliably say when results run out, so a page
    with fewer rows than ``page_size`` is treated as the last one and its
    cursor is dropped.
    """

    def __init__(self, page_size: int):
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self.page_size = page_size

    async def decode(
        self,
        stream: TokenStream,
        on_row: RowCallback,
        on_total: Optional[TotalCallback] = None,
        page: Optional[int] = None,
    ) -> PageResult:
        """
        Decode a page, forwarding rows and the total as they are found.

        Args:
            stream: Token stream over the response body
            on_row: Awaited with each row's raw ``_source`` JSON text
            on_total: Called once with the total match count, if present
            page: Page number used in error messages

        Returns:
            PageResult with the continuation cursor ("" when exhausted)

        Raises:
            DecodeError: If the page is malformed or truncated
        """
        state = _PageState()

        try:
            await stream.expect(TokenKind.BEGIN_OBJECT)
            while True:
                token = await stream.next()
                if token.kind is TokenKind.END_OBJECT:
                    break

                if token.value == CURSOR_FIELD:
                    value = await stream.next()
                    if value.kind is TokenKind.STRING:
                        state.cursor = value.value
                    else:
                        await skip_value(stream, value)
                elif token.value == HITS_FIELD:
                    await self._decode_hits(stream, state, on_row, on_total)
                else:
                    await skip_value(stream)

        except DecodeError as e:
            if e.page is not None or page is None:
                raise
            raise DecodeError(e.message, page=page, original_error=e) from e

        if state.row_count < self.page_size and state.cursor:
            logger.debug(
                f"Page {page} returned {state.row_count} of {self.page_size} rows, "
                f"treating result set as exhausted"
            )
            state.cursor = ""

        logger.debug(
            f"Decoded page {page}: {state.row_count} rows, total={state.total}, "
            f"{stream.bytes_read} bytes"
        )

        return PageResult(
            cursor=state.cursor, total=state.total, row_count=state.row_count
        )

    async def _decode_hits(
        self,
        stream: TokenStream,
        state: _PageState,
        on_row: RowCallback,
        on_total: Optional[TotalCallback],
    ) -> None:
        first = await stream.next()
        if first.kind is not TokenKind.BEGIN_OBJECT:
            await skip_value(stream, first)
            return

        while True:
            token = await stream.next()
            if token.kind is TokenKind.END_OBJECT:
                return

            if token.value == HITS_FIELD:
                await self._decode_rows(stream, state, on_row)
            elif token.value == TOTAL_FIELD:
                await self._decode_total(stream, state)
                if state.total is not None and on_total is not None:
                    on_total(state.total)
            else:
                await skip_value(stream)

    async def _decode_rows(
        self, stream: TokenStream, state: _PageState, on_row: RowCallback
    ) -> None:
        first = await stream.next()
        if first.kind is not TokenKind.BEGIN_ARRAY:
            await skip_value(stream, first)
            return

        while True:
            token = await stream.next()
            if token.kind is TokenKind.END_ARRAY:
                return
            if token.kind is not TokenKind.BEGIN_OBJECT:
                raise DecodeError(f"expected hit object, got {token.raw!r}")

            source = EMPTY_SOURCE
            while True:
                field = await stream.next()
                if field.kind is TokenKind.END_OBJECT:
                    break
                if field.value == SOURCE_FIELD:
                    source = await capture_value(stream)
                else:
                    await skip_value(stream)

            state.row_count += 1
            await on_row(source)

    async def _decode_total(self, stream: TokenStream, state: _PageState) -> None:
        first = await stream.next()

        # Elasticsearch 6 reports the total as a bare number
        if first.kind is TokenKind.NUMBER:
            state.total = _parse_count(first)
            return
        if first.kind is not TokenKind.BEGIN_OBJECT:
            await skip_value(stream, first)
            return

        while True:
            token = await stream.next()
            if token.kind is TokenKind.END_OBJECT:
                return
            if token.value != TOTAL_VALUE_FIELD:
                await skip_value(stream)
                continue

            value = await stream.next()
            if value.kind is TokenKind.NUMBER:
                state.total = _parse_count(value)
            else:
                await skip_value(stream, value)


def _parse_count(token: Token) -> int:
    try:
        return int(token.raw)
    except ValueError:
        pass
    try:
        return int(float(token.raw))
    except OverflowError as e:
        raise DecodeError(f"invalid total count {token.raw!r}") from e
