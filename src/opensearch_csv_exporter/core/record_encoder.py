"""
Column projection and delimited record encoding.
"""

import csv
import io
import logging
from typing import List, Optional, Sequence

from ..models.export_models import EncodeError, ExportError
from .compression_sink import CompressionSink
from .token_stream import Token, TokenKind, TokenStream, capture_value, skip_value

logger = logging.getLogger(__name__)

FIXED_COLUMNS = ("@timestamp", "message")


def split_path(path: str) -> List[str]:
    """
    Split a dotted field path into segments.

    ``\\.`` stands for a literal dot inside a field name, so
    ``labels.app\\.kubernetes\\.io/name`` has two segments.
    """
    segments: List[str] = []
    current: List[str] = []
    escaped = False

    for ch in path:
        if escaped:
            current.append(ch)
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == ".":
            segments.append("".join(current))
            current = []
        else:
            current.append(ch)

    if escaped:
        current.append("\\")
    segments.append("".join(current))
    return segments


async def stringify_token(stream: TokenStream, token: Token) -> str:
    """
    Render the value starting at ``token`` as a cell.

    Strings are written unquoted, numbers and booleans as their JSON
    literal, null as the empty string, and objects or arrays as compact JSON.
    """
    if token.kind is TokenKind.STRING:
        return token.value
    if token.kind is TokenKind.NULL:
        return ""
    if token.is_open:
        return await capture_value(stream, token)
    return token.raw


class ColumnProjector:
    """Looks up configured field paths in a raw ``_source`` payload."""

    def __init__(self, columns: Sequence[str]):
        self.columns = list(columns)
        self.header = list(FIXED_COLUMNS) + self.columns
        self._paths = [split_path(column) for column in self.header]

    @property
    def width(self) -> int:
        return len(self.header)

    async def project(self, raw: str) -> List[str]:
        """Return one cell per header column; missing fields become ""."""
        return [await self.lookup(raw, segments) for segments in self._paths]

    async def lookup(self, raw: str, segments: Sequence[str]) -> str:
        stream = TokenStream.from_text(raw)
        token: Optional[Token] = await stream.next()

        for segment in segments:
            if token is None:
                return ""
            if token.kind is TokenKind.BEGIN_OBJECT:
                token = await _find_field(stream, segment)
            elif token.kind is TokenKind.BEGIN_ARRAY and _is_index(segment):
                token = await _find_element(stream, int(segment))
            else:
                return ""

        if token is None:
            return ""
        return await stringify_token(stream, token)


def _is_index(segment: str) -> bool:
    return segment.isascii() and segment.isdigit()


async def _find_field(stream: TokenStream, name: str) -> Optional[Token]:
    while True:
        token = await stream.next()
        if token.kind is TokenKind.END_OBJECT:
            return None
        if token.value == name:
            return await stream.next()
        await skip_value(stream)


async def _find_element(stream: TokenStream, index: int) -> Optional[Token]:
    position = 0
    while True:
        token = await stream.next()
        if token.kind is TokenKind.END_ARRAY:
            return None
        if position == index:
            return token
        await skip_value(stream, token)
        position += 1


class DelimitedRecordEncoder:
    """
    Writes projected rows as delimited text into a CompressionSink.

    The header is written when the encoder is created. Records are
    buffered as text and pushed into the sink once ``buffer_size``
    characters have accumulated, or on ``flush``.
    """

    def __init__(
        self,
        projector: ColumnProjector,
        sink: CompressionSink,
        delimiter: str = ";",
        buffer_size: int = 4096,
    ):
        self.projector = projector
        self.buffer_size = buffer_size
        self.rows_written = 0
        self._sink = sink
        self._text = io.StringIO()
        self._writer = csv.writer(
            self._text, delimiter=delimiter, lineterminator="\n"
        )

        self._writer.writerow(projector.header)

    async def write(self, raw: str) -> None:
        """Project one raw row and append it as a record."""
        cells = await self.projector.project(raw)
        try:
            self._writer.writerow(cells)
        except csv.Error as e:
            raise EncodeError(f"failed to write record to csv: {e}", e) from e
        self.rows_written += 1

        if self._text.tell() >= self.buffer_size:
            await self.flush()

    async def flush(self) -> None:
        """Push buffered records through the sink."""
        data = self._text.getvalue()
        if data:
            self._text.seek(0)
            self._text.truncate()
            self._sink.write(data.encode("utf-8"))

        try:
            await self._sink.drain()
        except ExportError:
            raise
        except Exception as e:
            raise EncodeError(f"failed to flush csv writer: {e}", e) from e
