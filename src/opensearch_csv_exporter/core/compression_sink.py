"""
Gzip output sink and the bounded byte conduit feeding the consumer.
"""

import asyncio
import gzip
import io
import logging
from typing import AsyncIterator, Callable, Optional, Union

from ..models.export_models import EncodeError, ExportError

logger = logging.getLogger(__name__)

_END = object()


class ByteConduit:
    """
    Bounded channel of byte chunks between an export and its consumer.

    ``send`` waits while the queue is full, so a slow reader slows the export
    down instead of letting output pile up in memory. A consumer that goes
    away calls ``detach``; any later ``send`` fails with ``EncodeError``.

    ``on_full`` is called whenever a producer finds the queue full, right
    before it starts waiting.
    """

    def __init__(self, max_chunks: int = 64):
        self._queue: "asyncio.Queue[Union[bytes, object]]" = asyncio.Queue(
            maxsize=max_chunks
        )
        self._closed = False
        self._detached = False
        self.bytes_sent = 0
        self.on_full: Optional[Callable[[], None]] = None

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def detached(self) -> bool:
        return self._detached

    async def send(self, chunk: bytes) -> None:
        """Queue a chunk for the consumer, waiting for room if needed."""
        if self._detached:
            raise EncodeError("consumer disconnected")
        if self._closed:
            raise EncodeError("conduit is closed")

        if self.on_full is not None and self._queue.full():
            self.on_full()
        await self._queue.put(chunk)

        if self._detached:
            raise EncodeError("consumer disconnected")
        self.bytes_sent += len(chunk)

    async def close(self) -> None:
        """Signal end of stream to the consumer."""
        if self._closed:
            return
        self._closed = True
        if not self._detached:
            await self._queue.put(_END)

    def detach(self) -> None:
        """Called by the consumer when it stops reading."""
        if self._detached:
            return
        self._detached = True

        # Discard queued output so a producer blocked in send() wakes up
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break

        logger.debug(f"Consumer detached after {self.bytes_sent} bytes")

    async def chunks(self) -> AsyncIterator[bytes]:
        """Yield chunks until the producer closes the conduit."""
        while True:
            item = await self._queue.get()
            if item is _END:
                return
            yield item  # type: ignore[misc]

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.chunks()


class CompressionSink:
    """
    Streaming gzip writer on top of a ByteConduit.

    ``write`` compresses into an in-memory buffer; ``drain`` moves whatever
    the compressor has produced so far into the conduit. ``close`` writes the
    gzip trailer, so the output is a complete gzip member no matter how the
    export ended.
    """

    def __init__(self, conduit: ByteConduit, compression_level: int = 6):
        self._conduit = conduit
        self._buffer = io.BytesIO()
        self._gzip = gzip.GzipFile(
            fileobj=self._buffer, mode="wb", compresslevel=compression_level
        )
        self._closed = False
        self.compression_level = compression_level
        self.bytes_in = 0
        self.bytes_out = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def compression_ratio(self) -> float:
        """Fraction of input bytes saved by compression."""
        if self.bytes_in == 0:
            return 0.0
        return (self.bytes_in - self.bytes_out) / self.bytes_in

    def write(self, data: bytes) -> None:
        """Compress data into the pending output buffer."""
        if self._closed:
            raise EncodeError("write to closed compression sink")
        try:
            self._gzip.write(data)
        except (OSError, ValueError) as e:
            raise EncodeError(f"failed to write to gzip writer: {e}", e) from e
        self.bytes_in += len(data)

    async def drain(self) -> None:
        """Send pending compressed bytes to the conduit."""
        data = self._buffer.getvalue()
        if not data:
            return
        self._buffer.seek(0)
        self._buffer.truncate()
        self.bytes_out += len(data)

        try:
            await self._conduit.send(data)
        except ExportError:
            raise
        except Exception as e:
            raise EncodeError(f"failed to send compressed output: {e}", e) from e

    async def flush(self) -> None:
        """Sync-flush the compressor so every byte written so far is decodable."""
        if self._closed:
            return
        try:
            self._gzip.flush()
        except (OSError, ValueError) as e:
            raise EncodeError(f"failed to flush gzip writer: {e}", e) from e
        await self.drain()

    async def close(self) -> None:
        """Finish the gzip stream and close the conduit. Safe to call twice."""
        if self._closed:
            return
        self._closed = True

        try:
            try:
                self._gzip.close()
            except (OSError, ValueError) as e:
                raise EncodeError(f"failed to close gzip writer: {e}", e) from e
            await self.drain()
        finally:
            await self._conduit.close()

        logger.debug(
            f"Compressed {self.bytes_in} -> {self.bytes_out} bytes "
            f"({self.compression_ratio:.1%} saved, level {self.compression_level})"
        )
