"""
Export orchestration: search, scroll, decode and encode until exhausted.
"""

import asyncio
import logging
import time
from typing import AsyncIterator, Callable, Optional

from ..integration.opensearch_client import OpenSearchClient, QueryBuilder
from ..models.config_models import ExportConfig
from ..models.export_models import ExportError, ExportRequest, ExportResult
from .compression_sink import ByteConduit, CompressionSink
from .page_decoder import PageDecoder
from .record_encoder import ColumnProjector, DelimitedRecordEncoder
from .token_stream import TokenStream

logger = logging.getLogger(__name__)


class ExportHandle:
    """
    A running export.

    ``total()`` resolves once the first page has been decoded, or as soon as
    the output backs up after the match count was read;
    ``chunks()`` yields the gzip output; ``wait()`` returns the final result
    or raises the export's error.
    """

    def __init__(
        self,
        task: "asyncio.Task[ExportResult]",
        conduit: ByteConduit,
        total: "asyncio.Future[int]",
    ):
        self._task = task
        self._conduit = conduit
        self._total = total

    async def total(self) -> int:
        return await self._total

    async def chunks(self) -> AsyncIterator[bytes]:
        finished = False
        try:
            async for chunk in self._conduit:
                yield chunk
            finished = True
        finally:
            if not finished:
                self.abort()

    def abort(self) -> None:
        """Stop the export because the consumer went away."""
        self._conduit.detach()
        if not self._task.done():
            self._task.cancel()

    async def wait(self) -> ExportResult:
        return await self._task

    def add_done_callback(self, callback: Callable[["asyncio.Task[ExportResult]"], None]) -> None:
        """Run ``callback`` with the export task once it finishes, fails or is cancelled."""
        self._task.add_done_callback(callback)

    @property
    def done(self) -> bool:
        return self._task.done()


class ExportEngine:
    """
    Drives one export through the scroll API.

    Pages are strictly sequential: the cursor decoded from page N is needed
    to request page N+1. Rows go straight from the decoder into the encoder
    and out through the compression sink, so memory use does not grow with
    the size of the result set.
    """

    def __init__(self, client: OpenSearchClient, config: Optional[ExportConfig] = None):
        self.client = client
        self.config = config or ExportConfig()

    def start(self, request: ExportRequest) -> ExportHandle:
        """Launch ``run`` as a task writing into a fresh conduit."""
        loop = asyncio.get_running_loop()
        conduit = ByteConduit(self.config.conduit_max_chunks)
        total: "asyncio.Future[int]" = loop.create_future()

        def on_total(value: int) -> None:
            if not total.done():
                total.set_result(value)

        task = loop.create_task(self.run(request, conduit, on_total))

        def settle_total(finished: "asyncio.Task[ExportResult]") -> None:
            if finished.cancelled():
                if not total.done():
                    total.cancel()
                return
            # Marks the error as retrieved; run() has already logged it
            error = finished.exception()
            if total.done():
                return
            if error is not None:
                total.set_exception(error)
            else:
                total.set_result(finished.result().total)

        task.add_done_callback(settle_total)
        # Callers that only consume chunks() never await the total
        total.add_done_callback(lambda f: f.cancelled() or f.exception())
        return ExportHandle(task, conduit, total)

    async def run(
        self,
        request: ExportRequest,
        conduit: ByteConduit,
        on_total: Optional[Callable[[int], None]] = None,
    ) -> ExportResult:
        """
        Export every match of ``request`` into ``conduit``.

        Args:
            request: Export request; rejected before any I/O if incomplete
            conduit: Destination for gzip output
            on_total: Called once with the match count, when the first page
                has been decoded or earlier if the conduit fills up first

        Returns:
            ExportResult summary

        Raises:
            InvalidRequestError, TransportError, RemoteError, DecodeError,
            EncodeError. Output written before the failure stays a valid
            gzip stream.
        """
        try:
            request.validate_complete()
        except ExportError:
            await conduit.close()
            raise

        start_time = time.time()
        sink = CompressionSink(conduit, self.config.compression_level)
        encoder = DelimitedRecordEncoder(
            ColumnProjector(request.columns), sink, self.config.delimiter
        )
        decoder = PageDecoder(self.config.page_size)

        total = 0
        total_decoded = False
        total_reported = False
        pages = 0
        completed = False

        def record_total(value: int) -> None:
            nonlocal total, total_decoded
            total = value
            total_decoded = True

        def report_total() -> None:
            nonlocal total_reported
            if total_reported:
                return
            total_reported = True
            if on_total is not None:
                on_total(total)

        def report_when_full() -> None:
            # A consumer waiting for the total would never drain a full conduit
            if total_decoded:
                report_total()

        conduit.on_full = report_when_full

        logger.info(
            f"Starting export: query={request.query!r} "
            f"range=[{request.from_date}, {request.to_date}] "
            f"columns={len(request.columns)} page_size={self.config.page_size}"
        )

        try:
            body = QueryBuilder.build_initial(request, self.config.page_size)
            async with self.client.search(body, self.config.scroll_window) as chunks:
                result = await decoder.decode(
                    TokenStream(chunks), encoder.write, record_total, page=1
                )
            pages = 1
            if not total_decoded:
                record_total(result.total or 0)
            report_total()
            conduit.on_full = None
            await encoder.flush()

            cursor = result.cursor
            while cursor:
                body = QueryBuilder.build_continuation(cursor, self.config.scroll_window)
                async with self.client.scroll(body) as chunks:
                    result = await decoder.decode(
                        TokenStream(chunks), encoder.write, page=pages + 1
                    )
                pages += 1
                cursor = result.cursor
                await encoder.flush()

            completed = True

        except ExportError as e:
            logger.error(f"Export failed after {pages} pages: {e}")
            raise

        finally:
            conduit.on_full = None
            try:
                await self._finish(encoder, sink)
            except ExportError as e:
                if completed:
                    raise
                logger.debug(f"Finalizing output after failure also failed: {e}")

        duration = time.time() - start_time
        logger.info(
            f"Export finished: {encoder.rows_written} rows of {total} in {pages} pages "
            f"({duration:.2f}s, {self.client.request_count} requests)"
        )

        return ExportResult(
            total=total,
            rows_written=encoder.rows_written,
            pages=pages,
            duration=duration,
        )

    async def _finish(self, encoder: DelimitedRecordEncoder, sink: CompressionSink) -> None:
        """Flush the encoder, then the compressor, then close the compressor."""
        try:
            await encoder.flush()
            await sink.flush()
        finally:
            await sink.close()
