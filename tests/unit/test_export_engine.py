"""
Unit tests for export orchestration.
"""

import asyncio
import gc
import json
import os

import httpx
import pytest

from helpers import FakeCluster, collect, gunzip_lines, log_source, make_page
from opensearch_csv_exporter.core.compression_sink import ByteConduit
from opensearch_csv_exporter.core.export_engine import ExportEngine
from opensearch_csv_exporter.models.config_models import ExportConfig
from opensearch_csv_exporter.models.export_models import (
    DecodeError,
    ExportRequest,
    InvalidRequestError,
    RemoteError,
    TransportError,
)


class GatedStream(httpx.AsyncByteStream):
    """Response body that holds back its tail until ``gate`` is set."""

    def __init__(self, head: bytes, tail: bytes, gate: asyncio.Event):
        self.head = head
        self.tail = tail
        self.gate = gate

    async def __aiter__(self):
        yield self.head
        await self.gate.wait()
        yield self.tail


def gated_page(page: bytes, gate: asyncio.Event, tail_size: int = 30):
    return lambda request: httpx.Response(
        200, stream=GatedStream(page[:-tail_size], page[-tail_size:], gate)
    )


async def settle(handle, rounds=100):
    for _ in range(rounds):
        if handle.done:
            return
        await asyncio.sleep(0)


def make_request(columns=("type",)):
    return ExportRequest(
        FromDate="2024-04-03T00:00:00Z",
        ToDate="2024-04-04T00:00:00Z",
        Query="*",
        Columns=list(columns),
    )


def engine_for(cluster, page_size=2):
    return ExportEngine(cluster.client(), ExportConfig(page_size=page_size))


class TestExportEngine:
    """Test paging, output and failure handling."""

    @pytest.mark.asyncio
    async def test_multi_page_export(self):
        """Pages are fetched until a short page, rows keep their order."""
        cluster = FakeCluster(
            make_page([log_source(1, type="t"), log_source(2)], cursor="c1", total=5),
            {
                "c1": make_page([log_source(3), log_source(4, type="u")], cursor="c2"),
                "c2": make_page([log_source(5)], cursor="c3"),
            },
        )
        handle = engine_for(cluster).start(make_request())

        assert await handle.total() == 5
        data = await collect(handle.chunks())
        result = await handle.wait()

        assert gunzip_lines(data) == [
            "@timestamp;message;type",
            "2024-04-03T06:11:55.001Z;log number 1;t",
            "2024-04-03T06:11:55.002Z;log number 2;",
            "2024-04-03T06:11:55.003Z;log number 3;",
            "2024-04-03T06:11:55.004Z;log number 4;u",
            "2024-04-03T06:11:55.005Z;log number 5;",
        ]
        assert result.total == 5
        assert result.rows_written == 5
        assert result.pages == 3
        assert cluster.scroll_ids == ["c1", "c2"]
        assert json.loads(cluster.requests[1].content)["scroll"] == "1m"
        assert json.loads(cluster.requests[0].content)["size"] == 2

    @pytest.mark.asyncio
    async def test_final_page_of_exactly_page_size(self):
        """A full last page costs one extra, empty scroll request."""
        cluster = FakeCluster(
            make_page([log_source(1), log_source(2)], cursor="c1", total=2),
            {"c1": make_page([], cursor="c1")},
        )
        handle = engine_for(cluster).start(make_request())

        data = await collect(handle.chunks())
        result = await handle.wait()

        assert len(gunzip_lines(data)) == 3
        assert result.pages == 2
        assert len(cluster.requests) == 2

    @pytest.mark.asyncio
    async def test_zero_matches(self):
        """No matches produce a header-only gzip stream and total 0."""
        cluster = FakeCluster(make_page([], cursor="c1", total=0))
        handle = engine_for(cluster).start(make_request(columns=()))

        assert await handle.total() == 0
        data = await collect(handle.chunks())
        result = await handle.wait()

        assert gunzip_lines(data) == ["@timestamp;message"]
        assert result.rows_written == 0
        assert len(cluster.requests) == 1

    @pytest.mark.asyncio
    async def test_missing_total_reports_zero(self):
        cluster = FakeCluster(make_page([log_source(1)], cursor="c1"))
        handle = engine_for(cluster).start(make_request())

        assert await handle.total() == 0
        await collect(handle.chunks())
        assert (await handle.wait()).rows_written == 1

    @pytest.mark.asyncio
    async def test_invalid_request_makes_no_calls(self):
        cluster = FakeCluster(make_page([]))
        request = make_request()
        request.query = ""
        handle = engine_for(cluster).start(request)

        with pytest.raises(InvalidRequestError, match="missing query"):
            await handle.total()
        assert await collect(handle.chunks()) == b""
        with pytest.raises(InvalidRequestError):
            await handle.wait()
        assert cluster.requests == []

    @pytest.mark.asyncio
    async def test_remote_error_on_first_page(self):
        """A cluster error before any row surfaces through total()."""
        cluster = FakeCluster(
            lambda request: httpx.Response(
                400, json={"error": {"type": "parse_exception", "reason": "bad query"}}
            )
        )
        handle = engine_for(cluster).start(make_request())

        with pytest.raises(RemoteError, match="bad query"):
            await handle.total()
        with pytest.raises(RemoteError):
            await handle.wait()

    @pytest.mark.asyncio
    async def test_failure_mid_export_keeps_valid_gzip(self):
        """Rows written before a failure remain a decodable gzip stream."""

        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        cluster = FakeCluster(
            make_page([log_source(1), log_source(2)], cursor="c1", total=4),
            {"c1": refuse},
        )
        handle = engine_for(cluster).start(make_request())

        assert await handle.total() == 4
        data = await collect(handle.chunks())
        with pytest.raises(TransportError, match="failed to scroll"):
            await handle.wait()

        assert gunzip_lines(data) == [
            "@timestamp;message;type",
            "2024-04-03T06:11:55.001Z;log number 1;",
            "2024-04-03T06:11:55.002Z;log number 2;",
        ]

    @pytest.mark.asyncio
    async def test_truncated_page_is_decode_error(self):
        page = make_page([log_source(1), log_source(2)], cursor="c1", total=4)
        cluster = FakeCluster(
            page, {"c1": lambda request: httpx.Response(200, content=page[:50])}
        )
        handle = engine_for(cluster).start(make_request())

        await collect(handle.chunks())
        with pytest.raises(DecodeError) as exc_info:
            await handle.wait()

        assert exc_info.value.page == 2

    @pytest.mark.asyncio
    async def test_abort_cancels_export(self):
        """A consumer that leaves stops the export."""
        never = asyncio.Event()

        async def hang(request):
            await never.wait()

        cluster = FakeCluster(
            make_page([log_source(1), log_source(2)], cursor="c1", total=10),
            {"c1": hang},
        )
        handle = engine_for(cluster).start(make_request())
        await handle.total()

        handle.abort()

        with pytest.raises(asyncio.CancelledError):
            await handle.wait()
        assert handle.done

    @pytest.mark.asyncio
    async def test_run_with_on_total(self):
        """run() can be driven directly with a caller-owned conduit."""
        cluster = FakeCluster(make_page([log_source(1)], cursor="c1", total=1))
        conduit = ByteConduit()
        totals = []

        engine = engine_for(cluster)
        result, data = await asyncio.gather(
            engine.run(make_request(), conduit, totals.append), collect(conduit)
        )

        assert totals == [1]
        assert result.pages == 1
        assert gunzip_lines(data)[1] == "2024-04-03T06:11:55.001Z;log number 1;"

    @pytest.mark.asyncio
    async def test_total_waits_for_end_of_first_page(self):
        """The total is only reported once page 1 has decoded cleanly."""
        gate = asyncio.Event()
        page = make_page([log_source(1), log_source(2)], cursor="c1", total=2)
        cluster = FakeCluster(gated_page(page, gate))
        handle = engine_for(cluster, page_size=10).start(make_request())

        total = asyncio.ensure_future(handle.total())
        for _ in range(20):
            await asyncio.sleep(0)
        assert not total.done()

        gate.set()
        assert await asyncio.wait_for(total, timeout=1) == 2
        data = await collect(handle.chunks())
        assert (await handle.wait()).rows_written == 2
        assert len(gunzip_lines(data)) == 3

    @pytest.mark.asyncio
    async def test_total_reported_when_output_backs_up(self):
        """A first page larger than the conduit reports the total early."""
        gate = asyncio.Event()
        sources = [log_source(n, blob=os.urandom(4096).hex()) for n in range(64)]
        page = make_page(sources, cursor="c1", total=64)
        cluster = FakeCluster(gated_page(page, gate))
        engine = ExportEngine(
            cluster.client(), ExportConfig(page_size=100, conduit_max_chunks=1)
        )
        handle = engine.start(make_request(columns=("blob",)))

        assert await asyncio.wait_for(handle.total(), timeout=5) == 64

        gate.set()
        data = await collect(handle.chunks())
        result = await handle.wait()
        assert result.rows_written == 64
        assert len(gunzip_lines(data)) == 65

    @pytest.mark.asyncio
    async def test_failure_after_total_leaves_nothing_unretrieved(self):
        """A chunks-only consumer does not leave a pending task exception."""
        loop = asyncio.get_running_loop()
        contexts = []
        loop.set_exception_handler(lambda loop, context: contexts.append(context))
        try:
            cluster = FakeCluster(
                make_page([log_source(1), log_source(2)], cursor="c1", total=4),
                {"c1": lambda request: httpx.Response(200, content=b'{"hits": {"hits": [1')},
            )
            handle = engine_for(cluster).start(make_request())

            assert await handle.total() == 4
            await collect(handle.chunks())
            await settle(handle)
            assert handle.done

            del handle
            gc.collect()
        finally:
            loop.set_exception_handler(None)

        assert [context["message"] for context in contexts] == []
