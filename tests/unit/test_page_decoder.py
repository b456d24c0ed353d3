"""
Unit tests for the streaming page decoder.
"""

import json

import pytest

from helpers import chunked, log_source, make_page
from opensearch_csv_exporter.core.page_decoder import PageDecoder
from opensearch_csv_exporter.core.token_stream import TokenStream
from opensearch_csv_exporter.models.export_models import DecodeError


class RowCollector:
    def __init__(self):
        self.rows = []
        self.totals = []

    async def on_row(self, raw):
        self.rows.append(raw)

    def on_total(self, value):
        self.totals.append(value)


async def decode(data: bytes, page_size: int, chunk_size: int = 13, page=None):
    collector = RowCollector()
    result = await PageDecoder(page_size).decode(
        TokenStream(chunked(data, chunk_size)),
        collector.on_row,
        collector.on_total,
        page=page,
    )
    return result, collector


class TestPageDecoder:
    """Test cursor, total and row extraction."""

    @pytest.mark.asyncio
    async def test_full_page_keeps_cursor(self, search_page):
        """A page as large as page_size keeps its cursor."""
        result, collector = await decode(search_page, page_size=3)

        assert result.cursor == "cool scroll id"
        assert result.row_count == 3
        assert result.total == 3
        assert collector.totals == [3]
        assert len(collector.rows) == 3

    @pytest.mark.asyncio
    async def test_short_page_drops_cursor(self, search_page):
        """A page smaller than page_size is the last one."""
        result, collector = await decode(search_page, page_size=10000)

        assert result.cursor == ""
        assert result.exhausted
        assert result.row_count == 3

    @pytest.mark.asyncio
    async def test_rows_are_compact_sources(self, search_page):
        """Each row is the compact JSON of one _source, in order."""
        _, collector = await decode(search_page, page_size=3, chunk_size=1)

        first = json.loads(collector.rows[0])
        assert first["message"] == "cool log number 1"
        assert first["container"]["image"]["name"] == "cool image name 1"
        assert collector.rows[0].startswith('{"@timestamp":"2024-04-03T06:11:55.105Z"')
        assert [json.loads(r)["message"] for r in collector.rows] == [
            "cool log number 1",
            "cool log number 2",
            "cool log number 3",
        ]

    @pytest.mark.asyncio
    async def test_cursor_after_hits(self):
        """The cursor is found wherever it appears in the page."""
        data = make_page([log_source(1), log_source(2)], cursor="late", total=2)

        result, _ = await decode(data, page_size=2)

        assert result.cursor == "late"

    @pytest.mark.asyncio
    async def test_empty_page(self):
        """Zero hits is a valid, exhausted page."""
        result, collector = await decode(make_page([], cursor="c", total=0), page_size=10)

        assert result.cursor == ""
        assert result.row_count == 0
        assert result.total == 0
        assert collector.rows == []

    @pytest.mark.asyncio
    async def test_missing_total(self):
        """Scroll pages may omit the total."""
        result, collector = await decode(make_page([log_source(1)]), page_size=10)

        assert result.total is None
        assert collector.totals == []

    @pytest.mark.asyncio
    async def test_bare_number_total(self):
        """An older cluster reports hits.total as a plain number."""
        data = b'{"_scroll_id": "c", "hits": {"total": 7, "hits": []}}'

        result, collector = await decode(data, page_size=10)

        assert result.total == 7
        assert collector.totals == [7]

    @pytest.mark.asyncio
    async def test_hit_without_source(self):
        """A hit without _source is forwarded as an empty object."""
        data = b'{"hits": {"hits": [{"_id": "x", "fields": {"a": [1]}}]}}'

        result, collector = await decode(data, page_size=10)

        assert collector.rows == ["{}"]
        assert result.row_count == 1

    @pytest.mark.asyncio
    async def test_unknown_fields_are_skipped(self):
        """Unknown fields of any shape do not disturb decoding."""
        data = (
            b'{"aggregations": {"x": {"buckets": [{"k": [1, [2, {"hits": 1}]]}]}},'
            b' "hits": {"extra": [[]], "hits": [{"_source": {"message": "m"}, "sort": [1]}]},'
            b' "_scroll_id": null}'
        )

        result, collector = await decode(data, page_size=1)

        assert collector.rows == ['{"message":"m"}']
        assert result.cursor == ""

    @pytest.mark.asyncio
    async def test_truncated_page(self, search_page):
        """A body cut short raises DecodeError with the page number."""
        with pytest.raises(DecodeError) as exc_info:
            await decode(search_page[:-40], page_size=3, page=4)

        assert exc_info.value.page == 4
        assert str(exc_info.value).startswith("page 4: ")

    @pytest.mark.asyncio
    async def test_hit_that_is_not_an_object(self):
        """Array elements of hits.hits must be objects."""
        with pytest.raises(DecodeError, match="expected hit object"):
            await decode(b'{"hits": {"hits": ["nope"]}}', page_size=10)

    @pytest.mark.asyncio
    async def test_rows_forwarded_before_page_ends(self):
        """Rows reach the callback before the rest of the page is read."""
        data = make_page([log_source(1)], cursor="c")
        stream = TokenStream(chunked(data, 5))
        read_at_row = []

        async def on_row(raw):
            read_at_row.append(stream.bytes_read)

        await PageDecoder(10).decode(stream, on_row)

        assert len(read_at_row) == 1
        assert read_at_row[0] < len(data)

    def test_page_size_must_be_positive(self):
        with pytest.raises(ValueError):
            PageDecoder(0)
