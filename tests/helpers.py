"""
Helpers for building search responses and reading gzip output in tests.
"""

import asyncio
import gzip
import json
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Iterable, List, Optional

import httpx

from opensearch_csv_exporter.integration.opensearch_client import OpenSearchClient

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> bytes:
    return (FIXTURES_DIR / name).read_bytes()


def make_page(
    sources: Iterable[Dict[str, Any]],
    cursor: Optional[str] = "cursor-1",
    total: Optional[int] = None,
) -> bytes:
    """Build a search/scroll response body with the given _source documents."""
    hits = [
        {"_index": "logs", "_id": str(i), "_score": 1.0, "_source": source}
        for i, source in enumerate(sources)
    ]
    hits_object: Dict[str, Any] = {}
    if total is not None:
        hits_object["total"] = {"value": total, "relation": "eq"}
    hits_object["max_score"] = 1.0
    hits_object["hits"] = hits

    body: Dict[str, Any] = {"took": 1, "timed_out": False, "hits": hits_object}
    if cursor is not None:
        body["_scroll_id"] = cursor
    return json.dumps(body).encode("utf-8")


def log_source(n: int, **extra: Any) -> Dict[str, Any]:
    source = {
        "@timestamp": f"2024-04-03T06:11:55.{n:03d}Z",
        "message": f"log number {n}",
    }
    source.update(extra)
    return source


async def chunked(data: bytes, size: int = 7) -> AsyncIterator[bytes]:
    """Yield ``data`` in fixed-size pieces to exercise split tokens."""
    for i in range(0, len(data), size):
        yield data[i : i + size]


async def collect(chunks: AsyncIterator[bytes]) -> bytes:
    out = b""
    async for chunk in chunks:
        out += chunk
    return out


def gunzip_lines(data: bytes) -> List[str]:
    return gzip.decompress(data).decode("utf-8").splitlines()


class FakeCluster:
    """Serves a first search page and scroll pages keyed by scroll id."""

    def __init__(self, first_page, scroll_pages=None):
        self.first_page = first_page
        self.scroll_pages = scroll_pages or {}
        self.requests = []

    async def handler(self, request):
        self.requests.append(request)
        if request.url.path.endswith("/_search/scroll"):
            page = self.scroll_pages[json.loads(request.content)["scroll_id"]]
        else:
            page = self.first_page

        if callable(page):
            result = page(request)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        return httpx.Response(200, content=page)

    def transport(self):
        return httpx.MockTransport(self.handler)

    def client(self):
        return OpenSearchClient(
            addresses=["http://cluster:9200"],
            indices=["logs-*"],
            transport=self.transport(),
        )

    @property
    def scroll_ids(self):
        return [
            json.loads(r.content)["scroll_id"]
            for r in self.requests
            if r.url.path.endswith("/_search/scroll")
        ]
