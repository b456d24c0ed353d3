"""
OpenSearch scroll API client and request body builders.
"""

import itertools
import json
import logging
import ssl
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Union
from urllib.parse import quote

import httpx

from ..models.export_models import (
    ConfigurationError,
    ExportRequest,
    RemoteError,
    TransportError,
)

logger = logging.getLogger(__name__)

# Only the head of an error body is kept for the error message
MAX_ERROR_BODY = 64 * 1024


class QueryBuilder:
    """Builds JSON bodies for the initial search and scroll continuations."""

    @staticmethod
    def build_initial(request: ExportRequest, page_size: int) -> bytes:
        """
        Build the body of the initial search.

        Args:
            request: Export request with query and inclusive time range
            page_size: Number of hits per page (the API default is only 10)

        Returns:
            Serialized JSON body
        """
        body = {
            "size": page_size,
            "query": {
                "bool": {
                    "must": {"query_string": {"query": request.query}},
                    "filter": {
                        "range": {
                            "@timestamp": {
                                "gte": request.from_date,
                                "lte": request.to_date,
                            }
                        }
                    },
                }
            },
        }
        return json.dumps(body).encode("utf-8")

    @staticmethod
    def build_continuation(cursor: str, window: str) -> bytes:
        """Build a scroll body that fetches the next page and extends the window."""
        return json.dumps({"scroll": window, "scroll_id": cursor}).encode("utf-8")


def load_ca_context(ca_cert_file: str) -> ssl.SSLContext:
    """
    Create an SSL context trusting the given PEM bundle.

    Raises:
        ConfigurationError: If the file cannot be read or parsed
    """
    try:
        return ssl.create_default_context(cafile=ca_cert_file)
    except (OSError, ssl.SSLError) as e:
        raise ConfigurationError(f"failed to load ca cert: {e}", e) from e


def _error_reason(text: str) -> str:
    """Pull a readable reason out of an OpenSearch error body."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return text[:200]

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            reason = error.get("reason") or error.get("type")
            if reason:
                return str(reason)
        elif error:
            return str(error)
        if "message" in data:
            return str(data["message"])

    return text[:200]


class OpenSearchClient:
    """
    Minimal scroll API client with streamed response bodies.

    ``search`` and ``scroll`` are async context managers yielding the page
    body as an async iterator of byte chunks. There is no retry: connection
    failures raise ``TransportError`` and HTTP error statuses raise
    ``RemoteError`` with the cluster's own reason.
    """

    def __init__(
        self,
        addresses: List[str],
        indices: Optional[List[str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        ca_cert_file: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            addresses: Node base URLs, used round-robin
            indices: Index patterns to search (empty = all indices)
            headers: Extra headers for every request, e.g. Authorization
            ca_cert_file: PEM bundle for verifying the cluster certificate
            timeout: Read timeout in seconds
            transport: Custom httpx transport (used by tests)
        """
        if not addresses:
            raise ConfigurationError("missing opensearch addresses")

        self.addresses = [address.rstrip("/") for address in addresses]
        self.indices = list(indices or [])
        self.request_count = 0
        self._address_cycle = itertools.cycle(self.addresses)

        session_headers = {
            "User-Agent": "opensearch-csv-exporter/1.0.0",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        session_headers.update(headers or {})

        verify: Union[bool, ssl.SSLContext] = True
        if ca_cert_file:
            verify = load_ca_context(ca_cert_file)

        client_args: Dict[str, Any] = {
            "headers": session_headers,
            "timeout": httpx.Timeout(timeout, connect=10.0),
            "verify": verify,
        }
        if transport is not None:
            client_args["transport"] = transport
        self._client = httpx.AsyncClient(**client_args)

    def _search_path(self) -> str:
        if not self.indices:
            return "/_search"
        return "/" + ",".join(quote(index, safe="*-_.") for index in self.indices) + "/_search"

    @asynccontextmanager
    async def search(self, body: bytes, window: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """Run the initial search, opening a scroll window of ``window``."""
        async with self._stream(
            self._search_path(), body, "search", params={"scroll": window}
        ) as chunks:
            yield chunks

    @asynccontextmanager
    async def scroll(self, body: bytes) -> AsyncIterator[AsyncIterator[bytes]]:
        """Fetch the next page of an open scroll."""
        async with self._stream("/_search/scroll", body, "scroll") as chunks:
            yield chunks

    @asynccontextmanager
    async def _stream(
        self,
        path: str,
        body: bytes,
        operation: str,
        params: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[AsyncIterator[bytes]]:
        url = f"{next(self._address_cycle)}{path}"
        self.request_count += 1
        logger.debug(f"POST {url} ({operation}, {len(body)} byte body)")

        try:
            async with self._client.stream(
                "POST", url, content=body, params=params
            ) as response:
                if response.status_code > 299:
                    await self._raise_remote_error(response, operation)
                yield self._iter_body(response, operation)
        except httpx.RequestError as e:
            raise TransportError(f"failed to {operation}: {e}", e) from e

    async def _iter_body(
        self, response: httpx.Response, operation: str
    ) -> AsyncIterator[bytes]:
        try:
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.RequestError as e:
            raise TransportError(
                f"failed to read {operation} response: {e}", e
            ) from e

    async def _raise_remote_error(self, response: httpx.Response, operation: str) -> None:
        raw = b""
        async for chunk in response.aiter_bytes():
            raw += chunk
            if len(raw) >= MAX_ERROR_BODY:
                break

        reason = _error_reason(raw[:MAX_ERROR_BODY].decode("utf-8", errors="replace"))
        raise RemoteError(
            f"{operation} failed with status {response.status_code}: {reason}",
            status_code=response.status_code,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "OpenSearchClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
