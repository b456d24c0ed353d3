"""
HTTP service exposing the CSV export endpoint.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Optional, Set

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse, StreamingResponse

from .. import __version__
from ..core.export_engine import ExportEngine
from ..integration.opensearch_client import OpenSearchClient
from ..models.config_models import ExporterConfig
from ..models.export_models import ExportError, ExportRequest, status_for_error
from .auth import extract_basic_auth
from .metrics import RequestMetrics

logger = logging.getLogger(__name__)

EXPORT_PATH = "/api/opensearch/csv-export-v1"
METRICS_PATH = "/metrics"
UNLOGGED_PATHS = ("/health", METRICS_PATH)


def create_app(
    config: ExporterConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Exporter configuration
        transport: Custom httpx transport for the search cluster (used by tests)
    """
    app = FastAPI(title="OpenSearch CSV Exporter", version=__version__)
    cleanup_tasks: Set["asyncio.Future[None]"] = set()
    metrics = RequestMetrics()
    app.state.metrics = metrics

    @app.middleware("http")
    async def observe_requests(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.time()
        response = await call_next(request)
        elapsed = time.time() - start_time

        route = request.scope.get("route")
        handler = getattr(route, "path", request.url.path)
        metrics.observe(request.method, handler, response.status_code, elapsed)

        if request.url.path not in UNLOGGED_PATHS:
            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code} "
                f"({elapsed:.3f}s)"
            )
        return response

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok"}

    @app.get(METRICS_PATH)
    async def prometheus_metrics() -> Response:
        content, content_type = metrics.render()
        return Response(content=content, media_type=content_type)

    @app.post(EXPORT_PATH)
    async def csv_export(request: Request) -> Response:
        try:
            auth_headers = extract_basic_auth(request.headers.get("authorization"))
        except ExportError as e:
            return PlainTextResponse(str(e), status_code=400)

        try:
            payload: Any = await request.json()
            export_request = ExportRequest.model_validate(payload)
            export_request.validate_complete()
        except ExportError as e:
            return PlainTextResponse(str(e), status_code=status_for_error(e))
        except ValueError as e:
            return PlainTextResponse(str(e), status_code=400)

        try:
            client = OpenSearchClient(
                addresses=config.opensearch.addresses,
                indices=config.opensearch.indices,
                headers=auth_headers,
                ca_cert_file=config.opensearch.ca_cert_file,
                timeout=config.opensearch.request_timeout,
                transport=transport,
            )
        except ExportError as e:
            logger.error(f"Failed to create search client: {e}")
            return PlainTextResponse(str(e), status_code=500)

        handle = ExportEngine(client, config.export).start(export_request)

        def close_client(task: "asyncio.Task[Any]") -> None:
            if task.cancelled():
                logger.warning("Export cancelled before completion")
            cleanup = asyncio.ensure_future(client.aclose())
            cleanup_tasks.add(cleanup)
            cleanup.add_done_callback(cleanup_tasks.discard)

        handle.add_done_callback(close_client)

        try:
            total = await handle.total()
        except ExportError as e:
            return PlainTextResponse(str(e), status_code=status_for_error(e))

        return StreamingResponse(
            handle.chunks(),
            media_type="application/csv",
            headers={
                "content-encoding": "gzip",
                "total-hits": str(total),
            },
        )

    return app
