"""
HTTP service command
"""

import asyncio
import logging
from typing import Optional

import click
import uvicorn
from rich.console import Console

from ...core.config_manager import ConfigurationError
from ...server.app import EXPORT_PATH, create_app
from ..ui.display import create_error_display
from ..utils.config_loader import load_cli_config
from ..utils.validation import (
    get_validation_suggestions,
    show_validation_error,
    validate_port,
)

logger = logging.getLogger(__name__)


@click.command()
@click.option("--host", help="Interface to bind (overrides server.host)")
@click.option("--port", "-p", type=int, help="Port to listen on (overrides server.port)")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """
    Run the CSV export HTTP service.

    Exposes POST /api/opensearch/csv-export-v1, which streams a gzip CSV
    for a JSON body of FromDate, ToDate, Query and Columns. The caller's
    Basic Authorization header is forwarded to the cluster.

    Examples:
      opensearch-csv-exporter serve
      opensearch-csv-exporter serve --host 127.0.0.1 --port 9000
    """
    console: Console = ctx.obj["console"]

    if port is not None:
        is_valid, error_msg = validate_port(port)
        if not is_valid:
            suggestions = get_validation_suggestions("port", str(port))
            show_validation_error(console, error_msg or "", suggestions)
            ctx.exit(2)

    try:
        config = asyncio.run(load_cli_config(ctx))
    except ConfigurationError as e:
        console.print(create_error_display(e, "Configuration Error"))
        ctx.exit(1)

    bind_host = host or config.server.host
    bind_port = port or config.server.port

    console.print(
        f"[cyan]Serving {EXPORT_PATH} on {bind_host}:{bind_port} "
        f"for {', '.join(config.opensearch.addresses)}[/cyan]"
    )
    logger.info(f"Starting HTTP service on {bind_host}:{bind_port}")

    # log_config=None keeps the handlers installed by configure_logging
    uvicorn.run(create_app(config), host=bind_host, port=bind_port, log_config=None)
