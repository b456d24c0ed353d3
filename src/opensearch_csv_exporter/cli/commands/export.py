"""
Export command: run one export and write the gzip CSV to a file
"""

import os
from pathlib import Path
from typing import Dict, Optional, Tuple

import click
from rich.console import Console

from ...core.config_manager import ConfigurationError
from ...core.environment_manager import EnvironmentManager, basic_auth_header
from ...core.export_engine import ExportEngine
from ...integration.opensearch_client import OpenSearchClient
from ...models.config_models import ExporterConfig
from ...models.export_models import ExportError, ExportRequest, ExportResult
from ..ui.display import create_error_display, create_export_summary
from ..utils.async_runner import async_command
from ..utils.config_loader import load_cli_config
from ..utils.validation import (
    get_validation_suggestions,
    show_validation_error,
    validate_columns,
    validate_output_file,
    validate_query,
)


@click.command()
@click.option("--query", "-q", required=True, help="Query string to match")
@click.option("--from", "from_date", required=True, help="Start of the @timestamp range (inclusive)")
@click.option("--to", "to_date", required=True, help="End of the @timestamp range (inclusive)")
@click.option(
    "--column",
    "-c",
    "columns",
    multiple=True,
    help="Extra column as a dotted path into _source (repeatable)",
)
@click.option(
    "--output",
    "-o",
    required=True,
    type=click.Path(dir_okay=False),
    help="Destination file for the gzip CSV",
)
@click.option("--username", "-u", help="Cluster user (default: $EXPORTER_USERNAME)")
@click.option("--password", help="Cluster password (default: $EXPORTER_PASSWORD)")
@click.pass_context
@async_command
async def export(
    ctx: click.Context,
    query: str,
    from_date: str,
    to_date: str,
    columns: Tuple[str, ...],
    output: str,
    username: Optional[str],
    password: Optional[str],
) -> None:
    """
    Export every matching document to a gzip CSV file.

    The file always starts with the @timestamp and message columns, followed
    by each --column in order. Fields are separated by semicolons.

    Examples:
      opensearch-csv-exporter export -q 'level:ERROR' --from now-1h --to now -o errors.csv.gz
      opensearch-csv-exporter export -q '*' --from 2024-04-03T00:00:00Z --to 2024-04-04T00:00:00Z \\
          -c container.image.name -c kubernetes.pod\\.name -o day.csv.gz
    """
    console: Console = ctx.obj["console"]
    verbose: bool = ctx.obj.get("verbose", False)

    is_valid, error_msg = validate_query(query)
    if not is_valid:
        suggestions = get_validation_suggestions("query", query)
        show_validation_error(console, error_msg or "", suggestions)
        ctx.exit(2)

    is_valid, error_msg = validate_columns(list(columns))
    if not is_valid:
        suggestions = get_validation_suggestions("column", "")
        show_validation_error(console, error_msg or "", suggestions)
        ctx.exit(2)

    is_valid, error_msg, output_path = validate_output_file(output)
    if not is_valid or output_path is None:
        suggestions = get_validation_suggestions("output_file", output)
        show_validation_error(console, error_msg or "", suggestions)
        ctx.exit(2)

    try:
        config = await load_cli_config(ctx)
    except ConfigurationError as e:
        console.print(create_error_display(e, "Configuration Error"))
        console.print(
            "\n[yellow]Run 'opensearch-csv-exporter config init' to create a configuration file[/yellow]"
        )
        ctx.exit(1)

    request = ExportRequest(
        from_date=from_date, to_date=to_date, query=query, columns=list(columns)
    )

    try:
        result = await _run_export(
            console, config, request, output_path, _auth_headers(username, password)
        )
    except ExportError as e:
        console.print(create_error_display(e, "Export Error"))
        if verbose:
            console.print_exception()
        ctx.exit(1)

    console.print(create_export_summary(result, output_path, output_path.stat().st_size))


def _auth_headers(username: Optional[str], password: Optional[str]) -> Optional[Dict[str, str]]:
    """Basic auth from the options, falling back to the environment."""
    if username and password:
        return {"Authorization": basic_auth_header(username, password)}

    header = EnvironmentManager().get_basic_auth_header()
    return {"Authorization": header} if header else None


async def _run_export(
    console: Console,
    config: ExporterConfig,
    request: ExportRequest,
    output_path: Path,
    headers: Optional[Dict[str, str]],
) -> ExportResult:
    """
    Stream the export into a temporary file next to ``output_path`` and
    move it into place once the export has completed.
    """
    temp_path = output_path.with_name(output_path.name + ".part")

    async with OpenSearchClient(
        addresses=config.opensearch.addresses,
        indices=config.opensearch.indices,
        headers=headers,
        ca_cert_file=config.opensearch.ca_cert_file,
        timeout=config.opensearch.request_timeout,
    ) as client:
        handle = ExportEngine(client, config.export).start(request)

        try:
            with open(temp_path, "wb") as f:
                with console.status("[cyan]Waiting for the first page...[/cyan]") as status:
                    written = 0
                    async for chunk in handle.chunks():
                        f.write(chunk)
                        written += len(chunk)
                        status.update(f"[cyan]Exporting... {written:,} bytes written[/cyan]")

            result = await handle.wait()

        except BaseException:
            handle.abort()
            if temp_path.exists():
                temp_path.unlink()
            raise

    os.replace(temp_path, output_path)
    return result
