"""
Main CLI entry point for opensearch-csv-exporter
"""

import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.traceback import install

from .. import __version__

# Locals stay hidden: they can hold cluster credentials
install(show_locals=False)

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="opensearch-csv-exporter")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Configuration file (default: $EXPORTER_CONFIG_PATH or ~/.opensearch-csv-exporter/config.yaml)",
)
@click.pass_context
def cli(
    ctx: click.Context, verbose: bool, no_color: bool, config_path: Optional[Path]
) -> None:
    """
    opensearch-csv-exporter - OpenSearch to gzip CSV export

    Streams every document matching a query string and time range out of an
    OpenSearch cluster as gzip-compressed, semicolon-delimited CSV.

    Examples:
      opensearch-csv-exporter serve --port 8080
      opensearch-csv-exporter export --query 'level:ERROR' --from now-1h --to now -o errors.csv.gz
      opensearch-csv-exporter config init
    """
    ctx.ensure_object(dict)

    if no_color:
        ctx.obj["console"] = Console(force_terminal=False, no_color=True)
    else:
        ctx.obj["console"] = console

    ctx.obj["verbose"] = verbose
    ctx.obj["no_color"] = no_color
    ctx.obj["config_path"] = config_path


# Import and register commands at module level to support testing
from .commands import config, export, serve  # noqa: E402

cli.add_command(serve.serve)
cli.add_command(export.export)
cli.add_command(config.config)


def main() -> None:
    """Main entry point for the CLI application"""
    try:
        cli()

    except KeyboardInterrupt:
        console.print("\n[yellow]Operation interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Unexpected error: {e}[/red]")
        if "--verbose" in sys.argv or "-v" in sys.argv:
            console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()
