"""
Rich display components for configuration, errors and export summaries
"""

from pathlib import Path
from typing import Any, Dict, Optional

from rich.panel import Panel
from rich.table import Table

from ...models.export_models import ErrorCategory, ExportError, ExportResult

SENSITIVE_MARKERS = ("password", "secret", "token", "authorization")


def create_config_table(
    config_data: Dict[str, Any], title: str = "Configuration"
) -> Table:
    """
    Create a Rich table for configuration display
    """
    table = Table(title=title, show_header=True, header_style="bold blue")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")
    table.add_column("Source", style="yellow")

    for key, value_info in config_data.items():
        if isinstance(value_info, dict):
            value = value_info.get("value", "not set")
            source = value_info.get("source", "unknown")
        else:
            value = str(value_info) if value_info is not None else "not set"
            source = "config file"

        if any(marker in key.lower() for marker in SENSITIVE_MARKERS):
            display_value = "***masked***" if value and value != "not set" else "not set"
        else:
            display_value = str(value)

        table.add_row(key, display_value, source)

    return table


def create_error_display(error: Exception, context: Optional[str] = None) -> Panel:
    """
    Create formatted error display with suggestions
    """
    error_lines = []

    if context:
        error_lines.append(f"Context: {context}")
        error_lines.append("")

    error_lines.append(f"Error: {str(error)}")
    error_lines.append("")

    category = error.category if isinstance(error, ExportError) else None
    suggestions = []

    if category == ErrorCategory.INVALID_REQUEST:
        suggestions.extend(
            [
                "Pass --query, --from and --to",
                "Check the column paths given with --column",
            ]
        )

    elif category == ErrorCategory.TRANSPORT:
        suggestions.extend(
            [
                "Check that the cluster addresses are reachable: opensearch-csv-exporter config show",
                "Verify the CA certificate when using https",
                "Increase opensearch.request_timeout for slow clusters",
            ]
        )

    elif category == ErrorCategory.REMOTE:
        suggestions.extend(
            [
                "Check the credentials (--username/--password or EXPORTER_USERNAME/EXPORTER_PASSWORD)",
                "Check the query string syntax",
                "Verify the configured indices exist",
            ]
        )

    elif category == ErrorCategory.DECODE:
        suggestions.extend(
            [
                "Verify the addresses point at an OpenSearch or Elasticsearch cluster",
                "Run with --verbose to see which page failed",
            ]
        )

    elif category == ErrorCategory.CONFIGURATION or "config" in str(error).lower():
        suggestions.extend(
            [
                "Create a configuration file: opensearch-csv-exporter config init",
                "Check the configuration: opensearch-csv-exporter config validate",
                "Verify EXPORTER_* environment variables",
            ]
        )

    else:
        suggestions.extend(
            [
                "Run with --verbose for detailed error information",
                "Verify configuration: opensearch-csv-exporter config show",
            ]
        )

    error_lines.append("Suggestions:")
    for suggestion in suggestions:
        error_lines.append(f"  • {suggestion}")

    return Panel(
        "\n".join(error_lines),
        title="[red]Error[/red]",
        border_style="red",
        padding=(1, 2),
    )


def create_export_summary(result: ExportResult, output_path: Path, size: int) -> Panel:
    """
    Create the completion panel for a finished export
    """
    lines = [
        f"Rows written: {result.rows_written:,} of {result.total:,} matches",
        f"Pages: {result.pages}",
        f"Duration: {format_duration(result.duration)} ({result.rows_per_second:,.0f} rows/s)",
        f"Output: {output_path} ({format_size(size)})",
    ]

    return Panel("\n".join(lines), title="[green]Export Complete[/green]", border_style="green")


def format_duration(seconds: float) -> str:
    """Format duration in a human-readable way"""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.0f}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"


def format_size(bytes_size: int) -> str:
    """Format file size in a human-readable way"""
    size_float = float(bytes_size)
    for unit in ["B", "KB", "MB", "GB"]:
        if size_float < 1024:
            return f"{size_float:.1f} {unit}"
        size_float /= 1024
    return f"{size_float:.1f} TB"
