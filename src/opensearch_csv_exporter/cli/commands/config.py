"""
Configuration management commands
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import click
from rich.console import Console

from ...core.config_manager import ConfigurationError, ConfigurationManager
from ...models.config_models import ExporterConfig
from ..ui.display import create_config_table, create_error_display
from ..utils.async_runner import async_command

# Settings that an EXPORTER_* variable can override
ENV_SOURCES = {
    "opensearch.addresses": "EXPORTER_OPENSEARCH_ADDRESSES",
    "opensearch.indices": "EXPORTER_OPENSEARCH_INDICES",
    "server.port": "EXPORTER_PORT",
    "logging.level": "EXPORTER_LOG_LEVEL",
    "debug_mode": "EXPORTER_DEBUG_MODE",
}


@click.group()
def config() -> None:
    """
    Configuration management commands.

    Manage the cluster addresses, export pagination and encoding, the HTTP
    service and logging settings.
    """
    pass


@config.command()
@click.option("--force", is_flag=True, help="Overwrite an existing configuration file")
@click.pass_context
@async_command
async def init(ctx: click.Context, force: bool) -> None:
    """
    Write a configuration file with default values.

    The file is commented and supports ${VAR} and ${VAR:default}
    environment substitution.
    """
    console: Console = ctx.obj["console"]
    config_path: Optional[Path] = ctx.obj.get("config_path")

    try:
        config_manager = ConfigurationManager()
        target = config_path or config_manager._get_default_config_path()

        if target.exists() and not force:
            console.print(f"[yellow]Configuration file already exists: {target}[/yellow]")
            console.print("Use --force to overwrite it with defaults.")
            return

        await config_manager.generate_default_config(target, overwrite=force)
        console.print(f"[green]✓[/green] Default configuration created at: {target}")
        console.print("Edit this file to point at your cluster.")

    except ConfigurationError as e:
        console.print(create_error_display(e, "Configuration Error"))
        ctx.exit(1)


@config.command()
@click.pass_context
@async_command
async def show(ctx: click.Context) -> None:
    """
    Display the effective configuration with sources.

    Values come from the configuration file, EXPORTER_* environment
    variables, or built-in defaults.
    """
    console: Console = ctx.obj["console"]

    try:
        config_manager = ConfigurationManager()
        config = await config_manager.load_config(
            ctx.obj.get("config_path"), create_missing=False
        )
    except ConfigurationError as e:
        console.print(create_error_display(e, "Configuration Error"))
        ctx.exit(1)

    table = create_config_table(_flatten(config), "Exporter Configuration")
    console.print(table)

    config_file_path = config_manager.config_path
    console.print(f"\n[dim]Configuration file: {config_file_path}[/dim]")

    if config_file_path and not config_file_path.exists():
        console.print(
            "[yellow]Configuration file does not exist. Run 'opensearch-csv-exporter config init' to create one.[/yellow]"
        )


@config.command()
@click.pass_context
@async_command
async def validate(ctx: click.Context) -> None:
    """
    Validate the configuration file and environment overrides.

    Checks value ranges as well as the CA certificate and log directory
    paths.
    """
    console: Console = ctx.obj["console"]
    config_path: Optional[Path] = ctx.obj.get("config_path")

    try:
        config_manager = ConfigurationManager()
        target = config_path or config_manager._get_default_config_path()
        if not target.exists():
            raise ConfigurationError(f"Configuration file not found: {target}")

        await config_manager.load_config(target, create_missing=False)
        await config_manager.validate_config()

    except ConfigurationError as e:
        console.print(create_error_display(e, "Configuration Error"))
        ctx.exit(1)

    console.print(f"[green]✓[/green] Configuration is valid: {target}")


def _flatten(config: ExporterConfig) -> Dict[str, Dict[str, str]]:
    """Dotted setting names with their display value and source."""
    rows: Dict[str, Dict[str, str]] = {}

    def add(key: str, value: Any) -> None:
        if isinstance(value, list):
            display = ", ".join(str(v) for v in value) if value else "(none)"
        elif value is None:
            display = "not set"
        else:
            display = str(value)
        rows[key] = {"value": display, "source": _get_value_source(key, value)}

    for section, values in config.model_dump().items():
        if isinstance(values, dict):
            for name, value in values.items():
                add(f"{section}.{name}", value)
        else:
            add(section, values)

    return rows


def _get_value_source(key: str, value: Any) -> str:
    """Determine the source of a configuration value"""
    env_var = ENV_SOURCES.get(key)
    if env_var and os.getenv(env_var):
        return "environment"
    elif value not in (None, [], ""):
        return "config file"
    else:
        return "default"
