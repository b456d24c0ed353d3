"""
Shared configuration bootstrap for CLI commands
"""

from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from ...core.config_manager import ConfigurationManager
from ...core.logging_setup import configure_logging
from ...models.config_models import ExporterConfig


async def load_cli_config(ctx: click.Context) -> ExporterConfig:
    """
    Load configuration for a command and route logging to the console.

    Uses the group's ``--config`` path when given. Commands that only read
    configuration never create a config file as a side effect.
    """
    console: Console = ctx.obj["console"]
    config_path: Optional[Path] = ctx.obj.get("config_path")

    config_manager = ConfigurationManager()
    config = await config_manager.load_config(config_path, create_missing=False)

    configure_logging(
        config.logging,
        console=Console(stderr=True, no_color=ctx.obj.get("no_color", False)),
        verbose=ctx.obj.get("verbose", False) or config.debug_mode,
    )
    ctx.obj["config_manager"] = config_manager
    ctx.obj["config"] = config
    return config
