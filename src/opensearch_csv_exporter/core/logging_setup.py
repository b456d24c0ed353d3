"""
Logging bootstrap shared by the CLI and the HTTP service.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from ..models.config_models import LoggingConfig

PACKAGE_LOGGER = "opensearch_csv_exporter"


def configure_logging(
    config: LoggingConfig,
    console: Optional[Console] = None,
    verbose: bool = False,
) -> None:
    """
    Route log records to a rich console handler and an optional rotating file.

    ``verbose`` lowers the package logger to DEBUG regardless of the
    configured level.
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, (RichHandler, RotatingFileHandler)):
            root.removeHandler(handler)

    console_handler = RichHandler(
        console=console or Console(stderr=True), rich_tracebacks=True
    )
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root.addHandler(console_handler)

    if config.file_path:
        file_path = Path(config.file_path).expanduser()
        file_handler = RotatingFileHandler(
            file_path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(logging.Formatter(config.format))
        root.addHandler(file_handler)

    root.setLevel(config.level)
    logging.getLogger(PACKAGE_LOGGER).setLevel(
        logging.DEBUG if verbose else config.level
    )

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
