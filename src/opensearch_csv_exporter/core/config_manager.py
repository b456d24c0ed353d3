"""
Configuration loading, overrides and validation.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..models.config_models import ExporterConfig
from ..models.export_models import ConfigurationError
from .environment_manager import EnvironmentManager
from .yaml_parser import YAMLConfigParser

logger = logging.getLogger(__name__)

__all__ = ["ConfigurationManager", "ConfigurationError"]


class ConfigurationManager:
    """Loads the exporter configuration from YAML plus environment overrides."""

    def __init__(self) -> None:
        self.yaml_parser = YAMLConfigParser()
        self.env_manager = EnvironmentManager()
        self.current_config: Optional[ExporterConfig] = None
        self.config_path: Optional[Path] = None

    async def load_config(
        self, config_path: Optional[Path] = None, create_missing: bool = True
    ) -> ExporterConfig:
        """
        Load configuration from file with validation.

        A missing file is created with defaults when ``create_missing`` is
        set; otherwise the defaults are used in memory.

        Raises:
            ConfigurationError: If the file cannot be read or is invalid
        """
        if not config_path:
            config_path = self._get_default_config_path()
        self.config_path = config_path

        try:
            if config_path.exists():
                config_data = await self.yaml_parser.load_yaml_config(config_path)
            elif create_missing:
                logger.info(
                    f"Configuration file not found at {config_path}, creating default configuration"
                )
                await self.generate_default_config(config_path)
                config_data = await self.yaml_parser.load_yaml_config(config_path)
            else:
                logger.info(f"No configuration file at {config_path}, using defaults")
                config_data = {}

            validated_config = await self.validate_config(config_data)

        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}", e) from e

        self.current_config = validated_config
        logger.info(f"Configuration loaded from {config_path}")
        return validated_config

    async def save_config(
        self, config: ExporterConfig, config_path: Optional[Path] = None
    ) -> None:
        """Save configuration to a YAML file."""

        if not config_path:
            config_path = self.config_path or self._get_default_config_path()

        try:
            await self.yaml_parser.save_yaml_config(config.model_dump(), config_path)
        except Exception as e:
            logger.error(f"Failed to save configuration: {e}")
            raise ConfigurationError(f"Configuration saving failed: {e}", e) from e

    async def generate_default_config(
        self, config_path: Optional[Path] = None, overwrite: bool = False
    ) -> Path:
        """Write a default configuration file and return its path."""

        if not config_path:
            config_path = self._get_default_config_path()

        if config_path.exists() and not overwrite:
            logger.warning(f"Configuration file already exists at {config_path}")
            return config_path

        await self.save_config(ExporterConfig(), config_path)
        logger.info(f"Default configuration generated at {config_path}")
        return config_path

    async def validate_config(
        self, config_data: Optional[Dict[str, Any]] = None
    ) -> ExporterConfig:
        """Validate raw configuration data, or re-check the loaded config."""

        if config_data is None:
            if not self.current_config:
                raise ConfigurationError("No configuration loaded to validate")
            await self._perform_extended_validation(self.current_config)
            return self.current_config

        self._apply_environment_overrides(config_data)
        try:
            validated_config = ExporterConfig(**config_data)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed: {e}", e) from e

        await self._perform_extended_validation(validated_config)
        return validated_config

    def _get_default_config_path(self) -> Path:
        """Config path from EXPORTER_CONFIG_PATH or the per-user default."""

        env_path = os.getenv("EXPORTER_CONFIG_PATH")
        if env_path:
            return Path(env_path).expanduser()

        return Path.home() / ".opensearch-csv-exporter" / "config.yaml"

    def _apply_environment_overrides(self, config_data: Dict[str, Any]) -> None:
        """Apply EXPORTER_* environment overrides to raw configuration data."""

        overrides = self.env_manager.get_optional_config_overrides()

        if "EXPORTER_OPENSEARCH_ADDRESSES" in overrides:
            config_data.setdefault("opensearch", {})["addresses"] = _split_list(
                overrides["EXPORTER_OPENSEARCH_ADDRESSES"]
            )

        if "EXPORTER_OPENSEARCH_INDICES" in overrides:
            config_data.setdefault("opensearch", {})["indices"] = _split_list(
                overrides["EXPORTER_OPENSEARCH_INDICES"]
            )

        if "EXPORTER_PORT" in overrides:
            config_data.setdefault("server", {})["port"] = overrides["EXPORTER_PORT"]

        if "EXPORTER_LOG_LEVEL" in overrides:
            config_data.setdefault("logging", {})["level"] = overrides[
                "EXPORTER_LOG_LEVEL"
            ].upper()

        if "EXPORTER_DEBUG_MODE" in overrides:
            debug_value = overrides["EXPORTER_DEBUG_MODE"].lower() in (
                "true",
                "1",
                "yes",
                "on",
            )
            config_data["debug_mode"] = debug_value
            if debug_value:
                config_data.setdefault("logging", {})["level"] = "DEBUG"

    async def _perform_extended_validation(self, config: ExporterConfig) -> None:
        """Checks that need the filesystem, beyond the pydantic model."""

        ca_cert_file = config.opensearch.ca_cert_file
        if ca_cert_file and not Path(ca_cert_file).expanduser().is_file():
            raise ConfigurationError(f"CA certificate file not found: {ca_cert_file}")

        if config.logging.file_path:
            log_dir = Path(config.logging.file_path).expanduser().parent
            if not log_dir.exists():
                raise ConfigurationError(f"Log directory does not exist: {log_dir}")

        if config.export.page_size < 100:
            logger.warning(
                f"Small page size ({config.export.page_size}) will need many scroll "
                f"requests for large exports"
            )


def _split_list(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]
