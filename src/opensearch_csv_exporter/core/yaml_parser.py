"""
YAML configuration parser with environment variable substitution.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_COMMENTS: Dict[str, Dict[str, str]] = {
    "opensearch": {
        "_section_comment": "Search cluster connection",
        "addresses": "Node URLs, used round-robin",
        "indices": "Index patterns to search (empty list searches all indices)",
        "ca_cert_file": "PEM bundle for verifying the cluster certificate",
        "request_timeout": "Read timeout per request in seconds",
    },
    "export": {
        "_section_comment": "Pagination and output encoding",
        "page_size": "Hits per scroll page (1-10000)",
        "scroll_window": "How long the cluster keeps the scroll open between pages",
        "delimiter": "Column delimiter of the CSV output (must not be a comma)",
        "compression_level": "Gzip compression level (1=fast, 9=best)",
        "conduit_max_chunks": "Compressed chunks buffered for a slow client",
    },
    "server": {
        "_section_comment": "HTTP service",
        "host": "Interface to listen on",
        "port": "Port to listen on",
    },
    "logging": {
        "_section_comment": "Logging configuration",
        "level": "Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
        "format": "Log record format for the log file",
        "file_path": "Log file path (leave empty for console only)",
        "max_file_size_mb": "Maximum log file size in MB before rotation",
        "backup_count": "Number of rotated log files to keep",
    },
}


class YAMLConfigParser:
    """YAML configuration parser with environment variable substitution."""

    def __init__(self) -> None:
        self.env_var_pattern = re.compile(r"\$\{([^}]+)\}")

    async def load_yaml_config(self, config_path: Path) -> Dict[str, Any]:
        """Load and parse a YAML configuration file, substituting ${VAR} references."""

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            yaml_content = config_path.read_text(encoding="utf-8")
            substituted_content = self._substitute_environment_variables(yaml_content)
            config_data = yaml.safe_load(substituted_content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}") from e

        if config_data is None:
            config_data = {}
        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a YAML dictionary")

        logger.info(f"Loaded configuration from {config_path}")
        return config_data

    async def save_yaml_config(
        self, config_data: Dict[str, Any], config_path: Path
    ) -> None:
        """Write configuration as commented YAML via a temporary file."""

        temp_path: Optional[Path] = None
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            yaml_content = self._generate_commented_yaml(config_data)

            temp_path = config_path.with_suffix(".tmp")
            temp_path.write_text(yaml_content, encoding="utf-8")
            temp_path.replace(config_path)

            logger.info(f"Saved configuration to {config_path}")

        except Exception as e:
            if temp_path and temp_path.exists():
                temp_path.unlink(missing_ok=True)
            raise RuntimeError(f"Failed to save configuration file: {e}") from e

    def _substitute_environment_variables(self, content: str) -> str:
        """Replace ${VAR} and ${VAR:default} outside of comment lines."""

        def replace_env_var(match: Any) -> str:
            var_name = match.group(1)
            if ":" in var_name:
                var_name, default_value = var_name.split(":", 1)
                return os.getenv(var_name, default_value)

            env_value = os.getenv(var_name)
            if env_value is None:
                raise ValueError(f"Environment variable '{var_name}' is not set")
            return env_value

        processed_lines: List[str] = []
        for line in content.split("\n"):
            if line.strip().startswith("#"):
                processed_lines.append(line)
                continue
            processed_lines.append(self.env_var_pattern.sub(replace_env_var, line))

        return "\n".join(processed_lines)

    def _generate_commented_yaml(self, config_data: Dict[str, Any]) -> str:
        """Render configuration with a comment above every known key."""

        lines = [
            "# opensearch-csv-exporter configuration",
            "# Environment variables can be substituted using ${VAR_NAME} or ${VAR_NAME:default}",
            "",
        ]

        for section_name, section_data in config_data.items():
            section_comments = CONFIG_COMMENTS.get(section_name, {})

            if not isinstance(section_data, dict):
                lines.append(f"{section_name}: {_dump_scalar(section_data)}")
                lines.append("")
                continue

            lines.append(
                f"# {section_comments.get('_section_comment', f'{section_name} configuration')}"
            )
            lines.append(f"{section_name}:")
            for key, value in section_data.items():
                comment = section_comments.get(key)
                if comment:
                    lines.append(f"  # {comment}")
                lines.append(f"  {key}: {_dump_scalar(value)}")
            lines.append("")

        return "\n".join(lines)


def _dump_scalar(value: Any) -> str:
    """Render one value as inline YAML."""
    dumped = yaml.safe_dump(value, default_flow_style=True).strip()
    # yaml.dump terminates bare scalars with a document end marker
    if dumped.endswith("..."):
        dumped = dumped[:-3].strip()
    return dumped
