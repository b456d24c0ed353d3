"""
Environment variable overrides and credentials.
"""

import base64
import logging
import os
from typing import Dict, Optional

logger = logging.getLogger(__name__)

OVERRIDE_VARS = (
    "EXPORTER_CONFIG_PATH",
    "EXPORTER_OPENSEARCH_ADDRESSES",
    "EXPORTER_OPENSEARCH_INDICES",
    "EXPORTER_PORT",
    "EXPORTER_LOG_LEVEL",
    "EXPORTER_DEBUG_MODE",
)


class EnvironmentManager:
    """Reads exporter settings and credentials from the environment."""

    def get_optional_config_overrides(self) -> Dict[str, str]:
        """Return the override variables that are set."""
        overrides = {name: os.getenv(name) for name in OVERRIDE_VARS}
        return {k: v for k, v in overrides.items() if v is not None}

    def get_basic_auth_header(self) -> Optional[str]:
        """
        Build a Basic Authorization header from EXPORTER_USERNAME and
        EXPORTER_PASSWORD, or None if they are not set.
        """
        username = os.getenv("EXPORTER_USERNAME")
        password = os.getenv("EXPORTER_PASSWORD")
        if not username or not password:
            return None

        logger.debug("Using search cluster credentials from environment")
        return basic_auth_header(username, password)


def basic_auth_header(username: str, password: str) -> str:
    """Encode a username/password pair as a Basic Authorization value."""
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"
