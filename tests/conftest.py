"""
Shared fixtures for exporter tests.
"""

import pytest

from helpers import load_fixture

OVERRIDE_VARS = (
    "EXPORTER_CONFIG_PATH",
    "EXPORTER_OPENSEARCH_ADDRESSES",
    "EXPORTER_OPENSEARCH_INDICES",
    "EXPORTER_PORT",
    "EXPORTER_LOG_LEVEL",
    "EXPORTER_DEBUG_MODE",
    "EXPORTER_USERNAME",
    "EXPORTER_PASSWORD",
)


@pytest.fixture
def search_page() -> bytes:
    """The three-hit search page with cursor "cool scroll id"."""
    return load_fixture("search_page.json")


@pytest.fixture
def config_file(tmp_path, monkeypatch):
    """Isolated config path with EXPORTER_* overrides cleared."""
    for name in OVERRIDE_VARS:
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "config.yaml"
    monkeypatch.setenv("EXPORTER_CONFIG_PATH", str(path))
    return path
