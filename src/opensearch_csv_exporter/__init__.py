"""
opensearch-csv-exporter - OpenSearch scroll export to gzip CSV

Streams every document matching a query string and time range out of an
OpenSearch cluster as a gzip-compressed, semicolon-delimited CSV, without
buffering the result set in memory.
"""

__version__ = "1.0.0"

from .core.config_manager import ConfigurationManager
from .core.export_engine import ExportEngine, ExportHandle
from .integration.opensearch_client import OpenSearchClient
from .models.config_models import ExporterConfig
from .models.export_models import ExportRequest, ExportResult

__all__ = [
    "ConfigurationManager",
    "ExporterConfig",
    "ExportEngine",
    "ExportHandle",
    "ExportRequest",
    "ExportResult",
    "OpenSearchClient",
]
