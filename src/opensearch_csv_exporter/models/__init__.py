"""
Data models for opensearch-csv-exporter.
"""

from .config_models import (
    ExportConfig,
    ExporterConfig,
    LoggingConfig,
    OpenSearchConfig,
    ServerConfig,
)
from .export_models import (
    ConfigurationError,
    DecodeError,
    EncodeError,
    ErrorCategory,
    ExportError,
    ExportRequest,
    ExportResult,
    InvalidRequestError,
    PageResult,
    RemoteError,
    TransportError,
    status_for_error,
)

__all__ = [
    # Configuration
    "ExporterConfig",
    "OpenSearchConfig",
    "ExportConfig",
    "ServerConfig",
    "LoggingConfig",
    # Export data
    "ExportRequest",
    "PageResult",
    "ExportResult",
    # Errors
    "ConfigurationError",
    "ErrorCategory",
    "ExportError",
    "InvalidRequestError",
    "TransportError",
    "RemoteError",
    "DecodeError",
    "EncodeError",
    "status_for_error",
]
