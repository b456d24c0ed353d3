"""
Pydantic configuration models for the exporter.
"""

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class OpenSearchConfig(BaseModel):
    """Search cluster connection settings."""

    addresses: List[str] = Field(
        default_factory=lambda: ["http://localhost:9200"],
        description="Base URLs of the OpenSearch/Elasticsearch nodes",
    )
    indices: List[str] = Field(
        default_factory=list, description="Index patterns to search (empty = all)"
    )
    ca_cert_file: Optional[str] = Field(
        default=None, description="PEM bundle used to verify the cluster certificate"
    )
    request_timeout: float = Field(default=60.0, gt=0, le=3600)

    @field_validator("addresses")
    @classmethod
    def validate_addresses(cls, v: List[str]) -> List[str]:
        addresses = [a.strip().rstrip("/") for a in v if a and a.strip()]
        if not addresses:
            raise ValueError("missing opensearch addresses")
        for address in addresses:
            if not address.startswith(("http://", "https://")):
                raise ValueError(f"address must be an http(s) URL: {address}")
        return addresses


class ExportConfig(BaseModel):
    """Pagination and output encoding settings."""

    page_size: int = Field(default=10000, ge=1, le=10000)
    scroll_window: str = Field(default="1m")
    delimiter: str = Field(default=";")
    compression_level: int = Field(default=6, ge=1, le=9)
    conduit_max_chunks: int = Field(default=64, ge=1, le=4096)

    @field_validator("scroll_window")
    @classmethod
    def validate_scroll_window(cls, v: str) -> str:
        if not re.match(r"^\d+[smhd]$", v):
            raise ValueError(f"scroll_window must look like '1m' or '30s', got {v!r}")
        return v

    @field_validator("delimiter")
    @classmethod
    def validate_delimiter(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError("delimiter must be a single character")
        if v in (",", '"', "\n", "\r"):
            raise ValueError(f"delimiter {v!r} would corrupt columns")
        return v


class ServerConfig(BaseModel):
    """HTTP service settings."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)


class LoggingConfig(BaseModel):
    """Logging settings."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    file_path: Optional[str] = None
    max_file_size_mb: int = Field(default=10, ge=1, le=1024)
    backup_count: int = Field(default=3, ge=0, le=100)


class ExporterConfig(BaseModel):
    """Top-level exporter configuration."""

    opensearch: OpenSearchConfig = Field(default_factory=OpenSearchConfig)
    export: ExportConfig = Field(default_factory=ExportConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    debug_mode: bool = False
    config_version: str = "1.0"
