"""
Data models and error taxonomy for search-to-CSV exports.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ErrorCategory(Enum):
    """Categories of export failures."""

    INVALID_REQUEST = "invalid_request"
    TRANSPORT = "transport"
    REMOTE = "remote"
    DECODE = "decode"
    ENCODE = "encode"
    CONFIGURATION = "configuration"


class ExportError(Exception):
    """Base exception for export failures."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.REMOTE,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.original_error = original_error


class InvalidRequestError(ExportError):
    """Export request is missing a required field."""

    def __init__(self, message: str):
        super().__init__(message, ErrorCategory.INVALID_REQUEST)


class TransportError(ExportError):
    """The search endpoint could not be reached or the connection broke."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, ErrorCategory.TRANSPORT, original_error)


class RemoteError(ExportError):
    """The search endpoint answered with an application-level error."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, ErrorCategory.REMOTE)
        self.status_code = status_code


class DecodeError(ExportError):
    """A response page could not be parsed."""

    def __init__(
        self,
        message: str,
        page: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        if page is not None:
            message = f"page {page}: {message}"
        super().__init__(message, ErrorCategory.DECODE, original_error)
        self.page = page


class EncodeError(ExportError):
    """Writing to the downstream consumer failed."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, ErrorCategory.ENCODE, original_error)


class ConfigurationError(ExportError):
    """Configuration is missing, unreadable or invalid."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, ErrorCategory.CONFIGURATION, original_error)


_STATUS_BY_CATEGORY = {
    ErrorCategory.INVALID_REQUEST: 400,
    ErrorCategory.TRANSPORT: 502,
    ErrorCategory.REMOTE: 502,
    ErrorCategory.DECODE: 500,
    ErrorCategory.ENCODE: 500,
    ErrorCategory.CONFIGURATION: 500,
}


def status_for_error(error: ExportError) -> int:
    """Map an export error onto an HTTP status code."""
    return _STATUS_BY_CATEGORY.get(error.category, 500)


# Lowercased field names onto their wire aliases
_WIRE_NAMES = {
    "fromdate": "FromDate",
    "from_date": "FromDate",
    "todate": "ToDate",
    "to_date": "ToDate",
    "query": "Query",
    "columns": "Columns",
}


class ExportRequest(BaseModel):
    """
    A single export: time range, free-text query and the columns to project.

    Wire names are PascalCase (``FromDate``, ``ToDate``, ``Query``,
    ``Columns``) but are matched without regard to case, so ``fromDate`` and
    ``FROMDATE`` bind too. The snake_case names are accepted as well.
    """

    model_config = ConfigDict(populate_by_name=True)

    from_date: str = Field(default="", alias="FromDate")
    to_date: str = Field(default="", alias="ToDate")
    query: str = Field(default="", alias="Query")
    columns: List[str] = Field(default_factory=list, alias="Columns")

    @model_validator(mode="before")
    @classmethod
    def fold_field_names(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        folded: Dict[Any, Any] = {}
        for key, value in data.items():
            if isinstance(key, str):
                key = _WIRE_NAMES.get(key.lower(), key)
            folded[key] = value
        return folded

    @field_validator("columns", mode="before")
    @classmethod
    def null_columns(cls, v: Any) -> Any:
        return [] if v is None else v

    def validate_complete(self) -> None:
        """
        Reject the request before any network call if a field is missing.

        Raises:
            InvalidRequestError: naming the first missing field
        """
        if not self.query:
            raise InvalidRequestError("missing query")
        if not self.from_date:
            raise InvalidRequestError("missing fromdate")
        if not self.to_date:
            raise InvalidRequestError("missing todate")


@dataclass
class PageResult:
    """Outcome of decoding one response page."""

    cursor: str
    total: Optional[int]
    row_count: int

    @property
    def exhausted(self) -> bool:
        return not self.cursor


@dataclass
class ExportResult:
    """Summary of a finished export."""

    total: int
    rows_written: int
    pages: int
    duration: float

    @property
    def rows_per_second(self) -> float:
        return self.rows_written / self.duration if self.duration > 0 else 0.0
