"""
HTTP service for CSV exports.
"""

from .app import EXPORT_PATH, METRICS_PATH, create_app
from .auth import extract_basic_auth
from .metrics import RequestMetrics

__all__ = ["create_app", "extract_basic_auth", "RequestMetrics", "EXPORT_PATH", "METRICS_PATH"]
