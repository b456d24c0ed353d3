"""
Search cluster integration.
"""

from .opensearch_client import OpenSearchClient, QueryBuilder

__all__ = ["OpenSearchClient", "QueryBuilder"]
