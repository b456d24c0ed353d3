"""
Core export pipeline and configuration handling.
"""

from .compression_sink import ByteConduit, CompressionSink
from .config_manager import ConfigurationError, ConfigurationManager
from .environment_manager import EnvironmentManager
from .export_engine import ExportEngine, ExportHandle
from .page_decoder import PageDecoder
from .record_encoder import ColumnProjector, DelimitedRecordEncoder
from .token_stream import JSONLexer, Token, TokenKind, TokenStream
from .yaml_parser import YAMLConfigParser

__all__ = [
    # Configuration management
    "ConfigurationManager",
    "ConfigurationError",
    "YAMLConfigParser",
    "EnvironmentManager",
    # Decoding
    "JSONLexer",
    "Token",
    "TokenKind",
    "TokenStream",
    "PageDecoder",
    # Encoding and output
    "ColumnProjector",
    "DelimitedRecordEncoder",
    "ByteConduit",
    "CompressionSink",
    # Orchestration
    "ExportEngine",
    "ExportHandle",
]
