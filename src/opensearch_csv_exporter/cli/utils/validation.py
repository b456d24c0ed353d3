"""
Input validation utilities for CLI commands
"""

import os
import re
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console

COLUMN_PATTERN = re.compile(r"^(?:[^.\\]|\\.)+(?:\.(?:[^.\\]|\\.)+)*$")


def validate_output_file(output_path: str) -> Tuple[bool, Optional[str], Optional[Path]]:
    """
    Validate the destination file for an export

    Returns:
        (is_valid, error_message, resolved_path)
    """
    try:
        path = Path(output_path).expanduser().resolve()
    except Exception as e:
        return False, f"Invalid path: {e}", None

    if not path.parent.exists():
        return False, f"Parent directory does not exist: {path.parent}", None

    if not os.access(path.parent, os.W_OK):
        return False, f"No write permission for directory: {path.parent}", None

    if path.exists() and path.is_dir():
        return False, f"Path exists but is a directory: {path}", None

    return True, None, path


def validate_query(query: str) -> Tuple[bool, Optional[str]]:
    """
    Validate the query string

    Returns:
        (is_valid, error_message)
    """
    if not query or not query.strip():
        return False, "Query cannot be empty"

    return True, None


def validate_columns(columns: List[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate extra column paths (dot notation, ``\\.`` for a literal dot)

    Returns:
        (is_valid, error_message)
    """
    for column in columns:
        if not COLUMN_PATTERN.match(column):
            return False, f"Invalid column path: {column!r}"

    return True, None


def validate_port(port: int) -> Tuple[bool, Optional[str]]:
    """
    Validate a listen port

    Returns:
        (is_valid, error_message)
    """
    if port < 1 or port > 65535:
        return False, "Port must be between 1 and 65535"

    return True, None


def show_validation_error(
    console: Console, error_message: str, suggestions: Optional[List[str]] = None
) -> None:
    """
    Display validation error with helpful suggestions
    """
    console.print(f"[red]Validation Error:[/red] {error_message}")

    if suggestions:
        console.print("\n[yellow]Suggestions:[/yellow]")
        for suggestion in suggestions:
            console.print(f"  • {suggestion}")


def get_validation_suggestions(error_type: str, value: str) -> List[str]:
    """
    Get validation suggestions based on error type
    """
    suggestions = []

    if error_type == "output_file":
        suggestions.extend(
            [
                "Ensure the parent directory exists",
                "Check that you have write permissions",
                f"Try creating the directory manually: mkdir -p {Path(value).parent}",
            ]
        )

    elif error_type == "query":
        suggestions.extend(
            [
                "Use query string syntax (e.g., 'level:ERROR AND service:api')",
                "Use '*' to match every document in the time range",
            ]
        )

    elif error_type == "column":
        suggestions.extend(
            [
                "Use dot notation for nested fields (e.g., 'container.image.name')",
                "Escape a literal dot in a field name with a backslash (e.g., 'k8s\\.io')",
                "Do not start or end a path with a dot",
            ]
        )

    elif error_type == "port":
        suggestions.extend(
            [
                "Use a value between 1 and 65535",
                "Ports below 1024 usually need elevated privileges",
            ]
        )

    return suggestions
