"""Load JSON Schema documents."""
from __future__ import annotations

import json
from typing import Any

from shexlink_py.errors import ParseError


def parse_json_schema(source: str) -> dict[str, Any]:
    """Parse JSON Schema text into its document mapping.

    Raises:
        ParseError: on invalid JSON or a document that is not an object.
    """
    try:
        data = json.loads(source)
    except json.JSONDecodeError as e:
        raise ParseError(f"line {e.lineno}, column {e.colno}", f"Invalid JSON: {e.msg}") from e
    if not isinstance(data, dict):
        raise ParseError(None, f"JSON Schema must be an object, got {type(data).__name__}")
    return data


def parse_json_schema_file(filepath: str) -> dict[str, Any]:
    """Parse a JSON Schema file from a file path."""
    with open(filepath, "r", encoding="utf-8") as f:
        return parse_json_schema(f.read())
