"""Load LinkML YAML documents with PyYAML."""
from __future__ import annotations

import datetime
from typing import Any

import yaml

from shexlink_py.errors import ParseError

_JSON_SCALARS = (str, bool, int, float, type(None))


def _json_compatible(value: Any, path: str) -> Any:
    """Copy of ``value`` with YAML timestamps as ISO strings.

    Raises:
        ParseError: for any other value JSON cannot hold (binary, sets).
    """
    if isinstance(value, dict):
        return {
            _json_compatible(k, path): _json_compatible(v, f"{path}.{k}")
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [_json_compatible(v, f"{path}[{i}]") for i, v in enumerate(value)]
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    if isinstance(value, _JSON_SCALARS):
        return value
    raise ParseError(path, f"Unsupported YAML value of type {type(value).__name__}")


def parse_linkml(source: str) -> dict[str, Any]:
    """Parse LinkML YAML text into its document mapping.

    Raises:
        ParseError: on invalid YAML or a document that is not a mapping.
    """
    try:
        data = yaml.safe_load(source)
    except yaml.YAMLError as e:
        location = None
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            # YAML marks are 0-based
            location = f"line {mark.line + 1}, column {mark.column + 1}"
        raise ParseError(location, f"Invalid YAML syntax: {getattr(e, 'problem', None) or e}") from e

    if data is None:
        raise ParseError(None, "YAML content is empty")
    if not isinstance(data, dict):
        raise ParseError(None, f"LinkML schema must be a mapping, got {type(data).__name__}")
    return _json_compatible(data, "$")


def parse_linkml_file(filepath: str) -> dict[str, Any]:
    """Parse a LinkML YAML file from a file path."""
    with open(filepath, "r", encoding="utf-8") as f:
        return parse_linkml(f.read())
