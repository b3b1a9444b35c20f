"""Serialize JSON Schema documents."""
from __future__ import annotations

import json
from typing import Optional


def serialize_json(doc: dict, indent: Optional[int] = 2) -> str:
    """Serialize a JSON document mapping, keeping key order.

    Args:
        doc: The document to serialize.
        indent: Indentation width (None for compact output).

    Returns:
        JSON text with a trailing newline.
    """
    return json.dumps(doc, indent=indent, ensure_ascii=False) + "\n"
