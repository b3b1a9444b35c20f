"""Serialize LinkML documents to YAML with PyYAML."""
from __future__ import annotations

import yaml


def serialize_yaml(doc: dict) -> str:
    """Serialize a LinkML document mapping to YAML, keeping key order."""
    return yaml.safe_dump(
        doc,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=100,
    )
