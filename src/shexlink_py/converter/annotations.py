"""Mapping between RDF annotation terms and annotation bag values.

Used by the ShEx and SHACL converters. IRIs become ``{"@id": iri}``,
plain literals and numbers keep their value, tagged and typed literals
become JSON-LD style value objects and ``rdf:JSON`` literals are decoded.
Anything else is written back as an ``rdf:JSON`` literal.
"""
from __future__ import annotations

import json
import math
from typing import Any, Optional, Union

from shexlink_py.errors import ParseError
from shexlink_py.schema.common import RDF_JSON, IriValue, LiteralValue


def annotation_value(obj: Union[IriValue, LiteralValue], location: Optional[str] = None) -> Any:
    """Turn an annotation object into a JSON-compatible bag value."""
    if isinstance(obj, IriValue):
        return {"@id": obj.iri}
    if obj.datatype == RDF_JSON:
        try:
            return json.loads(obj.value)
        except (TypeError, ValueError) as e:
            raise ParseError(location, f"Invalid rdf:JSON literal: {e}") from e
    if obj.datatype is not None:
        return {"@value": obj.value, "@type": obj.datatype}
    if obj.language is not None:
        return {"@value": obj.value, "@language": obj.language}
    return obj.value


def annotation_object(value: Any) -> Union[IriValue, LiteralValue]:
    """Render a bag value as an annotation object (inverse of ``annotation_value``)."""
    if isinstance(value, dict):
        if set(value) == {"@id"} and isinstance(value["@id"], str):
            return IriValue(value["@id"])
        if set(value) == {"@value", "@type"} and isinstance(value["@value"], str):
            return LiteralValue(value["@value"], datatype=value["@type"])
        if set(value) == {"@value", "@language"} and isinstance(value["@value"], str):
            return LiteralValue(value["@value"], language=value["@language"])
    elif isinstance(value, (str, bool, int)):
        return LiteralValue(value)
    elif isinstance(value, float) and math.isfinite(value):
        return LiteralValue(value)
    return LiteralValue(json.dumps(value, ensure_ascii=False), datatype=RDF_JSON)


def collect_annotations(items: list[tuple[str, Any]]) -> list[tuple[str, Any]]:
    """Fold repeated keys of ordered pairs into one list-valued entry."""
    grouped: dict[str, list] = {}
    for key, value in items:
        grouped.setdefault(key, []).append(value)
    return [(k, v[0] if len(v) == 1 else v) for k, v in grouped.items()]
