"""Convert the canonical schema model to a JSON Schema (draft 2020-12) document.

Reverse mapping of json_schema_to_canonical. Every shape is a ``$defs``
entry and the graph start becomes the root ``$ref``. Field predicates and
prefixes have no JSON Schema keyword and travel in the top-level
``x-predicates`` / ``x-prefixes`` objects so that each definition stays a
plain object schema.
"""
from __future__ import annotations

from typing import Any, Optional

from shexlink_py.config import TranslatorSettings, get_settings
from shexlink_py.converter.json_schema_to_canonical import (
    NODE_KINDS,
    NUMBER_FORMATS,
    STRING_FORMATS,
)
from shexlink_py.errors import UnrepresentableConstraint
from shexlink_py.logging import get_logger
from shexlink_py.schema.canonical import (
    EnumerationType,
    FacetKind,
    FieldConstraint,
    SchemaGraph,
    ScalarKind,
    ScalarType,
    ShapeDefinition,
    ShapeReference,
)
from shexlink_py.schema.common import UNBOUNDED, local_name, unique_name

logger = get_logger(__name__)

TARGET = "JSON Schema"

SCALAR_SCHEMAS: dict[ScalarKind, dict] = {
    ScalarKind.STRING: {"type": "string"},
    ScalarKind.INTEGER: {"type": "integer"},
    ScalarKind.DECIMAL: {"type": "number"},
    ScalarKind.BOOLEAN: {"type": "boolean"},
    ScalarKind.ANY: {},
}
SCALAR_SCHEMAS.update({kind: {"type": "string", "format": fmt} for fmt, kind in STRING_FORMATS.items()})
SCALAR_SCHEMAS.update({kind: {"type": "number", "format": fmt} for fmt, kind in NUMBER_FORMATS.items()})

FACET_KEYWORDS = {
    FacetKind.PATTERN: "pattern",
    FacetKind.MIN_INCLUSIVE: "minimum",
    FacetKind.MAX_INCLUSIVE: "maximum",
    FacetKind.MIN_LENGTH: "minLength",
    FacetKind.MAX_LENGTH: "maxLength",
}


def _def_key(shape_id: str) -> str:
    name = local_name(shape_id)
    return "".join(c if c.isalnum() or c in "_-." else "_" for c in name) or "Shape"


class _JSONSchemaExporter:
    def __init__(self, graph: SchemaGraph, settings: TranslatorSettings):
        self.graph = graph
        self.settings = settings
        self.keys: dict[str, str] = {}
        for shape in graph.sorted_shapes():
            key = unique_name(_def_key(shape.id), self.keys.values())
            self.keys[shape.id] = key

    def _ref(self, shape_id: str) -> dict:
        return {"$ref": f"#/$defs/{self.keys[shape_id]}"}

    def _value_schema(self, f: FieldConstraint) -> dict:
        vt = f.value_type
        if isinstance(vt, ShapeReference):
            return {"$ref": vt.shape_id} if vt.external else self._ref(vt.shape_id)
        if isinstance(vt, EnumerationType):
            schema: dict[str, Any] = {"type": "string"}
            if vt.iri:
                schema["format"] = "iri"
            schema["enum"] = list(vt.values)
        elif isinstance(vt, ScalarType):
            if vt.datatype is not None:
                schema = {"type": "string", "x-datatype": vt.datatype}
            elif vt.kind in SCALAR_SCHEMAS:
                schema = dict(SCALAR_SCHEMAS[vt.kind])
            elif vt.kind.value in NODE_KINDS:
                schema = {"x-node-kind": vt.kind.value}
            else:
                raise UnrepresentableConstraint(f"scalar kind {vt.kind.value}", TARGET)
        else:
            raise UnrepresentableConstraint(f"value type {vt!r}", TARGET)

        for facet in f.facets:
            keyword = FACET_KEYWORDS.get(facet.kind)
            if keyword is None:
                raise UnrepresentableConstraint(f"facet {facet.kind.value}", TARGET)
            schema[keyword] = facet.value
        return schema

    def _property(self, f: FieldConstraint) -> dict:
        card = f.cardinality
        value = self._value_schema(f)
        if card.is_multivalued or card.max == 0:
            prop: dict[str, Any] = {"type": "array", "items": value}
            if card.min > 1:
                prop["minItems"] = card.min
            if card.max != UNBOUNDED:
                prop["maxItems"] = card.max
        else:
            prop = value
        if f.description is not None:
            prop["description"] = f.description
        if f.annotations:
            prop["x-annotations"] = f.annotations.to_dict()
        return prop

    def _definition(self, shape: ShapeDefinition) -> dict:
        d: dict[str, Any] = {}
        if shape.label is not None:
            d["title"] = shape.label
        if shape.description is not None:
            d["description"] = shape.description
        if shape.parent is not None:
            d["allOf"] = [self._ref(shape.parent)]
        d["type"] = "object"
        d["properties"] = {f.name: self._property(f) for f in shape.fields}
        required = [f.name for f in shape.fields if f.cardinality.min >= 1]
        if required:
            d["required"] = required
        if shape.closed:
            d["additionalProperties"] = False
        if shape.id != self.keys[shape.id]:
            d["x-iri"] = shape.id
        if shape.annotations:
            d["x-annotations"] = shape.annotations.to_dict()
        return d

    def export(self) -> dict:
        graph = self.graph
        doc: dict[str, Any] = {"$schema": self.settings.json_schema_dialect}
        if graph.id is not None:
            doc["$id"] = graph.id
        if graph.name is not None:
            doc["title"] = graph.name
        if graph.start is not None:
            doc.update(self._ref(graph.start))
        if graph.prefixes:
            doc["x-prefixes"] = {p.name: p.iri for p in graph.prefixes}

        predicates = {}
        for shape in graph.sorted_shapes():
            by_field = {f.name: f.predicate for f in shape.fields if f.predicate is not None}
            if by_field:
                predicates[self.keys[shape.id]] = by_field
        if predicates:
            doc["x-predicates"] = predicates

        doc["$defs"] = {self.keys[s.id]: self._definition(s) for s in graph.sorted_shapes()}
        return doc


def convert_canonical_to_json_schema(
    graph: SchemaGraph, settings: Optional[TranslatorSettings] = None
) -> dict:
    """Convert a canonical schema graph to a JSON Schema document mapping.

    Args:
        graph: The canonical schema to convert.
        settings: Translator settings (``$schema`` dialect).

    Returns:
        Mapping ready for :func:`shexlink_py.serializer.json_serializer.serialize_json`.
    """
    settings = settings or get_settings()
    doc = _JSONSchemaExporter(graph, settings).export()
    logger.debug("jsonschema.exported", shapes=len(doc["$defs"]))
    return doc
