"""Convert a JSON Schema document to the canonical schema model.

Mapping rules:
- ``$defs`` / ``definitions`` entry → shape (id from ``x-iri``, else the key);
  a top-level object schema → shape named from ``title`` (or ``Root``)
- root ``$ref`` → graph start
- property → field; ``required`` → min 1; ``type: array`` → multi-valued
  with ``minItems`` / ``maxItems``
- ``$ref`` → shape reference (non-local refs are external), ``allOf`` with a
  single ``$ref`` → parent, inline object schemas → synthesized shapes
- ``type`` + ``format`` / ``x-node-kind`` / ``x-datatype`` → scalar kinds,
  ``enum`` / ``const`` → enumerations
- ``pattern``, ``minimum``, ``maximum``, ``minLength``, ``maxLength`` → facets
- ``x-annotations`` and unrecognised keywords → annotation bag
- top-level ``x-prefixes`` / ``x-predicates`` → prefixes and field predicates
"""
from __future__ import annotations

from typing import Any, Optional

from shexlink_py.errors import ParseError, UnresolvedReference, UnsupportedConstruct
from shexlink_py.logging import get_logger
from shexlink_py.schema.canonical import (
    AnnotationBag,
    EnumerationType,
    Facet,
    FacetKind,
    FieldConstraint,
    SchemaBuilder,
    SchemaGraph,
    ScalarKind,
    ScalarType,
    ShapeDefinition,
    ShapeReference,
    ValueType,
    scalar_for_datatype,
)
from shexlink_py.schema.common import UNBOUNDED, Cardinality, unique_name

logger = get_logger(__name__)

ROOT_SHAPE = "Root"

STRING_FORMATS = {
    "date": ScalarKind.DATE,
    "date-time": ScalarKind.DATETIME,
    "time": ScalarKind.TIME,
    "uri": ScalarKind.URI,
    "iri": ScalarKind.IRI,
}

NUMBER_FORMATS = {
    "float": ScalarKind.FLOAT,
    "double": ScalarKind.DOUBLE,
}

SIMPLE_TYPES = {
    "string": ScalarKind.STRING,
    "integer": ScalarKind.INTEGER,
    "number": ScalarKind.DECIMAL,
    "boolean": ScalarKind.BOOLEAN,
}

NODE_KINDS = {k.value: k for k in (
    ScalarKind.IRI, ScalarKind.BNODE, ScalarKind.NONLITERAL, ScalarKind.LITERAL,
)}

FACET_KEYWORDS = {
    "pattern": FacetKind.PATTERN,
    "minimum": FacetKind.MIN_INCLUSIVE,
    "maximum": FacetKind.MAX_INCLUSIVE,
    "minLength": FacetKind.MIN_LENGTH,
    "maxLength": FacetKind.MAX_LENGTH,
}

UNSUPPORTED_KEYWORDS = (
    "oneOf", "anyOf", "not", "if", "then", "else", "exclusiveMinimum",
    "exclusiveMaximum", "patternProperties", "dependentSchemas",
    "dependentRequired", "prefixItems",
)

VALUE_KEYWORDS = {
    "type", "format", "enum", "const", "$ref", "x-node-kind", "x-datatype",
} | set(FACET_KEYWORDS)

ARRAY_KEYWORDS = {"items", "minItems", "maxItems"}

FIELD_KEYWORDS = {"description", "x-annotations"}

SHAPE_KEYWORDS = {
    "type", "title", "description", "properties", "required",
    "additionalProperties", "allOf", "x-iri", "x-annotations",
}

ROOT_KEYWORDS = SHAPE_KEYWORDS | {
    "$schema", "$id", "$ref", "$defs", "definitions", "x-prefixes", "x-predicates",
}


def _pointer_token(key: str) -> str:
    return key.replace("~", "~0").replace("/", "~1")


def _unescape_token(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def _check_supported(schema: dict, where: str):
    for keyword in UNSUPPORTED_KEYWORDS:
        if keyword in schema:
            raise UnsupportedConstruct(keyword, where)
    if isinstance(schema.get("type"), list):
        raise UnsupportedConstruct("type union", where)


def _is_inline_object(schema: dict) -> bool:
    return "$ref" not in schema and (schema.get("type") == "object" or "properties" in schema)


def _bag_items(schema: dict, known: set, where: str) -> list[tuple[str, Any]]:
    """``x-annotations`` entries followed by unrecognised keywords."""
    annotations = schema.get("x-annotations", {})
    if not isinstance(annotations, dict):
        raise ParseError(where, "x-annotations must be an object")
    items = list(annotations.items())
    items.extend((k, v) for k, v in schema.items() if k not in known)
    return items


def _non_negative_int(value: Any, what: str, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ParseError(where, f"{what} must be a non-negative integer, got {value!r}")
    return value


class _JSONSchemaConverter:
    def __init__(self, doc: dict):
        self.doc = doc
        self.defs: dict[str, tuple[str, Any]] = {}
        for section in ("$defs", "definitions"):
            entries = doc.get(section)
            if entries is None:
                continue
            if not isinstance(entries, dict):
                raise ParseError(f"#/{section}", f"{section} must be an object")
            for key, schema in entries.items():
                if key in self.defs:
                    raise ParseError(f"#/{section}", f"Definition {key!r} declared twice")
                self.defs[key] = (f"#/{section}/{_pointer_token(key)}", schema)
        self.ids = {key: self._shape_id(key, schema) for key, (_, schema) in self.defs.items()}

        self.root_id: Optional[str] = None
        if "properties" in doc:
            title = doc.get("title")
            self.root_id = doc.get("x-iri") or (title if isinstance(title, str) and title else ROOT_SHAPE)

        self.predicates = doc.get("x-predicates", {})
        if not isinstance(self.predicates, dict):
            raise ParseError("#/x-predicates", "x-predicates must be an object")
        self.builder = SchemaBuilder(id=doc.get("$id"))

    @staticmethod
    def _shape_id(key: str, schema: Any) -> str:
        if isinstance(schema, dict) and isinstance(schema.get("x-iri"), str):
            return schema["x-iri"]
        return key

    def _resolve_ref(self, ref: Any, field_name: Optional[str], where: str) -> ShapeReference:
        if not isinstance(ref, str):
            raise ParseError(where, f"$ref must be a string, got {ref!r}")
        if ref == "#":
            if self.root_id is None:
                raise UnresolvedReference(ref, field_name)
            return ShapeReference(self.root_id)
        for section in ("#/$defs/", "#/definitions/"):
            if ref.startswith(section):
                key = _unescape_token(ref[len(section):])
                if key not in self.ids:
                    raise UnresolvedReference(key, field_name)
                return ShapeReference(self.ids[key])
        if ref.startswith("#"):
            raise UnsupportedConstruct(f"$ref {ref}", where)
        return ShapeReference(ref, external=True)

    # Values

    def _scalar(self, schema: dict, where: str) -> ScalarType:
        if "x-node-kind" in schema:
            kind = NODE_KINDS.get(schema["x-node-kind"])
            if kind is None:
                raise ParseError(where, f"Unknown x-node-kind {schema['x-node-kind']!r}")
            return ScalarType(kind)
        if "x-datatype" in schema:
            if not isinstance(schema["x-datatype"], str):
                raise ParseError(where, "x-datatype must be a string")
            return scalar_for_datatype(schema["x-datatype"])

        typ = schema.get("type")
        fmt = schema.get("format")
        if typ is None:
            return ScalarType(ScalarKind.ANY)
        if typ == "string" and fmt in STRING_FORMATS:
            return ScalarType(STRING_FORMATS[fmt])
        if typ == "number" and fmt in NUMBER_FORMATS:
            return ScalarType(NUMBER_FORMATS[fmt])
        if typ in SIMPLE_TYPES:
            if fmt is not None:
                logger.warning("jsonschema.format_ignored", format=fmt, location=where)
            return ScalarType(SIMPLE_TYPES[typ])
        raise UnsupportedConstruct(f"type {typ!r}", where)

    def _enumeration(self, schema: dict, where: str) -> EnumerationType:
        values = schema["enum"] if "enum" in schema else [schema["const"]]
        if not isinstance(values, list) or not values:
            raise ParseError(where, "enum must be a non-empty array")
        if not all(isinstance(v, str) for v in values):
            raise UnsupportedConstruct("non-string enumeration", where)
        try:
            return EnumerationType(tuple(values), iri=schema.get("format") == "iri")
        except ValueError as e:
            raise ParseError(where, str(e)) from e

    def _value_type(self, schema: dict, owner: str, field_name: str, where: str) -> ValueType:
        _check_supported(schema, where)
        if "allOf" in schema:
            raise UnsupportedConstruct("allOf in a property", where)
        if "$ref" in schema:
            return self._resolve_ref(schema["$ref"], field_name, where)
        if _is_inline_object(schema):
            taken = set(self.ids.values()) | set(self.builder.shape_ids) | {self.root_id}
            shape_id = unique_name(f"{owner}_{field_name}", taken)
            self.builder.add_shape(self._convert_shape(shape_id, schema, where), where)
            return ShapeReference(shape_id)
        if schema.get("type") == "array":
            raise UnsupportedConstruct("nested array", where)
        if "enum" in schema or "const" in schema:
            return self._enumeration(schema, where)
        return self._scalar(schema, where)

    # Fields and shapes

    def _convert_property(self, owner: str, def_key: Optional[str], name: str, prop: Any,
                          required: bool, where: str) -> FieldConstraint:
        if not isinstance(prop, dict):
            raise ParseError(where, "property schema must be an object")
        _check_supported(prop, where)

        if prop.get("type") == "array":
            value_schema = prop.get("items", {})
            value_where = f"{where}/items"
            if not isinstance(value_schema, dict):
                raise UnsupportedConstruct("tuple items", where)
            min_items = _non_negative_int(prop.get("minItems", 0), "minItems", where)
            if required:
                lo = max(min_items, 1)
            else:
                if min_items:
                    logger.warning("jsonschema.min_items_dropped", min_items=min_items, location=where)
                lo = 0
            hi = UNBOUNDED
            if "maxItems" in prop:
                hi = _non_negative_int(prop["maxItems"], "maxItems", where)
            known = VALUE_KEYWORDS | ARRAY_KEYWORDS | FIELD_KEYWORDS
            ignored = set(value_schema) - VALUE_KEYWORDS - SHAPE_KEYWORDS
            if ignored:
                logger.warning("jsonschema.keywords_ignored", keywords=sorted(ignored), location=value_where)
        else:
            value_schema, value_where = prop, where
            lo, hi = (1 if required else 0), 1
            known = VALUE_KEYWORDS | FIELD_KEYWORDS

        value_type = self._value_type(value_schema, owner, name, value_where)
        if value_schema is prop and _is_inline_object(prop):
            # keywords of an inline object belong to the synthesized shape
            annotations = []
        else:
            annotations = _bag_items(prop, known, where)

        predicate = None
        if def_key is not None:
            by_field = self.predicates.get(def_key, {})
            if not isinstance(by_field, dict):
                raise ParseError("#/x-predicates", f"x-predicates entry for {def_key!r} must be an object")
            predicate = by_field.get(name)
        try:
            facets = [Facet(kind, value_schema[kw]) for kw, kind in FACET_KEYWORDS.items()
                      if kw in value_schema and not _is_inline_object(value_schema)]
            return FieldConstraint(
                name=name,
                value_type=value_type,
                cardinality=Cardinality(min=lo, max=hi),
                facets=tuple(facets),
                predicate=predicate,
                description=prop.get("description"),
                annotations=AnnotationBag(annotations),
            )
        except (ValueError, TypeError) as e:
            raise ParseError(where, str(e)) from e

    def _parent(self, schema: dict, where: str) -> Optional[str]:
        all_of = schema.get("allOf")
        if all_of is None:
            return None
        if not isinstance(all_of, list) or len(all_of) != 1:
            raise UnsupportedConstruct("allOf with more than one schema", where)
        base = all_of[0]
        if not isinstance(base, dict) or set(base) != {"$ref"}:
            raise UnsupportedConstruct("allOf member other than a single $ref", where)
        ref = self._resolve_ref(base["$ref"], None, where)
        if ref.external:
            raise UnsupportedConstruct("inheritance from an external schema", where)
        return ref.shape_id

    def _convert_shape(self, shape_id: str, schema: Any, where: str,
                       def_key: Optional[str] = None,
                       known: set = SHAPE_KEYWORDS) -> ShapeDefinition:
        if not isinstance(schema, dict):
            raise ParseError(where, "shape schema must be an object")
        _check_supported(schema, where)
        if schema.get("type", "object") != "object":
            raise UnsupportedConstruct(f"non-object definition of type {schema.get('type')!r}", where)

        properties = schema.get("properties", {})
        required = schema.get("required", [])
        if not isinstance(properties, dict):
            raise ParseError(where, "properties must be an object")
        if not isinstance(required, list):
            raise ParseError(where, "required must be an array")
        for name in required:
            if name not in properties:
                raise ParseError(where, f"required property {name!r} is not declared")

        additional = schema.get("additionalProperties", True)
        if not isinstance(additional, bool):
            raise UnsupportedConstruct("schema-valued additionalProperties", where)

        fields = [
            self._convert_property(shape_id, def_key, name, prop, name in required,
                                   f"{where}/properties/{_pointer_token(name)}")
            for name, prop in properties.items()
        ]
        try:
            return ShapeDefinition(
                id=shape_id,
                fields=tuple(fields),
                label=schema.get("title"),
                description=schema.get("description"),
                parent=self._parent(schema, where),
                closed=not additional,
                annotations=AnnotationBag(_bag_items(schema, known, where)),
            )
        except (ValueError, TypeError) as e:
            raise ParseError(where, str(e)) from e

    def convert(self) -> SchemaGraph:
        doc = self.doc
        _check_supported(doc, "#")
        prefixes = doc.get("x-prefixes", {})
        if not isinstance(prefixes, dict):
            raise ParseError("#/x-prefixes", "x-prefixes must be an object")
        for name, iri in prefixes.items():
            self.builder.add_prefix(name, iri)

        if self.root_id is not None:
            if "$ref" in doc:
                raise UnsupportedConstruct("root $ref alongside root properties", "#")
            root = self._convert_shape(self.root_id, doc, "#", self.root_id, known=ROOT_KEYWORDS)
            self.builder.add_shape(root, "#")
            self.builder.start = self.root_id
        else:
            if isinstance(doc.get("title"), str):
                self.builder.name = doc["title"]
            unknown = set(doc) - ROOT_KEYWORDS
            if unknown:
                logger.warning("jsonschema.keywords_ignored", keywords=sorted(unknown), location="#")

        for key, (where, schema) in self.defs.items():
            self.builder.add_shape(self._convert_shape(self.ids[key], schema, where, key), where)

        if "$ref" in doc:
            self.builder.start = self._resolve_ref(doc["$ref"], None, "#").shape_id
        return self.builder.build()


def convert_json_schema_to_canonical(doc: dict, allow_external: bool = False) -> SchemaGraph:
    """Convert a loaded JSON Schema document to the canonical model.

    Non-local ``$ref`` values are always external references, so
    ``allow_external`` only exists for a uniform importer signature.
    """
    graph = _JSONSchemaConverter(doc).convert()
    logger.debug("jsonschema.imported", shapes=len(graph))
    return graph
