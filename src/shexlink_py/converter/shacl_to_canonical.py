"""Convert the SHACL model to the canonical schema model.

Mapping rules:
- NodeShape IRI → shape id; shape-level sh:node → parent
- sh:property → field (sh:name or local name of sh:path), ordered by sh:order
- sh:minCount/sh:maxCount → cardinality (SHACL defaults 0 and unbounded)
- sh:datatype / sh:nodeKind / sh:in / sh:hasValue / sh:node / sh:class → value type
- sh:targetClass, sh:ignoredProperties and unrecognised triples → annotation bag
- ``<shexlink:start> true`` on a NodeShape → start shape
"""
from __future__ import annotations

from typing import Any

from rdflib.namespace import SH

from shexlink_py.converter.annotations import annotation_value, collect_annotations
from shexlink_py.errors import ParseError, UnresolvedReference, UnsupportedConstruct
from shexlink_py.logging import get_logger
from shexlink_py.schema.canonical import (
    SCALAR_FOR_NODE_KIND,
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
from shexlink_py.schema.common import (
    UNBOUNDED,
    Cardinality,
    IriValue,
    LiteralValue,
    local_name,
    unique_name,
)
from shexlink_py.schema.shacl import NodeShape, PropertyShape, SHACLSchema

logger = get_logger(__name__)

TARGET_CLASS_KEY = str(SH.targetClass)
IGNORED_PROPERTIES_KEY = str(SH.ignoredProperties)
# NodeShape triple naming the start shape of the graph
START_KEY = "shexlink:start"

_STRING_DATATYPES = (None, "http://www.w3.org/2001/XMLSchema#string")


def is_start_marker(key: str, value) -> bool:
    return key == START_KEY and value == LiteralValue(True)


def _enumeration(values: list, where: str) -> EnumerationType:
    if all(isinstance(v, IriValue) for v in values):
        return EnumerationType(tuple(v.iri for v in values), iri=True)
    if all(isinstance(v, LiteralValue) and v.datatype is None and v.language is None
           and isinstance(v.value, str) for v in values):
        return EnumerationType(tuple(v.value for v in values))
    raise UnsupportedConstruct("typed, language-tagged or mixed sh:in values", where)


def _facets(ps: PropertyShape) -> list[Facet]:
    facets = []
    if ps.pattern is not None:
        facets.append(Facet(FacetKind.PATTERN, ps.pattern))
    if ps.min_inclusive is not None:
        facets.append(Facet(FacetKind.MIN_INCLUSIVE, ps.min_inclusive))
    if ps.max_inclusive is not None:
        facets.append(Facet(FacetKind.MAX_INCLUSIVE, ps.max_inclusive))
    if ps.min_length is not None:
        facets.append(Facet(FacetKind.MIN_LENGTH, ps.min_length))
    if ps.max_length is not None:
        facets.append(Facet(FacetKind.MAX_LENGTH, ps.max_length))
    return facets


class _SHACLConverter:
    def __init__(self, schema: SHACLSchema, allow_external: bool):
        self.schema = schema
        self.allow_external = allow_external
        self.declared = {s.iri for s in schema.shapes}
        self.by_class: dict[str, str] = {}
        for s in schema.shapes:
            if s.target_class is not None:
                self.by_class.setdefault(s.target_class, s.iri)

    def _value_type(self, ps: PropertyShape, name: str, where: str) -> ValueType:
        if ps.node is not None:
            if ps.datatype is not None or ps.in_values is not None:
                raise UnsupportedConstruct("sh:node combined with a literal constraint", where)
            if ps.node in self.declared:
                return ShapeReference(ps.node)
            if self.allow_external:
                return ShapeReference(ps.node, external=True)
            raise UnresolvedReference(ps.node, name)
        if ps.class_ is not None:
            if ps.class_ in self.by_class:
                return ShapeReference(self.by_class[ps.class_])
            return ShapeReference(ps.class_, external=True)
        if ps.in_values is not None or ps.has_value is not None:
            if ps.datatype not in _STRING_DATATYPES:
                raise UnsupportedConstruct("value enumeration combined with sh:datatype", where)
            values = ps.in_values if ps.in_values is not None else [ps.has_value]
            if not values:
                raise ParseError(where, "empty sh:in list")
            return _enumeration(values, where)
        if ps.datatype is not None:
            return scalar_for_datatype(ps.datatype)
        if ps.node_kind is not None:
            kind = SCALAR_FOR_NODE_KIND.get(ps.node_kind)
            if kind is None:
                raise UnsupportedConstruct(f"sh:nodeKind sh:{ps.node_kind.value}", where)
            return ScalarType(kind)
        return ScalarType(ScalarKind.ANY)

    def _convert_property(self, ps: PropertyShape, taken: set[str], where: str) -> FieldConstraint:
        name = unique_name(ps.name or local_name(ps.path), taken)
        taken.add(name)
        where = f"{where}, field {name!r}"
        value_type = self._value_type(ps, name, where)
        try:
            cardinality = Cardinality(
                min=ps.min_count or 0,
                max=ps.max_count if ps.max_count is not None else UNBOUNDED,
            )
            return FieldConstraint(
                name=name,
                value_type=value_type,
                cardinality=cardinality,
                facets=tuple(_facets(ps)),
                predicate=ps.path,
                description=ps.description,
                annotations=AnnotationBag(collect_annotations(
                    [(k, annotation_value(v, where)) for k, v in ps.annotations]
                )),
            )
        except ValueError as e:
            raise ParseError(where, str(e)) from e

    def _convert_shape(self, ns: NodeShape) -> ShapeDefinition:
        where = f"shape <{ns.iri}>"
        if len(ns.node) > 1:
            raise UnsupportedConstruct("multiple inheritance", where)

        items: list[tuple[str, Any]] = []
        if ns.target_class is not None:
            items.append((TARGET_CLASS_KEY, {"@id": ns.target_class}))
        if ns.ignored_properties:
            items.append((IGNORED_PROPERTIES_KEY, list(ns.ignored_properties)))
        items.extend(
            (k, annotation_value(v, where)) for k, v in ns.annotations
            if not is_start_marker(k, v)
        )

        ordered = sorted(
            ns.properties,
            key=lambda p: (p.order is None, p.order or 0, p.path, p.name or ""),
        )
        taken: set[str] = set()
        fields = [self._convert_property(ps, taken, where) for ps in ordered]
        try:
            return ShapeDefinition(
                id=ns.iri,
                fields=tuple(fields),
                label=ns.label,
                description=ns.comment,
                parent=ns.node[0] if ns.node else None,
                closed=ns.closed,
                annotations=AnnotationBag(collect_annotations(items)),
            )
        except ValueError as e:
            raise ParseError(where, str(e)) from e

    def convert(self) -> SchemaGraph:
        builder = SchemaBuilder()
        for prefix in self.schema.prefixes:
            builder.add_prefix(prefix.name, prefix.iri)
        for ns in self.schema.shapes:
            where = f"shape <{ns.iri}>"
            builder.add_shape(self._convert_shape(ns), where)
            if any(is_start_marker(k, v) for k, v in ns.annotations):
                if builder.start is not None:
                    raise ParseError(where, "More than one start shape")
                builder.start = ns.iri
        return builder.build()


def convert_shacl_to_canonical(
    shacl: SHACLSchema, allow_external: bool = False
) -> SchemaGraph:
    """Convert a SHACL schema to the canonical model.

    Args:
        shacl: Parsed SHACL schema.
        allow_external: Mark sh:node references to undeclared shapes as external.

    Returns:
        Built, validated SchemaGraph.
    """
    graph = _SHACLConverter(shacl, allow_external).convert()
    logger.debug("shacl.imported", shapes=len(graph))
    return graph


