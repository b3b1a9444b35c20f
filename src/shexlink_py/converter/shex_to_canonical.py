"""Convert the ShEx model to the canonical schema model.

Mapping rules:
- Shape label → shape id (``<Person>`` stays ``Person``, prefixed names are expanded)
- ``EXTENDS @<P>`` / ``@<P> AND { ... }`` → parent
- Triple constraint → field named after the local name of its predicate
- Datatype / node kind / value set / shape reference → value type
- ``rdfs:label`` / ``rdfs:comment`` annotations → label / description
- Other annotations, semantic actions and EXTRA → annotation bag
- Inline shapes → synthesized ``<Shape>_<field>`` shapes
"""
from __future__ import annotations

from dataclasses import replace
from typing import Any, Optional, Union

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
    RDFS_COMMENT,
    RDFS_LABEL,
    IriValue,
    LiteralValue,
    local_name,
    unique_name,
)
from shexlink_py.schema.shex import (
    EachOf,
    NodeConstraint,
    OneOf,
    SemAct,
    Shape,
    ShapeRef,
    ShExSchema,
    TripleConstraint,
)

logger = get_logger(__name__)

EXTRA_KEY = "shexlink:extra"
NODE_KIND_KEY = "shexlink:node_kind"


def _collect(items: list[tuple[str, Any]]) -> AnnotationBag:
    return AnnotationBag(collect_annotations(items))


def _semact_items(semacts: list[SemAct], items: list[tuple[str, Any]]):
    for act in semacts:
        items.append(("%" + act.name, act.code))


def _plain_string(obj: Union[IriValue, LiteralValue]) -> Optional[str]:
    if isinstance(obj, LiteralValue) and obj.datatype is None and obj.language is None \
            and isinstance(obj.value, str):
        return obj.value
    return None


def _flatten(expr) -> list[TripleConstraint]:
    """Flatten a conjunctive triple expression into its triple constraints."""
    if expr is None:
        return []
    if isinstance(expr, TripleConstraint):
        return [expr]
    if isinstance(expr, OneOf):
        raise UnsupportedConstruct("OneOf triple expression", expr.location)
    if isinstance(expr, EachOf):
        if expr.cardinality is not None:
            raise UnsupportedConstruct("grouped triple expression with cardinality",
                                       expr.location)
        result: list[TripleConstraint] = []
        for sub in expr.expressions:
            result.extend(_flatten(sub))
        return result
    raise UnsupportedConstruct(f"triple expression {type(expr).__name__}")


def _convert_value_set(nc: NodeConstraint, location: Optional[str]) -> EnumerationType:
    values = nc.values or []
    if nc.datatype is not None or nc.node_kind is not None:
        raise UnsupportedConstruct("value set combined with datatype or node kind", location)
    if all(isinstance(v, IriValue) for v in values):
        return EnumerationType(tuple(v.iri for v in values), iri=True)
    strings = [_plain_string(v) for v in values]
    if any(s is None for s in strings):
        raise UnsupportedConstruct("typed, language-tagged or mixed value set", location)
    try:
        return EnumerationType(tuple(strings))
    except ValueError as e:
        raise ParseError(location, str(e)) from e


def _convert_facets(nc: NodeConstraint, location: Optional[str]) -> list[Facet]:
    facets: list[Facet] = []
    min_length, max_length = nc.min_length, nc.max_length
    if nc.length is not None:
        if min_length is not None or max_length is not None:
            raise ParseError(location, "LENGTH combined with MINLENGTH or MAXLENGTH")
        min_length = max_length = nc.length
    if nc.pattern is not None:
        facets.append(Facet(FacetKind.PATTERN, nc.pattern))
    if nc.min_inclusive is not None:
        facets.append(Facet(FacetKind.MIN_INCLUSIVE, nc.min_inclusive))
    if nc.max_inclusive is not None:
        facets.append(Facet(FacetKind.MAX_INCLUSIVE, nc.max_inclusive))
    if min_length is not None:
        facets.append(Facet(FacetKind.MIN_LENGTH, min_length))
    if max_length is not None:
        facets.append(Facet(FacetKind.MAX_LENGTH, max_length))
    return facets


class _ShExConverter:
    """Holds the per-call state of one ShEx → canonical conversion."""

    def __init__(self, schema: ShExSchema, allow_external: bool):
        self.schema = schema
        self.allow_external = allow_external
        self.declared = {s.name for s in schema.shapes}
        self.builder = SchemaBuilder()
        self.synthesized: set[str] = set()

    def _shape_id_for_inline(self, owner: str, field_name: str) -> str:
        taken = self.declared | self.synthesized
        shape_id = unique_name(f"{owner}_{field_name}", taken)
        self.synthesized.add(shape_id)
        return shape_id

    def _value_type(
        self, tc: TripleConstraint, owner: str, field_name: str
    ) -> tuple[ValueType, list[Facet]]:
        constraint = tc.constraint
        if constraint is None:
            return ScalarType(ScalarKind.ANY), []

        if isinstance(constraint, ShapeRef):
            if constraint.name in self.declared:
                return ShapeReference(constraint.name), []
            if self.allow_external:
                return ShapeReference(constraint.name, external=True), []
            raise UnresolvedReference(constraint.name, field_name)

        if isinstance(constraint, Shape):
            shape_id = self._shape_id_for_inline(owner, field_name)
            self._convert_shape(replace(constraint, name=shape_id))
            return ShapeReference(shape_id), []

        facets = _convert_facets(constraint, tc.location)
        if constraint.values is not None:
            return _convert_value_set(constraint, tc.location), facets
        if constraint.datatype is not None:
            return scalar_for_datatype(constraint.datatype), facets
        if constraint.node_kind is not None:
            return ScalarType(SCALAR_FOR_NODE_KIND[constraint.node_kind]), facets
        return ScalarType(ScalarKind.ANY), facets

    def _convert_field(self, tc: TripleConstraint, owner: str, taken: set[str]) -> FieldConstraint:
        name = unique_name(local_name(tc.predicate), taken)
        taken.add(name)
        value_type, facets = self._value_type(tc, owner, name)

        description = None
        items: list[tuple[str, Any]] = []
        for ann in tc.annotations:
            text = _plain_string(ann.object)
            if ann.predicate == RDFS_COMMENT and description is None and text is not None:
                description = text
            else:
                items.append((ann.predicate, annotation_value(ann.object, tc.location)))
        _semact_items(tc.semacts, items)

        return FieldConstraint(
            name=name,
            value_type=value_type,
            cardinality=tc.cardinality,
            facets=tuple(facets),
            predicate=tc.predicate,
            description=description,
            annotations=_collect(items),
        )

    def _convert_shape(self, shape: Shape):
        if len(shape.extends) > 1:
            raise UnsupportedConstruct("multiple inheritance", shape.location)
        parent = shape.extends[0] if shape.extends else None
        if parent is not None and parent not in self.declared:
            raise UnresolvedReference(parent)

        label = description = None
        items: list[tuple[str, Any]] = []
        for ann in shape.annotations:
            text = _plain_string(ann.object)
            if ann.predicate == RDFS_LABEL and label is None and text is not None:
                label = text
            elif ann.predicate == RDFS_COMMENT and description is None and text is not None:
                description = text
            else:
                items.append((ann.predicate, annotation_value(ann.object, shape.location)))
        if shape.node_kind is not None:
            items.append((NODE_KIND_KEY, shape.node_kind))
        _semact_items(shape.semacts, items)
        if shape.extra:
            items.append((EXTRA_KEY, list(shape.extra)))

        taken: set[str] = set()
        fields = [
            self._convert_field(tc, shape.name, taken)
            for tc in _flatten(shape.expression)
        ]
        try:
            definition = ShapeDefinition(
                id=shape.name,
                fields=tuple(fields),
                label=label,
                description=description,
                parent=parent,
                closed=shape.closed,
                annotations=_collect(items),
            )
        except ValueError as e:
            raise ParseError(shape.location, str(e)) from e
        self.builder.add_shape(definition, shape.location)

    def convert(self) -> SchemaGraph:
        for prefix in self.schema.prefixes:
            self.builder.add_prefix(prefix.name, prefix.iri)
        for shape in self.schema.shapes:
            if shape.name in self.builder.shape_ids:
                raise ParseError(shape.location, f"Duplicate shape identifier {shape.name!r}")
            self._convert_shape(shape)
        self.builder.start = self.schema.start
        return self.builder.build()


def convert_shex_to_canonical(shex: ShExSchema, allow_external: bool = False) -> SchemaGraph:
    """Convert a ShEx schema to the canonical model.

    Args:
        shex: Parsed ShEx schema.
        allow_external: Mark references to undeclared shapes as external
            instead of raising UnresolvedReference.

    Returns:
        Built, validated SchemaGraph.
    """
    graph = _ShExConverter(shex, allow_external).convert()
    logger.debug("shex.imported", shapes=len(graph), start=graph.start)
    return graph
