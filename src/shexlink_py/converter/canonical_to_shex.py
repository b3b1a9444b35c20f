"""Convert the canonical schema model to the ShEx model.

Reverse mapping of shex_to_canonical:
- parent → ``@<Parent> AND { ... }``
- field → triple constraint; fields without a predicate get one in the
  configured default namespace
- scalar kinds → XSD datatypes or node kinds, ``any`` → ``.``
- enumerations → value sets, shape references → ``@<Shape>``
- label / description / annotation bag → annotations and semantic actions
"""
from __future__ import annotations

from typing import Any, Optional, Union

from shexlink_py.config import TranslatorSettings, get_settings
from shexlink_py.converter.annotations import annotation_object
from shexlink_py.converter.shex_to_canonical import EXTRA_KEY, NODE_KIND_KEY
from shexlink_py.errors import UnrepresentableConstraint
from shexlink_py.logging import get_logger
from shexlink_py.schema.canonical import (
    NODE_KIND_SCALARS,
    XSD_DATATYPES,
    EnumerationType,
    FacetKind,
    FieldConstraint,
    SchemaGraph,
    ScalarKind,
    ScalarType,
    ShapeDefinition,
    ShapeReference,
)
from shexlink_py.schema.common import (
    RDFS_COMMENT,
    RDFS_LABEL,
    STANDARD_PREFIXES,
    IriValue,
    LiteralValue,
    Prefix,
    encode_iri,
)
from shexlink_py.schema.shex import (
    Annotation,
    EachOf,
    NodeConstraint,
    SemAct,
    Shape,
    ShapeRef,
    ShExSchema,
    TripleConstraint,
)

logger = get_logger(__name__)

TARGET = "ShEx"

SHAPE_NODE_KINDS = ("IRI", "BNODE", "NONLITERAL")


def _is_extra_list(value: Any) -> bool:
    return isinstance(value, list) and bool(value) and all(isinstance(v, str) for v in value)


def _bag_annotations(bag, reserved=()) -> tuple[list[Annotation], list[SemAct]]:
    annotations: list[Annotation] = []
    semacts: list[SemAct] = []
    for key, value in bag.items():
        if key in reserved:
            continue
        if key.startswith("%"):
            semacts.append(SemAct(name=key[1:], code=value if isinstance(value, str) else None))
        else:
            annotations.append(Annotation(predicate=key, object=annotation_object(value)))
    return annotations, semacts


def _node_constraint(f: FieldConstraint) -> NodeConstraint:
    vt = f.value_type
    if isinstance(vt, EnumerationType):
        if vt.iri:
            nc = NodeConstraint(values=[IriValue(v) for v in vt.values])
        else:
            nc = NodeConstraint(values=[LiteralValue(v) for v in vt.values])
    elif isinstance(vt, ScalarType):
        if vt.datatype is not None:
            nc = NodeConstraint(datatype=vt.datatype)
        elif vt.kind in XSD_DATATYPES:
            nc = NodeConstraint(datatype=XSD_DATATYPES[vt.kind])
        elif vt.kind in NODE_KIND_SCALARS:
            nc = NodeConstraint(node_kind=NODE_KIND_SCALARS[vt.kind])
        elif vt.kind is ScalarKind.ANY:
            nc = NodeConstraint()
        else:
            raise UnrepresentableConstraint(f"scalar kind {vt.kind.value}", TARGET)
    else:
        raise UnrepresentableConstraint(f"value type {vt!r}", TARGET)

    for facet in f.facets:
        if facet.kind is FacetKind.PATTERN:
            nc.pattern = facet.value
        elif facet.kind is FacetKind.MIN_INCLUSIVE:
            nc.min_inclusive = facet.value
        elif facet.kind is FacetKind.MAX_INCLUSIVE:
            nc.max_inclusive = facet.value
        elif facet.kind is FacetKind.MIN_LENGTH:
            nc.min_length = facet.value
        elif facet.kind is FacetKind.MAX_LENGTH:
            nc.max_length = facet.value
        else:
            raise UnrepresentableConstraint(f"facet {facet.kind.value}", TARGET)
    return nc


def _convert_field(f: FieldConstraint, settings: TranslatorSettings) -> TripleConstraint:
    predicate = f.predicate or settings.default_namespace + encode_iri(f.name)
    if isinstance(f.value_type, ShapeReference):
        constraint: Union[NodeConstraint, ShapeRef] = ShapeRef(name=f.value_type.shape_id)
    else:
        constraint = _node_constraint(f)

    annotations: list[Annotation] = []
    if f.description is not None:
        annotations.append(Annotation(RDFS_COMMENT, LiteralValue(f.description)))
    bag_annotations, semacts = _bag_annotations(f.annotations)
    return TripleConstraint(
        predicate=predicate,
        constraint=constraint,
        cardinality=f.cardinality,
        annotations=annotations + bag_annotations,
        semacts=semacts,
    )


def _convert_shape(shape: ShapeDefinition, settings: TranslatorSettings) -> Shape:
    tcs = [_convert_field(f, settings) for f in shape.fields]
    expr: Optional[Union[EachOf, TripleConstraint]] = None
    if len(tcs) == 1:
        expr = tcs[0]
    elif len(tcs) > 1:
        expr = EachOf(expressions=tcs)

    annotations: list[Annotation] = []
    if shape.label is not None:
        annotations.append(Annotation(RDFS_LABEL, LiteralValue(shape.label)))
    if shape.description is not None:
        annotations.append(Annotation(RDFS_COMMENT, LiteralValue(shape.description)))
    node_kind = shape.annotations.get(NODE_KIND_KEY)
    if node_kind not in SHAPE_NODE_KINDS:
        node_kind = None
    extra = shape.annotations.get(EXTRA_KEY)
    if not _is_extra_list(extra):
        extra = None
    reserved = [k for k, v in ((NODE_KIND_KEY, node_kind), (EXTRA_KEY, extra)) if v is not None]
    bag_annotations, semacts = _bag_annotations(shape.annotations, reserved)

    return Shape(
        name=shape.id,
        expression=expr,
        closed=shape.closed,
        node_kind=node_kind,
        extra=list(extra or []),
        extends=[shape.parent] if shape.parent else [],
        annotations=annotations + bag_annotations,
        semacts=semacts,
    )


def _prefixes(graph: SchemaGraph, settings: TranslatorSettings) -> list[Prefix]:
    """Declared prefixes plus the well-known ones the output needs."""
    prefixes = list(graph.prefixes)
    names = {p.name for p in prefixes}
    iris = {p.iri for p in prefixes}

    def add(name: str, iri: str):
        if name not in names and iri not in iris:
            prefixes.append(Prefix(name, iri))
            names.add(name)
            iris.add(iri)

    fields = [f for s in graph for f in s.fields]
    if any(f.predicate is None for f in fields):
        add(settings.default_prefix, settings.default_namespace)
    if any(s.label is not None or s.description is not None for s in graph) \
            or any(f.description is not None for f in fields):
        add("rdfs", STANDARD_PREFIXES["rdfs"])
    if any(isinstance(f.value_type, ScalarType) and f.value_type.kind in XSD_DATATYPES
           for f in fields):
        add("xsd", STANDARD_PREFIXES["xsd"])
    return prefixes


def convert_canonical_to_shex(
    graph: SchemaGraph, settings: Optional[TranslatorSettings] = None
) -> ShExSchema:
    """Convert a canonical schema graph to a ShEx schema.

    Args:
        graph: The canonical schema to convert.
        settings: Translator settings (default namespace for synthesized predicates).

    Returns:
        Equivalent ShEx schema, shapes ordered by identifier.

    Raises:
        UnrepresentableConstraint: if the graph holds a construct with no ShEx mapping.
    """
    settings = settings or get_settings()
    shapes = [_convert_shape(s, settings) for s in graph.sorted_shapes()]
    logger.debug("shex.exported", shapes=len(shapes))
    return ShExSchema(
        shapes=shapes,
        prefixes=_prefixes(graph, settings),
        start=graph.start,
    )
