"""Convert the canonical schema model to the SHACL model.

Reverse mapping of shacl_to_canonical:
- shape → NodeShape, parent → shape-level sh:node
- field → property shape with sh:name and sh:order set from the field
- cardinality → sh:minCount / sh:maxCount (omitted for 0 and unbounded)
- internal reference → sh:node, external reference → sh:class
- start shape → ``<shexlink:start> true`` on its NodeShape
"""
from __future__ import annotations

from typing import Any, Optional

from shexlink_py.config import TranslatorSettings, get_settings
from shexlink_py.converter.annotations import annotation_object
from shexlink_py.converter.shacl_to_canonical import (
    IGNORED_PROPERTIES_KEY,
    START_KEY,
    TARGET_CLASS_KEY,
)
from shexlink_py.errors import UnrepresentableConstraint
from shexlink_py.logging import get_logger
from shexlink_py.schema.canonical import (
    NODE_KIND_SCALARS,
    XSD_DATATYPES,
    AnnotationBag,
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
    UNBOUNDED,
    IriValue,
    LiteralValue,
    Prefix,
    encode_iri,
    is_absolute_iri,
)
from shexlink_py.schema.shacl import NodeShape, PropertyShape, SHACLSchema, Term

logger = get_logger(__name__)

TARGET = "SHACL"

_FACET_ATTRS = {
    FacetKind.PATTERN: "pattern",
    FacetKind.MIN_INCLUSIVE: "min_inclusive",
    FacetKind.MAX_INCLUSIVE: "max_inclusive",
    FacetKind.MIN_LENGTH: "min_length",
    FacetKind.MAX_LENGTH: "max_length",
}


def _is_iri_key(key: str) -> bool:
    return is_absolute_iri(key) and not any(c.isspace() or c in '<>"{}|^`\\' for c in key)


def _bag_annotations(bag: AnnotationBag, where: str) -> list[tuple[str, Term]]:
    result = []
    for key, value in bag.items():
        if not _is_iri_key(key):
            logger.warning("shacl.annotation_dropped", key=key, location=where)
            continue
        result.append((key, annotation_object(value)))
    return result


def _apply_value_type(ps: PropertyShape, f: FieldConstraint):
    vt = f.value_type
    if isinstance(vt, ShapeReference):
        if vt.external:
            ps.class_ = vt.shape_id
        else:
            ps.node = vt.shape_id
    elif isinstance(vt, EnumerationType):
        if vt.iri:
            ps.in_values = [IriValue(v) for v in vt.values]
        else:
            ps.in_values = [LiteralValue(v) for v in vt.values]
    elif isinstance(vt, ScalarType):
        if vt.datatype is not None:
            ps.datatype = vt.datatype
        elif vt.kind in XSD_DATATYPES:
            ps.datatype = XSD_DATATYPES[vt.kind]
        elif vt.kind in NODE_KIND_SCALARS:
            ps.node_kind = NODE_KIND_SCALARS[vt.kind]
        elif vt.kind is not ScalarKind.ANY:
            raise UnrepresentableConstraint(f"scalar kind {vt.kind.value}", TARGET)
    else:
        raise UnrepresentableConstraint(f"value type {vt!r}", TARGET)


def _convert_field(f: FieldConstraint, order: int, settings: TranslatorSettings,
                   where: str) -> PropertyShape:
    ps = PropertyShape(
        path=f.predicate or settings.default_namespace + encode_iri(f.name),
        name=f.name,
        description=f.description,
        order=order,
        min_count=f.cardinality.min or None,
        max_count=None if f.cardinality.max == UNBOUNDED else f.cardinality.max,
    )
    _apply_value_type(ps, f)
    for facet in f.facets:
        attr = _FACET_ATTRS.get(facet.kind)
        if attr is None:
            raise UnrepresentableConstraint(f"facet {facet.kind.value}", TARGET)
        setattr(ps, attr, facet.value)
    ps.annotations = _bag_annotations(f.annotations, f"{where}, field {f.name!r}")
    return ps


def _target_class(value: Any) -> Optional[str]:
    if isinstance(value, dict) and set(value) == {"@id"} and isinstance(value["@id"], str):
        return value["@id"]
    return None


def _ignored_properties(value: Any) -> Optional[list[str]]:
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return list(value)
    return None


def _convert_shape(shape: ShapeDefinition, settings: TranslatorSettings,
                   is_start: bool = False) -> NodeShape:
    where = f"shape {shape.id!r}"
    target_class = _target_class(shape.annotations.get(TARGET_CLASS_KEY))
    ignored = _ignored_properties(shape.annotations.get(IGNORED_PROPERTIES_KEY))
    reserved = []
    if target_class is not None:
        reserved.append(TARGET_CLASS_KEY)
    if ignored is not None:
        reserved.append(IGNORED_PROPERTIES_KEY)
    annotations = _bag_annotations(shape.annotations.without(*reserved), where)
    if is_start:
        annotations.append((START_KEY, LiteralValue(True)))

    return NodeShape(
        iri=shape.id,
        target_class=target_class,
        properties=[_convert_field(f, i, settings, where) for i, f in enumerate(shape.fields)],
        closed=shape.closed,
        ignored_properties=ignored or [],
        node=[shape.parent] if shape.parent else [],
        label=shape.label,
        comment=shape.description,
        annotations=annotations,
    )


def convert_canonical_to_shacl(
    graph: SchemaGraph, settings: Optional[TranslatorSettings] = None
) -> SHACLSchema:
    """Convert a canonical schema graph to a SHACL schema.

    Annotation keys that are not absolute IRIs have no RDF form and are
    dropped with a warning.
    """
    settings = settings or get_settings()
    shapes = [
        _convert_shape(s, settings, is_start=s.id == graph.start)
        for s in graph.sorted_shapes()
    ]

    prefixes = list(graph.prefixes)
    if any(f.predicate is None for s in graph for f in s.fields) \
            and settings.default_namespace not in {p.iri for p in prefixes}:
        prefixes.append(Prefix(settings.default_prefix, settings.default_namespace))

    logger.debug("shacl.exported", shapes=len(shapes))
    return SHACLSchema(shapes=shapes, prefixes=prefixes)
