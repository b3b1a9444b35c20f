"""Schema models: the canonical model plus the ShEx and SHACL syntax models."""
from shexlink_py.schema.common import Cardinality, NodeKind, Prefix, PrefixMap, UNBOUNDED
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
)
from shexlink_py.schema.shacl import NodeShape, PropertyShape, SHACLSchema
from shexlink_py.schema.shex import Shape, ShExSchema, TripleConstraint
