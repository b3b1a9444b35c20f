"""shexlink-py: bi-directional ShEx / LinkML / JSON Schema / SHACL schema translator.

Every language is imported into a language-neutral canonical model
(:class:`SchemaGraph`) and exported from it; the Fidelity Auditor compares
two graphs and reports what a round trip lost.
"""
__version__ = "0.1.0"

from shexlink_py.errors import (
    ParseError,
    TranslationError,
    UnrepresentableConstraint,
    UnresolvedReference,
    UnsupportedConstruct,
)
from shexlink_py.schema.common import Cardinality, NodeKind, Prefix, UNBOUNDED
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

from shexlink_py.parser.shex_parser import parse_shex, parse_shex_file
from shexlink_py.parser.shacl_parser import parse_shacl, parse_shacl_file
from shexlink_py.parser.linkml_parser import parse_linkml, parse_linkml_file
from shexlink_py.parser.json_parser import parse_json_schema, parse_json_schema_file

from shexlink_py.converter.shex_to_canonical import convert_shex_to_canonical
from shexlink_py.converter.canonical_to_shex import convert_canonical_to_shex
from shexlink_py.converter.shacl_to_canonical import convert_shacl_to_canonical
from shexlink_py.converter.canonical_to_shacl import convert_canonical_to_shacl
from shexlink_py.converter.linkml_to_canonical import convert_linkml_to_canonical
from shexlink_py.converter.canonical_to_linkml import convert_canonical_to_linkml
from shexlink_py.converter.json_schema_to_canonical import convert_json_schema_to_canonical
from shexlink_py.converter.canonical_to_json_schema import convert_canonical_to_json_schema

from shexlink_py.serializer.shex_serializer import serialize_shex
from shexlink_py.serializer.shacl_serializer import serialize_shacl
from shexlink_py.serializer.yaml_serializer import serialize_yaml
from shexlink_py.serializer.json_serializer import serialize_json

from shexlink_py.audit import Diagnostic, DiffKind, DiffReport, audit
from shexlink_py.translate import Language, convert, export_schema, import_schema, round_trip

__all__ = [
    # Errors
    "TranslationError", "ParseError", "UnsupportedConstruct",
    "UnresolvedReference", "UnrepresentableConstraint",
    # Canonical model
    "Cardinality", "NodeKind", "Prefix", "UNBOUNDED",
    "AnnotationBag", "EnumerationType", "Facet", "FacetKind", "FieldConstraint",
    "SchemaBuilder", "SchemaGraph", "ScalarKind", "ScalarType",
    "ShapeDefinition", "ShapeReference",
    # Parsers
    "parse_shex", "parse_shex_file",
    "parse_shacl", "parse_shacl_file",
    "parse_linkml", "parse_linkml_file",
    "parse_json_schema", "parse_json_schema_file",
    # Converters
    "convert_shex_to_canonical", "convert_canonical_to_shex",
    "convert_shacl_to_canonical", "convert_canonical_to_shacl",
    "convert_linkml_to_canonical", "convert_canonical_to_linkml",
    "convert_json_schema_to_canonical", "convert_canonical_to_json_schema",
    # Serializers
    "serialize_shex", "serialize_shacl", "serialize_yaml", "serialize_json",
    # Auditor and façade
    "Diagnostic", "DiffKind", "DiffReport", "audit",
    "Language", "convert", "export_schema", "import_schema", "round_trip",
]
