"""Converters between the language models and the canonical model."""
from shexlink_py.converter.shex_to_canonical import convert_shex_to_canonical
from shexlink_py.converter.canonical_to_shex import convert_canonical_to_shex
from shexlink_py.converter.shacl_to_canonical import convert_shacl_to_canonical
from shexlink_py.converter.canonical_to_shacl import convert_canonical_to_shacl
from shexlink_py.converter.linkml_to_canonical import convert_linkml_to_canonical
from shexlink_py.converter.canonical_to_linkml import convert_canonical_to_linkml
from shexlink_py.converter.json_schema_to_canonical import convert_json_schema_to_canonical
from shexlink_py.converter.canonical_to_json_schema import convert_canonical_to_json_schema
