"""Parsers for ShEx (ShExC), SHACL (Turtle), LinkML (YAML) and JSON Schema."""
from shexlink_py.parser.shex_parser import parse_shex, parse_shex_file
from shexlink_py.parser.shacl_parser import parse_shacl, parse_shacl_file
from shexlink_py.parser.linkml_parser import parse_linkml, parse_linkml_file
from shexlink_py.parser.json_parser import parse_json_schema, parse_json_schema_file
