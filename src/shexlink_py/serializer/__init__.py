"""Serializers for ShEx (ShExC), SHACL (Turtle), YAML and JSON formats."""
from shexlink_py.serializer.shex_serializer import serialize_shex
from shexlink_py.serializer.shacl_serializer import serialize_shacl
from shexlink_py.serializer.yaml_serializer import serialize_yaml
from shexlink_py.serializer.json_serializer import serialize_json
