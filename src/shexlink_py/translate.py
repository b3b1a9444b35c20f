"""Translation façade: one entry point per operation for every language.

Control flow is always ``parse → <lang>_to_canonical → SchemaGraph`` on the
way in and ``canonical_to_<lang> → serialize`` on the way out.
"""
from __future__ import annotations

import os
from enum import Enum
from typing import Callable, Optional, Union

from shexlink_py.audit import DiffReport, audit
from shexlink_py.config import TranslatorSettings, get_settings
from shexlink_py.converter.canonical_to_json_schema import convert_canonical_to_json_schema
from shexlink_py.converter.canonical_to_linkml import convert_canonical_to_linkml
from shexlink_py.converter.canonical_to_shacl import convert_canonical_to_shacl
from shexlink_py.converter.canonical_to_shex import convert_canonical_to_shex
from shexlink_py.converter.json_schema_to_canonical import convert_json_schema_to_canonical
from shexlink_py.converter.linkml_to_canonical import convert_linkml_to_canonical
from shexlink_py.converter.shacl_to_canonical import convert_shacl_to_canonical
from shexlink_py.converter.shex_to_canonical import convert_shex_to_canonical
from shexlink_py.errors import ParseError
from shexlink_py.logging import get_logger
from shexlink_py.parser.json_parser import parse_json_schema
from shexlink_py.parser.linkml_parser import parse_linkml
from shexlink_py.parser.shacl_parser import parse_shacl
from shexlink_py.parser.shex_parser import parse_shex
from shexlink_py.schema.canonical import SchemaGraph
from shexlink_py.serializer.json_serializer import serialize_json
from shexlink_py.serializer.shacl_serializer import serialize_shacl
from shexlink_py.serializer.shex_serializer import serialize_shex
from shexlink_py.serializer.yaml_serializer import serialize_yaml

logger = get_logger(__name__)


class Language(str, Enum):
    SHEX = "shex"
    LINKML = "linkml"
    JSON_SCHEMA = "jsonschema"
    SHACL = "shacl"

    @classmethod
    def from_path(cls, path: str) -> Language:
        """Infer the language from a file suffix."""
        suffix = os.path.splitext(path)[1].lower()
        try:
            return SUFFIXES[suffix]
        except KeyError:
            raise ValueError(f"Cannot infer schema language from suffix {suffix!r}") from None


SUFFIXES = {
    ".shex": Language.SHEX,
    ".shexc": Language.SHEX,
    ".yaml": Language.LINKML,
    ".yml": Language.LINKML,
    ".json": Language.JSON_SCHEMA,
    ".ttl": Language.SHACL,
}

Importer = Callable[[str, bool], SchemaGraph]
Exporter = Callable[[SchemaGraph, TranslatorSettings], str]

IMPORTERS: dict[Language, Importer] = {
    Language.SHEX: lambda text, ext: convert_shex_to_canonical(parse_shex(text), ext),
    Language.LINKML: lambda text, ext: convert_linkml_to_canonical(parse_linkml(text), ext),
    Language.JSON_SCHEMA: lambda text, ext: convert_json_schema_to_canonical(parse_json_schema(text), ext),
    Language.SHACL: lambda text, ext: convert_shacl_to_canonical(parse_shacl(text), ext),
}

EXPORTERS: dict[Language, Exporter] = {
    Language.SHEX: lambda g, s: serialize_shex(convert_canonical_to_shex(g, s)),
    Language.LINKML: lambda g, s: serialize_yaml(convert_canonical_to_linkml(g, s)),
    Language.JSON_SCHEMA: lambda g, s: serialize_json(convert_canonical_to_json_schema(g, s), s.json_indent),
    Language.SHACL: lambda g, s: serialize_shacl(convert_canonical_to_shacl(g, s)),
}


def _decode(source: Union[str, bytes]) -> str:
    if isinstance(source, bytes):
        try:
            return source.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError(f"byte {e.start}", "Input is not valid UTF-8") from e
    return source


def import_schema(source: Union[str, bytes], language: Union[Language, str],
                  allow_external: bool = False) -> SchemaGraph:
    """Parse schema text in ``language`` into a canonical SchemaGraph."""
    language = Language(language)
    graph = IMPORTERS[language](_decode(source), allow_external)
    logger.info("schema.imported", language=language.value, shapes=len(graph))
    return graph


def export_schema(graph: SchemaGraph, language: Union[Language, str],
                  settings: Optional[TranslatorSettings] = None) -> str:
    """Render a SchemaGraph as schema text in ``language``."""
    language = Language(language)
    text = EXPORTERS[language](graph, settings or get_settings())
    logger.info("schema.exported", language=language.value, shapes=len(graph))
    return text


def convert(source: Union[str, bytes], source_language: Union[Language, str],
            target_language: Union[Language, str],
            settings: Optional[TranslatorSettings] = None) -> str:
    """Translate schema text from one language to another through the canonical model."""
    return export_schema(import_schema(source, source_language), target_language, settings)


def round_trip(source: Union[str, bytes], language: Union[Language, str],
               via: Union[Language, str], settings: Optional[TranslatorSettings] = None,
               allow_external: bool = False) -> tuple[SchemaGraph, SchemaGraph, DiffReport]:
    """Import, export through ``via``, re-import and audit the result.

    Returns:
        (original graph, round-tripped graph, DiffReport)
    """
    original = import_schema(source, language, allow_external)
    exported = export_schema(original, via, settings)
    # external references survive the trip as external references
    round_tripped = import_schema(exported, via, allow_external=True)
    return original, round_tripped, audit(original, round_tripped)
