"""Convert the canonical schema model to a LinkML schema document.

Reverse mapping of linkml_to_canonical. Every shape becomes a class with
inline ``attributes``; class names are local names of the shape ids (with
``class_uri`` recording the id when the two differ), and enums and custom
datatypes get their own ``enums`` / ``types`` entries.
"""
from __future__ import annotations

from typing import Any, Optional

from shexlink_py.config import TranslatorSettings, get_settings
from shexlink_py.converter.linkml_to_canonical import (
    BUILTIN_TYPES,
    CLOSED_TAG,
    EXTERNAL_REF_TAG,
    LINKML_NS,
    MAX_LENGTH_TAG,
    MIN_LENGTH_TAG,
    NODE_KIND_TAG,
    TAGGED_NODE_KINDS,
    UNKNOWN_KEY_PREFIX,
)
from shexlink_py.errors import UnrepresentableConstraint
from shexlink_py.logging import get_logger
from shexlink_py.schema.canonical import (
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
from shexlink_py.schema.common import UNBOUNDED, PrefixMap, local_name, unique_name

logger = get_logger(__name__)

TARGET = "LinkML"

TYPE_FOR_SCALAR = {kind: name for name, kind in BUILTIN_TYPES.items()}

_FACET_KEYS = {
    FacetKind.PATTERN: "pattern",
    FacetKind.MIN_INCLUSIVE: "minimum_value",
    FacetKind.MAX_INCLUSIVE: "maximum_value",
}

_FACET_TAGS = {
    FacetKind.MIN_LENGTH: MIN_LENGTH_TAG,
    FacetKind.MAX_LENGTH: MAX_LENGTH_TAG,
}


def _element_name(value: str) -> str:
    """A LinkML element name derived from an identifier."""
    name = local_name(value)
    return "".join(c if c.isalnum() or c in "_-" else "_" for c in name) or "Element"


def _enum_name(shape_name: str, field_name: str) -> str:
    field_part = _element_name(field_name)
    return f"{shape_name}{field_part[:1].upper()}{field_part[1:]}Enum"


def _split_bag(bag: AnnotationBag) -> tuple[dict, dict]:
    """Separate restored element keys from ordinary annotations."""
    keys: dict[str, Any] = {}
    annotations: dict[str, Any] = {}
    for key, value in bag.items():
        if key.startswith(UNKNOWN_KEY_PREFIX):
            keys[key[len(UNKNOWN_KEY_PREFIX):]] = value
        else:
            annotations[key] = value
    return keys, annotations


class _LinkMLExporter:
    def __init__(self, graph: SchemaGraph, settings: TranslatorSettings):
        self.graph = graph
        self.settings = settings
        self.pm = PrefixMap(graph.prefixes)
        self.taken: set[str] = set(BUILTIN_TYPES)
        self.class_names: dict[str, str] = {}
        for shape in graph.sorted_shapes():
            name = unique_name(_element_name(shape.id), self.taken)
            self.taken.add(name)
            self.class_names[shape.id] = name
        self.enums: dict[str, dict] = {}
        self._enum_types: dict[str, EnumerationType] = {}
        self.types: dict[str, dict] = {}
        self._type_names: dict[str, str] = {}
        self.any_class: Optional[str] = None

    def compact(self, iri: str) -> str:
        return self.pm.compact(iri) or iri

    def _any_range(self) -> str:
        if self.any_class is None:
            self.any_class = unique_name("Any", self.taken)
            self.taken.add(self.any_class)
        return self.any_class

    def _enum_range(self, vt: EnumerationType, shape_name: str, field_name: str) -> str:
        name = vt.name
        if name is not None and self._enum_types.get(name) == vt:
            return name
        if name is None or name in self.taken:
            name = unique_name(name or _enum_name(shape_name, field_name), self.taken)
        self.taken.add(name)
        self._enum_types[name] = vt

        pvs: dict[str, dict] = {}
        for value in vt.values:
            if vt.iri:
                text = unique_name(local_name(value), pvs)
                pvs[text] = {"meaning": self.compact(value)}
            else:
                pvs[value] = {}
        self.enums[name] = {"permissible_values": pvs}
        return name

    def _type_range(self, datatype: str) -> str:
        if datatype not in self._type_names:
            name = unique_name(_element_name(datatype), self.taken)
            self.taken.add(name)
            self._type_names[datatype] = name
            self.types[name] = {"uri": self.compact(datatype), "base": "str", "typeof": "string"}
        return self._type_names[datatype]

    def _range(self, f: FieldConstraint, shape_name: str, tags: dict) -> str:
        vt = f.value_type
        if isinstance(vt, ShapeReference):
            if vt.external:
                tags[EXTERNAL_REF_TAG] = vt.shape_id
                return _element_name(vt.shape_id)
            return self.class_names[vt.shape_id]
        if isinstance(vt, EnumerationType):
            return self._enum_range(vt, shape_name, f.name)
        if isinstance(vt, ScalarType):
            if vt.datatype is not None:
                return self._type_range(vt.datatype)
            if vt.kind in TYPE_FOR_SCALAR:
                return TYPE_FOR_SCALAR[vt.kind]
            if vt.kind.value in TAGGED_NODE_KINDS:
                tags[NODE_KIND_TAG] = vt.kind.value
                return self._any_range()
            if vt.kind is ScalarKind.ANY:
                return self._any_range()
            raise UnrepresentableConstraint(f"scalar kind {vt.kind.value}", TARGET)
        raise UnrepresentableConstraint(f"value type {vt!r}", TARGET)

    def _slot(self, f: FieldConstraint, shape_name: str) -> dict:
        slot: dict[str, Any] = {}
        if f.description is not None:
            slot["description"] = f.description
        if f.predicate is not None:
            slot["slot_uri"] = self.compact(f.predicate)

        tags: dict[str, Any] = {}
        slot["range"] = self._range(f, shape_name, tags)

        card = f.cardinality
        if card.min >= 1:
            slot["required"] = True
        if card.is_multivalued:
            slot["multivalued"] = True
        if card.min > 1:
            slot["minimum_cardinality"] = card.min
        if card.max != UNBOUNDED and (card.max > 1 or card.max == 0):
            slot["maximum_cardinality"] = card.max

        for facet in f.facets:
            if facet.kind in _FACET_KEYS:
                slot[_FACET_KEYS[facet.kind]] = facet.value
            elif facet.kind in _FACET_TAGS:
                tags[_FACET_TAGS[facet.kind]] = facet.value
            else:
                raise UnrepresentableConstraint(f"facet {facet.kind.value}", TARGET)

        keys, annotations = _split_bag(f.annotations)
        annotations.update(tags)
        if annotations:
            slot["annotations"] = annotations
        for key, value in keys.items():
            slot.setdefault(key, value)
        return slot

    def _class(self, shape: ShapeDefinition) -> dict:
        name = self.class_names[shape.id]
        cls: dict[str, Any] = {}
        if shape.id != name:
            cls["class_uri"] = self.compact(shape.id)
        if shape.label is not None:
            cls["title"] = shape.label
        if shape.description is not None:
            cls["description"] = shape.description
        if shape.parent is not None:
            cls["is_a"] = self.class_names[shape.parent]
        if self.graph.start == shape.id:
            cls["tree_root"] = True

        keys, annotations = _split_bag(shape.annotations)
        if shape.closed:
            annotations[CLOSED_TAG] = True
        if annotations:
            cls["annotations"] = annotations
        if shape.fields:
            cls["attributes"] = {f.name: self._slot(f, name) for f in shape.fields}
        for key, value in keys.items():
            cls.setdefault(key, value)
        return cls

    def export(self) -> dict:
        classes = {self.class_names[s.id]: self._class(s) for s in self.graph.sorted_shapes()}
        if self.any_class is not None:
            classes[self.any_class] = {"class_uri": "linkml:Any"}

        prefixes = {p.name: p.iri for p in self.graph.prefixes}
        if "linkml" not in prefixes:
            prefixes["linkml"] = LINKML_NS
        name = self.graph.name or (
            _element_name(self.graph.id) if self.graph.id else "schema"
        )

        doc: dict[str, Any] = {
            "id": self.graph.id or self.settings.linkml_id_base + name,
            "name": name,
            "prefixes": prefixes,
            "imports": ["linkml:types"],
            "default_range": "string",
        }
        if self.types:
            doc["types"] = self.types
        if self.enums:
            doc["enums"] = self.enums
        doc["classes"] = classes
        return doc


def convert_canonical_to_linkml(
    graph: SchemaGraph, settings: Optional[TranslatorSettings] = None
) -> dict:
    """Convert a canonical schema graph to a LinkML document mapping.

    Args:
        graph: The canonical schema to convert.
        settings: Translator settings (base IRI for a generated schema id).

    Returns:
        Mapping ready for :func:`shexlink_py.serializer.yaml_serializer.serialize_yaml`.
    """
    settings = settings or get_settings()
    doc = _LinkMLExporter(graph, settings).export()
    logger.debug("linkml.exported", classes=len(doc["classes"]))
    return doc

