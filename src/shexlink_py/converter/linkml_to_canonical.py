"""Convert a LinkML schema document to the canonical schema model.

Mapping rules:
- class → shape (id from ``class_uri``, else the class name); ``is_a`` or a
  single mixin → parent
- ``attributes`` and ``slots`` (with ``slot_usage`` overrides) → fields
- ``required`` / ``multivalued`` / ``*_cardinality`` → cardinality
- ``range`` → built-in type, declared type, enum, class or ``linkml:Any``
- ``pattern`` / ``minimum_value`` / ``maximum_value`` → facets; length
  facets, node kinds, ``closed`` and external references travel as
  ``shexlink.*`` annotations
- ``annotations`` and any other element key → annotation bag
"""
from __future__ import annotations

from typing import Any, Optional

from shexlink_py.errors import ParseError, UnresolvedReference, UnsupportedConstruct
from shexlink_py.logging import get_logger
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
    ValueType,
    scalar_for_datatype,
)
from shexlink_py.schema.common import (
    STANDARD_PREFIXES,
    UNBOUNDED,
    Cardinality,
    Prefix,
    PrefixMap,
)

logger = get_logger(__name__)

LINKML_NS = "https://w3id.org/linkml/"
LINKML_ANY = "linkml:Any"

WELL_KNOWN = PrefixMap(
    [Prefix(name, iri) for name, iri in STANDARD_PREFIXES.items()] + [Prefix("linkml", LINKML_NS)]
)

# Reserved annotation tags for CSM content LinkML has no slot for
NODE_KIND_TAG = "shexlink.node_kind"
MIN_LENGTH_TAG = "shexlink.min_length"
MAX_LENGTH_TAG = "shexlink.max_length"
CLOSED_TAG = "shexlink.closed"
EXTERNAL_REF_TAG = "shexlink.external_ref"
SLOT_TAGS = (NODE_KIND_TAG, MIN_LENGTH_TAG, MAX_LENGTH_TAG, EXTERNAL_REF_TAG)

UNKNOWN_KEY_PREFIX = "linkml:"

BUILTIN_TYPES = {
    "string": ScalarKind.STRING,
    "integer": ScalarKind.INTEGER,
    "decimal": ScalarKind.DECIMAL,
    "float": ScalarKind.FLOAT,
    "double": ScalarKind.DOUBLE,
    "boolean": ScalarKind.BOOLEAN,
    "date": ScalarKind.DATE,
    "datetime": ScalarKind.DATETIME,
    "time": ScalarKind.TIME,
    "uri": ScalarKind.URI,
    "uriorcurie": ScalarKind.IRI,
}

# Built-ins with no dedicated kind fold onto the closest one
BUILTIN_ALIASES = {
    "str": "string",
    "int": "integer",
    "bool": "boolean",
    "ncname": "string",
    "curie": "uriorcurie",
    "objectidentifier": "uriorcurie",
    "nodeidentifier": "uriorcurie",
    "date_or_datetime": "datetime",
}

# Node kinds carried by NODE_KIND_TAG (the rest have a LinkML type)
TAGGED_NODE_KINDS = {
    ScalarKind.BNODE.value: ScalarKind.BNODE,
    ScalarKind.NONLITERAL.value: ScalarKind.NONLITERAL,
    ScalarKind.LITERAL.value: ScalarKind.LITERAL,
}

UNSUPPORTED_KEYS = (
    "any_of", "exactly_one_of", "none_of", "all_of", "union_of", "rules",
    "disjoint_with",
)

CLASS_KEYS = {
    "is_a", "mixins", "slots", "attributes", "slot_usage", "class_uri",
    "title", "description", "annotations", "tree_root", "name",
}

SLOT_KEYS = {
    "range", "required", "multivalued", "minimum_cardinality",
    "maximum_cardinality", "exact_cardinality", "slot_uri", "description",
    "pattern", "minimum_value", "maximum_value", "annotations", "name",
}


def _mapping(value: Any, what: str, where: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ParseError(where, f"{what} must be a mapping")
    return value


def _non_negative_int(value: Any, what: str, where: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ParseError(where, f"{what} must be a non-negative integer, got {value!r}")
    return value


def _annotation_items(element: dict, where: str) -> list[tuple[str, Any]]:
    """LinkML ``annotations`` (plain or ``tag``/``value`` form) as bag items."""
    annotations = element.get("annotations")
    if annotations is None:
        return []
    if not isinstance(annotations, dict):
        raise ParseError(where, "annotations must be a mapping")
    items = []
    for tag, value in annotations.items():
        if isinstance(value, dict) and set(value) <= {"tag", "value"} and "value" in value:
            value = value["value"]
        items.append((str(tag), value))
    return items


def _unknown_items(element: dict, known: set) -> list[tuple[str, Any]]:
    return [(UNKNOWN_KEY_PREFIX + str(k), v) for k, v in element.items() if k not in known]


def _check_supported(element: dict, where: str):
    for key in UNSUPPORTED_KEYS:
        if element.get(key):
            raise UnsupportedConstruct(key, where)


def _prefixes(doc: dict) -> list[Prefix]:
    prefixes = []
    for name, value in _mapping(doc.get("prefixes"), "prefixes", "prefixes").items():
        if isinstance(value, dict):
            value = value.get("prefix_reference")
        if not isinstance(value, str):
            raise ParseError("prefixes", f"Invalid prefix reference for {name!r}")
        prefixes.append(Prefix(str(name), value))
    return prefixes


class _LinkMLConverter:
    def __init__(self, doc: dict, allow_external: bool):
        self.doc = doc
        self.allow_external = allow_external
        self.prefixes = _prefixes(doc)
        self.pm = PrefixMap(self.prefixes)
        self.classes = _mapping(doc.get("classes"), "classes", "classes")
        self.slots = _mapping(doc.get("slots"), "slots", "slots")
        self.types = _mapping(doc.get("types"), "types", "types")
        self.enums = _mapping(doc.get("enums"), "enums", "enums")
        self.default_range = doc.get("default_range") or "string"
        self.any_classes = {
            name for name, cls in self.classes.items()
            if isinstance(cls, dict) and self.expand(cls.get("class_uri")) == LINKML_NS + "Any"
        }
        self.class_ids = {
            name: self._class_id(name, cls)
            for name, cls in self.classes.items() if name not in self.any_classes
        }
        self._enum_cache: dict[str, EnumerationType] = {}

    def expand(self, curie: Optional[str]) -> Optional[str]:
        if curie is None:
            return None
        return self.pm.expand(curie) or WELL_KNOWN.expand(curie) or curie

    def _class_id(self, name: str, cls: Any) -> str:
        cls = _mapping(cls, "class definition", f"class {name!r}")
        uri = cls.get("class_uri")
        return self.expand(uri) if uri else str(name)

    # Ranges

    def _type_scalar(self, name: str, seen: tuple = ()) -> ScalarType:
        where = f"type {name!r}"
        if name in seen:
            raise ParseError(where, "circular typeof chain")
        typ = _mapping(self.types[name], "type definition", where)
        if typ.get("uri"):
            return scalar_for_datatype(self.expand(typ["uri"]))
        parent = typ.get("typeof")
        if parent is None:
            raise ParseError(where, "type needs a uri or a typeof")
        return self._range_scalar(parent, seen + (name,), where)

    def _range_scalar(self, name: str, seen: tuple, where: str) -> ScalarType:
        if name in self.types:
            return self._type_scalar(name, seen)
        builtin = BUILTIN_ALIASES.get(name, name)
        if builtin in BUILTIN_TYPES:
            return ScalarType(BUILTIN_TYPES[builtin])
        raise ParseError(where, f"Unknown type {name!r}")

    def _enum(self, name: str) -> EnumerationType:
        if name in self._enum_cache:
            return self._enum_cache[name]
        where = f"enum {name!r}"
        enum = _mapping(self.enums[name], "enum definition", where)
        _check_supported(enum, where)
        pvs = enum.get("permissible_values")
        if isinstance(pvs, list):
            pvs = {str(v): None for v in pvs}
        pvs = _mapping(pvs, "permissible_values", where)
        if not pvs:
            raise ParseError(where, "enum without permissible values")
        meanings = []
        for text, pv in pvs.items():
            pv = _mapping(pv, "permissible value", f"{where}, value {text!r}")
            meanings.append(pv.get("meaning"))
        try:
            if all(m is not None for m in meanings):
                result = EnumerationType(tuple(self.expand(m) for m in meanings), iri=True, name=name)
            elif all(m is None for m in meanings):
                result = EnumerationType(tuple(str(t) for t in pvs), name=name)
            else:
                raise UnsupportedConstruct("enum mixing meanings and plain values", where)
        except ValueError as e:
            raise ParseError(where, str(e)) from e
        self._enum_cache[name] = result
        return result

    def _value_type(self, slot: dict, reserved: dict, name: str, where: str) -> ValueType:
        external = reserved.get(EXTERNAL_REF_TAG)
        if external is not None:
            if not isinstance(external, str):
                raise ParseError(where, f"{EXTERNAL_REF_TAG} must be a string")
            return ShapeReference(external, external=True)
        node_kind = reserved.get(NODE_KIND_TAG)
        if node_kind is not None:
            if node_kind not in TAGGED_NODE_KINDS:
                raise ParseError(where, f"Unknown {NODE_KIND_TAG} value {node_kind!r}")
            return ScalarType(TAGGED_NODE_KINDS[node_kind])

        rng = slot.get("range") or self.default_range
        if not isinstance(rng, str):
            raise ParseError(where, f"range must be a name, got {rng!r}")
        if rng in self.any_classes or rng == LINKML_ANY:
            return ScalarType(ScalarKind.ANY)
        if rng in self.class_ids:
            return ShapeReference(self.class_ids[rng])
        if rng in self.enums:
            return self._enum(rng)
        if rng in self.types or BUILTIN_ALIASES.get(rng, rng) in BUILTIN_TYPES:
            return self._range_scalar(rng, (), where)
        if self.allow_external:
            return ShapeReference(self.expand(rng), external=True)
        raise UnresolvedReference(rng, name)

    # Slots

    def _cardinality(self, slot: dict, where: str) -> Cardinality:
        lo = 1 if slot.get("required") else 0
        hi = UNBOUNDED if slot.get("multivalued") else 1
        if slot.get("exact_cardinality") is not None:
            lo = hi = _non_negative_int(slot["exact_cardinality"], "exact_cardinality", where)
        if slot.get("minimum_cardinality") is not None:
            lo = _non_negative_int(slot["minimum_cardinality"], "minimum_cardinality", where)
        if slot.get("maximum_cardinality") is not None:
            hi = _non_negative_int(slot["maximum_cardinality"], "maximum_cardinality", where)
        return Cardinality(min=lo, max=hi)

    def _facets(self, slot: dict, reserved: dict, where: str) -> list[Facet]:
        facets = []
        if slot.get("pattern") is not None:
            facets.append(Facet(FacetKind.PATTERN, slot["pattern"]))
        if slot.get("minimum_value") is not None:
            facets.append(Facet(FacetKind.MIN_INCLUSIVE, slot["minimum_value"]))
        if slot.get("maximum_value") is not None:
            facets.append(Facet(FacetKind.MAX_INCLUSIVE, slot["maximum_value"]))
        if reserved.get(MIN_LENGTH_TAG) is not None:
            facets.append(Facet(FacetKind.MIN_LENGTH,
                                _non_negative_int(reserved[MIN_LENGTH_TAG], MIN_LENGTH_TAG, where)))
        if reserved.get(MAX_LENGTH_TAG) is not None:
            facets.append(Facet(FacetKind.MAX_LENGTH,
                                _non_negative_int(reserved[MAX_LENGTH_TAG], MAX_LENGTH_TAG, where)))
        return facets

    def _convert_slot(self, name: str, slot: dict, where: str) -> FieldConstraint:
        _check_supported(slot, where)
        annotations = []
        reserved = {}
        for tag, value in _annotation_items(slot, where):
            if tag in SLOT_TAGS:
                reserved[tag] = value
            else:
                annotations.append((tag, value))
        annotations.extend(_unknown_items(slot, SLOT_KEYS))

        value_type = self._value_type(slot, reserved, name, where)
        try:
            return FieldConstraint(
                name=str(name),
                value_type=value_type,
                cardinality=self._cardinality(slot, where),
                facets=tuple(self._facets(slot, reserved, where)),
                predicate=self.expand(slot.get("slot_uri")),
                description=slot.get("description"),
                annotations=AnnotationBag(annotations),
            )
        except (ValueError, TypeError) as e:
            raise ParseError(where, str(e)) from e

    def _class_slots(self, cls: dict, where: str) -> list[tuple[str, dict]]:
        """Own slots of a class in declaration order, usage overrides applied."""
        usage = _mapping(cls.get("slot_usage"), "slot_usage", where)
        result: dict[str, dict] = {}
        slot_names = cls.get("slots") or []
        if not isinstance(slot_names, list):
            raise ParseError(where, "slots must be a list of slot names")
        for sname in slot_names:
            if sname not in self.slots:
                raise ParseError(where, f"Undefined slot {sname!r}")
            result[sname] = dict(_mapping(self.slots[sname], "slot definition", f"slot {sname!r}"))
        for sname, attr in _mapping(cls.get("attributes"), "attributes", where).items():
            if sname in result:
                raise ParseError(where, f"Slot {sname!r} declared twice")
            result[sname] = dict(_mapping(attr, "attribute definition", f"{where}, slot {sname!r}"))
        for sname, override in usage.items():
            override = _mapping(override, "slot_usage entry", f"{where}, slot {sname!r}")
            if sname not in result:
                # usage of an inherited slot narrows it locally
                base = self.slots.get(sname)
                result[sname] = dict(_mapping(base, "slot definition", f"slot {sname!r}"))
            result[sname].update(override)
        return list(result.items())

    # Classes

    def _parent(self, cls: dict, where: str) -> Optional[str]:
        is_a = cls.get("is_a")
        mixins = cls.get("mixins") or []
        if not isinstance(mixins, list):
            mixins = [mixins]
        if len(mixins) > 1 or (is_a and mixins):
            raise UnsupportedConstruct("multiple inheritance", where)
        parent = is_a or (mixins[0] if mixins else None)
        if parent is None:
            return None
        if parent not in self.class_ids:
            raise UnresolvedReference(str(parent))
        return self.class_ids[parent]

    def _convert_class(self, cname: str, cls: dict) -> ShapeDefinition:
        where = f"class {cname!r}"
        _check_supported(cls, where)
        fields = [
            self._convert_slot(sname, slot, f"{where}, slot {sname!r}")
            for sname, slot in self._class_slots(cls, where)
        ]

        closed = False
        annotations = []
        for tag, value in _annotation_items(cls, where):
            if tag == CLOSED_TAG and isinstance(value, bool):
                closed = value
            else:
                annotations.append((tag, value))
        annotations.extend(_unknown_items(cls, CLASS_KEYS))
        try:
            return ShapeDefinition(
                id=self.class_ids[cname],
                fields=tuple(fields),
                label=cls.get("title"),
                description=cls.get("description"),
                parent=self._parent(cls, where),
                closed=closed,
                annotations=AnnotationBag(annotations),
            )
        except ValueError as e:
            raise ParseError(where, str(e)) from e

    def convert(self) -> SchemaGraph:
        builder = SchemaBuilder(id=self.doc.get("id"), name=self.doc.get("name"))
        for prefix in self.prefixes:
            builder.add_prefix(prefix.name, prefix.iri)
        for cname, cls in self.classes.items():
            if cname in self.any_classes:
                continue
            cls = _mapping(cls, "class definition", f"class {cname!r}")
            builder.add_shape(self._convert_class(cname, cls), f"class {cname!r}")
            if cls.get("tree_root"):
                if builder.start is not None:
                    raise ParseError(f"class {cname!r}", "More than one tree_root class")
                builder.start = self.class_ids[cname]
        return builder.build()


def convert_linkml_to_canonical(doc: dict, allow_external: bool = False) -> SchemaGraph:
    """Convert a loaded LinkML document to the canonical model.

    Args:
        doc: Mapping produced by :func:`shexlink_py.parser.linkml_parser.parse_linkml`.
        allow_external: Treat ranges naming no class, enum or type as external
            shape references instead of raising UnresolvedReference.
    """
    graph = _LinkMLConverter(doc, allow_external).convert()
    logger.debug("linkml.imported", shapes=len(graph))
    return graph
