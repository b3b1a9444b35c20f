"""Canonical Schema Model (CSM): the language-neutral schema representation.

Every importer builds a :class:`SchemaGraph` through a :class:`SchemaBuilder`
and every exporter and the auditor only read it. All model classes are
frozen; collections are stored as tuples so a built graph cannot change.

Shape references are identifiers resolved against the owning graph, never
embedded copies, so self-referential and mutually recursive shapes need no
special handling.
"""
from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, Optional, Union

from rdflib.namespace import XSD

from shexlink_py.errors import ParseError, UnresolvedReference, UnsupportedConstruct
from shexlink_py.schema.common import Cardinality, NodeKind, Prefix


class ScalarKind(Enum):
    STRING = "string"
    INTEGER = "integer"
    DECIMAL = "decimal"
    FLOAT = "float"
    DOUBLE = "double"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIME = "time"
    URI = "uri"
    IRI = "iri"
    BNODE = "bnode"
    NONLITERAL = "nonliteral"
    LITERAL = "literal"
    ANY = "any"


XSD_DATATYPES = {
    ScalarKind.STRING: str(XSD.string),
    ScalarKind.INTEGER: str(XSD.integer),
    ScalarKind.DECIMAL: str(XSD.decimal),
    ScalarKind.FLOAT: str(XSD.float),
    ScalarKind.DOUBLE: str(XSD.double),
    ScalarKind.BOOLEAN: str(XSD.boolean),
    ScalarKind.DATE: str(XSD.date),
    ScalarKind.DATETIME: str(XSD.dateTime),
    ScalarKind.TIME: str(XSD.time),
    ScalarKind.URI: str(XSD.anyURI),
}

SCALAR_FOR_DATATYPE = {iri: kind for kind, iri in XSD_DATATYPES.items()}

# Scalar kinds that constrain the RDF term type rather than a datatype
NODE_KIND_SCALARS = {
    ScalarKind.IRI: NodeKind.IRI,
    ScalarKind.BNODE: NodeKind.BLANK_NODE,
    ScalarKind.NONLITERAL: NodeKind.BLANK_NODE_OR_IRI,
    ScalarKind.LITERAL: NodeKind.LITERAL,
}

SCALAR_FOR_NODE_KIND = {nk: kind for kind, nk in NODE_KIND_SCALARS.items()}


@dataclass(frozen=True)
class ScalarType:
    """A scalar value; ``datatype`` is set only for ``LITERAL`` with a custom datatype."""

    kind: ScalarKind
    datatype: Optional[str] = None

    def __post_init__(self):
        if self.datatype is not None and self.kind is not ScalarKind.LITERAL:
            raise ValueError("Only LITERAL scalars carry an explicit datatype")

    def describe(self) -> str:
        if self.datatype:
            return f"literal^^<{self.datatype}>"
        return self.kind.value


def scalar_for_datatype(datatype: str) -> ScalarType:
    """Map a datatype IRI to a built-in scalar, or a LITERAL carrying the IRI."""
    kind = SCALAR_FOR_DATATYPE.get(datatype)
    if kind is not None:
        return ScalarType(kind)
    return ScalarType(ScalarKind.LITERAL, datatype)


@dataclass(frozen=True)
class EnumerationType:
    """An enumerated set of plain literals, or of IRIs when ``iri`` is set."""

    values: tuple[str, ...]
    iri: bool = False
    name: Optional[str] = field(default=None, compare=False)

    def __post_init__(self):
        values = tuple(self.values)
        if not values:
            raise ValueError("An enumeration needs at least one value")
        if len(set(values)) != len(values):
            raise ValueError(f"Duplicate enumeration values in {values!r}")
        object.__setattr__(self, "values", values)

    def __eq__(self, other):
        if not isinstance(other, EnumerationType):
            return NotImplemented
        return self.iri == other.iri and set(self.values) == set(other.values)

    def __hash__(self):
        return hash((frozenset(self.values), self.iri))

    def describe(self) -> str:
        kind = "iri-enum" if self.iri else "enum"
        return f"{kind}[{', '.join(sorted(self.values))}]"


@dataclass(frozen=True)
class ShapeReference:
    """Named, non-owning reference to a ShapeDefinition."""

    shape_id: str
    external: bool = False

    def describe(self) -> str:
        suffix = " (external)" if self.external else ""
        return f"@{self.shape_id}{suffix}"


ValueType = Union[ScalarType, EnumerationType, ShapeReference]


class FacetKind(Enum):
    PATTERN = "pattern"
    MIN_INCLUSIVE = "min_inclusive"
    MAX_INCLUSIVE = "max_inclusive"
    MIN_LENGTH = "min_length"
    MAX_LENGTH = "max_length"


_FACET_ORDER = {kind: i for i, kind in enumerate(FacetKind)}


@dataclass(frozen=True)
class Facet:
    kind: FacetKind
    value: Union[str, int, float]

    def __post_init__(self):
        if self.kind is FacetKind.PATTERN:
            if not isinstance(self.value, str):
                raise ValueError("pattern facet needs a string value")
        elif self.kind in (FacetKind.MIN_LENGTH, FacetKind.MAX_LENGTH):
            if isinstance(self.value, bool) or not isinstance(self.value, int) or self.value < 0:
                raise ValueError(f"{self.kind.value} facet needs a non-negative integer")
        elif isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise ValueError(f"{self.kind.value} facet needs a numeric value")

    def describe(self) -> str:
        return f"{self.kind.value}={self.value!r}"


class AnnotationBag(Mapping):
    """Ordered, immutable key/value bag for information with no structural home.

    Values are opaque JSON-compatible data. Equality ignores key order.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Union[Mapping, tuple, list] = ()):
        if isinstance(items, Mapping):
            items = list(items.items())
        pairs = []
        seen = set()
        for key, value in items:
            if not isinstance(key, str):
                raise TypeError(f"Annotation keys must be strings, got {key!r}")
            if key in seen:
                raise ValueError(f"Duplicate annotation key {key!r}")
            seen.add(key)
            pairs.append((key, copy.deepcopy(value)))
        self._items = tuple(pairs)

    def __getitem__(self, key: str) -> Any:
        for k, v in self._items:
            if k == key:
                return copy.deepcopy(v)
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return (k for k, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other):
        if not isinstance(other, Mapping):
            return NotImplemented
        return dict(self.items()) == dict(other.items())

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"AnnotationBag({dict(self._items)!r})"

    def to_dict(self) -> dict:
        return {k: copy.deepcopy(v) for k, v in self._items}

    def without(self, *keys: str) -> AnnotationBag:
        return AnnotationBag([(k, v) for k, v in self._items if k not in keys])


def _as_bag(value) -> AnnotationBag:
    if isinstance(value, AnnotationBag):
        return value
    return AnnotationBag(value or ())


@dataclass(frozen=True)
class FieldConstraint:
    """One property/slot of a shape."""

    name: str
    value_type: ValueType
    cardinality: Cardinality = field(default_factory=Cardinality)
    facets: tuple[Facet, ...] = ()
    predicate: Optional[str] = None
    description: Optional[str] = None
    annotations: AnnotationBag = field(default_factory=AnnotationBag)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Field name must not be empty")
        facets = tuple(sorted(self.facets, key=lambda f: (_FACET_ORDER[f.kind], str(f.value))))
        kinds = [f.kind for f in facets]
        if len(set(kinds)) != len(kinds):
            raise ValueError(f"Field {self.name!r} repeats a facet kind")
        if facets and isinstance(self.value_type, ShapeReference):
            raise ValueError(f"Field {self.name!r} puts facets on a shape reference")
        object.__setattr__(self, "facets", facets)
        object.__setattr__(self, "annotations", _as_bag(self.annotations))

    def facet(self, kind: FacetKind) -> Optional[Facet]:
        for f in self.facets:
            if f.kind is kind:
                return f
        return None

    def to_dict(self) -> dict:
        d: dict = {
            "name": self.name,
            "valueType": self.value_type.describe(),
            "cardinality": str(self.cardinality),
        }
        if self.facets:
            d["facets"] = {f.kind.value: f.value for f in self.facets}
        if self.predicate is not None:
            d["predicate"] = self.predicate
        if self.description is not None:
            d["description"] = self.description
        if self.annotations:
            d["annotations"] = self.annotations.to_dict()
        return d


@dataclass(frozen=True)
class ShapeDefinition:
    """One node type / record type."""

    id: str
    fields: tuple[FieldConstraint, ...] = ()
    label: Optional[str] = None
    description: Optional[str] = None
    parent: Optional[str] = None
    closed: bool = False
    annotations: AnnotationBag = field(default_factory=AnnotationBag)

    def __post_init__(self):
        if not self.id:
            raise ValueError("Shape id must not be empty")
        fields = tuple(self.fields)
        names = [f.name for f in fields]
        if len(set(names)) != len(names):
            dupes = sorted({n for n in names if names.count(n) > 1})
            raise ValueError(f"Shape {self.id!r} has duplicate field names: {dupes}")
        object.__setattr__(self, "fields", fields)
        object.__setattr__(self, "annotations", _as_bag(self.annotations))

    def get_field(self, name: str) -> Optional[FieldConstraint]:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def to_dict(self) -> dict:
        d: dict = {"id": self.id}
        if self.label is not None:
            d["label"] = self.label
        if self.description is not None:
            d["description"] = self.description
        if self.parent is not None:
            d["parent"] = self.parent
        d["closed"] = self.closed
        d["fields"] = [f.to_dict() for f in self.fields]
        if self.annotations:
            d["annotations"] = self.annotations.to_dict()
        return d


@dataclass(frozen=True)
class SchemaGraph:
    """Root of the canonical model: shapes keyed by unique identifier."""

    shapes: tuple[ShapeDefinition, ...] = ()
    prefixes: tuple[Prefix, ...] = ()
    id: Optional[str] = None
    name: Optional[str] = None
    start: Optional[str] = None
    _index: dict = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self):
        shapes = tuple(self.shapes)
        object.__setattr__(self, "shapes", shapes)
        object.__setattr__(self, "prefixes", tuple(self.prefixes))
        object.__setattr__(self, "_index", {s.id: s for s in shapes})

    def __iter__(self) -> Iterator[ShapeDefinition]:
        return iter(self.shapes)

    def __len__(self) -> int:
        return len(self.shapes)

    def __contains__(self, shape_id) -> bool:
        return shape_id in self._index

    def get(self, shape_id: str) -> Optional[ShapeDefinition]:
        return self._index.get(shape_id)

    @property
    def shape_ids(self) -> list[str]:
        return [s.id for s in self.shapes]

    def resolve(self, ref: ShapeReference) -> Optional[ShapeDefinition]:
        """Look up the target of a reference; None for external references."""
        if ref.external:
            return None
        return self._index.get(ref.shape_id)

    def ancestors(self, shape_id: str) -> list[str]:
        """Parent chain of a shape, nearest first."""
        chain: list[str] = []
        current = self._index.get(shape_id)
        while current is not None and current.parent is not None:
            if current.parent in chain:
                break
            chain.append(current.parent)
            current = self._index.get(current.parent)
        return chain

    def sorted_shapes(self) -> list[ShapeDefinition]:
        """Shapes ordered by identifier, the order every exporter writes."""
        return sorted(self.shapes, key=lambda s: s.id)

    def to_dict(self) -> dict:
        d: dict = {}
        if self.id is not None:
            d["id"] = self.id
        if self.start is not None:
            d["start"] = self.start
        d["shapes"] = [s.to_dict() for s in self.sorted_shapes()]
        return d


class SchemaBuilder:
    """Mutable accumulator used by importers; ``build()`` checks the invariants."""

    def __init__(self, id: Optional[str] = None, name: Optional[str] = None):
        self.id = id
        self.name = name
        self.start: Optional[str] = None
        self._prefixes: dict[str, Prefix] = {}
        self._shapes: dict[str, ShapeDefinition] = {}

    def add_prefix(self, name: str, iri: str) -> None:
        self._prefixes[name] = Prefix(name, iri)

    def has_shape(self, shape_id: str) -> bool:
        return shape_id in self._shapes

    @property
    def shape_ids(self) -> list[str]:
        return list(self._shapes)

    def add_shape(self, shape: ShapeDefinition, location: Optional[str] = None) -> None:
        if shape.id in self._shapes:
            raise ParseError(location, f"Duplicate shape identifier {shape.id!r}")
        self._shapes[shape.id] = shape

    def build(self) -> SchemaGraph:
        shapes = list(self._shapes.values())
        for shape in shapes:
            if shape.parent is not None and shape.parent not in self._shapes:
                raise UnresolvedReference(shape.parent)
            for f in shape.fields:
                ref = f.value_type
                if isinstance(ref, ShapeReference) and not ref.external:
                    if ref.shape_id not in self._shapes:
                        raise UnresolvedReference(ref.shape_id, f.name)
        if self.start is not None and self.start not in self._shapes:
            raise UnresolvedReference(self.start)
        self._check_required_cycles()
        return SchemaGraph(
            shapes=tuple(shapes),
            prefixes=tuple(self._prefixes.values()),
            id=self.id,
            name=self.name,
            start=self.start,
        )

    def _required_edges(self, shape: ShapeDefinition) -> list[str]:
        edges = []
        if shape.parent is not None:
            edges.append(shape.parent)
        for f in shape.fields:
            ref = f.value_type
            if isinstance(ref, ShapeReference) and not ref.external and f.cardinality.min >= 1:
                edges.append(ref.shape_id)
        return edges

    def _check_required_cycles(self) -> None:
        """Reject reference cycles in which every edge is mandatory.

        Such a cycle has no finite instance (no base case). Cycles broken by
        an optional edge are fine.
        """
        WHITE, GREY, BLACK = 0, 1, 2
        colour = {sid: WHITE for sid in self._shapes}

        def visit(sid: str, path: list[str]) -> None:
            colour[sid] = GREY
            path.append(sid)
            for target in self._required_edges(self._shapes[sid]):
                if colour[target] == GREY:
                    cycle = path[path.index(target):] + [target]
                    raise UnsupportedConstruct(
                        "recursive shape reference without base case",
                        " -> ".join(cycle),
                    )
                if colour[target] == WHITE:
                    visit(target, path)
            path.pop()
            colour[sid] = BLACK

        for sid in sorted(self._shapes):
            if colour[sid] == WHITE:
                visit(sid, [])
