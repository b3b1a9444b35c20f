"""ShEx data model (Shape, TripleConstraint, NodeConstraint, etc.).

This is the abstract syntax produced by the ShExC parser and consumed by the
ShExC serializer. It can express more than the conjunctive subset (OneOf,
grouped cardinality) so the converter can reject those with a location.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from shexlink_py.schema.common import Cardinality, IriValue, LiteralValue, NodeKind, Prefix


@dataclass
class Annotation:
    """``// predicate object`` annotation."""
    predicate: str
    object: Union[IriValue, LiteralValue]


@dataclass
class SemAct:
    """Semantic action ``%name{ code %}``."""
    name: str
    code: Optional[str] = None


@dataclass
class NodeConstraint:
    datatype: Optional[str] = None
    node_kind: Optional[NodeKind] = None
    values: Optional[list[Union[IriValue, LiteralValue]]] = None  # value set [v1 v2 ...]
    pattern: Optional[str] = None
    length: Optional[int] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min_inclusive: Optional[Union[int, float]] = None
    max_inclusive: Optional[Union[int, float]] = None


@dataclass
class ShapeRef:
    """Reference to another shape: @<ShapeName>"""
    name: str


@dataclass
class TripleConstraint:
    predicate: str
    constraint: Optional[Union[NodeConstraint, ShapeRef, Shape]] = None
    cardinality: Cardinality = field(default_factory=Cardinality)
    annotations: list[Annotation] = field(default_factory=list)
    semacts: list[SemAct] = field(default_factory=list)
    location: Optional[str] = None


@dataclass
class EachOf:
    """Conjunction of triple expressions (;-separated in ShExC)."""
    expressions: list[Union[TripleConstraint, EachOf, OneOf]] = field(
        default_factory=list
    )
    cardinality: Optional[Cardinality] = None  # set only for ( ... ){m,n} groups
    location: Optional[str] = None


@dataclass
class OneOf:
    """Disjunction of triple expressions (|-separated in ShExC)."""
    expressions: list[Union[TripleConstraint, EachOf, OneOf]] = field(
        default_factory=list
    )
    location: Optional[str] = None


@dataclass
class Shape:
    """A shape body ``{ ... }``; ``name`` is empty for inline shapes."""
    name: str = ""
    expression: Optional[Union[EachOf, OneOf, TripleConstraint]] = None
    closed: bool = False
    node_kind: Optional[str] = None  # IRI, BNODE or NONLITERAL before the body
    extra: list[str] = field(default_factory=list)  # EXTRA predicates
    extends: list[str] = field(default_factory=list)  # EXTENDS / AND @<Parent>
    annotations: list[Annotation] = field(default_factory=list)
    semacts: list[SemAct] = field(default_factory=list)
    location: Optional[str] = None


@dataclass
class ShExSchema:
    shapes: list[Shape] = field(default_factory=list)
    prefixes: list[Prefix] = field(default_factory=list)
    base: Optional[str] = None
    start: Optional[str] = None  # start = @<Shape>
