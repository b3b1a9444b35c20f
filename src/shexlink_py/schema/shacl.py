"""SHACL data model (NodeShape, PropertyShape, etc.)."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union

from shexlink_py.schema.common import IriValue, LiteralValue, NodeKind, Prefix

Term = Union[IriValue, LiteralValue]


@dataclass
class PropertyShape:
    path: str
    name: Optional[str] = None  # sh:name
    description: Optional[str] = None  # sh:description
    order: Optional[Union[int, float]] = None  # sh:order
    datatype: Optional[str] = None
    class_: Optional[str] = None
    node_kind: Optional[NodeKind] = None
    min_count: Optional[int] = None
    max_count: Optional[int] = None
    pattern: Optional[str] = None
    min_inclusive: Optional[Union[int, float]] = None
    max_inclusive: Optional[Union[int, float]] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    has_value: Optional[Term] = None
    in_values: Optional[list[Term]] = None
    node: Optional[str] = None  # sh:node reference to another shape
    annotations: list[tuple[str, Term]] = field(default_factory=list)


@dataclass
class NodeShape:
    iri: str
    target_class: Optional[str] = None
    properties: list[PropertyShape] = field(default_factory=list)
    closed: bool = False
    ignored_properties: list[str] = field(default_factory=list)
    node: list[str] = field(default_factory=list)  # shape-level sh:node
    label: Optional[str] = None  # rdfs:label
    comment: Optional[str] = None  # rdfs:comment
    annotations: list[tuple[str, Term]] = field(default_factory=list)


@dataclass
class SHACLSchema:
    shapes: list[NodeShape] = field(default_factory=list)
    prefixes: list[Prefix] = field(default_factory=list)
