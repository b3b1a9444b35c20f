"""Serialize SHACL model to Turtle string using rdflib."""
from __future__ import annotations

import rdflib
from rdflib import BNode, Graph, Namespace, URIRef
from rdflib.collection import Collection
from rdflib.namespace import RDF, RDFS, SH, XSD

from shexlink_py.schema.common import IriValue, NodeKind, encode_iri
from shexlink_py.schema.shacl import NodeShape, PropertyShape, SHACLSchema, Term

NODE_KIND_MAP = {
    NodeKind.IRI: SH.IRI,
    NodeKind.BLANK_NODE: SH.BlankNode,
    NodeKind.LITERAL: SH.Literal,
    NodeKind.BLANK_NODE_OR_IRI: SH.BlankNodeOrIRI,
    NodeKind.BLANK_NODE_OR_LITERAL: SH.BlankNodeOrLiteral,
    NodeKind.IRI_OR_LITERAL: SH.IRIOrLiteral,
}


def _uri(iri: str) -> URIRef:
    return URIRef(encode_iri(iri))


def _value_to_rdf(val: Term) -> rdflib.term.Node:
    if isinstance(val, IriValue):
        return _uri(val.iri)
    dt = _uri(val.datatype) if val.datatype else None
    return rdflib.Literal(val.value, datatype=dt, lang=val.language)


class _BlankNodes:
    """Hands out blank node ids that depend only on position in the schema."""

    def __init__(self, shape_index: int):
        self.prefix = f"s{shape_index:04d}"
        self.count = 0

    def new(self) -> BNode:
        node = BNode(f"{self.prefix}b{self.count:04d}")
        self.count += 1
        return node


def _add_list(g: Graph, bnodes: _BlankNodes, items: list) -> BNode:
    head = bnodes.new()
    Collection(g, head, items)
    # Collection mints random ids for the tail cells; rename them
    node = head
    while True:
        rest = g.value(node, RDF.rest)
        if rest is None or rest == RDF.nil:
            break
        stable = bnodes.new()
        for p, o in list(g.predicate_objects(rest)):
            g.remove((rest, p, o))
            g.add((stable, p, o))
        g.remove((node, RDF.rest, rest))
        g.add((node, RDF.rest, stable))
        node = stable
    return head


def _add_property_shape(g: Graph, shape_node: URIRef, ps: PropertyShape,
                        bnodes: _BlankNodes):
    """Add a property shape as a blank node to the graph."""
    prop = bnodes.new()
    g.add((shape_node, SH.property, prop))
    g.add((prop, SH.path, _uri(ps.path)))

    if ps.name is not None:
        g.add((prop, SH.name, rdflib.Literal(ps.name)))

    if ps.description is not None:
        g.add((prop, SH.description, rdflib.Literal(ps.description)))

    if ps.order is not None:
        g.add((prop, SH.order, rdflib.Literal(ps.order)))

    if ps.datatype:
        g.add((prop, SH.datatype, _uri(ps.datatype)))

    if ps.class_:
        g.add((prop, SH["class"], _uri(ps.class_)))

    if ps.node_kind:
        g.add((prop, SH.nodeKind, NODE_KIND_MAP[ps.node_kind]))

    if ps.min_count is not None:
        g.add((prop, SH.minCount, rdflib.Literal(ps.min_count)))

    if ps.max_count is not None:
        g.add((prop, SH.maxCount, rdflib.Literal(ps.max_count)))

    if ps.pattern is not None:
        g.add((prop, SH.pattern, rdflib.Literal(ps.pattern)))

    if ps.min_inclusive is not None:
        g.add((prop, SH.minInclusive, rdflib.Literal(ps.min_inclusive)))

    if ps.max_inclusive is not None:
        g.add((prop, SH.maxInclusive, rdflib.Literal(ps.max_inclusive)))

    if ps.min_length is not None:
        g.add((prop, SH.minLength, rdflib.Literal(ps.min_length)))

    if ps.max_length is not None:
        g.add((prop, SH.maxLength, rdflib.Literal(ps.max_length)))

    if ps.has_value is not None:
        g.add((prop, SH.hasValue, _value_to_rdf(ps.has_value)))

    if ps.in_values is not None:
        items = [_value_to_rdf(v) for v in ps.in_values]
        g.add((prop, SH["in"], _add_list(g, bnodes, items)))

    if ps.node:
        g.add((prop, SH.node, _uri(ps.node)))

    for key, value in ps.annotations:
        g.add((prop, _uri(key), _value_to_rdf(value)))


def _add_node_shape(g: Graph, shape: NodeShape, bnodes: _BlankNodes):
    shape_uri = _uri(shape.iri)
    g.add((shape_uri, RDF.type, SH.NodeShape))

    if shape.label is not None:
        g.add((shape_uri, RDFS.label, rdflib.Literal(shape.label)))

    if shape.comment is not None:
        g.add((shape_uri, RDFS.comment, rdflib.Literal(shape.comment)))

    if shape.target_class:
        g.add((shape_uri, SH.targetClass, _uri(shape.target_class)))

    for parent in shape.node:
        g.add((shape_uri, SH.node, _uri(parent)))

    if shape.closed:
        g.add((shape_uri, SH.closed, rdflib.Literal(True)))

    if shape.ignored_properties:
        items = [_uri(ip) for ip in shape.ignored_properties]
        g.add((shape_uri, SH.ignoredProperties, _add_list(g, bnodes, items)))

    for key, value in shape.annotations:
        g.add((shape_uri, _uri(key), _value_to_rdf(value)))

    for ps in shape.properties:
        _add_property_shape(g, shape_uri, ps, bnodes)


def serialize_shacl(schema: SHACLSchema) -> str:
    """Serialize a SHACLSchema to Turtle string.

    Args:
        schema: The SHACL schema to serialize.

    Returns:
        Turtle format string.
    """
    # No rdflib default bindings: only the prefixes the schema declares
    g = Graph(bind_namespaces="none")
    g.bind("sh", SH)
    g.bind("rdf", RDF)
    g.bind("rdfs", RDFS)
    g.bind("xsd", XSD)
    for pfx in schema.prefixes:
        if pfx.name:
            g.bind(pfx.name, Namespace(pfx.iri), override=True, replace=True)

    for i, shape in enumerate(schema.shapes):
        _add_node_shape(g, shape, _BlankNodes(i))

    return g.serialize(format="turtle")
