"""Parse SHACL Turtle into the SHACL model using rdflib."""
from __future__ import annotations

import re
from decimal import Decimal
from typing import Optional, Union

import rdflib
from rdflib import BNode, Graph, URIRef
from rdflib.collection import Collection
from rdflib.namespace import RDF, RDFS, SH, XSD

from shexlink_py.errors import ParseError, UnsupportedConstruct
from shexlink_py.schema.common import IriValue, LiteralValue, NodeKind, Prefix, decode_iri
from shexlink_py.schema.shacl import NodeShape, PropertyShape, SHACLSchema, Term

# Relative IRIs in the document resolve against this base and are then
# turned back into relative identifiers.
RELATIVE_BASE = "http://shexlink.invalid/"

NODE_KIND_MAP = {
    SH.IRI: NodeKind.IRI,
    SH.BlankNode: NodeKind.BLANK_NODE,
    SH.Literal: NodeKind.LITERAL,
    SH.BlankNodeOrIRI: NodeKind.BLANK_NODE_OR_IRI,
    SH.BlankNodeOrLiteral: NodeKind.BLANK_NODE_OR_LITERAL,
    SH.IRIOrLiteral: NodeKind.IRI_OR_LITERAL,
}

UNSUPPORTED = {
    SH["or"]: "sh:or",
    SH.xone: "sh:xone",
    SH["not"]: "sh:not",
    SH["and"]: "sh:and",
    SH.sparql: "sh:sparql",
    SH.qualifiedValueShape: "sh:qualifiedValueShape",
    SH.minExclusive: "sh:minExclusive",
    SH.maxExclusive: "sh:maxExclusive",
    SH.flags: "sh:flags",
    SH.equals: "sh:equals",
    SH.disjoint: "sh:disjoint",
    SH.lessThan: "sh:lessThan",
    SH.lessThanOrEquals: "sh:lessThanOrEquals",
    SH.languageIn: "sh:languageIn",
    SH.uniqueLang: "sh:uniqueLang",
}

SHAPE_PREDICATES = {
    RDF.type, SH.targetClass, SH.closed, SH.ignoredProperties, SH.property,
    SH.node, RDFS.label, RDFS.comment,
}

PROPERTY_PREDICATES = {
    SH.path, SH.name, SH.description, SH.order, SH.datatype, SH["class"],
    SH.nodeKind, SH.minCount, SH.maxCount, SH.pattern, SH.minInclusive,
    SH.maxInclusive, SH.minLength, SH.maxLength, SH.hasValue, SH["in"], SH.node,
}

_PREFIX_RE = re.compile(r'(?:@prefix|PREFIX)\s+([A-Za-z][\w.-]*)?:\s*<([^>]*)>', re.IGNORECASE)

_NATIVE_DATATYPES = {XSD.integer, XSD.boolean, XSD.double, XSD.decimal}


def _uri_to_iri(uri) -> str:
    value = decode_iri(str(uri))
    if value.startswith(RELATIVE_BASE):
        return value[len(RELATIVE_BASE):]
    return value


def _rdf_to_value(node, where: str) -> Term:
    if isinstance(node, URIRef):
        return IriValue(_uri_to_iri(node))
    if isinstance(node, rdflib.Literal):
        if node.language:
            return LiteralValue(value=str(node), language=str(node.language))
        if node.datatype is None or node.datatype == XSD.string:
            return LiteralValue(value=str(node))
        if node.datatype in _NATIVE_DATATYPES:
            value = node.toPython()
            if isinstance(value, Decimal):
                value = float(value)
            if isinstance(value, (bool, int, float)):
                return LiteralValue(value=value)
        return LiteralValue(value=str(node), datatype=str(node.datatype))
    raise UnsupportedConstruct("blank node value", where)


def _parse_rdf_list(g: Graph, head) -> list:
    """Parse an RDF collection (list) starting at head."""
    if head is None or head == RDF.nil:
        return []
    return list(Collection(g, head))


def _int(node, what: str, where: str) -> Optional[int]:
    if node is None:
        return None
    value = node.toPython() if isinstance(node, rdflib.Literal) else None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ParseError(where, f"{what} must be a non-negative integer, got {node!r}")
    return value


def _number(node, what: str, where: str) -> Optional[Union[int, float]]:
    if node is None:
        return None
    value = node.toPython() if isinstance(node, rdflib.Literal) else None
    if isinstance(value, Decimal):
        value = float(value)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError(where, f"{what} must be numeric, got {node!r}")
    return value


def _check_supported(g: Graph, node, where: str):
    for pred, kind in UNSUPPORTED.items():
        if (node, pred, None) in g:
            raise UnsupportedConstruct(kind, where)


def _extra_annotations(g: Graph, node, handled: set, where: str) -> list[tuple[str, Term]]:
    """Triples on ``node`` the model has no slot for, in a stable order."""
    result = []
    for pred, obj in sorted(g.predicate_objects(node), key=lambda po: (str(po[0]), po[1].n3())):
        if pred in handled:
            continue
        result.append((_uri_to_iri(pred), _rdf_to_value(obj, where)))
    return result


def _parse_property_shape(g: Graph, prop_node, where: str) -> PropertyShape:
    """Parse a single property shape node."""
    _check_supported(g, prop_node, where)

    # sh:path
    path_node = g.value(prop_node, SH.path)
    if path_node is None:
        raise ParseError(where, "property shape without sh:path")
    if not isinstance(path_node, URIRef):
        raise UnsupportedConstruct("non-IRI property path", where)
    path = _uri_to_iri(path_node)
    where = f"{where}, path <{path}>"

    name = g.value(prop_node, SH.name)
    description = g.value(prop_node, SH.description)
    order = _number(g.value(prop_node, SH.order), "sh:order", where)

    # sh:datatype
    dt = g.value(prop_node, SH.datatype)
    datatype = _uri_to_iri(dt) if dt is not None else None

    # sh:class
    cls = g.value(prop_node, SH["class"])
    if cls is not None and not isinstance(cls, URIRef):
        raise UnsupportedConstruct("sh:class with a blank node", where)
    class_ = _uri_to_iri(cls) if cls is not None else None

    # sh:nodeKind
    nk = g.value(prop_node, SH.nodeKind)
    node_kind = None
    if nk is not None:
        if nk not in NODE_KIND_MAP:
            raise ParseError(where, f"Unknown sh:nodeKind {nk}")
        node_kind = NODE_KIND_MAP[nk]

    # sh:hasValue
    hv = g.value(prop_node, SH.hasValue)
    has_value = _rdf_to_value(hv, where) if hv is not None else None

    # sh:in
    in_head = g.value(prop_node, SH["in"])
    in_values = None
    if in_head is not None:
        in_values = [_rdf_to_value(item, where) for item in _parse_rdf_list(g, in_head)]

    # sh:node
    node_ref = g.value(prop_node, SH.node)
    if node_ref is not None and not isinstance(node_ref, URIRef):
        raise UnsupportedConstruct("sh:node with a blank node shape", where)
    node = _uri_to_iri(node_ref) if node_ref is not None else None

    pattern = g.value(prop_node, SH.pattern)

    return PropertyShape(
        path=path,
        name=str(name) if name is not None else None,
        description=str(description) if description is not None else None,
        order=order,
        datatype=datatype,
        class_=class_,
        node_kind=node_kind,
        min_count=_int(g.value(prop_node, SH.minCount), "sh:minCount", where),
        max_count=_int(g.value(prop_node, SH.maxCount), "sh:maxCount", where),
        pattern=str(pattern) if pattern is not None else None,
        min_inclusive=_number(g.value(prop_node, SH.minInclusive), "sh:minInclusive", where),
        max_inclusive=_number(g.value(prop_node, SH.maxInclusive), "sh:maxInclusive", where),
        min_length=_int(g.value(prop_node, SH.minLength), "sh:minLength", where),
        max_length=_int(g.value(prop_node, SH.maxLength), "sh:maxLength", where),
        has_value=has_value,
        in_values=in_values,
        node=node,
        annotations=_extra_annotations(g, prop_node, PROPERTY_PREDICATES, where),
    )


def _extract_prefixes(source: str) -> list[Prefix]:
    """Prefix declarations of the document, in declaration order."""
    prefixes: dict[str, Prefix] = {}
    for name, iri in _PREFIX_RE.findall(source):
        prefixes[name] = Prefix(name=name, iri=iri)
    return list(prefixes.values())


def parse_shacl(source: str, format: str = "turtle") -> SHACLSchema:
    """Parse a SHACL document into SHACLSchema.

    Args:
        source: Turtle (or other rdflib-supported) text.
        format: RDF format (default: turtle).

    Returns:
        SHACLSchema with parsed shapes and prefixes.

    Raises:
        ParseError: if rdflib cannot parse the document.
        UnsupportedConstruct: on SHACL features outside the conjunctive subset.
    """
    g = Graph()
    try:
        g.parse(data=source, format=format, publicID=RELATIVE_BASE)
    except Exception as e:
        raise ParseError(None, f"Invalid {format} document: {e}") from e

    shapes = []
    for shape_node in sorted(set(g.subjects(RDF.type, SH.NodeShape)), key=str):
        if isinstance(shape_node, BNode):
            raise UnsupportedConstruct("blank node shape")
        shape_iri = _uri_to_iri(shape_node)
        where = f"shape <{shape_iri}>"
        _check_supported(g, shape_node, where)

        # sh:targetClass
        tc = g.value(shape_node, SH.targetClass)
        target_class = _uri_to_iri(tc) if isinstance(tc, URIRef) else None

        # sh:closed
        closed_val = g.value(shape_node, SH.closed)
        closed = bool(closed_val.toPython()) if closed_val is not None else False

        # sh:ignoredProperties
        ignored_head = g.value(shape_node, SH.ignoredProperties)
        ignored_properties = [
            _uri_to_iri(i) for i in _parse_rdf_list(g, ignored_head) if isinstance(i, URIRef)
        ]

        # Property shapes
        properties = [
            _parse_property_shape(g, prop_node, where)
            for prop_node in g.objects(shape_node, SH.property)
        ]

        label = g.value(shape_node, RDFS.label)
        comment = g.value(shape_node, RDFS.comment)
        shapes.append(NodeShape(
            iri=shape_iri,
            target_class=target_class,
            properties=properties,
            closed=closed,
            ignored_properties=ignored_properties,
            node=sorted(_uri_to_iri(n) for n in g.objects(shape_node, SH.node)),
            label=str(label) if label is not None else None,
            comment=str(comment) if comment is not None else None,
            annotations=_extra_annotations(g, shape_node, SHAPE_PREDICATES, where),
        ))

    return SHACLSchema(shapes=shapes, prefixes=_extract_prefixes(source))


def parse_shacl_file(filepath: str) -> SHACLSchema:
    """Parse a SHACL Turtle file from a file path."""
    with open(filepath, "r", encoding="utf-8") as f:
        return parse_shacl(f.read())
