"""Serialize ShEx model to ShExC compact syntax."""
from __future__ import annotations

from typing import Union

from shexlink_py.schema.common import RDF_TYPE, NodeKind, PrefixMap, is_absolute_iri
from shexlink_py.schema.shex import (
    Annotation,
    EachOf,
    IriValue,
    LiteralValue,
    NodeConstraint,
    OneOf,
    SemAct,
    Shape,
    ShapeRef,
    ShExSchema,
    TripleConstraint,
)

_KIND_KEYWORDS = {
    NodeKind.IRI: "IRI",
    NodeKind.LITERAL: "LITERAL",
    NodeKind.BLANK_NODE: "BNODE",
    NodeKind.BLANK_NODE_OR_IRI: "NONLITERAL",
}

_STRING_ESCAPES = {'"': '\\"', "\\": "\\\\", "\n": "\\n", "\r": "\\r", "\t": "\\t"}

_IRI_FORBIDDEN = set('<>"{}|^`\\')


def _iri_ref(iri: str) -> str:
    chars = []
    for c in iri:
        if c in _IRI_FORBIDDEN or ord(c) <= 0x20:
            chars.append(f"\\u{ord(c):04X}")
        else:
            chars.append(c)
    return "<" + "".join(chars) + ">"


def _iri(iri: str, pm: PrefixMap) -> str:
    """Prefixed name when a declared prefix fits, else ``<iri>``."""
    if is_absolute_iri(iri):
        compact = pm.compact(iri)
        if compact is not None:
            return compact
    return _iri_ref(iri)


def _string(value: str) -> str:
    return '"' + "".join(_STRING_ESCAPES.get(c, c) for c in value) + '"'


def _regex(pattern: str) -> str:
    out = []
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "\\" and i + 1 < len(pattern):
            out.append(pattern[i:i + 2])
            i += 2
            continue
        if c == "/":
            out.append("\\/")
        elif c == "\n":
            out.append("\\n")
        elif c == "\r":
            out.append("\\r")
        else:
            out.append(c)
        i += 1
    return "/" + "".join(out) + "/"


def _number(value: Union[int, float]) -> str:
    return repr(value)


def _serialize_literal(lit: LiteralValue, pm: PrefixMap) -> str:
    if isinstance(lit.value, bool):
        return "true" if lit.value else "false"
    if isinstance(lit.value, (int, float)):
        return _number(lit.value)
    s = _string(lit.value)
    if lit.datatype:
        s += f"^^{_iri(lit.datatype, pm)}"
    elif lit.language:
        s += f"@{lit.language}"
    return s


def _serialize_value(v: Union[IriValue, LiteralValue], pm: PrefixMap) -> str:
    if isinstance(v, IriValue):
        return _iri(v.iri, pm)
    return _serialize_literal(v, pm)


def _serialize_facets(nc: NodeConstraint) -> list[str]:
    parts = []
    if nc.pattern is not None:
        parts.append(_regex(nc.pattern))
    if nc.length is not None:
        parts.append(f"LENGTH {nc.length}")
    if nc.min_length is not None:
        parts.append(f"MINLENGTH {nc.min_length}")
    if nc.max_length is not None:
        parts.append(f"MAXLENGTH {nc.max_length}")
    if nc.min_inclusive is not None:
        parts.append(f"MININCLUSIVE {_number(nc.min_inclusive)}")
    if nc.max_inclusive is not None:
        parts.append(f"MAXINCLUSIVE {_number(nc.max_inclusive)}")
    return parts


def _serialize_node_constraint(nc: NodeConstraint, pm: PrefixMap) -> str:
    """Serialize a node constraint."""
    if nc.values is not None:
        items = " ".join(_serialize_value(v, pm) for v in nc.values)
        head = f"[ {items} ]"
    elif nc.node_kind is not None:
        head = _KIND_KEYWORDS[nc.node_kind]
    elif nc.datatype is not None:
        head = _iri(nc.datatype, pm)
    else:
        head = ""
    parts = ([head] if head else []) + _serialize_facets(nc)
    return " ".join(parts) or "."


def _serialize_annotations(annotations: list[Annotation], pm: PrefixMap) -> str:
    return "".join(
        f" // {'a' if a.predicate == RDF_TYPE else _iri(a.predicate, pm)}"
        f" {_serialize_value(a.object, pm)}"
        for a in annotations
    )


def _serialize_semacts(semacts: list[SemAct], pm: PrefixMap) -> str:
    parts = []
    for act in semacts:
        if act.code is None:
            parts.append(f" %{_iri(act.name, pm)}%")
        else:
            code = act.code.replace("%", "\\%")
            parts.append(f" %{_iri(act.name, pm)}{{{code}%}}")
    return "".join(parts)


def _serialize_constraint(
    constraint: Union[NodeConstraint, ShapeRef, Shape, None], pm: PrefixMap, indent: str
) -> str:
    if constraint is None:
        return "."
    if isinstance(constraint, ShapeRef):
        return f"@{_iri(constraint.name, pm)}"
    if isinstance(constraint, Shape):
        return _serialize_shape_body(constraint, pm, indent)
    return _serialize_node_constraint(constraint, pm)


def _serialize_triple_constraint(tc: TripleConstraint, pm: PrefixMap, indent: str) -> str:
    """Serialize a single triple constraint."""
    pred = "a" if tc.predicate == RDF_TYPE else _iri(tc.predicate, pm)
    constraint_str = _serialize_constraint(tc.constraint, pm, indent)
    card_str = tc.cardinality.to_shex_string()
    return (
        f"{indent}{pred} {constraint_str}{card_str}"
        f"{_serialize_annotations(tc.annotations, pm)}{_serialize_semacts(tc.semacts, pm)}"
    )


def _serialize_expression(
    expr: Union[EachOf, OneOf, TripleConstraint, None], pm: PrefixMap, indent: str
) -> str:
    """Serialize a triple expression."""
    if expr is None:
        return ""

    if isinstance(expr, TripleConstraint):
        return _serialize_triple_constraint(expr, pm, indent)

    if isinstance(expr, EachOf):
        body = " ;\n".join(_serialize_expression(sub, pm, indent) for sub in expr.expressions)
        if expr.cardinality is not None:
            return f"{indent}(\n{body}\n{indent}){expr.cardinality.to_shex_string()}"
        return body

    if isinstance(expr, OneOf):
        return " |\n".join(_serialize_expression(sub, pm, indent) for sub in expr.expressions)

    return ""


def _serialize_shape_body(shape: Shape, pm: PrefixMap, indent: str = "") -> str:
    """``CLOSED EXTRA ... { ... }`` plus trailing annotations and semantic actions."""
    modifiers = []
    if shape.node_kind:
        modifiers.append(shape.node_kind)
    if shape.closed:
        modifiers.append("CLOSED")
    if shape.extra:
        extras = " ".join("a" if e == RDF_TYPE else _iri(e, pm) for e in shape.extra)
        modifiers.append(f"EXTRA {extras}")

    body = _serialize_expression(shape.expression, pm, indent + "  ")
    if body:
        text = "{\n" + body + "\n" + indent + "}"
    else:
        text = "{}"
    if modifiers:
        text = " ".join(modifiers) + " " + text
    return (
        text
        + _serialize_annotations(shape.annotations, pm)
        + _serialize_semacts(shape.semacts, pm)
    )


def serialize_shex(schema: ShExSchema) -> str:
    """Serialize a ShExSchema to ShExC compact syntax string.

    Args:
        schema: The ShEx schema to serialize.

    Returns:
        ShExC format string.
    """
    pm = PrefixMap(schema.prefixes)
    lines: list[str] = []

    # PREFIX declarations
    for pfx in schema.prefixes:
        lines.append(f"PREFIX {pfx.name}: {_iri_ref(pfx.iri)}")

    if schema.prefixes:
        lines.append("")

    if schema.base:
        lines.append(f"BASE {_iri_ref(schema.base)}")
        lines.append("")

    # start declaration
    if schema.start:
        lines.append(f"start = @{_iri(schema.start, pm)}")
        lines.append("")

    # Shape definitions
    for shape in schema.shapes:
        header = _iri(shape.name, pm)
        for parent in shape.extends:
            header += f" @{_iri(parent, pm)} AND"
        lines.append(f"{header} {_serialize_shape_body(shape, pm)}")
        lines.append("")

    return "\n".join(lines)
