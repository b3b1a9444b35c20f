"""Shared types for the canonical model and the language-specific models."""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Union
from urllib.parse import quote, unquote

from rdflib.namespace import RDF, RDFS, SH, XSD, split_uri

UNBOUNDED = -1  # Sentinel for unbounded max cardinality

RDF_TYPE = str(RDF.type)
RDF_JSON = str(RDF) + "JSON"
RDFS_LABEL = str(RDFS.label)
RDFS_COMMENT = str(RDFS.comment)

# Characters RDF serializers refuse inside an IRI
IRI_FORBIDDEN = frozenset('<>"{}|^`\\')

_ESCAPE_RE = re.compile(r"%[0-9A-Fa-f]{2}")

STANDARD_PREFIXES = {
    "rdf": str(RDF),
    "rdfs": str(RDFS),
    "xsd": str(XSD),
    "sh": str(SH),
}


class NodeKind(Enum):
    IRI = "IRI"
    BLANK_NODE = "BlankNode"
    LITERAL = "Literal"
    BLANK_NODE_OR_IRI = "BlankNodeOrIRI"
    BLANK_NODE_OR_LITERAL = "BlankNodeOrLiteral"
    IRI_OR_LITERAL = "IRIOrLiteral"


@dataclass(frozen=True)
class Cardinality:
    """Occurrence range of a field: ``min`` to ``max`` (UNBOUNDED = no limit)."""

    min: int = 1
    max: int = 1

    def __post_init__(self):
        if self.min < 0:
            raise ValueError(f"Cardinality min must be >= 0, got {self.min}")
        if self.max != UNBOUNDED and self.max < 0:
            raise ValueError(f"Cardinality max must be >= 0 or unbounded, got {self.max}")
        if self.max != UNBOUNDED and self.min > self.max:
            raise ValueError(f"Cardinality min {self.min} exceeds max {self.max}")

    @property
    def is_unbounded(self) -> bool:
        return self.max == UNBOUNDED

    @property
    def is_required(self) -> bool:
        return self.min >= 1

    @property
    def is_multivalued(self) -> bool:
        return self.max == UNBOUNDED or self.max > 1

    def to_shex_string(self) -> str:
        mn, mx = self.min, self.max
        if mn == 0 and mx == UNBOUNDED:
            return " *"
        if mn == 0 and mx == 1:
            return " ?"
        if mn == 1 and mx == UNBOUNDED:
            return " +"
        if mn == 1 and mx == 1:
            return ""
        if mx == UNBOUNDED:
            return f" {{{mn},}}"
        if mn == mx:
            return f" {{{mn}}}"
        return f" {{{mn},{mx}}}"

    def __str__(self) -> str:
        mx = "*" if self.max == UNBOUNDED else str(self.max)
        return f"{{{self.min},{mx}}}"


@dataclass(frozen=True)
class Prefix:
    name: str
    iri: str


class PrefixMap:
    """Manages IRI-to-prefixed-name resolution."""

    def __init__(self, prefixes: Iterable[Prefix]):
        # Sort by longest IRI first to get most specific match
        self.entries = sorted(
            [(p.name, p.iri) for p in prefixes],
            key=lambda x: -len(x[1]),
        )

    def compact(self, iri: str) -> Optional[str]:
        """Compact a full IRI to a prefixed name, or None if no prefix fits."""
        for name, prefix_iri in self.entries:
            if iri.startswith(prefix_iri):
                local = iri[len(prefix_iri):]
                if is_pn_local(local):
                    return f"{name}:{local}"
        return None

    def expand(self, curie: str) -> Optional[str]:
        """Expand ``prefix:local`` to a full IRI, or None if the prefix is unknown."""
        if ":" not in curie:
            return None
        name, local = curie.split(":", 1)
        for pname, prefix_iri in self.entries:
            if pname == name:
                return prefix_iri + local
        return None


def is_pn_local(local: str) -> bool:
    """True if ``local`` can be written as the local part of a prefixed name."""
    if not local:
        return True
    if local[0] in ".-" or local[-1] == ".":
        return False
    return all(c.isalnum() or c in "_-." for c in local)


def is_absolute_iri(value: str) -> bool:
    scheme, sep, _ = value.partition(":")
    return bool(sep) and bool(scheme) and scheme[0].isalpha() and all(
        c.isalnum() or c in "+-." for c in scheme
    )


def _iri_unsafe(c: str) -> bool:
    return c in IRI_FORBIDDEN or ord(c) <= 0x20


def encode_iri(value: str) -> str:
    """Percent-encode the characters that cannot appear in an IRI.

    Only those characters are touched, so ``decode_iri`` reverses it.
    """
    return "".join(quote(c, safe="") if _iri_unsafe(c) else c for c in value)


def decode_iri(value: str) -> str:
    """Undo ``encode_iri``; other percent escapes are left as written."""
    def repl(m: re.Match) -> str:
        c = unquote(m.group(0))
        return c if _iri_unsafe(c) else m.group(0)

    return _ESCAPE_RE.sub(repl, value)


def local_name(iri: str) -> str:
    """Last segment of an IRI, used to derive field and class names."""
    segment = iri.rstrip("/#").rsplit("/", 1)[-1].rsplit("#", 1)[-1]
    decoded = decode_iri(segment)
    if any(_iri_unsafe(c) for c in decoded):
        return decoded
    try:
        _, name = split_uri(iri)
    except ValueError:
        name = ""
    if not name:
        name = iri.rstrip("/#").rsplit("/", 1)[-1].rsplit("#", 1)[-1]
        if ":" in name:
            name = name.rsplit(":", 1)[-1]
    return name or iri


def unique_name(base: str, taken) -> str:
    """Return ``base`` or the first ``base_<n>`` not in ``taken``."""
    if base not in taken:
        return base
    i = 2
    while True:
        candidate = f"{base}_{i}"
        if candidate not in taken:
            return candidate
        i += 1


@dataclass(frozen=True)
class IriValue:
    """An IRI term (annotation object, value set member)."""
    iri: str


@dataclass(frozen=True)
class LiteralValue:
    """A literal term; numbers and booleans keep their Python type."""
    value: Union[str, int, float, bool]
    datatype: Optional[str] = None
    language: Optional[str] = None
