"""Parse ShExC compact syntax into the ShEx model.

Hand-written recursive-descent parser for the conjunctive subset of ShExC.
Handles: PREFIX/BASE, start, shape declarations with CLOSED/EXTRA/EXTENDS,
``@<Parent> AND { ... }`` composition, triple constraints with cardinality,
node constraints (datatypes, node kinds, value sets, facets), shape
references, inline shapes, annotations and semantic actions.

Disjunction inside a shape body (``|``) and grouped cardinality are parsed
into the model so the converter can reject them; other constructs outside
the subset (OR, NOT, IRI stems, ...) are rejected here.
"""
from __future__ import annotations

import re
from typing import Optional, Union
from urllib.parse import urljoin

from shexlink_py.errors import ParseError, UnsupportedConstruct
from shexlink_py.schema.common import RDF_TYPE, UNBOUNDED, Cardinality, NodeKind, Prefix
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

_PNAME_RE = re.compile(r'([A-Za-z][\w.-]*)?:((?:[\w-]|\.(?=[\w.-]*[\w-]))*)')
_WORD_RE = re.compile(r'[A-Za-z]+')
_NUMBER_RE = re.compile(r'[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')
_LANG_RE = re.compile(r'[a-zA-Z]+(-[a-zA-Z0-9]+)*')
_UCHAR_RE = re.compile(r'\\u([0-9A-Fa-f]{4})|\\U([0-9A-Fa-f]{8})')

KEYWORDS = {
    "PREFIX", "BASE", "IMPORT", "ABSTRACT", "EXTERNAL", "CLOSED", "EXTRA",
    "EXTENDS", "RESTRICTS", "AND", "OR", "NOT", "IRI", "LITERAL", "BNODE",
    "NONLITERAL", "LENGTH", "MINLENGTH", "MAXLENGTH", "MININCLUSIVE",
    "MAXINCLUSIVE", "MINEXCLUSIVE", "MAXEXCLUSIVE", "TOTALDIGITS",
    "FRACTIONDIGITS",
}

NODE_KINDS = {
    "IRI": NodeKind.IRI,
    "LITERAL": NodeKind.LITERAL,
    "BNODE": NodeKind.BLANK_NODE,
    "NONLITERAL": NodeKind.BLANK_NODE_OR_IRI,
}

_UNSUPPORTED_FACETS = {"MINEXCLUSIVE", "MAXEXCLUSIVE", "TOTALDIGITS", "FRACTIONDIGITS"}
_FACET_KEYWORDS = {
    "LENGTH", "MINLENGTH", "MAXLENGTH", "MININCLUSIVE", "MAXINCLUSIVE",
} | _UNSUPPORTED_FACETS

_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "b": "\b", "f": "\f",
            '"': '"', "'": "'", "\\": "\\"}


class ShExCTokenizer:
    """Character-level scanner for ShExC; also owns prefix and base resolution."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.prefixes: dict[str, str] = {}
        self.base: Optional[str] = None

    def _skip_ws_and_comments(self):
        while self.pos < len(self.text):
            if self.text[self.pos] in ' \t\n\r':
                self.pos += 1
            elif self.text[self.pos] == '#':
                # Skip to end of line
                while self.pos < len(self.text) and self.text[self.pos] != '\n':
                    self.pos += 1
            else:
                break

    def location(self, pos: Optional[int] = None) -> str:
        if pos is None:
            self._skip_ws_and_comments()
            pos = self.pos
        line = self.text.count('\n', 0, pos) + 1
        column = pos - (self.text.rfind('\n', 0, pos) + 1) + 1
        return f"line {line}, column {column}"

    def error(self, message: str, pos: Optional[int] = None) -> ParseError:
        return ParseError(self.location(pos), message)

    def peek(self) -> Optional[str]:
        self._skip_ws_and_comments()
        if self.pos >= len(self.text):
            return None
        return self.text[self.pos]

    def startswith(self, s: str) -> bool:
        self._skip_ws_and_comments()
        return self.text.startswith(s, self.pos)

    def at_end(self) -> bool:
        self._skip_ws_and_comments()
        return self.pos >= len(self.text)

    def expect(self, s: str):
        self._skip_ws_and_comments()
        if not self.text.startswith(s, self.pos):
            found = self.text[self.pos:self.pos + 20] or "end of input"
            raise self.error(f"Expected {s!r}, found {found!r}")
        self.pos += len(s)

    def try_consume(self, s: str) -> bool:
        self._skip_ws_and_comments()
        if self.text.startswith(s, self.pos):
            self.pos += len(s)
            return True
        return False

    def peek_keyword(self) -> Optional[str]:
        """Return the upper-cased keyword at the cursor, if any."""
        self._skip_ws_and_comments()
        m = _WORD_RE.match(self.text, self.pos)
        if not m:
            return None
        word = m.group(0).upper()
        nxt = self.text[m.end():m.end() + 1]
        if word in KEYWORDS and nxt != ':' and not (nxt.isalnum() or nxt in '_-'):
            return word
        return None

    def consume_keyword(self, kw: str):
        if self.peek_keyword() != kw:
            raise self.error(f"Expected keyword {kw!r}")
        self.pos += len(kw)

    def at_iri(self) -> bool:
        self._skip_ws_and_comments()
        if self.text.startswith('<', self.pos):
            return True
        return _PNAME_RE.match(self.text, self.pos) is not None

    def read_iri_ref(self) -> str:
        """Read <...> IRI reference, resolved against BASE when relative."""
        self._skip_ws_and_comments()
        if not self.text.startswith('<', self.pos):
            raise self.error("Expected '<'")
        end = self.text.find('>', self.pos + 1)
        if end < 0 or '\n' in self.text[self.pos:end]:
            raise self.error("Unterminated IRI reference")
        iri = _UCHAR_RE.sub(lambda m: chr(int(m.group(1) or m.group(2), 16)),
                            self.text[self.pos + 1:end])
        self.pos = end + 1
        if self.base and ':' not in iri:
            return urljoin(self.base, iri)
        return iri

    def read_prefixed_name(self) -> str:
        """Read prefix:local and resolve to full IRI."""
        self._skip_ws_and_comments()
        start = self.pos
        m = _PNAME_RE.match(self.text, self.pos)
        if not m:
            raise self.error("Expected IRI or prefixed name")
        prefix = m.group(1) or ''
        local = m.group(2) or ''
        if prefix not in self.prefixes:
            raise self.error(f"Unknown prefix {prefix!r}", start)
        self.pos = m.end()
        return self.prefixes[prefix] + local

    def read_iri(self) -> str:
        """Read either <IRI> or prefix:local."""
        self._skip_ws_and_comments()
        if self.text.startswith('<', self.pos):
            return self.read_iri_ref()
        return self.read_prefixed_name()

    def read_integer(self) -> int:
        self._skip_ws_and_comments()
        m = re.match(r'\d+', self.text[self.pos:])
        if not m:
            raise self.error("Expected integer")
        self.pos += m.end()
        return int(m.group(0))

    def read_number(self) -> Union[int, float]:
        self._skip_ws_and_comments()
        m = _NUMBER_RE.match(self.text, self.pos)
        if not m:
            raise self.error("Expected number")
        self.pos = m.end()
        token = m.group(0)
        if m.group(2) is None and m.group(3) is None and '.' not in token:
            return int(token)
        return float(token)


def _parse_cardinality(tok: ShExCTokenizer) -> Optional[Cardinality]:
    """Parse optional cardinality: ?, *, +, {m,n}, {m,}, {m}."""
    c = tok.peek()
    start = tok.pos
    if c == '?':
        tok.pos += 1
        return Cardinality(min=0, max=1)
    if c == '*':
        tok.pos += 1
        return Cardinality(min=0, max=UNBOUNDED)
    if c == '+':
        tok.pos += 1
        return Cardinality(min=1, max=UNBOUNDED)
    if c == '{' and re.match(r'\{\s*\d', tok.text[tok.pos:]):
        tok.pos += 1
        mn = tok.read_integer()
        if tok.try_consume(','):
            if tok.peek() == '*':
                tok.pos += 1
                mx = UNBOUNDED
            elif tok.peek() == '}':
                mx = UNBOUNDED
            else:
                mx = tok.read_integer()
        else:
            mx = mn  # {n} means exactly n
        tok.expect('}')
        try:
            return Cardinality(min=mn, max=mx)
        except ValueError as e:
            raise tok.error(str(e), start) from e
    return None


def _read_string(tok: ShExCTokenizer) -> str:
    """Read a quoted string (single, double or triple quoted) and unescape it."""
    tok._skip_ws_and_comments()
    start = tok.pos
    for quote in ('"""', "'''", '"', "'"):
        if tok.text.startswith(quote, tok.pos):
            break
    else:
        raise tok.error("Expected string literal")
    tok.pos += len(quote)
    chars: list[str] = []
    while True:
        if tok.pos >= len(tok.text):
            raise tok.error("Unterminated string literal", start)
        if tok.text.startswith(quote, tok.pos):
            tok.pos += len(quote)
            return ''.join(chars)
        ch = tok.text[tok.pos]
        if ch == '\\':
            esc = tok.text[tok.pos + 1:tok.pos + 2]
            if esc in _ESCAPES:
                chars.append(_ESCAPES[esc])
                tok.pos += 2
            elif esc == 'u':
                chars.append(chr(int(tok.text[tok.pos + 2:tok.pos + 6], 16)))
                tok.pos += 6
            elif esc == 'U':
                chars.append(chr(int(tok.text[tok.pos + 2:tok.pos + 10], 16)))
                tok.pos += 10
            else:
                raise tok.error(f"Invalid escape sequence \\{esc}")
            continue
        if len(quote) == 1 and ch in '\r\n':
            raise tok.error("Newline in single-quoted string", start)
        chars.append(ch)
        tok.pos += 1


def _parse_literal(tok: ShExCTokenizer) -> LiteralValue:
    """Parse "string"^^datatype, "string"@lang, a number or a boolean."""
    c = tok.peek()
    if c is not None and (c.isdigit() or c in '+-.'):
        return LiteralValue(value=tok.read_number())
    word = _WORD_RE.match(tok.text, tok.pos)
    if word and word.group(0) in ('true', 'false'):
        tok.pos = word.end()
        return LiteralValue(value=word.group(0) == 'true')

    value = _read_string(tok)
    if tok.text.startswith('^^', tok.pos):
        tok.pos += 2
        return LiteralValue(value=value, datatype=tok.read_iri())
    if tok.text.startswith('@', tok.pos):
        tok.pos += 1
        m = _LANG_RE.match(tok.text, tok.pos)
        if not m:
            raise tok.error("Expected language tag")
        tok.pos = m.end()
        return LiteralValue(value=value, language=m.group(0))
    return LiteralValue(value=value)


def _parse_value_set(tok: ShExCTokenizer) -> list[Union[IriValue, LiteralValue]]:
    """Parse a value set: [ v1 v2 ... ]."""
    tok.expect('[')
    values: list[Union[IriValue, LiteralValue]] = []
    while not tok.try_consume(']'):
        if tok.at_end():
            raise tok.error("Unterminated value set")
        item_pos = tok.pos
        if tok.peek() in ('.', '-') and not _NUMBER_RE.match(tok.text, tok.pos):
            raise UnsupportedConstruct("value set exclusion", tok.location(item_pos))
        if tok.peek() == '@':
            raise UnsupportedConstruct("language tag value set", tok.location(item_pos))
        if tok.at_iri():
            iri = tok.read_iri()
            if tok.text.startswith('~', tok.pos):
                raise UnsupportedConstruct("IRI stem", tok.location(item_pos))
            values.append(IriValue(iri))
        else:
            values.append(_parse_literal(tok))
            if tok.text.startswith('~', tok.pos):
                raise UnsupportedConstruct("literal stem", tok.location(item_pos))
    if not values:
        raise tok.error("Empty value set")
    return values


def _read_regex(tok: ShExCTokenizer) -> str:
    """Read /pattern/ and return the pattern with ``\\/`` unescaped."""
    start = tok.pos
    tok.expect('/')
    chars: list[str] = []
    while True:
        if tok.pos >= len(tok.text) or tok.text[tok.pos] in '\r\n':
            raise tok.error("Unterminated regular expression", start)
        ch = tok.text[tok.pos]
        if ch == '\\':
            nxt = tok.text[tok.pos + 1:tok.pos + 2]
            chars.append('/' if nxt == '/' else ch + nxt)
            tok.pos += 2
            continue
        tok.pos += 1
        if ch == '/':
            break
        chars.append(ch)
    flags = re.match(r'[smix]*', tok.text[tok.pos:]).group(0)
    if flags:
        raise UnsupportedConstruct(f"regular expression flags {flags!r}", tok.location(start))
    return ''.join(chars)


def _parse_facets(tok: ShExCTokenizer, nc: NodeConstraint) -> None:
    """Parse string and numeric facets following a node constraint."""
    while True:
        if tok.peek() == '/' and not tok.startswith('//'):
            if nc.pattern is not None:
                raise tok.error("Duplicate pattern facet")
            nc.pattern = _read_regex(tok)
            continue
        kw = tok.peek_keyword()
        facet_pos = tok.pos
        if kw in _UNSUPPORTED_FACETS:
            raise UnsupportedConstruct(f"{kw} facet", tok.location(facet_pos))
        if kw == 'LENGTH':
            tok.consume_keyword(kw)
            nc.length = tok.read_integer()
        elif kw == 'MINLENGTH':
            tok.consume_keyword(kw)
            nc.min_length = tok.read_integer()
        elif kw == 'MAXLENGTH':
            tok.consume_keyword(kw)
            nc.max_length = tok.read_integer()
        elif kw == 'MININCLUSIVE':
            tok.consume_keyword(kw)
            nc.min_inclusive = tok.read_number()
        elif kw == 'MAXINCLUSIVE':
            tok.consume_keyword(kw)
            nc.max_inclusive = tok.read_number()
        else:
            return


def _read_shape_label(tok: ShExCTokenizer) -> str:
    """Read a shape label written as @<iri> or @prefix:local (the @ is optional)."""
    tok.try_consume('@')
    return tok.read_iri()


def _reject_connectives(tok: ShExCTokenizer):
    kw = tok.peek_keyword()
    if kw in ('OR', 'NOT'):
        raise UnsupportedConstruct(f"shape expression {kw}", tok.location())
    if kw == 'AND':
        raise UnsupportedConstruct("inline shape expression AND", tok.location())


def _parse_inline_expression(
    tok: ShExCTokenizer,
) -> Optional[Union[NodeConstraint, ShapeRef, Shape]]:
    """Parse the value expression of a triple constraint."""
    c = tok.peek()
    kw = tok.peek_keyword()
    expr_pos = tok.pos

    if kw == 'NOT':
        raise UnsupportedConstruct("shape expression NOT", tok.location())

    if c == '@':
        result: Union[NodeConstraint, ShapeRef, Shape] = ShapeRef(name=_read_shape_label(tok))
    elif c == '{' or kw in ('CLOSED', 'EXTRA', 'EXTENDS'):
        result = _parse_shape_definition(tok)
    elif c == '(':
        raise UnsupportedConstruct("parenthesised shape expression", tok.location())
    elif c == '.':
        tok.pos += 1
        result = NodeConstraint()
    elif c == '[':
        nc = NodeConstraint(values=_parse_value_set(tok))
        _parse_facets(tok, nc)
        result = nc
    elif kw in NODE_KINDS:
        tok.consume_keyword(kw)
        nc = NodeConstraint(node_kind=NODE_KINDS[kw])
        _parse_facets(tok, nc)
        result = nc
    elif (c == '/' and not tok.startswith('//')) or kw in _FACET_KEYWORDS:
        nc = NodeConstraint()
        _parse_facets(tok, nc)
        result = nc
    elif tok.at_iri():
        nc = NodeConstraint(datatype=tok.read_iri())
        _parse_facets(tok, nc)
        result = nc
    else:
        return None

    _reject_connectives(tok)
    if tok.peek_keyword() is None and tok.peek() == '@' and not isinstance(result, ShapeRef):
        raise UnsupportedConstruct("node constraint combined with shape reference",
                                   tok.location(expr_pos))
    return result


def _parse_annotations(tok: ShExCTokenizer) -> list[Annotation]:
    annotations: list[Annotation] = []
    while tok.startswith('//'):
        tok.pos += 2
        predicate = RDF_TYPE if _at_a(tok) else tok.read_iri()
        if tok.at_iri():
            obj: Union[IriValue, LiteralValue] = IriValue(tok.read_iri())
        else:
            obj = _parse_literal(tok)
        annotations.append(Annotation(predicate=predicate, object=obj))
    return annotations


def _parse_semacts(tok: ShExCTokenizer) -> list[SemAct]:
    semacts: list[SemAct] = []
    while tok.startswith('%'):
        start = tok.pos
        tok.pos += 1
        name = tok.read_iri()
        if tok.try_consume('%'):
            semacts.append(SemAct(name=name))
            continue
        tok.expect('{')
        chars: list[str] = []
        while True:
            if tok.pos >= len(tok.text):
                raise tok.error("Unterminated semantic action", start)
            if tok.text.startswith('\\%', tok.pos):
                chars.append('%')
                tok.pos += 2
                continue
            if tok.text.startswith('%}', tok.pos):
                tok.pos += 2
                break
            chars.append(tok.text[tok.pos])
            tok.pos += 1
        semacts.append(SemAct(name=name, code=''.join(chars)))
    return semacts


def _at_a(tok: ShExCTokenizer) -> bool:
    """Consume the ``a`` keyword (rdf:type) if present."""
    tok._skip_ws_and_comments()
    if tok.text.startswith('a', tok.pos):
        nxt = tok.text[tok.pos + 1:tok.pos + 2]
        if not (nxt.isalnum() or nxt in ':_-.'):
            tok.pos += 1
            return True
    return False


def _parse_triple_constraint(tok: ShExCTokenizer) -> TripleConstraint:
    """Parse a single triple constraint line."""
    location = tok.location()
    if tok.peek() == '^':
        raise UnsupportedConstruct("inverse triple constraint", location)

    predicate = RDF_TYPE if _at_a(tok) else tok.read_iri()
    constraint = None
    if tok.peek() not in (';', '}', '|', ')', '?', '*', '+', '%', None) \
            and not tok.startswith('//') \
            and not re.match(r'\{\s*\d', tok.text[tok.pos:]):
        constraint = _parse_inline_expression(tok)
        if constraint is None:
            raise tok.error("Expected value expression")

    card = _parse_cardinality(tok) or Cardinality()
    return TripleConstraint(
        predicate=predicate,
        constraint=constraint,
        cardinality=card,
        annotations=_parse_annotations(tok),
        semacts=_parse_semacts(tok),
        location=location,
    )


def _parse_unary_expression(tok: ShExCTokenizer) -> Union[TripleConstraint, EachOf, OneOf]:
    c = tok.peek()
    if c == '$':
        raise UnsupportedConstruct("triple expression label", tok.location())
    if c == '&':
        raise UnsupportedConstruct("triple expression inclusion", tok.location())
    if c == '(':
        location = tok.location()
        tok.pos += 1
        inner = _parse_triple_expression(tok)
        tok.expect(')')
        card = _parse_cardinality(tok)
        _parse_annotations(tok)
        _parse_semacts(tok)
        if isinstance(inner, EachOf):
            inner.cardinality = card
            inner.location = location
            return inner
        if card is not None:
            return EachOf(expressions=[inner], cardinality=card, location=location)
        return inner
    return _parse_triple_constraint(tok)


def _parse_group(tok: ShExCTokenizer) -> Union[TripleConstraint, EachOf, OneOf]:
    location = tok.location()
    expressions = [_parse_unary_expression(tok)]
    while tok.try_consume(';'):
        if tok.peek() in ('}', ')', '|', None):
            break  # trailing separator
        expressions.append(_parse_unary_expression(tok))
    if len(expressions) == 1:
        return expressions[0]
    return EachOf(expressions=expressions, location=location)


def _parse_triple_expression(tok: ShExCTokenizer) -> Union[TripleConstraint, EachOf, OneOf]:
    location = tok.location()
    alternatives = [_parse_group(tok)]
    while tok.try_consume('|'):
        alternatives.append(_parse_group(tok))
    if len(alternatives) == 1:
        return alternatives[0]
    return OneOf(expressions=alternatives, location=location)


def _parse_shape_definition(tok: ShExCTokenizer) -> Shape:
    """Parse ``EXTRA/CLOSED/EXTENDS* { tripleExpr } annotations semacts``."""
    shape = Shape(location=tok.location())
    while True:
        kw = tok.peek_keyword()
        if kw == 'EXTRA':
            tok.consume_keyword(kw)
            count = len(shape.extra)
            while True:
                if _at_a(tok):
                    shape.extra.append(RDF_TYPE)
                elif tok.at_iri() and tok.peek_keyword() is None:
                    shape.extra.append(tok.read_iri())
                else:
                    break
            if len(shape.extra) == count:
                raise tok.error("EXTRA needs at least one predicate")
        elif kw == 'CLOSED':
            tok.consume_keyword(kw)
            shape.closed = True
        elif kw == 'EXTENDS':
            tok.consume_keyword(kw)
            shape.extends.append(_read_shape_label(tok))
        elif kw == 'RESTRICTS':
            raise UnsupportedConstruct("RESTRICTS", tok.location())
        else:
            break

    tok.expect('{')
    if tok.peek() != '}':
        shape.expression = _parse_triple_expression(tok)
    tok.expect('}')
    shape.annotations = _parse_annotations(tok)
    shape.semacts = _parse_semacts(tok)
    return shape


def _parse_shape_declaration(tok: ShExCTokenizer, label: str) -> Shape:
    """Parse the shape expression of a declaration: conjuncts joined by AND."""
    location = tok.location()
    kw = tok.peek_keyword()
    if kw == 'EXTERNAL':
        raise UnsupportedConstruct("EXTERNAL shape", location)

    parents: list[str] = []
    bodies: list[Shape] = []
    node_kind: Optional[str] = None
    while True:
        kw = tok.peek_keyword()
        conjunct_pos = tok.pos
        if kw == 'NOT':
            raise UnsupportedConstruct("shape expression NOT", tok.location())
        if tok.peek() == '@':
            parents.append(_read_shape_label(tok))
        elif tok.peek() == '{' or kw in ('CLOSED', 'EXTRA', 'EXTENDS', 'RESTRICTS'):
            bodies.append(_parse_shape_definition(tok))
        elif kw in ('IRI', 'BNODE', 'NONLITERAL') and node_kind is None:
            tok.consume_keyword(kw)
            node_kind = kw
            if tok.peek() == '{' or tok.peek_keyword() in ('CLOSED', 'EXTRA', 'EXTENDS'):
                continue
        elif tok.peek() == '(':
            raise UnsupportedConstruct("parenthesised shape expression", tok.location())
        else:
            raise UnsupportedConstruct("node constraint shape declaration",
                                       tok.location(conjunct_pos))

        kw = tok.peek_keyword()
        if kw == 'OR':
            raise UnsupportedConstruct("shape expression OR", tok.location())
        if kw != 'AND':
            break
        tok.consume_keyword('AND')

    if not bodies and not parents:
        raise UnsupportedConstruct("node constraint shape declaration", location)
    if len(bodies) > 1:
        raise UnsupportedConstruct("AND of more than one shape body", location)
    shape = bodies[0] if bodies else Shape(location=location)
    shape.name = label
    shape.extends = parents + shape.extends
    shape.node_kind = node_kind
    if not bodies:
        shape.annotations.extend(_parse_annotations(tok))
        shape.semacts.extend(_parse_semacts(tok))
    return shape


def parse_shex(text: str) -> ShExSchema:
    """Parse a ShExC string into ShExSchema.

    Args:
        text: ShExC source.

    Returns:
        ShExSchema with parsed shapes and prefixes.

    Raises:
        ParseError: on malformed input.
        UnsupportedConstruct: on syntax outside the conjunctive subset.
    """
    tok = ShExCTokenizer(text)
    prefix_list: list[Prefix] = []
    start: Optional[str] = None
    shapes: list[Shape] = []

    while not tok.at_end():
        kw = tok.peek_keyword()
        decl_pos = tok.pos

        if kw == 'PREFIX':
            tok.consume_keyword(kw)
            tok._skip_ws_and_comments()
            m = re.match(r'([A-Za-z][\w.-]*)?:', tok.text[tok.pos:])
            if not m:
                raise tok.error("Expected prefix name")
            pname = m.group(1) or ''
            tok.pos += m.end()
            piri = tok.read_iri_ref()
            tok.prefixes[pname] = piri
            prefix_list = [p for p in prefix_list if p.name != pname]
            prefix_list.append(Prefix(name=pname, iri=piri))
            continue

        if kw == 'BASE':
            tok.consume_keyword(kw)
            tok.base = tok.read_iri_ref()
            continue

        if kw == 'IMPORT':
            raise UnsupportedConstruct("IMPORT", tok.location(decl_pos))

        if kw == 'ABSTRACT':
            raise UnsupportedConstruct("ABSTRACT shape", tok.location(decl_pos))

        # start = @<Shape>
        if re.match(r'start\s*=', tok.text[tok.pos:], re.IGNORECASE):
            tok.pos += 5
            tok.expect('=')
            start = _read_shape_label(tok)
            continue

        if tok.peek() == '%':
            raise UnsupportedConstruct("schema-level semantic action", tok.location())

        if tok.at_iri():
            label = tok.read_iri()
            shape = _parse_shape_declaration(tok, label)
            shape.location = tok.location(decl_pos)
            shapes.append(shape)
            continue

        raise tok.error(f"Unexpected token {tok.text[tok.pos:tok.pos + 20]!r}")

    return ShExSchema(shapes=shapes, prefixes=prefix_list, base=tok.base, start=start)


def parse_shex_file(filepath: str) -> ShExSchema:
    """Parse a ShEx file from a file path."""
    with open(filepath, 'r', encoding='utf-8') as f:
        return parse_shex(f.read())
