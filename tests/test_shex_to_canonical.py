"""Tests for ShEx → canonical and canonical → ShEx conversion."""
import os

import pytest

from shexlink_py.converter.canonical_to_shex import convert_canonical_to_shex
from shexlink_py.converter.shex_to_canonical import EXTRA_KEY, NODE_KIND_KEY, convert_shex_to_canonical
from shexlink_py.errors import UnresolvedReference, UnsupportedConstruct
from shexlink_py.parser.shex_parser import parse_shex, parse_shex_file
from shexlink_py.schema.canonical import (
    EnumerationType,
    Facet,
    FacetKind,
    ScalarKind,
    ScalarType,
    ShapeReference,
)
from shexlink_py.schema.common import UNBOUNDED, Cardinality
from shexlink_py.serializer.shex_serializer import serialize_shex

SHEX_DIR = os.path.join(os.path.dirname(__file__), "..", "dataset", "shex")

EX = "http://example.org/library/"


def _load(name: str):
    return convert_shex_to_canonical(parse_shex_file(os.path.join(SHEX_DIR, name)))


def _import(text: str, allow_external: bool = False):
    return convert_shex_to_canonical(parse_shex(text), allow_external)


def test_person_scenario():
    graph = _load("Person.shex")
    person = graph.get("Person")
    assert person is not None
    assert person.field_names == ["name", "age"]
    name, age = person.fields
    assert name.value_type == ScalarType(ScalarKind.STRING)
    assert name.cardinality == Cardinality(1, 1)
    assert name.predicate == "http://xmlns.com/foaf/0.1/name"
    assert age.value_type == ScalarType(ScalarKind.INTEGER)
    assert age.cardinality == Cardinality(0, 1)


class TestLibrary:
    """The Library schema exercises every conjunctive construct."""

    @pytest.fixture(scope="class")
    def graph(self):
        return _load("Library.shex")

    def test_shapes_and_start(self, graph):
        assert sorted(graph.shape_ids) == sorted(EX + n for n in ("Library", "Item", "Book", "Author"))
        assert graph.start == EX + "Library"

    def test_label_and_closed(self, graph):
        library = graph.get(EX + "Library")
        assert library.label == "Library"
        assert library.closed
        assert library.get_field("name").facet(FacetKind.MIN_LENGTH) == Facet(FacetKind.MIN_LENGTH, 1)

    def test_parent_and_description(self, graph):
        book = graph.get(EX + "Book")
        assert book.parent == EX + "Item"
        assert book.description == "A catalogued book"
        assert graph.ancestors(EX + "Book") == [EX + "Item"]

    def test_references(self, graph):
        book = graph.get(EX + "Book")
        author = book.get_field("author")
        assert author.value_type == ShapeReference(EX + "Author")
        assert author.cardinality == Cardinality(1, UNBOUNDED)
        sequel = book.get_field("sequel")
        assert graph.resolve(sequel.value_type) is book

    def test_enumerations(self, graph):
        book = graph.get(EX + "Book")
        fmt = book.get_field("bookFormat").value_type
        assert fmt == EnumerationType((EX + "Hardcover", EX + "Paperback", EX + "EBook"), iri=True)
        assert book.get_field("status").value_type == EnumerationType(("available", "loaned"))

    def test_field_description_and_pattern(self, graph):
        identifier = graph.get(EX + "Item").get_field("identifier")
        assert identifier.description == "Shelf mark"
        assert identifier.facet(FacetKind.PATTERN).value == "^[A-Z]{3}-[0-9]+$"

    def test_node_kind_wildcard_and_annotation(self, graph):
        author = graph.get(EX + "Author")
        assert author.get_field("sameAs").value_type == ScalarType(ScalarKind.IRI)
        note = author.get_field("note")
        assert note.value_type == ScalarType(ScalarKind.ANY)
        assert note.annotations == {EX + "source": "import"}


def test_one_of_rejected():
    with pytest.raises(UnsupportedConstruct) as exc:
        _import("""
            PREFIX ex: <http://example.org/>
            ex:S { ex:a . ; ( ex:b . | ex:c . ) }
        """)
    assert exc.value.kind == "OneOf triple expression"
    assert exc.value.location == "line 3, column 31"


def test_grouped_cardinality_rejected():
    with pytest.raises(UnsupportedConstruct):
        _import("""
            PREFIX ex: <http://example.org/>
            ex:S { ( ex:a . ; ex:b . ){2} }
        """)


def test_multiple_inheritance_rejected():
    with pytest.raises(UnsupportedConstruct) as exc:
        _import("""
            PREFIX ex: <http://example.org/>
            ex:A { ex:a . }
            ex:B { ex:b . }
            ex:C @ex:A AND @ex:B AND { ex:c . }
        """)
    assert exc.value.kind == "multiple inheritance"


def test_unresolved_reference():
    text = """
        PREFIX ex: <http://example.org/>
        ex:S { ex:knows @ex:Missing }
    """
    with pytest.raises(UnresolvedReference) as exc:
        _import(text)
    assert exc.value.shape_id == "http://example.org/Missing"
    assert exc.value.field_name == "knows"

    graph = _import(text, allow_external=True)
    ref = graph.get("http://example.org/S").get_field("knows").value_type
    assert ref == ShapeReference("http://example.org/Missing", external=True)
    assert graph.resolve(ref) is None


def test_required_cycle_rejected():
    with pytest.raises(UnsupportedConstruct) as exc:
        _import("""
            PREFIX ex: <http://example.org/>
            ex:A { ex:b @ex:B }
            ex:B { ex:a @ex:A + }
        """)
    assert exc.value.kind == "recursive shape reference without base case"


def test_optional_cycle_accepted():
    graph = _import("""
        PREFIX ex: <http://example.org/>
        ex:Node { ex:children @ex:Node * ; ex:parent @ex:Node ? }
    """)
    node = graph.get("http://example.org/Node")
    assert node.get_field("children").value_type.shape_id == node.id


def test_inline_shape_synthesized():
    graph = _import("""
        PREFIX ex: <http://example.org/>
        ex:S { ex:address { ex:city . } }
    """)
    address = graph.get("http://example.org/S").get_field("address")
    assert address.value_type == ShapeReference("http://example.org/S_address")
    assert graph.get("http://example.org/S_address").field_names == ["city"]


def test_repeated_predicate_names_made_unique():
    graph = _import("""
        PREFIX ex: <http://example.org/>
        PREFIX other: <http://other.example/>
        ex:S { ex:name . ; other:name . }
    """)
    assert graph.get("http://example.org/S").field_names == ["name", "name_2"]


def test_extra_node_kind_and_semacts_kept_in_bag():
    graph = _import("""
        PREFIX ex: <http://example.org/>
        ex:S IRI EXTRA ex:type { ex:type [ex:T] } %ex:log{ x %}
    """)
    bag = graph.get("http://example.org/S").annotations
    assert bag[EXTRA_KEY] == ["http://example.org/type"]
    assert bag[NODE_KIND_KEY] == "IRI"
    assert bag["%http://example.org/log"] == " x "


def test_repeated_annotations_collected():
    graph = _import("""
        PREFIX ex: <http://example.org/>
        ex:S { ex:a . // ex:tag "x" // ex:tag "y" // ex:lang "chat"@fr }
    """)
    bag = graph.get("http://example.org/S").get_field("a").annotations
    assert bag["http://example.org/tag"] == ["x", "y"]
    assert bag["http://example.org/lang"] == {"@value": "chat", "@language": "fr"}


class TestExport:

    def test_person_shex_output(self):
        text = serialize_shex(convert_canonical_to_shex(_load("Person.shex")))
        assert "PREFIX foaf: <http://xmlns.com/foaf/0.1/>" in text
        assert "<Person> {" in text
        assert "  foaf:name xsd:string ;" in text
        assert "  foaf:age xsd:integer ?" in text

    def test_synthesized_predicate_uses_default_namespace(self):
        from shexlink_py.schema.canonical import FieldConstraint, SchemaGraph, ShapeDefinition
        graph = SchemaGraph(shapes=(
            ShapeDefinition("Thing", fields=(FieldConstraint("title", ScalarType(ScalarKind.STRING)),)),
        ))
        text = serialize_shex(convert_canonical_to_shex(graph))
        assert "PREFIX ex: <http://example.org/>" in text
        assert "ex:title xsd:string" in text

    def test_export_is_deterministic(self):
        graph = _load("Library.shex")
        first = serialize_shex(convert_canonical_to_shex(graph))
        second = serialize_shex(convert_canonical_to_shex(graph))
        assert first == second

    def test_reimport_is_lossless(self):
        from shexlink_py.audit import audit
        graph = _load("Library.shex")
        again = convert_shex_to_canonical(parse_shex(serialize_shex(convert_canonical_to_shex(graph))))
        assert audit(graph, again).is_clean
        assert again.start == graph.start
