"""Tests for LinkML import and export."""
import os

import pytest

from shexlink_py.converter.canonical_to_linkml import convert_canonical_to_linkml
from shexlink_py.converter.linkml_to_canonical import (
    CLOSED_TAG,
    EXTERNAL_REF_TAG,
    MIN_LENGTH_TAG,
    NODE_KIND_TAG,
    convert_linkml_to_canonical,
)
from shexlink_py.errors import ParseError, UnresolvedReference, UnsupportedConstruct
from shexlink_py.parser.linkml_parser import parse_linkml, parse_linkml_file
from shexlink_py.schema.canonical import (
    EnumerationType,
    Facet,
    FacetKind,
    FieldConstraint,
    SchemaGraph,
    ScalarKind,
    ScalarType,
    ShapeDefinition,
    ShapeReference,
)
from shexlink_py.schema.common import UNBOUNDED, Cardinality
from shexlink_py.serializer.yaml_serializer import serialize_yaml
from shexlink_py.translate import convert, round_trip

LINKML_DIR = os.path.join(os.path.dirname(__file__), "..", "dataset", "linkml")

LIB = "https://example.org/library/"


def _library():
    return convert_linkml_to_canonical(parse_linkml_file(os.path.join(LINKML_DIR, "library.yaml")))


def _import(text: str, allow_external: bool = False):
    return convert_linkml_to_canonical(parse_linkml(text), allow_external)


def _single_field_graph(f: FieldConstraint) -> SchemaGraph:
    return SchemaGraph(shapes=(ShapeDefinition("Thing", fields=(f,)),))


class TestLibraryImport:

    @pytest.fixture(scope="class")
    def graph(self):
        return _library()

    def test_classes_become_shapes(self, graph):
        assert sorted(graph.shape_ids) == sorted(["NamedThing", LIB + "Book", "Author", "Library"])
        assert graph.id == "https://example.org/library"
        assert graph.name == "library"
        assert graph.start == "Library"

    def test_is_a_and_slot_usage(self, graph):
        book = graph.get(LIB + "Book")
        assert book.parent == "NamedThing"
        assert book.field_names == ["isbn", "authors", "status", "genres", "pages"]
        isbn = book.get_field("isbn")
        assert isbn.cardinality == Cardinality(1, 1)
        assert isbn.value_type == ScalarType(ScalarKind.LITERAL, LIB + "Isbn")
        assert isbn.facet(FacetKind.PATTERN).value == "^[0-9-]{10,17}$"

    def test_slot_uri_and_required(self, graph):
        name = graph.get("NamedThing").get_field("name")
        assert name.predicate == "http://schema.org/name"
        assert name.cardinality == Cardinality(1, 1)
        assert name.value_type == ScalarType(ScalarKind.STRING)

    def test_ranges(self, graph):
        book = graph.get(LIB + "Book")
        assert book.get_field("authors").value_type == ShapeReference("Author")
        assert book.get_field("authors").cardinality == Cardinality(1, UNBOUNDED)
        assert book.get_field("status").value_type == EnumerationType(("available", "loaned"))
        genres = book.get_field("genres")
        assert genres.value_type == EnumerationType((LIB + "Fiction", LIB + "NonFiction"), iri=True)
        assert genres.cardinality == Cardinality(0, 3)
        assert book.get_field("pages").facet(FacetKind.MIN_INCLUSIVE).value == 1
        assert graph.get("Author").get_field("born").value_type == ScalarType(ScalarKind.DATE)

    def test_closed_tag_and_unknown_keys(self, graph):
        library = graph.get("Library")
        assert library.closed
        assert CLOSED_TAG not in library.annotations
        assert library.get_field("books").annotations == {"linkml:inlined_as_list": True}


class TestCardinalityBijection:
    """required / multivalued map one-to-one onto the four basic ranges."""

    @pytest.mark.parametrize("required, multivalued, card", [
        (False, False, Cardinality(0, 1)),
        (True, False, Cardinality(1, 1)),
        (False, True, Cardinality(0, UNBOUNDED)),
        (True, True, Cardinality(1, UNBOUNDED)),
    ])
    def test_import(self, required, multivalued, card):
        graph = _import(f"""
id: https://example.org/t
name: t
classes:
  Thing:
    attributes:
      value:
        required: {str(required).lower()}
        multivalued: {str(multivalued).lower()}
""")
        assert graph.get("Thing").get_field("value").cardinality == card

    @pytest.mark.parametrize("card, expected", [
        (Cardinality(0, 1), {}),
        (Cardinality(1, 1), {"required": True}),
        (Cardinality(0, UNBOUNDED), {"multivalued": True}),
        (Cardinality(1, UNBOUNDED), {"required": True, "multivalued": True}),
        (Cardinality(2, 5), {"required": True, "multivalued": True,
                             "minimum_cardinality": 2, "maximum_cardinality": 5}),
        (Cardinality(0, 0), {"maximum_cardinality": 0}),
    ])
    def test_export(self, card, expected):
        f = FieldConstraint("value", ScalarType(ScalarKind.STRING), card)
        slot = convert_canonical_to_linkml(_single_field_graph(f))["classes"]["Thing"]["attributes"]["value"]
        keys = ("required", "multivalued", "minimum_cardinality", "maximum_cardinality")
        assert {k: slot[k] for k in keys if k in slot} == expected


class TestImportRules:

    def test_any_of_rejected(self):
        with pytest.raises(UnsupportedConstruct) as exc:
            _import("""
id: https://example.org/t
classes:
  Thing:
    attributes:
      value:
        any_of:
          - range: string
          - range: integer
""")
        assert exc.value.kind == "any_of"
        assert exc.value.location == "class 'Thing', slot 'value'"

    def test_two_mixins_rejected(self):
        with pytest.raises(UnsupportedConstruct) as exc:
            _import("""
id: https://example.org/t
classes:
  A: {}
  B: {}
  C:
    mixins: [A, B]
""")
        assert exc.value.kind == "multiple inheritance"

    def test_single_mixin_is_parent(self):
        graph = _import("""
id: https://example.org/t
classes:
  A: {}
  C:
    mixins: [A]
""")
        assert graph.get("C").parent == "A"

    def test_unknown_range(self):
        text = """
id: https://example.org/t
prefixes:
  ext: https://other.example/
classes:
  Thing:
    attributes:
      owner:
        range: ext:Agent
"""
        with pytest.raises(UnresolvedReference):
            _import(text)
        ref = _import(text, allow_external=True).get("Thing").get_field("owner").value_type
        assert ref == ShapeReference("https://other.example/Agent", external=True)

    def test_default_range_applies(self):
        graph = _import("""
id: https://example.org/t
default_range: integer
classes:
  Thing:
    attributes:
      count: {}
""")
        assert graph.get("Thing").get_field("count").value_type == ScalarType(ScalarKind.INTEGER)

    def test_two_tree_roots_rejected(self):
        with pytest.raises(ParseError):
            _import("""
id: https://example.org/t
classes:
  A:
    tree_root: true
  B:
    tree_root: true
""")

    def test_invalid_yaml_location(self):
        with pytest.raises(ParseError) as exc:
            parse_linkml("id: x\nclasses:\n  A: [unclosed\n")
        assert exc.value.location is not None
        assert exc.value.location.startswith("line ")

    def test_empty_document(self):
        with pytest.raises(ParseError):
            parse_linkml("")

    def test_timestamps_load_as_strings(self):
        text = """
id: https://example.org/t
classes:
  Thing:
    annotations:
      since: 2020-01-01
      reviewed: 2021-03-04 05:06:07
    attributes:
      title:
        range: string
"""
        thing = _import(text).get("Thing")
        assert thing.annotations == {"since": "2020-01-01", "reviewed": "2021-03-04T05:06:07"}
        for target in ("jsonschema", "shex", "linkml"):
            assert convert(text, "linkml", target)
        _, _, report = round_trip(text, "linkml", "jsonschema")
        assert report.is_clean, report.to_json()

    def test_non_json_value_rejected(self):
        with pytest.raises(ParseError) as exc:
            parse_linkml("""
id: https://example.org/t
classes:
  Thing:
    annotations:
      blob: !!binary aGVsbG8=
""")
        assert exc.value.location == "$.classes.Thing.annotations.blob"


class TestExport:

    def test_library_document_layout(self):
        doc = convert_canonical_to_linkml(_library())
        assert doc["id"] == "https://example.org/library"
        assert doc["imports"] == ["linkml:types"]
        assert doc["types"]["Isbn"] == {"uri": "lib:Isbn", "base": "str", "typeof": "string"}
        assert doc["enums"]["LoanStatus"] == {"permissible_values": {"available": {}, "loaned": {}}}
        book = doc["classes"]["Book"]
        assert book["class_uri"] == "lib:Book"
        assert book["is_a"] == "NamedThing"
        assert book["attributes"]["genres"]["range"] == "Genre"
        assert doc["classes"]["Library"]["tree_root"] is True
        assert doc["classes"]["Library"]["annotations"] == {CLOSED_TAG: True}
        assert doc["classes"]["Library"]["attributes"]["books"]["inlined_as_list"] is True

    def test_node_kind_and_any(self):
        graph = SchemaGraph(shapes=(ShapeDefinition("Thing", fields=(
            FieldConstraint("node", ScalarType(ScalarKind.BNODE)),
            FieldConstraint("anything", ScalarType(ScalarKind.ANY)),
        )),))
        doc = convert_canonical_to_linkml(graph)
        attrs = doc["classes"]["Thing"]["attributes"]
        assert attrs["node"]["range"] == "Any"
        assert attrs["node"]["annotations"] == {NODE_KIND_TAG: "bnode"}
        assert attrs["anything"]["range"] == "Any"
        assert doc["classes"]["Any"] == {"class_uri": "linkml:Any"}
        assert convert_linkml_to_canonical(doc).get("Thing") == graph.get("Thing")

    def test_length_facets_and_external_refs_use_tags(self):
        graph = SchemaGraph(shapes=(ShapeDefinition("Thing", fields=(
            FieldConstraint("code", ScalarType(ScalarKind.STRING),
                            facets=(Facet(FacetKind.MIN_LENGTH, 2),)),
            FieldConstraint("owner", ShapeReference("http://other.example/Agent", external=True)),
        )),))
        attrs = convert_canonical_to_linkml(graph)["classes"]["Thing"]["attributes"]
        assert attrs["code"]["annotations"] == {MIN_LENGTH_TAG: 2}
        assert attrs["owner"]["range"] == "Agent"
        assert attrs["owner"]["annotations"] == {EXTERNAL_REF_TAG: "http://other.example/Agent"}

    def test_yaml_output_is_deterministic(self):
        graph = _library()
        first = serialize_yaml(convert_canonical_to_linkml(graph))
        second = serialize_yaml(convert_canonical_to_linkml(graph))
        assert first == second
        assert first.startswith("id: https://example.org/library\n")

    def test_reimport_is_lossless(self):
        from shexlink_py.audit import audit
        graph = _library()
        again = convert_linkml_to_canonical(parse_linkml(serialize_yaml(convert_canonical_to_linkml(graph))))
        assert audit(graph, again).is_clean
        assert again.start == graph.start
