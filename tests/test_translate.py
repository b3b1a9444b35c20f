"""Tests for the translation façade and cross-language round trips."""
import os

import pytest

from shexlink_py.audit import DiffKind
from shexlink_py.config import TranslatorSettings
from shexlink_py.errors import ParseError, UnrepresentableConstraint
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
from shexlink_py.translate import Language, convert, export_schema, import_schema, round_trip

DATASET = os.path.join(os.path.dirname(__file__), "..", "dataset")

LANGUAGES = [lang.value for lang in Language]


def _read(*parts):
    with open(os.path.join(DATASET, *parts), "r", encoding="utf-8") as f:
        return f.read()


def _every_construct() -> SchemaGraph:
    fields = [
        FieldConstraint(f"v_{kind.value}", ScalarType(kind), Cardinality(0, 1))
        for kind in ScalarKind
    ]
    fields += [
        FieldConstraint("code", ScalarType(ScalarKind.STRING), facets=(
            Facet(FacetKind.PATTERN, "^[A-Z]+$"),
            Facet(FacetKind.MIN_LENGTH, 2),
            Facet(FacetKind.MAX_LENGTH, 8),
        )),
        FieldConstraint("rank", ScalarType(ScalarKind.INTEGER), Cardinality(0, 1), facets=(
            Facet(FacetKind.MIN_INCLUSIVE, 1),
            Facet(FacetKind.MAX_INCLUSIVE, 10),
        )),
        FieldConstraint("isbn", ScalarType(ScalarKind.LITERAL, "http://example.org/Isbn")),
        FieldConstraint("status", EnumerationType(("open", "closed")), Cardinality(0, 1)),
        FieldConstraint("kind", EnumerationType(("http://example.org/A", "http://example.org/B"), iri=True),
                        Cardinality(2, 5)),
        FieldConstraint("parts", ShapeReference("http://example.org/Part"), Cardinality(0, UNBOUNDED)),
        FieldConstraint("owner", ShapeReference("http://other.example/Agent", external=True),
                        Cardinality(0, 1)),
    ]
    return SchemaGraph(
        shapes=(
            ShapeDefinition("http://example.org/Part", fields=(
                FieldConstraint("label", ScalarType(ScalarKind.STRING)),
            )),
            ShapeDefinition("http://example.org/Thing", fields=tuple(fields),
                            parent="http://example.org/Part", closed=True),
        ),
        start="http://example.org/Thing",
    )


def test_person_scenario_round_trip_is_clean():
    original, again, report = round_trip(_read("shex", "Person.shex"), "shex", "jsonschema")
    assert report.is_clean
    assert len(report) == 0
    assert again.get("Person").fields == original.get("Person").fields


@pytest.mark.parametrize("via", LANGUAGES)
def test_library_shex_round_trips(via):
    _, _, report = round_trip(_read("shex", "Library.shex"), Language.SHEX, via)
    assert report.is_clean, report.to_json()


def test_unnamed_predicates_reported_after_shex_round_trip():
    source = '{"$defs": {"Thing": {"type": "object", "properties": {"title": {"type": "string"}}}}}'
    _, again, report = round_trip(source, "jsonschema", "shex")
    assert again.get("Thing").field_names == ["title"]
    (d,) = report
    assert (d.shape_id, d.field_name, d.kind) == ("Thing", "title", DiffKind.CHANGED)
    assert d.before == {"predicate": None}
    assert d.after == {"predicate": "http://example.org/title"}


class TestLanguage:

    @pytest.mark.parametrize("path, lang", [
        ("a.shex", Language.SHEX),
        ("dir/b.SHEXC", Language.SHEX),
        ("c.yaml", Language.LINKML),
        ("c.yml", Language.LINKML),
        ("d.json", Language.JSON_SCHEMA),
        ("e.ttl", Language.SHACL),
    ])
    def test_from_path(self, path, lang):
        assert Language.from_path(path) is lang

    def test_unknown_suffix(self):
        with pytest.raises(ValueError):
            Language.from_path("schema.xsd")

    def test_string_values(self):
        assert Language("jsonschema") is Language.JSON_SCHEMA


class TestFacade:

    def test_bytes_input(self):
        graph = import_schema(_read("shex", "Person.shex").encode("utf-8"), "shex")
        assert graph.get("Person") is not None

    def test_invalid_utf8(self):
        with pytest.raises(ParseError) as exc:
            import_schema(b"\xff\xfe<Person> {}", "shex")
        assert exc.value.location == "byte 0"

    def test_convert(self):
        text = convert(_read("shex", "Person.shex"), "shex", "linkml")
        assert "classes:" in text
        assert "slot_uri: foaf:name" in text

    def test_settings_control_synthesized_predicates(self):
        graph = SchemaGraph(shapes=(ShapeDefinition("Thing", fields=(
            FieldConstraint("title", ScalarType(ScalarKind.STRING)),
        )),))
        settings = TranslatorSettings(default_prefix="my", default_namespace="http://mine.example/")
        text = export_schema(graph, "shex", settings)
        assert "PREFIX my: <http://mine.example/>" in text
        assert "my:title" in text

    @pytest.mark.parametrize("target", LANGUAGES)
    def test_every_construct_is_representable(self, target):
        try:
            text = export_schema(_every_construct(), target)
        except UnrepresentableConstraint as e:
            pytest.fail(f"{target}: {e}")
        assert text

    @pytest.mark.parametrize("target", LANGUAGES)
    def test_export_is_deterministic(self, target):
        graph = import_schema(_read("shex", "Library.shex"), "shex")
        assert export_schema(graph, target) == export_schema(graph, target)

    def test_export_does_not_modify_graph(self):
        graph = _every_construct()
        snapshot = [s.to_dict() for s in graph]
        for target in LANGUAGES:
            export_schema(graph, target)
        assert [s.to_dict() for s in graph] == snapshot


@pytest.mark.parametrize("via", ["shex", "shacl"])
def test_names_with_spaces_survive_rdf_round_trips(via):
    source = ('{"$defs": {"Order Line": {"type": "object", "properties": '
              '{"first name": {"type": "string"}, "qty": {"type": "integer"}}}}}')
    _, again, report = round_trip(source, "jsonschema", via)
    assert again.shape_ids == ["Order Line"]
    assert sorted(again.get("Order Line").field_names) == ["first name", "qty"]
    assert [(d.field_name, d.kind, set(d.before)) for d in report] == [
        ("first name", DiffKind.CHANGED, {"predicate"}),
        ("qty", DiffKind.CHANGED, {"predicate"}),
    ]


def test_synthesized_predicates_are_percent_encoded():
    graph = SchemaGraph(shapes=(ShapeDefinition("Thing", fields=(
        FieldConstraint("first name", ScalarType(ScalarKind.STRING)),
    )),))
    text = export_schema(graph, "shex")
    assert "<http://example.org/first%20name>" in text
    again = import_schema(text, "shex")
    assert again.get("Thing").field_names == ["first name"]
