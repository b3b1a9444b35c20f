"""Tests for the canonical schema model and its builder."""
import dataclasses

import pytest

from shexlink_py.errors import ParseError, UnresolvedReference, UnsupportedConstruct
from shexlink_py.schema.canonical import (
    AnnotationBag,
    EnumerationType,
    Facet,
    FacetKind,
    FieldConstraint,
    SchemaBuilder,
    ScalarKind,
    ScalarType,
    ShapeDefinition,
    ShapeReference,
    scalar_for_datatype,
)
from shexlink_py.schema.common import (
    UNBOUNDED,
    Cardinality,
    Prefix,
    PrefixMap,
    decode_iri,
    encode_iri,
    local_name,
    unique_name,
)

XSD = "http://www.w3.org/2001/XMLSchema#"

STRING = ScalarType(ScalarKind.STRING)


class TestCardinality:

    def test_defaults_to_exactly_one(self):
        assert Cardinality() == Cardinality(1, 1)
        assert not Cardinality().is_multivalued

    @pytest.mark.parametrize("card, shex", [
        (Cardinality(1, 1), ""),
        (Cardinality(0, 1), " ?"),
        (Cardinality(0, UNBOUNDED), " *"),
        (Cardinality(1, UNBOUNDED), " +"),
        (Cardinality(2, UNBOUNDED), " {2,}"),
        (Cardinality(3, 3), " {3}"),
        (Cardinality(2, 5), " {2,5}"),
    ])
    def test_shex_string(self, card, shex):
        assert card.to_shex_string() == shex

    def test_str(self):
        assert str(Cardinality(0, UNBOUNDED)) == "{0,*}"
        assert str(Cardinality(2, 5)) == "{2,5}"

    @pytest.mark.parametrize("mn, mx", [(-1, 1), (3, 2), (0, -2)])
    def test_invalid(self, mn, mx):
        with pytest.raises(ValueError):
            Cardinality(mn, mx)


class TestValueTypes:

    def test_scalar_for_known_datatype(self):
        assert scalar_for_datatype(XSD + "integer") == ScalarType(ScalarKind.INTEGER)
        assert scalar_for_datatype(XSD + "dateTime") == ScalarType(ScalarKind.DATETIME)

    def test_scalar_for_custom_datatype(self):
        scalar = scalar_for_datatype("http://example.org/Isbn")
        assert scalar.kind is ScalarKind.LITERAL
        assert scalar.datatype == "http://example.org/Isbn"
        assert scalar.describe() == "literal^^<http://example.org/Isbn>"

    def test_only_literal_carries_datatype(self):
        with pytest.raises(ValueError):
            ScalarType(ScalarKind.STRING, "http://example.org/Isbn")

    def test_enumeration_equality_ignores_order_and_name(self):
        a = EnumerationType(("x", "y"), name="First")
        b = EnumerationType(("y", "x"), name="Second")
        assert a == b
        assert hash(a) == hash(b)
        assert a != EnumerationType(("x", "y"), iri=True)

    def test_enumeration_rejects_empty_and_duplicates(self):
        with pytest.raises(ValueError):
            EnumerationType(())
        with pytest.raises(ValueError):
            EnumerationType(("a", "a"))

    def test_facet_validation(self):
        with pytest.raises(ValueError):
            Facet(FacetKind.MIN_LENGTH, -1)
        with pytest.raises(ValueError):
            Facet(FacetKind.PATTERN, 3)
        with pytest.raises(ValueError):
            Facet(FacetKind.MIN_INCLUSIVE, True)
        assert Facet(FacetKind.MAX_INCLUSIVE, 2.5).value == 2.5


class TestAnnotationBag:

    def test_mapping_behaviour(self):
        bag = AnnotationBag([("b", 1), ("a", [1, 2])])
        assert list(bag) == ["b", "a"]
        assert bag["a"] == [1, 2]
        assert bag.get("missing") is None
        assert len(bag) == 2

    def test_values_are_copied(self):
        value = {"nested": [1]}
        bag = AnnotationBag({"k": value})
        value["nested"].append(2)
        bag["k"]["nested"].append(3)
        assert bag["k"] == {"nested": [1]}

    def test_equality_ignores_order(self):
        assert AnnotationBag([("a", 1), ("b", 2)]) == AnnotationBag([("b", 2), ("a", 1)])

    def test_duplicate_key_rejected(self):
        with pytest.raises(ValueError):
            AnnotationBag([("a", 1), ("a", 2)])

    def test_without(self):
        bag = AnnotationBag({"a": 1, "b": 2}).without("a")
        assert bag.to_dict() == {"b": 2}


class TestShapes:

    def test_field_facets_sorted(self):
        f = FieldConstraint("code", STRING, facets=(
            Facet(FacetKind.MAX_LENGTH, 8), Facet(FacetKind.PATTERN, "^[A-Z]+$"),
        ))
        assert [x.kind for x in f.facets] == [FacetKind.PATTERN, FacetKind.MAX_LENGTH]
        assert f.facet(FacetKind.MAX_LENGTH).value == 8
        assert f.facet(FacetKind.MIN_LENGTH) is None

    def test_facets_on_reference_rejected(self):
        with pytest.raises(ValueError):
            FieldConstraint("owner", ShapeReference("Person"), facets=(Facet(FacetKind.MIN_LENGTH, 1),))

    def test_repeated_facet_kind_rejected(self):
        with pytest.raises(ValueError):
            FieldConstraint("code", STRING, facets=(
                Facet(FacetKind.MAX_LENGTH, 8), Facet(FacetKind.MAX_LENGTH, 9),
            ))

    def test_duplicate_field_names_rejected(self):
        with pytest.raises(ValueError):
            ShapeDefinition("S", fields=(FieldConstraint("a", STRING), FieldConstraint("a", STRING)))

    def test_to_dict(self):
        shape = ShapeDefinition("S", fields=(
            FieldConstraint("a", STRING, Cardinality(0, 1), predicate="http://example.org/a"),
        ), label="An S")
        assert shape.to_dict() == {
            "id": "S",
            "label": "An S",
            "closed": False,
            "fields": [{
                "name": "a",
                "valueType": "string",
                "cardinality": "{0,1}",
                "predicate": "http://example.org/a",
            }],
        }


class TestImmutability:

    @pytest.fixture
    def graph(self):
        builder = SchemaBuilder()
        builder.add_shape(ShapeDefinition("Person", fields=(
            FieldConstraint("name", STRING, annotations=AnnotationBag({"k": [1]})),
        )))
        builder.start = "Person"
        return builder.build()

    def test_graph_is_frozen(self, graph):
        with pytest.raises(dataclasses.FrozenInstanceError):
            graph.start = None
        with pytest.raises(dataclasses.FrozenInstanceError):
            graph.shapes = ()
        assert isinstance(graph.shapes, tuple)

    def test_shape_is_frozen(self, graph):
        shape = graph.get("Person")
        with pytest.raises(dataclasses.FrozenInstanceError):
            shape.closed = True
        with pytest.raises(dataclasses.FrozenInstanceError):
            shape.fields = ()
        assert isinstance(shape.fields, tuple)

    def test_field_is_frozen(self, graph):
        field = graph.get("Person").get_field("name")
        with pytest.raises(dataclasses.FrozenInstanceError):
            field.cardinality = Cardinality(0, UNBOUNDED)
        with pytest.raises(dataclasses.FrozenInstanceError):
            field.value_type.kind = ScalarKind.INTEGER

    def test_annotation_bag_rejects_assignment(self, graph):
        bag = graph.get("Person").get_field("name").annotations
        with pytest.raises(TypeError):
            bag["k"] = [2]
        bag["k"].append(2)
        assert graph.get("Person").get_field("name").annotations == {"k": [1]}


class TestBuilder:

    def test_build_indexes_shapes(self):
        builder = SchemaBuilder(id="urn:test")
        builder.add_prefix("ex", "http://example.org/")
        builder.add_shape(ShapeDefinition("B"))
        builder.add_shape(ShapeDefinition("A", fields=(FieldConstraint("b", ShapeReference("B")),)))
        builder.start = "A"
        graph = builder.build()
        assert graph.shape_ids == ["B", "A"]
        assert [s.id for s in graph.sorted_shapes()] == ["A", "B"]
        assert "A" in graph and len(graph) == 2
        assert graph.resolve(graph.get("A").fields[0].value_type) is graph.get("B")
        assert graph.prefixes == (Prefix("ex", "http://example.org/"),)

    def test_duplicate_shape_id(self):
        builder = SchemaBuilder()
        builder.add_shape(ShapeDefinition("A"))
        with pytest.raises(ParseError):
            builder.add_shape(ShapeDefinition("A"), "line 3")

    def test_unresolved_field_reference(self):
        builder = SchemaBuilder()
        builder.add_shape(ShapeDefinition("A", fields=(FieldConstraint("b", ShapeReference("B")),)))
        with pytest.raises(UnresolvedReference) as exc:
            builder.build()
        assert (exc.value.shape_id, exc.value.field_name) == ("B", "b")

    def test_external_reference_is_not_resolved(self):
        builder = SchemaBuilder()
        builder.add_shape(ShapeDefinition("A", fields=(
            FieldConstraint("b", ShapeReference("http://other.example/B", external=True)),
        )))
        graph = builder.build()
        assert graph.resolve(graph.get("A").fields[0].value_type) is None

    def test_unresolved_parent_and_start(self):
        builder = SchemaBuilder()
        builder.add_shape(ShapeDefinition("A", parent="Base"))
        with pytest.raises(UnresolvedReference):
            builder.build()

        builder = SchemaBuilder()
        builder.add_shape(ShapeDefinition("A"))
        builder.start = "Missing"
        with pytest.raises(UnresolvedReference):
            builder.build()

    def test_self_reference_needs_optional_edge(self):
        builder = SchemaBuilder()
        builder.add_shape(ShapeDefinition("Node", fields=(
            FieldConstraint("next", ShapeReference("Node"), Cardinality(0, 1)),
        )))
        assert builder.build().get("Node") is not None

        builder = SchemaBuilder()
        builder.add_shape(ShapeDefinition("Node", fields=(
            FieldConstraint("next", ShapeReference("Node")),
        )))
        with pytest.raises(UnsupportedConstruct):
            builder.build()

    def test_ancestors(self):
        builder = SchemaBuilder()
        builder.add_shape(ShapeDefinition("Thing"))
        builder.add_shape(ShapeDefinition("Agent", parent="Thing"))
        builder.add_shape(ShapeDefinition("Person", parent="Agent"))
        assert builder.build().ancestors("Person") == ["Agent", "Thing"]


class TestNames:

    def test_local_name(self):
        assert local_name("http://schema.org/name") == "name"
        assert local_name("http://www.w3.org/2001/XMLSchema#string") == "string"
        assert local_name("Person") == "Person"
        assert local_name("http://example.org/first%20name") == "first name"
        assert local_name("http://example.org/first name") == "first name"

    def test_iri_escaping(self):
        assert encode_iri("Order Line") == "Order%20Line"
        assert encode_iri("a<b>") == "a%3Cb%3E"
        assert encode_iri("http://example.org/caf\u00e9") == "http://example.org/caf\u00e9"
        assert decode_iri("Order%20Line") == "Order Line"
        # escapes of characters legal in an IRI are kept
        assert decode_iri("a%2Fb") == "a%2Fb"

    def test_unique_name(self):
        assert unique_name("a", set()) == "a"
        assert unique_name("a", {"a", "a_2"}) == "a_3"

    def test_prefix_map(self):
        pm = PrefixMap([Prefix("ex", "http://example.org/"), Prefix("exs", "http://example.org/sub/")])
        assert pm.compact("http://example.org/sub/x") == "exs:x"
        assert pm.compact("http://other.org/x") is None
        assert pm.expand("ex:a") == "http://example.org/a"
        assert pm.expand("zz:a") is None
