"""Tests for the fidelity auditor."""
import copy
import json

from shexlink_py.audit import DiffKind, DiffReport, Diagnostic, audit
from shexlink_py.schema.canonical import (
    AnnotationBag,
    Facet,
    FacetKind,
    FieldConstraint,
    SchemaGraph,
    ScalarKind,
    ScalarType,
    ShapeDefinition,
)
from shexlink_py.schema.common import UNBOUNDED, Cardinality

STRING = ScalarType(ScalarKind.STRING)


def _graph(*shapes, **kwargs):
    return SchemaGraph(shapes=tuple(shapes), **kwargs)


def _person(*fields, **kwargs):
    return ShapeDefinition("Person", fields=tuple(fields), **kwargs)


def test_identical_graphs_are_clean():
    g = _graph(_person(FieldConstraint("name", STRING)))
    report = audit(g, g)
    assert report.is_clean
    assert not report
    assert report.to_dict() == {"clean": True, "diagnostics": []}


def test_field_order_is_ignored():
    a = _person(FieldConstraint("name", STRING), FieldConstraint("age", STRING))
    b = _person(FieldConstraint("age", STRING), FieldConstraint("name", STRING))
    assert audit(_graph(a), _graph(b)).is_clean


def test_graph_metadata_is_ignored():
    shape = _person(FieldConstraint("name", STRING))
    assert audit(_graph(shape, id="urn:a", name="a"), _graph(shape, id="urn:b")).is_clean


def test_cardinality_change():
    before = _graph(_person(FieldConstraint("age", ScalarType(ScalarKind.INTEGER), Cardinality(0, 1))))
    after = _graph(_person(FieldConstraint("age", ScalarType(ScalarKind.INTEGER), Cardinality(0, UNBOUNDED))))
    report = audit(before, after)
    assert len(report) == 1
    d = report[0]
    assert (d.shape_id, d.field_name, d.kind) == ("Person", "age", DiffKind.CHANGED)
    assert d.before == {"cardinality": "{0,1}"}
    assert d.after == {"cardinality": "{0,*}"}
    assert str(d) == "Person.age: changed (cardinality)"


def test_several_aspects_in_one_diagnostic():
    before = _graph(_person(FieldConstraint(
        "code", STRING, facets=(Facet(FacetKind.MAX_LENGTH, 5),), predicate="http://example.org/code",
    )))
    after = _graph(_person(FieldConstraint("code", STRING)))
    (d,) = audit(before, after)
    assert set(d.before) == {"facets", "predicate"}
    assert d.before["facets"] == {"max_length": 5}
    assert d.after == {"facets": {}, "predicate": None}


def test_removed_and_added_fields():
    before = _graph(_person(FieldConstraint("name", STRING), FieldConstraint("nick", STRING)))
    after = _graph(_person(FieldConstraint("name", STRING), FieldConstraint("alias", STRING)))
    report = audit(before, after)
    assert [(d.field_name, d.kind) for d in report] == [
        ("alias", DiffKind.ADDED), ("nick", DiffKind.REMOVED),
    ]
    removed = report[1]
    assert removed.before["name"] == "nick"
    assert removed.after is None


def test_removed_and_added_shapes():
    before = _graph(ShapeDefinition("A"), ShapeDefinition("B"))
    after = _graph(ShapeDefinition("A"), ShapeDefinition("C"))
    report = audit(before, after)
    assert [(d.shape_id, d.field_name, d.kind) for d in report] == [
        ("B", None, DiffKind.REMOVED), ("C", None, DiffKind.ADDED),
    ]


def test_shape_level_changes():
    before = _graph(_person(closed=True, label="Person",
                            annotations=AnnotationBag({"http://example.org/k": 1})))
    after = _graph(_person(label="Person"))
    (d,) = audit(before, after)
    assert d.field_name is None
    assert d.before == {"closed": True, "annotations": {"http://example.org/k": 1}}
    assert d.after == {"closed": False, "annotations": {}}


def test_ordering_shape_diagnostic_before_fields():
    before = _graph(
        ShapeDefinition("B", fields=(FieldConstraint("z", STRING), FieldConstraint("a", STRING))),
        ShapeDefinition("A", description="first"),
    )
    after = _graph(
        ShapeDefinition("B", description="changed"),
        ShapeDefinition("A"),
    )
    report = audit(before, after)
    assert [(d.shape_id, d.field_name) for d in report] == [
        ("A", None), ("B", None), ("B", "a"), ("B", "z"),
    ]


def test_inputs_not_modified():
    shape = _person(FieldConstraint("name", STRING, annotations=AnnotationBag({"k": [1]})))
    before = _graph(shape)
    snapshot = shape.to_dict()
    audit(before, _graph())
    assert shape.to_dict() == snapshot


def test_report_serialization():
    report = DiffReport([
        Diagnostic("B", DiffKind.REMOVED),
        Diagnostic("A", DiffKind.CHANGED, "x", before={"description": "a"}, after={"description": None}),
    ])
    data = json.loads(report.to_json())
    assert data["clean"] is False
    assert data["diagnostics"][0] == {
        "shapeId": "A",
        "fieldName": "x",
        "kind": "changed",
        "before": {"description": "a"},
        "after": {"description": None},
    }
    assert data["diagnostics"][1] == {"shapeId": "B", "kind": "removed"}
    assert repr(report) == "DiffReport(2 diagnostics)"


def test_inputs_equal_deep_copies_after_audit():
    before = _graph(
        _person(FieldConstraint("tags", STRING, annotations=AnnotationBag({"k": {"nested": [1]}})),
                annotations=AnnotationBag({"http://example.org/k": [1]})),
        start="Person",
    )
    after = _graph(_person(FieldConstraint("tags", STRING, annotations=AnnotationBag({"k": {"nested": [2]}}))))
    before_copy, after_copy = copy.deepcopy(before), copy.deepcopy(after)

    report = audit(before, after)
    assert [d.field_name for d in report] == [None, "tags"]
    # values handed out by the bags and the report are copies
    report[1].before["annotations"]["k"]["nested"].append(3)
    report[0].before["annotations"]["http://example.org/k"].append(3)
    before.get("Person").get_field("tags").annotations["k"]["nested"].append(4)
    after.get("Person").get_field("tags").annotations["k"]["nested"].append(4)

    assert before == before_copy
    assert after == after_copy
    assert before.to_dict() == before_copy.to_dict()
    assert after.get("Person").get_field("tags").annotations["k"] == {"nested": [2]}
