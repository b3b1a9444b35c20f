"""Fidelity Auditor: structural comparison of two canonical schema graphs.

Shapes are matched by identifier and fields by name, so declaration order
never produces a diagnostic. A ``changed`` diagnostic carries only the
aspects that differ.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Optional

from shexlink_py.logging import get_logger
from shexlink_py.schema.canonical import FieldConstraint, SchemaGraph, ShapeDefinition

logger = get_logger(__name__)


class DiffKind(Enum):
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


@dataclass(frozen=True)
class Diagnostic:
    """One differing shape (``field_name`` is None) or field."""

    shape_id: str
    kind: DiffKind
    field_name: Optional[str] = None
    before: Optional[dict] = None
    after: Optional[dict] = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"shapeId": self.shape_id}
        if self.field_name is not None:
            d["fieldName"] = self.field_name
        d["kind"] = self.kind.value
        if self.before is not None:
            d["before"] = self.before
        if self.after is not None:
            d["after"] = self.after
        return d

    def __str__(self) -> str:
        where = self.shape_id if self.field_name is None else f"{self.shape_id}.{self.field_name}"
        if self.kind is DiffKind.CHANGED:
            aspects = ", ".join(sorted((self.before or {}).keys() | (self.after or {}).keys()))
            return f"{where}: changed ({aspects})"
        return f"{where}: {self.kind.value}"


def _sort_key(d: Diagnostic):
    return (d.shape_id, d.field_name is not None, d.field_name or "")


class DiffReport:
    """Ordered collection of diagnostics (shape id, then field name)."""

    def __init__(self, diagnostics=()):
        self._diagnostics = tuple(sorted(diagnostics, key=_sort_key))

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._diagnostics)

    def __len__(self) -> int:
        return len(self._diagnostics)

    def __getitem__(self, index: int) -> Diagnostic:
        return self._diagnostics[index]

    def __bool__(self) -> bool:
        return bool(self._diagnostics)

    def __repr__(self) -> str:
        return f"DiffReport({len(self._diagnostics)} diagnostics)"

    @property
    def is_clean(self) -> bool:
        return not self._diagnostics

    def to_dict(self) -> dict:
        return {
            "clean": self.is_clean,
            "diagnostics": [d.to_dict() for d in self._diagnostics],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


def _field_aspects(f: FieldConstraint) -> dict:
    return {
        "cardinality": str(f.cardinality),
        "valueType": f.value_type.describe(),
        "facets": {facet.kind.value: facet.value for facet in f.facets},
        "predicate": f.predicate,
        "description": f.description,
        "annotations": f.annotations.to_dict(),
    }


def _shape_aspects(s: ShapeDefinition) -> dict:
    return {
        "label": s.label,
        "description": s.description,
        "parent": s.parent,
        "closed": s.closed,
        "annotations": s.annotations.to_dict(),
    }


def _changed(shape_id: str, before: dict, after: dict,
             field_name: Optional[str] = None) -> Optional[Diagnostic]:
    keys = [k for k in before if before[k] != after[k]]
    if not keys:
        return None
    return Diagnostic(
        shape_id=shape_id,
        kind=DiffKind.CHANGED,
        field_name=field_name,
        before={k: before[k] for k in keys},
        after={k: after[k] for k in keys},
    )


def _compare_shapes(before: ShapeDefinition, after: ShapeDefinition) -> list[Diagnostic]:
    diagnostics = []
    changed = _changed(before.id, _shape_aspects(before), _shape_aspects(after))
    if changed is not None:
        diagnostics.append(changed)

    after_fields = {f.name: f for f in after.fields}
    before_names = set()
    for f in before.fields:
        before_names.add(f.name)
        other = after_fields.get(f.name)
        if other is None:
            diagnostics.append(Diagnostic(before.id, DiffKind.REMOVED, f.name, before=f.to_dict()))
            continue
        changed = _changed(before.id, _field_aspects(f), _field_aspects(other), f.name)
        if changed is not None:
            diagnostics.append(changed)
    for f in after.fields:
        if f.name not in before_names:
            diagnostics.append(Diagnostic(before.id, DiffKind.ADDED, f.name, after=f.to_dict()))
    return diagnostics


def audit(original: SchemaGraph, round_tripped: SchemaGraph) -> DiffReport:
    """Compare two schema graphs and report every structural difference.

    Neither graph is modified.

    Args:
        original: The reference graph.
        round_tripped: The graph to check against it.

    Returns:
        DiffReport with one diagnostic per differing shape or field.
    """
    diagnostics: list[Diagnostic] = []
    for shape in original:
        other = round_tripped.get(shape.id)
        if other is None:
            diagnostics.append(Diagnostic(shape.id, DiffKind.REMOVED, before=shape.to_dict()))
        else:
            diagnostics.extend(_compare_shapes(shape, other))
    for shape in round_tripped:
        if shape.id not in original:
            diagnostics.append(Diagnostic(shape.id, DiffKind.ADDED, after=shape.to_dict()))

    report = DiffReport(diagnostics)
    logger.debug("audit.completed", diagnostics=len(report))
    return report
