"""Error taxonomy shared by every importer, exporter and the auditor.

Each core call raises exactly one of these and returns no partial result.
"""
from __future__ import annotations

from typing import Optional


class TranslationError(Exception):
    """Base class for all errors surfaced by the translation core."""


class ParseError(TranslationError):
    """Malformed input in the source syntax."""

    def __init__(self, location: Optional[str], message: str):
        self.location = location
        self.message = message
        if location:
            super().__init__(f"{message} ({location})")
        else:
            super().__init__(message)


class UnsupportedConstruct(TranslationError):
    """Well-formed input that uses a feature outside the conjunctive subset."""

    def __init__(self, kind: str, location: Optional[str] = None):
        self.kind = kind
        self.location = location
        msg = f"Unsupported construct: {kind}"
        if location:
            msg += f" ({location})"
        super().__init__(msg)


class UnresolvedReference(TranslationError):
    """A shape reference that does not resolve within the graph."""

    def __init__(self, shape_id: str, field_name: Optional[str] = None):
        self.shape_id = shape_id
        self.field_name = field_name
        if field_name:
            msg = f"Unresolved shape reference {shape_id!r} in field {field_name!r}"
        else:
            msg = f"Unresolved shape reference {shape_id!r}"
        super().__init__(msg)


class UnrepresentableConstraint(TranslationError):
    """CSM content with no equivalent in the target language.

    Only raised on exporter programming errors: every well-formed
    conjunctive graph has a rendering in each supported language.
    """

    def __init__(self, constraint: str, target: str):
        self.constraint = constraint
        self.target = target
        super().__init__(f"{constraint} cannot be represented in {target}")
