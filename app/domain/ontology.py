"""
app/domain/ontology.py

Ontology naming helpers and errors shared by the ontology service and projector.
"""

from __future__ import annotations

import re
import uuid
from typing import Any

_SLUG_SEPARATOR = re.compile(r"[^a-z0-9]+")

DEFAULT_RELATIONSHIP_NAME = "references"
DEFAULT_ENTITY_TYPE_ICON = "circle"
DEFAULT_ENTITY_TYPE_COLOR = "#10B981"


def slug_from_name(name: str) -> str:
    """
    Derive an entity type slug: lower-case, non-alphanumeric runs to `_`.

    >>> slug_from_name("Sales Reps (EU)")
    'sales_reps_eu'
    """

    slug = _SLUG_SEPARATOR.sub("_", name.strip().lower()).strip("_")
    return slug or "type"


def entity_name_key(name: str) -> str:
    return name.strip().lower()


class OntologyError(ValueError):
    """
    Base class for ontology validation failures.
    """

    def __init__(self, message: str, *, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "context": self.context}


class OntologyNotFoundError(OntologyError):
    """Raised when a referenced ontology record does not exist for the tenant."""

    @classmethod
    def for_record(cls, kind: str, record_id: uuid.UUID) -> "OntologyNotFoundError":
        return cls(f"{kind} not found.", context={"id": str(record_id)})


class OntologyConflictError(OntologyError):
    """Raised when a create/update would violate a uniqueness rule."""


class OntologyConfigError(OntologyError):
    """Raised when an upload's ontology configuration does not fit its headers."""


class OntologyPersistenceError(RuntimeError):
    """Raised when ontology records cannot be written."""
