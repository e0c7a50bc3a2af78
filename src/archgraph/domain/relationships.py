"""Relationship records and the tagged edge tuple shared by both extractors.

``Relationship`` is the persisted, user-authored form (one YAML file per
system). ``RawEdge`` is what every extractor emits: both sources are
normalized into it before merge, so deduplication never branches on where
an edge came from beyond reading its ``provenance`` tag.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from archgraph.domain.errors import InvalidRelationshipError
from archgraph.domain.ids import generate_relationship_id
from archgraph.domain.types import Direction, Provenance, RelationshipKind

# (source, target, label)
type EdgeKey = tuple[str, str, str]


class Relationship(BaseModel):
    """A durable relationship record between two qualified element paths."""

    model_config = {"frozen": True}

    id: str
    source: str
    target: str
    label: str
    type: RelationshipKind = RelationshipKind.SYNC
    technology: str | None = None
    direction: Direction = Direction.FORWARD

    @property
    def key(self) -> EdgeKey:
        return (self.source, self.target, self.label)

    @property
    def bidirectional(self) -> bool:
        return self.direction is Direction.BIDIRECTIONAL

    def involves(self, element_id: str) -> bool:
        """Whether *element_id* is this relationship's source or target."""
        return element_id in (self.source, self.target)

    def to_raw_edge(self) -> RawEdge:
        return RawEdge(
            source=self.source,
            target=self.target,
            label=self.label,
            technology=self.technology,
            kind=self.type,
            bidirectional=self.bidirectional,
            provenance=Provenance.STRUCTURED,
        )

    def to_record(self) -> dict[str, Any]:
        """Serialize for the relationship file, omitting unset optionals."""
        record: dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "label": self.label,
            "type": str(self.type),
        }
        if self.technology:
            record["technology"] = self.technology
        record["direction"] = str(self.direction)
        return record


class RelationshipList(BaseModel):
    """Top-level shape of a relationship file."""

    relationships: list[Relationship] = Field(default_factory=list)


def new_relationship(
    source: str,
    target: str,
    label: str,
    *,
    type: str | None = None,  # noqa: A002
    technology: str | None = None,
    direction: str | None = None,
) -> Relationship:
    """Validate inputs and construct a Relationship with its generated ID.

    Raises:
        InvalidRelationshipError: blank source/target/label, a
            self-reference, or an unknown type or direction.
    """
    source = source.strip()
    target = target.strip()
    if not source:
        msg = "Relationship source cannot be empty"
        raise InvalidRelationshipError(msg)
    if not target:
        msg = "Relationship target cannot be empty"
        raise InvalidRelationshipError(msg)
    if source == target:
        msg = f"Relationship source and target are identical (self-reference): {source}"
        raise InvalidRelationshipError(msg)
    if not label or not label.strip():
        msg = "Relationship label cannot be empty"
        raise InvalidRelationshipError(msg)
    label = label.strip()

    try:
        kind = RelationshipKind(type) if type else RelationshipKind.SYNC
    except ValueError:
        allowed = ", ".join(k.value for k in RelationshipKind)
        msg = f"Invalid relationship type {type!r} (expected one of: {allowed})"
        raise InvalidRelationshipError(msg) from None

    try:
        dir_value = Direction(direction) if direction else Direction.FORWARD
    except ValueError:
        allowed = ", ".join(d.value for d in Direction)
        msg = f"Invalid relationship direction {direction!r} (expected one of: {allowed})"
        raise InvalidRelationshipError(msg) from None

    return Relationship(
        id=generate_relationship_id(source, target, label),
        source=source,
        target=target,
        label=label,
        type=kind,
        technology=technology.strip() if technology and technology.strip() else None,
        direction=dir_value,
    )


@dataclass(frozen=True)
class AuthoredRelationship:
    """A relationship declared in an element's own metadata.

    ``target`` is a reference as the author wrote it: a qualified ID, a
    short name, or a display name.
    """

    target: str
    label: str = ""
    technology: str | None = None
    kind: RelationshipKind | None = None


@dataclass(frozen=True)
class RawEdge:
    """One relationship tuple produced by an extractor, prior to merge."""

    source: str
    target: str
    label: str
    technology: str | None = None
    kind: RelationshipKind | None = None
    bidirectional: bool = False
    provenance: Provenance = Provenance.STRUCTURED

    @property
    def key(self) -> EdgeKey:
        return (self.source, self.target, self.label)
