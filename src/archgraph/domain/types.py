"""Element and relationship classification enums."""

from __future__ import annotations

from enum import StrEnum


class ElementKind(StrEnum):
    """The three levels of the architecture hierarchy."""

    SYSTEM = "system"
    CONTAINER = "container"
    COMPONENT = "component"

    @property
    def level(self) -> int:
        return _LEVELS[self]


_LEVELS: dict[ElementKind, int] = {
    ElementKind.SYSTEM: 1,
    ElementKind.CONTAINER: 2,
    ElementKind.COMPONENT: 3,
}


class RelationshipKind(StrEnum):
    """Communication pattern of a relationship."""

    SYNC = "sync"
    ASYNC = "async"
    EVENT = "event"


class Direction(StrEnum):
    """Whether a relationship is traversable in one or both directions."""

    FORWARD = "forward"
    BIDIRECTIONAL = "bidirectional"


class Provenance(StrEnum):
    """Where an edge came from. Structured metadata wins dedup collisions."""

    STRUCTURED = "structured"
    DIAGRAM = "diagram"
