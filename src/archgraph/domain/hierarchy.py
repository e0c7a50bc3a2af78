"""Architecture hierarchy elements as consumed by the graph builder.

The hierarchy is produced by a collaborator (whatever reads the project's
entity files). Each element arrives with its qualified ID already
assigned; :func:`elements_from_tree` is the helper that assigns them from
a nested mapping using :func:`archgraph.domain.ids.qualify`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from archgraph.domain.errors import DuplicateElementError
from archgraph.domain.ids import qualify
from archgraph.domain.relationships import AuthoredRelationship
from archgraph.domain.types import ElementKind, RelationshipKind

_CHILD_KEYS: dict[ElementKind, tuple[str, ElementKind]] = {
    ElementKind.SYSTEM: ("containers", ElementKind.CONTAINER),
    ElementKind.CONTAINER: ("components", ElementKind.COMPONENT),
}


@dataclass(frozen=True)
class Element:
    """One system, container, or component."""

    id: str
    name: str
    kind: ElementKind
    parent_id: str | None = None
    description: str = ""
    technology: str = ""
    relationships: tuple[AuthoredRelationship, ...] = ()
    path: Path | None = None  # directory holding this element's diagram files

    @property
    def level(self) -> int:
        return self.kind.level


def elements_from_tree(
    systems: Iterable[Mapping[str, Any]],
    *,
    root: Path | None = None,
) -> list[Element]:
    """Flatten a nested system → container → component mapping.

    Each mapping needs a ``name``; optional keys are ``description``,
    ``technology``, ``relationships`` (a mapping of target reference to
    label, or a list of mappings with ``target``/``label``/``technology``/
    ``type``), and ``containers``/``components`` for children.

    When *root* is given, each element's ``path`` is set to
    ``root/<qualified id>``.

    Raises:
        DuplicateElementError: two siblings slugify to the same ID.
        ValueError: a name slugifies to nothing.
    """
    result: list[Element] = []
    seen: set[str] = set()

    def visit(entry: Mapping[str, Any], kind: ElementKind, parent_id: str | None) -> None:
        name = str(entry["name"])
        element_id = qualify(parent_id, str(entry.get("id") or name))
        if element_id in seen:
            raise DuplicateElementError(element_id)
        seen.add(element_id)

        result.append(
            Element(
                id=element_id,
                name=name,
                kind=kind,
                parent_id=parent_id,
                description=str(entry.get("description", "")),
                technology=str(entry.get("technology", "")),
                relationships=_parse_authored(entry.get("relationships")),
                path=(root / element_id) if root is not None else None,
            )
        )

        child_spec = _CHILD_KEYS.get(kind)
        if child_spec is None:
            return
        key, child_kind = child_spec
        for child in entry.get(key) or ():
            visit(child, child_kind, element_id)

    for system in systems:
        visit(system, ElementKind.SYSTEM, None)
    return result


def _parse_authored(raw: Any) -> tuple[AuthoredRelationship, ...]:
    if not raw:
        return ()
    if isinstance(raw, Mapping):
        return tuple(
            AuthoredRelationship(target=str(target), label=str(label or ""))
            for target, label in raw.items()
        )
    items: list[AuthoredRelationship] = []
    for item in raw:
        kind = item.get("type")
        items.append(
            AuthoredRelationship(
                target=str(item["target"]),
                label=str(item.get("label", "")),
                technology=item.get("technology"),
                kind=RelationshipKind(kind) if kind else None,
            )
        )
    return tuple(items)
