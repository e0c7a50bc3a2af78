"""Merge extracted edges with the element hierarchy into an ArchitectureGraph.

Build order:

1. One node per element (duplicate IDs raise, missing parents warn).
2. Structured edges, then diagram edges, each checked for unknown
   endpoints and self-loops.
3. Dedup on ``(source, target, label)``: the first edge seen wins, so a
   structured edge always beats a diagram edge with the same key.
4. Construct the immutable graph; indices are computed there.

Nothing recoverable is raised: dropped edges come back as
:class:`~archgraph.domain.errors.BuildWarning` values.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from itertools import chain

from archgraph.domain.errors import BuildWarning, DuplicateElementError, ElementNotFoundError
from archgraph.domain.hierarchy import Element
from archgraph.domain.ids import (
    SEPARATOR,
    generate_relationship_id,
    is_within,
    parent_of,
    short_name,
    slugify,
)
from archgraph.domain.relationships import EdgeKey, RawEdge
from archgraph.domain.types import ElementKind
from archgraph.infrastructure.graph.model import (
    ArchitectureGraph,
    GraphEdge,
    GraphNode,
    suggest_id,
)

logger = logging.getLogger(__name__)

UNRESOLVED_REFERENCE = "UNRESOLVED_REFERENCE"
SELF_REFERENCE = "SELF_REFERENCE"
MISSING_PARENT = "MISSING_PARENT"


@dataclass(frozen=True)
class BuildResult:
    """A built graph plus every non-fatal problem found along the way."""

    graph: ArchitectureGraph
    warnings: tuple[BuildWarning, ...] = field(default_factory=tuple)


class ReferenceResolver:
    """Resolves element references as authors write them.

    A reference may be a qualified ID (``backend/api``), a path relative
    to some scope (``api/auth`` inside ``backend``), a short name
    (``auth``) or a display name (``Auth Service``). Each segment is
    slugified before lookup.
    """

    def __init__(self, elements: Iterable[Element]) -> None:
        self._ids: set[str] = set()
        self._by_short: dict[str, list[str]] = {}
        for element in elements:
            self._ids.add(element.id)
            self._by_short.setdefault(short_name(element.id), []).append(element.id)

    def __contains__(self, element_id: object) -> bool:
        return element_id in self._ids

    def resolve(
        self,
        reference: str,
        *,
        scope: str | None = None,
        exclude: str | None = None,
    ) -> str | None:
        """Return the qualified ID for *reference*, or None.

        Resolution order: relative to *scope* and each of its ancestors,
        then absolute, then a unique short-name match, then a short-name
        match that is unique once *exclude* is discounted.
        """
        segments = [slugify(part) for part in reference.split(SEPARATOR)]
        if not segments or not all(segments):
            return None
        normalized = SEPARATOR.join(segments)

        current = scope
        while current:
            candidate = f"{current}{SEPARATOR}{normalized}"
            if candidate in self._ids:
                return candidate
            current = parent_of(current)

        if normalized in self._ids:
            return normalized

        candidates = self._by_short.get(segments[-1], [])
        if len(candidates) == 1:
            return candidates[0]
        if exclude is not None:
            remaining = [c for c in candidates if c != exclude]
            if len(remaining) == 1:
                return remaining[0]
        return None

    def resolve_pair(
        self,
        source: str,
        target: str,
        *,
        scope: str | None = None,
    ) -> tuple[str | None, str | None]:
        """Resolve both ends of an edge, using each to disambiguate the other."""
        resolved_source = self.resolve(source, scope=scope)
        resolved_target = self.resolve(target, scope=scope, exclude=resolved_source)
        if resolved_source is None and resolved_target is not None:
            resolved_source = self.resolve(source, scope=scope, exclude=resolved_target)
        return resolved_source, resolved_target


def build_graph(
    elements: Sequence[Element],
    structured_edges: Iterable[RawEdge],
    diagram_edges: Iterable[RawEdge],
) -> BuildResult:
    """Assemble the graph from the hierarchy and both edge streams.

    Raises:
        DuplicateElementError: two elements share a qualified ID.
    """
    warnings: list[BuildWarning] = []

    nodes: dict[str, GraphNode] = {}
    for element in elements:
        if element.id in nodes:
            raise DuplicateElementError(element.id)
        nodes[element.id] = GraphNode(
            id=element.id,
            name=element.name,
            kind=element.kind,
            level=element.level,
            parent_id=element.parent_id,
            description=element.description,
            technology=element.technology,
        )

    for node_id, node in list(nodes.items()):
        if node.parent_id is not None and node.parent_id not in nodes:
            warnings.append(
                BuildWarning(
                    MISSING_PARENT,
                    f"Parent '{node.parent_id}' of '{node_id}' is not in the hierarchy",
                    source=node_id,
                )
            )
            nodes[node_id] = GraphNode(
                id=node.id,
                name=node.name,
                kind=node.kind,
                level=node.level,
                parent_id=None,
                description=node.description,
                technology=node.technology,
            )

    merged: dict[EdgeKey, RawEdge] = {}
    for edge in chain(structured_edges, diagram_edges):
        problem = _check_edge(edge, nodes)
        if problem is not None:
            logger.debug("Dropping edge %s -> %s: %s", edge.source, edge.target, problem.message)
            warnings.append(problem)
            continue
        if edge.key in merged:
            continue
        merged[edge.key] = edge

    graph = ArchitectureGraph(nodes.values(), (_to_graph_edge(e) for e in merged.values()))
    return BuildResult(graph=graph, warnings=tuple(warnings))


def _check_edge(edge: RawEdge, nodes: dict[str, GraphNode]) -> BuildWarning | None:
    for endpoint in (edge.source, edge.target):
        if endpoint not in nodes:
            return BuildWarning(
                UNRESOLVED_REFERENCE,
                f"Unresolved reference '{endpoint}' in {edge.provenance} edge "
                f"'{edge.source}' -> '{edge.target}'",
                source=edge.source,
            )
    if edge.source == edge.target:
        return BuildWarning(
            SELF_REFERENCE,
            f"Self-referencing {edge.provenance} edge on '{edge.source}'",
            source=edge.source,
        )
    return None


def _to_graph_edge(edge: RawEdge) -> GraphEdge:
    return GraphEdge(
        id=generate_relationship_id(edge.source, edge.target, edge.label),
        source=edge.source,
        target=edge.target,
        label=edge.label,
        technology=edge.technology,
        kind=edge.kind,
        bidirectional=edge.bidirectional,
        provenance=edge.provenance,
    )


def get_system_graph(graph: ArchitectureGraph, system_id: str) -> ArchitectureGraph:
    """Subgraph of one system: every node whose qualified ID lies under it.

    Edges are kept when both endpoints are inside.

    Raises:
        ElementNotFoundError: *system_id* is unknown or not a system.
    """
    node = graph.node(system_id)
    if node is None or node.kind is not ElementKind.SYSTEM:
        suggestion = suggest_id(graph, system_id)
        if suggestion is not None:
            found = graph.node(suggestion)
            if found is None or found.kind is not ElementKind.SYSTEM:
                suggestion = None
        raise ElementNotFoundError(system_id, suggestion=suggestion)
    ids = [n.id for n in graph.nodes if is_within(n.id, system_id)]
    return graph.subgraph(ids)
