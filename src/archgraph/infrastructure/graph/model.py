"""ArchitectureGraph — immutable, indexed graph of architecture elements.

All indices are computed once in the constructor:

- outgoing / incoming edges per node
- distinct dependency / dependent IDs per node
- parent → children
- short name → qualified ID (only for unambiguous short names)

Queries are therefore O(degree). The backing ``networkx.MultiDiGraph`` is
frozen after construction and exposed read-only for graph algorithms.
A graph is never edited; the next build supersedes it.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import networkx as nx

from archgraph.domain.ids import short_name, slugify
from archgraph.domain.types import ElementKind, Provenance, RelationshipKind


@dataclass(frozen=True)
class GraphNode:
    """One architecture element in the graph."""

    id: str
    name: str
    kind: ElementKind
    level: int
    parent_id: str | None = None
    description: str = ""
    technology: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": str(self.kind),
            "level": self.level,
            "parent_id": self.parent_id,
        }


@dataclass(frozen=True)
class GraphEdge:
    """A directed, labeled relationship between two nodes.

    ``reverse`` marks the traversal entry synthesized for a bidirectional
    edge. Reverse entries live only in the adjacency indices; ``edges``
    holds each relationship once.
    """

    id: str
    source: str
    target: str
    label: str = ""
    technology: str | None = None
    kind: RelationshipKind | None = None
    bidirectional: bool = False
    provenance: Provenance = Provenance.STRUCTURED
    reverse: bool = False

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.source, self.target, self.label)

    def reversed(self) -> GraphEdge:
        return GraphEdge(
            id=self.id,
            source=self.target,
            target=self.source,
            label=self.label,
            technology=self.technology,
            kind=self.kind,
            bidirectional=True,
            provenance=self.provenance,
            reverse=True,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "label": self.label,
            "technology": self.technology,
            "kind": str(self.kind) if self.kind else None,
            "bidirectional": self.bidirectional,
            "provenance": str(self.provenance),
        }


_EMPTY_EDGES: tuple[GraphEdge, ...] = ()
_EMPTY_IDS: tuple[str, ...] = ()


class ArchitectureGraph:
    """Read-only architecture graph with precomputed indices."""

    def __init__(self, nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> None:
        self._nodes: dict[str, GraphNode] = {}
        for node in nodes:
            if node.id in self._nodes:
                msg = f"Duplicate node ID: {node.id!r}"
                raise ValueError(msg)
            self._nodes[node.id] = node
        self._edges: tuple[GraphEdge, ...] = tuple(edges)

        self._build_indices()
        self._nx = self._build_networkx()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _build_indices(self) -> None:
        children: dict[str, list[str]] = {}
        by_short: dict[str, list[str]] = {}
        for node in self._nodes.values():
            if node.parent_id is not None and node.parent_id in self._nodes:
                children.setdefault(node.parent_id, []).append(node.id)
            by_short.setdefault(short_name(node.id), []).append(node.id)

        outgoing: dict[str, list[GraphEdge]] = {}
        incoming: dict[str, list[GraphEdge]] = {}
        explicit = {edge.key for edge in self._edges}
        for edge in self._edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in self._nodes:
                    msg = f"Edge {edge.id} references unknown node {endpoint!r}"
                    raise ValueError(msg)
            outgoing.setdefault(edge.source, []).append(edge)
            incoming.setdefault(edge.target, []).append(edge)
            if edge.bidirectional and (edge.target, edge.source, edge.label) not in explicit:
                back = edge.reversed()
                outgoing.setdefault(back.source, []).append(back)
                incoming.setdefault(back.target, []).append(back)

        self._outgoing = {k: tuple(v) for k, v in outgoing.items()}
        self._incoming = {k: tuple(v) for k, v in incoming.items()}
        self._dependencies = {
            k: tuple(dict.fromkeys(e.target for e in v)) for k, v in self._outgoing.items()
        }
        self._dependents = {
            k: tuple(dict.fromkeys(e.source for e in v)) for k, v in self._incoming.items()
        }
        self._children = {k: tuple(v) for k, v in children.items()}
        self._short_ids = {k: v[0] for k, v in by_short.items() if len(v) == 1}

    def _build_networkx(self) -> nx.MultiDiGraph:
        g: nx.MultiDiGraph = nx.MultiDiGraph()
        for node in self._nodes.values():
            g.add_node(node.id, name=node.name, kind=str(node.kind), level=node.level)
        for edges in self._outgoing.values():
            for edge in edges:
                g.add_edge(
                    edge.source,
                    edge.target,
                    key=(edge.label, edge.reverse),
                    id=edge.id,
                    label=edge.label,
                    provenance=str(edge.provenance),
                )
        return nx.freeze(g)

    # ------------------------------------------------------------------
    # Basic access
    # ------------------------------------------------------------------

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def nodes(self) -> tuple[GraphNode, ...]:
        return tuple(self._nodes.values())

    @property
    def edges(self) -> tuple[GraphEdge, ...]:
        return self._edges

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return len(self._edges)

    def node(self, node_id: str) -> GraphNode | None:
        return self._nodes.get(node_id)

    def nodes_by_kind(self, kind: ElementKind) -> list[GraphNode]:
        return [n for n in self._nodes.values() if n.kind is kind]

    def to_networkx(self) -> nx.MultiDiGraph:
        """The frozen networkx view of this graph (reverse entries included)."""
        return self._nx

    # ------------------------------------------------------------------
    # Identifier resolution
    # ------------------------------------------------------------------

    def resolve_short(self, name: str) -> str | None:
        """Resolve an unqualified name to a qualified ID.

        Succeeds only when exactly one node's trailing segment equals the
        normalized *name*. Ambiguous or unknown names return None.
        """
        return self._short_ids.get(slugify(name))

    def resolve(self, reference: str) -> str | None:
        """Resolve a qualified ID or an unambiguous short name."""
        if reference in self._nodes:
            return reference
        if "/" in reference:
            return None
        return self.resolve_short(reference)

    # ------------------------------------------------------------------
    # Adjacency
    # ------------------------------------------------------------------

    def outgoing_edges(self, node_id: str) -> tuple[GraphEdge, ...]:
        return self._outgoing.get(node_id, _EMPTY_EDGES)

    def incoming_edges(self, node_id: str) -> tuple[GraphEdge, ...]:
        return self._incoming.get(node_id, _EMPTY_EDGES)

    def get_dependencies(self, node_id: str) -> list[GraphNode]:
        """Nodes *node_id* depends on (distinct outgoing targets)."""
        return [self._nodes[t] for t in self._dependencies.get(node_id, _EMPTY_IDS)]

    def get_dependents(self, node_id: str) -> list[GraphNode]:
        """Nodes that depend on *node_id* (distinct incoming sources)."""
        return [self._nodes[s] for s in self._dependents.get(node_id, _EMPTY_IDS)]

    def out_degree(self, node_id: str) -> int:
        return len(self._dependencies.get(node_id, _EMPTY_IDS))

    def in_degree(self, node_id: str) -> int:
        return len(self._dependents.get(node_id, _EMPTY_IDS))

    # ------------------------------------------------------------------
    # Hierarchy
    # ------------------------------------------------------------------

    def get_children(self, node_id: str) -> list[GraphNode]:
        return [self._nodes[c] for c in self._children.get(node_id, _EMPTY_IDS)]

    def get_parent(self, node_id: str) -> GraphNode | None:
        node = self._nodes.get(node_id)
        if node is None or node.parent_id is None:
            return None
        return self._nodes.get(node.parent_id)

    def get_ancestors(self, node_id: str) -> list[GraphNode]:
        """Path from the node's parent up to its root."""
        ancestors: list[GraphNode] = []
        current = self.get_parent(node_id)
        while current is not None:
            ancestors.append(current)
            current = self.get_parent(current.id)
        return ancestors

    def get_descendants(self, node_id: str) -> list[GraphNode]:
        """All nodes below *node_id*, breadth-first."""
        result: list[GraphNode] = []
        queue: deque[str] = deque(self._children.get(node_id, _EMPTY_IDS))
        while queue:
            child = queue.popleft()
            result.append(self._nodes[child])
            queue.extend(self._children.get(child, _EMPTY_IDS))
        return result

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def get_path(self, source_id: str, target_id: str) -> list[GraphNode] | None:
        """Shortest path by edge count following outgoing edges.

        Returns None when either node is unknown or no path exists.
        Visited nodes are marked, so cycles terminate.
        """
        if source_id not in self._nodes or target_id not in self._nodes:
            return None
        if source_id == target_id:
            return [self._nodes[source_id]]

        previous: dict[str, str] = {}
        visited: set[str] = {source_id}
        queue: deque[str] = deque([source_id])
        while queue:
            current = queue.popleft()
            for neighbor in self._dependencies.get(current, _EMPTY_IDS):
                if neighbor in visited:
                    continue
                visited.add(neighbor)
                previous[neighbor] = current
                if neighbor == target_id:
                    return self._unwind(previous, source_id, target_id)
                queue.append(neighbor)
        return None

    def _unwind(self, previous: dict[str, str], source_id: str, target_id: str) -> list[GraphNode]:
        chain = [target_id]
        while chain[-1] != source_id:
            chain.append(previous[chain[-1]])
        return [self._nodes[node_id] for node_id in reversed(chain)]

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def index_snapshot(self) -> dict[str, Any]:
        """Plain-data copy of every derived index, for comparison and export."""
        return {
            "nodes": list(self._nodes),
            "edges": [e.id for e in self._edges],
            "outgoing": {k: [e.id for e in v] for k, v in self._outgoing.items()},
            "incoming": {k: [e.id for e in v] for k, v in self._incoming.items()},
            "children": {k: list(v) for k, v in self._children.items()},
            "short_ids": dict(self._short_ids),
        }

    def subgraph(self, node_ids: Sequence[str]) -> ArchitectureGraph:
        """A new graph restricted to *node_ids*, with indices recomputed.

        Edges survive only when both endpoints are kept. Parents outside
        the subset are dropped from each node.
        """
        keep = set(node_ids)
        nodes = []
        for node_id in node_ids:
            node = self._nodes[node_id]
            if node.parent_id is not None and node.parent_id not in keep:
                node = GraphNode(
                    id=node.id,
                    name=node.name,
                    kind=node.kind,
                    level=node.level,
                    parent_id=None,
                    description=node.description,
                    technology=node.technology,
                )
            nodes.append(node)
        edges = [e for e in self._edges if e.source in keep and e.target in keep]
        return ArchitectureGraph(nodes, edges)

    def __repr__(self) -> str:
        return f"ArchitectureGraph(nodes={self.node_count}, edges={self.edge_count})"


def suggest_id(graph: ArchitectureGraph, name: str) -> str | None:
    """Best-effort correction of a mistyped element reference.

    Tries the input as given, then its slug, then short-name resolution of
    the slug. A qualified input is slugified segment by segment.
    """
    if name in graph:
        return name
    segments = [slugify(part) for part in name.split("/") if part.strip()]
    slug = "/".join(s for s in segments if s)
    if not slug:
        return None
    if slug in graph:
        return slug
    return graph.resolve_short(segments[-1]) if segments[-1] else None
