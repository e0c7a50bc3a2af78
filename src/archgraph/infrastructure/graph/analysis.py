"""Coupling analysis over a built ArchitectureGraph.

``analyze_dependencies`` makes a single pass over the nodes using the
graph's precomputed degree indices. Degrees count *distinct* neighbors,
so two labeled edges to the same target add one to the out-degree.

``find_cycles`` runs networkx cycle enumeration over forward edges only;
the reverse entries of bidirectional edges are not cycles.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import networkx as nx
from pydantic import BaseModel, Field

from archgraph.domain.types import ElementKind

if TYPE_CHECKING:
    from archgraph.infrastructure.graph.model import ArchitectureGraph

DEFAULT_COUPLING_THRESHOLD = 2
DEFAULT_CENTRAL_THRESHOLD = 2


class DependencyReport(BaseModel):
    """Summary of structural coupling in a graph.

    ``highly_coupled`` maps node ID to distinct out-degree and ``central``
    maps node ID to distinct in-degree; both only list nodes strictly
    above their threshold.
    """

    model_config = {"frozen": True}

    system_count: int = 0
    container_count: int = 0
    component_count: int = 0
    total_nodes: int = 0
    total_edges: int = 0
    isolated: list[str] = Field(default_factory=list)
    highly_coupled: dict[str, int] = Field(default_factory=dict)
    central: dict[str, int] = Field(default_factory=dict)
    coupling_threshold: int = DEFAULT_COUPLING_THRESHOLD
    central_threshold: int = DEFAULT_CENTRAL_THRESHOLD


def analyze_dependencies(
    graph: ArchitectureGraph,
    *,
    coupling_threshold: int = DEFAULT_COUPLING_THRESHOLD,
    central_threshold: int = DEFAULT_CENTRAL_THRESHOLD,
) -> DependencyReport:
    """Classify every node as isolated, highly coupled, and/or central."""
    counts = {kind: 0 for kind in ElementKind}
    isolated: list[str] = []
    highly_coupled: dict[str, int] = {}
    central: dict[str, int] = {}

    for node in graph.nodes:
        counts[node.kind] += 1
        out_degree = graph.out_degree(node.id)
        in_degree = graph.in_degree(node.id)
        if out_degree == 0 and in_degree == 0:
            isolated.append(node.id)
        if out_degree > coupling_threshold:
            highly_coupled[node.id] = out_degree
        if in_degree > central_threshold:
            central[node.id] = in_degree

    return DependencyReport(
        system_count=counts[ElementKind.SYSTEM],
        container_count=counts[ElementKind.CONTAINER],
        component_count=counts[ElementKind.COMPONENT],
        total_nodes=graph.node_count,
        total_edges=graph.edge_count,
        isolated=isolated,
        highly_coupled=highly_coupled,
        central=central,
        coupling_threshold=coupling_threshold,
        central_threshold=central_threshold,
    )


def find_cycles(graph: ArchitectureGraph, *, limit: int = 100) -> list[list[str]]:
    """Return up to *limit* circular dependency chains.

    Each cycle is rotated to start at its smallest ID, and the list is
    sorted, so the result is stable across builds.
    """
    forward: nx.DiGraph = nx.DiGraph()
    forward.add_nodes_from(node.id for node in graph.nodes)
    forward.add_edges_from((e.source, e.target) for e in graph.edges)

    cycles: list[list[str]] = []
    for cycle in nx.simple_cycles(forward):
        start = cycle.index(min(cycle))
        cycles.append(cycle[start:] + cycle[:start])
        if len(cycles) >= limit:
            break
    return sorted(cycles)
