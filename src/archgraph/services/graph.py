"""GraphService — dependency queries and coupling analysis.

All methods read the project graph through ``self._project.graph``, which
builds on a cache miss and otherwise serves the cached instance. Element
IDs must be qualified; an unknown ID yields ``NOT_FOUND`` with either a
suggested correction or a hint to call :meth:`GraphService.list_elements`.
"""

from __future__ import annotations

from typing import Any

from archgraph.domain.errors import ElementNotFoundError
from archgraph.domain.types import ElementKind
from archgraph.infrastructure.graph.analysis import analyze_dependencies, find_cycles
from archgraph.infrastructure.graph.builder import get_system_graph
from archgraph.infrastructure.graph.model import ArchitectureGraph, GraphNode, suggest_id
from archgraph.services.base import BaseService
from archgraph.services.contracts import (
    AnalysisResultData,
    ElementListResultData,
    NeighborsResultData,
    PathResultData,
    ResolveResultData,
    SystemGraphResultData,
    dump_validated,
)
from archgraph.services.result import INVALID_KIND, NOT_FOUND, ServiceResult


def _items(nodes: list[GraphNode]) -> list[dict[str, Any]]:
    return [n.to_dict() for n in nodes]


def _system_not_found(op: str, exc: ElementNotFoundError) -> ServiceResult:
    detail: dict[str, Any] = {"id": exc.element_id}
    if exc.suggestion:
        detail["suggestion"] = exc.suggestion
    else:
        detail["hint"] = "Call list_elements to see all available IDs"
    return ServiceResult.failure(op, NOT_FOUND, str(exc), detail=detail)


class GraphService(BaseService):
    """Read-only queries over the architecture graph."""

    # ------------------------------------------------------------------
    # Neighbors
    # ------------------------------------------------------------------

    def dependencies(self, element_id: str) -> ServiceResult:
        """Elements that *element_id* depends on."""
        return self._neighbors("dependencies", element_id, ArchitectureGraph.get_dependencies)

    def dependents(self, element_id: str) -> ServiceResult:
        """Elements that depend on *element_id*."""
        return self._neighbors("dependents", element_id, ArchitectureGraph.get_dependents)

    def children(self, element_id: str) -> ServiceResult:
        """Direct children of *element_id* in the hierarchy."""
        return self._neighbors("children", element_id, ArchitectureGraph.get_children)

    def _neighbors(self, op: str, element_id: str, query: Any) -> ServiceResult:
        graph = self._load_graph(op)
        if isinstance(graph, ServiceResult):
            return graph
        if element_id not in graph:
            return self._not_found(op, graph, element_id)
        nodes = query(graph, element_id)
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                NeighborsResultData,
                {"id": element_id, "count": len(nodes), "items": _items(nodes)},
            ),
        )

    # ------------------------------------------------------------------
    # path: shortest dependency chain
    # ------------------------------------------------------------------

    def path(self, source_id: str, target_id: str) -> ServiceResult:
        """Shortest chain of dependencies from *source_id* to *target_id*.

        Follows edge direction. When both elements exist but are not
        connected, the result is ok with ``found`` False.
        """
        graph = self._load_graph("path")
        if isinstance(graph, ServiceResult):
            return graph
        for node_id in (source_id, target_id):
            if node_id not in graph:
                return self._not_found("path", graph, node_id)

        steps = graph.get_path(source_id, target_id)
        data: dict[str, Any] = {"source_id": source_id, "target_id": target_id}
        if steps is None:
            data["found"] = False
        else:
            data.update(found=True, length=len(steps) - 1, steps=_items(steps))
        return ServiceResult(ok=True, op="path", data=dump_validated(PathResultData, data))

    # ------------------------------------------------------------------
    # analyze: coupling report and cycles
    # ------------------------------------------------------------------

    def analyze(self, *, system_id: str | None = None) -> ServiceResult:
        """Coupling report for the whole project or one system.

        Thresholds come from the ``[analysis]`` config section.
        """
        graph = self._load_graph("analyze")
        if isinstance(graph, ServiceResult):
            return graph
        if system_id is not None:
            try:
                graph = get_system_graph(graph, system_id)
            except ElementNotFoundError as exc:
                return _system_not_found("analyze", exc)

        thresholds = self._project.settings.analysis
        report = analyze_dependencies(
            graph,
            coupling_threshold=thresholds.coupling_threshold,
            central_threshold=thresholds.central_threshold,
        )
        data = {**report.model_dump(), "scope": system_id, "cycles": find_cycles(graph)}
        return ServiceResult(
            ok=True,
            op="analyze",
            data=dump_validated(AnalysisResultData, data),
            warnings=self._build_warnings(),
        )

    # ------------------------------------------------------------------
    # system_graph: one system and everything inside it
    # ------------------------------------------------------------------

    def system_graph(self, system_id: str) -> ServiceResult:
        graph = self._load_graph("system_graph")
        if isinstance(graph, ServiceResult):
            return graph
        try:
            subgraph = get_system_graph(graph, system_id)
        except ElementNotFoundError as exc:
            return _system_not_found("system_graph", exc)

        return ServiceResult(
            ok=True,
            op="system_graph",
            data=dump_validated(
                SystemGraphResultData,
                {
                    "system_id": system_id,
                    "node_count": subgraph.node_count,
                    "edge_count": subgraph.edge_count,
                    "nodes": _items(list(subgraph.nodes)),
                    "edges": [e.to_dict() for e in subgraph.edges],
                },
            ),
            warnings=self._build_warnings(),
        )

    # ------------------------------------------------------------------
    # list_elements / resolve
    # ------------------------------------------------------------------

    def list_elements(self, *, kind: str | None = None) -> ServiceResult:
        """Every element in the graph, optionally filtered by kind."""
        graph = self._load_graph("list_elements")
        if isinstance(graph, ServiceResult):
            return graph
        if kind is None:
            nodes = list(graph.nodes)
        else:
            try:
                element_kind = ElementKind(kind)
            except ValueError:
                allowed = ", ".join(k.value for k in ElementKind)
                return ServiceResult.failure(
                    "list_elements",
                    INVALID_KIND,
                    f"Unknown element kind {kind!r} (expected one of: {allowed})",
                )
            nodes = graph.nodes_by_kind(element_kind)
        return ServiceResult(
            ok=True,
            op="list_elements",
            data=dump_validated(
                ElementListResultData, {"count": len(nodes), "items": _items(nodes)}
            ),
        )

    def resolve(self, reference: str) -> ServiceResult:
        """Map a qualified ID, short name, or display name to a qualified ID."""
        graph = self._load_graph("resolve")
        if isinstance(graph, ServiceResult):
            return graph
        resolved = graph.resolve(reference) or suggest_id(graph, reference)
        if resolved is None:
            return self._not_found("resolve", graph, reference)
        return ServiceResult(
            ok=True,
            op="resolve",
            data=dump_validated(ResolveResultData, {"query": reference, "id": resolved}),
        )
