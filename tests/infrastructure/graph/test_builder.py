"""Tests for graph merge/build and reference resolution."""

from __future__ import annotations

import pytest

from archgraph.domain.errors import DuplicateElementError, ElementNotFoundError
from archgraph.domain.hierarchy import Element, elements_from_tree
from archgraph.domain.relationships import RawEdge
from archgraph.domain.types import ElementKind, Provenance, RelationshipKind
from archgraph.infrastructure.graph.builder import (
    MISSING_PARENT,
    SELF_REFERENCE,
    UNRESOLVED_REFERENCE,
    ReferenceResolver,
    build_graph,
    get_system_graph,
)
from tests.conftest import sample_tree


@pytest.fixture
def tree_elements() -> list[Element]:
    return elements_from_tree(sample_tree())


def structured(source: str, target: str, label: str = "", **kwargs: object) -> RawEdge:
    return RawEdge(source, target, label, provenance=Provenance.STRUCTURED, **kwargs)  # type: ignore[arg-type]


def diagram(source: str, target: str, label: str = "", **kwargs: object) -> RawEdge:
    return RawEdge(source, target, label, provenance=Provenance.DIAGRAM, **kwargs)  # type: ignore[arg-type]


class TestBuildGraph:
    def test_nodes_from_hierarchy(self, tree_elements: list[Element]) -> None:
        result = build_graph(tree_elements, [], [])
        assert result.graph.node_count == len(tree_elements)
        assert result.warnings == ()

    def test_zero_relationships_all_isolated(self, tree_elements: list[Element]) -> None:
        graph = build_graph(tree_elements, [], []).graph
        assert graph.edge_count == 0
        assert all(graph.get_dependencies(n.id) == [] for n in graph.nodes)

    def test_duplicate_element_raises(self) -> None:
        dup = [Element("a", "A", ElementKind.SYSTEM), Element("a", "A", ElementKind.SYSTEM)]
        with pytest.raises(DuplicateElementError):
            build_graph(dup, [], [])

    def test_missing_parent_warns_and_keeps_node(self) -> None:
        orphan = [Element("x/api", "API", ElementKind.CONTAINER, parent_id="x")]
        result = build_graph(orphan, [], [])
        assert "x/api" in result.graph
        assert result.graph.node("x/api").parent_id is None  # type: ignore[union-attr]
        assert [w.code for w in result.warnings] == [MISSING_PARENT]

    def test_structured_wins_dedup(self, tree_elements: list[Element]) -> None:
        s = structured("backend/api", "backend/worker", "Dispatch", kind=RelationshipKind.ASYNC)
        d = diagram("backend/api", "backend/worker", "Dispatch")
        graph = build_graph(tree_elements, [s], [d]).graph
        (edge,) = graph.edges
        assert edge.provenance is Provenance.STRUCTURED
        assert edge.kind is RelationshipKind.ASYNC

    def test_dedup_is_idempotent(self, tree_elements: list[Element]) -> None:
        s = structured("backend/api", "backend/worker", "Dispatch")
        once = build_graph(tree_elements, [s], []).graph
        twice = build_graph(tree_elements, [s, s], [s]).graph
        assert once.edge_count == twice.edge_count == 1
        assert once.index_snapshot() == twice.index_snapshot()

    def test_different_labels_are_distinct_edges(self, tree_elements: list[Element]) -> None:
        edges = [
            structured("backend/api", "backend/database", "Reads"),
            structured("backend/api", "backend/database", "Writes"),
        ]
        assert build_graph(tree_elements, edges, []).graph.edge_count == 2

    def test_unresolved_endpoint_dropped_with_warning(
        self, tree_elements: list[Element]
    ) -> None:
        result = build_graph(tree_elements, [], [diagram("backend/api", "nowhere", "x")])
        assert result.graph.edge_count == 0
        (warning,) = result.warnings
        assert warning.code == UNRESOLVED_REFERENCE
        assert "nowhere" in warning.message

    def test_self_loop_dropped_with_warning(self, tree_elements: list[Element]) -> None:
        result = build_graph(tree_elements, [structured("backend/api", "backend/api", "x")], [])
        assert result.graph.edge_count == 0
        assert [w.code for w in result.warnings] == [SELF_REFERENCE]

    def test_edge_id_is_deterministic(self, tree_elements: list[Element]) -> None:
        e = structured("backend/api", "backend/worker", "Dispatch")
        a = build_graph(tree_elements, [e], []).graph.edges[0].id
        b = build_graph(tree_elements, [], [diagram(e.source, e.target, e.label)]).graph.edges[0].id
        assert a == b

    def test_chain_path(self) -> None:
        elements = elements_from_tree(
            [{"name": "S", "containers": [{"name": "A"}, {"name": "B"}, {"name": "C"}]}]
        )
        edges = [structured("s/a", "s/b", "x"), structured("s/b", "s/c", "y")]
        graph = build_graph(elements, edges, []).graph
        path = graph.get_path("s/a", "s/c")
        assert path is not None
        assert [n.id for n in path] == ["s/a", "s/b", "s/c"]
        assert graph.get_path("s/c", "s/a") is None


class TestReferenceResolver:
    def test_absolute(self, tree_elements: list[Element]) -> None:
        assert ReferenceResolver(tree_elements).resolve("backend/api") == "backend/api"

    def test_relative_to_scope(self, tree_elements: list[Element]) -> None:
        resolver = ReferenceResolver(tree_elements)
        assert resolver.resolve("api", scope="backend") == "backend/api"
        assert resolver.resolve("auth", scope="backend/api") == "backend/api/auth"

    def test_ancestor_scope(self, tree_elements: list[Element]) -> None:
        resolver = ReferenceResolver(tree_elements)
        assert resolver.resolve("worker", scope="backend/api") == "backend/worker"

    def test_display_name(self, tree_elements: list[Element]) -> None:
        assert ReferenceResolver(tree_elements).resolve("Web App") == "frontend/web-app"

    def test_unique_short_name(self, tree_elements: list[Element]) -> None:
        assert ReferenceResolver(tree_elements).resolve("handlers") == "backend/api/handlers"

    def test_ambiguous_short_name(self) -> None:
        elements = elements_from_tree(
            [
                {"name": "A", "containers": [{"name": "API"}]},
                {"name": "B", "containers": [{"name": "API"}]},
            ]
        )
        resolver = ReferenceResolver(elements)
        assert resolver.resolve("api") is None
        assert resolver.resolve("api", exclude="a/api") == "b/api"

    def test_pair_uses_other_endpoint(self) -> None:
        elements = elements_from_tree(
            [
                {"name": "A", "containers": [{"name": "API"}, {"name": "Jobs"}]},
                {"name": "B", "containers": [{"name": "API"}]},
            ]
        )
        resolver = ReferenceResolver(elements)
        assert resolver.resolve_pair("a/api", "api") == ("a/api", "b/api")
        assert resolver.resolve_pair("api", "a/api") == ("b/api", "a/api")

    def test_unknown(self, tree_elements: list[Element]) -> None:
        resolver = ReferenceResolver(tree_elements)
        assert resolver.resolve("billing") is None
        assert resolver.resolve("") is None


class TestSystemGraph:
    def test_restricts_to_system(self, tree_elements: list[Element]) -> None:
        edges = [
            structured("backend/api", "backend/worker", "Dispatch"),
            structured("frontend/web-app", "backend/api", "Calls"),
        ]
        graph = build_graph(tree_elements, edges, []).graph
        sub = get_system_graph(graph, "backend")
        assert {n.id for n in sub.nodes} == {
            "backend",
            "backend/api",
            "backend/api/auth",
            "backend/api/handlers",
            "backend/worker",
            "backend/database",
        }
        assert sub.edge_count == 1
        assert sub.get_dependents("backend/api") == []

    def test_unknown_system(self, tree_elements: list[Element]) -> None:
        graph = build_graph(tree_elements, [], []).graph
        with pytest.raises(ElementNotFoundError) as exc_info:
            get_system_graph(graph, "Backend Service")
        assert exc_info.value.suggestion is None

    def test_suggests_slug(self, tree_elements: list[Element]) -> None:
        graph = build_graph(tree_elements, [], []).graph
        with pytest.raises(ElementNotFoundError, match="Did you mean 'frontend'"):
            get_system_graph(graph, "Frontend")

    def test_non_system_rejected(self, tree_elements: list[Element]) -> None:
        graph = build_graph(tree_elements, [], []).graph
        with pytest.raises(ElementNotFoundError):
            get_system_graph(graph, "backend/api")

    def test_selects_by_id_prefix(self) -> None:
        elements = [
            Element("backend", "Backend", ElementKind.SYSTEM),
            Element("backend-v2", "Backend v2", ElementKind.SYSTEM),
            Element("backend/ghost/x", "X", ElementKind.COMPONENT, parent_id="backend/ghost"),
        ]
        graph = build_graph(elements, [], []).graph
        sub = get_system_graph(graph, "backend")
        assert [n.id for n in sub.nodes] == ["backend", "backend/ghost/x"]
