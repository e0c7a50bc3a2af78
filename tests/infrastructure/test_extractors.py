"""Tests for structured and diagram relationship extraction."""

from __future__ import annotations

import threading
import time
from pathlib import Path

import pytest

from archgraph.domain.errors import BuildCancelledError
from archgraph.domain.hierarchy import Element, elements_from_tree
from archgraph.domain.relationships import new_relationship
from archgraph.domain.types import Provenance, RelationshipKind
from archgraph.infrastructure.extractors import (
    DIAGRAM_PARSE_ERROR,
    DiagramExtractor,
    StructuredExtractor,
    find_diagram_files,
)
from archgraph.infrastructure.graph.builder import ReferenceResolver
from archgraph.infrastructure.relationships import RelationshipStore
from tests.conftest import write_diagram

# ---------------------------------------------------------------------------
# Structured
# ---------------------------------------------------------------------------


class TestStructuredExtractor:
    def test_authored_relationships_resolved(
        self, elements: list[Element], project_root: Path
    ) -> None:
        store = RelationshipStore(project_root)
        result = StructuredExtractor(store, ReferenceResolver(elements)).extract(elements)
        keys = {e.key for e in result.edges}
        assert ("backend/api", "backend/worker", "Dispatch job") in keys
        assert ("backend/api", "backend/database", "Reads") in keys
        assert ("frontend/web-app", "backend/api", "Calls API") in keys
        assert all(e.provenance is Provenance.STRUCTURED for e in result.edges)

    def test_store_records_included(self, elements: list[Element], project_root: Path) -> None:
        store = RelationshipStore(project_root)
        rel = new_relationship("backend/worker", "frontend/web-app", "Notify", type="event")
        store.save("backend", [rel])
        result = StructuredExtractor(store, ReferenceResolver(elements)).extract(elements)
        (stored,) = [e for e in result.edges if e.label == "Notify"]
        assert stored.kind is RelationshipKind.EVENT

    def test_unresolved_target_left_as_written(self, project_root: Path) -> None:
        elements = elements_from_tree(
            [{"name": "S", "containers": [{"name": "A", "relationships": {"Ghost": "x"}}]}]
        )
        store = RelationshipStore(project_root)
        (edge,) = StructuredExtractor(store, ReferenceResolver(elements)).extract(elements).edges
        assert edge.target == "Ghost"

    def test_store_only_system_included(self, elements: list[Element], project_root: Path) -> None:
        store = RelationshipStore(project_root)
        store.save("legacy", [new_relationship("legacy/a", "legacy/b", "old")])
        result = StructuredExtractor(store, ReferenceResolver(elements)).extract(elements)
        assert any(e.label == "old" for e in result.edges)


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class TestFindDiagramFiles:
    def test_sorted_and_filtered(self, tmp_path: Path) -> None:
        write_diagram(tmp_path / "b", "z.d2", "")
        write_diagram(tmp_path / "a", "y.d2", "")
        write_diagram(tmp_path, "notes.md", "")
        write_diagram(tmp_path / ".git", "x.d2", "")
        found = [p.relative_to(tmp_path).as_posix() for p in find_diagram_files(tmp_path)]
        assert found == ["a/y.d2", "b/z.d2"]

    def test_missing_root(self, tmp_path: Path) -> None:
        assert find_diagram_files(tmp_path / "nope") == []

    def test_custom_suffixes(self, tmp_path: Path) -> None:
        write_diagram(tmp_path, "a.mmd", "")
        assert len(find_diagram_files(tmp_path, suffixes=[".mmd"])) == 1


class TestDiscover:
    def test_owner_is_deepest_element(self, elements: list[Element], project_root: Path) -> None:
        src = project_root / "src"
        write_diagram(src / "backend", "context.d2", "")
        write_diagram(src / "backend" / "api", "api.d2", "")
        extractor = DiagramExtractor(ReferenceResolver(elements))
        owners = {s.path.name: s.owner_id for s in extractor.discover(elements)}
        assert owners == {"context.d2": "backend", "api.d2": "backend/api"}


# ---------------------------------------------------------------------------
# Parsing and resolution
# ---------------------------------------------------------------------------


class TestDiagramExtraction:
    def test_relative_endpoints(self, elements: list[Element], project_root: Path) -> None:
        write_diagram(project_root / "src" / "backend", "context.d2", "api -> worker: Dispatch\n")
        result = DiagramExtractor(ReferenceResolver(elements)).extract(elements)
        (edge,) = result.edges
        assert edge.key == ("backend/api", "backend/worker", "Dispatch")
        assert edge.provenance is Provenance.DIAGRAM

    def test_component_scope_and_ancestors(
        self, elements: list[Element], project_root: Path
    ) -> None:
        write_diagram(
            project_root / "src" / "backend" / "api",
            "api.d2",
            "auth -> handlers: Verifies\nhandlers -> database: Queries\n",
        )
        result = DiagramExtractor(ReferenceResolver(elements)).extract(elements)
        assert [e.key for e in result.edges] == [
            ("backend/api/auth", "backend/api/handlers", "Verifies"),
            ("backend/api/handlers", "backend/database", "Queries"),
        ]

    def test_dotted_and_cross_system(self, elements: list[Element], project_root: Path) -> None:
        write_diagram(
            project_root / "src" / "frontend",
            "context.d2",
            'web-app -> backend.api: "Calls" {\n  style.animated: true\n}\n',
        )
        (edge,) = DiagramExtractor(ReferenceResolver(elements)).extract(elements).edges
        assert edge.key == ("frontend/web-app", "backend/api", "Calls")
        assert edge.kind is RelationshipKind.ASYNC

    def test_unresolved_left_as_written(self, elements: list[Element], project_root: Path) -> None:
        write_diagram(project_root / "src" / "backend", "c.d2", "api -> billing.ledger\n")
        (edge,) = DiagramExtractor(ReferenceResolver(elements)).extract(elements).edges
        assert edge.target == "billing/ledger"

    def test_malformed_file_does_not_abort(
        self, elements: list[Element], project_root: Path
    ) -> None:
        src = project_root / "src" / "backend"
        write_diagram(src, "a.d2", 'api -> worker: "unterminated\n')
        write_diagram(src, "b.d2", "api -> database: Reads\n")
        result = DiagramExtractor(ReferenceResolver(elements)).extract(elements)
        assert [e.label for e in result.edges] == ["Reads"]
        (warning,) = result.warnings
        assert warning.code == DIAGRAM_PARSE_ERROR
        assert warning.source is not None and warning.source.endswith("a.d2")
        assert "Unterminated string" in warning.message

    def test_reader_failure_is_per_file(self, elements: list[Element], project_root: Path) -> None:
        src = project_root / "src" / "backend"
        write_diagram(src, "a.d2", "api -> worker\n")
        write_diagram(src, "b.d2", "api -> database\n")

        def reader(path: Path) -> str:
            if path.name == "a.d2":
                raise PermissionError("denied")
            return path.read_text(encoding="utf-8")

        extractor = DiagramExtractor(ReferenceResolver(elements), reader=reader)
        results = extractor.run(extractor.discover(elements))
        assert [r.ok for r in results] == [False, True]
        assert "read failed" in str(results[0].error)

    def test_invalid_worker_count(self, elements: list[Element]) -> None:
        with pytest.raises(ValueError, match="max_workers"):
            DiagramExtractor(ReferenceResolver(elements), max_workers=0)


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


def _many_diagrams(root: Path, count: int) -> list[Element]:
    containers = [{"name": f"c{i}"} for i in range(10)]
    elements = elements_from_tree([{"name": "sys", "containers": containers}], root=root)
    for i in range(count):
        lines = [f"c{i % 10} -> c{(i + j) % 10}: edge-{i}-{j}" for j in range(1, 4)]
        write_diagram(root / "sys", f"d{i:03}.d2", "\n".join(lines) + "\n")
    return elements


def _jittery_reader(path: Path) -> str:
    time.sleep((int(path.stem[1:]) * 7 % 5) / 1000)
    return path.read_text(encoding="utf-8")


class TestWorkerPool:
    def test_pool_matches_sequential(self, tmp_path: Path) -> None:
        elements = _many_diagrams(tmp_path, 100)
        resolver = ReferenceResolver(elements)
        pooled = DiagramExtractor(resolver, max_workers=10, reader=_jittery_reader)
        sequential = DiagramExtractor(resolver, max_workers=1)

        a = pooled.extract(elements)
        b = sequential.extract(elements)
        assert len(a.edges) == 300
        assert a.edges == b.edges
        assert a.warnings == b.warnings == ()

    def test_results_sorted_by_path(self, tmp_path: Path) -> None:
        elements = _many_diagrams(tmp_path, 30)
        extractor = DiagramExtractor(ReferenceResolver(elements), reader=_jittery_reader)
        results = extractor.run(extractor.discover(elements))
        paths = [r.path for r in results]
        assert paths == sorted(paths)

    def test_in_flight_is_bounded(self, tmp_path: Path) -> None:
        elements = _many_diagrams(tmp_path, 40)
        lock = threading.Lock()
        active = 0
        peak = 0

        def reader(path: Path) -> str:
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.002)
            with lock:
                active -= 1
            return path.read_text(encoding="utf-8")

        extractor = DiagramExtractor(ReferenceResolver(elements), max_workers=4, reader=reader)
        extractor.extract(elements)
        assert 1 <= peak <= 4

    def test_cancellation(self, tmp_path: Path) -> None:
        elements = _many_diagrams(tmp_path, 100)
        cancel = threading.Event()
        lock = threading.Lock()
        reads = 0

        def reader(path: Path) -> str:
            nonlocal reads
            with lock:
                reads += 1
                if reads == 5:
                    cancel.set()
            return path.read_text(encoding="utf-8")

        extractor = DiagramExtractor(ReferenceResolver(elements), max_workers=2, reader=reader)
        with pytest.raises(BuildCancelledError):
            extractor.extract(elements, cancel=cancel)
        assert reads < 100

    def test_cancelled_before_start(self, tmp_path: Path) -> None:
        elements = _many_diagrams(tmp_path, 5)
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(BuildCancelledError):
            DiagramExtractor(ReferenceResolver(elements)).extract(elements, cancel=cancel)
