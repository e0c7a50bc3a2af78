"""GraphEngine: load, extract, build, and cache the architecture graph.

The graph is built lazily on first access and then served from the
injected :class:`~archgraph.infrastructure.graph.cache.GraphCache` until
something invalidates it. Operations that never touch the graph never
pay for a build.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from pathlib import Path

import structlog

from archgraph.domain.errors import BuildCancelledError, BuildWarning
from archgraph.domain.hierarchy import Element
from archgraph.infrastructure.extractors import (
    DEFAULT_MAX_WORKERS,
    DEFAULT_SUFFIXES,
    DiagramExtractor,
    DiagramReader,
    StructuredExtractor,
)
from archgraph.infrastructure.graph.builder import BuildResult, ReferenceResolver, build_graph
from archgraph.infrastructure.graph.cache import GraphCache, NullGraphCache
from archgraph.infrastructure.graph.model import ArchitectureGraph
from archgraph.infrastructure.relationships import RelationshipStore

log = structlog.get_logger(__name__)

type ElementSource = Sequence[Element] | Callable[[], Sequence[Element]]


class GraphEngine:
    """Builds the graph for one project root on demand."""

    def __init__(
        self,
        root: Path,
        elements: ElementSource,
        store: RelationshipStore,
        *,
        cache: GraphCache | None = None,
        max_workers: int = DEFAULT_MAX_WORKERS,
        suffixes: Sequence[str] = DEFAULT_SUFFIXES,
        reader: DiagramReader | None = None,
    ) -> None:
        self._root = root
        self._elements = elements
        self._store = store
        self._cache = cache if cache is not None else NullGraphCache()
        self._max_workers = max_workers
        self._suffixes = tuple(suffixes)
        self._reader = reader
        self._warnings: tuple[BuildWarning, ...] = ()

    @property
    def root(self) -> Path:
        return self._root

    @property
    def cache(self) -> GraphCache:
        return self._cache

    @property
    def graph(self) -> ArchitectureGraph:
        """Return the graph, building it on a cache miss."""
        cached = self._cache.get(self._root)
        if cached is not None:
            return cached
        return self.build().graph

    @property
    def warnings(self) -> tuple[BuildWarning, ...]:
        """Warnings of the cached graph's build.

        Falls back to this engine's own most recent build when nothing is
        cached, as with a disabled cache.
        """
        entry = self._cache.entry(self._root)
        return entry.warnings if entry is not None else self._warnings

    def invalidate(self) -> None:
        """Drop the cached graph, forcing a rebuild on next access."""
        self._cache.invalidate(self._root)

    def load_elements(self) -> list[Element]:
        source = self._elements
        return list(source() if callable(source) else source)

    def build(self, *, cancel: threading.Event | None = None) -> BuildResult:
        """Run a full build and publish the result to the cache.

        Raises:
            BuildCancelledError: *cancel* was set before the build finished.
                Nothing is cached in that case.
            DuplicateElementError: the hierarchy has a repeated ID.
            RelationshipStoreError: a relationship file is unreadable.
        """
        started = time.perf_counter()
        generation = self._cache.generation(self._root)
        elements = self.load_elements()
        resolver = ReferenceResolver(elements)

        structured = StructuredExtractor(self._store, resolver).extract(elements)
        if cancel is not None and cancel.is_set():
            raise BuildCancelledError("Graph build cancelled before diagram extraction")

        extractor = DiagramExtractor(
            resolver, max_workers=self._max_workers, suffixes=self._suffixes
        )
        if self._reader is not None:
            extractor.reader = self._reader
        diagrams = extractor.extract(elements, cancel=cancel)

        built = build_graph(elements, structured.edges, diagrams.edges)
        warnings = structured.warnings + diagrams.warnings + built.warnings
        result = BuildResult(graph=built.graph, warnings=warnings)

        self._warnings = warnings
        cached = self._cache.set_if_current(self._root, generation, result.graph, warnings)
        if not cached and not isinstance(self._cache, NullGraphCache):
            log.debug("graph.build.stale", root=str(self._root), generation=generation)
        log.info(
            "graph.build",
            root=str(self._root),
            nodes=result.graph.node_count,
            edges=result.graph.edge_count,
            structured_edges=len(structured.edges),
            diagram_edges=len(diagrams.edges),
            warnings=len(warnings),
            cached=cached,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return result
