"""Project — the single dependency injected into every service.

A Project owns the relationship store, the graph cache, and the graph
engine for one project root. Relationship writes go through
:meth:`Project.mutation`, which invalidates the cached graph when the
block ends, whether it succeeded or not.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from archgraph.config.logging import configure_from_settings
from archgraph.infrastructure.graph.cache import GraphCache, NullGraphCache, shared_graph_cache
from archgraph.infrastructure.graph.engine import ElementSource, GraphEngine
from archgraph.infrastructure.relationships import RelationshipStore

if TYPE_CHECKING:
    from collections.abc import Iterator

    from archgraph.config.settings import ArchGraphSettings
    from archgraph.infrastructure.extractors import DiagramReader

logger = logging.getLogger(__name__)


class Project:
    """Store, cache, and graph access for one architecture project.

    *elements* is the already-read hierarchy, or a zero-argument callable
    that returns it (called on every build). When *cache* is omitted the
    process-wide cache is used, or a no-op cache if ``graph.use_cache``
    is off. Logging is configured from the settings' ``verbose`` and
    ``log_json`` flags when either is set.
    """

    def __init__(
        self,
        settings: ArchGraphSettings,
        *,
        elements: ElementSource,
        cache: GraphCache | None = None,
        reader: DiagramReader | None = None,
    ) -> None:
        self._settings = settings
        configure_from_settings(settings)
        if cache is None:
            cache = shared_graph_cache() if settings.graph.use_cache else NullGraphCache()
        self._cache = cache
        self._store = RelationshipStore(
            self.root,
            source_dir=settings.project.source_dir,
            filename=settings.store.filename,
            on_change=self._on_store_change,
        )
        self._graph = GraphEngine(
            self.root,
            elements,
            self._store,
            cache=cache,
            max_workers=settings.graph.max_workers,
            suffixes=settings.graph.diagram_suffixes,
            reader=reader,
        )

    @property
    def root(self) -> Path:
        """The project root directory."""
        return self._settings.project_root

    @property
    def settings(self) -> ArchGraphSettings:
        return self._settings

    @property
    def store(self) -> RelationshipStore:
        return self._store

    @property
    def cache(self) -> GraphCache:
        return self._cache

    @property
    def graph(self) -> GraphEngine:
        """The graph engine (lazy-built, cached per root)."""
        return self._graph

    @contextmanager
    def mutation(self) -> Iterator[RelationshipStore]:
        """Scope a relationship write.

        The cached graph is invalidated on exit, success or failure, so
        the next query rebuilds from what is actually on disk.

        Usage::

            with project.mutation() as store:
                store.add(system_id, relationship)
        """
        try:
            yield self._store
        finally:
            self._graph.invalidate()

    def _on_store_change(self, system_id: str) -> None:
        logger.debug("Relationships of %s changed; invalidating graph", system_id)
        self._graph.invalidate()
