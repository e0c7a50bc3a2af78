"""Graph cache keyed by project root.

Readers never lock: every write publishes a fresh mapping under a lock,
and a reader sees either the old mapping or the new one. A cached graph
is immutable, so handing the same instance to many readers is safe.

Invalidation is explicit. Anything that mutates a relationship source
must call :meth:`GraphCache.invalidate` before reporting success.

Each root also carries a generation number that every invalidation
bumps. A builder records the generation before it reads its inputs and
publishes through :meth:`GraphCache.set_if_current`, so a graph built
from inputs that were mutated mid-build is dropped instead of cached.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from archgraph.domain.errors import BuildWarning
    from archgraph.infrastructure.graph.model import ArchitectureGraph

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedGraph:
    """A cached graph and the warnings of the build that produced it."""

    graph: ArchitectureGraph
    warnings: tuple[BuildWarning, ...] = ()


def _key(root: Path | str) -> str:
    return str(Path(root).resolve())


class GraphCache:
    """Process-local map of project root → most recently built graph."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._entries: Mapping[str, CachedGraph] = MappingProxyType({})
        self._generations: dict[str, int] = {}

    def get(self, root: Path | str) -> ArchitectureGraph | None:
        entry = self._entries.get(_key(root))
        return entry.graph if entry is not None else None

    def entry(self, root: Path | str) -> CachedGraph | None:
        return self._entries.get(_key(root))

    def generation(self, root: Path | str) -> int:
        """The invalidation count of *root*; capture it before reading inputs."""
        key = _key(root)
        with self._lock:
            return self._generations.setdefault(key, 0)

    def set_if_current(
        self,
        root: Path | str,
        generation: int,
        graph: ArchitectureGraph,
        warnings: tuple[BuildWarning, ...] = (),
    ) -> bool:
        """Publish *graph* unless *root* was invalidated since *generation*.

        Returns False, leaving the cache untouched, when it was.
        """
        key = _key(root)
        with self._lock:
            if self._generations.get(key, 0) != generation:
                return False
            updated = dict(self._entries)
            updated[key] = CachedGraph(graph=graph, warnings=warnings)
            self._entries = MappingProxyType(updated)
        return True

    def invalidate(self, root: Path | str) -> None:
        key = _key(root)
        with self._lock:
            self._generations[key] = self._generations.get(key, 0) + 1
            if key not in self._entries:
                return
            updated = dict(self._entries)
            del updated[key]
            self._entries = MappingProxyType(updated)
        logger.debug("Invalidated cached graph for %s", key)

    def clear(self) -> None:
        with self._lock:
            for key in {*self._generations, *self._entries}:
                self._generations[key] = self._generations.get(key, 0) + 1
            self._entries = MappingProxyType({})

    def __len__(self) -> int:
        return len(self._entries)


class NullGraphCache(GraphCache):
    """A cache that never stores anything. Every lookup is a miss."""

    def get(self, root: Path | str) -> ArchitectureGraph | None:
        return None

    def entry(self, root: Path | str) -> CachedGraph | None:
        return None

    def generation(self, root: Path | str) -> int:
        return 0

    def set_if_current(
        self,
        root: Path | str,
        generation: int,
        graph: ArchitectureGraph,
        warnings: tuple[BuildWarning, ...] = (),
    ) -> bool:
        return False

    def invalidate(self, root: Path | str) -> None:
        return None


_shared_cache = GraphCache()


def shared_graph_cache() -> GraphCache:
    """The process-wide cache instance.

    Pass it to engines explicitly; graph code never looks it up on its own.
    """
    return _shared_cache
