"""Relationship extractors: structured metadata and diagram sources.

Both extractors emit :class:`~archgraph.domain.relationships.RawEdge`
values. Endpoints they can resolve are rewritten to qualified IDs;
endpoints they cannot are left as written, and the graph builder turns
them into ``UNRESOLVED_REFERENCE`` warnings.

Diagram files are parsed on a bounded thread pool. Results are joined in
file-path order, never completion order, so the emitted edge sequence is
identical for any worker count.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path

from archgraph.domain.arrows import parse_arrows
from archgraph.domain.errors import BuildCancelledError, BuildWarning, DiagramParseError
from archgraph.domain.hierarchy import Element
from archgraph.domain.ids import SEPARATOR
from archgraph.domain.relationships import RawEdge
from archgraph.domain.types import ElementKind, Provenance
from archgraph.infrastructure.graph.builder import ReferenceResolver
from archgraph.infrastructure.relationships import RelationshipStore

logger = logging.getLogger(__name__)

DIAGRAM_PARSE_ERROR = "DIAGRAM_PARSE_ERROR"
DEFAULT_MAX_WORKERS = 10
DEFAULT_SUFFIXES: tuple[str, ...] = (".d2",)

# Directories never searched for diagram sources.
_SKIP_DIRS = frozenset({".git", ".archgraph", "node_modules", "dist", "__pycache__"})

type DiagramReader = Callable[[Path], str]


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8")


@dataclass(frozen=True)
class ExtractionResult:
    """Edges from one extractor, plus warnings for anything it skipped."""

    edges: tuple[RawEdge, ...] = ()
    warnings: tuple[BuildWarning, ...] = ()


# ---------------------------------------------------------------------------
# Structured metadata
# ---------------------------------------------------------------------------


class StructuredExtractor:
    """Edges from element metadata and the per-system relationship files.

    Authored references are resolved relative to the declaring element,
    so ``worker`` written on ``backend/api`` finds ``backend/worker``.
    Store records already hold qualified IDs and pass through unchanged.
    """

    def __init__(self, store: RelationshipStore, resolver: ReferenceResolver) -> None:
        self._store = store
        self._resolver = resolver

    def extract(self, elements: Sequence[Element]) -> ExtractionResult:
        """Collect structured edges.

        Raises:
            RelationshipStoreError: a relationship file is unreadable.
        """
        edges: list[RawEdge] = []
        for element in elements:
            for authored in element.relationships:
                target = self._resolver.resolve(
                    authored.target, scope=element.id, exclude=element.id
                )
                edges.append(
                    RawEdge(
                        source=element.id,
                        target=target if target is not None else authored.target,
                        label=authored.label,
                        technology=authored.technology,
                        kind=authored.kind,
                        provenance=Provenance.STRUCTURED,
                    )
                )

        systems = {e.id for e in elements if e.kind is ElementKind.SYSTEM}
        systems.update(self._store.system_ids())
        for system_id in sorted(systems):
            edges.extend(r.to_raw_edge() for r in self._store.load(system_id))
        return ExtractionResult(edges=tuple(edges))


# ---------------------------------------------------------------------------
# Diagram sources
# ---------------------------------------------------------------------------


def find_diagram_files(
    root: Path,
    *,
    suffixes: Iterable[str] = DEFAULT_SUFFIXES,
) -> list[Path]:
    """All diagram files under *root*, sorted, skipping tool directories."""
    if not root.is_dir():
        return []
    wanted = frozenset(suffixes)
    results: list[Path] = []
    for path in root.rglob("*"):
        if not path.is_file():
            continue
        if any(part in _SKIP_DIRS for part in path.relative_to(root).parts):
            continue
        if path.suffix in wanted:
            results.append(path)
    return sorted(results)


@dataclass(frozen=True)
class DiagramSource:
    """A diagram file and the element whose directory owns it."""

    path: Path
    owner_id: str | None = None


@dataclass(frozen=True)
class DiagramResult:
    """Outcome of parsing one diagram file. ``error`` is set on failure."""

    path: Path
    owner_id: str | None = None
    edges: tuple[RawEdge, ...] = ()
    error: DiagramParseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class DiagramExtractor:
    """Parses diagram files concurrently and resolves their endpoints.

    At most ``max_workers`` files are in flight at once. A file that fails
    to read or parse produces a :class:`DiagramResult` with ``error`` set
    and never stops the others.
    """

    resolver: ReferenceResolver
    max_workers: int = DEFAULT_MAX_WORKERS
    suffixes: tuple[str, ...] = DEFAULT_SUFFIXES
    reader: DiagramReader = field(default=_read_text)

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            msg = f"max_workers must be at least 1, got {self.max_workers}"
            raise ValueError(msg)

    def discover(self, elements: Sequence[Element]) -> list[DiagramSource]:
        """Find every diagram file under a system directory.

        Each file is owned by the deepest element whose directory
        contains it.
        """
        owners = {e.path.resolve(): e.id for e in elements if e.path is not None}
        seen: dict[Path, DiagramSource] = {}
        for element in elements:
            if element.kind is not ElementKind.SYSTEM or element.path is None:
                continue
            for path in find_diagram_files(element.path, suffixes=self.suffixes):
                if path in seen:
                    continue
                seen[path] = DiagramSource(path=path, owner_id=_owner_of(path, owners))
        return [seen[p] for p in sorted(seen)]

    def parse_file(self, source: DiagramSource) -> DiagramResult:
        """Parse one diagram file into resolved edges."""
        try:
            text = self.reader(source.path)
        except (OSError, UnicodeDecodeError) as exc:
            error = DiagramParseError(f"read failed: {exc}", path=source.path)
            return DiagramResult(path=source.path, owner_id=source.owner_id, error=error)

        try:
            arrows = parse_arrows(text)
        except DiagramParseError as exc:
            return DiagramResult(
                path=source.path, owner_id=source.owner_id, error=exc.with_path(source.path)
            )

        edges: list[RawEdge] = []
        for arrow in arrows:
            raw_source = arrow.source.replace(".", SEPARATOR)
            raw_target = arrow.target.replace(".", SEPARATOR)
            resolved_source, resolved_target = self.resolver.resolve_pair(
                raw_source, raw_target, scope=source.owner_id
            )
            edges.append(
                RawEdge(
                    source=resolved_source or raw_source,
                    target=resolved_target or raw_target,
                    label=arrow.label,
                    kind=arrow.kind,
                    bidirectional=arrow.bidirectional,
                    provenance=Provenance.DIAGRAM,
                )
            )
        return DiagramResult(path=source.path, owner_id=source.owner_id, edges=tuple(edges))

    def run(
        self,
        sources: Sequence[DiagramSource],
        *,
        cancel: threading.Event | None = None,
    ) -> list[DiagramResult]:
        """Parse *sources* on the pool and return results sorted by path.

        Raises:
            BuildCancelledError: *cancel* was set. Files already dispatched
                finish first; nothing further is dispatched.
        """
        results: list[DiagramResult] = []
        pending: set[Future[DiagramResult]] = set()
        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="archgraph-diagram"
        ) as pool:
            for source in sources:
                if cancel is not None and cancel.is_set():
                    break
                if len(pending) >= self.max_workers:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    results.extend(f.result() for f in done)
                    if cancel is not None and cancel.is_set():
                        break
                pending.add(pool.submit(self.parse_file, source))
            done, _ = wait(pending)
            results.extend(f.result() for f in done)

        if cancel is not None and cancel.is_set():
            logger.info("Diagram extraction cancelled after %d files", len(results))
            raise BuildCancelledError("Graph build cancelled during diagram extraction")
        return sorted(results, key=lambda r: r.path)

    def extract(
        self,
        elements: Sequence[Element],
        *,
        cancel: threading.Event | None = None,
    ) -> ExtractionResult:
        """Discover, parse, and flatten diagram edges in file-path order."""
        results = self.run(self.discover(elements), cancel=cancel)
        edges: list[RawEdge] = []
        warnings: list[BuildWarning] = []
        for result in results:
            if result.error is not None:
                logger.warning("Skipping diagram %s: %s", result.path, result.error.reason)
                warnings.append(
                    BuildWarning(DIAGRAM_PARSE_ERROR, str(result.error), source=str(result.path))
                )
                continue
            edges.extend(result.edges)
        return ExtractionResult(edges=tuple(edges), warnings=tuple(warnings))


def _owner_of(path: Path, owners: dict[Path, str]) -> str | None:
    for directory in path.resolve().parents:
        owner = owners.get(directory)
        if owner is not None:
            return owner
    return None
