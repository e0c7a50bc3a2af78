"""Shared pytest fixtures and test helpers for archgraph tests."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from archgraph.config.settings import ArchGraphSettings
from archgraph.domain.hierarchy import Element, elements_from_tree
from archgraph.infrastructure.graph.cache import GraphCache
from archgraph.infrastructure.project import Project


def sample_tree() -> list[dict[str, Any]]:
    """Two systems, four containers, two components.

    backend
      api          -> worker ("Dispatch job"), database ("Reads")
        auth
        handlers
      worker       -> database ("Writes results")
      database
    frontend
      web-app      -> backend/api ("Calls API")
    """
    return [
        {
            "name": "Backend",
            "containers": [
                {
                    "name": "API",
                    "technology": "FastAPI",
                    "relationships": {"worker": "Dispatch job", "database": "Reads"},
                    "components": [{"name": "Auth"}, {"name": "Handlers"}],
                },
                {"name": "Worker", "relationships": {"database": "Writes results"}},
                {"name": "Database", "technology": "PostgreSQL"},
            ],
        },
        {
            "name": "Frontend",
            "containers": [
                {"name": "Web App", "relationships": {"backend/api": "Calls API"}},
            ],
        },
    ]


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """Temporary project directory with an empty ``src/``."""
    (tmp_path / "src").mkdir()
    return tmp_path


@pytest.fixture
def elements(project_root: Path) -> list[Element]:
    """The sample hierarchy, with element directories under ``src/``."""
    result = elements_from_tree(sample_tree(), root=project_root / "src")
    for element in result:
        assert element.path is not None
        element.path.mkdir(parents=True, exist_ok=True)
    return result


@pytest.fixture
def settings(project_root: Path) -> ArchGraphSettings:
    return ArchGraphSettings.load(project_root=project_root)


@pytest.fixture
def graph_cache() -> GraphCache:
    """A private cache so tests never share state through the process cache."""
    return GraphCache()


@pytest.fixture
def make_project(
    settings: ArchGraphSettings, graph_cache: GraphCache
) -> Callable[..., Project]:
    """Factory building a Project over the fixture settings and cache."""

    def factory(elements: Sequence[Element] | Callable[[], Sequence[Element]]) -> Project:
        return Project(settings, elements=elements, cache=graph_cache)

    return factory


@pytest.fixture
def project(make_project: Callable[..., Project], elements: list[Element]) -> Project:
    return make_project(elements)


def write_diagram(directory: Path, name: str, text: str) -> Path:
    """Write a diagram source file, creating the directory if needed."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / name
    path.write_text(text, encoding="utf-8")
    return path
