"""BaseService — common foundation for archgraph services.

Every service receives a :class:`Project` at construction time. The
Project provides the relationship store and the lazily built graph.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from archgraph.domain.errors import (
    BuildCancelledError,
    DuplicateElementError,
    ElementNotFoundError,
    RelationshipStoreError,
)
from archgraph.infrastructure.graph.model import suggest_id
from archgraph.services.result import (
    CANCELLED,
    DUPLICATE_ELEMENT,
    NOT_FOUND,
    STORE_ERROR,
    ServiceResult,
)

if TYPE_CHECKING:
    from archgraph.infrastructure.graph.model import ArchitectureGraph
    from archgraph.infrastructure.project import Project

logger = logging.getLogger(__name__)


class BaseService:
    """Base for service-layer classes.

    Usage::

        class GraphService(BaseService):
            def dependencies(self, element_id: str) -> ServiceResult:
                graph = self._load_graph("dependencies")
                if isinstance(graph, ServiceResult):
                    return graph
                ...
    """

    def __init__(self, project: Project) -> None:
        self._project = project

    def _load_graph(self, op: str) -> ArchitectureGraph | ServiceResult:
        """Return the project graph, or a failed result if the build failed."""
        try:
            return self._project.graph.graph
        except RelationshipStoreError as exc:
            logger.warning("Graph build failed: %s", exc)
            return ServiceResult.failure(
                op,
                STORE_ERROR,
                str(exc),
                detail={"system_id": exc.system_id, "path": str(exc.path)},
            )
        except DuplicateElementError as exc:
            return ServiceResult.failure(
                op, DUPLICATE_ELEMENT, str(exc), detail={"id": exc.element_id}
            )
        except BuildCancelledError as exc:
            return ServiceResult.failure(op, CANCELLED, str(exc))

    def _build_warnings(self) -> list[str]:
        return [str(w) for w in self._project.graph.warnings]

    @staticmethod
    def _not_found(op: str, graph: ArchitectureGraph, element_id: str) -> ServiceResult:
        """NOT_FOUND result with a suggested ID or a pointer to list_elements."""
        suggestion = suggest_id(graph, element_id)
        if suggestion == element_id:
            suggestion = None
        error = ElementNotFoundError(element_id, suggestion=suggestion)
        detail = (
            {"id": element_id, "suggestion": suggestion}
            if suggestion
            else {"id": element_id, "hint": "Call list_elements to see all available IDs"}
        )
        return ServiceResult.failure(op, NOT_FOUND, str(error), detail=detail)
