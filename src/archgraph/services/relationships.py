"""RelationshipService — create, list, and delete stored relationships.

Writes go through :meth:`Project.mutation`, so the cached graph is
invalidated before any of these methods returns. Creation is idempotent:
the relationship ID is derived from source, target and label, and
re-creating an existing relationship returns the stored record untouched.
"""

from __future__ import annotations

import logging
from typing import Any

from archgraph.domain.errors import (
    InvalidRelationshipError,
    RelationshipNotFoundError,
    RelationshipStoreError,
)
from archgraph.domain.ids import system_of
from archgraph.domain.relationships import Relationship, new_relationship
from archgraph.domain.types import ElementKind
from archgraph.services.base import BaseService
from archgraph.services.contracts import (
    CascadeResultData,
    RelationshipCreateResultData,
    RelationshipDeleteResultData,
    RelationshipListResultData,
    dump_validated,
)
from archgraph.services.result import (
    INVALID_RELATIONSHIP,
    RELATIONSHIP_NOT_FOUND,
    STORE_ERROR,
    ServiceResult,
)

logger = logging.getLogger(__name__)


def _store_failure(op: str, exc: RelationshipStoreError) -> ServiceResult:
    logger.warning("%s failed: %s", op, exc)
    return ServiceResult.failure(
        op,
        STORE_ERROR,
        str(exc),
        detail={"system_id": exc.system_id, "path": str(exc.path)},
    )


def _record(relationship: Relationship) -> dict[str, Any]:
    return relationship.model_dump(mode="json")


class RelationshipService(BaseService):
    """Mutations of the per-system relationship files."""

    def create(
        self,
        source: str,
        target: str,
        label: str,
        *,
        system_id: str | None = None,
        type: str | None = None,  # noqa: A002
        technology: str | None = None,
        direction: str | None = None,
    ) -> ServiceResult:
        """Validate and store a relationship.

        *source* and *target* may be qualified IDs or unambiguous short
        names; the record stores the qualified IDs they resolve to.
        *system_id* selects the file the record lives in; it defaults to
        the system of the resolved source and must name a system.
        """
        op = "create_relationship"
        try:
            new_relationship(
                source, target, label, type=type, technology=technology, direction=direction
            )
        except InvalidRelationshipError as exc:
            return ServiceResult.failure(op, INVALID_RELATIONSHIP, str(exc))

        graph = self._load_graph(op)
        if isinstance(graph, ServiceResult):
            return graph

        endpoints: list[str] = []
        for reference in (source, target):
            resolved = graph.resolve(reference.strip())
            if resolved is None:
                return self._not_found(op, graph, reference.strip())
            endpoints.append(resolved)
        source_id, target_id = endpoints
        try:
            relationship = new_relationship(
                source_id, target_id, label, type=type, technology=technology, direction=direction
            )
        except InvalidRelationshipError as exc:
            return ServiceResult.failure(op, INVALID_RELATIONSHIP, str(exc))

        system = system_id or system_of(relationship.source)
        node = graph.node(system)
        if node is None or node.kind is not ElementKind.SYSTEM:
            return self._not_found(op, graph, system)

        try:
            with self._project.mutation() as store:
                created = store.add(system, relationship)
        except RelationshipStoreError as exc:
            return _store_failure(op, exc)

        if created:
            logger.info("Created relationship %s in %s", relationship.id, system)
        warnings = [] if created else [f"Relationship {relationship.id} already exists"]
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                RelationshipCreateResultData,
                {"system_id": system, "created": created, "relationship": _record(relationship)},
            ),
            warnings=warnings,
        )

    def list(self, system_id: str) -> ServiceResult:
        """All stored relationships of one system, in file order."""
        op = "list_relationships"
        try:
            relationships = self._project.store.load(system_id)
        except RelationshipStoreError as exc:
            return _store_failure(op, exc)
        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                RelationshipListResultData,
                {
                    "system_id": system_id,
                    "count": len(relationships),
                    "items": [_record(r) for r in relationships],
                },
            ),
        )

    def delete(self, system_id: str, relationship_id: str) -> ServiceResult:
        """Remove one relationship by ID."""
        op = "delete_relationship"
        try:
            with self._project.mutation() as store:
                removed = store.remove(system_id, relationship_id)
        except RelationshipNotFoundError as exc:
            return ServiceResult.failure(
                op,
                RELATIONSHIP_NOT_FOUND,
                str(exc),
                detail={"system_id": system_id, "id": relationship_id},
            )
        except RelationshipStoreError as exc:
            return _store_failure(op, exc)

        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                RelationshipDeleteResultData,
                {"system_id": system_id, "deleted": _record(removed)},
            ),
        )

    def delete_element(self, element_id: str) -> ServiceResult:
        """Cascade: remove every stored relationship touching *element_id*.

        Every system file is checked, since a relationship is stored under
        its source's system and may target an element of another system.
        Files with nothing to remove are not rewritten.
        """
        op = "delete_element_relationships"
        systems: dict[str, int] = {}
        try:
            with self._project.mutation() as store:
                candidates = {*store.system_ids(), system_of(element_id)}
                for system in sorted(s for s in candidates if s):
                    removed = store.delete_element(system, element_id)
                    if removed:
                        systems[system] = removed
        except RelationshipStoreError as exc:
            return _store_failure(op, exc)

        return ServiceResult(
            ok=True,
            op=op,
            data=dump_validated(
                CascadeResultData,
                {"element_id": element_id, "removed": sum(systems.values()), "systems": systems},
            ),
        )
