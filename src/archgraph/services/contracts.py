"""Typed payload contracts for service boundaries.

These models validate operation payload shapes before they leave the
service layer so key regressions (for example ``items`` vs ``nodes``)
fail fast in tests and during development.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def dump_validated[T: BaseModel](model_cls: type[T], data: dict[str, Any]) -> dict[str, Any]:
    """Validate *data* against *model_cls* and return a normalized payload dict."""
    model = model_cls.model_validate(data)
    return model.model_dump(mode="python")


class ElementItem(BaseModel):
    """One graph node as returned by queries."""

    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    kind: str
    level: int
    parent_id: str | None = None


class EdgeItem(BaseModel):
    """One graph edge."""

    id: str
    source: str
    target: str
    label: str
    technology: str | None = None
    kind: str | None = None
    bidirectional: bool = False
    provenance: str


class NeighborsResultData(BaseModel):
    """Payload contract for ``dependencies``, ``dependents`` and ``children``."""

    id: str
    count: int
    items: list[ElementItem]


class PathResultData(BaseModel):
    """Payload contract for ``GraphService.path``."""

    source_id: str
    target_id: str
    found: bool
    length: int | None = None
    steps: list[ElementItem] = Field(default_factory=list)


class AnalysisResultData(BaseModel):
    """Payload contract for ``GraphService.analyze``."""

    scope: str | None = None
    system_count: int
    container_count: int
    component_count: int
    total_nodes: int
    total_edges: int
    isolated: list[str]
    highly_coupled: dict[str, int]
    central: dict[str, int]
    coupling_threshold: int
    central_threshold: int
    cycles: list[list[str]] = Field(default_factory=list)


class SystemGraphResultData(BaseModel):
    """Payload contract for ``GraphService.system_graph``."""

    system_id: str
    node_count: int
    edge_count: int
    nodes: list[ElementItem]
    edges: list[EdgeItem]


class ElementListResultData(BaseModel):
    """Payload contract for ``GraphService.list_elements``."""

    count: int
    items: list[ElementItem]


class ResolveResultData(BaseModel):
    """Payload contract for ``GraphService.resolve``."""

    query: str
    id: str


class RelationshipItem(BaseModel):
    """One stored relationship record."""

    id: str
    source: str
    target: str
    label: str
    type: str
    technology: str | None = None
    direction: str


class RelationshipCreateResultData(BaseModel):
    """Payload contract for ``RelationshipService.create``."""

    system_id: str
    created: bool
    relationship: RelationshipItem


class RelationshipListResultData(BaseModel):
    """Payload contract for ``RelationshipService.list``."""

    system_id: str
    count: int
    items: list[RelationshipItem]


class RelationshipDeleteResultData(BaseModel):
    """Payload contract for ``RelationshipService.delete``."""

    system_id: str
    deleted: RelationshipItem


class CascadeResultData(BaseModel):
    """Payload contract for ``RelationshipService.delete_element``.

    ``systems`` maps each system whose file changed to the number of
    relationships removed from it.
    """

    element_id: str
    removed: int
    systems: dict[str, int]
