"""Pydantic section models for archgraph settings, with code-baked defaults.

Sparse TOML contract: defaults baked here, archgraph.toml only contains
overrides. An empty file (or no file at all) is a valid configuration.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


class ProjectConfig(BaseModel):
    """[project] section."""

    model_config = {"frozen": True}

    name: str = "architecture"
    source_dir: str = "src"


class GraphConfig(BaseModel):
    """[graph] section."""

    model_config = {"frozen": True}

    max_workers: int = Field(default=10, ge=1, le=64)
    diagram_suffixes: list[str] = Field(default_factory=lambda: [".d2"])
    use_cache: bool = True

    @field_validator("diagram_suffixes")
    @classmethod
    def _dotted(cls, value: list[str]) -> list[str]:
        return [s if s.startswith(".") else f".{s}" for s in value]


class AnalysisConfig(BaseModel):
    """[analysis] section.

    A node is highly coupled when its distinct out-degree is strictly
    greater than ``coupling_threshold``, and central when its distinct
    in-degree is strictly greater than ``central_threshold``.
    """

    model_config = {"frozen": True}

    coupling_threshold: int = Field(default=2, ge=0)
    central_threshold: int = Field(default=2, ge=0)


class StoreConfig(BaseModel):
    """[store] section."""

    model_config = {"frozen": True}

    filename: str = "relationships.yaml"
