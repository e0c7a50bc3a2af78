"""Exception hierarchy for graph building, lookup, and relationship storage.

Recoverable conditions (unresolved references, malformed diagrams) are
reported as :class:`BuildWarning` values and never raised out of a build.
Everything that risks data loss is raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


class ArchGraphError(Exception):
    """Base class for all archgraph errors."""


class InvalidRelationshipError(ArchGraphError, ValueError):
    """A relationship failed validation (blank field, self-reference, bad enum)."""


class DuplicateElementError(ArchGraphError):
    """Two hierarchy elements were assigned the same qualified ID."""

    def __init__(self, element_id: str) -> None:
        self.element_id = element_id
        super().__init__(f"Element '{element_id}' already exists")


class ElementNotFoundError(ArchGraphError):
    """A query named an element that is not in the graph.

    ``suggestion`` carries the corrected qualified ID when normalization or
    short-name resolution found one.
    """

    def __init__(self, element_id: str, *, suggestion: str | None = None) -> None:
        self.element_id = element_id
        self.suggestion = suggestion
        if suggestion:
            message = f"Element '{element_id}' not found. Did you mean '{suggestion}'?"
        else:
            message = (
                f"Element '{element_id}' not found. "
                "Use list_elements to see all available IDs."
            )
        super().__init__(message)


class DiagramParseError(ArchGraphError):
    """A diagram source could not be parsed."""

    def __init__(self, message: str, *, line: int | None = None, path: Path | None = None) -> None:
        self.line = line
        self.path = path
        self.reason = message
        location = ""
        if path is not None:
            location = f"{path}:"
        if line is not None:
            location = f"{location}{line}:"
        super().__init__(f"{location} {message}".strip() if location else message)

    def with_path(self, path: Path) -> DiagramParseError:
        """Return a copy of this error annotated with the source file path."""
        return DiagramParseError(self.reason, line=self.line, path=path)


class RelationshipStoreError(ArchGraphError):
    """Reading or writing a relationship file failed."""

    def __init__(self, system_id: str, path: Path, message: str) -> None:
        self.system_id = system_id
        self.path = path
        super().__init__(f"Relationship store for system '{system_id}' ({path}): {message}")


class RelationshipNotFoundError(ArchGraphError):
    """A deletion named a relationship ID that does not exist."""

    def __init__(self, relationship_id: str, system_id: str) -> None:
        self.relationship_id = relationship_id
        self.system_id = system_id
        super().__init__(f"Relationship '{relationship_id}' not found in system '{system_id}'")


class BuildCancelledError(ArchGraphError):
    """The caller cancelled an in-flight graph build."""


@dataclass(frozen=True)
class BuildWarning:
    """A non-fatal problem encountered while extracting or merging edges."""

    code: str  # UNRESOLVED_REFERENCE, SELF_REFERENCE, DIAGRAM_PARSE_ERROR, ...
    message: str
    source: str | None = None  # file path or element ID the warning came from

    def __str__(self) -> str:
        return self.message


class ConfigError(ArchGraphError):
    """A configuration file could not be parsed."""
