"""Relationship store: one YAML file of relationship records per system.

Layout: ``<project>/<source_dir>/<system-id>/relationships.yaml``::

    relationships:
    - id: 3f2a9c01
      source: backend/api
      target: backend/worker
      label: Dispatch job
      type: async
      direction: forward

INVARIANT: Writes are atomic. A save goes to a temporary file in the same
directory and is renamed over the target, so readers never observe a
half-written file.

Concurrent writers to the same system file are not coordinated; the last
rename wins.
"""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Callable, Sequence
from io import StringIO
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from archgraph.domain.errors import RelationshipNotFoundError, RelationshipStoreError
from archgraph.domain.ids import SEPARATOR
from archgraph.domain.relationships import Relationship, RelationshipList

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "relationships.yaml"


def _new_yaml() -> YAML:
    """Create a fresh YAML instance (the emitter is stateful)."""
    y = YAML()
    y.preserve_quotes = True
    y.default_flow_style = False
    return y


type ChangeCallback = Callable[[str], None]


class RelationshipStore:
    """Reads and writes per-system relationship files under a project root.

    *on_change*, when given, is called with the system ID after every
    write that reached disk.
    """

    def __init__(
        self,
        project_root: Path,
        *,
        source_dir: str = "src",
        filename: str = DEFAULT_FILENAME,
        on_change: ChangeCallback | None = None,
    ) -> None:
        self._root = project_root
        self._source_dir = source_dir
        self._filename = filename
        self._on_change = on_change

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, system_id: str) -> Path:
        """Path of *system_id*'s relationship file (which may not exist)."""
        base = self._root / self._source_dir
        if not system_id or SEPARATOR in system_id or system_id in (".", ".."):
            raise RelationshipStoreError(system_id, base, "invalid system ID")
        return base / system_id / self._filename

    def system_ids(self) -> list[str]:
        """Systems that currently have a relationship file, sorted."""
        base = self._root / self._source_dir
        if not base.is_dir():
            return []
        return sorted(
            child.name
            for child in base.iterdir()
            if child.is_dir() and (child / self._filename).is_file()
        )

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load(self, system_id: str) -> list[Relationship]:
        """All relationships of *system_id*; empty when it has no file.

        Raises:
            RelationshipStoreError: the file is unreadable or malformed.
        """
        path = self.path_for(system_id)
        if not path.exists():
            return []
        try:
            raw = _new_yaml().load(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise RelationshipStoreError(system_id, path, f"read failed: {exc}") from exc
        except YAMLError as exc:
            raise RelationshipStoreError(system_id, path, f"invalid YAML: {exc}") from exc

        if raw is None:
            return []
        try:
            parsed = RelationshipList.model_validate(_plain(raw))
        except ValidationError as exc:
            raise RelationshipStoreError(system_id, path, f"invalid records: {exc}") from exc
        return list(parsed.relationships)

    def get(self, system_id: str, relationship_id: str) -> Relationship | None:
        for relationship in self.load(system_id):
            if relationship.id == relationship_id:
                return relationship
        return None

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, system_id: str, relationships: Sequence[Relationship]) -> None:
        """Replace *system_id*'s relationships atomically.

        Raises:
            RelationshipStoreError: the file could not be written.
        """
        path = self.path_for(system_id)
        buf = StringIO()
        _new_yaml().dump({"relationships": [r.to_record() for r in relationships]}, buf)
        text = buf.getvalue()

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.name}.", suffix=".tmp"
            )
        except OSError as exc:
            raise RelationshipStoreError(system_id, path, f"write failed: {exc}") from exc

        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise RelationshipStoreError(system_id, path, f"write failed: {exc}") from exc

        logger.debug("Saved %d relationships to %s", len(relationships), path)
        self._changed(system_id)

    def add(self, system_id: str, relationship: Relationship) -> bool:
        """Append *relationship* unless one with its ID already exists.

        Returns True when the file was written.
        """
        existing = self.load(system_id)
        if any(r.id == relationship.id for r in existing):
            return False
        self.save(system_id, [*existing, relationship])
        return True

    def remove(self, system_id: str, relationship_id: str) -> Relationship:
        """Delete one relationship by ID and return it.

        Raises:
            RelationshipNotFoundError: no relationship has that ID.
        """
        existing = self.load(system_id)
        kept = [r for r in existing if r.id != relationship_id]
        if len(kept) == len(existing):
            raise RelationshipNotFoundError(relationship_id, system_id)
        removed = next(r for r in existing if r.id == relationship_id)
        self.save(system_id, kept)
        return removed

    def delete_element(self, system_id: str, element_id: str) -> int:
        """Remove every relationship touching *element_id*.

        Returns the number removed. The file is not rewritten when nothing
        matched.
        """
        existing = self.load(system_id)
        kept = [r for r in existing if not r.involves(element_id)]
        removed = len(existing) - len(kept)
        if removed == 0:
            return 0
        self.save(system_id, kept)
        logger.info("Removed %d relationships of %s from %s", removed, element_id, system_id)
        return removed

    def _changed(self, system_id: str) -> None:
        if self._on_change is not None:
            self._on_change(system_id)


def _plain(value: Any) -> Any:
    """Convert ruamel's round-trip containers into plain dicts and lists."""
    if isinstance(value, dict):
        return {str(k): _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value
