"""Qualified element IDs and relationship ID generation.

Two ID strategies:
- Qualified (elements): slugified ancestor chain joined with ``/``,
  e.g. ``backend/api/auth``. One segment per hierarchy level.
- Content-hash (relationships): SHA-256 of ``source``, ``target`` and
  ``label``, 8 hex chars. Re-deriving a relationship yields the same ID.

INVARIANT: IDs are permanent. A qualified ID is never reassigned to a
different element.
"""

from __future__ import annotations

import hashlib
import re
import unicodedata

SEPARATOR = "/"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Normalize a display name into a single ID segment.

    Applies NFKC normalization, lowercases, replaces every run of
    non-alphanumeric characters with a hyphen, and trims hyphens.

        >>> slugify("Api Lambda")
        'api-lambda'
        >>> slugify("  Auth_Service (v2) ")
        'auth-service-v2'
    """
    text = unicodedata.normalize("NFKC", name).lower()
    text = _NON_ALNUM.sub("-", text)
    return text.strip("-")


def qualify(parent_path: str | None, name: str) -> str:
    """Return the qualified ID for *name* under *parent_path*.

    *parent_path* is the parent's qualified ID (or None/empty for a
    system). Raises ValueError when *name* slugifies to nothing.
    """
    segment = slugify(name)
    if not segment:
        msg = f"Name {name!r} produces an empty identifier"
        raise ValueError(msg)
    if not parent_path:
        return segment
    return f"{parent_path.strip(SEPARATOR)}{SEPARATOR}{segment}"


def split_qualified(qualified_id: str) -> list[str]:
    """Split a qualified ID into its segments, ignoring empty parts."""
    return [part for part in qualified_id.split(SEPARATOR) if part]


def short_name(qualified_id: str) -> str:
    """Return the trailing segment of a qualified ID."""
    parts = split_qualified(qualified_id)
    return parts[-1] if parts else ""


def parent_of(qualified_id: str) -> str | None:
    """Return the parent's qualified ID, or None for a top-level ID."""
    parts = split_qualified(qualified_id)
    if len(parts) <= 1:
        return None
    return SEPARATOR.join(parts[:-1])


def system_of(qualified_id: str) -> str:
    """Return the system segment (first segment) of a qualified ID."""
    parts = split_qualified(qualified_id)
    return parts[0] if parts else ""


def is_within(qualified_id: str, prefix: str) -> bool:
    """Whether *qualified_id* equals *prefix* or lies underneath it."""
    return qualified_id == prefix or qualified_id.startswith(prefix + SEPARATOR)


def generate_relationship_id(source: str, target: str, label: str) -> str:
    """Generate the deterministic 8-hex-char ID of a relationship."""
    key = f"{source}->{target}:{label}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()[:8]
