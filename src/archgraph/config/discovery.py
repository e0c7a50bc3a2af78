"""Config file discovery and TOML reading.

Walk-up finder locates archgraph.toml, similar to how git finds .git/.
The ARCHGRAPH_CONFIG env var overrides discovery.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from archgraph.domain.errors import ConfigError

CONFIG_FILENAME = "archgraph.toml"
CONFIG_ENV_VAR = "ARCHGRAPH_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for archgraph.toml.

    Checks ARCHGRAPH_CONFIG first; when it is set but names no file, no
    config is used.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        return p if p.is_file() else None

    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def read_toml(path: Path) -> dict[str, Any]:
    """Parse a TOML file, raising ConfigError on malformed content."""
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        msg = f"Invalid TOML in {path}: {exc}"
        raise ConfigError(msg) from exc
