"""Locating and parsing ``diskstate.toml``.

The file is looked up like git looks up ``.git/``: in the start directory,
then in each parent. ``DISKSTATE_CONFIG`` names a file explicitly and turns
the walk off.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from diskstate.domain.errors import ConfigError

CONFIG_FILENAME = "diskstate.toml"
CONFIG_ENV_VAR = "DISKSTATE_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Return the ``diskstate.toml`` that applies to *start* (default: cwd).

    When ``DISKSTATE_CONFIG`` is set, returns that file if it exists and
    None otherwise.
    """
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        path = Path(explicit)
        return path if path.is_file() else None

    origin = (start or Path.cwd()).resolve()
    for directory in (origin, *origin.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def read_config(path: Path) -> dict[str, Any]:
    """Parse *path* as TOML.

    Raises:
        ConfigError: If the file is not valid TOML.
    """
    with path.open("rb") as fh:
        try:
            return tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
