"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, diskstate.toml only contains
overrides. Most applications need no config file at all.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class RootsConfig(BaseModel):
    """[roots] section: per-kind base directory overrides.

    A set field replaces the platform directory for that kind; the project
    segment is still appended below it.
    """

    model_config = {"frozen": True}

    data: Path | None = None
    data_local: Path | None = None
    config: Path | None = None
    cache: Path | None = None
    state: Path | None = None
    log: Path | None = None
    preference: Path | None = None
    download: Path | None = None


class IoConfig(BaseModel):
    """[io] section."""

    model_config = {"frozen": True}

    compression_level: int = Field(default=1, ge=0, le=9)
    fsync: bool = True
