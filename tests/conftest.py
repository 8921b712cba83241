"""Shared pytest fixtures and test helpers for diskstate tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from diskstate.config.settings import DiskSettings
from diskstate.domain.binding import Binding
from diskstate.domain.dirs import BaseDir


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's DISKSTATE_* environment out of the tests."""
    for name in ("DISKSTATE_CONFIG", "DISKSTATE_ROOT", "DISKSTATE_VERBOSE", "DISKSTATE_LOG_JSON"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def disk_root(tmp_path: Path) -> Path:
    """Directory every base directory kind is redirected under."""
    return tmp_path / "root"


@pytest.fixture
def settings(disk_root: Path) -> DiskSettings:
    """Settings resolving all kinds to ``<disk_root>/<kind>``, fsync off."""
    return DiskSettings(root=disk_root, io={"fsync": False})


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def make_binding(**overrides: Any) -> Binding:
    """Build a Binding with test defaults (Config / MyProject / state / json)."""
    fields: dict[str, Any] = {
        "kind": BaseDir.CONFIG,
        "project": "MyProject",
        "subdir": "",
        "stem": "state",
        "format": "json",
    }
    fields.update(overrides)
    return Binding(**fields)
