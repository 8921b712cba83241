"""Pluggy hook specifications for diskstate.

One setup-time hook lets plugins contribute codecs for new format tags.
Two observer hooks fire synchronously after files are written or removed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from pathlib import Path

    from diskstate.infrastructure.codecs import Codec

hookspec = pluggy.HookspecMarker("diskstate")
hookimpl = pluggy.HookimplMarker("diskstate")


class DiskStateHookSpec:
    """Hook specifications for the diskstate plugin system."""

    @hookspec
    def register_codecs(self) -> list[Codec] | None:
        """Return codec instances to add to the codec registry."""

    @hookspec
    def post_save(self, path: Path, size: int, format: str) -> None:
        """Called after a file was written to *path*."""

    @hookspec
    def post_remove(self, path: Path, size: int) -> None:
        """Called after a file or directory at *path* was removed."""
