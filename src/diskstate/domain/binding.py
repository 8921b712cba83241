"""Binding and Metadata models.

A :class:`Binding` is the declarative half of a persistent type: where the
file lives and how it is encoded. It is created once and never mutated;
the resolved path is recomputed from it on every operation.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from diskstate.domain.dirs import BaseDir
from diskstate.domain.formats import Format

HEADER_LENGTH = 24


class Binding(BaseModel):
    """Location + encoding of one persisted file.

    Attributes:
        kind: Which OS base directory to resolve against.
        project: Project directory name (lowercased, whitespace removed on disk).
        subdir: Optional ``/``-separated sub-directories; ``""`` means none.
        stem: File name without extension.
        format: Format tag selecting the codec (built-in or plugin-provided).
        compress: gzip the encoded bytes on save, gunzip on load.
        atomic: Write through a temporary file + rename.
        mmap: Memory-map the file when loading.
        custom_root: Absolute root used when ``kind`` is ``custom``.
        header: 24 identifying bytes prefixed to ``binary`` files.
        version: Version byte written after *header*.
    """

    model_config = {"frozen": True}

    kind: BaseDir = BaseDir.DATA
    project: str
    subdir: str = ""
    stem: str
    format: str = Format.JSON
    compress: bool = False
    atomic: bool = True
    mmap: bool = False
    custom_root: Path | None = None
    header: bytes | None = Field(default=None, min_length=HEADER_LENGTH, max_length=HEADER_LENGTH)
    version: int | None = Field(default=None, ge=0, le=255)


class Metadata(BaseModel):
    """Size and location of a file or directory touched by an operation."""

    model_config = {"frozen": True}

    size: int
    path: Path

    def __str__(self) -> str:
        return f"{self.size} bytes @ {self.path}"
