"""Filesystem operations for persisted files.

INVARIANT: A target file is only ever replaced whole. Atomic writes go
through a uniquely named temporary file in the same directory, which is
flushed, fsynced, and renamed over the target; on failure the temporary
file is removed and the target is left as it was.

Everything here raises plain :class:`OSError`; the service layer maps those
onto the persist error taxonomy.
"""

from __future__ import annotations

import logging
import mmap
import os
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

TMP_SUFFIX = ".tmp"


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* in place (truncating).

    Creates parent directories if they don't exist.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as fh:
        fh.write(data)


def write_atomic(path: Path, data: bytes, *, fsync: bool = True) -> None:
    """Write *data* to *path* via temporary file + rename.

    The temporary file is named ``<name>.<random>.tmp`` next to *path* so
    the final :func:`os.replace` never crosses a filesystem boundary.
    The replaced file gets the same permissions as one created in place
    under the process umask.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f"{path.name}.", suffix=TMP_SUFFIX, dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            # mkstemp creates 0600; match what an in-place write would get.
            if hasattr(os, "fchmod"):
                os.fchmod(fh.fileno(), 0o666 & ~_current_umask())
            fh.write(data)
            fh.flush()
            if fsync:
                os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    logger.debug("Atomically replaced %s (%d bytes)", path, len(data))


def _current_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


def touch(path: Path) -> None:
    """Create an empty file at *path*, truncating existing content."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def read_bytes(path: Path, *, use_mmap: bool = False) -> bytes:
    """Read the whole file at *path*.

    With *use_mmap* the file is memory-mapped and copied out, which avoids
    buffered reads for large files. Zero-length files cannot be mapped and
    are returned as ``b""``.
    """
    if not use_mmap:
        return path.read_bytes()

    with path.open("rb") as fh:
        if os.fstat(fh.fileno()).st_size == 0:
            return b""
        with mmap.mmap(fh.fileno(), 0, access=mmap.ACCESS_READ) as mapped:
            return bytes(mapped)


def read_range(path: Path, start: int, end: int) -> bytes:
    """Read bytes ``[start, end)`` of *path*.

    Raises:
        ValueError: If *start* > *end* or the file is shorter than *end*.
    """
    if start > end:
        msg = f"Invalid byte range: start ({start}) > end ({end})"
        raise ValueError(msg)
    with path.open("rb") as fh:
        fh.seek(start)
        data = fh.read(end - start)
    if len(data) != end - start:
        msg = f"File length less than end ({end}): {path}"
        raise ValueError(msg)
    return data


def file_size(path: Path) -> int:
    """Return the size of *path* in bytes, 0 if it does not exist."""
    try:
        return path.stat().st_size
    except FileNotFoundError:
        return 0


def tree_size(path: Path) -> int:
    """Return the total size of all files below *path*, 0 if it does not exist."""
    if not path.exists():
        return 0
    if path.is_file():
        return file_size(path)
    return sum(file_size(p) for p in path.rglob("*") if p.is_file())


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------


def remove_file(path: Path) -> int:
    """Delete *path* if present. Returns the number of bytes removed."""
    size = file_size(path)
    if not path.exists():
        return 0
    path.unlink()
    return size


def remove_tree(path: Path) -> int:
    """Recursively delete the directory *path*. Returns bytes removed.

    Symlinks inside the tree are removed, not followed.
    """
    if not path.exists():
        return 0
    size = tree_size(path)
    shutil.rmtree(path)
    logger.debug("Removed directory tree %s", path)
    return size


def find_temp_files(path: Path) -> list[Path]:
    """Return leftover temporary files from atomic writes of *path*.

    Only ``<name>.<token>.tmp`` with a dot-free token matches, so the
    temporary files of a sibling such as ``<name>.json`` are left alone.
    """
    if not path.parent.is_dir():
        return []
    start, end = len(path.name) + 1, -len(TMP_SUFFIX)
    return sorted(
        p
        for p in path.parent.glob(f"{path.name}.*{TMP_SUFFIX}")
        if p.name[start:end] and "." not in p.name[start:end]
    )


def remove_temp_files(path: Path) -> list[Path]:
    """Delete leftover temporary files of *path*. Returns the removed paths."""
    removed = find_temp_files(path)
    for tmp in removed:
        tmp.unlink(missing_ok=True)
    return removed
