"""gzip transform applied around a codec's byte sequence.

Compression is orthogonal to the format: it never changes the file name
and works on any encoded bytes.
"""

from __future__ import annotations

import gzip
import zlib

DEFAULT_LEVEL = 1


def compress(data: bytes, level: int = DEFAULT_LEVEL) -> bytes:
    """gzip *data* at *level* (0-9, ``1`` is the fast default)."""
    # mtime=0 keeps output deterministic for identical input.
    return gzip.compress(data, compresslevel=level, mtime=0)


def decompress(data: bytes) -> bytes:
    """Inflate gzip *data*.

    Raises:
        ValueError: If *data* is not a valid gzip stream.
    """
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as exc:
        msg = f"Invalid gzip data: {exc}"
        raise ValueError(msg) from exc
