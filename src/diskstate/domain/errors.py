"""Error taxonomy.

INVARIANT: Every failure surfaces as a typed exception. Nothing is retried
internally and nothing is swallowed. Persist errors chain their underlying
cause and carry the path they concern.
"""

from __future__ import annotations

from pathlib import Path


class DiskStateError(Exception):
    """Base class for all diskstate errors."""


class ConfigError(DiskStateError):
    """Settings could not be loaded (e.g. invalid ``diskstate.toml``)."""


class PathResolutionError(DiskStateError, ValueError):
    """The base directory could not be determined or a name is invalid."""


class DeclarationError(DiskStateError, TypeError):
    """A class was declared persistent more than once."""


class UnknownFormatError(DiskStateError, ValueError):
    """No codec is registered for a format tag."""


# ---------------------------------------------------------------------------
# Codec errors
# ---------------------------------------------------------------------------


class CodecError(DiskStateError):
    """Encoding or decoding failed inside a format library."""

    def __init__(self, format_name: str, message: str) -> None:
        super().__init__(f"{format_name}: {message}")
        self.format_name = format_name
        self.message = message


class EncodeError(CodecError):
    """A value could not be encoded to bytes."""


class DecodeError(CodecError):
    """Bytes could not be decoded to a value."""


# ---------------------------------------------------------------------------
# Persistence errors
# ---------------------------------------------------------------------------


class PersistError(DiskStateError):
    """A save/load operation failed."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"{message}: {path}")
        self.path = path


class PersistIOError(PersistError):
    """The filesystem rejected a read or write."""


class NotFoundError(PersistError, FileNotFoundError):
    """The bound file does not exist."""

    def __init__(self, path: Path, message: str = "File does not exist") -> None:
        PersistError.__init__(self, path, message)


class PersistEncodeError(PersistError):
    """The payload could not be encoded for saving."""


class PersistDecodeError(PersistError):
    """The file contents could not be decoded into the payload type."""
