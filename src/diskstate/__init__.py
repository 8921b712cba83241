"""diskstate: declare where a value lives on disk, then save and load it.

Public API::

    from diskstate import BaseDir, Binding, Format, Persistent

    handle = Persistent(
        Binding(kind=BaseDir.CONFIG, project="MyProject", stem="state", format=Format.JSON)
    )
    handle.save({"number": 7})   # ~/.config/myproject/state.json on Linux
    handle.load()                # {"number": 7}
"""

from diskstate.config.logging import configure_logging
from diskstate.config.settings import DiskSettings
from diskstate.domain.binding import Binding, Metadata
from diskstate.domain.dirs import BaseDir
from diskstate.domain.errors import (
    CodecError,
    ConfigError,
    DeclarationError,
    DecodeError,
    DiskStateError,
    EncodeError,
    NotFoundError,
    PathResolutionError,
    PersistDecodeError,
    PersistEncodeError,
    PersistError,
    PersistIOError,
    UnknownFormatError,
)
from diskstate.domain.formats import Format
from diskstate.infrastructure.codecs import Codec, CodecRegistry
from diskstate.infrastructure.paths import resolve
from diskstate.plugins.hookspecs import hookimpl
from diskstate.plugins.manager import PluginManager
from diskstate.services.declare import persistent
from diskstate.services.persistent import Persistent

__all__ = [
    "BaseDir",
    "Binding",
    "Codec",
    "CodecError",
    "CodecRegistry",
    "ConfigError",
    "DeclarationError",
    "DecodeError",
    "DiskSettings",
    "DiskStateError",
    "EncodeError",
    "Format",
    "Metadata",
    "NotFoundError",
    "PathResolutionError",
    "PersistDecodeError",
    "PersistEncodeError",
    "PersistError",
    "PersistIOError",
    "Persistent",
    "PluginManager",
    "UnknownFormatError",
    "configure_logging",
    "hookimpl",
    "persistent",
    "resolve",
]
