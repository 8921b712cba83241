"""Persistent: the save/load handle for one Binding.

A handle combines path resolution, a codec, and the transport transforms
(gzip, atomic write, mmap read) behind a uniform contract:

- :meth:`Persistent.save` resolves the path (creating directories),
  encodes, optionally compresses, and writes (atomically by default).
- :meth:`Persistent.load` reads (optionally memory-mapped), optionally
  decompresses, decodes, and validates into the payload type.

INVARIANT: save either fully replaces the target or leaves it untouched;
load either returns a freshly decoded value or raises. Nothing falls back
to a default value.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Generic, TypeVar

from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from diskstate.config.settings import DiskSettings
from diskstate.domain.binding import Binding, Metadata
from diskstate.domain.errors import (
    DecodeError,
    EncodeError,
    NotFoundError,
    PersistDecodeError,
    PersistEncodeError,
    PersistIOError,
)
from diskstate.domain.formats import file_name
from diskstate.domain.names import validate_names
from diskstate.infrastructure import filesystem, paths
from diskstate.infrastructure.codecs import Codec, CodecRegistry
from diskstate.infrastructure.compression import compress, decompress
from diskstate.plugins.manager import PluginManager

T = TypeVar("T")

logger = logging.getLogger(__name__)


class Persistent(Generic[T]):
    """Save/load handle for values of type *T* bound to one file.

    Args:
        binding: Where the file lives and how it is encoded.
        payload_type: Type used to convert decoded plain data back into
            values (pydantic models, dataclasses, TypedDicts, scalars).
            Defaults to ``Any``, which returns the decoded data unchanged.
        settings: Directory overrides and I/O settings. Loaded from env vars
            and ``diskstate.toml`` when omitted.
        registry: Codec lookup. Defaults to the built-in codecs.
        plugins: Plugin manager contributing codecs and receiving
            ``post_save`` / ``post_remove`` notifications.

    Raises:
        PathResolutionError: If the binding's names are invalid.
        UnknownFormatError: If no codec handles ``binding.format``.
    """

    def __init__(
        self,
        binding: Binding,
        payload_type: type[T] | Any = Any,
        *,
        settings: DiskSettings | None = None,
        registry: CodecRegistry | None = None,
        plugins: PluginManager | None = None,
    ) -> None:
        validate_names(binding.project, binding.subdir, binding.stem)

        if registry is None:
            registry = CodecRegistry.default()
            if plugins is not None:
                plugins.collect_codecs(registry)

        self.binding = binding
        self.payload_type = payload_type
        self.settings = settings if settings is not None else DiskSettings.load()
        self.codec: Codec = registry.get(binding.format).for_binding(binding)
        self._plugins = plugins
        self._adapter: TypeAdapter[Any] | None = None
        if self.codec.payload == "plain":
            self._adapter = TypeAdapter(payload_type)

    def __repr__(self) -> str:
        b = self.binding
        return (
            f"Persistent(kind={b.kind.value!r}, project={b.project!r}, "
            f"subdir={b.subdir!r}, file={self.file_name!r})"
        )

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def extension(self) -> str:
        """File extension of the bound format (``""`` for none)."""
        return self.codec.extension

    @property
    def file_name(self) -> str:
        """File name including extension (``state.json``)."""
        return file_name(self.binding.stem, self.extension)

    def absolute_path(self) -> Path:
        """Absolute path of the bound file. Compression never changes it."""
        return self._resolve(create=False)

    def base_path(self) -> Path:
        """Directory holding the file (project dir + sub-directories)."""
        b = self.binding
        return paths.base_path(
            b.kind, b.project, b.subdir, settings=self.settings, custom_root=b.custom_root
        )

    def project_dir(self) -> Path:
        """The project directory."""
        b = self.binding
        return paths.project_dir(
            b.kind, b.project, settings=self.settings, custom_root=b.custom_root
        )

    def sub_dir_parent(self) -> Path:
        """Top-level sub-directory, or the project directory without one."""
        b = self.binding
        return paths.sub_dir_parent(
            b.kind, b.project, b.subdir, settings=self.settings, custom_root=b.custom_root
        )

    def mkdir(self) -> Path:
        """Create the directories leading up to the file.

        Not needed before :meth:`save`, which creates them implicitly.
        """
        path = self.base_path()
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistIOError(path, f"Could not create directory ({exc})") from exc
        return path

    def _resolve(self, *, create: bool) -> Path:
        b = self.binding
        return paths.resolve(
            b.kind,
            b.project,
            b.subdir,
            b.stem,
            self.extension,
            settings=self.settings,
            custom_root=b.custom_root,
            create=create,
        )

    # ------------------------------------------------------------------
    # Codec (no I/O)
    # ------------------------------------------------------------------

    def to_bytes(self, value: T) -> bytes:
        """Encode *value* with the bound codec (uncompressed).

        Raises:
            EncodeError: If the value cannot be represented in the format.
        """
        if self._adapter is not None:
            try:
                value = self._adapter.dump_python(value, mode="json")
            except (PydanticSerializationError, TypeError, ValueError) as exc:
                raise EncodeError(self.codec.format_name, str(exc)) from exc
        return self.codec.encode(value)

    def from_bytes(self, data: bytes) -> T:
        """Decode *data* (uncompressed) into the payload type.

        Raises:
            DecodeError: If the bytes are malformed or don't fit the type.
        """
        value = self.codec.decode(data)
        if self._adapter is None:
            return value
        try:
            return self._adapter.validate_python(value)
        except ValidationError as exc:
            raise DecodeError(self.codec.format_name, str(exc)) from exc

    # ------------------------------------------------------------------
    # Save / load
    # ------------------------------------------------------------------

    def save(self, value: T) -> Metadata:
        """Encode *value* and write it to the bound file.

        Returns the number of bytes written and the path.

        Raises:
            PersistEncodeError: If the codec rejects the value.
            PersistIOError: If directories or the file cannot be written.
        """
        try:
            path = self._resolve(create=True)
        except OSError as exc:
            path = self.absolute_path()
            raise PersistIOError(path, f"Could not create directory ({exc})") from exc

        try:
            data = self.to_bytes(value)
        except EncodeError as exc:
            raise PersistEncodeError(path, f"Could not encode value ({exc})") from exc

        if self.binding.compress:
            data = compress(data, self.settings.io.compression_level)

        try:
            if self.binding.atomic:
                filesystem.write_atomic(path, data, fsync=self.settings.io.fsync)
            else:
                filesystem.write_bytes(path, data)
        except OSError as exc:
            raise PersistIOError(path, f"Could not write file ({exc})") from exc

        logger.debug("Saved %d bytes to %s (%s)", len(data), path, self.codec.format_name)
        if self._plugins is not None:
            self._plugins.notify_saved(path, len(data), str(self.codec.format_name))
        return Metadata(size=len(data), path=path)

    def load(self) -> T:
        """Read the bound file and decode it into the payload type.

        Raises:
            NotFoundError: If the file does not exist.
            PersistIOError: If the file cannot be read.
            PersistDecodeError: If decompression, decoding, or validation fails.
        """
        path = self.absolute_path()
        data = self._read_payload(path)
        try:
            value = self.from_bytes(data)
        except DecodeError as exc:
            raise PersistDecodeError(path, f"Could not decode file ({exc})") from exc
        logger.debug("Loaded %s (%s)", path, self.codec.format_name)
        return value

    def touch(self) -> Path:
        """Create the bound file with zero length (directories included).

        Intended for empty-marker bindings used as file-based signals.
        """
        path = self.absolute_path()
        try:
            filesystem.touch(path)
        except OSError as exc:
            raise PersistIOError(path, f"Could not create file ({exc})") from exc
        logger.debug("Touched %s", path)
        if self._plugins is not None:
            self._plugins.notify_saved(path, 0, str(self.codec.format_name))
        return path

    # ------------------------------------------------------------------
    # Raw access
    # ------------------------------------------------------------------

    def exists(self) -> bool:
        """Whether the bound file exists."""
        return self.absolute_path().is_file()

    def file_size(self) -> Metadata:
        """On-disk size of the bound file.

        Raises:
            NotFoundError: If the file does not exist.
        """
        path = self.absolute_path()
        if not path.is_file():
            raise NotFoundError(path)
        return Metadata(size=filesystem.file_size(path), path=path)

    def project_dir_size(self) -> Metadata:
        """Total size of all files in the project directory (0 if absent)."""
        return self._tree_size(self.project_dir())

    def sub_dir_size(self) -> Metadata:
        """Total size of all files in the top-level sub-directory.

        Without a sub-directory this measures the project directory.
        """
        return self._tree_size(self.sub_dir_parent())

    def _tree_size(self, path: Path) -> Metadata:
        try:
            size = filesystem.tree_size(path)
        except OSError as exc:
            raise PersistIOError(path, f"Could not measure directory ({exc})") from exc
        return Metadata(size=size, path=path)

    def read_bytes(self) -> bytes:
        """Raw on-disk bytes (still compressed when compression is on)."""
        path = self.absolute_path()
        return self._read_raw(path)

    def read_text(self) -> str:
        """File contents as text, decompressed when compression is on.

        Raises:
            PersistDecodeError: If the contents are not valid UTF-8.
        """
        path = self.absolute_path()
        data = self._read_payload(path)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise PersistDecodeError(path, f"File is not UTF-8 text ({exc})") from exc

    def file_bytes(self, start: int, end: int) -> bytes:
        """Raw on-disk bytes ``[start, end)``.

        Raises:
            ValueError: If the range is inverted or past the end of the file.
        """
        path = self.absolute_path()
        try:
            return filesystem.read_range(path, start, end)
        except FileNotFoundError as exc:
            raise NotFoundError(path) from exc
        except OSError as exc:
            raise PersistIOError(path, f"Could not read file ({exc})") from exc

    def file_version(self) -> int:
        """Version byte of a headed ``binary`` file.

        Raises:
            ValueError: If the binding declares no header.
            PersistDecodeError: If the file's header does not match.
        """
        header = self.binding.header
        if header is None:
            msg = f"Binding for {self.file_name!r} declares no header"
            raise ValueError(msg)
        path = self.absolute_path()
        data = self._read_payload(path)
        if len(data) <= len(header) or data[: len(header)] != header:
            raise PersistDecodeError(path, "Header bytes do not match")
        return data[len(header)]

    def _read_raw(self, path: Path) -> bytes:
        try:
            return filesystem.read_bytes(path, use_mmap=self.binding.mmap)
        except FileNotFoundError as exc:
            raise NotFoundError(path) from exc
        except OSError as exc:
            raise PersistIOError(path, f"Could not read file ({exc})") from exc

    def _read_payload(self, path: Path) -> bytes:
        data = self._read_raw(path)
        if not self.binding.compress:
            return data
        try:
            return decompress(data)
        except ValueError as exc:
            raise PersistDecodeError(path, str(exc)) from exc

    # ------------------------------------------------------------------
    # Removal
    # ------------------------------------------------------------------

    def rm(self) -> Metadata:
        """Delete the bound file. Succeeds with size 0 if it was absent."""
        path = self.absolute_path()
        try:
            size = filesystem.remove_file(path)
        except OSError as exc:
            raise PersistIOError(path, f"Could not remove file ({exc})") from exc
        self._notify_removed(path, size)
        return Metadata(size=size, path=path)

    def rm_tmp(self) -> list[Path]:
        """Delete temporary files left behind by interrupted atomic saves."""
        path = self.absolute_path()
        try:
            return filesystem.remove_temp_files(path)
        except OSError as exc:
            raise PersistIOError(path, f"Could not remove temporary files ({exc})") from exc

    def rm_sub(self) -> Metadata:
        """Recursively delete the top-level sub-directory.

        Without a sub-directory this removes the project directory.
        """
        return self._remove_tree(self.sub_dir_parent())

    def rm_project(self) -> Metadata:
        """Recursively delete the whole project directory."""
        return self._remove_tree(self.project_dir())

    def _remove_tree(self, path: Path) -> Metadata:
        try:
            size = filesystem.remove_tree(path)
        except OSError as exc:
            raise PersistIOError(path, f"Could not remove directory ({exc})") from exc
        self._notify_removed(path, size)
        return Metadata(size=size, path=path)

    def _notify_removed(self, path: Path, size: int) -> None:
        logger.debug("Removed %s (%d bytes)", path, size)
        if self._plugins is not None:
            self._plugins.notify_removed(path, size)
