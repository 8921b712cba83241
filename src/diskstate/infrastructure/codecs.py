"""Format codecs: one encode/decode pair per file format.

Each codec is a thin adapter over an external library. Library failures
are re-raised as :class:`EncodeError` / :class:`DecodeError` with the
library's message and the original exception chained.

Codecs declare which payload shape they expect:

- ``"plain"``: JSON-compatible data (dicts, lists, scalars). The
  persistence handle converts typed values before encoding and validates
  after decoding.
- ``"native"``: the value itself (pickle, raw bytes).
- ``"none"``: the value is ignored (empty marker files).
"""

from __future__ import annotations

import json
import pickle
import tomllib
from abc import ABC, abstractmethod
from io import StringIO
from typing import Any, ClassVar, Literal

import bson
import msgpack
import tomli_w
from bson.errors import BSONError
from msgpack.exceptions import UnpackException
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from diskstate.domain.binding import HEADER_LENGTH, Binding
from diskstate.domain.errors import DecodeError, EncodeError, UnknownFormatError
from diskstate.domain.formats import EXTENSIONS, Format

PayloadKind = Literal["plain", "native", "none"]


class Codec(ABC):
    """Encode/decode contract shared by every format.

    Subclasses implement :meth:`_encode` / :meth:`_decode` and list the
    exception types their library raises in ``encode_errors`` /
    ``decode_errors``.
    """

    format_name: ClassVar[str]
    extension: ClassVar[str]
    payload: ClassVar[PayloadKind] = "plain"
    encode_errors: ClassVar[tuple[type[BaseException], ...]] = (TypeError, ValueError)
    decode_errors: ClassVar[tuple[type[BaseException], ...]] = (TypeError, ValueError)

    def encode(self, value: Any) -> bytes:
        """Turn *value* into bytes."""
        try:
            return self._encode(value)
        except self.encode_errors as exc:
            raise EncodeError(self.format_name, str(exc)) from exc

    def decode(self, data: bytes) -> Any:
        """Turn *data* back into a value."""
        try:
            return self._decode(data)
        except self.decode_errors as exc:
            raise DecodeError(self.format_name, str(exc)) from exc

    def for_binding(self, binding: Binding) -> Codec:
        """Return the codec configured for *binding* (``self`` by default)."""
        return self

    @abstractmethod
    def _encode(self, value: Any) -> bytes: ...

    @abstractmethod
    def _decode(self, data: bytes) -> Any: ...

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.format_name!r}>"


# ---------------------------------------------------------------------------
# Text formats
# ---------------------------------------------------------------------------


class JsonCodec(Codec):
    """Pretty-printed UTF-8 JSON via :mod:`json`."""

    format_name = Format.JSON
    extension = EXTENSIONS[Format.JSON]

    def _encode(self, value: Any) -> bytes:
        return json.dumps(value, indent=2, ensure_ascii=False).encode("utf-8")

    def _decode(self, data: bytes) -> Any:
        return json.loads(data)


class TomlCodec(Codec):
    """TOML via :mod:`tomllib` (read) and ``tomli_w`` (write).

    TOML documents are tables, so the top-level value must be a mapping.
    """

    format_name = Format.TOML
    extension = EXTENSIONS[Format.TOML]
    decode_errors = (tomllib.TOMLDecodeError, ValueError)

    def _encode(self, value: Any) -> bytes:
        if not isinstance(value, dict):
            msg = f"top-level value must be a table, got {type(value).__name__}"
            raise TypeError(msg)
        return tomli_w.dumps(value).encode("utf-8")

    def _decode(self, data: bytes) -> Any:
        return tomllib.loads(data.decode("utf-8"))


def _new_yaml() -> YAML:
    """Create a fresh safe YAML instance.

    A new instance per call avoids corrupted internal emitter state from
    propagating across operations.
    """
    y = YAML(typ="safe", pure=True)
    y.default_flow_style = False
    return y


class YamlCodec(Codec):
    """Block-style YAML via ``ruamel.yaml``."""

    format_name = Format.YAML
    extension = EXTENSIONS[Format.YAML]
    encode_errors = (YAMLError, TypeError, ValueError)
    decode_errors = (YAMLError, ValueError)

    def _encode(self, value: Any) -> bytes:
        buf = StringIO()
        _new_yaml().dump(value, buf)
        return buf.getvalue().encode("utf-8")

    def _decode(self, data: bytes) -> Any:
        return _new_yaml().load(data.decode("utf-8"))


class PlainCodec(Codec):
    """A single scalar rendered as text (``7``, ``true``, ``hello``).

    Decoding always yields a string; the persistence handle converts it to
    the declared scalar type.
    """

    format_name = Format.PLAIN
    extension = EXTENSIONS[Format.PLAIN]

    def _encode(self, value: Any) -> bytes:
        if isinstance(value, bool):
            return b"true" if value else b"false"
        if isinstance(value, (str, int, float)):
            return str(value).encode("utf-8")
        msg = f"plain text holds a single scalar, got {type(value).__name__}"
        raise TypeError(msg)

    def _decode(self, data: bytes) -> Any:
        return data.decode("utf-8")


# ---------------------------------------------------------------------------
# Binary formats
# ---------------------------------------------------------------------------


class MessagePackCodec(Codec):
    """MessagePack via ``msgpack``."""

    format_name = Format.MESSAGEPACK
    extension = EXTENSIONS[Format.MESSAGEPACK]
    encode_errors = (TypeError, ValueError, OverflowError)
    decode_errors = (UnpackException, TypeError, ValueError)

    def _encode(self, value: Any) -> bytes:
        return msgpack.packb(value, use_bin_type=True)

    def _decode(self, data: bytes) -> Any:
        return msgpack.unpackb(data, raw=False, strict_map_key=False)


class BsonCodec(Codec):
    """BSON via the ``bson`` package shipped with pymongo.

    BSON documents are mappings, so the top-level value must be a dict.
    """

    format_name = Format.BSON
    extension = EXTENSIONS[Format.BSON]
    encode_errors = (BSONError, TypeError, ValueError, OverflowError)
    decode_errors = (BSONError, TypeError, ValueError)

    def _encode(self, value: Any) -> bytes:
        return bson.encode(value)

    def _decode(self, data: bytes) -> Any:
        return bson.decode(data)


class PickleCodec(Codec):
    """Python pickle. Only load files this application wrote itself."""

    format_name = Format.PICKLE
    extension = EXTENSIONS[Format.PICKLE]
    payload = "native"
    encode_errors = (pickle.PicklingError, TypeError, AttributeError, RecursionError)
    decode_errors = (
        pickle.UnpicklingError,
        EOFError,
        AttributeError,
        ImportError,
        IndexError,
        TypeError,
        ValueError,
    )

    def _encode(self, value: Any) -> bytes:
        return pickle.dumps(value, protocol=pickle.HIGHEST_PROTOCOL)

    def _decode(self, data: bytes) -> Any:
        return pickle.loads(data)  # noqa: S301


class BinaryCodec(Codec):
    """Raw bytes, optionally prefixed with a 24-byte header + version byte.

    With a header configured, decoding checks both before returning the
    remaining bytes.
    """

    format_name = Format.BINARY
    extension = EXTENSIONS[Format.BINARY]
    payload = "native"

    def __init__(self, header: bytes | None = None, version: int | None = None) -> None:
        if header is not None and len(header) != HEADER_LENGTH:
            msg = f"Header must be exactly {HEADER_LENGTH} bytes, got {len(header)}"
            raise ValueError(msg)
        self.header = header
        self.version = version or 0

    @property
    def prefix(self) -> bytes:
        """The bytes written before the payload (empty without a header)."""
        if self.header is None:
            return b""
        return self.header + bytes([self.version])

    def for_binding(self, binding: Binding) -> Codec:
        if binding.header is None:
            return self
        return BinaryCodec(binding.header, binding.version)

    def _encode(self, value: Any) -> bytes:
        if not isinstance(value, (bytes, bytearray, memoryview)):
            msg = f"binary payload must be bytes-like, got {type(value).__name__}"
            raise TypeError(msg)
        return self.prefix + bytes(value)

    def _decode(self, data: bytes) -> Any:
        if self.header is None:
            return bytes(data)
        prefix_len = HEADER_LENGTH + 1
        if len(data) < prefix_len:
            msg = f"Invalid header bytes, total byte length less than {prefix_len}: {len(data)}"
            raise ValueError(msg)
        if data[:HEADER_LENGTH] != self.header:
            msg = f"Incorrect header bytes: expected {self.header!r}, found {data[:HEADER_LENGTH]!r}"
            raise ValueError(msg)
        if data[HEADER_LENGTH] != self.version:
            msg = f"Incorrect version byte: expected {self.version}, found {data[HEADER_LENGTH]}"
            raise ValueError(msg)
        return bytes(data[prefix_len:])


class EmptyCodec(Codec):
    """Zero-length marker files, typically used as file-based signals."""

    format_name = Format.EMPTY
    extension = EXTENSIONS[Format.EMPTY]
    payload = "none"

    def _encode(self, value: Any) -> bytes:
        return b""

    def _decode(self, data: bytes) -> Any:
        if data:
            msg = f"empty marker file holds {len(data)} bytes"
            raise ValueError(msg)
        return None


BUILTIN_CODECS: tuple[type[Codec], ...] = (
    TomlCodec,
    JsonCodec,
    YamlCodec,
    MessagePackCodec,
    BsonCodec,
    PickleCodec,
    PlainCodec,
    BinaryCodec,
    EmptyCodec,
)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class CodecRegistry:
    """Format tag -> codec lookup."""

    def __init__(self, codecs: list[Codec] | None = None) -> None:
        self._codecs: dict[str, Codec] = {}
        for codec in codecs or []:
            self.register(codec)

    @classmethod
    def default(cls) -> CodecRegistry:
        """Registry holding one instance of every built-in codec."""
        return cls([codec_cls() for codec_cls in BUILTIN_CODECS])

    def register(self, codec: Codec, *, replace: bool = False) -> None:
        """Add *codec* under its ``format_name``.

        Raises:
            TypeError: If *codec* is not a :class:`Codec`.
            ValueError: If the tag is taken and *replace* is False.
        """
        if not isinstance(codec, Codec):
            msg = f"Expected a Codec instance, got {type(codec).__name__}"
            raise TypeError(msg)
        name = str(codec.format_name)
        if name in self._codecs and not replace:
            msg = f"Codec already registered for format {name!r}"
            raise ValueError(msg)
        self._codecs[name] = codec

    def get(self, format_name: str) -> Codec:
        """Return the codec for *format_name*.

        Raises:
            UnknownFormatError: If no codec is registered for it.
        """
        codec = self._codecs.get(str(format_name))
        if codec is None:
            known = ", ".join(sorted(self._codecs))
            msg = f"Unknown format {format_name!r} (known: {known})"
            raise UnknownFormatError(msg)
        return codec

    def formats(self) -> list[str]:
        """Return all registered format tags, sorted."""
        return sorted(self._codecs)

    def __contains__(self, format_name: object) -> bool:
        return str(format_name) in self._codecs
