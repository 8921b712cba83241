"""Built-in format tags and their canonical file extensions.

Plugin codecs may introduce additional tags; those carry their own
extension on the codec object.
"""

from __future__ import annotations

from enum import StrEnum


class Format(StrEnum):
    """Serialization formats shipped with diskstate."""

    TOML = "toml"
    JSON = "json"
    YAML = "yaml"
    MESSAGEPACK = "messagepack"
    BSON = "bson"
    PICKLE = "pickle"
    PLAIN = "plain"
    BINARY = "binary"
    EMPTY = "empty"


# Extension appended to the file stem. Empty string means no extension.
EXTENSIONS: dict[Format, str] = {
    Format.TOML: "toml",
    Format.JSON: "json",
    Format.YAML: "yaml",
    Format.MESSAGEPACK: "messagepack",
    Format.BSON: "bson",
    Format.PICKLE: "pickle",
    Format.PLAIN: "txt",
    Format.BINARY: "bin",
    Format.EMPTY: "",
}


def file_name(stem: str, extension: str) -> str:
    """Join *stem* and *extension* (``state`` + ``json`` -> ``state.json``)."""
    if not extension:
        return stem
    return f"{stem}.{extension}"
