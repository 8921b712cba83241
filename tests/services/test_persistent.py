"""Tests for the Persistent save/load handle."""

from __future__ import annotations

import gzip
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import pytest
from pydantic import BaseModel

from diskstate.config.settings import DiskSettings
from diskstate.domain.dirs import BaseDir
from diskstate.domain.errors import (
    DiskStateError,
    NotFoundError,
    PathResolutionError,
    PersistDecodeError,
    PersistEncodeError,
    PersistError,
    PersistIOError,
    UnknownFormatError,
)
from diskstate.domain.formats import Format
from diskstate.infrastructure import filesystem
from diskstate.plugins.hookspecs import hookimpl
from diskstate.plugins.manager import PluginManager
from diskstate.services.persistent import Persistent
from tests.conftest import make_binding

HEADER = b"DISKSTATE-TEST-HEADER-24"


class State(BaseModel):
    number: int = 0
    names: list[str] = []


@dataclass
class Window:
    width: int
    height: int


class TestSaveLoad:
    def test_end_to_end_layout(self, settings: DiskSettings, disk_root: Path) -> None:
        handle: Persistent[dict[str, int]] = Persistent(
            make_binding(), dict[str, int], settings=settings
        )
        meta = handle.save({"number": 7})

        expected = disk_root / "config" / "myproject" / "state.json"
        assert meta.path == expected
        assert meta.size == expected.stat().st_size
        assert json.loads(expected.read_text()) == {"number": 7}
        assert handle.load() == {"number": 7}

    def test_pydantic_model(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(format="toml"), State, settings=settings)
        handle.save(State(number=3, names=["a", "b"]))
        loaded = handle.load()
        assert isinstance(loaded, State)
        assert loaded == State(number=3, names=["a", "b"])

    def test_dataclass(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(format="yaml"), Window, settings=settings)
        handle.save(Window(800, 600))
        assert handle.load() == Window(800, 600)

    @pytest.mark.parametrize("fmt", ["json", "toml", "yaml", "messagepack", "bson"])
    def test_structured_formats(self, settings: DiskSettings, fmt: str) -> None:
        handle = Persistent(make_binding(format=fmt, stem=f"s-{fmt}"), State, settings=settings)
        handle.save(State(number=42))
        assert handle.load().number == 42

    def test_untyped_handle_returns_plain_data(self, settings: DiskSettings) -> None:
        handle: Persistent[Any] = Persistent(make_binding(), settings=settings)
        handle.save({"a": [1, 2]})
        assert handle.load() == {"a": [1, 2]}

    def test_save_is_idempotent(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        first = handle.save(State(number=1))
        content = first.path.read_bytes()
        second = handle.save(State(number=1))
        assert second == first
        assert second.path.read_bytes() == content

    def test_save_replaces(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        handle.save(State(number=1, names=["long", "list", "of", "names"]))
        handle.save(State(number=2))
        assert handle.load() == State(number=2)

    def test_in_place_write(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(atomic=False), State, settings=settings)
        handle.save(State(number=5))
        assert handle.load().number == 5

    def test_mmap_read(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(mmap=True), State, settings=settings)
        handle.save(State(number=9, names=["x"] * 1000))
        assert handle.load().number == 9

    def test_subdirectories_created(self, settings: DiskSettings, disk_root: Path) -> None:
        handle = Persistent(make_binding(subdir="a/b/c"), State, settings=settings)
        meta = handle.save(State())
        assert meta.path == disk_root / "config" / "myproject" / "a" / "b" / "c" / "state.json"


class TestCompression:
    def test_same_path_gzip_content(self, settings: DiskSettings) -> None:
        plain = Persistent(make_binding(stem="a"), Any, settings=settings)
        packed = Persistent(make_binding(stem="a", compress=True), Any, settings=settings)
        assert packed.absolute_path() == plain.absolute_path()

        value = {"rows": ["same row"] * 500}
        meta = packed.save(value)
        raw = meta.path.read_bytes()
        assert raw[:2] == b"\x1f\x8b"
        assert json.loads(gzip.decompress(raw)) == value
        assert meta.size == len(raw)
        assert meta.size < len(plain.to_bytes(value))
        assert packed.load() == value

    def test_compression_level_from_settings(self, disk_root: Path) -> None:
        fast = DiskSettings(root=disk_root, io={"compression_level": 1, "fsync": False})
        best = DiskSettings(root=disk_root, io={"compression_level": 9, "fsync": False})
        value = {"rows": [f"row {i % 17}" for i in range(5000)]}
        small = Persistent(make_binding(stem="best", compress=True), Any, settings=best)
        large = Persistent(make_binding(stem="fast", compress=True), Any, settings=fast)
        assert small.save(value).size <= large.save(value).size

    def test_uncompressed_file_fails_to_load(self, settings: DiskSettings) -> None:
        Persistent(make_binding(), Any, settings=settings).save({"a": 1})
        packed = Persistent(make_binding(compress=True), Any, settings=settings)
        with pytest.raises(PersistDecodeError, match="gzip"):
            packed.load()

    def test_read_text_decompresses(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(compress=True), Any, settings=settings)
        handle.save({"a": 1})
        assert json.loads(handle.read_text()) == {"a": 1}
        assert handle.read_bytes()[:2] == b"\x1f\x8b"


class TestFailures:
    def test_missing_file(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        with pytest.raises(NotFoundError) as exc_info:
            handle.load()
        assert isinstance(exc_info.value, FileNotFoundError)
        assert isinstance(exc_info.value, PersistError)
        assert exc_info.value.path == handle.absolute_path()

    def test_atomic_failure_keeps_previous(
        self, settings: DiskSettings, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        handle.save(State(number=1))

        def fail_replace(src: object, dst: object) -> None:
            raise OSError("simulated crash")

        with monkeypatch.context() as mp:
            mp.setattr(filesystem.os, "replace", fail_replace)
            with pytest.raises(PersistIOError) as exc_info:
                handle.save(State(number=2))
        assert isinstance(exc_info.value.__cause__, OSError)

        assert handle.load() == State(number=1)
        assert handle.rm_tmp() == []

    def test_encode_failure_leaves_target(self, settings: DiskSettings) -> None:
        handle: Persistent[Any] = Persistent(make_binding(format="toml"), settings=settings)
        handle.save({"a": 1})
        with pytest.raises(PersistEncodeError):
            handle.save([1, 2, 3])
        assert handle.load() == {"a": 1}

    def test_encode_failure_creates_no_file(self, settings: DiskSettings) -> None:
        handle: Persistent[Any] = Persistent(make_binding(format="toml"), settings=settings)
        with pytest.raises(PersistEncodeError):
            handle.save("not a table")
        assert not handle.exists()

    def test_malformed_content(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        path = handle.absolute_path()
        path.parent.mkdir(parents=True)
        path.write_text("{broken")
        with pytest.raises(PersistDecodeError) as exc_info:
            handle.load()
        assert exc_info.value.path == path

    def test_shape_mismatch(self, settings: DiskSettings) -> None:
        Persistent(make_binding(), Any, settings=settings).save({"number": "seven"})
        with pytest.raises(PersistDecodeError):
            Persistent(make_binding(), State, settings=settings).load()

    def test_directory_in_the_way(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        handle.absolute_path().mkdir(parents=True)
        with pytest.raises(PersistIOError):
            handle.save(State())
        with pytest.raises(PersistIOError):
            handle.load()

    def test_unknown_format(self, settings: DiskSettings) -> None:
        with pytest.raises(UnknownFormatError):
            Persistent(make_binding(format="ron"), settings=settings)

    def test_invalid_name(self, settings: DiskSettings) -> None:
        with pytest.raises(PathResolutionError):
            Persistent(make_binding(stem="bad?name"), settings=settings)

    def test_all_errors_share_base(self, settings: DiskSettings) -> None:
        with pytest.raises(DiskStateError):
            Persistent(make_binding(), State, settings=settings).load()


class TestScalarAndRawFormats:
    def test_plain_int(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(format="plain", stem="count"), int, settings=settings)
        meta = handle.save(7)
        assert meta.path.name == "count.txt"
        assert meta.path.read_text() == "7"
        assert handle.load() == 7

    def test_plain_bool(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(format="plain", stem="flag"), bool, settings=settings)
        handle.save(True)
        assert handle.read_text() == "true"
        assert handle.load() is True

    def test_pickle(self, settings: DiskSettings) -> None:
        handle: Persistent[set[int]] = Persistent(
            make_binding(format="pickle"), set[int], settings=settings
        )
        handle.save({1, 2, 3})
        assert handle.load() == {1, 2, 3}

    def test_empty_marker(self, settings: DiskSettings, disk_root: Path) -> None:
        handle: Persistent[None] = Persistent(
            make_binding(format=Format.EMPTY, stem="ready"), settings=settings
        )
        meta = handle.save(None)
        assert meta.path == disk_root / "config" / "myproject" / "ready"
        assert meta.size == 0
        assert handle.load() is None

    def test_touch(self, settings: DiskSettings) -> None:
        handle: Persistent[None] = Persistent(
            make_binding(format=Format.EMPTY, stem="ready", subdir="signals"), settings=settings
        )
        path = handle.touch()
        assert path.is_file()
        assert path.stat().st_size == 0
        assert handle.exists()

    def test_binary_with_header(self, settings: DiskSettings) -> None:
        binding = make_binding(format=Format.BINARY, header=HEADER, version=4)
        handle: Persistent[bytes] = Persistent(binding, bytes, settings=settings)
        meta = handle.save(b"payload")
        assert meta.path.name == "state.bin"
        assert meta.size == 24 + 1 + len(b"payload")
        assert handle.load() == b"payload"
        assert handle.file_version() == 4
        assert handle.file_bytes(0, 24) == HEADER

    def test_binary_version_mismatch(self, settings: DiskSettings) -> None:
        old = make_binding(format=Format.BINARY, header=HEADER, version=1)
        new = make_binding(format=Format.BINARY, header=HEADER, version=2)
        Persistent(old, bytes, settings=settings).save(b"x")
        handle = Persistent(new, bytes, settings=settings)
        assert handle.file_version() == 1
        with pytest.raises(PersistDecodeError, match="version"):
            handle.load()

    def test_file_version_without_header(self, settings: DiskSettings) -> None:
        with pytest.raises(ValueError, match="no header"):
            Persistent(make_binding(), settings=settings).file_version()

    def test_file_version_header_mismatch(self, settings: DiskSettings) -> None:
        plain = Persistent(make_binding(format=Format.BINARY), bytes, settings=settings)
        plain.save(b"y" * 40)
        headed = Persistent(
            make_binding(format=Format.BINARY, header=HEADER, version=1), bytes, settings=settings
        )
        with pytest.raises(PersistDecodeError, match="Header"):
            headed.file_version()


class TestRawAccess:
    def test_exists(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        assert handle.exists() is False
        handle.save(State())
        assert handle.exists() is True

    def test_file_size(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        with pytest.raises(NotFoundError):
            handle.file_size()
        meta = handle.save(State())
        assert handle.file_size() == meta

    def test_file_bytes(self, settings: DiskSettings) -> None:
        handle: Persistent[Any] = Persistent(make_binding(), settings=settings)
        handle.save({"k": 1})
        assert handle.file_bytes(0, 1) == b"{"
        with pytest.raises(ValueError):
            handle.file_bytes(3, 1)
        with pytest.raises(ValueError):
            handle.file_bytes(0, 10_000)

    def test_file_bytes_missing(self, settings: DiskSettings) -> None:
        with pytest.raises(NotFoundError):
            Persistent(make_binding(), settings=settings).file_bytes(0, 1)

    def test_read_text_rejects_binary(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(format=Format.BINARY), bytes, settings=settings)
        handle.save(b"\xff\xfe\x00")
        with pytest.raises(PersistDecodeError, match="UTF-8"):
            handle.read_text()

    def test_to_and_from_bytes(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        data = handle.to_bytes(State(number=2))
        assert handle.from_bytes(data) == State(number=2)
        assert not handle.exists()

    def test_path_helpers(self, settings: DiskSettings, disk_root: Path) -> None:
        handle = Persistent(make_binding(subdir="a/b"), State, settings=settings)
        project = disk_root / "config" / "myproject"
        assert handle.project_dir() == project
        assert handle.base_path() == project / "a" / "b"
        assert handle.sub_dir_parent() == project / "a"
        assert handle.file_name == "state.json"
        assert handle.extension == "json"
        assert handle.mkdir() == project / "a" / "b"
        assert (project / "a" / "b").is_dir()

    def test_project_dir_size(self, settings: DiskSettings, disk_root: Path) -> None:
        deep = Persistent(make_binding(subdir="a"), State, settings=settings)
        top = Persistent(make_binding(stem="top"), State, settings=settings)
        empty = deep.project_dir_size()
        assert empty.path == disk_root / "config" / "myproject"
        assert empty.size == 0

        total = deep.save(State(number=1)).size + top.save(State(names=["x"])).size
        assert deep.project_dir_size().size == total
        assert top.project_dir_size().size == total

    def test_sub_dir_size(self, settings: DiskSettings, disk_root: Path) -> None:
        deep = Persistent(make_binding(subdir="a/b"), State, settings=settings)
        sibling = Persistent(make_binding(subdir="a", stem="other"), State, settings=settings)
        outside = Persistent(make_binding(subdir="z"), State, settings=settings)
        inside = deep.save(State()).size + sibling.save(State(number=3)).size
        outside.save(State(names=["not", "counted"]))

        meta = deep.sub_dir_size()
        assert meta.path == disk_root / "config" / "myproject" / "a"
        assert meta.size == inside

    def test_repr(self, settings: DiskSettings) -> None:
        text = repr(Persistent(make_binding(), State, settings=settings))
        assert "state.json" in text
        assert "'config'" in text


class TestRemoval:
    def test_rm(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        saved = handle.save(State())
        removed = handle.rm()
        assert removed == saved
        assert not handle.exists()

    def test_rm_missing_is_ok(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        assert handle.rm().size == 0

    def test_rm_tmp(self, settings: DiskSettings) -> None:
        handle = Persistent(make_binding(), State, settings=settings)
        path = handle.save(State()).path
        leftover = path.with_name(f"{path.name}.abc123.tmp")
        leftover.write_bytes(b"partial")
        assert handle.rm_tmp() == [leftover]
        assert not leftover.exists()
        assert path.exists()

    def test_rm_tmp_spares_sibling_with_shared_stem(self, settings: DiskSettings) -> None:
        marker: Persistent[None] = Persistent(
            make_binding(format=Format.EMPTY), settings=settings
        )
        data = Persistent(make_binding(), State, settings=settings)
        path = data.save(State()).path
        sibling_tmp = path.with_name(f"{path.name}.abc123.tmp")
        sibling_tmp.write_bytes(b"partial")

        assert marker.absolute_path().name == "state"
        assert marker.rm_tmp() == []
        assert sibling_tmp.exists()
        assert data.rm_tmp() == [sibling_tmp]

    def test_rm_sub(self, settings: DiskSettings, disk_root: Path) -> None:
        deep = Persistent(make_binding(subdir="a/b"), State, settings=settings)
        top = Persistent(make_binding(stem="top"), State, settings=settings)
        deep.save(State())
        top.save(State())
        meta = deep.rm_sub()
        assert meta.path == disk_root / "config" / "myproject" / "a"
        assert meta.size > 0
        assert not meta.path.exists()
        assert top.exists()

    def test_rm_project(self, settings: DiskSettings, disk_root: Path) -> None:
        handle = Persistent(make_binding(subdir="a"), State, settings=settings)
        handle.save(State())
        meta = handle.rm_project()
        assert meta.path == disk_root / "config" / "myproject"
        assert not meta.path.exists()
        assert handle.rm_project().size == 0


class Recorder:
    def __init__(self) -> None:
        self.saved: list[tuple[Path, int, str]] = []
        self.removed: list[tuple[Path, int]] = []

    @hookimpl
    def post_save(self, path: Path, size: int, format: str) -> None:
        self.saved.append((path, size, format))

    @hookimpl
    def post_remove(self, path: Path, size: int) -> None:
        self.removed.append((path, size))


class TestPluginNotifications:
    def test_post_save_and_remove(self, settings: DiskSettings) -> None:
        recorder = Recorder()
        plugins = PluginManager()
        plugins.register(recorder)
        handle = Persistent(make_binding(), State, settings=settings, plugins=plugins)

        meta = handle.save(State(number=1))
        handle.rm()

        assert recorder.saved == [(meta.path, meta.size, "json")]
        assert recorder.removed == [(meta.path, meta.size)]

    def test_touch_fires_post_save(self, settings: DiskSettings) -> None:
        recorder = Recorder()
        plugins = PluginManager()
        plugins.register(recorder)
        handle: Persistent[None] = Persistent(
            make_binding(format=Format.EMPTY, stem="ready"), settings=settings, plugins=plugins
        )

        path = handle.touch()

        assert recorder.saved == [(path, 0, "empty")]

    def test_default_settings_when_omitted(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DISKSTATE_ROOT", str(tmp_path))
        handle = Persistent(make_binding(kind=BaseDir.CACHE), State)
        assert handle.absolute_path() == tmp_path / "cache" / "myproject" / "state.json"
