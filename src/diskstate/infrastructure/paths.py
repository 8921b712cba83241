"""Path resolution: (kind, project, subdir, stem, extension) -> absolute path.

Layout: ``<base(kind)>/<project>/<subdir...>/<stem>.<ext>``

The platform base directories come from :mod:`platformdirs`. Settings may
redirect every kind under one ``root`` or override kinds individually; the
project segment is appended either way, so the layout below the base never
changes.
"""

from __future__ import annotations

import logging
import platform
from pathlib import Path

from platformdirs import PlatformDirs, user_downloads_dir

from diskstate.config.settings import DiskSettings
from diskstate.domain.dirs import BaseDir
from diskstate.domain.errors import PathResolutionError
from diskstate.domain.formats import file_name
from diskstate.domain.names import project_segment, split_subdir, validate_names

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base directories
# ---------------------------------------------------------------------------


# Map directory kind to (PlatformDirs attribute, roaming).
PLATFORM_ATTRS: dict[BaseDir, tuple[str, bool]] = {
    BaseDir.DATA: ("user_data_dir", True),
    BaseDir.DATA_LOCAL: ("user_data_dir", False),
    BaseDir.CONFIG: ("user_config_dir", True),
    BaseDir.CACHE: ("user_cache_dir", False),
    BaseDir.STATE: ("user_state_dir", False),
    BaseDir.LOG: ("user_log_dir", False),
    BaseDir.PREFERENCE: ("user_config_dir", True),
}


def _platform_project_dir(kind: BaseDir, segment: str) -> Path:
    if kind == BaseDir.DOWNLOAD:
        # Downloads are per-user, not per-app.
        return Path(user_downloads_dir()) / segment
    if kind == BaseDir.PREFERENCE and platform.system() == "Darwin":
        return Path.home() / "Library" / "Preferences" / segment

    entry = PLATFORM_ATTRS.get(kind)
    if entry is None:
        msg = f"No platform directory for kind: {kind!r}"
        raise PathResolutionError(msg)
    attr, roaming = entry
    dirs = PlatformDirs(appname=segment, appauthor=False, roaming=roaming)
    return Path(getattr(dirs, attr))


def project_dir(
    kind: BaseDir,
    project: str,
    *,
    settings: DiskSettings | None = None,
    custom_root: Path | None = None,
) -> Path:
    """Return the absolute project directory for *kind* and *project*.

    Raises:
        PathResolutionError: If the base directory cannot be determined or
            does not resolve to an absolute path.
    """
    segment = project_segment(project)
    if not segment:
        raise PathResolutionError("Project directory must not be an empty string")

    if kind == BaseDir.CUSTOM:
        if custom_root is None:
            raise PathResolutionError("Directory kind 'custom' requires a custom_root")
        base = Path(custom_root).expanduser() / segment
    elif settings is not None and settings.root is not None:
        base = Path(settings.root).expanduser() / kind.value / segment
    elif settings is not None and getattr(settings.roots, kind.value) is not None:
        base = Path(getattr(settings.roots, kind.value)).expanduser() / segment
    else:
        try:
            base = _platform_project_dir(kind, segment)
        except (OSError, KeyError, RuntimeError) as exc:
            msg = f"User directories could not be found for {kind.value!r}: {exc}"
            raise PathResolutionError(msg) from exc

    if not base.is_absolute():
        msg = f"Refusing relative base directory for {kind.value!r}: {base}"
        raise PathResolutionError(msg)
    return base


def base_path(
    kind: BaseDir,
    project: str,
    subdir: str,
    *,
    settings: DiskSettings | None = None,
    custom_root: Path | None = None,
) -> Path:
    """Return the directory holding the file: project dir + sub-directories."""
    path = project_dir(kind, project, settings=settings, custom_root=custom_root)
    for part in split_subdir(subdir):
        path = path / part
    return path


def sub_dir_parent(
    kind: BaseDir,
    project: str,
    subdir: str,
    *,
    settings: DiskSettings | None = None,
    custom_root: Path | None = None,
) -> Path:
    """Return the top-level sub-directory (``a`` for ``a/b/c``).

    Falls back to the project directory when *subdir* is empty.
    """
    path = project_dir(kind, project, settings=settings, custom_root=custom_root)
    parts = split_subdir(subdir)
    if parts:
        path = path / parts[0]
    return path


# ---------------------------------------------------------------------------
# Full resolution
# ---------------------------------------------------------------------------


def resolve(
    kind: BaseDir,
    project: str,
    subdir: str,
    stem: str,
    extension: str,
    *,
    settings: DiskSettings | None = None,
    custom_root: Path | None = None,
    create: bool = False,
) -> Path:
    """Resolve the absolute path of a persisted file.

    When *create* is True the directories leading up to the file are
    created (idempotently).

    Raises:
        PathResolutionError: On invalid names or an undeterminable base.
        OSError: If *create* is True and the directories cannot be made.
    """
    validate_names(project, subdir, stem)

    project_root = project_dir(kind, project, settings=settings, custom_root=custom_root)
    directory = project_root
    for part in split_subdir(subdir):
        directory = directory / part
    result = directory / file_name(stem, extension)

    # Guard against traversal via crafted names
    if not result.resolve().is_relative_to(project_root.resolve()):
        msg = f"Path escapes project directory: {result}"
        raise PathResolutionError(msg)

    if create:
        directory.mkdir(parents=True, exist_ok=True)
        logger.debug("Ensured directory %s", directory)

    return result
