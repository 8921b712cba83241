"""Name rules for project, sub-directory, and file-stem segments.

Names end up as path components on every supported OS, so they are held
to the intersection of what Linux, macOS, and Windows accept. Validation
is pure: it raises :class:`PathResolutionError` and never touches disk.
"""

from __future__ import annotations

import re

from diskstate.domain.errors import PathResolutionError

MAX_COMPONENT_BYTES = 255
MAX_TOTAL_BYTES = 4000
MAX_SUBDIR_DEPTH = 10

# Characters rejected anywhere in a name.
INVALID_SYMBOLS = frozenset('<>:"\'|?*^$&()')

_SEPARATORS = ("/", "\\")
_SPLIT_RE = re.compile(r"[/\\]")
_WHITESPACE_RE = re.compile(r"\s+")


def project_segment(project: str) -> str:
    """Return the on-disk directory name for *project*.

    Lowercases and removes all whitespace: ``"My Project"`` -> ``"myproject"``.
    """
    return _WHITESPACE_RE.sub("", project).lower()


def split_subdir(subdir: str) -> list[str]:
    """Split *subdir* into path components.

    Both ``/`` and ``\\`` separate components. An empty string yields no
    components, meaning the file sits directly under the project directory.
    """
    if not subdir:
        return []
    return [part for part in _SPLIT_RE.split(subdir) if part]


def validate_names(project: str, subdir: str, stem: str) -> None:
    """Check *project*, *subdir*, and *stem* against the name rules.

    Raises:
        PathResolutionError: On the first rule that is violated.
    """
    if not project:
        raise PathResolutionError("Project directory must not be an empty string")
    if not stem:
        raise PathResolutionError("File name must not be an empty string")
    if not project_segment(project):
        raise PathResolutionError("Project directory must contain non-whitespace characters")

    for label, value in (("Project directory", project), ("File name", stem)):
        if any(sep in value for sep in _SEPARATORS):
            raise PathResolutionError(f"{label} must not contain a path separator: {value!r}")
        _check_component(label, value)

    if subdir:
        if subdir[0] in _SEPARATORS or subdir[-1] in _SEPARATORS:
            msg = f"Sub directories must not start or end with a separator: {subdir!r}"
            raise PathResolutionError(msg)
        parts = split_subdir(subdir)
        if len(parts) >= MAX_SUBDIR_DEPTH:
            msg = f"Sub directories are limited to {MAX_SUBDIR_DEPTH - 1} levels: {subdir!r}"
            raise PathResolutionError(msg)
        for part in parts:
            _check_component("Sub directory", part)

    total = sum(len(v.encode("utf-8")) for v in (project, subdir, stem))
    if total >= MAX_TOTAL_BYTES:
        msg = f"Directories combined must be less than {MAX_TOTAL_BYTES} bytes long"
        raise PathResolutionError(msg)


def _check_component(label: str, value: str) -> None:
    if value in (".", ".."):
        raise PathResolutionError(f"{label} must not be a relative marker: {value!r}")
    if len(value.encode("utf-8")) >= MAX_COMPONENT_BYTES:
        msg = f"{label} must be less than {MAX_COMPONENT_BYTES} bytes long: {value[:32]!r}..."
        raise PathResolutionError(msg)
    bad = sorted(INVALID_SYMBOLS.intersection(value))
    if bad:
        raise PathResolutionError(f"{label} must not contain {bad[0]!r}: {value!r}")
    if value != value.strip(" "):
        raise PathResolutionError(f"{label} must not start or end with a space: {value!r}")
