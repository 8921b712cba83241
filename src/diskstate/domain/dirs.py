"""Base directory kinds.

Each kind names one OS-convention storage location. The concrete root for
a kind is resolved per platform by :mod:`diskstate.infrastructure.paths`.
"""

from __future__ import annotations

from enum import StrEnum


class BaseDir(StrEnum):
    """OS-convention directory categories a file can live under."""

    DATA = "data"
    DATA_LOCAL = "data_local"
    CONFIG = "config"
    CACHE = "cache"
    STATE = "state"
    LOG = "log"
    PREFERENCE = "preference"
    DOWNLOAD = "download"
    CUSTOM = "custom"
