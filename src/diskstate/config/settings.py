"""DiskSettings: directory overrides and I/O options from kwargs, env, and TOML.

Sources, highest priority first:

1. keyword arguments given by the application
2. ``DISKSTATE_*`` environment variables (``__`` separates nested keys,
   e.g. ``DISKSTATE_IO__COMPRESSION_LEVEL=6``)
3. ``diskstate.toml``, from ``DISKSTATE_CONFIG`` or the nearest parent
   directory holding one
4. the defaults in :mod:`diskstate.config.models`
"""

from __future__ import annotations

from contextvars import ContextVar
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from diskstate.config.discovery import find_config, read_config
from diskstate.config.models import IoConfig, RootsConfig

# TOML file for the DiskSettings currently being built by DiskSettings.load().
_config_file: ContextVar[Path | None] = ContextVar("diskstate_config_file", default=None)


class TomlFileSource(PydanticBaseSettingsSource):
    """Settings source backed by one ``diskstate.toml`` file."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None) -> None:
        super().__init__(settings_cls)
        self.path = path
        self._table: dict[str, Any] | None = None

    @property
    def table(self) -> dict[str, Any]:
        if self._table is None:
            self._table = read_config(self.path) if self.path is not None else {}
        return self._table

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return self.table.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        known = self.settings_cls.model_fields
        return {key: value for key, value in self.table.items() if key in known}


class DiskSettings(BaseSettings):
    """Settings shared by every persistence handle.

    Attributes:
        root: When set, every directory kind resolves to ``<root>/<kind>``
            instead of the platform directory (portable installs, tests).
        roots: Per-kind overrides, used when *root* is unset.
        io: gzip level and whether atomic writes fsync.
        verbose: DEBUG logging when passed to ``configure_from_settings``.
        log_json: JSON log lines when passed to ``configure_from_settings``.
        config_path: The TOML file these settings were read from, if any.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "DISKSTATE_",
        "env_nested_delimiter": "__",
    }

    root: Path | None = None
    roots: RootsConfig = Field(default_factory=RootsConfig)
    io: IoConfig = Field(default_factory=IoConfig)

    verbose: bool = False
    log_json: bool = False

    config_path: Path | None = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, env_settings, TomlFileSource(settings_cls, _config_file.get())

    @classmethod
    def load(
        cls,
        *,
        config_path: str | Path | None = None,
        start: Path | None = None,
        **overrides: Any,
    ) -> DiskSettings:
        """Build settings, reading ``diskstate.toml`` when one applies.

        *config_path* names the file explicitly (ignored if it does not
        exist); otherwise the file is discovered from *start* (default:
        the working directory). *overrides* win over every other source.

        Raises:
            ConfigError: If the TOML file cannot be parsed.
        """
        if config_path:
            candidate = Path(config_path)
            path = candidate if candidate.is_file() else None
        else:
            path = find_config(start)

        token = _config_file.set(path)
        try:
            return cls(config_path=path, **overrides)
        finally:
            _config_file.reset(token)
