"""Configuration: settings sources, config discovery, logging setup."""

from diskstate.config.logging import configure_logging
from diskstate.config.settings import DiskSettings

__all__ = ["DiskSettings", "configure_logging"]
