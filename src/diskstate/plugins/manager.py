"""Plugin registration, codec collection, and observer dispatch.

Plugins come from the ``diskstate.plugins`` entry-point group or are
registered directly. A plugin may contribute codecs for new format tags
(``register_codecs``) and observe writes and removals (``post_save`` /
``post_remove``).
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable
from pathlib import Path

import pluggy

from diskstate.infrastructure.codecs import CodecRegistry
from diskstate.plugins.hookspecs import DiskStateHookSpec

PROJECT_NAME = "diskstate"
ENTRY_POINT_GROUP = "diskstate.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """pluggy wrapper scoped to diskstate's hooks.

    Args:
        plugins: Plugin objects to register right away.
    """

    def __init__(self, plugins: Iterable[object] = ()) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(DiskStateHookSpec)
        self.entry_points_loaded = False
        for plugin in plugins:
            self.register(plugin)

    def register(self, plugin: object, name: str | None = None) -> str:
        """Register *plugin* under *name* (its class name by default).

        Returns the name it was registered under.
        """
        plugin_name = name or _default_name(plugin)
        self._pm.register(plugin, name=plugin_name)
        logger.debug("Registered plugin %s", plugin_name)
        return plugin_name

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    def load_entry_points(self) -> list[str]:
        """Load the ``diskstate.plugins`` entry-point group.

        Entry points may name a plugin class; classes carrying hook
        implementations are instantiated so their hooks bind to an object.
        Returns the names of all registered plugins afterwards.
        """
        count = self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        logger.debug("Loaded %d plugin(s) from %s", count, ENTRY_POINT_GROUP)
        self._instantiate_class_plugins()
        self.entry_points_loaded = True
        return self.names()

    def names(self) -> list[str]:
        """Names of all registered plugins, in registration order."""
        return [name for name, _ in self._pm.list_name_plugin()]

    def plugins(self) -> list[object]:
        """All registered plugin objects."""
        return [plugin for _, plugin in self._pm.list_name_plugin()]

    def _instantiate_class_plugins(self) -> None:
        for name, plugin in self._pm.list_name_plugin():
            if not inspect.isclass(plugin) or not self._pm.get_hookcallers(plugin):
                continue
            self._pm.unregister(plugin)
            try:
                instance = plugin()
            except Exception:
                logger.warning("Could not instantiate plugin class %s", name, exc_info=True)
                continue
            self._pm.register(instance, name=name)

    # ------------------------------------------------------------------
    # Codecs
    # ------------------------------------------------------------------

    def collect_codecs(self, registry: CodecRegistry) -> list[str]:
        """Add plugin-provided codecs to *registry*.

        Each ``register_codecs`` hook implementation is called separately so
        one broken plugin cannot hide the others. Tags already in *registry*
        (including built-ins) are kept; conflicting or malformed
        registrations are skipped with a warning.
        Returns the newly registered format tags.
        """
        added: list[str] = []
        for impl in self._pm.hook.register_codecs.get_hookimpls():
            name = impl.plugin_name
            try:
                codecs = impl.function()
            except Exception:
                logger.warning("Plugin %s failed in register_codecs", name, exc_info=True)
                continue
            if codecs is None:
                continue
            if not isinstance(codecs, (list, tuple)):
                logger.warning(
                    "Plugin %s returned %s from register_codecs, expected a list",
                    name,
                    type(codecs).__name__,
                )
                continue
            for codec in codecs:
                try:
                    registry.register(codec)
                except (TypeError, ValueError) as exc:
                    logger.warning("Skipping codec registration from %s: %s", name, exc)
                    continue
                added.append(str(codec.format_name))
        return added

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def notify_saved(self, path: Path, size: int, format_name: str) -> None:
        """Fire ``post_save``. Plugin failures are logged, never raised."""
        try:
            self._pm.hook.post_save(path=path, size=size, format=format_name)
        except Exception:
            logger.warning("post_save hook failed for %s", path, exc_info=True)

    def notify_removed(self, path: Path, size: int) -> None:
        """Fire ``post_remove``. Plugin failures are logged, never raised."""
        try:
            self._pm.hook.post_remove(path=path, size=size)
        except Exception:
            logger.warning("post_remove hook failed for %s", path, exc_info=True)


def _default_name(plugin: object) -> str:
    if inspect.isclass(plugin):
        return plugin.__name__
    return type(plugin).__name__
