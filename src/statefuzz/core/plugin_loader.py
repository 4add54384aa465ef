"""Discovery and loading of SUT binding plugins."""

from __future__ import annotations

import importlib.util
import logging
import sys
from pathlib import Path

from statefuzz.core.exceptions import PluginLoadError
from statefuzz.core.registry import ComponentRegistry
from statefuzz.core.schema import PluginInfo

log = logging.getLogger(__name__)


def _iter_plugin_files(plugin_dir: Path) -> list[Path]:
    """Public ``.py`` files under ``plugin_dir``, sorted so load order is stable."""
    if not plugin_dir.is_dir():
        return []
    return sorted(
        path
        for path in plugin_dir.rglob("*.py")
        if not path.name.startswith("_") and "__pycache__" not in path.parts
    )


def _module_name(path: Path) -> str:
    return f"statefuzz_plugin_{path.parent.name}_{path.stem}"


class PluginLoader:
    """Imports plugin modules and calls their ``register(registry)`` hook.

    A plugin module binds one or more systems under test, e.g.::

        def register(registry):
            registry.register_adapter("vault", VaultAdapter)
    """

    def __init__(self, plugin_dirs: list[Path], registry: ComponentRegistry) -> None:
        self._plugin_dirs = [Path(d).resolve() for d in plugin_dirs]
        self._registry = registry
        self._loaded: list[PluginInfo] = []
        self.load_errors: list[tuple[Path, PluginLoadError]] = []

    @property
    def loaded(self) -> list[PluginInfo]:
        return list(self._loaded)

    def discover_plugins(self) -> list[PluginInfo]:
        """List plugin modules in the configured directories without importing them."""
        found: list[PluginInfo] = []
        for plugin_dir in self._plugin_dirs:
            for path in _iter_plugin_files(plugin_dir):
                found.append(
                    PluginInfo(
                        name=path.stem,
                        path=path,
                        module_name=_module_name(path),
                        plugin_type=path.parent.name if path.parent != plugin_dir else "root",
                    )
                )
        return found

    def load_plugin(self, plugin_path: Path) -> PluginInfo:
        """Import one plugin file and run its ``register`` hook."""
        path = Path(plugin_path).resolve()
        if not path.is_file():
            raise PluginLoadError(f"Plugin path does not exist: {path}")

        module_name = _module_name(path)
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise PluginLoadError(f"Could not load spec for: {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            sys.modules.pop(module_name, None)
            raise PluginLoadError(f"Failed to import plugin {path}: {e}") from e

        register = getattr(module, "register", None)
        if not callable(register):
            raise PluginLoadError(f"Plugin has no register() function: {path}")
        try:
            register(self._registry)
        except Exception as e:
            raise PluginLoadError(f"Plugin register() failed for {path}: {e}") from e

        info = PluginInfo(
            name=path.stem,
            path=path,
            module_name=module_name,
            plugin_type=path.parent.name,
        )
        self._loaded.append(info)
        log.debug("Loaded plugin %s from %s", info.name, path)
        return info

    def load_all(self) -> list[PluginInfo]:
        """Load every discovered plugin; failures are logged and kept in ``load_errors``."""
        self._loaded = []
        self.load_errors = []
        for info in self.discover_plugins():
            try:
                self.load_plugin(info.path)
            except PluginLoadError as e:
                log.warning("Failed to load plugin %s: %s", info.path, e)
                self.load_errors.append((info.path, e))
        if self.load_errors:
            log.warning("%d plugin(s) failed to load", len(self.load_errors))
        return self.loaded
