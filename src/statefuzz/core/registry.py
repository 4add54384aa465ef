"""Central registry for all pluggable components."""

from __future__ import annotations

import logging
from typing import Any

from statefuzz.core.exceptions import RegistryError
from statefuzz.protocols import Reporter, SutAdapter

log = logging.getLogger(__name__)


class ComponentRegistry:
    """Central registry for SUT adapters and reporters."""

    def __init__(self) -> None:
        self._adapters: dict[str, type[SutAdapter]] = {}
        self._reporters: dict[str, type[Reporter]] = {}
        self._adapter_options: dict[str, dict[str, Any]] = {}

    def register_adapter(self, name: str, cls: type[SutAdapter], **options: Any) -> None:
        """Register a SUT adapter class; ``options`` become constructor defaults."""
        if name in self._adapters:
            log.warning("Overwriting SUT adapter registration: %s", name)
        self._adapters[name] = cls
        if options:
            self._adapter_options[name] = options

    def register_reporter(self, fmt: str, cls: type[Reporter]) -> None:
        """Register a reporter class."""
        if fmt in self._reporters:
            log.warning("Overwriting reporter registration: %s", fmt)
        self._reporters[fmt] = cls

    def get_adapter(self, name: str, **kwargs: Any) -> SutAdapter:
        """Get a SUT adapter instance by name."""
        if name not in self._adapters:
            raise RegistryError(f"Unknown SUT adapter: {name}")
        cls = self._adapters[name]
        opts = {**self._adapter_options.get(name, {}), **kwargs}
        return cls(**opts)  # type: ignore[call-arg]

    def get_reporter(self, fmt: str) -> Reporter:
        """Get a reporter instance by format name."""
        if fmt not in self._reporters:
            raise RegistryError(f"Unknown reporter format: {fmt}")
        cls = self._reporters[fmt]
        return cls()  # type: ignore[call-arg]

    def list_available(self) -> dict[str, list[str]]:
        """Return all registered component names by category."""
        return {
            "sut_adapters": list(self._adapters),
            "reporters": list(self._reporters),
        }
