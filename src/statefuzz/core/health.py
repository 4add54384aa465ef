"""Health checks for plugins, the selected adapter and its determinism."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from statefuzz.core.config import ConfigManager
from statefuzz.core.exceptions import PluginLoadError, StateFuzzError
from statefuzz.core.registry import ComponentRegistry
from statefuzz.core.schema import Invocation
from statefuzz.protocols import SutAdapter


@dataclass
class HealthCheckResult:
    """Result of a single health check."""

    name: str
    ok: bool
    message: str = ""
    suggestion: str = ""


class HealthChecker:
    """Run health checks for plugins, the configured adapter and its invariants."""

    def __init__(
        self,
        config: ConfigManager | None = None,
        registry: ComponentRegistry | None = None,
        load_errors: list[tuple[Path, PluginLoadError]] | None = None,
        adapter: SutAdapter | None = None,
    ) -> None:
        self._config = config or ConfigManager()
        self._registry = registry or ComponentRegistry()
        self._load_errors = list(load_errors or [])
        self._adapter = adapter

    def _resolve(self) -> tuple[SutAdapter | None, HealthCheckResult | None]:
        if self._adapter is not None:
            return self._adapter, None
        from statefuzz.utils import resolve_adapter

        try:
            self._adapter = resolve_adapter(self._registry, self._config.config)
        except StateFuzzError as e:
            available = ", ".join(self._registry.list_available()["sut_adapters"]) or "none"
            return None, HealthCheckResult(
                name="adapter",
                ok=False,
                message=str(e),
                suggestion=f"Set adapter (available: {available}) or model_path in config/default.yaml.",
            )
        return self._adapter, None

    def check_plugins(self) -> HealthCheckResult:
        """Check that plugin directories exist and every plugin module loaded."""
        root = self._config.project_root
        dirs = [root / d for d in self._config.config.plugin_dirs]
        missing = [str(d) for d in dirs if not d.is_dir()]
        adapters = self._registry.list_available()["sut_adapters"]
        if self._load_errors:
            failed = "; ".join(f"{p.name}: {e}" for p, e in self._load_errors)
            return HealthCheckResult(
                name="plugins",
                ok=False,
                message=f"{len(self._load_errors)} plugin(s) failed to load: {failed}",
                suggestion="Each plugin module must import cleanly and define register(registry).",
            )
        if missing and len(missing) == len(dirs):
            return HealthCheckResult(
                name="plugins",
                ok=True,
                message=f"No plugin directory found ({', '.join(missing)}). Adapters: {', '.join(adapters)}.",
                suggestion="Run from the project root (directory containing plugins/) to load SUT bindings.",
            )
        return HealthCheckResult(
            name="plugins",
            ok=True,
            message=f"Adapters: {', '.join(adapters) or 'none'}",
        )

    def check_adapter(self) -> HealthCheckResult:
        """Check that the adapter exposes operations and can create a fresh instance."""
        adapter, failure = self._resolve()
        if adapter is None:
            return failure  # type: ignore[return-value]
        operations = adapter.list_operations()
        if not operations:
            return HealthCheckResult(
                name="adapter",
                ok=False,
                message=f"{adapter.name} exposes no operations",
                suggestion="list_operations() must return at least one OperationSpec.",
            )
        try:
            adapter.describe(adapter.new_instance())
        except Exception as e:
            return HealthCheckResult(
                name="adapter",
                ok=False,
                message=f"{adapter.name}: new_instance()/describe() failed: {e}",
            )
        names = ", ".join(op.name for op in operations)
        return HealthCheckResult(name="adapter", ok=True, message=f"{adapter.name}: {names}")

    def check_determinism(self) -> HealthCheckResult:
        """Apply every operation with its simplest arguments twice and compare the results."""
        adapter, failure = self._resolve()
        if adapter is None:
            return HealthCheckResult(name="determinism", ok=False, message="No adapter to check")
        mismatched: list[str] = []
        try:
            for spec in adapter.list_operations():
                args = tuple(p.domain.simplest() for p in spec.params)
                invocation = Invocation(operation=spec.name, args=args)
                first = _apply_fresh(adapter, invocation)
                second = _apply_fresh(adapter, invocation)
                if first != second:
                    mismatched.append(invocation.signature)
        except Exception as e:
            return HealthCheckResult(name="determinism", ok=False, message=f"{adapter.name}: {e}")
        if mismatched:
            return HealthCheckResult(
                name="determinism",
                ok=False,
                message=f"Non-deterministic results for: {', '.join(mismatched)}",
                suggestion="apply() must be a pure function of (snapshot, invocation).",
            )
        return HealthCheckResult(name="determinism", ok=True, message="Repeated calls agree")

    def check_invariants(self) -> HealthCheckResult:
        """Check that invariants exist, have unique ids and hold on a fresh instance."""
        adapter, failure = self._resolve()
        if adapter is None:
            return HealthCheckResult(name="invariants", ok=False, message="No adapter to check")
        invariants = adapter.list_invariants()
        if not invariants:
            return HealthCheckResult(
                name="invariants",
                ok=False,
                message=f"{adapter.name} declares no invariants",
                suggestion="Add invariants to the model or return them from list_invariants().",
            )
        ids = [inv.id for inv in invariants]
        if len(set(ids)) != len(ids):
            return HealthCheckResult(name="invariants", ok=False, message=f"Duplicate invariant ids: {ids}")
        try:
            snapshot = adapter.new_instance()
            broken = [inv.id for inv in invariants if not adapter.observe(snapshot, inv)]
        except Exception as e:
            return HealthCheckResult(
                name="invariants",
                ok=False,
                message=f"{adapter.name}: evaluating invariants failed: {e!r}",
                suggestion="Invariant predicates must evaluate without raising on every reachable state.",
            )
        if broken:
            return HealthCheckResult(
                name="invariants",
                ok=False,
                message=f"Violated on a fresh instance: {', '.join(broken)}",
                suggestion="A fresh instance should satisfy every invariant.",
            )
        return HealthCheckResult(name="invariants", ok=True, message=f"{len(ids)} invariant(s): {', '.join(ids)}")

    def check_all(self, *, skip_plugins: bool = False, skip_adapter: bool = False) -> list[HealthCheckResult]:
        """Run all enabled checks."""
        results: list[HealthCheckResult] = []
        if not skip_plugins:
            results.append(self.check_plugins())
        if not skip_adapter:
            adapter_result = self.check_adapter()
            results.append(adapter_result)
            if adapter_result.ok:
                results.append(self.check_determinism())
                results.append(self.check_invariants())
        return results


def _apply_fresh(adapter: SutAdapter, invocation: Invocation) -> tuple[Any, str, dict[str, Any]]:
    result = adapter.apply(adapter.new_instance(), invocation)
    return result.outcome, result.detail, adapter.describe(result.snapshot)
