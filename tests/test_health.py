"""Tests for HealthChecker."""

from __future__ import annotations

from pathlib import Path

from plugins.sut.magic_flag import HiddenFlagAdapter
from statefuzz.adapters.declarative import DeclarativeModelAdapter
from statefuzz.adapters.model import ModelAdapter, ModelOperation
from statefuzz.core.config import ConfigManager
from statefuzz.core.exceptions import PluginLoadError
from statefuzz.core.health import HealthChecker, HealthCheckResult
from statefuzz.core.registry import ComponentRegistry
from statefuzz.core.schema import InvariantSpec, OperationSpec

from _helpers import FlakyAdapter, make_counter_adapter, write_model


def test_health_check_result() -> None:
    r = HealthCheckResult(name="x", ok=True, message="ok")
    assert r.name == "x"
    assert r.ok is True
    assert r.suggestion == ""


def test_check_plugins_missing_dir_is_ok_with_suggestion(config_manager: ConfigManager) -> None:
    result = HealthChecker(config=config_manager, registry=ComponentRegistry()).check_plugins()
    assert result.ok is True
    assert "No plugin directory" in result.message
    assert result.suggestion != ""


def test_check_plugins_reports_load_errors(config_manager: ConfigManager) -> None:
    errors = [(Path("plugins/sut/bad.py"), PluginLoadError("boom"))]
    checker = HealthChecker(config=config_manager, registry=ComponentRegistry(), load_errors=errors)
    result = checker.check_plugins()
    assert result.ok is False
    assert "bad.py: boom" in result.message


def test_check_plugins_lists_adapters(tmp_path: Path, config_manager: ConfigManager) -> None:
    (tmp_path / "plugins").mkdir()
    registry = ComponentRegistry()
    registry.register_adapter("hidden_flag", HiddenFlagAdapter)
    result = HealthChecker(config=config_manager, registry=registry).check_plugins()
    assert result.ok is True
    assert result.message == "Adapters: hidden_flag"


def test_check_adapter_without_selection_fails(config_manager: ConfigManager) -> None:
    result = HealthChecker(config=config_manager, registry=ComponentRegistry()).check_adapter()
    assert result.ok is False
    assert "No SUT selected" in result.message
    assert "available: none" in result.suggestion


def test_check_all_on_healthy_adapter(config_manager: ConfigManager) -> None:
    checker = HealthChecker(config=config_manager, adapter=make_counter_adapter())
    results = checker.check_all(skip_plugins=True)
    assert [r.name for r in results] == ["adapter", "determinism", "invariants"]
    assert all(r.ok for r in results)
    assert results[0].message == "model: inc, dec, toggle, read"


def test_check_all_resolves_configured_adapter(tmp_path: Path) -> None:
    (tmp_path / "config.yaml").write_text("adapter: hidden_flag\n")
    mgr = ConfigManager(project_root=tmp_path, config_path=tmp_path / "config.yaml", env_path=tmp_path / ".env")
    registry = ComponentRegistry()
    registry.register_adapter("hidden_flag", HiddenFlagAdapter)
    results = HealthChecker(config=mgr, registry=registry).check_all(skip_plugins=True)
    assert all(r.ok for r in results)
    assert "flag_is_zero" in results[-1].message


def test_determinism_check_catches_flaky_adapter(config_manager: ConfigManager) -> None:
    result = HealthChecker(config=config_manager, adapter=FlakyAdapter()).check_determinism()
    assert result.ok is False
    assert "poke()" in result.message


def test_invariant_checks(config_manager: ConfigManager) -> None:
    noop = [ModelOperation(OperationSpec(name="noop"), lambda state: None)]
    none = ModelAdapter(noop, {"x": 0})
    assert HealthChecker(config=config_manager, adapter=none).check_invariants().ok is False
    broken_at_start = ModelAdapter(noop, {"x": 0}, [InvariantSpec(id="x_positive", predicate=lambda s: s["x"] > 0)])
    result = HealthChecker(config=config_manager, adapter=broken_at_start).check_invariants()
    assert result.ok is False
    assert "x_positive" in result.message


def test_adapter_without_operations_skips_later_checks(config_manager: ConfigManager) -> None:
    adapter = ModelAdapter([], {}, [InvariantSpec(id="x", predicate=lambda s: True)])
    results = HealthChecker(config=config_manager, adapter=adapter).check_all(skip_plugins=True)
    assert [r.name for r in results] == ["adapter"]
    assert results[0].ok is False


def test_invariant_that_raises_is_reported(tmp_path: Path, config_manager: ConfigManager) -> None:
    model = write_model(
        tmp_path,
        "initial_state: {x: 0}\n"
        "operations: [{name: noop}]\n"
        "invariants: [{name: divides, expression: 'x // 0 == 0'}]\n",
        "divide.yaml",
    )
    checker = HealthChecker(config=config_manager, adapter=DeclarativeModelAdapter(model_path=model))
    results = checker.check_all(skip_plugins=True)
    assert [r.name for r in results] == ["adapter", "determinism", "invariants"]
    assert results[-1].ok is False
    assert "ZeroDivisionError" in results[-1].message
