"""Tests for ComponentRegistry."""

from __future__ import annotations

import pytest

from plugins.sut.magic_flag import MagicFlagAdapter
from statefuzz.adapters import DeclarativeModelAdapter, register_builtin_adapters
from statefuzz.core.exceptions import RegistryError
from statefuzz.core.registry import ComponentRegistry
from statefuzz.reporters import JsonReporter, register_builtin_reporters

from _helpers import write_model


class _MockReporter:
    format_name = "mock"

    def report_counterexample(self, counterexample, output):
        pass

    def report_summary(self, summary, output):
        pass

    def report_result(self, result, output):
        pass


def test_registry_register_and_get_adapter() -> None:
    reg = ComponentRegistry()
    reg.register_adapter("magic", MagicFlagAdapter)
    adapter = reg.get_adapter("magic")
    assert isinstance(adapter, MagicFlagAdapter)
    assert adapter.name == "magic_flag"


def test_registry_adapter_options_are_constructor_defaults(tmp_path) -> None:
    reg = ComponentRegistry()
    reg.register_adapter("hidden", DeclarativeModelAdapter, model_path=write_model(tmp_path))
    adapter = reg.get_adapter("hidden")
    assert adapter.name == "hidden_flag_model"
    other = tmp_path / "other"
    other.mkdir()
    override = reg.get_adapter("hidden", model_path=write_model(other, name="m.yaml"))
    assert override.model_path == other / "m.yaml"


def test_registry_register_and_get_reporter() -> None:
    reg = ComponentRegistry()
    reg.register_reporter("mock", _MockReporter)
    reporter = reg.get_reporter("mock")
    assert reporter.format_name == "mock"


def test_registry_get_unknown_adapter_raises() -> None:
    reg = ComponentRegistry()
    with pytest.raises(RegistryError, match="Unknown SUT adapter"):
        reg.get_adapter("nonexistent")


def test_registry_get_unknown_reporter_raises() -> None:
    reg = ComponentRegistry()
    with pytest.raises(RegistryError, match="Unknown reporter"):
        reg.get_reporter("nonexistent")


def test_registry_list_available_empty() -> None:
    reg = ComponentRegistry()
    assert reg.list_available() == {"sut_adapters": [], "reporters": []}


def test_registry_builtins() -> None:
    reg = ComponentRegistry()
    register_builtin_adapters(reg)
    register_builtin_reporters(reg)
    avail = reg.list_available()
    assert avail["sut_adapters"] == ["declarative"]
    assert avail["reporters"] == ["json"]
    assert isinstance(reg.get_reporter("json"), JsonReporter)


def test_registry_overwrite_keeps_latest() -> None:
    reg = ComponentRegistry()
    reg.register_reporter("json", _MockReporter)
    reg.register_reporter("json", JsonReporter)
    assert isinstance(reg.get_reporter("json"), JsonReporter)
