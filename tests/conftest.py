"""Shared pytest fixtures for statefuzz tests.

Factory functions live in ``_helpers.py``; this module re-exports them as
pytest fixtures so tests can receive them via dependency injection.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from statefuzz.adapters.model import ModelAdapter
from statefuzz.core.config import ConfigManager
from statefuzz.core.schema import CheckpointPolicy
from statefuzz.engine.executor import SequenceExecutor

from _helpers import (  # noqa: F401 - re-export for fixture use
    make_campaign_config,
    make_config_manager,
    make_counter_adapter,
    write_model,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config_manager(tmp_path: Path) -> ConfigManager:
    """A real ConfigManager backed by default config (no YAML/env file)."""
    return make_config_manager(tmp_path)


@pytest.fixture()
def counter_adapter() -> ModelAdapter:
    """Counter model whose invariant breaks once ``count`` reaches 5."""
    return make_counter_adapter()


@pytest.fixture()
def counter_executor(counter_adapter: ModelAdapter) -> SequenceExecutor:
    """Per-call executor over the counter model."""
    return SequenceExecutor(counter_adapter, counter_adapter.list_invariants(), CheckpointPolicy.PER_CALL)


@pytest.fixture()
def model_file(tmp_path: Path) -> Path:
    """The hidden-flag model written as YAML."""
    return write_model(tmp_path)
