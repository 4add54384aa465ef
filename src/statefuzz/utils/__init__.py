"""Shared helpers for the CLI and health checks."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

from statefuzz.core.config import AppConfig
from statefuzz.core.exceptions import ConfigError
from statefuzz.core.registry import ComponentRegistry
from statefuzz.core.schema import CallSequence
from statefuzz.protocols import SutAdapter

log = logging.getLogger(__name__)


def resolve_adapter(
    registry: ComponentRegistry,
    config: AppConfig,
    *,
    adapter_name: str | None = None,
    model_path: str | Path | None = None,
) -> SutAdapter:
    """Instantiate the SUT adapter selected by arguments or configuration.

    An explicit ``model_path`` selects the ``declarative`` adapter; otherwise the
    adapter is looked up by name. Arguments win over ``config``.

    Raises:
        ConfigError: if neither an adapter name nor a model file is configured.
        RegistryError: if the adapter name is unknown.
    """
    model = model_path or (None if adapter_name else config.model_path)
    if model:
        return registry.get_adapter("declarative", model_path=Path(model))
    name = adapter_name or config.adapter
    if not name:
        raise ConfigError("No SUT selected: pass --adapter or --model, or set adapter in config")
    return registry.get_adapter(name)


def read_counterexample(path: Path) -> dict[str, Any]:
    """Read a counterexample (or a campaign result holding some) written by the JSON reporter."""
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path} is not valid JSON: {e}") from e
    if isinstance(data, dict) and "counterexamples" in data:
        items = data["counterexamples"]
        if not items:
            raise ConfigError(f"{path} holds no counterexamples")
        data = items[0]
    if not isinstance(data, dict) or "sequence" not in data:
        raise ConfigError(f"{path} does not look like a counterexample")
    return data


def load_seed_sequences(paths: Iterable[Path], adapter: SutAdapter) -> list[CallSequence]:
    """Rebuild call sequences from counterexample files, for corpus seeding and replay."""
    operations = {op.name: op for op in adapter.list_operations()}
    sequences: list[CallSequence] = []
    for path in paths:
        data = read_counterexample(path)
        try:
            sequences.append(CallSequence.from_records(data["sequence"], operations))
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Cannot rebuild sequence from {path}: {e}") from e
    log.debug("Loaded %d seed sequence(s)", len(sequences))
    return sequences
