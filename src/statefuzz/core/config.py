"""Configuration loading from .env and YAML."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values
from pydantic import BaseModel, Field, ValidationError, model_validator

from statefuzz.core.exceptions import ConfigError
from statefuzz.core.schema import CheckpointPolicy

log = logging.getLogger(__name__)


def _find_project_root(start: Path | None = None) -> Path:
    """Find project root by looking for pyproject.toml upward."""
    current = Path(start or Path.cwd()).resolve()
    for _ in range(10):
        if (current / "pyproject.toml").exists():
            return current
        parent = current.parent
        if parent == current:
            break
        current = parent
    return Path.cwd().resolve()


class CampaignConfigModel(BaseModel):
    """Campaign section of config."""

    worker_count: int = Field(default=4, ge=1)
    iteration_budget: int = Field(default=10_000, ge=1, description="Max sequences per worker")
    time_budget: float | None = Field(default=None, gt=0, description="Wall-clock ceiling in seconds")
    seed: int = 0
    checkpoint_policy: CheckpointPolicy = CheckpointPolicy.PER_CALL
    max_sequence_length: int = Field(default=10, ge=1)
    stop_on_first_failure: bool = True
    corpus_mutation_rate: float = Field(default=0.3, ge=0.0, le=1.0)
    corpus_max_entries: int = Field(default=1024, ge=1)
    boundary_bias: float = Field(default=0.2, ge=0.0)
    constant_bias: float = Field(default=0.1, ge=0.0)
    corpus_bias: float = Field(default=0.1, ge=0.0)
    weight_by_coverage: bool = True
    call_timeout: float | None = Field(default=None, gt=0)
    max_fault_rate: float = Field(default=0.5, ge=0.0, le=1.0)
    fault_rate_min_sequences: int = Field(default=20, ge=1)
    shrink_max_attempts: int = Field(default=2000, ge=1)

    @model_validator(mode="after")
    def _uniform_stays_majority(self) -> CampaignConfigModel:
        biased = self.boundary_bias + self.constant_bias + self.corpus_bias
        if biased >= 0.5:
            raise ValueError(
                f"boundary_bias + constant_bias + corpus_bias must be below 0.5 (got {biased:.2f})"
            )
        return self


class AppConfig(BaseModel):
    """Full application configuration."""

    adapter: str | None = None
    model_path: str | None = None
    reporters: list[str] = Field(default_factory=lambda: ["json"])
    plugin_dirs: list[str] = Field(default_factory=lambda: ["plugins"])
    campaign: CampaignConfigModel = Field(default_factory=CampaignConfigModel)


_ENV_TOP_LEVEL = {
    "STATEFUZZ_ADAPTER": "adapter",
    "STATEFUZZ_MODEL": "model_path",
}

_ENV_CAMPAIGN = {
    "STATEFUZZ_SEED": "seed",
    "STATEFUZZ_WORKERS": "worker_count",
    "STATEFUZZ_ITERATIONS": "iteration_budget",
    "STATEFUZZ_TIME_BUDGET": "time_budget",
    "STATEFUZZ_CHECKPOINT": "checkpoint_policy",
}


class ConfigManager:
    """Load and merge configuration from .env and YAML."""

    def __init__(
        self,
        project_root: Path | None = None,
        env_path: Path | None = None,
        config_path: Path | None = None,
    ) -> None:
        self._root = Path(project_root or _find_project_root()).resolve()
        self._env_path = Path(env_path) if env_path else self._root / ".env"
        self._config_path = Path(config_path) if config_path else self._root / "config" / "default.yaml"
        self._config: AppConfig | None = None
        self._env: dict[str, str] = {}

    def load_env(self) -> dict[str, str]:
        """Load .env file into a dict (without modifying os.environ)."""
        if not self._env_path.exists():
            self._env = {}
            return self._env
        try:
            self._env = {k: v for k, v in dotenv_values(self._env_path).items() if v is not None}
        except OSError as e:
            log.warning("Failed to read .env file %s: %s", self._env_path, e)
            self._env = {}
        return self._env

    def load_yaml(self) -> dict[str, Any]:
        """Load YAML config file if it exists."""
        if not self._config_path.exists():
            return {}
        try:
            with open(self._config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            log.warning("Failed to read config file %s: %s", self._config_path, e)
            return {}
        except yaml.YAMLError as e:
            log.warning("Malformed YAML in %s: %s", self._config_path, e)
            return {}
        if not isinstance(data, dict):
            log.warning("Ignoring config file %s: top level is not a mapping", self._config_path)
            return {}
        return data

    def load(self) -> AppConfig:
        """Load .env and YAML, merge with defaults, return AppConfig.

        Raises:
            ConfigError: if the merged values fail validation.
        """
        env = self.load_env()
        yaml_data = self.load_yaml()

        config_dict: dict[str, Any] = {
            key: yaml_data[key]
            for key in ("adapter", "model_path", "reporters", "plugin_dirs")
            if yaml_data.get(key) is not None
        }
        campaign: dict[str, Any] = dict(yaml_data.get("campaign") or {})

        # Environment variables override YAML values
        for env_key, config_key in _ENV_TOP_LEVEL.items():
            if env.get(env_key):
                config_dict[config_key] = env[env_key]
        for env_key, config_key in _ENV_CAMPAIGN.items():
            if env.get(env_key):
                campaign[config_key] = env[env_key]

        try:
            config_dict["campaign"] = CampaignConfigModel(**campaign)
            self._config = AppConfig(**config_dict)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
        return self._config

    @property
    def config(self) -> AppConfig:
        """Return loaded config; load if not yet loaded."""
        if self._config is None:
            self.load()
        if self._config is None:
            raise RuntimeError("ConfigManager.load() failed to produce a config")
        return self._config

    @property
    def env(self) -> dict[str, str]:
        """Return loaded env dict."""
        if not self._env and self._env_path.exists():
            self.load_env()
        return self._env

    @property
    def project_root(self) -> Path:
        return self._root
