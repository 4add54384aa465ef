"""Framework core: registry, plugin loader, schema, config, health."""

from statefuzz.core.config import AppConfig, CampaignConfigModel, ConfigManager
from statefuzz.core.health import HealthChecker, HealthCheckResult
from statefuzz.core.plugin_loader import PluginLoader
from statefuzz.core.registry import ComponentRegistry
from statefuzz.core.schema import (
    CallSequence,
    CampaignResult,
    CampaignState,
    CampaignSummary,
    CheckpointPolicy,
    Counterexample,
    ExecutionResult,
    InvariantSpec,
    Invocation,
    OperationSpec,
    Outcome,
    Parameter,
    PluginInfo,
)

__all__ = [
    "AppConfig",
    "CallSequence",
    "CampaignConfigModel",
    "CampaignResult",
    "CampaignState",
    "CampaignSummary",
    "CheckpointPolicy",
    "ComponentRegistry",
    "ConfigManager",
    "Counterexample",
    "ExecutionResult",
    "HealthCheckResult",
    "HealthChecker",
    "InvariantSpec",
    "Invocation",
    "OperationSpec",
    "Outcome",
    "Parameter",
    "PluginInfo",
    "PluginLoader",
]
