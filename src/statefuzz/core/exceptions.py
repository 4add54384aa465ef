"""Custom exception hierarchy for statefuzz."""

from __future__ import annotations


class StateFuzzError(Exception):
    """Base exception for statefuzz."""

    pass


class ConfigError(StateFuzzError):
    """Raised when configuration loading or validation fails."""

    pass


class RegistryError(StateFuzzError):
    """Raised when a component is not found or registration fails."""

    pass


class PluginLoadError(StateFuzzError):
    """Raised when a plugin fails to load."""

    pass


class ModelError(StateFuzzError):
    """Raised when a declarative state model is malformed."""

    pass


class CallRejected(StateFuzzError):
    """Raised by a SUT operation whose own precondition refused the call.

    A rejection is a normal outcome: it is recorded and the sequence continues.
    """

    pass


class AdapterFault(StateFuzzError):
    """Raised when the SUT became unusable (timeout, internal inconsistency)."""

    pass


class CallTimeout(AdapterFault):
    """Raised when an adapter call overran the per-call timeout.

    The overrunning call keeps running in an abandoned daemon thread.
    """

    pass


class CampaignError(StateFuzzError):
    """Raised when a campaign controller is used out of order."""

    pass


class FaultRateExceeded(StateFuzzError):
    """Raised when adapter faults exceed the configured rate (likely a broken adapter)."""

    pass


class EngineError(StateFuzzError):
    """Engine-internal error. Always fatal for the campaign."""

    pass


class CorpusError(EngineError):
    """Raised when the shared corpus holds an entry the engine cannot use."""

    pass


class DomainViolationError(EngineError):
    """Raised when a generated value falls outside its parameter domain."""

    pass


class FlakyCounterexampleError(EngineError):
    """Raised when a failing sequence does not reproduce on replay."""

    pass
