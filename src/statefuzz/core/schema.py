"""Pydantic models and data structures for the engine."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Callable, Iterable, Literal, Mapping, Sequence, Union

from pydantic import BaseModel, Field, model_validator

UNBOUNDED_SPAN = 2**128
ADDRESS_HEX_DIGITS = 40


def pool_address(index: int) -> str:
    """Return the ``index``-th address of the reusable identifier pool."""
    return "0x" + format(index + 1, f"0{ADDRESS_HEX_DIGITS}x")


def to_jsonable(value: Any) -> Any:
    """Convert argument and observation values to plain JSON data (bytes as 0x hex)."""
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, Mapping):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


def _render(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    return repr(value)


# ---------------------------------------------------------------------------
# Parameter domains
# ---------------------------------------------------------------------------


class IntDomain(BaseModel):
    """Integer domain; a ``None`` bound leaves that side open."""

    model_config = {"frozen": True}

    kind: Literal["int"] = "int"
    min: int | None = None
    max: int | None = None

    @model_validator(mode="after")
    def _check_bounds(self) -> IntDomain:
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")
        return self

    @classmethod
    def uint(cls, bits: int = 256) -> IntDomain:
        return cls(min=0, max=2**bits - 1)

    @classmethod
    def sint(cls, bits: int = 256) -> IntDomain:
        return cls(min=-(2 ** (bits - 1)), max=2 ** (bits - 1) - 1)

    def bounds(self) -> tuple[int, int]:
        """Closed sampling interval; open sides are cut at ``UNBOUNDED_SPAN``."""
        lo, hi = self.min, self.max
        if lo is None and hi is None:
            return -UNBOUNDED_SPAN, UNBOUNDED_SPAN
        if lo is None:
            return min(hi, 0) - UNBOUNDED_SPAN, hi
        if hi is None:
            return lo, max(lo, 0) + UNBOUNDED_SPAN
        return lo, hi

    def contains(self, value: Any) -> bool:
        if not isinstance(value, int) or isinstance(value, bool):
            return False
        if self.min is not None and value < self.min:
            return False
        if self.max is not None and value > self.max:
            return False
        return True

    def boundaries(self) -> list[int]:
        """Edge values: both ends, their neighbours, zero and +/-1 when in range."""
        lo, hi = self.bounds()
        values = {lo, hi, lo + 1, hi - 1, 0, 1, -1}
        return sorted(v for v in values if lo <= v <= hi)

    def simplest(self) -> int:
        if self.contains(0):
            return 0
        if self.min is not None and self.min > 0:
            return self.min
        return self.max  # type: ignore[return-value]

    def complexity(self, value: int) -> int:
        return abs(value - self.simplest())

    def shrink_candidates(self, value: int) -> list[int]:
        """Values strictly closer to the simplest element: the target, then halving steps."""
        target = self.simplest()
        if value == target:
            return []
        sign = 1 if value > target else -1
        candidates = [target]
        step = abs(value - target) // 2
        while step > 0:
            candidates.append(value - sign * step)
            step //= 2
        result: list[int] = []
        for candidate in candidates:
            if candidate not in result:
                result.append(candidate)
        return result

    def coerce(self, raw: Any) -> int:
        if isinstance(raw, str):
            return int(raw, 0)
        return int(raw)


class BoolDomain(BaseModel):
    """Boolean domain."""

    model_config = {"frozen": True}

    kind: Literal["bool"] = "bool"

    def contains(self, value: Any) -> bool:
        return isinstance(value, bool)

    def simplest(self) -> bool:
        return False

    def complexity(self, value: bool) -> int:
        return int(value)

    def shrink_candidates(self, value: bool) -> list[bool]:
        return [False] if value else []

    def coerce(self, raw: Any) -> bool:
        if isinstance(raw, str):
            return raw.strip().lower() in ("1", "true", "yes")
        return bool(raw)


class AddressDomain(BaseModel):
    """Opaque address-like identifiers, drawn mostly from a small reusable pool."""

    model_config = {"frozen": True}

    kind: Literal["address"] = "address"
    pool_size: int = Field(default=4, ge=1)

    def pool(self) -> tuple[str, ...]:
        return tuple(pool_address(i) for i in range(self.pool_size))

    def contains(self, value: Any) -> bool:
        if not isinstance(value, str) or len(value) != ADDRESS_HEX_DIGITS + 2:
            return False
        if not value.startswith("0x"):
            return False
        try:
            int(value[2:], 16)
        except ValueError:
            return False
        return True

    def simplest(self) -> str:
        return pool_address(0)

    def complexity(self, value: str) -> int:
        pool = self.pool()
        return pool.index(value) if value in pool else self.pool_size

    def shrink_candidates(self, value: str) -> list[str]:
        return list(self.pool()[: self.complexity(value)])

    def coerce(self, raw: Any) -> str:
        return str(raw).lower()


class BytesDomain(BaseModel):
    """Byte strings with a length range."""

    model_config = {"frozen": True}

    kind: Literal["bytes"] = "bytes"
    min_length: int = Field(default=0, ge=0)
    max_length: int = Field(default=32, ge=0)

    @model_validator(mode="after")
    def _check_lengths(self) -> BytesDomain:
        if self.min_length > self.max_length:
            raise ValueError("min_length must not exceed max_length")
        return self

    def contains(self, value: Any) -> bool:
        return isinstance(value, bytes) and self.min_length <= len(value) <= self.max_length

    def simplest(self) -> bytes:
        return bytes(self.min_length)

    def complexity(self, value: bytes) -> int:
        return len(value) * 256 + sum(1 for b in value if b)

    def shrink_candidates(self, value: bytes) -> list[bytes]:
        half = max(self.min_length, len(value) // 2)
        options = [self.simplest(), value[:half], bytes(len(value))]
        current = self.complexity(value)
        result: list[bytes] = []
        for option in options:
            if self.complexity(option) < current and option not in result:
                result.append(option)
        return result

    def coerce(self, raw: Any) -> bytes:
        if isinstance(raw, str):
            text = raw[2:] if raw.startswith("0x") else raw
            return bytes.fromhex(text)
        return bytes(raw)


Domain = Annotated[
    Union[IntDomain, BoolDomain, AddressDomain, BytesDomain],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Operations, invocations, sequences
# ---------------------------------------------------------------------------


class Parameter(BaseModel):
    """One named, typed parameter of an operation."""

    model_config = {"frozen": True}

    name: str
    domain: Domain


class OperationSpec(BaseModel):
    """Immutable descriptor of one callable operation of the SUT."""

    model_config = {"frozen": True}

    name: str
    params: tuple[Parameter, ...] = ()
    mutating: bool = True

    @property
    def arity(self) -> int:
        return len(self.params)

    def accepts(self, args: Sequence[Any]) -> bool:
        """True if ``args`` is a valid CallValue for this operation."""
        if len(args) != self.arity:
            return False
        return all(p.domain.contains(a) for p, a in zip(self.params, args))

    def coerce_args(self, raw: Sequence[Any]) -> tuple[Any, ...]:
        """Rebuild a CallValue from its JSON form."""
        if len(raw) != self.arity:
            raise ValueError(f"{self.name} expects {self.arity} argument(s), got {len(raw)}")
        return tuple(p.domain.coerce(r) for p, r in zip(self.params, raw))

    def complexity(self, args: Sequence[Any]) -> int:
        return sum(p.domain.complexity(a) for p, a in zip(self.params, args))


class Invocation(BaseModel):
    """One concrete call at an ordinal position of a sequence."""

    model_config = {"frozen": True}

    operation: str
    args: tuple[Any, ...] = ()
    position: int = Field(default=0, ge=0)

    @property
    def signature(self) -> str:
        """Human-readable call signature."""
        return f"{self.operation}({', '.join(_render(a) for a in self.args)})"

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "operation": self.operation,
            "args": to_jsonable(self.args),
        }


class CallSequence(BaseModel):
    """Ordered, immutable list of invocations; order is execution order."""

    model_config = {"frozen": True}

    invocations: tuple[Invocation, ...] = ()

    @classmethod
    def of(cls, calls: Iterable[Invocation | tuple[str, Sequence[Any]]]) -> CallSequence:
        """Build a sequence from invocations or ``(operation, args)`` pairs, renumbering positions."""
        invocations: list[Invocation] = []
        for i, call in enumerate(calls):
            if isinstance(call, Invocation):
                op, args = call.operation, call.args
            else:
                op, args = call
            invocations.append(Invocation(operation=op, args=tuple(args), position=i))
        return cls(invocations=tuple(invocations))

    @classmethod
    def from_records(
        cls,
        records: Iterable[Mapping[str, Any]],
        operations: Mapping[str, OperationSpec],
    ) -> CallSequence:
        """Rebuild a sequence from ``Invocation.to_dict`` records, coercing argument values."""
        calls: list[tuple[str, tuple[Any, ...]]] = []
        for record in records:
            name = record["operation"]
            if name not in operations:
                raise ValueError(f"Unknown operation in sequence: {name}")
            calls.append((name, operations[name].coerce_args(record.get("args", []))))
        return cls.of(calls)

    @property
    def length(self) -> int:
        return len(self.invocations)

    @property
    def calls(self) -> list[tuple[str, tuple[Any, ...]]]:
        return [(inv.operation, inv.args) for inv in self.invocations]

    @property
    def key(self) -> tuple[tuple[str, tuple[Any, ...]], ...]:
        """Hashable content key (positions are implied by order)."""
        return tuple(self.calls)

    def appended(self, invocation: Invocation) -> CallSequence:
        nxt = invocation.model_copy(update={"position": self.length})
        return CallSequence(invocations=self.invocations + (nxt,))

    def truncated(self, length: int) -> CallSequence:
        return CallSequence(invocations=self.invocations[: max(0, length)])

    def without(self, indices: Iterable[int]) -> CallSequence:
        drop = set(indices)
        return CallSequence.of(inv for i, inv in enumerate(self.invocations) if i not in drop)

    def with_args(self, index: int, args: Sequence[Any]) -> CallSequence:
        calls = self.calls
        calls[index] = (calls[index][0], tuple(args))
        return CallSequence.of(calls)

    def complexity(self, operations: Mapping[str, OperationSpec]) -> int:
        total = 0
        for inv in self.invocations:
            spec = operations.get(inv.operation)
            if spec is not None:
                total += spec.complexity(inv.args)
        return total

    def signatures(self) -> list[str]:
        return [inv.signature for inv in self.invocations]


# ---------------------------------------------------------------------------
# Execution outcomes
# ---------------------------------------------------------------------------


class Outcome(str, Enum):
    """Outcome of applying one invocation."""

    OK = "ok"
    REJECTED = "rejected"
    FAULT = "fault"


class CheckpointPolicy(str, Enum):
    """When invariants are evaluated during a sequence."""

    PER_CALL = "per-call"
    END_OF_SEQUENCE = "end-of-sequence"


class CampaignState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    STOPPED = "stopped"
    ERRORED = "errored"


@dataclass(frozen=True)
class InvariantSpec:
    """A named predicate over observable SUT state."""

    id: str
    predicate: Callable[[Any], bool]
    description: str = ""


@dataclass(frozen=True)
class ApplyResult:
    """What ``SutAdapter.apply`` returns: the successor snapshot and the call outcome."""

    snapshot: Any
    outcome: Outcome = Outcome.OK
    detail: str = ""


class StepRecord(BaseModel):
    """Recorded result of one applied invocation."""

    model_config = {"frozen": True}

    position: int
    operation: str
    outcome: Outcome
    detail: str = ""
    observation: dict[str, Any] = Field(default_factory=dict)


class ExecutionResult(BaseModel):
    """Result of executing one sequence from a fresh instance.

    ``violations`` maps an invariant id to the checkpoint of its first violation;
    checkpoint ``k`` means "after ``k`` calls were applied" (0 is the fresh instance).
    """

    model_config = {"frozen": True}

    sequence: CallSequence
    steps: tuple[StepRecord, ...] = ()
    initial_observation: dict[str, Any] = Field(default_factory=dict)
    invariant_outcomes: dict[str, bool] = Field(default_factory=dict)
    violations: dict[str, int] = Field(default_factory=dict)
    fault: str | None = None
    timed_out: bool = False
    features: frozenset[str] = frozenset()

    @property
    def failed(self) -> bool:
        return bool(self.violations)

    @property
    def faulted(self) -> bool:
        return self.fault is not None

    @property
    def rejections(self) -> int:
        return sum(1 for s in self.steps if s.outcome == Outcome.REJECTED)

    def first_violation(self) -> tuple[str, int] | None:
        """Earliest (invariant id, checkpoint); ties go to declaration order."""
        if not self.violations:
            return None
        return min(self.violations.items(), key=lambda kv: kv[1])

    def observation_at(self, checkpoint: int) -> dict[str, Any]:
        if checkpoint <= 0 or not self.steps:
            return dict(self.initial_observation)
        index = min(checkpoint, len(self.steps)) - 1
        return dict(self.steps[index].observation)

    @property
    def coverage_signature(self) -> str:
        joined = "\n".join(sorted(self.features))
        return hashlib.sha1(joined.encode("utf-8")).hexdigest()


class Counterexample(BaseModel):
    """Minimal failing sequence for one invariant."""

    invariant_id: str
    description: str = ""
    sequence: CallSequence
    checkpoint: int
    final_observation: dict[str, Any] = Field(default_factory=dict)
    original_length: int = 0
    shrink_attempts: int = 0
    worker_id: int | None = None
    seed: int | None = None
    draws: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "invariant_id": self.invariant_id,
            "description": self.description,
            "checkpoint": self.checkpoint,
            "sequence": [inv.to_dict() for inv in self.sequence.invocations],
            "final_observation": to_jsonable(self.final_observation),
            "original_length": self.original_length,
            "shrink_attempts": self.shrink_attempts,
            "worker_id": self.worker_id,
            "seed": self.seed,
            "draws": self.draws,
        }


class WorkerStats(BaseModel):
    """Per-worker counters; owned by one worker until the campaign ends."""

    worker_id: int
    sequences: int = 0
    calls: int = 0
    rejections: int = 0
    faults: int = 0
    violations: int = 0
    timeouts: int = 0
    corpus_inserts: int = 0
    draws: int = 0


class CampaignSummary(BaseModel):
    """Summary statistics of one campaign run."""

    state: CampaignState
    iterations: int = 0
    calls: int = 0
    rejections: int = 0
    faults: int = 0
    timeouts: int = 0
    coverage: int = 0
    corpus_size: int = 0
    elapsed_seconds: float = 0.0
    workers: list[WorkerStats] = Field(default_factory=list)


class CampaignResult(BaseModel):
    """Terminal artifact of a campaign: counterexamples, an exhaustion summary, or an error."""

    state: CampaignState
    counterexamples: list[Counterexample] = Field(default_factory=list)
    summary: CampaignSummary
    error: str | None = None

    @property
    def counterexample(self) -> Counterexample | None:
        return self.counterexamples[0] if self.counterexamples else None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "state": self.state.value,
            "summary": to_jsonable(self.summary.model_dump()),
        }
        if self.state == CampaignState.FAILED:
            data["counterexamples"] = [c.to_dict() for c in self.counterexamples]
        if self.error:
            data["error"] = self.error
        return data


class PluginInfo(BaseModel):
    """Metadata about a discovered plugin module."""

    name: str
    path: Path
    module_name: str
    plugin_type: str = ""
