"""Sequence executor: applies invocations from a fresh instance and checks invariants."""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Any, Callable, Sequence

from statefuzz.core.exceptions import CallTimeout, EngineError
from statefuzz.core.schema import (
    CallSequence,
    CheckpointPolicy,
    ExecutionResult,
    InvariantSpec,
    Invocation,
    Outcome,
    StepRecord,
    to_jsonable,
)
from statefuzz.engine.invariants import InvariantChecker
from statefuzz.protocols import SutAdapter

log = logging.getLogger(__name__)


def state_fingerprint(observation: dict[str, Any]) -> str:
    """SHA-1 of the canonical JSON form of an observation."""
    text = json.dumps(to_jsonable(observation), sort_keys=True, default=repr)
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


def call_with_timeout(fn: Callable[..., Any], timeout: float | None, *args: Any) -> Any:
    """Run ``fn(*args)``, raising CallTimeout if it does not return within ``timeout`` seconds.

    The call runs in a daemon thread. Python cannot kill a thread, so an
    overrunning call is abandoned and keeps running until it returns on its own;
    each timeout can leave one such thread behind. Workers count timeouts in
    ``WorkerStats.timeouts`` and they also count towards the fault-rate limit.
    """
    if timeout is None:
        return fn(*args)

    result: list[Any] = [None]
    error: list[BaseException | None] = [None]

    def target() -> None:
        try:
            result[0] = fn(*args)
        except BaseException as e:  # re-raised in the caller's thread
            error[0] = e

    thread = threading.Thread(target=target, name="statefuzz-call", daemon=True)
    thread.start()
    thread.join(timeout)
    if thread.is_alive():
        raise CallTimeout(f"Call did not return within {timeout}s")
    if error[0] is not None:
        raise error[0]
    return result[0]


class ExecutionSession:
    """Incremental execution of one sequence from a fresh SUT instance.

    The session owns its snapshot chain. Workers drive it one ``step`` at a time
    while generating; ``SequenceExecutor.run`` drives it over a whole sequence.
    """

    def __init__(self, executor: SequenceExecutor) -> None:
        self._executor = executor
        self._adapter = executor.adapter
        self._checker = executor.checker
        self._snapshot: Any = None
        self._sequence = CallSequence()
        self._steps: list[StepRecord] = []
        self._violations: dict[str, int] = {}
        self._features: set[str] = set()
        self._initial_observation: dict[str, Any] = {}
        self._fault: str | None = None
        self._timed_out = False
        self._result: ExecutionResult | None = None
        try:
            self._snapshot = self._adapter.new_instance()
            self._initial_observation = self._describe(self._snapshot)
        except Exception as e:
            self._set_fault(f"new_instance failed: {e!r}")
            return
        if executor.policy == CheckpointPolicy.PER_CALL:
            self._check(0)

    @property
    def sequence(self) -> CallSequence:
        return self._sequence

    @property
    def halted(self) -> bool:
        """True once a fault aborted the sequence; further steps are refused."""
        return self._fault is not None

    @property
    def violations(self) -> dict[str, int]:
        return dict(self._violations)

    @property
    def fault(self) -> str | None:
        return self._fault

    def step(self, invocation: Invocation) -> StepRecord | None:
        """Apply one invocation; returns its record, or None if the call faulted."""
        if self._result is not None:
            raise EngineError("ExecutionSession already finished")
        if self.halted:
            raise EngineError("ExecutionSession halted by an adapter fault")
        self._sequence = self._sequence.appended(invocation)
        position = self._sequence.length - 1
        try:
            applied = call_with_timeout(
                self._adapter.apply, self._executor.call_timeout, self._snapshot, invocation
            )
        except CallTimeout as e:
            self._timed_out = True
            self._set_fault(f"{invocation.signature} timed out: {e}")
            return None
        except Exception as e:
            self._set_fault(f"{invocation.signature} raised {e!r}")
            return None
        if applied.outcome == Outcome.FAULT:
            self._set_fault(f"{invocation.signature} faulted: {applied.detail}")
            return None

        self._snapshot = applied.snapshot
        try:
            observation = self._describe(self._snapshot)
        except Exception as e:
            self._set_fault(f"describe failed after {invocation.signature}: {e!r}")
            return None
        record = StepRecord(
            position=position,
            operation=invocation.operation,
            outcome=applied.outcome,
            detail=applied.detail,
            observation=observation,
        )
        self._steps.append(record)
        self._features.add(f"call:{invocation.operation}:{applied.outcome.value}")

        if self._executor.policy == CheckpointPolicy.PER_CALL:
            self._check(len(self._steps))
        return record

    def finish(self) -> ExecutionResult:
        """Run the end-of-sequence checkpoint (if that policy is active) and build the result."""
        if self._result is not None:
            return self._result
        if not self.halted and self._executor.policy == CheckpointPolicy.END_OF_SEQUENCE:
            self._check(len(self._steps))
        outcomes = {inv.id: inv.id not in self._violations for inv in self._checker.invariants}
        self._result = ExecutionResult(
            sequence=self._sequence,
            steps=tuple(self._steps),
            initial_observation=self._initial_observation,
            invariant_outcomes=outcomes,
            violations=dict(self._violations),
            fault=self._fault,
            timed_out=self._timed_out,
            features=frozenset(self._features),
        )
        return self._result

    def _describe(self, snapshot: Any) -> dict[str, Any]:
        observation = dict(self._adapter.describe(snapshot))
        self._features.add(f"state:{state_fingerprint(observation)}")
        return observation

    def _check(self, checkpoint: int) -> None:
        try:
            self._checker.check(self._snapshot, checkpoint, self._violations)
        except Exception as e:
            self._set_fault(f"observe failed at checkpoint {checkpoint}: {e!r}")

    def _set_fault(self, message: str) -> None:
        self._fault = message
        log.debug("Adapter fault: %s", message)


class SequenceExecutor:
    """Executes call sequences against one adapter under a checkpoint policy."""

    def __init__(
        self,
        adapter: SutAdapter,
        invariants: Sequence[InvariantSpec],
        policy: CheckpointPolicy = CheckpointPolicy.PER_CALL,
        call_timeout: float | None = None,
    ) -> None:
        self.adapter = adapter
        self.checker = InvariantChecker(adapter, invariants)
        self.policy = CheckpointPolicy(policy)
        self.call_timeout = call_timeout

    def start(self) -> ExecutionSession:
        return ExecutionSession(self)

    def run(self, sequence: CallSequence) -> ExecutionResult:
        """Execute ``sequence`` from a fresh instance.

        Rejected calls are recorded and execution continues; an adapter fault
        stops execution and yields a partial result carrying the fault.
        """
        session = self.start()
        for invocation in sequence.invocations:
            if session.halted:
                break
            session.step(invocation)
        return session.finish()
