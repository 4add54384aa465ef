"""Shrinker: reduces a failing sequence to a small counterexample."""

from __future__ import annotations

import logging
from typing import Sequence

from statefuzz.core.exceptions import FlakyCounterexampleError
from statefuzz.core.schema import CallSequence, Counterexample, ExecutionResult, OperationSpec
from statefuzz.engine.executor import SequenceExecutor

log = logging.getLogger(__name__)


def split_chunks(length: int, n: int) -> list[tuple[int, int]]:
    """Split ``range(length)`` into ``n`` contiguous ``(start, end)`` ranges."""
    if length <= 0:
        return []
    n = max(1, min(n, length))
    base, rem = divmod(length, n)
    chunks: list[tuple[int, int]] = []
    start = 0
    for i in range(n):
        end = start + base + (1 if i < rem else 0)
        chunks.append((start, end))
        start = end
    return chunks


class Shrinker:
    """Greedy sequence minimizer.

    A candidate replaces the current sequence only when it is strictly smaller in
    ``(length, argument complexity)`` and still violates the same invariant at the
    same or an earlier checkpoint. Passes (in order): drop single calls from the
    end, drop contiguous chunks ddmin-style, simplify arguments toward the
    simplest value of their domain. Passes repeat until none makes progress or
    ``max_attempts`` candidate executions have been spent.
    """

    def __init__(
        self,
        executor: SequenceExecutor,
        operations: Sequence[OperationSpec],
        max_attempts: int = 2000,
    ) -> None:
        self._executor = executor
        self._operations = {op.name: op for op in operations}
        self._max_attempts = max_attempts
        self._invariant_id = ""
        self._current = CallSequence()
        self._checkpoint = 0
        self._attempts = 0

    def minimize(
        self,
        sequence: CallSequence,
        invariant_id: str,
        worker_id: int | None = None,
        seed: int | None = None,
        draws: int | None = None,
    ) -> Counterexample:
        """Return a minimal counterexample for ``invariant_id``.

        Raises:
            FlakyCounterexampleError: if ``sequence`` (or the reduced one) does not fail on replay.
        """
        result = self._executor.run(sequence)
        if invariant_id not in result.violations:
            raise FlakyCounterexampleError(
                f"Sequence of {sequence.length} call(s) does not reproduce violation of {invariant_id}"
            )
        self._invariant_id = invariant_id
        self._checkpoint = result.violations[invariant_id]
        self._current = sequence.truncated(self._checkpoint)
        self._attempts = 0

        changed = True
        while changed and self._attempts < self._max_attempts:
            changed = False
            for shrink_pass in (self._remove_single, self._remove_chunks, self._simplify_args):
                if shrink_pass():
                    changed = True

        final = self._executor.run(self._current)
        if invariant_id not in final.violations:
            raise FlakyCounterexampleError(
                f"Shrunk sequence no longer violates {invariant_id}; the adapter is not deterministic"
            )
        checkpoint = final.violations[invariant_id]
        log.info(
            "Shrunk %s counterexample from %d to %d call(s) in %d attempt(s)",
            invariant_id,
            sequence.length,
            self._current.length,
            self._attempts,
        )
        return Counterexample(
            invariant_id=invariant_id,
            description=self._description(invariant_id),
            sequence=self._current,
            checkpoint=checkpoint,
            final_observation=final.observation_at(checkpoint),
            original_length=sequence.length,
            shrink_attempts=self._attempts,
            worker_id=worker_id,
            seed=seed,
            draws=draws,
        )

    def _description(self, invariant_id: str) -> str:
        for invariant in self._executor.checker.invariants:
            if invariant.id == invariant_id:
                return invariant.description
        return ""

    def _size(self, sequence: CallSequence) -> tuple[int, int]:
        return sequence.length, sequence.complexity(self._operations)

    def _accept(self, candidate: CallSequence) -> bool:
        if self._attempts >= self._max_attempts:
            return False
        if self._size(candidate) >= self._size(self._current):
            return False
        self._attempts += 1
        result: ExecutionResult = self._executor.run(candidate)
        checkpoint = result.violations.get(self._invariant_id)
        if checkpoint is None or checkpoint > self._checkpoint:
            return False
        self._current = candidate.truncated(checkpoint)
        self._checkpoint = checkpoint
        return True

    def _remove_single(self) -> bool:
        changed = False
        index = self._current.length - 1
        while index >= 0:
            if index < self._current.length and self._accept(self._current.without([index])):
                changed = True
            index -= 1
        return changed

    def _remove_chunks(self) -> bool:
        changed = False
        n = 2
        while self._current.length >= 2 and self._attempts < self._max_attempts:
            reduced = False
            for start, end in split_chunks(self._current.length, n):
                if self._accept(self._current.without(range(start, end))):
                    reduced = changed = True
                    n = max(n - 1, 2)
                    break
            if not reduced:
                if n >= self._current.length:
                    break
                n = min(n * 2, self._current.length)
        return changed

    def _simplify_args(self) -> bool:
        changed = False
        index = 0
        while index < self._current.length:
            spec = self._operations.get(self._current.invocations[index].operation)
            for slot, param in enumerate(spec.params if spec else ()):
                if index >= self._current.length:
                    break
                value = self._current.invocations[index].args[slot]
                for candidate_value in param.domain.shrink_candidates(value):
                    args = list(self._current.invocations[index].args)
                    args[slot] = candidate_value
                    if self._accept(self._current.with_args(index, args)):
                        changed = True
                        break
            index += 1
        return changed
