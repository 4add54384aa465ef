"""Call generator: picks the next invocation for an in-progress sequence."""

from __future__ import annotations

import logging
import random
from typing import Any, Sequence

from statefuzz.core.exceptions import CorpusError
from statefuzz.core.schema import CallSequence, Invocation, OperationSpec
from statefuzz.engine.corpus import Corpus
from statefuzz.engine.values import ValueGenerator

log = logging.getLogger(__name__)

WEIGHT_DECAY = 0.95


class CallGenerator:
    """Extends sequences one invocation at a time.

    Owned by a single worker. A sequence either starts fresh or replays a
    mutated corpus entry (the "plan") before continuing with fresh calls.
    Mutations: regenerate one argument, duplicate one invocation, delete one.
    Plans never exceed ``max_length`` calls; at the ceiling a duplication
    becomes a deletion.
    """

    def __init__(
        self,
        operations: Sequence[OperationSpec],
        value_generator: ValueGenerator,
        mutation_rate: float = 0.3,
        weight_by_coverage: bool = True,
        max_length: int | None = None,
    ) -> None:
        if not operations:
            raise ValueError("CallGenerator needs at least one operation")
        if max_length is not None and max_length < 1:
            raise ValueError("max_length must be at least 1")
        self._operations = {op.name: op for op in operations}
        self._names = [op.name for op in operations]
        self._values = value_generator
        self._mutation_rate = mutation_rate
        self._weight_by_coverage = weight_by_coverage
        self._max_length = max_length
        self._weights: dict[str, float] = {name: 1.0 for name in self._names}
        self._plan: list[tuple[str, tuple[Any, ...]]] = []
        self._observed: tuple[Any, ...] = ()

    @property
    def planned_length(self) -> int:
        return len(self._plan)

    @property
    def weights(self) -> dict[str, float]:
        return dict(self._weights)

    def begin(self, corpus: Corpus, rng: random.Random) -> int:
        """Start a new sequence; returns the number of planned calls (0 for a fresh one).

        Raises:
            CorpusError: if the sampled entry names an operation the adapter does not have.
        """
        for name, weight in self._weights.items():
            self._weights[name] = 1.0 + (weight - 1.0) * WEIGHT_DECAY
        self._observed = corpus.observed_values()
        self._plan = []
        if len(corpus) and rng.random() < self._mutation_rate:
            entry = corpus.sample(rng)
            if entry is not None:
                self._plan = self._mutate(entry.sequence, rng)[: self._max_length]
        return len(self._plan)

    def extend(self, sequence: CallSequence, rng: random.Random) -> Invocation:
        """Return the invocation that goes at position ``sequence.length``."""
        position = sequence.length
        if position < len(self._plan):
            name, args = self._plan[position]
            return Invocation(operation=name, args=args, position=position)
        name = self._pick_operation(rng)
        return Invocation(operation=name, args=self.generate_args(name, rng), position=position)

    def generate_args(self, name: str, rng: random.Random) -> tuple[Any, ...]:
        spec = self._operations[name]
        return tuple(self._values.generate(p.domain, rng, self._observed) for p in spec.params)

    def record_gain(self, sequence: CallSequence) -> None:
        """Boost the operations of a sequence that reached new coverage."""
        for name in {inv.operation for inv in sequence.invocations}:
            if name in self._weights:
                self._weights[name] += 1.0

    def _pick_operation(self, rng: random.Random) -> str:
        if not self._weight_by_coverage:
            return rng.choice(self._names)
        weights = [self._weights[name] for name in self._names]
        return rng.choices(self._names, weights=weights, k=1)[0]

    def _at_ceiling(self, length: int) -> bool:
        return self._max_length is not None and length >= self._max_length

    def _mutate(self, sequence: CallSequence, rng: random.Random) -> list[tuple[str, tuple[Any, ...]]]:
        calls = sequence.calls
        for name, _args in calls:
            if name not in self._operations:
                raise CorpusError(f"Corpus entry references unknown operation: {name}")
        if not calls:
            return calls
        index = rng.randrange(len(calls))
        name, args = calls[index]
        kind = rng.randrange(3)
        spec = self._operations[name]
        if kind == 0 and spec.arity:
            slot = rng.randrange(spec.arity)
            new_args = list(args)
            new_args[slot] = self._values.generate(spec.params[slot].domain, rng, self._observed)
            calls[index] = (name, tuple(new_args))
        elif (kind == 2 or self._at_ceiling(len(calls))) and len(calls) > 1:
            del calls[index]
        elif not self._at_ceiling(len(calls)):
            calls.insert(index + 1, (name, args))
        return calls
