"""Invariant checker."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from statefuzz.core.schema import InvariantSpec
from statefuzz.protocols import SutAdapter

log = logging.getLogger(__name__)


class InvariantChecker:
    """Evaluates invariants at checkpoints and keeps the first violation of each."""

    def __init__(self, adapter: SutAdapter, invariants: Sequence[InvariantSpec]) -> None:
        self._adapter = adapter
        self._invariants = tuple(invariants)

    @property
    def invariants(self) -> tuple[InvariantSpec, ...]:
        return self._invariants

    def check(self, snapshot: Any, checkpoint: int, violations: dict[str, int]) -> list[str]:
        """Evaluate every invariant not yet in ``violations``; returns the ids newly violated.

        ``violations`` is updated in place with ``{id: checkpoint}``. Errors raised by
        ``observe`` propagate; the executor treats them as adapter faults.
        """
        newly: list[str] = []
        for invariant in self._invariants:
            if invariant.id in violations:
                continue
            if not self._adapter.observe(snapshot, invariant):
                violations[invariant.id] = checkpoint
                newly.append(invariant.id)
                log.debug("Invariant %s violated at checkpoint %d", invariant.id, checkpoint)
        return newly
