"""In-process state-model adapter: a dict of state plus one effect function per operation."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterable, Mapping, Sequence

from statefuzz.core.exceptions import AdapterFault, CallRejected
from statefuzz.core.schema import ApplyResult, InvariantSpec, Invocation, OperationSpec, Outcome

log = logging.getLogger(__name__)

Effect = Callable[..., None]


@dataclass(frozen=True)
class ModelSnapshot:
    """Immutable view of the model state; successors are built from deep copies."""

    state: Mapping[str, Any]

    @classmethod
    def of(cls, state: Mapping[str, Any]) -> ModelSnapshot:
        return cls(state=MappingProxyType(copy.deepcopy(dict(state))))


@dataclass(frozen=True)
class ModelOperation:
    """An operation descriptor bound to its effect ``effect(state, *args)``.

    The effect mutates the (already copied) state dict in place and raises
    ``CallRejected`` when its own precondition refuses the call.
    """

    spec: OperationSpec
    effect: Effect


class ModelAdapter:
    """Adapter for SUTs written as Python state models.

    Invariant predicates receive the state mapping. Subclasses (or plugin
    factories) provide the operations, the initial state and the invariants.
    """

    name = "model"

    def __init__(
        self,
        operations: Sequence[ModelOperation],
        initial_state: Mapping[str, Any],
        invariants: Iterable[InvariantSpec] = (),
        constants: Iterable[Any] = (),
    ) -> None:
        self._operations = {op.spec.name: op for op in operations}
        if len(self._operations) != len(operations):
            raise ValueError("Operation names must be unique")
        self._specs = tuple(op.spec for op in operations)
        self._initial_state = copy.deepcopy(dict(initial_state))
        self._invariants = list(invariants)
        self._constants = tuple(constants)

    def list_operations(self) -> tuple[OperationSpec, ...]:
        return self._specs

    def list_invariants(self) -> list[InvariantSpec]:
        return list(self._invariants)

    def constants(self) -> tuple[Any, ...]:
        return self._constants

    def new_instance(self) -> ModelSnapshot:
        return ModelSnapshot.of(self._initial_state)

    def apply(self, snapshot: ModelSnapshot, invocation: Invocation) -> ApplyResult:
        operation = self._operations.get(invocation.operation)
        if operation is None:
            return ApplyResult(snapshot, Outcome.FAULT, f"unknown operation {invocation.operation}")
        if not operation.spec.accepts(invocation.args):
            return ApplyResult(snapshot, Outcome.REJECTED, "arguments outside parameter domains")
        state = copy.deepcopy(dict(snapshot.state))
        try:
            operation.effect(state, *invocation.args)
        except CallRejected as e:
            return ApplyResult(snapshot, Outcome.REJECTED, str(e))
        except AdapterFault as e:
            return ApplyResult(snapshot, Outcome.FAULT, str(e))
        except Exception as e:
            log.debug("Effect of %s raised %r", invocation.signature, e)
            return ApplyResult(snapshot, Outcome.FAULT, f"{type(e).__name__}: {e}")
        if not operation.spec.mutating:
            return ApplyResult(snapshot)
        return ApplyResult(ModelSnapshot(state=MappingProxyType(state)))

    def observe(self, snapshot: ModelSnapshot, invariant: InvariantSpec) -> bool:
        return bool(invariant.predicate(snapshot.state))

    def describe(self, snapshot: ModelSnapshot) -> dict[str, Any]:
        return copy.deepcopy(dict(snapshot.state))
