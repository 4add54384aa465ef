"""Protocol for system-under-test adapters."""

from __future__ import annotations

from typing import Any, Protocol

from statefuzz.core.schema import ApplyResult, InvariantSpec, Invocation, OperationSpec


class SutAdapter(Protocol):
    """Boundary between the engine and one system under test.

    Snapshots are opaque to the engine. ``apply`` must be a pure function of
    (snapshot, invocation): it returns a successor snapshot and never mutates the
    snapshot it was given. Adapters may additionally expose ``constants()``
    returning literal values harvested from the SUT; the value generator draws
    from them when present.
    """

    name: str

    def list_operations(self) -> tuple[OperationSpec, ...]:
        """Return the ordered set of callable operations."""
        ...

    def new_instance(self) -> Any:
        """Return a snapshot of a fresh, default-initialized SUT."""
        ...

    def apply(self, snapshot: Any, invocation: Invocation) -> ApplyResult:
        """Apply one invocation and return the successor snapshot and outcome."""
        ...

    def observe(self, snapshot: Any, invariant: InvariantSpec) -> bool:
        """Evaluate one invariant against a snapshot; True means it holds."""
        ...

    def describe(self, snapshot: Any) -> dict[str, Any]:
        """Return the observable state of a snapshot as plain data."""
        ...

    def list_invariants(self) -> list[InvariantSpec]:
        """Return the invariants the SUT declares."""
        ...
