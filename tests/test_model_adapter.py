"""Tests for ModelAdapter."""

from __future__ import annotations

from typing import Any

import pytest

from statefuzz.adapters.model import ModelAdapter, ModelOperation, ModelSnapshot
from statefuzz.core.exceptions import AdapterFault
from statefuzz.core.schema import IntDomain, Invocation, OperationSpec, Outcome, Parameter

from _helpers import make_counter_adapter


def test_new_instance_is_fresh_each_time() -> None:
    adapter = make_counter_adapter()
    a, b = adapter.new_instance(), adapter.new_instance()
    assert a == b
    assert adapter.describe(a) == {"count": 0, "switch": False}


def test_snapshot_state_is_read_only() -> None:
    snapshot = ModelSnapshot.of({"x": 1})
    with pytest.raises(TypeError):
        snapshot.state["x"] = 2  # type: ignore[index]


def test_rejection_keeps_input_snapshot() -> None:
    adapter = make_counter_adapter()
    snapshot = adapter.new_instance()
    result = adapter.apply(snapshot, Invocation(operation="dec"))
    assert result.outcome == Outcome.REJECTED
    assert result.snapshot is snapshot
    assert "already zero" in result.detail


def test_read_only_operation_keeps_snapshot() -> None:
    adapter = make_counter_adapter()
    snapshot = adapter.new_instance()
    assert adapter.apply(snapshot, Invocation(operation="read")).snapshot is snapshot


def test_out_of_domain_arguments_are_rejected() -> None:
    adapter = make_counter_adapter()
    result = adapter.apply(adapter.new_instance(), Invocation(operation="inc", args=(99,)))
    assert result.outcome == Outcome.REJECTED


def test_unknown_operation_and_exceptions_are_faults() -> None:
    def fail(state: dict[str, Any], value: int) -> None:
        raise AdapterFault("lost connection")

    def crash(state: dict[str, Any]) -> None:
        raise ZeroDivisionError("oops")

    adapter = ModelAdapter(
        [
            ModelOperation(OperationSpec(name="fail", params=(Parameter(name="value", domain=IntDomain.uint(8)),)), fail),
            ModelOperation(OperationSpec(name="crash"), crash),
        ],
        {},
    )
    snapshot = adapter.new_instance()
    assert adapter.apply(snapshot, Invocation(operation="missing")).outcome == Outcome.FAULT
    faulted = adapter.apply(snapshot, Invocation(operation="fail", args=(1,)))
    assert faulted.outcome == Outcome.FAULT
    assert faulted.detail == "lost connection"
    crashed = adapter.apply(snapshot, Invocation(operation="crash"))
    assert crashed.outcome == Outcome.FAULT
    assert "ZeroDivisionError" in crashed.detail


def test_effects_work_on_a_copy_of_nested_state() -> None:
    def push(state: dict[str, Any], value: int) -> None:
        state["items"].append(value)

    adapter = ModelAdapter(
        [ModelOperation(OperationSpec(name="push", params=(Parameter(name="value", domain=IntDomain.uint(8)),)), push)],
        {"items": []},
    )
    first = adapter.new_instance()
    second = adapter.apply(first, Invocation(operation="push", args=(4,))).snapshot
    assert adapter.describe(first) == {"items": []}
    assert adapter.describe(second) == {"items": [4]}


def test_duplicate_operation_names_are_rejected() -> None:
    op = ModelOperation(OperationSpec(name="same"), lambda state: None)
    with pytest.raises(ValueError):
        ModelAdapter([op, op], {})


def test_constants_and_invariants_are_exposed() -> None:
    adapter = make_counter_adapter()
    assert adapter.constants() == ()
    assert [inv.id for inv in adapter.list_invariants()] == ["count_below_limit"]
    assert [op.name for op in adapter.list_operations()] == ["inc", "dec", "toggle", "read"]
