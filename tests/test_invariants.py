"""Tests for InvariantChecker."""

from __future__ import annotations

from statefuzz.core.schema import InvariantSpec
from statefuzz.engine.invariants import InvariantChecker

from _helpers import make_counter_adapter


def test_records_only_first_violation() -> None:
    adapter = make_counter_adapter(limit=0)
    checker = InvariantChecker(adapter, adapter.list_invariants())
    violations: dict[str, int] = {}
    snapshot = adapter.new_instance()
    assert checker.check(snapshot, 0, violations) == ["count_below_limit"]
    assert checker.check(snapshot, 3, violations) == []
    assert violations == {"count_below_limit": 0}


def test_holding_invariants_are_not_recorded() -> None:
    adapter = make_counter_adapter()
    always = InvariantSpec(id="always", predicate=lambda state: True)
    never = InvariantSpec(id="never", predicate=lambda state: False)
    checker = InvariantChecker(adapter, [always, never])
    violations: dict[str, int] = {}
    assert checker.check(adapter.new_instance(), 1, violations) == ["never"]
    assert violations == {"never": 1}
    assert [inv.id for inv in checker.invariants] == ["always", "never"]
