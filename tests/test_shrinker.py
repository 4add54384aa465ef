"""Tests for the Shrinker."""

from __future__ import annotations

import pytest

from plugins.sut.magic_flag import HiddenFlagAdapter, MagicFlagAdapter
from statefuzz.core.exceptions import FlakyCounterexampleError
from statefuzz.core.schema import CheckpointPolicy
from statefuzz.engine.executor import SequenceExecutor
from statefuzz.engine.shrinker import Shrinker, split_chunks

from _helpers import FlakyAdapter, make_counter_adapter, seq


def _shrinker(adapter, policy=CheckpointPolicy.PER_CALL, max_attempts=2000) -> Shrinker:
    executor = SequenceExecutor(adapter, adapter.list_invariants(), policy)
    return Shrinker(executor, adapter.list_operations(), max_attempts=max_attempts)


def test_split_chunks_covers_range() -> None:
    assert split_chunks(5, 2) == [(0, 3), (3, 5)]
    assert split_chunks(3, 10) == [(0, 1), (1, 2), (2, 3)]
    assert split_chunks(0, 2) == []


def test_hidden_flag_shrinks_to_two_calls() -> None:
    adapter = HiddenFlagAdapter()
    noisy = seq(
        ("doStuff", (99,)),
        ("doStuff", (5678,)),
        ("doStuff", (2**200,)),
        ("doStuff", (3,)),
        ("doStuff", (5678,)),
    )
    cx = _shrinker(adapter).minimize(noisy, "flag_is_zero", worker_id=0, seed=1, draws=10)
    assert cx.sequence.calls == [("doStuff", (5678,)), ("doStuff", (0,))]
    assert cx.checkpoint == 2
    assert cx.original_length == 5
    assert cx.final_observation["flag"] == 1
    assert cx.description == "flag must never be raised"
    assert (cx.worker_id, cx.seed, cx.draws) == (0, 1, 10)


def test_magic_constant_shrinks_to_single_call() -> None:
    adapter = MagicFlagAdapter()
    cx = _shrinker(adapter).minimize(seq(("doStuff", (7,)), ("doStuff", (1234,)), ("doStuff", (8,))), "flag_is_zero")
    assert cx.sequence.calls == [("doStuff", (1234,))]
    assert cx.checkpoint == 1


def test_shrunk_result_is_never_larger_and_still_fails() -> None:
    adapter = make_counter_adapter(limit=5)
    original = seq(
        ("toggle", (True,)),
        ("inc", (3,)),
        ("dec", ()),
        ("read", ()),
        ("inc", (3,)),
        ("inc", (3,)),
        ("dec", ()),
    )
    shrinker = _shrinker(adapter)
    cx = shrinker.minimize(original, "count_below_limit")
    ops = {op.name: op for op in adapter.list_operations()}
    assert cx.sequence.length <= original.length
    assert cx.sequence.complexity(ops) <= original.complexity(ops)
    replay = SequenceExecutor(adapter, adapter.list_invariants()).run(cx.sequence)
    assert "count_below_limit" in replay.violations
    assert cx.sequence.calls == [("inc", (2,)), ("inc", (3,))]


def test_end_of_sequence_policy_shrinks_too() -> None:
    adapter = HiddenFlagAdapter()
    shrinker = _shrinker(adapter, CheckpointPolicy.END_OF_SEQUENCE)
    cx = shrinker.minimize(seq(("doStuff", (5678,)), ("doStuff", (44,)), ("doStuff", (5,))), "flag_is_zero")
    assert cx.sequence.calls == [("doStuff", (5678,)), ("doStuff", (0,))]


def test_non_failing_input_is_flaky() -> None:
    adapter = HiddenFlagAdapter()
    with pytest.raises(FlakyCounterexampleError):
        _shrinker(adapter).minimize(seq(("doStuff", (1,))), "flag_is_zero")


def test_nondeterministic_adapter_is_reported_flaky() -> None:
    adapter = FlakyAdapter()
    executor = SequenceExecutor(adapter, adapter.list_invariants())
    first = executor.run(seq(("poke", ())))
    assert first.failed
    with pytest.raises(FlakyCounterexampleError):
        Shrinker(executor, adapter.list_operations()).minimize(first.sequence, "flag_is_zero")


def test_attempt_budget_is_respected() -> None:
    adapter = HiddenFlagAdapter()
    noisy = seq(*[("doStuff", (i,)) for i in range(1, 30)], ("doStuff", (5678,)), ("doStuff", (1,)))
    cx = _shrinker(adapter, max_attempts=5).minimize(noisy, "flag_is_zero")
    assert cx.shrink_attempts <= 5
    assert cx.sequence.length <= noisy.length
