"""Tests for the bundled SUT plugins."""

from __future__ import annotations

import pytest

from plugins.sut.magic_flag import HIDDEN_MAGIC, MAGIC, HiddenFlagAdapter, MagicFlagAdapter
from plugins.sut.vault import ARM_CODE, VaultAdapter
from statefuzz.core.schema import Invocation, Outcome
from statefuzz.engine.executor import SequenceExecutor

from _helpers import seq


def _run(adapter, *calls):
    return SequenceExecutor(adapter, adapter.list_invariants()).run(seq(*calls))


def test_magic_flag() -> None:
    adapter = MagicFlagAdapter()
    assert MAGIC in adapter.constants()
    assert _run(adapter, ("doStuff", (MAGIC,))).violations == {"flag_is_zero": 1}
    assert not _run(adapter, ("doStuff", (MAGIC + 1,))).failed


@pytest.mark.parametrize(
    "calls, failed",
    [
        ((("doStuff", (HIDDEN_MAGIC,)),), False),
        ((("doStuff", (HIDDEN_MAGIC,)), ("doStuff", (1,))), True),
        ((("doStuff", (1,)), ("doStuff", (HIDDEN_MAGIC,))), False),
    ],
)
def test_hidden_flag_needs_two_calls_in_order(calls, failed: bool) -> None:
    assert _run(HiddenFlagAdapter(), *calls).failed is failed


def test_vault_drain_requires_arm_code() -> None:
    adapter = VaultAdapter()
    assert ARM_CODE in adapter.constants()
    unarmed = _run(adapter, ("drain", ()))
    assert unarmed.steps[0].outcome == Outcome.REJECTED
    assert not unarmed.failed
    assert _run(adapter, ("arm", (ARM_CODE,)), ("deposit", (5,)), ("drain", ())).violations == {"vault_not_drained": 3}
    assert _run(adapter, ("deposit", (0,))).steps[0].outcome == Outcome.REJECTED


def test_vault_peek_is_read_only() -> None:
    adapter = VaultAdapter()
    snapshot = adapter.new_instance()
    assert adapter.apply(snapshot, Invocation(operation="peek")).snapshot is snapshot
