"""Vault model: funds can be drained only after arming with a secret code.

Registers ``vault``. ``drain()`` is rejected unless the vault was armed by
``arm(7777)``; the invariant ``vault_not_drained`` falls after that two-call
sequence (plus any noise the generator puts around it).
"""

from __future__ import annotations

from typing import Any

from statefuzz.adapters.model import ModelAdapter, ModelOperation
from statefuzz.core.exceptions import CallRejected
from statefuzz.core.registry import ComponentRegistry
from statefuzz.core.schema import IntDomain, InvariantSpec, OperationSpec, Parameter

ARM_CODE = 7777


def _arm(state: dict[str, Any], code: int) -> None:
    state["armed"] = code == ARM_CODE


def _deposit(state: dict[str, Any], amount: int) -> None:
    if amount == 0:
        raise CallRejected("deposit of zero")
    state["balance"] += amount


def _drain(state: dict[str, Any]) -> None:
    if not state["armed"]:
        raise CallRejected("vault is not armed")
    state["drained"] = True
    state["balance"] = 0


def _peek(state: dict[str, Any]) -> None:
    pass


class VaultAdapter(ModelAdapter):
    name = "vault"

    def __init__(self) -> None:
        amount = IntDomain.uint(64)
        super().__init__(
            [
                ModelOperation(
                    OperationSpec(name="arm", params=(Parameter(name="code", domain=IntDomain.uint(16)),)),
                    _arm,
                ),
                ModelOperation(
                    OperationSpec(name="deposit", params=(Parameter(name="amount", domain=amount),)),
                    _deposit,
                ),
                ModelOperation(OperationSpec(name="drain"), _drain),
                ModelOperation(OperationSpec(name="peek", mutating=False), _peek),
            ],
            {"armed": False, "balance": 0, "drained": False},
            [
                InvariantSpec(
                    id="vault_not_drained",
                    predicate=lambda state: not state["drained"],
                    description="the vault must never be drained",
                )
            ],
            constants=(ARM_CODE,),
        )


def register(registry: ComponentRegistry) -> None:
    """Register the vault model adapter."""
    registry.register_adapter("vault", VaultAdapter)
