"""Flag models for statefuzz.

Registers two adapters built on ``ModelAdapter``:

- ``magic_flag``: ``doStuff(data)`` raises ``flag`` when ``data == 1234``.
  One call with the right constant breaks the invariant.
- ``hidden_flag``: ``doStuff(data)`` raises ``flag`` when the value stored by the
  *previous* call was 5678, then stores ``data``. Two calls in the right order
  are needed.

Both declare the invariant ``flag_is_zero``.
"""

from __future__ import annotations

from typing import Any

from statefuzz.adapters.model import ModelAdapter, ModelOperation
from statefuzz.core.registry import ComponentRegistry
from statefuzz.core.schema import IntDomain, InvariantSpec, OperationSpec, Parameter

MAGIC = 1234
HIDDEN_MAGIC = 5678

_DATA = (Parameter(name="data", domain=IntDomain.uint(256)),)

FLAG_IS_ZERO = InvariantSpec(
    id="flag_is_zero",
    predicate=lambda state: state["flag"] == 0,
    description="flag must never be raised",
)


def _magic_do_stuff(state: dict[str, Any], data: int) -> None:
    if data == MAGIC:
        state["flag"] = 1


def _hidden_do_stuff(state: dict[str, Any], data: int) -> None:
    if state["h"] == HIDDEN_MAGIC:
        state["flag"] = 1
    state["h"] = data


class MagicFlagAdapter(ModelAdapter):
    name = "magic_flag"

    def __init__(self) -> None:
        super().__init__(
            [ModelOperation(OperationSpec(name="doStuff", params=_DATA), _magic_do_stuff)],
            {"flag": 0},
            [FLAG_IS_ZERO],
            constants=(MAGIC,),
        )


class HiddenFlagAdapter(ModelAdapter):
    name = "hidden_flag"

    def __init__(self) -> None:
        super().__init__(
            [ModelOperation(OperationSpec(name="doStuff", params=_DATA), _hidden_do_stuff)],
            {"flag": 0, "h": 0},
            [FLAG_IS_ZERO],
            constants=(HIDDEN_MAGIC,),
        )


def register(registry: ComponentRegistry) -> None:
    """Register the flag model adapters."""
    registry.register_adapter("magic_flag", MagicFlagAdapter)
    registry.register_adapter("hidden_flag", HiddenFlagAdapter)
