"""Value generator: draws argument values for parameter domains."""

from __future__ import annotations

import logging
import random
from typing import Any, Iterable, Sequence

from statefuzz.core.exceptions import DomainViolationError
from statefuzz.core.schema import (
    ADDRESS_HEX_DIGITS,
    AddressDomain,
    BoolDomain,
    BytesDomain,
    IntDomain,
)

log = logging.getLogger(__name__)

POOL_PROBABILITY = 0.9


class ValueGenerator:
    """Draws values for a domain from a caller-supplied random source.

    Integers are mostly uniform. With the configured probabilities a draw is
    instead taken from the adapter's constant dictionary, from argument values
    the corpus has already seen, or from the domain's boundary table. The
    generator holds no mutable state of its own, so one instance can serve
    several workers as long as each passes its own ``rng``.
    """

    def __init__(
        self,
        constants: Iterable[Any] = (),
        boundary_bias: float = 0.2,
        constant_bias: float = 0.1,
        corpus_bias: float = 0.1,
    ) -> None:
        self._constants = tuple(constants)
        self._boundary_bias = boundary_bias
        self._constant_bias = constant_bias
        self._corpus_bias = corpus_bias

    @property
    def constants(self) -> tuple[Any, ...]:
        return self._constants

    def generate(self, domain: Any, rng: random.Random, observed: Sequence[Any] = ()) -> Any:
        """Return one value inside ``domain``.

        Raises:
            DomainViolationError: if the drawn value is not a member of ``domain``.
        """
        if isinstance(domain, IntDomain):
            value = self._generate_int(domain, rng, observed)
        elif isinstance(domain, BoolDomain):
            value = rng.random() < 0.5
        elif isinstance(domain, AddressDomain):
            value = self._generate_address(domain, rng, observed)
        elif isinstance(domain, BytesDomain):
            value = self._generate_bytes(domain, rng, observed)
        else:
            raise DomainViolationError(f"Unsupported domain: {domain!r}")
        if not domain.contains(value):
            raise DomainViolationError(f"Generated {value!r} outside domain {domain!r}")
        return value

    def _pick_special(
        self,
        domain: Any,
        rng: random.Random,
        observed: Sequence[Any],
        boundaries: Sequence[Any],
    ) -> tuple[bool, Any]:
        """One roll decides the strategy; empty tables fall back to uniform."""
        roll = rng.random()
        threshold = self._constant_bias
        if roll < threshold:
            pool = [c for c in self._constants if domain.contains(c)]
            return (True, rng.choice(pool)) if pool else (False, None)
        threshold += self._corpus_bias
        if roll < threshold:
            pool = [v for v in observed if domain.contains(v)]
            return (True, rng.choice(pool)) if pool else (False, None)
        threshold += self._boundary_bias
        if roll < threshold and boundaries:
            return True, rng.choice(list(boundaries))
        return False, None

    def _generate_int(self, domain: IntDomain, rng: random.Random, observed: Sequence[Any]) -> int:
        hit, value = self._pick_special(domain, rng, observed, domain.boundaries())
        if hit:
            return value
        lo, hi = domain.bounds()
        return rng.randint(lo, hi)

    def _generate_address(
        self, domain: AddressDomain, rng: random.Random, observed: Sequence[Any]
    ) -> str:
        hit, value = self._pick_special(domain, rng, observed, ())
        if hit:
            return value
        if rng.random() < POOL_PROBABILITY:
            return rng.choice(domain.pool())
        return "0x" + format(rng.getrandbits(160), f"0{ADDRESS_HEX_DIGITS}x")

    def _generate_bytes(
        self, domain: BytesDomain, rng: random.Random, observed: Sequence[Any]
    ) -> bytes:
        hit, value = self._pick_special(domain, rng, observed, ())
        if hit:
            return value
        if rng.random() < self._boundary_bias:
            length = rng.choice([domain.min_length, domain.max_length])
        else:
            length = rng.randint(domain.min_length, domain.max_length)
        if length == 0:
            return b""
        return rng.getrandbits(8 * length).to_bytes(length, "big")
