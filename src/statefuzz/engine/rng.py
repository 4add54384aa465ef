"""Per-worker random sources."""

from __future__ import annotations

import hashlib
import random


def derive_seed(seed: int, worker_id: int) -> int:
    """Stable per-worker seed; independent of ``PYTHONHASHSEED``."""
    digest = hashlib.sha256(f"{seed}:{worker_id}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


class WorkerRandom(random.Random):
    """``random.Random`` that counts its primitive draws.

    Every higher-level method (``randint``, ``choice``, ``choices``...) funnels
    through ``random()`` or ``getrandbits()``, so ``draws`` together with the seed
    pins down the exact position of the generator in its stream.
    """

    def __init__(self, seed: int, worker_id: int = 0) -> None:
        self.seed_value = seed
        self.worker_id = worker_id
        self.draws = 0
        super().__init__(derive_seed(seed, worker_id))

    def random(self) -> float:
        self.draws += 1
        return super().random()

    def getrandbits(self, k: int) -> int:
        self.draws += 1
        return super().getrandbits(k)
