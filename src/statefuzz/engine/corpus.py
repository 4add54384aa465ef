"""Shared corpus of interesting sequences."""

from __future__ import annotations

import hashlib
import logging
import random
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Iterable

from statefuzz.core.exceptions import CorpusError
from statefuzz.core.schema import CallSequence

log = logging.getLogger(__name__)

OBSERVED_VALUES_LIMIT = 256


@dataclass(frozen=True)
class CorpusEntry:
    """One retained sequence and the coverage signature it was kept for."""

    sequence: CallSequence
    signature: str
    seed: bool = False


class Corpus:
    """Sequences that reached new coverage, shared by all workers.

    This is the only structure several workers mutate; every method takes the
    same lock, and ``insert`` checks and records coverage in one critical
    section so concurrent inserts of the same sequence keep exactly one copy.
    """

    def __init__(self, max_entries: int = 1024) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: dict[str, CorpusEntry] = {}
        self._keys: set[tuple] = set()
        self._features: set[str] = set()
        self._observed: deque[Any] = deque(maxlen=OBSERVED_VALUES_LIMIT)

    def insert(
        self,
        sequence: CallSequence,
        features: Iterable[str] = (),
        signature: str | None = None,
        seed: bool = False,
    ) -> bool:
        """Keep ``sequence`` if it adds coverage (or is a seed). Returns True if kept.

        ``signature`` is normally ``ExecutionResult.coverage_signature``; without
        one the entry is keyed by a hash of its calls.

        Raises:
            CorpusError: if the sequence positions are not ``0..n-1``.
        """
        _check_positions(sequence)
        feature_set = frozenset(features)
        key = sequence.key
        sig = signature or _content_signature(key)
        with self._lock:
            if key in self._keys:
                return False
            new_features = feature_set - self._features
            if not new_features and not seed:
                return False
            if sig in self._entries:
                sig = f"{sig}:{len(self._keys)}"
            self._features |= feature_set
            self._evict_if_full()
            self._entries[sig] = CorpusEntry(sequence=sequence, signature=sig, seed=seed)
            self._keys.add(key)
            for inv in sequence.invocations:
                self._observed.extend(inv.args)
            log.debug("Corpus insert (%d calls, %d new features)", sequence.length, len(new_features))
            return True

    def _evict_if_full(self) -> None:
        if len(self._entries) < self._max_entries:
            return
        for sig, entry in self._entries.items():
            if not entry.seed:
                del self._entries[sig]
                self._keys.discard(entry.sequence.key)
                return
        oldest = next(iter(self._entries))
        entry = self._entries.pop(oldest)
        self._keys.discard(entry.sequence.key)

    def seed(self, sequences: Iterable[CallSequence]) -> int:
        """Insert known sequences regardless of coverage; returns how many were new."""
        return sum(1 for s in sequences if self.insert(s, seed=True))

    def sample(self, rng: random.Random) -> CorpusEntry | None:
        with self._lock:
            if not self._entries:
                return None
            entries = list(self._entries.values())
        return rng.choice(entries)

    def observed_values(self) -> tuple[Any, ...]:
        """Recent argument values from retained sequences."""
        with self._lock:
            return tuple(self._observed)

    def entries(self) -> list[CorpusEntry]:
        with self._lock:
            return list(self._entries.values())

    @property
    def coverage(self) -> int:
        """Number of distinct coverage features seen."""
        with self._lock:
            return len(self._features)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def _content_signature(key: tuple) -> str:
    return hashlib.sha1(repr(key).encode("utf-8")).hexdigest()


def _check_positions(sequence: CallSequence) -> None:
    for expected, inv in enumerate(sequence.invocations):
        if inv.position != expected:
            raise CorpusError(
                f"Sequence position {inv.position} at index {expected}; positions must be contiguous"
            )
