"""Fuzzing engine: generation, execution, corpus, shrinking and campaign control."""

from statefuzz.engine.campaign import CampaignController, CancellationToken
from statefuzz.engine.corpus import Corpus, CorpusEntry
from statefuzz.engine.executor import ExecutionSession, SequenceExecutor, state_fingerprint
from statefuzz.engine.generator import CallGenerator
from statefuzz.engine.invariants import InvariantChecker
from statefuzz.engine.rng import WorkerRandom, derive_seed
from statefuzz.engine.shrinker import Shrinker
from statefuzz.engine.values import ValueGenerator

__all__ = [
    "CallGenerator",
    "CampaignController",
    "CancellationToken",
    "Corpus",
    "CorpusEntry",
    "ExecutionSession",
    "InvariantChecker",
    "SequenceExecutor",
    "Shrinker",
    "ValueGenerator",
    "WorkerRandom",
    "derive_seed",
    "state_fingerprint",
]
