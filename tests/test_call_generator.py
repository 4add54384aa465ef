"""Tests for CallGenerator."""

from __future__ import annotations

import pytest

from statefuzz.core.exceptions import CorpusError
from statefuzz.core.schema import CallSequence
from statefuzz.engine.corpus import Corpus
from statefuzz.engine.generator import CallGenerator
from statefuzz.engine.rng import WorkerRandom
from statefuzz.engine.values import ValueGenerator

from _helpers import make_counter_adapter, seq


def _generator(**kwargs) -> CallGenerator:
    adapter = make_counter_adapter()
    return CallGenerator(adapter.list_operations(), ValueGenerator(), **kwargs)


def test_extend_produces_valid_invocations_at_next_position() -> None:
    gen = _generator()
    ops = {op.name: op for op in make_counter_adapter().list_operations()}
    rng = WorkerRandom(1)
    gen.begin(Corpus(), rng)
    sequence = CallSequence()
    for expected in range(20):
        inv = gen.extend(sequence, rng)
        assert inv.position == expected
        assert ops[inv.operation].accepts(inv.args)
        sequence = sequence.appended(inv)


def test_same_seed_same_sequence() -> None:
    def build(seed: int) -> list:
        gen = _generator()
        rng = WorkerRandom(seed)
        gen.begin(Corpus(), rng)
        s = CallSequence()
        for _ in range(10):
            s = s.appended(gen.extend(s, rng))
        return s.calls

    assert build(11) == build(11)
    assert build(11) != build(12)


def test_begin_with_empty_corpus_plans_nothing() -> None:
    gen = _generator(mutation_rate=1.0)
    assert gen.begin(Corpus(), WorkerRandom(0)) == 0
    assert gen.planned_length == 0


def test_begin_replays_mutated_corpus_entry() -> None:
    gen = _generator(mutation_rate=1.0)
    corpus = Corpus()
    original = seq(("inc", (1,)), ("inc", (2,)), ("dec", ()))
    corpus.insert(original, features={"x"})
    rng = WorkerRandom(4)
    planned = gen.begin(corpus, rng)
    assert planned in (2, 3, 4)
    s = CallSequence()
    for _ in range(planned):
        s = s.appended(gen.extend(s, rng))
    assert {name for name, _ in s.calls} <= {"inc", "dec"}


def test_unknown_operation_in_corpus_is_an_engine_error() -> None:
    gen = _generator(mutation_rate=1.0)
    corpus = Corpus()
    corpus.insert(seq(("selfdestruct", ())), features={"y"})
    with pytest.raises(CorpusError):
        gen.begin(corpus, WorkerRandom(0))


def test_record_gain_boosts_and_decays_weights() -> None:
    gen = _generator()
    gen.record_gain(seq(("inc", (1,)), ("inc", (1,))))
    assert gen.weights["inc"] == 2.0
    assert gen.weights["dec"] == 1.0
    gen.begin(Corpus(), WorkerRandom(0))
    assert 1.0 < gen.weights["inc"] < 2.0


def test_uniform_selection_without_coverage_weighting() -> None:
    gen = _generator(weight_by_coverage=False)
    rng = WorkerRandom(3)
    gen.begin(Corpus(), rng)
    names = {gen.extend(CallSequence(), rng).operation for _ in range(200)}
    assert names == {"inc", "dec", "toggle", "read"}


def test_generator_requires_operations() -> None:
    with pytest.raises(ValueError):
        CallGenerator([], ValueGenerator())


def test_mutated_plans_respect_max_length() -> None:
    gen = _generator(mutation_rate=1.0, max_length=3)
    corpus = Corpus()
    corpus.insert(seq(("inc", (1,)), ("dec", ()), ("read", ())), features={"a"})
    corpus.insert(seq(("inc", (1,)),), features={"b"})
    rng = WorkerRandom(9)
    assert all(gen.begin(corpus, rng) <= 3 for _ in range(300))


def test_oversized_seed_is_truncated_to_max_length() -> None:
    gen = _generator(mutation_rate=1.0, max_length=2)
    corpus = Corpus()
    corpus.seed([seq(*[("inc", (1,))] * 5)])
    rng = WorkerRandom(2)
    assert gen.begin(corpus, rng) == 2
    s = CallSequence()
    for _ in range(2):
        s = s.appended(gen.extend(s, rng))
    assert s.length == 2


def test_max_length_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _generator(max_length=0)
