"""Campaign controller: runs workers, owns campaign state and the final result."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from statefuzz.core.config import CampaignConfigModel
from statefuzz.core.exceptions import CampaignError, ConfigError, FaultRateExceeded
from statefuzz.core.schema import (
    CallSequence,
    CampaignResult,
    CampaignState,
    CampaignSummary,
    Counterexample,
    InvariantSpec,
    WorkerStats,
)
from statefuzz.engine.corpus import Corpus
from statefuzz.engine.executor import SequenceExecutor
from statefuzz.engine.generator import CallGenerator
from statefuzz.engine.rng import WorkerRandom
from statefuzz.engine.shrinker import Shrinker
from statefuzz.engine.values import ValueGenerator
from statefuzz.protocols import SutAdapter

log = logging.getLogger(__name__)


class CancellationToken:
    """One-shot cancellation flag shared by the controller and its workers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._event = threading.Event()
        self._reason = ""

    def cancel(self, reason: str = "") -> bool:
        """Cancel; returns True only for the caller that actually cancelled."""
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._event.set()
            return True

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str:
        return self._reason


@dataclass
class _WorkerOutcome:
    stats: WorkerStats
    counterexamples: list[Counterexample] = field(default_factory=list)


class CampaignController:
    """Runs one fuzzing campaign against an adapter.

    States: idle -> running -> exhausted | failed | stopped | errored. Only the
    controller changes the state. Workers own their random source, generator,
    executor and in-progress sequence; the corpus and the cancellation token are
    the only shared objects.
    """

    def __init__(
        self,
        adapter: SutAdapter,
        invariants: Sequence[InvariantSpec] | None = None,
        config: CampaignConfigModel | None = None,
        corpus: Corpus | None = None,
        seeds: Iterable[CallSequence] = (),
    ) -> None:
        self._adapter = adapter
        self._config = config or CampaignConfigModel()
        self._invariants = tuple(invariants if invariants is not None else adapter.list_invariants())
        if not self._invariants:
            raise ConfigError("A campaign needs at least one invariant")
        ids = [inv.id for inv in self._invariants]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ConfigError(f"Duplicate invariant id(s): {', '.join(duplicates)}")
        self._operations = tuple(adapter.list_operations())
        if not self._operations:
            raise ConfigError(f"Adapter {adapter.name!r} exposes no operations")
        constants = getattr(adapter, "constants", None)
        self._constants = tuple(constants()) if callable(constants) else ()
        self._corpus = corpus if corpus is not None else Corpus(self._config.corpus_max_entries)
        self._seeds = tuple(seeds)
        self._token = CancellationToken()
        self._state = CampaignState.IDLE
        self._state_lock = threading.Lock()
        self._stop_requested = False

    @property
    def state(self) -> CampaignState:
        return self._state

    @property
    def corpus(self) -> Corpus:
        return self._corpus

    @property
    def token(self) -> CancellationToken:
        return self._token

    def stop(self, reason: str = "stopped by request") -> None:
        """Ask workers to stop; they abandon in-flight sequences at the next call boundary."""
        self._stop_requested = True
        self._token.cancel(reason)

    def run(self) -> CampaignResult:
        """Run the campaign to a terminal state and return its result.

        Raises:
            CampaignError: if the controller has already been run.
        """
        with self._state_lock:
            if self._state != CampaignState.IDLE:
                raise CampaignError(f"Campaign already {self._state.value}; create a new controller")
            self._state = CampaignState.RUNNING

        cfg = self._config
        started = time.monotonic()
        deadline = started + cfg.time_budget if cfg.time_budget else None
        if self._seeds:
            added = self._corpus.seed(self._seeds)
            log.info("Seeded corpus with %d sequence(s)", added)
        log.info(
            "Starting campaign on %s: %d worker(s), %d iteration(s) each, seed %d, %s checkpoints",
            self._adapter.name,
            cfg.worker_count,
            cfg.iteration_budget,
            cfg.seed,
            cfg.checkpoint_policy.value,
        )

        outcomes: list[_WorkerOutcome] = []
        error: str | None = None
        with ThreadPoolExecutor(
            max_workers=cfg.worker_count, thread_name_prefix="statefuzz-worker"
        ) as pool:
            futures: dict[Future, int] = {
                pool.submit(self._run_worker, worker_id, deadline): worker_id
                for worker_id in range(cfg.worker_count)
            }
            try:
                wait(futures)
            except KeyboardInterrupt:
                log.warning("Interrupted; stopping workers")
                self.stop("interrupted")
                wait(futures)
            for future, worker_id in sorted(futures.items(), key=lambda kv: kv[1]):
                exc = future.exception()
                if exc is not None:
                    if error is None:
                        error = f"worker {worker_id}: {type(exc).__name__}: {exc}"
                    continue
                outcomes.append(future.result())

        counterexamples = self._collect(outcomes)
        if error is not None:
            state = CampaignState.ERRORED
        elif counterexamples:
            state = CampaignState.FAILED
        elif self._stop_requested:
            state = CampaignState.STOPPED
        else:
            state = CampaignState.EXHAUSTED

        workers = [o.stats for o in outcomes]
        summary = CampaignSummary(
            state=state,
            iterations=sum(w.sequences for w in workers),
            calls=sum(w.calls for w in workers),
            rejections=sum(w.rejections for w in workers),
            faults=sum(w.faults for w in workers),
            timeouts=sum(w.timeouts for w in workers),
            coverage=self._corpus.coverage,
            corpus_size=len(self._corpus),
            elapsed_seconds=round(time.monotonic() - started, 3),
            workers=workers,
        )
        with self._state_lock:
            self._state = state
        log.info(
            "Campaign %s after %d sequence(s) in %.2fs (%d counterexample(s))",
            state.value,
            summary.iterations,
            summary.elapsed_seconds,
            len(counterexamples),
        )
        return CampaignResult(
            state=state,
            counterexamples=counterexamples if state == CampaignState.FAILED else [],
            summary=summary,
            error=error,
        )

    def _collect(self, outcomes: list[_WorkerOutcome]) -> list[Counterexample]:
        """One counterexample per invariant: the shortest, lowest worker id on ties."""
        best: dict[str, Counterexample] = {}
        for outcome in outcomes:
            for cx in outcome.counterexamples:
                current = best.get(cx.invariant_id)
                if current is None or cx.sequence.length < current.sequence.length:
                    best[cx.invariant_id] = cx
        order = {inv.id: i for i, inv in enumerate(self._invariants)}
        return sorted(best.values(), key=lambda cx: order.get(cx.invariant_id, len(order)))

    def _should_stop(self, deadline: float | None) -> bool:
        if self._token.cancelled:
            return True
        return deadline is not None and time.monotonic() >= deadline

    def _run_worker(self, worker_id: int, deadline: float | None) -> _WorkerOutcome:
        try:
            return self._worker(worker_id, deadline)
        except Exception:
            log.exception("Worker %d failed", worker_id)
            self._token.cancel(f"worker {worker_id} failed")
            raise

    def _worker(self, worker_id: int, deadline: float | None) -> _WorkerOutcome:
        cfg = self._config
        rng = WorkerRandom(cfg.seed, worker_id)
        values = ValueGenerator(
            self._constants,
            boundary_bias=cfg.boundary_bias,
            constant_bias=cfg.constant_bias,
            corpus_bias=cfg.corpus_bias,
        )
        generator = CallGenerator(
            self._operations,
            values,
            mutation_rate=cfg.corpus_mutation_rate,
            weight_by_coverage=cfg.weight_by_coverage,
            max_length=cfg.max_sequence_length,
        )
        executor = SequenceExecutor(
            self._adapter, self._invariants, cfg.checkpoint_policy, cfg.call_timeout
        )
        shrinker = Shrinker(executor, self._operations, cfg.shrink_max_attempts)
        stats = WorkerStats(worker_id=worker_id)
        found: dict[str, Counterexample] = {}

        for _ in range(cfg.iteration_budget):
            if self._should_stop(deadline):
                break
            planned = generator.begin(self._corpus, rng)
            target = min(max(rng.randint(1, cfg.max_sequence_length), planned), cfg.max_sequence_length)
            session = executor.start()
            abandoned = False
            while session.sequence.length < target and not session.halted:
                if self._should_stop(deadline):
                    abandoned = True
                    break
                session.step(generator.extend(session.sequence, rng))
                if any(i not in found for i in session.violations):
                    break
            if abandoned:
                break

            result = session.finish()
            stats.sequences += 1
            stats.calls += len(result.steps)
            stats.rejections += result.rejections
            if result.faulted:
                stats.faults += 1
                if result.timed_out:
                    stats.timeouts += 1
                self._check_fault_rate(stats)
                continue

            fresh = sorted(
                (cp, invariant_id)
                for invariant_id, cp in result.violations.items()
                if invariant_id not in found
            )
            if not fresh:
                if not result.failed and self._corpus.insert(
                    result.sequence, result.features, result.coverage_signature
                ):
                    stats.corpus_inserts += 1
                    generator.record_gain(result.sequence)
                continue

            stats.violations += 1
            draws = rng.draws
            if cfg.stop_on_first_failure:
                _, invariant_id = fresh[0]
                if not self._token.cancel(f"worker {worker_id} violated {invariant_id}"):
                    break
                log.info("Worker %d violated %s; shrinking", worker_id, invariant_id)
                found[invariant_id] = shrinker.minimize(
                    result.sequence, invariant_id, worker_id=worker_id, seed=cfg.seed, draws=draws
                )
                break
            for _, invariant_id in fresh:
                log.info("Worker %d violated %s; shrinking", worker_id, invariant_id)
                found[invariant_id] = shrinker.minimize(
                    result.sequence, invariant_id, worker_id=worker_id, seed=cfg.seed, draws=draws
                )

        stats.draws = rng.draws
        return _WorkerOutcome(stats=stats, counterexamples=list(found.values()))

    def _check_fault_rate(self, stats: WorkerStats) -> None:
        cfg = self._config
        if stats.sequences < cfg.fault_rate_min_sequences:
            return
        rate = stats.faults / stats.sequences
        if rate > cfg.max_fault_rate:
            raise FaultRateExceeded(
                f"Worker {stats.worker_id}: {stats.faults}/{stats.sequences} sequences faulted "
                f"(limit {cfg.max_fault_rate:.0%}); check the adapter"
            )
