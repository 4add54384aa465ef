"""Tests for JSON reporter."""

from __future__ import annotations

import json
from pathlib import Path

from plugins.sut.magic_flag import HiddenFlagAdapter
from statefuzz.core.schema import CampaignResult, CampaignState, CampaignSummary, WorkerStats
from statefuzz.engine.executor import SequenceExecutor
from statefuzz.engine.shrinker import Shrinker
from statefuzz.reporters.json_reporter import JsonReporter

from _helpers import seq


def _counterexample():
    adapter = HiddenFlagAdapter()
    shrinker = Shrinker(SequenceExecutor(adapter, adapter.list_invariants()), adapter.list_operations())
    return shrinker.minimize(
        seq(("doStuff", (7,)), ("doStuff", (5678,)), ("doStuff", (3,))), "flag_is_zero", worker_id=1, seed=9, draws=42
    )


def test_json_reporter_report_counterexample(tmp_path: Path) -> None:
    out = tmp_path / "nested" / "cx.json"
    JsonReporter().report_counterexample(_counterexample(), out)
    data = json.loads(out.read_text())
    assert data["invariant_id"] == "flag_is_zero"
    assert data["description"] == "flag must never be raised"
    assert data["checkpoint"] == 2
    assert data["sequence"] == [
        {"position": 0, "operation": "doStuff", "args": [5678]},
        {"position": 1, "operation": "doStuff", "args": [0]},
    ]
    assert data["final_observation"] == {"flag": 1, "h": 0}
    assert data["original_length"] == 3
    assert (data["worker_id"], data["seed"], data["draws"]) == (1, 9, 42)


def test_json_reporter_report_summary(tmp_path: Path) -> None:
    summary = CampaignSummary(
        state=CampaignState.EXHAUSTED,
        iterations=10,
        calls=40,
        workers=[WorkerStats(worker_id=0, sequences=10, calls=40)],
    )
    out = tmp_path / "summary.json"
    JsonReporter().report_summary(summary, out)
    data = json.loads(out.read_text())
    assert data["state"] == "exhausted"
    assert data["calls"] == 40
    assert data["workers"][0]["sequences"] == 10


def test_json_reporter_report_result_failed(tmp_path: Path) -> None:
    result = CampaignResult(
        state=CampaignState.FAILED,
        counterexamples=[_counterexample()],
        summary=CampaignSummary(state=CampaignState.FAILED, iterations=3),
    )
    out = tmp_path / "result.json"
    JsonReporter().report_result(result, out)
    data = json.loads(out.read_text())
    assert data["state"] == "failed"
    assert len(data["counterexamples"]) == 1
    assert "error" not in data


def test_json_reporter_report_result_errored(tmp_path: Path) -> None:
    result = CampaignResult(
        state=CampaignState.ERRORED,
        summary=CampaignSummary(state=CampaignState.ERRORED),
        error="worker 0: FaultRateExceeded: too many faults",
    )
    out = tmp_path / "result.json"
    JsonReporter().report_result(result, out)
    data = json.loads(out.read_text())
    assert data["error"].startswith("worker 0")
    assert "counterexamples" not in data
