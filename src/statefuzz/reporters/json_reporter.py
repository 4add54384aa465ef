"""JSON reporter: write counterexamples, summaries and campaign results as JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from statefuzz.core.schema import CampaignResult, CampaignSummary, Counterexample, to_jsonable


def _write(data: Any, output: Path) -> None:
    output = Path(output).resolve()
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(data, indent=2), encoding="utf-8")


class JsonReporter:
    """Reporter that writes plain JSON data; replayable by ``statefuzz replay``."""

    format_name: str = "json"

    def report_counterexample(self, counterexample: Counterexample, output: Path) -> None:
        """Write one counterexample as a JSON object to the output path."""
        _write(counterexample.to_dict(), output)

    def report_summary(self, summary: CampaignSummary, output: Path) -> None:
        _write(to_jsonable(summary.model_dump()), output)

    def report_result(self, result: CampaignResult, output: Path) -> None:
        """Write the terminal campaign artifact (state, summary, counterexamples or error)."""
        _write(result.to_dict(), output)
