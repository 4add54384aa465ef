"""Protocol for campaign result sinks."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from statefuzz.core.schema import CampaignResult, CampaignSummary, Counterexample


class Reporter(Protocol):
    """Protocol for result sinks. Reporters emit data; presentation lives elsewhere."""

    format_name: str

    def report_counterexample(self, counterexample: Counterexample, output: Path) -> None:
        """Write one counterexample to output path."""
        ...

    def report_summary(self, summary: CampaignSummary, output: Path) -> None:
        """Write campaign summary statistics to output path."""
        ...

    def report_result(self, result: CampaignResult, output: Path) -> None:
        """Write the whole campaign result to output path."""
        ...
