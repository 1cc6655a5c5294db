"""JSON report output."""

from __future__ import annotations

import json
from pathlib import Path

from visual_monitor.models.report import RunChangeReport, TargetState


def generate_json_report(report: RunChangeReport, output_path: Path) -> Path:
    """Write a machine-readable record of every target outcome in the run."""
    data = report.model_dump(mode="json")
    data["summary"] = {state.value: report.count(state) for state in TargetState}

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2, default=str)
    return output_path
