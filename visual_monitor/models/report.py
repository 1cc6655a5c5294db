"""Run data structures produced by the orchestrator."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from visual_monitor.diff.image_diff import DiffResult
from visual_monitor.url_utils import slug_from_url


class MonitoredTarget(BaseModel):
    url: str

    @computed_field
    @property
    def slug(self) -> str:
        return slug_from_url(self.url)


class TargetState(str, Enum):
    FAILED = "failed"
    SEEDED = "seeded"
    UNCHANGED = "unchanged"
    CHANGED = "changed"


class TargetOutcome(BaseModel):
    """Terminal state of one target within a run."""
    url: str
    slug: str
    state: TargetState
    ratio: Optional[float] = None
    diff_pixels: Optional[int] = None
    total_pixels: Optional[int] = None
    error: Optional[str] = None
    diff_path: Optional[str] = None
    baseline_replaced: bool = False


class ReportEntry(BaseModel):
    """A reportable outcome: either a capture failure or a detected change."""
    url: str
    note: Optional[str] = None  # set for capture failures only
    ratio: Optional[float] = None
    diff_pixels: Optional[int] = None
    total_pixels: Optional[int] = None
    diff_path: Optional[str] = None

    @property
    def is_failure(self) -> bool:
        return self.note is not None


class RunChangeReport(BaseModel):
    run_id: str
    started_at: str
    completed_at: str = ""
    entries: list[ReportEntry] = Field(default_factory=list)
    outcomes: list[TargetOutcome] = Field(default_factory=list)

    def add_failure(self, url: str, message: str) -> ReportEntry:
        entry = ReportEntry(url=url, note=f"CAPTURE FAILED: {message}")
        self.entries.append(entry)
        return entry

    def add_change(self, url: str, diff: DiffResult, diff_path: str) -> ReportEntry:
        entry = ReportEntry(
            url=url,
            ratio=diff.ratio,
            diff_pixels=diff.diff_pixels,
            total_pixels=diff.total_pixels,
            diff_path=diff_path,
        )
        self.entries.append(entry)
        return entry

    def count(self, state: TargetState) -> int:
        return sum(1 for o in self.outcomes if o.state == state)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    @property
    def diff_paths(self) -> list[str]:
        return [e.diff_path for e in self.entries if e.diff_path]


class Attachment(BaseModel):
    name: str
    path: str
    size: int


class RunSummary(BaseModel):
    run_id: str
    targets: int
    seeded: int
    unchanged: int
    changed: int
    failed: int
    baselines_replaced: int
    notified: bool = False
    committed: bool = False
    report_path: Optional[str] = None
    duration: float = 0.0
