"""Run orchestrator: capture, compare and update baselines for every target."""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from visual_monitor.baseline.store import BaselineStore, write_file_atomic
from visual_monitor.capture.browser import browser_session
from visual_monitor.capture.capturer import Capturer
from visual_monitor.diff.image_diff import diff_pngs
from visual_monitor.errors import CaptureError
from visual_monitor.models.config import MonitorConfig
from visual_monitor.models.report import (
    MonitoredTarget,
    RunChangeReport,
    RunSummary,
    TargetOutcome,
    TargetState,
)
from visual_monitor.notify.mailgun import MailgunSettings, MailgunTransport
from visual_monitor.notify.notifier import Notifier
from visual_monitor.reporter.json_report import generate_json_report
from visual_monitor.vcs import commit_baselines

logger = logging.getLogger(__name__)


class PageCapturer(Protocol):
    async def capture(self, target: MonitoredTarget) -> bytes: ...


def is_changed(ratio: float, threshold: float) -> bool:
    """A ratio exactly at the threshold counts as a change."""
    return ratio >= threshold


@dataclass
class RunWorkspace:
    """Scratch directories for a single run: ``<work_dir>/<run_id>/``."""

    root: Path

    @classmethod
    def create(cls, work_dir: Path, run_id: str) -> "RunWorkspace":
        ws = cls(root=work_dir / run_id)
        ws.diffs_dir.mkdir(parents=True, exist_ok=True)
        return ws

    @property
    def diffs_dir(self) -> Path:
        return self.root / "diffs"

    @property
    def archive_path(self) -> Path:
        return self.root / "diffs.zip"

    @property
    def report_path(self) -> Path:
        return self.root / "report.json"

    def diff_path(self, slug: str) -> Path:
        return self.diffs_dir / f"{slug}.diff.png"

    def prune_previous(self, keep: int) -> list[Path]:
        """Delete the oldest sibling run directories so at most ``keep`` remain, this one included."""
        previous = [
            d for d in self.root.parent.iterdir()
            if d.is_dir() and d.name.startswith("run_") and d != self.root
        ]
        previous.sort(key=lambda d: (d.stat().st_mtime, d.name))
        stale = previous[: max(0, len(previous) - (keep - 1))]
        for path in stale:
            shutil.rmtree(path)
            logger.debug("Removed old run directory %s", path)
        return stale


class RunOrchestrator:
    """Processes the configured targets strictly in order on one page."""

    def __init__(
        self,
        config: MonitorConfig,
        store: BaselineStore,
        workspace: RunWorkspace,
        run_id: str,
        notifier: Notifier | None = None,
        repo_dir: Path | None = None,
    ):
        self.config = config
        self.store = store
        self.workspace = workspace
        self.run_id = run_id
        self.notifier = notifier
        # None disables the git commit step
        self.repo_dir = repo_dir

    @classmethod
    def from_config(
        cls,
        config: MonitorConfig,
        root_dir: Path,
        notify: bool = True,
        commit: bool = True,
    ) -> "RunOrchestrator":
        """Wire the store, workspace and transport. Missing env vars fail here, before any capture."""
        settings = MailgunSettings.from_env() if notify else None

        run_id = f"run_{time.strftime('%Y%m%d-%H%M%S')}_{uuid.uuid4().hex[:8]}"
        workspace = RunWorkspace.create(root_dir / config.paths.work_dir, run_id)
        store = BaselineStore(root_dir / config.paths.baselines_dir)

        notifier = None
        if settings is not None:
            notifier = Notifier(MailgunTransport(settings), config.email, workspace.archive_path)

        repo_dir = root_dir if (commit and config.git.enabled) else None
        return cls(config, store, workspace, run_id, notifier=notifier, repo_dir=repo_dir)

    def run(self) -> RunSummary:
        return asyncio.run(self.run_async())

    async def run_async(self) -> RunSummary:
        start = time.time()
        logger.info("=== Starting run %s (%d target(s)) ===", self.run_id, len(self.config.urls))

        async with browser_session(self.config.browser, self.config.viewport) as page:
            capturer = Capturer(page, self.config.viewport, self.config.browser)
            report = await self.process_targets(capturer)

        return self.finish(report, duration=time.time() - start)

    async def process_targets(self, capturer: PageCapturer) -> RunChangeReport:
        report = RunChangeReport(
            run_id=self.run_id,
            started_at=time.strftime("%Y-%m-%dT%H:%M:%SZ"),
        )
        total = len(self.config.urls)
        for index, url in enumerate(self.config.urls):
            target = MonitoredTarget(url=url)
            logger.info("[%d/%d] %s", index + 1, total, url)
            outcome = await self.process_target(capturer, target, report)
            report.outcomes.append(outcome)
            logger.info("[%s] %s", outcome.state.value.upper(), url)
        report.completed_at = time.strftime("%Y-%m-%dT%H:%M:%SZ")
        return report

    async def process_target(
        self,
        capturer: PageCapturer,
        target: MonitoredTarget,
        report: RunChangeReport,
    ) -> TargetOutcome:
        slug = target.slug
        try:
            current = await capturer.capture(target)
        except CaptureError as e:
            logger.warning("Capture failed for %s: %s", target.url, e.message)
            report.add_failure(target.url, e.message)
            return TargetOutcome(url=target.url, slug=slug, state=TargetState.FAILED, error=e.message)

        baseline = self.store.read(slug)
        if baseline is None:
            self.store.seed(slug, current)
            return TargetOutcome(url=target.url, slug=slug, state=TargetState.SEEDED)

        diff = diff_pngs(baseline, current, self.config.diff.pixel_threshold)
        outcome = TargetOutcome(
            url=target.url,
            slug=slug,
            state=TargetState.UNCHANGED,
            ratio=diff.ratio,
            diff_pixels=diff.diff_pixels,
            total_pixels=diff.total_pixels,
        )
        logger.debug("%s: ratio %.5f (%d/%d)", slug, diff.ratio, diff.diff_pixels, diff.total_pixels)
        if not is_changed(diff.ratio, self.config.diff.change_threshold_ratio):
            return outcome

        diff_path = self.workspace.diff_path(slug)
        write_file_atomic(diff_path, diff.to_png())
        report.add_change(target.url, diff, str(diff_path))
        outcome.state = TargetState.CHANGED
        outcome.diff_path = str(diff_path)

        if self.config.baseline_policy == "replace_on_change":
            self.store.replace(slug, current)
            outcome.baseline_replaced = True
        return outcome

    def finish(self, report: RunChangeReport, duration: float = 0.0) -> RunSummary:
        """Persist baselines, write the JSON report, then notify.

        Ordered so a notification failure can never undo accepted baselines.
        """
        self.workspace.prune_previous(self.config.paths.keep_runs)

        seeded = report.count(TargetState.SEEDED)
        replaced = sum(1 for o in report.outcomes if o.baseline_replaced)

        committed = False
        if self.repo_dir is not None:
            committed = commit_baselines(
                self.repo_dir,
                self.store.baselines_dir,
                seeded=seeded,
                changed=replaced,
                push=self.config.git.push,
            )

        report_path = generate_json_report(report, self.workspace.report_path)

        notified = self.notifier.notify(report) if self.notifier else False

        summary = RunSummary(
            run_id=self.run_id,
            targets=len(report.outcomes),
            seeded=seeded,
            unchanged=report.count(TargetState.UNCHANGED),
            changed=report.count(TargetState.CHANGED),
            failed=report.count(TargetState.FAILED),
            baselines_replaced=replaced,
            notified=notified,
            committed=committed,
            report_path=str(report_path),
            duration=round(duration, 2),
        )
        logger.info("=== Run %s complete in %.1fs ===", self.run_id, duration)
        return summary
