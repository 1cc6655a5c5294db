"""Notifier: one size-bounded alert per run."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from visual_monitor.models.config import EmailConfig
from visual_monitor.models.report import Attachment, RunChangeReport

from .archive import create_zip

logger = logging.getLogger(__name__)

ARCHIVE_NAME = "diffs.zip"


class Transport(Protocol):
    def send(self, subject: str, text: str, attachments: list[Attachment]) -> None: ...


def format_bytes(n: int) -> str:
    if n < 1024:
        return f"{n} B"
    if n < 1024 * 1024:
        return f"{n / 1024:.1f} KB"
    return f"{n / (1024 * 1024):.1f} MB"


def select_attachments(
    candidates: list[Attachment],
    max_count: int,
    max_bytes: int,
    used_bytes: int = 0,
) -> list[Attachment]:
    """Take candidates in order until the count cap or the byte budget is hit.

    Stops at the first candidate that would overflow the budget; later,
    smaller files are not considered.
    """
    selected: list[Attachment] = []
    total = used_bytes
    for att in candidates[:max_count]:
        if total + att.size > max_bytes:
            logger.debug("Attachment budget exhausted at %s (%s used)", att.name, format_bytes(total))
            break
        selected.append(att)
        total += att.size
    return selected


def build_subject(report: RunChangeReport, prefix: str) -> str:
    return f"{prefix}: visual change detected ({len(report.entries)})"


def build_body(report: RunChangeReport, attachments: list[Attachment]) -> str:
    lines = [f"Visual change detected ({len(report.entries)} URL(s)).", ""]
    for entry in report.entries:
        lines.append(f"- {entry.url}")
        if entry.is_failure:
            lines.append(f"  {entry.note}")
        else:
            lines.append(
                f"  Diff ratio: {entry.ratio * 100:.3f}% ({entry.diff_pixels}/{entry.total_pixels})"
            )
    lines.append("")
    if attachments:
        names = ", ".join(a.name for a in attachments)
        total = sum(a.size for a in attachments)
        lines.append(f"Attachments: {names} (total {format_bytes(total)})")
    else:
        lines.append("No diff images were generated (capture failures only).")
    return "\n".join(lines)


class Notifier:
    """Builds the attachment set for a run and sends a single message."""

    def __init__(self, transport: Transport, config: EmailConfig, archive_path: Path):
        self.transport = transport
        self.config = config
        self.archive_path = archive_path

    def build_attachments(self, report: RunChangeReport) -> list[Attachment]:
        diff_files = [Path(p) for p in report.diff_paths]
        if not diff_files:
            return []

        create_zip(diff_files, self.archive_path)
        archive = Attachment(
            name=ARCHIVE_NAME,
            path=str(self.archive_path),
            size=self.archive_path.stat().st_size,
        )
        previews = [Attachment(name=p.name, path=str(p), size=p.stat().st_size) for p in diff_files]
        selected = select_attachments(
            previews,
            max_count=self.config.attach_max_pngs,
            max_bytes=self.config.max_attachment_bytes,
            used_bytes=archive.size,
        )
        return [archive, *selected]

    def notify(self, report: RunChangeReport) -> bool:
        """Send one alert if the run had any change or failure."""
        if report.is_empty:
            logger.info("No changes or failures, not sending a notification")
            return False

        attachments = self.build_attachments(report)
        self.transport.send(
            subject=build_subject(report, self.config.subject_prefix),
            text=build_body(report, attachments),
            attachments=attachments,
        )
        logger.info("Notification sent for %d entr%s",
                    len(report.entries), "y" if len(report.entries) == 1 else "ies")
        return True
