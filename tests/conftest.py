"""Pytest configuration and shared fixtures."""

import io
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from visual_monitor.baseline.store import BaselineStore
from visual_monitor.errors import CaptureError
from visual_monitor.models.config import (
    DiffConfig,
    EmailConfig,
    MonitorConfig,
    ViewportConfig,
)
from visual_monitor.models.report import Attachment, MonitoredTarget
from visual_monitor.notify.notifier import Notifier
from visual_monitor.orchestrator import RunOrchestrator, RunWorkspace


# ============================================================================
# Image helpers
# ============================================================================


BODY_COLOR = (20, 110, 190, 255)
FOOTER_COLOR = (220, 40, 40, 255)


def make_png(
    width: int,
    height: int,
    color: tuple = BODY_COLOR,
    footer_rows: int = 0,
    footer_color: tuple = FOOTER_COLOR,
) -> bytes:
    """Solid-colour PNG, optionally with extra footer rows appended at the bottom."""
    img = Image.new("RGBA", (width, height + footer_rows), color)
    if footer_rows:
        img.paste(Image.new("RGBA", (width, footer_rows), footer_color), (0, height))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def make_image(width: int, height: int, color: tuple = BODY_COLOR) -> Image.Image:
    return Image.new("RGBA", (width, height), color)


# ============================================================================
# Fakes for the browser and email collaborators
# ============================================================================


class FakeCapturer:
    """Returns canned PNGs per URL; an Exception value is raised as a capture failure."""

    def __init__(self, pages: dict):
        self.pages = pages
        self.calls: list[str] = []

    async def capture(self, target: MonitoredTarget) -> bytes:
        self.calls.append(target.url)
        result = self.pages[target.url]
        if isinstance(result, Exception):
            raise CaptureError(target.url, str(result))
        return result


class FakeTransport:
    def __init__(self):
        self.sent: list[dict] = []

    def send(self, subject: str, text: str, attachments: list[Attachment]) -> None:
        self.sent.append({"subject": subject, "text": text, "attachments": attachments})


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def viewport_config() -> ViewportConfig:
    return ViewportConfig(width=1280, height=800)


@pytest.fixture
def monitor_config(viewport_config: ViewportConfig) -> MonitorConfig:
    """Two targets, 2% change threshold, default email limits."""
    return MonitorConfig(
        urls=["https://example.com/", "https://example.com/pricing"],
        viewport=viewport_config,
        diff=DiffConfig(pixel_threshold=0.1, change_threshold_ratio=0.02),
        email=EmailConfig(),
    )


@pytest.fixture
def temp_config_file(monitor_config: MonitorConfig, tmp_path: Path) -> Path:
    config_file = tmp_path / "monitor.config.json"
    monitor_config.save(config_file)
    return config_file


# ============================================================================
# Run Fixtures
# ============================================================================


@pytest.fixture
def store(tmp_path: Path) -> BaselineStore:
    return BaselineStore(tmp_path / "baselines")


@pytest.fixture
def workspace(tmp_path: Path) -> RunWorkspace:
    return RunWorkspace.create(tmp_path / ".tmp", "run_test0001")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_orchestrator(store: BaselineStore, workspace: RunWorkspace, transport: FakeTransport):
    """Factory building an orchestrator with a fake transport and no git step."""

    def _make(config: MonitorConfig, notifier: Optional[Notifier] = None) -> RunOrchestrator:
        notifier = notifier or Notifier(transport, config.email, workspace.archive_path)
        return RunOrchestrator(config, store, workspace, "run_test0001", notifier=notifier)

    return _make
