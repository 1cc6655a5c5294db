"""Configuration models for the visual monitor."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from visual_monitor.url_utils import validate_url

DEFAULT_USER_AGENT = "VisualMonitor/1.0 (+scheduled; Playwright)"


class ViewportConfig(BaseModel):
    width: int = Field(default=1280, gt=0)
    height: int = Field(default=800, gt=0)

    def as_playwright(self) -> dict:
        return {"width": self.width, "height": self.height}


class DiffConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Per-channel colour tolerance handed to the pixel comparison (0 = exact)
    pixel_threshold: float = Field(alias="pixelmatchThreshold", ge=0.0, le=1.0)
    # Fraction of the normalized canvas that must differ to count as a change
    change_threshold_ratio: float = Field(alias="changeThresholdRatio", gt=0.0, le=1.0)


class EmailConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    attach_max_pngs: int = Field(default=6, alias="attachMaxPngs", ge=0)
    max_attachment_bytes: int = Field(default=20_000_000, alias="maxAttachmentBytes", ge=0)
    subject_prefix: str = "Visual monitor"


class BrowserConfig(BaseModel):
    headless: bool = True
    locale: str = "en-GB"
    timezone_id: str = "Europe/London"
    user_agent: str = DEFAULT_USER_AGENT
    navigation_timeout_ms: int = 60_000
    network_idle_timeout_ms: int = 60_000
    settle_delay_ms: int = 1_500
    consent_click_timeout_ms: int = 1_500


class PathsConfig(BaseModel):
    baselines_dir: str = "baselines"
    work_dir: str = ".tmp"
    # Run directories kept under work_dir, the current run included
    keep_runs: int = Field(default=5, ge=1)


class GitConfig(BaseModel):
    enabled: bool = True
    push: bool = True


class MonitorConfig(BaseModel):
    # Targets
    urls: list[str] = Field(min_length=1)
    viewport: ViewportConfig

    # Comparison policy
    diff: DiffConfig
    baseline_policy: Literal["replace_on_change", "keep_until_reviewed"] = "replace_on_change"

    # Optional sections
    email: EmailConfig = Field(default_factory=EmailConfig)
    browser: BrowserConfig = Field(default_factory=BrowserConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    git: GitConfig = Field(default_factory=GitConfig)

    @field_validator("urls")
    @classmethod
    def check_urls(cls, v: list[str]) -> list[str]:
        return [validate_url(u) for u in v]

    @classmethod
    def load(cls, path: str | Path) -> "MonitorConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls.model_validate(data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)

    @classmethod
    def default(cls, urls: Optional[list[str]] = None) -> "MonitorConfig":
        return cls(
            urls=urls or ["https://example.com/"],
            viewport=ViewportConfig(),
            diff=DiffConfig(pixel_threshold=0.1, change_threshold_ratio=0.02),
        )
