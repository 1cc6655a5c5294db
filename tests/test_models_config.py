"""Tests for configuration models."""

import json

import pytest
from pydantic import ValidationError

from visual_monitor.models.config import (
    BrowserConfig,
    DiffConfig,
    EmailConfig,
    MonitorConfig,
    ViewportConfig,
)


def _minimal() -> dict:
    return {
        "urls": ["https://example.com/"],
        "viewport": {"width": 1440, "height": 900},
        "diff": {"pixel_threshold": 0.1, "change_threshold_ratio": 0.02},
    }


class TestMonitorConfig:
    """Tests for MonitorConfig validation and defaults."""

    def test_minimal_document(self):
        cfg = MonitorConfig.model_validate(_minimal())
        assert cfg.urls == ["https://example.com/"]
        assert cfg.viewport.width == 1440
        assert cfg.diff.change_threshold_ratio == 0.02
        assert cfg.baseline_policy == "replace_on_change"

    def test_email_limits_default_when_absent(self):
        cfg = MonitorConfig.model_validate(_minimal())
        assert cfg.email.attach_max_pngs == 6
        assert cfg.email.max_attachment_bytes == 20_000_000

    def test_browser_defaults(self):
        cfg = BrowserConfig()
        assert cfg.navigation_timeout_ms == 60_000
        assert cfg.network_idle_timeout_ms == 60_000
        assert cfg.settle_delay_ms == 1_500
        assert cfg.locale == "en-GB"

    def test_accepts_camel_case_keys(self):
        data = _minimal()
        data["diff"] = {"pixelmatchThreshold": 0.2, "changeThresholdRatio": 0.05}
        data["email"] = {"attachMaxPngs": 2, "maxAttachmentBytes": 1000}
        cfg = MonitorConfig.model_validate(data)
        assert cfg.diff.pixel_threshold == 0.2
        assert cfg.diff.change_threshold_ratio == 0.05
        assert cfg.email.attach_max_pngs == 2
        assert cfg.email.max_attachment_bytes == 1000

    @pytest.mark.parametrize("missing", ["urls", "viewport", "diff"])
    def test_required_sections(self, missing):
        data = _minimal()
        del data[missing]
        with pytest.raises(ValidationError):
            MonitorConfig.model_validate(data)

    def test_empty_url_list_rejected(self):
        data = _minimal()
        data["urls"] = []
        with pytest.raises(ValidationError):
            MonitorConfig.model_validate(data)

    def test_relative_url_rejected(self):
        data = _minimal()
        data["urls"] = ["/just/a/path"]
        with pytest.raises(ValidationError):
            MonitorConfig.model_validate(data)

    def test_threshold_bounds(self):
        with pytest.raises(ValidationError):
            DiffConfig(pixel_threshold=1.5, change_threshold_ratio=0.02)
        with pytest.raises(ValidationError):
            DiffConfig(pixel_threshold=0.1, change_threshold_ratio=0)

    def test_unknown_policy_rejected(self):
        data = _minimal()
        data["baseline_policy"] = "sometimes"
        with pytest.raises(ValidationError):
            MonitorConfig.model_validate(data)

    def test_run_retention(self):
        assert MonitorConfig.model_validate(_minimal()).paths.keep_runs == 5
        data = _minimal()
        data["paths"] = {"keep_runs": 0}
        with pytest.raises(ValidationError):
            MonitorConfig.model_validate(data)


class TestConfigFile:
    """Tests for load() / save()."""

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            MonitorConfig.load(tmp_path / "nope.json")

    def test_load_original_format(self, tmp_path):
        path = tmp_path / "monitor.config.json"
        path.write_text(json.dumps({
            "urls": ["https://example.com/", "https://example.com/about"],
            "viewport": {"width": 1280, "height": 800},
            "diff": {"pixelmatchThreshold": 0.1, "changeThresholdRatio": 0.01},
            "email": {"attachMaxPngs": 4},
        }))
        cfg = MonitorConfig.load(path)
        assert len(cfg.urls) == 2
        assert cfg.email.attach_max_pngs == 4
        assert cfg.email.max_attachment_bytes == 20_000_000

    def test_saved_file_loads_back(self, temp_config_file, monitor_config):
        loaded = MonitorConfig.load(temp_config_file)
        assert loaded == monitor_config

    def test_default_config(self):
        cfg = MonitorConfig.default(["https://example.org/"])
        assert cfg.urls == ["https://example.org/"]
        assert isinstance(cfg.viewport, ViewportConfig)
        assert isinstance(cfg.email, EmailConfig)
