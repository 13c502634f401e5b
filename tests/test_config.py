"""
tests/test_config.py — YAML Config Loader Tests
================================================
"""

from __future__ import annotations

import pytest

from vigil.config import VigilConfig, default_config, load_config


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_missing_file_has_hint(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_empty_file_gives_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, ""))
        assert cfg == default_config()
        assert cfg.history_limit == 50
        assert cfg.min_timing_events == 30
        assert cfg.analysis_timeout_ms == 300
        assert cfg.tracked_commands == ("work", "daily")

    def test_overrides(self, tmp_path):
        cfg = load_config(_write(
            tmp_path,
            "min_behavior_events: 8\n"
            "expected_cooldown_seconds: 1800\n"
            "tracked_commands: [work, daily, crime]\n",
        ))
        assert cfg.min_behavior_events == 8
        assert cfg.expected_cooldown_seconds == 1800
        assert cfg.tracked_commands == ("work", "daily", "crime")
        assert cfg.history_limit == 50

    def test_env_var_path(self, tmp_path, monkeypatch):
        path = _write(tmp_path, "api_port: 9100\n")
        monkeypatch.setenv("VIGIL_CONFIG", str(path))
        assert load_config().api_port == 9100

    def test_bad_type_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid value"):
            load_config(_write(tmp_path, "history_limit: lots\n"))

    def test_non_positive_window_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="behavior_window_days"):
            load_config(_write(tmp_path, "behavior_window_days: 0\n"))

    def test_min_events_cannot_exceed_history(self, tmp_path):
        with pytest.raises(ValueError, match="exceeds"):
            load_config(_write(tmp_path, "history_limit: 20\n"))

    def test_config_is_frozen(self):
        cfg = VigilConfig()
        with pytest.raises(AttributeError):
            cfg.history_limit = 10
