"""
vigil.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for the analysis windows and service tunables.
Secrets (``DATABASE_URL``, ``JWT_SECRET``) stay in the environment / ``.env``.

Usage::

    from vigil.config import load_config

    cfg = load_config()                  # reads $VIGIL_CONFIG or ./config.yaml
    print(cfg.min_timing_events)         # 30
    print(cfg.analysis_timeout_ms)       # 300
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class VigilConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field has a default so an empty file (or :func:`default_config`)
    yields the stock detection windows.
    """

    # History windows
    history_limit: int = 50               # most recent events used for timing
    min_timing_events: int = 30           # below this, timing is "insufficient data"
    min_behavior_events: int = 5
    behavior_window_days: int = 7
    violation_window_hours: int = 24

    # Timing
    expected_cooldown_seconds: int = 3600  # /work cooldown, used for snipe checks

    # Background analysis
    analysis_timeout_ms: int = 300

    # Service
    api_port: int = 8000
    tracked_commands: tuple[str, ...] = ("work", "daily")


def default_config() -> VigilConfig:
    """Return a :class:`VigilConfig` with every default applied."""
    return VigilConfig()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path | None = None) -> VigilConfig:
    """Read *path* and return a :class:`VigilConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.  Defaults to
        ``$VIGIL_CONFIG`` or ``config.yaml`` in the current directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a value has the wrong type or a window is not positive.
    """
    config_path = Path(path or os.getenv("VIGIL_CONFIG", "config.yaml"))
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    defaults = default_config()
    try:
        cfg = VigilConfig(
            history_limit=int(raw.get("history_limit", defaults.history_limit)),
            min_timing_events=int(
                raw.get("min_timing_events", defaults.min_timing_events)
            ),
            min_behavior_events=int(
                raw.get("min_behavior_events", defaults.min_behavior_events)
            ),
            behavior_window_days=int(
                raw.get("behavior_window_days", defaults.behavior_window_days)
            ),
            violation_window_hours=int(
                raw.get("violation_window_hours", defaults.violation_window_hours)
            ),
            expected_cooldown_seconds=int(
                raw.get("expected_cooldown_seconds", defaults.expected_cooldown_seconds)
            ),
            analysis_timeout_ms=int(
                raw.get("analysis_timeout_ms", defaults.analysis_timeout_ms)
            ),
            api_port=int(raw.get("api_port", defaults.api_port)),
            tracked_commands=tuple(
                str(c) for c in raw.get("tracked_commands", defaults.tracked_commands)
            ),
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid value in {config_path}: {exc}") from exc

    for name in (
        "history_limit",
        "min_timing_events",
        "min_behavior_events",
        "behavior_window_days",
        "violation_window_hours",
        "analysis_timeout_ms",
    ):
        if getattr(cfg, name) <= 0:
            raise ValueError(f"{name} must be positive in {config_path}")
    if cfg.min_timing_events > cfg.history_limit:
        raise ValueError(
            f"min_timing_events ({cfg.min_timing_events}) exceeds "
            f"history_limit ({cfg.history_limit}) in {config_path}"
        )
    return cfg
