"""Runtime configuration for the polling/plotting pipeline."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

import yaml

CONFIG_ENV_VAR = "CO2MON_CONFIG"
SOURCE_KINDS = ("synthetic", "http")


@dataclass(slots=True)
class MonitorConfig:
    """
    Tuning knobs for sampling cadence, recovery and history depth.

    The defaults poll every 2 s and keep one hour of readings, which is what
    an indoor CO2 sensor comfortably sustains.
    """

    poll_interval_s: float = 2.0
    fetch_timeout_s: float = 5.0

    # Retry widening after repeated failures
    backoff_threshold: int = 3
    backoff_factor: float = 2.0
    max_backoff_s: float = 60.0

    history_capacity: int = 1800
    event_queue_size: int = 256

    chart_margin: float = 0.05
    window_seconds: Optional[float] = None
    ui_refresh_hz: float = 10.0
    theme: str = "dark"

    source: str = "synthetic"
    source_url: Optional[str] = None
    seed_history: bool = True

    def sanitized(self) -> MonitorConfig:
        """Return a copy with limits applied to every numeric knob."""
        poll = max(0.05, float(self.poll_interval_s))
        window = self.window_seconds
        if window is not None:
            window = float(window)
            if not math.isfinite(window) or window <= 0.0:
                window = None
        source = str(self.source or "synthetic").strip().lower()
        if source not in SOURCE_KINDS:
            raise ValueError(f"Unknown source {self.source!r}; expected one of {SOURCE_KINDS}")
        theme = str(self.theme or "dark").strip().lower()
        return replace(
            self,
            poll_interval_s=poll,
            fetch_timeout_s=max(0.05, float(self.fetch_timeout_s)),
            backoff_threshold=max(1, int(self.backoff_threshold)),
            backoff_factor=max(1.0, float(self.backoff_factor)),
            max_backoff_s=max(poll, float(self.max_backoff_s)),
            history_capacity=max(1, int(self.history_capacity)),
            event_queue_size=max(1, int(self.event_queue_size)),
            chart_margin=min(1.0, max(0.0, float(self.chart_margin))),
            window_seconds=window,
            ui_refresh_hz=min(120.0, max(0.5, float(self.ui_refresh_hz))),
            theme=theme if theme in {"light", "dark"} else "dark",
            source=source,
            seed_history=bool(self.seed_history),
        )

    def ui_refresh_interval_ms(self) -> int:
        return max(1, int(round(1000.0 / self.ui_refresh_hz)))


def _recognized_fields() -> set[str]:
    return {f.name for f in fields(MonitorConfig)}


def _normalize_mapping(data: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """Flatten a top-level ``monitor`` block into the root mapping."""
    if "monitor" in data and isinstance(data["monitor"], Mapping):
        merged: MutableMapping[str, Any] = {}
        for key, value in data.items():
            if key == "monitor":
                merged.update(value)
            else:
                merged[key] = value
        return merged
    return dict(data)


def config_from_mapping(data: Mapping[str, Any] | None) -> MonitorConfig:
    """Build :class:`MonitorConfig` from ``data`` (ignoring unknown keys)."""
    if not data:
        return MonitorConfig()
    normalized = _normalize_mapping(data)
    known = _recognized_fields()
    payload = {key: normalized[key] for key in normalized.keys() & known}
    return MonitorConfig(**payload).sanitized()


def default_config_path() -> Optional[Path]:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return None


def load_config(path: str | Path | None = None) -> MonitorConfig:
    """
    Load configuration from ``path`` (or ``$CO2MON_CONFIG``).

    Missing files fall back to the default :class:`MonitorConfig`.
    """
    cfg_path = Path(path).expanduser() if path is not None else default_config_path()
    if cfg_path is None or not cfg_path.exists():
        return MonitorConfig()
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {cfg_path}, got {type(raw).__name__}")
    return config_from_mapping(raw)


__all__ = ["MonitorConfig", "config_from_mapping", "load_config", "CONFIG_ENV_VAR"]
