"""Configuration objects and helpers for co2mon.

A single YAML file (``--config`` or ``$CO2MON_CONFIG``) describes the poll
cadence, backoff limits, history depth and which sample source to use. The
typed :class:`MonitorConfig` dataclass (see :mod:`runtime`) is passed to the
monitor lifecycle and the GUI so both agree on the same defaults.
"""

from .runtime import CONFIG_ENV_VAR, MonitorConfig, config_from_mapping, load_config

__all__ = ["CONFIG_ENV_VAR", "MonitorConfig", "config_from_mapping", "load_config"]
