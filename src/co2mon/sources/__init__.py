"""Sample sources: the boundary between the monitor and the physical sensor.

Every source implements :class:`~co2mon.sources.base.SampleSource`, a single
``fetch(timeout)`` call that returns a :class:`~co2mon.core.models.Reading`
or raises :class:`~co2mon.core.models.SensorError`. :func:`create_source`
builds the one named in a :class:`~co2mon.config.MonitorConfig`.
"""

from __future__ import annotations

from .base import SampleSource, create_source
from .http_source import HttpSampleSource, parse_payload
from .synthetic import SyntheticSampleSource

__all__ = [
    "SampleSource",
    "create_source",
    "HttpSampleSource",
    "parse_payload",
    "SyntheticSampleSource",
]
