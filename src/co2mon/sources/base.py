from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ..core.models import Reading

if TYPE_CHECKING:
    from ..config.runtime import MonitorConfig


@runtime_checkable
class SampleSource(Protocol):
    """Anything that can produce one reading, blocking for at most ``timeout`` seconds."""

    def fetch(self, timeout: float) -> Reading:
        """Return the newest reading or raise :class:`SensorError`."""
        ...

    def close(self) -> None:
        ...


def create_source(config: MonitorConfig) -> SampleSource:
    """Instantiate the source selected by ``config.source``."""
    kind = config.source
    if kind == "http":
        if not config.source_url:
            raise ValueError("source 'http' requires source_url")
        from .http_source import HttpSampleSource

        return HttpSampleSource(config.source_url)
    if kind == "synthetic":
        from .synthetic import SyntheticSampleSource

        return SyntheticSampleSource()
    raise ValueError(f"Unknown source kind: {kind!r}")
