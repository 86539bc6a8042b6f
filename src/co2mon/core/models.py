"""Shared dataclasses for readings, connection status and poll events."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional, Union


class QualityIndex(IntEnum):
    """Air-quality classification reported alongside each sample."""

    UNKNOWN = 0
    EXCELLENT = 1
    GOOD = 2
    MODERATE = 3
    POOR = 4
    UNHEALTHY = 5

    @property
    def label(self) -> str:
        return self.name.capitalize()


class SensorStatus(IntEnum):
    NORMAL = 0
    WARMUP = 1
    STARTUP = 2
    INVALID = 3

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    SensorStatus.NORMAL: "Normal operation",
    SensorStatus.WARMUP: "Warm-up",
    SensorStatus.STARTUP: "Initial startup",
    SensorStatus.INVALID: "Invalid output",
}


class SensorErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"
    IO_ERROR = "io_error"


class SensorError(Exception):
    """Raised by a sample source when a reading cannot be produced."""

    def __init__(self, kind: SensorErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = SensorErrorKind(kind)


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


@dataclass(frozen=True, slots=True)
class Reading:
    """One timestamped CO2/TVOC measurement.

    ``timestamp`` is in seconds; sources pick the clock (monotonic or
    epoch) but must keep it increasing.
    """

    timestamp: float
    co2_ppm: float
    tvoc_ppb: float
    quality: QualityIndex = QualityIndex.UNKNOWN
    sensor_status: SensorStatus = SensorStatus.NORMAL

    def __post_init__(self) -> None:
        for name in ("timestamp", "co2_ppm", "tvoc_ppb"):
            value = getattr(self, name)
            if not math.isfinite(float(value)):
                raise ValueError(f"{name} must be finite, got {value!r}")
        if self.co2_ppm < 0 or self.tvoc_ppb < 0:
            raise ValueError(
                f"concentrations must be >= 0 (co2={self.co2_ppm}, tvoc={self.tvoc_ppb})"
            )


class LinkState(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RECONNECTING = "reconnecting"


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    state: LinkState
    reason: Optional[SensorErrorKind] = None
    retry_in_s: Optional[float] = None

    @classmethod
    def connected(cls) -> ConnectionStatus:
        return cls(LinkState.CONNECTED)

    @classmethod
    def disconnected(cls, reason: Optional[SensorErrorKind] = None) -> ConnectionStatus:
        return cls(LinkState.DISCONNECTED, reason=reason)

    @classmethod
    def reconnecting(
        cls, reason: Optional[SensorErrorKind], retry_in_s: float
    ) -> ConnectionStatus:
        return cls(LinkState.RECONNECTING, reason=reason, retry_in_s=float(retry_in_s))

    @property
    def is_connected(self) -> bool:
        return self.state is LinkState.CONNECTED

    @property
    def label(self) -> str:
        """Short text for the status banner."""
        if self.state is LinkState.CONNECTED:
            return "Connected"
        reason = f" ({self.reason.value.replace('_', ' ')})" if self.reason else ""
        if self.state is LinkState.RECONNECTING:
            return f"Reconnecting in {self.retry_in_s:.0f} s{reason}"
        return f"Disconnected{reason}"


# ---------------------------------------------------------------------------
# Poll events
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class NewReading:
    reading: Reading


@dataclass(frozen=True, slots=True)
class SensorFailure:
    kind: SensorErrorKind
    message: str = ""


@dataclass(frozen=True, slots=True)
class PollTimeout:
    message: str = ""


@dataclass(frozen=True, slots=True)
class Reconnected:
    pass


@dataclass(frozen=True, slots=True)
class RetryScheduled:
    delay_s: float
    reason: Optional[SensorErrorKind] = None


PollEvent = Union[NewReading, SensorFailure, PollTimeout, Reconnected, RetryScheduled]


# ---------------------------------------------------------------------------
# User intents
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class SetTimeWindow:
    seconds: Optional[float]


@dataclass(frozen=True, slots=True)
class SetPaused:
    paused: bool


@dataclass(frozen=True, slots=True)
class SetTheme:
    theme: Theme


@dataclass(frozen=True, slots=True)
class ClearHistory:
    pass


UserIntent = Union[SetTimeWindow, SetPaused, SetTheme, ClearHistory]
Event = Union[PollEvent, UserIntent]
