"""Bounded, time-ordered history of readings feeding the chart."""

from __future__ import annotations

import math
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Optional, overload

import numpy as np

from .models import Reading
from .ringbuffer import RingBuffer


def capacity_for_window(
    window_seconds: float, poll_interval_s: float, *, margin: float = 1.1
) -> int:
    """
    Number of readings needed to cover ``window_seconds`` when polling every
    ``poll_interval_s`` seconds, padded by ``margin``.
    """
    if poll_interval_s <= 0:
        raise ValueError("poll_interval_s must be positive")
    samples = window_seconds / poll_interval_s * margin
    return max(1, int(math.ceil(samples)))


@dataclass(frozen=True, eq=False)
class HistorySnapshot(Sequence[Reading]):
    """Immutable, consistent cut of a :class:`HistoryStore`."""

    readings: tuple[Reading, ...] = ()
    version: int = 0

    @overload
    def __getitem__(self, index: int) -> Reading: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[Reading, ...]: ...

    def __getitem__(self, index):
        return self.readings[index]

    def __len__(self) -> int:
        return len(self.readings)

    def __iter__(self) -> Iterator[Reading]:
        return iter(self.readings)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, HistorySnapshot):
            return self.readings == other.readings
        if isinstance(other, (tuple, list)):
            return list(self.readings) == list(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.readings)

    def latest(self) -> Optional[Reading]:
        return self.readings[-1] if self.readings else None

    def window(self, seconds: Optional[float]) -> HistorySnapshot:
        """Readings no older than ``seconds`` before the newest one."""
        if seconds is None or not self.readings:
            return self
        cutoff = self.readings[-1].timestamp - max(0.0, float(seconds))
        times = np.fromiter(
            (r.timestamp for r in self.readings), dtype=np.float64, count=len(self.readings)
        )
        start = int(np.searchsorted(times, cutoff, side="left"))
        if start == 0:
            return self
        return HistorySnapshot(self.readings[start:], self.version)

    def as_arrays(self) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Return ``(timestamps, co2_ppm, tvoc_ppb)`` as float64 arrays."""
        count = len(self.readings)
        if count == 0:
            empty = np.empty(0, dtype=np.float64)
            return empty, empty.copy(), empty.copy()
        times = np.fromiter((r.timestamp for r in self.readings), dtype=np.float64, count=count)
        co2 = np.fromiter((r.co2_ppm for r in self.readings), dtype=np.float64, count=count)
        tvoc = np.fromiter((r.tvoc_ppb for r in self.readings), dtype=np.float64, count=count)
        return times, co2, tvoc


class HistoryStore:
    """
    Fixed-capacity FIFO of :class:`Reading` objects.

    Only the state machine appends, always from the event-loop thread, so no
    locking is done here. Readings are immutable, hence a snapshot is a
    consistent cut as soon as the tuple is built.
    """

    __slots__ = ("_buffer", "_version")

    def __init__(self, capacity: int) -> None:
        self._buffer: RingBuffer[Reading] = RingBuffer(capacity)
        self._version = 0

    @property
    def capacity(self) -> int:
        return self._buffer.capacity

    @property
    def is_full(self) -> bool:
        return self._buffer.is_full

    @property
    def version(self) -> int:
        """Bumped on every mutation; snapshots cut at an older version are stale."""
        return self._version

    def append(self, reading: Reading) -> None:
        last = self._buffer.peek_last()
        if last is not None and reading.timestamp <= last.timestamp:
            raise ValueError(
                f"reading at t={reading.timestamp} is not newer than t={last.timestamp}"
            )
        self._buffer.append(reading)
        self._version += 1

    def latest(self) -> Optional[Reading]:
        return self._buffer.peek_last()

    def snapshot(self) -> HistorySnapshot:
        return HistorySnapshot(self._buffer.to_tuple(), self._version)

    def clear(self) -> None:
        self._buffer.clear()
        self._version += 1

    def __len__(self) -> int:
        return len(self._buffer)

    def __repr__(self) -> str:
        return f"HistoryStore(len={len(self)}, capacity={self.capacity})"
