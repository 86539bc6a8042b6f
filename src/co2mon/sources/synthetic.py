"""Synthetic sample source for demos, benchmarks and tests (no sensor attached)."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import numpy as np

from ..core.models import QualityIndex, Reading, SensorError, SensorErrorKind

# AQI bands by CO2 ppm: upper bound (exclusive) -> index.
_CO2_BANDS = (
    (600.0, QualityIndex.EXCELLENT),
    (800.0, QualityIndex.GOOD),
    (1000.0, QualityIndex.MODERATE),
    (1500.0, QualityIndex.POOR),
)


def quality_for_co2(co2_ppm: float) -> QualityIndex:
    for upper, index in _CO2_BANDS:
        if co2_ppm < upper:
            return index
    return QualityIndex.UNHEALTHY


class SyntheticSampleSource:
    """
    Mean-reverting random walk around indoor CO2/TVOC levels.

    ``failure_rate`` injects :class:`SensorError` outcomes, ``latency_s``
    simulates a slow transport. The generator is seeded, so two sources with
    the same seed produce the same sequence.
    """

    def __init__(
        self,
        *,
        seed: Optional[int] = 0,
        base_co2: float = 650.0,
        base_tvoc: float = 120.0,
        failure_rate: float = 0.0,
        latency_s: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be within [0, 1]")
        self._rng = np.random.default_rng(seed)
        self._base_co2 = float(base_co2)
        self._base_tvoc = float(base_tvoc)
        self._co2 = float(base_co2)
        self._tvoc = float(base_tvoc)
        self._failure_rate = float(failure_rate)
        self._latency_s = max(0.0, float(latency_s))
        self._clock = clock
        self._last_ts: Optional[float] = None
        self._lock = threading.Lock()
        self.fetch_count = 0

    def close(self) -> None:
        pass

    def fetch(self, timeout: float) -> Reading:
        if self._latency_s:
            if self._latency_s > timeout:
                time.sleep(timeout)
                raise SensorError(SensorErrorKind.TIMEOUT, "synthetic sensor too slow")
            time.sleep(self._latency_s)

        with self._lock:
            self.fetch_count += 1
            if self._failure_rate and self._rng.random() < self._failure_rate:
                kinds = (SensorErrorKind.IO_ERROR, SensorErrorKind.PARSE_ERROR)
                raise SensorError(kinds[int(self._rng.integers(len(kinds)))], "injected failure")

            self._co2 += 0.1 * (self._base_co2 - self._co2) + float(self._rng.normal(0.0, 12.0))
            self._tvoc += 0.1 * (self._base_tvoc - self._tvoc) + float(self._rng.normal(0.0, 6.0))
            self._co2 = max(400.0, self._co2)
            self._tvoc = max(0.0, self._tvoc)

            ts = float(self._clock())
            if self._last_ts is not None and ts <= self._last_ts:
                ts = self._last_ts + 1e-6
            self._last_ts = ts

            return Reading(
                timestamp=ts,
                co2_ppm=round(self._co2, 1),
                tvoc_ppb=round(self._tvoc, 1),
                quality=quality_for_co2(self._co2),
            )
