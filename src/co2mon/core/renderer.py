"""Pure conversion from a history snapshot to plot-ready CO2/TVOC series.

Nothing here keeps state between calls: the same snapshot and width always
produce identical arrays, so re-rendering unchanged data is pixel-stable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from .models import Reading
from ..tools.debug import time_block

DEFAULT_MARGIN = 0.05
# Span used when every value in the window is identical.
FLAT_SERIES_PAD = 1.0


@dataclass(frozen=True)
class AxisBounds:
    lower: float
    upper: float

    @property
    def span(self) -> float:
        return self.upper - self.lower


def _empty() -> np.ndarray:
    return np.empty(0, dtype=np.float64)


@dataclass(frozen=True, eq=False)
class ChartSeries:
    """
    Drawable chart data.

    ``x`` holds pixel columns in ``[0, width - 1]``; ``co2_y``/``tvoc_y`` are
    normalised to ``[0, 1]`` (0 at the bottom) against their own axis bounds.
    ``timestamps``, ``co2`` and ``tvoc`` keep the (possibly decimated) data
    values for labels and tooltips.
    """

    width: int
    x: np.ndarray = field(default_factory=_empty)
    co2_y: np.ndarray = field(default_factory=_empty)
    tvoc_y: np.ndarray = field(default_factory=_empty)
    timestamps: np.ndarray = field(default_factory=_empty)
    co2: np.ndarray = field(default_factory=_empty)
    tvoc: np.ndarray = field(default_factory=_empty)
    time_bounds: Optional[AxisBounds] = None
    co2_bounds: Optional[AxisBounds] = None
    tvoc_bounds: Optional[AxisBounds] = None
    decimated: bool = False

    @property
    def empty(self) -> bool:
        return self.x.size == 0

    def __len__(self) -> int:
        return int(self.x.size)

    def to_pixels(self, height: int) -> tuple[np.ndarray, np.ndarray]:
        """Pixel rows for both series with row 0 at the top, as screens expect."""
        scale = max(0, int(height) - 1)
        return (1.0 - self.co2_y) * scale, (1.0 - self.tvoc_y) * scale

    def same_as(self, other: ChartSeries) -> bool:
        """Array-wise equality (dataclass ``==`` is ambiguous on numpy arrays)."""
        arrays = ("x", "co2_y", "tvoc_y", "timestamps", "co2", "tvoc")
        return (
            self.width == other.width
            and self.time_bounds == other.time_bounds
            and self.co2_bounds == other.co2_bounds
            and self.tvoc_bounds == other.tvoc_bounds
            and all(np.array_equal(getattr(self, a), getattr(other, a)) for a in arrays)
        )


def bucket_edges(count: int, buckets: int) -> np.ndarray:
    """Deterministic split of ``count`` items into ``buckets`` contiguous runs."""
    return np.floor(np.linspace(0, count, buckets + 1)).astype(np.int64)


def decimate_mean(values: np.ndarray, buckets: int) -> np.ndarray:
    """
    Average ``values`` over ``buckets`` contiguous, nearly equal-sized runs.

    Returns ``values`` unchanged when it already fits.
    """
    values = np.asarray(values, dtype=np.float64)
    n = values.size
    if buckets <= 0:
        return _empty()
    if n <= buckets:
        return values
    edges = bucket_edges(n, buckets)
    starts = edges[:-1]
    counts = np.diff(edges)
    sums = np.add.reduceat(values, starts)
    return sums / counts


def axis_bounds(values: np.ndarray, margin: float = DEFAULT_MARGIN) -> AxisBounds:
    lo = float(np.min(values))
    hi = float(np.max(values))
    span = hi - lo
    if span <= 0.0:
        return AxisBounds(lo - FLAT_SERIES_PAD, hi + FLAT_SERIES_PAD)
    pad = span * max(0.0, float(margin))
    return AxisBounds(lo - pad, hi + pad)


def _normalise(values: np.ndarray, bounds: AxisBounds) -> np.ndarray:
    return (values - bounds.lower) / bounds.span


def render_chart(
    snapshot: Sequence[Reading],
    width: int,
    *,
    window_seconds: Optional[float] = None,
    margin: float = DEFAULT_MARGIN,
) -> ChartSeries:
    """
    Map ``snapshot`` onto a chart ``width`` pixels wide.

    Parameters
    ----------
    snapshot:
        Time-ordered readings, typically a :class:`HistorySnapshot`.
    width:
        Target width in pixels; also the maximum number of points returned.
    window_seconds:
        Only readings within this many seconds of the newest one are drawn.
        ``None`` draws everything.
    margin:
        Fraction of each series' span added above and below its min/max.
    """
    width = int(width)
    if width < 1 or len(snapshot) == 0:
        return ChartSeries(width=max(0, width))

    with time_block(f"render_chart n={len(snapshot)} width={width}"):
        if window_seconds is not None and hasattr(snapshot, "window"):
            snapshot = snapshot.window(window_seconds)
        if hasattr(snapshot, "as_arrays"):
            times, co2, tvoc = snapshot.as_arrays()
        else:
            count = len(snapshot)
            times = np.fromiter((r.timestamp for r in snapshot), dtype=np.float64, count=count)
            co2 = np.fromiter((r.co2_ppm for r in snapshot), dtype=np.float64, count=count)
            tvoc = np.fromiter((r.tvoc_ppb for r in snapshot), dtype=np.float64, count=count)
            if window_seconds is not None:
                keep = times >= times[-1] - max(0.0, float(window_seconds))
                times, co2, tvoc = times[keep], co2[keep], tvoc[keep]

        time_bounds = AxisBounds(float(times[0]), float(times[-1]))
        # Bounds come from the raw window so decimation never clips extremes.
        co2_bounds = axis_bounds(co2, margin)
        tvoc_bounds = axis_bounds(tvoc, margin)

        decimated = times.size > width
        if decimated:
            times = decimate_mean(times, width)
            co2 = decimate_mean(co2, width)
            tvoc = decimate_mean(tvoc, width)

        if time_bounds.span > 0.0:
            x = (times - time_bounds.lower) / time_bounds.span * (width - 1)
        else:
            x = np.zeros_like(times)

        return ChartSeries(
            width=width,
            x=x,
            co2_y=_normalise(co2, co2_bounds),
            tvoc_y=_normalise(tvoc, tvoc_bounds),
            timestamps=times,
            co2=co2,
            tvoc=tvoc,
            time_bounds=time_bounds,
            co2_bounds=co2_bounds,
            tvoc_bounds=tvoc_bounds,
            decimated=decimated,
        )
