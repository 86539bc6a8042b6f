"""PyQtGraph chart showing CO2 (left axis) and TVOC (right axis) history."""

from __future__ import annotations

import numpy as np
import pyqtgraph as pg
from PySide6.QtWidgets import QVBoxLayout, QWidget

from ..core.models import Theme
from ..core.renderer import ChartSeries, render_chart
from ..core.state import ApplicationState

_PALETTE = {
    Theme.LIGHT: {"background": "w", "axis": (100, 100, 100), "co2": (30, 50, 200), "tvoc": (200, 110, 30)},
    Theme.DARK: {"background": "k", "axis": (150, 150, 150), "co2": (51, 89, 218), "tvoc": (230, 140, 50)},
}


class HistoryChartWidget(QWidget):
    """
    Draws the renderer's output; holds no data of its own beyond the last series.

    The x axis is seconds relative to the newest visible reading. Y ranges are
    the renderer's auto-scaled bounds, so the view never rescales on its own.
    """

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._plot = pg.PlotWidget(self)
        self._plot.setMenuEnabled(False)
        self._plot.setMouseEnabled(x=False, y=False)
        self._plot.hideButtons()
        self._plot.showGrid(x=True, y=True, alpha=0.2)
        self._plot.setLabel("bottom", "Time", units="s")
        self._plot.setLabel("left", "CO2", units="ppm")
        self._plot.showAxis("right")
        self._plot.setLabel("right", "TVOC", units="ppb")

        plot_item = self._plot.getPlotItem()
        self._tvoc_view = pg.ViewBox()
        plot_item.scene().addItem(self._tvoc_view)
        plot_item.getAxis("right").linkToView(self._tvoc_view)
        self._tvoc_view.setXLink(plot_item)
        self._tvoc_view.setMouseEnabled(x=False, y=False)
        plot_item.vb.sigResized.connect(self._on_view_resized)

        self._co2_curve = self._plot.plot([], [], name="CO2")
        self._tvoc_curve = pg.PlotDataItem([], [], name="TVOC")
        self._tvoc_view.addItem(self._tvoc_curve)

        self._theme: Theme | None = None
        self._last_series: ChartSeries | None = None
        self._last_state: ApplicationState | None = None
        self._margin = 0.05
        self.apply_theme(Theme.DARK)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self._plot)

    @property
    def last_series(self) -> ChartSeries | None:
        return self._last_series

    def plot_width(self) -> int:
        """Pixel width of the data area; 1 until the widget has been laid out."""
        return max(1, int(self._plot.getPlotItem().vb.width()))

    def _sync_views(self) -> None:
        plot_item = self._plot.getPlotItem()
        self._tvoc_view.setGeometry(plot_item.vb.sceneBoundingRect())
        self._tvoc_view.linkedViewChanged(plot_item.vb, self._tvoc_view.XAxis)

    def _on_view_resized(self) -> None:
        self._sync_views()
        # Decimation depends on the width, so a resize needs a fresh render.
        last = self._last_series
        if self._last_state is not None and (last is None or last.width != self.plot_width()):
            self._render(self._last_state)

    def apply_theme(self, theme: Theme) -> None:
        if theme == self._theme:
            return
        colors = _PALETTE[theme]
        self._plot.setBackground(colors["background"])
        for name in ("left", "bottom", "right"):
            axis = self._plot.getAxis(name)
            axis.setPen(pg.mkPen(colors["axis"]))
            axis.setTextPen(pg.mkPen(colors["axis"]))
        self._co2_curve.setPen(pg.mkPen(colors["co2"], width=2))
        self._tvoc_curve.setPen(pg.mkPen(colors["tvoc"], width=1.5))
        self._theme = theme

    def update_from_state(self, state: ApplicationState, *, margin: float = 0.05) -> None:
        self._last_state = state
        self._margin = margin
        self._render(state)

    def _render(self, state: ApplicationState) -> None:
        self.apply_theme(state.theme)
        series = render_chart(
            state.chart_snapshot(),
            self.plot_width(),
            window_seconds=state.window_seconds,
            margin=self._margin,
        )
        self.draw(series)

    def draw(self, series: ChartSeries) -> None:
        self._last_series = series
        if series.empty:
            # Axes only.
            self._co2_curve.setData([], [])
            self._tvoc_curve.setData([], [])
            return

        rel_t = series.timestamps - series.time_bounds.upper
        self._co2_curve.setData(rel_t, series.co2)
        self._tvoc_curve.setData(rel_t, series.tvoc)

        left = float(np.min(rel_t)) if rel_t.size else 0.0
        self._plot.setXRange(min(left, -1.0), 0.0, padding=0.0)
        self._plot.setYRange(series.co2_bounds.lower, series.co2_bounds.upper, padding=0.0)
        self._tvoc_view.setYRange(series.tvoc_bounds.lower, series.tvoc_bounds.upper, padding=0.0)
