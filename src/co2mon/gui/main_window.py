"""Main window for the co2mon GUI."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from PySide6.QtCore import Qt, Slot
from PySide6.QtGui import QCloseEvent, QFont
from PySide6.QtWidgets import (
    QButtonGroup,
    QCheckBox,
    QComboBox,
    QFormLayout,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QRadioButton,
    QVBoxLayout,
    QWidget,
)

from ..core.models import LinkState, Theme
from ..core.state import ApplicationState
from .chart_widget import HistoryChartWidget
from .monitor_bridge import MonitorBridge

# (label, seconds) choices for the visible time window; None shows all history.
WINDOW_CHOICES: tuple[tuple[str, Optional[float]], ...] = (
    ("All history", None),
    ("Last 5 min", 300.0),
    ("Last 15 min", 900.0),
    ("Last hour", 3600.0),
)

_BANNER_STYLES = {
    LinkState.CONNECTED: "background-color: #2e7d32; color: white;",
    LinkState.DISCONNECTED: "background-color: #c62828; color: white;",
    LinkState.RECONNECTING: "background-color: #ef6c00; color: white;",
}


def _format_time(timestamp: float) -> str:
    # Monotonic clocks produce small values; only epoch stamps are dates.
    if timestamp > 1e9:
        return datetime.fromtimestamp(timestamp).strftime("%m-%d %H:%M:%S")
    return f"t={timestamp:.1f} s"


class MainWindow(QMainWindow):
    """Current readings, connection banner and history chart."""

    def __init__(self, bridge: MonitorBridge, *, chart_margin: float = 0.05) -> None:
        super().__init__()
        self.setWindowTitle("CO2")
        self._bridge = bridge
        self._chart_margin = chart_margin
        self._logger = logging.getLogger(__name__)

        self._build_ui()
        self._bridge.state_changed.connect(self.render_state)

    # ------------------------------------------------------------------ layout
    def _build_ui(self) -> None:
        bold = QFont()
        bold.setBold(True)

        self._co2_label = QLabel("-")
        self._tvoc_label = QLabel("-")
        self._quality_label = QLabel("-")
        self._sensor_status_label = QLabel("-")
        self._updated_label = QLabel("-")
        values = QFormLayout()
        for caption, widget in (
            ("CO2:", self._co2_label),
            ("TVOC:", self._tvoc_label),
            ("Quality index:", self._quality_label),
            ("Status:", self._sensor_status_label),
            ("Time updated:", self._updated_label),
        ):
            label = QLabel(caption)
            label.setFont(bold)
            values.addRow(label, widget)

        self._window_combo = QComboBox()
        for text, seconds in WINDOW_CHOICES:
            self._window_combo.addItem(text, seconds)
        self._window_combo.currentIndexChanged.connect(self._on_window_changed)

        self._pause_box = QCheckBox(self.tr("Pause chart"))
        self._pause_box.toggled.connect(self._bridge.set_paused)

        self._clear_button = QPushButton(self.tr("Clear history"))
        self._clear_button.clicked.connect(self._bridge.clear_history)

        self._theme_group = QButtonGroup(self)
        theme_row = QHBoxLayout()
        theme_row.addWidget(QLabel(self.tr("Choose a theme:")))
        for theme in Theme:
            button = QRadioButton(theme.value.capitalize())
            button.setProperty("theme", theme.value)
            self._theme_group.addButton(button)
            theme_row.addWidget(button)
        self._theme_group.buttonClicked.connect(
            lambda button: self._bridge.set_theme(button.property("theme"))
        )

        controls = QVBoxLayout()
        controls.addWidget(self._window_combo)
        controls.addWidget(self._pause_box)
        controls.addWidget(self._clear_button)
        controls.addLayout(theme_row)
        controls.addStretch(1)

        top = QHBoxLayout()
        top.addLayout(values)
        top.addSpacing(16)
        top.addLayout(controls)
        top.addStretch(1)

        self._banner = QLabel()
        self._banner.setAlignment(Qt.AlignCenter)
        self._banner.setMargin(4)

        self._chart = HistoryChartWidget(self)

        container = QWidget()
        layout = QVBoxLayout(container)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(16)
        layout.addWidget(self._banner)
        layout.addLayout(top)
        layout.addWidget(self._chart, 1)
        self.setCentralWidget(container)

    # ----------------------------------------------------------------- render
    @Slot(object)
    def render_state(self, state: ApplicationState) -> None:
        self.setWindowTitle(state.title)

        status = state.status
        self._banner.setText(status.label)
        self._banner.setStyleSheet(_BANNER_STYLES[status.state])
        if state.last_error and not status.is_connected:
            self._banner.setToolTip(state.last_error)
        else:
            self._banner.setToolTip("")

        latest = state.latest
        if latest is None:
            for label in (self._co2_label, self._tvoc_label, self._quality_label,
                          self._sensor_status_label, self._updated_label):
                label.setText("-")
        else:
            self._co2_label.setText(f"{latest.co2_ppm:.0f} ppm")
            self._tvoc_label.setText(f"{latest.tvoc_ppb:.0f} ppb")
            self._quality_label.setText(latest.quality.label)
            self._sensor_status_label.setText(latest.sensor_status.label)
            self._updated_label.setText(_format_time(latest.timestamp))

        self._sync_controls(state)
        self._chart.update_from_state(state, margin=self._chart_margin)

    def _sync_controls(self, state: ApplicationState) -> None:
        for button in self._theme_group.buttons():
            if button.property("theme") == state.theme.value and not button.isChecked():
                button.setChecked(True)
        if self._pause_box.isChecked() != state.paused:
            self._pause_box.blockSignals(True)
            self._pause_box.setChecked(state.paused)
            self._pause_box.blockSignals(False)
        index = self._window_combo.findData(state.window_seconds)
        if index >= 0 and index != self._window_combo.currentIndex():
            self._window_combo.blockSignals(True)
            self._window_combo.setCurrentIndex(index)
            self._window_combo.blockSignals(False)

    @Slot(int)
    def _on_window_changed(self, index: int) -> None:
        seconds = self._window_combo.itemData(index)
        self._logger.info("Chart window set to %s", self._window_combo.itemText(index))
        self._bridge.set_time_window(seconds)

    def closeEvent(self, event: QCloseEvent) -> None:
        self._bridge.shutdown()
        super().closeEvent(event)
