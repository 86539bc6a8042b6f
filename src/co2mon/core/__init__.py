"""Core acquisition pipeline: readings, history, poller, reducer and chart.

Nothing in this package imports Qt. The GUI (and any headless caller) drives
it through :func:`start`/:func:`stop` and the returned
:class:`MonitorHandle`, draining poll events on its own event loop.
"""

# Data model
from .models import (
    ClearHistory,
    ConnectionStatus,
    LinkState,
    NewReading,
    PollTimeout,
    QualityIndex,
    Reading,
    Reconnected,
    RetryScheduled,
    SensorError,
    SensorErrorKind,
    SensorFailure,
    SensorStatus,
    SetPaused,
    SetTheme,
    SetTimeWindow,
    Theme,
)
from .history import HistorySnapshot, HistoryStore, capacity_for_window

# Pipeline stages
from .poller import BackoffPolicy, Poller
from .renderer import AxisBounds, ChartSeries, render_chart
from .state import ApplicationState, initial_state, reduce
from .monitor import MonitorHandle, start, stop

__all__ = [
    "ApplicationState",
    "AxisBounds",
    "BackoffPolicy",
    "ChartSeries",
    "ClearHistory",
    "ConnectionStatus",
    "HistorySnapshot",
    "HistoryStore",
    "LinkState",
    "MonitorHandle",
    "NewReading",
    "PollTimeout",
    "Poller",
    "QualityIndex",
    "Reading",
    "Reconnected",
    "RetryScheduled",
    "SensorError",
    "SensorErrorKind",
    "SensorFailure",
    "SensorStatus",
    "SetPaused",
    "SetTheme",
    "SetTimeWindow",
    "Theme",
    "capacity_for_window",
    "initial_state",
    "reduce",
    "render_chart",
    "start",
    "stop",
]
