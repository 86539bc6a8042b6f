"""Qt adapter that drains poll events on the GUI thread and re-emits state."""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal, Slot

from ..core.models import ClearHistory, SetPaused, SetTheme, SetTimeWindow, Theme
from ..core.monitor import MonitorHandle, stop
from ..core.state import ApplicationState

logger = logging.getLogger(__name__)


class MonitorBridge(QObject):
    """Non-visual controller between a :class:`MonitorHandle` and the widgets.

    A QTimer on the GUI thread calls :meth:`MonitorHandle.process_pending`, so
    the reducer always runs on the Qt event loop and widgets only ever see
    finished states through :attr:`state_changed`.
    """

    state_changed = Signal(object)  # ApplicationState
    stopped = Signal()

    def __init__(
        self,
        handle: MonitorHandle,
        *,
        refresh_interval_ms: int = 100,
        max_events_per_tick: Optional[int] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._handle = handle
        self._max_events = max_events_per_tick
        self._timer = QTimer(self)
        self._timer.setInterval(max(1, int(refresh_interval_ms)))
        self._timer.timeout.connect(self._on_tick)
        self._unsubscribe = handle.subscribe(self.state_changed.emit)
        self._shut_down = False

    @property
    def handle(self) -> MonitorHandle:
        return self._handle

    @property
    def state(self) -> ApplicationState:
        return self._handle.state

    def start(self) -> None:
        self._timer.start()
        self.state_changed.emit(self._handle.state)

    @Slot()
    def shutdown(self) -> None:
        """Stop the timer and the poller; safe to call more than once."""
        if self._shut_down:
            return
        self._shut_down = True
        self._timer.stop()
        self._unsubscribe()
        try:
            stop(self._handle)
        except Exception:  # pragma: no cover - best-effort shutdown
            logger.exception("Failed to stop monitor")
        self.stopped.emit()

    @Slot()
    def _on_tick(self) -> None:
        self._handle.process_pending(self._max_events)

    # ------------------------------------------------------------------ intents
    @Slot(object)
    def set_time_window(self, seconds: Optional[float]) -> None:
        self._handle.dispatch(SetTimeWindow(seconds))

    @Slot(bool)
    def set_paused(self, paused: bool) -> None:
        self._handle.dispatch(SetPaused(bool(paused)))

    @Slot(str)
    def set_theme(self, theme: str) -> None:
        self._handle.dispatch(SetTheme(Theme(theme)))

    @Slot()
    def clear_history(self) -> None:
        self._handle.dispatch(ClearHistory())
