"""
Start/stop lifecycle for the acquisition pipeline.

``start()`` wires a sample source to a :class:`Poller` running on a background
thread. Poll events cross into the caller's event loop through a bounded FIFO
queue; :meth:`MonitorHandle.process_pending` drains that queue on the loop
thread and folds each event through :func:`~co2mon.core.state.reduce`, so the
loop thread is the only writer of application state.
"""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional

from .models import Event, PollEvent, Reading, Theme, UserIntent
from .poller import BackoffPolicy, Poller
from .renderer import ChartSeries, render_chart
from .state import ApplicationState, initial_state, reduce
from ..config.runtime import MonitorConfig

if TYPE_CHECKING:
    from ..sources.base import SampleSource

logger = logging.getLogger(__name__)

StateListener = Callable[[ApplicationState], None]

# How long a producer waits per attempt on a full queue before rechecking stop.
_PUT_RETRY_S = 0.1


class MonitorHandle:
    """Owns the poller, the event queue and the current :class:`ApplicationState`."""

    def __init__(
        self,
        source: SampleSource,
        config: MonitorConfig,
        *,
        seed_history: Iterable[Reading] = (),
    ) -> None:
        self._source = source
        self._config = config
        self._events: queue.Queue[PollEvent] = queue.Queue(maxsize=config.event_queue_size)
        self._state = initial_state(
            config.history_capacity,
            window_seconds=config.window_seconds,
            theme=Theme(config.theme),
            seed=list(seed_history),
        )
        self._listeners: List[StateListener] = []
        self._stopping = threading.Event()
        self._poller = Poller(
            source,
            self._enqueue,
            interval_s=config.poll_interval_s,
            timeout_s=config.fetch_timeout_s,
            backoff=BackoffPolicy(
                nominal_s=config.poll_interval_s,
                failure_threshold=config.backoff_threshold,
                factor=config.backoff_factor,
                max_s=config.max_backoff_s,
            ),
        )

    # ----------------------------------------------------------------- accessors
    @property
    def state(self) -> ApplicationState:
        """Current state; treat as read-only for the duration of a render pass."""
        return self._state

    @property
    def config(self) -> MonitorConfig:
        return self._config

    @property
    def poller(self) -> Poller:
        return self._poller

    @property
    def running(self) -> bool:
        return self._poller.is_alive() and not self._stopping.is_set()

    def pending_events(self) -> int:
        return self._events.qsize()

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener(state)`` after each applied batch or intent; returns an unsubscribe."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def render(self, width: int) -> ChartSeries:
        """Chart series for the current state at ``width`` pixels."""
        state = self._state
        return render_chart(
            state.chart_snapshot(),
            width,
            window_seconds=state.window_seconds,
            margin=self._config.chart_margin,
        )

    # --------------------------------------------------------------- event loop
    def _enqueue(self, event: PollEvent) -> None:
        """Producer side, runs on the poller thread. Blocks while the queue is full."""
        while not self._stopping.is_set():
            try:
                self._events.put(event, timeout=_PUT_RETRY_S)
                return
            except queue.Full:
                continue

    def process_pending(self, max_events: Optional[int] = None) -> int:
        """
        Apply queued poll events in arrival order on the calling thread.

        Returns the number of events applied. Listeners are notified once if
        anything was applied.
        """
        applied = 0
        while max_events is None or applied < max_events:
            try:
                event = self._events.get_nowait()
            except queue.Empty:
                break
            self._apply(event)
            applied += 1
        if applied:
            logger.debug("Applied poll events", extra={"events": applied})
            self._notify()
        return applied

    def dispatch(self, intent: UserIntent) -> ApplicationState:
        """Fold a user intent through the reducer; call from the event-loop thread."""
        self._apply(intent)
        self._notify()
        return self._state

    def _apply(self, event: Event) -> None:
        previous = self._state.status
        self._state = reduce(self._state, event)
        current = self._state.status
        if current != previous:
            logger.info("Connection status: %s -> %s", previous.label, current.label)

    def _notify(self) -> None:
        state = self._state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener %r failed", listener)

    # ---------------------------------------------------------------- lifecycle
    def _start(self) -> None:
        self._stopping.clear()
        self._poller.start()

    def _stop(self, timeout: Optional[float]) -> None:
        if self._stopping.is_set():
            return
        self._stopping.set()
        self._poller.stop(join=True, timeout=timeout)
        try:
            self._source.close()
        except Exception:
            logger.exception("Failed to close sample source")


def start(
    sample_source: SampleSource,
    poll_interval: Optional[float] = None,
    *,
    config: Optional[MonitorConfig] = None,
    seed_history: Iterable[Reading] = (),
) -> MonitorHandle:
    """
    Build the pipeline and start polling ``sample_source``.

    ``poll_interval`` overrides ``config.poll_interval_s`` when given.
    """
    cfg = config or MonitorConfig()
    if poll_interval is not None:
        cfg = replace(cfg, poll_interval_s=float(poll_interval))
    cfg = cfg.sanitized()
    handle = MonitorHandle(sample_source, cfg, seed_history=seed_history)
    logger.info(
        "Starting monitor", extra={"capacity": cfg.history_capacity, "source": cfg.source}
    )
    handle._start()
    return handle


def stop(handle: MonitorHandle, *, timeout: Optional[float] = 2.0) -> None:
    """Stop polling; no further events are queued once this returns."""
    handle._stop(timeout)
    logger.info("Monitor stopped")


__all__ = ["MonitorHandle", "start", "stop"]
