"""
Application state and the reducer that advances it.

``reduce(state, event)`` is the single writer: every poll event and every user
intent flows through it on the event-loop thread and yields a new
:class:`ApplicationState`. The only in-place mutation is the append on the
:class:`HistoryStore` the state owns.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import singledispatch
from typing import Optional

from .history import HistorySnapshot, HistoryStore
from .models import (
    ClearHistory,
    ConnectionStatus,
    Event,
    NewReading,
    PollTimeout,
    Reading,
    Reconnected,
    RetryScheduled,
    SensorErrorKind,
    SensorFailure,
    SetPaused,
    SetTheme,
    SetTimeWindow,
    Theme,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApplicationState:
    history: HistoryStore
    latest: Optional[Reading] = None
    status: ConnectionStatus = field(default_factory=ConnectionStatus.disconnected)
    paused: bool = False
    frozen: Optional[HistorySnapshot] = None
    window_seconds: Optional[float] = None
    theme: Theme = Theme.DARK
    error_count: int = 0
    consecutive_errors: int = 0
    last_error: Optional[str] = None

    def chart_snapshot(self) -> HistorySnapshot:
        """Snapshot the chart should draw: frozen while paused, live otherwise."""
        if self.paused and self.frozen is not None:
            return self.frozen
        return self.history.snapshot()

    @property
    def title(self) -> str:
        if self.latest is None:
            return "Loading - CO2"
        if not self.status.is_connected:
            return "Error - CO2"
        return "CO2"


def initial_state(
    capacity: int,
    *,
    status: Optional[ConnectionStatus] = None,
    window_seconds: Optional[float] = None,
    theme: Theme = Theme.DARK,
    seed: tuple[Reading, ...] | list[Reading] = (),
) -> ApplicationState:
    """Build the startup state, optionally pre-filled with ``seed`` readings."""
    history = HistoryStore(capacity)
    for reading in seed:
        try:
            history.append(reading)
        except ValueError:
            logger.debug("Skipping out-of-order seed reading at t=%s", reading.timestamp)
    return ApplicationState(
        history=history,
        latest=history.latest(),
        status=status or ConnectionStatus.disconnected(),
        window_seconds=window_seconds,
        theme=theme,
    )


def reduce(state: ApplicationState, event: Event) -> ApplicationState:
    """
    ``(state, event) -> new_state``; dispatches on the event type.

    Every field is replaced except ``history``: the new state shares the
    input's :class:`HistoryStore`, and ``NewReading``/``ClearHistory``
    mutate it in place. After the call, ``state.history`` reflects the new
    state and may disagree with ``state.latest``. Keep a
    :meth:`HistoryStore.snapshot` to hold on to an earlier history.
    """
    return _apply(event, state)


@singledispatch
def _apply(event: Event, state: ApplicationState) -> ApplicationState:
    raise TypeError(f"Unhandled event type: {type(event).__name__}")


# --------------------------------------------------------------------------- poll events

@_apply.register
def _(event: NewReading, state: ApplicationState) -> ApplicationState:
    reading = event.reading
    try:
        state.history.append(reading)
    except ValueError:
        logger.debug("Ignoring reading at t=%s that is not newer than history", reading.timestamp)
        return replace(state, status=ConnectionStatus.connected(), consecutive_errors=0)
    return replace(
        state,
        latest=reading,
        status=ConnectionStatus.connected(),
        consecutive_errors=0,
    )


def _failed(state: ApplicationState, kind: SensorErrorKind, message: str) -> ApplicationState:
    return replace(
        state,
        status=ConnectionStatus.disconnected(kind),
        error_count=state.error_count + 1,
        consecutive_errors=state.consecutive_errors + 1,
        last_error=message or kind.value,
    )


@_apply.register
def _(event: SensorFailure, state: ApplicationState) -> ApplicationState:
    return _failed(state, event.kind, event.message)


@_apply.register
def _(event: PollTimeout, state: ApplicationState) -> ApplicationState:
    return _failed(state, SensorErrorKind.TIMEOUT, event.message)


@_apply.register
def _(event: Reconnected, state: ApplicationState) -> ApplicationState:
    return replace(state, status=ConnectionStatus.connected())


@_apply.register
def _(event: RetryScheduled, state: ApplicationState) -> ApplicationState:
    reason = event.reason or state.status.reason
    return replace(state, status=ConnectionStatus.reconnecting(reason, event.delay_s))


# --------------------------------------------------------------------------- user intents

@_apply.register
def _(event: SetTimeWindow, state: ApplicationState) -> ApplicationState:
    seconds = event.seconds
    if seconds is not None and seconds <= 0:
        raise ValueError("time window must be positive or None")
    return replace(state, window_seconds=seconds)


@_apply.register
def _(event: SetPaused, state: ApplicationState) -> ApplicationState:
    if event.paused == state.paused:
        return state
    frozen = state.history.snapshot() if event.paused else None
    return replace(state, paused=event.paused, frozen=frozen)


@_apply.register
def _(event: SetTheme, state: ApplicationState) -> ApplicationState:
    return replace(state, theme=Theme(event.theme))


@_apply.register
def _(event: ClearHistory, state: ApplicationState) -> ApplicationState:
    state.history.clear()
    frozen = HistorySnapshot() if state.paused else None
    return replace(state, latest=None, frozen=frozen)
