"""
Background driver that polls a sample source on a fixed cadence and reports
each outcome as a :data:`~co2mon.core.models.PollEvent`.

The poller never touches application state: every outcome is handed to a
``sink`` callable (normally ``queue.Queue.put`` wrapped by the monitor) so
the event loop remains the only writer.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

from .models import (
    NewReading,
    PollEvent,
    PollTimeout,
    Reading,
    Reconnected,
    RetryScheduled,
    SensorError,
    SensorErrorKind,
    SensorFailure,
)

if TYPE_CHECKING:
    from ..sources.base import SampleSource

logger = logging.getLogger(__name__)

# Extra time granted on top of the fetch timeout before the call is abandoned,
# so a source that honours its own timeout gets to report it first.
FETCH_GRACE_S = 0.25

EventSink = Callable[[PollEvent], None]


@dataclass
class BackoffPolicy:
    """
    Exponential retry widening after repeated failures.

    Below ``failure_threshold`` consecutive failures the nominal interval is
    kept; from the threshold on the interval doubles (``factor``) per failure
    up to ``max_s``. Any success resets to nominal.
    """

    nominal_s: float
    failure_threshold: int = 3
    factor: float = 2.0
    max_s: float = 60.0
    consecutive_failures: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.nominal_s <= 0:
            raise ValueError("nominal_s must be positive")
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.factor < 1.0:
            raise ValueError("factor must be >= 1.0")
        self.max_s = max(float(self.max_s), float(self.nominal_s))

    @property
    def engaged(self) -> bool:
        return self.consecutive_failures >= self.failure_threshold

    @property
    def current_interval_s(self) -> float:
        if not self.engaged:
            return self.nominal_s
        exponent = self.consecutive_failures - self.failure_threshold + 1
        # Cap the exponent so huge failure streaks cannot overflow the float.
        widened = self.nominal_s * self.factor ** min(exponent, 64)
        return min(self.max_s, widened)

    def record_failure(self) -> float:
        """Count one failure and return the interval until the next attempt."""
        self.consecutive_failures += 1
        return self.current_interval_s

    def record_success(self) -> bool:
        """Reset the streak; return True if this success ended a failure run."""
        recovered = self.consecutive_failures > 0
        self.consecutive_failures = 0
        return recovered


class Poller:
    """Periodically call ``source.fetch`` and emit one or more events per cycle."""

    def __init__(
        self,
        source: SampleSource,
        sink: EventSink,
        *,
        interval_s: float = 2.0,
        timeout_s: float = 5.0,
        backoff: Optional[BackoffPolicy] = None,
        thread_name: str = "Co2MonPoller",
    ) -> None:
        if interval_s <= 0:
            raise ValueError("interval_s must be positive")
        if timeout_s <= 0:
            raise ValueError("timeout_s must be positive")
        self._source = source
        self._sink = sink
        self._timeout_s = float(timeout_s)
        self._backoff = backoff or BackoffPolicy(nominal_s=float(interval_s))
        self._thread_name = thread_name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        # Result slot of the latest fetch; still running while the transport hangs.
        self._pending: Optional[Future] = None

    # ------------------------------------------------------------------ state
    @property
    def backoff(self) -> BackoffPolicy:
        return self._backoff

    @property
    def next_interval_s(self) -> float:
        return self._backoff.current_interval_s

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # --------------------------------------------------------------- lifecycle
    def start(self) -> None:
        if self.is_alive():
            logger.debug("Poller already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self._thread_name, daemon=True)
        self._thread.start()
        logger.info("Poller started (interval %.2f s, timeout %.2f s)",
                    self._backoff.nominal_s, self._timeout_s)

    def stop(self, *, join: bool = True, timeout: Optional[float] = None) -> None:
        """
        Signal the loop to exit.

        An in-flight fetch is abandoned, not awaited: it runs on a daemon
        thread, so it neither delays this call nor keeps the process alive.
        """
        self._stop_event.set()
        if join and self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)
        logger.info("Poller stopped")

    @property
    def fetch_in_flight(self) -> bool:
        """True while an abandoned fetch is still blocked in the source."""
        return self._pending is not None and not self._pending.done()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            delay = self.poll_once()
            # Event.wait returns early on stop, so shutdown is not delayed by backoff.
            if self._stop_event.wait(delay):
                break

    # ------------------------------------------------------------------- cycle
    def poll_once(self) -> float:
        """Run one fetch cycle, emit its events and return the delay before the next."""
        if self._stop_event.is_set():
            return 0.0
        try:
            reading = self._fetch()
        except SensorError as exc:
            if exc.kind is SensorErrorKind.TIMEOUT:
                return self._on_failure(PollTimeout(str(exc)), exc.kind)
            return self._on_failure(SensorFailure(exc.kind, str(exc)), exc.kind)
        except FutureTimeout:
            return self._on_failure(
                PollTimeout(f"no reading within {self._timeout_s:.1f} s"),
                SensorErrorKind.TIMEOUT,
            )
        except Exception as exc:
            if self._stop_event.is_set():
                return 0.0
            logger.exception("Unexpected error from sample source")
            return self._on_failure(
                SensorFailure(SensorErrorKind.IO_ERROR, repr(exc)),
                SensorErrorKind.IO_ERROR,
            )

        if self._backoff.record_success():
            logger.info("Sensor reachable again")
            self._emit(Reconnected())
        self._emit(NewReading(reading))
        return self._backoff.current_interval_s

    def _fetch(self) -> Reading:
        if self.fetch_in_flight:
            # At most one call sits in the source; a stuck one keeps timing out.
            raise SensorError(
                SensorErrorKind.TIMEOUT,
                f"previous fetch still blocked after {self._timeout_s:.1f} s",
            )
        future: Future = Future()
        future.set_running_or_notify_cancel()
        self._pending = future
        worker = threading.Thread(
            target=self._fetch_into,
            args=(future,),
            name=f"{self._thread_name}Fetch",
            daemon=True,
        )
        worker.start()
        # Raises FutureTimeout if the source overruns; the worker is left behind.
        reading = future.result(timeout=self._timeout_s + FETCH_GRACE_S)
        if not isinstance(reading, Reading):
            raise SensorError(
                SensorErrorKind.PARSE_ERROR,
                f"source returned {type(reading).__name__}, expected Reading",
            )
        return reading

    def _fetch_into(self, future: Future) -> None:
        try:
            result = self._source.fetch(self._timeout_s)
        except Exception as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)

    def _on_failure(self, event: PollEvent, kind: SensorErrorKind) -> float:
        was_engaged = self._backoff.engaged
        delay = self._backoff.record_failure()
        logger.warning(
            "Sensor poll failed: %s", getattr(event, "message", "") or kind.value,
            extra={"kind": kind.value, "delay_s": round(delay, 2)},
        )
        self._emit(event)
        if self._backoff.engaged:
            if not was_engaged:
                logger.info("Backing off after %d consecutive failures",
                            self._backoff.consecutive_failures)
            self._emit(RetryScheduled(delay, kind))
        return delay

    def _emit(self, event: PollEvent) -> None:
        if self._stop_event.is_set():
            logger.debug("Dropping %s emitted after stop", type(event).__name__)
            return
        self._sink(event)
