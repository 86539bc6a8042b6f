from __future__ import annotations

import pathlib
import subprocess
import sys
import textwrap
import threading
import time
from typing import List

import pytest

from co2mon.core.models import (
    NewReading,
    PollTimeout,
    Reading,
    Reconnected,
    RetryScheduled,
    SensorError,
    SensorErrorKind,
    SensorFailure,
)
from co2mon.core.poller import BackoffPolicy, Poller

SRC = pathlib.Path(__file__).resolve().parents[1] / "src"


class ScriptedSource:
    """Replays a list of outcomes: Reading instances are returned, exceptions raised."""

    def __init__(self, outcomes: list) -> None:
        self._outcomes = list(outcomes)
        self.calls = 0

    def fetch(self, timeout: float) -> Reading:
        self.calls += 1
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def close(self) -> None:
        pass


class HangingSource:
    def __init__(self) -> None:
        self.release = threading.Event()

    def fetch(self, timeout: float) -> Reading:
        self.release.wait(10.0)
        return Reading(0.0, 400.0, 0.0)

    def close(self) -> None:
        self.release.set()


def _timeout() -> SensorError:
    return SensorError(SensorErrorKind.TIMEOUT, "sensor timed out")


def test_three_timeouts_widen_interval_then_success_resets() -> None:
    reading = Reading(1.0, 420.0, 30.0)
    source = ScriptedSource([_timeout(), _timeout(), _timeout(), reading])
    events: List[object] = []
    poller = Poller(source, events.append, interval_s=1.0, timeout_s=1.0)

    delays = [poller.poll_once() for _ in range(3)]
    assert delays[:2] == [1.0, 1.0]
    assert poller.next_interval_s > 1.0
    assert delays[2] == poller.next_interval_s

    assert poller.poll_once() == 1.0
    assert poller.next_interval_s == 1.0
    assert events == [
        PollTimeout("sensor timed out"),
        PollTimeout("sensor timed out"),
        PollTimeout("sensor timed out"),
        RetryScheduled(2.0, SensorErrorKind.TIMEOUT),
        Reconnected(),
        NewReading(reading),
    ]
    poller.stop()


def test_backoff_doubles_up_to_cap() -> None:
    policy = BackoffPolicy(nominal_s=5.0, failure_threshold=3, factor=2.0, max_s=60.0)
    intervals = [policy.record_failure() for _ in range(8)]
    assert intervals == [5.0, 5.0, 10.0, 20.0, 40.0, 60.0, 60.0, 60.0]
    assert policy.engaged
    assert policy.record_success() is True
    assert policy.current_interval_s == 5.0
    assert policy.record_success() is False


def test_backoff_rejects_bad_settings() -> None:
    with pytest.raises(ValueError):
        BackoffPolicy(nominal_s=0.0)
    with pytest.raises(ValueError):
        BackoffPolicy(nominal_s=1.0, failure_threshold=0)
    with pytest.raises(ValueError):
        BackoffPolicy(nominal_s=1.0, factor=0.5)


def test_device_errors_become_sensor_failures() -> None:
    source = ScriptedSource([
        SensorError(SensorErrorKind.NOT_FOUND, "no device"),
        SensorError(SensorErrorKind.PARSE_ERROR, "garbage"),
    ])
    events: List[object] = []
    poller = Poller(source, events.append, interval_s=2.0, timeout_s=1.0)
    poller.poll_once()
    poller.poll_once()
    assert events == [
        SensorFailure(SensorErrorKind.NOT_FOUND, "no device"),
        SensorFailure(SensorErrorKind.PARSE_ERROR, "garbage"),
    ]
    poller.stop()


def test_unexpected_exception_is_reported_as_io_error() -> None:
    source = ScriptedSource([RuntimeError("port vanished")])
    events: List[object] = []
    poller = Poller(source, events.append, interval_s=2.0, timeout_s=1.0)
    poller.poll_once()
    assert len(events) == 1
    assert isinstance(events[0], SensorFailure)
    assert events[0].kind is SensorErrorKind.IO_ERROR
    poller.stop()


def test_non_reading_result_is_a_parse_error() -> None:
    source = ScriptedSource([{"co2": 500}])
    events: List[object] = []
    poller = Poller(source, events.append, interval_s=2.0, timeout_s=1.0)
    poller.poll_once()
    assert events[0].kind is SensorErrorKind.PARSE_ERROR
    poller.stop()


def test_hung_fetch_is_abandoned_as_timeout() -> None:
    source = HangingSource()
    events: List[object] = []
    poller = Poller(source, events.append, interval_s=1.0, timeout_s=0.1)
    started = time.monotonic()
    poller.poll_once()
    assert time.monotonic() - started < 2.0
    assert len(events) == 1
    assert isinstance(events[0], PollTimeout)
    poller.stop()
    source.release.set()


def test_background_loop_emits_and_stops() -> None:
    readings = [Reading(float(i), 400.0 + i, 10.0) for i in range(1000)]
    source = ScriptedSource(readings)
    events: List[object] = []
    lock = threading.Lock()

    def sink(event: object) -> None:
        with lock:
            events.append(event)

    poller = Poller(source, sink, interval_s=0.01, timeout_s=1.0)
    poller.start()
    deadline = time.monotonic() + 2.0
    while time.monotonic() < deadline:
        with lock:
            if len(events) >= 3:
                break
        time.sleep(0.01)
    poller.stop(join=True, timeout=1.0)
    assert not poller.is_alive()

    with lock:
        count = len(events)
        timestamps = [e.reading.timestamp for e in events]
    assert count >= 3
    assert timestamps == sorted(timestamps)

    time.sleep(0.05)
    with lock:
        assert len(events) == count


def test_no_events_after_stop() -> None:
    source = ScriptedSource([Reading(1.0, 400.0, 1.0)])
    events: List[object] = []
    poller = Poller(source, events.append, interval_s=1.0, timeout_s=1.0)
    poller.stop()
    assert poller.poll_once() == 0.0
    assert events == []
    assert source.calls == 0
    assert not poller.fetch_in_flight


def test_invalid_poller_settings() -> None:
    with pytest.raises(ValueError):
        Poller(ScriptedSource([]), lambda e: None, interval_s=0.0)
    with pytest.raises(ValueError):
        Poller(ScriptedSource([]), lambda e: None, timeout_s=0.0)


def _fetch_threads() -> list:
    return [t for t in threading.enumerate() if t.name == "StuckSensorFetch"]


def test_stuck_fetch_is_not_retried_while_blocked() -> None:
    source = HangingSource()
    events: List[object] = []
    poller = Poller(
        source, events.append, interval_s=1.0, timeout_s=0.05, thread_name="StuckSensor"
    )
    try:
        for _ in range(5):
            poller.poll_once()
        workers = _fetch_threads()
        assert len(workers) == 1
        assert all(t.daemon for t in workers)
        assert poller.fetch_in_flight
        assert len(events) >= 5
        assert all(isinstance(e, (PollTimeout, RetryScheduled)) for e in events)
    finally:
        poller.stop()
        source.release.set()

    for worker in workers:
        worker.join(1.0)
    assert not poller.fetch_in_flight


def test_hung_source_does_not_hold_process_exit() -> None:
    script = textwrap.dedent(
        """
        import sys, time
        sys.path.insert(0, {src!r})
        from co2mon.config import MonitorConfig
        from co2mon.core import monitor

        class Stuck:
            def fetch(self, timeout):
                time.sleep(30)

            def close(self):
                pass

        handle = monitor.start(Stuck(), config=MonitorConfig(fetch_timeout_s=0.1))
        time.sleep(0.5)
        monitor.stop(handle)
        """
    ).format(src=str(SRC))
    started = time.monotonic()
    completed = subprocess.run([sys.executable, "-c", script], timeout=20)
    assert completed.returncode == 0
    assert time.monotonic() - started < 10.0
