import pathlib
import sys
import unittest

# Ensure src/ is on path for direct test execution
ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from co2mon.core.models import (
    ClearHistory,
    ConnectionStatus,
    LinkState,
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
from co2mon.core.state import initial_state, reduce


def _reading(t, co2=500.0):
    return Reading(timestamp=float(t), co2_ppm=co2, tvoc_ppb=90.0)


class ConnectionTransitionsTest(unittest.TestCase):
    def setUp(self):
        self.state = initial_state(
            10,
            status=ConnectionStatus.connected(),
            seed=[_reading(1), _reading(2)],
        )

    def test_timeout_then_reading(self):
        state = reduce(self.state, SensorFailure(SensorErrorKind.TIMEOUT))
        self.assertEqual(state.status, ConnectionStatus.disconnected(SensorErrorKind.TIMEOUT))
        self.assertEqual(len(state.history), 2)

        r = _reading(3, co2=700.0)
        state = reduce(state, NewReading(r))
        self.assertEqual(state.status.state, LinkState.CONNECTED)
        self.assertEqual(len(state.history), 3)
        self.assertEqual(state.history.latest(), r)
        self.assertEqual(state.latest, r)

    def test_poll_timeout_maps_to_timeout_reason(self):
        state = reduce(self.state, PollTimeout("no reading within 5.0 s"))
        self.assertEqual(state.status.state, LinkState.DISCONNECTED)
        self.assertEqual(state.status.reason, SensorErrorKind.TIMEOUT)
        self.assertEqual(state.last_error, "no reading within 5.0 s")
        self.assertEqual(state.error_count, 1)

    def test_errors_keep_history_and_latest(self):
        latest = self.state.latest
        state = self.state
        for kind in SensorErrorKind:
            state = reduce(state, SensorFailure(kind, "boom"))
        self.assertEqual(len(state.history), 2)
        self.assertEqual(state.latest, latest)
        self.assertEqual(state.consecutive_errors, len(SensorErrorKind))

    def test_retry_then_reconnect(self):
        state = reduce(self.state, SensorFailure(SensorErrorKind.NOT_FOUND))
        state = reduce(state, RetryScheduled(8.0, SensorErrorKind.NOT_FOUND))
        self.assertEqual(state.status.state, LinkState.RECONNECTING)
        self.assertEqual(state.status.retry_in_s, 8.0)
        self.assertIn("Reconnecting", state.status.label)

        state = reduce(state, Reconnected())
        self.assertTrue(state.status.is_connected)
        self.assertEqual(len(state.history), 2)

    def test_reducer_returns_new_state(self):
        before = self.state
        after = reduce(before, SensorFailure(SensorErrorKind.IO_ERROR))
        self.assertIsNot(before, after)
        self.assertTrue(before.status.is_connected)

    def test_history_store_is_shared_with_previous_state(self):
        before = self.state
        kept = before.history.snapshot()
        after = reduce(before, NewReading(_reading(3)))
        self.assertIs(after.history, before.history)
        self.assertEqual(before.latest.timestamp, 2.0)
        self.assertEqual(before.history.latest().timestamp, 3.0)
        self.assertEqual(len(kept), 2)

    def test_stale_reading_is_ignored(self):
        state = reduce(self.state, NewReading(_reading(1)))
        self.assertEqual(len(state.history), 2)
        self.assertEqual(state.latest.timestamp, 2.0)
        self.assertTrue(state.status.is_connected)

    def test_unknown_event_raises(self):
        with self.assertRaises(TypeError):
            reduce(self.state, object())


class UserIntentTest(unittest.TestCase):
    def setUp(self):
        self.state = initial_state(5, seed=[_reading(t) for t in range(3)])

    def test_initial_state_starts_disconnected_with_seed(self):
        self.assertEqual(self.state.status.state, LinkState.DISCONNECTED)
        self.assertIsNone(self.state.status.reason)
        self.assertEqual(self.state.latest.timestamp, 2.0)

    def test_pause_freezes_chart_snapshot(self):
        state = reduce(self.state, SetPaused(True))
        state = reduce(state, NewReading(_reading(10)))
        self.assertEqual(len(state.chart_snapshot()), 3)
        self.assertEqual(len(state.history), 4)

        state = reduce(state, SetPaused(False))
        self.assertIsNone(state.frozen)
        self.assertEqual(len(state.chart_snapshot()), 4)

    def test_pause_twice_is_noop(self):
        paused = reduce(self.state, SetPaused(True))
        self.assertIs(reduce(paused, SetPaused(True)), paused)

    def test_time_window(self):
        state = reduce(self.state, SetTimeWindow(60.0))
        self.assertEqual(state.window_seconds, 60.0)
        state = reduce(state, SetTimeWindow(None))
        self.assertIsNone(state.window_seconds)
        with self.assertRaises(ValueError):
            reduce(state, SetTimeWindow(0.0))

    def test_theme(self):
        state = reduce(self.state, SetTheme(Theme.LIGHT))
        self.assertEqual(state.theme, Theme.LIGHT)

    def test_clear_history(self):
        state = reduce(self.state, ClearHistory())
        self.assertEqual(len(state.history), 0)
        self.assertIsNone(state.latest)
        self.assertEqual(state.title, "Loading - CO2")


if __name__ == "__main__":
    unittest.main()
