import os
import pathlib
import sys
import tempfile
import unittest
from unittest import mock

# Ensure src/ is on path for direct test execution
ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from co2mon.config.runtime import (
    CONFIG_ENV_VAR,
    MonitorConfig,
    config_from_mapping,
    load_config,
)


class ConfigFromMappingTest(unittest.TestCase):
    def test_empty_mapping_gives_defaults(self):
        cfg = config_from_mapping({})
        self.assertEqual(cfg, MonitorConfig())
        self.assertEqual(cfg.poll_interval_s, 2.0)
        self.assertEqual(cfg.history_capacity, 1800)

    def test_monitor_block_is_flattened(self):
        cfg = config_from_mapping(
            {"monitor": {"poll_interval_s": 5, "history_capacity": 720}, "theme": "light"}
        )
        self.assertEqual(cfg.poll_interval_s, 5.0)
        self.assertEqual(cfg.history_capacity, 720)
        self.assertEqual(cfg.theme, "light")

    def test_unknown_keys_are_ignored(self):
        cfg = config_from_mapping({"poll_interval_s": 1.0, "plot_backend": "matplotlib"})
        self.assertEqual(cfg.poll_interval_s, 1.0)

    def test_unknown_source_raises(self):
        with self.assertRaises(ValueError):
            config_from_mapping({"source": "serial"})


class SanitizeTest(unittest.TestCase):
    def test_values_are_clamped(self):
        cfg = MonitorConfig(
            poll_interval_s=0.0,
            history_capacity=-5,
            event_queue_size=0,
            backoff_threshold=0,
            backoff_factor=0.5,
            max_backoff_s=0.01,
            chart_margin=3.0,
            ui_refresh_hz=1000.0,
        ).sanitized()
        self.assertEqual(cfg.poll_interval_s, 0.05)
        self.assertEqual(cfg.history_capacity, 1)
        self.assertEqual(cfg.event_queue_size, 1)
        self.assertEqual(cfg.backoff_threshold, 1)
        self.assertEqual(cfg.backoff_factor, 1.0)
        self.assertEqual(cfg.max_backoff_s, 0.05)
        self.assertEqual(cfg.chart_margin, 1.0)
        self.assertEqual(cfg.ui_refresh_hz, 120.0)

    def test_bad_window_and_theme_fall_back(self):
        cfg = MonitorConfig(window_seconds=-1.0, theme="Solarized", source=" HTTP ").sanitized()
        self.assertIsNone(cfg.window_seconds)
        self.assertEqual(cfg.theme, "dark")
        self.assertEqual(cfg.source, "http")

    def test_refresh_interval(self):
        self.assertEqual(MonitorConfig(ui_refresh_hz=10.0).ui_refresh_interval_ms(), 100)


class LoadConfigTest(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = pathlib.Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file_gives_defaults(self):
        self.assertEqual(load_config(self.dir / "absent.yaml"), MonitorConfig())

    def test_yaml_file_is_loaded(self):
        path = self.dir / "co2mon.yaml"
        path.write_text(
            "monitor:\n"
            "  poll_interval_s: 3\n"
            "  fetch_timeout_s: 1.5\n"
            "  source: http\n"
            "  source_url: http://sensor.local/history\n",
            encoding="utf-8",
        )
        cfg = load_config(path)
        self.assertEqual(cfg.poll_interval_s, 3.0)
        self.assertEqual(cfg.fetch_timeout_s, 1.5)
        self.assertEqual(cfg.source, "http")
        self.assertEqual(cfg.source_url, "http://sensor.local/history")

    def test_empty_file_gives_defaults(self):
        path = self.dir / "empty.yaml"
        path.write_text("", encoding="utf-8")
        self.assertEqual(load_config(path), MonitorConfig())

    def test_non_mapping_raises(self):
        path = self.dir / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with self.assertRaises(ValueError):
            load_config(path)

    def test_env_var_selects_file(self):
        path = self.dir / "env.yaml"
        path.write_text("history_capacity: 42\n", encoding="utf-8")
        with mock.patch.dict(os.environ, {CONFIG_ENV_VAR: str(path)}):
            self.assertEqual(load_config().history_capacity, 42)

    def test_no_path_and_no_env_gives_defaults(self):
        env = {k: v for k, v in os.environ.items() if k != CONFIG_ENV_VAR}
        with mock.patch.dict(os.environ, env, clear=True):
            self.assertEqual(load_config(), MonitorConfig())


if __name__ == "__main__":
    unittest.main()
