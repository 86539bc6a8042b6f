"""Qt application entry point for the co2mon desktop GUI.

This module wires up argument parsing and logging, loads the YAML
configuration, starts the monitor pipeline, builds the
:class:`~co2mon.gui.main_window.MainWindow` and runs the Qt event loop. All
GUI launches, whether through ``python -m co2mon.gui.application`` or the
``co2mon`` console script, flow through ``main()`` here.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import Iterable, List, Tuple

import pyqtgraph as pg
from PySide6.QtCore import QLoggingCategory
from PySide6.QtWidgets import QApplication, QMainWindow

from ..config.runtime import MonitorConfig, load_config
from ..core.models import Reading, SensorError
from ..core.monitor import start
from ..sources.base import SampleSource, create_source
from ..tools.logging_setup import configure_logging
from .main_window import MainWindow
from .monitor_bridge import MonitorBridge

logger = logging.getLogger(__name__)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Live CO2/TVOC monitor")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML configuration file (default: $CO2MON_CONFIG, else built-in defaults)",
    )
    parser.add_argument(
        "--source",
        choices=("synthetic", "http"),
        default=None,
        help="Sample source to poll (overrides the config file)",
    )
    parser.add_argument(
        "--url",
        type=str,
        default=None,
        help="History endpoint for the http source",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Nominal poll interval in seconds",
    )
    parser.add_argument(
        "--capacity",
        type=int,
        default=None,
        help="Number of readings kept for the chart",
    )
    parser.add_argument(
        "--no-seed",
        action="store_true",
        help="Do not pre-load history from the source at startup",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (default: $CO2MON_LOG_LEVEL or INFO)",
    )
    return parser


def _parse_cli_args(argv: list[str]) -> tuple[argparse.Namespace, list[str]]:
    parser = _build_arg_parser()
    args, qt_args = parser.parse_known_args(argv[1:])
    qt_argv = [argv[0], *qt_args]
    return args, qt_argv


def config_from_args(args: argparse.Namespace) -> MonitorConfig:
    """Load the config file and apply command-line overrides on top."""
    cfg = load_config(args.config)
    overrides = {}
    if args.source is not None:
        overrides["source"] = args.source
    if args.url is not None:
        overrides["source_url"] = args.url
        if args.source is None:
            overrides["source"] = "http"
    if args.interval is not None:
        overrides["poll_interval_s"] = args.interval
    if args.capacity is not None:
        overrides["history_capacity"] = args.capacity
    if args.no_seed:
        overrides["seed_history"] = False
    return replace(cfg, **overrides).sanitized()


def seed_readings(source: SampleSource, config: MonitorConfig) -> Iterable[Reading]:
    """Readings the source can provide up front, or nothing if it cannot."""
    fetch_history = getattr(source, "fetch_history", None)
    if not config.seed_history or fetch_history is None:
        return ()
    try:
        readings: List[Reading] = list(fetch_history(config.fetch_timeout_s))
    except SensorError as exc:
        logger.warning("Could not pre-load history: %s", exc, extra={"kind": exc.kind.value})
        return ()
    logger.info("Pre-loaded %d readings", len(readings))
    return readings[-config.history_capacity:]


def create_app(
    argv: list[str] | None = None,
    *,
    config: MonitorConfig | None = None,
    source: SampleSource | None = None,
) -> Tuple[QApplication, QMainWindow, MonitorBridge]:
    """
    Create the QApplication, start polling and build the main window.

    Returns
    -------
    app:
        The QApplication instance (owned by caller).
    window:
        The main window, already subscribed to state changes.
    bridge:
        The controller that owns the running monitor; stopped when the
        window closes.
    """
    qt_args = argv if argv is not None else sys.argv
    cfg = (config or MonitorConfig()).sanitized()
    app = QApplication.instance() or QApplication(qt_args)

    # Suppress noisy QObject::connect warnings from QStyleHints and similar internals
    QLoggingCategory.setFilterRules("qt.core.qobject.connect=false")
    pg.setConfigOptions(antialias=True)

    sample_source = source or create_source(cfg)
    handle = start(sample_source, config=cfg, seed_history=seed_readings(sample_source, cfg))
    bridge = MonitorBridge(handle, refresh_interval_ms=cfg.ui_refresh_interval_ms())
    window = MainWindow(bridge, chart_margin=cfg.chart_margin)
    app.aboutToQuit.connect(bridge.shutdown)
    return app, window, bridge


def main(argv: list[str] | None = None) -> None:
    raw_argv = argv if argv is not None else sys.argv
    args, qt_argv = _parse_cli_args(raw_argv)
    configure_logging(args.log_level.upper() if args.log_level else None)
    try:
        cfg = config_from_args(args)
    except ValueError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    app, win, bridge = create_app(qt_argv, config=cfg)
    win.resize(960, 640)
    win.show()
    bridge.start()
    raise SystemExit(app.exec())


if __name__ == "__main__":
    main()
