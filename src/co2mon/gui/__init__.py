"""PySide6 desktop view for co2mon.

Widgets here only read :class:`~co2mon.core.state.ApplicationState` and
forward user intents; all state changes go through the monitor's reducer.
"""
