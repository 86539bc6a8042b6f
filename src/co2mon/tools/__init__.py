"""Logging setup and opt-in debug instrumentation shared by the monitor."""
