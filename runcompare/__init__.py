"""Synchronized side-by-side comparison video export for athlete runs."""

__version__ = "0.1.0"
