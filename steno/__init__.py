"""Steno - continuous speech capture with automatic recovery."""

__version__ = "0.1.0"
