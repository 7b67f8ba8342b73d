"""Realtime collaboration layer for the student research platform."""

__version__ = "1.0.0"
