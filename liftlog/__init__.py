"""Offline-resilient rest timer and workout progress sync."""

__version__ = "0.1.0"
