"""Offline-resilient request interception: bounded caching, timed fetches and background replay."""

__version__ = "0.1.0"
