"""Backfill a contribution graph with scheduled, timestamped commits."""

__version__ = "0.1.0"
