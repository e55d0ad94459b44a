"""Periodic state reconciliation for sharded watch-room servers."""

__version__ = "0.1.0"
