"""Sync Readwise highlights into Ulysses."""

__version__ = "0.1.0"
