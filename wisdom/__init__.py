"""Wisdom — autonomous build → generate → apply improvement loop."""

__version__ = "0.1.0"
