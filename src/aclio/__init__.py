"""Aclio: AI goal coaching backend and local core."""

__version__ = "1.0.0"
