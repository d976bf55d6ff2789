"""Melodify - playlist-based media player shell."""

__version__ = "0.1.0"
