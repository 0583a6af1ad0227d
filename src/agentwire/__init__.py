"""Streaming tool-using agent server."""

__version__ = "0.1.0"
