"""Publish/subscribe broker relaying UDP topic messages to TCP subscribers."""

__version__ = "0.1.0"