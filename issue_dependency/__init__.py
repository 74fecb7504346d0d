"""Validate and synchronize GitHub issue dependency relationships."""

__version__ = "0.1.0"
