"""Periodic mirror of provider movie lists into a shared store."""

__version__ = "0.1.0"
