"""User-facing progress and reporting helpers."""

from .progress import ConsoleProgress, CycleHistory

__all__ = ["ConsoleProgress", "CycleHistory"]
