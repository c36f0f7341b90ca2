"""Scheduling and lifecycle control."""

from .lifecycle import CancellationToken, TERMINATION_SIGNALS, WorkerScheduler, WorkerState

__all__ = ["CancellationToken", "TERMINATION_SIGNALS", "WorkerScheduler", "WorkerState"]
