"""Run/sleep/stop lifecycle of the sync worker."""

from __future__ import annotations

import signal
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

import structlog
from apscheduler.triggers.interval import IntervalTrigger

from ..config import ScheduleConfig
from ..logging_conf import get_logger

TERMINATION_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class WorkerState(str, Enum):
    RUNNING = "running"
    STOPPING = "stopping"


class CancellationToken:
    """Cooperative shutdown flag shared by the scheduler and the cycle runner.

    Cancelling only assigns attributes and takes no lock, so it may run inside
    a signal handler that interrupted a ``wait`` on the same thread. Waiting
    sleeps in ``poll_interval`` slices and rechecks the flag after each one.
    """

    def __init__(self, poll_interval: float = 0.05) -> None:
        self.poll_interval = poll_interval
        self.reason: str | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: str = "requested") -> None:
        if not self._cancelled:
            self.reason = reason
        self._cancelled = True

    def wait(self, seconds: float) -> bool:
        """Block up to ``seconds``; return True as soon as cancellation is requested."""

        deadline = time.monotonic() + seconds
        while not self._cancelled:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            time.sleep(min(self.poll_interval, remaining))
        return True


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkerScheduler:
    """Execute cycles on a fixed interval until stopped.

    Scheduling is fixed-rate: start times follow an APScheduler
    ``IntervalTrigger`` anchored at boot, so the wait after a cycle is the rest
    of its slot rather than a full interval measured from the cycle's end. A
    cycle that overruns its slot is followed immediately by the next one, and
    the schedule re-anchors there instead of replaying missed slots. Sleeping
    happens in ``poll_seconds`` increments so a cancellation is honored
    promptly.
    """

    def __init__(
        self,
        cycle: Callable[[CancellationToken], Any],
        schedule: ScheduleConfig,
        token: CancellationToken | None = None,
        logger: structlog.BoundLogger | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.cycle = cycle
        self.schedule = schedule
        self.token = token or CancellationToken()
        self.logger = logger or get_logger("scheduler")
        self._now = now
        self._previous_handlers: dict[int, Any] = {}
        self._received_signal: str | None = None
        self.cycles_completed = 0

    @property
    def state(self) -> WorkerState:
        return WorkerState.STOPPING if self.token.cancelled else WorkerState.RUNNING

    def stop(self, reason: str = "requested") -> None:
        self.token.cancel(reason)

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------
    def install_signal_handlers(self) -> None:
        for signum in TERMINATION_SIGNALS:
            self._previous_handlers[signum] = signal.signal(signum, self._handle_signal)

    def restore_signal_handlers(self) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def _handle_signal(self, signum: int, _frame: object) -> None:
        # Runs between bytecodes of the main thread; only plain assignments here
        name = signal.Signals(signum).name
        self._received_signal = name
        self.stop(name)

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------
    def run(self) -> int:
        boot = self._now()
        trigger = IntervalTrigger(
            seconds=self.schedule.interval_seconds, start_date=boot, timezone="UTC"
        )
        previous = boot
        self.logger.info(
            "worker_boot",
            interval_minutes=self.schedule.interval_minutes,
            pages_per_category=self.schedule.pages_per_category,
            once=self.schedule.run_once,
        )
        while self.state is WorkerState.RUNNING:
            self.cycle(self.token)
            self.cycles_completed += 1
            if self.schedule.run_once:
                self.stop("run_once")
                break
            if self.state is WorkerState.STOPPING:
                break
            current = self._now()
            next_start = trigger.get_next_fire_time(previous, current)
            if next_start is None or next_start <= current:
                next_start = current
            previous = next_start
            self._sleep_until(next_start)
        if self._received_signal is not None:
            self.logger.info("signal_received", signal=self._received_signal)
        self.logger.info(
            "worker_stopped", cycles=self.cycles_completed, reason=self.token.reason
        )
        return self.cycles_completed

    def _sleep_until(self, target: datetime) -> None:
        remaining = (target - self._now()).total_seconds()
        if remaining > 0:
            self.logger.info("worker_sleeping", seconds=round(remaining), next_start=target.isoformat())
        while not self.token.cancelled:
            remaining = (target - self._now()).total_seconds()
            if remaining <= 0:
                return
            if self.token.wait(min(self.schedule.poll_seconds, remaining)):
                return


__all__ = ["CancellationToken", "TERMINATION_SIGNALS", "WorkerScheduler", "WorkerState"]
