"""Terminal progress helpers with Rich-based rendering."""

from __future__ import annotations

from collections import deque
from threading import Lock

from rich import box
from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TextColumn, TimeElapsedColumn
from rich.table import Table

from ..orchestrator import CycleSummary, PageProgress


class ConsoleProgress:
    """Render per-category page progress and a per-cycle summary line.

    Each category gets its own bar whose total follows the narrowed page
    ceiling. Bars are torn down when a cycle completes so the next cycle
    starts clean.
    """

    def __init__(self, enabled: bool = True, console: Console | None = None) -> None:
        self.enabled = enabled
        self.console = console or Console()
        self._progress: Progress | None = None
        self._tasks: dict[str, TaskID] = {}
        self._persisted: dict[str, int] = {}
        self._lock = Lock()

    def _ensure_progress(self) -> Progress:
        if self._progress is None:
            self._progress = Progress(
                TextColumn("[cyan]{task.description}"),
                BarColumn(),
                TextColumn("{task.completed}/{task.total} pages"),
                TextColumn("[green]{task.fields[persisted]} saved"),
                TimeElapsedColumn(),
                console=self.console,
                transient=True,
            )
            self._progress.start()
        return self._progress

    def page_processed(self, progress: PageProgress) -> None:
        if not self.enabled:
            return
        with self._lock:
            bar = self._ensure_progress()
            task_id = self._tasks.get(progress.category)
            if task_id is None:
                task_id = bar.add_task(progress.category, total=progress.ceiling, persisted=0)
                self._tasks[progress.category] = task_id
            persisted = self._persisted.get(progress.category, 0) + progress.persisted
            self._persisted[progress.category] = persisted
            bar.update(
                task_id,
                total=progress.ceiling,
                completed=progress.page,
                persisted=persisted,
            )

    def cycle_completed(self, summary: CycleSummary) -> None:
        if not self.enabled:
            return
        with self._lock:
            self.close()
            status = "[yellow]interrupted" if summary.cancelled else "[green]complete"
            self.console.print(
                f"cycle {status}[/]: scanned={summary.scanned} "
                f"unique_upserted={summary.persisted} "
                f"failed_pages={summary.failed_pages} "
                f"duration={summary.duration_seconds:.1f}s"
            )

    def close(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
        self._tasks.clear()
        self._persisted.clear()


class CycleHistory:
    """Keep the most recent cycle summaries for end-of-run reporting."""

    def __init__(self, limit: int = 20) -> None:
        self._summaries: deque[CycleSummary] = deque(maxlen=limit)

    def page_processed(self, progress: PageProgress) -> None:
        return

    def cycle_completed(self, summary: CycleSummary) -> None:
        self._summaries.append(summary)

    @property
    def summaries(self) -> list[CycleSummary]:
        return list(self._summaries)

    def render(self) -> Table:
        table = Table(title=f"Sync cycles · {len(self._summaries)}", box=box.SIMPLE_HEAD)
        table.add_column("Started", style="cyan", no_wrap=True)
        table.add_column("Scanned", justify="right")
        table.add_column("Upserted", style="green", justify="right")
        table.add_column("Failed pages", style="red", justify="right")
        table.add_column("Failed batches", style="red", justify="right")
        table.add_column("Duration", justify="right")
        table.add_column("Status", style="magenta")
        for summary in self._summaries:
            table.add_row(
                summary.started_at.strftime("%Y-%m-%d %H:%M:%S"),
                str(summary.scanned),
                str(summary.persisted),
                str(summary.failed_pages),
                str(summary.failed_batches),
                f"{summary.duration_seconds:.1f}s",
                "interrupted" if summary.cancelled else "complete",
            )
        return table


__all__ = ["ConsoleProgress", "CycleHistory"]
