"""Typer CLI entrypoint for the movie sync worker."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, WorkerConfig
from .engine import PageFetcher, build_store
from .errors import ConfigurationError
from .logging_conf import (
    ERROR_LOG_NAME,
    SYNC_LOG_NAME,
    available_logs,
    configure_logging,
    get_logger,
    default_log_dir,
    tail_log,
)
from .orchestrator import CycleRunner
from .scheduler import WorkerScheduler
from .ui import ConsoleProgress, CycleHistory

app = typer.Typer(
    help="Mirror provider movie lists into the shared store.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(name="config", help="Inspect worker configuration.", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Inspect worker log files.", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(log_app, name="log")

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    verbose: bool = False


def build_state(verbose: bool) -> AppState:
    repository = ConfigRepository()
    configure_logging(verbose=verbose)
    return AppState(repository=repository, verbose=verbose)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _progress_default_enabled() -> bool:
    return bool(getattr(sys.stdout, "isatty", lambda: False)())


def _mask(value: str) -> str:
    if not value:
        return "(unset)"
    return value[:4] + "…" if len(value) > 8 else "****"


def _load_config(state: AppState, once: bool) -> WorkerConfig:
    config = state.repository.load_worker_config()
    if once:
        schedule = config.schedule.model_copy(update={"run_once": True})
        config = config.model_copy(update={"schedule": schedule})
    config.require_credentials()
    return config


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Run synchronization cycles until stopped (or once with --once).")
def run(
    ctx: typer.Context,
    once: bool = typer.Option(False, "--once", help="Run a single cycle and exit."),
    progress: Optional[bool] = typer.Option(
        None, "--progress/--no-progress", help="Show live page progress (default: on a TTY)."
    ),
) -> None:
    state = _get_state(ctx)
    try:
        config = _load_config(state, once)
        store = build_store(config.store, state.repository.locator.project_root)
    except ConfigurationError as exc:
        console.print(f"Configuration error: {exc}", style="red")
        raise typer.Exit(code=2)

    logger = get_logger("worker")
    history = CycleHistory()
    show_progress = _progress_default_enabled() if progress is None else progress
    console_progress = ConsoleProgress(enabled=show_progress, console=console)
    fetcher = PageFetcher(config.provider)
    runner = CycleRunner.from_config(config, fetcher, store, observers=[history, console_progress])
    scheduler = WorkerScheduler(runner.run_cycle, config.schedule)
    logger.info(
        "worker_configured",
        categories=",".join(category.value for category in config.categories),
        store=config.store.backend.value,
    )

    scheduler.install_signal_handlers()
    try:
        scheduler.run()
    except Exception as exc:  # noqa: BLE001
        logger.error("worker_crashed", error=str(exc), exc_info=True)
        console.print(f"Worker crashed: {exc}", style="red")
        raise typer.Exit(code=1)
    finally:
        scheduler.restore_signal_handlers()
        console_progress.close()
        fetcher.close()
        store.close()

    if history.summaries:
        console.print(history.render())


@config_app.command("show", help="Print the effective configuration (secrets masked).")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        config = state.repository.load_worker_config()
    except ConfigurationError as exc:
        console.print(f"Configuration error: {exc}", style="red")
        raise typer.Exit(code=2)
    table = Table(title="Worker configuration", box=box.SIMPLE_HEAD)
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="green", overflow="fold")
    rows = [
        ("categories", ", ".join(category.value for category in config.categories)),
        ("provider.base_url", config.provider.base_url),
        ("provider.language", config.provider.language),
        ("provider.api_key", _mask(config.provider.api_key)),
        ("store.backend", config.store.backend.value),
        ("store.table", config.store.table),
        ("store.category_column", str(config.store.category_column)),
        ("store.supabase_url", config.store.supabase_url or "(unset)"),
        ("store.supabase_key", _mask(config.store.supabase_key)),
        ("store.sqlite_path", str(state.repository.sqlite_path(config))),
        ("schedule.pages_per_category", str(config.schedule.pages_per_category)),
        ("schedule.interval_minutes", f"{config.schedule.interval_minutes:g}"),
        ("schedule.page_delay_ms", str(config.schedule.page_delay_ms)),
        ("schedule.run_once", str(config.schedule.run_once)),
        ("image_base_url", config.image_base_url or "(unset)"),
    ]
    for key, value in rows:
        table.add_row(key, value)
    console.print(table)
    missing = config.missing_credentials()
    if missing:
        console.print(f"Missing credentials: {', '.join(missing)}", style="yellow")


@config_app.command("init", help="Write a configuration file with default values.")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    state = _get_state(ctx)
    path = state.repository.locator.worker_config_path()
    if path.exists() and not force:
        console.print(f"{path} already exists; pass --force to overwrite.", style="yellow")
        raise typer.Exit(code=1)
    written = state.repository.save_worker_config(WorkerConfig())
    console.print(f"Configuration written to {written}.", style="green")


@log_app.command("list", help="List available log files.")
def log_list() -> None:
    logs = list(available_logs())
    if not logs:
        console.print("No log files yet.", style="dim")
        return
    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("File", style="green")
    for path in logs:
        table.add_row(path.name)
    console.print(table)


@log_app.command("show", help="Show the last lines of the sync (or error) log.")
def log_show(
    tail: int = typer.Option(100, "--tail", help="Number of lines to show."),
    errors: bool = typer.Option(False, "--errors", help="Show the error log instead."),
) -> None:
    path = default_log_dir() / (ERROR_LOG_NAME if errors else SYNC_LOG_NAME)
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log entries yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
