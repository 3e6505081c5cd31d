"""CLI interface for daylog."""

import json
import logging
import time
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from daylog.config import DaylogConfig, load_config, merge_cli_overrides
from daylog.errors import ConfigurationError, StorageError, load_report
from daylog.logstore import LogStore
from daylog.pipeline.models import PipelineResult, PipelineStatus
from daylog.pipeline.orchestrator import run_pipeline
from daylog.state import RunStateStore

app = typer.Typer(
    name="daylog",
    help="Summarize recorded screen activity into a daily log and discussion questions.",
)

console = Console()
_stderr_console = Console(stderr=True)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] - %(message)s"

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to a .daylog.toml file."),
]
StorageOption = Annotated[
    Optional[Path],
    typer.Option("--storage", "-s", help="Storage directory for run state and logs."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from daylog import __version__

        console.print(f"daylog {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """daylog - daily log and questions from screen activity."""
    pass


def _setup_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def _load(config_path: Path | None, **overrides: object) -> DaylogConfig:
    """Load config and apply CLI overrides, exiting on invalid settings."""
    try:
        config = load_config(config_path)
        config = merge_cli_overrides(config, **overrides)
    except ConfigurationError as exc:
        _stderr_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1)
    _setup_logging(config.logging.level)
    return config


def _print_result(result: PipelineResult, as_json: bool) -> None:
    if as_json:
        typer.echo(result.model_dump_json(indent=2))
        return

    if result.status is PipelineStatus.SUCCESS:
        console.print(f"[bold green]{result.message}[/bold green]")
    elif result.status is PipelineStatus.EMPTY_WINDOW:
        console.print(f"[yellow]{result.message}[/yellow]")
    else:
        console.print("Error:", result.error, style="red", markup=False)

    console.print(result.summary_text(), markup=False)
    if result.questions:
        console.print()
        console.print("[bold]Suggested questions:[/bold]")
        console.print(result.questions, markup=False)


@app.command(name="run")
def run_cmd(
    config_path: ConfigOption = None,
    storage: StorageOption = None,
    user_triggered: Annotated[
        bool,
        typer.Option(
            "--user-triggered",
            help="Mark the run as started by a person (skips email delivery).",
        ),
    ] = False,
    continuous: Annotated[
        bool,
        typer.Option(
            "--continuous",
            help="Keep running, once per configured interval.",
        ),
    ] = False,
    interval: Annotated[
        Optional[int],
        typer.Option("--interval", help="Override the polling interval in seconds."),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the run result as JSON."),
    ] = False,
) -> None:
    """Run the pipeline once, or continuously with --continuous.

    Fetches the recent activity window, writes a daily log entry, generates
    questions and sends them to the configured channels.
    """
    config = _load(
        config_path,
        storage_directory=str(storage) if storage else None,
        interval=interval,
    )

    if not continuous:
        result = run_pipeline(config, user_triggered=user_triggered)
        _print_result(result, as_json)
        if not result.ok:
            raise typer.Exit(1)
        return

    period = config.pipeline.interval_seconds
    logger.info("Starting continuous mode | interval=%ds", period)
    run_count = 0
    total_errors = 0
    try:
        while True:
            run_count += 1
            result = run_pipeline(config, user_triggered=user_triggered)
            if not result.ok:
                total_errors += 1
            logger.info(
                "Run complete | run=%d status=%s total_errors=%d",
                run_count,
                result.status.value,
                total_errors,
            )
            time.sleep(period)
    except KeyboardInterrupt:
        logger.info("Pipeline stopped | runs=%d total_errors=%d", run_count, total_errors)


@app.command(name="serve")
def serve_cmd(
    config_path: ConfigOption = None,
    storage: StorageOption = None,
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address.")] = None,
    port: Annotated[Optional[int], typer.Option("--port", help="Bind port.")] = None,
) -> None:
    """Serve the HTTP trigger (GET /api/pipeline)."""
    import uvicorn

    from daylog.server import create_app

    config = _load(
        config_path,
        storage_directory=str(storage) if storage else None,
        host=host,
        port=port,
    )
    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


@app.command(name="status")
def status_cmd(
    config_path: ConfigOption = None,
    storage: StorageOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
) -> None:
    """Show configuration, run state and the last run."""
    config = _load(config_path, storage_directory=str(storage) if storage else None)
    root = config.storage.path

    try:
        state = RunStateStore(root).load()
    except StorageError as exc:
        _stderr_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1)
    report = load_report(root)

    if as_json:
        payload = {
            "storage": str(root),
            "provider": config.ai.provider.value,
            "model": config.ai.model,
            "interval_seconds": config.pipeline.interval_seconds,
            "email_enabled": config.pipeline.email_enabled,
            "channel_failure_policy": config.pipeline.channel_failure_policy.value,
            "state": state.model_dump(by_alias=True),
            "last_run": report.model_dump(mode="json") if report else None,
        }
        typer.echo(json.dumps(payload, indent=2))
        return

    table = Table(title="daylog status", show_header=False)
    table.add_column("Setting")
    table.add_column("Value")
    table.add_row("Storage", str(root))
    table.add_row("AI provider", f"{config.ai.provider.value} ({config.ai.model})")
    table.add_row("Interval", f"{config.pipeline.interval_seconds}s")
    table.add_row("Email", "enabled" if config.pipeline.email_enabled else "disabled")
    table.add_row("Channel failures", config.pipeline.channel_failure_policy.value)
    table.add_row("Welcome sent", "yes" if state.welcome_message_sent else "no")
    if state.welcome_attempts:
        table.add_row("Welcome failures", str(state.welcome_attempts))
    console.print(table)

    if report is None:
        console.print("[yellow]No runs recorded yet.[/yellow]")
    else:
        console.print(report.summary_text(), markup=False)


@app.command(name="logs")
def logs_cmd(
    config_path: ConfigOption = None,
    storage: StorageOption = None,
    limit: Annotated[int, typer.Option("--limit", "-n", help="Number of entries.")] = 10,
    as_json: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
) -> None:
    """List recent daily log entries, newest first."""
    config = _load(config_path, storage_directory=str(storage) if storage else None)
    entries = LogStore(config.storage.path).recent(limit)

    if as_json:
        typer.echo(
            json.dumps([{"file": p.name, **e.model_dump()} for p, e in entries], indent=2)
        )
        return

    if not entries:
        console.print("[yellow]No log entries found.[/yellow]")
        return

    table = Table(title="Daily log")
    table.add_column("File")
    table.add_column("Category")
    table.add_column("Activity")
    table.add_column("Tags")
    for path, entry in entries:
        table.add_row(
            path.name, escape(entry.category), escape(entry.activity), escape(", ".join(entry.tags))
        )
    console.print(table)


@app.command(name="reset-welcome")
def reset_welcome_cmd(
    config_path: ConfigOption = None,
    storage: StorageOption = None,
) -> None:
    """Clear the welcome flag so the next run sends the welcome email again."""
    config = _load(config_path, storage_directory=str(storage) if storage else None)
    store = RunStateStore(config.storage.path)
    try:
        state = store.load()
        store.save(
            state.model_copy(
                update={
                    "welcome_message_sent": False,
                    "welcome_attempts": 0,
                    "last_welcome_error": "",
                }
            )
        )
    except StorageError as exc:
        _stderr_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1)
    console.print("[green]Welcome flag cleared.[/green]")


if __name__ == "__main__":
    app()
