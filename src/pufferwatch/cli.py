"""Command-line interface for pufferwatch."""

import logging
import os
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .config_filters import (
    FilterConfigParseError,
    default_log_path,
    generate_sample_filter_file,
    parse_filter_file,
)
from .events import EventController
from .filters import FilterStats
from .models import FilterConfig
from .parser_smapi import LogParseError
from .printer import LogPrinter, TailPrinter
from .sources import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REMOTE_TIMEOUT,
    FollowedLogSource,
    LogSource,
    NetworkError,
    RemoteLogSource,
    StaticLogSource,
    StreamedLogSource,
    WatchError,
)
from .viewer import LogView

app = typer.Typer(
    name="pufferwatch",
    help="Filter and monitor SMAPI logs.",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

# Default file names
DEFAULT_FILTER_FILE = ".pufferignore"

# Environment variable holding the level of pufferwatch's own logs
LOG_LEVEL_ENV = "PUFFERWATCH_LOG"

# Errors that make a log source impossible to create
SOURCE_ERRORS = (OSError, UnicodeDecodeError, LogParseError, WatchError, NetworkError)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"pufferwatch {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    output_log: Annotated[
        Optional[Path],
        typer.Option(
            "--output-log",
            help=f"Write pufferwatch's own logs (not SMAPI's) to this file. "
            f"Set {LOG_LEVEL_ENV} to choose the level.",
        ),
    ] = None,
) -> None:
    """pufferwatch - Filter and monitor SMAPI logs."""
    setup_logging(output_log)


def setup_logging(output_log: Path | None) -> None:
    """Send pufferwatch's logs to a file, if one was given."""
    if output_log is None:
        return

    output_log.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(output_log, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )

    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV, "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    package_logger = logging.getLogger("pufferwatch")
    package_logger.setLevel(level)
    package_logger.addHandler(handler)
    logger.info("starting pufferwatch %s", __version__)


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite an existing config file.",
        ),
    ] = False,
) -> None:
    """Create a sample .pufferignore file in the current directory."""
    filter_path = Path.cwd() / DEFAULT_FILTER_FILE

    if force and filter_path.exists():
        filter_path.unlink()

    if generate_sample_filter_file(filter_path):
        console.print(f"[green]Created:[/green] {DEFAULT_FILTER_FILE}")
    else:
        console.print(
            f"[yellow]Skipped (already exists):[/yellow] {DEFAULT_FILTER_FILE}"
        )
        console.print("[dim]Use --force to overwrite existing files.[/dim]")


@app.command("log")
def log_command(
    log_path: Annotated[
        Optional[Path],
        typer.Option(
            "--log",
            "-l",
            help="Path to the log file (default: SMAPI's latest log).",
        ),
    ] = None,
    follow: Annotated[
        bool,
        typer.Option(
            "--follow",
            "-f",
            help="Watch the log file for changes.",
        ),
    ] = False,
    interval: Annotated[
        float,
        typer.Option(
            "--interval",
            help="Seconds between checks of a followed file.",
            min=0.1,
        ),
    ] = DEFAULT_POLL_INTERVAL,
    ignore_file: Annotated[
        Path,
        typer.Option(
            "--ignore-file",
            help="Path to .pufferignore file.",
        ),
    ] = Path(DEFAULT_FILTER_FILE),
    stats: Annotated[
        bool,
        typer.Option(
            "--stats",
            "-s",
            help="Show filtering statistics at the end.",
        ),
    ] = False,
    color: Annotated[
        bool,
        typer.Option(
            "--color/--no-color",
            help="Enable/disable colored output.",
        ),
    ] = True,
) -> None:
    """Read a local log file."""
    filter_config = _load_filter_config(ignore_file)

    if log_path is None:
        log_path = default_log_path()
        if log_path is None:
            err_console.print("[red]Error:[/red] unable to find log path. Use --log.")
            raise typer.Exit(1)

    if follow:
        source = _create_source(lambda: FollowedLogSource(log_path, poll_interval=interval))
        _run_live(source, filter_config, color=color, stats=stats)
    else:
        source = _create_source(lambda: StaticLogSource.from_file(log_path))
        _show_once(source, filter_config, color=color, stats=stats)


@app.command()
def stdin(
    ignore_file: Annotated[
        Path,
        typer.Option(
            "--ignore-file",
            help="Path to .pufferignore file.",
        ),
    ] = Path(DEFAULT_FILTER_FILE),
    stats: Annotated[
        bool,
        typer.Option(
            "--stats",
            "-s",
            help="Show filtering statistics at the end.",
        ),
    ] = False,
    color: Annotated[
        bool,
        typer.Option(
            "--color/--no-color",
            help="Enable/disable colored output.",
        ),
    ] = True,
) -> None:
    """Read a log piped to standard input.

    Examples:
        cat SMAPI-latest.txt | pufferwatch stdin
    """
    filter_config = _load_filter_config(ignore_file)
    _run_live(StreamedLogSource.from_stdin(), filter_config, color=color, stats=stats)


@app.command()
def remote(
    url: Annotated[
        str,
        typer.Argument(help="URL of the raw log text."),
    ],
    timeout: Annotated[
        float,
        typer.Option(
            "--timeout",
            help="Request timeout in seconds.",
        ),
    ] = DEFAULT_REMOTE_TIMEOUT,
    ignore_file: Annotated[
        Path,
        typer.Option(
            "--ignore-file",
            help="Path to .pufferignore file.",
        ),
    ] = Path(DEFAULT_FILTER_FILE),
    stats: Annotated[
        bool,
        typer.Option(
            "--stats",
            "-s",
            help="Show filtering statistics at the end.",
        ),
    ] = False,
    color: Annotated[
        bool,
        typer.Option(
            "--color/--no-color",
            help="Enable/disable colored output.",
        ),
    ] = True,
) -> None:
    """Download a log and show it."""
    filter_config = _load_filter_config(ignore_file)
    err_console.print("[dim]Fetching remote log...[/dim]")
    source = _create_source(lambda: RemoteLogSource(url, timeout=timeout))
    _show_once(source, filter_config, color=color, stats=stats)


def _create_source(factory) -> LogSource:
    """Create a log source, exiting with an error if that fails."""
    try:
        return factory()
    except SOURCE_ERRORS as e:
        logger.error("error creating log source: %s", e)
        err_console.print(f"[red]Error creating log source:[/red] {escape(str(e))}")
        raise typer.Exit(1)


def _show_once(
    source: LogSource, filter_config: FilterConfig, color: bool, stats: bool
) -> None:
    """Print the filtered log of a source that never changes."""
    with source:
        view = LogView(source, filter_config)
        view.refresh()
        printer = LogPrinter(console=console, color=color)
        printer.print_messages(view.visible_messages())
        if stats:
            _print_stats(view)


def _run_live(
    source: LogSource, filter_config: FilterConfig, color: bool, stats: bool
) -> None:
    """Print the filtered log and keep printing changes until interrupted."""
    view = LogView(source, filter_config)
    tail = TailPrinter(LogPrinter(console=console, color=color))

    try:
        with source, EventController() as events:
            view.refresh()
            tail.show(view.visible_messages())
            while True:
                events.next_event()
                if view.refresh():
                    tail.show(view.visible_messages())
    except KeyboardInterrupt:
        err_console.print("\n[dim]Interrupted.[/dim]")

    if stats:
        _print_stats(view)


def _print_stats(view: LogView) -> None:
    filter_stats = FilterStats()
    filter_stats.record_all(view.log.messages, view.filters)
    err_console.print()
    err_console.print("[bold]Filter Statistics:[/bold]")
    err_console.print(filter_stats.summary(), markup=False, highlight=False)


def _load_filter_config(path: Path) -> FilterConfig:
    """Load filter config from file, with fallback to empty config."""
    if not path.exists():
        # Filter file is optional, don't warn
        return FilterConfig()

    try:
        return parse_filter_file(path)
    except FilterConfigParseError as e:
        err_console.print(f"[red]Error parsing {path}:[/red] {escape(str(e))}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
