"""Typer CLI entrypoint for feed-search."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Optional, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository, GlobalConfig
from .engine import FeedUnavailableError
from .logging_conf import available_logs, configure_logging, find_log, tail_log
from .scheduler import APSchedulerAdapter
from .service import FeedService, build_service

app = typer.Typer(
    help="feed-search command line tool",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: GlobalConfig
    service: FeedService
    scheduler: APSchedulerAdapter


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    repository = ConfigRepository()
    config = repository.load_global_config()
    service = build_service(config)
    scheduler = APSchedulerAdapter(service.cache)
    return AppState(repository=repository, config=config, service=service, scheduler=scheduler)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _print_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _render_hits_table(query: str, results: Sequence[dict[str, Any]]) -> Table:
    table = Table(
        title=f"Results for '{query}' · {len(results)} hit(s)",
        box=box.SIMPLE_HEAD,
        show_lines=False,
    )
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Title", style="green")
    table.add_column("Snippet", style="dim", overflow="fold")
    for result in results:
        table.add_row(str(result["id"]), str(result.get("title", "")), str(result.get("snippet", "")))
    return table


def _render_status_table(status: dict[str, Any]) -> Table:
    table = Table(title="Feed cache", box=box.MINIMAL_DOUBLE_HEAD, show_header=False, pad_edge=False)
    table.add_column("Key", style="dim")
    table.add_column("Value", style="cyan")
    for key, value in status.items():
        table.add_row(key, "-" if value is None else str(value))
    return table


app.add_typer(log_app, name="log", help="List or show log files")


@app.callback()
def main(
    ctx: typer.Context, verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging", is_flag=True)
) -> None:
    state = build_state(verbose)
    ctx.obj = state
    ctx.call_on_close(state.service.close)


@app.command("search", help="Case-insensitive substring search over the catalogue.")
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Text to look for."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw payload.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    result = state.service.search({"q": query})
    if as_json:
        _print_json(result.to_dict())
    elif result.is_error:
        console.print(result.content["error"], style="red")
    elif not result.content["results"]:
        console.print(f"No records match '{query}'.", style="yellow")
    else:
        console.print(_render_hits_table(query, result.content["results"]))
    if result.is_error:
        raise typer.Exit(code=1)


@app.command("fetch", help="Show one record by id.")
def fetch(
    ctx: typer.Context,
    record_id: str = typer.Argument(..., help="Record id as returned by search."),
    as_json: bool = typer.Option(False, "--json", help="Print the raw payload.", is_flag=True),
) -> None:
    state = _get_state(ctx)
    result = state.service.fetch({"id": record_id})
    if as_json:
        _print_json(result.to_dict())
    elif result.is_error:
        console.print(result.content["error"], style="red")
    else:
        console.print(f"[bold cyan]{result.content['id']}[/bold cyan]")
        console.print(result.content["text"], markup=False, highlight=False)
        console.print(f"source: {result.content['metadata']['source']}", style="dim")
    if result.is_error:
        raise typer.Exit(code=1)


@app.command("status", help="Show cache state and the last refresh error.")
def status(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(_render_status_table(state.service.status()))


@app.command("refresh", help="Load the feed now, replacing the cached snapshot.")
def refresh(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        snapshot = state.service.cache.refresh()
    except FeedUnavailableError as exc:
        console.print(f"Feed unavailable: {exc}", style="red")
        raise typer.Exit(code=1)
    last_error = state.service.cache.state.last_error
    if last_error is not None:
        console.print(f"Refresh failed, keeping previous snapshot: {last_error}", style="yellow")
        raise typer.Exit(code=1)
    suffix = " (truncated)" if snapshot.truncated else ""
    console.print(
        f"Loaded {len(snapshot)} record(s) of {snapshot.total_entries}{suffix} from {snapshot.source}",
        style="green",
    )


@app.command("warm", help="Keep refreshing the cache in the background until interrupted.")
def warm(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(
        None,
        "--interval",
        help="Seconds between refreshes (defaults to cache.refresh_interval, then cache.ttl).",
    ),
) -> None:
    state = _get_state(ctx)
    seconds = interval
    if seconds is None:
        seconds = state.config.cache.refresh_interval or state.config.cache.ttl
    if seconds <= 0:
        console.print("Refresh interval must be greater than 0.", style="red")
        raise typer.Exit(code=1)
    state.scheduler.run_refresh()
    state.scheduler.schedule_refresh(seconds)
    state.scheduler.start()
    console.print(f"Refreshing every {seconds:g}s, press Ctrl+C to stop.", style="dim")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("Stopping.", style="dim")
    finally:
        state.scheduler.shutdown()


@log_app.command("list", help="List available log files.")
def log_list() -> None:
    logs = list(available_logs())
    if not logs:
        console.print("No log files yet.", style="yellow")
        return
    for path in logs:
        console.print(path.name)


@log_app.command("show", help="Show the last lines of a log file.")
def log_show(
    name: str = typer.Argument("feed_search", help="Log name, with or without .log."),
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines to show."),
) -> None:
    match = find_log(name)
    if match is None:
        console.print(f"Log not found: {name}", style="red")
        raise typer.Exit(code=1)
    for line in tail_log(match, lines):
        console.print(line.rstrip("\n"), markup=False, highlight=False)


if __name__ == "__main__":  # pragma: no cover
    app()
