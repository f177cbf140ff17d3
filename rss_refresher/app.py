"""Typer CLI entrypoint for rss-refresher."""

from __future__ import annotations

import signal
from dataclasses import dataclass
from pathlib import Path
from threading import Event
from typing import Iterable, Optional
from uuid import UUID, uuid4

import redis
import typer
from apscheduler.schedulers.blocking import BlockingScheduler
from rich import box
from rich.console import Console
from rich.table import Table

from . import __version__
from .config import ConfigLocator, ConfigRepository, RefresherConfig
from .engine import FeedFetcher, FileItemPublisher, ItemPublisher, RedisItemPublisher, SQLiteFeedStore
from .entities import Feed, RefreshSummary
from .errors import RefresherError
from .infra import SQLiteManager
from .logging_conf import configure_logging, tail_log
from .messaging import Dispatcher, RedisMessageConsumer, RedisMessageProducer, UpdatePublisher
from .messaging.bus import connect
from .orchestrator import Orchestrator
from .scheduler import APSchedulerAdapter

app = typer.Typer(
    help="RSS/Atom feed refresher: conditional fetching, dedup and downstream publishing.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
feed_app = typer.Typer(name="feed", help="Feed registry commands.", no_args_is_help=True)
refresh_app = typer.Typer(name="refresh", help="Trigger feed refreshes.", no_args_is_help=True)
log_app = typer.Typer(name="log", help="Log viewing commands.", no_args_is_help=True)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: RefresherConfig
    store: SQLiteFeedStore
    bus: redis.Redis
    updates: UpdatePublisher
    orchestrator: Orchestrator
    fetcher: FeedFetcher
    item_publisher: ItemPublisher

    def close(self) -> None:
        self.fetcher.close()
        self.item_publisher.close()
        self.store.close()
        self.bus.close()


def _build_item_publisher(repository: ConfigRepository, config: RefresherConfig) -> ItemPublisher:
    if config.item_publish.backend == "file":
        return FileItemPublisher(repository.items_path())
    return RedisItemPublisher.from_url(config.bus.redis_url, config.item_publish.topic)


def build_state(config_path: Optional[Path], verbose: bool) -> AppState:
    repository = ConfigRepository(ConfigLocator(config_path=config_path))
    config = repository.load()
    configure_logging(verbose=verbose or config.logging.verbose, log_dir=repository.log_dir())

    store = SQLiteFeedStore(SQLiteManager(timeout=config.database.timeout), repository.database_path())
    bus = connect(config.bus)
    updates = UpdatePublisher(RedisMessageProducer(bus, config.bus.topic))
    fetcher = FeedFetcher(config.fetch)
    item_publisher = _build_item_publisher(repository, config)
    orchestrator = Orchestrator(
        store=store,
        fetcher=fetcher,
        item_publisher=item_publisher,
        update_sender=updates,
    )
    return AppState(
        repository=repository,
        config=config,
        store=store,
        bus=bus,
        updates=updates,
        orchestrator=orchestrator,
        fetcher=fetcher,
        item_publisher=item_publisher,
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(config_path=None, verbose=False)
        ctx.obj = state
    return state


def _wait_for_shutdown() -> None:
    """Block until SIGINT or SIGTERM."""

    stop = Event()

    def _handler(signum: int, _frame: object) -> None:
        console.print(f"Received signal {signum}, stopping…", style="yellow")
        stop.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)
    while not stop.is_set():
        stop.wait(1.0)


def _render_feeds_table(feeds: Iterable[Feed]) -> Table:
    feeds = list(feeds)
    table = Table(title=f"Registered feeds · {len(feeds)}", box=box.SIMPLE_HEAD)
    table.add_column("Publication UUID", style="cyan", no_wrap=True)
    table.add_column("Language", style="magenta")
    table.add_column("URL", overflow="fold")
    for feed in feeds:
        table.add_row(str(feed.publication_uuid), feed.language_code, feed.url)
    return table


def _render_summary(summary: RefreshSummary) -> Table:
    table = Table(title="Refresh result", box=box.SIMPLE_HEAD, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    if summary.not_modified:
        table.add_row("Status", "not modified")
        return table
    table.add_row("Entries", str(summary.entries))
    table.add_row("Published", str(summary.published))
    table.add_row("Duplicates", str(summary.duplicates))
    table.add_row("Skipped", str(summary.skipped))
    table.add_row("Failed", str(summary.failed))
    return table


app.add_typer(feed_app, name="feed")
app.add_typer(refresh_app, name="refresh")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="Path to config.yaml."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    if ctx.invoked_subcommand == "version":
        return
    ctx.obj = build_state(config, verbose)
    ctx.call_on_close(ctx.obj.close)


@app.command("version", help="Print the application version.")
def version() -> None:
    console.print(f"rss-refresher {__version__}")


@app.command("worker", help="Consume refresh commands until SIGINT/SIGTERM.")
def worker(
    ctx: typer.Context,
    workers: Optional[int] = typer.Option(None, "--workers", help="Override bus.workers."),
) -> None:
    state = _get_state(ctx)
    bus_config = state.config.bus
    if workers is not None:
        bus_config = bus_config.model_copy(update={"workers": workers})
    consumer = RedisMessageConsumer(state.bus, Dispatcher(state.orchestrator), bus_config)
    try:
        consumer.start()
    except redis.RedisError as exc:
        console.print(f"Failed starting consumer: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(
        f"Worker consuming `{bus_config.topic}` with {bus_config.workers} handlers; "
        "terminate with Ctrl+C or `kill <pid>`.",
        style="green",
    )
    try:
        _wait_for_shutdown()
    finally:
        consumer.stop()
    console.print("Worker stopped.", style="dim")


@app.command("scheduler", help="Publish refresh-all commands on the configured schedule.")
def scheduler(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    adapter = APSchedulerAdapter(BlockingScheduler())
    adapter.schedule_refresh_all(state.config.schedule, state.updates.send_all)
    console.print(f"Scheduling refresh-all: {state.config.schedule.type.value} ({state.config.schedule.value})")
    try:
        adapter.start()
    except (KeyboardInterrupt, SystemExit):
        adapter.shutdown()


@app.command("healthcheck", help="Check access to the feed store.")
def healthcheck(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        state.store.healthcheck()
    except RefresherError as exc:
        console.print(f"Store unhealthy: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print("Store OK", style="green")


@refresh_app.command("one", help="Publish a refresh command for one feed.")
def refresh_one(
    ctx: typer.Context,
    publication_uuid: UUID = typer.Argument(..., help="Feed publication UUID."),
) -> None:
    state = _get_state(ctx)
    try:
        state.updates.send_one(publication_uuid)
    except RefresherError as exc:
        console.print(f"Failed sending refresh: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(f"Refresh requested for {publication_uuid}.", style="green")


@refresh_app.command("all", help="Publish a refresh-all command.")
def refresh_all(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        state.updates.send_all()
    except RefresherError as exc:
        console.print(f"Failed sending refresh: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print("Refresh of all feeds requested.", style="green")


@refresh_app.command("run", help="Refresh one feed in this process and print the outcome.")
def refresh_run(
    ctx: typer.Context,
    publication_uuid: UUID = typer.Argument(..., help="Feed publication UUID."),
) -> None:
    state = _get_state(ctx)
    try:
        summary = state.orchestrator.refresh_one(publication_uuid)
    except RefresherError as exc:
        console.print(f"Refresh failed: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(_render_summary(summary))


@feed_app.command("add", help="Register a feed.")
def feed_add(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Feed URL."),
    language: str = typer.Option(..., "--language", "-l", help="Two-letter language code."),
    publication_uuid: Optional[UUID] = typer.Option(None, "--uuid", help="Publication UUID (generated if omitted)."),
) -> None:
    state = _get_state(ctx)
    if len(language) != 2 or not language.isalpha():
        raise typer.BadParameter("language must be a two-letter code", param_hint="--language")
    feed = Feed(publication_uuid=publication_uuid or uuid4(), url=url, language_code=language.lower())
    try:
        state.store.create_feed(feed)
    except RefresherError as exc:
        console.print(f"Failed registering feed: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(f"Registered {feed.publication_uuid} → {feed.url}", style="green")


@feed_app.command("update", help="Change the URL or language of a registered feed.")
def feed_update(
    ctx: typer.Context,
    publication_uuid: UUID = typer.Argument(..., help="Feed publication UUID."),
    url: Optional[str] = typer.Option(None, "--url", help="New feed URL."),
    language: Optional[str] = typer.Option(None, "--language", "-l", help="New two-letter language code."),
) -> None:
    state = _get_state(ctx)
    if url is None and language is None:
        raise typer.BadParameter("nothing to update, pass --url and/or --language", param_hint="--url")
    if language is not None and (len(language) != 2 or not language.isalpha()):
        raise typer.BadParameter("language must be a two-letter code", param_hint="--language")
    try:
        current = state.store.get_feed(publication_uuid)
        if current is None:
            console.print(f"Feed {publication_uuid} is not registered.", style="red")
            raise typer.Exit(code=1)
        feed = Feed(
            publication_uuid=publication_uuid,
            url=url or current.url,
            language_code=language.lower() if language else current.language_code,
        )
        state.store.update_feed(feed)
    except RefresherError as exc:
        console.print(f"Failed updating feed: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(f"Updated {feed.publication_uuid} → {feed.url} ({feed.language_code})", style="green")


@feed_app.command("list", help="List registered feeds.")
def feed_list(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    feeds = state.store.list_all_feeds()
    if not feeds:
        console.print("No feeds registered; add one with `rss-refresher feed add`.", style="yellow")
        return
    console.print(_render_feeds_table(feeds))


@feed_app.command("remove", help="Remove a feed and its processed entries.")
def feed_remove(
    ctx: typer.Context,
    publication_uuid: UUID = typer.Argument(..., help="Feed publication UUID."),
    yes: bool = typer.Option(False, "--yes", help="Skip the confirmation prompt."),
) -> None:
    state = _get_state(ctx)
    if not yes and not typer.confirm(f"Remove feed {publication_uuid}?", default=False):
        console.print("Cancelled.", style="yellow")
        raise typer.Exit(code=0)
    try:
        state.store.delete_feed(publication_uuid)
    except RefresherError as exc:
        console.print(f"Failed removing feed: {exc}", style="red")
        raise typer.Exit(code=1) from exc
    console.print(f"Removed {publication_uuid}.", style="green")


@feed_app.command("history", help="Show the most recent processed entries of a feed.")
def feed_history(
    ctx: typer.Context,
    publication_uuid: UUID = typer.Argument(..., help="Feed publication UUID."),
    limit: int = typer.Option(20, "--limit", help="Number of entries to show."),
) -> None:
    state = _get_state(ctx)
    entries = state.store.recent_entries(publication_uuid, limit=limit)
    if not entries:
        console.print("No processed entries.", style="dim")
        return
    table = Table(title=f"{publication_uuid} · last {len(entries)} entries", box=box.SIMPLE_HEAD)
    table.add_column("Published", style="green")
    table.add_column("GUID", overflow="fold")
    for entry in entries:
        table.add_row(entry.publication_date.isoformat(), entry.guid)
    console.print(table)


@log_app.command("show", help="Show the tail of the application log.")
def log_show(
    ctx: typer.Context,
    tail: int = typer.Option(100, "--tail", help="Number of lines to show."),
    errors: bool = typer.Option(False, "--errors", help="Show error.log instead."),
) -> None:
    state = _get_state(ctx)
    path = state.repository.log_dir() / ("error.log" if errors else "refresher.log")
    lines = tail_log(path, tail)
    if not lines:
        console.print("No log lines yet.", style="dim")
        return
    console.print(f"{path.name} · last {len(lines)} lines", style="cyan")
    console.print("".join(lines), markup=False, highlight=False)


def cli() -> None:
    app()


if __name__ == "__main__":  # pragma: no cover
    cli()
