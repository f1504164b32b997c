"""Click-based CLI for tariff-sync.

Thin wrapper around library modules. Zero business logic — every operation
delegates to the provider factory, the updater, the scheduler, or the store.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from datetime import datetime, timedelta, timezone

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console(stderr=True)
logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format=_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )
    # Request lines from httpx are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call. Exits 1 on ConfigError."""
    if "config" not in ctx.obj:
        from tariff_sync.core import ConfigError, load_config

        try:
            config = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as exc:
            console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
            raise SystemExit(1) from exc
        _configure_logging("DEBUG" if ctx.obj["verbose"] else config.log_level)
        ctx.obj["config"] = config
    return ctx.obj["config"]


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC when no offset is given."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise click.BadParameter(f"not an ISO-8601 timestamp: {value!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _resolve_window(start: str | None, end: str | None, hours: int) -> tuple[datetime, datetime]:
    end_at = _parse_timestamp(end) if end else datetime.now(timezone.utc)
    start_at = _parse_timestamp(start) if start else end_at - timedelta(hours=hours)
    if start_at >= end_at:
        raise click.UsageError("--from must be before --to")
    return start_at, end_at


def _segments_table(title: str, segments, currency: str | None) -> Table:
    table = Table(title=title)
    table.add_column("From")
    table.add_column("To")
    table.add_column(f"Price ({currency}/kWh)" if currency else "Price", justify="right")
    for segment in segments:
        table.add_row(
            segment.valid_from.isoformat(),
            segment.valid_to.isoformat(),
            f"{segment.value:.5f}",
        )
    return table


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="TARIFF_SYNC_CONFIG",
    default=None,
    help="Path to tariff-sync.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)
@click.version_option(package_name="tariff-sync")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """tariff-sync: scheduled electricity price retrieval."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# run
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Fetch prices on the configured interval until interrupted."""
    config = _load_config(ctx)

    from tariff_sync.core import ConfigError
    from tariff_sync.providers import create_provider_from_config
    from tariff_sync.scheduler import PriceScheduler
    from tariff_sync.store import SqliteSegmentStore
    from tariff_sync.updater import updater_scope

    # Fail fast on provider settings before anything is scheduled
    try:
        provider = create_provider_from_config(config)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise SystemExit(1) from exc

    async def _run():
        await provider.aclose()
        logger.info("Using energy provider %s", config.provider.value)

        sink = SqliteSegmentStore(config.storage.sqlite_path)
        scheduler = PriceScheduler(lambda: updater_scope(config, sink))

        stopping: list[asyncio.Task] = []

        def _request_stop() -> None:
            logger.info("Shutdown requested")
            stopping.append(loop.create_task(scheduler.stop()))

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _request_stop)

        scheduler.start(config.scheduler.update_interval_seconds)
        try:
            await scheduler.wait()
        finally:
            await asyncio.gather(*stopping)

    _run_async(_run())


# ---------------------------------------------------------------------------
# prices
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--from", "start", type=str, default=None, help="Window start (ISO-8601).")
@click.option("--to", "end", type=str, default=None, help="Window end (ISO-8601). Default: now.")
@click.option(
    "--hours",
    type=click.IntRange(min=1),
    default=24,
    show_default=True,
    help="Window length when --from is omitted.",
)
@click.option("--store", is_flag=True, default=False, help="Also save the segments.")
@click.pass_context
def prices(
    ctx: click.Context,
    start: str | None,
    end: str | None,
    hours: int,
    store: bool,
) -> None:
    """Fetch prices once from the configured provider and print them."""
    config = _load_config(ctx)
    start_at, end_at = _resolve_window(start, end, hours)

    async def _run():
        from tariff_sync.core import TariffSyncError
        from tariff_sync.providers import create_provider_from_config
        from tariff_sync.store import SqliteSegmentStore

        try:
            async with create_provider_from_config(config) as provider:
                segments = await provider.get_price_data(start_at, end_at)
        except TariffSyncError as exc:
            console.print(f"[red]{type(exc).__name__}:[/red] {escape(str(exc))}")
            raise SystemExit(1) from exc

        if store:
            await SqliteSegmentStore(config.storage.sqlite_path).store_segments(
                provider.name, segments
            )

        Console().print(
            _segments_table(
                f"{provider.name} prices",
                segments,
                config.provider_settings.currency,
            )
        )
        console.print(f"[green]✓[/green] {len(segments)} segments")

    _run_async(_run())


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--from", "start", type=str, default=None, help="Window start (ISO-8601).")
@click.option("--to", "end", type=str, default=None, help="Window end (ISO-8601). Default: now.")
@click.option(
    "--hours",
    type=click.IntRange(min=1),
    default=24,
    show_default=True,
    help="Window length when --from is omitted.",
)
@click.pass_context
def history(ctx: click.Context, start: str | None, end: str | None, hours: int) -> None:
    """Show stored price segments for the configured provider."""
    config = _load_config(ctx)
    start_at, end_at = _resolve_window(start, end, hours)

    async def _run():
        from tariff_sync.store import SqliteSegmentStore

        store = SqliteSegmentStore(config.storage.sqlite_path)
        segments = await store.get_segments(config.provider.value, start_at, end_at)
        if not segments:
            console.print("[yellow]No stored prices in that window. Run 'prices --store' or 'run' first.[/yellow]")
            return
        Console().print(
            _segments_table(
                f"Stored {config.provider.value} prices",
                segments,
                config.provider_settings.currency,
            )
        )

    _run_async(_run())


# ---------------------------------------------------------------------------
# check-config
# ---------------------------------------------------------------------------


@cli.command("check-config")
@click.pass_context
def check_config(ctx: click.Context) -> None:
    """Validate configuration and provider settings, then exit."""
    config = _load_config(ctx)

    from tariff_sync.core import ConfigError
    from tariff_sync.providers import create_provider_from_config

    try:
        provider = create_provider_from_config(config)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise SystemExit(1) from exc
    _run_async(provider.aclose())

    console.print(f"[green]✓[/green] Provider: {config.provider.value}")
    console.print(f"  Update interval: {config.scheduler.update_interval_seconds}s")
    console.print(f"  Lookback: {config.scheduler.lookback_hours}h")
    console.print(f"  Storage: {config.storage.sqlite_path}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
