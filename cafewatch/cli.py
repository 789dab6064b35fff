"""
Command-line interface for cafe-watch.

Provides commands to run the monitor loop, inspect and reset cursors,
manage monitored sources and serve the operator API.

Usage:
    cafe-watch init-db          # Create tables
    cafe-watch sources add ...  # Register an author to watch
    cafe-watch run              # Run the monitor loop
    cafe-watch check            # Run a single cycle and print new posts
    cafe-watch serve            # Start the API server
"""

import asyncio
import signal
import sys

import click

from cafewatch.config.settings import get_settings
from cafewatch.observability.logging import setup_logging
from cafewatch.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """cafe-watch - new-post notifications for cafe authors."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def run(metrics: bool) -> None:
    """Run the monitor loop until interrupted."""
    from cafewatch.monitor.service import build_monitor_service
    from cafewatch.storage.database import Database

    async def _run():
        async with Database() as db:
            service = build_monitor_service(db)

            if metrics:
                get_metrics().start_server()

            # Handle shutdown signals
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))

            await service.start()

    asyncio.run(_run())


@main.command()
@click.option("--require-login", is_flag=True, help="Exit non-zero if not logged in")
def check(require_login: bool) -> None:
    """Run one cycle and print any new posts."""
    from cafewatch.monitor.errors import AuthError
    from cafewatch.monitor.service import build_monitor_service
    from cafewatch.storage.database import Database

    async def _run() -> int:
        async with Database() as db:
            service = build_monitor_service(db)
            try:
                if require_login:
                    await service.auth.require_authenticated()
                report = await service.run_once()
            except AuthError as e:
                click.echo(click.style(f"Not logged in: {e}", fg="red"))
                return 1
            finally:
                await service.close()

            if not report.authenticated:
                click.echo(click.style("Not logged in, cycle skipped", fg="yellow"))
                return 1

            for outcome in report.outcomes:
                status = outcome.error_kind or (outcome.mode.value if outcome.mode else "-")
                click.echo(
                    f"  source {outcome.source_id}: {status}, "
                    f"{len(outcome.new_items)} new ({outcome.elapsed_seconds:.1f}s)"
                )
                for item in outcome.new_items:
                    click.echo(f"    [{item.id}] {item.title}  {item.url}")

            click.echo(f"\n{len(report.new_items)} new posts, {report.error_count} errors")
            return 0

    sys.exit(asyncio.run(_run()))


@main.command("init-db")
def init_db() -> None:
    """Create the monitor tables (idempotent)."""
    from cafewatch.monitor.state import MONITOR_STATES_DDL
    from cafewatch.notify.history import NOTIFICATION_HISTORY_DDL
    from cafewatch.sources.repository import MONITORED_SOURCES_DDL
    from cafewatch.sources.service import SourcesService
    from cafewatch.storage.database import Database

    async def _run():
        async with Database() as db:
            await db.ensure_schema(
                [MONITOR_STATES_DDL, MONITORED_SOURCES_DDL, NOTIFICATION_HISTORY_DDL]
            )
            await SourcesService(db).ensure_seeded()
        click.echo("Database initialized successfully")

    asyncio.run(_run())


@main.command("reset-state")
@click.argument("source_id", type=int)
@click.option("--platform", default="cafe", show_default=True, help="Platform key")
def reset_state(source_id: int, platform: str) -> None:
    """Forget one source's cursor so the next cycle baselines it again."""
    from cafewatch.monitor.state import MonitorStateStore
    from cafewatch.storage.database import Database

    async def _run() -> bool:
        async with Database() as db:
            return await MonitorStateStore(db).reset(source_id, platform)

    if asyncio.run(_run()):
        click.echo(f"Cursor for source {source_id} ({platform}) removed")
    else:
        click.echo(f"No cursor stored for source {source_id} ({platform})")


@main.command("reset-platform")
@click.option("--platform", default="cafe", show_default=True, help="Platform key")
@click.confirmation_option(prompt="Remove every cursor for this platform?")
def reset_platform(platform: str) -> None:
    """Forget every cursor of a platform."""
    from cafewatch.monitor.state import MonitorStateStore
    from cafewatch.storage.database import Database

    async def _run() -> int:
        async with Database() as db:
            return await MonitorStateStore(db).reset_platform(platform)

    click.echo(f"Removed {asyncio.run(_run())} cursors for {platform}")


@main.command()
@click.option("--platform", default=None, help="Filter by platform")
def states(platform: str | None) -> None:
    """List stored cursors."""
    from cafewatch.monitor.state import MonitorStateStore
    from cafewatch.storage.database import Database

    async def _run():
        async with Database() as db:
            return await MonitorStateStore(db).list_states(platform)

    rows = asyncio.run(_run())
    if not rows:
        click.echo("No cursors stored")
        return
    for state in rows:
        checked = state.last_check_time.strftime("%Y-%m-%d %H:%M:%S") if state.last_check_time else "-"
        click.echo(
            f"  {state.platform}/{state.source_id}: "
            f"{state.last_content_id or '-'} ({state.last_status.value}, {checked})"
        )


@main.command("check-login")
def check_login() -> None:
    """Probe the login state of the configured session."""
    from cafewatch.cafe.auth_probe import NaverAuthProbe
    from cafewatch.monitor.auth import AuthStatusCache

    async def _run() -> bool:
        cache = AuthStatusCache(NaverAuthProbe())
        return await cache.check_status()

    settings = get_settings()
    if not settings.cafe_session_configured:
        click.echo(click.style("CAFE_COOKIE is not set", fg="yellow"))

    if asyncio.run(_run()):
        click.echo(click.style("✓ Logged in", fg="green"))
    else:
        click.echo(click.style("✗ Not logged in", fg="red"))
        sys.exit(1)


@main.group()
def sources() -> None:
    """Manage monitored sources."""


@sources.command("add")
@click.argument("group_id")
@click.argument("author_handle")
@click.option("--name", "display_name", default="", help="Display name for notifications")
@click.option("--platform", default="cafe", show_default=True)
@click.option("--image", "profile_image_url", default=None, help="Profile image URL")
@click.option("--notify/--no-notify", default=True, help="Send notifications for this source")
def sources_add(
    group_id: str,
    author_handle: str,
    display_name: str,
    platform: str,
    profile_image_url: str | None,
    notify: bool,
) -> None:
    """Watch AUTHOR_HANDLE's posts in cafe GROUP_ID."""
    from cafewatch.sources.schemas import MonitoredSource
    from cafewatch.sources.service import SourcesService
    from cafewatch.storage.database import Database

    async def _run():
        async with Database() as db:
            return await SourcesService(db).add_source(
                MonitoredSource(
                    platform=platform,
                    author_handle=author_handle,
                    group_id=group_id,
                    display_name=display_name,
                    profile_image_url=profile_image_url,
                    notify=notify,
                )
            )

    stored = asyncio.run(_run())
    click.echo(f"Source {stored.source_id}: {stored.author_handle} in {stored.group_id}")


@sources.command("list")
@click.option("--platform", default=None, help="Filter by platform")
@click.option("--active-only", is_flag=True, help="Only active sources")
def sources_list(platform: str | None, active_only: bool) -> None:
    """List registered sources."""
    from cafewatch.sources.repository import SourcesRepository
    from cafewatch.storage.database import Database

    async def _run():
        async with Database() as db:
            return await SourcesRepository(db).list_sources(platform, active_only)

    rows = asyncio.run(_run())
    if not rows:
        click.echo("No sources registered")
        return
    for s in rows:
        flags = []
        if not s.is_active:
            flags.append("disabled")
        if not s.notify:
            flags.append("muted")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(
            f"  {s.source_id}: {s.display_name or s.author_handle} "
            f"({s.platform}, cafe {s.group_id}){suffix}"
        )


@sources.command("disable")
@click.argument("source_id", type=int)
def sources_disable(source_id: int) -> None:
    """Stop scanning a source (its cursor is kept)."""
    from cafewatch.sources.service import SourcesService
    from cafewatch.storage.database import Database

    async def _run() -> bool:
        async with Database() as db:
            return await SourcesService(db).disable_source(source_id)

    if asyncio.run(_run()):
        click.echo(f"Source {source_id} disabled")
    else:
        click.echo(f"Source {source_id} not found or already disabled")
        sys.exit(1)


@sources.command("notify")
@click.argument("source_id", type=int)
@click.argument("enabled", type=click.BOOL)
def sources_notify(source_id: int, enabled: bool) -> None:
    """Turn notifications for a source on or off (scanning continues)."""
    from cafewatch.sources.service import SourcesService
    from cafewatch.storage.database import Database

    async def _run() -> bool:
        async with Database() as db:
            return await SourcesService(db).set_notify(source_id, enabled)

    if asyncio.run(_run()):
        click.echo(f"Notifications for source {source_id}: {'on' if enabled else 'off'}")
    else:
        click.echo(f"Source {source_id} not found")
        sys.exit(1)


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the operator API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "cafewatch.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
