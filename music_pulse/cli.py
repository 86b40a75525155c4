"""
Command-line interface for music-pulse.

Registers tracks, runs refresh cycles and prints growth, chart and
dashboard data for the configured owner.

Usage:
    music-pulse init-db                  # Create pulse and notes tables
    music-pulse track add NAME URL       # Register a track
    music-pulse refresh                  # Refresh every tracked video
    music-pulse growth TRACK_ID          # Show 7-day growth for a track
    music-pulse chart --metric views     # Print the hourly chart series
    music-pulse summary                  # Dashboard headline numbers
    music-pulse health                   # Check dependencies
"""

import asyncio
import json
import sys

import click
import structlog

from music_pulse.config.settings import get_settings
from music_pulse.observability.logging import setup_logging
from music_pulse.observability.metrics import get_metrics

logger = structlog.get_logger()


def _fmt_growth(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:+.1f}%"


def _status_color(status: str) -> str:
    return {"rising": "green", "declining": "red"}.get(status, "yellow")


async def _build_service(db, with_provider: bool):
    """
    Build a PulseService over Postgres, with the YouTube provider if requested.

    The returned provider is already entered; callers close it.
    """
    from music_pulse.provider.youtube import YouTubeMetricsProvider
    from music_pulse.pulse.config import PulseConfig
    from music_pulse.pulse.repository import PostgresSnapshotStore
    from music_pulse.pulse.service import PulseService

    settings = get_settings()
    config = PulseConfig()
    store = PostgresSnapshotStore(db, settings.owner_id)
    provider = None
    if with_provider:
        provider = YouTubeMetricsProvider.from_settings(
            settings,
            failure_threshold=config.circuit_failure_threshold,
            recovery_timeout=config.circuit_recovery_seconds,
        )
        await provider.__aenter__()
    return PulseService(store, provider, config=config), provider


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Music Pulse - engagement tracking for released tracks."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from music_pulse.notes.repository import NotesRepository
    from music_pulse.pulse.repository import PostgresSnapshotStore
    from music_pulse.storage.database import Database

    async def run():
        settings = get_settings()
        db = Database()
        await db.connect()

        try:
            await PostgresSnapshotStore(db, settings.owner_id).create_tables()
            await NotesRepository(db, settings.owner_id).create_table()
            click.echo("Database initialized successfully")
        finally:
            await db.close()

    asyncio.run(run())


@main.group()
def track() -> None:
    """Manage tracked videos."""


@track.command("add")
@click.argument("name")
@click.argument("url")
@click.option("--no-fetch", is_flag=True, help="Skip the initial metrics fetch")
def track_add(name: str, url: str, no_fetch: bool) -> None:
    """Register NAME for the video at URL.

    Example:
        music-pulse track add "Midnight Drive" https://youtu.be/dQw4w9WgXcQ
    """
    from music_pulse.pulse.errors import DuplicateTrackError, InvalidTrackUrlError
    from music_pulse.storage.database import Database

    async def run() -> int:
        fetch = not no_fetch and get_settings().youtube_configured
        db = Database()
        await db.connect()
        provider = None

        try:
            service, provider = await _build_service(db, with_provider=fetch)
            try:
                added, result = await service.register_track(name, url, fetch_initial=fetch)
            except (InvalidTrackUrlError, DuplicateTrackError, ValueError) as e:
                click.echo(click.style(f"Error: {e}", fg="red"))
                return 1

            click.echo(f"Added {added.name} ({added.track_id}) for video {added.video_id}")
            if result is not None and result.failed:
                failure = result.failed[0]
                click.echo(click.style(
                    f"  Initial fetch failed: {failure.reason.value} {failure.message}", fg="yellow"
                ))
            elif result is not None:
                click.echo(f"  Views: {added.current_views:,}")
            return 0
        finally:
            if provider is not None:
                await provider.close()
            await db.close()

    sys.exit(asyncio.run(run()))


@track.command("remove")
@click.argument("track_id")
def track_remove(track_id: str) -> None:
    """Remove a track and all of its snapshots."""
    from music_pulse.pulse.errors import TrackNotFoundError
    from music_pulse.storage.database import Database

    async def run() -> int:
        db = Database()
        await db.connect()

        try:
            service, _ = await _build_service(db, with_provider=False)
            try:
                await service.remove_track(track_id)
            except TrackNotFoundError as e:
                click.echo(click.style(f"Error: {e}", fg="red"))
                return 1
            click.echo(f"Removed {track_id}")
            return 0
        finally:
            await db.close()

    sys.exit(asyncio.run(run()))


@track.command("list")
def track_list() -> None:
    """List tracked videos with their cached metrics."""
    from music_pulse.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            service, _ = await _build_service(db, with_provider=False)
            tracks = await service.list_tracks()
            if not tracks:
                click.echo("No tracks registered")
                return

            click.echo(f"{'ID':<17} {'Name':<24} {'Views':>12} {'7d':>8}  Status")
            click.echo("-" * 72)
            for t in tracks:
                click.echo(
                    f"{t.track_id:<17} {t.name[:24]:<24} {t.current_views:>12,} "
                    f"{_fmt_growth(t.growth_7d):>8}  "
                    + click.style(t.status.value, fg=_status_color(t.status.value))
                )
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.option("--metrics/--no-metrics", default=False, help="Expose Prometheus metrics while running")
def refresh(as_json: bool, metrics: bool) -> None:
    """Refresh metrics for every tracked video.

    Exits 1 if any track failed to refresh.
    """
    from music_pulse.pulse.errors import RefreshInProgressError
    from music_pulse.storage.database import Database

    settings = get_settings()
    if not settings.youtube_configured:
        click.echo(click.style("Error: YOUTUBE_API_KEYS is not configured", fg="red"))
        sys.exit(1)

    async def run() -> int:
        if metrics:
            get_metrics().start_server(port=settings.metrics_port)

        db = Database()
        await db.connect()
        provider = None

        try:
            service, provider = await _build_service(db, with_provider=True)
            try:
                result = await service.refresh_all()
            except RefreshInProgressError as e:
                click.echo(click.style(f"Error: {e}", fg="red"))
                return 1

            if as_json:
                click.echo(json.dumps(result.to_dict(), indent=2))
            else:
                click.echo("\nRefresh Results:")
                click.echo(f"  succeeded: {len(result.succeeded)}")
                click.echo(f"  failed: {len(result.failed)}")
                for failure in result.failed:
                    click.echo(click.style(
                        f"  ✗ {failure.track_id}: {failure.reason.value} {failure.message}",
                        fg="red",
                    ))
                if result.needs_review:
                    click.echo(click.style(
                        f"  Needs review (video gone): {', '.join(result.needs_review)}",
                        fg="yellow",
                    ))
            return 1 if result.failed else 0
        finally:
            if provider is not None:
                await provider.close()
            await db.close()

    sys.exit(asyncio.run(run()))


@main.command()
@click.argument("track_id")
def growth(track_id: str) -> None:
    """Show growth, status and recommendation for TRACK_ID."""
    from music_pulse.pulse.errors import TrackNotFoundError
    from music_pulse.storage.database import Database

    async def run() -> int:
        db = Database()
        await db.connect()

        try:
            service, _ = await _build_service(db, with_provider=False)
            try:
                report = await service.compute_growth(track_id)
            except TrackNotFoundError as e:
                click.echo(click.style(f"Error: {e}", fg="red"))
                return 1

            click.echo(f"Growth for {track_id}")
            click.echo("=" * 40)
            click.echo(f"  7-day growth:   {_fmt_growth(report.growth_7d)}")
            click.echo(f"  Basis:          {report.basis.value}")
            click.echo("  Status:         " + click.style(
                report.status.value, fg=_status_color(report.status.value)
            ))
            click.echo(f"  Recommendation: {report.recommendation}")
            if report.insufficient_history:
                click.echo(click.style(
                    "  Less than a full window of history; growth is measured from the oldest snapshot",
                    fg="yellow",
                ))
            return 0
        finally:
            await db.close()

    sys.exit(asyncio.run(run()))


@main.command()
@click.option(
    "--metric",
    default="views",
    type=click.Choice(["views", "likes", "comments"]),
    help="Metric to chart (default: views)",
)
def chart(metric: str) -> None:
    """Print the hour-bucketed chart series as JSON."""
    from music_pulse.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            service, _ = await _build_service(db, with_provider=False)
            series = await service.get_chart_series(metric)
            lines = await service.get_chart_lines()
            click.echo(json.dumps(
                {
                    "metric": metric,
                    "lines": [{"name": line.name, "color": line.color} for line in lines],
                    "series": [point.to_dict() for point in series],
                },
                indent=2,
            ))
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
def summary() -> None:
    """Show dashboard headline numbers and engagement per track."""
    from music_pulse.storage.database import Database

    async def run():
        db = Database()
        await db.connect()

        try:
            service, _ = await _build_service(db, with_provider=False)
            stats = await service.dashboard_summary()
            rows = await service.get_engagement_rows()

            click.echo("Music Pulse Summary")
            click.echo("=" * 40)
            click.echo(f"  Tracks monitored: {stats.tracks_monitored}")
            click.echo(f"  Total views:      {stats.total_views:,}")
            click.echo(f"  Best performer:   {stats.best_performer or '-'}")
            click.echo(f"  Worth promoting:  {stats.worth_promoting}")
            last = stats.last_refreshed_at.isoformat() if stats.last_refreshed_at else "never"
            click.echo(f"  Last refreshed:   {last}")

            if rows:
                click.echo(f"\n  {'Track':<19} {'Views':>12} {'Likes':>10} {'Comments':>9}")
                for row in rows:
                    click.echo(
                        f"  {row['name']:<19} {row['views']:>12,} "
                        f"{row['likes']:>10,} {row['comments']:>9,}"
                    )
        finally:
            await db.close()

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""

    async def check():
        results: dict[str, bool] = {}

        # Check PostgreSQL
        try:
            from music_pulse.storage.database import Database
            db = Database()
            await db.connect()
            results["postgres"] = await db.health_check()
            await db.close()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        settings = get_settings()
        results["youtube_configured"] = settings.youtube_configured

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name == "postgres" and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
