"""Tests for the music-pulse CLI."""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import respx
from click.testing import CliRunner

from music_pulse.cli import main
from music_pulse.config.settings import Settings
from music_pulse.pulse.errors import InvalidTrackUrlError, RefreshInProgressError, TrackNotFoundError
from music_pulse.pulse.schemas import (
    ChartLine,
    ChartSeriesPoint,
    DashboardSummary,
    FailureReason,
    GrowthBasis,
    GrowthReport,
    RefreshFailure,
    RefreshResult,
    TrackedTrack,
    TrackStatus,
)
from music_pulse.pulse.store import InMemorySnapshotStore

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
VIDEOS = "https://yt.test/youtube/v3/videos"


def _video(views: str, video_id: str = "dQw4w9WgXcQ") -> dict:
    return {"items": [{"id": video_id, "statistics": {"viewCount": views, "likeCount": "10"}}]}


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_db() -> AsyncMock:
    db = AsyncMock()
    db.connect = AsyncMock()
    db.close = AsyncMock()
    db.execute = AsyncMock(return_value="CREATE TABLE")
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def service() -> MagicMock:
    return MagicMock()


def _track(**kwargs) -> TrackedTrack:
    defaults = dict(
        track_id="trk_abc123def456",
        name="Midnight Drive",
        source_url="https://youtu.be/dQw4w9WgXcQ",
        video_id="dQw4w9WgXcQ",
        current_views=1200,
        growth_7d=20.0,
        status=TrackStatus.RISING,
    )
    defaults.update(kwargs)
    return TrackedTrack(**defaults)


def _invoke(runner: CliRunner, args: list[str], mock_db: AsyncMock, service: MagicMock, settings: Settings | None = None):
    settings = settings or Settings(youtube_api_keys=None)
    with patch("music_pulse.storage.database.Database", return_value=mock_db), \
            patch("music_pulse.cli._build_service", new=AsyncMock(return_value=(service, None))), \
            patch("music_pulse.cli.get_settings", return_value=settings):
        return runner.invoke(main, args)


class TestInitDb:
    """`init-db` command."""

    def test_creates_all_tables(self, runner: CliRunner, mock_db: AsyncMock) -> None:
        with patch("music_pulse.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["init-db"])

        assert result.exit_code == 0, result.output
        assert "Database initialized successfully" in result.output
        sql = " ".join(call[0][0] for call in mock_db.execute.call_args_list)
        assert "pulse_tracks" in sql
        assert "creative_notes" in sql
        mock_db.close.assert_called_once()

    def test_closes_db_on_error(self, runner: CliRunner, mock_db: AsyncMock) -> None:
        mock_db.execute.side_effect = RuntimeError("connection lost")

        with patch("music_pulse.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["init-db"])

        assert result.exit_code != 0
        mock_db.close.assert_called_once()


class TestTrackCommands:
    """`track add|remove|list` commands."""

    def test_add_without_keys_skips_fetch(self, runner, mock_db, service) -> None:
        service.register_track = AsyncMock(return_value=(_track(current_views=0), None))

        result = _invoke(runner, ["track", "add", "Midnight Drive", "https://youtu.be/dQw4w9WgXcQ"], mock_db, service)

        assert result.exit_code == 0, result.output
        assert "Added Midnight Drive (trk_abc123def456)" in result.output
        assert service.register_track.call_args.kwargs["fetch_initial"] is False

    def test_add_reports_initial_fetch_failure(self, runner, mock_db, service, test_settings) -> None:
        failed = RefreshResult(failed=[RefreshFailure("trk_abc123def456", FailureReason.NOT_FOUND, "private")])
        service.register_track = AsyncMock(return_value=(_track(current_views=0), failed))

        result = _invoke(runner, ["track", "add", "A", "dQw4w9WgXcQ"], mock_db, service, test_settings)

        assert result.exit_code == 0, result.output
        assert "Initial fetch failed: not_found" in result.output
        assert service.register_track.call_args.kwargs["fetch_initial"] is True

    def test_add_invalid_url(self, runner, mock_db, service) -> None:
        service.register_track = AsyncMock(side_effect=InvalidTrackUrlError("no id in 'x'"))

        result = _invoke(runner, ["track", "add", "A", "x"], mock_db, service)

        assert result.exit_code == 1
        assert "Error" in result.output
        mock_db.close.assert_called_once()

    def test_remove_unknown(self, runner, mock_db, service) -> None:
        service.remove_track = AsyncMock(side_effect=TrackNotFoundError("trk_x"))

        result = _invoke(runner, ["track", "remove", "trk_x"], mock_db, service)

        assert result.exit_code == 1
        assert "Track trk_x not found" in result.output

    def test_remove(self, runner, mock_db, service) -> None:
        service.remove_track = AsyncMock()

        result = _invoke(runner, ["track", "remove", "trk_x"], mock_db, service)

        assert result.exit_code == 0
        assert "Removed trk_x" in result.output

    def test_list(self, runner, mock_db, service) -> None:
        service.list_tracks = AsyncMock(return_value=[_track()])

        result = _invoke(runner, ["track", "list"], mock_db, service)

        assert result.exit_code == 0, result.output
        assert "Midnight Drive" in result.output
        assert "1,200" in result.output
        assert "+20.0%" in result.output

    def test_list_empty(self, runner, mock_db, service) -> None:
        service.list_tracks = AsyncMock(return_value=[])

        result = _invoke(runner, ["track", "list"], mock_db, service)

        assert "No tracks registered" in result.output


class TestRefresh:
    """`refresh` command."""

    def test_requires_keys(self, runner, mock_db, service) -> None:
        result = _invoke(runner, ["refresh"], mock_db, service)

        assert result.exit_code == 1
        assert "YOUTUBE_API_KEYS" in result.output

    def test_partial_failure_exits_nonzero(self, runner, mock_db, service, test_settings) -> None:
        service.refresh_all = AsyncMock(return_value=RefreshResult(
            succeeded=["trk_1", "trk_3"],
            failed=[RefreshFailure("trk_2", FailureReason.TIMEOUT, "slow")],
        ))

        result = _invoke(runner, ["refresh"], mock_db, service, test_settings)

        assert result.exit_code == 1
        assert "succeeded: 2" in result.output
        assert "trk_2: timeout" in result.output

    def test_json_output(self, runner, mock_db, service, test_settings) -> None:
        service.refresh_all = AsyncMock(return_value=RefreshResult(succeeded=["trk_1"]))

        result = _invoke(runner, ["refresh", "--json"], mock_db, service, test_settings)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"succeeded": ["trk_1"], "failed": []}

    def test_in_progress(self, runner, mock_db, service, test_settings) -> None:
        service.refresh_all = AsyncMock(side_effect=RefreshInProgressError(["trk_1"]))

        result = _invoke(runner, ["refresh"], mock_db, service, test_settings)

        assert result.exit_code == 1
        assert "already in progress" in result.output


class TestProviderWiring:
    """Commands that fetch from YouTube through the real service builder."""

    @pytest.fixture
    def store(self) -> InMemorySnapshotStore:
        return InMemorySnapshotStore()

    def _invoke_live(self, runner, args, mock_db, store, settings):
        with patch("music_pulse.storage.database.Database", return_value=mock_db), \
                patch("music_pulse.pulse.repository.PostgresSnapshotStore", return_value=store), \
                patch("music_pulse.cli.get_settings", return_value=settings):
            return runner.invoke(main, args)

    @respx.mock
    def test_refresh_fetches_statistics(self, runner, mock_db, store, test_settings) -> None:
        asyncio.run(store.add_track(_track(current_views=0, growth_7d=0.0, status=TrackStatus.STEADY)))
        route = respx.get(VIDEOS).mock(return_value=httpx.Response(200, json=_video("1500")))

        result = self._invoke_live(runner, ["refresh", "--json"], mock_db, store, test_settings)

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"succeeded": ["trk_abc123def456"], "failed": []}
        assert route.called
        refreshed = asyncio.run(store.get_track("trk_abc123def456"))
        assert refreshed.current_views == 1500

    @respx.mock
    def test_track_add_takes_first_snapshot(self, runner, mock_db, store, test_settings) -> None:
        respx.get(VIDEOS).mock(return_value=httpx.Response(200, json=_video("1200")))

        result = self._invoke_live(
            runner, ["track", "add", "Midnight Drive", "https://youtu.be/dQw4w9WgXcQ"], mock_db, store, test_settings
        )

        assert result.exit_code == 0, result.output
        assert "Views: 1,200" in result.output
        assert "Initial fetch failed" not in result.output


class TestReadCommands:
    """`growth`, `chart` and `summary` commands."""

    def test_growth(self, runner, mock_db, service) -> None:
        service.compute_growth = AsyncMock(return_value=GrowthReport(
            growth_7d=12.0,
            basis=GrowthBasis.INSUFFICIENT_HISTORY,
            status=TrackStatus.STEADY,
            recommendation="Holding steady.",
        ))

        result = _invoke(runner, ["growth", "trk_1"], mock_db, service)

        assert result.exit_code == 0, result.output
        assert "+12.0%" in result.output
        assert "insufficient_history" in result.output
        assert "Holding steady." in result.output

    def test_growth_undefined(self, runner, mock_db, service) -> None:
        service.compute_growth = AsyncMock(return_value=GrowthReport(
            growth_7d=None, basis=GrowthBasis.NEW, status=TrackStatus.STEADY, recommendation="",
        ))

        result = _invoke(runner, ["growth", "trk_1"], mock_db, service)

        assert "n/a" in result.output

    def test_growth_unknown_track(self, runner, mock_db, service) -> None:
        service.compute_growth = AsyncMock(side_effect=TrackNotFoundError("trk_1"))

        result = _invoke(runner, ["growth", "trk_1"], mock_db, service)

        assert result.exit_code == 1

    def test_chart_json(self, runner, mock_db, service) -> None:
        service.get_chart_series = AsyncMock(return_value=[
            ChartSeriesPoint(bucket="2026-03-10 12:00", bucket_start=NOW, values={"Midnight Drive": 1200}),
        ])
        service.get_chart_lines = AsyncMock(return_value=[ChartLine("Midnight Drive", "#ffffff")])

        result = _invoke(runner, ["chart", "--metric", "likes"], mock_db, service)

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["metric"] == "likes"
        assert payload["series"] == [{"date": "2026-03-10 12:00", "Midnight Drive": 1200}]
        assert payload["lines"] == [{"name": "Midnight Drive", "color": "#ffffff"}]
        service.get_chart_series.assert_awaited_once_with("likes")

    def test_chart_rejects_unknown_metric(self, runner, mock_db, service) -> None:
        result = _invoke(runner, ["chart", "--metric", "shares"], mock_db, service)
        assert result.exit_code == 2

    def test_summary(self, runner, mock_db, service) -> None:
        service.dashboard_summary = AsyncMock(return_value=DashboardSummary(
            tracks_monitored=2,
            total_views=1800,
            best_performer="Loud",
            best_performer_status=TrackStatus.RISING,
            worth_promoting=1,
            last_refreshed_at=NOW,
        ))
        service.get_engagement_rows = AsyncMock(return_value=[
            {"name": "Loud", "views": 1500, "likes": 9, "comments": 3},
        ])

        result = _invoke(runner, ["summary"], mock_db, service)

        assert result.exit_code == 0, result.output
        assert "Tracks monitored: 2" in result.output
        assert "1,800" in result.output
        assert "Worth promoting:  1" in result.output


class TestHealth:
    """`health` command."""

    def test_healthy(self, runner, mock_db) -> None:
        with patch("music_pulse.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 0, result.output
        assert "postgres: True" in result.output

    def test_postgres_down(self, runner, mock_db) -> None:
        mock_db.connect.side_effect = OSError("refused")

        with patch("music_pulse.storage.database.Database", return_value=mock_db):
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 1
        assert "Some services unhealthy!" in result.output
