"""Tests for GrowthCalculator."""

import math
from datetime import datetime, timedelta, timezone

import pytest

from music_pulse.pulse.config import PulseConfig
from music_pulse.pulse.growth import RECOMMENDATIONS, GrowthCalculator
from music_pulse.pulse.schemas import GrowthBasis, MetricsSnapshot, TrackStatus

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
WEEK = timedelta(days=7)


def _snap(at: datetime, views: int, track_id: str = "trk_a") -> MetricsSnapshot:
    return MetricsSnapshot(track_id=track_id, captured_at=at, views=views, likes=0, comments=0)


@pytest.fixture
def calculator() -> GrowthCalculator:
    return GrowthCalculator(PulseConfig())


class TestGrowthFormula:
    """Growth against a baseline from a full window back."""

    def test_rising_track(self, calculator: GrowthCalculator) -> None:
        """1000 -> 1200 over seven days is +20% and rising."""
        report = calculator.calculate([_snap(NOW - WEEK, 1000), _snap(NOW, 1200)])

        assert report.growth_7d == pytest.approx(20.0)
        assert report.basis is GrowthBasis.MEASURED
        assert report.status is TrackStatus.RISING
        assert report.recommendation == RECOMMENDATIONS[TrackStatus.RISING]

    def test_declining_track(self, calculator: GrowthCalculator) -> None:
        """500 -> 400 over seven days is -20% and declining."""
        report = calculator.calculate([_snap(NOW - WEEK, 500), _snap(NOW, 400)])

        assert report.growth_7d == pytest.approx(-20.0)
        assert report.status is TrackStatus.DECLINING

    @pytest.mark.parametrize(
        "v0,v1",
        [(1, 1), (3, 7), (1000, 999), (12345, 67890), (7, 0)],
    )
    def test_matches_percentage_formula(self, calculator: GrowthCalculator, v0: int, v1: int) -> None:
        report = calculator.calculate([_snap(NOW - WEEK, v0), _snap(NOW, v1)])
        assert report.growth_7d == pytest.approx((v1 - v0) / v0 * 100)

    def test_baseline_is_latest_snapshot_before_boundary(self, calculator: GrowthCalculator) -> None:
        """Older snapshots are ignored once a closer one reaches the boundary."""
        history = [
            _snap(NOW - timedelta(days=10), 100),
            _snap(NOW - timedelta(days=8), 500),
            _snap(NOW - timedelta(days=3), 900),
            _snap(NOW, 1000),
        ]

        report = calculator.calculate(history)

        assert report.baseline_at == NOW - timedelta(days=8)
        assert report.growth_7d == pytest.approx(100.0)

    def test_history_order_does_not_matter(self, calculator: GrowthCalculator) -> None:
        history = [_snap(NOW, 1200), _snap(NOW - WEEK, 1000), _snap(NOW - timedelta(days=2), 1100)]
        assert calculator.calculate(history) == calculator.calculate(sorted(history, key=lambda s: s.captured_at))


class TestSentinels:
    """Histories that cannot produce a measured growth."""

    def test_single_snapshot_flags_insufficient_history(self, calculator: GrowthCalculator) -> None:
        report = calculator.calculate([_snap(NOW, 5000)])

        assert report.basis is GrowthBasis.INSUFFICIENT_HISTORY
        assert report.insufficient_history is True
        assert report.growth_7d == 0.0
        assert report.status is TrackStatus.STEADY

    def test_short_history_uses_oldest_snapshot(self, calculator: GrowthCalculator) -> None:
        history = [_snap(NOW - timedelta(days=2), 100), _snap(NOW, 150)]

        report = calculator.calculate(history)

        assert report.basis is GrowthBasis.INSUFFICIENT_HISTORY
        assert report.baseline_at == NOW - timedelta(days=2)
        assert report.growth_7d == pytest.approx(50.0)

    def test_zero_baseline_is_new_not_infinite(self, calculator: GrowthCalculator) -> None:
        report = calculator.calculate([_snap(NOW - WEEK, 0), _snap(NOW, 250)])

        assert report.basis is GrowthBasis.NEW
        assert report.growth_7d is None
        assert report.status is TrackStatus.STEADY
        assert report.display_growth == 0.0

    def test_empty_history_is_no_data(self, calculator: GrowthCalculator) -> None:
        report = calculator.calculate([])

        assert report.basis is GrowthBasis.NO_DATA
        assert report.growth_7d is None
        assert report.latest_at is None

    @pytest.mark.parametrize("views", [0, 1, 10**12])
    def test_never_nan_or_infinite(self, calculator: GrowthCalculator, views: int) -> None:
        for history in ([_snap(NOW, views)], [_snap(NOW - WEEK, views), _snap(NOW, views + 1)]):
            growth = calculator.calculate(history).growth_7d
            assert growth is None or math.isfinite(growth)


class TestIdempotence:
    """Same history in, same report out."""

    def test_repeated_calls_are_identical(self, calculator: GrowthCalculator) -> None:
        history = [_snap(NOW - WEEK, 1000), _snap(NOW - timedelta(days=1), 1150), _snap(NOW, 1200)]

        first = calculator.calculate(history)
        second = calculator.calculate(history)

        assert first == second

    def test_default_as_of_is_latest_snapshot(self, calculator: GrowthCalculator) -> None:
        history = [_snap(NOW - WEEK, 1000), _snap(NOW, 1200)]
        assert calculator.calculate(history) == calculator.calculate(history, as_of=NOW)

    def test_later_as_of_moves_the_boundary(self, calculator: GrowthCalculator) -> None:
        history = [_snap(NOW - WEEK, 1000), _snap(NOW - timedelta(days=1), 1100), _snap(NOW, 1200)]

        report = calculator.calculate(history, as_of=NOW + timedelta(days=6))

        assert report.baseline_at == NOW - timedelta(days=1)
        assert report.growth_7d == pytest.approx(100 / 1100 * 100)

    def test_snapshots_after_as_of_are_ignored(self, calculator: GrowthCalculator) -> None:
        """Growth at a past instant is measured against that instant's latest snapshot."""
        history = [_snap(NOW - WEEK, 1000), _snap(NOW, 1100), _snap(NOW + timedelta(days=2), 5000)]

        report = calculator.calculate(history, as_of=NOW)

        assert report.latest_at == NOW
        assert report.growth_7d == pytest.approx(10.0)
        assert report.basis is GrowthBasis.MEASURED

    def test_as_of_before_every_snapshot_is_no_data(self, calculator: GrowthCalculator) -> None:
        report = calculator.calculate([_snap(NOW, 1000)], as_of=NOW - timedelta(hours=1))

        assert report.basis is GrowthBasis.NO_DATA
        assert report.growth_7d is None


class TestClassify:
    """Threshold boundaries."""

    @pytest.mark.parametrize(
        "growth,status",
        [
            (15.0, TrackStatus.STEADY),
            (15.01, TrackStatus.RISING),
            (-5.0, TrackStatus.STEADY),
            (-5.01, TrackStatus.DECLINING),
            (0.0, TrackStatus.STEADY),
            (None, TrackStatus.STEADY),
        ],
    )
    def test_thresholds_are_exclusive(self, calculator: GrowthCalculator, growth, status) -> None:
        assert calculator.classify(growth) is status

    def test_custom_thresholds(self) -> None:
        calculator = GrowthCalculator(PulseConfig(rising_threshold=50.0, declining_threshold=-50.0))
        assert calculator.classify(20.0) is TrackStatus.STEADY
        assert calculator.classify(-20.0) is TrackStatus.STEADY

    def test_custom_window(self) -> None:
        calculator = GrowthCalculator(PulseConfig(growth_window_days=1))
        history = [_snap(NOW - WEEK, 10), _snap(NOW - timedelta(days=1), 100), _snap(NOW, 110)]

        report = calculator.calculate(history)

        assert report.baseline_at == NOW - timedelta(days=1)
        assert report.growth_7d == pytest.approx(10.0)
