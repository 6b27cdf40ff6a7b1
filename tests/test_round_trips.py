from __future__ import annotations

from decimal import Decimal

from position_journal.metrics.round_trips import compute_holding_stats, compute_round_trip_stats, expectancy


def test_round_trip_stats_split_wins_and_losses():
    stats = compute_round_trip_stats([Decimal("0.2"), Decimal("-0.1"), Decimal("0"), Decimal("0.4")])

    assert stats.count == 4
    assert stats.win_rate == Decimal("0.5")
    assert stats.avg_pnl_pct == Decimal("0.125")
    assert stats.avg_win_pnl_pct == Decimal("0.3")
    assert stats.avg_loss_pnl_pct == Decimal("-0.1")
    assert stats.expectancy_pct == Decimal("0.1")


def test_round_trip_stats_without_trips_are_zero():
    stats = compute_round_trip_stats([])

    assert stats.count == 0
    assert stats.win_rate == 0
    assert stats.avg_pnl_pct == 0
    assert stats.expectancy_pct == 0


def test_expectancy_uses_loss_magnitude():
    assert expectancy(Decimal("0.25"), Decimal("0.4"), Decimal("-0.2")) == Decimal("-0.05")
    assert expectancy(Decimal("1"), Decimal("0.1"), Decimal("0")) == Decimal("0.1")


def test_holding_stats_only_let_open_cycle_raise_maximum():
    stats = compute_holding_stats([2.0, 6.0], in_progress_hours=30.0)

    assert stats.completed == 2
    assert stats.avg_hours == 4.0
    assert stats.max_hours == 30.0
    assert stats.min_hours == 2.0


def test_holding_stats_ignore_shorter_open_cycle():
    stats = compute_holding_stats([12.0], in_progress_hours=1.5)

    assert stats.max_hours == 12.0
    assert compute_holding_stats([]).max_hours == 0.0
