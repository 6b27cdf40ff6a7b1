from __future__ import annotations

import logging
from decimal import Decimal

from position_journal.metrics.portfolio import aggregate_user_metrics
from position_journal.models import STATUS_CLOSED, STATUS_OPEN, AssetMetrics
from position_journal.serialize import asset_metrics_to_dict, user_metrics_to_dict


def asset(name: str, **overrides) -> AssetMetrics:
    values = {
        "asset": name,
        "status": STATUS_CLOSED,
        "lifetime_pnl_abs": Decimal("0"),
        "lifetime_pnl_pct": Decimal("0"),
        "lifetime_invested_cost": Decimal("100"),
    }
    values.update(overrides)
    return AssetMetrics(**values)


def test_win_rate_is_rebuilt_from_per_asset_counts():
    metrics = aggregate_user_metrics(
        [
            asset("A", round_trips=2, round_trip_win_rate=Decimal("1"), avg_win_round_trip_pnl_pct=Decimal("0.2")),
            asset("B", round_trips=2, round_trip_win_rate=Decimal("0"), avg_loss_round_trip_pnl_pct=Decimal("-0.1")),
        ]
    )

    assert metrics.total_round_trips == 4
    assert metrics.round_trip_win_rate == Decimal("0.5")
    assert metrics.avg_win_round_trip_pnl_pct == Decimal("0.2")
    assert metrics.avg_loss_round_trip_pnl_pct == Decimal("-0.1")
    assert metrics.round_trip_expectancy_pct == Decimal("0.05")


def test_totals_and_lifetime_percentage():
    metrics = aggregate_user_metrics(
        [
            asset("A", lifetime_pnl_abs=Decimal("50"), lifetime_invested_cost=Decimal("200"), status=STATUS_OPEN),
            asset("B", lifetime_pnl_abs=Decimal("-10"), lifetime_invested_cost=Decimal("300")),
        ]
    )

    assert metrics.lifetime_pnl_abs == Decimal("40")
    assert metrics.lifetime_invested_cost == Decimal("500")
    assert metrics.lifetime_pnl_pct == Decimal("0.08")
    assert metrics.total_assets_traded == 2
    assert metrics.open_positions_count == 1
    assert metrics.skipped_assets == 0


def test_holding_average_is_weighted_by_round_trips():
    metrics = aggregate_user_metrics(
        [
            asset("A", round_trips=1, avg_holding_hours=10.0, max_holding_hours=10.0, min_holding_hours=10.0),
            asset("B", round_trips=3, avg_holding_hours=2.0, max_holding_hours=4.0, min_holding_hours=0.5),
            asset("C", round_trips=0, max_holding_hours=72.0),
        ]
    )

    assert metrics.avg_holding_hours == 4.0
    assert metrics.max_holding_hours == 72.0
    assert metrics.min_holding_hours == 0.5


def test_same_instant_round_trips_still_count_toward_holding_average():
    metrics = aggregate_user_metrics(
        [
            asset("A", round_trips=2, avg_holding_hours=0.0),
            asset("B", round_trips=2, avg_holding_hours=10.0),
        ]
    )

    assert metrics.avg_holding_hours == 5.0


def test_average_round_trip_return_is_weighted_by_round_trips():
    metrics = aggregate_user_metrics(
        [
            asset("A", round_trips=1, avg_round_trip_pnl_pct=Decimal("0.3")),
            asset("B", round_trips=3, avg_round_trip_pnl_pct=Decimal("-0.1")),
            asset("C", round_trips=0, avg_round_trip_pnl_pct=Decimal("5")),
        ]
    )

    assert metrics.avg_round_trip_pnl_pct == 0
    assert metrics.total_round_trips == 4


def test_best_and_worst_assets_are_ranked_by_lifetime_percentage():
    pcts = {"AAA": "0.5", "BBB": "-0.4", "CCC": "0.1", "DDD": "1.2", "EEE": "-0.05"}
    metrics = aggregate_user_metrics([asset(name, lifetime_pnl_pct=Decimal(pct)) for name, pct in pcts.items()])

    assert [item.asset for item in metrics.best_assets] == ["DDD", "AAA", "CCC"]
    assert [item.asset for item in metrics.worst_assets] == ["BBB", "EEE", "CCC"]
    assert metrics.worst_assets[0].lifetime_pnl_pct == Decimal("-0.4")


def test_top_n_limits_rankings():
    metrics = aggregate_user_metrics(
        [asset("A", lifetime_pnl_pct=Decimal("0.1")), asset("B", lifetime_pnl_pct=Decimal("0.2"))],
        top_n=1,
    )

    assert [item.asset for item in metrics.best_assets] == ["B"]
    assert [item.asset for item in metrics.worst_assets] == ["A"]


def test_malformed_entries_are_skipped(caplog):
    entries = [
        asset("A", lifetime_pnl_abs=Decimal("5"), round_trips=1, round_trip_win_rate=Decimal("1")),
        {"asset": "BAD", "lifetime_pnl_abs": "oops"},
        {"asset": "NEG", "round_trips": -2},
        {"asset": "FRAC", "round_trips": 2.7},
        "garbage",
    ]
    with caplog.at_level(logging.WARNING):
        metrics = aggregate_user_metrics(entries)

    assert metrics.skipped_assets == 4
    assert metrics.total_assets_traded == 1
    assert metrics.lifetime_pnl_abs == Decimal("5")
    assert metrics.round_trip_win_rate == 1
    assert "Skipping asset summary" in caplog.text


def test_plain_dict_entries_are_accepted():
    stored = asset_metrics_to_dict(
        asset("A", status=STATUS_OPEN, round_trips=3, round_trip_win_rate=Decimal("0.5"))
    )
    metrics = aggregate_user_metrics([stored, {"asset": "B", "round_trips": None}])

    assert metrics.total_round_trips == 3
    assert metrics.open_positions_count == 1
    assert metrics.total_assets_traded == 2
    assert metrics.round_trip_win_rate == Decimal(2) / Decimal(3)


def test_empty_portfolio_is_zeroed():
    metrics = aggregate_user_metrics([])

    assert metrics.lifetime_pnl_abs == 0
    assert metrics.lifetime_pnl_pct == 0
    assert metrics.round_trip_win_rate == 0
    assert metrics.best_assets == []
    assert metrics.worst_assets == []
    assert metrics.behavioral_profile is None


def test_behavioral_profile_is_carried_through():
    profile = {"risk": "high", "trades_per_week": 4}
    payload = user_metrics_to_dict(aggregate_user_metrics([asset("A")], behavioral_profile=profile))

    assert payload["behavioral_profile"] == profile
    assert payload["best_assets"] == [{"asset": "A", "lifetime_pnl_pct": 0.0}]
    assert isinstance(payload["lifetime_pnl_abs"], float)
