from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Mapping

from position_journal.cli import add_common_arguments, load_inputs, write_output
from position_journal.config.app_config import load_app_config
from position_journal.ledger.assets import compute_all_asset_metrics
from position_journal.logging_setup import setup_logging
from position_journal.metrics.portfolio import aggregate_user_metrics
from position_journal.models import AssetPerformance, UserMetrics
from position_journal.serialize import user_metrics_to_dict


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Compute portfolio-level metrics across all assets.")
    parser.add_argument(
        "transactions_path",
        type=Path,
        nargs="?",
        default=None,
        help="Path to a transaction export (json/csv/tsv).",
    )
    add_common_arguments(parser)
    parser.add_argument(
        "--profile",
        type=Path,
        default=None,
        help="Optional behavioral profile (json) to carry into the summary.",
    )
    parser.add_argument("--top", type=int, default=None, help="Number of best/worst assets to list.")
    args = parser.parse_args(argv)

    app_config = load_app_config(args.config)
    setup_logging(app_config.logging.level, stream=sys.stderr)

    loaded = load_inputs(args, app_config)
    if loaded is None:
        return 1
    transactions, prices, as_of = loaded

    profile_path = args.profile or app_config.summary.behavioral_profile
    profile = load_behavioral_profile(profile_path) if profile_path is not None else None

    asset_metrics = compute_all_asset_metrics(transactions, prices, as_of=as_of)
    top_n = args.top if args.top is not None and args.top > 0 else app_config.summary.top_assets
    metrics = aggregate_user_metrics(asset_metrics, behavioral_profile=profile, top_n=top_n)

    out_path = args.out or app_config.paths.out
    if args.json or (out_path is not None and out_path.suffix.lower() == ".json"):
        text = json.dumps(user_metrics_to_dict(metrics), indent=2, sort_keys=True)
    else:
        text = _format_metrics(metrics)

    write_output(text, out_path)
    return 0


def load_behavioral_profile(path: Path) -> Mapping[str, Any] | None:
    if not path.exists():
        print(f"Behavioral profile not found: {path}", file=sys.stderr)
        return None
    with path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    if not isinstance(payload, Mapping):
        print(f"Behavioral profile must be a JSON object: {path}", file=sys.stderr)
        return None
    return payload


def _format_metrics(metrics: UserMetrics) -> str:
    lines = [
        f"lifetime_pnl_abs {_format_float(metrics.lifetime_pnl_abs)}",
        f"lifetime_pnl_pct {_format_float(metrics.lifetime_pnl_pct)}",
        f"lifetime_invested_cost {_format_float(metrics.lifetime_invested_cost)}",
        f"total_assets_traded {metrics.total_assets_traded}",
        f"total_round_trips {metrics.total_round_trips}",
        f"open_positions_count {metrics.open_positions_count}",
        f"round_trip_win_rate {_format_float(metrics.round_trip_win_rate)}",
        f"avg_round_trip_pnl_pct {_format_float(metrics.avg_round_trip_pnl_pct)}",
        f"avg_win_round_trip_pnl_pct {_format_float(metrics.avg_win_round_trip_pnl_pct)}",
        f"avg_loss_round_trip_pnl_pct {_format_float(metrics.avg_loss_round_trip_pnl_pct)}",
        f"round_trip_expectancy_pct {_format_float(metrics.round_trip_expectancy_pct)}",
        f"avg_holding_hours {_format_float(metrics.avg_holding_hours)}",
        f"max_holding_hours {_format_float(metrics.max_holding_hours)}",
        f"min_holding_hours {_format_float(metrics.min_holding_hours)}",
        f"best_assets {_format_ranking(metrics.best_assets)}",
        f"worst_assets {_format_ranking(metrics.worst_assets)}",
    ]
    return "\n".join(lines)


def _format_ranking(items: list[AssetPerformance]) -> str:
    if not items:
        return "na"
    return ",".join(f"{item.asset}:{_format_float(item.lifetime_pnl_pct)}" for item in items)


def _format_float(value: Any) -> str:
    return "na" if value is None else f"{float(value):.6g}"


if __name__ == "__main__":
    raise SystemExit(main())
