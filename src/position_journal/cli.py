from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from position_journal.config.app_config import AppConfig, load_app_config
from position_journal.ingest.transactions import load_transactions
from position_journal.ledger.assets import compute_all_asset_metrics
from position_journal.logging_setup import setup_logging
from position_journal.models import AssetMetrics
from position_journal.normalize import normalize_asset, parse_timestamp
from position_journal.pricing.snapshots import load_price_snapshot, parse_price_overrides
from position_journal.serialize import asset_metrics_to_dict


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Replay transaction history into per-asset position ledgers.")
    parser.add_argument(
        "transactions_path",
        type=Path,
        nargs="?",
        default=None,
        help="Path to a transaction export (json/csv/tsv).",
    )
    add_common_arguments(parser)
    parser.add_argument("--asset", type=str, default=None, help="Only report this asset.")
    args = parser.parse_args(argv)

    app_config = load_app_config(args.config)
    setup_logging(app_config.logging.level, stream=sys.stderr)

    loaded = load_inputs(args, app_config)
    if loaded is None:
        return 1
    transactions, prices, as_of = loaded

    if args.asset:
        wanted = normalize_asset(args.asset)
        transactions = [tx for tx in transactions if tx.asset == wanted]

    metrics = compute_all_asset_metrics(transactions, prices, as_of=as_of)
    if not metrics:
        print("No transactions to replay.")
        return 0

    out_path = args.out or app_config.paths.out
    if args.json or (out_path is not None and out_path.suffix.lower() == ".json"):
        payload = [asset_metrics_to_dict(item) for item in metrics]
        text = json.dumps(payload, indent=2, sort_keys=True)
    else:
        text = "\n".join(_format_table(metrics))

    write_output(text, out_path)
    return 0


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--prices", type=Path, default=None, help="Price snapshot (json/csv) with current prices.")
    parser.add_argument(
        "--price",
        action="append",
        default=[],
        metavar="ASSET=PRICE",
        help="Current price override; may be repeated.",
    )
    parser.add_argument(
        "--as-of",
        type=str,
        default=None,
        help="Reference time for open holding periods (ISO-8601). Defaults to now.",
    )
    parser.add_argument("--json", action="store_true", help="Print JSON output.")
    parser.add_argument("--out", type=Path, default=None, help="Write output to a file instead of stdout.")
    parser.add_argument("--config", type=Path, default=None, help="Path to app.toml.")


def load_inputs(
    args: argparse.Namespace,
    app_config: AppConfig,
) -> tuple[list, dict[str, Decimal], datetime] | None:
    transactions_path = args.transactions_path or app_config.paths.transactions
    if not transactions_path.exists():
        print(f"Transaction export not found: {transactions_path}", file=sys.stderr)
        return None

    result = load_transactions(transactions_path)
    if result.skipped:
        print(f"Skipped {result.skipped} transaction rows during normalization.", file=sys.stderr)

    prices: dict[str, Decimal] = {}
    prices_path = args.prices or app_config.paths.prices
    if prices_path is not None:
        if prices_path.exists():
            prices.update(load_price_snapshot(prices_path))
        else:
            print(f"Price snapshot not found: {prices_path}; using last trade prices.", file=sys.stderr)
    try:
        prices.update(parse_price_overrides(args.price))
        as_of = parse_timestamp(args.as_of) if args.as_of else datetime.now(timezone.utc)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return None
    return result.transactions, prices, as_of


def write_output(text: str, out_path: Path | None) -> None:
    if out_path is None:
        print(text)
        return
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text + "\n", encoding="utf-8")


def _format_table(metrics: list[AssetMetrics]) -> list[str]:
    lines = ["asset status size avg_entry last_price realized unrealized lifetime lifetime_pct round_trips win_rate"]
    for item in metrics:
        lines.append(
            " ".join(
                [
                    item.asset or "-",
                    item.status,
                    _format_number(item.current_size),
                    _format_number(item.avg_entry_price),
                    _format_number(item.last_price),
                    _format_number(item.realized_pnl_abs),
                    _format_number(item.unrealized_pnl_abs),
                    _format_number(item.lifetime_pnl_abs),
                    _format_number(item.lifetime_pnl_pct),
                    str(item.round_trips),
                    _format_number(item.round_trip_win_rate),
                ]
            )
        )
    return lines


def _format_number(value: Any) -> str:
    return "na" if value is None else f"{float(value):.6g}"


if __name__ == "__main__":
    raise SystemExit(main())
