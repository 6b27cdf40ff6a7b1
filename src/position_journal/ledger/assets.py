from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping

from position_journal.ledger.positions import (
    LedgerState,
    coerce_transactions,
    final_state,
    hours_between,
    sort_transactions,
)
from position_journal.metrics.round_trips import compute_holding_stats, compute_round_trip_stats
from position_journal.models import (
    STATUS_CLOSED,
    STATUS_OPEN,
    AssetMetrics,
    OpenCycle,
    Transaction,
)
from position_journal.normalize import normalize_asset
from position_journal.numbers import ZERO, safe_div, to_decimal


def compute_asset_metrics(
    transactions: Iterable[Transaction | Mapping[str, Any]],
    current_price: Any,
    *,
    as_of: datetime | None = None,
    asset: str = "",
) -> AssetMetrics:
    """Replay one asset's history into its position and PnL record.

    ``as_of`` is the reference time for an open cycle's elapsed holding time.
    Without it the open cycle does not extend ``max_holding_hours``.
    """

    cleaned, skipped = coerce_transactions(transactions)
    ordered = sort_transactions(cleaned)
    asset_name = normalize_asset(asset) or next((tx.asset for tx in ordered if tx.asset), "")
    price = to_decimal(current_price)
    if price < 0:
        price = ZERO

    state = final_state(ordered)
    if state.trades == 0:
        return AssetMetrics(asset=asset_name, last_price=price, skipped_transactions=skipped)

    avg_entry_price = state.avg_entry_price
    unrealized_pnl_abs = ZERO
    unrealized_pnl_pct = ZERO
    if state.size > 0:
        unrealized_pnl_abs = state.size * (price - avg_entry_price)
        unrealized_pnl_pct = safe_div(price - avg_entry_price, avg_entry_price)

    lifetime_pnl_abs = state.realized_pnl + unrealized_pnl_abs
    status = STATUS_OPEN if state.size > 0 else STATUS_CLOSED

    in_progress_hours = None
    if status == STATUS_OPEN and as_of is not None and state.cycle_start is not None:
        in_progress_hours = max(hours_between(state.cycle_start, _as_utc(as_of, state.cycle_start)), 0.0)

    trips = compute_round_trip_stats(state.round_trip_returns)
    holding = compute_holding_stats(state.holding_hours, in_progress_hours)

    return AssetMetrics(
        asset=asset_name,
        status=status,
        current_size=state.size,
        avg_entry_price=avg_entry_price,
        total_cost=state.cost_basis,
        last_price=price,
        realized_pnl_abs=state.realized_pnl,
        realized_pnl_pct=safe_div(state.realized_pnl, state.lifetime_invested),
        unrealized_pnl_abs=unrealized_pnl_abs,
        unrealized_pnl_pct=unrealized_pnl_pct,
        lifetime_pnl_abs=lifetime_pnl_abs,
        lifetime_pnl_pct=safe_div(lifetime_pnl_abs, state.lifetime_invested),
        lifetime_invested_cost=state.lifetime_invested,
        total_trades=state.trades,
        skipped_transactions=skipped,
        round_trips=state.round_trips,
        profitable_round_trips=state.profitable_round_trips,
        losing_round_trips=state.losing_round_trips,
        breakeven_round_trips=state.breakeven_round_trips,
        round_trip_win_rate=trips.win_rate,
        avg_round_trip_pnl_pct=trips.avg_pnl_pct,
        avg_win_round_trip_pnl_pct=trips.avg_win_pnl_pct,
        avg_loss_round_trip_pnl_pct=trips.avg_loss_pnl_pct,
        round_trip_expectancy_pct=trips.expectancy_pct,
        avg_holding_hours=holding.avg_hours,
        max_holding_hours=holding.max_hours,
        min_holding_hours=holding.min_hours,
        first_trade_at=state.first_trade_at,
        last_trade_at=state.last_trade_at,
        last_opened_at=state.last_opened_at,
        last_closed_at=state.last_closed_at,
        open_cycle=_open_cycle(state, unrealized_pnl_abs, unrealized_pnl_pct, in_progress_hours)
        if status == STATUS_OPEN
        else None,
    )


def resolve_current_price(
    transactions: Iterable[Transaction | Mapping[str, Any]],
    live_price: Any = None,
) -> Decimal:
    """Prefer a positive live price, else fall back to the latest transaction price."""

    price = to_decimal(live_price)
    if price > 0:
        return price
    cleaned, _ = coerce_transactions(transactions)
    ordered = sort_transactions(cleaned)
    if not ordered:
        return ZERO
    return ordered[-1].price


def group_by_asset(transactions: Iterable[Transaction]) -> dict[str, list[Transaction]]:
    grouped: dict[str, list[Transaction]] = {}
    for tx in transactions:
        grouped.setdefault(normalize_asset(tx.asset), []).append(tx)
    return grouped


def compute_all_asset_metrics(
    transactions: Iterable[Transaction],
    prices: Mapping[str, Any] | None = None,
    *,
    as_of: datetime | None = None,
) -> list[AssetMetrics]:
    price_map = {normalize_asset(key): value for key, value in (prices or {}).items()}
    results: list[AssetMetrics] = []
    for asset, items in sorted(group_by_asset(transactions).items()):
        current_price = resolve_current_price(items, price_map.get(asset))
        results.append(compute_asset_metrics(items, current_price, as_of=as_of, asset=asset))
    return results


def _open_cycle(
    state: LedgerState,
    unrealized_pnl_abs: Decimal,
    unrealized_pnl_pct: Decimal,
    holding_hours: float | None,
) -> OpenCycle:
    return OpenCycle(
        opened_at=state.last_opened_at or state.first_trade_at,
        size=state.size,
        avg_entry_price=state.avg_entry_price,
        invested_cost=state.cycle_cost,
        unrealized_pnl_abs=unrealized_pnl_abs,
        unrealized_pnl_pct=unrealized_pnl_pct,
        holding_hours=holding_hours,
    )


def _as_utc(value: datetime, reference: datetime) -> datetime:
    if value.tzinfo is None and reference.tzinfo is not None:
        return value.replace(tzinfo=reference.tzinfo)
    return value
