from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from decimal import Decimal
from typing import Any, Iterable, Mapping

from position_journal.metrics.round_trips import expectancy
from position_journal.models import STATUS_OPEN, AssetMetrics, AssetPerformance, UserMetrics
from position_journal.numbers import ZERO, round_half_up, safe_div, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_TOP_ASSETS = 3


@dataclass(frozen=True)
class _AssetEntry:
    asset: str
    status: str
    lifetime_pnl_abs: Decimal
    lifetime_pnl_pct: Decimal
    lifetime_invested_cost: Decimal
    round_trips: int
    round_trip_win_rate: Decimal
    avg_round_trip_pnl_pct: Decimal
    avg_win_round_trip_pnl_pct: Decimal
    avg_loss_round_trip_pnl_pct: Decimal
    avg_holding_hours: Decimal
    max_holding_hours: Decimal
    min_holding_hours: Decimal


_DECIMAL_FIELDS = tuple(
    item.name for item in fields(_AssetEntry) if item.name not in {"asset", "status", "round_trips"}
)


def aggregate_user_metrics(
    asset_metrics: Iterable[AssetMetrics | Mapping[str, Any]],
    *,
    behavioral_profile: Mapping[str, Any] | None = None,
    top_n: int = DEFAULT_TOP_ASSETS,
) -> UserMetrics:
    """Roll per-asset records into portfolio totals.

    Entries may be ``AssetMetrics`` or the plain dicts a persistence layer
    hands back. A corrupt entry is skipped with a warning so the remaining
    assets still produce a summary.

    Win rate is rebuilt from ``round(round_trips * round_trip_win_rate)`` per
    asset, so it is an approximation of the exact portfolio-wide count.
    """

    entries: list[_AssetEntry] = []
    skipped = 0
    for index, item in enumerate(asset_metrics):
        try:
            entries.append(_coerce_entry(item))
        except ValueError as exc:
            skipped += 1
            logger.warning("Skipping asset summary %d: %s", index, exc)

    total_pnl = sum((entry.lifetime_pnl_abs for entry in entries), ZERO)
    total_invested = sum((entry.lifetime_invested_cost for entry in entries), ZERO)
    total_round_trips = sum(entry.round_trips for entry in entries)
    open_positions = sum(1 for entry in entries if entry.status == STATUS_OPEN)

    holding_sum = ZERO
    wins_total = 0
    losses_total = 0
    pnl_pct_sum = ZERO
    win_pct_sum = ZERO
    loss_pct_sum = ZERO
    for entry in entries:
        if entry.round_trips <= 0:
            continue
        holding_sum += entry.avg_holding_hours * entry.round_trips
        wins = min(max(round_half_up(entry.round_trips * entry.round_trip_win_rate), 0), entry.round_trips)
        losses = entry.round_trips - wins
        wins_total += wins
        losses_total += losses
        pnl_pct_sum += entry.avg_round_trip_pnl_pct * entry.round_trips
        win_pct_sum += entry.avg_win_round_trip_pnl_pct * wins
        loss_pct_sum += entry.avg_loss_round_trip_pnl_pct * losses

    win_rate = safe_div(Decimal(wins_total), Decimal(total_round_trips))
    avg_win = safe_div(win_pct_sum, Decimal(wins_total))
    avg_loss = safe_div(loss_pct_sum, Decimal(losses_total))

    max_holding = max((entry.max_holding_hours for entry in entries), default=ZERO)
    min_holding = min(
        (entry.min_holding_hours for entry in entries if entry.min_holding_hours > 0),
        default=ZERO,
    )

    best, worst = rank_assets(entries, top_n=top_n)

    return UserMetrics(
        lifetime_pnl_abs=total_pnl,
        lifetime_pnl_pct=safe_div(total_pnl, total_invested),
        lifetime_invested_cost=total_invested,
        total_assets_traded=len(entries),
        total_round_trips=total_round_trips,
        open_positions_count=open_positions,
        skipped_assets=skipped,
        round_trip_win_rate=win_rate,
        avg_round_trip_pnl_pct=safe_div(pnl_pct_sum, Decimal(total_round_trips)),
        avg_win_round_trip_pnl_pct=avg_win,
        avg_loss_round_trip_pnl_pct=avg_loss,
        round_trip_expectancy_pct=expectancy(win_rate, avg_win, avg_loss),
        avg_holding_hours=float(safe_div(holding_sum, Decimal(total_round_trips))),
        max_holding_hours=float(max(max_holding, ZERO)),
        min_holding_hours=float(min_holding),
        best_assets=best,
        worst_assets=worst,
        behavioral_profile=dict(behavioral_profile) if behavioral_profile is not None else None,
    )


def rank_assets(
    entries: Iterable[_AssetEntry],
    *,
    top_n: int = DEFAULT_TOP_ASSETS,
) -> tuple[list[AssetPerformance], list[AssetPerformance]]:
    ordered = sorted(entries, key=lambda entry: entry.lifetime_pnl_pct, reverse=True)
    performances = [AssetPerformance(asset=entry.asset, lifetime_pnl_pct=entry.lifetime_pnl_pct) for entry in ordered]
    if top_n <= 0:
        return [], []
    best = performances[:top_n]
    worst = list(reversed(performances[-top_n:]))
    return best, worst


def _coerce_entry(item: Any) -> _AssetEntry:
    if isinstance(item, AssetMetrics):
        raw: Mapping[str, Any] = {field.name: getattr(item, field.name) for field in fields(AssetMetrics)}
    elif isinstance(item, Mapping):
        raw = item
    else:
        raise ValueError(f"unsupported entry type {type(item).__name__}")

    values: dict[str, Decimal] = {}
    for name in _DECIMAL_FIELDS:
        values[name] = _numeric(raw, name)
    round_trips = _numeric(raw, "round_trips")
    if round_trips < 0:
        raise ValueError(f"negative round_trips {round_trips}")
    if round_trips != round_trips.to_integral_value():
        raise ValueError(f"fractional round_trips {round_trips}")

    return _AssetEntry(
        asset=str(raw.get("asset") or ""),
        status=str(raw.get("status") or ""),
        round_trips=int(round_trips),
        **values,
    )


def _numeric(raw: Mapping[str, Any], name: str) -> Decimal:
    value = raw.get(name)
    if value is None:
        return ZERO
    number = to_decimal(value, default=None)
    if number is None:
        raise ValueError(f"non-numeric {name}: {value!r}")
    return number
