from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping

from position_journal.numbers import ZERO

BUY = "BUY"
SELL = "SELL"

STATUS_OPEN = "open"
STATUS_CLOSED = "closed"
STATUS_FLAT = "flat"


@dataclass(frozen=True)
class Transaction:
    date: datetime
    kind: str
    amount: Decimal
    price: Decimal
    asset: str = ""
    transaction_id: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def notional(self) -> Decimal:
        return self.amount * self.price


@dataclass(frozen=True)
class OpenCycle:
    opened_at: datetime | None
    size: Decimal
    avg_entry_price: Decimal
    invested_cost: Decimal
    unrealized_pnl_abs: Decimal
    unrealized_pnl_pct: Decimal
    holding_hours: float | None = None


@dataclass(frozen=True)
class AssetMetrics:
    asset: str = ""
    status: str = STATUS_FLAT

    current_size: Decimal = ZERO
    avg_entry_price: Decimal = ZERO
    total_cost: Decimal = ZERO
    last_price: Decimal = ZERO

    realized_pnl_abs: Decimal = ZERO
    realized_pnl_pct: Decimal = ZERO
    unrealized_pnl_abs: Decimal = ZERO
    unrealized_pnl_pct: Decimal = ZERO
    lifetime_pnl_abs: Decimal = ZERO
    lifetime_pnl_pct: Decimal = ZERO
    lifetime_invested_cost: Decimal = ZERO

    total_trades: int = 0
    skipped_transactions: int = 0
    round_trips: int = 0
    profitable_round_trips: int = 0
    losing_round_trips: int = 0
    breakeven_round_trips: int = 0
    round_trip_win_rate: Decimal = ZERO
    avg_round_trip_pnl_pct: Decimal = ZERO
    avg_win_round_trip_pnl_pct: Decimal = ZERO
    avg_loss_round_trip_pnl_pct: Decimal = ZERO
    round_trip_expectancy_pct: Decimal = ZERO

    avg_holding_hours: float = 0.0
    max_holding_hours: float = 0.0
    min_holding_hours: float = 0.0

    first_trade_at: datetime | None = None
    last_trade_at: datetime | None = None
    last_opened_at: datetime | None = None
    last_closed_at: datetime | None = None

    open_cycle: OpenCycle | None = None


@dataclass(frozen=True)
class AssetPerformance:
    asset: str
    lifetime_pnl_pct: Decimal


@dataclass(frozen=True)
class UserMetrics:
    lifetime_pnl_abs: Decimal = ZERO
    lifetime_pnl_pct: Decimal = ZERO
    lifetime_invested_cost: Decimal = ZERO

    total_assets_traded: int = 0
    total_round_trips: int = 0
    open_positions_count: int = 0
    skipped_assets: int = 0

    round_trip_win_rate: Decimal = ZERO
    avg_round_trip_pnl_pct: Decimal = ZERO
    avg_win_round_trip_pnl_pct: Decimal = ZERO
    avg_loss_round_trip_pnl_pct: Decimal = ZERO
    round_trip_expectancy_pct: Decimal = ZERO

    avg_holding_hours: float = 0.0
    max_holding_hours: float = 0.0
    min_holding_hours: float = 0.0

    best_assets: list[AssetPerformance] = field(default_factory=list)
    worst_assets: list[AssetPerformance] = field(default_factory=list)

    behavioral_profile: Mapping[str, Any] | None = None
