from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from position_journal.numbers import ONE, ZERO, mean


@dataclass(frozen=True)
class RoundTripStats:
    count: int
    win_rate: Decimal
    avg_pnl_pct: Decimal
    avg_win_pnl_pct: Decimal
    avg_loss_pnl_pct: Decimal
    expectancy_pct: Decimal


@dataclass(frozen=True)
class HoldingStats:
    completed: int
    avg_hours: float
    max_hours: float
    min_hours: float


def compute_round_trip_stats(returns: Iterable[Decimal]) -> RoundTripStats:
    values = list(returns)
    wins = [value for value in values if value > 0]
    losses = [value for value in values if value < 0]

    win_rate = ZERO
    if values:
        win_rate = Decimal(len(wins)) / len(values)

    avg_win = mean(wins)
    avg_loss = mean(losses)
    return RoundTripStats(
        count=len(values),
        win_rate=win_rate,
        avg_pnl_pct=mean(values),
        avg_win_pnl_pct=avg_win,
        avg_loss_pnl_pct=avg_loss,
        expectancy_pct=expectancy(win_rate, avg_win, avg_loss),
    )


def expectancy(win_rate: Decimal, avg_win: Decimal, avg_loss: Decimal) -> Decimal:
    return win_rate * avg_win - (ONE - win_rate) * abs(avg_loss)


def compute_holding_stats(hours: Iterable[float], in_progress_hours: float | None = None) -> HoldingStats:
    """Summarize completed cycle durations.

    An in-progress cycle only competes for the maximum; it never enters the
    average or the minimum because it has not finished yet.
    """

    completed = list(hours)
    avg_hours = sum(completed) / len(completed) if completed else 0.0
    max_hours = max(completed, default=0.0)
    if in_progress_hours is not None and in_progress_hours > max_hours:
        max_hours = in_progress_hours
    return HoldingStats(
        completed=len(completed),
        avg_hours=avg_hours,
        max_hours=max_hours,
        min_hours=min(completed, default=0.0),
    )
