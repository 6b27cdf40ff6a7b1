from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from decimal import Decimal
from itertools import accumulate
from typing import Any, Iterable, Mapping

from position_journal.models import BUY, SELL, Transaction
from position_journal.normalize import coerce_transaction
from position_journal.numbers import ZERO

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600.0


@dataclass(frozen=True)
class LedgerState:
    """Position state after replaying a prefix of one asset's history."""

    size: Decimal = ZERO
    cost_basis: Decimal = ZERO
    lifetime_invested: Decimal = ZERO
    realized_pnl: Decimal = ZERO

    cycle_start: datetime | None = None
    cycle_cost: Decimal = ZERO
    cycle_size: Decimal = ZERO

    round_trips: int = 0
    profitable_round_trips: int = 0
    losing_round_trips: int = 0
    breakeven_round_trips: int = 0
    round_trip_returns: tuple[Decimal, ...] = ()
    holding_hours: tuple[float, ...] = ()

    trades: int = 0
    first_trade_at: datetime | None = None
    last_trade_at: datetime | None = None
    last_opened_at: datetime | None = None
    last_closed_at: datetime | None = None

    @classmethod
    def empty(cls) -> LedgerState:
        return cls()

    @property
    def is_open(self) -> bool:
        return self.size > 0

    @property
    def avg_entry_price(self) -> Decimal:
        if self.size > 0:
            return self.cost_basis / self.size
        return ZERO


def coerce_transactions(items: Iterable[Transaction | Mapping[str, Any]]) -> tuple[list[Transaction], int]:
    transactions: list[Transaction] = []
    skipped = 0
    for index, item in enumerate(items):
        try:
            transactions.append(coerce_transaction(item))
        except ValueError as exc:
            skipped += 1
            logger.warning("Ignoring malformed transaction %d: %s", index, exc)
    return transactions, skipped


def sort_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    # sorted() is stable, so same-timestamp records keep their input order.
    return sorted(transactions, key=lambda tx: tx.date)


def replay(transactions: Iterable[Transaction], initial: LedgerState | None = None) -> list[LedgerState]:
    """Fold ``transactions`` (already chronological) into one snapshot per step.

    The first element is the starting state, so the list is one longer than the
    input.
    """

    start = initial if initial is not None else LedgerState.empty()
    return list(accumulate(transactions, apply_transaction, initial=start))


def final_state(transactions: Iterable[Transaction]) -> LedgerState:
    return replay(transactions)[-1]


def apply_transaction(state: LedgerState, tx: Transaction) -> LedgerState:
    state = _touch(state, tx)
    if tx.kind == BUY:
        return _apply_buy(state, tx)
    if tx.kind == SELL:
        return _apply_sell(state, tx)
    return state


def _touch(state: LedgerState, tx: Transaction) -> LedgerState:
    return replace(
        state,
        trades=state.trades + 1,
        first_trade_at=state.first_trade_at or tx.date,
        last_trade_at=tx.date,
    )


def _apply_buy(state: LedgerState, tx: Transaction) -> LedgerState:
    notional = tx.amount * tx.price
    if state.size == 0 and tx.amount > 0:
        state = replace(
            state,
            cycle_start=tx.date,
            cycle_cost=ZERO,
            cycle_size=ZERO,
            last_opened_at=tx.date,
        )
    return replace(
        state,
        size=state.size + tx.amount,
        cost_basis=state.cost_basis + notional,
        lifetime_invested=state.lifetime_invested + notional,
        cycle_cost=state.cycle_cost + notional,
        cycle_size=state.cycle_size + tx.amount,
    )


def _apply_sell(state: LedgerState, tx: Transaction) -> LedgerState:
    if state.size <= 0:
        logger.warning(
            "Ignoring sell of %s %s at %s: no open position.",
            tx.amount,
            tx.asset or "asset",
            tx.date.isoformat(),
        )
        return state

    amount = tx.amount
    if amount > state.size:
        logger.warning(
            "Clamping sell of %s %s at %s to held size %s.",
            amount,
            tx.asset or "asset",
            tx.date.isoformat(),
            state.size,
        )
        amount = state.size

    avg_price = state.cost_basis / state.size
    cost_of_sold = amount * avg_price
    pnl = amount * tx.price - cost_of_sold
    size = state.size - amount
    state = replace(
        state,
        size=size,
        cost_basis=state.cost_basis - cost_of_sold,
        realized_pnl=state.realized_pnl + pnl,
    )
    if size == 0:
        return _close_cycle(state, tx, pnl, avg_price)
    return state


def _close_cycle(state: LedgerState, tx: Transaction, pnl: Decimal, avg_price: Decimal) -> LedgerState:
    trip_return = (tx.price - avg_price) / avg_price if avg_price > 0 else ZERO
    holding = state.holding_hours
    if state.cycle_start is not None:
        holding = holding + (hours_between(state.cycle_start, tx.date),)
    return replace(
        state,
        size=ZERO,
        cost_basis=ZERO,
        cycle_start=None,
        cycle_cost=ZERO,
        cycle_size=ZERO,
        round_trips=state.round_trips + 1,
        profitable_round_trips=state.profitable_round_trips + (1 if pnl > 0 else 0),
        losing_round_trips=state.losing_round_trips + (1 if pnl < 0 else 0),
        breakeven_round_trips=state.breakeven_round_trips + (1 if pnl == 0 else 0),
        round_trip_returns=state.round_trip_returns + (trip_return,),
        holding_hours=holding,
        last_closed_at=tx.date,
    )


def hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_HOUR
