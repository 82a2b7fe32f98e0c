from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from tradeboard.ingest.fills import normalize_fills
from tradeboard.ingest.topstep_api import FetchResult
from tradeboard.models import Board, NormalizedFill, ReportingWindow, Trade

logger = logging.getLogger(__name__)

FillFetcher = Callable[[int, ReportingWindow], FetchResult]


@dataclass
class AggregationState:
    trades: list[Trade] = field(default_factory=list)
    merge_count: int = 0

    @property
    def last_trade(self) -> Trade | None:
        return self.trades[-1] if self.trades else None


@dataclass(frozen=True)
class FetchError:
    trader: str
    account_id: int
    reason: str


@dataclass(frozen=True)
class BoardTrades:
    trades: dict[str, list[Trade]]
    errors: list[FetchError] = field(default_factory=list)
    skipped: int = 0


def apply_fill(state: AggregationState, fill: NormalizedFill) -> AggregationState:
    """Fold one fill into the accumulator.

    A fill that opens before the last trade closed is part of that trade: its
    prices and pnl are blended into the last trade with the merge counter as
    the weight. Dates and symbol stay as the first fill set them.
    """
    last = state.last_trade
    if last is not None and fill.start_date < last.end_date:
        prior = state.merge_count
        state.merge_count += 1
        last.entry_price = _running_average(last.entry_price, fill.entry_price, prior)
        last.exit_price = _running_average(last.exit_price, fill.exit_price, prior)
        last.pnl = _running_average(last.pnl, fill.per_unit_pnl, prior)
        return state

    state.merge_count = 0
    state.trades.append(
        Trade(
            symbol=fill.symbol,
            start_date=fill.start_date,
            end_date=fill.end_date,
            entry_price=fill.entry_price,
            exit_price=fill.exit_price,
            pnl=fill.per_unit_pnl,
        )
    )
    return state


def aggregate_fills(
    fills: Iterable[NormalizedFill],
    state: AggregationState | None = None,
) -> AggregationState:
    """Merge an ordered fill stream into trades.

    Fills must already be in non-decreasing ``start_date`` order; nothing is
    sorted here. Use ``sort_fills`` first when the source does not guarantee it.
    """
    acc = state if state is not None else AggregationState()
    for fill in fills:
        apply_fill(acc, fill)
    return acc


def sort_fills(fills: Iterable[NormalizedFill]) -> list[NormalizedFill]:
    return sorted(fills, key=lambda fill: fill.start_date)


def aggregate_trader(
    trader: str,
    window: ReportingWindow,
    results: Sequence[FetchResult],
) -> tuple[list[Trade], list[FetchError]]:
    # One accumulator spans every account of the trader.
    state = AggregationState()
    errors: list[FetchError] = []
    for result in results:
        if not result.ok:
            errors.append(FetchError(trader=trader, account_id=result.account_id, reason=result.error or ""))
            continue
        aggregate_fills(normalize_fills(window, result.fills), state)
    return state.trades, errors


def aggregate_board(board: Board, fetch: FillFetcher) -> BoardTrades:
    trades: dict[str, list[Trade]] = {}
    errors: list[FetchError] = []
    skipped = 0
    for trader, account_ids in board.shares.items():
        results: list[FetchResult] = []
        for account_id in account_ids:
            result = fetch(account_id, board.window)
            if not result.ok:
                logger.warning("Fill fetch failed for %s account %s: %s", trader, account_id, result.error)
            skipped += result.skipped
            results.append(result)
        trader_trades, trader_errors = aggregate_trader(trader, board.window, results)
        trades[trader] = trader_trades
        errors.extend(trader_errors)
    return BoardTrades(trades=trades, errors=errors, skipped=skipped)


def _running_average(current: float, value: float, weight: int) -> float:
    return (current * weight + value) / (weight + 1)
