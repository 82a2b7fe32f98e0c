from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping

from tradeboard.models import Trade


@dataclass(frozen=True)
class TraderStats:
    trader: str
    number_of_trades: int
    won: int
    lost: int
    profit: float
    loss: float
    win_rate: float
    average_profit: float
    average_loss: float
    reward_risk: float
    expectancy: float
    pnl: float
    average_pnl: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


STATS_COLUMNS = (
    "user",
    "#",
    "win rate",
    "average profit",
    "average loss",
    "r",
    "expectancy",
    "average pnl",
    "total pnl",
)

TRADE_COLUMNS = ("user", "symbol", "start", "end", "entry", "exit", "pnl")


def guarded_div(numerator: float, denominator: float) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


def compute_trader_stats(trader: str, trades: Iterable[Trade]) -> TraderStats:
    trade_list = list(trades)
    won = 0
    lost = 0
    profit = 0.0
    loss = 0.0
    for trade in trade_list:
        if trade.pnl >= 0:
            won += 1
            profit += trade.pnl
        else:
            lost += 1
            loss += abs(trade.pnl)

    total = won + lost
    win_rate = guarded_div(won, total)
    average_profit = guarded_div(profit, won)
    average_loss = guarded_div(loss, lost)
    reward_risk = guarded_div(average_profit, average_loss)
    # Expected value per trade, in units of the average loss.
    expectancy = 0.0
    if total:
        expectancy = win_rate * reward_risk - (1 - win_rate) * 1
    pnl = profit - loss

    return TraderStats(
        trader=trader,
        number_of_trades=len(trade_list),
        won=won,
        lost=lost,
        profit=profit,
        loss=loss,
        win_rate=win_rate,
        average_profit=average_profit,
        average_loss=average_loss,
        reward_risk=reward_risk,
        expectancy=expectancy,
        pnl=pnl,
        average_pnl=guarded_div(pnl, total),
    )


def compute_board_stats(trades_by_trader: Mapping[str, Iterable[Trade]]) -> dict[str, TraderStats]:
    return {trader: compute_trader_stats(trader, trades) for trader, trades in trades_by_trader.items()}


def stats_rows(stats: Mapping[str, TraderStats]) -> list[list[Any]]:
    rows: list[list[Any]] = []
    for trader, item in stats.items():
        rows.append(
            [
                trader,
                item.number_of_trades,
                item.win_rate,
                item.average_profit,
                item.average_loss,
                item.reward_risk,
                item.expectancy,
                item.average_pnl,
                item.pnl,
            ]
        )
    return rows


def trade_rows(trades_by_trader: Mapping[str, Iterable[Trade]]) -> list[list[Any]]:
    rows: list[list[Any]] = []
    for trader, trades in trades_by_trader.items():
        for trade in trades:
            rows.append(
                [
                    trader,
                    trade.symbol,
                    trade.start_date,
                    trade.end_date,
                    trade.entry_price,
                    trade.exit_price,
                    trade.pnl,
                ]
            )
    return rows


def trade_to_dict(trade: Trade) -> dict[str, Any]:
    return {
        "symbol": trade.symbol,
        "start_date": _iso(trade.start_date),
        "end_date": _iso(trade.end_date),
        "entry_price": trade.entry_price,
        "exit_price": trade.exit_price,
        "pnl": trade.pnl,
    }


def _iso(value: datetime) -> str:
    return value.isoformat()
