from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Sequence

from tradeboard.models import Quote, Trade

# Trades may close a little after the last quote tick.
DOMAIN_PAD = timedelta(minutes=20)
DEFAULT_VIEWPORT_SPAN = timedelta(hours=24)


@dataclass(frozen=True)
class ChartDomain:
    min_timestamp: datetime
    max_timestamp: datetime
    min_price: float
    max_price: float


@dataclass(frozen=True)
class ChartPoint:
    date: datetime | None
    price: float | None
    pnl: float | None

    @property
    def is_separator(self) -> bool:
        return self.date is None and self.price is None

    def to_dict(self) -> dict[str, Any]:
        return {"t": _epoch_ms(self.date), "price": self.price, "pnl": self.pnl}


SEPARATOR = ChartPoint(date=None, price=None, pnl=None)


@dataclass(frozen=True)
class TraderSeries:
    trader: str
    winning: list[ChartPoint]
    losing: list[ChartPoint]


@dataclass(frozen=True)
class ChartData:
    price_line: list[ChartPoint]
    series: list[TraderSeries]
    domain: ChartDomain | None
    viewport_start: datetime | None
    viewport_end: datetime | None

    def to_dict(self) -> dict[str, Any]:
        domain = self.domain
        return {
            "price_line": [point.to_dict() for point in self.price_line],
            "series": [
                {
                    "trader": item.trader,
                    "winning": [point.to_dict() for point in item.winning],
                    "losing": [point.to_dict() for point in item.losing],
                }
                for item in self.series
            ],
            "domain": None
            if domain is None
            else {
                "min_timestamp": _epoch_ms(domain.min_timestamp),
                "max_timestamp": _epoch_ms(domain.max_timestamp),
                "min_price": domain.min_price,
                "max_price": domain.max_price,
            },
            "viewport": {
                "start": _epoch_ms(self.viewport_start),
                "end": _epoch_ms(self.viewport_end),
            },
        }


def compute_domain(quotes: Iterable[Quote]) -> ChartDomain | None:
    min_ts: datetime | None = None
    max_ts: datetime | None = None
    min_price: float | None = None
    max_price: float | None = None
    for quote in quotes:
        if min_ts is None or quote.date < min_ts:
            min_ts = quote.date
        if max_ts is None or quote.date > max_ts:
            max_ts = quote.date
        if min_price is None or quote.price < min_price:
            min_price = quote.price
        if max_price is None or quote.price > max_price:
            max_price = quote.price

    if min_ts is None or max_ts is None or min_price is None or max_price is None:
        return None
    return ChartDomain(
        min_timestamp=min_ts,
        max_timestamp=max_ts + DOMAIN_PAD,
        min_price=min_price,
        max_price=max_price,
    )


def trade_in_domain(trade: Trade, domain: ChartDomain | None) -> bool:
    """A trade is plotted only when it fits the domain entirely."""
    if domain is None:
        return False
    if trade.start_date < domain.min_timestamp:
        return False
    if trade.end_date > domain.max_timestamp:
        return False
    if trade.entry_price > domain.max_price:
        return False
    if trade.entry_price < domain.min_price:
        return False
    return True


def is_winning_trade(trade: Trade) -> bool:
    # Price direction, not pnl sign; the two can disagree for shorts.
    return trade.entry_price >= trade.exit_price


def trade_segment(trade: Trade) -> list[ChartPoint]:
    return [
        ChartPoint(date=trade.start_date, price=trade.entry_price, pnl=trade.pnl),
        ChartPoint(date=trade.end_date, price=trade.exit_price, pnl=trade.pnl),
        SEPARATOR,
    ]


def build_trader_series(
    trader: str,
    trades: Iterable[Trade],
    domain: ChartDomain | None,
    *,
    symbol: str | None = None,
) -> TraderSeries:
    winning: list[ChartPoint] = []
    losing: list[ChartPoint] = []
    for trade in trades:
        if symbol is not None and trade.symbol != symbol:
            continue
        if not trade_in_domain(trade, domain):
            continue
        target = winning if is_winning_trade(trade) else losing
        target.extend(trade_segment(trade))
    return TraderSeries(trader=trader, winning=winning, losing=losing)


def build_chart(
    quotes: Sequence[Quote],
    trades_by_trader: Mapping[str, Iterable[Trade]],
    *,
    symbol: str | None = None,
) -> ChartData:
    domain = compute_domain(quotes)
    price_line = [ChartPoint(date=quote.date, price=quote.price, pnl=None) for quote in quotes]
    series = [
        build_trader_series(trader, trades, domain, symbol=symbol)
        for trader, trades in trades_by_trader.items()
    ]

    viewport_start = None
    viewport_end = None
    if domain is not None:
        viewport_start = quotes[-1].date - DEFAULT_VIEWPORT_SPAN
        viewport_end = domain.max_timestamp

    return ChartData(
        price_line=price_line,
        series=series,
        domain=domain,
        viewport_start=viewport_start,
        viewport_end=viewport_end,
    )


def _epoch_ms(value: datetime | None) -> int | None:
    if value is None:
        return None
    return int(value.timestamp() * 1000)
