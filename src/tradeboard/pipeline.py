from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from tradeboard.ingest.fills import load_fills
from tradeboard.ingest.topstep_api import FetchResult
from tradeboard.metrics.chart import ChartData, build_chart
from tradeboard.metrics.summary import TraderStats, compute_board_stats, trade_to_dict
from tradeboard.models import Board, ReportingWindow
from tradeboard.pricing.yahoo_prices import QuoteResult
from tradeboard.reconstruct.trades import BoardTrades, FillFetcher, aggregate_board

logger = logging.getLogger(__name__)

QuoteFetcher = Callable[[str], QuoteResult]


@dataclass(frozen=True)
class BoardReport:
    board: Board
    trades: BoardTrades
    stats: dict[str, TraderStats]
    quotes: QuoteResult
    chart: ChartData

    def to_dict(self) -> dict[str, Any]:
        return {
            "board": {
                "name": self.board.name,
                "start_date": self.board.window.start.isoformat(),
                "end_date": self.board.window.end.isoformat(),
                "traders": list(self.board.shares),
            },
            "stats": {trader: item.to_dict() for trader, item in self.stats.items()},
            "trades": {
                trader: [trade_to_dict(trade) for trade in trades]
                for trader, trades in self.trades.trades.items()
            },
            "errors": [
                {"trader": error.trader, "account_id": error.account_id, "reason": error.reason}
                for error in self.trades.errors
            ],
            "quotes": {"symbol": self.quotes.symbol, "count": len(self.quotes.quotes), "error": self.quotes.error},
            "chart": self.chart.to_dict(),
        }


def build_report(
    board: Board,
    fetch_fills: FillFetcher,
    fetch_quotes: QuoteFetcher,
    symbol: str,
    *,
    chart_symbol: str | None = None,
) -> BoardReport:
    board_trades = aggregate_board(board, fetch_fills)
    stats = compute_board_stats(board_trades.trades)
    quotes = fetch_quotes(symbol)
    chart = build_chart(quotes.quotes, board_trades.trades, symbol=chart_symbol)
    return BoardReport(board=board, trades=board_trades, stats=stats, quotes=quotes, chart=chart)


def skip_quotes(symbol: str) -> QuoteResult:
    return QuoteResult(symbol=symbol)


def directory_fetcher(fills_dir: Path) -> FillFetcher:
    """Read saved range responses from ``<fills_dir>/<account_id>.json``."""

    def fetch(account_id: int, window: ReportingWindow) -> FetchResult:
        path = Path(fills_dir) / f"{account_id}.json"
        if not path.exists():
            return FetchResult.failure(account_id, f"Fills export not found: {path}")
        try:
            result = load_fills(path, account_id=account_id)
        except (OSError, ValueError) as exc:
            return FetchResult.failure(account_id, str(exc))
        if result.skipped:
            logger.info("Skipped %s malformed fill rows in %s", result.skipped, path)
        return FetchResult.success(account_id, result.fills, skipped=result.skipped)

    return fetch
