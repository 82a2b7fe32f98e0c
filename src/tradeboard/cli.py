from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from tradeboard import formatting
from tradeboard.config.app_config import load_app_config
from tradeboard.config.board import BoardConfigError, board_path, load_board
from tradeboard.ingest.topstep_api import TopstepApiClient
from tradeboard.metrics.summary import STATS_COLUMNS, TRADE_COLUMNS, stats_rows, trade_rows
from tradeboard.pipeline import BoardReport, build_report, directory_fetcher, skip_quotes
from tradeboard.pricing.yahoo_prices import QuoteSeriesConfig, YahooQuoteClient


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Reconstruct trades and stats for a trader board.")
    parser.add_argument("board", nargs="?", default=None, help="Board name (file stem in the boards dir).")
    parser.add_argument("--config", type=Path, default=None, help="Path to app.toml.")
    parser.add_argument("--boards-dir", type=Path, default=None, help="Directory holding board JSON files.")
    parser.add_argument(
        "--fills-dir",
        type=Path,
        default=None,
        help="Read saved range responses (<account_id>.json) instead of calling the API.",
    )
    parser.add_argument("--symbol", type=str, default=None, help="Reference quote symbol, e.g. F.US.EP.")
    parser.add_argument("--no-quotes", action="store_true", help="Skip the reference quote request.")
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON.")
    parser.add_argument("--out", type=Path, default=None, help="Write output to a file instead of stdout.")
    parser.add_argument("--chart-out", type=Path, default=None, help="Write chart series JSON to this path.")
    parser.add_argument("--utc", action="store_true", help="Print timestamps in UTC instead of local time.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args(argv)

    try:
        app_config = load_app_config(args.config)
    except ValueError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else app_config.app.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    boards_dir = args.boards_dir or app_config.boards.boards_dir
    try:
        path = board_path(boards_dir, args.board or app_config.boards.default_board)
        board = load_board(path)
    except (BoardConfigError, FileNotFoundError) as exc:
        print(f"Board error: {exc}", file=sys.stderr)
        return 2

    if args.fills_dir is not None:
        fetch_fills = directory_fetcher(args.fills_dir)
    else:
        fetch_fills = TopstepApiClient(app_config.api.client_config()).fetch_fills

    symbol = args.symbol or app_config.quotes.default_symbol
    quote_client = YahooQuoteClient(QuoteSeriesConfig.from_settings(app_config.quotes))
    fetch_quotes = quote_client.fetch_quotes
    if args.no_quotes:
        fetch_quotes = skip_quotes

    report = build_report(board, fetch_fills, fetch_quotes, symbol)

    if report.trades.skipped:
        print(f"Skipped {report.trades.skipped} malformed fill rows.", file=sys.stderr)
    for error in report.trades.errors:
        print(f"Fetch failed for {error.trader} account {error.account_id}: {error.reason}", file=sys.stderr)
    if report.quotes.error and not args.no_quotes:
        print(f"Quotes unavailable for {symbol}: {report.quotes.error}", file=sys.stderr)

    if args.chart_out is not None:
        args.chart_out.parent.mkdir(parents=True, exist_ok=True)
        args.chart_out.write_text(json.dumps(report.chart.to_dict(), indent=2) + "\n", encoding="utf-8")

    if args.json:
        text = json.dumps(report.to_dict(), indent=2)
    else:
        text = format_report(report, utc=args.utc)

    if args.out is None:
        print(text)
    else:
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_text(text + "\n", encoding="utf-8")
    return 0


def format_report(report: BoardReport, *, utc: bool = False) -> str:
    window = report.board.window
    lines = [
        f"board {report.board.name} {window.start.isoformat()} -> {window.end.isoformat()}",
        "",
        " | ".join(STATS_COLUMNS),
    ]
    for row in stats_rows(report.stats):
        trader, count, win_rate, avg_profit, avg_loss, reward_risk, expectancy, avg_pnl, pnl = row
        lines.append(
            " | ".join(
                [
                    trader,
                    formatting.integer(count),
                    formatting.percent(win_rate),
                    formatting.money(avg_profit),
                    formatting.money(avg_loss),
                    formatting.number(reward_risk),
                    formatting.number(expectancy),
                    formatting.money(avg_pnl),
                    formatting.money(pnl),
                ]
            )
        )

    lines.extend(["", " | ".join(TRADE_COLUMNS)])
    for row in trade_rows(report.trades.trades):
        trader, symbol, start, end, entry, exit_, pnl = row
        lines.append(
            " | ".join(
                [
                    trader,
                    symbol,
                    formatting.timestamp(start, utc=utc),
                    formatting.timestamp(end, utc=utc),
                    formatting.number(entry),
                    formatting.number(exit_),
                    formatting.money(pnl),
                ]
            )
        )
    return "\n".join(lines)


if __name__ == "__main__":
    raise SystemExit(main())
