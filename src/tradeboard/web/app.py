from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from jinja2 import Undefined

from tradeboard import formatting
from tradeboard.config.app_config import AppConfig, load_app_config
from tradeboard.config.board import BoardConfigError, board_path, list_boards, load_board
from tradeboard.ingest.topstep_api import TopstepApiClient
from tradeboard.metrics.summary import STATS_COLUMNS, TRADE_COLUMNS, stats_rows, trade_rows
from tradeboard.models import Board
from tradeboard.pipeline import BoardReport, build_report, skip_quotes
from tradeboard.pricing.yahoo_prices import QuoteSeriesConfig, YahooQuoteClient
from tradeboard.reconstruct.trades import FillFetcher

logger = logging.getLogger(__name__)

APP_ROOT = Path(__file__).resolve().parent
TEMPLATES = Jinja2Templates(directory=str(APP_ROOT / "templates"))


app = FastAPI(title="Trade Board")


@app.get("/", response_class=HTMLResponse)
def dashboard(request: Request) -> HTMLResponse:
    config = _app_config()
    board = _resolve_board(request)
    symbol = _resolve_symbol(request, config)
    report = _build_report(board, symbol)
    context = {
        "board": board,
        "boards": list_boards(config.boards.boards_dir),
        "symbol": symbol,
        "symbols": list(config.quotes.symbol_map),
        "stats_columns": STATS_COLUMNS,
        "stats_rows": stats_rows(report.stats),
        "trade_columns": TRADE_COLUMNS,
        "trade_rows": trade_rows(report.trades.trades),
        "errors": report.trades.errors,
        "quote_error": report.quotes.error,
        "chart": report.chart.to_dict(),
    }
    return TEMPLATES.TemplateResponse(request, "dashboard.html", context)


@app.get("/api/boards")
def boards_api() -> dict[str, Any]:
    config = _app_config()
    return {"default": config.boards.default_board, "boards": list_boards(config.boards.boards_dir)}


@app.get("/api/symbols")
def symbols_api() -> dict[str, Any]:
    config = _app_config()
    return {"default": config.quotes.default_symbol, "symbols": dict(config.quotes.symbol_map)}


@app.get("/api/stats")
def stats_api(request: Request) -> dict[str, Any]:
    board = _resolve_board(request)
    report = _build_report(board, _app_config().quotes.default_symbol, with_quotes=False)
    return {
        "board": board.name,
        "stats": [item.to_dict() for item in report.stats.values()],
        "errors": _errors_payload(report),
    }


@app.get("/api/trades")
def trades_api(request: Request) -> dict[str, Any]:
    board = _resolve_board(request)
    report = _build_report(board, _app_config().quotes.default_symbol, with_quotes=False)
    payload = report.to_dict()
    return {"board": board.name, "trades": payload["trades"], "errors": payload["errors"]}


@app.get("/api/chart")
def chart_api(request: Request) -> dict[str, Any]:
    board = _resolve_board(request)
    symbol = _resolve_symbol(request, _app_config())
    report = _build_report(board, symbol)
    return {
        "board": board.name,
        "symbol": symbol,
        "quote_error": report.quotes.error,
        "chart": report.chart.to_dict(),
    }


@lru_cache(maxsize=1)
def _app_config() -> AppConfig:
    return load_app_config()


def _fill_fetcher() -> FillFetcher:
    return TopstepApiClient(_app_config().api.client_config()).fetch_fills


def _quote_client() -> YahooQuoteClient:
    return YahooQuoteClient(QuoteSeriesConfig.from_settings(_app_config().quotes))


def _resolve_board(request: Request) -> Board:
    config = _app_config()
    name = (request.query_params.get("board") or "").strip() or config.boards.default_board
    try:
        return load_board(board_path(config.boards.boards_dir, name))
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=f"Board '{name}' not found.") from exc
    except BoardConfigError as exc:
        logger.warning("Rejected board %r: %s", name, exc)
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _resolve_symbol(request: Request, config: AppConfig) -> str:
    symbol = (request.query_params.get("symbol") or "").strip() or config.quotes.default_symbol
    if symbol not in config.quotes.symbol_map:
        raise HTTPException(status_code=404, detail=f"Unknown symbol '{symbol}'.")
    return symbol


def _build_report(board: Board, symbol: str, *, with_quotes: bool = True) -> BoardReport:
    fetch_quotes = _quote_client().fetch_quotes if with_quotes else skip_quotes
    return build_report(board, _fill_fetcher(), fetch_quotes, symbol)


def _errors_payload(report: BoardReport) -> list[dict[str, Any]]:
    return [
        {"trader": error.trader, "account_id": error.account_id, "reason": error.reason}
        for error in report.trades.errors
    ]


def money_filter(value: Any) -> str:
    if isinstance(value, Undefined):
        return "n/a"
    return formatting.money(value)


def percent_filter(value: Any) -> str:
    if isinstance(value, Undefined):
        return "n/a"
    return formatting.percent(value)


def number_filter(value: Any) -> str:
    if isinstance(value, Undefined):
        return "n/a"
    return formatting.number(value)


def timestamp_filter(value: Any) -> str:
    if isinstance(value, Undefined):
        return "n/a"
    return formatting.timestamp(value)


def json_filter(value: Any) -> str:
    return json.dumps(value, default=str).replace("</", "<\\/")


TEMPLATES.env.filters.update(
    {
        "money": money_filter,
        "percent": percent_filter,
        "number": number_filter,
        "timestamp": timestamp_filter,
        "json": json_filter,
    }
)


def main() -> None:
    import uvicorn

    app_config = _app_config()
    logging.basicConfig(
        level=app_config.app.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        "tradeboard.web.app:app",
        host=app_config.app.host,
        port=app_config.app.port,
        reload=app_config.app.reload,
    )


if __name__ == "__main__":
    main()
