from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - Python <3.11
    import tomli as tomllib

from tradeboard.ingest import topstep_api
from tradeboard.ingest.topstep_api import TopstepApiConfig
from tradeboard.pricing import yahoo_prices


@dataclass(frozen=True)
class AppSettings:
    host: str
    port: int
    reload: bool
    log_level: str


@dataclass(frozen=True)
class ApiSettings:
    base_url: str
    trades_endpoint: str
    timeout_seconds: float

    def client_config(self) -> TopstepApiConfig:
        return TopstepApiConfig(
            base_url=self.base_url.rstrip("/"),
            trades_endpoint=self.trades_endpoint,
            timeout_seconds=self.timeout_seconds,
        )


@dataclass(frozen=True)
class QuoteSettings:
    base_url: str
    proxy_url: str
    interval: str
    range: str
    timeout_seconds: float
    default_symbol: str
    symbol_map: dict[str, str]


@dataclass(frozen=True)
class BoardSettings:
    boards_dir: Path
    default_board: str


@dataclass(frozen=True)
class AppConfig:
    app: AppSettings
    api: ApiSettings
    quotes: QuoteSettings
    boards: BoardSettings


def load_app_config(path: Path | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    env = os.environ if env is None else env
    config_path = path or Path(env.get("TRADEBOARD_APP_CONFIG", "config/app.toml"))
    raw: Mapping[str, Any] = {}
    if config_path.exists():
        raw = tomllib.loads(config_path.read_text(encoding="utf-8"))

    app_raw = _section(raw, "app")
    api_raw = _section(raw, "api")
    quotes_raw = _section(raw, "quotes")
    boards_raw = _section(raw, "boards")

    app = AppSettings(
        host=str(app_raw.get("host", "127.0.0.1")),
        port=int(app_raw.get("port", 8000)),
        reload=bool(app_raw.get("reload", False)),
        log_level=str(app_raw.get("log_level", "INFO")).upper(),
    )

    api = ApiSettings(
        base_url=str(api_raw.get("base_url", topstep_api.DEFAULT_BASE_URL)),
        trades_endpoint=str(api_raw.get("trades_endpoint", topstep_api.DEFAULT_TRADES_ENDPOINT)),
        timeout_seconds=float(api_raw.get("timeout_seconds", topstep_api.DEFAULT_TIMEOUT_SECONDS)),
    )

    symbol_map = _string_map(quotes_raw.get("symbol_map")) or dict(yahoo_prices.SYMBOL_MAP)
    quotes = QuoteSettings(
        base_url=str(quotes_raw.get("base_url", yahoo_prices.DEFAULT_BASE_URL)),
        proxy_url=str(quotes_raw.get("proxy_url", "")),
        interval=str(quotes_raw.get("interval", yahoo_prices.DEFAULT_INTERVAL)),
        range=str(quotes_raw.get("range", yahoo_prices.DEFAULT_RANGE)),
        timeout_seconds=float(quotes_raw.get("timeout_seconds", yahoo_prices.DEFAULT_TIMEOUT_SECONDS)),
        default_symbol=str(quotes_raw.get("default_symbol", yahoo_prices.DEFAULT_SYMBOL)),
        symbol_map=symbol_map,
    )
    if quotes.default_symbol not in quotes.symbol_map:
        raise ValueError(f"Default quote symbol '{quotes.default_symbol}' not found in symbol map.")

    boards = BoardSettings(
        boards_dir=Path(env.get("TRADEBOARD_BOARDS_DIR") or boards_raw.get("dir", "boards")),
        default_board=str(env.get("TRADEBOARD_BOARD") or boards_raw.get("default", "default")),
    )

    return AppConfig(app=app, api=api, quotes=quotes, boards=boards)


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key)
    if isinstance(value, Mapping):
        return value
    return {}


def _string_map(value: Any) -> dict[str, str]:
    if not isinstance(value, Mapping):
        return {}
    output: dict[str, str] = {}
    for key, item in value.items():
        if not key or item in (None, ""):
            continue
        output[str(key)] = str(item)
    return output
