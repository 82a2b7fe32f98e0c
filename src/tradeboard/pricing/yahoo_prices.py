from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping

from tradeboard.models import Quote

if TYPE_CHECKING:
    from tradeboard.config.app_config import QuoteSettings

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://query1.finance.yahoo.com/v8/finance/chart/"
DEFAULT_INTERVAL = "1m"
DEFAULT_RANGE = "5d"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_SYMBOL = "F.US.EP"

# Board instrument ids to the reference feed ticker. Micro contracts share
# the full-size ticker.
SYMBOL_MAP: dict[str, str] = {
    "F.US.EP": "ES=F",
    "F.US.MES": "ES=F",
    "F.US.ENQ": "NQ=F",
    "F.US.MNQ": "NQ=F",
    "F.US.GCE": "GC=F",
    "F.US.MGC": "GC=F",
    "F.US.CLE": "CL=F",
}


@dataclass(frozen=True)
class QuoteResult:
    symbol: str
    quotes: list[Quote] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class QuoteSeriesConfig:
    base_url: str
    proxy_url: str
    interval: str
    range: str
    timeout_seconds: float
    symbol_map: Mapping[str, str] = field(default_factory=lambda: dict(SYMBOL_MAP))

    @classmethod
    def from_settings(cls, settings: "QuoteSettings") -> "QuoteSeriesConfig":
        return cls(
            base_url=settings.base_url,
            proxy_url=settings.proxy_url,
            interval=settings.interval,
            range=settings.range,
            timeout_seconds=settings.timeout_seconds,
            symbol_map=dict(settings.symbol_map),
        )


class YahooQuoteClient:
    def __init__(self, config: QuoteSeriesConfig) -> None:
        self._config = config

    @property
    def symbols(self) -> list[str]:
        return list(self._config.symbol_map)

    def quote_url(self, symbol: str) -> str:
        ticker = self._config.symbol_map.get(symbol)
        if ticker is None:
            raise ValueError(f"No reference ticker for symbol {symbol!r}")
        base = self._config.base_url if self._config.base_url.endswith("/") else f"{self._config.base_url}/"
        query = urllib.parse.urlencode({"interval": self._config.interval, "range": self._config.range})
        return f"{self._config.proxy_url}{base}{urllib.parse.quote(ticker)}?{query}"

    def fetch_quotes(self, symbol: str) -> QuoteResult:
        """Fetch the reference close series for a board symbol.

        Failures are logged and reported on the result with an empty series.
        """
        try:
            url = self.quote_url(symbol)
            payload = _fetch_json(url, timeout_seconds=self._config.timeout_seconds)
            quotes = parse_chart_payload(payload)
        except (RuntimeError, TypeError, ValueError) as exc:
            logger.warning("Quote fetch failed for %s: %s", symbol, exc)
            return QuoteResult(symbol=symbol, quotes=[], error=str(exc))
        return QuoteResult(symbol=symbol, quotes=quotes)


def parse_chart_payload(payload: Any) -> list[Quote]:
    """Pair chart timestamps (epoch seconds) with close prices.

    Entries whose close is missing or zero are dropped.
    """
    try:
        result = payload["chart"]["result"][0]
    except (KeyError, IndexError, TypeError) as exc:
        raise ValueError(f"Unexpected chart payload: {_describe_payload(payload)}") from exc
    if not isinstance(result, Mapping):
        raise ValueError(f"Unexpected chart payload: {_describe_payload(payload)}")

    timestamps = result.get("timestamp") or []
    if not isinstance(timestamps, list):
        raise ValueError(f"Unexpected chart timestamps: {type(timestamps).__name__}")
    try:
        closes = result["indicators"]["quote"][0].get("close") or []
    except (KeyError, IndexError, TypeError, AttributeError):
        closes = []
    if not isinstance(closes, list):
        closes = []

    quotes: list[Quote] = []
    for idx, raw_ts in enumerate(timestamps):
        price = closes[idx] if idx < len(closes) else None
        if not price or isinstance(price, bool):
            continue
        if isinstance(raw_ts, bool) or not isinstance(raw_ts, (int, float)):
            continue
        try:
            date = datetime.fromtimestamp(float(raw_ts), tz=timezone.utc)
            value = float(price)
        except (OverflowError, OSError, TypeError, ValueError):
            continue
        quotes.append(Quote(date=date, price=value))
    return quotes


def _fetch_json(url: str, timeout_seconds: float) -> Any:
    request = urllib.request.Request(url, headers={"Accept": "application/json"})
    try:
        with urllib.request.urlopen(request, timeout=timeout_seconds) as response:
            payload = response.read()
    except urllib.error.HTTPError as exc:
        raise RuntimeError(f"HTTP {exc.code} from quote endpoint: {url}") from exc
    except (urllib.error.URLError, TimeoutError, OSError) as exc:
        raise RuntimeError(f"Request failed for {url}: {exc}") from exc
    if not payload:
        raise RuntimeError(f"Empty response from quote endpoint: {url}")
    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        snippet = payload[:500].decode("utf-8", errors="replace")
        raise RuntimeError(f"Non-JSON quote response: {snippet}") from exc


def _describe_payload(payload: Any) -> str:
    if isinstance(payload, dict):
        return f"response_keys={sorted(payload.keys())}"
    if isinstance(payload, list):
        return f"response_list_len={len(payload)}"
    return f"response_type={type(payload).__name__}"
