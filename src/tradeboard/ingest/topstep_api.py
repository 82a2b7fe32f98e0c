from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from datetime import timezone
from typing import Any, Mapping

from tradeboard.ingest.fills import parse_fills_payload
from tradeboard.models import RawFill, ReportingWindow

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://userapi.topstepx.com"
DEFAULT_TRADES_ENDPOINT = "/Trade/range"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one account fetch: fills on success, a reason on failure."""

    account_id: int
    fills: list[RawFill] = field(default_factory=list)
    error: str | None = None
    skipped: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, account_id: int, fills: list[RawFill], skipped: int = 0) -> "FetchResult":
        return cls(account_id=account_id, fills=list(fills), skipped=skipped)

    @classmethod
    def failure(cls, account_id: int, reason: str) -> "FetchResult":
        return cls(account_id=account_id, fills=[], error=reason)


@dataclass(frozen=True)
class TopstepApiConfig:
    base_url: str
    trades_endpoint: str
    timeout_seconds: float


class TopstepApiClient:
    def __init__(self, config: TopstepApiConfig) -> None:
        self._config = config

    @property
    def trades_url(self) -> str:
        endpoint = self._config.trades_endpoint
        path = endpoint if endpoint.startswith("/") else f"/{endpoint}"
        return f"{self._config.base_url}{path}"

    def fetch_fills(self, account_id: int, window: ReportingWindow) -> FetchResult:
        """POST a range request for one trading account.

        Never raises for transport or payload problems; those come back as a
        failed result so the caller can keep going with the other accounts.
        """
        body = build_range_payload(account_id, window)
        try:
            payload = _post_json(self.trades_url, body, timeout_seconds=self._config.timeout_seconds)
            result = parse_fills_payload(payload, account_id=account_id)
        except (RuntimeError, ValueError) as exc:
            return FetchResult.failure(account_id, str(exc))
        if result.skipped:
            logger.info("Skipped %s malformed fill rows for account %s", result.skipped, account_id)
        return FetchResult.success(account_id, result.fills, skipped=result.skipped)


def build_range_payload(account_id: int, window: ReportingWindow) -> dict[str, Any]:
    return {
        "tradingAccountId": account_id,
        "start": _iso_utc(window),
        "end": _iso_utc(window, end=True),
    }


def _iso_utc(window: ReportingWindow, *, end: bool = False) -> str:
    value = (window.end if end else window.start).astimezone(timezone.utc)
    text = value.isoformat(timespec="milliseconds")
    if text.endswith("+00:00"):
        text = f"{text[:-6]}Z"
    return text


def _post_json(url: str, body: Mapping[str, Any], *, timeout_seconds: float) -> Any:
    data = json.dumps(body).encode("utf-8")
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    request = urllib.request.Request(url, headers=headers, data=data, method="POST")
    try:
        with urllib.request.urlopen(request, timeout=timeout_seconds) as response:
            status = response.status
            payload = response.read()
    except urllib.error.HTTPError as exc:
        text = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
        raise RuntimeError(f"HTTP {exc.code}: {text[:200]}") from exc
    except (urllib.error.URLError, TimeoutError, OSError) as exc:
        raise RuntimeError(f"Request failed for {url}: {exc}") from exc

    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        snippet = payload[:200].decode("utf-8", errors="replace")
        raise RuntimeError(f"Non-JSON response (status {status}, url {url}): {snippet}") from exc
