from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Mapping

from tradeboard.models import NormalizedFill, RawFill, ReportingWindow

_FRACTION_RE = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class IngestResult:
    fills: list[RawFill]
    skipped: int = 0


def normalize_fill(window: ReportingWindow, fill: RawFill) -> NormalizedFill | None:
    """Reduce a raw fill to per-unit P&L, or return None when it must be dropped.

    Fills that open before the window or close after it are outside the
    reporting period. A zero position size has no per-unit value.
    """
    if fill.created_at < window.start:
        return None
    if fill.exited_at > window.end:
        return None
    if fill.position_size == 0:
        return None
    return NormalizedFill(
        symbol=fill.symbol,
        start_date=fill.created_at,
        end_date=fill.exited_at,
        entry_price=fill.entry_price,
        exit_price=fill.exit_price,
        per_unit_pnl=(fill.pnl - fill.fees) / abs(fill.position_size),
    )


def normalize_fills(window: ReportingWindow, fills: Iterable[RawFill]) -> list[NormalizedFill]:
    output: list[NormalizedFill] = []
    for fill in fills:
        normalized = normalize_fill(window, fill)
        if normalized is not None:
            output.append(normalized)
    return output


def load_fills(path: str | Path, *, account_id: int | None = None) -> IngestResult:
    source_path = Path(path)
    if source_path.suffix.lower() != ".json":
        raise ValueError(f"Unsupported file type: {source_path.suffix}")
    with source_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return parse_fills_payload(payload, account_id=account_id)


def parse_fills_payload(payload: Any, *, account_id: int | None = None) -> IngestResult:
    records = _extract_records(payload)
    fills: list[RawFill] = []
    skipped = 0
    for record in records:
        try:
            fills.append(parse_raw_fill(record, account_id=account_id))
        except ValueError:
            skipped += 1
    return IngestResult(fills=fills, skipped=skipped)


def parse_raw_fill(record: Mapping[str, Any], *, account_id: int | None = None) -> RawFill:
    if not isinstance(record, Mapping):
        raise ValueError("Fill record must be an object")
    symbol = _pick(record, "symbolId", "symbol", "contractId")
    if not symbol:
        raise ValueError("Missing symbol")
    resolved_account = account_id if account_id is not None else _pick(record, "accountId", "tradingAccountId")
    return RawFill(
        symbol=str(symbol),
        created_at=parse_timestamp(_pick(record, "createdAt", "created_at")),
        exited_at=parse_timestamp(_pick(record, "exitedAt", "exited_at")),
        entry_price=_to_float(_pick(record, "entryPrice", "entry_price")),
        exit_price=_to_float(_pick(record, "exitPrice", "exit_price")),
        pnl=_to_float(_pick(record, "pnL", "pnl", "profitAndLoss")),
        fees=_to_float(_pick(record, "fees", "fee"), default=0.0),
        position_size=_to_float(_pick(record, "positionSize", "position_size", "size")),
        account_id=int(resolved_account) if resolved_account is not None else None,
        raw=dict(record),
    )


def _extract_records(payload: Any) -> Iterable[Mapping[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "trades", "result"):
            if key in payload and isinstance(payload[key], list):
                return payload[key]
    raise ValueError("Unsupported JSON format for fills payload")


def _pick(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in raw and raw[key] not in (None, ""):
            return raw[key]
    return None


def _to_float(value: Any, default: float | None = None) -> float:
    if value is None:
        if default is None:
            raise ValueError("Missing numeric field")
        return default
    if isinstance(value, bool):
        raise ValueError("Invalid numeric field")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError("Invalid numeric field") from exc


def parse_timestamp(value: Any) -> datetime:
    if value is None:
        raise ValueError("Missing timestamp")
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return _timestamp_from_number(float(value))

    text = str(value).strip()
    if text.endswith("Z") or text.endswith("z"):
        text = f"{text[:-1]}+00:00"
    # The broker reports up to seven fractional digits.
    text = _FRACTION_RE.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise ValueError(f"Unsupported timestamp format: {value!r}") from exc

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _timestamp_from_number(value: float) -> datetime:
    seconds = value / 1000.0 if value > 1e12 else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"Timestamp out of range: {value!r}") from exc
