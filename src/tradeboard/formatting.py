from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


def money(value: float | None) -> str:
    amount = _coerce_float(value)
    if amount is None:
        return "n/a"
    return f"${amount:,.2f}"


def percent(value: float | None) -> str:
    ratio = _coerce_float(value)
    if ratio is None:
        return "n/a"
    return f"{ratio * 100:,.2f}%"


def number(value: float | None) -> str:
    amount = _coerce_float(value)
    if amount is None:
        return "n/a"
    return f"{amount:,.2f}"


def integer(value: float | None) -> str:
    amount = _coerce_float(value)
    if amount is None:
        return "n/a"
    return f"{amount:,.0f}"


def timestamp(value: Any, *, utc: bool = False) -> str:
    if not isinstance(value, datetime):
        return "n/a"
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    shown = value.astimezone(timezone.utc) if utc else value.astimezone()
    return shown.strftime("%Y-%m-%d %H:%M:%S")


def _coerce_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
