from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping


@dataclass(frozen=True)
class ReportingWindow:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(
                f"Reporting window start {self.start.isoformat()} is after end {self.end.isoformat()}."
            )


@dataclass(frozen=True)
class Board:
    name: str
    window: ReportingWindow
    shares: dict[str, list[int]]
    allow_practice: bool = False
    allow_combine: bool = False
    allow_xfa: bool = False
    allow_multiple: bool = False


@dataclass(frozen=True)
class RawFill:
    symbol: str
    created_at: datetime
    exited_at: datetime
    entry_price: float
    exit_price: float
    pnl: float
    fees: float
    position_size: float
    account_id: int | None = None
    raw: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NormalizedFill:
    symbol: str
    start_date: datetime
    end_date: datetime
    entry_price: float
    exit_price: float
    per_unit_pnl: float


@dataclass
class Trade:
    symbol: str
    start_date: datetime
    end_date: datetime
    entry_price: float
    exit_price: float
    pnl: float


@dataclass(frozen=True)
class Quote:
    date: datetime
    price: float
