from __future__ import annotations

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Mapping

from tradeboard.ingest.fills import parse_timestamp
from tradeboard.models import Board, ReportingWindow

_BOARD_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


class BoardConfigError(ValueError):
    pass


def board_path(boards_dir: Path, name: str | None = None) -> Path:
    """Resolve ``<boards_dir>/<name>.json``; the name defaults to ``default``."""
    resolved = (name or "default").strip()
    if resolved.endswith(".json"):
        resolved = resolved[:-5]
    if not _BOARD_NAME_RE.match(resolved) or ".." in resolved:
        raise BoardConfigError(f"Invalid board name: {name!r}")
    return Path(boards_dir) / f"{resolved}.json"


def list_boards(boards_dir: Path) -> list[str]:
    directory = Path(boards_dir)
    if not directory.is_dir():
        return []
    return sorted(path.stem for path in directory.glob("*.json"))


def load_board(path: Path) -> Board:
    if not path.exists():
        raise FileNotFoundError(f"Board file not found: {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise BoardConfigError(f"Board file {path} is not valid JSON: {exc}") from exc
    return parse_board(raw, default_name=path.stem)


def parse_board(raw: Any, *, default_name: str = "default") -> Board:
    if not isinstance(raw, Mapping):
        raise BoardConfigError("Board config must be a JSON object.")

    start = _required_timestamp(raw, "start_date")
    end = _required_timestamp(raw, "end_date")
    try:
        window = ReportingWindow(start=start, end=end)
    except ValueError as exc:
        raise BoardConfigError(str(exc)) from exc

    return Board(
        name=str(raw.get("name") or default_name),
        window=window,
        shares=_parse_shares(raw.get("shares")),
        allow_practice=bool(raw.get("allow_practice", False)),
        allow_combine=bool(raw.get("allow_combine", False)),
        allow_xfa=bool(raw.get("allow_xfa", False)),
        allow_multiple=bool(raw.get("allow_multiple", False)),
    )


def _required_timestamp(raw: Mapping[str, Any], key: str) -> datetime:
    value = raw.get(key)
    if value in (None, ""):
        raise BoardConfigError(f"Board config is missing '{key}'.")
    try:
        return parse_timestamp(value)
    except ValueError as exc:
        raise BoardConfigError(f"Board config has invalid '{key}': {value!r}") from exc


def _parse_shares(value: Any) -> dict[str, list[int]]:
    if not isinstance(value, Mapping):
        raise BoardConfigError("Board config 'shares' must map traders to account id lists.")
    shares: dict[str, list[int]] = {}
    for trader, accounts in value.items():
        if not isinstance(accounts, list):
            raise BoardConfigError(f"Accounts for trader '{trader}' must be a list.")
        ids: list[int] = []
        for account in accounts:
            account_id = _account_id(account)
            if account_id is None:
                raise BoardConfigError(f"Invalid account id {account!r} for trader '{trader}'.")
            if account_id not in ids:
                ids.append(account_id)
        shares[str(trader)] = ids
    return shares


def _account_id(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
