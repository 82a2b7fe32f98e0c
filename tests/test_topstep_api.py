from datetime import datetime, timedelta, timezone

from tradeboard.ingest import topstep_api
from tradeboard.ingest.topstep_api import TopstepApiClient, TopstepApiConfig, build_range_payload
from tradeboard.models import Board, ReportingWindow
from tradeboard.reconstruct.trades import aggregate_board

WINDOW = ReportingWindow(
    start=datetime(2024, 6, 3, tzinfo=timezone.utc),
    end=datetime(2024, 6, 8, tzinfo=timezone.utc),
)
ROW = {
    "symbolId": "F.US.EP",
    "createdAt": "2024-06-03T14:00:00Z",
    "exitedAt": "2024-06-03T14:05:00Z",
    "entryPrice": 5000,
    "exitPrice": 5010,
    "pnL": 500,
    "fees": 4.2,
    "positionSize": 1,
}


def _client():
    return TopstepApiClient(TopstepApiConfig(base_url="https://api.test", trades_endpoint="Trade/range", timeout_seconds=5.0))


def test_build_range_payload():
    assert build_range_payload(42, WINDOW) == {
        "tradingAccountId": 42,
        "start": "2024-06-03T00:00:00.000Z",
        "end": "2024-06-08T00:00:00.000Z",
    }


def test_trades_url_joins_endpoint():
    assert _client().trades_url == "https://api.test/Trade/range"


def test_fetch_fills_parses_rows(monkeypatch):
    calls = []

    def fake_post(url, body, *, timeout_seconds):
        calls.append((url, body, timeout_seconds))
        return [ROW, {"symbolId": "F.US.EP"}]

    monkeypatch.setattr(topstep_api, "_post_json", fake_post)
    result = _client().fetch_fills(42, WINDOW)
    assert result.ok
    assert result.account_id == 42
    assert len(result.fills) == 1
    assert result.fills[0].account_id == 42
    assert result.skipped == 1
    assert calls[0][0] == "https://api.test/Trade/range"
    assert calls[0][1]["tradingAccountId"] == 42


def test_fetch_fills_reports_transport_failure(monkeypatch):
    def fake_post(url, body, *, timeout_seconds):
        raise RuntimeError("HTTP 401: unauthorized")

    monkeypatch.setattr(topstep_api, "_post_json", fake_post)
    result = _client().fetch_fills(42, WINDOW)
    assert not result.ok
    assert result.fills == []
    assert result.error == "HTTP 401: unauthorized"


def test_fetch_fills_reports_unexpected_payload(monkeypatch):
    monkeypatch.setattr(topstep_api, "_post_json", lambda url, body, *, timeout_seconds: {"message": "nope"})
    result = _client().fetch_fills(42, WINDOW)
    assert not result.ok


def test_build_range_payload_converts_offsets_to_utc():
    offset = timezone(timedelta(hours=2))
    window = ReportingWindow(start=datetime(2024, 6, 3, 2, 0, tzinfo=offset), end=datetime(2024, 6, 8, 2, 0, tzinfo=offset))
    payload = build_range_payload(42, window)
    assert payload["start"] == "2024-06-03T00:00:00.000Z"
    assert payload["end"] == "2024-06-08T00:00:00.000Z"


def test_out_of_range_epoch_row_does_not_stop_the_board(monkeypatch):
    def fake_post(url, body, *, timeout_seconds):
        if body["tradingAccountId"] == 1:
            return [{**ROW, "createdAt": 1e300}]
        return [ROW]

    monkeypatch.setattr(topstep_api, "_post_json", fake_post)
    board = Board(name="test", window=WINDOW, shares={"alice": [1], "bob": [2]})
    result = aggregate_board(board, _client().fetch_fills)
    assert list(result.trades) == ["alice", "bob"]
    assert result.trades["alice"] == []
    assert len(result.trades["bob"]) == 1
    assert result.skipped == 1
