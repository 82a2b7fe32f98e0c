from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from tradeboard.metrics.chart import (
    DOMAIN_PAD,
    build_chart,
    compute_domain,
    is_winning_trade,
    trade_in_domain,
)
from tradeboard.models import Quote, Trade

T0 = datetime(2024, 6, 3, 14, 0, tzinfo=timezone.utc)
QUOTES = [
    Quote(date=T0, price=5000.0),
    Quote(date=T0 + timedelta(hours=1), price=5100.0),
    Quote(date=T0 + timedelta(hours=2), price=5050.0),
]
INSIDE = Trade(
    symbol="F.US.EP",
    start_date=T0 + timedelta(minutes=10),
    end_date=T0 + timedelta(hours=2, minutes=15),
    entry_price=5050.0,
    exit_price=5060.0,
    pnl=-10.0,
)


def test_compute_domain_pads_max_timestamp():
    domain = compute_domain(QUOTES)
    assert domain is not None
    assert domain.min_timestamp == T0
    assert domain.max_timestamp == T0 + timedelta(hours=2) + DOMAIN_PAD
    assert domain.min_price == 5000.0
    assert domain.max_price == 5100.0


def test_compute_domain_empty_quotes():
    assert compute_domain([]) is None


def test_trade_inside_domain_is_included():
    assert trade_in_domain(INSIDE, compute_domain(QUOTES))


@pytest.mark.parametrize(
    "changes",
    [
        {"start_date": T0 - timedelta(minutes=1)},
        {"end_date": T0 + timedelta(hours=2, minutes=21)},
        {"entry_price": 5100.25},
        {"entry_price": 4999.75},
    ],
)
def test_any_failed_bound_excludes_whole_trade(changes):
    trade = replace(INSIDE, **changes)
    chart = build_chart(QUOTES, {"alice": [trade]})
    assert chart.series[0].winning == []
    assert chart.series[0].losing == []


def test_exit_price_outside_range_does_not_exclude():
    trade = replace(INSIDE, exit_price=6000.0)
    assert trade_in_domain(trade, compute_domain(QUOTES))


def test_classification_uses_price_direction_not_pnl():
    # Exit above entry is "losing" on the chart even with a positive pnl.
    profitable_short_looking = replace(INSIDE, entry_price=5050.0, exit_price=5060.0, pnl=25.0)
    assert not is_winning_trade(profitable_short_looking)
    assert is_winning_trade(replace(INSIDE, exit_price=5050.0))
    assert is_winning_trade(replace(INSIDE, exit_price=5040.0))


def test_segments_are_entry_exit_separator():
    winner = replace(INSIDE, exit_price=5040.0, pnl=10.0)
    loser = replace(INSIDE, start_date=T0 + timedelta(minutes=30), pnl=-3.0)
    chart = build_chart(QUOTES, {"alice": [winner, loser, winner]})
    series = chart.series[0]
    assert series.trader == "alice"
    assert len(series.winning) == 6
    assert len(series.losing) == 3

    entry, exit_, separator = series.winning[:3]
    assert (entry.date, entry.price, entry.pnl) == (winner.start_date, winner.entry_price, 10.0)
    assert (exit_.date, exit_.price, exit_.pnl) == (winner.end_date, winner.exit_price, 10.0)
    assert separator.is_separator
    assert separator.pnl is None


def test_bucket_lengths_are_multiples_of_three():
    trades = [replace(INSIDE, exit_price=5000.0 + step * 10, pnl=float(step)) for step in range(12)]
    chart = build_chart(QUOTES, {"alice": trades, "bob": trades[:5]})
    for series in chart.series:
        assert len(series.winning) % 3 == 0
        assert len(series.losing) % 3 == 0


def test_viewport_and_price_line():
    chart = build_chart(QUOTES, {"alice": [INSIDE]})
    assert chart.viewport_start == QUOTES[-1].date - timedelta(hours=24)
    assert chart.viewport_end == QUOTES[-1].date + DOMAIN_PAD
    assert [(point.date, point.price) for point in chart.price_line] == [(q.date, q.price) for q in QUOTES]


def test_empty_quotes_include_no_trades():
    chart = build_chart([], {"alice": [INSIDE]})
    assert chart.domain is None
    assert chart.viewport_start is None
    assert chart.viewport_end is None
    assert chart.series[0].winning == []
    assert chart.series[0].losing == []
    assert chart.to_dict()["domain"] is None


def test_symbol_filter():
    other = replace(INSIDE, symbol="F.US.ENQ")
    chart = build_chart(QUOTES, {"alice": [INSIDE, other]}, symbol="F.US.EP")
    assert len(chart.series[0].losing) == 3


def test_build_chart_leaves_inputs_untouched():
    trade = replace(INSIDE)
    quotes = list(QUOTES)
    build_chart(quotes, {"alice": [trade]})
    assert trade == INSIDE
    assert quotes == QUOTES


def test_to_dict_uses_epoch_milliseconds():
    payload = build_chart(QUOTES, {"alice": [INSIDE]}).to_dict()
    assert payload["price_line"][0] == {"t": int(T0.timestamp() * 1000), "price": 5000.0, "pnl": None}
    assert payload["series"][0]["losing"][2] == {"t": None, "price": None, "pnl": None}
    assert payload["viewport"]["end"] == int((T0 + timedelta(hours=2) + DOMAIN_PAD).timestamp() * 1000)
