from datetime import datetime, timedelta, timezone

from tradeboard import formatting


def test_money():
    assert formatting.money(1234.5) == "$1,234.50"
    assert formatting.money(-52) == "$-52.00"
    assert formatting.money(0) == "$0.00"
    assert formatting.money(None) == "n/a"
    assert formatting.money("abc") == "n/a"


def test_percent_number_integer():
    assert formatting.percent(0.5) == "50.00%"
    assert formatting.percent(1) == "100.00%"
    assert formatting.number(-1) == "-1.00"
    assert formatting.number(2.005) in {"2.00", "2.01"}
    assert formatting.integer(12) == "12"
    assert formatting.integer(True) == "n/a"


def test_timestamp():
    value = datetime(2024, 6, 3, 14, 5, 9, tzinfo=timezone(timedelta(hours=2)))
    assert formatting.timestamp(value, utc=True) == "2024-06-03 12:05:09"
    assert formatting.timestamp(datetime(2024, 6, 3, 14, 5, 9), utc=True) == "2024-06-03 14:05:09"
    assert formatting.timestamp("2024-06-03") == "n/a"
