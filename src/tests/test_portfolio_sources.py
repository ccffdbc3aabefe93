import sys
import os

# --- Add src directory to sys.path ---
src_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

import pytest
from unittest.mock import MagicMock

from models import DividendRecord, Trade, TradeSide
from portfolio_sources import MarketDividendSource, TradeDerivedPositionSource, net_quantities
from conftest import FakeMarketData


def _trades():
    return [
        Trade("AAPL", TradeSide.BUY, 10, 150, 1.3, "2023-01-01T00:00:00Z", book="Growth"),
        Trade("AAPL", TradeSide.SELL, 4, 170, 1.3, "2023-02-01T00:00:00Z", book="Growth"),
        Trade("D05.SI", TradeSide.BUY, 100, 25, 1.0, "2023-01-01T00:00:00Z"),
        Trade("XYZ", TradeSide.BUY, 5, 10, 1.0, "2023-01-01T00:00:00Z"),
        Trade("XYZ", TradeSide.SELL, 5, 12, 1.0, "2023-03-01T00:00:00Z"),
        Trade("AAPL", TradeSide.BUY, 5, 160, 1.3, "2023-06-01T00:00:00Z", book="growth"),
    ]


@pytest.fixture
def trade_source():
    source = MagicMock()
    source.get_trades.return_value = _trades()
    return source


def test_net_quantities():
    quantities = net_quantities(_trades())
    assert quantities[("Growth", "AAPL")] == 6
    assert quantities[("growth", "AAPL")] == 5
    assert quantities[("", "XYZ")] == 0


def test_positions_from_trades(trade_source):
    market = FakeMarketData()
    market.currencies.update({"AAPL": "USD", "D05.SI": "SGD"})
    market.spot.update({"AAPL": 200.0, "D05.SI": 30.0, "USD-SGD": 1.35})
    source = TradeDerivedPositionSource(trade_source, market, market, base_currency="SGD")

    positions = source.get_all_positions()
    summary = [(p.book, p.ticker, p.quantity, p.market_value, p.fx_rate) for p in positions]
    assert summary == [
        ("Growth", "AAPL", 6, 1200.0, 1.35),
        ("", "D05.SI", 100, 3000.0, 1.0),
        ("growth", "AAPL", 5, 1000.0, 1.35),
    ]
    assert "XYZ" not in market.spot_calls
    assert market.spot_calls.count("USD-SGD") == 1


def test_dividends_use_quantity_held_before_ex_date(trade_source):
    market = FakeMarketData()
    market.dividends["AAPL"] = [
        DividendRecord("AAPL", "2022-01-01", amount_per_share=0.25, withholding_tax=0.3),
        DividendRecord("AAPL", "2023-03-01", amount_per_share=0.25, withholding_tax=0.3),
        DividendRecord("AAPL", "2023-06-01", amount_per_share=0.25, withholding_tax=0.3),
        DividendRecord("AAPL", "2999-01-01", amount_per_share=0.25, withholding_tax=0.3),
    ]
    source = MarketDividendSource(trade_source, market)

    result = source.calculate_for_book("GROWTH")
    assert list(result) == ["AAPL"]
    records = result["AAPL"]
    assert [(r.ex_date, r.quantity) for r in records] == [("2023-03-01", 6), ("2023-06-01", 6)]
    assert records[0].amount == pytest.approx(6 * 0.25 * 0.7)


def test_dividends_for_all_tickers(trade_source):
    market = FakeMarketData()
    market.dividends["D05.SI"] = [DividendRecord("D05.SI", "2023-04-01", amount_per_share=0.5)]
    result = MarketDividendSource(trade_source, market).calculate_for_all_tickers()
    assert list(result) == ["D05.SI"]
    assert result["D05.SI"][0].amount == pytest.approx(50.0)
