import os
import sys
from datetime import datetime, timezone

# --- Add src directory to sys.path ---
src_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

import pytest

from models import InstrumentInfo, PricePoint

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


def utc(y, m, d):
    return datetime(y, m, d, tzinfo=timezone.utc)


class FakeMarketData:
    """In-memory market and reference data. Unknown tickers raise LookupError."""

    def __init__(self):
        self.series = {}
        self.spot = {}
        self.dividends = {}
        self.currencies = {}
        self.failing_history = set()
        self.failing_dividends = set()
        self.history_calls = []
        self.spot_calls = []

    def add_series(self, ticker, prices, currency="SGD"):
        """prices: list of (datetime, price)."""
        self.series[ticker] = [
            PricePoint(ticker=ticker, price=p, currency=currency, timestamp=int(d.timestamp()))
            for d, p in prices
        ]

    def get_historical_series(self, ticker, from_ts, to_ts):
        self.history_calls.append((ticker, from_ts, to_ts))
        if ticker in self.failing_history:
            raise ConnectionError(f"history unavailable for {ticker}")
        return [p for p in self.series.get(ticker, []) if from_ts <= p.timestamp <= to_ts]

    def get_spot_price(self, ticker):
        self.spot_calls.append(ticker)
        if ticker not in self.spot:
            raise LookupError(f"no spot for {ticker}")
        return PricePoint(ticker=ticker, price=self.spot[ticker], currency="", timestamp=0)

    def get_dividend_history(self, ticker):
        if ticker in self.failing_dividends:
            raise ConnectionError(f"dividends unavailable for {ticker}")
        return list(self.dividends.get(ticker, []))

    def get_instrument_info(self, ticker):
        if ticker not in self.currencies:
            raise LookupError(f"unknown ticker {ticker}")
        return InstrumentInfo(ticker=ticker, currency=self.currencies[ticker])


@pytest.fixture
def fixed_clock():
    return lambda: NOW


@pytest.fixture
def basket_market():
    """Two-ticker basket: A quoted in SGD, B in USD with USD-SGD at 1.5."""
    market = FakeMarketData()
    market.currencies.update({"A": "SGD", "B": "USD"})
    market.add_series("A", [(utc(2022, 12, 30), 10.0), (utc(2023, 6, 1), 12.0), (utc(2024, 1, 1), 15.0)])
    market.add_series("B", [(utc(2023, 1, 1), 20.0), (utc(2024, 1, 1), 22.0)], currency="USD")
    market.add_series("USD-SGD", [(utc(2022, 12, 28), 1.5), (utc(2024, 1, 1), 1.5)])
    return market
