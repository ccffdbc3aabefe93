# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          price_cache.py
 Purpose:       Point-in-time, base-currency pricing for the benchmark replay.
                Loads each basket ticker's historical series (and the FX
                series of every non-base quote currency) once per run, then
                answers nearest-date price queries from memory.

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

import config
from collaborators import MarketDataSource, ReferenceSource
from errors import NoCachedSeriesError, NoHistoricalDataError, UpstreamFailureError
from finutils import fx_pair_ticker, is_base_currency
from models import PricePoint, WeightedTicker

SERIES_COLUMNS = ["timestamp", "price", "currency"]


def price_points_to_frame(points: List[PricePoint]) -> pd.DataFrame:
    """Converts price points to a DataFrame sorted ascending by timestamp."""
    df = pd.DataFrame(
        [(p.timestamp, p.price, p.currency) for p in points], columns=SERIES_COLUMNS
    )
    # mergesort is stable, so equal timestamps keep their fetch order
    return df.sort_values("timestamp", kind="mergesort").reset_index(drop=True)


def closest_by_timestamp(series: pd.DataFrame, when: datetime) -> pd.Series:
    """
    Returns the row of `series` whose timestamp is nearest to `when`.

    Distances are absolute, so a point just after `when` can win over one
    just before it. On equal distance the earlier row wins.

    Raises:
        ValueError: If the series is empty.
    """
    if series is None or series.empty:
        raise ValueError("empty series")
    target = int(when.timestamp())
    distances = np.abs(series["timestamp"].to_numpy(dtype=np.int64) - target)
    return series.iloc[int(np.argmin(distances))]


class BenchmarkPriceCache:
    """Read-only price and FX series for one benchmark run."""

    def __init__(
        self,
        series: Dict[str, pd.DataFrame],
        fx_series: Dict[str, pd.DataFrame],
        ticker_currency: Dict[str, str],
        base_currency: str = config.BASE_CURRENCY,
    ):
        self.series = series
        self.fx_series = fx_series
        self.ticker_currency = ticker_currency
        self.base_currency = base_currency

    @classmethod
    def build(
        cls,
        weights: List[WeightedTicker],
        start_date: datetime,
        end_date: datetime,
        market_data: MarketDataSource,
        reference: ReferenceSource,
        base_currency: str = config.BASE_CURRENCY,
        padding_days: int = config.HISTORICAL_PADDING_DAYS,
    ) -> "BenchmarkPriceCache":
        """
        Fetches every series the replay will need over the padded window.

        Args:
            weights: The normalized basket.
            start_date / end_date: Replay window; each side is padded by
                `padding_days` to absorb missing edge data.
            market_data: Source of historical price and FX series.
            reference: Source of each ticker's quote currency. When the
                lookup fails the currency of the first price point is used.

        Raises:
            UpstreamFailureError: A historical or FX fetch raised.
            NoHistoricalDataError: A ticker or FX pair returned no data.
        """
        from_ts = int((start_date - timedelta(days=padding_days)).timestamp())
        to_ts = int((end_date + timedelta(days=padding_days)).timestamp())

        series: Dict[str, pd.DataFrame] = {}
        ticker_currency: Dict[str, str] = {}
        for w in weights:
            if w.ticker in series:
                continue
            try:
                points = market_data.get_historical_series(w.ticker, from_ts, to_ts)
            except Exception as e:
                raise UpstreamFailureError(
                    f"failed to get historical data for {w.ticker}: {e}"
                ) from e
            if not points:
                raise NoHistoricalDataError(f"no historical data for {w.ticker}")
            df = price_points_to_frame(points)
            series[w.ticker] = df

            currency = None
            try:
                currency = reference.get_instrument_info(w.ticker).currency
            except Exception as e:
                logging.warning(
                    f"Price cache: reference lookup failed for {w.ticker}, "
                    f"using price data currency: {e}"
                )
            if not currency:
                currency = df.iloc[0]["currency"] or ""
            ticker_currency[w.ticker] = str(currency).upper()

        fx_series: Dict[str, pd.DataFrame] = {}
        for ticker, currency in ticker_currency.items():
            if is_base_currency(currency, base_currency):
                continue
            fx_ticker = fx_pair_ticker(currency, base_currency)
            if fx_ticker in fx_series:
                continue
            try:
                points = market_data.get_historical_series(fx_ticker, from_ts, to_ts)
            except Exception as e:
                raise UpstreamFailureError(
                    f"failed to get FX data for {fx_ticker}: {e}"
                ) from e
            if not points:
                raise NoHistoricalDataError(f"no FX data for {fx_ticker}")
            fx_series[fx_ticker] = price_points_to_frame(points)

        logging.info(
            f"Price cache: loaded {len(series)} price series and {len(fx_series)} FX series "
            f"({start_date:%Y-%m-%d} to {end_date:%Y-%m-%d})"
        )
        return cls(series, fx_series, ticker_currency, base_currency)

    def currency_of(self, ticker: str) -> Optional[str]:
        return self.ticker_currency.get(ticker)

    def price_in_base_at(self, ticker: str, when: datetime) -> float:
        """Nearest-date price of `ticker`, converted to base currency at `when`."""
        data = self.series.get(ticker)
        if data is None or data.empty:
            raise NoCachedSeriesError(f"no cached data for {ticker}")
        closest = closest_by_timestamp(data, when)
        return self.convert_to_base(
            float(closest["price"]), self.ticker_currency.get(ticker, ""), when
        )

    def convert_to_base(self, amount: float, currency: str, when: datetime) -> float:
        """Converts `amount` using the nearest-date cached FX rate."""
        if is_base_currency(currency, self.base_currency):
            return amount
        fx_ticker = fx_pair_ticker(currency, self.base_currency)
        data = self.fx_series.get(fx_ticker)
        if data is None or data.empty:
            raise NoCachedSeriesError(f"no cached FX data for {fx_ticker}")
        closest = closest_by_timestamp(data, when)
        return amount * float(closest["price"])
