# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          market_data.py
 Purpose:       Yahoo Finance adapter implementing the engine's market-data
                and reference-data contracts: historical close series, spot
                quotes, dividend history and instrument currency.

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""

import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pandas as pd
import yfinance as yf

import config
from errors import UpstreamFailureError
from models import DividendRecord, InstrumentInfo, PricePoint

FETCH_RETRIES = 3
RETRY_SLEEP_SECONDS = 2


def map_to_yf_symbol(ticker: str, user_symbol_map: Optional[Dict[str, str]] = None) -> str:
    """
    Maps an engine ticker to its Yahoo Finance symbol.

    FX pairs written as 'USD-SGD' become 'USDSGD=X'; anything in
    `user_symbol_map` is replaced; other tickers pass through upper-cased.
    """
    normalized = ticker.strip().upper()
    if user_symbol_map and normalized in user_symbol_map:
        return user_symbol_map[normalized]
    parts = normalized.split("-")
    if len(parts) == 2 and all(len(p) == 3 and p.isalpha() for p in parts):
        return f"{parts[0]}{parts[1]}=X"
    return normalized


def _history_to_points(ticker: str, df: pd.DataFrame, currency: str) -> List[PricePoint]:
    points = []
    if df is None or df.empty or "Close" not in df.columns:
        return points
    for ts, close in df["Close"].dropna().items():
        stamp = pd.Timestamp(ts)
        if stamp.tzinfo is None:
            stamp = stamp.tz_localize("UTC")
        points.append(
            PricePoint(ticker=ticker, price=float(close), currency=currency, timestamp=int(stamp.timestamp()))
        )
    return points


class YahooMarketDataSource:
    """MarketDataSource and ReferenceSource backed by yfinance."""

    def __init__(
        self,
        user_symbol_map: Optional[Dict[str, str]] = None,
        withholding_tax_by_currency: Optional[Dict[str, float]] = None,
    ):
        self.user_symbol_map = user_symbol_map or {}
        self.withholding_tax_by_currency = (
            withholding_tax_by_currency
            if withholding_tax_by_currency is not None
            else dict(config.WITHHOLDING_TAX_BY_CURRENCY)
        )

    def _ticker(self, ticker: str):
        return yf.Ticker(map_to_yf_symbol(ticker, self.user_symbol_map))

    def _history(self, ticker: str, **kwargs) -> pd.DataFrame:
        yf_symbol = map_to_yf_symbol(ticker, self.user_symbol_map)
        last_error: Optional[Exception] = None
        for attempt in range(FETCH_RETRIES):
            try:
                return yf.Ticker(yf_symbol).history(auto_adjust=False, actions=False, **kwargs)
            except Exception as e:
                last_error = e
                logging.warning(
                    f"Hist Fetch WARN (Attempt {attempt + 1}/{FETCH_RETRIES}) for {yf_symbol}: {e}"
                )
                if attempt < FETCH_RETRIES - 1:
                    time.sleep(RETRY_SLEEP_SECONDS)
        raise UpstreamFailureError(f"history fetch failed for {yf_symbol}: {last_error}") from last_error

    def get_historical_series(self, ticker: str, from_ts: int, to_ts: int) -> List[PricePoint]:
        start = datetime.fromtimestamp(from_ts, tz=timezone.utc).date()
        end = datetime.fromtimestamp(to_ts, tz=timezone.utc).date()
        today = datetime.now(timezone.utc).date()
        end = min(end, today)
        # yfinance treats end as exclusive
        df = self._history(ticker, start=start, end=end + timedelta(days=1))
        currency = self._currency_or_empty(ticker)
        points = _history_to_points(ticker, df, currency)
        logging.info(f"Hist Fetch: {len(points)} points for {ticker} ({start} to {end})")
        return points

    def get_spot_price(self, ticker: str) -> PricePoint:
        df = self._history(ticker, period="5d")
        points = _history_to_points(ticker, df, self._currency_or_empty(ticker))
        if not points:
            raise UpstreamFailureError(f"no spot price for {ticker}")
        return points[-1]

    def get_dividend_history(self, ticker: str) -> List[DividendRecord]:
        try:
            dividends = self._ticker(ticker).dividends
        except Exception as e:
            raise UpstreamFailureError(f"dividend fetch failed for {ticker}: {e}") from e
        if dividends is None or dividends.empty:
            return []
        withholding = self.withholding_tax_by_currency.get(self._currency_or_empty(ticker), 0.0)
        return [
            DividendRecord(
                ticker=ticker,
                ex_date=pd.Timestamp(ts).strftime(config.DIVIDEND_DATE_FORMAT),
                amount_per_share=float(amount),
                withholding_tax=withholding,
            )
            for ts, amount in dividends.items()
        ]

    def get_instrument_info(self, ticker: str) -> InstrumentInfo:
        try:
            currency = self._ticker(ticker).fast_info["currency"]
        except Exception as e:
            raise UpstreamFailureError(f"reference lookup failed for {ticker}: {e}") from e
        if not currency:
            raise UpstreamFailureError(f"no currency known for {ticker}")
        return InstrumentInfo(ticker=ticker, currency=str(currency).upper())

    def _currency_or_empty(self, ticker: str) -> str:
        try:
            return self.get_instrument_info(ticker).currency
        except UpstreamFailureError as e:
            logging.debug(f"Currency lookup for {ticker} failed: {e}")
            return ""
