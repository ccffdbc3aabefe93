# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          portfolio_sources.py
 Purpose:       Position and dividend sources derived from the trade ledger
                and market data, used when no dedicated bookkeeping service
                is available (the HTTP server and the CLI wire these in).

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""

import logging
from collections import defaultdict
from typing import Dict, List, Tuple

import config
from collaborators import MarketDataSource, ReferenceSource, TradeSource
from finutils import (
    fx_pair_ticker,
    is_base_currency,
    is_future_date,
    parse_dividend_date,
    parse_trade_date,
)
from models import DividendRecord, Position, Trade, TradeSide


def _signed_quantity(trade: Trade) -> float:
    return trade.quantity if trade.side == TradeSide.BUY else -trade.quantity


def net_quantities(trades: List[Trade]) -> Dict[Tuple[str, str], float]:
    """Net quantity per (book, ticker), in first-seen order."""
    quantities: Dict[Tuple[str, str], float] = defaultdict(float)
    for trade in trades:
        quantities[(trade.book or "", trade.ticker)] += _signed_quantity(trade)
    return quantities


class TradeDerivedPositionSource:
    """Positions = net traded quantity x current spot price."""

    def __init__(
        self,
        trade_source: TradeSource,
        market_data: MarketDataSource,
        reference: ReferenceSource,
        base_currency: str = config.BASE_CURRENCY,
    ):
        self.trade_source = trade_source
        self.market_data = market_data
        self.reference = reference
        self.base_currency = base_currency

    def get_all_positions(self) -> List[Position]:
        positions: List[Position] = []
        fx_rates: Dict[str, float] = {}
        for (book, ticker), quantity in net_quantities(self.trade_source.get_trades()).items():
            if abs(quantity) < config.STOCK_QUANTITY_CLOSE_TOLERANCE:
                continue
            price = self.market_data.get_spot_price(ticker).price
            currency = self.reference.get_instrument_info(ticker).currency
            if is_base_currency(currency, self.base_currency):
                fx_rate = 1.0
            else:
                if currency not in fx_rates:
                    pair = fx_pair_ticker(currency, self.base_currency)
                    fx_rates[currency] = self.market_data.get_spot_price(pair).price
                fx_rate = fx_rates[currency]
            positions.append(
                Position(
                    ticker=ticker,
                    quantity=quantity,
                    market_value=quantity * price,
                    fx_rate=fx_rate,
                    book=book,
                )
            )
        return positions


class MarketDividendSource:
    """Dividends received = per-share history x quantity held before the ex-date."""

    def __init__(self, trade_source: TradeSource, market_data: MarketDataSource):
        self.trade_source = trade_source
        self.market_data = market_data

    def calculate_for_all_tickers(self) -> Dict[str, List[DividendRecord]]:
        return self._calculate(self.trade_source.get_trades())

    def calculate_for_book(self, book: str) -> Dict[str, List[DividendRecord]]:
        wanted = (book or "").lower()
        trades = [t for t in self.trade_source.get_trades() if (t.book or "").lower() == wanted]
        return self._calculate(trades)

    def _calculate(self, trades: List[Trade]) -> Dict[str, List[DividendRecord]]:
        dated_by_ticker: Dict[str, list] = defaultdict(list)
        for trade in trades:
            trade_date = parse_trade_date(trade.trade_date)
            if trade_date is None:
                logging.warning(f"Dividends: skipping trade with invalid date '{trade.trade_date}'")
                continue
            dated_by_ticker[trade.ticker].append((trade_date, _signed_quantity(trade)))

        result: Dict[str, List[DividendRecord]] = {}
        for ticker in sorted(dated_by_ticker):
            events = sorted(dated_by_ticker[ticker], key=lambda e: e[0])
            received = []
            for div in self.market_data.get_dividend_history(ticker):
                if is_future_date(div.ex_date):
                    continue
                ex_date = parse_dividend_date(div.ex_date)
                if ex_date is None:
                    continue
                # Shares bought on the ex-date itself do not receive the dividend
                held = sum(qty for when, qty in events if when < ex_date)
                if held <= config.STOCK_QUANTITY_CLOSE_TOLERANCE:
                    continue
                received.append(
                    DividendRecord(
                        ticker=ticker,
                        ex_date=div.ex_date,
                        amount=held * div.amount_per_share * (1 - div.withholding_tax),
                        amount_per_share=div.amount_per_share,
                        quantity=held,
                        withholding_tax=div.withholding_tax,
                    )
                )
            if received:
                result[ticker] = received
        return result
