# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          metrics_logic.py
 Purpose:       Portfolio metrics for the Investa performance engine.
                Builds the money-weighted cash-flow timeline of the portfolio
                (or of one book) from trades, dividends and the current
                valuation, solves its XIRR, and compares it with a replayed
                benchmark basket.

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List

import config
from benchmark_logic import BenchmarkSimulator, compare_irr
from collaborators import (
    DividendSource,
    MarketDataSource,
    PositionSource,
    ReferenceSource,
    TradeSource,
)
from errors import InvalidInputError, UpstreamFailureError
from finutils import (
    fx_pair_ticker,
    is_base_currency,
    parse_dividend_date,
    parse_trade_date,
    sort_cash_flows,
    utc_now,
    xirr,
)
from models import (
    BenchmarkComparisonResult,
    BenchmarkMode,
    BenchmarkRequest,
    CashFlow,
    CashFlowType,
    DividendRecord,
    MetricResultsWithCashFlows,
    MetricsResult,
    Position,
    Trade,
    TradeSide,
)


def filter_by_book(items, book_filter: str):
    """Keeps items whose .book matches `book_filter` case-insensitively.

    An empty filter keeps everything.
    """
    if not book_filter:
        return list(items)
    wanted = book_filter.lower()
    return [item for item in items if (item.book or "").lower() == wanted]


def trade_cash_flow(trade: Trade, trade_date: datetime) -> CashFlow:
    """Buys are outflows, sells are inflows, both in base currency."""
    amount = trade.quantity * trade.price * trade.fx
    if trade.side == TradeSide.BUY:
        return CashFlow(trade_date, -amount, trade.ticker, CashFlowType.BUY)
    return CashFlow(trade_date, amount, trade.ticker, CashFlowType.SELL)


class MetricsService:
    """
    Money-weighted performance of the portfolio and of benchmark baskets.

    Args:
        trade_source: Blotter trades.
        position_source: Current positions with market value and FX rate.
        dividend_source: Dividends received, for all tickers or one book.
        market_data: Spot FX quotes, historical series, dividend history.
        reference: Instrument currency lookup.
        base_currency: Reporting currency.
        default_label: Label used when no book filter is given.
        clock: Returns the current tz-aware time.
    """

    def __init__(
        self,
        trade_source: TradeSource,
        position_source: PositionSource,
        dividend_source: DividendSource,
        market_data: MarketDataSource,
        reference: ReferenceSource,
        base_currency: str = config.BASE_CURRENCY,
        default_label: str = config.DEFAULT_LABEL,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.trade_source = trade_source
        self.position_source = position_source
        self.dividend_source = dividend_source
        self.market_data = market_data
        self.reference = reference
        self.base_currency = base_currency
        self.default_label = default_label
        self.clock = clock

    def _get_trades(self, book_filter: str) -> List[Trade]:
        try:
            trades = self.trade_source.get_trades()
        except Exception as e:
            raise UpstreamFailureError(f"failed to get trades: {e}") from e
        return filter_by_book(trades or [], book_filter)

    def calculate_portfolio_metrics(self, book_filter: str = "") -> MetricResultsWithCashFlows:
        """
        Computes the XIRR of the portfolio (or of one book).

        Cash flows: every trade (buys negative, sells positive), every
        dividend converted at the current spot FX rate, and the current
        market value of the filtered positions dated now.

        Raises:
            UpstreamFailureError: The dividend or position source failed.
            NoSolutionError / DidNotConvergeError: The solver failed.
        """
        book_filter = (book_filter or "").lower()
        result = MetricResultsWithCashFlows(
            label=book_filter if book_filter else self.default_label
        )
        cash_flows: List[CashFlow] = []

        # 1. Trades
        price_paid = 0.0
        for trade in self._get_trades(book_filter):
            trade_date = parse_trade_date(trade.trade_date)
            if trade_date is None:
                logging.warning(
                    f"Metrics: skipping trade {trade.trade_id or trade.ticker} "
                    f"with invalid date '{trade.trade_date}'"
                )
                continue
            cf = trade_cash_flow(trade, trade_date)
            price_paid += cf.amount
            cash_flows.append(cf)
        result.metrics.price_paid = -price_paid

        # 2. Dividends
        try:
            if book_filter:
                dividends = self.dividend_source.calculate_for_book(book_filter)
            else:
                dividends = self.dividend_source.calculate_for_all_tickers()
        except Exception as e:
            raise UpstreamFailureError(f"failed to calculate dividends: {e}") from e
        dividend_flows = self._dividend_cash_flows(dividends or {})
        result.metrics.total_dividends = sum(cf.amount for cf in dividend_flows)
        cash_flows.extend(dividend_flows)

        # 3. Current market value
        try:
            positions: List[Position] = self.position_source.get_all_positions()
        except Exception as e:
            raise UpstreamFailureError(f"failed to get positions: {e}") from e
        total_market_value = sum(
            p.market_value * p.fx_rate for p in filter_by_book(positions or [], book_filter)
        )
        result.metrics.market_value = total_market_value
        cash_flows.append(
            CashFlow(
                self.clock(),
                total_market_value,
                config.PORTFOLIO_VALUE_TICKER,
                CashFlowType.VALUATION,
            )
        )

        # 4. Solve
        result.cash_flows = sort_cash_flows(cash_flows)
        result.metrics.irr = xirr(result.cash_flows)
        logging.info(
            f"Metrics [{result.label or 'portfolio'}]: IRR={result.metrics.irr:.4f}, "
            f"paid={result.metrics.price_paid:.2f}, mv={total_market_value:.2f}, "
            f"dividends={result.metrics.total_dividends:.2f}"
        )
        return result

    def _dividend_cash_flows(self, dividends: Dict[str, List[DividendRecord]]) -> List[CashFlow]:
        fx_rates: Dict[str, float] = {}  # Spot rates fetched during this run
        flows: List[CashFlow] = []
        for ticker in sorted(dividends):
            try:
                currency = self.reference.get_instrument_info(ticker).currency
            except Exception as e:
                logging.error(f"Failed to get ticker reference for {ticker}: {e}")
                continue

            for div in dividends[ticker]:
                ex_date = parse_dividend_date(div.ex_date)
                if ex_date is None:
                    logging.error(f"Failed to parse {ticker} dividend date {div.ex_date}")
                    continue
                fx_rate = self._spot_fx_rate(currency, fx_rates)
                flows.append(
                    CashFlow(ex_date, div.amount * fx_rate, ticker, CashFlowType.DIVIDEND)
                )
        return flows

    def _spot_fx_rate(self, currency: str, fx_rates: Dict[str, float]) -> float:
        if is_base_currency(currency, self.base_currency):
            return 1.0
        key = currency.upper()
        if key in fx_rates:
            return fx_rates[key]
        fx_ticker = fx_pair_ticker(currency, self.base_currency)
        try:
            quote = self.market_data.get_spot_price(fx_ticker)
        except Exception as e:
            logging.warning(
                f"Could not get FX rate for {currency} to {self.base_currency}, using 1.0: {e}"
            )
            return 1.0
        if quote is None:
            logging.warning(f"No FX quote for {fx_ticker}, using 1.0")
            return 1.0
        fx_rates[key] = quote.price
        return quote.price

    def benchmark_portfolio_performance(self, request: BenchmarkRequest) -> BenchmarkComparisonResult:
        """
        Compares the portfolio's IRR with a basket replayed on the same
        capital events.

        Raises:
            InvalidInputError: No benchmark tickers, bad weights, bad notional.
            UnsupportedModeError: Unknown replay mode.
            NoTradesAvailableError: No trades for the requested book.
            UpstreamFailureError, NoSolutionError, DidNotConvergeError.
        """
        portfolio = self.calculate_portfolio_metrics(request.book_filter)

        if not request.benchmark_tickers:
            raise InvalidInputError("benchmark_tickers is required")
        mode = BenchmarkMode.parse(request.mode)

        trades = self._get_trades((request.book_filter or "").lower())
        simulator = BenchmarkSimulator(
            self.market_data,
            self.reference,
            base_currency=self.base_currency,
            clock=self.clock,
        )
        replay = simulator.replay(
            trades,
            request.benchmark_tickers,
            request.benchmark_cost,
            mode,
            notional=request.notional,
        )

        difference, winner = compare_irr(portfolio.metrics.irr, replay.metrics.irr)
        return BenchmarkComparisonResult(
            portfolio_metrics=portfolio.metrics,
            benchmark_metrics=replay.metrics,
            irr_difference=difference,
            winner=winner,
            benchmark_cash_flows=replay.cash_flows,
        )
