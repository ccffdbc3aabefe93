# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          benchmark_logic.py
 Purpose:       Benchmark replay for the Investa performance engine.
                Replays the portfolio's capital events against a weighted
                basket of alternative instruments (either one allocation at
                the first trade date, or one basket trade per real trade),
                injects the basket's historical dividends at the quantity
                held on each ex-date, and solves the basket's XIRR.

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

import config
from collaborators import MarketDataSource, ReferenceSource
from errors import (
    InvalidInputError,
    MetricsError,
    NoTradesAvailableError,
)
from finutils import is_future_date, parse_dividend_date, parse_trade_date, utc_now, xirr
from models import (
    BenchmarkCost,
    BenchmarkMetrics,
    BenchmarkMode,
    CashFlow,
    CashFlowType,
    Trade,
    TradeSide,
    WeightedTicker,
)
from price_cache import BenchmarkPriceCache

WINNER_PORTFOLIO = "portfolio"
WINNER_BENCHMARK = "benchmark"
WINNER_TIE = "tie"

MIN_BASKET_SIZE = 2


# --- Weights and Fees ---
def normalize_benchmark_weights(weights: List[WeightedTicker]) -> List[WeightedTicker]:
    """
    Rescales basket weights so they sum to 1.

    Raises:
        InvalidInputError: A ticker is empty, a weight is not > 0, or the
            weights sum to zero.
    """
    total = 0.0
    for w in weights:
        if not w.ticker:
            raise InvalidInputError("benchmark ticker cannot be empty")
        if not w.weight > 0:
            raise InvalidInputError(f"benchmark weight must be > 0 for {w.ticker}")
        total += w.weight
    if total == 0:
        raise InvalidInputError("benchmark weights must sum to > 0")
    return [WeightedTicker(ticker=w.ticker, weight=w.weight / total) for w in weights]


def compute_benchmark_fee(cost: BenchmarkCost, notional: float) -> float:
    """Effective broker fee: max(pct * notional, absolute)."""
    return max(cost.pct * notional, cost.absolute)


def compare_irr(portfolio_irr: float, benchmark_irr: float) -> Tuple[float, str]:
    """Returns (portfolio - benchmark, winner). A tie needs exact equality."""
    difference = portfolio_irr - benchmark_irr
    if difference > 0:
        return difference, WINNER_PORTFOLIO
    if difference < 0:
        return difference, WINNER_BENCHMARK
    return difference, WINNER_TIE


def trade_date_range(trades: List[Trade]) -> Tuple[datetime, datetime]:
    """Earliest and latest parseable trade dates."""
    parsed = [d for d in (parse_trade_date(t.trade_date) for t in trades) if d is not None]
    if not parsed:
        raise NoTradesAvailableError("no trades available to determine date range")
    return min(parsed), max(parsed)


# --- Synthetic Positions ---
@dataclass
class PositionChange:
    date: datetime
    quantity_delta: float


@dataclass
class SyntheticPosition:
    """Running quantity of one basket leg plus its dated change events."""

    ticker: str
    quantity: float = 0.0
    changes: List[PositionChange] = field(default_factory=list)

    def apply(self, when: datetime, quantity_delta: float) -> None:
        self.quantity += quantity_delta
        self.changes.append(PositionChange(when, quantity_delta))

    def sort_changes(self) -> None:
        self.changes.sort(key=lambda c: c.date)

    def quantity_at(self, when: datetime) -> float:
        """Sum of deltas dated on or before `when`. Changes must be sorted."""
        quantity = 0.0
        for change in self.changes:
            if change.date > when:
                break
            quantity += change.quantity_delta
        return quantity


@dataclass
class ReplayResult:
    metrics: BenchmarkMetrics
    cash_flows: List[CashFlow]


class _ReplayRun:
    """Mutable state of a single replay; never shared between calls."""

    def __init__(self, weights: List[WeightedTicker], cost: BenchmarkCost, cache: BenchmarkPriceCache):
        self.weights = weights
        self.cost = cost
        self.cache = cache
        self.cash_flows: List[CashFlow] = []
        self.positions: Dict[str, SyntheticPosition] = {}
        self.fees = 0.0
        self.price_paid = 0.0

    def add_cash_flow(self, when: datetime, amount: float, ticker: str, kind: CashFlowType) -> None:
        self.cash_flows.append(CashFlow(date=when, amount=amount, ticker=ticker, kind=kind))

    def position(self, ticker: str) -> SyntheticPosition:
        if ticker not in self.positions:
            self.positions[ticker] = SyntheticPosition(ticker=ticker)
        return self.positions[ticker]

    def leg_quantity(self, ticker: str, allocation: float, when: datetime) -> float:
        price = self.cache.price_in_base_at(ticker, when)
        return allocation / price if price > 0 else 0.0


class BenchmarkSimulator:
    """
    Replays capital events against a weighted basket.

    Args:
        market_data: Historical prices, FX series and dividend history.
        reference: Quote currency of each basket ticker.
        base_currency: Currency all cash flows are reported in.
        clock: Returns "now" (tz-aware); used for the final valuation and to
            drop future-dated dividends.
    """

    def __init__(
        self,
        market_data: MarketDataSource,
        reference: ReferenceSource,
        base_currency: str = config.BASE_CURRENCY,
        padding_days: int = config.HISTORICAL_PADDING_DAYS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.market_data = market_data
        self.reference = reference
        self.base_currency = base_currency
        self.padding_days = padding_days
        self.clock = clock
        self._handlers = {
            BenchmarkMode.BUY_AT_START: self._replay_buy_at_start,
            BenchmarkMode.MATCH_TRADES: self._replay_match_trades,
        }

    def replay(
        self,
        trades: List[Trade],
        basket: List[WeightedTicker],
        cost: BenchmarkCost,
        mode,
        notional: Optional[float] = None,
    ) -> ReplayResult:
        """
        Builds the basket's cash-flow timeline and solves its IRR.

        Raises:
            UnsupportedModeError: `mode` is not a BenchmarkMode value.
            InvalidInputError: Bad weights, fewer than two basket members,
                or a missing/non-positive notional for buy_at_start.
            NoTradesAvailableError: `trades` is empty or has no valid dates.
            UpstreamFailureError: Price or FX series could not be loaded.
            NoSolutionError / DidNotConvergeError: The solver failed.
        """
        mode = BenchmarkMode.parse(mode)
        weights = normalize_benchmark_weights(basket)
        if len(weights) < MIN_BASKET_SIZE:
            raise InvalidInputError(
                f"benchmark basket needs at least {MIN_BASKET_SIZE} tickers, got {len(weights)}"
            )
        if not trades:
            raise NoTradesAvailableError("no trades available for benchmarking")
        if mode == BenchmarkMode.BUY_AT_START and not (notional is not None and notional > 0):
            raise InvalidInputError("notional must be provided for buy_at_start mode")

        start_date, _ = trade_date_range(trades)
        now = self.clock()
        cache = BenchmarkPriceCache.build(
            weights,
            start_date,
            now,
            self.market_data,
            self.reference,
            base_currency=self.base_currency,
            padding_days=self.padding_days,
        )

        run = _ReplayRun(weights, cost, cache)
        self._handlers[mode](run, trades, start_date, notional)
        self._append_dividends(run, now)

        final_mv = 0.0
        for ticker, position in run.positions.items():
            final_mv += position.quantity * cache.price_in_base_at(ticker, now)
        run.add_cash_flow(now, final_mv, config.BENCHMARK_VALUE_TICKER, CashFlowType.VALUATION)

        run.cash_flows.sort(key=lambda cf: cf.date)
        benchmark_irr = xirr(run.cash_flows)
        logging.info(
            f"Benchmark replay ({mode.value}): IRR={benchmark_irr:.4f}, "
            f"paid={run.price_paid:.2f}, mv={final_mv:.2f}, fees={run.fees:.2f}"
        )
        return ReplayResult(
            metrics=BenchmarkMetrics(
                irr=benchmark_irr,
                price_paid=run.price_paid,
                market_value=final_mv,
                fees=run.fees,
            ),
            cash_flows=run.cash_flows,
        )

    def _replay_buy_at_start(self, run: _ReplayRun, trades, start_date: datetime, notional: float) -> None:
        fee = compute_benchmark_fee(run.cost, notional)
        run.fees += fee
        run.price_paid += notional + fee
        for w in run.weights:
            allocation = notional * w.weight
            leg_fee = fee * w.weight
            quantity = run.leg_quantity(w.ticker, allocation, start_date)
            run.position(w.ticker).apply(start_date, quantity)
            run.add_cash_flow(start_date, -(allocation + leg_fee), w.ticker, CashFlowType.BUY)

    def _replay_match_trades(self, run: _ReplayRun, trades: List[Trade], start_date, notional) -> None:
        for trade in trades:
            trade_date = parse_trade_date(trade.trade_date)
            if trade_date is None:
                logging.warning(
                    f"Benchmark replay: skipping trade {trade.trade_id or trade.ticker} "
                    f"with invalid date '{trade.trade_date}'"
                )
                continue
            trade_notional = abs(trade.quantity * trade.price * trade.fx)
            if trade_notional == 0:
                continue

            fee = compute_benchmark_fee(run.cost, trade_notional)
            run.fees += fee
            is_buy = trade.side == TradeSide.BUY
            if is_buy:
                run.price_paid += trade_notional + fee
            else:
                run.price_paid -= trade_notional - fee

            for w in run.weights:
                allocation = trade_notional * w.weight
                leg_fee = fee * w.weight
                quantity = run.leg_quantity(w.ticker, allocation, trade_date)
                position = run.position(w.ticker)
                if is_buy:
                    position.apply(trade_date, quantity)
                    run.add_cash_flow(trade_date, -(allocation + leg_fee), w.ticker, CashFlowType.BUY)
                else:
                    position.apply(trade_date, -quantity)
                    run.add_cash_flow(trade_date, allocation - leg_fee, w.ticker, CashFlowType.SELL)

    def _append_dividends(self, run: _ReplayRun, now: datetime) -> None:
        """Adds cash (not reinvested) dividends for each basket ticker."""
        for position in run.positions.values():
            position.sort_changes()

        seen = set()
        for w in run.weights:
            ticker = w.ticker
            if ticker in seen:
                continue
            seen.add(ticker)
            position = run.positions.get(ticker)
            if position is None or not position.changes:
                continue

            try:
                info = self.reference.get_instrument_info(ticker)
            except Exception as e:
                logging.error(f"Failed to get ticker reference for {ticker}: {e}")
                continue
            try:
                dividends = self.market_data.get_dividend_history(ticker)
            except Exception as e:
                logging.warning(f"Failed to get dividends metadata for {ticker}: {e}")
                continue

            for div in dividends or []:
                if is_future_date(div.ex_date, now):
                    continue
                ex_date = parse_dividend_date(div.ex_date)
                if ex_date is None:
                    logging.error(f"Failed to parse {ticker} dividend date {div.ex_date}")
                    continue
                quantity = position.quantity_at(ex_date)
                if quantity <= 0:
                    continue
                amount = quantity * div.amount_per_share * (1 - div.withholding_tax)
                try:
                    base_amount = run.cache.convert_to_base(amount, info.currency, ex_date)
                except MetricsError as e:
                    logging.warning(
                        f"Failed to convert dividend to {self.base_currency} for {ticker}: {e}"
                    )
                    continue
                run.add_cash_flow(ex_date, base_amount, ticker, CashFlowType.DIVIDEND)
