# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          models.py
 Purpose:       Data records shared by the metrics builder, the benchmark
                replay and the HTTP layer: cash flows, trades, positions,
                dividends, price points and the result objects.

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from errors import InvalidInputError, UnsupportedModeError


class CashFlowType(Enum):
    BUY = "buy"
    SELL = "sell"
    DIVIDEND = "dividend"
    VALUATION = "final value"  # Current market value as the terminal flow


class TradeSide(Enum):
    BUY = "buy"
    SELL = "sell"

    @classmethod
    def parse(cls, value: str) -> "TradeSide":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidInputError(f"unknown trade side: {value}") from None


class BenchmarkMode(Enum):
    BUY_AT_START = "buy_at_start"
    MATCH_TRADES = "match_trades"

    @classmethod
    def parse(cls, value) -> "BenchmarkMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedModeError(
                f"unsupported benchmark mode: {value}"
            ) from None


def format_rfc3339(when: datetime) -> str:
    """Whole-second RFC3339; UTC (or naive) times end in Z, others in +hh:mm."""
    offset = when.utcoffset()
    if offset is None or offset == timedelta(0):
        return when.strftime("%Y-%m-%dT%H:%M:%S") + "Z"
    text = when.strftime("%Y-%m-%dT%H:%M:%S%z")
    return f"{text[:-2]}:{text[-2:]}"


@dataclass(frozen=True)
class CashFlow:
    """A dated, signed amount in base currency.

    Outflows (buys, benchmark allocations) are negative; inflows (sells,
    dividends, final valuation) are positive.
    """

    date: datetime
    amount: float
    ticker: str
    kind: CashFlowType

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": format_rfc3339(self.date),
            "cash": self.amount,
            "ticker": self.ticker,
            "description": self.kind.value,
        }


@dataclass
class Trade:
    """A blotter trade. trade_date is the ledger's RFC3339 string."""

    ticker: str
    side: TradeSide
    quantity: float
    price: float
    fx: float
    trade_date: str
    book: str = ""
    trade_id: Optional[str] = None


@dataclass
class Position:
    ticker: str
    quantity: float
    market_value: float  # In instrument currency
    fx_rate: float  # Instrument currency -> base currency
    book: str = ""


@dataclass
class DividendRecord:
    ticker: str
    ex_date: str  # YYYY-MM-DD
    amount: float = 0.0  # Total amount received, instrument currency
    amount_per_share: float = 0.0
    quantity: float = 0.0
    withholding_tax: float = 0.0  # Decimal fraction, not percent


@dataclass
class PricePoint:
    ticker: str
    price: float
    currency: str
    timestamp: int  # Epoch seconds


@dataclass
class InstrumentInfo:
    ticker: str
    currency: str
    domicile: str = ""


@dataclass
class WeightedTicker:
    ticker: str
    weight: float


@dataclass
class BenchmarkCost:
    """Broker cost for benchmark trades: max(pct * notional, absolute)."""

    pct: float = 0.0
    absolute: float = 0.0


@dataclass
class BenchmarkRequest:
    benchmark_tickers: List[WeightedTicker]
    mode: Union[BenchmarkMode, str]  # Strings are parsed by the replay
    book_filter: str = ""
    notional: float = 0.0
    benchmark_cost: BenchmarkCost = field(default_factory=BenchmarkCost)


@dataclass
class MetricsResult:
    irr: float = 0.0
    price_paid: float = 0.0  # Buys minus sells
    market_value: float = 0.0
    total_dividends: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "irr": self.irr,
            "pricePaid": self.price_paid,
            "mv": self.market_value,
            "totalDividends": self.total_dividends,
        }


@dataclass
class MetricResultsWithCashFlows:
    metrics: MetricsResult = field(default_factory=MetricsResult)
    cash_flows: List[CashFlow] = field(default_factory=list)
    label: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metrics": self.metrics.to_dict(),
            "cashFlows": [cf.to_dict() for cf in self.cash_flows],
            "label": self.label,
        }


@dataclass
class BenchmarkMetrics:
    irr: float = 0.0
    price_paid: float = 0.0
    market_value: float = 0.0
    fees: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "irr": self.irr,
            "pricePaid": self.price_paid,
            "mv": self.market_value,
            "fees": self.fees,
        }


@dataclass
class BenchmarkComparisonResult:
    portfolio_metrics: MetricsResult
    benchmark_metrics: BenchmarkMetrics
    irr_difference: float
    winner: str  # portfolio | benchmark | tie
    benchmark_cash_flows: List[CashFlow] = field(default_factory=list)

    @property
    def portfolio_irr(self) -> float:
        return self.portfolio_metrics.irr

    @property
    def benchmark_irr(self) -> float:
        return self.benchmark_metrics.irr

    def to_dict(self) -> Dict[str, Any]:
        return {
            "portfolio_metrics": self.portfolio_metrics.to_dict(),
            "benchmark_metrics": self.benchmark_metrics.to_dict(),
            "portfolio_irr": self.portfolio_irr,
            "benchmark_irr": self.benchmark_irr,
            "irr_difference": self.irr_difference,
            "winner": self.winner,
            "benchmark_cash_flows": [cf.to_dict() for cf in self.benchmark_cash_flows],
        }
