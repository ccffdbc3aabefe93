"""Protocols for the services the metrics engine reads from.

The engine never stores trades, positions or market data itself; any object
satisfying these protocols can be handed to ``MetricsService``. Calls are
plain blocking calls; timeouts and retries belong to the implementations.
"""

from __future__ import annotations

from typing import Dict, List, Protocol, runtime_checkable

from models import DividendRecord, InstrumentInfo, Position, PricePoint, Trade


@runtime_checkable
class TradeSource(Protocol):
    def get_trades(self) -> List[Trade]: ...


@runtime_checkable
class PositionSource(Protocol):
    def get_all_positions(self) -> List[Position]: ...


@runtime_checkable
class DividendSource(Protocol):
    def calculate_for_all_tickers(self) -> Dict[str, List[DividendRecord]]: ...
    def calculate_for_book(self, book: str) -> Dict[str, List[DividendRecord]]: ...


@runtime_checkable
class MarketDataSource(Protocol):
    def get_historical_series(self, ticker: str, from_ts: int, to_ts: int) -> List[PricePoint]: ...
    def get_spot_price(self, ticker: str) -> PricePoint: ...
    def get_dividend_history(self, ticker: str) -> List[DividendRecord]: ...


@runtime_checkable
class ReferenceSource(Protocol):
    def get_instrument_info(self, ticker: str) -> InstrumentInfo: ...
