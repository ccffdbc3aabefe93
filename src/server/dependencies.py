import os
import sys
import logging
from typing import Optional

# Ensure src is in path (redundant if imported from main, but good for standalone testing)
current_dir = os.path.dirname(os.path.abspath(__file__))
src_dir = os.path.dirname(current_dir)
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

import config
from config_manager import ConfigManager
from db_utils import SqliteTradeSource
from market_data import YahooMarketDataSource
from metrics_logic import MetricsService
from portfolio_sources import MarketDividendSource, TradeDerivedPositionSource

# One service per process
_CONFIG_MANAGER: Optional[ConfigManager] = None
_METRICS_SERVICE: Optional[MetricsService] = None


def get_config_manager() -> ConfigManager:
    global _CONFIG_MANAGER
    if _CONFIG_MANAGER is None:
        _CONFIG_MANAGER = ConfigManager(config.get_app_data_dir())
        _CONFIG_MANAGER.load()
        logging.info(f"Loaded engine config from: {_CONFIG_MANAGER.CONFIG_FILE}")
    return _CONFIG_MANAGER


def build_metrics_service(config_manager: ConfigManager) -> MetricsService:
    """Wires the SQLite ledger and the yfinance adapter into a MetricsService."""
    base_currency = config_manager.base_currency
    trade_source = SqliteTradeSource(config_manager.db_path)
    market_data = YahooMarketDataSource()
    return MetricsService(
        trade_source=trade_source,
        position_source=TradeDerivedPositionSource(
            trade_source, market_data, market_data, base_currency=base_currency
        ),
        dividend_source=MarketDividendSource(trade_source, market_data),
        market_data=market_data,
        reference=market_data,
        base_currency=base_currency,
        default_label=config_manager.default_label,
    )


def get_metrics_service() -> MetricsService:
    global _METRICS_SERVICE
    if _METRICS_SERVICE is None:
        _METRICS_SERVICE = build_metrics_service(get_config_manager())
        logging.info(f"Metrics service ready (base currency {_METRICS_SERVICE.base_currency}).")
    return _METRICS_SERVICE


def reset_services():
    """Drops the cached service so the next request rebuilds it."""
    global _CONFIG_MANAGER, _METRICS_SERVICE
    _CONFIG_MANAGER = None
    _METRICS_SERVICE = None
