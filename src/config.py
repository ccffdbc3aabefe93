# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          config.py
 Purpose:       Configuration constants for the Investa performance and
                benchmark engine.

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""

import logging
import os

# --- Application Name ---
APP_NAME = "InvestaPerformance"

# --- Logging Configuration ---
LOGGING_LEVEL = logging.INFO
LOGGING_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# --- Currency Configuration ---
# All cash flows, prices and valuations are reported in this currency.
BASE_CURRENCY = "SGD"

# --- Result Labels ---
DEFAULT_LABEL = ""  # Label for whole-portfolio results
PORTFOLIO_VALUE_TICKER = "Portfolio"
BENCHMARK_VALUE_TICKER = "Benchmark"

# --- Date Formats ---
TRADE_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"  # RFC3339, as written by the trade ledger
TRADE_DATE_FRACTION_FORMAT = "%Y-%m-%dT%H:%M:%S.%f%z"  # RFC3339 with fractional seconds
DIVIDEND_DATE_FORMAT = "%Y-%m-%d"

# Quantities smaller than this are considered closed
STOCK_QUANTITY_CLOSE_TOLERANCE = 1e-6

# --- Benchmark Replay ---
HISTORICAL_PADDING_DAYS = 5  # Extra days fetched on each side of the replay window

# Dividend withholding applied to benchmark dividends, by quote currency
WITHHOLDING_TAX_BY_CURRENCY = {"USD": 0.30}

# --- XIRR Solver ---
DAYS_PER_YEAR = 365.0
XIRR_INITIAL_GUESS = 0.1
XIRR_TOLERANCE = 1e-7
XIRR_MAX_ITERATIONS = 100
XIRR_BRACKET = (-0.9999, 50.0)  # Fallback bracket for brentq

# --- Database / Settings Files ---
DB_FILENAME = "investa_trades.db"
DB_SCHEMA_VERSION = 1
ENGINE_CONFIG_FILENAME = "engine_config.json"
DATA_DIR_ENV_VAR = "PERF_ENGINE_DATA_DIR"


def get_app_data_dir() -> str:
    """Returns the directory used for the SQLite ledger and settings file.

    The PERF_ENGINE_DATA_DIR environment variable wins; otherwise a folder
    named after APP_NAME in the user's home directory is used. The directory
    is created if missing.
    """
    data_dir = os.environ.get(DATA_DIR_ENV_VAR)
    if not data_dir:
        data_dir = os.path.join(os.path.expanduser("~"), f".{APP_NAME.lower()}")
    try:
        os.makedirs(data_dir, exist_ok=True)
    except OSError as e:
        logging.error(f"Could not create app data directory {data_dir}: {e}")
    return data_dir
