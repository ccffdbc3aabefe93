# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          metrics_cli.py
 Purpose:       Command line entry point for the performance engine.
                Prints portfolio metrics or a benchmark comparison as JSON.

                  python metrics_cli.py metrics --book growth
                  python metrics_cli.py benchmark --ticker VOO:0.6 \
                      --ticker ES3.SI:0.4 --mode buy_at_start --notional 10000

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

import config
from config_manager import ConfigManager
from errors import MetricsError
from models import BenchmarkCost, BenchmarkRequest, WeightedTicker


def parse_weighted_ticker(value: str) -> WeightedTicker:
    """Parses 'TICKER:WEIGHT' (weight defaults to 1 when omitted)."""
    ticker, sep, weight = value.rpartition(":")
    if not sep:
        return WeightedTicker(ticker=value.strip(), weight=1.0)
    try:
        return WeightedTicker(ticker=ticker.strip(), weight=float(weight))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid weight in '{value}'") from None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Portfolio XIRR and benchmark replay")
    parser.add_argument("--data-dir", default=None, help="App data directory (ledger and settings)")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")
    sub = parser.add_subparsers(dest="command", required=True)

    metrics = sub.add_parser("metrics", help="Portfolio IRR, price paid, market value, dividends")
    metrics.add_argument("--book", default="", help="Restrict to one book (case-insensitive)")

    bench = sub.add_parser("benchmark", help="Compare the portfolio with a weighted basket")
    bench.add_argument("--ticker", action="append", type=parse_weighted_ticker, required=True,
                       help="Basket member as TICKER:WEIGHT; repeat for each member")
    bench.add_argument("--mode", required=True, help="buy_at_start or match_trades")
    bench.add_argument("--notional", type=float, default=0.0, help="Initial capital for buy_at_start")
    bench.add_argument("--pct", type=float, default=0.0, help="Broker cost as a fraction of notional")
    bench.add_argument("--absolute", type=float, default=0.0, help="Minimum broker cost per trade")
    bench.add_argument("--book", default="", help="Restrict to one book (case-insensitive)")
    return parser


def run(args: argparse.Namespace, service) -> dict:
    if args.command == "metrics":
        return service.calculate_portfolio_metrics(args.book).to_dict()
    request = BenchmarkRequest(
        benchmark_tickers=list(args.ticker),
        mode=args.mode,
        book_filter=args.book,
        notional=args.notional,
        benchmark_cost=BenchmarkCost(pct=args.pct, absolute=args.absolute),
    )
    return service.benchmark_portfolio_performance(request).to_dict()


def main(argv: Optional[List[str]] = None, service=None) -> int:
    args = build_parser().parse_args(argv)

    config_manager = ConfigManager(args.data_dir or config.get_app_data_dir())
    config_manager.load()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else config_manager.logging_level,
        format=config.LOGGING_FORMAT,
    )

    if service is None:
        from server.dependencies import build_metrics_service

        service = build_metrics_service(config_manager)

    try:
        output = run(args, service)
    except MetricsError as e:
        logging.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
