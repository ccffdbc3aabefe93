import sys
import os
import json

# --- Add src directory to sys.path ---
src_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

import argparse
import pytest
from unittest.mock import MagicMock

import metrics_cli
from errors import NoTradesAvailableError
from models import MetricResultsWithCashFlows, MetricsResult


def test_parse_weighted_ticker():
    parsed = metrics_cli.parse_weighted_ticker("ES3.SI:0.4")
    assert (parsed.ticker, parsed.weight) == ("ES3.SI", 0.4)
    assert metrics_cli.parse_weighted_ticker("VOO").weight == 1.0
    with pytest.raises(argparse.ArgumentTypeError):
        metrics_cli.parse_weighted_ticker("VOO:heavy")


def test_metrics_command_prints_json(tmp_path, capsys):
    service = MagicMock()
    service.calculate_portfolio_metrics.return_value = MetricResultsWithCashFlows(
        metrics=MetricsResult(irr=0.2, price_paid=1000.0, market_value=1200.0), label="growth"
    )

    exit_code = metrics_cli.main(["--data-dir", str(tmp_path), "metrics", "--book", "Growth"], service=service)

    assert exit_code == 0
    output = json.loads(capsys.readouterr().out)
    assert output["label"] == "growth"
    assert output["metrics"]["irr"] == 0.2
    service.calculate_portfolio_metrics.assert_called_once_with("Growth")


def test_benchmark_command_builds_request(tmp_path, capsys):
    service = MagicMock()
    service.benchmark_portfolio_performance.side_effect = NoTradesAvailableError("no trades available for benchmarking")

    exit_code = metrics_cli.main(
        [
            "--data-dir", str(tmp_path),
            "benchmark",
            "--ticker", "VOO:0.6",
            "--ticker", "ES3.SI:0.4",
            "--mode", "match_trades",
            "--pct", "0.001",
            "--absolute", "5",
        ],
        service=service,
    )

    assert exit_code == 1
    assert "no trades available" in capsys.readouterr().err
    request = service.benchmark_portfolio_performance.call_args[0][0]
    assert [t.ticker for t in request.benchmark_tickers] == ["VOO", "ES3.SI"]
    assert request.mode == "match_trades"
    assert request.benchmark_cost.absolute == 5.0
