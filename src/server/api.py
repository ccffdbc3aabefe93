from fastapi import APIRouter, Depends, HTTPException, Query
from typing import List
import logging

from pydantic import BaseModel, Field

from server.dependencies import get_metrics_service
from errors import InvalidInputError
from metrics_logic import MetricsService
from models import BenchmarkCost, BenchmarkRequest, WeightedTicker

router = APIRouter()


class BenchmarkTickerModel(BaseModel):
    ticker: str
    weight: float


class BenchmarkCostModel(BaseModel):
    pct: float = 0.0
    absolute: float = 0.0


class BenchmarkRequestModel(BaseModel):
    book_filter: str = ""
    benchmark_tickers: List[BenchmarkTickerModel] = Field(default_factory=list)
    mode: str = ""
    notional: float = 0.0
    benchmark_cost: BenchmarkCostModel = Field(default_factory=BenchmarkCostModel)

    def to_request(self) -> BenchmarkRequest:
        # Mode stays a string here; the service rejects unknown modes.
        return BenchmarkRequest(
            benchmark_tickers=[
                WeightedTicker(ticker=t.ticker, weight=t.weight)
                for t in self.benchmark_tickers
            ],
            mode=self.mode,
            book_filter=self.book_filter,
            notional=self.notional,
            benchmark_cost=BenchmarkCost(
                pct=self.benchmark_cost.pct, absolute=self.benchmark_cost.absolute
            ),
        )


@router.get("/metrics")
def get_portfolio_metrics(
    book_filter: str = Query(""),
    service: MetricsService = Depends(get_metrics_service),
):
    """
    Returns the IRR, price paid, market value and total dividends of the
    portfolio (or of one book), with the cash flows used.

    Args:
        book_filter (str): Book name; empty for the entire portfolio.
        service (MetricsService): Dependency injection.

    Returns:
        Dict: {"metrics": {...}, "cashFlows": [...], "label": str}
    """
    try:
        result = service.calculate_portfolio_metrics(book_filter)
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logging.error(f"Failed to calculate portfolio metrics: {e}", exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to calculate portfolio IRR: {e}"
        )
    return result.to_dict()


@router.post("/metrics/benchmark")
def benchmark_portfolio(
    request: BenchmarkRequestModel,
    service: MetricsService = Depends(get_metrics_service),
):
    """
    Compares the portfolio IRR with a weighted benchmark basket replayed on
    the same capital events.

    Args:
        request (BenchmarkRequestModel): Basket, mode, notional and costs.
        service (MetricsService): Dependency injection.

    Returns:
        Dict: Portfolio and benchmark metrics, IRR difference, winner and
              the benchmark cash flows.
    """
    try:
        result = service.benchmark_portfolio_performance(request.to_request())
    except InvalidInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logging.error(f"Failed to benchmark portfolio: {e}", exc_info=True)
        raise HTTPException(
            status_code=500, detail=f"Failed to benchmark portfolio: {e}"
        )
    return result.to_dict()
