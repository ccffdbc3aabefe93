# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          finutils.py
 Purpose:       Financial and general utility functions for the Investa
                performance engine. Includes the NPV/XIRR solver and the
                date and currency helpers shared by the metrics builder and
                the benchmark replay.

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""

import logging
import re
from datetime import date, datetime, timezone
from typing import Iterable, List, Optional, Sequence, Union

import numpy as np
from scipy import optimize

import config
from errors import DidNotConvergeError, NoSolutionError
from models import CashFlow

DateLike = Union[date, datetime]


# --- IRR/NPV Calculation Functions ---
def calculate_npv(
    rate: float, dates: Sequence[DateLike], cash_flows: Sequence[float]
) -> float:
    """
    Calculates the Net Present Value (NPV) of a series of dated cash flows.

    Each flow is discounted back to the EARLIEST date in `dates` using
    (1 + rate) ** (days / 365). The dates do not need to be sorted.

    Args:
        rate (float): The annualized discount rate (0.1 for 10%).
        dates (Sequence[date | datetime]): Dates of the cash flows.
        cash_flows (Sequence[float]): Signed amounts, same length as dates.

    Returns:
        float: The NPV, or np.nan when the rate is invalid (<= -100%) or the
               calculation overflows.

    Raises:
        ValueError: If the lengths of `dates` and `cash_flows` do not match.
    """
    if len(dates) != len(cash_flows):
        raise ValueError("Dates and cash_flows must have the same length.")
    if not dates:
        return 0.0
    if rate is None or not np.isfinite(rate):
        return np.nan
    base = 1.0 + rate
    if base <= 1e-9:
        return np.nan

    start = min(dates)
    npv = 0.0
    try:
        for when, amount in zip(dates, cash_flows):
            years = _day_count(start, when) / config.DAYS_PER_YEAR
            npv += amount / base**years
    except (OverflowError, ZeroDivisionError) as e:
        logging.debug(f"NPV calculation failed at rate {rate}: {e}")
        return np.nan
    return float(npv) if np.isfinite(npv) else np.nan


def calculate_irr(dates: Sequence[DateLike], cash_flows: Sequence[float]) -> float:
    """
    Calculates the annualized Internal Rate of Return (XIRR) of dated cash flows.

    Finds the rate at which calculate_npv is zero. Newton's method (secant
    variant) is tried first from config.XIRR_INITIAL_GUESS; if it fails or
    lands outside the valid range, Brent's method is run over
    config.XIRR_BRACKET.

    Args:
        dates (Sequence[date | datetime]): Dates of the cash flows, any order.
        cash_flows (Sequence[float]): Signed amounts, same length as dates.

    Returns:
        float: The rate as a fraction (0.2 for 20%).

    Raises:
        NoSolutionError: Fewer than two flows, non-finite flows, all flows on
            one date, or no sign change between flows.
        DidNotConvergeError: Neither solver produced a rate whose NPV is
            within tolerance of zero.
    """
    if len(dates) != len(cash_flows):
        raise ValueError("Dates and cash_flows must have the same length.")
    if len(cash_flows) < 2:
        raise NoSolutionError("at least two cash flows are required to compute IRR")
    if any(cf is None or not np.isfinite(cf) for cf in cash_flows):
        raise NoSolutionError("cash flows contain non-finite values")
    if all(d == dates[0] for d in dates):
        raise NoSolutionError("all cash flows occur on the same date")
    has_negative = any(cf < 0 for cf in cash_flows)
    has_positive = any(cf > 0 for cf in cash_flows)
    if not (has_negative and has_positive):
        raise NoSolutionError(
            "cash flows need at least one negative and one positive amount"
        )

    # Residual tolerance scales with the size of the flows
    scale = max(1.0, float(np.sum(np.abs(cash_flows))))
    npv_tolerance = config.XIRR_TOLERANCE * scale

    def _is_valid_root(rate) -> bool:
        if rate is None or not np.isfinite(rate) or rate <= -1.0:
            return False
        npv_check = calculate_npv(rate, dates, cash_flows)
        return bool(np.isfinite(npv_check) and abs(npv_check) < npv_tolerance)

    try:
        irr_result = optimize.newton(
            calculate_npv,
            x0=config.XIRR_INITIAL_GUESS,
            args=(dates, cash_flows),
            tol=1e-12,
            maxiter=config.XIRR_MAX_ITERATIONS,
        )
        if _is_valid_root(irr_result):
            return float(irr_result)
        logging.debug(f"IRR: Newton result {irr_result} rejected, trying brentq.")
    except (RuntimeError, OverflowError, ZeroDivisionError) as e:
        logging.debug(f"IRR: Newton failed ({e}), trying brentq.")

    lower_bound, upper_bound = config.XIRR_BRACKET
    npv_low = calculate_npv(lower_bound, dates, cash_flows)
    npv_high = calculate_npv(upper_bound, dates, cash_flows)
    if not (np.isfinite(npv_low) and np.isfinite(npv_high)) or npv_low * npv_high > 0:
        raise DidNotConvergeError(
            f"IRR did not converge: NPV does not change sign over "
            f"[{lower_bound}, {upper_bound}] (NPV={npv_low:.4f}, {npv_high:.4f})"
        )
    try:
        irr_result = optimize.brentq(
            calculate_npv,
            a=lower_bound,
            b=upper_bound,
            args=(dates, cash_flows),
            xtol=1e-12,
            maxiter=config.XIRR_MAX_ITERATIONS,
        )
    except (RuntimeError, ValueError) as e:
        raise DidNotConvergeError(f"IRR did not converge: {e}") from e
    if not _is_valid_root(irr_result):
        raise DidNotConvergeError(f"IRR did not converge: final rate {irr_result} rejected")
    return float(irr_result)


def xirr(cash_flows: Iterable[CashFlow]) -> float:
    """Solves the IRR of CashFlow records. Input order does not matter."""
    ordered = sort_cash_flows(cash_flows)
    for i, cf in enumerate(ordered):
        logging.debug(
            f"IRR cashflow[{i}]: date={cf.date:%Y-%m-%d}, cash={cf.amount:.2f}"
        )
    return calculate_irr([cf.date for cf in ordered], [cf.amount for cf in ordered])


def sort_cash_flows(cash_flows: Iterable[CashFlow]) -> List[CashFlow]:
    # Stable sort keeps emission order for same-day flows
    return sorted(cash_flows, key=lambda cf: cf.date)


def _day_count(start: DateLike, end: DateLike) -> float:
    return (end - start).total_seconds() / 86400.0


# --- Date Helpers ---
_NANOSECOND_FRACTION = re.compile(r"(\.\d{6})\d+")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_trade_date(value: str) -> Optional[datetime]:
    """Parses an RFC3339 trade date. Returns None when malformed.

    Fractional seconds are optional; digits past microseconds are dropped.
    A UTC offset (or Z) is required.
    """
    if not value or not isinstance(value, str):
        return None
    value = _NANOSECOND_FRACTION.sub(r"\1", value.strip())
    for fmt in (config.TRADE_DATE_FORMAT, config.TRADE_DATE_FRACTION_FORMAT):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def parse_dividend_date(value: str) -> Optional[datetime]:
    """Parses a YYYY-MM-DD ex-date into a UTC midnight datetime, or None."""
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.strptime(value.strip(), config.DIVIDEND_DATE_FORMAT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)


def is_future_date(value: str, now: Optional[datetime] = None) -> bool:
    """True when a YYYY-MM-DD string lies after `now`. Unparseable -> False."""
    parsed = parse_dividend_date(value)
    if parsed is None:
        logging.warning(f"is_future_date: could not parse date '{value}'")
        return False
    return parsed > (now or utc_now())


# --- Currency Helpers ---
def is_base_currency(currency: Optional[str], base_currency: str) -> bool:
    """Empty currency is treated as already being in base currency."""
    return not currency or currency.strip().upper() == base_currency.upper()


def fx_pair_ticker(currency: str, base_currency: str) -> str:
    """'usd', 'SGD' -> 'USD-SGD'."""
    return f"{currency.strip().upper()}-{base_currency.upper()}"
