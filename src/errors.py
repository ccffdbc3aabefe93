# -*- coding: utf-8 -*-
"""
-------------------------------------------------------------------------------
 Name:          errors.py
 Purpose:       Exception types raised by the metrics and benchmark engine.

 Author:        Kit Matan
 Author Email:  kittiwit@gmail.com

 Copyright:     (c) Kittiwit Matan 2025
 Licence:       MIT
-------------------------------------------------------------------------------
SPDX-License-Identifier: MIT
"""


class MetricsError(Exception):
    """Base class for every failure raised by the engine."""


class InvalidInputError(MetricsError, ValueError):
    """Bad weights, missing notional, malformed request values."""


class UnsupportedModeError(InvalidInputError):
    """Benchmark mode is not one of the supported replay modes."""


class NoTradesAvailableError(MetricsError):
    """The (book filtered) trade set is empty or has no usable trade dates."""


class UpstreamFailureError(MetricsError):
    """A collaborator (dividends, positions, market data) call failed."""


class NoHistoricalDataError(UpstreamFailureError):
    """A price or FX series needed for the replay came back empty."""


class NoSolutionError(MetricsError):
    """Cash flows cannot produce an IRR (too few flows or no sign change)."""


class DidNotConvergeError(MetricsError):
    """The root finder gave up without reaching a valid rate."""


class NoCachedSeriesError(MetricsError, KeyError):
    """Price lookup for a ticker or FX pair the cache never loaded."""

    def __str__(self):
        # KeyError would otherwise repr() the message
        return str(self.args[0]) if self.args else ""
