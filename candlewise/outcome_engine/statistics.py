"""
Outcome Statistics

Percentiles, means and forward drawdown over forward candle slices.
"""

from typing import List, Sequence

import numpy as np

from candlewise.window_engine.schemas import Candle


def mean(values: Sequence[float]) -> float:
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def percentile(values: Sequence[float], p: float) -> float:
    """
    Linear-interpolation percentile (p in 0-100).

    rank = p/100 * (n-1), interpolated between floor and ceil ranks.
    Input need not be sorted. Empty input gives 0.
    """
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return 0.0
    if arr.size == 1:
        return float(arr[0])
    return float(np.percentile(arr, p, method='linear'))


def forward_returns(base_price: float, candles: List[Candle]) -> np.ndarray:
    """Return of each forward close against the base price"""
    closes = np.array([c.close for c in candles], dtype=np.float64)
    return (closes - base_price) / base_price


def forward_max_drawdown(base_price: float, candles: List[Candle]) -> float:
    """
    Maximum drawdown over a forward slice.

    The running peak starts at the base price and follows candle highs;
    drawdown at each bar is measured to that bar's low.
    """
    if not candles or base_price == 0:
        return 0.0

    peak = base_price
    max_dd = 0.0
    for c in candles:
        if c.high > peak:
            peak = c.high
        dd = (peak - c.low) / peak
        if dd > max_dd:
            max_dd = dd

    return max_dd
