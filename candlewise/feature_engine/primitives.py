"""
Primitive Statistics Module

Window-level building blocks for the feature row.
All functions are deterministic and fall back to 0 on degenerate input
(too few candles, zero base price, zero variance) instead of producing NaN.
"""

from typing import Sequence, Tuple

import numpy as np


class PrimitiveStats:
    """
    Scalar statistics over the candles of one window.

    All functions:
        - Accept plain sequences or numpy arrays
        - Return a Python float
        - Use population statistics (ddof=0)
    """

    @staticmethod
    def mean_std(values: Sequence[float]) -> Tuple[float, float]:
        """Population mean and standard deviation; (0, 0) for empty input"""
        arr = np.asarray(values, dtype=np.float64)
        if arr.size == 0:
            return 0.0, 0.0
        if np.ptp(arr) == 0:
            return float(arr[0]), 0.0
        return float(arr.mean()), float(arr.std())

    @staticmethod
    def trend_slope(closes: Sequence[float]) -> float:
        """
        OLS slope of percentage change from the first close against bar index.

        y_i = (close_i - close_0) / close_0
        slope = (nΣxy - ΣxΣy) / (nΣx² - (Σx)²)
        """
        arr = np.asarray(closes, dtype=np.float64)
        n = arr.size
        if n < 2:
            return 0.0

        base = arr[0]
        if base == 0:
            return 0.0

        x = np.arange(n, dtype=np.float64)
        y = (arr - base) / base

        denominator = n * np.sum(x * x) - np.sum(x) ** 2
        if denominator == 0:
            return 0.0

        return float((n * np.sum(x * y) - np.sum(x) * np.sum(y)) / denominator)

    @staticmethod
    def pct_returns(closes: Sequence[float]) -> np.ndarray:
        """Close-to-close returns; a zero previous close yields 0"""
        arr = np.asarray(closes, dtype=np.float64)
        if arr.size < 2:
            return np.array([], dtype=np.float64)

        prev = arr[:-1]
        diff = arr[1:] - prev
        safe_prev = np.where(prev == 0, 1.0, prev)
        return np.where(prev == 0, 0.0, diff / safe_prev)

    @staticmethod
    def realized_volatility(closes: Sequence[float]) -> float:
        """Standard deviation of close-to-close returns"""
        returns = PrimitiveStats.pct_returns(closes)
        if returns.size == 0:
            return 0.0
        _, std = PrimitiveStats.mean_std(returns)
        return std

    @staticmethod
    def max_drawdown(closes: Sequence[float]) -> float:
        """
        Largest peak-to-trough decline of closes, as a fraction of the peak.

        Peaks at or below 0 are skipped.
        """
        arr = np.asarray(closes, dtype=np.float64)
        if arr.size < 2:
            return 0.0

        peaks = np.maximum.accumulate(arr)
        valid = peaks > 0
        if not valid.any():
            return 0.0

        drawdowns = (peaks[valid] - arr[valid]) / peaks[valid]
        return float(max(drawdowns.max(), 0.0))

    @staticmethod
    def average_true_range(
        high: Sequence[float],
        low: Sequence[float],
        close: Sequence[float]
    ) -> float:
        """
        Average True Range normalized by the first close.

        TR_i = max(high_i - low_i, |high_i - close_{i-1}|, |low_i - close_{i-1}|)
        Averaged over bars 1..n-1 (bar 0 has no previous close).
        """
        highs = np.asarray(high, dtype=np.float64)
        lows = np.asarray(low, dtype=np.float64)
        closes = np.asarray(close, dtype=np.float64)
        if closes.size < 2:
            return 0.0

        base = closes[0]
        if base == 0:
            return 0.0

        prev_close = closes[:-1]
        hl = highs[1:] - lows[1:]
        hc = np.abs(highs[1:] - prev_close)
        lc = np.abs(lows[1:] - prev_close)
        tr = np.maximum(hl, np.maximum(hc, lc))

        return float(tr.mean() / base)

    @staticmethod
    def volume_z_score(volumes: Sequence[float]) -> float:
        """Z-score of the last volume against the window's volumes"""
        arr = np.asarray(volumes, dtype=np.float64)
        if arr.size < 2:
            return 0.0

        mean, std = PrimitiveStats.mean_std(arr)
        if std == 0:
            return 0.0
        return float((arr[-1] - mean) / std)
