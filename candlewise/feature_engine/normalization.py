"""
Normalization Module

Per-window normalization of candle series into bounded ranges.

Rules:
    - Statistics are computed over the window only (population std)
    - Zero spread never divides: std or range of 0 is treated as 1
    - Empty input returns an empty array
"""

from typing import List, Sequence, Tuple
import logging

import numpy as np

from candlewise.feature_engine.config import NormalizationConfig
from candlewise.window_engine.schemas import Candle

LOG = logging.getLogger(__name__)


class FeatureNormalizer:
    """
    Normalize per-candle series.

    Formula (returns, ranges, volumes):
        z = clip((x - μ) / σ, -clip_std, clip_std) / clip_std   ∈ [-1, 1]

    Wick ratios are already bounded in [0, 1] and pass through.
    """

    def __init__(self, config: NormalizationConfig = None):
        self.config = config or NormalizationConfig()

    @staticmethod
    def z_score_clip(values: Sequence[float], clip_std: float) -> np.ndarray:
        """
        Z-score with symmetric clipping, rescaled into [-1, 1].

        Args:
            values: Raw series
            clip_std: Clip threshold in standard deviations

        Returns:
            Same-length array; all zeros for a constant series
        """
        arr = np.asarray(values, dtype=np.float64)
        if arr.size == 0:
            return np.array([], dtype=np.float64)
        if np.ptp(arr) == 0:
            # Constant series: every z-score is 0
            return np.zeros(arr.size, dtype=np.float64)

        mean = arr.mean()
        std = arr.std()
        if std == 0:
            std = 1.0

        z = np.clip((arr - mean) / std, -clip_std, clip_std)
        return z / clip_std

    @staticmethod
    def min_max(values: Sequence[float]) -> np.ndarray:
        """Scale into [0, 1]; a flat series maps to zeros"""
        arr = np.asarray(values, dtype=np.float64)
        if arr.size == 0:
            return np.array([], dtype=np.float64)

        lo = arr.min()
        spread = arr.max() - lo
        if spread == 0:
            spread = 1.0
        return (arr - lo) / spread

    @staticmethod
    def downsample(values: Sequence[float], target_len: int) -> np.ndarray:
        """
        Reduce to target_len samples by bucket averaging.

        Bucket i covers values[floor(i*r) : ceil((i+1)*r)] with r = len / target_len,
        so neighbouring buckets may share a sample when r is fractional.
        Inputs already at or below target_len are returned unchanged.
        """
        arr = np.asarray(values, dtype=np.float64)
        n = arr.size
        if n <= target_len:
            return arr

        result = np.zeros(target_len, dtype=np.float64)
        for i in range(target_len):
            # Integer floor/ceil of i*n/target_len and (i+1)*n/target_len
            start = (i * n) // target_len
            end = min(-((-(i + 1) * n) // target_len), n)
            if end > start:
                result[i] = arr[start:end].mean()

        return result

    def normalize_returns(self, candles: List[Candle]) -> np.ndarray:
        return self.z_score_clip([c.returns for c in candles], self.config.clip_std)

    def normalize_ranges(self, candles: List[Candle]) -> np.ndarray:
        return self.z_score_clip([c.range for c in candles], self.config.clip_std)

    def normalize_volumes(self, candles: List[Candle]) -> np.ndarray:
        return self.z_score_clip([c.volume for c in candles], self.config.clip_std)

    def normalize_wicks(self, candles: List[Candle]) -> Tuple[np.ndarray, np.ndarray]:
        """(upper, lower) wick ratios, unchanged"""
        upper = np.array([c.upper_wick for c in candles], dtype=np.float64)
        lower = np.array([c.lower_wick for c in candles], dtype=np.float64)
        return upper, lower

    def normalize_field(self, name: str, candles: List[Candle]) -> np.ndarray:
        """Normalized series for one shape field name"""
        if name == 'returns':
            return self.normalize_returns(candles)
        if name == 'ranges':
            return self.normalize_ranges(candles)
        if name == 'volumes':
            return self.normalize_volumes(candles)
        if name == 'upper_wicks':
            return self.normalize_wicks(candles)[0]
        if name == 'lower_wicks':
            return self.normalize_wicks(candles)[1]
        raise ValueError(f"Unknown shape field: {name}")
