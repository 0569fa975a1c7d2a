"""
Feature Schemas

Output structures of the feature engine and the bucket classifiers used
as scalar filters during similarity search.
"""

from dataclasses import dataclass
from typing import Dict, Iterable
import math

import numpy as np

# Trend buckets
TREND_STRONG_DOWN = -2
TREND_DOWN = -1
TREND_NEUTRAL = 0
TREND_UP = 1
TREND_STRONG_UP = 2

VOL_BUCKET_MIN = 0
VOL_BUCKET_MAX = 9


def classify_trend_bucket(slope: float) -> int:
    """Map a trend slope onto -2..+2"""
    if slope < -0.02:
        return TREND_STRONG_DOWN
    if slope < -0.005:
        return TREND_DOWN
    if slope < 0.005:
        return TREND_NEUTRAL
    if slope < 0.02:
        return TREND_UP
    return TREND_STRONG_UP


def classify_vol_bucket(z_score: float) -> int:
    """
    Map a volume z-score onto 0..9.

    bucket = clamp(round((z + 2) * 2.25), 0, 9), rounding half up.
    z <= -2 lands in 0, z >= 2 lands in 9.
    """
    bucket = math.floor((z_score + 2) * 2.25 + 0.5)
    return max(VOL_BUCKET_MIN, min(VOL_BUCKET_MAX, bucket))


def new_shape_vector(dim: int) -> np.ndarray:
    """Zero-filled float32 vector"""
    return np.zeros(dim, dtype=np.float32)


def shape_vector_from(values: Iterable[float]) -> np.ndarray:
    return np.asarray(list(values), dtype=np.float32)


@dataclass
class FeatureRow:
    """
    Structured scalar features for one window.

    One-to-one with a Window through window_id.
    """

    window_id: str
    trend_slope: float
    realized_volatility: float
    max_drawdown: float
    atr: float
    vol_z_score: float
    vol_bucket: int
    trend_bucket: int
    feature_version: int

    def to_dict(self) -> dict:
        return {
            'window_id': self.window_id,
            'trend_slope': float(self.trend_slope),
            'realized_volatility': float(self.realized_volatility),
            'max_drawdown': float(self.max_drawdown),
            'atr': float(self.atr),
            'vol_z_score': float(self.vol_z_score),
            'vol_bucket': int(self.vol_bucket),
            'trend_bucket': int(self.trend_bucket),
            'feature_version': int(self.feature_version),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'FeatureRow':
        return cls(
            window_id=data['window_id'],
            trend_slope=float(data['trend_slope']),
            realized_volatility=float(data['realized_volatility']),
            max_drawdown=float(data['max_drawdown']),
            atr=float(data['atr']),
            vol_z_score=float(data['vol_z_score']),
            vol_bucket=int(data['vol_bucket']),
            trend_bucket=int(data['trend_bucket']),
            feature_version=int(data['feature_version']),
        )


@dataclass
class WindowFeatures:
    """Feature row and shape vector extracted from one complete window"""

    feature_row: FeatureRow
    shape_vector: np.ndarray

    @property
    def window_id(self) -> str:
        return self.feature_row.window_id

    @property
    def dim(self) -> int:
        return int(self.shape_vector.shape[0])
