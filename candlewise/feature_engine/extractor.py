"""
Feature Extractor

Turns one complete Window into a FeatureRow and a ShapeVector.

Feature row:
    - trend_slope: OLS slope of % change from first close
    - realized_volatility: std of close-to-close returns
    - max_drawdown: peak-to-trough decline of closes
    - atr: average true range / first close
    - vol_z_score: last volume vs. window volumes
    - vol_bucket / trend_bucket: categorical filters

Shape vector:
    Normalized per-candle series, each down-sampled to
    vector_dim / len(shape_fields) samples, concatenated in field order.
"""

from typing import Iterable, List, Optional
import logging

import numpy as np

from candlewise.feature_engine.config import FeatureEngineConfig
from candlewise.feature_engine.normalization import FeatureNormalizer
from candlewise.feature_engine.primitives import PrimitiveStats as PS
from candlewise.feature_engine.schemas import (
    FeatureRow,
    WindowFeatures,
    classify_trend_bucket,
    classify_vol_bucket,
    new_shape_vector,
)
from candlewise.window_engine.schemas import Candle, Window

LOG = logging.getLogger(__name__)


class FeatureExtractor:
    """
    Extract structured features and shape vectors from windows.

    Stateless after construction; safe to share across threads.
    """

    def __init__(self, config: Optional[FeatureEngineConfig] = None):
        self.config = config or FeatureEngineConfig()
        self.config.validate()

        self.normalizer = FeatureNormalizer(self.config.normalization)
        self.vector_dim = self.config.vector_dim

        LOG.info(f"Feature extractor initialized: dim={self.vector_dim}, "
                 f"fields={list(self.config.shape_fields)}, "
                 f"config {self.config.get_config_hash()[:8]}")

    def extract(self, window: Window) -> Optional[WindowFeatures]:
        """
        Extract features from a window.

        Returns:
            WindowFeatures, or None when the window is not complete
        """
        if not window.is_complete:
            LOG.debug(f"Skipping incomplete window {window.window_id} "
                      f"({len(window.candles)}/{window.w} candles)")
            return None

        candles = list(window.candles)
        feature_row = self.compute_feature_row(window.window_id, candles)
        shape_vector = self.build_shape_vector(candles)

        return WindowFeatures(feature_row=feature_row, shape_vector=shape_vector)

    def extract_many(self, windows: Iterable[Window]) -> List[WindowFeatures]:
        """Extract from each complete window, preserving order"""
        results = []
        for window in windows:
            features = self.extract(window)
            if features is not None:
                results.append(features)
        return results

    def compute_feature_row(self, window_id: str, candles: List[Candle]) -> FeatureRow:
        closes = np.array([c.close for c in candles], dtype=np.float64)
        highs = np.array([c.high for c in candles], dtype=np.float64)
        lows = np.array([c.low for c in candles], dtype=np.float64)
        volumes = np.array([c.volume for c in candles], dtype=np.float64)

        trend_slope = PS.trend_slope(closes)
        vol_z_score = PS.volume_z_score(volumes)

        return FeatureRow(
            window_id=window_id,
            trend_slope=trend_slope,
            realized_volatility=PS.realized_volatility(closes),
            max_drawdown=PS.max_drawdown(closes),
            atr=PS.average_true_range(highs, lows, closes),
            vol_z_score=vol_z_score,
            vol_bucket=classify_vol_bucket(vol_z_score),
            trend_bucket=classify_trend_bucket(trend_slope),
            feature_version=self.config.feature_version,
        )

    def build_shape_vector(self, candles: List[Candle]) -> np.ndarray:
        """
        Fixed-length float32 vector for similarity search.

        Each field occupies a contiguous block of samples_per_field slots.
        Windows shorter than samples_per_field give shorter blocks packed
        at the front, and the tail of the vector stays 0.
        """
        vector = new_shape_vector(self.vector_dim)
        samples = min(self.config.samples_per_field, len(candles))

        idx = 0
        for field_name in self.config.shape_fields:
            series = self.normalizer.normalize_field(field_name, candles)
            series = self.normalizer.downsample(series, samples)

            for i in range(samples):
                if idx >= self.vector_dim:
                    break
                if i < len(series):
                    vector[idx] = series[i]
                idx += 1

        return vector
