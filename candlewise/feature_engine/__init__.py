"""
Feature Engine

Transforms complete windows into structured feature rows and fixed-dimension
shape vectors for similarity search.

Philosophy:
    - Stationarity: no raw prices, only returns/ratios/normalized series
    - Determinism: same window → same features, fully reproducible
    - Bounded outputs: normalized series live in [-1, 1] or [0, 1]
    - No NaN: degenerate statistics fall back to explicit constants
"""

from candlewise.feature_engine.config import (
    FeatureEngineConfig,
    NormalizationConfig,
    PipelineConfig,
)
from candlewise.feature_engine.extractor import FeatureExtractor
from candlewise.feature_engine.normalization import FeatureNormalizer
from candlewise.feature_engine.pipeline import WindowFeaturePipeline
from candlewise.feature_engine.schemas import (
    FeatureRow,
    WindowFeatures,
    classify_trend_bucket,
    classify_vol_bucket,
)

__all__ = [
    'FeatureEngineConfig',
    'NormalizationConfig',
    'PipelineConfig',
    'FeatureExtractor',
    'FeatureNormalizer',
    'WindowFeaturePipeline',
    'FeatureRow',
    'WindowFeatures',
    'classify_trend_bucket',
    'classify_vol_bucket',
]
