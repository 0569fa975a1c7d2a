"""
candlewise

Sliding-window analytics over OHLCV candle streams.

Layers:
    - window_engine: circular candle buffer and deterministic window builder
    - feature_engine: normalization, structural features, shape vectors
    - outcome_engine: forward-return and drawdown statistics
    - rerank: time-decay reranking of similarity search results
    - storage: range-queryable stores and durable write channels
    - search: vector index and pattern search service

Flow:
    candles → WindowBuilder → Window → FeatureExtractor → FeatureRow + ShapeVector
"""

__version__ = '1.0.0'
