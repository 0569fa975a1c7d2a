"""
Window Feature Pipeline

Orchestrates candle → window → features → write channel.

Pipeline Stages:
    1. Window construction (WindowBuilder, sequential by nature)
    2. Feature extraction (independent per window, parallel for history)
    3. Publication to the durable write channel (batched)

Windows carry deterministic ids, so re-running a stage and re-publishing
its output is idempotent downstream.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Iterable, List, Optional
import logging

from candlewise.feature_engine.config import FeatureEngineConfig, PipelineConfig
from candlewise.feature_engine.extractor import FeatureExtractor
from candlewise.feature_engine.health_monitor import FeatureEngineHealthMonitor
from candlewise.feature_engine.schemas import WindowFeatures
from candlewise.window_engine.builder import WindowBuilder
from candlewise.window_engine.config import WindowBuilderConfig
from candlewise.window_engine.schemas import Candle, Window

LOG = logging.getLogger(__name__)


class WindowFeaturePipeline:
    """
    Feature computation pipeline for one (symbol, timeframe) stream.

    Philosophy:
        - Sequential window building, parallel extraction
        - Order preserved: outputs follow window emission order
        - Channel optional: without one the pipeline only computes

    The channel is any object exposing publish_windows(windows, feature_rows)
    and publish_candles(candles), e.g. the storage write channels.
    """

    def __init__(
        self,
        builder_config: WindowBuilderConfig,
        feature_config: Optional[FeatureEngineConfig] = None,
        pipeline_config: Optional[PipelineConfig] = None,
        channel=None,
        health_monitor: Optional[FeatureEngineHealthMonitor] = None
    ):
        self.pipeline_config = pipeline_config or PipelineConfig()
        self.pipeline_config.validate()

        self.builder = WindowBuilder(builder_config)
        self.extractor = FeatureExtractor(feature_config)
        self.channel = channel
        self.health = health_monitor or FeatureEngineHealthMonitor()

        self._executor = ThreadPoolExecutor(
            max_workers=self.pipeline_config.max_workers,
            thread_name_prefix="WindowFeatureWorker"
        )

        LOG.info(f"Window feature pipeline initialized: {builder_config.symbol} "
                 f"{builder_config.timeframe} (W={builder_config.window_length}, "
                 f"S={builder_config.step}, workers={self.pipeline_config.max_workers})")

    def on_candle(self, candle: Candle) -> Optional[WindowFeatures]:
        """
        Live path: push one candle, extract and publish if a window closes.
        """
        window = self.builder.push(candle)
        if window is None:
            return None

        self.health.record_window_emitted()
        features = self._extract_one(window)
        if features is not None:
            self._publish([window], [features])
        return features

    def process_history(self, candles: Iterable[Candle]) -> List[WindowFeatures]:
        """
        Batch path: build every window from an ordered candle history, then
        extract features in parallel and publish in batches.

        Returns:
            WindowFeatures in window emission order (failed windows omitted)
        """
        start_time = datetime.now(timezone.utc)
        candles = list(candles)

        if self.channel is not None and self.pipeline_config.publish_candles and candles:
            self._publish_candles(candles)

        windows = self.builder.process_candles(candles)
        self.health.record_window_emitted(len(windows))

        extracted = list(self._executor.map(self._extract_one, windows))

        pairs = [(w, f) for w, f in zip(windows, extracted) if f is not None]
        batch_size = self.pipeline_config.publish_batch_size
        for i in range(0, len(pairs), batch_size):
            batch = pairs[i:i + batch_size]
            self._publish([w for w, _ in batch], [f for _, f in batch])

        processing_time = (datetime.now(timezone.utc) - start_time).total_seconds()
        LOG.info(f"✓ History processed: {len(candles)} candles → {len(windows)} windows → "
                 f"{len(pairs)} feature sets ({processing_time:.2f}s)")

        return [f for _, f in pairs]

    def _extract_one(self, window: Window) -> Optional[WindowFeatures]:
        started = datetime.now(timezone.utc)
        try:
            features = self.extractor.extract(window)
        except Exception as e:
            self.health.record_extraction_failure(window.window_id, str(e))
            if self.pipeline_config.fail_on_error:
                raise
            return None

        if features is None:
            self.health.record_incomplete_window(window.window_id)
            return None

        elapsed_ms = (datetime.now(timezone.utc) - started).total_seconds() * 1000
        self.health.record_extraction_success(elapsed_ms)
        return features

    def _publish(self, windows: List[Window], features: List[WindowFeatures]):
        if self.channel is None or not windows:
            return
        try:
            self.channel.publish_windows(windows, [f.feature_row for f in features])
            self.health.record_publish(True)
            LOG.debug(f"Published {len(windows)} windows")
        except Exception as e:
            self.health.record_publish(False, str(e))
            LOG.error(f"Failed to publish {len(windows)} windows: {e}")
            raise

    def _publish_candles(self, candles: List[Candle]):
        batch_size = self.pipeline_config.publish_batch_size
        for i in range(0, len(candles), batch_size):
            self.channel.publish_candles(candles[i:i + batch_size])

    def reset(self):
        """Reset window state after a gap in the candle stream"""
        self.builder.reset()

    def close(self):
        self._executor.shutdown(wait=True)
        LOG.info("Window feature pipeline closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
