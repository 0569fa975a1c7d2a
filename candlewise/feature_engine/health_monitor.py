"""
Feature Engine Health Monitor

Tracks window emission, extraction performance and publish failures.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
import logging
import threading

LOG = logging.getLogger(__name__)

MAX_ERRORS_KEPT = 100


@dataclass
class FeatureHealthMetrics:
    """Health metrics for window feature extraction"""

    # Computation metrics
    windows_emitted: int = 0
    features_extracted: int = 0
    extraction_failures: int = 0
    incomplete_windows: int = 0

    # Performance metrics
    avg_extraction_time_ms: float = 0.0
    max_extraction_time_ms: float = 0.0

    # Publishing metrics
    batches_published: int = 0
    publish_failures: int = 0

    # Error tracking
    extraction_errors: List[str] = field(default_factory=list)
    publish_errors: List[str] = field(default_factory=list)

    # Timestamps
    last_success_time: Optional[datetime] = None
    monitor_start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict:
        return {
            'computation': {
                'windows_emitted': self.windows_emitted,
                'features_extracted': self.features_extracted,
                'extraction_failures': self.extraction_failures,
                'incomplete_windows': self.incomplete_windows,
            },
            'performance': {
                'avg_extraction_time_ms': round(self.avg_extraction_time_ms, 3),
                'max_extraction_time_ms': round(self.max_extraction_time_ms, 3),
            },
            'publishing': {
                'batches_published': self.batches_published,
                'publish_failures': self.publish_failures,
            },
            'errors': {
                'extraction_errors': len(self.extraction_errors),
                'publish_errors': len(self.publish_errors),
            },
            'timestamps': {
                'last_success_time': self.last_success_time.isoformat() if self.last_success_time else None,
                'monitor_start_time': self.monitor_start_time.isoformat(),
                'uptime_seconds': (datetime.now(timezone.utc) - self.monitor_start_time).total_seconds(),
            },
        }


class FeatureEngineHealthMonitor:
    """
    Monitor feature pipeline health.

    Thread-safe: extraction results are recorded from worker threads.
    """

    def __init__(self, degraded_failure_rate: float = 0.05, unhealthy_failure_rate: float = 0.25):
        self.metrics = FeatureHealthMetrics()
        self.degraded_failure_rate = degraded_failure_rate
        self.unhealthy_failure_rate = unhealthy_failure_rate

        self._extraction_count = 0
        self._lock = threading.Lock()

    def record_window_emitted(self, count: int = 1):
        with self._lock:
            self.metrics.windows_emitted += count

    def record_incomplete_window(self, window_id: str):
        with self._lock:
            self.metrics.incomplete_windows += 1
        LOG.warning(f"Incomplete window skipped: {window_id}")

    def record_extraction_success(self, elapsed_ms: float):
        with self._lock:
            self.metrics.features_extracted += 1
            self._extraction_count += 1

            m = self.metrics
            m.avg_extraction_time_ms += (elapsed_ms - m.avg_extraction_time_ms) / self._extraction_count
            m.max_extraction_time_ms = max(m.max_extraction_time_ms, elapsed_ms)
            m.last_success_time = datetime.now(timezone.utc)

    def record_extraction_failure(self, window_id: str, error: str):
        with self._lock:
            self.metrics.extraction_failures += 1
            self._append_error(self.metrics.extraction_errors, f"{window_id} | {error}")
        LOG.error(f"✗ Feature extraction failed: {window_id} | {error}")

    def record_publish(self, success: bool, error: Optional[str] = None):
        with self._lock:
            if success:
                self.metrics.batches_published += 1
            else:
                self.metrics.publish_failures += 1
                self._append_error(self.metrics.publish_errors, error or "unknown error")

    @staticmethod
    def _append_error(errors: List[str], message: str):
        errors.append(f"{datetime.now(timezone.utc).isoformat()} | {message}")
        if len(errors) > MAX_ERRORS_KEPT:
            del errors[:-MAX_ERRORS_KEPT]

    def _failure_rate(self) -> float:
        # caller holds _lock
        attempts = self.metrics.features_extracted + self.metrics.extraction_failures
        if attempts == 0:
            return 0.0
        return self.metrics.extraction_failures / attempts

    def failure_rate(self) -> float:
        with self._lock:
            return self._failure_rate()

    def get_health_status(self) -> str:
        """'healthy', 'degraded' or 'unhealthy' from the extraction failure rate"""
        with self._lock:
            rate = self._failure_rate()
            publish_failures = self.metrics.publish_failures
        if rate >= self.unhealthy_failure_rate:
            return 'unhealthy'
        if rate >= self.degraded_failure_rate or publish_failures > 0:
            return 'degraded'
        return 'healthy'

    def to_dict(self) -> dict:
        d = self.metrics.to_dict()
        d['status'] = self.get_health_status()
        d['failure_rate'] = round(self.failure_rate(), 4)
        return d

    def reset(self):
        with self._lock:
            self.metrics = FeatureHealthMetrics()
            self._extraction_count = 0
        LOG.info("Feature engine health metrics reset")
