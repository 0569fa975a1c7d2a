"""
Batch Writer

Drain handler that applies write-channel messages to a store.
"""

import logging

from candlewise.storage.messages import CandleBatchMessage, WindowBatchMessage

LOG = logging.getLogger(__name__)


class BatchWriter:
    """
    Apply decoded batches to a store exposing insert_candles(),
    upsert_windows() and upsert_feature_rows().

    Usage:
        writer = BatchWriter(store)
        channel.drain(SUBJECT_WINDOWS_WRITE, writer)
    """

    def __init__(self, store):
        self.store = store
        self.candles_written = 0
        self.windows_written = 0
        self.features_written = 0

    def __call__(self, subject: str, message):
        self.handle(message)

    def handle(self, message):
        if isinstance(message, CandleBatchMessage):
            self.candles_written += self.store.insert_candles(message.candles)
        elif isinstance(message, WindowBatchMessage):
            self.windows_written += self.store.upsert_windows(message.windows)
            self.features_written += self.store.upsert_feature_rows(message.feature_rows)
        else:
            raise TypeError(f"Unsupported message type: {type(message).__name__}")

    def drain_all(self, channel) -> int:
        """Drain both subjects, candles first"""
        total = channel.drain(CandleBatchMessage.subject, self)
        total += channel.drain(WindowBatchMessage.subject, self)
        LOG.info(f"✓ Drained {total} batches: {self.candles_written} candles, "
                 f"{self.windows_written} windows, {self.features_written} feature rows written")
        return total
