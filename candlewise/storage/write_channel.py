"""
Durable Write Channels

At-least-once delivery of candle and window batches to a store.

A message is removed only after the drain handler returns; a handler
exception leaves it (and everything after it) queued for the next drain.
Duplicate delivery is harmless because every write downstream is an
idempotent upsert.
"""

from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple
import logging
import threading

import redis

from candlewise.errors import StorageError
from candlewise.feature_engine.schemas import FeatureRow
from candlewise.storage.messages import (
    SUBJECTS,
    CandleBatchMessage,
    WindowBatchMessage,
    decode_message,
)
from candlewise.window_engine.schemas import Candle, Window

LOG = logging.getLogger(__name__)

Handler = Callable[[str, object], None]


class InMemoryWriteChannel:
    """Process-local channel with one FIFO per subject"""

    def __init__(self):
        self._lock = threading.RLock()
        self._queues: Dict[str, Deque[str]] = {s: deque() for s in SUBJECTS}

    def _publish(self, subject: str, payload: str):
        with self._lock:
            self._queues[subject].append(payload)

    def publish_candles(self, candles: List[Candle]):
        if not candles:
            return
        self._publish(CandleBatchMessage.subject, CandleBatchMessage(list(candles)).encode())

    def publish_windows(self, windows: List[Window], feature_rows: List[FeatureRow]):
        if not windows:
            return
        msg = WindowBatchMessage(list(windows), list(feature_rows))
        self._publish(WindowBatchMessage.subject, msg.encode())

    def drain(self, subject: str, handler: Handler) -> int:
        """Deliver queued messages in order; returns the number acknowledged"""
        delivered = 0
        with self._lock:
            queue = self._queues[subject]
            while queue:
                handler(subject, decode_message(subject, queue[0]))
                queue.popleft()
                delivered += 1
        return delivered

    def count(self, subject: Optional[str] = None) -> int:
        with self._lock:
            if subject:
                return len(self._queues[subject])
            return sum(len(q) for q in self._queues.values())

    def close(self):
        pass


class RedisWriteChannel:
    """
    Redis Streams channel.

    Each subject maps to the stream "<prefix>:<subject>". Messages are added
    with XADD, read with XRANGE and removed with XDEL once handled.
    """

    def __init__(self, url: Optional[str] = None, stream_prefix: str = "candlewise", client=None):
        self._url = url or "redis://localhost:6379/0"
        self._prefix = stream_prefix
        self._r = client if client is not None else redis.from_url(self._url, decode_responses=True)
        self._lock = threading.RLock()

    def _stream_key(self, subject: str) -> str:
        return f"{self._prefix}:{subject}"

    def _publish(self, subject: str, payload: str) -> str:
        with self._lock:
            try:
                return self._r.xadd(self._stream_key(subject), {'payload': payload})
            except redis.RedisError as e:
                raise StorageError(f"XADD to {subject} failed: {e}") from e

    def publish_candles(self, candles: List[Candle]):
        if not candles:
            return None
        return self._publish(CandleBatchMessage.subject, CandleBatchMessage(list(candles)).encode())

    def publish_windows(self, windows: List[Window], feature_rows: List[FeatureRow]):
        if not windows:
            return None
        msg = WindowBatchMessage(list(windows), list(feature_rows))
        return self._publish(WindowBatchMessage.subject, msg.encode())

    def _read(self, subject: str) -> List[Tuple[str, dict]]:
        try:
            return self._r.xrange(self._stream_key(subject), min='-', max='+')
        except redis.RedisError as e:
            raise StorageError(f"XRANGE on {subject} failed: {e}") from e

    def drain(self, subject: str, handler: Handler) -> int:
        delivered = 0
        key = self._stream_key(subject)
        with self._lock:
            for entry_id, data in self._read(subject):
                handler(subject, decode_message(subject, data['payload']))
                try:
                    self._r.xdel(key, entry_id)
                except redis.RedisError as e:
                    raise StorageError(f"XDEL {entry_id} on {subject} failed: {e}") from e
                delivered += 1
        if delivered:
            LOG.debug(f"Drained {delivered} messages from {key}")
        return delivered

    def count(self, subject: Optional[str] = None) -> int:
        subjects = [subject] if subject else list(SUBJECTS)
        with self._lock:
            try:
                return sum(int(self._r.xlen(self._stream_key(s))) for s in subjects)
            except redis.RedisError as e:
                raise StorageError(f"XLEN failed: {e}") from e

    def close(self):
        try:
            self._r.close()
        except redis.RedisError as e:
            LOG.warning(f"Error closing Redis client: {e}")
