"""
Circular Candle Buffer

Fixed-capacity, overwrite-oldest buffer of candles. One buffer backs one
(symbol, timeframe) window builder.

Concurrency:
    - Single writer, any number of readers
    - All state changes and snapshots run under one lock, so readers always
      see a consistent point-in-time view
"""

from typing import List, Optional
import threading

from candlewise.errors import ConfigurationError
from candlewise.window_engine.schemas import Candle


class CircularCandleBuffer:
    """
    Ring buffer of candles.

    push() never fails: once the buffer is full the logically oldest slot
    is overwritten. Slots are allocated once and reused across clear().
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ConfigurationError(f"Buffer capacity must be positive, got {capacity}")

        self._capacity = capacity
        self._slots: List[Optional[Candle]] = [None] * capacity
        self._head = 0  # next write position
        self._size = 0
        self._lock = threading.RLock()

    def push(self, candle: Candle):
        with self._lock:
            self._slots[self._head] = candle
            self._head = (self._head + 1) % self._capacity
            if self._size < self._capacity:
                self._size += 1

    def size(self) -> int:
        with self._lock:
            return self._size

    def __len__(self) -> int:
        return self.size()

    def is_full(self) -> bool:
        with self._lock:
            return self._size == self._capacity

    def capacity(self) -> int:
        return self._capacity

    def _start(self) -> int:
        # Oldest element sits at head once the ring has wrapped
        return self._head if self._size == self._capacity else 0

    def to_ordered_sequence(self) -> List[Candle]:
        """All held candles, oldest first"""
        with self._lock:
            start = self._start()
            return [
                self._slots[(start + i) % self._capacity]
                for i in range(self._size)
            ]

    def first(self) -> Optional[Candle]:
        """Oldest held candle, or None when empty"""
        with self._lock:
            if self._size == 0:
                return None
            return self._slots[self._start()]

    def last(self) -> Optional[Candle]:
        """Newest held candle, or None when empty"""
        with self._lock:
            if self._size == 0:
                return None
            return self._slots[(self._head - 1) % self._capacity]

    def clear(self):
        with self._lock:
            for i in range(self._capacity):
                self._slots[i] = None
            self._head = 0
            self._size = 0

    def copy(self) -> 'CircularCandleBuffer':
        """Independent buffer with identical contents and capacity"""
        with self._lock:
            clone = CircularCandleBuffer(self._capacity)
            for candle in self.to_ordered_sequence():
                clone.push(candle)
            return clone

    def __repr__(self) -> str:
        return f"CircularCandleBuffer(size={self.size()}, capacity={self._capacity})"
