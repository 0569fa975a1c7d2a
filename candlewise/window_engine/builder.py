"""
Window Builder

Turns a candle stream into fixed-length windows.

State machine:
    WARMING_UP  --(buffer size >= warmup)-->  WARMED_UP   (latched)

On the warmup transition the step counter is forced to S so the first
window is emitted on that same push. Afterwards a window is emitted every
S pushes while the buffer is full.

Input ordering is the caller's contract: out-of-order or duplicate
timestamps are not rejected. Call reset() after a detected gap.
"""

from enum import Enum
from typing import Iterable, List, Optional
import logging

from candlewise.window_engine.config import WindowBuilderConfig
from candlewise.window_engine.ring_buffer import CircularCandleBuffer
from candlewise.window_engine.schemas import Candle, Window

LOG = logging.getLogger(__name__)


class BuilderState(Enum):
    WARMING_UP = "warming_up"
    WARMED_UP = "warmed_up"


class WindowBuilder:
    """
    Sliding window construction over a CircularCandleBuffer.

    One builder per (symbol, timeframe); a single thread pushes.
    """

    def __init__(self, config: WindowBuilderConfig):
        config.validate()
        self.config = config

        self.window_length = config.window_length
        self.step = config.step
        self.warmup = config.effective_warmup

        self._buffer = CircularCandleBuffer(config.window_length)
        self._step_count = 0
        self._state = BuilderState.WARMING_UP
        self._windows_emitted = 0

        LOG.debug(f"Window builder initialized: {config.symbol} {config.timeframe} "
                  f"W={self.window_length} S={self.step} warmup={self.warmup}")

    @property
    def state(self) -> BuilderState:
        return self._state

    @property
    def is_warmed_up(self) -> bool:
        return self._state is BuilderState.WARMED_UP

    @property
    def current_size(self) -> int:
        return self._buffer.size()

    @property
    def windows_emitted(self) -> int:
        return self._windows_emitted

    def snapshot(self) -> List[Candle]:
        """Current buffer contents, oldest first"""
        return self._buffer.to_ordered_sequence()

    def push(self, candle: Candle) -> Optional[Window]:
        """
        Add one candle.

        Returns:
            A Window when the emission conditions are met, otherwise None.
            Never more than one window per call.
        """
        self._buffer.push(candle)
        self._step_count += 1

        if self._state is BuilderState.WARMING_UP and self._buffer.size() >= self.warmup:
            self._state = BuilderState.WARMED_UP
            self._step_count = self.step
            LOG.debug(f"Warmup complete: {self.config.symbol} {self.config.timeframe}")

        if self._state is not BuilderState.WARMED_UP or not self._buffer.is_full():
            return None

        if self._step_count < self.step:
            return None

        self._step_count = 0

        last = self._buffer.last()
        if last is None:
            return None

        window = Window.create(
            symbol=self.config.symbol,
            timeframe=self.config.timeframe,
            t_end=last.close_time,
            w=self.window_length,
            feature_version=self.config.feature_version,
            candles=self._buffer.to_ordered_sequence(),
        )
        self._windows_emitted += 1
        return window

    def process_candles(self, candles: Iterable[Candle]) -> List[Window]:
        """Push candles one at a time and collect every emitted window, in order"""
        windows = []
        pushed = 0
        for candle in candles:
            pushed += 1
            window = self.push(candle)
            if window is not None:
                windows.append(window)

        LOG.info(f"Processed {pushed} candles for {self.config.symbol} "
                 f"{self.config.timeframe}: {len(windows)} windows")
        return windows

    def reset(self):
        """Drop buffered candles and return to warming up"""
        self._buffer.clear()
        self._step_count = 0
        self._state = BuilderState.WARMING_UP
        LOG.info(f"Window builder reset: {self.config.symbol} {self.config.timeframe}")
