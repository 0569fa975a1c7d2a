"""
Window Engine

Converts a candle stream into fixed-length windows with deterministic identity.

Philosophy:
    - Bounded memory: one fixed-capacity ring buffer per stream
    - Determinism: window_id depends only on identity fields
    - No validation of input ordering (upstream contract)
"""

from candlewise.window_engine.config import WindowBuilderConfig
from candlewise.window_engine.ring_buffer import CircularCandleBuffer
from candlewise.window_engine.builder import BuilderState, WindowBuilder
from candlewise.window_engine.schemas import (
    Candle,
    Window,
    generate_window_id,
    candles_to_frame,
    candles_from_frame,
)

__all__ = [
    'WindowBuilderConfig',
    'CircularCandleBuffer',
    'BuilderState',
    'WindowBuilder',
    'Candle',
    'Window',
    'generate_window_id',
    'candles_to_frame',
    'candles_from_frame',
]
