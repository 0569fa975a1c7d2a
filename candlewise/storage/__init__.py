"""
Storage

Persistence and messaging collaborators for the window/feature/outcome core:
range-queryable stores, durable write channels and their batch messages.
"""

from candlewise.storage.candle_store import InMemoryCandleStore, SQLiteStore
from candlewise.storage.config import StorageConfig
from candlewise.storage.messages import (
    SUBJECT_CANDLES_WRITE,
    SUBJECT_WINDOWS_WRITE,
    CandleBatchMessage,
    WindowBatchMessage,
    decode_message,
)
from candlewise.storage.write_channel import InMemoryWriteChannel, RedisWriteChannel
from candlewise.storage.writer import BatchWriter

__all__ = [
    'InMemoryCandleStore',
    'SQLiteStore',
    'StorageConfig',
    'SUBJECT_CANDLES_WRITE',
    'SUBJECT_WINDOWS_WRITE',
    'CandleBatchMessage',
    'WindowBatchMessage',
    'decode_message',
    'InMemoryWriteChannel',
    'RedisWriteChannel',
    'BatchWriter',
]
