"""
Write Batch Messages

JSON payloads carried on the durable write channel.

Subjects:
    candles.write → CandleBatchMessage
    windows.write → WindowBatchMessage (windows without candles + feature rows)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List
import json

from candlewise.feature_engine.schemas import FeatureRow
from candlewise.window_engine.schemas import Candle, Window

SUBJECT_CANDLES_WRITE = "candles.write"
SUBJECT_WINDOWS_WRITE = "windows.write"

SUBJECTS = (SUBJECT_CANDLES_WRITE, SUBJECT_WINDOWS_WRITE)


@dataclass
class CandleBatchMessage:
    candles: List[Candle] = field(default_factory=list)

    subject = SUBJECT_CANDLES_WRITE

    def encode(self) -> str:
        return json.dumps({'candles': [c.to_dict() for c in self.candles]})

    @classmethod
    def decode(cls, payload: str) -> 'CandleBatchMessage':
        data = json.loads(payload)
        return cls(candles=[Candle.from_dict(c) for c in data.get('candles', [])])


@dataclass
class WindowBatchMessage:
    """
    Window metadata and feature rows.

    Window candles are not repeated on the wire; consumers rebuild them
    from the candle store when needed.
    """

    windows: List[Window] = field(default_factory=list)
    feature_rows: List[FeatureRow] = field(default_factory=list)

    subject = SUBJECT_WINDOWS_WRITE

    def encode(self) -> str:
        windows = []
        for w in self.windows:
            d = w.to_dict()
            d['candles'] = []
            windows.append(d)
        return json.dumps({
            'windows': windows,
            'features': [r.to_dict() for r in self.feature_rows],
        })

    @classmethod
    def decode(cls, payload: str) -> 'WindowBatchMessage':
        data = json.loads(payload)
        return cls(
            windows=[Window.from_dict(w) for w in data.get('windows', [])],
            feature_rows=[FeatureRow.from_dict(f) for f in data.get('features', [])],
        )


def decode_message(subject: str, payload: str):
    if subject == SUBJECT_CANDLES_WRITE:
        return CandleBatchMessage.decode(payload)
    if subject == SUBJECT_WINDOWS_WRITE:
        return WindowBatchMessage.decode(payload)
    raise ValueError(f"Unknown subject: {subject}")
