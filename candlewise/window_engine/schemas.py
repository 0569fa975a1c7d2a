"""
Candle and Window Schemas

Value objects flowing through the window engine.

Rules:
    - Candles are immutable once constructed
    - Windows are never mutated after construction
    - window_id is a pure function of (symbol, timeframe, t_end, W, feature_version)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
import hashlib

import pandas as pd

from candlewise.timeutils import ensure_utc, to_unix_seconds


@dataclass(frozen=True)
class Candle:
    """
    Single OHLCV bar.

    Timestamps are stored as UTC-aware datetimes; naive inputs are read as UTC.
    """

    symbol: str
    timeframe: str
    open_time: datetime
    close_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: float
    trades: Optional[int] = None
    vwap: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, 'open_time', ensure_utc(self.open_time))
        object.__setattr__(self, 'close_time', ensure_utc(self.close_time))

    @property
    def returns(self) -> float:
        """Simple return (close - open) / open"""
        if self.open == 0:
            return 0.0
        return (self.close - self.open) / self.open

    @property
    def range(self) -> float:
        """High-low range relative to open"""
        if self.open == 0:
            return 0.0
        return (self.high - self.low) / self.open

    @property
    def upper_wick(self) -> float:
        """Upper wick as a fraction of the high-low range, in [0, 1]"""
        range_val = self.high - self.low
        if range_val == 0:
            return 0.0
        return (self.high - max(self.open, self.close)) / range_val

    @property
    def lower_wick(self) -> float:
        """Lower wick as a fraction of the high-low range, in [0, 1]"""
        range_val = self.high - self.low
        if range_val == 0:
            return 0.0
        return (min(self.open, self.close) - self.low) / range_val

    @property
    def is_bullish(self) -> bool:
        return self.close > self.open

    @property
    def is_bearish(self) -> bool:
        return self.close < self.open

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dictionary"""
        return {
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            'open_time': self.open_time.isoformat(),
            'close_time': self.close_time.isoformat(),
            'open': self.open,
            'high': self.high,
            'low': self.low,
            'close': self.close,
            'volume': self.volume,
            'trades': self.trades,
            'vwap': self.vwap,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Candle':
        return cls(
            symbol=data['symbol'],
            timeframe=data['timeframe'],
            open_time=datetime.fromisoformat(data['open_time']),
            close_time=datetime.fromisoformat(data['close_time']),
            open=float(data['open']),
            high=float(data['high']),
            low=float(data['low']),
            close=float(data['close']),
            volume=float(data['volume']),
            trades=data.get('trades'),
            vwap=data.get('vwap'),
        )


CANDLE_COLUMNS = [
    'symbol', 'timeframe', 'open_time', 'close_time',
    'open', 'high', 'low', 'close', 'volume', 'trades', 'vwap',
]


def candles_to_frame(candles: List[Candle]) -> pd.DataFrame:
    """Convert candles to a DataFrame (one row per candle, oldest first)."""
    if not candles:
        return pd.DataFrame(columns=CANDLE_COLUMNS)
    return pd.DataFrame([
        {
            'symbol': c.symbol,
            'timeframe': c.timeframe,
            'open_time': c.open_time,
            'close_time': c.close_time,
            'open': c.open,
            'high': c.high,
            'low': c.low,
            'close': c.close,
            'volume': c.volume,
            'trades': c.trades,
            'vwap': c.vwap,
        }
        for c in candles
    ], columns=CANDLE_COLUMNS)


def candles_from_frame(df: pd.DataFrame) -> List[Candle]:
    """
    Build candles from a DataFrame with the CANDLE_COLUMNS layout.

    trades / vwap columns are optional; NaN values become None.
    """
    candles = []
    for row in df.itertuples(index=False):
        trades = getattr(row, 'trades', None)
        vwap = getattr(row, 'vwap', None)
        candles.append(Candle(
            symbol=row.symbol,
            timeframe=row.timeframe,
            open_time=pd.Timestamp(row.open_time).to_pydatetime(),
            close_time=pd.Timestamp(row.close_time).to_pydatetime(),
            open=float(row.open),
            high=float(row.high),
            low=float(row.low),
            close=float(row.close),
            volume=float(row.volume),
            trades=None if trades is None or pd.isna(trades) else int(trades),
            vwap=None if vwap is None or pd.isna(vwap) else float(vwap),
        ))
    return candles


def generate_window_id(
    symbol: str,
    timeframe: str,
    t_end: datetime,
    w: int,
    feature_version: int
) -> str:
    """
    Deterministic window identity.

    SHA-256 over "symbol|timeframe|t_end_unix|W|feature_version", first
    16 bytes hex encoded (32 chars). Repeated writes of the same window
    therefore collapse onto one key downstream.
    """
    data = f"{symbol}|{timeframe}|{to_unix_seconds(t_end)}|{w}|{feature_version}"
    return hashlib.sha256(data.encode()).hexdigest()[:32]


@dataclass(frozen=True)
class Window:
    """
    Fixed-length run of contiguous candles for one (symbol, timeframe).

    Immutable once created. Build through Window.create() so that the
    identity is always derived from the identity fields.
    """

    window_id: str
    symbol: str
    timeframe: str
    t_end: datetime
    w: int
    feature_version: int
    candles: Tuple[Candle, ...]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def create(
        cls,
        symbol: str,
        timeframe: str,
        t_end: datetime,
        w: int,
        feature_version: int,
        candles
    ) -> 'Window':
        return cls(
            window_id=generate_window_id(symbol, timeframe, t_end, w, feature_version),
            symbol=symbol,
            timeframe=timeframe,
            t_end=ensure_utc(t_end),
            w=w,
            feature_version=feature_version,
            candles=tuple(candles),
        )

    @property
    def is_complete(self) -> bool:
        """True when the window holds exactly W candles"""
        return len(self.candles) == self.w

    @property
    def first_candle(self) -> Optional[Candle]:
        return self.candles[0] if self.candles else None

    @property
    def last_candle(self) -> Optional[Candle]:
        return self.candles[-1] if self.candles else None

    @property
    def t_start(self) -> Optional[datetime]:
        """Open time of the first candle"""
        first = self.first_candle
        return first.open_time if first is not None else None

    def to_frame(self) -> pd.DataFrame:
        return candles_to_frame(list(self.candles))

    def to_dict(self) -> dict:
        """Serialize to dictionary (candles included)"""
        return {
            'window_id': self.window_id,
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            't_end': self.t_end.isoformat(),
            'w': self.w,
            'feature_version': self.feature_version,
            'candles': [c.to_dict() for c in self.candles],
            'created_at': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Window':
        return cls(
            window_id=data['window_id'],
            symbol=data['symbol'],
            timeframe=data['timeframe'],
            t_end=ensure_utc(datetime.fromisoformat(data['t_end'])),
            w=int(data['w']),
            feature_version=int(data['feature_version']),
            candles=tuple(Candle.from_dict(c) for c in data.get('candles', [])),
            created_at=ensure_utc(datetime.fromisoformat(data['created_at']))
            if data.get('created_at') else datetime.now(timezone.utc),
        )
