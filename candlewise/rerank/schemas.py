"""
Rerank Schemas
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from candlewise.timeutils import ensure_utc


@dataclass
class SearchResult:
    """One hit returned by a vector similarity index"""

    window_id: str
    score: float
    symbol: str = ""
    timeframe: str = ""
    t_end: Optional[datetime] = None
    vol_bucket: int = 0
    trend_bucket: int = 0
    feature_version: int = 0

    def __post_init__(self):
        if self.t_end is not None:
            self.t_end = ensure_utc(self.t_end)

    def to_dict(self) -> dict:
        return {
            'window_id': self.window_id,
            'score': float(self.score),
            'symbol': self.symbol,
            'timeframe': self.timeframe,
            't_end': self.t_end.isoformat() if self.t_end else None,
            'vol_bucket': self.vol_bucket,
            'trend_bucket': self.trend_bucket,
            'feature_version': self.feature_version,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'SearchResult':
        t_end = data.get('t_end')
        return cls(
            window_id=data['window_id'],
            score=float(data['score']),
            symbol=data.get('symbol', ""),
            timeframe=data.get('timeframe', ""),
            t_end=datetime.fromisoformat(t_end) if t_end else None,
            vol_bucket=int(data.get('vol_bucket', 0)),
            trend_bucket=int(data.get('trend_bucket', 0)),
            feature_version=int(data.get('feature_version', 0)),
        )


@dataclass
class RankedResult:
    """SearchResult with its time weight and fused score"""

    result: SearchResult
    original_score: float
    time_weight: float
    final_score: float

    @property
    def window_id(self) -> str:
        return self.result.window_id

    def to_dict(self) -> dict:
        d = self.result.to_dict()
        d.update({
            'original_score': float(self.original_score),
            'time_weight': float(self.time_weight),
            'final_score': float(self.final_score),
        })
        return d
